"""Exception types raised by hostrunner."""


class HostRunnerError(Exception):
    """Base class for errors reported to the user."""

    pass


class ConfigurationError(HostRunnerError):
    """Raised when the run configuration is incomplete or inconsistent."""

    pass


class InvalidPathError(ConfigurationError):
    """Raised when a configured file or directory does not exist."""

    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.path = path


class AssemblyLoadError(ConfigurationError):
    """Raised when a test assembly cannot be read."""

    pass


class DiscoveryError(HostRunnerError):
    """Raised when no host application instance is available."""

    pass


class TargetNotFoundError(HostRunnerError):
    """Raised when the requested fixture or test is not in any loaded assembly."""

    def __init__(self, kind: str, name: str):
        super().__init__(f"The specified {kind} '{name}' was not found in the loaded assemblies.")
        self.kind = kind
        self.name = name


class RunStateError(HostRunnerError):
    """Raised when a run is started while another one is in progress."""

    pass
