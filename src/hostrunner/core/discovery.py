"""Host application discovery."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import structlog

from hostrunner.config import HostConfig
from hostrunner.core.models import HostInstance
from hostrunner.core.state import RunConfiguration
from hostrunner.errors import DiscoveryError

log = structlog.get_logger("core.discovery")


@dataclass
class DiscoveryResult:
    """Result of host discovery."""

    instances: list[HostInstance] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        """Check if at least one host was found."""
        return self.error is None and bool(self.instances)


class HostDiscovery:
    """Finds installed instances of the host application."""

    def __init__(self, config: HostConfig):
        """Initialize host discovery."""
        self.config = config

    def discover(self) -> DiscoveryResult:
        """Discover host instances.

        Explicitly configured instances come first, in configuration order,
        followed by installations found under each search path in sorted
        order. An install location is reported once.
        """
        instances: list[HostInstance] = []
        seen: set[Path] = set()

        def add(instance: HostInstance) -> None:
            location = instance.install_location
            if location in seen:
                return
            seen.add(location)
            instances.append(instance)

        for entry in self.config.instances:
            location = Path(entry.install_location).expanduser().resolve()
            add(HostInstance(name=entry.name, install_location=location))

        for search_path in self.config.search_paths:
            for instance in self._scan(Path(search_path).expanduser()):
                add(instance)

        if not instances:
            return DiscoveryResult(
                error=f"No installation of '{self.config.executable}' was found."
            )

        log.debug("Discovered host instances", count=len(instances))
        return DiscoveryResult(instances=instances)

    def _scan(self, root: Path) -> list[HostInstance]:
        """Scan a search path and its direct subdirectories for the executable."""
        if not root.is_dir():
            log.debug("Skipping missing search path", path=str(root))
            return []

        found = []
        candidates = [root]
        try:
            candidates.extend(sorted(p for p in root.iterdir() if p.is_dir()))
        except OSError as e:
            log.warning("Could not scan search path", path=str(root), error=str(e))

        for directory in candidates:
            executable = directory / self.config.executable
            if executable.is_file() and os.access(executable, os.X_OK):
                found.append(
                    HostInstance(name=directory.name, install_location=directory.resolve())
                )
        return found


def discover_hosts(config: HostConfig) -> list[HostInstance]:
    """Discover host instances, raising DiscoveryError when there are none."""
    result = HostDiscovery(config).discover()
    if not result.success:
        raise DiscoveryError(result.error or "No host application instance was found.")
    return result.instances


def resolve_host_path(config: RunConfiguration, executable: str) -> Path:
    """Path of the host executable to launch for this configuration.

    An explicit host path wins, then the selected instance, then the first
    discovered one.
    """
    if config.host_path:
        return config.host_path

    instance = config.selected_host
    if instance is None:
        if not config.host_instances:
            raise DiscoveryError("No host application instance was found.")
        instance = config.host_instances[0]

    return instance.install_location / executable
