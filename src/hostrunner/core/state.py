"""Mutable run configuration shared by the selector, orchestrator and session."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from hostrunner.core.models import AssemblyData, HostInstance
from hostrunner.errors import ConfigurationError, InvalidPathError

NO_HOST_SELECTED = -1
DEFAULT_TIMEOUT_MS = 120_000


@dataclass
class RunConfiguration:
    """The run context for one invocation or one interactive session.

    Paths are stored absolute. The setters validate; plain attribute
    assignment is left for values with no invariant to guard.
    """

    working_directory: Optional[Path] = None
    test_assembly_path: Optional[Path] = None
    results_path: Optional[Path] = None
    fixture_filter: Optional[str] = None
    test_filter: Optional[str] = None
    concatenate_results: bool = False
    gui_mode: bool = False
    debug_mode: bool = False
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    host_path: Optional[Path] = None
    selected_host_index: int = NO_HOST_SELECTED
    host_instances: list[HostInstance] = field(default_factory=list)
    assemblies: list[AssemblyData] = field(default_factory=list)
    run_count: int = 0

    def set_working_directory(self, path: Path | str) -> None:
        """Set the working directory, which must exist."""
        resolved = Path(path).expanduser().resolve()
        if not resolved.is_dir():
            raise InvalidPathError(
                f"The specified working directory does not exist: {resolved}", str(resolved)
            )
        self.working_directory = resolved

    def set_test_assembly(self, path: Path | str) -> None:
        """Set the test assembly, which must be an existing file."""
        resolved = Path(path).expanduser().resolve()
        if not resolved.is_file():
            raise InvalidPathError(
                f"The specified test assembly does not exist: {resolved}", str(resolved)
            )
        self.test_assembly_path = resolved

    def set_results_path(self, path: Path | str) -> None:
        """Set the results artifact path. The file is created by the first run."""
        self.results_path = Path(path).expanduser().resolve()

    def normalize_selected_host_index(self) -> int:
        """Collapse an out-of-range host selection to NO_HOST_SELECTED."""
        if not 0 <= self.selected_host_index < len(self.host_instances):
            self.selected_host_index = NO_HOST_SELECTED
        return self.selected_host_index

    @property
    def selected_host(self) -> Optional[HostInstance]:
        if 0 <= self.selected_host_index < len(self.host_instances):
            return self.host_instances[self.selected_host_index]
        return None

    def check_filters(self) -> None:
        """Reject a configuration that filters on a fixture and a test at once."""
        if self.fixture_filter and self.test_filter:
            raise ConfigurationError(
                "Specify either a fixture or a test name, not both."
            )

    def clear_filters(self) -> None:
        self.fixture_filter = None
        self.test_filter = None

    @property
    def total_test_count(self) -> int:
        return sum(a.test_count for a in self.assemblies)

    def describe(self) -> list[tuple[str, str]]:
        """Return the configuration as ordered (label, value) rows for display."""
        host = self.selected_host
        return [
            ("Working directory", str(self.working_directory or "-")),
            ("Test assembly", str(self.test_assembly_path or "-")),
            ("Results", str(self.results_path or "-")),
            ("Fixture", self.fixture_filter or "-"),
            ("Test", self.test_filter or "-"),
            ("Concatenate", str(self.concatenate_results)),
            ("Debug", str(self.debug_mode)),
            ("Timeout (ms)", str(self.timeout_ms)),
            ("Host", host.name if host else "-"),
            ("Host path", str(self.host_path or "-")),
            ("Assemblies", str(len(self.assemblies))),
            ("Tests", str(self.total_test_count)),
        ]
