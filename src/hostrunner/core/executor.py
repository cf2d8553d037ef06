"""Host process adapter.

The adapter launches the host application for one execution unit, waits for
it within the configured timeout and appends the unit's outcome to the
results artifact.
"""

import os
import shlex
import shutil
import subprocess
import tempfile
import time
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Optional

import structlog

from hostrunner.config import HostConfig
from hostrunner.core.discovery import resolve_host_path
from hostrunner.core.models import RunUnit, UnitResult, UnitStatus
from hostrunner.core.state import RunConfiguration
from hostrunner.storage.results import ResultsArtifact

log = structlog.get_logger("core.executor")

# Captured output kept in a result message.
MAX_MESSAGE_LENGTH = 2000


class HostAdapter(ABC):
    """Runs one execution unit in the host application."""

    @abstractmethod
    def execute(
        self, unit: RunUnit, config: RunConfiguration, append_results: bool
    ) -> UnitResult:
        """Run the unit and report its outcome.

        Args:
            unit: The assembly, fixture or test to run
            config: The run configuration
            append_results: Whether to append the outcome to the results artifact

        Returns:
            UnitResult describing success, failure or timeout
        """
        pass

    def cleanup(self) -> None:
        """Release anything held for the current run."""
        pass


class ProcessHostAdapter(HostAdapter):
    """Launches the host as a shell command built from a template."""

    def __init__(self, host_config: HostConfig):
        """Initialize the adapter.

        Args:
            host_config: Executable name, command template and environment
        """
        self.host_config = host_config
        self._scratch_dir: Optional[Path] = None

    @property
    def scratch_dir(self) -> Path:
        """Per-run directory handed to the host, created on first use."""
        if self._scratch_dir is None:
            self._scratch_dir = Path(tempfile.mkdtemp(prefix="hostrunner-"))
        return self._scratch_dir

    def build_command(self, unit: RunUnit, config: RunConfiguration, host_path: Path) -> str:
        """Format the command template with shell-quoted unit identity."""
        values = self._placeholders(unit, config, host_path)
        quoted = {key: shlex.quote(value) for key, value in values.items()}
        return self.host_config.command.format(**quoted)

    def build_environment(
        self, unit: RunUnit, config: RunConfiguration, host_path: Path
    ) -> dict[str, str]:
        """Environment for the host process: HOSTRUNNER_* identity plus extras."""
        values = self._placeholders(unit, config, host_path)
        env = {**os.environ, **self.host_config.environment}
        for key, value in values.items():
            env[f"HOSTRUNNER_{key.upper()}"] = value
        return env

    def _placeholders(
        self, unit: RunUnit, config: RunConfiguration, host_path: Path
    ) -> dict[str, str]:
        return {
            "host": str(host_path),
            "assembly": str(unit.assembly_path),
            "fixture": unit.fixture_name or "",
            "test": unit.test_name or "",
            "unit": unit.kind.value,
            "working_dir": str(config.working_directory or Path.cwd()),
            "scratch": str(self.scratch_dir),
            "debug": "1" if config.debug_mode else "0",
        }

    def execute(
        self, unit: RunUnit, config: RunConfiguration, append_results: bool
    ) -> UnitResult:
        """Run the unit and append its outcome to the results artifact."""
        result = self._run(unit, config)

        if append_results and config.results_path:
            ResultsArtifact(config.results_path).append(result)

        return result

    def _run(self, unit: RunUnit, config: RunConfiguration) -> UnitResult:
        host_path = resolve_host_path(config, self.host_config.executable)
        command = self.build_command(unit, config, host_path)
        env = self.build_environment(unit, config, host_path)
        timeout_seconds = config.timeout_ms / 1000

        log.debug("Launching host", unit=unit.label, command=command)

        start_time = time.time()

        try:
            completed = subprocess.run(
                command,
                shell=True,
                capture_output=True,
                text=True,
                cwd=config.working_directory,
                timeout=timeout_seconds,
                env=env,
            )
            duration_ms = int((time.time() - start_time) * 1000)

            status = UnitStatus.PASSED if completed.returncode == 0 else UnitStatus.FAILED
            message = completed.stdout if status == UnitStatus.PASSED else (
                completed.stderr or completed.stdout
            )
            return UnitResult.for_unit(
                unit,
                status,
                exit_code=completed.returncode,
                duration_ms=duration_ms,
                message=_truncate(message.strip()),
                host=str(host_path),
                finished_at=datetime.now(),
            )

        except subprocess.TimeoutExpired:
            log.warning("Host timed out", unit=unit.label, timeout_ms=config.timeout_ms)
            return UnitResult.for_unit(
                unit,
                UnitStatus.TIMEOUT,
                exit_code=-1,
                duration_ms=config.timeout_ms,
                message=f"Unit timed out after {config.timeout_ms} ms",
                host=str(host_path),
                finished_at=datetime.now(),
            )

        except OSError as e:
            log.error("Could not launch host", unit=unit.label, error=str(e))
            return UnitResult.for_unit(
                unit,
                UnitStatus.ERROR,
                exit_code=-1,
                duration_ms=int((time.time() - start_time) * 1000),
                message=f"Error launching host: {e}",
                host=str(host_path),
                finished_at=datetime.now(),
            )

    def cleanup(self) -> None:
        """Remove the scratch directory of the finished run."""
        if self._scratch_dir is not None:
            shutil.rmtree(self._scratch_dir, ignore_errors=True)
            log.debug("Removed scratch directory", path=str(self._scratch_dir))
            self._scratch_dir = None


def _truncate(text: str) -> str:
    if len(text) > MAX_MESSAGE_LENGTH:
        return text[:MAX_MESSAGE_LENGTH] + "\n... (truncated)"
    return text
