"""Run orchestration."""

import threading
from enum import Enum
from typing import Callable, Optional

import structlog

from hostrunner.core.executor import HostAdapter
from hostrunner.core.models import (
    AssemblyData,
    RunSummary,
    RunUnit,
    TargetKind,
    UnitKind,
    UnitResult,
    UnitStatus,
)
from hostrunner.core.selector import resolve_target
from hostrunner.core.state import RunConfiguration
from hostrunner.errors import RunStateError
from hostrunner.storage.results import ResultsArtifact

log = structlog.get_logger("core.runner")

ResultCallback = Callable[[UnitResult, RunSummary], None]


class RunState(str, Enum):
    """Orchestrator state within one invocation."""

    IDLE = "idle"
    RESOLVING = "resolving"
    EXECUTING = "executing"
    CLEANUP = "cleanup"


class RunOrchestrator:
    """Sequences execution units against a host adapter."""

    def __init__(self, adapter: HostAdapter):
        """Initialize the orchestrator."""
        self.adapter = adapter
        self.state = RunState.IDLE

        self._summary: Optional[RunSummary] = None
        self._cancel: Optional[threading.Event] = None
        self._on_result: Optional[ResultCallback] = None

    def run(
        self,
        config: RunConfiguration,
        cancel: Optional[threading.Event] = None,
        on_result: Optional[ResultCallback] = None,
    ) -> RunSummary:
        """Resolve the configuration and execute the resulting target.

        Args:
            config: The run configuration, with assemblies loaded
            cancel: Checked between units; once set, remaining units are skipped
            on_result: Called after every executed unit

        Returns:
            RunSummary of the executed units

        Raises:
            ConfigurationError: If both a fixture and a test filter are set
            TargetNotFoundError: If the named fixture or test does not exist
            RunStateError: If a run is already in progress
        """
        if self.state != RunState.IDLE:
            raise RunStateError(f"Cannot start a run while {self.state.value}")

        self._cancel = cancel
        self._on_result = on_result

        try:
            self.state = RunState.RESOLVING
            target = resolve_target(config, config.assemblies)
            config.run_count = target.run_count
            self._summary = RunSummary(target=target, run_count=target.run_count)

            log.info(
                "Resolved run target",
                kind=target.kind.value,
                units=len(target.units),
                run_count=target.run_count,
            )

            self.prepare_results(config)
            self.state = RunState.EXECUTING

            if target.kind == TargetKind.ALL:
                self.run_all_assemblies(config, config.assemblies)
            elif target.kind == TargetKind.FIXTURE:
                self.run_fixture(config, target.units[0])
            else:
                self.run_test(config, target.units[0])

            return self._summary
        finally:
            self.cleanup()

    def prepare_results(self, config: RunConfiguration) -> None:
        """Start a fresh results artifact unless results are concatenated."""
        if config.results_path and not config.concatenate_results:
            ResultsArtifact(config.results_path).reset()

    def run_all_assemblies(
        self, config: RunConfiguration, assemblies: list[AssemblyData]
    ) -> None:
        """Execute every assembly in load order, one after the other."""
        for assembly in assemblies:
            if self._cancelled():
                break
            self._execute(config, RunUnit.for_assembly(assembly))

    def run_fixture(self, config: RunConfiguration, unit: RunUnit) -> None:
        """Execute a single fixture as one unit."""
        self._check_unit(unit, UnitKind.FIXTURE)
        if not self._cancelled():
            self._execute(config, unit)

    def run_test(self, config: RunConfiguration, unit: RunUnit) -> None:
        """Execute a single test as one unit."""
        self._check_unit(unit, UnitKind.TEST)
        if not self._cancelled():
            self._execute(config, unit)

    @property
    def completed(self) -> int:
        """Tests covered by the units executed so far in the current run."""
        return self._summary.completed if self._summary else 0

    def cleanup(self) -> None:
        """Release run resources and return to idle. Safe to call repeatedly."""
        self.state = RunState.CLEANUP
        try:
            self.adapter.cleanup()
        finally:
            self._cancel = None
            self._on_result = None
            self.state = RunState.IDLE

    def _execute(self, config: RunConfiguration, unit: RunUnit) -> UnitResult:
        if self._summary is None:
            self._summary = RunSummary(run_count=config.run_count)

        log.debug("Executing unit", unit=unit.label, kind=unit.kind.value)

        try:
            result = self.adapter.execute(unit, config, append_results=bool(config.results_path))
        except Exception as e:
            # An adapter fault fails this unit only; the sequence goes on.
            log.error("Host adapter failed", unit=unit.label, error=str(e))
            result = UnitResult.for_unit(unit, UnitStatus.ERROR, message=str(e))

        summary = self._summary
        summary.results.append(result)
        summary.completed = min(summary.completed + unit.test_count, summary.run_count)

        if not result.success:
            log.warning(
                "Unit did not pass",
                unit=unit.label,
                status=result.status.value,
                exit_code=result.exit_code,
            )

        if self._on_result is not None:
            self._on_result(result, summary)

        return result

    def _cancelled(self) -> bool:
        if self._cancel is not None and self._cancel.is_set():
            if self._summary is not None and not self._summary.cancelled:
                log.info("Run cancelled", completed=self._summary.completed)
                self._summary.cancelled = True
            return True
        return False

    @staticmethod
    def _check_unit(unit: RunUnit, kind: UnitKind) -> None:
        if unit.kind != kind:
            raise ValueError(f"Expected a {kind.value} unit, got {unit.kind.value}")
