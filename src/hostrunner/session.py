"""Session lifecycle: startup, headless and interactive runs, shutdown."""

import signal
import threading
from pathlib import Path
from typing import Optional

import structlog
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from hostrunner.config import HostRunnerConfig
from hostrunner.core.discovery import discover_hosts, resolve_host_path
from hostrunner.core.executor import HostAdapter, ProcessHostAdapter
from hostrunner.core.loader import load_assemblies
from hostrunner.core.models import RunSummary, UnitResult, UnitStatus
from hostrunner.core.runner import RunOrchestrator
from hostrunner.core.state import RunConfiguration
from hostrunner.errors import AssemblyLoadError, ConfigurationError, InvalidPathError
from hostrunner.interactive import InteractiveShell
from hostrunner.storage.settings import SettingsStore, UserSettings

log = structlog.get_logger("session")


def apply_settings(
    config: RunConfiguration, settings: UserSettings, keep: frozenset[str] = frozenset()
) -> None:
    """Fill the configuration from persisted settings.

    Fields named in ``keep`` were given on the command line and are left
    alone. Stored paths that no longer exist are ignored.
    """
    if "working_directory" not in keep and settings.working_directory:
        try:
            config.set_working_directory(settings.working_directory)
        except InvalidPathError as e:
            log.warning("Ignoring stored working directory", error=str(e))

    if "test_assembly_path" not in keep and settings.assembly_path:
        try:
            config.set_test_assembly(settings.assembly_path)
        except InvalidPathError as e:
            log.warning("Ignoring stored test assembly", error=str(e))

    if "results_path" not in keep and settings.results_path:
        config.set_results_path(settings.results_path)

    if "debug_mode" not in keep:
        config.debug_mode = settings.is_debug

    if "timeout_ms" not in keep:
        config.timeout_ms = settings.timeout

    if "selected_host_index" not in keep:
        config.selected_host_index = settings.selected_product
    config.normalize_selected_host_index()


def capture_settings(config: RunConfiguration) -> UserSettings:
    """The durable subset of the configuration."""
    return UserSettings(
        working_directory=str(config.working_directory) if config.working_directory else None,
        assembly_path=str(config.test_assembly_path) if config.test_assembly_path else None,
        results_path=str(config.results_path) if config.results_path else None,
        is_debug=config.debug_mode,
        timeout=config.timeout_ms,
        selected_product=config.selected_host_index,
    )


class Session:
    """Wraps the core with startup and shutdown for one process invocation."""

    def __init__(
        self,
        config: RunConfiguration,
        app_config: Optional[HostRunnerConfig] = None,
        adapter: Optional[HostAdapter] = None,
        settings_store: Optional[SettingsStore] = None,
        console: Optional[Console] = None,
        explicit_fields: frozenset[str] = frozenset(),
    ):
        """Initialize the session.

        Args:
            config: Configuration built from the command line
            app_config: Host and run configuration from hostrunner.json
            adapter: Host adapter; defaults to launching host processes
            settings_store: Where interactive settings are kept
            console: Rich console for user output
            explicit_fields: Configuration fields given on the command line,
                which persisted settings do not override
        """
        self.config = config
        self.app_config = app_config or HostRunnerConfig()
        self.adapter = adapter or ProcessHostAdapter(self.app_config.host)
        self.orchestrator = RunOrchestrator(self.adapter)
        self.settings_store = settings_store or SettingsStore()
        self.console = console or Console()
        self.explicit_fields = explicit_fields
        self.cancel_event = threading.Event()

    def start(self) -> None:
        """Discover host instances. Raises DiscoveryError when there are none."""
        self.config.host_instances = discover_hosts(self.app_config.host)
        self.config.normalize_selected_host_index()
        log.debug("Session started", hosts=len(self.config.host_instances))

    def refresh(self) -> int:
        """Reload the assemblies from the configured test assembly.

        Returns:
            Number of tests loaded
        """
        if self.config.test_assembly_path is None:
            raise ConfigurationError("You must specify at least a test assembly.")

        self.config.assemblies = load_assemblies(
            self.config.test_assembly_path, self.config.working_directory
        )
        return self.config.total_test_count

    def run(self, show_progress: bool = True) -> RunSummary:
        """Resolve and execute the current selection once."""
        self.cancel_event.clear()

        if not show_progress:
            return self.orchestrator.run(self.config, cancel=self.cancel_event)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            console=self.console,
        ) as progress:
            task = progress.add_task("Running tests...", total=None)

            def on_result(result: UnitResult, summary: RunSummary) -> None:
                progress.update(task, total=summary.run_count, completed=summary.completed)
                progress.console.print(_result_line(result))

            summary = self.orchestrator.run(
                self.config, cancel=self.cancel_event, on_result=on_result
            )
            progress.update(task, total=summary.run_count, completed=summary.completed)

        return summary

    def run_headless(self) -> RunSummary:
        """Run the command line selection once."""
        config = self.config

        if config.working_directory is None:
            config.set_working_directory(Path.cwd())

        if config.test_assembly_path is None:
            raise ConfigurationError("You must specify at least a test assembly.")

        if config.results_path is None:
            config.set_results_path(config.working_directory / self.app_config.run.results_file)

        if config.host_path is None:
            config.host_path = resolve_host_path(config, self.app_config.host.executable)

        self.refresh()
        self.print_configuration()

        summary = self.run()
        self.print_summary(summary)
        return summary

    def run_interactive(self, shell=None) -> None:
        """Run the interactive shell, with settings loaded before and saved after."""
        self.load_settings()

        if self.config.test_assembly_path and self.config.test_assembly_path.is_file():
            try:
                self.refresh()
            except AssemblyLoadError as e:
                self.console.print(f"[yellow]Warning:[/yellow] {e}")

        shell = shell or InteractiveShell(self)
        try:
            shell.loop()
        finally:
            self.save_settings()

    def run_interruptible(self) -> RunSummary:
        """Run with Ctrl+C requesting a stop between units."""
        if threading.current_thread() is not threading.main_thread():
            return self.run()

        previous = signal.signal(signal.SIGINT, lambda signum, frame: self.stop())
        try:
            return self.run()
        finally:
            signal.signal(signal.SIGINT, previous)

    def stop(self) -> None:
        """Ask the current run to stop before its next unit."""
        self.cancel_event.set()

    def load_settings(self, keep: Optional[frozenset[str]] = None) -> None:
        """Load persisted settings into the configuration."""
        if keep is None:
            keep = self.explicit_fields
        apply_settings(self.config, self.settings_store.load(), keep)

    def save_settings(self) -> None:
        self.settings_store.save(capture_settings(self.config))

    def print_configuration(self) -> None:
        """Print the run configuration as a table."""
        table = Table(title="Run Configuration", show_header=False)
        table.add_column("Setting", style="bold")
        table.add_column("Value")
        for label, value in self.config.describe():
            table.add_row(label, value)
        self.console.print(table)

    def print_summary(self, summary: RunSummary) -> None:
        """Display a summary of the run."""
        self.console.print("\n" + "=" * 50)
        self.console.print("[bold]Run Summary[/bold]")
        self.console.print("=" * 50)

        table = Table(show_header=False, box=None)
        table.add_column("Metric", style="bold")
        table.add_column("Value", justify="right")

        table.add_row("Tests selected", str(summary.run_count))
        table.add_row("Tests completed", str(summary.completed))
        table.add_row("Units passed", f"[green]{summary.passed}[/green]")
        table.add_row("Units failed", f"[red]{summary.failed}[/red]")
        self.console.print(table)

        if summary.cancelled:
            self.console.print("\n[yellow]Run stopped before all units executed.[/yellow]")
        elif summary.failed > 0:
            self.console.print("\n[red]Some units failed![/red]")
        else:
            self.console.print("\n[green]All units passed![/green]")

        if self.config.results_path:
            self.console.print(f"[dim]Results:[/dim] {self.config.results_path}")


def _result_line(result: UnitResult) -> str:
    name = result.test or result.fixture or Path(result.assembly).name
    if result.status == UnitStatus.PASSED:
        return f"  [green]✓[/green] {name} [dim]({result.duration_ms}ms)[/dim]"
    if result.status == UnitStatus.TIMEOUT:
        return f"  [yellow]⏱[/yellow] {name} [dim](timed out)[/dim]"
    return f"  [red]✗[/red] {name} [dim]({result.status.value})[/dim]"
