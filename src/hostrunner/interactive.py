"""Interactive command shell over the session's core operations."""

import shlex
from typing import Callable, Optional

import structlog
from rich.console import Console
from rich.prompt import Prompt
from rich.table import Table

from hostrunner.errors import ConfigurationError, HostRunnerError

log = structlog.get_logger("interactive")

HELP_TEXT = [
    ("show", "Show the current configuration"),
    ("list", "List fixtures and tests of the loaded assemblies"),
    ("hosts", "List discovered host instances"),
    ("host <index>", "Select a host instance (-1 for the default)"),
    ("assembly <path>", "Set the test assembly and reload it"),
    ("dir <path>", "Set the working directory"),
    ("results <path>", "Set the results file"),
    ("fixture <name>", "Run only this fixture"),
    ("test <name>", "Run only this test"),
    ("clear", "Run everything in the loaded assemblies"),
    ("concat on|off", "Append to the results file instead of replacing it"),
    ("debug on|off", "Run the host in debug mode"),
    ("timeout <ms>", "Per-unit timeout in milliseconds"),
    ("refresh", "Reload the test assembly"),
    ("run", "Run the current selection (Ctrl+C stops after the current unit)"),
    ("quit", "Save settings and exit"),
]


class InteractiveShell:
    """Reads commands and applies them to a session."""

    def __init__(
        self,
        session,
        console: Optional[Console] = None,
        prompt: Optional[Callable[[], str]] = None,
    ):
        """Initialize the shell.

        Args:
            session: The Session whose configuration the commands change
            console: Rich console for output; defaults to the session's
            prompt: Returns the next command line; defaults to a rich prompt
        """
        self.session = session
        self.console = console or session.console
        self._prompt = prompt or (lambda: Prompt.ask("[bold blue]hostrunner[/bold blue]", console=self.console))

        self._commands: dict[str, Callable[[list[str]], None]] = {
            "help": self._help,
            "show": self._show,
            "list": self._list,
            "hosts": self._hosts,
            "host": self._host,
            "assembly": self._assembly,
            "dir": self._dir,
            "results": self._results,
            "fixture": self._fixture,
            "test": self._test,
            "clear": self._clear,
            "concat": self._concat,
            "debug": self._debug,
            "timeout": self._timeout,
            "refresh": self._refresh,
            "run": self._run,
        }

    @property
    def config(self):
        return self.session.config

    def loop(self) -> None:
        """Read and execute commands until quit or end of input."""
        self.console.print("Type [bold]help[/bold] for a list of commands.")
        while True:
            try:
                line = self._prompt()
            except (EOFError, KeyboardInterrupt):
                self.console.print()
                break
            if not self.execute(line):
                break

    def execute(self, line: str) -> bool:
        """Execute one command line. Returns False when the shell should exit."""
        try:
            words = shlex.split(line)
        except ValueError as e:
            self.console.print(f"[red]Error:[/red] {e}")
            return True

        if not words:
            return True

        name, args = words[0].lower(), words[1:]
        if name in ("quit", "exit"):
            return False

        handler = self._commands.get(name)
        log.debug("Interactive command", command=name, args=args)
        if handler is None:
            self.console.print(f"[red]Unknown command:[/red] {name}. Type [bold]help[/bold].")
            return True

        try:
            handler(args)
        except HostRunnerError as e:
            self.console.print(f"[red]Error:[/red] {e}")
        return True

    def _help(self, args: list[str]) -> None:
        table = Table(show_header=False, box=None)
        table.add_column("Command", style="bold")
        table.add_column("Description")
        for command, description in HELP_TEXT:
            table.add_row(command, description)
        self.console.print(table)

    def _show(self, args: list[str]) -> None:
        self.session.print_configuration()

    def _list(self, args: list[str]) -> None:
        if not self.config.assemblies:
            self.console.print("[yellow]No test assembly loaded[/yellow]")
            return

        for assembly in self.config.assemblies:
            self.console.print(f"[bold]{assembly.name}[/bold] [dim]({assembly.test_count} tests)[/dim]")
            for fixture in assembly.fixtures:
                self.console.print(f"  [cyan]{fixture.name}[/cyan]")
                for test in fixture.tests:
                    self.console.print(f"    {test.name}")

    def _hosts(self, args: list[str]) -> None:
        table = Table(title="Host Instances")
        table.add_column("Index", style="cyan", justify="right")
        table.add_column("Name")
        table.add_column("Install location", style="dim")
        table.add_column("Selected", justify="center")
        for index, instance in enumerate(self.config.host_instances):
            selected = "*" if index == self.config.selected_host_index else ""
            table.add_row(str(index), instance.name, str(instance.install_location), selected)
        self.console.print(table)

    def _host(self, args: list[str]) -> None:
        index = _parse_int(_one(args, "host <index>"), "host index")
        self.config.selected_host_index = index
        if self.config.normalize_selected_host_index() != index:
            self.console.print(f"[yellow]No host at index {index}; using the default host.[/yellow]")
        self.config.host_path = None
        host = self.config.selected_host
        self.console.print(f"Host: {host.name if host else 'default'}")

    def _assembly(self, args: list[str]) -> None:
        previous = self.config.test_assembly_path
        self.config.set_test_assembly(_one(args, "assembly <path>"))
        try:
            self._refresh([])
        except HostRunnerError:
            # The loaded assemblies still belong to the previous path.
            self.config.test_assembly_path = previous
            raise

    def _dir(self, args: list[str]) -> None:
        self.config.set_working_directory(_one(args, "dir <path>"))

    def _results(self, args: list[str]) -> None:
        self.config.set_results_path(_one(args, "results <path>"))

    def _fixture(self, args: list[str]) -> None:
        self.config.test_filter = None
        self.config.fixture_filter = _one(args, "fixture <name>")

    def _test(self, args: list[str]) -> None:
        self.config.fixture_filter = None
        self.config.test_filter = _one(args, "test <name>")

    def _clear(self, args: list[str]) -> None:
        self.config.clear_filters()

    def _concat(self, args: list[str]) -> None:
        self.config.concatenate_results = _parse_switch(_one(args, "concat on|off"))

    def _debug(self, args: list[str]) -> None:
        self.config.debug_mode = _parse_switch(_one(args, "debug on|off"))

    def _timeout(self, args: list[str]) -> None:
        timeout = _parse_int(_one(args, "timeout <ms>"), "timeout")
        if timeout < 1:
            raise ConfigurationError("Timeout must be at least 1 millisecond")
        self.config.timeout_ms = timeout

    def _refresh(self, args: list[str]) -> None:
        count = self.session.refresh()
        self.console.print(
            f"Loaded {len(self.config.assemblies)} assemblies with {count} tests"
        )

    def _run(self, args: list[str]) -> None:
        if self.config.working_directory is None:
            self.config.set_working_directory(".")
        if self.config.results_path is None:
            self.config.set_results_path(
                self.config.working_directory / self.session.app_config.run.results_file
            )
        if not self.config.assemblies:
            self._refresh([])

        summary = self.session.run_interruptible()
        self.session.print_summary(summary)


def _one(args: list[str], usage: str) -> str:
    if len(args) != 1:
        raise ConfigurationError(f"Usage: {usage}")
    return args[0]


def _parse_int(value: str, what: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"Invalid {what}: {value}") from None


def _parse_switch(value: str) -> bool:
    value = value.lower()
    if value in ("on", "true", "yes", "1"):
        return True
    if value in ("off", "false", "no", "0"):
        return False
    raise ConfigurationError(f"Expected on or off, got: {value}")
