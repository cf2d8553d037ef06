"""Command-line interface for hostrunner."""

import sys
from pathlib import Path
from typing import Optional

import click
import structlog
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel

from hostrunner import __version__
from hostrunner.config import HostRunnerConfig
from hostrunner.core.state import RunConfiguration
from hostrunner.errors import HostRunnerError
from hostrunner.session import Session
from hostrunner.storage.settings import SettingsStore
from hostrunner.telemetry import resolve_level, setup_logging

console = Console()
log = structlog.get_logger("cli")

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}
LOG_LEVEL_CHOICES = click.Choice(
    ["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"], case_sensitive=False
)


def print_banner() -> None:
    """Print the hostrunner banner."""
    console.print(
        Panel.fit(
            "[bold blue]hostrunner[/bold blue] - run tests inside a host application",
            subtitle=f"v{__version__}",
        )
    )


def build_configuration(
    working_directory: Optional[str],
    assembly: Optional[str],
    results: Optional[str],
    fixture: Optional[str],
    test_name: Optional[str],
    concatenate: bool,
    gui: bool,
    debug: bool,
    timeout: Optional[int],
    host_index: Optional[int],
    default_timeout_ms: int,
) -> tuple[RunConfiguration, frozenset[str]]:
    """Build the run configuration from command line values.

    Returns:
        The configuration and the names of the fields given explicitly

    Raises:
        InvalidPathError: If the working directory or assembly does not exist
    """
    config = RunConfiguration(
        fixture_filter=fixture or None,
        test_filter=test_name or None,
        concatenate_results=concatenate,
        gui_mode=gui,
        debug_mode=debug,
        timeout_ms=timeout if timeout is not None else default_timeout_ms,
    )
    explicit = set()

    if working_directory:
        config.set_working_directory(working_directory)
        explicit.add("working_directory")
    if assembly:
        config.set_test_assembly(assembly)
        explicit.add("test_assembly_path")
    if results:
        config.set_results_path(results)
        explicit.add("results_path")
    if debug:
        explicit.add("debug_mode")
    if timeout is not None:
        explicit.add("timeout_ms")
    if host_index is not None:
        config.selected_host_index = host_index
        explicit.add("selected_host_index")

    config.check_filters()
    return config, frozenset(explicit)


@click.command(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, "--version", prog_name="hostrunner")
@click.option("--dir", "working_directory", metavar="PATH", help="The path to the working directory.")
@click.option("-a", "--assembly", metavar="PATH", help="The path to the test assembly.")
@click.option("-r", "--results", metavar="PATH", help="The path to the results file.")
@click.option(
    "-f", "--fixture", metavar="NAME", help="The full name (with namespace) of the test fixture."
)
@click.option("-t", "--testName", "test_name", metavar="NAME", help="The name of a test to run.")
@click.option(
    "-c", "--concatenate", is_flag=True, help="Concatenate results with existing results file."
)
@click.option("--gui", is_flag=True, help="Start the interactive shell.")
@click.option("-d", "--debug", is_flag=True, help="Run in debug mode.")
@click.option(
    "--timeout",
    type=click.IntRange(min=1),
    metavar="MS",
    help="Per-unit timeout in milliseconds.",
)
@click.option("--host", "host_index", type=int, metavar="INDEX", help="Index of the host instance to use.")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    help="Path to configuration file (default: nearest hostrunner.json)",
)
@click.option(
    "--settings",
    "settings_path",
    type=click.Path(dir_okay=False),
    envvar="HOSTRUNNER_SETTINGS",
    help="Path to the interactive settings file.",
)
@click.option(
    "-l",
    "--log-level",
    type=LOG_LEVEL_CHOICES,
    default=None,
    envvar="HOSTRUNNER_LOG_LEVEL",
    help="Set the logging level.",
)
@click.option("--json-logs", is_flag=True, help="Write logs as JSON.")
def main(
    working_directory: Optional[str],
    assembly: Optional[str],
    results: Optional[str],
    fixture: Optional[str],
    test_name: Optional[str],
    concatenate: bool,
    gui: bool,
    debug: bool,
    timeout: Optional[int],
    host_index: Optional[int],
    config_path: Optional[str],
    settings_path: Optional[str],
    log_level: Optional[str],
    json_logs: bool,
) -> None:
    """Run a test or a fixture of tests from an assembly inside a host application."""
    setup_logging(resolve_level(log_level, debug), json_logs)

    try:
        if config_path:
            app_config = HostRunnerConfig.from_file(config_path)
        else:
            app_config = HostRunnerConfig.find_and_load(working_directory or Path.cwd())
    except (FileNotFoundError, ValueError, ValidationError) as e:
        console.print(f"[red]Error loading configuration:[/red] {e}")
        sys.exit(1)

    try:
        config, explicit = build_configuration(
            working_directory,
            assembly,
            results,
            fixture,
            test_name,
            concatenate,
            gui,
            debug,
            timeout,
            host_index,
            app_config.run.timeout_ms,
        )

        session = Session(
            config,
            app_config,
            settings_store=SettingsStore(settings_path),
            console=console,
            explicit_fields=explicit,
        )
        session.start()

        if config.gui_mode:
            print_banner()
            session.run_interactive()
        else:
            session.run_headless()

    except HostRunnerError as e:
        console.print(f"[red]Error:[/red] {e}")
        console.print("[dim]Try 'hostrunner --help' for more information.[/dim]")
        sys.exit(1)
    except Exception as e:
        log.debug("Unexpected error", exc_info=True)
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
