"""Click CLI interface for wsus-groomer."""

from __future__ import annotations

import sys

import click
from rich.console import Console
from rich.table import Table

from wsus_groomer import __version__
from wsus_groomer.action_log import ActionLog, setup_action_logger
from wsus_groomer.config import GroomerConfig
from wsus_groomer.errors import ConfigError, GroomerError
from wsus_groomer.locales import KNOWN_LOCALES
from wsus_groomer.orchestrator import Groomer
from wsus_groomer.reporters import console_reporter, json_reporter
from wsus_groomer.server import PowerShellWsusServer, WsusServer

console = Console()

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_FATAL = 2


def _flag(value: bool) -> bool | None:
    """Map an absent is_flag option to None so it does not override the config."""
    return True if value else None


def _split(value: str | None) -> tuple[str, ...] | None:
    if value is None:
        return None
    return tuple(v.strip() for v in value.split(",") if v.strip())


def _load_config(config_path: str | None, **overrides) -> GroomerConfig:
    try:
        base = GroomerConfig.from_yaml(config_path) if config_path else GroomerConfig.from_defaults()
        return base.with_overrides(**overrides)
    except ConfigError as exc:
        raise click.UsageError(str(exc)) from exc


def _build_server(config: GroomerConfig) -> WsusServer:
    return PowerShellWsusServer(
        config.server,
        port=config.port,
        use_tls=config.use_tls,
        timeout=config.command_timeout,
    )


def _write_reports(groomer: Groomer, config: GroomerConfig) -> None:
    report = groomer.report
    if report is None:
        return
    output_files: list[str] = []
    for fmt in config.output_formats:
        if fmt == "console":
            console_reporter.generate(report, config.report_directory, verbose=config.verbose)
        elif fmt == "json":
            output_files.append(json_reporter.generate(report, config.report_directory))
        else:
            console.print(f"[yellow]Unknown report format ignored: {fmt}[/yellow]")

    if output_files:
        console.print("[bold]Reports written:[/bold]")
        for path in output_files:
            console.print(f"  {path}")


def connection_options(func):
    """Options shared by every command that talks to a server."""
    decorators = [
        click.option("--config", "config_path", default=None, type=click.Path(exists=True, dir_okay=False), help="Path to config YAML"),
        click.option("--server", default=None, help="WSUS server name or address (default: localhost)"),
        click.option("--port", default=None, type=int, help="WSUS port (default: 8530)"),
        click.option("--use-tls", is_flag=True, help="Connect over TLS (usually port 8531)"),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


@click.group()
@click.version_option(version=__version__, prog_name="wsus-groomer")
def main():
    """wsus-groomer - approve and decline WSUS updates by a fixed rule set."""


@main.command()
@connection_options
@click.option("--no-sync", is_flag=True, help="Do not start a synchronization (still waits for a running one)")
@click.option("--reset", is_flag=True, help="Reconsider already-declined updates")
@click.option("--dry-run", is_flag=True, help="Log intended actions without changing anything")
@click.option("--decline-only", is_flag=True, help="Never approve, only decline and delete")
@click.option("--include-upgrades", is_flag=True, help="Also approve the Upgrades classification")
@click.option("--decline-ia64/--keep-ia64", default=None, help="Decline Itanium updates")
@click.option("--decline-arm64/--keep-arm64", default=None, help="Decline ARM64 updates")
@click.option("--decline-x86/--keep-x86", default=None, help="Decline x86 updates")
@click.option("--decline-x64/--keep-x64", default=None, help="Decline x64 updates")
@click.option("--decline-preview/--keep-preview", default=None, help="Decline preview updates")
@click.option("--decline-beta/--keep-beta", default=None, help="Decline beta updates")
@click.option("--languages", default=None, help="Comma-separated allowed locales (default: en-us,en-gb; empty disables)")
@click.option("--target-group", default=None, help="Computer group approvals target (default: All Computers)")
@click.option("--log-file", default=None, help="Action log file, appended to (default: wsus-groomer.log)")
@click.option("--sync-timeout", default=None, type=float, help="Max seconds to wait for synchronization")
@click.option("--stop-on-error", is_flag=True, help="Abort on the first failed server call")
@click.option("--report-dir", default=None, help="Output directory for reports (default: ./reports)")
@click.option("--format", "formats", default=None, help="Report formats: console,json (default: console)")
@click.option("--verbose", is_flag=True, help="List every action in the console summary")
def run(
    config_path: str | None,
    server: str | None,
    port: int | None,
    use_tls: bool,
    no_sync: bool,
    reset: bool,
    dry_run: bool,
    decline_only: bool,
    include_upgrades: bool,
    decline_ia64: bool | None,
    decline_arm64: bool | None,
    decline_x86: bool | None,
    decline_x64: bool | None,
    decline_preview: bool | None,
    decline_beta: bool | None,
    languages: str | None,
    target_group: str | None,
    log_file: str | None,
    sync_timeout: float | None,
    stop_on_error: bool,
    report_dir: str | None,
    formats: str | None,
    verbose: bool,
):
    """Synchronize, then prune, decline and approve updates."""
    config = _load_config(
        config_path,
        server=server,
        port=port,
        use_tls=_flag(use_tls),
        no_sync=_flag(no_sync),
        reset=_flag(reset),
        dry_run=_flag(dry_run),
        decline_only=_flag(decline_only),
        include_upgrades=_flag(include_upgrades),
        decline_ia64=decline_ia64,
        decline_arm64=decline_arm64,
        decline_x86=decline_x86,
        decline_x64=decline_x64,
        decline_preview=decline_preview,
        decline_beta=decline_beta,
        allowed_locales=_split(languages),
        target_group=target_group,
        log_file=log_file,
        sync_max_wait=sync_timeout,
        stop_on_error=_flag(stop_on_error),
        report_directory=report_dir,
        output_formats=_split(formats),
        verbose=_flag(verbose),
    )

    console.print(f"[bold]wsus-groomer v{__version__}[/bold]")
    console.print(f"Server: {config.endpoint}")
    if config.dry_run:
        console.print("[yellow]Dry run: no changes will be made.[/yellow]")
    if config.allowed_locales:
        console.print(f"Allowed languages: {', '.join(config.allowed_locales)}")
    console.print()

    action_log = ActionLog(setup_action_logger(config.log_file, verbose=config.verbose))
    groomer = Groomer(config, _build_server(config), action_log)

    exit_code = EXIT_OK
    try:
        report = groomer.run()
        if report.has_failures():
            exit_code = EXIT_FAILURES
    except GroomerError as exc:
        console.print(f"[bold red]ERROR: {exc}[/bold red]")
        exit_code = EXIT_FATAL
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        exit_code = EXIT_FATAL
    finally:
        _write_reports(groomer, config)
        action_log.close()

    console.print(f"Action log: {config.log_file}")
    sys.exit(exit_code)


@main.command()
@connection_options
def status(config_path: str | None, server: str | None, port: int | None, use_tls: bool):
    """Show connection, synchronization and subscription status."""
    config = _load_config(config_path, server=server, port=port, use_tls=_flag(use_tls))
    wsus = _build_server(config)

    try:
        wsus.connect()
        sync_status = wsus.get_sync_status()
        classifications = wsus.get_subscribed_classifications()
        categories = wsus.get_subscribed_categories()
        groups = wsus.get_computer_groups()
    except GroomerError as exc:
        console.print(f"[bold red]ERROR: {exc}[/bold red]")
        sys.exit(EXIT_FATAL)

    table = Table(title=f"WSUS {config.endpoint}")
    table.add_column("Item", style="cyan")
    table.add_column("Value")
    table.add_row("Synchronization", sync_status.value)
    table.add_row("Subscribed classifications", str(len(classifications)))
    table.add_row("Subscribed products", str(len(categories)))
    table.add_row("Computer groups", ", ".join(sorted(g.name for g in groups)))
    console.print(table)


@main.command()
@click.option("--config", "config_path", default=None, type=click.Path(exists=True, dir_okay=False), help="Path to config YAML")
def locales(config_path: str | None):
    """List the locale tags recognised in update titles."""
    config = _load_config(config_path)
    allowed = set(config.allowed_locales)

    table = Table(title=f"Known locales ({len(config.known_locales)} total)")
    table.add_column("Tag", style="cyan")
    table.add_column("Allowed", width=8)
    for tag in config.known_locales:
        table.add_row(tag, "yes" if tag in allowed else "")
    console.print(table)
    if tuple(config.known_locales) != KNOWN_LOCALES:
        console.print("[dim]Locale table overridden by configuration.[/dim]")
