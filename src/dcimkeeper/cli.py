"""Command line interface for dcimkeeper."""

from __future__ import annotations

import difflib
import os
from pathlib import Path
from typing import Any

import click
import yaml
from click.core import ParameterSource
from rich.console import Console
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.syntax import Syntax
from rich.table import Table

from dcimkeeper.cleanup import FAILURE_TAGS, OutcomeRecord
from dcimkeeper.config import (
    ConfigError,
    ConfigManager,
    KeeperConfig,
    assign_path,
    resolve_with_precedence,
)
from dcimkeeper.errors import (
    DcimKeeperError,
    LedgerError,
    RunLockedError,
    SourceUnavailableError,
)
from dcimkeeper.ledger import HashComputer, HashLedger
from dcimkeeper.logging_setup import configure_logging
from dcimkeeper.reporting import JsonReporter
from dcimkeeper.run import RunSettings, RunSummary, build_coordinator

console = Console()

SOURCE_UNAVAILABLE_EXIT_CODE = 2


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    details: Any | None = None,
    original: Exception | None = None,
    exit_code: int = 1,
) -> None:
    """Emit a standardized error and terminate the command appropriately.

    Args:
        message: Human-readable error message.
        code: Machine-readable error identifier.
        json_output: Indicates whether JSON mode is active.
        details: Optional structured details to include in the payload.
        original: Original exception for chaining when not using JSON.
        exit_code: Process exit status to report.

    Raises:
        SystemExit: When emitting JSON output to terminate the command.
        click.ClickException: For non-JSON flows to surface the error.
    """

    if json_output:
        payload: dict[str, Any] = {"error": {"code": code, "message": message}}
        if details is not None:
            payload["error"]["details"] = details
        console.print_json(data=payload, ensure_ascii=True)
        raise SystemExit(exit_code)

    if isinstance(original, click.ClickException):
        raise original

    error = click.ClickException(message)
    error.exit_code = exit_code
    raise error from original


def _emit_message(message: Any, *, mode: str, quiet: bool, summary_only: bool) -> None:
    """Conditionally print CLI output according to quiet/summary settings.

    Args:
        message: Renderable or string to emit.
        mode: Output mode identifier (`detail`, `summary`, `warning`, or `error`).
        quiet: Whether quiet mode is active.
        summary_only: Whether only summary lines should be emitted.
    """

    if quiet and mode != "error":
        return

    if summary_only and mode not in {"summary", "warning", "error"}:
        return

    console.print(message)


def _markup_safe(value: object) -> str:
    """Render a path or message as literal console text.

    Undecodable filename bytes are shown as ``\\xNN`` escapes and square
    brackets are escaped so they are not read as rich markup.
    """

    text = os.fsencode(str(value)).decode("utf-8", "backslashreplace")
    return escape(text)


def _format_summary_line(command: str, root: Path | str, metrics: dict[str, Any]) -> str:
    """Return a consistent summary line for CLI commands."""

    parts = ", ".join(f"{key}={value}" for key, value in metrics.items())
    return f"[green]{command} summary for {_markup_safe(root)}: {parts}.[/green]"


def _resolve_output_modes(
    ctx: click.Context,
    config: KeeperConfig,
    *,
    json_output: bool,
    quiet: bool,
    summary_mode: bool,
) -> tuple[bool, bool]:
    """Combine explicit flags with configured CLI defaults.

    Returns:
        tuple[bool, bool]: Effective ``(quiet, summary_only)`` flags.

    Raises:
        click.ClickException: If the requested modes are incompatible.
    """

    explicit_quiet = ctx.get_parameter_source("quiet") == ParameterSource.COMMANDLINE
    explicit_summary = ctx.get_parameter_source("summary_mode") == ParameterSource.COMMANDLINE

    quiet_enabled = quiet if explicit_quiet else config.cli.quiet_default
    summary_only = summary_mode if explicit_summary else config.cli.summary_default

    if json_output:
        if explicit_quiet and quiet_enabled:
            raise click.ClickException("--json cannot be combined with --quiet.")
        if explicit_summary and summary_only:
            raise click.ClickException("--json cannot be combined with --summary.")
        return False, False

    if quiet_enabled and summary_only:
        raise click.ClickException(
            "Quiet and summary modes cannot both be enabled. Adjust CLI defaults or flags."
        )
    return quiet_enabled, summary_only


def _outcome_table(records: list[OutcomeRecord], *, title: str) -> Table:
    table = Table(title=title, show_lines=False)
    table.add_column("Outcome", style="bold")
    table.add_column("Path", overflow="fold")
    table.add_column("Date")
    table.add_column("Error", overflow="fold")
    for record in records:
        style = "red" if record.tag in FAILURE_TAGS else None
        table.add_row(
            record.tag,
            _markup_safe(record.path),
            record.resolved_date.isoformat() if record.resolved_date else "-",
            _markup_safe(record.error or ""),
            style=style,
        )
    return table


def _run_payload(summary: RunSummary, report_path: Path | None) -> dict[str, Any]:
    payload = summary.model_dump(mode="json")
    payload["counts"] = summary.counts()
    payload["report_path"] = report_path.as_posix() if report_path else None
    return payload


def _ledger_path(config: KeeperConfig) -> Path:
    if not config.backup.root:
        raise ConfigError("backup.root is not configured.")
    return Path(config.backup.root).expanduser() / config.backup.ledger_filename


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="dcimkeeper")
def cli() -> None:
    """Back up a camera's DCIM folder, deduplicate it, and retire old media."""


@cli.command()
@click.option(
    "--source",
    type=click.Path(file_okay=False, path_type=str),
    help="Mount point of the device (overrides source.mount_point).",
)
@click.option(
    "--backup-root",
    type=click.Path(file_okay=False, path_type=str),
    help="Backup root directory (overrides backup.root).",
)
@click.option("--dry-run", is_flag=True, help="Simulate deletions and ledger writes.")
@click.option("--months", type=click.IntRange(min=0), help="Retention window in months.")
@click.option("--workers", type=click.IntRange(min=1), help="Worker pool width.")
@click.option("--json", "json_output", is_flag=True, help="Emit the run summary as JSON.")
@click.option("--summary", "summary_mode", is_flag=True, help="Only emit summary lines.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.option("-v", "--verbose", is_flag=True, help="Log debug details to the console.")
@click.pass_context
def run(
    ctx: click.Context,
    source: str | None,
    backup_root: str | None,
    dry_run: bool,
    months: int | None,
    workers: int | None,
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
    verbose: bool,
) -> None:
    """Back up new media, record its hashes, and delete device files past retention.

    Args:
        ctx: Click context used for parameter source inspection.
        source: Device mount point override.
        backup_root: Backup root override.
        dry_run: If True, report what would happen without mutating anything.
        months: Retention window override.
        workers: Worker pool width override.
        json_output: If True, emit JSON describing the run.
        summary_mode: When True, limit output to summary lines and warnings.
        quiet: When True, suppress non-error CLI output entirely.
        verbose: When True, log debug output to the console.
    """

    overrides: dict[str, Any] = {}
    if source is not None:
        overrides["source.mount_point"] = source
    if backup_root is not None:
        overrides["backup.root"] = backup_root
    if months is not None:
        overrides["retention.months"] = months
    if workers is not None:
        overrides["concurrency.workers"] = workers
    if dry_run:
        overrides["retention.dry_run"] = True

    try:
        config = ConfigManager().load(cli_overrides=overrides)
        quiet_enabled, summary_only = _resolve_output_modes(
            ctx, config, json_output=json_output, quiet=quiet, summary_mode=summary_mode
        )
        settings = RunSettings.from_config(config)
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
        return

    configure_logging(
        config.logging,
        log_file=settings.backup_root / "logs" / "dcimkeeper.log",
        console=not (json_output or quiet_enabled),
        verbose=verbose,
    )
    reporter = JsonReporter(settings.backup_root)
    progress = Progress(
        SpinnerColumn(),
        TextColumn("{task.description}"),
        TextColumn("[dim]{task.completed} outcome(s)[/dim]"),
        console=console,
        transient=True,
        disable=json_output or quiet_enabled or summary_only,
    )
    progress_task = progress.add_task("Retiring media", total=None)

    def _on_outcome(record: OutcomeRecord) -> None:
        progress.update(
            progress_task,
            advance=1,
            description=f"{record.tag} {_markup_safe(record.path.name)}",
        )

    coordinator = build_coordinator(
        settings,
        sync_backend=config.backup.sync_backend,
        reporter=reporter,
        listener=_on_outcome,
        exiftool_timeout=config.concurrency.exiftool_timeout_seconds,
    )

    try:
        with progress:
            summary = coordinator.run()
    except SourceUnavailableError as exc:
        _handle_cli_error(
            str(exc),
            code="source_unavailable",
            json_output=json_output,
            details={"source_root": settings.source_root.as_posix()},
            original=exc,
            exit_code=SOURCE_UNAVAILABLE_EXIT_CODE,
        )
        return
    except RunLockedError as exc:
        _handle_cli_error(str(exc), code="run_locked", json_output=json_output, original=exc)
        return
    except DcimKeeperError as exc:
        _handle_cli_error(
            str(exc),
            code="run_failed",
            json_output=json_output,
            details={"exception": type(exc).__name__},
            original=exc,
        )
        return

    if json_output:
        console.print_json(data=_run_payload(summary, reporter.last_path), ensure_ascii=True)
        return

    if summary.dry_run:
        _emit_message(
            "[yellow]Dry run: no files were deleted and the ledger was not modified.[/yellow]",
            mode="warning",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )

    if summary.outcomes:
        _emit_message(
            _outcome_table(summary.outcomes, title=f"Outcomes (cutoff {summary.cutoff})"),
            mode="detail",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )
    else:
        _emit_message(
            f"[yellow]No files dated before {summary.cutoff} were found.[/yellow]",
            mode="detail",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )

    if summary.errors:
        _emit_message(
            "[red]Errors encountered:[/red]",
            mode="error",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )
        for entry in summary.errors:
            _emit_message(
                f"  - {_markup_safe(entry)}",
                mode="error",
                quiet=quiet_enabled,
                summary_only=summary_only,
            )

    if reporter.last_path is not None:
        _emit_message(
            f"[cyan]Report written to {_markup_safe(reporter.last_path)}[/cyan]",
            mode="detail",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )

    _emit_message(
        _format_summary_line("Run", summary.source_root, summary.counts()),
        mode="summary",
        quiet=quiet_enabled,
        summary_only=summary_only,
    )


@cli.group()
def config() -> None:
    """Manage dcimkeeper configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
def config_view(no_env: bool) -> None:
    """Display the effective configuration after applying precedence rules.

    Raises:
        click.ClickException: If configuration cannot be loaded.
    """
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        loaded = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    yaml_text = yaml.safe_dump(loaded.model_dump(mode="python"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="Value to assign to KEY.")
def config_set(key: str, value: str) -> None:
    """Persist a configuration value expressed as a dotted KEY.

    Raises:
        click.ClickException: If parsing, assignment, or validation fails.
    """
    manager = ConfigManager()
    manager.ensure_exists()

    before = manager.read_text().splitlines()
    segments = [segment.strip() for segment in key.split(".") if segment.strip()]
    if not segments:
        raise click.ClickException("KEY must specify a dotted path such as 'retention.months'.")

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    try:
        file_data = manager.load_file_overrides()
        assign_path(file_data, segments, parsed_value, layer_name="config")
        resolve_with_precedence(defaults=KeeperConfig(), file_overrides=file_data)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(file_data)
    after = manager.read_text().splitlines()

    # Skip the "Last updated" stamp so an unchanged value reports no diff.
    diff = list(
        difflib.unified_diff(
            [line for line in before if not line.startswith("# Last updated:")],
            [line for line in after if not line.startswith("# Last updated:")],
            fromfile="config.yaml (before)",
            tofile="config.yaml (after)",
            lineterm="",
        )
    )

    if not diff:
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return

    console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {'.'.join(segments)}.[/green]")


@config.command("edit")
def config_edit() -> None:
    """Open the configuration file in an interactive editor session.

    Raises:
        click.ClickException: If edited content is invalid or cannot be saved.
    """
    manager = ConfigManager()
    manager.ensure_exists()

    original = manager.read_text()
    edited = click.edit(original, extension=".yaml")

    if edited is None:
        console.print("[yellow]Edit cancelled; no changes applied.[/yellow]")
        return

    if edited == original:
        console.print("[yellow]No changes detected.[/yellow]")
        return

    try:
        parsed = yaml.safe_load(edited) or {}
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Invalid YAML: {exc}") from exc

    if not isinstance(parsed, dict):
        raise click.ClickException("Configuration file must contain a top-level mapping.")

    try:
        resolve_with_precedence(defaults=KeeperConfig(), file_overrides=parsed)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(parsed)
    console.print("[green]Configuration updated successfully.[/green]")


@cli.group()
def ledger() -> None:
    """Inspect the hash ledger of archived media."""


@ledger.command("stats")
@click.option(
    "--backup-root",
    type=click.Path(file_okay=False, path_type=str),
    help="Backup root directory (overrides backup.root).",
)
@click.option("--json", "json_output", is_flag=True, help="Emit ledger statistics as JSON.")
def ledger_stats(backup_root: str | None, json_output: bool) -> None:
    """Report how many content hashes the ledger holds."""

    overrides = {"backup.root": backup_root} if backup_root is not None else {}
    try:
        path = _ledger_path(ConfigManager().load(cli_overrides=overrides))
        with HashLedger.load(path, read_only=True) as store:
            count = len(store)
    except (ConfigError, LedgerError) as exc:
        _handle_cli_error(str(exc), code="ledger_error", json_output=json_output, original=exc)
        return

    if json_output:
        console.print_json(
            data={"ledger": path.as_posix(), "exists": path.exists(), "hashes": count},
            ensure_ascii=True,
        )
        return

    if not path.exists():
        console.print(
            f"[yellow]No ledger at {_markup_safe(path)}; nothing has been archived yet.[/yellow]"
        )
    console.print(_format_summary_line("Ledger", path, {"hashes": count}))


@ledger.command("check")
@click.argument(
    "paths", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=str)
)
@click.option(
    "--backup-root",
    type=click.Path(file_okay=False, path_type=str),
    help="Backup root directory (overrides backup.root).",
)
@click.option("--json", "json_output", is_flag=True, help="Emit results as JSON.")
def ledger_check(paths: tuple[str, ...], backup_root: str | None, json_output: bool) -> None:
    """Report whether each file's content is already in the ledger.

    The ledger is opened read-only; nothing is recorded.
    """

    overrides = {"backup.root": backup_root} if backup_root is not None else {}
    try:
        ledger_file = _ledger_path(ConfigManager().load(cli_overrides=overrides))
        store = HashLedger.load(ledger_file, read_only=True)
    except (ConfigError, LedgerError) as exc:
        _handle_cli_error(str(exc), code="ledger_error", json_output=json_output, original=exc)
        return

    hasher = HashComputer()
    results: list[dict[str, Any]] = []
    with store:
        for raw in paths:
            path = Path(raw)
            try:
                digest = hasher.compute(path)
            except OSError as exc:
                results.append({"path": path.as_posix(), "error": str(exc)})
                continue
            results.append(
                {"path": path.as_posix(), "sha256": digest, "archived": store.contains(digest)}
            )

    if json_output:
        console.print_json(
            data={"ledger": ledger_file.as_posix(), "files": results}, ensure_ascii=True
        )
        return

    table = Table(title=f"Ledger check ({_markup_safe(ledger_file)})")
    table.add_column("Path", overflow="fold")
    table.add_column("Status")
    archived = 0
    for entry in results:
        if "error" in entry:
            status = f"[red]error: {_markup_safe(entry['error'])}[/red]"
        elif entry["archived"]:
            archived += 1
            status = "[green]archived[/green]"
        else:
            status = "[yellow]new[/yellow]"
        table.add_row(_markup_safe(entry["path"]), status)
    console.print(table)
    console.print(
        _format_summary_line(
            "Ledger check", ledger_file, {"files": len(results), "archived": archived}
        )
    )


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()
