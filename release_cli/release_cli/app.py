"""relquery CLI application -- Typer-based interface to release deployments.

Provides ``list`` (every deployment in a time window) and ``last`` (the most
recent deployment, searching backwards step by step).  Human-readable output
goes to *stderr* via Rich; ``--output json|yaml`` writes machine-readable
output to *stdout* so that pipelines can compose cleanly.

Exit codes: 0 success, 1 no deployment found, 2 invalid options, 3 query
failure.
"""

from __future__ import annotations

import sys
from datetime import datetime, timedelta, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import typer
from rich.console import Console
from rich.markup import escape

from release_cli.display import (
    OutputFormat,
    display_deployments,
    format_json,
    format_yaml,
)
from release_engine.config import Settings, load_settings
from release_engine.errors import ConfigurationError, NoDeploymentsFoundError, ReleaseQueryError
from release_engine.logging_config import configure_logging
from release_engine.models.release import ReleaseDeployment
from release_engine.query.options import RawLastOptions, RawListOptions
from release_engine.storage.azure_store import AzureBlobStore, account_url_for
from release_engine.storage.base import ReleaseStore
from release_engine.timeparse import DurationParseError, TimeParseError, parse_duration, parse_time_to_utc

EXIT_NOT_FOUND = 1
EXIT_INVALID_OPTIONS = 2
EXIT_QUERY_FAILED = 3

# ---------------------------------------------------------------------------
# App & global state
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="relquery",
    help="Query tagged release artifacts for deployment history.",
    no_args_is_help=True,
)
console = Console(stderr=True)

# Mutable global options populated by the Typer callback.
_output_format: OutputFormat = OutputFormat.HUMAN
_timezone: tzinfo | None = None


# ---------------------------------------------------------------------------
# Callback -- global options
# ---------------------------------------------------------------------------


@app.callback()
def _global_options(
    output: OutputFormat = typer.Option(
        OutputFormat.HUMAN,
        "--output",
        "-o",
        help="Output format: json, yaml, or human.",
    ),
    timezone_name: str | None = typer.Option(
        None,
        "--timezone",
        help="IANA time zone for human-readable timestamps (default: UTC).",
    ),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        help="Log level (DEBUG, INFO, WARNING, ERROR).",
        envvar="RELQUERY_LOG_LEVEL",
    ),
    structured_logs: bool | None = typer.Option(
        None,
        "--structured-logs/--no-structured-logs",
        help="Emit log records as single-line JSON.",
        envvar="RELQUERY_STRUCTURED_LOGGING",
    ),
) -> None:
    """Global options applied to every command."""
    global _output_format, _timezone  # noqa: PLW0603
    _output_format = output

    settings = _load_settings()
    try:
        configure_logging(
            log_level or settings.log_level,
            settings.structured_logging if structured_logs is None else structured_logs,
        )
    except ValueError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=EXIT_INVALID_OPTIONS) from exc

    _timezone = None
    if timezone_name:
        try:
            _timezone = ZoneInfo(timezone_name)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            console.print(f"[red]Unknown time zone '{escape(timezone_name)}'[/red]")
            raise typer.Exit(code=EXIT_INVALID_OPTIONS) from exc


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_settings() -> Settings:
    """Load settings from the environment, exiting on invalid values."""
    try:
        return load_settings()
    except ValueError as exc:
        console.print(f"[red]Invalid configuration: {escape(str(exc))}[/red]")
        raise typer.Exit(code=EXIT_INVALID_OPTIONS) from exc


def _open_store(account_url: str) -> ReleaseStore:
    """Open the Azure store for *account_url* with the default credential chain."""
    return AzureBlobStore.from_account_url(account_url)


def _parse_time(value: str, label: str) -> datetime:
    """Parse a ``--since``/``--until`` value, exiting on failure."""
    try:
        return parse_time_to_utc(value)
    except TimeParseError as exc:
        console.print(f"[red]Failed to parse {label} time: {escape(str(exc))}[/red]")
        raise typer.Exit(code=EXIT_INVALID_OPTIONS) from exc


def _parse_step(value: str | None, label: str, default: timedelta) -> timedelta:
    """Parse a ``--step``/``--max-lookback`` value, exiting on failure."""
    if not value:
        return default
    try:
        return parse_duration(value)
    except DurationParseError as exc:
        console.print(f"[red]Failed to parse {label} duration: {escape(str(exc))}[/red]")
        raise typer.Exit(code=EXIT_INVALID_OPTIONS) from exc


def _build_list_options(
    settings: Settings,
    *,
    account_name: str | None,
    container: str | None,
    environment: str | None,
    service_group_base: str | None,
    since: str | None,
    until: str | None,
    pipeline_rev: str,
    source_rev: str,
    components: bool,
    limit: int | None,
) -> RawListOptions:
    """Merge command-line values over settings defaults."""
    return RawListOptions(
        storage_account_url=account_url_for(account_name) if account_name else settings.storage_account_url,
        storage_container=container if container is not None else settings.storage_container,
        environment=environment if environment is not None else settings.environment.value,
        since=_parse_time(since if since is not None else settings.default_since, "since"),
        until=_parse_time(until, "until") if until is not None else datetime.now().astimezone(),
        service_group_base=(service_group_base if service_group_base is not None else settings.service_group_base),
        pipeline_revision=pipeline_rev,
        source_revision=source_rev,
        include_components=components,
        limit=limit if limit is not None else settings.limit,
    )


def _emit(deployments: list[ReleaseDeployment], include_components: bool) -> None:
    if _output_format is OutputFormat.JSON:
        sys.stdout.write(format_json(deployments) + "\n")
    elif _output_format is OutputFormat.YAML:
        sys.stdout.write(format_yaml(deployments))
    else:
        display_deployments(console, deployments, tz=_timezone, include_components=include_components)


# ---------------------------------------------------------------------------
# list
# ---------------------------------------------------------------------------


@app.command("list")
def list_command(
    account_name: str | None = typer.Option(None, "--account-name", "-a", help="Name of the storage account."),
    container: str | None = typer.Option(None, "--container", help="Name of the storage container."),
    environment: str | None = typer.Option(None, "--environment", "-e", help="Environment (prod | stg | int)."),
    service_group_base: str | None = typer.Option(None, "--service-group-base", help="Service group base."),
    since: str | None = typer.Option(
        None,
        "--since",
        "-s",
        help="Start of the window: RFC3339, YYYY-MM-DD, or a duration ago (1d, 2w, 12h).",
    ),
    until: str | None = typer.Option(
        None,
        "--until",
        "-u",
        help="End of the window (exclusive), same formats as --since. Defaults to now.",
    ),
    pipeline_rev: str = typer.Option("", "--pipeline-rev", help="Only releases with this pipeline revision."),
    source_rev: str = typer.Option("", "--source-rev", help="Only releases with this source revision."),
    components: bool = typer.Option(False, "--components", help="Include component digests."),
    limit: int | None = typer.Option(None, "--limit", "-l", help="Maximum number of deployments to return."),
) -> None:
    """List release deployments in a time window, most recent first."""
    settings = _load_settings()
    raw = _build_list_options(
        settings,
        account_name=account_name,
        container=container,
        environment=environment,
        service_group_base=service_group_base,
        since=since,
        until=until,
        pipeline_rev=pipeline_rev,
        source_rev=source_rev,
        components=components,
        limit=limit,
    )

    try:
        validated = raw.validated()
    except ConfigurationError as exc:
        console.print(f"[red]Invalid options: {escape(str(exc))}[/red]")
        raise typer.Exit(code=EXIT_INVALID_OPTIONS) from exc

    try:
        query = validated.complete(_open_store(validated.storage_account_url))
        deployments = query.list_release_deployments()
    except ReleaseQueryError as exc:
        console.print(f"[red]Error listing deployments: {escape(str(exc))}[/red]")
        raise typer.Exit(code=EXIT_QUERY_FAILED) from exc

    _emit(deployments, components)


# ---------------------------------------------------------------------------
# last
# ---------------------------------------------------------------------------


@app.command("last")
def last_command(
    account_name: str | None = typer.Option(None, "--account-name", "-a", help="Name of the storage account."),
    container: str | None = typer.Option(None, "--container", help="Name of the storage container."),
    environment: str | None = typer.Option(None, "--environment", "-e", help="Environment (prod | stg | int)."),
    service_group_base: str | None = typer.Option(None, "--service-group-base", help="Service group base."),
    since: str | None = typer.Option(
        None,
        "--since",
        "-s",
        help="Accepted for parity with list; the search windows are derived from --until.",
    ),
    until: str | None = typer.Option(
        None,
        "--until",
        "-u",
        help="Instant to search backwards from. Defaults to now.",
    ),
    pipeline_rev: str = typer.Option("", "--pipeline-rev", help="Only releases with this pipeline revision."),
    source_rev: str = typer.Option("", "--source-rev", help="Only releases with this source revision."),
    components: bool = typer.Option(False, "--components", help="Include component digests."),
    limit: int | None = typer.Option(None, "--limit", "-l", help="Maximum number of deployments per window."),
    step: str | None = typer.Option(None, "--step", help="Step duration for backwards search (e.g. 1w, 3d, 48h)."),
    max_lookback: str | None = typer.Option(
        None,
        "--max-lookback",
        help="Maximum lookback duration for backwards search (e.g. 12w, 90d).",
    ),
) -> None:
    """Find the most recent release deployment, searching backwards in steps."""
    settings = _load_settings()
    list_options = _build_list_options(
        settings,
        account_name=account_name,
        container=container,
        environment=environment,
        service_group_base=service_group_base,
        since=since,
        until=until,
        pipeline_rev=pipeline_rev,
        source_rev=source_rev,
        components=components,
        limit=limit,
    )
    if since is None and list_options.since is not None and list_options.until is not None:
        # The default since must not overtake an explicit, older --until.
        list_options = list_options.model_copy(update={"since": min(list_options.since, list_options.until)})

    raw = RawLastOptions(
        list_options=list_options,
        step=_parse_step(step, "step", settings.search_step),
        max_lookback=_parse_step(max_lookback, "max-lookback", settings.search_max_lookback),
    )

    try:
        validated = raw.validated()
    except ConfigurationError as exc:
        console.print(f"[red]Invalid options: {escape(str(exc))}[/red]")
        raise typer.Exit(code=EXIT_INVALID_OPTIONS) from exc

    try:
        query = validated.complete(_open_store(validated.list_options.storage_account_url))
        deployment = query.last_release_deployment()
    except NoDeploymentsFoundError as exc:
        console.print(f"[yellow]{escape(str(exc))}[/yellow]")
        raise typer.Exit(code=EXIT_NOT_FOUND) from exc
    except ReleaseQueryError as exc:
        console.print(f"[red]Error searching deployments: {escape(str(exc))}[/red]")
        raise typer.Exit(code=EXIT_QUERY_FAILED) from exc

    _emit([deployment], components)
