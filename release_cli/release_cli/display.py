"""Output formatting for the relquery CLI.

Human-readable output is rendered with Rich onto a :class:`Console`
(typically bound to *stderr*); JSON and YAML renderings are returned as
strings so the caller can write them to *stdout*.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime, tzinfo
from enum import Enum
from typing import TYPE_CHECKING, Any

import yaml  # type: ignore[import-untyped]
from rich.table import Table

from release_engine.timeparse import TimeParseError, format_relative_time, parse_rfc3339

if TYPE_CHECKING:
    from rich.console import Console

    from release_engine.models.release import ReleaseDeployment

_DISPLAY_TIME_FORMAT = "%Y-%m-%d %H:%M:%S %Z"


class OutputFormat(str, Enum):
    JSON = "json"
    YAML = "yaml"
    HUMAN = "human"


def deployment_to_dict(deployment: ReleaseDeployment) -> dict[str, Any]:
    """Serialise *deployment* with camelCase keys, omitting empty components."""
    data: dict[str, Any] = deployment.model_dump(mode="json", by_alias=True)
    if not data.get("components"):
        data.pop("components", None)
    return data


def format_json(deployments: list[ReleaseDeployment]) -> str:
    return json.dumps([deployment_to_dict(d) for d in deployments], indent=2)


def format_yaml(deployments: list[ReleaseDeployment]) -> str:
    return str(yaml.safe_dump([deployment_to_dict(d) for d in deployments], sort_keys=False))


# ---------------------------------------------------------------------------
# Human output
# ---------------------------------------------------------------------------


def _deployed_at(timestamp: datetime, now: datetime, tz: tzinfo | None) -> str:
    display_time = timestamp.astimezone(tz) if tz is not None else timestamp
    relative = format_relative_time(now - timestamp)
    return f"{relative} ago ({display_time.strftime(_DISPLAY_TIME_FORMAT)})"


def display_deployments(
    console: Console,
    deployments: list[ReleaseDeployment],
    *,
    tz: tzinfo | None = None,
    include_components: bool = False,
    now: datetime | None = None,
) -> None:
    """Render a table of deployments, most recent first.

    Parameters
    ----------
    console:
        Rich console to write to.
    deployments:
        Deployments to show.  Entries with an unparsable timestamp are
        left out of the table.
    tz:
        Zone for absolute times.  Defaults to UTC.
    include_components:
        Add a column with the number of extracted components.
    now:
        Reference instant for relative ages.  Defaults to the current time.
    """
    console.print(f"Found {len(deployments)} deployment(s):")
    if not deployments:
        return

    reference = now if now is not None else datetime.now(UTC)

    table = Table(show_lines=False, pad_edge=True, expand=False)
    table.add_column("#", style="dim", width=4, justify="right")
    table.add_column("Environment", style="bold")
    table.add_column("Deployed")
    table.add_column("Release ID", style="cyan")
    table.add_column("Branch")
    table.add_column("PR", justify="right")
    table.add_column("Regions")
    if include_components:
        table.add_column("Components", justify="right")

    for idx, deployment in enumerate(deployments, start=1):
        try:
            timestamp = parse_rfc3339(deployment.metadata.timestamp)
        except TimeParseError:
            continue

        pr = deployment.metadata.pull_request_id
        row = [
            str(idx),
            deployment.target.environment,
            _deployed_at(timestamp, reference, tz),
            str(deployment.metadata.release_id),
            deployment.metadata.branch,
            f"#{pr}" if pr > 0 else "-",
            ", ".join(deployment.target.region_configs) or "-",
        ]
        if include_components:
            row.append(str(len(deployment.components)))
        table.add_row(*row)

    console.print(table)
