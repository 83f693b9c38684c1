"""Command-line interface for stagecue.

Inspects an exported rehearsal snapshot: row layout of its parts and the
current/next part at a given time.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Annotated, Optional

import typer

from stagecue import __version__
from stagecue.config import EngineConfig
from stagecue.engine.alerts import countdown_label
from stagecue.engine.cursor import resolve
from stagecue.engine.packer import pack
from stagecue.engine.segments import anchored, format_time, parse_time_string, parts_only
from stagecue.store.snapshot import SnapshotError, load_snapshot
from stagecue.utils.logging import get_logger

app = typer.Typer(
    name="stagecue",
    help="Inspect rehearsal timelines exported from the planning tool.",
    add_completion=False,
    no_args_is_help=True,
)

SnapshotArg = Annotated[
    Path,
    typer.Argument(help="Path to an exported rehearsal snapshot (.json)", exists=True, readable=True),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"stagecue {__version__}")
        raise typer.Exit()


def _fail(message: str) -> None:
    typer.secho(f"Error: {message}", fg=typer.colors.RED, err=True)
    raise typer.Exit(1)


def _parse_pins(pins: list[str]) -> dict[str, int]:
    parsed: dict[str, int] = {}
    for pin in pins:
        segment_id, sep, row = pin.rpartition("=")
        if not sep or not segment_id or not row.isdigit():
            raise ValueError(f"Pins look like PART_ID=ROW, got {pin!r}")
        parsed[segment_id] = int(row)
    return parsed


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-V", help="Show debug output from the engine"),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option("--quiet", "-q", help="Only show warnings and errors"),
    ] = False,
) -> None:
    """stagecue: keep rehearsal views in step with the music."""
    # Configure logging
    if verbose:
        log_level = logging.DEBUG
    elif quiet:
        log_level = logging.WARNING
    else:
        log_level = logging.INFO
    get_logger(level=log_level)


@app.command()
def layout(
    snapshot: SnapshotArg,
    pin: Annotated[
        Optional[list[str]],
        typer.Option("--pin", "-p", help="Pin a part to a row: PART_ID=ROW (repeatable)"),
    ] = None,
    min_rows: Annotated[int, typer.Option("--min-rows", help="Pad with empty rows")] = 0,
    as_json: Annotated[bool, typer.Option("--json", help="Print JSON instead of text")] = False,
) -> None:
    """Pack the snapshot's parts into timeline rows.

    Example:
        stagecue layout show.json --pin intro=2
    """
    config = EngineConfig.from_env()
    try:
        parts = parts_only(load_snapshot(snapshot).segments())
        result = pack(
            parts,
            pinned=_parse_pins(pin or []),
            default_duration=config.default_duration,
            min_rows=min_rows,
        )
    except (SnapshotError, ValueError) as e:
        _fail(str(e))
        return

    if as_json:
        payload = {
            "rows": [
                [
                    {"id": i.segment.id, "name": i.segment.name, "start": i.start, "end": i.end}
                    for i in row.items
                ]
                for row in result.rows
            ],
            "unassigned": [s.id for s in result.unassigned],
        }
        typer.echo(json.dumps(payload, indent=2))
        return

    for row in result.rows:
        items = ", ".join(
            f"{i.segment.name} ({format_time(i.start)}-{format_time(i.end)}{'*' if i.missing_end else ''})"
            for i in row.items
        )
        tag = " [pinned]" if row.pinned else ""
        typer.echo(f"Row {row.index}{tag}: {items or '(empty)'}")
    if result.unassigned:
        names = ", ".join(f"{s.name} ({format_time(None)})" for s in result.unassigned)
        typer.echo(f"Unassigned: {names}")
    for a, b in result.conflicts():
        typer.secho(f"Overlap: {a.name} / {b.name}", fg=typer.colors.YELLOW, err=True)


@app.command()
def cursor(
    snapshot: SnapshotArg,
    at: Annotated[str, typer.Option("--at", "-t", help="Playback time as seconds or m:ss")],
) -> None:
    """Show the current and next part at a playback time.

    Example:
        stagecue cursor show.json --at 1:25
    """
    config = EngineConfig.from_env()
    t = parse_time_string(at)
    if t is None:
        _fail(f"Not a time: {at!r}")
        return
    try:
        parts = anchored(parts_only(load_snapshot(snapshot).segments()))
    except SnapshotError as e:
        _fail(str(e))
        return

    state = resolve(parts, t)
    typer.echo(f"Time:    {format_time(t)}")
    typer.echo(f"Current: {state.current.name if state.current else '-'}")
    typer.echo(f"Next:    {state.next.name if state.next else '-'}")
    if state.time_to_next is not None:
        typer.echo(f"In:      {state.time_to_next:.1f}s")
        label = countdown_label(state.time_to_next, config.alerts.ring_threshold)
        if label:
            typer.secho(f"GET READY {label}", fg=typer.colors.RED, bold=True)


@app.command()
def info() -> None:
    """Show version and effective engine settings."""
    config = EngineConfig.from_env()
    typer.echo(f"stagecue v{__version__}")
    typer.echo("")
    typer.echo("Engine settings:")
    typer.echo(f"  Default duration: {config.default_duration}s")
    typer.echo(f"  Undo history:     {config.history_limit} entries")
    typer.echo(f"  Ring threshold:   {config.alerts.ring_threshold}s")
    typer.echo(f"  Poll interval:    {config.timers.poll_interval}s")
    typer.echo(f"  Auto-save:        every {config.timers.autosave_interval}s")
    typer.echo(f"  Jump countdown:   {config.timers.jump_countdown_seconds} ticks")


if __name__ == "__main__":
    app()
