from __future__ import annotations

from typing import Any, Dict, Iterable, Sequence

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_updates(entry_count: int, updates: Sequence[int]) -> None:
    echo_heading("Ingest Result")
    echo_key_values([("entries", entry_count), ("attempts", len(updates))])
    for attempt, update in enumerate(updates, start=1):
        color = typer.colors.GREEN if update else typer.colors.YELLOW
        typer.secho(f"  - attempt {attempt}: update={update}", fg=color)


def render_health(payload: Dict[str, Any]) -> None:
    echo_heading("Service Health")
    echo_key_values(sorted(payload.items()))
