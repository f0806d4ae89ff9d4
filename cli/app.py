from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer

from cli.client import ApiClient, build_batch, load_batch
from cli.config import CLIConfig, load_config
from cli.render import render_health, render_updates


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for sending telemetry batches to the ingestion service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        typer.secho("CLI state is uninitialized.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Ingestion API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each HTTP request.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("send")
def send_command(
    ctx: typer.Context,
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Path to a JSON batch."),
    repeat: int = typer.Option(
        1,
        "--repeat",
        "-r",
        min=1,
        help="Send the same batch this many times, as a relay retransmitting would.",
    ),
) -> None:
    """Send a batch file and report how many readings were newly recorded."""
    state = _get_state(ctx)
    payload = load_batch(file)
    entries = payload.get("data")
    entry_count = len(entries) if isinstance(entries, list) else 0
    typer.echo(f"Sending {file} to {state.config.base_url} ...")
    updates = [state.client.send_batch(payload) for _ in range(repeat)]
    render_updates(entry_count, updates)


@app.command("reading")
def reading_command(
    ctx: typer.Context,
    device_id: int = typer.Option(..., "--id", help="Device identifier."),
    sequence: int = typer.Option(..., "--seq", help="Sequence number assigned by the device."),
    voltage: Optional[float] = typer.Option(None, "--volt", help="Battery voltage."),
    temperature: Optional[float] = typer.Option(None, "--temp", help="Temperature."),
    rssi: Optional[int] = typer.Option(None, "--rssi", help="Radio signal strength."),
) -> None:
    """Send a single reading as a one-entry batch."""
    state = _get_state(ctx)
    entry = {"id": device_id, "seq": sequence, "volt": voltage, "temp": temperature, "rssi": rssi}
    update = state.client.send_batch(build_batch([entry]))
    render_updates(1, [update])


@app.command("health")
def health_command(ctx: typer.Context) -> None:
    """Check that the ingestion service is up."""
    state = _get_state(ctx)
    render_health(state.client.health())
