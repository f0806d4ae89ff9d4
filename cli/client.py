from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

import httpx
import typer

from cli.config import CLIConfig


def load_batch(path: Path) -> Dict[str, Any]:
    """Read a batch file holding either a full envelope or a bare list of entries."""
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"File {path} is not valid JSON: {exc}") from exc
    if isinstance(payload, list):
        return build_batch(payload)
    if not isinstance(payload, dict):
        raise typer.BadParameter(f"File {path} must contain a JSON object or array.")
    return payload


def build_batch(entries: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"count": len(entries), "data": entries}


class ApiClient:
    """Minimal HTTP client for the ingestion service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def send_batch(self, payload: Dict[str, Any]) -> int:
        try:
            response = self._client.post("/ingest", json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        body = response.json()
        update = body.get("update")
        if not isinstance(update, int):
            raise typer.BadParameter("Unexpected response payload when sending batch.")
        return update

    def health(self) -> Dict[str, Any]:
        try:
            response = self._client.get("/health")
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: Any = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except ValueError:
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
