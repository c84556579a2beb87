from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
import typer

from cli.config import CLIConfig


def load_payload(path: Path) -> Dict[str, Any]:
    """Read a JSON request body from disk."""
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"File {path} is not valid JSON: {exc.msg}.") from exc
    if not isinstance(payload, dict):
        raise typer.BadParameter(f"File {path} must contain a JSON object.")
    return payload


class ApiClient:
    """Minimal HTTP client for the compliance engine service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def evaluate(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._post("/evaluations", payload)

    def evaluate_batch(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._post("/evaluations/batch", payload)

    def resolve_monitoring(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._post("/follow-ups/monitoring/resolve", payload)

    def query_logs(
        self,
        recorded_by: str,
        start: str,
        end: str,
        site_id: Optional[str] = None,
        limit: int = 10,
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {
            "recorded_by": recorded_by,
            "start": start,
            "end": end,
            "limit": limit,
        }
        if site_id:
            params["site_id"] = site_id
        try:
            response = self._client.get("/temperature-logs", params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self._client.post(path, json=payload)
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
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
