from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

import httpx
import typer

from cli.config import CLIConfig


def _timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


class ApiClient:
    """Minimal HTTP client for the roast timing service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def create_session(
        self,
        target_temperature: float,
        desired_serve_time: Optional[datetime] = None,
        initial_oven_temperature: Optional[float] = None,
        meat_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        payload = {
            "target_temperature": target_temperature,
            "desired_serve_time": _timestamp(desired_serve_time),
            "initial_oven_temperature": initial_oven_temperature,
            "meat_type": meat_type,
        }
        return self._request("POST", "/sessions", json=payload).json()

    def add_reading(
        self, session_id: str, temperature: float, timestamp: Optional[datetime] = None
    ) -> Dict[str, Any]:
        payload = {"temperature": temperature, "timestamp": _timestamp(timestamp)}
        return self._request("POST", f"/sessions/{session_id}/readings", json=payload).json()

    def set_oven(
        self, session_id: str, set_temperature: float, timestamp: Optional[datetime] = None
    ) -> Dict[str, Any]:
        payload = {"set_temperature": set_temperature, "timestamp": _timestamp(timestamp)}
        return self._request("POST", f"/sessions/{session_id}/oven-events", json=payload).json()

    def turn_oven_off(self, session_id: str, timestamp: Optional[datetime] = None) -> Dict[str, Any]:
        payload = {"timestamp": _timestamp(timestamp)}
        return self._request(
            "POST", f"/sessions/{session_id}/oven-events/off", json=payload
        ).json()

    def get_calculations(self, session_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/sessions/{session_id}/calculations").json()

    def apply_recommendation(self, session_id: str) -> Dict[str, Any]:
        return self._request("POST", f"/sessions/{session_id}/recommendation/apply").json()

    def export(self, session_id: str, fmt: str) -> str:
        return self._request(
            "GET", f"/sessions/{session_id}/export", params={"format": fmt}
        ).text

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, url, **kwargs)
            if response.status_code == 404:
                raise typer.BadParameter(f"Session not found at {url}.")
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: str | None = None
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
