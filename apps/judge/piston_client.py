"""HTTP client wrapper for the Piston code execution API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

import httpx

from codeassess.core.errors import BackendUnavailable

# Policy ceilings sent with every run. Not caller-configurable.
RUN_TIMEOUT_MS = 10_000
COMPILE_TIMEOUT_MS = 10_000
MEMORY_LIMIT_BYTES = 256_000_000

SERVICE_NAME = "Code execution service"


@dataclass
class PistonConfig:
    base_url: str
    api_key: str | None = None


def build_execute_payload(
    backend_id: str,
    backend_version: str,
    source: str,
    *,
    stdin: str | None = None,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "language": backend_id,
        "version": backend_version,
        "files": [{"content": source}],
        "run_timeout": RUN_TIMEOUT_MS,
        "compile_timeout": COMPILE_TIMEOUT_MS,
        "compile_memory_limit": MEMORY_LIMIT_BYTES,
        "run_memory_limit": MEMORY_LIMIT_BYTES,
    }
    if stdin is not None:
        payload["stdin"] = stdin
    return payload


class PistonClient:
    def __init__(
        self,
        config: PistonConfig,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._config = config
        if client is None:
            self._client = httpx.AsyncClient(
                base_url=config.base_url,
                timeout=timeout,
            )
            self._owns_client = True
        else:
            self._client = client
            self._owns_client = False

    @property
    def base_url(self) -> str:
        return str(self._client.base_url)

    async def execute(
        self,
        backend_id: str,
        backend_version: str,
        source: str,
        *,
        stdin: str | None = None,
    ) -> Dict[str, Any]:
        """Run one source file and return the raw Piston response body.

        Raises BackendUnavailable for transport errors, non-2xx replies and
        bodies that are not a JSON object.
        """

        payload = build_execute_payload(backend_id, backend_version, source, stdin=stdin)
        try:
            response = await self._client.post(
                "/execute",
                json=payload,
                headers=self._build_headers(),
            )
        except httpx.HTTPError as exc:
            raise BackendUnavailable(SERVICE_NAME, f"{type(exc).__name__}: {exc}") from exc

        if not response.is_success:
            raise BackendUnavailable(SERVICE_NAME, response.reason_phrase, status_code=response.status_code)
        try:
            data = response.json()
        except ValueError as exc:
            raise BackendUnavailable(SERVICE_NAME, "non-JSON payload") from exc
        if not isinstance(data, dict):
            raise BackendUnavailable(SERVICE_NAME, f"unexpected payload type {type(data).__name__}")
        return data

    async def aclose(self) -> None:
        if getattr(self, "_owns_client", False):
            await self._client.aclose()

    def _build_headers(self) -> Dict[str, str] | None:
        if not self._config.api_key:
            return None
        return {"Authorization": f"Bearer {self._config.api_key}"}

    async def __aenter__(self) -> "PistonClient":  # pragma: no cover - convenience
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # pragma: no cover - convenience
        await self.aclose()


__all__ = [
    "COMPILE_TIMEOUT_MS",
    "MEMORY_LIMIT_BYTES",
    "PistonClient",
    "PistonConfig",
    "RUN_TIMEOUT_MS",
    "SERVICE_NAME",
    "build_execute_payload",
]
