"""
HTTP intake client using an ``httpx.AsyncClient``.

Posts a JSON array of wire items to the logs intake endpoint, gzip
compressing the body when requested. Any status >= 400 raises
``IntakeHTTPError`` so the delivery retrier can decide what to do.
"""

from __future__ import annotations

import asyncio
import gzip
from typing import Any, Mapping, Sequence

import httpx
import orjson

from ..core.errors import ConfigurationError, IntakeHTTPError
from ..core.models import LogItem
from ..core.settings import IntakeSettings

_BODY_SNIPPET_CHARS = 256


class HttpIntakeClient:
    """Submit batches of log items to the HTTP intake API."""

    name = "http-intake"

    def __init__(
        self,
        settings: IntakeSettings | None = None,
        *,
        headers: Mapping[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or IntakeSettings()
        self._extra_headers = dict(headers or {})
        self._client = client
        self._owns_client = client is None
        self._client_loop: asyncio.AbstractEventLoop | None = None
        self._last_status: int | None = None
        self._last_error: str | None = None

    @property
    def endpoint(self) -> str:
        return self._settings.endpoint

    def _headers(self, content_encoding: str | None) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        api_key = self._settings.api_key
        if api_key is not None:
            headers["DD-API-KEY"] = api_key.get_secret_value()
        if content_encoding:
            headers["Content-Encoding"] = content_encoding
        headers.update(self._extra_headers)
        return headers

    async def start(self) -> None:
        if self._settings.api_key is None and self._settings.url is None:
            raise ConfigurationError(
                "intake.api_key is required unless an explicit intake.url is set"
            )
        self._ensure_client()

    def _ensure_client(self) -> httpx.AsyncClient:
        loop = asyncio.get_running_loop()
        if self._client is not None and (
            not self._owns_client or self._client_loop is loop
        ):
            return self._client
        # Connections are bound to the loop that opened them; an exit-time
        # drain runs on a fresh loop and needs its own client.
        self._client = httpx.AsyncClient(timeout=self._settings.timeout_seconds)
        self._client_loop = loop
        return self._client

    @staticmethod
    def encode_body(
        items: Sequence[LogItem], content_encoding: str | None = "gzip"
    ) -> bytes:
        body = orjson.dumps([item.to_wire() for item in items])
        if content_encoding == "gzip":
            return gzip.compress(body)
        if content_encoding in (None, "", "identity"):
            return body
        raise ValueError(f"unsupported content encoding: {content_encoding}")

    async def submit(
        self,
        items: Sequence[LogItem],
        *,
        content_encoding: str = "gzip",
    ) -> Any:
        client = self._ensure_client()
        body = self.encode_body(items, content_encoding)
        try:
            resp = await client.post(
                self.endpoint,
                content=body,
                headers=self._headers(content_encoding),
            )
        except Exception as exc:
            self._last_status = None
            self._last_error = str(exc)
            raise
        self._last_status = resp.status_code
        if resp.status_code >= 400:
            snippet = None
            try:
                snippet = resp.text[:_BODY_SNIPPET_CHARS]
            except Exception:
                snippet = None
            self._last_error = f"HTTP {resp.status_code}"
            raise IntakeHTTPError(resp.status_code, snippet)
        self._last_error = None
        try:
            return resp.json()
        except ValueError:
            return {}

    async def health_check(self) -> bool:
        return (
            self._last_error is None
            and self._last_status is not None
            and self._last_status < 400
        )

    async def aclose(self) -> None:
        client, self._client = self._client, None
        if client is not None and self._owns_client:
            await client.aclose()
