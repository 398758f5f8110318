"""Wrapper de httpx para la API del portal (Fetch Client).

Por qué un wrapper:
- Estandariza base URL, timeout, headers y el único transporte de
  autenticación configurado (header bearer o cookie de sesión).
- Traduce cada resultado a la taxonomía de `core.domain.errors`:
  401 -> AuthExpired, otros 4xx -> ValidationFailure, 5xx y sobres
  malformados -> ServerFailure, errores de transporte -> NetworkFailure,
  timeouts -> RequestTimeout.
- Desenvuelve sobres `{success, data|<key>, message|error}`.

Nota: cada llamada se dispara una vez, sin reintentos ni backoff.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any

import httpx
from pydantic import ValidationError

from core.config import AppSettings, AuthTransport
from core.domain.errors import (
    AuthExpired,
    NetworkFailure,
    RequestTimeout,
    ServerFailure,
    ValidationFailure,
)
from core.domain.models import ApiEnvelope, Session, message_text

logger = logging.getLogger(__name__)

_FILENAME_RE = re.compile(r"filename\*?=(?:UTF-8'')?\"?([^\";]+)\"?", re.IGNORECASE)


def build_async_client(
    settings: AppSettings | None = None,
    *,
    session: Session | None = None,
    extra_headers: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create the `httpx.AsyncClient` every request goes through.

    The auth transport is resolved here, once, from `settings.auth_transport`.
    """

    settings = settings or AppSettings()
    headers: dict[str, str] = {
        "User-Agent": settings.user_agent,
        "Accept": "application/json",
    }
    cookies: dict[str, str] = {}
    if session is not None and session.token:
        if settings.auth_transport is AuthTransport.BEARER:
            headers["Authorization"] = f"Bearer {session.token}"
        else:
            cookies[settings.session_cookie_name] = session.token
    if extra_headers:
        headers.update(extra_headers)
    return httpx.AsyncClient(
        base_url=settings.api_base_url.rstrip("/"),
        timeout=httpx.Timeout(settings.http_timeout_seconds),
        follow_redirects=True,
        headers=headers,
        cookies=cookies,
        transport=transport,
    )


def extract_error_message(response: httpx.Response) -> str | None:
    """`message` or `error` from a JSON error body, if there is one."""

    try:
        body = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError, ValueError):
        return None
    if not isinstance(body, dict):
        return None
    for key in ("message", "error"):
        text = message_text(body.get(key))
        if text:
            return text
    return None


def raise_for_status(response: httpx.Response) -> None:
    status = response.status_code
    if 200 <= status < 300:
        return
    message = extract_error_message(response)
    if status == 401:
        raise AuthExpired(message, status_code=status)
    if 400 <= status < 500:
        raise ValidationFailure(message, status_code=status)
    raise ServerFailure(message, status_code=status)


def unwrap_envelope(payload: Any, *, key: str = "data", status_code: int | None = None) -> Any:
    """Return the payload under `key` of a success envelope."""

    if not isinstance(payload, dict) or not isinstance(payload.get("success"), bool):
        raise ServerFailure("Malformed response from server", status_code=status_code, payload=payload)
    try:
        envelope = ApiEnvelope.model_validate(payload)
    except ValidationError as exc:
        raise ServerFailure("Malformed response from server", status_code=status_code, payload=payload) from exc
    if not envelope.success:
        raise ValidationFailure(envelope.failure_text(), status_code=status_code, payload=payload)
    return envelope.payload(key)


def filename_from_response(response: httpx.Response, default: str) -> str:
    disposition = response.headers.get("content-disposition", "")
    match = _FILENAME_RE.search(disposition)
    if match:
        name = Path(match.group(1).strip()).name
        if name:
            return name
    return default


class ApiClient:
    """Thin async facade over `httpx.AsyncClient` for `/api/...` paths."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    @classmethod
    def from_settings(
        cls,
        settings: AppSettings,
        session: Session | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "ApiClient":
        return cls(build_async_client(settings, session=session, transport=transport))

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _send(
        self,
        method: str,
        path: str,
        *,
        json_body: Any = None,
        params: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
    ) -> httpx.Response:
        clean_params = {k: v for k, v in (params or {}).items() if v not in (None, "")}
        try:
            response = await self._client.request(
                method,
                path,
                json=json_body,
                params=clean_params or None,
                files=files,
            )
        except httpx.TimeoutException as exc:
            raise RequestTimeout("The server took too long to respond. Please try again.") from exc
        except httpx.TransportError as exc:
            raise NetworkFailure(f"Network error: {exc}") from exc
        logger.debug("%s %s -> %s", method, path, response.status_code)
        raise_for_status(response)
        return response

    async def request(
        self,
        method: str,
        path: str,
        *,
        json_body: Any = None,
        params: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
    ) -> Any:
        """Send a request and return the parsed JSON body (None when empty)."""

        response = await self._send(method, path, json_body=json_body, params=params, files=files)
        if not response.content:
            return None
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError, ValueError) as exc:
            raise ServerFailure(
                "Malformed response from server",
                status_code=response.status_code,
            ) from exc

    async def request_envelope(
        self,
        method: str,
        path: str,
        *,
        key: str = "data",
        json_body: Any = None,
        params: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
    ) -> Any:
        payload = await self.request(method, path, json_body=json_body, params=params, files=files)
        return unwrap_envelope(payload, key=key)

    async def download(self, path: str, *, default_filename: str = "export.csv") -> tuple[str, bytes]:
        """Fetch a blob (e.g. `text/csv`) and return `(filename, content)`."""

        response = await self._send("GET", path, params=None)
        return filename_from_response(response, default_filename), response.content

    async def upload(self, path: str, file_path: Path, *, key: str = "data") -> Any:
        """POST `multipart/form-data` with a single `file` field."""

        content = file_path.read_bytes()
        files = {"file": (file_path.name, content, "text/csv")}
        return await self.request_envelope("POST", path, key=key, files=files)
