"""Internal HTTP client — not part of the public API."""
from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Type, TypeVar

from pydantic import BaseModel

from . import _clock
from ._auth import Credential
from ._ratelimit import RateLimiter
from ._transport import BrowserProfile, Transport
from .exceptions import (
    CredentialExpiredError,
    PermanentRequestError,
    ResponseDecodeError,
    TransientServerError,
    TransientTransportError,
)

logger = logging.getLogger("vidai")

DEFAULT_BASE_URL = "https://api.runwayml.com/v1/"

# Waits before the 1st, 2nd, 3rd+ retry of a retryable status.
BACKOFF = (30.0, 60.0, 120.0)
RETRYABLE_STATUSES = frozenset({429, 500, 502, 504, 520, 522})
SUCCESS_STATUS = 200

_MAX_DETAIL = 100

M = TypeVar("M", bound=BaseModel)


@dataclass
class UploadFile:
    """Raw bytes PUT to a storage upload URL."""

    data: bytes
    extension: str

    @property
    def content_type(self) -> str:
        ext = self.extension.lower().lstrip(".")
        if ext == "jpg":
            ext = "jpeg"
        return f"image/{ext}"


def backoff_delay(retry: int) -> float:
    """Seconds to wait before retry number *retry* (1-based)."""
    return BACKOFF[min(retry, len(BACKOFF)) - 1]


def _truncate(text: str) -> str:
    if len(text) > _MAX_DETAIL:
        return text[:_MAX_DETAIL] + "..."
    return text


class HttpClient:
    """Rate limited, retrying request executor.

    Every physical attempt takes a permit from the shared
    :class:`RateLimiter`. Timeouts and connection errors are retried
    immediately; statuses in :data:`RETRYABLE_STATUSES` are retried after
    :func:`backoff_delay`; anything else fails at once. At most
    *max_attempts* attempts are made per call.
    """

    def __init__(
        self,
        credential: Credential,
        transport: Transport,
        rate_limiter: RateLimiter,
        base_url: str = DEFAULT_BASE_URL,
        max_attempts: int = 3,
        debug_dir: str | Path | None = "logs",
        profile: BrowserProfile | None = None,
        sleep: _clock.Sleeper = _clock.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._credential = credential
        self._transport = transport
        self._rate_limiter = rate_limiter
        self._base_url = base_url.rstrip("/") + "/"
        self._max_attempts = max_attempts
        self._debug_dir = Path(debug_dir) if debug_dir else None
        self._profile = profile or BrowserProfile()
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Decoded helpers
    # ------------------------------------------------------------------

    def get(self, path: str, shape: Optional[Type[M]] = None, cancel: threading.Event | None = None) -> Any:
        return self._decode(self.request("GET", path, cancel=cancel), shape)

    def post(
        self,
        path: str,
        json: Any = None,
        shape: Optional[Type[M]] = None,
        cancel: threading.Event | None = None,
    ) -> Any:
        return self._decode(self.request("POST", path, body=json, cancel=cancel), shape)

    def delete(
        self,
        path: str,
        shape: Optional[Type[M]] = None,
        cancel: threading.Event | None = None,
        max_attempts: Optional[int] = None,
    ) -> Any:
        raw = self.request("DELETE", path, body={}, cancel=cancel, max_attempts=max_attempts)
        return self._decode(raw, shape)

    # ------------------------------------------------------------------
    # Executor
    # ------------------------------------------------------------------

    def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        cancel: threading.Event | None = None,
        max_attempts: Optional[int] = None,
    ) -> bytes:
        """Send *method* to *path* (relative to the API base, or absolute)
        and return the raw response body.

        *body* is either an :class:`UploadFile` (sent as-is, without the
        bearer token) or any JSON-serialisable value. *max_attempts*
        overrides the client-wide attempt ceiling for this call.
        """
        limit = max_attempts or self._max_attempts
        attempts = 0
        while True:
            if self._credential.expired():
                raise CredentialExpiredError(
                    f"token expired at {self._credential.expires_at.isoformat()}"
                )
            try:
                return self._attempt(method, path, body, cancel)
            except TransientTransportError as exc:
                error: Exception = exc
                delay = 0.0
            except TransientServerError as exc:
                error = exc
                delay = backoff_delay(attempts + 1)

            attempts += 1
            if attempts >= limit:
                raise error
            logger.warning(
                "retrying %s %s (attempt %d/%d) in %.0fs: %s",
                method, path, attempts + 1, limit, delay, error,
            )
            if delay:
                self._sleep(delay, cancel)

    def _attempt(self, method: str, path: str, body: Any, cancel: threading.Event | None) -> bytes:
        absolute = path.startswith("http")
        url = path if absolute else f"{self._base_url}{path}"

        payload: Optional[bytes]
        if isinstance(body, UploadFile):
            payload = body.data
            headers = self._profile.upload_headers(body.content_type, len(payload))
            logger.debug("%s %s  upload=%d bytes", method, url, len(payload))
        else:
            payload = json.dumps(body).encode() if body is not None else None
            if absolute:
                headers = self._profile.download_headers(url)
            else:
                headers = self._profile.api_headers(self._credential.token)
            logger.debug("%s %s  body=%s", method, url, _truncate(payload.decode()) if payload else None)

        with self._rate_limiter.permit(cancel):
            response = self._transport.send(method, url, headers, payload)

        logger.debug("← %s %s", response.status_code, url)
        if response.status_code == SUCCESS_STATUS:
            return response.content

        self._capture(response.content)
        detail = _truncate(response.content.decode("utf-8", errors="replace"))
        message = f"{method} {url} returned {response.status_code} ({detail})"
        if response.status_code in RETRYABLE_STATUSES:
            raise TransientServerError(message, status_code=response.status_code, detail=detail)
        raise PermanentRequestError(message, status_code=response.status_code, detail=detail)

    def _decode(self, raw: bytes, shape: Optional[Type[M]]) -> Any:
        try:
            data = json.loads(raw)
            if shape is None:
                return data
            return shape.model_validate(data)
        except ValueError as exc:
            self._capture(raw)
            name = shape.__name__ if shape is not None else "json"
            raise ResponseDecodeError(
                f"couldn't decode response body ({name}): {exc}",
                detail=_truncate(raw.decode("utf-8", errors="replace")),
            ) from exc

    def _capture(self, raw: bytes) -> None:
        """Write a raw response body to the debug directory, ignoring failures."""
        if self._debug_dir is None:
            return
        name = f"debug_{datetime.now().strftime('%Y%m%d_%H%M%S_%f')}.json"
        try:
            self._debug_dir.mkdir(parents=True, exist_ok=True)
            (self._debug_dir / name).write_bytes(raw)
        except OSError as exc:
            logger.warning("couldn't write debug capture %s: %s", name, exc)

    def close(self) -> None:
        self._transport.close()

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(self, *_: Any) -> None:
        self.close()
