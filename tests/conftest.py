"""
Pytest Configuration and Fixtures
"""

import json
import os
import time
from types import SimpleNamespace
from typing import Any, Optional

import jwt
import pytest

from vidai._auth import Credential
from vidai._http import HttpClient
from vidai._ratelimit import RateLimiter
from vidai._transport import TransportResponse
from vidai.exceptions import OperationCancelled

API_BASE = "https://api.test/v1/"
_SIGNING_KEY = "vidai-test-signing-key-0123456789abcdef"


def make_token(expires_in: float = 3600, **claims: Any) -> str:
    """Signed JWT whose ``exp`` is *expires_in* seconds from now."""
    payload = {"sub": "user-1", "exp": int(time.time() + expires_in)}
    payload.update(claims)
    return jwt.encode(payload, _SIGNING_KEY, algorithm="HS256")


def reply(status: int = 200, payload: Any = None, content: Optional[bytes] = None) -> TransportResponse:
    if content is None:
        content = json.dumps(payload if payload is not None else {}).encode()
    return TransportResponse(status_code=status, headers={}, content=content)


PROFILE = {"user": {"id": 7, "organizations": [{"id": 42}]}}


class FakeTransport:
    """Scripted transport: hands back queued replies in order and records every call.

    A queued exception is raised instead of returned.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []
        self.closed = False

    def queue(self, *responses) -> None:
        self.responses.extend(responses)

    def send(self, method, url, headers, body=None):
        self.calls.append(SimpleNamespace(method=method, url=url, headers=dict(headers), body=body))
        if not self.responses:
            raise AssertionError(f"unexpected request {method} {url}")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def close(self):
        self.closed = True

    def json_body(self, index: int) -> Any:
        return json.loads(self.calls[index].body)


class RecordingSleep:
    """Sleeper that returns at once and remembers the requested delays."""

    def __init__(self):
        self.calls = []

    def __call__(self, seconds, cancel=None):
        self.calls.append(seconds)
        if cancel is not None and cancel.is_set():
            raise OperationCancelled("operation cancelled while waiting")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep VIDAI_* variables from the developer's shell out of the tests."""
    for key in list(os.environ):
        if key.upper().startswith("VIDAI_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def sleeper() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_http(sleeper):
    """Factory for an :class:`HttpClient` wired to a fake transport."""

    def _make(transport, token=None, max_attempts=3, debug_dir=None):
        return HttpClient(
            credential=Credential.from_token(token or make_token()),
            transport=transport,
            rate_limiter=RateLimiter(0),
            base_url=API_BASE,
            max_attempts=max_attempts,
            debug_dir=debug_dir,
            sleep=sleeper,
        )

    return _make
