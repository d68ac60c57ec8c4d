"""Internal credential and team-scope state — not part of the public API."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import jwt

from .exceptions import VidaiError
from .models import Profile

if TYPE_CHECKING:
    from ._http import HttpClient

logger = logging.getLogger("vidai")


@dataclass(frozen=True)
class Credential:
    """Bearer token plus the expiry decoded from its ``exp`` claim.

    The signature is not verified; the expiry is only used to refuse
    requests locally once the token is known to be dead.
    """

    token: str
    expires_at: datetime

    @classmethod
    def from_token(cls, token: str) -> "Credential":
        try:
            claims = jwt.decode(token, options={"verify_signature": False})
        except jwt.PyJWTError as exc:
            raise VidaiError(f"couldn't parse token: {exc}") from exc
        exp = claims.get("exp")
        if not isinstance(exp, (int, float)) or isinstance(exp, bool):
            raise VidaiError("couldn't parse token expiration")
        return cls(token=token, expires_at=datetime.fromtimestamp(exp, tz=timezone.utc))

    def expired(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at


class TeamScope:
    """Team id every task is created under, resolved once per client.

    The first caller fetches ``profile`` and stores the first organization
    id (or the user's own id); concurrent callers block on the same lock
    and reuse the stored value.
    """

    def __init__(self, team_id: int | None = None):
        self._team_id = team_id
        self._lock = threading.Lock()

    @property
    def team_id(self) -> int | None:
        return self._team_id

    def resolve(self, http: "HttpClient", cancel: threading.Event | None = None) -> int:
        if self._team_id is not None:
            return self._team_id
        with self._lock:
            if self._team_id is None:
                profile = http.get("profile", shape=Profile, cancel=cancel)
                self._team_id = profile.team_id()
                logger.debug("resolved team scope %s", self._team_id)
        return self._team_id
