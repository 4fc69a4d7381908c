"""Locally persisted session record and cookie jar."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Final

import aiohttp

from .errors import Forbidden, Unauthorized
from .models import SessionRecord, utc_now_ms

if TYPE_CHECKING:
    from .api import BracketApi

log = logging.getLogger(__name__)

SESSION_TTL_MS: Final = 15 * 60 * 1000


def check_session(
    record: SessionRecord | None, *, organizer: bool = False
) -> SessionRecord:
    """Validate an in-memory session before any server call is made."""
    if record is None:
        raise Unauthorized("Please login to continue")
    if record.is_expired():
        raise Unauthorized("Session expired. Please login again.")
    if organizer and not record.is_organizer:
        raise Forbidden("Only organizers can perform this action")
    return record


class SessionStore:
    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def cookie_path(self) -> Path:
        return self._path.with_suffix(".cookies")

    def load(self) -> SessionRecord | None:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            log.warning("Ignoring unreadable session file %s", self._path)
            return None
        if not isinstance(data, dict):
            return None
        return SessionRecord.from_dict(data)

    def save(self, record: SessionRecord) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(record.to_dict()), encoding="utf-8")

    def clear(self) -> None:
        for path in (self._path, self.cookie_path):
            path.unlink(missing_ok=True)

    def require(self, *, now_ms: int | None = None) -> SessionRecord:
        """Return a valid session or clear local state and raise ``Unauthorized``."""
        record = self.load()
        if record is None:
            raise Unauthorized("Please login to continue")
        if record.is_expired(now_ms):
            log.info("Session for %s expired", record.email)
            self.clear()
            raise Unauthorized("Session expired. Please login again.")
        return record

    def record_login(
        self,
        user: Mapping[str, object],
        *,
        now_ms: int | None = None,
        ttl_ms: int = SESSION_TTL_MS,
    ) -> SessionRecord:
        issued_at = utc_now_ms() if now_ms is None else now_ms
        record = SessionRecord(
            role=str(user.get("role") or ""),
            email=str(user.get("email") or ""),
            expiry=issued_at + ttl_ms,
        )
        self.save(record)
        return record

    def load_cookies(self, jar: aiohttp.CookieJar) -> None:
        if self.cookie_path.exists():
            jar.load(self.cookie_path)

    def save_cookies(self, jar: aiohttp.CookieJar) -> None:
        self.cookie_path.parent.mkdir(parents=True, exist_ok=True)
        jar.save(self.cookie_path)


async def login(
    api: BracketApi, store: SessionStore, email: str, password: str
) -> SessionRecord:
    """Authenticate against the API and persist the resulting session."""
    store.clear()
    user = await api.login(email, password)
    if not user.get("email"):
        user["email"] = email
    record = store.record_login(user)
    jar = api.cookie_jar
    if isinstance(jar, aiohttp.CookieJar):
        store.save_cookies(jar)
    log.info("Logged in as %s (%s)", record.email, record.role or "no role")
    return record


__all__ = ["SESSION_TTL_MS", "SessionStore", "check_session", "login"]
