from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from typing import Final

import aiohttp
from aiohttp.abc import AbstractCookieJar

from .config import ClientConfig
from .errors import (
    BracketError,
    Conflict,
    Forbidden,
    InvalidArgument,
    NetworkFailure,
    NotFound,
    PreconditionFailed,
    Unauthorized,
)
from .models import (
    EntityId,
    Match,
    Player,
    Round,
    RoundSnapshot,
    Tournament,
    TournamentCompletion,
)

log: Final = logging.getLogger("bracket-client")

_STATUS_ERRORS: Final[dict[int, type[BracketError]]] = {
    400: InvalidArgument,
    401: Unauthorized,
    403: Forbidden,
    404: NotFound,
    409: Conflict,
    412: PreconditionFailed,
    422: InvalidArgument,
}


def error_for_status(status: int, message: str) -> BracketError:
    """Map an HTTP error status onto the client's error kinds."""
    if status == 429 or status >= 500:
        return NetworkFailure(message, status=status)
    error_cls = _STATUS_ERRORS.get(status, BracketError)
    return error_cls(message, status=status)


def _extract_message(body: object, fallback: str) -> str:
    if isinstance(body, Mapping):
        message = body.get("message") or body.get("error")
        if message:
            return str(message)
    return fallback


def _unwrap(payload: object, key: str) -> object:
    if isinstance(payload, Mapping) and key in payload:
        return payload[key]
    return payload


class BracketApi:
    """Async client for the tournament REST API.

    One ``aiohttp.ClientSession`` is kept per instance so the session cookie
    issued at login is sent on every call. Transient failures are retried
    with exponential backoff, but only for idempotent calls.
    """

    def __init__(
        self,
        base_url: str,
        *,
        cookie_jar: AbstractCookieJar | None = None,
        max_retries: int = 2,
        retry_backoff: float = 0.5,
        request_timeout: float = 10.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._cookie_jar = cookie_jar
        self._max_retries = max(0, max_retries)
        self._retry_backoff = retry_backoff
        self._timeout = aiohttp.ClientTimeout(total=request_timeout)
        self._session: aiohttp.ClientSession | None = None

    @classmethod
    def from_config(
        cls,
        config: ClientConfig,
        *,
        cookie_jar: AbstractCookieJar | None = None,
    ) -> BracketApi:
        return cls(
            config.server_url,
            cookie_jar=cookie_jar,
            max_retries=config.max_retries,
            retry_backoff=config.retry_backoff,
            request_timeout=config.request_timeout,
        )

    async def __aenter__(self) -> BracketApi:
        self._ensure_session()
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        await self.close()

    @property
    def cookie_jar(self) -> AbstractCookieJar:
        return self._ensure_session().cookie_jar

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            if self._cookie_jar is None:
                # The API commonly runs on localhost during development.
                self._cookie_jar = aiohttp.CookieJar(unsafe=True)
            self._session = aiohttp.ClientSession(
                cookie_jar=self._cookie_jar, timeout=self._timeout
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    # ----- Transport -----
    async def _send(
        self, method: str, path: str, payload: Mapping[str, object] | None
    ) -> object:
        session = self._ensure_session()
        url = f"{self._base_url}{path}"
        try:
            async with session.request(method, url, json=payload) as response:
                text = await response.text()
                status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise NetworkFailure(f"{method} {path} failed: {exc}") from exc

        body: object = None
        if text:
            try:
                body = json.loads(text)
            except json.JSONDecodeError:
                if status < 400:
                    raise BracketError(
                        f"{method} {path} returned a non-JSON body", status=status
                    ) from None
                body = None

        if status >= 400:
            message = _extract_message(body, f"{method} {path} failed ({status})")
            raise error_for_status(status, message)
        return body

    async def request(
        self,
        method: str,
        path: str,
        *,
        payload: Mapping[str, object] | None = None,
        idempotent: bool | None = None,
    ) -> object:
        if idempotent is None:
            idempotent = method.upper() == "GET"

        for attempt in range(self._max_retries + 1):
            try:
                return await self._send(method, path, payload)
            except NetworkFailure as exc:
                if not idempotent or attempt >= self._max_retries:
                    log.error("%s %s failed: %s", method, path, exc)
                    raise
                delay = self._retry_backoff * (2**attempt)
                log.warning(
                    "Transient failure on %s %s (attempt %d/%d): %s; retrying in %.2fs",
                    method,
                    path,
                    attempt + 1,
                    self._max_retries,
                    exc,
                    delay,
                )
                await asyncio.sleep(delay)

        # Unreachable: the final attempt either returns or raises.
        raise NetworkFailure(f"{method} {path} failed: retries exhausted")

    # ----- Session -----
    async def login(self, email: str, password: str) -> dict[str, object]:
        body = await self.request(
            "POST", "/users/login", payload={"email": email, "password": password}
        )
        user = _unwrap(_unwrap(body, "validateUser"), "user")
        if not isinstance(user, Mapping):
            raise Unauthorized("Login response did not include a user")
        return dict(user)

    # ----- Tournaments -----
    async def get_tournament(self, tournament_id: EntityId) -> Tournament:
        body = await self.request("GET", f"/tournaments/{tournament_id}")
        data = _unwrap(body, "tournament")
        if not isinstance(data, Mapping):
            raise NotFound(f"Tournament {tournament_id} not found", status=404)
        return Tournament.from_dict(data)

    async def _tournament_list(self, path: str) -> list[Tournament]:
        body = await self.request("GET", path)
        data = _unwrap(body, "tournaments")
        if data is None:
            return []
        if not isinstance(data, list):
            raise BracketError(f"Unexpected tournament list payload from {path}")
        return [Tournament.from_dict(item) for item in data]

    async def list_tournaments(self) -> list[Tournament]:
        return await self._tournament_list("/tournaments/all")

    async def my_tournaments(self) -> list[Tournament]:
        """Tournaments the logged-in user participates in."""
        return await self._tournament_list("/tournaments/my-tournaments")

    async def get_participants(self, tournament_id: EntityId) -> list[Player]:
        body = await self.request("GET", f"/tournaments/{tournament_id}/participants")
        data = _unwrap(body, "players")
        if data is None:
            return []
        if not isinstance(data, list):
            raise BracketError(
                f"Unexpected participants payload for tournament {tournament_id}"
            )
        return [Player.from_dict(item) for item in data]

    async def close_registration(self, tournament_id: EntityId) -> object:
        return await self.request(
            "POST", f"/tournaments/{tournament_id}/close-registration"
        )

    async def participate(self, tournament_id: EntityId) -> object:
        return await self.request("POST", f"/tournaments/{tournament_id}/participate")

    async def register_players(
        self, tournament_id: EntityId, player_ids: list[EntityId]
    ) -> object:
        return await self.request(
            "POST",
            f"/tournaments/{tournament_id}/register-players",
            payload={"playerIds": list(player_ids)},
        )

    # ----- Rounds -----
    async def create_round(
        self, tournament_id: EntityId, round_number: int
    ) -> RoundSnapshot:
        body = await self.request(
            "POST",
            f"/rounds/{tournament_id}/rounds/{round_number}",
            idempotent=True,
        )
        if not isinstance(body, Mapping):
            raise BracketError("Round creation returned an empty body")
        return RoundSnapshot.from_dict(body)

    async def get_current_round(self, tournament_id: EntityId) -> Round:
        body = await self.request("GET", f"/rounds/{tournament_id}/current")
        data = _unwrap(body, "round")
        if not isinstance(data, Mapping) or not data:
            raise NotFound(f"Tournament {tournament_id} has no rounds", status=404)
        return Round.from_dict(data)

    async def get_round_matches(self, round_id: EntityId) -> list[Match]:
        body = await self.request("GET", f"/rounds/{round_id}/matches")
        data = _unwrap(body, "matches")
        if data is None:
            return []
        if not isinstance(data, list):
            raise BracketError(f"Unexpected matches payload for round {round_id}")
        return [Match.from_dict(item) for item in data]

    async def declare_winner(
        self, match_id: EntityId, winner_id: EntityId | None, result: str
    ) -> object:
        return await self.request(
            "PUT",
            f"/rounds/{match_id}/winner",
            payload={"winnerId": winner_id, "result": result},
        )

    async def declare_random_winners(self, round_id: EntityId) -> list[Match]:
        body = await self.request(
            "POST", f"/rounds/{round_id}/declare-random-winners"
        )
        data = _unwrap(body, "matches")
        if not isinstance(data, list):
            return []
        return [Match.from_dict(item) for item in data]

    async def next_round(
        self, tournament_id: EntityId, round_id: EntityId
    ) -> RoundSnapshot | TournamentCompletion | None:
        """Ask the server to pair the next round.

        Returns ``None`` when the server acknowledged the request without
        echoing the new round.
        """
        body = await self.request(
            "POST", f"/rounds/{tournament_id}/rounds/{round_id}/next"
        )
        if not isinstance(body, Mapping):
            return None
        if TournamentCompletion.is_completion_payload(body):
            return TournamentCompletion.from_dict(body)
        if isinstance(body.get("round"), Mapping):
            return RoundSnapshot.from_dict(body)
        return None

    # ----- Players -----
    async def get_player(self, player_id: EntityId) -> Player:
        body = await self.request("GET", f"/users/{player_id}")
        data = _unwrap(body, "user")
        if not isinstance(data, Mapping):
            raise NotFound(f"Player {player_id} not found", status=404)
        return Player.from_dict(data)

    async def list_players(self) -> list[Player]:
        body = await self.request("GET", "/users/all")
        data = _unwrap(body, "users")
        if not isinstance(data, list):
            raise BracketError("Unexpected user list payload")
        return [Player.from_dict(item) for item in data]


__all__ = ["BracketApi", "error_for_status"]
