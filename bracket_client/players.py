from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Final

from .models import EntityId, Player

if TYPE_CHECKING:
    from .api import BracketApi

log: Final = logging.getLogger("bracket-client")


class PlayerDirectoryCache:
    """Resolve player ids for one round view.

    A cache lives for a single reload; callers build a new one each time so
    player records are never older than the round they are shown with.
    """

    def __init__(self, api: BracketApi, *, lookup_timeout: float | None = 5.0) -> None:
        self._api = api
        self._lookup_timeout = lookup_timeout
        self._players: dict[EntityId, Player] = {}
        self.lookup_count = 0

    async def _lookup(self, player_id: EntityId) -> Player:
        self.lookup_count += 1
        if self._lookup_timeout is None:
            return await self._api.get_player(player_id)
        return await asyncio.wait_for(
            self._api.get_player(player_id), timeout=self._lookup_timeout
        )

    async def resolve(self, ids: Iterable[EntityId | None]) -> dict[EntityId, Player]:
        """Look up every unique id concurrently.

        Ids whose lookup fails are left out of the returned mapping; the batch
        itself never fails because of a single player.
        """
        unique_ids = list(dict.fromkeys(pid for pid in ids if pid is not None))
        if not unique_ids:
            return {}

        results = await asyncio.gather(
            *(self._lookup(player_id) for player_id in unique_ids),
            return_exceptions=True,
        )

        resolved: dict[EntityId, Player] = {}
        for player_id, result in zip(unique_ids, results):
            if isinstance(result, Player):
                resolved[player_id] = result
                continue
            if isinstance(result, asyncio.TimeoutError):
                log.warning("Player lookup for %s timed out", player_id)
            elif isinstance(result, Exception):
                log.warning("Player lookup for %s failed: %s", player_id, result)
            elif isinstance(result, BaseException):
                raise result
            else:
                log.warning("Player lookup for %s returned no player", player_id)
        self._players.update(resolved)
        return resolved

    def get(self, player_id: EntityId | None) -> Player | None:
        if player_id is None:
            return None
        return self._players.get(player_id)

    def __contains__(self, player_id: object) -> bool:
        return player_id in self._players

    def __len__(self) -> int:
        return len(self._players)


__all__ = ["PlayerDirectoryCache"]
