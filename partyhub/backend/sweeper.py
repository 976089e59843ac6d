"""Periodic eviction of participants who went quiet without disconnecting."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Mapping

from .engine import now_ms
from .hub import BroadcastHub, Publisher

logger = logging.getLogger(__name__)


@dataclass
class IdleSweeper:
    """Frees plan slots held by participants with a stale ``lastSeen``.

    A participant with an open connection is never evicted; its keepalive
    pings keep ``lastSeen`` fresh anyway.
    """

    games: Mapping[str, Any]
    hub: BroadcastHub
    publish: Publisher
    idle_seconds: float = 600.0
    interval_seconds: float = 60.0

    async def sweep_once(self, now: int | None = None) -> int:
        """Evict idle participants across all sessions; returns how many left."""
        cutoff = (now_ms() if now is None else now) - int(self.idle_seconds * 1000)
        evicted = 0
        for game_type, game in self.games.items():
            for event_id in game.store.event_ids():
                removed = [
                    participant_id
                    for participant_id in game.idle_participants(event_id, cutoff)
                    if not self.hub.is_participant_connected(game_type, event_id, participant_id)
                    and game.leave(event_id, participant_id)
                ]
                if not removed:
                    continue
                evicted += len(removed)
                logger.info("evicted %d idle participants from %s/%s", len(removed), game_type, event_id)
                await self.publish(game_type, event_id)
        return evicted

    async def run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            await self.sweep_once()
