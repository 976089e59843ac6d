"""Websocket fan-out and connection lifecycle per (game type, event)."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Protocol

from fastapi import WebSocketDisconnect

logger = logging.getLogger(__name__)

SessionKey = tuple[str, str]
LeaveHandler = Callable[[str, str, str], bool]
Publisher = Callable[[str, str], Awaitable[None]]
Toucher = Callable[[str, str, str], bool]


class StreamSocket(Protocol):
    async def accept(self) -> None: ...

    async def send_json(self, data: Any) -> None: ...


@dataclass(eq=False)
class Connection:
    websocket: StreamSocket
    game_type: str
    event_id: str
    participant_id: str | None = None
    closed: bool = False
    keepalive: asyncio.Task[None] | None = field(default=None, repr=False)

    @property
    def key(self) -> SessionKey:
        return (self.game_type, self.event_id)


class BroadcastHub:
    def __init__(self) -> None:
        self._connections: dict[SessionKey, set[Connection]] = defaultdict(set)

    def register(self, connection: Connection) -> None:
        self._connections[connection.key].add(connection)

    def unregister(self, connection: Connection) -> bool:
        """Drop a connection; True when it was still registered."""
        connections = self._connections.get(connection.key)
        if connections is None or connection not in connections:
            return False
        connections.discard(connection)
        if not connections:
            self._connections.pop(connection.key, None)
        return True

    def connections(self, game_type: str, event_id: str) -> list[Connection]:
        return list(self._connections.get((game_type, event_id), ()))

    def is_participant_connected(self, game_type: str, event_id: str, participant_id: str) -> bool:
        return any(
            connection.participant_id == participant_id
            for connection in self._connections.get((game_type, event_id), ())
        )

    async def send(self, connection: Connection, message: dict[str, Any]) -> bool:
        try:
            await connection.websocket.send_json(message)
        except (RuntimeError, OSError, WebSocketDisconnect) as exc:
            logger.warning("dropping dead connection %s/%s: %s", connection.game_type, connection.event_id, exc)
            return False
        return True

    async def send_state(self, connection: Connection, state: dict[str, Any]) -> bool:
        return await self.send(connection, {"type": "state.full", "state": state})

    async def broadcast_state(self, game_type: str, event_id: str, state: dict[str, Any]) -> int:
        """Push a snapshot to every subscriber; returns how many received it."""
        delivered = 0
        stale: list[Connection] = []
        for connection in self.connections(game_type, event_id):
            if await self.send_state(connection, state):
                delivered += 1
            else:
                stale.append(connection)
        for connection in stale:
            self.unregister(connection)
        logger.debug("broadcast %s/%s to %d connections", game_type, event_id, delivered)
        return delivered


@dataclass
class SessionTransport:
    """Opens and closes subscriber streams around a :class:`BroadcastHub`.

    ``leave`` removes a participant from its game and returns whether the
    session changed; ``publish`` broadcasts the current view.
    ``touch`` refreshes a participant's ``lastSeen`` on every successful ping.
    """

    hub: BroadcastHub
    leave: LeaveHandler
    publish: Publisher
    snapshot: Callable[[str, str], dict[str, Any]]
    keepalive_seconds: float = 30.0
    touch: Toucher | None = None

    async def open(
        self,
        websocket: StreamSocket,
        game_type: str,
        event_id: str,
        participant_id: str | None = None,
    ) -> Connection:
        await websocket.accept()
        connection = Connection(websocket=websocket, game_type=game_type, event_id=event_id, participant_id=participant_id)
        self.hub.register(connection)
        self._touch(connection)
        logger.info("client connected %s/%s participant=%s", game_type, event_id, participant_id)
        await self.hub.send(connection, {"type": "connected", "gameType": game_type, "eventId": event_id})
        await self.hub.send_state(connection, self.snapshot(game_type, event_id))
        if self.keepalive_seconds > 0:
            connection.keepalive = asyncio.get_running_loop().create_task(self._ping(connection))
        return connection

    async def close(self, connection: Connection) -> bool:
        """Tear down a connection; True when it removed a participant."""
        if connection.closed:
            return False
        connection.closed = True
        if connection.keepalive is not None:
            connection.keepalive.cancel()
            connection.keepalive = None
        self.hub.unregister(connection)
        logger.info(
            "client disconnected %s/%s participant=%s",
            connection.game_type,
            connection.event_id,
            connection.participant_id,
        )
        if connection.participant_id is None:
            return False
        if self.hub.is_participant_connected(connection.game_type, connection.event_id, connection.participant_id):
            return False
        if not self.leave(connection.game_type, connection.event_id, connection.participant_id):
            return False
        await self.publish(connection.game_type, connection.event_id)
        return True

    async def _ping(self, connection: Connection) -> None:
        while True:
            await asyncio.sleep(self.keepalive_seconds)
            if not await self.hub.send(connection, {"type": "ping"}):
                return
            self._touch(connection)

    def _touch(self, connection: Connection) -> None:
        if self.touch is not None and connection.participant_id is not None:
            self.touch(connection.game_type, connection.event_id, connection.participant_id)
