"""In-process session stores, one per game type."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

SessionFactory = Callable[[str], dict[str, Any]]


@dataclass
class SessionStore:
    """Lazily created live session per event.

    Records are owned by the game's state machine; callers must re-fetch
    through :meth:`get` after any ``await`` instead of holding a record.
    """

    game_type: str
    factory: SessionFactory
    keep: tuple[str, ...] = ()
    _sessions: dict[str, dict[str, Any]] = field(default_factory=dict, init=False, repr=False)

    def get(self, event_id: str) -> dict[str, Any]:
        session = self._sessions.get(event_id)
        if session is None:
            session = self.factory(event_id)
            self._sessions[event_id] = session
        return session

    def peek(self, event_id: str) -> dict[str, Any] | None:
        return self._sessions.get(event_id)

    def reset(self, event_id: str) -> dict[str, Any]:
        """Replace the session with a fresh one, keeping whitelisted fields."""
        previous = self._sessions.get(event_id)
        fresh = self.factory(event_id)
        if previous is not None:
            for key in self.keep:
                if key in previous:
                    fresh[key] = previous[key]
            fresh["generation"] = int(previous.get("generation", 0)) + 1
        self._sessions[event_id] = fresh
        return fresh

    def event_ids(self) -> list[str]:
        return list(self._sessions)

    def __len__(self) -> int:
        return len(self._sessions)
