"""Anonymous confessions wall."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Any

from .engine import ActionResult, new_id, require_text, utc_now_iso
from .errors import ExternalDependencyError, IllegalTransitionError, ValidationError
from .media import MediaResolver, is_album_link
from .state import CONFESSIONS, build_initial_confessions_state
from .store import SessionStore

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 140
MAX_MESSAGES = 100
STATUSES = ("ACTIVE", "STOPPED")
NOTE_COLORS = ("#fef08a", "#bfdbfe", "#bbf7d0", "#fecaca", "#ddd6fe", "#fde68a")
RESET_KEEP = ("backgroundUrl",)


def create_confessions_store() -> SessionStore:
    return SessionStore(game_type=CONFESSIONS, factory=build_initial_confessions_state, keep=RESET_KEEP)


@dataclass
class ConfessionsGame:
    store: SessionStore
    media: MediaResolver
    rng: random.Random = field(default_factory=random.Random)

    def state(self, event_id: str) -> dict[str, Any]:
        return self.store.get(event_id)

    async def configure(self, event_id: str, changes: dict[str, Any]) -> ActionResult:
        status = changes.get("status")
        if status is not None and status not in STATUSES:
            raise ValidationError(f"status must be one of {', '.join(STATUSES)}")

        background_url = changes.get("backgroundUrl")
        if is_album_link(background_url):
            background_url = await self._first_album_photo(background_url)

        # re-fetch after the await
        state = self.store.get(event_id)
        fields: list[str] = []
        if background_url is not None:
            state["backgroundUrl"] = background_url
            fields.append("backgroundUrl")
        if status is not None:
            state["status"] = status
            fields.append("status")
        return ActionResult(state=state, events=[{"kind": "configured", "fields": fields}])

    def add_message(self, event_id: str, text: str | None, author: str | None = None) -> ActionResult:
        state = self.store.get(event_id)
        if state["status"] == "STOPPED":
            raise IllegalTransitionError("The wall is not accepting messages", status=state["status"])
        body = require_text(text, "text")

        message = {
            "id": new_id(),
            "text": body[:MAX_MESSAGE_LENGTH],
            "author": (author or "").strip() or "Anonymous",
            "timestamp": utc_now_iso(),
            "color": self.rng.choice(NOTE_COLORS),
            "rotate": f"{self.rng.randint(-12, 11)}deg",
            "isNew": True,
        }
        messages = state["messages"]
        messages.append(message)
        if len(messages) > MAX_MESSAGES:
            del messages[: len(messages) - MAX_MESSAGES]
        return ActionResult(state=state, events=[{"kind": "message_added", "messageId": message["id"]}], data={"message": message})

    def leave(self, event_id: str, participant_id: str) -> bool:
        return False

    def touch(self, event_id: str, participant_id: str) -> bool:
        return False

    def idle_participants(self, event_id: str, cutoff_ms: int) -> list[str]:
        return []

    def reset(self, event_id: str) -> ActionResult:
        state = self.store.reset(event_id)
        return ActionResult(state=state, events=[{"kind": "reset", "generation": state["generation"]}])

    async def _first_album_photo(self, album_url: str) -> str:
        try:
            photos = await self.media.resolve(album_url)
        except ExternalDependencyError as exc:
            logger.warning("confessions background kept as given, album resolution failed: %s", exc)
            return album_url
        if not photos:
            logger.warning("confessions album %s has no photos, keeping link", album_url)
            return album_url
        return photos[0]
