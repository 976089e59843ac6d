"""Raffle state machine with a delayed, reset-safe winner reveal."""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from .admission import PlanSource, admit, resolve_plan
from .config import DEFAULT_MEDIA_URL
from .engine import ActionResult, idle_ids, new_id, now_ms, require_status, require_text, touch_entry, utc_now_iso
from .errors import ExternalDependencyError, IllegalTransitionError, ValidationError
from .media import MediaResolver
from .state import RAFFLE, build_initial_raffle_state
from .store import SessionStore

logger = logging.getLogger(__name__)

MODES = ("PHOTO", "PARTICIPANT")
RESET_KEEP = ("googlePhotosUrl", "customImageUrl", "mode", "hostPlan", "config")

RevealCallback = Callable[[str], Awaitable[None]]


def create_raffle_store() -> SessionStore:
    return SessionStore(game_type=RAFFLE, factory=build_initial_raffle_state, keep=RESET_KEEP)


@dataclass
class RaffleGame:
    store: SessionStore
    plans: PlanSource
    media: MediaResolver
    countdown_seconds: float = 5.0
    fallback_media_url: str = DEFAULT_MEDIA_URL
    rng: random.Random = field(default_factory=random.Random)
    on_reveal: RevealCallback | None = None
    _reveals: dict[str, asyncio.Task[None]] = field(default_factory=dict, init=False, repr=False)

    def state(self, event_id: str) -> dict[str, Any]:
        return self.store.get(event_id)

    def configure(self, event_id: str, changes: dict[str, Any]) -> ActionResult:
        state = self.store.get(event_id)
        mode = changes.get("mode")
        if mode is not None and mode not in MODES:
            raise ValidationError(f"mode must be one of {', '.join(MODES)}")

        applied: list[str] = []
        for key in ("googlePhotosUrl", "customImageUrl", "mode", "hostPlan"):
            if changes.get(key) is not None:
                state[key] = changes[key]
                applied.append(key)
        if changes.get("allowRegistration") is not None:
            state["config"] = {**state["config"], "allowRegistration": bool(changes["allowRegistration"])}
            applied.append("allowRegistration")
        return ActionResult(state=state, events=[{"kind": "configured", "fields": applied}])

    def join(self, event_id: str, name: str | None, role: str | None = None) -> ActionResult:
        display_name = require_text(name, "name")
        state = self.store.get(event_id)
        for participant in state["participants"].values():
            if participant["name"].lower() == display_name.lower():
                touch_entry(participant)
                return ActionResult(state=state, events=[], data={"participant": participant})
        if not state["config"].get("allowRegistration", True):
            raise IllegalTransitionError("Registration is closed", status=state["status"])

        admit(
            plan=resolve_plan(state, self.plans),
            resource="gameParticipants",
            current_count=len(state["participants"]),
            role=role,
        )
        joined_at = now_ms()
        participant = {"id": new_id(), "name": display_name, "joinedAt": joined_at, "lastSeen": joined_at}
        state["participants"][participant["id"]] = participant
        return ActionResult(
            state=state,
            events=[{"kind": "joined", "participantId": participant["id"]}],
            data={"participant": participant},
        )

    def start(self, event_id: str) -> ActionResult:
        state = self.store.get(event_id)
        require_status(state, ("IDLE", "WINNER"), "start")
        state["status"] = "WAITING"
        state["winner"] = None
        state["pendingWinner"] = None
        state["countdownEndsAt"] = None
        return ActionResult(state=state, events=[{"kind": "started"}])

    async def draw(self, event_id: str) -> ActionResult:
        """Pick a winner now and reveal it once the countdown elapses."""
        state = self.store.get(event_id)
        require_status(state, ("WAITING",), "draw")
        generation = state["generation"]

        if state["mode"] == "PARTICIPANT":
            participant_ids = list(state["participants"])
            if not participant_ids:
                raise ValidationError("No participants registered")
            chosen = state["participants"][self.rng.choice(participant_ids)]
            winner = {"type": "PARTICIPANT", "participant": dict(chosen), "timestamp": utc_now_iso()}
        else:
            photos = await self._candidate_photos(state["googlePhotosUrl"], state["customImageUrl"])
            state = self.store.get(event_id)
            if state["generation"] != generation:
                raise IllegalTransitionError("Raffle was reset while the draw was in progress", status=state["status"])
            require_status(state, ("WAITING",), "draw")
            winner = {"type": "PHOTO", "photoUrl": self.rng.choice(photos), "timestamp": utc_now_iso()}

        state["pendingWinner"] = winner
        state["status"] = "COUNTDOWN"
        state["countdownEndsAt"] = now_ms() + int(self.countdown_seconds * 1000)
        self._schedule_reveal(event_id, generation)
        return ActionResult(state=state, events=[{"kind": "drawn", "generation": generation}])

    def reveal(self, event_id: str, generation: int) -> ActionResult:
        state = self.store.get(event_id)
        if state["generation"] != generation or state["status"] != "COUNTDOWN":
            logger.info(
                "raffle reveal skipped event=%s generation=%s current=%s status=%s",
                event_id,
                generation,
                state["generation"],
                state["status"],
            )
            return ActionResult(state=state, events=[])
        state["winner"] = state["pendingWinner"]
        state["pendingWinner"] = None
        state["countdownEndsAt"] = None
        state["status"] = "WINNER"
        return ActionResult(state=state, events=[{"kind": "revealed"}])

    def leave(self, event_id: str, participant_id: str) -> bool:
        state = self.store.peek(event_id)
        if state is None or participant_id not in state["participants"]:
            return False
        del state["participants"][participant_id]
        return True

    def touch(self, event_id: str, participant_id: str) -> bool:
        state = self.store.peek(event_id)
        if state is None or participant_id not in state["participants"]:
            return False
        touch_entry(state["participants"][participant_id])
        return True

    def idle_participants(self, event_id: str, cutoff_ms: int) -> list[str]:
        state = self.store.peek(event_id)
        return idle_ids(state["participants"].values(), cutoff_ms) if state is not None else []

    def reset(self, event_id: str) -> ActionResult:
        task = self._reveals.pop(event_id, None)
        if task is not None:
            task.cancel()
        state = self.store.reset(event_id)
        return ActionResult(state=state, events=[{"kind": "reset", "generation": state["generation"]}])

    def pending_reveal(self, event_id: str) -> asyncio.Task[None] | None:
        return self._reveals.get(event_id)

    async def _candidate_photos(self, album_url: str, custom_image_url: str) -> list[str]:
        if album_url:
            try:
                photos = await self.media.resolve(album_url)
            except ExternalDependencyError as exc:
                logger.warning("raffle album resolution failed, using fallback media: %s", exc)
            else:
                if photos:
                    return photos
                logger.warning("raffle album %s has no photos, using fallback media", album_url)
        return [custom_image_url or self.fallback_media_url]

    def _schedule_reveal(self, event_id: str, generation: int) -> None:
        task = asyncio.get_running_loop().create_task(self._reveal_later(event_id, generation))
        self._reveals[event_id] = task

    async def _reveal_later(self, event_id: str, generation: int) -> None:
        try:
            await asyncio.sleep(self.countdown_seconds)
            result = self.reveal(event_id, generation)
            if result.changed and self.on_reveal is not None:
                await self.on_reveal(event_id)
        finally:
            if self._reveals.get(event_id) is asyncio.current_task():
                self._reveals.pop(event_id, None)
