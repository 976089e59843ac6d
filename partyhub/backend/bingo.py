"""Photo bingo state machine and win detection."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any

from .admission import PlanSource, admit, resolve_plan
from .engine import ActionResult, idle_ids, new_id, now_ms, require_entry, require_status, touch_entry
from .errors import IllegalTransitionError, NotFoundError, ValidationError
from .state import BINGO, build_initial_bingo_state
from .store import SessionStore

GRID_SIZE = 9

# Index triples over the prompt list order: rows, columns, diagonals.
WINNING_LINES: tuple[tuple[int, int, int], ...] = (
    (0, 1, 2),
    (3, 4, 5),
    (6, 7, 8),
    (0, 3, 6),
    (1, 4, 7),
    (2, 5, 8),
    (0, 4, 8),
    (2, 4, 6),
)

RESET_KEEP = ("googlePhotosLink", "customImageUrl", "hostPlan")


def create_bingo_store() -> SessionStore:
    return SessionStore(game_type=BINGO, factory=build_initial_bingo_state, keep=RESET_KEEP)


def evaluate_card(cells: dict[str, Any], prompts: list[dict[str, Any]]) -> tuple[int, bool]:
    """Return ``(completedLines, isFullHouse)`` for a card's filled cells."""
    filled = {str(prompt_id) for prompt_id in cells}
    positions = {index for index, prompt in enumerate(prompts[:GRID_SIZE]) if str(prompt.get("id")) in filled}
    lines = sum(1 for line in WINNING_LINES if all(index in positions for index in line))
    return lines, len(positions) == GRID_SIZE


def _refresh_card(card: dict[str, Any], prompts: list[dict[str, Any]]) -> None:
    card["completedLines"], card["isFullHouse"] = evaluate_card(card["cells"], prompts)


def _empty_card(player_id: str) -> dict[str, Any]:
    return {"playerId": player_id, "cells": {}, "completedLines": 0, "isFullHouse": False, "submittedAt": None}


def _validate_prompts(prompts: Any) -> list[dict[str, Any]]:
    if not isinstance(prompts, list) or len(prompts) != GRID_SIZE:
        raise ValidationError(f"Exactly {GRID_SIZE} prompts are required")
    cleaned: list[dict[str, Any]] = []
    seen: set[str] = set()
    for prompt in prompts:
        if not isinstance(prompt, dict) or prompt.get("id") is None or not str(prompt.get("text", "")).strip():
            raise ValidationError("Every prompt needs an id and text")
        key = str(prompt["id"])
        if key in seen:
            raise ValidationError(f"Duplicate prompt id {key}")
        seen.add(key)
        cleaned.append(dict(prompt))
    return cleaned


@dataclass
class BingoGame:
    store: SessionStore
    plans: PlanSource

    def state(self, event_id: str) -> dict[str, Any]:
        return self.store.get(event_id)

    def join(self, event_id: str, name: str | None, role: str | None = None) -> ActionResult:
        state = self.store.get(event_id)
        admit(
            plan=resolve_plan(state, self.plans),
            resource="gameParticipants",
            current_count=len(state["players"]),
            role=role,
        )
        player_id = new_id()
        joined_at = now_ms()
        player = {
            "id": player_id,
            "name": (name or "").strip() or "Anonymous Player",
            "joinedAt": joined_at,
            "lastSeen": joined_at,
            "online": True,
        }
        state["players"][player_id] = player
        state["cards"][player_id] = _empty_card(player_id)
        return ActionResult(state=state, events=[{"kind": "joined", "playerId": player_id}], data={"player": player})

    def configure(self, event_id: str, changes: dict[str, Any]) -> ActionResult:
        state = self.store.get(event_id)
        applied = {key: changes[key] for key in RESET_KEEP if changes.get(key) is not None}
        state.update(applied)
        return ActionResult(state=state, events=[{"kind": "configured", "fields": sorted(applied)}])

    def configure_prompts(self, event_id: str, prompts: Any) -> ActionResult:
        state = self.store.get(event_id)
        cleaned = _validate_prompts(prompts)
        require_status(state, ("WAITING", "REVIEW", "WINNER"), "change prompts")
        state["prompts"] = cleaned
        for card in state["cards"].values():
            _refresh_card(card, cleaned)
        return ActionResult(state=state, events=[{"kind": "prompts_updated"}])

    def start(self, event_id: str) -> ActionResult:
        state = self.store.get(event_id)
        require_status(state, ("WAITING", "WINNER"), "start")
        state["status"] = "PLAYING"
        state["winner"] = None
        state["submissions"] = []
        state["cards"] = {player_id: _empty_card(player_id) for player_id in state["players"]}
        return ActionResult(state=state, events=[{"kind": "started"}])

    def upload_cell(self, event_id: str, player_id: str, prompt_id: Any, photo_url: str) -> ActionResult:
        state = self.store.get(event_id)
        require_status(state, ("PLAYING",), "upload a photo")
        card = require_entry(state["cards"], player_id, "Player")
        if card.get("submittedAt"):
            raise IllegalTransitionError("Card already submitted", status=state["status"])
        key = str(prompt_id)
        if key not in {str(prompt["id"]) for prompt in state["prompts"]}:
            raise ValidationError(f"Unknown prompt {key}")
        if not photo_url:
            raise ValidationError("photoUrl is required")

        card["cells"][key] = {"promptId": key, "photoUrl": photo_url, "timestamp": now_ms()}
        if player_id in state["players"]:
            touch_entry(state["players"][player_id])
        _refresh_card(card, state["prompts"])
        return ActionResult(
            state=state,
            events=[{"kind": "cell_uploaded", "playerId": player_id, "promptId": key}],
            data={"completedLines": card["completedLines"], "isFullHouse": card["isFullHouse"]},
        )

    def submit(self, event_id: str, player_id: str) -> ActionResult:
        state = self.store.get(event_id)
        player = state["players"].get(player_id)
        card = state["cards"].get(player_id)
        if player is None or card is None:
            raise NotFoundError(f"Player {player_id} not found")
        if card.get("submittedAt"):
            raise IllegalTransitionError("Card already submitted", status=state["status"])
        require_status(state, ("PLAYING", "REVIEW"), "submit a card")
        if card["completedLines"] == 0 and not card["isFullHouse"]:
            raise IllegalTransitionError("Complete at least one line before submitting", status=state["status"])

        card["submittedAt"] = now_ms()
        touch_entry(player)
        submission = {
            "id": new_id(),
            "player": copy.deepcopy(player),
            "card": copy.deepcopy(card),
            "status": "PENDING",
            "submittedAt": card["submittedAt"],
        }
        # Multiple winners per round: submitting never forces REVIEW.
        state["submissions"].append(submission)
        return ActionResult(
            state=state,
            events=[{"kind": "submitted", "playerId": player_id, "submissionId": submission["id"]}],
            data={"submissionId": submission["id"]},
        )

    def stop(self, event_id: str) -> ActionResult:
        state = self.store.get(event_id)
        require_status(state, ("PLAYING", "REVIEW"), "stop")
        state["status"] = "REVIEW"
        return ActionResult(state=state, events=[{"kind": "stopped"}])

    def resume(self, event_id: str) -> ActionResult:
        state = self.store.get(event_id)
        require_status(state, ("REVIEW",), "resume")
        state["status"] = "PLAYING"
        return ActionResult(state=state, events=[{"kind": "resumed"}])

    def finish(self, event_id: str) -> ActionResult:
        state = self.store.get(event_id)
        require_status(state, ("PLAYING", "REVIEW"), "finish")
        state["status"] = "WINNER"
        approved = [submission for submission in state["submissions"] if submission["status"] == "APPROVED"]
        state["winner"] = [_winner_entry(submission) for submission in approved] or None
        return ActionResult(state=state, events=[{"kind": "finished", "winners": len(approved)}])

    def approve(self, event_id: str, submission_id: str) -> ActionResult:
        return self._moderate(event_id, submission_id, "APPROVED")

    def reject(self, event_id: str, submission_id: str) -> ActionResult:
        return self._moderate(event_id, submission_id, "REJECTED")

    def _moderate(self, event_id: str, submission_id: str, status: str) -> ActionResult:
        state = self.store.get(event_id)
        submission = next((entry for entry in state["submissions"] if entry["id"] == submission_id), None)
        if submission is None:
            raise NotFoundError(f"Submission {submission_id} not found")
        events: list[dict[str, Any]] = []
        if submission["status"] != status:
            submission["status"] = status
            events.append({"kind": "moderated", "submissionId": submission_id, "status": status})
        data = {"winner": _winner_entry(submission)} if status == "APPROVED" else {}
        return ActionResult(state=state, events=events, data=data)

    def leave(self, event_id: str, player_id: str) -> bool:
        state = self.store.peek(event_id)
        if state is None or player_id not in state["players"]:
            return False
        del state["players"][player_id]
        state["cards"].pop(player_id, None)
        return True

    def touch(self, event_id: str, player_id: str) -> bool:
        state = self.store.peek(event_id)
        if state is None or player_id not in state["players"]:
            return False
        touch_entry(state["players"][player_id])
        return True

    def idle_participants(self, event_id: str, cutoff_ms: int) -> list[str]:
        state = self.store.peek(event_id)
        return idle_ids(state["players"].values(), cutoff_ms) if state is not None else []

    def reset(self, event_id: str) -> ActionResult:
        state = self.store.reset(event_id)
        return ActionResult(state=state, events=[{"kind": "reset", "generation": state["generation"]}])


def _winner_entry(submission: dict[str, Any]) -> dict[str, Any]:
    return {
        "player": submission["player"],
        "type": "BINGO" if submission["card"]["isFullHouse"] else "LINE",
        "submissionId": submission["id"],
    }
