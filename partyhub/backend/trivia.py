"""Trivia quiz state machine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .admission import PlanSource, admit, normalize_plan, resolve_plan
from .engine import ActionResult, idle_ids, new_id, now_ms, require_entry, require_status, require_text, touch_entry
from .errors import IllegalTransitionError, NotFoundError, ValidationError
from .state import TRIVIA, build_initial_trivia_state
from .store import SessionStore

DEFAULT_DURATION_SECONDS = 10
RESET_KEEP = ("backgroundUrl", "hostPlan")
EDITABLE_FIELDS = ("text", "options", "correctOption", "durationSeconds")


def create_trivia_store() -> SessionStore:
    return SessionStore(game_type=TRIVIA, factory=build_initial_trivia_state, keep=RESET_KEEP)


def _validate_question(question: dict[str, Any]) -> None:
    require_text(question.get("text"), "text")
    options = question.get("options")
    if not isinstance(options, list) or len(options) < 2 or not all(isinstance(option, str) for option in options):
        raise ValidationError("A question needs at least two text options")
    correct = question.get("correctOption")
    if not isinstance(correct, int) or isinstance(correct, bool) or not 0 <= correct < len(options):
        raise ValidationError("correctOption must index one of the options")
    _validate_duration(question.get("durationSeconds"))


def _validate_duration(duration: Any) -> int:
    if not isinstance(duration, int) or isinstance(duration, bool) or duration < 1:
        raise ValidationError("durationSeconds must be a positive integer")
    return duration


def current_question(state: dict[str, Any]) -> dict[str, Any] | None:
    index = state["currentQuestionIndex"]
    if 0 <= index < len(state["questions"]):
        return state["questions"][index]
    return None


@dataclass
class TriviaGame:
    store: SessionStore
    plans: PlanSource

    def state(self, event_id: str) -> dict[str, Any]:
        return self.store.get(event_id)

    def configure(self, event_id: str, changes: dict[str, Any]) -> ActionResult:
        state = self.store.get(event_id)
        fields = [key for key in RESET_KEEP if changes.get(key) is not None]
        for key in fields:
            state[key] = changes[key]
        return ActionResult(state=state, events=[{"kind": "configured", "fields": fields}])

    def add_question(
        self,
        event_id: str,
        question: dict[str, Any],
        plan: str | None = None,
        role: str | None = None,
    ) -> ActionResult:
        state = self.store.get(event_id)
        candidate = {
            "id": new_id(),
            "text": question.get("text"),
            "options": question.get("options"),
            "correctOption": question.get("correctOption"),
            "durationSeconds": question.get("durationSeconds") or DEFAULT_DURATION_SECONDS,
        }
        _validate_question(candidate)
        admit(
            plan=normalize_plan(plan) if plan else resolve_plan(state, self.plans),
            resource="triviaQuestions",
            current_count=len(state["questions"]),
            role=role,
        )
        if plan:
            state["hostPlan"] = normalize_plan(plan)
        candidate["text"] = candidate["text"].strip()
        state["questions"].append(candidate)
        return ActionResult(state=state, events=[{"kind": "question_added", "questionId": candidate["id"]}], data={"question": candidate})

    def update_question(self, event_id: str, question_id: str, changes: dict[str, Any]) -> ActionResult:
        state = self.store.get(event_id)
        index = self._question_index(state, question_id)
        updated = {**state["questions"][index], **{key: changes[key] for key in EDITABLE_FIELDS if key in changes}}
        _validate_question(updated)
        state["questions"][index] = updated
        return ActionResult(state=state, events=[{"kind": "question_updated", "questionId": question_id}])

    def delete_question(self, event_id: str, question_id: str) -> ActionResult:
        state = self.store.get(event_id)
        index = self._question_index(state, question_id)
        if state["status"] == "PLAYING" and index <= state["currentQuestionIndex"]:
            raise IllegalTransitionError("Cannot delete a question that was already asked", status=state["status"])
        del state["questions"][index]
        return ActionResult(state=state, events=[{"kind": "question_deleted", "questionId": question_id}])

    def set_duration(self, event_id: str, duration_seconds: Any) -> ActionResult:
        duration = _validate_duration(duration_seconds)
        state = self.store.get(event_id)
        for question in state["questions"]:
            question["durationSeconds"] = duration
        return ActionResult(state=state, events=[{"kind": "duration_set", "durationSeconds": duration}], data={"count": len(state["questions"])})

    def join(self, event_id: str, player_id: str | None, name: str | None, role: str | None = None) -> ActionResult:
        player_key = require_text(player_id, "playerId")
        display_name = require_text(name, "name")
        state = self.store.get(event_id)
        existing = state["players"].get(player_key)
        if existing is not None:
            touch_entry(existing)
            return ActionResult(state=state, events=[], data={"player": existing})

        admit(
            plan=resolve_plan(state, self.plans),
            resource="gameParticipants",
            current_count=len(state["players"]),
            role=role,
        )
        joined_at = now_ms()
        player = {
            "id": player_key,
            "name": display_name,
            "score": 0,
            "answers": {},
            "joinedAt": joined_at,
            "lastSeen": joined_at,
            "online": True,
        }
        state["players"][player_key] = player
        return ActionResult(state=state, events=[{"kind": "joined", "playerId": player_key}], data={"player": player})

    def start(self, event_id: str) -> ActionResult:
        state = self.store.get(event_id)
        require_status(state, ("WAITING", "FINISHED"), "start")
        if not state["questions"]:
            raise ValidationError("Add at least one question before starting")
        state["status"] = "PLAYING"
        state["currentQuestionIndex"] = -1
        state["questionStartTime"] = None
        state["isAnswerRevealed"] = False
        for player in state["players"].values():
            player["score"] = 0
            player["answers"] = {}
        return ActionResult(state=state, events=[{"kind": "started"}])

    def next_question(self, event_id: str) -> ActionResult:
        state = self.store.get(event_id)
        require_status(state, ("PLAYING",), "advance")
        next_index = state["currentQuestionIndex"] + 1
        if next_index >= len(state["questions"]):
            raise IllegalTransitionError("No more questions", status=state["status"])
        state["currentQuestionIndex"] = next_index
        state["questionStartTime"] = now_ms()
        state["isAnswerRevealed"] = False
        return ActionResult(state=state, events=[{"kind": "question_opened", "index": next_index}], data={"questionIndex": next_index})

    def reveal_answer(self, event_id: str) -> ActionResult:
        state = self.store.get(event_id)
        require_status(state, ("PLAYING",), "reveal the answer")
        if current_question(state) is None:
            raise IllegalTransitionError("No question is open", status=state["status"])
        state["isAnswerRevealed"] = True
        return ActionResult(state=state, events=[{"kind": "answer_revealed"}])

    def answer(self, event_id: str, player_id: str, question_id: str, option: int) -> ActionResult:
        state = self.store.get(event_id)
        require_status(state, ("PLAYING",), "answer")
        player = require_entry(state["players"], player_id, "Player")
        question = current_question(state)
        if question is None or question["id"] != question_id:
            raise ValidationError("Question is not the current one")
        if question_id in player["answers"]:
            raise IllegalTransitionError("Already answered", status=state["status"])
        if state["isAnswerRevealed"]:
            raise IllegalTransitionError("The answer was already revealed", status=state["status"])

        correct = question["correctOption"] == option
        player["answers"][question_id] = option
        if correct:
            player["score"] += 1
        touch_entry(player)
        return ActionResult(state=state, events=[{"kind": "answered", "playerId": player_id}], data={"correct": correct})

    def end(self, event_id: str) -> ActionResult:
        state = self.store.get(event_id)
        require_status(state, ("PLAYING",), "end")
        state["status"] = "FINISHED"
        state["currentQuestionIndex"] = -1
        return ActionResult(state=state, events=[{"kind": "finished"}])

    def leave(self, event_id: str, player_id: str) -> bool:
        state = self.store.peek(event_id)
        if state is None or player_id not in state["players"]:
            return False
        del state["players"][player_id]
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

    def _question_index(self, state: dict[str, Any], question_id: str) -> int:
        for index, question in enumerate(state["questions"]):
            if question["id"] == question_id:
                return index
        raise NotFoundError(f"Question {question_id} not found")
