"""Social-deduction ("impostor") state machine."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Any

from .admission import PlanSource, admit, resolve_plan
from .engine import ActionResult, Rule, apply_rules, idle_ids, now_ms, require_status, require_text, touch_entry
from .errors import NotFoundError, ValidationError
from .state import IMPOSTOR, build_initial_impostor_state
from .store import SessionStore

IMPOSTOR_ROLE = "IMPOSTOR"
CIVILIAN_ROLE = "CIVILIAN"

CONFIG_KEYS = ("playerCount", "impostorCount", "mainPrompt", "impostorPrompt", "knowsRole", "customImageUrl")
RESET_KEEP = ("config", "hostPlan")

AVATAR_URL = "https://api.dicebear.com/7.x/avataaars/svg?seed={seed}"


def create_impostor_store() -> SessionStore:
    return SessionStore(game_type=IMPOSTOR, factory=build_initial_impostor_state, keep=RESET_KEEP)


def _all_answers_in(state: dict[str, Any]) -> bool:
    players = state["activePlayers"]
    return (
        state["status"] == "SUBMITTING"
        and bool(players)
        and all(isinstance(player.get("answer"), str) and player["answer"].strip() for player in players)
    )


def _open_voting(state: dict[str, Any]) -> None:
    state["status"] = "VOTING"


ALL_ANSWERS_IN = Rule(name="all_answers_in", condition=_all_answers_in, apply=_open_voting)

ANSWER_RULES = (ALL_ANSWERS_IN,)


def tally_votes(votes: dict[str, str]) -> dict[str, int]:
    """Count votes per target, keyed in order of each target's first vote."""
    counts: dict[str, int] = {}
    for target_id in votes.values():
        counts[target_id] = counts.get(target_id, 0) + 1
    return counts


def most_voted(counts: dict[str, int]) -> str | None:
    """First target reaching the highest count wins ties."""
    leader: str | None = None
    best = 0
    for target_id, count in counts.items():
        if count > best:
            leader, best = target_id, count
    return leader


def assign_roles(
    pool: list[dict[str, Any]],
    player_count: int,
    impostor_count: int,
    rng: random.Random,
) -> list[dict[str, Any]]:
    selected = rng.sample(pool, min(player_count, len(pool)))
    impostors = set(rng.sample(range(len(selected)), min(impostor_count, len(selected))))
    return [
        {
            "id": str(candidate["id"]),
            "name": candidate.get("name", ""),
            "role": IMPOSTOR_ROLE if index in impostors else CIVILIAN_ROLE,
            "answer": "",
            "avatar": candidate.get("avatar") or AVATAR_URL.format(seed=candidate["id"]),
            "online": candidate.get("online", True),
        }
        for index, candidate in enumerate(selected)
    ]


@dataclass
class ImpostorGame:
    store: SessionStore
    plans: PlanSource
    rng: random.Random = field(default_factory=random.Random)

    def state(self, event_id: str) -> dict[str, Any]:
        return self.store.get(event_id)

    def join(
        self,
        event_id: str,
        player_id: str | None,
        name: str | None,
        avatar: str | None = None,
        role: str | None = None,
    ) -> ActionResult:
        player_key = require_text(player_id, "playerId")
        display_name = require_text(name, "name")
        state = self.store.get(event_id)
        existing = next((entry for entry in state["lobby"] if entry["id"] == player_key), None)
        if existing is not None:
            touch_entry(existing)
            return ActionResult(state=state, events=[], data={"player": existing})

        admit(
            plan=resolve_plan(state, self.plans),
            resource="gameParticipants",
            current_count=len(state["lobby"]),
            role=role,
        )
        entry = {
            "id": player_key,
            "name": display_name,
            "avatar": avatar or AVATAR_URL.format(seed=player_key),
            "online": True,
            "lastSeen": now_ms(),
        }
        state["lobby"].append(entry)
        return ActionResult(state=state, events=[{"kind": "joined", "playerId": player_key}], data={"player": entry})

    def configure(self, event_id: str, changes: dict[str, Any]) -> ActionResult:
        state = self.store.get(event_id)
        updates = {key: changes[key] for key in CONFIG_KEYS if changes.get(key) is not None}
        for key in ("playerCount", "impostorCount"):
            if key in updates and (not isinstance(updates[key], int) or isinstance(updates[key], bool) or updates[key] < 1):
                raise ValidationError(f"{key} must be a positive integer")
        state["config"] = {**state["config"], **updates}
        fields = sorted(updates)
        if changes.get("hostPlan"):
            state["hostPlan"] = changes["hostPlan"]
            fields.append("hostPlan")
        return ActionResult(state=state, events=[{"kind": "configured", "fields": fields}])

    def select_players(self, event_id: str, candidates: list[dict[str, Any]] | None = None) -> ActionResult:
        state = self.store.get(event_id)
        pool = list(candidates) if candidates else list(state["lobby"])
        if not pool:
            raise ValidationError("No candidates to select players from")
        if any(candidate.get("id") in (None, "") for candidate in pool):
            raise ValidationError("Every candidate needs an id")
        require_status(state, ("WAITING", "REVEAL"), "select players")

        state["activePlayers"] = assign_roles(
            pool=pool,
            player_count=int(state["config"]["playerCount"]),
            impostor_count=int(state["config"]["impostorCount"]),
            rng=self.rng,
        )
        state["status"] = "WAITING"
        state["votes"] = {}
        state["winner"] = None
        state["result"] = None
        return ActionResult(state=state, events=[{"kind": "players_selected", "count": len(state["activePlayers"])}])

    def start_round(self, event_id: str) -> ActionResult:
        state = self.store.get(event_id)
        require_status(state, ("WAITING",), "start a round")
        if not state["activePlayers"]:
            raise ValidationError("No players selected")
        state["status"] = "SUBMITTING"
        return ActionResult(state=state, events=[{"kind": "round_started"}])

    def submit_answer(self, event_id: str, player_id: str, answer: str | None) -> ActionResult:
        state = self.store.get(event_id)
        require_status(state, ("SUBMITTING",), "submit an answer")
        player = self._active_player(state, player_id)
        text = require_text(answer, "answer")

        player["answer"] = text
        events: list[dict[str, Any]] = [{"kind": "answered", "playerId": player_id}]
        events.extend(apply_rules(state, ANSWER_RULES))
        return ActionResult(state=state, events=events)

    def open_voting(self, event_id: str) -> ActionResult:
        state = self.store.get(event_id)
        require_status(state, ("SUBMITTING",), "open voting")
        state["status"] = "VOTING"
        return ActionResult(state=state, events=[{"kind": "voting_opened"}])

    def cast_vote(self, event_id: str, voter_id: str, target_id: str) -> ActionResult:
        state = self.store.get(event_id)
        voter = require_text(voter_id, "voterId")
        require_status(state, ("VOTING",), "vote")
        self._active_player(state, target_id)
        state["votes"][voter] = target_id
        return ActionResult(state=state, events=[{"kind": "voted", "voterId": voter}])

    def reveal(self, event_id: str) -> ActionResult:
        state = self.store.get(event_id)
        require_status(state, ("VOTING",), "reveal")
        counts = tally_votes(state["votes"])
        leader = most_voted(counts)
        target = next((player for player in state["activePlayers"] if player["id"] == leader), None)
        state["winner"] = "PUBLIC" if target is not None and target["role"] == IMPOSTOR_ROLE else "IMPOSTOR"
        state["result"] = {"mostVotedId": leader, "voteCounts": counts}
        state["status"] = "REVEAL"
        return ActionResult(state=state, events=[{"kind": "revealed", "winner": state["winner"]}])

    def leave(self, event_id: str, player_id: str) -> bool:
        state = self.store.peek(event_id)
        if state is None:
            return False
        remaining = [entry for entry in state["lobby"] if entry["id"] != player_id]
        changed = len(remaining) != len(state["lobby"])
        state["lobby"] = remaining
        for player in state["activePlayers"]:
            if player["id"] == player_id and player.get("online", True):
                player["online"] = False
                changed = True
        return changed

    def touch(self, event_id: str, player_id: str) -> bool:
        state = self.store.peek(event_id)
        entry = next((item for item in state["lobby"] if item["id"] == player_id), None) if state is not None else None
        if entry is None:
            return False
        touch_entry(entry)
        return True

    def idle_participants(self, event_id: str, cutoff_ms: int) -> list[str]:
        state = self.store.peek(event_id)
        return idle_ids(state["lobby"], cutoff_ms) if state is not None else []

    def reset(self, event_id: str) -> ActionResult:
        state = self.store.reset(event_id)
        return ActionResult(state=state, events=[{"kind": "reset", "generation": state["generation"]}])

    def _active_player(self, state: dict[str, Any], player_id: str) -> dict[str, Any]:
        player = next((entry for entry in state["activePlayers"] if entry["id"] == player_id), None)
        if player is None:
            raise NotFoundError(f"Player {player_id} is not in this round")
        return player
