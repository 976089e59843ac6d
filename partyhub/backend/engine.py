"""Shared transition helpers for the game state machines."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

from .errors import IllegalTransitionError, NotFoundError, ValidationError


@dataclass(frozen=True)
class ActionResult:
    """Outcome of an accepted mutation.

    ``events`` lists what happened, including any post-write rules that
    fired, so callers and tests can assert on auto-transitions directly.
    """

    state: dict[str, Any]
    events: list[dict[str, Any]] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return bool(self.events)


@dataclass(frozen=True)
class Rule:
    """A named transition evaluated after every write it is attached to."""

    name: str
    condition: Callable[[dict[str, Any]], bool]
    apply: Callable[[dict[str, Any]], None]


def apply_rules(state: dict[str, Any], rules: Iterable[Rule]) -> list[dict[str, Any]]:
    fired: list[dict[str, Any]] = []
    for rule in rules:
        if rule.condition(state):
            before = state.get("status")
            rule.apply(state)
            fired.append({"kind": "rule", "rule": rule.name, "from": before, "to": state.get("status")})
    return fired


def now_ms() -> int:
    """Wall-clock epoch milliseconds; clients compare these stamps with their own clocks."""
    return int(time.time() * 1000)


def touch_entry(entry: dict[str, Any]) -> None:
    entry["lastSeen"] = now_ms()
    entry["online"] = True


def idle_ids(entries: Iterable[dict[str, Any]], cutoff_ms: int) -> list[str]:
    """Ids of entries last seen before ``cutoff_ms``."""
    return [str(entry["id"]) for entry in entries if entry.get("lastSeen", entry.get("joinedAt", 0)) < cutoff_ms]


def new_id() -> str:
    return str(uuid.uuid4())


def require_status(state: dict[str, Any], allowed: Iterable[str], action: str) -> None:
    status = state.get("status")
    allowed = tuple(allowed)
    if status not in allowed:
        raise IllegalTransitionError(
            f"Cannot {action} while {state.get('gameType', 'game')} is {status}; expected one of {', '.join(allowed)}",
            status=status,
        )


def require_text(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or value.strip() == "":
        raise ValidationError(f"{field_name} is required")
    return value.strip()


def require_entry(mapping: dict[str, Any], key: str, what: str) -> Any:
    entry = mapping.get(key)
    if entry is None:
        raise NotFoundError(f"{what} {key} not found")
    return entry


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
