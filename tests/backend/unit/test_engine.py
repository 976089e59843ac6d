import time

import pytest

from partyhub.backend.engine import (
    ActionResult,
    Rule,
    apply_rules,
    idle_ids,
    now_ms,
    require_entry,
    require_status,
    require_text,
    touch_entry,
)
from partyhub.backend.errors import IllegalTransitionError, NotFoundError, ValidationError


def test_action_result_changed_follows_events() -> None:
    assert ActionResult(state={}).changed is False
    assert ActionResult(state={}, events=[{"kind": "joined"}]).changed is True


def test_apply_rules_reports_fired_transitions() -> None:
    state = {"status": "SUBMITTING", "ready": True}
    rules = (
        Rule(name="ready", condition=lambda s: s["ready"], apply=lambda s: s.update(status="VOTING")),
        Rule(name="never", condition=lambda s: False, apply=lambda s: s.update(status="BROKEN")),
    )

    fired = apply_rules(state, rules)

    assert state["status"] == "VOTING"
    assert fired == [{"kind": "rule", "rule": "ready", "from": "SUBMITTING", "to": "VOTING"}]


def test_require_status_raises_with_current_status() -> None:
    with pytest.raises(IllegalTransitionError) as excinfo:
        require_status({"status": "IDLE", "gameType": "raffle"}, ("WAITING",), "draw")

    assert excinfo.value.status == "IDLE"
    assert excinfo.value.to_payload()["status"] == "IDLE"
    assert excinfo.value.status_code == 409


def test_require_text_strips_and_rejects_blank() -> None:
    assert require_text("  Ana ", "name") == "Ana"
    with pytest.raises(ValidationError):
        require_text("   ", "name")
    with pytest.raises(ValidationError):
        require_text(None, "name")


def test_require_entry_raises_not_found() -> None:
    assert require_entry({"a": 1}, "a", "Player") == 1
    with pytest.raises(NotFoundError):
        require_entry({}, "missing", "Player")


def test_now_ms_is_wall_clock_epoch_millis() -> None:
    before = int(time.time() * 1000)
    stamp = now_ms()

    assert before <= stamp <= int(time.time() * 1000)


def test_touch_entry_moves_entry_out_of_idle_set() -> None:
    quiet = {"id": "a", "joinedAt": 10, "lastSeen": 10}
    legacy = {"id": "b", "joinedAt": 10}

    assert idle_ids([quiet, legacy], cutoff_ms=100) == ["a", "b"]

    touch_entry(quiet)

    assert quiet["online"] is True
    assert idle_ids([quiet, legacy], cutoff_ms=100) == ["b"]
