import math

import pytest

from partyhub.backend.admission import StaticPlanSource, admit, check_limit, normalize_plan, resolve_plan
from partyhub.backend.errors import QuotaExceededError
from partyhub.backend.models import decision_to_dict


def test_check_limit_allows_below_ceiling_and_reports_remaining() -> None:
    decision = check_limit("freemium", "gameParticipants", 19)

    assert decision.allowed is True
    assert decision.limit == 20
    assert decision.remaining == 1


def test_check_limit_denies_at_ceiling() -> None:
    decision = check_limit("freemium", "triviaQuestions", 5)

    assert decision.allowed is False
    assert decision.remaining == 0
    assert "trivia questions" in (decision.reason or "")


def test_unlimited_plans_never_deny() -> None:
    decision = check_limit("vip", "triviaQuestions", 10_000)

    assert decision.allowed is True
    assert decision.limit == math.inf
    assert decision_to_dict(decision)["limit"] is None


def test_subscribers_always_denied_and_unknown_resources_allowed() -> None:
    assert check_limit("honor", "subscribers", 0).allowed is False
    assert check_limit("freemium", "balloons", 999).allowed is True


def test_admit_raises_quota_error_with_counts() -> None:
    with pytest.raises(QuotaExceededError) as excinfo:
        admit("freemium", "gameParticipants", 20)

    payload = excinfo.value.to_payload()
    assert excinfo.value.status_code == 403
    assert payload["limitReached"] is True
    assert payload["current"] == 20
    assert payload["limit"] == 20
    assert payload["plan"] == "freemium"


def test_admit_lets_admin_bypass() -> None:
    decision = admit("freemium", "gameParticipants", 500, role="admin")

    assert decision.allowed is True


def test_unknown_plan_falls_back_to_freemium() -> None:
    assert normalize_plan("platinum") == "freemium"
    assert normalize_plan("VIP") == "vip"
    assert normalize_plan(None) == "freemium"


def test_resolve_plan_prefers_session_host_plan() -> None:
    plans = StaticPlanSource(default_plan="freemium", plans={"evt-1": "premium"})

    assert resolve_plan({"eventId": "evt-1", "hostPlan": None}, plans) == "premium"
    assert resolve_plan({"eventId": "evt-1", "hostPlan": "honor"}, plans) == "honor"
    assert resolve_plan({"eventId": "evt-2", "hostPlan": None}, plans) == "freemium"
