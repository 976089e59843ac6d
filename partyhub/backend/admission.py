"""Subscription-plan limits and the admission check for new resources."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Protocol

from .errors import QuotaExceededError
from .models import AdmissionDecision

logger = logging.getLogger(__name__)

DEFAULT_PLAN = "freemium"
ADMIN_ROLE = "admin"

PLAN_LIMITS: dict[str, dict[str, Any]] = {
    "freemium": {
        "maxEvents": 1,
        "maxGuestsPerEvent": 40,
        "maxSubscribers": 0,
        "maxStaffRoster": 3,
        "maxPhotosPerEvent": 20,
        "maxTriviaQuestions": 5,
        "maxGameParticipants": 20,
        "maxExpenses": 10,
        "maxSuppliers": 3,
        "maxParticipants": 2,
        "aiFeatures": False,
        "moderation": "manual",
    },
    "premium": {
        "maxEvents": 5,
        "maxGuestsPerEvent": 100,
        "maxSubscribers": 0,
        "maxStaffRoster": 20,
        "maxPhotosPerEvent": 200,
        "maxTriviaQuestions": 40,
        "maxGameParticipants": 120,
        "maxExpenses": 50,
        "maxSuppliers": 20,
        "maxParticipants": 10,
        "aiFeatures": True,
        "moderation": "ai-basic",
    },
    "vip": {
        "maxEvents": 20,
        "maxGuestsPerEvent": 200,
        "maxSubscribers": 0,
        "maxStaffRoster": 50,
        "maxPhotosPerEvent": 500,
        "maxTriviaQuestions": math.inf,
        "maxGameParticipants": 300,
        "maxExpenses": 500,
        "maxSuppliers": 50,
        "maxParticipants": 50,
        "aiFeatures": True,
        "moderation": "ai-advanced",
    },
    "honor": {
        "maxEvents": 100,
        "maxGuestsPerEvent": 1000,
        "maxSubscribers": math.inf,
        "maxStaffRoster": 100,
        "maxPhotosPerEvent": 2000,
        "maxTriviaQuestions": math.inf,
        "maxGameParticipants": 1000,
        "maxExpenses": math.inf,
        "maxSuppliers": math.inf,
        "maxParticipants": math.inf,
        "aiFeatures": True,
        "moderation": "ai-advanced",
    },
}

# resource kind -> (limit key, human label)
RESOURCE_LIMITS: dict[str, tuple[str, str]] = {
    "events": ("maxEvents", "events"),
    "guests": ("maxGuestsPerEvent", "guests per event"),
    "staffRoster": ("maxStaffRoster", "staff members"),
    "triviaQuestions": ("maxTriviaQuestions", "trivia questions"),
    "gameParticipants": ("maxGameParticipants", "game participants"),
    "bingoParticipants": ("maxGameParticipants", "game participants"),
    "expenses": ("maxExpenses", "expenses"),
    "suppliers": ("maxSuppliers", "suppliers"),
    "participants": ("maxParticipants", "expense participants"),
}


class PlanSource(Protocol):
    def get_plan(self, event_id: str) -> str:
        """Return the subscription tier of the event's host."""


@dataclass
class StaticPlanSource:
    default_plan: str = DEFAULT_PLAN
    plans: dict[str, str] = field(default_factory=dict)

    def get_plan(self, event_id: str) -> str:
        return self.plans.get(event_id, self.default_plan)

    def set_plan(self, event_id: str, plan: str) -> None:
        self.plans[event_id] = normalize_plan(plan)


def normalize_plan(plan: str | None) -> str:
    normalized = (plan or DEFAULT_PLAN).lower()
    if normalized not in PLAN_LIMITS:
        return DEFAULT_PLAN
    return normalized


def get_plan_limits(plan: str | None) -> dict[str, Any]:
    return PLAN_LIMITS[normalize_plan(plan)]


def is_admin(role: str | None) -> bool:
    return role == ADMIN_ROLE


def check_limit(plan: str | None, resource: str, current_count: int) -> AdmissionDecision:
    """Decide whether one more ``resource`` fits under ``plan``."""
    if resource == "subscribers":
        return AdmissionDecision(allowed=False, limit=0, reason="Only administrators can create subscribers")

    entry = RESOURCE_LIMITS.get(resource)
    if entry is None:
        return AdmissionDecision(allowed=True, limit=math.inf, remaining=math.inf)

    limit_key, label = entry
    limits = get_plan_limits(plan)
    limit = limits[limit_key]
    if current_count >= limit:
        return AdmissionDecision(
            allowed=False,
            limit=limit,
            remaining=0,
            reason=f"Limit of {limit} {label} reached for plan {normalize_plan(plan)}",
        )
    return AdmissionDecision(allowed=True, limit=limit, remaining=limit - current_count)


def admit(plan: str | None, resource: str, current_count: int, role: str | None = None) -> AdmissionDecision:
    """Run the admission check and raise when the plan is exhausted.

    Administrators always pass; their decision reports the plan limit but is
    never enforced.
    """
    decision = check_limit(plan=plan, resource=resource, current_count=current_count)
    if is_admin(role):
        return AdmissionDecision(allowed=True, limit=decision.limit, remaining=decision.remaining)
    if not decision.allowed:
        logger.info("admission denied plan=%s resource=%s count=%s", normalize_plan(plan), resource, current_count)
        raise QuotaExceededError(
            decision.reason or "Plan limit reached",
            current=current_count,
            limit=decision.limit,
            plan=normalize_plan(plan),
        )
    return decision


def resolve_plan(state: dict[str, Any], plans: PlanSource) -> str:
    """A plan set on the session overrides the event's looked-up tier."""
    explicit = state.get("hostPlan")
    if explicit:
        return normalize_plan(explicit)
    return normalize_plan(plans.get_plan(state["eventId"]))
