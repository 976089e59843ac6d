"""Value types shared by the admission, ledger and settlement layers."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(frozen=True)
class AdmissionDecision:
    allowed: bool
    limit: float
    remaining: float | None = None
    reason: str | None = None


@dataclass(frozen=True)
class LedgerParticipant:
    participant_id: str
    name: str
    weight: float | None = None


@dataclass(frozen=True)
class Expense:
    expense_id: str
    total: float


@dataclass(frozen=True)
class Payment:
    expense_id: str
    participant_id: str
    amount: float


@dataclass(frozen=True)
class LedgerSnapshot:
    participants: tuple[LedgerParticipant, ...] = ()
    expenses: tuple[Expense, ...] = ()
    payments: tuple[Payment, ...] = ()


@dataclass(frozen=True)
class ParticipantBalance:
    participant_id: str
    name: str
    weight: float
    fair_share: float
    total_paid: float
    balance: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "participantId": self.participant_id,
            "name": self.name,
            "weight": self.weight,
            "fairShare": self.fair_share,
            "totalPaid": self.total_paid,
            "balance": self.balance,
        }


@dataclass(frozen=True)
class Settlement:
    from_id: str
    from_name: str
    to_id: str
    to_name: str
    amount: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "from": {"id": self.from_id, "name": self.from_name},
            "to": {"id": self.to_id, "name": self.to_name},
            "amount": self.amount,
        }


@dataclass(frozen=True)
class SettlementReport:
    total_expenses: float
    total_weight: float
    balances: list[ParticipantBalance] = field(default_factory=list)
    settlements: list[Settlement] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalExpenses": self.total_expenses,
            "totalWeight": self.total_weight,
            "balances": [balance.to_dict() for balance in self.balances],
            "settlements": [settlement.to_dict() for settlement in self.settlements],
        }


def decision_to_dict(decision: AdmissionDecision) -> dict[str, Any]:
    payload = asdict(decision)
    if payload["limit"] == float("inf"):
        payload["limit"] = None
    if payload["remaining"] == float("inf"):
        payload["remaining"] = None
    return payload
