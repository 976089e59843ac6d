"""Fair-share balances and greedy debt settlement for shared expenses."""

from __future__ import annotations

from .models import LedgerSnapshot, ParticipantBalance, Settlement, SettlementReport

EPSILON = 0.01


def participant_weight(weight: float | None) -> float:
    """Missing or zero weights count as 1 so every expense stays attributed."""
    return float(weight or 0) or 1.0


def compute_balances(ledger: LedgerSnapshot) -> tuple[float, float, list[ParticipantBalance]]:
    total_expenses = sum(float(expense.total or 0) for expense in ledger.expenses)
    total_weight = sum(participant_weight(participant.weight) for participant in ledger.participants)

    paid: dict[str, float] = {}
    for payment in ledger.payments:
        paid[payment.participant_id] = paid.get(payment.participant_id, 0.0) + float(payment.amount or 0)

    balances: list[ParticipantBalance] = []
    for participant in ledger.participants:
        weight = participant_weight(participant.weight)
        fair_share = total_expenses * weight / total_weight if total_weight > 0 else 0.0
        total_paid = paid.get(participant.participant_id, 0.0)
        balances.append(
            ParticipantBalance(
                participant_id=participant.participant_id,
                name=participant.name,
                weight=weight,
                fair_share=fair_share,
                total_paid=total_paid,
                balance=total_paid - fair_share,
            )
        )
    return total_expenses, total_weight, balances


def settle_balances(balances: list[ParticipantBalance]) -> list[Settlement]:
    """Match debtors to creditors with a two-pointer greedy pass.

    Both sides keep their encounter order. Yields at most
    ``debtors + creditors - 1`` transfers; not guaranteed globally minimal.
    """
    debtors = [[entry, -entry.balance] for entry in balances if entry.balance < -EPSILON]
    creditors = [[entry, entry.balance] for entry in balances if entry.balance > EPSILON]

    settlements: list[Settlement] = []
    i = j = 0
    while i < len(debtors) and j < len(creditors):
        debtor, owes = debtors[i]
        creditor, owed = creditors[j]
        amount = min(owes, owed)
        if amount > EPSILON:
            settlements.append(
                Settlement(
                    from_id=debtor.participant_id,
                    from_name=debtor.name,
                    to_id=creditor.participant_id,
                    to_name=creditor.name,
                    amount=round(amount, 2),
                )
            )
        debtors[i][1] = owes - amount
        creditors[j][1] = owed - amount
        if debtors[i][1] <= EPSILON:
            i += 1
        if creditors[j][1] <= EPSILON:
            j += 1
    return settlements


def settle(ledger: LedgerSnapshot) -> SettlementReport:
    total_expenses, total_weight, balances = compute_balances(ledger)
    return SettlementReport(
        total_expenses=total_expenses,
        total_weight=total_weight,
        balances=balances,
        settlements=settle_balances(balances),
    )
