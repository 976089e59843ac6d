"""Read-only access to an event's expense ledger."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from .errors import ExternalDependencyError
from .models import Expense, LedgerParticipant, LedgerSnapshot, Payment


class LedgerSource(Protocol):
    def get_ledger(self, event_id: str) -> LedgerSnapshot:
        """Return participants, expenses and payments recorded for an event."""


@dataclass
class InMemoryLedgerSource:
    ledgers: dict[str, LedgerSnapshot] = field(default_factory=dict)

    def get_ledger(self, event_id: str) -> LedgerSnapshot:
        return self.ledgers.get(event_id, LedgerSnapshot())

    def put(self, event_id: str, ledger: LedgerSnapshot) -> None:
        self.ledgers[event_id] = ledger


@dataclass
class PostgresLedgerSource:
    database_url: str

    def _connect(self) -> Any:
        import psycopg

        return psycopg.connect(self.database_url)

    def get_ledger(self, event_id: str) -> LedgerSnapshot:
        import psycopg

        try:
            with self._connect() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        SELECT id, name, weight
                        FROM payment_participants
                        WHERE event_id = %s
                        ORDER BY id
                        """,
                        (event_id,),
                    )
                    participant_rows = cur.fetchall()
                    cur.execute(
                        """
                        SELECT id, total
                        FROM expenses
                        WHERE event_id = %s
                        """,
                        (event_id,),
                    )
                    expense_rows = cur.fetchall()
                    cur.execute(
                        """
                        SELECT p.expense_id, p.participant_id, p.amount
                        FROM payments p
                        JOIN expenses e ON e.id = p.expense_id
                        WHERE e.event_id = %s
                        """,
                        (event_id,),
                    )
                    payment_rows = cur.fetchall()
        except psycopg.Error as exc:
            raise ExternalDependencyError(f"Ledger query failed for event {event_id}: {exc}") from exc

        return LedgerSnapshot(
            participants=tuple(
                LedgerParticipant(
                    participant_id=str(row[0]),
                    name=row[1] or "",
                    weight=float(row[2]) if row[2] is not None else None,
                )
                for row in participant_rows
            ),
            expenses=tuple(Expense(expense_id=str(row[0]), total=float(row[1] or 0)) for row in expense_rows),
            payments=tuple(
                Payment(expense_id=str(row[0]), participant_id=str(row[1]), amount=float(row[2] or 0))
                for row in payment_rows
            ),
        )


def create_ledger_source(database_url: str | None) -> LedgerSource:
    if database_url:
        return PostgresLedgerSource(database_url=database_url)
    return InMemoryLedgerSource()
