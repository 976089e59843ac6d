import pytest

from partyhub.backend.errors import ExternalDependencyError
from partyhub.backend.ledger import InMemoryLedgerSource, PostgresLedgerSource, create_ledger_source
from partyhub.backend.models import Expense, LedgerSnapshot


class FakeCursor:
    def __init__(self, results, error: Exception | None = None) -> None:
        self.results = list(results)
        self.error = error
        self.executed: list[tuple[str, tuple]] = []

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        return None

    def execute(self, query: str, params: tuple) -> None:
        if self.error is not None:
            raise self.error
        self.executed.append((query, params))

    def fetchall(self):
        return self.results.pop(0)


class FakeConnection:
    def __init__(self, cursor: FakeCursor) -> None:
        self._cursor = cursor

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        return None

    def cursor(self) -> FakeCursor:
        return self._cursor


class FakePostgresLedgerSource(PostgresLedgerSource):
    def __init__(self, cursor: FakeCursor) -> None:
        super().__init__(database_url="postgresql://fake")
        self.fake_cursor = cursor

    def _connect(self) -> FakeConnection:
        return FakeConnection(self.fake_cursor)


def test_create_ledger_source_picks_backend() -> None:
    assert isinstance(create_ledger_source("postgresql://local"), PostgresLedgerSource)
    assert isinstance(create_ledger_source(None), InMemoryLedgerSource)


def test_in_memory_source_defaults_to_empty_ledger() -> None:
    source = InMemoryLedgerSource()
    source.put("evt-1", LedgerSnapshot(expenses=(Expense("e1", 10.0),)))

    assert source.get_ledger("evt-1").expenses[0].total == 10.0
    assert source.get_ledger("evt-2") == LedgerSnapshot()


def test_postgres_source_maps_rows() -> None:
    pytest.importorskip("psycopg")
    cursor = FakeCursor(
        [
            [(1, "Ana", None), (2, None, "2.5")],
            [(10, "80.00")],
            [(10, 1, "80"), (10, 2, None)],
        ]
    )
    source = FakePostgresLedgerSource(cursor)

    snapshot = source.get_ledger("evt-1")

    assert [(p.participant_id, p.name, p.weight) for p in snapshot.participants] == [("1", "Ana", None), ("2", "", 2.5)]
    assert snapshot.expenses[0].total == 80.0
    assert [(p.participant_id, p.amount) for p in snapshot.payments] == [("1", 80.0), ("2", 0.0)]
    assert all(params == ("evt-1",) for _, params in cursor.executed)


def test_postgres_errors_become_external_dependency_errors() -> None:
    psycopg = pytest.importorskip("psycopg")
    source = FakePostgresLedgerSource(FakeCursor([], error=psycopg.OperationalError("connection refused")))

    with pytest.raises(ExternalDependencyError) as excinfo:
        source.get_ledger("evt-1")

    assert excinfo.value.status_code == 502
