"""Backend package for Partyhub live games."""

from .admission import PlanSource, StaticPlanSource, admit, check_limit
from .config import Settings, configure_logging, load_settings
from .errors import (
    ExternalDependencyError,
    GameError,
    IllegalTransitionError,
    NotFoundError,
    QuotaExceededError,
    ValidationError,
)
from .ledger import InMemoryLedgerSource, LedgerSource, PostgresLedgerSource, create_ledger_source
from .settlement import settle
from .store import SessionStore

__all__ = [
    "admit",
    "check_limit",
    "configure_logging",
    "create_ledger_source",
    "ExternalDependencyError",
    "GameError",
    "IllegalTransitionError",
    "InMemoryLedgerSource",
    "LedgerSource",
    "load_settings",
    "NotFoundError",
    "PlanSource",
    "PostgresLedgerSource",
    "QuotaExceededError",
    "SessionStore",
    "Settings",
    "settle",
    "StaticPlanSource",
    "ValidationError",
]
