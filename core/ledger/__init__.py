"""
Ledgerline Core — Entity Ledger (System of Record)
==================================================
Owns entity state. Writes only through Command Handlers.

The Django-backed repository lives in core.ledger.django_repository
and is imported explicitly so this package stays usable without a
configured Django project.
"""

from core.ledger.errors import (
    ConcurrentModification,
    EntityAlreadyExists,
    EntityNotFound,
    HistoryImmutableError,
    IllegalTransition,
    LedgerError,
    LedgerValidationError,
)
from core.ledger.handler import (
    CommandHandler,
    CreationHandler,
    LedgerRuntime,
    declare_machine_events,
)
from core.ledger.queries import (
    HISTORY,
    PROJECTION,
    ComputedPropertyRegistry,
    LedgerQueries,
    Timeline,
    TimelineEntry,
    at_start_of_day,
)
from core.ledger.repository import EntityRepository, InMemoryEntityRepository
from core.ledger.snapshot import SYSTEM_ACTOR, EntitySnapshot, HistoryEntry
from core.ledger.state_machine import (
    CommandSpec,
    EntityStateMachine,
    command,
    creation,
)

__all__ = [
    "CommandHandler",
    "CommandSpec",
    "ComputedPropertyRegistry",
    "ConcurrentModification",
    "CreationHandler",
    "EntityAlreadyExists",
    "EntityNotFound",
    "EntityRepository",
    "EntitySnapshot",
    "EntityStateMachine",
    "HISTORY",
    "HistoryEntry",
    "HistoryImmutableError",
    "IllegalTransition",
    "InMemoryEntityRepository",
    "LedgerError",
    "LedgerQueries",
    "LedgerRuntime",
    "LedgerValidationError",
    "PROJECTION",
    "SYSTEM_ACTOR",
    "Timeline",
    "TimelineEntry",
    "at_start_of_day",
    "command",
    "creation",
    "declare_machine_events",
]
