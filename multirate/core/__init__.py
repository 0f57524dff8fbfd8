"""Core: exact time model, step ids and histories."""

from multirate.core.errors import ContractViolationError, MultirateError
from multirate.core.time import Slab, Time, TimeDelta, evolution_less
from multirate.core.step_id import StepId
from multirate.core.history import History, HistoryEntry
from multirate.core.boundary_history import (
    BoundaryEntry,
    BoundaryHistory,
    BoundaryHistorySide,
    Coupling,
)

__all__ = [
    "MultirateError",
    "ContractViolationError",
    "Slab",
    "Time",
    "TimeDelta",
    "evolution_less",
    "StepId",
    "History",
    "HistoryEntry",
    "BoundaryEntry",
    "BoundaryHistory",
    "BoundaryHistorySide",
    "Coupling",
]
