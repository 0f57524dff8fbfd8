"""Bounded in-memory history of (step id, value, derivative) samples."""

import logging
from collections import deque
from typing import Any, Deque, Iterator, List, NamedTuple, Optional

from multirate.core.errors import ContractViolationError
from multirate.core.step_id import StepId
from multirate.core.time import Time

logger = logging.getLogger(__name__)


class HistoryEntry(NamedTuple):
    """One retained sample of a state variable."""

    step_id: StepId
    value: Any
    derivative: Any


class History:
    """
    Look-back window of a single evolved variable.

    At most ``integration_order`` entries are kept; inserting into a full
    history evicts the oldest entry. The newest entry stays provisional
    until the next insert: ``undo_latest`` removes it and puts back whatever
    it evicted.
    """

    def __init__(self, integration_order: int) -> None:
        """
        Args:
            integration_order: number of samples used by the stepper (>= 1).
        """
        self._check_order(integration_order)
        self._entries: Deque[HistoryEntry] = deque(maxlen=integration_order)
        self._evicted: Optional[HistoryEntry] = None

    @staticmethod
    def _check_order(order: int) -> None:
        if order < 1:
            raise ContractViolationError(f"integration order must be >= 1, got {order}")

    @property
    def integration_order(self) -> int:
        return self._entries.maxlen

    @integration_order.setter
    def integration_order(self, order: int) -> None:
        self._check_order(order)
        self._entries = deque(self._entries, maxlen=order)
        self._evicted = None

    def _check_direction(self, step_id: StepId) -> None:
        if self._entries and step_id.time_runs_forward != self._entries[-1].step_id.time_runs_forward:
            raise ContractViolationError(
                f"Direction of time of {step_id} differs from the history's"
            )

    def insert(self, step_id: StepId, value: Any, derivative: Any) -> None:
        """Append the newest sample; ``step_id`` must follow the current newest."""
        self._check_direction(step_id)
        if self._entries and not self._entries[-1].step_id < step_id:
            raise ContractViolationError(
                f"History insert out of order: {step_id} after {self._entries[-1].step_id}"
            )
        full = len(self._entries) == self._entries.maxlen
        self._evicted = self._entries[0] if full else None
        self._entries.append(HistoryEntry(step_id, value, derivative))

    def insert_initial(self, step_id: StepId, value: Any, derivative: Any) -> None:
        """Prepend a seed sample older than every stored one."""
        self._check_direction(step_id)
        if len(self._entries) == self._entries.maxlen:
            raise ContractViolationError("insert_initial into a full history")
        if self._entries and not step_id < self._entries[0].step_id:
            raise ContractViolationError(
                f"Initial history entry {step_id} does not precede {self._entries[0].step_id}"
            )
        self._entries.appendleft(HistoryEntry(step_id, value, derivative))
        self._evicted = None

    def undo_latest(self) -> HistoryEntry:
        """Drop the newest (provisional) entry, restoring the one it evicted."""
        if not self._entries:
            raise ContractViolationError("undo_latest on an empty history")
        latest = self._entries.pop()
        if self._evicted is not None:
            self._entries.appendleft(self._evicted)
            self._evicted = None
        logger.debug("Rejected history entry %s", latest.step_id)
        return latest

    def discard_value(self, step_id: StepId) -> None:
        """Forget the stored value of an entry, keeping its derivative."""
        for index, entry in enumerate(self._entries):
            if entry.step_id == step_id:
                self._entries[index] = entry._replace(value=None)
                return
        raise ContractViolationError(f"No history entry for {step_id}")

    def clear(self) -> None:
        """Empty the history."""
        self._entries.clear()
        self._evicted = None

    @property
    def front(self) -> HistoryEntry:
        if not self._entries:
            raise ContractViolationError("front of an empty history")
        return self._entries[0]

    @property
    def back(self) -> HistoryEntry:
        if not self._entries:
            raise ContractViolationError("back of an empty history")
        return self._entries[-1]

    def latest(self, count: int) -> List[HistoryEntry]:
        """The newest ``count`` entries, oldest first."""
        if count > len(self._entries):
            raise ContractViolationError(
                f"History holds {len(self._entries)} entries, {count} requested"
            )
        return list(self._entries)[len(self._entries) - count:]

    def step_ids(self) -> List[StepId]:
        return [entry.step_id for entry in self._entries]

    def times(self) -> List[Time]:
        return [entry.step_id.step_time for entry in self._entries]

    def derivatives(self) -> List[Any]:
        return [entry.derivative for entry in self._entries]

    def __getitem__(self, index: int) -> HistoryEntry:
        return self._entries[index]

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        ids = ", ".join(str(step_id) for step_id in self.step_ids())
        return f"History(order={self.integration_order}, [{ids}])"
