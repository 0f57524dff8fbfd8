"""
History of boundary data for coupling two sides that may step at different
rates.

Each side keeps (step id, integration order, data) entries; the order is the
one in effect when the entry was inserted and is used for every later
coupling computation involving it. Coupling values are computed once per
coupling function and (local, remote) pair and cached until either entry is
pruned.
"""

import logging
from collections import deque
from typing import Any, Callable, Deque, Dict, Iterator, List, NamedTuple, Tuple

from multirate.core.errors import ContractViolationError
from multirate.core.step_id import StepId
from multirate.core.time import Time

logger = logging.getLogger(__name__)

# Coupling function: (local data, remote data) -> coupling value
Coupling = Callable[[Any, Any], Any]


class BoundaryEntry(NamedTuple):
    """One boundary sample and the integration order fixed at insertion."""

    step_id: StepId
    order: int
    data: Any


class BoundaryHistorySide:
    """Unbounded, time-ordered sequence of boundary samples from one side."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._entries: Deque[BoundaryEntry] = deque()

    def _check(self, step_id: StepId, order: int) -> None:
        if order < 1:
            raise ContractViolationError(f"{self.name}: integration order must be >= 1, got {order}")
        if self._entries and step_id.time_runs_forward != self._entries[-1].step_id.time_runs_forward:
            raise ContractViolationError(
                f"{self.name}: direction of time of {step_id} differs from the history's"
            )

    def insert(self, step_id: StepId, order: int, data: Any) -> None:
        """Append the newest sample."""
        self._check(step_id, order)
        if self._entries and not self._entries[-1].step_id < step_id:
            raise ContractViolationError(
                f"{self.name}: boundary insert out of order: {step_id} after "
                f"{self._entries[-1].step_id}"
            )
        self._entries.append(BoundaryEntry(step_id, order, data))

    def insert_initial(self, step_id: StepId, order: int, data: Any) -> None:
        """Prepend a seed sample older than every stored one."""
        self._check(step_id, order)
        if self._entries and not step_id < self._entries[0].step_id:
            raise ContractViolationError(
                f"{self.name}: initial entry {step_id} does not precede "
                f"{self._entries[0].step_id}"
            )
        self._entries.appendleft(BoundaryEntry(step_id, order, data))

    def integration_order(self, index: int) -> int:
        return self._entries[index].order

    def _pop_front(self, count: int) -> List[StepId]:
        if count > len(self._entries):
            raise ContractViolationError(
                f"{self.name}: cannot drop {count} of {len(self._entries)} entries"
            )
        return [self._entries.popleft().step_id for _ in range(count)]

    @property
    def front(self) -> BoundaryEntry:
        if not self._entries:
            raise ContractViolationError(f"{self.name}: front of an empty boundary history")
        return self._entries[0]

    @property
    def back(self) -> BoundaryEntry:
        if not self._entries:
            raise ContractViolationError(f"{self.name}: back of an empty boundary history")
        return self._entries[-1]

    def step_ids(self) -> List[StepId]:
        return [entry.step_id for entry in self._entries]

    def times(self) -> List[Time]:
        return [entry.step_id.step_time for entry in self._entries]

    def __getitem__(self, index: int) -> BoundaryEntry:
        return self._entries[index]

    def __iter__(self) -> Iterator[BoundaryEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        ids = ", ".join(str(step_id) for step_id in self.step_ids())
        return f"BoundaryHistorySide({self.name!r}, [{ids}])"


class BoundaryHistory:
    """Local and remote boundary histories plus the cache of coupling values."""

    def __init__(self) -> None:
        self._local = BoundaryHistorySide("local")
        self._remote = BoundaryHistorySide("remote")
        self._cache: Dict[Tuple[Coupling, StepId, StepId], Any] = {}

    @property
    def local(self) -> BoundaryHistorySide:
        return self._local

    @property
    def remote(self) -> BoundaryHistorySide:
        return self._remote

    def coupling(self, coupling: Coupling, local: BoundaryEntry, remote: BoundaryEntry) -> Any:
        """
        Coupling value of a (local, remote) pair.

        The callable is invoked the first time a pair is needed; later
        requests with the same callable return the stored result. Values
        are stored per callable, so a different coupling function on the
        same history is evaluated afresh.
        """
        key = (coupling, local.step_id, remote.step_id)
        if key not in self._cache:
            self._cache[key] = coupling(local.data, remote.data)
        return self._cache[key]

    @property
    def cached_couplings(self) -> int:
        """Number of coupling values currently stored."""
        return len(self._cache)

    def discard_front(self, local: int = 0, remote: int = 0) -> None:
        """Drop leading entries of each side and every cached value using them."""
        dropped_local = set(self._local._pop_front(local))
        dropped_remote = set(self._remote._pop_front(remote))
        if dropped_local or dropped_remote:
            self._cache = {
                key: value
                for key, value in self._cache.items()
                if key[1] not in dropped_local and key[2] not in dropped_remote
            }
            logger.debug(
                "Pruned %d local and %d remote boundary entries", local, remote
            )

    def clear(self) -> None:
        self._local = BoundaryHistorySide("local")
        self._remote = BoundaryHistorySide("remote")
        self._cache.clear()

    def __repr__(self) -> str:
        return f"BoundaryHistory(local={self._local!r}, remote={self._remote!r})"
