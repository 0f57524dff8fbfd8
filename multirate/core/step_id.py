"""Identifier of a point in the simulated step sequence."""

from dataclasses import dataclass
from functools import total_ordering

from multirate.core.errors import ContractViolationError
from multirate.core.time import Time, evolution_less


@total_ordering
@dataclass(frozen=True)
class StepId:
    """
    Position in the step sequence: direction of time, slab number, step time
    and substep.

    Ids are ordered by slab number, then by step time in the direction of
    evolution, then by substep. Within one run slab numbers grow with time,
    so this is the time order with substeps breaking ties.
    """

    time_runs_forward: bool
    slab_number: int
    step_time: Time
    substep: int = 0

    def __post_init__(self) -> None:
        if self.substep < 0:
            raise ContractViolationError(f"substep must be non-negative, got {self.substep}")

    @property
    def is_at_slab_boundary(self) -> bool:
        return self.substep == 0 and self.step_time.is_at_slab_boundary

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, StepId):
            return NotImplemented
        if other.time_runs_forward != self.time_runs_forward:
            raise ContractViolationError(
                f"Comparing step ids with opposite directions of time: {self} and {other}"
            )
        if self.slab_number != other.slab_number:
            return self.slab_number < other.slab_number
        if self.step_time != other.step_time:
            return evolution_less(self.step_time, other.step_time, self.time_runs_forward)
        return self.substep < other.substep

    def __str__(self) -> str:
        direction = "+" if self.time_runs_forward else "-"
        return (
            f"{direction}{self.slab_number}:{self.step_time.value:.16g}"
            f"[{self.substep}]"
        )
