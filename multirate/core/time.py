"""
Exact slab-relative time arithmetic.

A Slab is a fixed floating-point interval; a Time is an exact rational
offset inside a slab and a TimeDelta an exact rational multiple of a slab
length. Times on the same slab compare by their fractions, so two step
boundaries computed along different paths (e.g. 3 * dt/7 and dt/7 + 2 * dt/7)
are never split apart by rounding.
"""

from fractions import Fraction
from functools import total_ordering
from numbers import Rational
from typing import Any, Tuple, Union

from multirate.core.errors import ContractViolationError

FractionLike = Union[int, Fraction]


def _as_fraction(value: Any, name: str) -> Fraction:
    """Convert an exact rational to Fraction; floats are rejected."""
    if isinstance(value, bool) or not isinstance(value, Rational):
        raise TypeError(f"{name} must be an int or Fraction, got {type(value).__name__}")
    return Fraction(value)


class Slab:
    """Fixed-length interval [start, end] used as the base of exact times."""

    __slots__ = ("_start", "_end")

    def __init__(self, start: float, end: float) -> None:
        start = float(start)
        end = float(end)
        if not start < end:
            raise ValueError(f"Slab requires start < end, got [{start}, {end}]")
        self._start = start
        self._end = end

    @classmethod
    def with_duration_from_start(cls, start: float, duration: float) -> "Slab":
        return cls(start, start + duration)

    @classmethod
    def with_duration_to_end(cls, end: float, duration: float) -> "Slab":
        return cls(end - duration, end)

    @property
    def start_value(self) -> float:
        return self._start

    @property
    def end_value(self) -> float:
        return self._end

    @property
    def start(self) -> "Time":
        return Time(self, 0)

    @property
    def end(self) -> "Time":
        return Time(self, 1)

    @property
    def duration(self) -> "TimeDelta":
        """The whole slab as a (positive) TimeDelta."""
        return TimeDelta(self, 1)

    def advance(self) -> "Slab":
        """Slab of the same length starting where this one ends."""
        return Slab.with_duration_from_start(self._end, self._end - self._start)

    def retreat(self) -> "Slab":
        """Slab of the same length ending where this one starts."""
        return Slab.with_duration_to_end(self._start, self._end - self._start)

    def advance_towards(self, delta: "TimeDelta") -> "Slab":
        """Neighboring slab in the direction of ``delta``."""
        if delta.fraction == 0:
            raise ContractViolationError("Cannot advance a slab towards a zero TimeDelta")
        return self.advance() if delta.is_positive else self.retreat()

    def is_followed_by(self, other: "Slab") -> bool:
        return self._end == other._start

    def is_preceded_by(self, other: "Slab") -> bool:
        return other._end == self._start

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Slab):
            return NotImplemented
        return self._start == other._start and self._end == other._end

    def __hash__(self) -> int:
        return hash((self._start, self._end))

    def __repr__(self) -> str:
        return f"Slab({self._start!r}, {self._end!r})"


@total_ordering
class Time:
    """A point in time: an exact fraction in [0, 1] of a slab."""

    __slots__ = ("_slab", "_fraction")

    def __init__(self, slab: Slab, fraction: FractionLike) -> None:
        fraction = _as_fraction(fraction, "fraction")
        if not 0 <= fraction <= 1:
            raise ContractViolationError(
                f"Time fraction {fraction} lies outside its slab {slab!r}"
            )
        self._slab = slab
        self._fraction = fraction

    @property
    def slab(self) -> Slab:
        return self._slab

    @property
    def fraction(self) -> Fraction:
        return self._fraction

    @property
    def value(self) -> float:
        """Floating-point time; exactly the slab endpoint at a boundary."""
        if self._fraction == 0:
            return self._slab.start_value
        if self._fraction == 1:
            return self._slab.end_value
        start = self._slab.start_value
        return start + (self._slab.end_value - start) * float(self._fraction)

    @property
    def is_at_slab_boundary(self) -> bool:
        return self._fraction == 0 or self._fraction == 1

    def _can_move_to(self, slab: Slab) -> bool:
        if slab == self._slab:
            return True
        if self._fraction == 1:
            return self._slab.is_followed_by(slab)
        if self._fraction == 0:
            return self._slab.is_preceded_by(slab)
        return False

    def with_slab(self, slab: Slab) -> "Time":
        """The same time expressed on an adjacent slab (boundaries only)."""
        if slab == self._slab:
            return self
        if not self._can_move_to(slab):
            raise ContractViolationError(
                f"{self!r} is not on the boundary shared with {slab!r}"
            )
        return Time(slab, 0 if self._fraction == 1 else 1)

    def __add__(self, other: object) -> "Time":
        if not isinstance(other, TimeDelta):
            return NotImplemented
        moved = self.with_slab(other.slab)
        return Time(other.slab, moved.fraction + other.fraction)

    def __sub__(self, other: object) -> Union["Time", "TimeDelta"]:
        if isinstance(other, TimeDelta):
            return self + (-other)
        if isinstance(other, Time):
            a, b = _on_common_slab(self, other)
            return TimeDelta(a.slab, a.fraction - b.fraction)
        return NotImplemented

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Time):
            return NotImplemented
        if self._slab == other._slab:
            return self._fraction == other._fraction
        return (
            self.is_at_slab_boundary
            and other.is_at_slab_boundary
            and self.value == other.value
        )

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Time):
            return NotImplemented
        if self._slab == other._slab:
            return self._fraction < other._fraction
        return self != other and self.value < other.value

    def __hash__(self) -> int:
        return hash(self.value)

    def __repr__(self) -> str:
        return f"Time({self._slab!r}, {self._fraction})"


@total_ordering
class TimeDelta:
    """Signed exact multiple of a slab length; the sign is the direction of time."""

    __slots__ = ("_slab", "_fraction")

    def __init__(self, slab: Slab, fraction: FractionLike) -> None:
        self._slab = slab
        self._fraction = _as_fraction(fraction, "fraction")

    @property
    def slab(self) -> Slab:
        return self._slab

    @property
    def fraction(self) -> Fraction:
        return self._fraction

    @property
    def value(self) -> float:
        return (self._slab.end_value - self._slab.start_value) * float(self._fraction)

    @property
    def is_positive(self) -> bool:
        return self._fraction > 0

    def with_slab(self, slab: Slab) -> "TimeDelta":
        """Same fraction measured on another slab."""
        return TimeDelta(slab, self._fraction)

    def _check_same_slab(self, other: "TimeDelta") -> None:
        if other._slab != self._slab:
            raise ContractViolationError(
                f"TimeDelta arithmetic across slabs: {self!r} and {other!r}"
            )

    def __neg__(self) -> "TimeDelta":
        return TimeDelta(self._slab, -self._fraction)

    def __pos__(self) -> "TimeDelta":
        return self

    def __abs__(self) -> "TimeDelta":
        return TimeDelta(self._slab, abs(self._fraction))

    def __add__(self, other: object) -> Union["TimeDelta", Time]:
        if isinstance(other, Time):
            return other + self
        if not isinstance(other, TimeDelta):
            return NotImplemented
        self._check_same_slab(other)
        return TimeDelta(self._slab, self._fraction + other._fraction)

    def __sub__(self, other: object) -> "TimeDelta":
        if not isinstance(other, TimeDelta):
            return NotImplemented
        self._check_same_slab(other)
        return TimeDelta(self._slab, self._fraction - other._fraction)

    def __mul__(self, other: object) -> "TimeDelta":
        if isinstance(other, bool) or not isinstance(other, Rational):
            return NotImplemented
        return TimeDelta(self._slab, self._fraction * Fraction(other))

    __rmul__ = __mul__

    def __truediv__(self, other: object) -> Union["TimeDelta", Fraction]:
        if isinstance(other, TimeDelta):
            self._check_same_slab(other)
            return self._fraction / other._fraction
        if isinstance(other, bool) or not isinstance(other, Rational):
            return NotImplemented
        return TimeDelta(self._slab, self._fraction / Fraction(other))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TimeDelta):
            return NotImplemented
        return self._slab == other._slab and self._fraction == other._fraction

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, TimeDelta):
            return NotImplemented
        if self._slab == other._slab:
            return self._fraction < other._fraction
        return self.value < other.value

    def __hash__(self) -> int:
        return hash((self._slab, self._fraction))

    def __repr__(self) -> str:
        return f"TimeDelta({self._slab!r}, {self._fraction})"


def _on_common_slab(a: Time, b: Time) -> Tuple[Time, Time]:
    """Express two times on one slab, moving whichever sits on a shared boundary."""
    if a.slab == b.slab:
        return a, b
    if b._can_move_to(a.slab):
        return a, b.with_slab(a.slab)
    if a._can_move_to(b.slab):
        return a.with_slab(b.slab), b
    raise ContractViolationError(f"{a!r} and {b!r} do not share a slab")


def evolution_less(a: Time, b: Time, time_runs_forward: bool = True) -> bool:
    """True if ``a`` comes before ``b`` in the direction of evolution."""
    return a < b if time_runs_forward else b < a
