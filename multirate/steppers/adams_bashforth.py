"""
Variable-step Adams-Bashforth method with local time stepping.

Volume update of order k:

    u(t_n + dt) = u(t_n) + sum_i w_i f(t_i)

with w_i the integrals over [t_n, t_n + dt] of the Lagrange basis through
the k newest history times t_i, whatever their spacing.

Boundary coupling between a local side and a remote side stepping at other
rates: the local step [t0, t1] is split at every remote step boundary it
contains. On each piece both sides are represented by their own
Adams-Bashforth interpolants l(t) = sum_i l_i(t) L_i and
r(t) = sum_j r_j(t) R_j and the coupling is expanded over pairs,

    integral of c(l(t), r(t)) ~ sum_ij c(L_i, R_j) * integral of l_i(t) r_j(t)

which is exact whenever the coupling is bilinear and both sides are
polynomials the interpolants reproduce. When the remote side steps in lock
step with the local side the pair sum reduces to the single-rate update
sum_i w_i c(L_i, R_i).
"""

import logging
from typing import Any, Dict, List, Sequence, Tuple

from multirate.config import DEFAULT_ORDER, MAX_ORDER
from multirate.core.boundary_history import (
    BoundaryEntry,
    BoundaryHistory,
    BoundaryHistorySide,
    Coupling,
)
from multirate.core.errors import ContractViolationError
from multirate.core.history import History, HistoryEntry
from multirate.core.step_id import StepId
from multirate.core.time import Time, TimeDelta, evolution_less
from multirate.steppers.base import LtsTimeStepper
from multirate.steppers.coefficients import (
    integration_coefficients,
    interpolation_coefficients,
    linear_combination,
    overlap_coefficients,
)

logger = logging.getLogger(__name__)


def _offsets(step_ids: Sequence[StepId], origin: Time) -> List[float]:
    """Sample times relative to ``origin``."""
    return [step_id.step_time.value - origin.value for step_id in step_ids]


def _check_direction(step_id: StepId, time_step: TimeDelta) -> None:
    if time_step.fraction == 0:
        raise ContractViolationError("Time step must be non-zero")
    if time_step.is_positive != step_id.time_runs_forward:
        raise ContractViolationError(
            f"Time step {time_step!r} points against the direction of time of {step_id}"
        )


class AdamsBashforth(LtsTimeStepper):
    """
    Adams-Bashforth stepper of fixed maximum order.

    The only state is ``order``; the number of samples actually used by an
    update is the ``integration_order`` of the history (or of the boundary
    entry), which may be lower while a run is starting up.
    """

    def __init__(self, order: int = DEFAULT_ORDER) -> None:
        """
        Args:
            order: number of history samples used per step (1..MAX_ORDER).
        """
        if isinstance(order, bool) or not isinstance(order, int):
            raise ValueError(f"AdamsBashforth order must be an int, got {order!r}")
        if not 1 <= order <= MAX_ORDER:
            raise ValueError(f"AdamsBashforth order must be in [1, {MAX_ORDER}], got {order}")
        self._order = order

    @classmethod
    def from_state_dict(cls, state: Dict[str, Any]) -> "AdamsBashforth":
        return cls(int(state["order"]))

    @property
    def order(self) -> int:
        return self._order

    @property
    def error_estimate_order(self) -> int:
        return self._order - 1

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AdamsBashforth):
            return NotImplemented
        return self._order == other._order

    def __hash__(self) -> int:
        return hash((type(self).__name__, self._order))

    def __repr__(self) -> str:
        return f"AdamsBashforth(order={self._order})"

    # --- Volume update ---

    def _volume_window(self, history: History) -> List[HistoryEntry]:
        order = history.integration_order
        if order > self._order:
            raise ContractViolationError(
                f"History integration order {order} exceeds stepper order {self._order}"
            )
        if len(history) < order:
            raise ContractViolationError(
                f"Order {order} update needs {order} history entries, have {len(history)}"
            )
        return history.latest(order)

    @staticmethod
    def _integral(entries: Sequence[HistoryEntry], start: Time, end: Time) -> Any:
        times = _offsets([entry.step_id for entry in entries], start)
        weights = integration_coefficients(times, 0.0, end.value - start.value)
        return linear_combination(weights, [entry.derivative for entry in entries])

    def update_u(self, value: Any, history: History, time_step: TimeDelta) -> Any:
        entries = self._volume_window(history)
        latest = entries[-1].step_id
        _check_direction(latest, time_step)
        start = latest.step_time
        end = start + time_step
        logger.debug("AB%d update from %s over %s", len(entries), latest, time_step)
        return value + self._integral(entries, start, end)

    def update_u_with_error(
        self, value: Any, history: History, time_step: TimeDelta
    ) -> Tuple[Any, Any]:
        """
        Advance ``value`` and estimate the error of the step.

        The estimate is the difference between the increments of order k and
        k - 1 (the latter drops the oldest sample), so it scales like
        dt^(error_estimate_order + 1).
        """
        entries = self._volume_window(history)
        if len(entries) < 2:
            raise ContractViolationError("An error estimate needs integration order >= 2")
        latest = entries[-1].step_id
        _check_direction(latest, time_step)
        start = latest.step_time
        end = start + time_step
        increment = self._integral(entries, start, end)
        lower = self._integral(entries[1:], start, end)
        return value + increment, increment - lower

    def dense_output(self, value: Any, history: History, time: Time) -> Any:
        """
        State at ``time`` within the step that starts at the newest history entry.

        ``value`` is the state at that entry. Neither argument is modified, so
        repeated calls give identical results.
        """
        entries = self._volume_window(history)
        latest = entries[-1].step_id
        start = latest.step_time
        if evolution_less(time, start, latest.time_runs_forward):
            raise ContractViolationError(
                f"Dense output at {time!r} precedes the step start {start!r}"
            )
        if time == start:
            return value
        return value + self._integral(entries, start, time)

    def extrapolate_derivative(self, history: History, time: Time) -> Any:
        """Derivative interpolant of the current step evaluated at ``time``."""
        entries = self._volume_window(history)
        origin = entries[-1].step_id.step_time
        times = _offsets([entry.step_id for entry in entries], origin)
        weights = interpolation_coefficients(times, time.value - origin.value)
        return linear_combination(weights, [entry.derivative for entry in entries])

    def can_change_step_size(self, step_id: StepId, history: History) -> bool:
        """
        True if every history sample strictly precedes ``step_id``.

        A history that is not in evolution order relative to the next step
        (e.g. still holding start-up samples from the wrong side) cannot
        support a new step size, so the answer is False rather than an error.
        """
        forward = step_id.time_runs_forward
        for entry in history:
            if entry.step_id.time_runs_forward != forward:
                return False
            if not evolution_less(entry.step_id.step_time, step_id.step_time, forward):
                return False
        return True

    def next_time_id(self, current: StepId, time_step: TimeDelta) -> StepId:
        if current.substep != 0:
            raise ContractViolationError(f"Adams-Bashforth has no substeps, got {current}")
        _check_direction(current, time_step)
        next_time = current.step_time + time_step
        slab_number = current.slab_number
        slab_end = 1 if current.time_runs_forward else 0
        if next_time.fraction == slab_end:
            next_time = next_time.with_slab(next_time.slab.advance_towards(time_step))
            slab_number += 1
        return StepId(current.time_runs_forward, slab_number, next_time)

    # --- Boundary coupling ---

    @staticmethod
    def _stencil(side: BoundaryHistorySide, index: int) -> List[BoundaryEntry]:
        """The entries whose interpolant defines the step starting at ``index``."""
        order = side.integration_order(index)
        first = index - order + 1
        if first < 0:
            raise ContractViolationError(
                f"{side.name} step at {side[index].step_id} needs {order} samples, "
                f"only {index + 1} available"
            )
        return [side[i] for i in range(first, index + 1)]

    @staticmethod
    def _step_in_effect(side: BoundaryHistorySide, time: Time, forward: bool) -> int:
        """Index of the newest entry of ``side`` not after ``time`` (-1 if none)."""
        for index in range(len(side) - 1, -1, -1):
            if not evolution_less(time, side[index].step_id.step_time, forward):
                return index
        return -1

    def _remote_steps(
        self, remote: BoundaryHistorySide, start: Time, end: Time, forward: bool
    ) -> List[int]:
        """Indices of the remote steps overlapping [start, end), in order."""
        first = self._step_in_effect(remote, start, forward)
        if first < 0:
            raise ContractViolationError(
                f"Remote boundary history does not reach back to {start!r}"
            )
        steps = [first]
        previous = start
        for index in range(first + 1, len(remote)):
            time = remote[index].step_id.step_time
            if not evolution_less(time, end, forward):
                break
            if not evolution_less(previous, time, forward):
                raise ContractViolationError(
                    f"Remote boundary times out of order at {remote[index].step_id}"
                )
            steps.append(index)
            previous = time
        return steps

    def _boundary_integral(
        self, history: BoundaryHistory, end: Time, coupling: Coupling
    ) -> Any:
        local = history.local
        remote = history.remote
        if not len(local) or not len(remote):
            raise ContractViolationError("Boundary coupling needs local and remote samples")
        latest = local.back.step_id
        forward = latest.time_runs_forward
        start = latest.step_time
        local_entries = self._stencil(local, len(local) - 1)
        if local_entries[-1].order > self._order:
            raise ContractViolationError(
                f"Boundary entry order {local_entries[-1].order} exceeds stepper order {self._order}"
            )
        local_ids = [entry.step_id for entry in local_entries]
        local_times = _offsets(local_ids, start)
        end_offset = end.value - start.value

        remote_steps = self._remote_steps(remote, start, end, forward)
        remote_entries = self._stencil(remote, remote_steps[0])
        if len(remote_steps) == 1 and [entry.step_id for entry in remote_entries] == local_ids:
            weights = integration_coefficients(local_times, 0.0, end_offset)
            values = [
                history.coupling(coupling, local_entry, remote_entry)
                for local_entry, remote_entry in zip(local_entries, remote_entries)
            ]
            logger.debug("Equal-rate boundary step from %s, %d samples", latest, len(values))
            return linear_combination(weights, values)

        boundaries = [start]
        boundaries.extend(remote[index].step_id.step_time for index in remote_steps[1:])
        boundaries.append(end)
        pair_weights: Dict[Tuple[int, int], float] = {}
        for index, piece_start, piece_end in zip(remote_steps, boundaries[:-1], boundaries[1:]):
            first = index - remote.integration_order(index) + 1
            stencil = self._stencil(remote, index)
            remote_times = _offsets([entry.step_id for entry in stencil], start)
            weights = overlap_coefficients(
                local_times,
                remote_times,
                piece_start.value - start.value,
                piece_end.value - start.value,
            )
            for i in range(len(local_entries)):
                for j in range(len(stencil)):
                    key = (i, first + j)
                    pair_weights[key] = pair_weights.get(key, 0.0) + weights[i, j]

        logger.debug(
            "LTS boundary step from %s: %d remote steps, %d coupling pairs",
            latest,
            len(remote_steps),
            len(pair_weights),
        )
        values = [
            history.coupling(coupling, local_entries[i], remote[j]) for i, j in pair_weights
        ]
        return linear_combination(list(pair_weights.values()), values)

    def add_boundary_delta(
        self,
        value: Any,
        history: BoundaryHistory,
        time_step: TimeDelta,
        coupling: Coupling,
    ) -> Any:
        if not len(history.local):
            raise ContractViolationError("Boundary coupling needs local samples")
        latest = history.local.back.step_id
        _check_direction(latest, time_step)
        end = latest.step_time + time_step
        return value + self._boundary_integral(history, end, coupling)

    def boundary_dense_output(
        self,
        value: Any,
        history: BoundaryHistory,
        time: Time,
        coupling: Coupling,
    ) -> Any:
        if not len(history.local):
            raise ContractViolationError("Boundary coupling needs local samples")
        latest = history.local.back.step_id
        if evolution_less(time, latest.step_time, latest.time_runs_forward):
            raise ContractViolationError(
                f"Dense output at {time!r} precedes the step start {latest.step_time!r}"
            )
        if time == latest.step_time:
            return value
        return value + self._boundary_integral(history, time, coupling)

    def clean_boundary_history(self, history: BoundaryHistory) -> None:
        """
        Prune boundary samples no future coupling step can reach.

        The next local step keeps using the newest local samples; the
        remote side must still supply the step in effect at the newest local
        time, every remote step after it, and the stencil of a future remote
        sample of one order higher than the newest.
        """
        local = history.local
        remote = history.remote
        if not len(local):
            return
        latest = local.back
        drop_local = max(0, len(local) - latest.order)
        drop_remote = 0
        if len(remote):
            forward = latest.step_id.time_runs_forward
            first = self._step_in_effect(remote, latest.step_id.step_time, forward)
            if first >= 0:
                needed = min(
                    index - remote.integration_order(index) + 1
                    for index in range(first, len(remote))
                )
                needed = min(needed, len(remote) - remote.back.order)
                drop_remote = max(0, needed)
        history.discard_front(local=drop_local, remote=drop_remote)

    def neighbor_data_required(self, next_step_id: StepId, current_step_id: StepId) -> bool:
        """
        Whether boundary data at ``current_step_id`` is needed before stepping
        to ``next_step_id``. Independent of the order.
        """
        if next_step_id.time_runs_forward != current_step_id.time_runs_forward:
            raise ContractViolationError(
                f"Step ids {next_step_id} and {current_step_id} have opposite directions"
            )
        if next_step_id.step_time != current_step_id.step_time:
            return evolution_less(
                current_step_id.step_time,
                next_step_id.step_time,
                next_step_id.time_runs_forward,
            )
        return current_step_id.substep < next_step_id.substep
