"""Tests for Adams-Bashforth boundary coupling with local time stepping."""

import math
from collections import deque
from fractions import Fraction
from typing import Callable, List, Tuple

import numpy as np
import pytest
from numpy.polynomial import polynomial as P

from multirate.core.boundary_history import BoundaryHistory
from multirate.core.errors import ContractViolationError
from multirate.core.history import History
from multirate.core.step_id import StepId
from multirate.core.time import Slab, Time, TimeDelta, evolution_less
from multirate.steppers.adams_bashforth import AdamsBashforth
from time_helpers import times_before

# Random coefficients of the two coupled sides
C10 = 0.949716728952811
C11 = 0.190663110072823
C20 = 0.932407227651314
C21 = 0.805454101952822
C22 = 0.825876851406978

# side2 is quadratic, so order 3 is the lowest that integrates the product exactly
EXACT_ORDERS = range(3, 9)


def side1(x: float) -> float:
    return C10 + x * C11


def side2(x: float) -> float:
    return C20 + x * (C21 + x * C22)


def answer(x: float) -> float:
    """Antiderivative of side1 * side2 vanishing at 0."""
    return x * (
        C10 * C20
        + x * ((C10 * C21 + C11 * C20) / 2
               + x * ((C10 * C22 + C11 * C21) / 3 + x * (C11 * C22 / 4)))
    )


def product(local: float, remote: float) -> float:
    return local * remote


class CountingCoupling:
    """Product coupling that records every evaluation."""

    def __init__(self) -> None:
        self.calls: List[Tuple[float, float]] = []

    def __call__(self, local: float, remote: float) -> float:
        self.calls.append((local, remote))
        return local * remote


def _run_constant_rates(
    local_dt: TimeDelta, remote_dt: TimeDelta, order: int = 4, coupling=product
) -> Tuple[List[Tuple[float, float]], List[Tuple[int, int]]]:
    """
    Integrate side1 * side2 over one slab with each side at its own rate.

    Returns (computed, expected) pairs at every local step and the side
    sizes after every cleanup.
    """
    forward = local_dt.is_positive
    slab = local_dt.slab
    t = slab.start if forward else slab.end
    stepper = AdamsBashforth(order)
    history = BoundaryHistory()

    for now in times_before(t, local_dt, order - 1):
        history.local.insert_initial(StepId(forward, 0, now), order, side1(now.value))
    for now in times_before(t, remote_dt, order - 1):
        history.remote.insert_initial(StepId(forward, 0, now), order, side2(now.value))

    dts = (local_dt, remote_dt)
    y = answer(t.value)
    next_check = t + local_dt
    next_times = [t, t]
    results = []
    sizes = []
    while True:
        side = 1 if evolution_less(next_times[1], next_times[0], forward) else 0
        if side == 0:
            history.local.insert(StepId(forward, 0, t), order, side1(t.value))
        else:
            history.remote.insert(StepId(forward, 0, t), order, side2(t.value))
        next_times[side] = next_times[side] + dts[side]
        t = next_times[1] if evolution_less(next_times[1], next_times[0], forward) else next_times[0]

        assert not evolution_less(next_check, t, forward)
        if t == next_check:
            y = stepper.add_boundary_delta(y, history, local_dt, coupling)
            stepper.clean_boundary_history(history)
            results.append((y, answer(t.value)))
            sizes.append((len(history.local), len(history.remote)))
            if t.is_at_slab_boundary:
                break
            next_check = next_check + local_dt
    return results, sizes


RATIOS = [
    (4, 4),
    (4, 8),
    (8, 4),
    (16, 4),
    (4, 16),
    (32, 4),
    (4, 32),
    # Non-nesting steps
    (4, 6),
    (6, 4),
    (5, 7),
    (7, 5),
    (5, 13),
    (13, 5),
]


@pytest.mark.parametrize("order", EXACT_ORDERS)
@pytest.mark.parametrize("local_steps,remote_steps", RATIOS)
@pytest.mark.parametrize("direction", [1, -1])
def test_constant_rates_integrate_quartic(
    order: int, local_steps: int, remote_steps: int, direction: int
) -> None:
    slab = Slab(0.0, 1.0)
    full = direction * slab.duration
    results, sizes = _run_constant_rates(full / local_steps, full / remote_steps, order)
    assert len(results) == local_steps
    for computed, expected in results:
        assert computed == pytest.approx(expected, rel=1e-9, abs=1e-10)

    # Cleanup keeps both sides bounded independently of the run length
    remote_per_local = math.ceil(remote_steps / local_steps)
    for local_size, remote_size in sizes:
        assert local_size <= order
        assert remote_size <= 2 * order + remote_per_local


@pytest.mark.parametrize("order", EXACT_ORDERS)
def test_variable_step_sizes(order: int) -> None:
    slab = Slab(0.0, 1.0)
    t = slab.start
    stepper = AdamsBashforth(order)
    history = BoundaryHistory()

    for now in times_before(t, slab.duration / 4, order - 1):
        history.local.insert_initial(StepId(True, 0, now), order, side1(now.value))
        history.remote.insert_initial(StepId(True, 0, now), order, side2(now.value))

    dts = (
        deque([slab.duration / 2, slab.duration / 4, slab.duration / 4]),
        deque([slab.duration / 6, slab.duration / 6, slab.duration * 2 / 9, slab.duration * 4 / 9]),
    )
    y = answer(t.value)
    next_check = t + dts[0][0]
    next_times = [t, t]
    checks = 0
    while True:
        side = 1 if next_times[1] < next_times[0] else 0
        if side == 0:
            history.local.insert(StepId(True, 0, next_times[0]), order, side1(next_times[0].value))
        else:
            history.remote.insert(StepId(True, 0, next_times[1]), order, side2(next_times[1].value))
        next_times[side] = next_times[side] + dts[side].popleft()

        if min(next_times) == next_check:
            y = stepper.add_boundary_delta(y, history, next_check - t, product)
            stepper.clean_boundary_history(history)
            checks += 1
            assert y == pytest.approx(answer(next_check.value), rel=1e-9, abs=1e-10)
            if next_check.is_at_slab_boundary:
                break
            t = next_check
            next_check = next_check + dts[0][0]
    assert checks == 3


def test_coupling_evaluated_once_per_pair() -> None:
    slab = Slab(0.0, 1.0)
    coupling = CountingCoupling()
    results, _ = _run_constant_rates(slab.duration / 5, slab.duration / 7, coupling=coupling)
    for computed, expected in results:
        assert computed == pytest.approx(expected, rel=1e-9)
    assert coupling.calls
    assert len(coupling.calls) == len(set(coupling.calls))


def test_changing_coupling_function_is_not_served_stale_values() -> None:
    slab = Slab(0.0, 1.0)
    dt = slab.duration / 4
    stepper = AdamsBashforth(2)
    history = BoundaryHistory()
    for i in range(2):
        step_id = StepId(True, 0, slab.start + dt * i)
        history.local.insert(step_id, 2, 2.0)
        history.remote.insert(step_id, 2, 3.0)

    def total(local: float, remote: float) -> float:
        return local + remote

    assert stepper.add_boundary_delta(0.0, history, dt, product) == pytest.approx(6.0 * 0.25)
    assert stepper.add_boundary_delta(0.0, history, dt, total) == pytest.approx(5.0 * 0.25)
    end = Time(slab, Fraction(1, 2))
    assert stepper.boundary_dense_output(0.0, history, end, product) == pytest.approx(6.0 * 0.25)


@pytest.mark.parametrize("direction", [1, -1])
@pytest.mark.parametrize(
    "order,start_points", [(order, points) for order in range(1, 9) for points in range(order)]
)
def test_equal_rate_matches_volume_update(order: int, start_points: int, direction: int) -> None:
    """Identical local and remote steps reduce to the single-rate update, start-up included."""
    forward = direction == 1
    slab = Slab(0.0, 1.0)
    dt = direction * slab.duration / 10
    start = slab.start if forward else slab.end
    stepper = AdamsBashforth(order)
    boundary = BoundaryHistory()
    volume = History(start_points + 1)

    def sides(time: Time) -> Tuple[float, float]:
        return math.cos(time.value), 1.0 + time.value ** 3

    for time in times_before(start, dt, start_points):
        step_id = StepId(forward, -1, time)
        local, remote = sides(time)
        boundary.local.insert_initial(step_id, start_points + 1, local)
        boundary.remote.insert_initial(step_id, start_points + 1, remote)
        volume.insert_initial(step_id, None, local * remote)

    step_id = StepId(forward, 0, start)
    boundary_value = volume_value = 0.5
    for step in range(10):
        step_order = min(order, start_points + 1 + step)
        volume.integration_order = step_order
        local, remote = sides(step_id.step_time)
        boundary.local.insert(step_id, step_order, local)
        boundary.remote.insert(step_id, step_order, remote)
        volume.insert(step_id, None, local * remote)

        boundary_value = stepper.add_boundary_delta(boundary_value, boundary, dt, product)
        volume_value = stepper.update_u(volume_value, volume, dt)
        assert boundary_value == volume_value
        stepper.clean_boundary_history(boundary)
        step_id = stepper.next_time_id(step_id, dt)
    assert step_id.slab_number == 1


def test_equal_rate_with_lower_startup_order() -> None:
    slab = Slab(0.0, 1.0)
    dt = slab.duration / 4
    stepper = AdamsBashforth(3)
    history = BoundaryHistory()
    for i in range(2):
        step_id = StepId(True, 0, slab.start + dt * i)
        history.local.insert(step_id, i + 1, 2.0)
        history.remote.insert(step_id, i + 1, 3.0)
    # Constant coupling is integrated exactly at any order
    assert stepper.add_boundary_delta(0.0, history, dt, product) == pytest.approx(6.0 * 0.25)


def test_boundary_reversal() -> None:
    def f(t: float) -> float:
        return 1.0 + t * (2.0 + t * (3.0 + t * 4.0))

    def df(t: float) -> float:
        return 2.0 + t * (6.0 + t * 12.0)

    slab = Slab(0.0, 1.0)
    history = BoundaryHistory()
    for step_id in [
        StepId(True, 0, slab.start),
        StepId(True, 0, slab.start + slab.duration * 3 / 4),
        StepId(True, 1, slab.start + slab.duration / 3),
    ]:
        history.local.insert(step_id, 3, df(step_id.step_time.value))
        history.remote.insert(step_id, 3, 0.0)
    y = AdamsBashforth(3).add_boundary_delta(
        f(1.0 / 3.0), history, slab.duration / 3, lambda local, remote: local
    )
    assert y == pytest.approx(f(2.0 / 3.0), rel=1e-12)


def _single_step_history(
    remote_steps: int,
    order: int = 4,
    local_side: Callable[[float], float] = side1,
    remote_side: Callable[[float], float] = side2,
) -> Tuple[Slab, BoundaryHistory]:
    """Local step [0, 1/4] with the remote side stepping by 1/remote_steps."""
    slab = Slab(0.0, 1.0)
    local_dt = slab.duration / 4
    remote_dt = slab.duration / remote_steps
    history = BoundaryHistory()
    for now in reversed(times_before(slab.start, local_dt, order - 1)):
        history.local.insert(StepId(True, 0, now), order, local_side(now.value))
    for now in reversed(times_before(slab.start, remote_dt, order - 1)):
        history.remote.insert(StepId(True, 0, now), order, remote_side(now.value))
    history.local.insert(StepId(True, 0, slab.start), order, local_side(0.0))
    time = slab.start
    while time < slab.start + local_dt:
        history.remote.insert(StepId(True, 0, time), order, remote_side(time.value))
        time = time + remote_dt
    return slab, history


def test_boundary_dense_output() -> None:
    slab, history = _single_step_history(12)
    stepper = AdamsBashforth(4)
    y0 = answer(0.0)
    for fraction in (Fraction(1, 12), Fraction(1, 8), Fraction(1, 5), Fraction(1, 4)):
        time = Time(slab, fraction)
        dense = stepper.boundary_dense_output(y0, history, time, product)
        assert dense == pytest.approx(answer(time.value), rel=1e-10)
    assert stepper.boundary_dense_output(y0, history, slab.start, product) == y0
    full_step = stepper.add_boundary_delta(y0, history, slab.duration / 4, product)
    assert stepper.boundary_dense_output(y0, history, Time(slab, Fraction(1, 4)), product) == full_step
    with pytest.raises(ContractViolationError):
        stepper.boundary_dense_output(y0, history, Time(slab.retreat(), Fraction(7, 8)), product)


@pytest.mark.parametrize("order", range(1, 9))
@pytest.mark.parametrize("remote_steps", [3, 12])
def test_boundary_dense_output_polynomial_sides(order: int, remote_steps: int) -> None:
    """Sides of degree order - 1 are reproduced exactly by their interpolants."""
    rng = np.random.default_rng(order)
    local_coefs = rng.uniform(-1.0, 1.0, order)
    remote_coefs = rng.uniform(-1.0, 1.0, order)
    integral = P.polyint(P.polymul(local_coefs, remote_coefs))

    slab, history = _single_step_history(
        remote_steps,
        order,
        lambda x: P.polyval(x, local_coefs),
        lambda x: P.polyval(x, remote_coefs),
    )
    stepper = AdamsBashforth(order)
    for fraction in (Fraction(1, 12), Fraction(1, 7), Fraction(1, 4)):
        time = Time(slab, fraction)
        dense = stepper.boundary_dense_output(0.0, history, time, product)
        assert dense == pytest.approx(P.polyval(time.value, integral), rel=1e-9, abs=1e-12)


def test_boundary_dense_output_reuses_couplings() -> None:
    slab, history = _single_step_history(8)
    stepper = AdamsBashforth(4)
    coupling = CountingCoupling()
    stepper.boundary_dense_output(0.0, history, Time(slab, Fraction(1, 5)), coupling)
    first = len(coupling.calls)
    stepper.boundary_dense_output(0.0, history, Time(slab, Fraction(1, 5)), coupling)
    assert len(coupling.calls) == first
    assert history.cached_couplings == first


def test_clean_keeps_what_the_next_step_needs() -> None:
    slab, history = _single_step_history(8)
    stepper = AdamsBashforth(4)
    stepper.clean_boundary_history(history)
    # The remote steps at 0 and 1/8 both overlap the local step from 0
    assert len(history.local) == 4
    assert len(history.remote) == 5

    history.local.insert(StepId(True, 0, Time(slab, Fraction(1, 4))), 4, side1(0.25))
    stepper.clean_boundary_history(history)
    assert len(history.local) == 4
    assert history.local.front.step_id.step_time.value == -0.5
    # Only the step from 1/8 and its stencil remain on the remote side
    assert len(history.remote) == 4
    assert history.remote.front.step_id.step_time.value == -0.25
    assert history.remote.back.step_id.step_time == Time(slab, Fraction(1, 8))

    empty = BoundaryHistory()
    stepper.clean_boundary_history(empty)
    assert len(empty.local) == 0


def test_remote_must_reach_back_to_step_start() -> None:
    slab = Slab(0.0, 1.0)
    history = BoundaryHistory()
    history.local.insert(StepId(True, 0, slab.start), 1, 1.0)
    history.remote.insert(StepId(True, 0, slab.start + slab.duration / 8), 1, 1.0)
    with pytest.raises(ContractViolationError):
        AdamsBashforth(1).add_boundary_delta(0.0, history, slab.duration / 4, product)
    with pytest.raises(ContractViolationError):
        AdamsBashforth(1).add_boundary_delta(0.0, BoundaryHistory(), slab.duration / 4, product)


def test_neighbor_data_required() -> None:
    stepper = AdamsBashforth(4)
    slab = Slab(0.0, 1.0)
    assert not stepper.neighbor_data_required(StepId(True, 0, slab.start), StepId(True, 0, slab.start))
    assert not stepper.neighbor_data_required(StepId(True, 0, slab.start), StepId(True, 0, slab.end))
    assert stepper.neighbor_data_required(StepId(True, 0, slab.end), StepId(True, 0, slab.start))

    assert not stepper.neighbor_data_required(StepId(False, 0, slab.end), StepId(False, 0, slab.end))
    assert not stepper.neighbor_data_required(StepId(False, 0, slab.end), StepId(False, 0, slab.start))
    assert stepper.neighbor_data_required(StepId(False, 0, slab.start), StepId(False, 0, slab.end))


def test_neighbor_data_required_substeps_and_order() -> None:
    slab = Slab(0.0, 1.0)
    now = StepId(True, 0, slab.start)
    substep = StepId(True, 0, slab.start, 1)
    for order in (1, 3, 8):
        stepper = AdamsBashforth(order)
        assert stepper.neighbor_data_required(substep, now)
        assert not stepper.neighbor_data_required(now, substep)
    with pytest.raises(ContractViolationError):
        AdamsBashforth(2).neighbor_data_required(now, StepId(False, 0, slab.start))
