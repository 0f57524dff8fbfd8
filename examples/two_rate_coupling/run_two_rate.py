"""
Minimal example: two coupled sides stepping at different rates.

The local side steps with dt/3, the remote side with dt/5; the coupled
quantity obeys dy/dt = local(t) * remote(t) and is compared against the
exact antiderivative at every local step.
"""

import logging
import math
import sys
from pathlib import Path

# Add the repository root to the path
ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT))

from multirate import AdamsBashforth, BoundaryHistory, Slab, StepId
from multirate.config import DEFAULT_ORDER
from multirate.core.time import evolution_less
from multirate.log_config import setup_logging

logger = logging.getLogger(__name__)

ORDER = DEFAULT_ORDER


def local_side(t: float) -> float:
    return math.cos(t)


def remote_side(t: float) -> float:
    return 1.0 + 0.5 * t


def product(local: float, remote: float) -> float:
    return local * remote


def exact(t: float) -> float:
    # Antiderivative of cos(t) * (1 + t / 2), zero at t = 0
    return math.sin(t) + 0.5 * (t * math.sin(t) + math.cos(t) - 1.0)


def main() -> None:
    setup_logging()
    stepper = AdamsBashforth(ORDER)
    slab = Slab(0.0, 1.0)
    dts = (slab.duration / 3, slab.duration / 5)

    history = BoundaryHistory()
    init_slab = slab.retreat()
    for step in range(1, ORDER):
        for side, fn, dt in ((history.local, local_side, dts[0]), (history.remote, remote_side, dts[1])):
            now = slab.start - step * dt.with_slab(init_slab)
            side.insert_initial(StepId(True, 0, now), ORDER, fn(now.value))

    t = slab.start
    y = exact(t.value)
    next_times = [t, t]
    next_check = t + dts[0]
    while True:
        side = 1 if evolution_less(next_times[1], next_times[0]) else 0
        if side == 0:
            history.local.insert(StepId(True, 0, t), ORDER, local_side(t.value))
        else:
            history.remote.insert(StepId(True, 0, t), ORDER, remote_side(t.value))
        next_times[side] = next_times[side] + dts[side]
        t = min(next_times)
        if t == next_check:
            y = stepper.add_boundary_delta(y, history, dts[0], product)
            stepper.clean_boundary_history(history)
            logger.info(
                "t=%.4f y=%.12f exact=%.12f error=%.2e",
                t.value,
                y,
                exact(t.value),
                abs(y - exact(t.value)),
            )
            if t.is_at_slab_boundary:
                break
            next_check = next_check + dts[0]

    logger.info(
        "Kept %d local and %d remote boundary samples, %d cached couplings",
        len(history.local),
        len(history.remote),
        history.cached_couplings,
    )


if __name__ == "__main__":
    main()
