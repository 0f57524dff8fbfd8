"""
multirate: variable-step Adams-Bashforth stepping with local time stepping.
"""

__version__ = "0.1.0"

from multirate.core.time import Slab, Time, TimeDelta
from multirate.core.step_id import StepId
from multirate.core.history import History
from multirate.core.boundary_history import BoundaryHistory
from multirate.steppers.adams_bashforth import AdamsBashforth

__all__ = [
    "__version__",
    "Slab",
    "Time",
    "TimeDelta",
    "StepId",
    "History",
    "BoundaryHistory",
    "AdamsBashforth",
]
