"""Time steppers and the multistep coefficient engine."""

from multirate.steppers.base import LtsTimeStepper, TimeStepper
from multirate.steppers.adams_bashforth import AdamsBashforth
from multirate.steppers.coefficients import (
    integration_coefficients,
    interpolation_coefficients,
    lagrange_polynomials,
    linear_combination,
    overlap_coefficients,
)

# Steppers constructible from a configuration mapping, by name
STEPPERS = {
    "AdamsBashforth": AdamsBashforth,
}

__all__ = [
    "TimeStepper",
    "LtsTimeStepper",
    "AdamsBashforth",
    "STEPPERS",
    "integration_coefficients",
    "interpolation_coefficients",
    "lagrange_polynomials",
    "linear_combination",
    "overlap_coefficients",
]
