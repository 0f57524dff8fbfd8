"""
Multistep coefficients for arbitrary (non-uniform) sample times.

All weights come from the Lagrange basis through the sample times,
evaluated or integrated in closed form with numpy.polynomial:

  - interpolation_coefficients: sum(w_i f(t_i)) = p(target)
  - integration_coefficients:   sum(w_i f(t_i)) = integral of p over [start, end]
  - overlap_coefficients:       W[i, j] = integral of l_i * m_j over [start, end]

where p interpolates f at the sample times. With n samples every result is
exact for polynomials of degree < n; for a uniform grid the integral form is
the classical Adams-Bashforth table.

Times are plain floats measured from any convenient origin. Internally they
are shifted to the middle of the evaluation interval and rescaled to O(1)
before building the power-basis polynomials, so the polynomials are only
evaluated near zero.
"""

from functools import reduce
from operator import add
from typing import Any, Sequence, Tuple

import numpy as np
from numpy.polynomial import polynomial as P

from multirate.core.errors import ContractViolationError


def _check_times(times: Sequence[float]) -> np.ndarray:
    t = np.asarray(times, dtype=float)
    if t.ndim != 1 or t.size == 0:
        raise ContractViolationError("Coefficients need at least one sample time")
    if not np.all(np.isfinite(t)):
        raise ContractViolationError(f"Non-finite sample times: {t}")
    if np.unique(t).size != t.size:
        raise ContractViolationError(f"Duplicate sample times: {t}")
    return t


def _scale(*values: Any) -> float:
    """Largest magnitude among times and bounds (1 if all are zero)."""
    largest = max(float(np.max(np.abs(np.asarray(v, dtype=float)))) for v in values)
    return largest if largest > 0.0 else 1.0


def lagrange_polynomials(times: Sequence[float]) -> np.ndarray:
    """
    Power-basis coefficients of the Lagrange basis through ``times``.

    Returns:
        Array of shape (n, n); row i holds the ascending coefficients of the
        polynomial that is 1 at times[i] and 0 at every other sample.
    """
    t = _check_times(times)
    n = t.size
    basis = np.empty((n, n))
    for i in range(n):
        others = np.delete(t, i)
        basis[i] = P.polyfromroots(others) / np.prod(t[i] - others)
    return basis


def _normalized(
    times: np.ndarray, start: float, end: float
) -> Tuple[np.ndarray, float, float, float]:
    """Shift to the interval midpoint and scale to O(1): (times, start, end, scale)."""
    center = 0.5 * (start + end)
    shifted = times - center
    scale = _scale(shifted, start - center, end - center)
    return shifted / scale, (start - center) / scale, (end - center) / scale, scale


def interpolation_coefficients(times: Sequence[float], target: float) -> np.ndarray:
    """Weights evaluating the interpolant through ``times`` at ``target``."""
    t, x, _, _ = _normalized(_check_times(times), target, target)
    return P.polyval(x, lagrange_polynomials(t).T)


def integration_coefficients(
    times: Sequence[float], start: float, end: float
) -> np.ndarray:
    """
    Weights integrating the interpolant through ``times`` from ``start`` to ``end``.

    Swapping ``start`` and ``end`` negates the weights.
    """
    t, a, b, scale = _normalized(_check_times(times), start, end)
    antiderivatives = P.polyint(lagrange_polynomials(t).T)
    return scale * (P.polyval(b, antiderivatives) - P.polyval(a, antiderivatives))


def overlap_coefficients(
    times_a: Sequence[float],
    times_b: Sequence[float],
    start: float,
    end: float,
) -> np.ndarray:
    """
    Integrals of products of two Lagrange bases over [start, end].

    Used to couple two sides sampled at different times: if a(t) and b(t)
    interpolate the two sides, the integral of a(t) * b(t) is
    sum_ij a_i * b_j * W[i, j].

    Returns:
        Array of shape (len(times_a), len(times_b)).
    """
    ta = _check_times(times_a)
    tb = _check_times(times_b)
    center = 0.5 * (start + end)
    scale = _scale(ta - center, tb - center, start - center, end - center)
    basis_a = lagrange_polynomials((ta - center) / scale)
    basis_b = lagrange_polynomials((tb - center) / scale)
    a = (start - center) / scale
    b = (end - center) / scale
    weights = np.empty((ta.size, tb.size))
    for i, poly_a in enumerate(basis_a):
        for j, poly_b in enumerate(basis_b):
            antiderivative = P.polyint(P.polymul(poly_a, poly_b))
            weights[i, j] = scale * (P.polyval(b, antiderivative) - P.polyval(a, antiderivative))
    return weights


def linear_combination(coefficients: Sequence[float], values: Sequence[Any]) -> Any:
    """sum(c * v) for opaque values supporting ``+`` and scaling by a float."""
    if len(coefficients) != len(values):
        raise ContractViolationError(
            f"{len(coefficients)} coefficients for {len(values)} values"
        )
    return reduce(add, (float(c) * v for c, v in zip(coefficients, values)))
