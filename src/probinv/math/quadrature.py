"""
Adaptive quadrature of a density over the table intervals.

Thin wrappers around :func:`scipy.integrate.quad`. Cumulative probabilities
are always computed as sums of integrals over consecutive sub-intervals, so
that small local masses keep their relative precision.
"""

import logging
from typing import Callable

import numpy as np
from scipy.integrate import quad

from probinv.errors import NonMonotoneError

log = logging.getLogger(__name__)

QUAD_LIMIT = 100
QUAD_EPSREL = 1e-13


def integrate(
    density: Callable[[float], float], a: float, b: float, tol: float
) -> float:
    """
    Integrate the density over :math:`[a, b]` to absolute tolerance `tol`.

    Parameters
    ----------
    density
        Callable returning the (non-negative) density at a float
    a
        Lower bound
    b
        Upper bound, must not be smaller than `a`
    tol
        Absolute tolerance

    Raises
    ------
    NonMonotoneError
        if `b` < `a`
    """
    if b < a:
        raise NonMonotoneError("integration bounds are reversed", lower=a, upper=b)
    if b == a:
        return 0.0

    res = quad(
        density, a, b, epsabs=tol, epsrel=QUAD_EPSREL, limit=QUAD_LIMIT, full_output=1
    )
    if len(res) > 3:
        # scipy reports non-convergence in the 4th element instead of warning
        log.debug(f"quad on [{a!r}, {b!r}]: {res[3].splitlines()[0]}")
    return res[0]


def cumulative_at_nodes(
    density: Callable[[float], float], a: float, x: np.ndarray, tol: float
) -> np.ndarray:
    """
    Cumulative probability of the density from `a` to ``a + x[j]`` for every
    node ``x[j]``, with ``x[0] == 0``.

    Returns
    -------
    u
        Array of the same length as `x`, ``u[0] == 0``
    """
    u = np.zeros(len(x), dtype=np.float64)
    for j in range(1, len(x)):
        u[j] = u[j - 1] + integrate(density, a + x[j - 1], a + x[j], tol)
    return u


def max_cumulative_error(
    density: Callable[[float], float],
    a: float,
    y: np.ndarray,
    v: np.ndarray,
    tol: float,
) -> float:
    """
    Largest difference between the probabilities `v` and the true
    cumulative probability from `a` to ``a + y[j]``.

    Parameters
    ----------
    density
        The density
    a
        The left end of the table interval
    y
        Local x-offsets given by the interpolating polynomial at `v`, with
        ``y[0] == 0``
    v
        The test probabilities, with ``v[0] == 0``
    tol
        Absolute quadrature tolerance

    Raises
    ------
    NonMonotoneError
        if the offsets `y` are not increasing
    """
    err = 0.0
    u = 0.0
    for j in range(1, len(y)):
        u += integrate(density, a + y[j - 1], a + y[j], tol)
        err = max(err, abs(u - v[j]))
    return err


def integrate_around(
    density: Callable[[float], float], a: float, b: float, xc: float, tol: float
) -> float:
    """
    Integrate the density over the finite interval :math:`[a, b]` in pieces
    whose width doubles away from `xc`.

    A single quadrature over a wide domain can step over a narrow peak and
    return about 0. Here every piece next to `xc` is at most
    :math:`2^{-40}(b - a)` wide, so the peak is resolved whatever the scale
    of the density.

    Parameters
    ----------
    density
        The density
    a, b
        Finite bounds with :math:`a \\le x_c \\le b`
    xc
        A point where the density is large
    tol
        Absolute tolerance of each piece
    """
    xc = min(max(xc, a), b)
    h0 = (b - a) * 2.0**-40
    edges = [xc]
    h = h0
    while edges[0] > a:
        edges.insert(0, max(xc - h, a))
        h *= 2.0
    h = h0
    while edges[-1] < b:
        edges.append(min(xc + h, b))
        h *= 2.0

    mass = 0.0
    for lo, hi in zip(edges[:-1], edges[1:]):
        mass += integrate(density, lo, hi, tol)
    log.debug(f"mass on [{a:g}, {b:g}] in {len(edges) - 1} pieces: {mass!r}")
    return mass
