r"""
Adaptive construction of the inversion tables.

The domain :math:`[b_l, b_r]` is split into intervals :math:`[a_k, a_{k+1}]`.
On each interval the inverse CDF is approximated by the Newton polynomial of
degree `order` through `order` + 1 Chebyshev points, with the cumulative
probabilities at those points computed by quadrature. The interval width is
adapted so that the u-error, measured at the points where the interpolation
error is expected to be largest, stays below the target.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

import numpy as np

from probinv.errors import NonMonotoneError, NormalizationError
from probinv.math.interpolation import (
    nb_chebyshev_nodes,
    nb_newton_coefficients,
    nb_newton_eval_many,
    nb_scale_nodes,
    nb_test_points,
    newton_is_monotone,
)
from probinv.math.quadrature import cumulative_at_nodes, max_cumulative_error

log = logging.getLogger(__name__)

# initial number of intervals, sets the first trial width
K0 = 128
# smallest interval width
HMIN = 1.0e-12
H_SHRINK = 0.8
H_GROW = 1.3
MAX_CDF = 1.01


@dataclass(frozen=True)
class InversionTable:
    """Read-only interpolation tables.

    Attributes
    ----------
    a
        breakpoints :math:`a_0 < \\dots < a_K`, shape ``(K+1,)``
    f
        CDF at the breakpoints, shape ``(K+1,)``
    x
        local x-offsets of the interpolation nodes, shape ``(K, order+1)``
    u
        local cumulative probabilities of the nodes, shape ``(K, order+1)``
    c
        Newton coefficients mapping ``u`` to ``x``, shape ``(K, order+1)``
    index
        coarse lookup table, ``index[i]`` is the interval containing
        ``u = i / (len(index) - 1)``
    """

    a: np.ndarray
    f: np.ndarray
    x: np.ndarray
    u: np.ndarray
    c: np.ndarray
    index: np.ndarray

    @property
    def n_intervals(self) -> int:
        return len(self.a) - 1


def _min_width(a: float) -> float:
    return max(HMIN, 8.0 * np.spacing(abs(a)))


def _secant(u: np.ndarray, x: np.ndarray) -> np.ndarray:
    """Newton coefficients of the straight line through the end points."""
    c = np.zeros_like(x)
    if u[-1] > 0:
        c[1] = x[-1] / u[-1]
    return c


def _fit_interval(
    density: Callable[[float], float],
    a: float,
    h: float,
    z: np.ndarray,
    eps_u: float,
    tol: float,
    strict: bool,
) -> tuple[np.ndarray, np.ndarray, np.ndarray, float]:
    """Fit the interpolating polynomial on :math:`[a, a+h]`, shrinking `h`
    until it is monotone with a u-error of at most `eps_u`, or the width
    floor is reached.

    A polynomial that is not monotone halves `h`. Once the interval holds a
    probability of at most `eps_u`, the secant through its end points is
    used instead, since any monotone map is then accurate enough. Near a
    boundary where the density goes to 0 as a power, the shape of the
    inverse CDF does not change when `h` shrinks, and only the secant ends
    the search.

    Returns
    -------
    x, u, c, err
        nodes, cumulative probabilities, Newton coefficients, error estimate
    """
    hmin = _min_width(a)
    while True:
        x = nb_scale_nodes(z, h)
        u = cumulative_at_nodes(density, a, x, tol)
        c = nb_newton_coefficients(u, x)
        t = nb_test_points(u)
        try:
            if not newton_is_monotone(u, x):
                raise NonMonotoneError(
                    f"interpolating polynomial decreases on [{a!r}, {a + h!r}]"
                )
            y = nb_newton_eval_many(u, c, t)
            err = max_cumulative_error(density, a, y, t, tol)
        except NonMonotoneError as e:
            if strict:
                raise
            log.debug(f"non-monotone interpolation at x = {a:.12g}, h = {h:g}: {e}")
            if u[-1] <= eps_u or 0.5 * h < hmin:
                if u[-1] > eps_u:
                    log.warning(
                        f"non-monotone interpolation at x = {a:.12g} down to "
                        f"width {h:g}; using a straight line there"
                    )
                c = _secant(u, x)
                y = nb_newton_eval_many(u, c, t)
                return x, u, c, max_cumulative_error(density, a, y, t, tol)
            h *= 0.5
            continue

        if err <= eps_u:
            return x, u, c, err
        if H_SHRINK * h < hmin:
            log.warning(
                f"interval width floor reached at x = {a:.12g} "
                f"with u-error {err:.3g} > {eps_u:.3g}"
            )
            return x, u, c, err
        h *= H_SHRINK


def build_table(
    density: Callable[[float], float],
    bl: float,
    br: float,
    order: int,
    eps_u: float,
    tol: float,
    f_start: float = 0.0,
    f_end: float = 1.0,
    xc: float | None = None,
    strict: bool = False,
) -> InversionTable:
    """
    Build the interpolation tables of the inverse CDF on :math:`[b_l, b_r]`.

    Parameters
    ----------
    density
        The density, 0 outside its support
    bl
        Left end of the tables, the left cut-off
    br
        Right end of the tables, the right cut-off
    order
        Degree of the interpolating polynomials
    eps_u
        Largest allowed u-error on an interval
    tol
        Absolute quadrature tolerance
    f_start
        CDF at `bl`, the left tail probability
    f_end
        CDF at `br`, 1 minus the right tail probability
    xc
        A point where the density is large. It becomes a breakpoint, so that
        no interval integrates across the peak
    strict
        If True, a non-monotone interpolation raises instead of being
        retried with a smaller interval

    Raises
    ------
    NormalizationError
        if the tabulated CDF exceeds 1.01
    NonMonotoneError
        in strict mode only
    """
    z = nb_chebyshev_nodes(order)
    a_list = [bl]
    f_list = [f_start]
    x_rows = []
    u_rows = []
    c_rows = []

    h = (br - bl) / K0
    a_k = bl
    f_k = f_start
    while a_k < br:
        h = min(h, br - a_k)
        h_trial = h
        if xc is not None and a_k < xc < a_k + h and xc - a_k >= _min_width(a_k):
            h = xc - a_k
        x, u, c, err = _fit_interval(density, a_k, h, z, eps_u, tol, strict)
        if x[-1] < h:
            h_trial = x[-1]
        h = x[-1]

        a_next = a_k + h
        if br - a_next <= _min_width(br):
            a_next = br
        f_next = f_k + u[-1]
        if f_next > MAX_CDF:
            raise NormalizationError(
                f"unable to compute the CDF: it exceeds {MAX_CDF} at x = {a_next:g}",
                mass=f_next,
            )

        log.debug(f"{len(x_rows):5d}  {a_k:18.12f}  {f_k:22.16g}  {h:g}")
        a_list.append(a_next)
        f_list.append(f_next)
        x_rows.append(x)
        u_rows.append(u)
        c_rows.append(c)

        # a width cut at xc resumes from the trial width
        h = max(h, h_trial)
        if err < eps_u / 3.0:
            h *= H_GROW
        h = max(h, HMIN)
        a_k, f_k = a_next, f_next

    a = np.array(a_list)
    f = np.minimum(np.array(f_list), f_end)
    f[-1] = f_end

    table = InversionTable(
        a=a,
        f=f,
        x=np.array(x_rows).reshape(-1, order + 1),
        u=np.array(u_rows).reshape(-1, order + 1),
        c=np.array(c_rows).reshape(-1, order + 1),
        index=build_index(f),
    )
    for arr in (table.a, table.f, table.x, table.u, table.c, table.index):
        arr.flags.writeable = False
    return table


def build_index(f: np.ndarray) -> np.ndarray:
    """
    Lookup table for the indexed search of the interval containing `u`.

    With :math:`K` intervals the table has :math:`2K+1` entries; entry
    :math:`i` is the last :math:`k` with :math:`F_k \\le i/(2K)`.
    """
    k_max = len(f) - 1
    i_max = 2 * k_max
    index = np.empty(i_max + 1, dtype=np.int64)
    index[0] = 0
    index[i_max] = max(k_max - 1, 0)
    k = 1
    for i in range(1, i_max):
        u = i / i_max
        while k < k_max and u >= f[k]:
            k += 1
        index[i] = k - 1
    return index
