r"""
Polynomial interpolation helpers for the inversion tables.

On every table interval the inverse CDF is approximated by the Newton
interpolating polynomial through the points :math:`(u_j, x_j)`, where the
:math:`x_j` are Chebyshev points scaled into the interval and the
:math:`u_j` are the cumulative probabilities at those points. The kernels are
numba-fied, they run inside the table builder loop and the query kernel.
:func:`newton_is_monotone` vets each polynomial before it is stored.
"""

import numba as nb
import numpy as np
from numpy.polynomial import polynomial as P

from probinv.utils import numba_math_defaults as nb_defaults


@nb.njit(**nb_defaults(parallel=False))
def nb_chebyshev_nodes(n: int) -> np.ndarray:
    r"""
    Normalized Chebyshev points in :math:`[0, 1]` for a polynomial of degree `n`.

    .. math::
        z_j = \frac{\sin(j\phi)\sin((j+1)\phi)}{\cos\phi}, \quad \phi = \frac{\pi}{2(n+1)}

    so that :math:`z_0 = 0` and :math:`z_n = 1`.

    Parameters
    ----------
    n
        The degree of the interpolating polynomial

    Returns
    -------
    z
        Array of the `n` + 1 normalized nodes
    """

    z = np.empty(n + 1, dtype=np.float64)
    phi = np.pi / (2.0 * (n + 1))
    cphi = np.cos(phi)
    s_next = 0.0
    for j in range(n):
        s_prev = s_next
        s_next = np.sin((j + 1) * phi)
        z[j] = s_prev * s_next / cphi
    z[n] = 1.0
    return z


@nb.njit(**nb_defaults(parallel=False))
def nb_scale_nodes(z: np.ndarray, h: float) -> np.ndarray:
    """
    Scale the normalized nodes `z` into :math:`[0, h]`, with exact end points.

    Parameters
    ----------
    z
        The normalized nodes from :func:`nb_chebyshev_nodes`
    h
        The width of the interval
    """

    n = z.shape[0] - 1
    x = np.empty(n + 1, dtype=np.float64)
    x[0] = 0.0
    for j in range(1, n):
        x[j] = h * z[j]
    x[n] = h
    return x


@nb.njit(**nb_defaults(parallel=False))
def nb_newton_coefficients(x: np.ndarray, y: np.ndarray) -> np.ndarray:
    r"""
    Divided differences of the Newton interpolating polynomial through the
    points :math:`(x_j, y_j)`.

    .. math::
        P(z) = c_0 + c_1 (z - x_0) + \dots + c_n (z - x_0)\cdots(z - x_{n-1})

    A coefficient is set to 0 when two abscissas coincide.

    Parameters
    ----------
    x
        The interpolation abscissas
    y
        The interpolation ordinates

    Returns
    -------
    c
        The Newton coefficients
    """

    n = x.shape[0] - 1
    c = y.astype(np.float64)
    for i in range(1, n + 1):
        for j in range(n, i - 1, -1):
            if x[j] == x[j - i]:
                c[j] = 0.0
            else:
                c[j] = (c[j] - c[j - 1]) / (x[j] - x[j - i])
    return c


@nb.njit(**nb_defaults(parallel=False))
def nb_newton_eval(x: np.ndarray, c: np.ndarray, z: float) -> float:
    """
    Evaluate the Newton polynomial with abscissas `x` and coefficients `c`
    at `z`, by nested multiplication.

    Parameters
    ----------
    x
        The interpolation abscissas
    c
        The coefficients from :func:`nb_newton_coefficients`
    z
        Where to evaluate the polynomial
    """

    n = x.shape[0] - 1
    v = c[n]
    for j in range(n - 1, -1, -1):
        v = v * (z - x[j]) + c[j]
    return v


@nb.njit(**nb_defaults(parallel=False))
def nb_test_points(u: np.ndarray) -> np.ndarray:
    r"""
    Approximate local extrema of :math:`\prod_i (t - u_i)` between consecutive
    nodes, where the interpolation error is largest.

    Starts at the midpoints and applies two Newton steps
    :math:`t \leftarrow t + \sum_i (t - u_i)^{-1} / \sum_i (t - u_i)^{-2}`.

    Parameters
    ----------
    u
        The `n` + 1 interpolation nodes, increasing

    Returns
    -------
    t
        Array of `n` + 1 values; ``t[0]`` is 0 and ``t[k]`` lies in
        :math:`[u_{k-1}, u_k]`
    """

    n = u.shape[0] - 1
    t = np.zeros(n + 1, dtype=np.float64)
    for k in range(1, n + 1):
        t[k] = 0.5 * (u[k - 1] + u[k])
        for _ in range(2):
            s = 0.0
            sq = 0.0
            for i in range(n + 1):
                d = t[k] - u[i]
                if d == 0.0:
                    break
                d = 1.0 / d
                s += d
                sq += d * d
            if sq != 0.0:
                t[k] += s / sq
    return t


@nb.njit(**nb_defaults(parallel=False))
def nb_newton_eval_many(x: np.ndarray, c: np.ndarray, t: np.ndarray) -> np.ndarray:
    """
    Evaluate a Newton polynomial at every point of `t` except ``t[0]``,
    which maps to 0.
    """

    y = np.zeros(t.shape[0], dtype=np.float64)
    for j in range(1, t.shape[0]):
        y[j] = nb_newton_eval(x, c, t[j])
    return y


def newton_is_monotone(u: np.ndarray, x: np.ndarray) -> bool:
    r"""
    Whether the polynomial interpolating :math:`(u_j, x_j)` is
    non-decreasing on :math:`[u_0, u_n]`.

    The points are first mapped onto :math:`[0, 1]^2`, where the polynomial
    is well conditioned whatever the width and mass of the interval. It is
    then converted to the power basis, and the sign of its derivative is
    checked between consecutive real roots of the derivative.

    Parameters
    ----------
    u
        The interpolation abscissas, increasing
    x
        The interpolation ordinates, increasing
    """
    du = u[-1] - u[0]
    dx = x[-1] - x[0]
    if not (du > 0 and dx > 0):
        return False
    s = (u - u[0]) / du
    y = (x - x[0]) / dx
    d = nb_newton_coefficients(s, y)
    if not np.all(np.isfinite(d)):
        return False

    p = np.array([d[-1]])
    for j in range(len(d) - 2, -1, -1):
        p = P.polyadd(P.polysub(P.polymulx(p), s[j] * p), [d[j]])
    dp = P.polyder(p)

    roots = P.polyroots(dp)
    crit = np.sort(roots[np.abs(roots.imag) <= 1e-12].real)
    crit = crit[(crit > 0) & (crit < 1)]
    edges = np.concatenate(([0.0], crit, [1.0]))
    return bool(np.all(P.polyval(0.5 * (edges[:-1] + edges[1:]), dp) >= 0))
