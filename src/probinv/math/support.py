r"""
Location of the computational domain of a density and of its tail cut-offs.

The domain :math:`[b_{left}, b_{right}]` is where the density is larger than
:math:`10^{-13} f(x_c)`. Beyond the cut-offs :math:`b_l \ge b_{left}` and
:math:`b_r \le b_{right}` the inverse CDF is given by a closed-form tail
model instead of the interpolation tables.

Tail models use the :math:`T_c`-concavity of the density (Derflinger,
Hörmann and Leydold, 2010). The local concavity of :math:`f` at :math:`x` is

.. math::
    c = \frac{f_r}{f_r - f} + \frac{f_l}{f_l - f} - 1

where :math:`f_l, f, f_r` are evaluated at :math:`x - h, x, x + h`. For a
normal density :math:`c = 1/z^2`, for a Cauchy density
:math:`c = -1/2 + 1/(2z^2)`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

import numba as nb
import numpy as np

from probinv.errors import UnsupportedDensityError
from probinv.utils import numba_math_defaults as nb_defaults

log = logging.getLogger(__name__)

HUGE = np.finfo(np.float64).max / 2.0
# below this |c| the tail is modelled as exponential
EPS_CONCAVITY = 1.0e-5
# a density below this at a finite boundary is treated as 0 there
TINY_DENSITY = 1.0e-50
# relative density level that defines the computational domain
REL_SUPPORT = 1.0e-13
# moves inside a finite boundary where the density is 0 or infinite
DELTA = 1.0e-100
DELTAR = 1.0e-14
EPS_X = 1.0e-3

MAX_EXPANSIONS = 1100
MAX_BISECTIONS = 200
MAX_CUTOFF_ITER = 30
MAX_STEP_HALVINGS = 10


@nb.njit(**nb_defaults(parallel=False))
def nb_tail_quantile(
    v: float,
    edge: float,
    scale: float,
    normalizer: float,
    exponent: float,
    log_linear: float,
) -> float:
    r"""
    Inverse of the local tail CDF approximation.

    .. math::
        x = \begin{cases} x_0 + s \ln(v k) \quad , |c| \le \epsilon_c \\
            x_0 + s \left((v k)^{c/(1+c)} - 1\right) \quad , |c| > \epsilon_c \end{cases}

    Parameters
    ----------
    v
        The tail probability, :math:`u` in the left tail and :math:`1-u` in
        the right tail
    edge
        The point :math:`x_0` where the model was fitted
    scale
        :math:`s = f/f'` or :math:`f/(c f')`
    normalizer
        :math:`k = |f'|/f^2` or :math:`(1+c)|f'|/f^2`
    exponent
        :math:`c/(1+c)`
    log_linear
        1.0 for the exponential form, 0.0 for the power form
    """

    if log_linear > 0.5:
        return edge + scale * np.log(v * normalizer)
    return edge + scale * ((v * normalizer) ** exponent - 1.0)


@dataclass(frozen=True)
class TailModel:
    """Closed-form inverse CDF of one tail, fitted at `edge`.

    Attributes
    ----------
    edge
        where the density and its derivative were measured
    scale, normalizer, exponent
        the parameters of :func:`nb_tail_quantile`
    concavity
        the local concavity :math:`c` measured at `edge`
    mass
        the estimated tail probability beyond `edge`
    right
        whether this is the right tail
    """

    edge: float
    scale: float
    normalizer: float
    exponent: float
    concavity: float
    mass: float
    right: bool

    @property
    def log_linear(self) -> bool:
        return abs(self.concavity) <= EPS_CONCAVITY

    @classmethod
    def fit(
        cls, x: float, y: float, yprime: float, c: float, right: bool
    ) -> TailModel | None:
        """Build the model from the density `y`, its derivative `yprime` and
        the local concavity `c` at `x`. Returns None when they do not
        describe a decreasing tail."""
        if y <= 0 or (yprime >= 0 if right else yprime <= 0):
            return None
        if 1.0 + c <= 0:
            return None

        mass = abs(y * y / ((1.0 + c) * yprime))
        if abs(c) <= EPS_CONCAVITY:
            scale = y / yprime
            normalizer = abs(yprime) / (y * y)
            exponent = 0.0
        else:
            scale = y / (c * yprime)
            normalizer = (1.0 + c) * abs(yprime) / (y * y)
            exponent = c / (1.0 + c)

        if not (np.isfinite(scale) and np.isfinite(normalizer) and normalizer > 0):
            return None
        return cls(x, scale, normalizer, exponent, c, mass, right)

    def inverse(self, v: float) -> float:
        """x-value beyond which the tail probability is `v`."""
        return nb_tail_quantile(
            v,
            self.edge,
            self.scale,
            self.normalizer,
            self.exponent,
            float(self.log_linear),
        )

    def quantile(self, u: float) -> float:
        """Inverse CDF at probability `u`."""
        return self.inverse(1.0 - u if self.right else u)

    def as_array(self) -> np.ndarray:
        """Flat parameter array ``[active, edge, scale, normalizer, exponent,
        log_linear]`` used by the query kernel."""
        return np.array(
            [
                1.0,
                self.edge,
                self.scale,
                self.normalizer,
                self.exponent,
                float(self.log_linear),
            ]
        )


NO_TAIL = np.zeros(6)


def bin_search(
    density: Callable[[float], float],
    xa: float,
    xb: float,
    eps: float,
    right: bool,
    support_a: float = -np.inf,
    support_b: float = np.inf,
) -> float:
    """
    Bisect :math:`[x_a, x_b]` for an x where the density is a little smaller
    than `eps`, i.e. in :math:`[0.1 \\epsilon, \\epsilon]`.

    In the right tail the density decreases from `xa` to `xb`, in the left
    tail it increases.
    """
    epslow = 0.1 * eps
    x = 0.5 * (xa + xb)
    for _ in range(MAX_BISECTIONS):
        x = 0.5 * (xa + xb)
        done = (xb - xa) < eps * abs(x) or (xb - xa) < eps or x in (xa, xb)
        if done:
            x = min(max(x, support_a), support_b)
        y = density(x)
        if y < epslow:
            if right:
                xb = x
            else:
                xa = x
        elif y > eps:
            if right:
                xa = x
            else:
                xb = x
        else:
            done = True
        if done:
            break
    log.debug(f"bin_search: x = {x:g}, f = {y:g}, f/eps = {y / eps:g}")
    return x


def _boundary_edge(
    density: Callable[[float], float], b: float, inward: float
) -> float | None:
    """Effective edge at the finite boundary `b`, or None if the density is
    negligible there."""
    x = b
    y = density(x)
    if y >= HUGE or y <= 0.0:
        # 0 or infinite at b: step just inside
        x = b + inward * DELTAR * abs(b)
        if x == 0:
            x = inward * DELTA
        y = density(x)

    if y >= HUGE:
        side = "left" if inward > 0 else "right"
        raise UnsupportedDensityError(f"infinite density at {side} boundary {b!r}")

    if y >= TINY_DENSITY:
        return x
    return None


def find_support(
    density: Callable[[float], float],
    xc: float,
    support_a: float = -np.inf,
    support_b: float = np.inf,
) -> tuple[float, float]:
    """
    Find :math:`b_{left} \\le x_c \\le b_{right}` such that the density is
    about :math:`10^{-13} f(x_c)` at both ends, or a finite support
    boundary where the density is not negligible.

    Parameters
    ----------
    density
        The density, 0 outside :math:`[support_a, support_b]`
    xc
        A point where the density is large
    support_a
        Left boundary of the support
    support_b
        Right boundary of the support

    Returns
    -------
    bleft, bright
        The computational domain
    """
    bleft = bright = None
    if np.isfinite(support_a):
        bleft = _boundary_edge(density, support_a, 1.0)
    if np.isfinite(support_b):
        bright = _boundary_edge(density, support_b, -1.0)

    if bleft is not None and bright is not None:
        return bleft, bright

    epsy = REL_SUPPORT * density(xc)

    if bright is None:
        h = 1.0
        xa = xc
        xb = xc + h
        for _ in range(MAX_EXPANSIONS):
            if density(xb) < epsy:
                break
            xa = xb
            h *= 2.0
            xb += h
        # now density(xa) > epsy > density(xb)
        xb = min(xb, support_b)
        bright = bin_search(density, xa, xb, epsy, True, support_a, support_b)

    if bleft is None:
        h = 1.0
        xb = xc
        xa = xc - h
        for _ in range(MAX_EXPANSIONS):
            if density(xa) < epsy:
                break
            xb = xa
            h *= 2.0
            xa -= h
        xa = max(xa, support_a)
        bleft = bin_search(density, xa, xb, epsy, False, support_a, support_b)

    log.debug(f"computational domain: [{bleft:.10g}, {bright:.10g}]")
    return bleft, bright


def _local_samples(
    density: Callable[[float], float],
    x: float,
    h: float,
    support_a: float,
    support_b: float,
) -> tuple[float, float, float, float] | None:
    """Density at x - h, x, x + h, halving h until none of them is 0."""
    for _ in range(MAX_STEP_HALVINGS):
        h = min(h, support_b - x, x - support_a)
        yl = density(x - h)
        y = density(x)
        yr = density(x + h)
        if yl != 0 and y != 0 and yr != 0:
            return yl, y, yr, h
        h *= 0.5
    return None


def find_cutoff(
    density: Callable[[float], float],
    x0: float,
    eps_tail: float,
    right: bool,
    xc: float,
    bleft: float,
    bright: float,
    support_a: float = -np.inf,
    support_b: float = np.inf,
) -> tuple[float, TailModel | None]:
    """
    Find the cut-off x where the tail probability is `eps_tail`, by
    successive approximations of the tail starting at `x0`.

    Parameters
    ----------
    density
        The density, 0 outside :math:`[support_a, support_b]`
    x0
        Starting point, `bleft` or `bright`
    eps_tail
        Target tail probability
    right
        Right tail if True, otherwise left tail
    xc
        A point where the density is large; the cut-off stays on its side
    bleft, bright
        The computational domain from :func:`find_support`
    support_a, support_b
        The support of the density

    Returns
    -------
    cutoff, model
        The table boundary and the tail model beyond it. The model is None
        when the density is not negligible up to a finite support boundary,
        and the cut-off is then that boundary (or the domain edge if the
        density may be infinite there).
    """
    if right:
        if np.isfinite(support_b) and (
            support_b - bright <= EPS_X or support_b - bright <= abs(support_b) * EPS_X
        ):
            dy = density(bright) - density(bright - EPS_X)
            # increasing toward support_b: may be infinite there
            return (support_b if dy < 0 else bright), None
    else:
        if np.isfinite(support_a) and (
            bleft - support_a <= EPS_X or bleft - support_a <= abs(support_a) * EPS_X
        ):
            dy = density(bleft + EPS_X) - density(bleft)
            return (support_a if dy > 0 else bleft), None

    span = bright - bleft
    h = max(1.0 / 64.0, span / 1024.0)
    x = x0
    model = None
    cutoff = x0
    side = "right" if right else "left"

    for it in range(MAX_CUTOFF_ITER):
        samples = _local_samples(density, x, h, support_a, support_b)
        if samples is None:
            break
        yl, y, yr, h = samples
        if yr == y or yl == y:
            break

        c = yr / (yr - y) + yl / (yl - y) - 1.0
        yprime = (yr - yl) / (2.0 * h)
        candidate = TailModel.fit(x, y, yprime, c, right)
        if candidate is None:
            break
        xnew = candidate.inverse(eps_tail)
        if not np.isfinite(xnew) or not (
            xc <= xnew <= support_b if right else support_a <= xnew <= xc
        ):
            break

        model, cutoff = candidate, xnew
        log.debug(f"{side} cutoff {it}: x = {xnew:g}, f = {y:g}, c = {c:g}")

        if abs(candidate.mass / eps_tail - 1.0) < 1.0e-4:
            break
        if abs(xnew - x) <= max(abs(x) * EPS_X, EPS_X):
            break
        if abs(xnew - x) >= span:
            break
        x = xnew

    if model is None:
        log.warning(f"no {side} tail model found, cutting the table at {x0:g}")
        return x0, None
    return cutoff, model
