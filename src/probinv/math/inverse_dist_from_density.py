r"""
Numerical inversion of an arbitrary continuous distribution known only
through its density (Derflinger, Hörmann and Leydold, 2010).

The cumulative probabilities are pre-computed by adaptive quadrature of the
density over small intervals, and the inverse CDF is interpolated on each
interval by a Newton polynomial. The tails beyond the cut-offs are inverted
in closed form. The set-up is slow, but afterwards the inversion costs one
indexed search and one polynomial evaluation, independently of the density.

Example:

>>> from scipy.stats import gamma
>>> dist = InverseDistFromDensity.from_dist(gamma(5.0), xc=4.0, eps=1e-10, order=5)
>>> dist.inverse_f([1e-12, 0.5, 1 - 1e-12]) # direct call to the numba kernel
>>> dist.ppf(0.5) # the scipy method, same kernel
>>> dist.rvs(1000) # inversion sampling through scipy
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Union

import numba as nb
import numpy as np
from scipy.stats import rv_continuous

from probinv.errors import ConfigurationError, DomainError, NormalizationError
from probinv.math.interpolation import nb_newton_eval
from probinv.math.quadrature import integrate_around
from probinv.math.support import (
    NO_TAIL,
    TailModel,
    find_cutoff,
    find_support,
    nb_tail_quantile,
)
from probinv.math.tables import InversionTable, build_table
from probinv.utils import load_config
from probinv.utils import numba_math_defaults_kwargs as nb_kwargs

log = logging.getLogger(__name__)

EPS_MIN = 1.0e-15
EPS_MAX = 1.0e-3
ORDER_MIN = 3
ORDER_MAX = 12
# tolerance of the normalization check
MASS_TOL = 0.05

_CONFIG_KEYS = {"xc", "eps", "order", "x_left", "x_right", "strict", "name"}


@nb.njit(**nb_kwargs)
def nb_inverse_f(
    u: np.ndarray,
    a: np.ndarray,
    f: np.ndarray,
    xu: np.ndarray,
    c: np.ndarray,
    index: np.ndarray,
    support_a: float,
    support_b: float,
    eps_tail: float,
    left: np.ndarray,
    right: np.ndarray,
) -> np.ndarray:
    r"""
    Inverse CDF from the interpolation tables and the tail models.
    As a Numba JIT function, it is called directly on arrays of
    probabilities.

    Parameters
    ----------
    u
        Probabilities in :math:`[0, 1]`
    a, f, xu, c, index
        The arrays of an :class:`.InversionTable` (``xu`` is ``table.u``)
    support_a, support_b
        The support of the distribution
    eps_tail
        Probability of each tail handled by a tail model
    left, right
        Tail parameters from :meth:`.TailModel.as_array`, zeros if absent

    Returns
    -------
    x
        The quantiles, clamped to the support
    """

    k_max = f.shape[0] - 1
    i_max = index.shape[0] - 1
    x = np.empty(u.shape[0], dtype=np.float64)
    for i in nb.prange(u.shape[0]):
        ui = u[i]
        if ui <= 0.0:
            x[i] = support_a
        elif ui >= 1.0:
            x[i] = support_b
        elif left[0] > 0.5 and ui < eps_tail:
            xi = nb_tail_quantile(ui, left[1], left[2], left[3], left[4], left[5])
            x[i] = min(max(xi, support_a), a[0])
        elif right[0] > 0.5 and ui > 1.0 - eps_tail:
            xi = nb_tail_quantile(
                1.0 - ui, right[1], right[2], right[3], right[4], right[5]
            )
            x[i] = max(min(xi, support_b), a[k_max])
        else:
            k = index[int(i_max * ui)]
            while k < k_max and ui >= f[k]:
                k += 1
            if k > 0:
                k -= 1
            xi = a[k] + nb_newton_eval(xu[k], c[k], ui - f[k])
            xi = min(max(xi, a[k]), a[k + 1])
            x[i] = min(max(xi, support_a), support_b)
    return x


def _check_params(eps: float, order: int) -> None:
    if not EPS_MIN <= eps <= EPS_MAX:
        raise ConfigurationError(f"eps must be in [{EPS_MIN}, {EPS_MAX}], got {eps}")
    if int(order) != order or not ORDER_MIN <= order <= ORDER_MAX:
        raise ConfigurationError(
            f"order must be an integer in [{ORDER_MIN}, {ORDER_MAX}], got {order}"
        )


def _restrict(
    density: Callable[[float], float], support_a: float, support_b: float
) -> Callable[[float], float]:
    """The density as a float function, 0 outside the support."""

    def dens(x: float) -> float:
        if x < support_a or x > support_b:
            return 0.0
        return float(density(x))

    return dens


class InverseDistFromDensity(rv_continuous):
    r"""
    Inverse of an arbitrary continuous distribution given its density.

    The u-resolution `eps` is the maximal absolute error in the CDF of the
    returned quantiles, and `order` is the degree of the Newton polynomial
    on each interval. An `order` of 3 or 5 and an `eps` between 1e-6 and
    1e-12 are usually good choices. The method may fail for densities that
    become infinite at a point if a too small `eps` is requested.

    Subclasses scipy's rv_continuous, so that ``ppf``, ``isf``, ``median``
    and ``rvs`` use the inversion tables. The CDF itself is not available.
    """

    def __init__(
        self,
        density: Callable[[float], float],
        xc: float,
        eps: float,
        order: int,
        x_left: float = -np.inf,
        x_right: float = np.inf,
        strict: bool = False,
        name: str = None,
    ) -> None:
        r"""
        Parameters
        ----------
        density
            The probability density, a function of one float
        xc
            A point where the density is large: mode, mean or median
        eps
            The u-resolution, in :math:`[10^{-15}, 10^{-3}]`
        order
            Degree of the interpolating polynomials, in :math:`[3, 12]`
        x_left
            Left boundary of the support, the density is 0 below
        x_right
            Right boundary of the support, the density is 0 above
        strict
            If True, an interval where the interpolation is not monotone
            raises :class:`.NonMonotoneError` instead of being refined
            silently
        name
            Name of the distribution
        """
        _check_params(eps, order)
        if not x_left < x_right:
            raise ConfigurationError(f"empty support [{x_left}, {x_right}]")
        if not x_left <= xc <= x_right:
            raise ConfigurationError(f"xc = {xc} is outside [{x_left}, {x_right}]")

        super().__init__(a=x_left, b=x_right, name="inverse_dist_from_density")
        self._density = density
        self._xc = float(xc)
        self._eps = float(eps)
        self._order = int(order)
        self._strict = strict
        self._label = name if name is not None else "InverseDistFromDensity"
        self._support_a = float(x_left)
        self._support_b = float(x_right)

        self._setup()

    def _setup(self) -> None:
        dens = _restrict(self._density, self._support_a, self._support_b)
        yc = dens(self._xc)
        if not 0 < yc < np.inf:
            raise ConfigurationError(
                f"the density at xc = {self._xc} must be positive and finite, got {yc}"
            )
        eps_u = 0.9 * self._eps

        bleft, bright = find_support(dens, self._xc, self._support_a, self._support_b)
        mass = integrate_around(dens, bleft, bright, self._xc, 1.0e-9)
        if abs(mass - 1.0) > MASS_TOL:
            raise NormalizationError(
                f"not a probability density on [{bleft:g}, {bright:g}]", mass=mass
            )

        eps_tail = min(max(0.05 * eps_u * mass, 1.0e-15), 1.0e-10)
        bl, left = find_cutoff(
            dens,
            bleft,
            eps_tail,
            False,
            self._xc,
            bleft,
            bright,
            self._support_a,
            self._support_b,
        )
        br, right = find_cutoff(
            dens,
            bright,
            eps_tail,
            True,
            self._xc,
            bleft,
            bright,
            self._support_a,
            self._support_b,
        )
        if not bl < br:
            log.warning(f"tail cut-offs {bl:g} >= {br:g}, dropping the tail models")
            bl, br, left, right = bleft, bright, None, None

        self._table = build_table(
            dens,
            bl,
            br,
            self._order,
            eps_u,
            eps_tail,
            f_start=eps_tail if left is not None else 0.0,
            f_end=1.0 - eps_tail if right is not None else 1.0,
            xc=self._xc,
            strict=self._strict,
        )
        self._eps_tail = eps_tail
        self._left = left
        self._right = right
        self._left_arr = left.as_array() if left is not None else NO_TAIL.copy()
        self._right_arr = right.as_array() if right is not None else NO_TAIL.copy()
        self._left_arr.flags.writeable = False
        self._right_arr.flags.writeable = False

        log.info(
            f"{self._label}: {self._table.n_intervals} intervals on "
            f"[{bl:.6g}, {br:.6g}], left tail: {left is not None}, "
            f"right tail: {right is not None}"
        )

    @classmethod
    def from_dist(
        cls, dist, xc: float, eps: float, order: int, strict: bool = False
    ) -> InverseDistFromDensity:
        """
        Build the inverse of a distribution object with a ``pdf`` method and
        a ``support()`` method, e.g. a frozen scipy distribution.
        """
        x_left, x_right = (float(b) for b in dist.support())
        if hasattr(dist, "dist") and hasattr(dist, "args"):
            pars = [repr(p) for p in dist.args]
            pars += [f"{k}={v!r}" for k, v in dist.kwds.items()]
            label = f"{dist.dist.name}({', '.join(pars)})"
        else:
            label = str(dist)
        return cls(
            dist.pdf,
            xc,
            eps,
            order,
            x_left,
            x_right,
            strict=strict,
            name=f"InverseDistFromDensity: {label}",
        )

    @classmethod
    def from_config(
        cls, density: Callable[[float], float], config: Union[dict, str, Path]
    ) -> InverseDistFromDensity:
        """
        Build from a mapping, or a json/yaml file, with keys ``xc``, ``eps``,
        ``order`` and optionally ``x_left``, ``x_right``, ``strict``, ``name``.

        Examples
        --------
        .. code-block :: yaml

            xc: 0.0
            eps: 1.0e-10
            order: 5
            x_left: -.inf
            x_right: .inf
        """
        config = load_config(config, ("xc", "eps", "order"), _CONFIG_KEYS)

        return cls(
            density,
            float(config["xc"]),
            float(config["eps"]),
            config["order"],
            x_left=float(config.get("x_left", -np.inf)),
            x_right=float(config.get("x_right", np.inf)),
            strict=bool(config.get("strict", False)),
            name=config.get("name"),
        )

    def density(self, x: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
        """The density given at construction."""
        if np.ndim(x) == 0:
            return float(self._density(x))
        x = np.asarray(x, dtype=np.float64)
        return np.array([self._density(xi) for xi in x.ravel()]).reshape(x.shape)

    get_pdf = density

    def inverse_f(self, u: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
        """
        Inverse CDF at `u`, a direct call to the numba kernel.

        Raises
        ------
        DomainError
            if any `u` is outside of [0, 1]
        """
        u_arr = np.asarray(u, dtype=np.float64)
        if np.any(np.isnan(u_arr)) or np.any(u_arr < 0.0) or np.any(u_arr > 1.0):
            raise DomainError(f"u not in [0, 1]: {u}")
        x = self._inverse(u_arr)
        if u_arr.ndim == 0:
            return float(x)
        return x

    def _inverse(self, u: np.ndarray) -> np.ndarray:
        t = self._table
        x = nb_inverse_f(
            np.ascontiguousarray(u, dtype=np.float64).ravel(),
            t.a,
            t.f,
            t.u,
            t.c,
            t.index,
            self._support_a,
            self._support_b,
            self._eps_tail,
            self._left_arr,
            self._right_arr,
        )
        return x.reshape(np.shape(u))

    def get_cdf(self, x):
        raise NotImplementedError(
            "the CDF is not computed by the inversion; use the original distribution"
        )

    def _pdf(self, x: np.ndarray) -> np.ndarray:
        return self.density(x)

    def _cdf(self, x: np.ndarray) -> np.ndarray:
        return self.get_cdf(x)

    def _ppf(self, q: np.ndarray) -> np.ndarray:
        return self._inverse(np.asarray(q, dtype=np.float64))

    @property
    def xc(self) -> float:
        return self._xc

    @property
    def eps(self) -> float:
        return self._eps

    @property
    def order(self) -> int:
        return self._order

    @property
    def eps_tail(self) -> float:
        """Probability of each tail inverted by a tail model."""
        return self._eps_tail

    @property
    def left_tail(self) -> TailModel | None:
        return self._left

    @property
    def right_tail(self) -> TailModel | None:
        return self._right

    @property
    def table(self) -> InversionTable:
        return self._table

    @property
    def breakpoints(self) -> np.ndarray:
        return self._table.a

    @property
    def cdf_values(self) -> np.ndarray:
        return self._table.f

    def get_params(self) -> list:
        """[xc, eps, order]"""
        return [self._xc, self._eps, self._order]

    def __str__(self) -> str:
        return self._label
