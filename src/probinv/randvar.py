"""
Random variate generation by numerical inversion of a density.

The set-up of the inversion tables is slow, but generation afterwards costs
one table lookup per variate and is practically independent of the density
and of the requested precision. Worthwhile for large samples from a
distribution with fixed parameters.

Example:

>>> gen = NormalInverseFromDensityGen(10.5, 5.0, eps=1e-10, order=5, seed=42)
>>> gen.next_array(1_000_000)
"""

from __future__ import annotations

import math
from typing import Callable

import numpy as np

from probinv.errors import ConfigurationError
from probinv.math.inverse_dist_from_density import InverseDistFromDensity

# uniforms are drawn on a grid of this many points in (0, 1)
_U_GRID = 2**52


class InverseFromDensityGen:
    """Generator of variates from an :class:`.InverseDistFromDensity`.

    Uniforms are drawn in the open interval (0, 1), so the variates are
    always finite even when the support is not.
    """

    def __init__(self, dist: InverseDistFromDensity, seed=None) -> None:
        """
        Parameters
        ----------
        dist
            The inverted distribution
        seed
            Anything accepted by :func:`numpy.random.default_rng`
        """
        self._dist = dist
        self.rng = np.random.default_rng(seed)

    @classmethod
    def from_density(
        cls,
        density: Callable[[float], float],
        xc: float,
        eps: float,
        order: int,
        x_left: float = -np.inf,
        x_right: float = np.inf,
        seed=None,
    ) -> InverseFromDensityGen:
        dist = InverseDistFromDensity(density, xc, eps, order, x_left, x_right)
        return cls(dist, seed)

    def _uniforms(self, n: int = None) -> np.ndarray:
        return (self.rng.integers(0, _U_GRID, size=n) + 0.5) / _U_GRID

    def next_double(self) -> float:
        return self._dist.inverse_f(float(self._uniforms()))

    def next_array(self, n: int) -> np.ndarray:
        return self._dist.inverse_f(self._uniforms(n))

    @property
    def dist(self) -> InverseDistFromDensity:
        return self._dist

    @property
    def eps(self) -> float:
        return self._dist.eps

    @property
    def order(self) -> int:
        return self._dist.order


class NormalInverseFromDensityGen(InverseFromDensityGen):
    """Normal variates by inversion of the normal density, with
    ``xc = mu``."""

    def __init__(
        self, mu: float, sigma: float, eps: float, order: int, seed=None
    ) -> None:
        if not sigma > 0:
            raise ConfigurationError(f"sigma must be positive, got {sigma}")
        self.mu = mu
        self.sigma = sigma
        invnorm = 1.0 / (sigma * math.sqrt(2.0 * math.pi))

        def density(x: float) -> float:
            z = (x - mu) / sigma
            return invnorm * math.exp(-0.5 * z * z)

        dist = InverseDistFromDensity(
            density, mu, eps, order, name=f"InverseDistFromDensity: norm({mu}, {sigma})"
        )
        super().__init__(dist, seed)
