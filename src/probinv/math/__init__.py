r"""
Numerical inversion of continuous distributions from their density.

:class:`.InverseDistFromDensity` builds, once, interpolation tables of the
inverse CDF of a density with an adaptive Newton interpolation of the CDF
(:mod:`.tables`) and closed-form tail models (:mod:`.support`). The tables
are then queried by a numba kernel.
"""

from probinv.math.inverse_dist_from_density import InverseDistFromDensity  # noqa: F401
from probinv.math.support import TailModel  # noqa: F401
from probinv.math.tables import InversionTable  # noqa: F401
