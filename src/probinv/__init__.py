"""
probinv: inverse CDFs of arbitrary continuous distributions from their
density, by adaptive Newton interpolation.
"""

from ._version import version as __version__
from .errors import (
    ConfigurationError,
    DomainError,
    InversionError,
    NonMonotoneError,
    NormalizationError,
    UnsupportedDensityError,
)
from .math import InverseDistFromDensity
from .randvar import InverseFromDensityGen, NormalInverseFromDensityGen

__all__ = [
    "__version__",
    "ConfigurationError",
    "DomainError",
    "InversionError",
    "InverseDistFromDensity",
    "InverseFromDensityGen",
    "NonMonotoneError",
    "NormalInverseFromDensityGen",
    "NormalizationError",
    "UnsupportedDensityError",
]
