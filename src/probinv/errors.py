from __future__ import annotations


class InversionError(Exception):
    """Base class for errors raised by the numerical inversion engine."""

    pass


class ConfigurationError(InversionError, ValueError):
    """Error thrown when the requested precision, interpolation order or
    configuration mapping is invalid."""

    pass


class NormalizationError(InversionError):
    """Fatal error thrown when the density is not a probability density:
    its integral over the computational domain is not close to 1, or the
    tabulated cumulative probability exceeds 1.

    Attributes
    ----------
    mass: float
        the offending probability mass, when known.
    """

    def __init__(self, *args, mass: float = None) -> None:
        super().__init__(*args)
        self.mass = mass

    def __str__(self) -> str:
        suffix = ""
        if self.mass is not None:
            suffix += f" (mass = {self.mass:.6g})"
        return super().__str__() + suffix


class UnsupportedDensityError(InversionError):
    """Error thrown when the density is infinite just inside a finite
    boundary of its support."""

    pass


class NonMonotoneError(InversionError):
    """Error thrown by the quadrature when asked to integrate over a reversed
    interval, which happens when an interpolating polynomial is not
    monotone on its interval.

    The table builder recovers from it by halving the interval width, unless
    it runs in strict mode.

    Attributes
    ----------
    lower: float
        lower integration bound.
    upper: float
        upper integration bound, smaller than `lower`.
    """

    def __init__(self, *args, lower: float = None, upper: float = None) -> None:
        super().__init__(*args)
        self.lower = lower
        self.upper = upper

    def __str__(self) -> str:
        suffix = ""
        if self.lower is not None and self.upper is not None:
            suffix += f"\nThrown while integrating over [{self.lower!r}, {self.upper!r}]"
        return super().__str__() + suffix


class DomainError(InversionError, ValueError):
    """Error thrown when a probability outside of [0, 1] is inverted."""

    pass
