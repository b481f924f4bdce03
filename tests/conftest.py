import math

import pytest

from probinv.math.inverse_dist_from_density import InverseDistFromDensity

SQRT_2PI = math.sqrt(2 * math.pi)


def normal_density(x):
    return math.exp(-0.5 * x * x) / SQRT_2PI


def exponential_density(x):
    return math.exp(-x) if x >= 0 else 0.0


def cauchy_density(x):
    return 1.0 / (math.pi * (1.0 + x * x))


def gamma3_density(x):
    return 0.5 * x * x * math.exp(-x) if x > 0 else 0.0


def beta22_density(x):
    return 6.0 * x * (1.0 - x) if 0 <= x <= 1 else 0.0


@pytest.fixture(scope="session")
def normal_inv():
    return InverseDistFromDensity(normal_density, 0.0, 1e-10, 5)


@pytest.fixture(scope="session")
def truncated_normal_inv():
    return InverseDistFromDensity(normal_density, 0.0, 1e-10, 5, -8.0, 8.0)


@pytest.fixture(scope="session")
def exponential_inv():
    return InverseDistFromDensity(exponential_density, 1.0, 1e-10, 5, 0.0)


@pytest.fixture(scope="session")
def cauchy_inv():
    return InverseDistFromDensity(cauchy_density, 0.0, 1e-8, 5)


@pytest.fixture(scope="session")
def gamma_inv():
    return InverseDistFromDensity(gamma3_density, 2.0, 1e-10, 7, 0.0)


@pytest.fixture(scope="session")
def beta_inv():
    return InverseDistFromDensity(beta22_density, 0.5, 1e-10, 3, 0.0, 1.0)
