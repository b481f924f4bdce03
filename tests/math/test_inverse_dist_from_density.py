import logging
import math

import numpy as np
import pytest
from scipy.stats import beta, cauchy, expon, gamma, kstest, norm

import probinv.math.tables as tables
from conftest import beta22_density, normal_density
from probinv.errors import (
    ConfigurationError,
    DomainError,
    NonMonotoneError,
    NormalizationError,
    UnsupportedDensityError,
)
from probinv.math.inverse_dist_from_density import InverseDistFromDensity

U_GRID = np.concatenate(
    [
        np.logspace(-14, -1, 40),
        np.linspace(0.1, 0.9, 81)[1:-1],
        1.0 - np.logspace(-1, -14, 40),
    ]
)


def u_error(ref, x, u):
    # the upper half is compared through the survival function
    return np.where(u < 0.5, np.abs(ref.cdf(x) - u), np.abs(ref.sf(x) - (1.0 - u)))


@pytest.mark.parametrize(
    "fixture, ref",
    [
        ("normal_inv", norm),
        ("exponential_inv", expon),
        ("cauchy_inv", cauchy),
        ("gamma_inv", gamma(3.0)),
        ("beta_inv", beta(2.0, 2.0)),
    ],
)
def test_u_error(fixture, ref, request):
    inv = request.getfixturevalue(fixture)
    x = inv.inverse_f(U_GRID)
    assert np.all(np.isfinite(x))
    assert np.max(u_error(ref, x, U_GRID)) <= 5 * inv.eps


@pytest.mark.parametrize(
    "fixture",
    ["normal_inv", "exponential_inv", "cauchy_inv", "gamma_inv", "beta_inv"],
)
def test_monotone(fixture, request):
    inv = request.getfixturevalue(fixture)
    u = np.sort(
        np.concatenate(
            [
                np.logspace(-300, -1, 500),
                np.linspace(0.1, 0.9, 2001),
                1.0 - np.logspace(-1, -16, 500),
            ]
        )
    )
    x = inv.inverse_f(u)
    assert np.all(np.diff(x) >= 0)


def test_boundaries(normal_inv, exponential_inv, beta_inv, truncated_normal_inv):
    assert normal_inv.inverse_f(0.0) == -np.inf
    assert normal_inv.inverse_f(1.0) == np.inf
    assert exponential_inv.inverse_f(0.0) == 0.0
    assert exponential_inv.inverse_f(1.0) == np.inf
    assert beta_inv.inverse_f(0.0) == 0.0
    assert beta_inv.inverse_f(1.0) == 1.0
    assert truncated_normal_inv.inverse_f(0.0) == -8.0
    assert truncated_normal_inv.inverse_f(1.0) == 8.0


def test_truncated_normal(truncated_normal_inv):
    inv = truncated_normal_inv
    assert inv.inverse_f(0.5) == pytest.approx(0.0, abs=1e-6)
    assert inv.inverse_f(0.975) == pytest.approx(1.959964, abs=1e-6)
    assert abs(norm.cdf(inv.inverse_f(1e-6)) - 1e-6) <= 5 * inv.eps

    x = inv.inverse_f(U_GRID)
    assert np.all((x >= -8.0) & (x <= 8.0))


def test_tails(normal_inv, exponential_inv, cauchy_inv, beta_inv):
    assert not normal_inv.left_tail.log_linear
    assert not normal_inv.right_tail.log_linear
    assert normal_inv.eps_tail == pytest.approx(0.05 * 0.9 * 1e-10, rel=1e-3)

    assert exponential_inv.left_tail is None
    assert exponential_inv.right_tail.log_linear
    assert exponential_inv.breakpoints[0] == 0.0
    assert exponential_inv.cdf_values[0] == 0.0

    for model in (cauchy_inv.left_tail, cauchy_inv.right_tail):
        assert model.concavity == pytest.approx(-0.5, abs=1e-3)
    # tail cut-offs are clamped to 1e-10
    assert cauchy_inv.eps_tail == 1e-10

    assert beta_inv.left_tail is None
    assert beta_inv.right_tail is None


def test_deep_tails(normal_inv, cauchy_inv):
    x = normal_inv.inverse_f(np.array([1e-300, 1e-100, 1e-20]))
    assert np.all(np.isfinite(x))
    assert np.all(x < normal_inv.breakpoints[0])
    # the tail model is approximate, only its order of magnitude matters
    assert x[2] == pytest.approx(norm.ppf(1e-20), rel=0.05)

    # 1 - 2**-50 is exact, so is the tail probability
    assert cauchy_inv.inverse_f(1.0 - 2.0**-50) == pytest.approx(
        cauchy.isf(2.0**-50), rel=0.05
    )


def test_scalar_and_shape(normal_inv):
    x = normal_inv.inverse_f(0.3)
    assert isinstance(x, float)
    assert x == pytest.approx(norm.ppf(0.3), abs=1e-8)

    u = np.full((2, 3), 0.5)
    assert normal_inv.inverse_f(u).shape == (2, 3)


def test_idempotent(gamma_inv):
    u = np.linspace(0.01, 0.99, 99)
    assert np.array_equal(gamma_inv.inverse_f(u), gamma_inv.inverse_f(u))


@pytest.mark.parametrize("u", [-0.1, 1.1, np.nan, [0.5, 2.0]])
def test_domain_error(normal_inv, u):
    with pytest.raises(DomainError):
        normal_inv.inverse_f(u)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"eps": 1e-20},
        {"eps": 0.1},
        {"order": 2},
        {"order": 20},
        {"order": 4.5},
        {"xc": 5.0, "x_left": -1.0, "x_right": 1.0},
        {"x_left": 1.0, "x_right": -1.0},
        {"xc": 100.0},
    ],
)
def test_invalid_parameters(kwargs):
    pars = {"xc": 0.0, "eps": 1e-8, "order": 5}
    pars.update(kwargs)
    with pytest.raises(ConfigurationError):
        InverseDistFromDensity(normal_density, **pars)


def test_not_normalized():
    with pytest.raises(NormalizationError) as exc:
        InverseDistFromDensity(lambda x: 0.5 * normal_density(x), 0.0, 1e-8, 5)
    assert exc.value.mass == pytest.approx(0.5, rel=1e-4)
    assert "mass = 0.5" in str(exc.value)


def test_infinite_boundary_density():
    def dens(x):
        return math.inf if x < 1e-3 else 1.0

    with pytest.raises(UnsupportedDensityError):
        InverseDistFromDensity(dens, 0.5, 1e-8, 5, 0.0, 1.0)


def test_strict(monkeypatch):
    def fail(density, a, y, v, tol):
        raise NonMonotoneError("reversed", lower=a + 1.0, upper=a)

    monkeypatch.setattr(tables, "max_cumulative_error", fail)
    with pytest.raises(NonMonotoneError):
        InverseDistFromDensity(normal_density, 0.0, 1e-6, 3, strict=True)


def test_strict_vanishing_density(beta_inv):
    # the inverse CDF of Beta(2, 2) behaves like sqrt(u) near 0, the cubic
    # through the Chebyshev points of the first interval is not monotone
    with pytest.raises(NonMonotoneError, match="decreases"):
        InverseDistFromDensity(beta22_density, 0.5, 1e-10, 3, 0.0, 1.0, strict=True)

    inv = beta_inv
    u = np.concatenate([np.logspace(-200, -2, 400), 1.0 - np.logspace(-2, -16, 400)])
    u.sort()
    x = inv.inverse_f(u)
    assert np.all(np.diff(x) >= 0)
    assert np.max(u_error(beta(2.0, 2.0), x, u)) <= 5 * inv.eps


def test_wide_domain(cauchy_inv):
    # the domain spans millions of units around a peak of width 1
    inv = cauchy_inv
    k = np.argmin(np.abs(inv.breakpoints))
    assert inv.breakpoints[k] == pytest.approx(0.0, abs=1e-12)
    assert inv.cdf_values[k] == pytest.approx(0.5, abs=5 * inv.eps)
    assert inv.cdf_values[-1] == 1.0 - inv.eps_tail


def test_scipy_methods(normal_inv):
    q = np.array([0.025, 0.5, 0.975])
    assert np.allclose(normal_inv.ppf(q), norm.ppf(q), rtol=0, atol=1e-8)
    assert normal_inv.isf(0.025) == pytest.approx(norm.isf(0.025), abs=1e-8)
    assert normal_inv.median() == pytest.approx(0.0, abs=1e-8)
    assert normal_inv.pdf(1.0) == pytest.approx(norm.pdf(1.0))
    assert normal_inv.support() == (-np.inf, np.inf)

    samples = normal_inv.rvs(size=5000, random_state=1234)
    assert np.all(np.isfinite(samples))
    assert kstest(samples, "norm").pvalue > 1e-3


def test_no_cdf(normal_inv):
    with pytest.raises(NotImplementedError):
        normal_inv.get_cdf(0.0)
    with pytest.raises(NotImplementedError):
        normal_inv.cdf(0.0)


def test_accessors(normal_inv):
    assert normal_inv.get_params() == [0.0, 1e-10, 5]
    assert normal_inv.xc == 0.0
    assert normal_inv.eps == 1e-10
    assert normal_inv.order == 5
    assert str(normal_inv) == "InverseDistFromDensity"

    assert normal_inv.density(0.5) == normal_density(0.5)
    assert normal_inv.get_pdf(0.5) == normal_density(0.5)
    y = normal_inv.density(np.array([[0.0, 1.0], [2.0, 3.0]]))
    assert y.shape == (2, 2)
    assert np.allclose(y, norm.pdf([[0.0, 1.0], [2.0, 3.0]]))


def test_from_dist():
    inv = InverseDistFromDensity.from_dist(gamma(5.0), 4.0, 1e-8, 5)
    assert str(inv) == "InverseDistFromDensity: gamma(5.0)"
    assert inv.support() == (0.0, np.inf)

    u = np.linspace(0.001, 0.999, 50)
    assert np.max(np.abs(gamma(5.0).cdf(inv.inverse_f(u)) - u)) <= 5 * inv.eps


def test_from_config(tmp_path):
    config = {"xc": 1.0, "eps": 1e-8, "order": 3, "x_left": 0.0, "name": "expon"}
    inv = InverseDistFromDensity.from_config(lambda x: math.exp(-x), config)
    assert str(inv) == "expon"
    assert inv.get_params() == [1.0, 1e-8, 3]
    assert inv.inverse_f(0.0) == 0.0

    fname = tmp_path / "normal.yaml"
    fname.write_text("xc: 0.0\neps: 1.0e-8\norder: 5\nx_left: -.inf\n")
    inv = InverseDistFromDensity.from_config(normal_density, fname)
    assert inv.inverse_f(0.975) == pytest.approx(norm.ppf(0.975), abs=1e-6)

    with pytest.raises(ConfigurationError, match="missing"):
        InverseDistFromDensity.from_config(normal_density, {"xc": 0.0, "eps": 1e-8})
    with pytest.raises(ConfigurationError, match="unknown"):
        InverseDistFromDensity.from_config(
            normal_density, {"xc": 0.0, "eps": 1e-8, "order": 5, "sigma": 1.0}
        )


def test_setup_logging(caplog):
    with caplog.at_level(logging.INFO, logger="probinv"):
        InverseDistFromDensity(normal_density, 0.0, 1e-6, 3, name="normal")
    assert any(
        rec.message.startswith("normal:") and "intervals" in rec.message
        for rec in caplog.records
    )
