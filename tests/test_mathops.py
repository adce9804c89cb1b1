import numpy as np
import pytest
from scipy.special import polygamma, psi

from ldaem.core.errors import NormalizationError
from ldaem.ml.mathops import (
    digamma,
    normalize,
    normalize_columns,
    normalize_or_uniform,
    solve_structured_newton_step,
    trigamma,
)

GRID = np.concatenate([np.logspace(-6, 0, 25), np.linspace(1.0, 10.0, 19), np.array([25.0, 100.0, 1e4])])


def test_normalize_sums_to_one():
    out = normalize([1.0, 3.0, 4.0])
    np.testing.assert_allclose(out, [0.125, 0.375, 0.5])
    assert out.sum() == pytest.approx(1.0, abs=1e-12)


@pytest.mark.parametrize("scale", [1e-8, 0.5, 3.0, 1e6])
def test_normalize_is_scale_invariant(rng, scale):
    v = rng.random(7) + 0.01
    np.testing.assert_allclose(normalize(scale * v), normalize(v), rtol=1e-12)


def test_normalize_all_zero_raises():
    with pytest.raises(NormalizationError):
        normalize(np.zeros(4))
    # still a ZeroDivisionError for callers that catch the builtin
    with pytest.raises(ZeroDivisionError):
        normalize([0.0, 0.0])


def test_normalize_or_uniform_falls_back():
    np.testing.assert_allclose(normalize_or_uniform(np.zeros(4)), np.full(4, 0.25))
    np.testing.assert_allclose(normalize_or_uniform([2.0, 2.0]), [0.5, 0.5])


def test_normalize_columns_handles_empty_column():
    m = np.array([[1.0, 0.0], [3.0, 0.0]])
    out = normalize_columns(m)
    np.testing.assert_allclose(out, [[0.25, 0.5], [0.75, 0.5]])
    assert not np.any(np.isnan(out))


def test_digamma_matches_scipy():
    np.testing.assert_allclose(digamma(GRID), psi(GRID), rtol=1e-10, atol=1e-8)


def test_trigamma_matches_scipy():
    np.testing.assert_allclose(trigamma(GRID), polygamma(1, GRID), rtol=1e-10, atol=1e-8)


def test_scalar_in_scalar_out():
    assert isinstance(digamma(1.0), float)
    assert digamma(1.0) == pytest.approx(-0.5772156649015329, abs=1e-10)
    assert trigamma(1.0) == pytest.approx(np.pi ** 2 / 6, abs=1e-10)


@pytest.mark.parametrize("bad", [0.0, -1.0, float("nan")])
def test_special_functions_reject_non_positive(bad):
    with pytest.raises(ValueError):
        digamma(bad)
    with pytest.raises(ValueError):
        trigamma(np.array([1.0, bad]))


def test_structured_newton_step_matches_dense_solve(rng):
    k = 6
    g = rng.normal(size=k)
    h = -(rng.random(k) + 0.5)
    z = 0.3
    delta = solve_structured_newton_step(g, h, z)
    dense = np.diag(h) + z * np.ones((k, k))
    np.testing.assert_allclose(delta, np.linalg.solve(dense, g), rtol=1e-10, atol=1e-12)


def test_structured_newton_step_shape_mismatch():
    with pytest.raises(ValueError):
        solve_structured_newton_step(np.ones(3), np.ones(2), 1.0)
