import numpy as np
import pytest
from scipy.special import gammaln

from ldaem.core.config import LdaConfig
from ldaem.core.errors import OptimizationError
from ldaem.ml import estimator
from ldaem.ml.corpus import Corpus, Document
from ldaem.ml.estimator import (
    alpha_gradient,
    alpha_sufficient_statistics,
    document_topic_word_counts,
    estimate,
    estimate_alpha,
    estimate_beta,
)
from ldaem.ml.mathops import digamma


def _random_phis(corpus, k, rng):
    phis = []
    for doc in corpus:
        phi = rng.random((k, len(doc))) + 0.01
        phis.append(phi / phi.sum(axis=0))
    return phis


def _alpha_objective(alpha, gammas):
    total = 0.0
    for gamma in gammas:
        e_log = digamma(gamma) - digamma(gamma.sum())
        total += gammaln(alpha.sum()) - gammaln(alpha).sum() + np.dot(alpha - 1.0, e_log)
    return total


def test_repeated_words_accumulate():
    doc = Document.from_ids([1, 1, 3])
    phi = np.array([[0.2, 0.4, 1.0], [0.8, 0.6, 0.0]])
    counts = document_topic_word_counts(doc, phi, 4)
    np.testing.assert_allclose(counts, [[0.0, 0.6, 0.0, 1.0], [0.0, 1.4, 0.0, 0.0]])


def test_beta_rows_sum_to_one(corpus, rng):
    phis = _random_phis(corpus, 3, rng)
    beta = estimate_beta(corpus, phis, 3, 4)
    assert beta.shape == (3, 4)
    np.testing.assert_allclose(beta.sum(axis=1), 1.0, atol=1e-9)
    assert np.all(beta >= 0.0)


def test_beta_row_without_mass_becomes_uniform():
    corpus = Corpus([Document.from_ids([0, 1])])
    phis = [np.array([[1.0, 1.0], [0.0, 0.0]])]
    beta = estimate_beta(corpus, phis, 2, 3)
    np.testing.assert_allclose(beta[0], [0.5, 0.5, 0.0])
    np.testing.assert_allclose(beta[1], np.full(3, 1.0 / 3))


def test_beta_smoothing_reaches_unseen_words():
    corpus = Corpus([Document.from_ids([0])])
    beta = estimate_beta(corpus, [np.array([[1.0]])], 1, 3, smoothing=0.5)
    np.testing.assert_allclose(beta[0], [0.6, 0.2, 0.2])


def test_beta_rejects_misshaped_phi(corpus):
    with pytest.raises(ValueError):
        estimate_beta(corpus, [np.ones((2, 1))] * len(corpus), 2, 4)


@pytest.mark.parametrize("seed", range(5))
def test_alpha_stays_positive(seed):
    rng = np.random.Generator(np.random.PCG64(seed))
    k = 4
    gammas = [rng.gamma(0.3, 2.0, size=k) + 1e-3 for _ in range(20)]
    alpha = rng.random(k) + 1e-3
    new_alpha = estimate_alpha(alpha, gammas, max_iterations=50)
    assert np.all(new_alpha > 0.0)
    assert np.all(np.isfinite(new_alpha))


def test_alpha_newton_reaches_stationary_point(rng):
    k = 3
    gammas = [rng.dirichlet([2.0, 5.0, 1.0]) * 20.0 + 0.5 for _ in range(40)]
    start = np.ones(k)
    alpha = estimate_alpha(start, gammas, max_iterations=200, tolerance=1e-10)
    stats = alpha_sufficient_statistics(gammas)
    assert np.linalg.norm(alpha_gradient(alpha, len(gammas), stats)) < 1e-6
    assert _alpha_objective(alpha, gammas) >= _alpha_objective(start, gammas)


def test_alpha_unchanged_without_documents():
    alpha = np.array([0.3, 0.7])
    np.testing.assert_array_equal(estimate_alpha(alpha, []), alpha)


def test_backtracking_halves_until_positive(monkeypatch):
    monkeypatch.setattr(estimator, "solve_structured_newton_step", lambda g, h, z: np.full_like(g, 1e6))
    alpha = estimate_alpha(np.ones(2), [np.array([1.0, 2.0])], max_iterations=1, max_backtracks=40)
    assert np.all(alpha > 0.0)
    assert np.all(alpha < 1.0)


def test_backtrack_budget_exhausted_raises(monkeypatch):
    monkeypatch.setattr(estimator, "solve_structured_newton_step", lambda g, h, z: np.full_like(g, 1e12))
    with pytest.raises(OptimizationError):
        estimate_alpha(np.ones(2), [np.array([1.0, 2.0])], max_iterations=1, max_backtracks=5)


def test_estimate_returns_new_arrays(corpus, rng):
    k = 2
    phis = _random_phis(corpus, k, rng)
    gammas = [np.array([1.0, 1.0]) + phi.sum(axis=1) for phi in phis]
    alpha = np.array([0.5, 0.5])
    before = alpha.copy()
    params = estimate(corpus, alpha, gammas, phis, 4, LdaConfig(num_topics=k))
    np.testing.assert_array_equal(alpha, before)
    assert params.alpha is not alpha
    assert params.beta.shape == (k, 4)
    assert np.all(params.alpha > 0.0)
    np.testing.assert_allclose(params.beta.sum(axis=1), 1.0, atol=1e-9)
