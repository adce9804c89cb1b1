# ldaem/ml/estimator.py
"""
Corpus-level re-estimation of alpha and beta (the M-step).
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from ldaem.core.config import LdaConfig
from ldaem.core.errors import OptimizationError
from ldaem.ml.corpus import Corpus, Document
from ldaem.ml.mathops import digamma, normalize_rows, solve_structured_newton_step, trigamma

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class GlobalParameters:
    alpha: np.ndarray
    beta: np.ndarray


def document_topic_word_counts(document: Document, phi: np.ndarray, vocab_size: int) -> np.ndarray:
    """Expected topic-word counts of one document: phi[:, n] added into column w_n."""
    partial = np.zeros((phi.shape[0], vocab_size))
    if len(document):
        # add.at accumulates repeated word ids
        np.add.at(partial.T, document.word_ids, phi.T)
    return partial


def estimate_beta(
    corpus: Corpus,
    phis: Sequence[np.ndarray],
    num_topics: int,
    vocab_size: int,
    smoothing: float = 0.0,
) -> np.ndarray:
    """
    beta_{k,w} ∝ smoothing + sum_d sum_n phi_{d,k,n} [w_{d,n} = w]

    Rows that accumulate no mass come out uniform.
    """
    if len(phis) != len(corpus):
        raise ValueError(f"{len(phis)} phi matrices for {len(corpus)} documents")
    accumulator = np.full((num_topics, vocab_size), float(smoothing))
    for document, phi in zip(corpus, phis):
        if phi.shape != (num_topics, len(document)):
            raise ValueError(f"phi shape {phi.shape} does not match document of {len(document)} tokens")
        accumulator += document_topic_word_counts(document, phi, vocab_size)
    empty = int(np.count_nonzero(accumulator.sum(axis=1) <= 0.0))
    if empty:
        logger.warning("%i topics received no mass, resetting them to uniform", empty)
    return normalize_rows(accumulator)


def alpha_sufficient_statistics(gammas: Sequence[np.ndarray]) -> np.ndarray:
    """sum_d (psi(gamma_{d,k}) - psi(sum_k' gamma_{d,k'}))"""
    stats: Optional[np.ndarray] = None
    for gamma in gammas:
        term = digamma(gamma) - digamma(gamma.sum())
        stats = term if stats is None else stats + term
    if stats is None:
        raise ValueError("no documents to estimate alpha from")
    return stats


def alpha_gradient(alpha: np.ndarray, num_documents: int, sufficient_stats: np.ndarray) -> np.ndarray:
    return num_documents * (digamma(alpha.sum()) - digamma(alpha)) + sufficient_stats


def estimate_alpha(
    alpha: np.ndarray,
    gammas: Sequence[np.ndarray],
    max_iterations: int = 100,
    tolerance: float = 1e-8,
    max_backtracks: int = 30,
) -> np.ndarray:
    """
    Newton-Raphson maximization of the alpha terms of the lower bound.

    The Hessian is diag(-D psi'(alpha)) + D psi'(sum alpha) 1 1^T, solved in
    O(K). A step that would make any alpha_k <= 0 is halved, at most
    max_backtracks times, before OptimizationError is raised.
    """
    alpha = np.array(alpha, dtype=float)
    if not len(gammas):
        return alpha
    num_documents = len(gammas)
    sufficient_stats = alpha_sufficient_statistics(gammas)

    for iteration in range(max_iterations):
        gradient = alpha_gradient(alpha, num_documents, sufficient_stats)
        grad_norm = float(np.linalg.norm(gradient))
        if grad_norm < tolerance:
            logger.debug("alpha converged after %i Newton iterations", iteration)
            break

        hessian_diagonal = -num_documents * trigamma(alpha)
        offdiagonal = num_documents * trigamma(alpha.sum())
        delta = solve_structured_newton_step(gradient, hessian_diagonal, offdiagonal)

        step = 1.0
        for backtrack in range(max_backtracks + 1):
            candidate = alpha - step * delta
            if np.all(candidate > 0.0):
                break
            step *= 0.5
        else:
            raise OptimizationError(
                f"alpha update stayed non-positive after {max_backtracks} step halvings "
                f"(iteration {iteration}, gradient norm {grad_norm:.3g})"
            )
        if step < 1.0:
            logger.debug("alpha step halved %i times", backtrack)
        alpha = candidate
    else:
        logger.debug("alpha Newton-Raphson hit the %i iteration cap", max_iterations)

    return alpha


def estimate(
    corpus: Corpus,
    alpha: np.ndarray,
    gammas: List[np.ndarray],
    phis: List[np.ndarray],
    vocab_size: int,
    config: LdaConfig,
) -> GlobalParameters:
    """
    One M-step. Reads gamma and phi, returns fresh alpha and beta.
    """
    beta = estimate_beta(corpus, phis, alpha.shape[0], vocab_size, smoothing=config.beta_smoothing)
    new_alpha = estimate_alpha(
        alpha,
        gammas,
        max_iterations=config.max_newton_iterations,
        tolerance=config.newton_tolerance,
        max_backtracks=config.max_newton_backtracks,
    )
    logger.debug("optimized alpha %s", list(new_alpha))
    return GlobalParameters(alpha=new_alpha, beta=beta)
