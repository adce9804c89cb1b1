# ldaem/ml/inference.py
"""
Per-document variational inference (the E-step).

Approximates p(theta, z | w, alpha, beta) by
q(theta | gamma) * prod_n q(z_n | phi_n), following Blei, Ng and Jordan,
"Latent Dirichlet Allocation", JMLR 2003:

    phi_{k,n} = 1/K,  gamma_k = alpha_k + N/K
    until convergence:
        phi_{k,n} ∝ beta_{k,w_n} exp(psi(gamma_k))
        gamma_k = alpha_k + sum_n phi_{k,n}
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np
from scipy.special import gammaln

from ldaem.ml.mathops import digamma, normalize_columns, safe_log


class InferenceState(str, Enum):
    INITIALIZED = "initialized"
    ITERATING = "iterating"
    CONVERGED = "converged"
    ITERATION_CAPPED = "iteration_capped"


@dataclass(frozen=True, eq=False)
class DocumentPosterior:
    gamma: np.ndarray  # (K,)
    phi: np.ndarray  # (K, N_d)
    state: InferenceState
    iterations: int
    change: float

    @property
    def converged(self) -> bool:
        return self.state == InferenceState.CONVERGED


def _update_phi(word_ids: np.ndarray, beta: np.ndarray, gamma: np.ndarray) -> np.ndarray:
    # shifting by max psi keeps exp() finite; column normalization cancels it
    log_weights = digamma(gamma)
    weights = np.exp(log_weights - log_weights.max())
    scores = beta[:, word_ids] * weights[:, np.newaxis]
    return normalize_columns(scores)


def infer_document(
    word_ids,
    alpha: np.ndarray,
    beta: np.ndarray,
    max_iterations: int = 20,
    tolerance: float = 1e-6,
    initial_gamma: Optional[np.ndarray] = None,
) -> DocumentPosterior:
    """
    Run the fixed-point iteration for one document.

    alpha and beta are only read. Stops with CONVERGED once the largest
    absolute change in gamma between two rounds is below tolerance, or with
    ITERATION_CAPPED after max_iterations rounds. Columns of phi whose beta
    column has no mass fall back to uniform.
    """
    word_ids = np.asarray(word_ids, dtype=np.int64)
    num_topics = alpha.shape[0]
    num_words = word_ids.shape[0]

    phi = np.full((num_topics, num_words), 1.0 / num_topics)
    if initial_gamma is not None:
        gamma = np.array(initial_gamma, dtype=float)
    else:
        gamma = alpha + float(num_words) / num_topics

    if num_words == 0:
        return DocumentPosterior(alpha.copy(), phi, InferenceState.CONVERGED, 0, 0.0)

    change = float("inf")
    iterations = 0
    state = InferenceState.ITERATING
    while state == InferenceState.ITERATING:
        phi = _update_phi(word_ids, beta, gamma)
        new_gamma = alpha + phi.sum(axis=1)
        change = float(np.max(np.abs(new_gamma - gamma)))
        gamma = new_gamma
        iterations += 1
        if change < tolerance:
            state = InferenceState.CONVERGED
        elif iterations >= max_iterations:
            state = InferenceState.ITERATION_CAPPED

    return DocumentPosterior(gamma, phi, state, iterations, change)


def document_lower_bound(word_ids, alpha: np.ndarray, beta: np.ndarray, gamma: np.ndarray, phi: np.ndarray) -> float:
    """
    Variational lower bound on log p(w | alpha, beta) for one document
    (Blei et al. 2003, eq. 15).
    """
    word_ids = np.asarray(word_ids, dtype=np.int64)
    gamma_sum = gamma.sum()
    e_log_theta = digamma(gamma) - digamma(gamma_sum)

    bound = gammaln(alpha.sum()) - gammaln(alpha).sum() + np.dot(alpha - 1.0, e_log_theta)
    bound -= gammaln(gamma_sum) - gammaln(gamma).sum() + np.dot(gamma - 1.0, e_log_theta)
    if word_ids.shape[0]:
        bound += np.sum(phi * e_log_theta[:, np.newaxis])
        bound += np.sum(phi * safe_log(beta[:, word_ids]))
        bound -= np.sum(phi * safe_log(phi))
    return float(bound)
