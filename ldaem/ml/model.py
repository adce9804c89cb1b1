# ldaem/ml/model.py
"""
Container for the global LDA parameters (alpha, beta) and the per-document
variational parameters (gamma, phi). Holds no algorithmic logic: the
trainer rebinds fields with what the E-step and M-step return.
"""

import heapq
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np

from ldaem.core.config import LdaConfig
from ldaem.core.errors import CorpusFormatError
from ldaem.ml.corpus import Corpus, DocumentIdMap, Vocabulary
from ldaem.ml.mathops import normalize


class StoppingReason(str, Enum):
    NOT_STARTED = "not_started"
    CONVERGED = "converged"
    ITERATION_CAPPED = "iteration_capped"
    CANCELLED = "cancelled"
    TIME_LIMIT = "time_limit"


def make_generator(seed: int) -> np.random.Generator:
    """PCG64 stream, spelled out so fixtures do not depend on numpy's default."""
    return np.random.Generator(np.random.PCG64(seed))


class LdaModel:
    def __init__(
        self,
        corpus: Corpus,
        vocabulary: Vocabulary,
        alpha: np.ndarray,
        beta: np.ndarray,
        gamma: Optional[List[np.ndarray]] = None,
        phi: Optional[List[np.ndarray]] = None,
    ) -> None:
        alpha = np.asarray(alpha, dtype=float)
        beta = np.asarray(beta, dtype=float)
        if alpha.ndim != 1 or beta.ndim != 2 or beta.shape[0] != alpha.shape[0]:
            raise ValueError(f"alpha shape {alpha.shape} does not match beta shape {beta.shape}")
        if beta.shape[1] != len(vocabulary):
            raise ValueError(f"beta has {beta.shape[1]} columns for a vocabulary of {len(vocabulary)} words")
        self.corpus = corpus
        self.vocabulary = vocabulary
        self._alpha = alpha
        self._beta = beta
        k = alpha.shape[0]
        self._gamma = gamma if gamma is not None else [np.zeros(k) for _ in corpus]
        self._phi = phi if phi is not None else [np.zeros((k, len(doc))) for doc in corpus]

        self.stopping_reason = StoppingReason.NOT_STARTED
        self.em_iterations = 0
        self.lower_bounds: List[float] = []

    @classmethod
    def initialize(cls, corpus: Corpus, config: LdaConfig, vocabulary: Vocabulary) -> "LdaModel":
        """
        Seeded-random alpha and beta, both drawn uniform on (0, 1] and
        normalized (alpha first, then beta row by row). A supplied
        config.initial_alpha replaces the drawn alpha.
        """
        top = corpus.max_word_id()
        if top >= len(vocabulary):
            raise CorpusFormatError(f"word id {top} outside a vocabulary of {len(vocabulary)} words")

        rng = make_generator(config.seed)
        k = config.num_topics
        alpha = normalize(1.0 - rng.random(k))
        if config.initial_alpha is not None:
            alpha = np.asarray(config.initial_alpha, dtype=float)
        beta = 1.0 - rng.random((k, len(vocabulary)))
        beta /= beta.sum(axis=1, keepdims=True)
        return cls(corpus, vocabulary, alpha, beta)

    @property
    def num_topics(self) -> int:
        return int(self._alpha.shape[0])

    @property
    def vocab_size(self) -> int:
        return int(self._beta.shape[1])

    @property
    def num_documents(self) -> int:
        return len(self.corpus)

    @property
    def alpha(self) -> np.ndarray:
        return self._alpha

    @property
    def beta(self) -> np.ndarray:
        return self._beta

    @property
    def gamma(self) -> List[np.ndarray]:
        return self._gamma

    @property
    def phi(self) -> List[np.ndarray]:
        return self._phi

    @property
    def converged(self) -> bool:
        return self.stopping_reason == StoppingReason.CONVERGED

    def set_global_parameters(self, alpha: np.ndarray, beta: np.ndarray) -> None:
        if alpha.shape != self._alpha.shape or beta.shape != self._beta.shape:
            raise ValueError("global parameter shapes changed")
        self._alpha = alpha
        self._beta = beta

    def set_document_parameters(self, index: int, gamma: np.ndarray, phi: np.ndarray) -> None:
        self._gamma[index] = gamma
        self._phi[index] = phi

    def top_topic_words(self, k: int) -> List[List[Tuple[str, float]]]:
        """
        The k highest-weight words of every topic, heaviest first.
        Equal weights go to the lowest vocabulary index.
        """
        if k < 1:
            raise ValueError("k must be positive")
        topics: List[List[Tuple[str, float]]] = []
        for row in self._beta:
            best = heapq.nlargest(k, range(row.shape[0]), key=lambda w: (row[w], -w))
            topics.append([(self.vocabulary.word_at(w), float(row[w])) for w in best])
        return topics

    def topic_estimate(self, document_index: int) -> np.ndarray:
        """
        Expected topic proportions gamma_d / sum(gamma_d) of a training document.

        An index that does not resolve to a trained document gives a zero
        vector of length K; downstream consumers treat it as neutral.
        """
        zeros = np.zeros(self.num_topics)
        if document_index is None or not 0 <= document_index < len(self._gamma):
            return zeros
        gamma = self._gamma[document_index]
        total = gamma.sum()
        if total <= 0.0:
            return zeros
        return gamma / total

    def topic_estimate_for_external_id(self, external_id, id_map: DocumentIdMap) -> np.ndarray:
        return self.topic_estimate(id_map.resolve(external_id))
