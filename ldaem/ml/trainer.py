# ldaem/ml/trainer.py
"""
Variational EM driver: E-step over every document, then one M-step, until
the corpus lower bound stops moving or a cap is hit.
"""

import logging
import threading
import time
from multiprocessing.pool import ThreadPool
from typing import List, Optional

import numpy as np

from ldaem.core.config import LdaConfig
from ldaem.ml.corpus import Corpus, Vocabulary
from ldaem.ml.estimator import estimate
from ldaem.ml.inference import DocumentPosterior, document_lower_bound, infer_document
from ldaem.ml.model import LdaModel, StoppingReason

logger = logging.getLogger(__name__)

LOG_EVERY_DOCS = 100

_clock = time.monotonic


class _Interrupted(Exception):
    def __init__(self, reason: StoppingReason) -> None:
        super().__init__(reason.value)
        self.reason = reason


class _StopCheck:
    """Cancellation event plus wall-clock budget, polled per round and per document."""

    def __init__(self, cancel_event: Optional[threading.Event], time_limit: Optional[float]) -> None:
        self.cancel_event = cancel_event
        self.deadline = _clock() + time_limit if time_limit else None

    def reason(self) -> Optional[StoppingReason]:
        if self.cancel_event is not None and self.cancel_event.is_set():
            return StoppingReason.CANCELLED
        if self.deadline is not None and _clock() >= self.deadline:
            return StoppingReason.TIME_LIMIT
        return None

    def check(self) -> None:
        reason = self.reason()
        if reason is not None:
            raise _Interrupted(reason)


def _read_only(array: np.ndarray) -> np.ndarray:
    view = array.view()
    view.flags.writeable = False
    return view


def _e_step(model: LdaModel, config: LdaConfig, stop: _StopCheck) -> List[DocumentPosterior]:
    alpha = _read_only(model.alpha)
    beta = _read_only(model.beta)

    def run(indexed):
        index, document = indexed
        stop.check()
        if index % LOG_EVERY_DOCS == 0:
            logger.debug("running inference on document %i", index)
        return infer_document(
            document.word_ids,
            alpha,
            beta,
            max_iterations=config.max_inference_iterations,
            tolerance=config.inference_convergence_tolerance,
        )

    tasks = list(enumerate(model.corpus))
    if config.inference_workers > 1 and len(tasks) > 1:
        # each task reads alpha/beta and returns its own posterior; map keeps document order
        with ThreadPool(processes=config.inference_workers) as pool:
            return pool.map(run, tasks)
    return [run(task) for task in tasks]


def corpus_lower_bound(model: LdaModel) -> float:
    return sum(
        document_lower_bound(doc.word_ids, model.alpha, model.beta, g, p)
        for doc, g, p in zip(model.corpus, model.gamma, model.phi)
    )


def _relative_change(current: float, previous: Optional[float]) -> float:
    if previous is None:
        return float("inf")
    return abs(current - previous) / max(abs(previous), np.finfo(float).tiny)


def run_em(model: LdaModel, config: LdaConfig, cancel_event: Optional[threading.Event] = None) -> LdaModel:
    """
    Alternate E and M steps on an initialized model. The model's
    stopping_reason tells converged runs from capped or interrupted ones.
    """
    stop = _StopCheck(cancel_event, config.time_limit_seconds)
    previous_bound: Optional[float] = None
    model.stopping_reason = StoppingReason.ITERATION_CAPPED

    try:
        for iteration in range(config.max_em_iterations):
            stop.check()
            posteriors = _e_step(model, config, stop)
            for index, posterior in enumerate(posteriors):
                model.set_document_parameters(index, posterior.gamma, posterior.phi)
            capped = sum(1 for p in posteriors if not p.converged)
            if capped:
                logger.debug("%i/%i documents hit the inference iteration cap", capped, len(posteriors))

            params = estimate(model.corpus, model.alpha, model.gamma, model.phi, model.vocab_size, config)
            model.set_global_parameters(params.alpha, params.beta)
            model.em_iterations = iteration + 1

            bound = corpus_lower_bound(model)
            model.lower_bounds.append(bound)
            change = _relative_change(bound, previous_bound)
            logger.info("EM iteration %i: lower bound %.6f, relative change %.3e", iteration, bound, change)
            if change < config.em_convergence_tolerance:
                model.stopping_reason = StoppingReason.CONVERGED
                break
            previous_bound = bound
    except _Interrupted as exc:
        model.stopping_reason = exc.reason
        logger.warning("training stopped early (%s) after %i EM iterations", exc.reason.value, model.em_iterations)

    logger.info("training finished: %s after %i EM iterations", model.stopping_reason.value, model.em_iterations)
    return model


def train(
    corpus: Corpus,
    config: LdaConfig,
    vocabulary: Vocabulary,
    cancel_event: Optional[threading.Event] = None,
) -> LdaModel:
    """
    Fit an LDA model to corpus with variational EM and return it.
    """
    logger.info(
        "training LDA: %i topics, %i documents, %i tokens, %i words",
        config.num_topics,
        len(corpus),
        corpus.num_tokens,
        len(vocabulary),
    )
    model = LdaModel.initialize(corpus, config, vocabulary)
    return run_em(model, config, cancel_event=cancel_event)


def refresh_posteriors(model: LdaModel, config: LdaConfig) -> LdaModel:
    """
    One E-step over the model's corpus against its current alpha and beta,
    leaving the global parameters untouched. A model rebuilt from a dump
    only carries alpha and beta, so this restores gamma and phi.
    """
    posteriors = _e_step(model, config, _StopCheck(None, None))
    for index, posterior in enumerate(posteriors):
        model.set_document_parameters(index, posterior.gamma, posterior.phi)
    logger.info("refreshed variational parameters for %i documents", len(posteriors))
    return model


def infer_features(word_ids, model: LdaModel, config: LdaConfig) -> np.ndarray:
    """
    Topic proportions for a document outside the training corpus,
    gamma / sum(gamma) after an E-step against the trained alpha and beta.
    """
    word_ids = np.asarray(word_ids, dtype=np.int64)
    if word_ids.size and (word_ids.min() < 0 or word_ids.max() >= model.vocab_size):
        raise ValueError("word id outside the model vocabulary")
    posterior = infer_document(
        word_ids,
        model.alpha,
        model.beta,
        max_iterations=config.max_inference_iterations,
        tolerance=config.inference_convergence_tolerance,
    )
    return posterior.gamma / posterior.gamma.sum()

