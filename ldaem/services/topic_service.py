# ldaem/services/topic_service.py
"""
Convenience layer holding the trained model for API routes and the CLI.
"""

import logging
import threading
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, List, Optional, Sequence

from ldaem.core.config import LdaConfig, Settings, get_settings
from ldaem.ml.corpus import DocumentIdMap
from ldaem.ml.model import LdaModel
from ldaem.ml.trainer import infer_features, refresh_posteriors, train
from ldaem.services import corpus_service, persistence_service
from ldaem.services.preprocess_service import prepare_corpus, text_to_document

logger = logging.getLogger(__name__)

DEFAULT_TOP_WORDS = 10


class ModelNotReadyError(RuntimeError):
    """No model has been trained or loaded yet."""


@dataclass
class TopicModelStore:
    model: Optional[LdaModel] = None
    config: Optional[LdaConfig] = None
    id_map: DocumentIdMap = field(default_factory=DocumentIdMap)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def require_model(self) -> LdaModel:
        if self.model is None:
            raise ModelNotReadyError("no topic model has been trained or loaded")
        return self.model

    def replace(self, model: LdaModel, config: LdaConfig, id_map: Optional[DocumentIdMap] = None) -> None:
        with self.lock:
            self.model = model
            self.config = config
            self.id_map = id_map if id_map is not None else DocumentIdMap()


@lru_cache(maxsize=1)
def get_store() -> TopicModelStore:
    return TopicModelStore()


def train_from_texts(
    texts: Sequence[str],
    config: LdaConfig,
    keys: Optional[Sequence[str]] = None,
    external_ids: Optional[Sequence[str]] = None,
    store: Optional[TopicModelStore] = None,
) -> LdaModel:
    """
    Tokenize raw texts, fit a model and make it the served one.
    external_ids[i], when given, maps to document i.
    """
    store = store or get_store()
    if keys is None and external_ids is not None:
        keys = [str(i) for i in range(len(texts))]
    vocabulary, corpus, _ = prepare_corpus(texts, keys=keys)
    if len(vocabulary) == 0:
        raise ValueError("no usable words left after preprocessing")
    model = train(corpus, config, vocabulary)

    id_map = None
    if external_ids is not None:
        id_map = DocumentIdMap.from_pairs(zip(keys, external_ids), corpus)
    store.replace(model, config, id_map)
    return model


def _files_from_settings(settings: Settings):
    if not settings.corpus_path or not settings.vocabulary_path:
        raise ValueError("LDA_CORPUS_PATH and LDA_VOCABULARY_PATH must be set")
    vocabulary = corpus_service.load_vocabulary(settings.vocabulary_path)
    corpus = corpus_service.load_corpus(settings.corpus_path, vocab_size=len(vocabulary))
    id_map = None
    if settings.id_map_path:
        id_map = corpus_service.load_id_map(settings.id_map_path, corpus)
    return vocabulary, corpus, id_map


def train_from_settings(settings: Optional[Settings] = None, store: Optional[TopicModelStore] = None) -> LdaModel:
    settings = settings or get_settings()
    store = store or get_store()
    vocabulary, corpus, id_map = _files_from_settings(settings)
    config = settings.lda_config()
    model = train(corpus, config, vocabulary)
    if settings.model_file:
        persistence_service.dump_model(model, settings.model_file, message=f"trained: {model.stopping_reason.value}")
    store.replace(model, config, id_map)
    return model


def load_from_settings(settings: Optional[Settings] = None, store: Optional[TopicModelStore] = None) -> LdaModel:
    settings = settings or get_settings()
    store = store or get_store()
    if not settings.model_file:
        raise ValueError("LDA_MODEL_FILE must be set")
    vocabulary, corpus, id_map = _files_from_settings(settings)
    model = persistence_service.load_model(settings.model_file, corpus, vocabulary)
    config = settings.lda_config(num_topics=model.num_topics)
    refresh_posteriors(model, config)
    store.replace(model, config, id_map)
    return model


def describe_topics(k: int = DEFAULT_TOP_WORDS, store: Optional[TopicModelStore] = None) -> List[Dict]:
    model = (store or get_store()).require_model()
    return [
        {"topic_id": topic_id, "words": words}
        for topic_id, words in enumerate(model.top_topic_words(k))
    ]


def document_topics(document_index: int, store: Optional[TopicModelStore] = None) -> List[float]:
    model = (store or get_store()).require_model()
    return model.topic_estimate(document_index).tolist()


def external_topics(external_id: str, store: Optional[TopicModelStore] = None) -> List[float]:
    store = store or get_store()
    model = store.require_model()
    return model.topic_estimate_for_external_id(external_id, store.id_map).tolist()


def infer_text(text: str, store: Optional[TopicModelStore] = None) -> List[float]:
    store = store or get_store()
    model = store.require_model()
    document = text_to_document(model.vocabulary, text)
    return infer_features(document.word_ids, model, store.config or LdaConfig(num_topics=model.num_topics)).tolist()


def status(store: Optional[TopicModelStore] = None) -> Dict:
    store = store or get_store()
    model = store.model
    if model is None:
        return {"ready": False}
    return {
        "ready": True,
        "num_topics": model.num_topics,
        "num_documents": model.num_documents,
        "vocab_size": model.vocab_size,
        "stopping_reason": model.stopping_reason.value,
        "em_iterations": model.em_iterations,
        "lower_bound": model.lower_bounds[-1] if model.lower_bounds else None,
        "mapped_ids": len(store.id_map),
    }
