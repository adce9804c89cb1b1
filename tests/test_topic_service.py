import numpy as np
import pytest

from ldaem.core.config import Settings
from ldaem.services.topic_service import (
    ModelNotReadyError,
    TopicModelStore,
    document_topics,
    load_from_settings,
    status,
    train_from_settings,
)


@pytest.fixture
def settings(tmp_path):
    vocab = tmp_path / "vocab.txt"
    vocab.write_text("apple\nbanana\nengine\nwheel\n", encoding="utf-8")
    corpus = tmp_path / "corpus.txt"
    corpus.write_text("0 1 0 1 0 1 0 0\n2 3 2 3 3 2 2 3\n0 1 2 3 0 3\n", encoding="utf-8")
    return Settings(
        corpus_path=str(corpus),
        vocabulary_path=str(vocab),
        model_file=str(tmp_path / "model.txt"),
        num_topics=2,
        seed=1234,
    )


def test_reloaded_model_serves_trained_topic_estimates(settings):
    trained_store = TopicModelStore()
    trained = train_from_settings(settings, store=trained_store)

    loaded_store = TopicModelStore()
    loaded = load_from_settings(settings, store=loaded_store)

    np.testing.assert_array_equal(loaded.alpha, trained.alpha)
    np.testing.assert_array_equal(loaded.beta, trained.beta)
    for index in range(len(trained.corpus)):
        expected = document_topics(index, store=trained_store)
        actual = document_topics(index, store=loaded_store)
        assert sum(actual) == pytest.approx(1.0)
        np.testing.assert_allclose(actual, expected, atol=0.05)
        assert int(np.argmax(actual)) == int(np.argmax(expected))


def test_reloaded_phi_columns_are_distributions(settings):
    train_from_settings(settings, store=TopicModelStore())
    loaded = load_from_settings(settings, store=TopicModelStore())
    for document, phi in zip(loaded.corpus, loaded.phi):
        assert phi.shape == (2, len(document))
        np.testing.assert_allclose(phi.sum(axis=0), 1.0, atol=1e-9)


def test_load_requires_model_file(settings):
    with pytest.raises(ValueError):
        load_from_settings(settings.model_copy(update={"model_file": None}), store=TopicModelStore())


def test_empty_store_is_not_ready():
    store = TopicModelStore()
    assert status(store) == {"ready": False}
    with pytest.raises(ModelNotReadyError):
        document_topics(0, store=store)
