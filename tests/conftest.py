import numpy as np
import pytest

from ldaem.core.config import LdaConfig
from ldaem.ml.corpus import Corpus, Document, Vocabulary


@pytest.fixture
def vocabulary():
    return Vocabulary(["apple", "banana", "engine", "wheel"])


@pytest.fixture
def corpus():
    # two fruit-heavy / car-heavy documents and one mixed
    return Corpus(
        [
            Document.from_ids([0, 1, 0, 1, 0, 1, 0, 0], key="a"),
            Document.from_ids([2, 3, 2, 3, 3, 2, 2, 3], key="b"),
            Document.from_ids([0, 1, 2, 3, 0, 3], key="c"),
        ]
    )


@pytest.fixture
def config():
    return LdaConfig(num_topics=2, max_em_iterations=50, seed=1234)


@pytest.fixture
def rng():
    return np.random.Generator(np.random.PCG64(7))
