# ldaem/ml/corpus.py
"""
Vocabulary, documents and corpus containers.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np


class Vocabulary:
    """Ordered word list; a word's index is its position."""

    def __init__(self, words: Iterable[str]) -> None:
        self._words: List[str] = list(words)
        self._index: Dict[str, int] = {}
        for idx, word in enumerate(self._words):
            # first occurrence wins for duplicated lines
            self._index.setdefault(word, idx)

    def __len__(self) -> int:
        return len(self._words)

    def __iter__(self) -> Iterator[str]:
        return iter(self._words)

    def __contains__(self, word: str) -> bool:
        return word in self._index

    @property
    def words(self) -> List[str]:
        return list(self._words)

    def word_at(self, index: int) -> str:
        return self._words[index]

    def index_of(self, word: str) -> Optional[int]:
        return self._index.get(word)


@dataclass(frozen=True, eq=False)
class Document:
    """One document: token vocabulary indices in order, repeats kept."""

    word_ids: np.ndarray
    key: Optional[str] = None

    @classmethod
    def from_ids(cls, ids: Sequence[int], key: Optional[str] = None) -> "Document":
        return cls(word_ids=np.asarray(list(ids), dtype=np.int64), key=key)

    def __len__(self) -> int:
        return int(self.word_ids.shape[0])


@dataclass(frozen=True, eq=False)
class Corpus:
    """Fixed sequence of documents; any iterable passed in is copied to a tuple."""

    documents: Tuple[Document, ...] = ()
    _key_to_index: Dict[str, int] = field(init=False, repr=False, default_factory=dict)

    def __post_init__(self) -> None:
        documents = tuple(self.documents)
        key_to_index: Dict[str, int] = {}
        for idx, doc in enumerate(documents):
            if doc.key is not None:
                key_to_index.setdefault(doc.key, idx)
        object.__setattr__(self, "documents", documents)
        object.__setattr__(self, "_key_to_index", key_to_index)

    def __len__(self) -> int:
        return len(self.documents)

    def __iter__(self) -> Iterator[Document]:
        return iter(self.documents)

    def __getitem__(self, index: int) -> Document:
        return self.documents[index]

    @property
    def num_tokens(self) -> int:
        return sum(len(doc) for doc in self.documents)

    def max_word_id(self) -> int:
        """Largest vocabulary index used, -1 for a corpus without tokens."""
        best = -1
        for doc in self.documents:
            if len(doc):
                best = max(best, int(doc.word_ids.max()))
        return best

    def index_of_key(self, key: str) -> Optional[int]:
        return self._key_to_index.get(key)


class DocumentIdMap:
    """
    External (application) id -> internal document index, built once.
    """

    def __init__(self, mapping: Optional[Dict[str, int]] = None) -> None:
        self._mapping: Dict[str, int] = dict(mapping or {})

    def __len__(self) -> int:
        return len(self._mapping)

    def __contains__(self, external_id) -> bool:
        return str(external_id) in self._mapping

    def resolve(self, external_id) -> Optional[int]:
        return self._mapping.get(str(external_id))

    @classmethod
    def from_pairs(cls, pairs: Iterable[Sequence[str]], corpus: Corpus) -> "DocumentIdMap":
        """
        pairs are (document key, external id); keys missing from the corpus are dropped.
        """
        mapping: Dict[str, int] = {}
        for key, external_id in pairs:
            idx = corpus.index_of_key(str(key).strip())
            if idx is None:
                continue
            mapping.setdefault(str(external_id).strip(), idx)
        return cls(mapping)
