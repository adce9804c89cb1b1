# ldaem/services/preprocess_service.py
"""
Raw text -> (Vocabulary, Corpus) using gensim's Dictionary.
"""

import re
from typing import Iterable, List, Optional, Sequence, Tuple

from gensim import corpora
from gensim.parsing.preprocessing import STOPWORDS

from ldaem.ml.corpus import Corpus, Document, Vocabulary

MIN_TOKEN_LENGTH = 2


def clean_text(text: str) -> str:
    if not text:
        return ""
    text = re.sub(r"https?://\S+|www\.\S+", " ", text)
    text = re.sub(r"[^\w\s]", " ", text)
    text = re.sub(r"\d+", " ", text)
    return re.sub(r"\s+", " ", text).strip().lower()


def preprocess_docs(docs: Iterable[str]) -> List[List[str]]:
    """Lowercase, whitespace tokenization, drop stopwords."""
    processed: List[List[str]] = []
    for doc in docs:
        if not doc:
            processed.append([])
            continue
        tokens = [
            token
            for token in clean_text(doc).split()
            if token not in STOPWORDS and token.isalpha() and len(token) >= MIN_TOKEN_LENGTH
        ]
        processed.append(tokens)
    return processed


def build_dictionary(
    tokenized: Sequence[Sequence[str]],
    no_below: int = 1,
    no_above: float = 1.0,
    keep_n: Optional[int] = None,
) -> corpora.Dictionary:
    dictionary = corpora.Dictionary(tokenized)
    if no_below > 1 or no_above < 1.0 or keep_n is not None:
        dictionary.filter_extremes(no_below=no_below, no_above=no_above, keep_n=keep_n)
    return dictionary


def dictionary_to_vocabulary(dictionary: corpora.Dictionary) -> Vocabulary:
    return Vocabulary(dictionary[i] for i in range(len(dictionary)))


def to_document(dictionary: corpora.Dictionary, tokens: Sequence[str], key: Optional[str] = None) -> Document:
    """Token sequence -> Document, dropping words the dictionary does not know."""
    ids = [i for i in dictionary.doc2idx(list(tokens)) if i >= 0]
    return Document.from_ids(ids, key=key)


def prepare_corpus(
    docs: Sequence[str],
    keys: Optional[Sequence[str]] = None,
    no_below: int = 1,
    no_above: float = 1.0,
    keep_n: Optional[int] = None,
) -> Tuple[Vocabulary, Corpus, corpora.Dictionary]:
    """
    Preprocess docs and build vocabulary and corpus once for reuse.
    Empty documents are kept so indices line up with docs.
    """
    if keys is not None and len(keys) != len(docs):
        raise ValueError(f"{len(keys)} keys for {len(docs)} documents")
    tokenized = preprocess_docs(docs)
    dictionary = build_dictionary(tokenized, no_below=no_below, no_above=no_above, keep_n=keep_n)
    documents = [
        to_document(dictionary, tokens, key=keys[i] if keys is not None else None)
        for i, tokens in enumerate(tokenized)
    ]
    return dictionary_to_vocabulary(dictionary), Corpus(documents), dictionary


def text_to_document(vocabulary: Vocabulary, text: str) -> Document:
    """Works for any vocabulary, including ones read from a vocabulary file."""
    tokens = preprocess_docs([text])[0]
    return Document.from_ids([vocabulary.index_of(t) for t in tokens if t in vocabulary])
