"""
Loaders for the corpus, vocabulary and external id map text files.
"""

import csv
import logging
from pathlib import Path
from typing import List, Optional, Union

from ldaem.core.errors import CorpusFormatError
from ldaem.ml.corpus import Corpus, Document, DocumentIdMap, Vocabulary

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def load_vocabulary(path: PathLike) -> Vocabulary:
    """One word per line; a word's index is its line number (from 0)."""
    with open(path, "r", encoding="utf-8") as f:
        words = [line.rstrip("\r\n").strip() for line in f]
    # trailing newline at EOF is not a word
    while words and not words[-1]:
        words.pop()
    logger.info("loaded vocabulary of %i words from %s", len(words), path)
    return Vocabulary(words)


def parse_document_line(line: str, line_number: int = 0, vocab_size: Optional[int] = None) -> Document:
    """
    "3 17 17 4" or "<key>\\t3 17 17 4". A blank line is an empty document.
    """
    line = line.rstrip("\r\n")
    key = None
    if "\t" in line:
        key, line = line.split("\t", 1)
        key = key.strip() or None
    ids: List[int] = []
    for token in line.split():
        try:
            word_id = int(token)
        except ValueError:
            raise CorpusFormatError(f"word id {token!r} is not an integer", line_number) from None
        if word_id < 0 or (vocab_size is not None and word_id >= vocab_size):
            raise CorpusFormatError(f"word id {word_id} outside vocabulary of size {vocab_size}", line_number)
        ids.append(word_id)
    return Document.from_ids(ids, key=key)


def load_corpus(path: PathLike, vocab_size: Optional[int] = None) -> Corpus:
    documents: List[Document] = []
    with open(path, "r", encoding="utf-8") as f:
        for line_number, line in enumerate(f, start=1):
            documents.append(parse_document_line(line, line_number, vocab_size))
    corpus = Corpus(documents)
    logger.info("loaded %i documents (%i tokens) from %s", len(corpus), corpus.num_tokens, path)
    return corpus


def load_id_map(path: PathLike, corpus: Corpus) -> DocumentIdMap:
    """
    CSV rows "document key,external id[,...]", read once.
    Rows whose key is not in the corpus are skipped.
    """
    pairs = []
    with open(path, "r", encoding="utf-8", newline="") as f:
        for row in csv.reader(f):
            if len(row) < 2:
                continue
            pairs.append((row[0], row[1]))
    id_map = DocumentIdMap.from_pairs(pairs, corpus)
    logger.info("mapped %i of %i external ids from %s", len(id_map), len(pairs), path)
    return id_map
