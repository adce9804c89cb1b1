# ldaem/services/persistence_service.py
"""
Text persistence of a trained model.

Model dump layout:
    line 1   free-text message
    line 2   "<K> <D>"            (topics, documents)
    line 3   blank
    line 4   alpha as "{a_1; a_2; ...; a_K}"
    line 5   blank
    then     K lines, one beta row each, same vector format
"""

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, TextIO, Union

import numpy as np

from ldaem.core.errors import ModelParseError
from ldaem.ml.corpus import Corpus, Vocabulary
from ldaem.ml.model import LdaModel

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
VECTOR_SEPARATOR = "; "


@dataclass(frozen=True, eq=False)
class StoredParameters:
    message: str
    num_topics: int
    num_documents: int
    alpha: np.ndarray
    beta: np.ndarray


def format_vector(values: Iterable[float]) -> str:
    return "{" + VECTOR_SEPARATOR.join(repr(float(v)) for v in values) + "}"


def parse_vector(text: str, expected_length: int, line_number: int) -> np.ndarray:
    text = text.strip()
    if len(text) < 2 or text[0] != "{" or text[-1] != "}":
        raise ModelParseError("expected a vector enclosed in braces", line_number)
    body = text[1:-1].strip()
    fields = [f.strip() for f in body.split(";")] if body else []
    if len(fields) != expected_length:
        raise ModelParseError(f"expected {expected_length} values, found {len(fields)}", line_number)
    try:
        values = np.array([float(f) for f in fields], dtype=float)
    except ValueError as exc:
        raise ModelParseError(f"non-numeric value ({exc})", line_number) from exc
    if not np.all(np.isfinite(values)):
        raise ModelParseError("non-finite value", line_number)
    return values


def _atomic_write(path: PathLike, write) -> None:
    """Write through a temp file in the target directory, then rename over path."""
    path = Path(path)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent or "."))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            write(f)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


def _single_line(message: str) -> str:
    return " ".join(message.splitlines())


def _write_header(f: TextIO, model: LdaModel, message: str) -> None:
    f.write(_single_line(message) + "\n")
    f.write(f"{model.num_topics} {model.num_documents}\n\n")


def dump_model(model: LdaModel, path: PathLike, message: str = "") -> None:
    def write(f: TextIO) -> None:
        _write_header(f, model, message)
        f.write(format_vector(model.alpha) + "\n\n")
        for row in model.beta:
            f.write(format_vector(row) + "\n")

    _atomic_write(path, write)
    logger.info("model dumped at %s", path)


def dump_log(model: LdaModel, path: PathLike, message: str = "") -> None:
    """Per-document gamma vectors, then every document's phi one row per line."""

    def write(f: TextIO) -> None:
        _write_header(f, model, message)
        for gamma in model.gamma:
            f.write(format_vector(gamma) + "\n")
        f.write("\n")
        for phi in model.phi:
            for row in phi:
                f.write(format_vector(row) + "\n")
            f.write("\n")

    _atomic_write(path, write)
    logger.info("log file dumped at %s", path)


def dump_alpha(model: LdaModel, path: PathLike) -> None:
    """alpha alone, whitespace-separated on one line."""
    _atomic_write(path, lambda f: f.write(" ".join(repr(float(a)) for a in model.alpha) + "\n"))
    logger.info("alpha dumped at %s", path)


def dump_beta(model: LdaModel, path: PathLike) -> None:
    """beta alone, one whitespace-separated topic row per line."""

    def write(f: TextIO) -> None:
        for row in model.beta:
            f.write(" ".join(repr(float(b)) for b in row) + "\n")

    _atomic_write(path, write)
    logger.info("beta dumped at %s", path)


def parse_model(lines: List[str], vocab_size: Optional[int] = None) -> StoredParameters:
    """
    Parse a model dump. With vocab_size, beta rows must have that many
    entries; otherwise the first row's length is used for every row.
    """
    lines = [line.rstrip("\r\n") for line in lines]

    def line_at(index: int) -> str:
        if index >= len(lines):
            raise ModelParseError("unexpected end of file", index + 1)
        return lines[index]

    message = line_at(0)
    counts = line_at(1).split()
    if len(counts) != 2:
        raise ModelParseError(f"expected '<topics> <documents>', found {line_at(1)!r}", 2)
    try:
        num_topics, num_documents = int(counts[0]), int(counts[1])
    except ValueError as exc:
        raise ModelParseError(f"counts are not integers ({exc})", 2) from exc
    if num_topics < 1 or num_documents < 0:
        raise ModelParseError(f"invalid counts {num_topics} {num_documents}", 2)

    if line_at(2).strip():
        raise ModelParseError("expected a blank line", 3)
    alpha = parse_vector(line_at(3), num_topics, 4)
    if np.any(alpha <= 0.0):
        raise ModelParseError("alpha entries must be positive", 4)
    if line_at(4).strip():
        raise ModelParseError("expected a blank line", 5)

    rows = []
    width = vocab_size
    for k in range(num_topics):
        index = 5 + k
        text = line_at(index)
        if width is None:
            width = text.count(";") + 1 if text.strip() not in ("", "{}") else 0
        rows.append(parse_vector(text, width, index + 1))

    for index in range(5 + num_topics, len(lines)):
        if lines[index].strip():
            raise ModelParseError("unexpected content after beta", index + 1)

    beta = np.vstack(rows)
    if np.any(beta < 0.0):
        raise ModelParseError("beta entries must be non-negative")
    return StoredParameters(message, num_topics, num_documents, alpha, beta)


def read_model_file(path: PathLike, vocab_size: Optional[int] = None) -> StoredParameters:
    with open(path, "r", encoding="utf-8") as f:
        lines = f.readlines()
    params = parse_model(lines, vocab_size=vocab_size)
    logger.info(
        "read model %r: %i topics, %i documents from %s",
        params.message,
        params.num_topics,
        params.num_documents,
        path,
    )
    return params


def load_model(path: PathLike, corpus: Corpus, vocabulary: Vocabulary) -> LdaModel:
    """
    Rebuild a model from a dump. gamma and phi start zeroed until
    trainer.refresh_posteriors runs; nothing is built until the whole
    file has parsed.
    """
    params = read_model_file(path, vocab_size=len(vocabulary))
    if params.num_documents != len(corpus):
        raise ModelParseError(
            f"model was fitted to {params.num_documents} documents, corpus has {len(corpus)}", 2
        )
    return LdaModel(corpus, vocabulary, params.alpha, params.beta)
