import numpy as np
import pytest

from ldaem.core.errors import CorpusFormatError
from ldaem.services.corpus_service import load_corpus, load_id_map, load_vocabulary, parse_document_line


def test_load_vocabulary(tmp_path):
    path = tmp_path / "vocab.txt"
    path.write_text("apple\nbanana\nengine\n", encoding="utf-8")
    vocab = load_vocabulary(path)
    assert len(vocab) == 3
    assert vocab.word_at(2) == "engine"
    assert vocab.index_of("banana") == 1
    assert vocab.index_of("zebra") is None


def test_parse_document_line_with_key():
    doc = parse_document_line("m42\t3 1 1 0\n")
    assert doc.key == "m42"
    np.testing.assert_array_equal(doc.word_ids, [3, 1, 1, 0])


def test_blank_line_is_empty_document():
    assert len(parse_document_line("\n")) == 0


def test_bad_token_reports_line(tmp_path):
    path = tmp_path / "corpus.txt"
    path.write_text("0 1\n2 x 3\n", encoding="utf-8")
    with pytest.raises(CorpusFormatError) as info:
        load_corpus(path)
    assert info.value.line_number == 2


def test_out_of_range_word_rejected():
    with pytest.raises(CorpusFormatError):
        parse_document_line("0 5", 1, vocab_size=4)
    with pytest.raises(CorpusFormatError):
        parse_document_line("-1", 1)


def test_load_corpus_and_id_map(tmp_path):
    corpus_path = tmp_path / "corpus.txt"
    corpus_path.write_text("w1\t0 1 1\nw2\t2 3\n\t1\n", encoding="utf-8")
    corpus = load_corpus(corpus_path, vocab_size=4)
    assert len(corpus) == 3
    assert corpus.num_tokens == 6
    assert corpus.index_of_key("w2") == 1

    map_path = tmp_path / "idmap.csv"
    map_path.write_text("w1,973,Some Movie\nw2,12\nunknown,5\nbad\n", encoding="utf-8")
    id_map = load_id_map(map_path, corpus)
    assert len(id_map) == 2
    assert id_map.resolve("973") == 0
    assert id_map.resolve(12) == 1
    assert id_map.resolve("5") is None
