import random
import threading

import pytest

from roulette.markov import Chain


QUOTE = "I am not a number! I am a free man!"


def test_round_trip_table_entries():
    chain = Chain(prefix_len=2)
    chain.train(QUOTE)
    table = chain.table()

    assert table[" "] == ["I"]
    assert table[" I"] == ["am"]
    assert sorted(table["I am"]) == ["a", "not"]
    assert table["a free"] == ["man!"]
    # the last prefix was never followed by anything
    assert "free man!" not in table


def test_generate_respects_budget_and_stops_on_unknown_prefix():
    chain = Chain(prefix_len=2, rng=random.Random(7))
    chain.train(QUOTE)
    for budget in range(0, 15):
        words = chain.generate(budget).split(" ") if budget else []
        assert len(words) <= budget
    for _ in range(50):
        out = chain.generate(100)
        assert out.startswith("I am")
        assert out.endswith("free man!")


def test_generate_single_path_is_deterministic():
    chain = Chain(prefix_len=2)
    chain.train("a b c")
    assert chain.generate(10) == "a b c"
    assert chain.generate(2) == "a b"
    assert chain.generate(0) == ""


def test_generate_on_empty_chain_returns_empty_string():
    assert Chain().generate(10) == ""


def test_generation_ignores_training_cursor():
    chain = Chain(prefix_len=1)
    chain.train("x y")
    chain.train("z")
    # generation always restarts from the empty prefix
    assert chain.generate(1) == "x"
    assert chain.generate(5) == "x y z"


def test_empty_tokens_are_kept():
    chain = Chain(prefix_len=2)
    chain.train("a  b")
    table = chain.table()
    assert table[" "] == ["a"]
    assert table[" a"] == [""]
    assert table["a "] == ["b"]


def test_cursor_persists_across_chunks():
    chain = Chain(prefix_len=2)
    chain.train(b"a b")
    chain.train(b"c")
    assert chain.suffixes("a b") == ["c"]
    assert chain.suffixes(["", ""]) == ["a"]


def test_trainers_have_independent_cursors():
    chain = Chain(prefix_len=2)
    t1, t2 = chain.trainer(), chain.trainer()
    t1.write("a b")
    t2.write("x")
    t1.write("c")
    assert chain.suffixes("a b") == ["c"]
    assert chain.suffixes(" ") == ["a", "x"]


def test_duplicates_encode_frequency():
    chain = Chain(prefix_len=1, rng=random.Random(1))
    for _ in range(3):
        chain.trainer().write("hi")
    chain.trainer().write("yo")
    assert chain.suffixes("") == ["hi", "hi", "hi", "yo"]
    picks = [chain.generate(1) for _ in range(400)]
    assert picks.count("hi") > picks.count("yo")


def test_multibyte_character_split_across_chunks():
    chain = Chain(prefix_len=1)
    stream = chain.trainer()
    raw = "café olé".encode("utf-8")
    stream.write(raw[:4])
    stream.write(raw[4:])
    tokens = [t for suffixes in chain.table().values() for t in suffixes]
    assert all("�" not in t for t in tokens)
    assert "olé" in tokens


def test_write_returns_length_and_empty_chunk_is_noop():
    chain = Chain()
    stream = chain.trainer()
    assert stream.write(b"") == 0
    assert len(chain) == 0
    assert stream.write(b"hello there") == 11
    assert stream.tokens == 2


def test_train_file(tmp_path):
    corpus = tmp_path / "corpus.txt"
    corpus.write_text("the cat sat", encoding="utf-8")
    chain = Chain(prefix_len=2)
    assert chain.train_file(corpus) == 3
    assert chain.generate(10) == "the cat sat"


def test_concurrent_trainers_do_not_lose_appends():
    chain = Chain(prefix_len=2)

    def feed():
        stream = chain.trainer()
        for _ in range(100):
            stream.write("a b")

    threads = [threading.Thread(target=feed) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert chain.suffixes(" ") == ["a"] * 4
    assert sum(len(v) for v in chain.table().values()) == 4 * 200


def test_invalid_prefix_len():
    with pytest.raises(ValueError):
        Chain(prefix_len=0)
