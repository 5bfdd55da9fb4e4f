import random
from collections import Counter

import pytest

from compass.services.sampling import TokenCycleSampler

LETTERS = [chr(code) for code in range(ord("a"), ord("z") + 1)]


def test_every_cycle_window_is_a_permutation() -> None:
    sampler = TokenCycleSampler(LETTERS, rng=random.Random(7))
    tokens = sampler.sample(100)

    assert len(tokens) == 100
    for start in range(0, 78, 26):
        assert sorted(tokens[start:start + 26]) == LETTERS
    # Partial last cycle never repeats a token
    tail = tokens[78:]
    assert len(set(tail)) == len(tail) == 22


def test_counts_stay_balanced() -> None:
    counts = Counter(TokenCycleSampler(LETTERS, rng=random.Random(1)).sample(100))
    assert max(counts.values()) - min(counts.values()) <= 1


def test_same_seed_same_sequence() -> None:
    first = TokenCycleSampler.seeded(LETTERS, seed="PH-ALPH.all.form01").sample(60)
    again = TokenCycleSampler.seeded(LETTERS, seed="PH-ALPH.all.form01").sample(60)
    other = TokenCycleSampler.seeded(LETTERS, seed="PH-ALPH.all.form02").sample(60)
    assert first == again
    assert first != other


def test_short_sample_has_no_repeats() -> None:
    tokens = TokenCycleSampler(LETTERS, rng=random.Random(3)).sample(10)
    assert len(set(tokens)) == 10


def test_avoid_boundary_repeats() -> None:
    pool = ["a", "b", "c"]
    for seed in range(50):
        tokens = TokenCycleSampler(
            pool, rng=random.Random(seed), avoid_boundary_repeats=True
        ).sample(30)
        assert all(left != right for left, right in zip(tokens, tokens[1:]))
        for start in range(0, 30, 3):
            assert sorted(tokens[start:start + 3]) == pool


def test_empty_pool_and_negative_length_rejected() -> None:
    with pytest.raises(ValueError):
        TokenCycleSampler([])
    with pytest.raises(ValueError):
        TokenCycleSampler(["a"]).sample(-1)
    assert TokenCycleSampler(["a"]).sample(0) == []
