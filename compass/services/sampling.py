"""Token sequences for stimulus-pool assessments.

A letter-naming form may need 100 trials drawn from 26 letters. The sampler
shuffles the whole pool, appends it, and starts again from a fresh copy of the
pool until enough tokens exist, so no token repeats before every other token
has been shown once in the current cycle.
"""

from __future__ import annotations

import random
from typing import List, Optional, Sequence


class TokenCycleSampler:
    """Cycle-shuffle sampler over a finite token pool.

    Every window ``output[k*P:(k+1)*P]`` is a permutation of the pool. By
    default the last token of one cycle may equal the first token of the
    next; ``avoid_boundary_repeats`` rotates each new cycle so that cannot
    happen (pools of more than one token only).
    """

    def __init__(
        self,
        pool: Sequence[str],
        rng: Optional[random.Random] = None,
        avoid_boundary_repeats: bool = False,
    ) -> None:
        if not pool:
            raise ValueError("stimulus pool is empty")
        self.pool = list(pool)
        self.rng = rng or random.Random()
        self.avoid_boundary_repeats = avoid_boundary_repeats

    @classmethod
    def seeded(cls, pool: Sequence[str], seed: str, **kwargs) -> "TokenCycleSampler":
        """Reproducible sampler; the same seed always yields the same sequence."""

        return cls(pool, rng=random.Random(seed), **kwargs)

    def _next_cycle(self, previous: Optional[str]) -> List[str]:
        cycle = list(self.pool)
        self.rng.shuffle(cycle)
        if self.avoid_boundary_repeats and previous is not None and cycle[0] == previous:
            for offset, token in enumerate(cycle):
                if token != previous:
                    cycle = cycle[offset:] + cycle[:offset]
                    break
        return cycle

    def sample(self, length: int) -> List[str]:
        if length < 0:
            raise ValueError("length must be non-negative")
        tokens: List[str] = []
        while len(tokens) < length:
            previous = tokens[-1] if tokens else None
            tokens.extend(self._next_cycle(previous))
        return tokens[:length]
