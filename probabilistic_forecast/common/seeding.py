from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class GeneratorIndexSampler:
    """Uniform index sampler backed by a numpy Generator."""

    rng: np.random.Generator

    def draw_index(self, n: int) -> int:
        return int(self.rng.integers(0, n))


def make_rng(seed: int | None = None) -> np.random.Generator:
    """Return a Generator; seeded runs are reproducible."""
    return np.random.default_rng(None if seed is None else int(seed))


def default_index_sampler(seed: int | None = None) -> GeneratorIndexSampler:
    return GeneratorIndexSampler(rng=make_rng(seed))
