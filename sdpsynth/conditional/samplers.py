from __future__ import annotations

from typing import Any, Callable, Hashable, Sequence

import numpy as np


class Sampler:
    """
    A parameter value that is redrawn every time it is used.

    Bound constants in a conditional spec are shared by every entity of a
    group; a Sampler is evaluated once per dispatch instead, from the rng of
    the entity being generated.
    """

    def __init__(self, fn: Callable[[np.random.Generator], Any]):
        if not callable(fn):
            raise ValueError("Sampler requires a callable taking an rng")
        self._fn = fn

    def draw(self, rng: np.random.Generator) -> Any:
        return self._fn(rng)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._fn!r})"


def normalize_weights(probs: Sequence[float], n: int) -> np.ndarray:
    p = np.asarray(probs, dtype=float)
    if p.ndim != 1 or len(p) != n:
        raise ValueError(f"probs must be a 1D array of length {n}")
    if not np.all(np.isfinite(p)) or np.any(p < 0.0):
        raise ValueError("probs must be finite and non-negative")
    total = p.sum()
    if total <= 0.0:
        raise ValueError("probs must not all be zero")
    return p / total


def pick(values: Sequence[Hashable], cumulative: np.ndarray, draw: float) -> Hashable:
    j = int(np.searchsorted(cumulative, draw, side="right"))
    return values[min(j, len(values) - 1)]


class InitialDistribution(Sampler):
    """
    Probability-weighted draw over a set of states, one uniform per draw.

    Weights are normalized, so raw frequencies can be passed directly.
    """

    def __init__(self, states: Sequence[Hashable], probs: Sequence[float]):
        self.states = tuple(states)
        if not self.states:
            raise ValueError("states must be non-empty")
        self.probs = normalize_weights(probs, len(self.states))
        self._cumulative = np.cumsum(self.probs)
        super().__init__(self._draw)

    def _draw(self, rng: np.random.Generator) -> Hashable:
        return pick(self.states, self._cumulative, rng.random())

    def __repr__(self) -> str:
        return f"InitialDistribution(states={list(self.states)}, probs={self.probs.tolist()})"


def resolve(value: Any, rng: np.random.Generator) -> Any:
    """
    Evaluate a Sampler; pass any other value through unchanged.
    """
    if isinstance(value, Sampler):
        return value.draw(rng)
    return value
