from __future__ import annotations

from typing import Any, Callable, Hashable, Mapping, Protocol, Sequence

import numpy as np

from sdpsynth.conditional.samplers import normalize_weights
from sdpsynth.markov.sequence import MarkovSeries


class Generator(Protocol):
    """
    Anything that turns bound parameters plus call-site arguments into a value.
    """

    def invoke(
        self,
        params: Mapping[str, Any],
        call_args: Mapping[str, Any],
        rng: np.random.Generator,
    ) -> Any:
        ...


def _n_draws(call_args: Mapping[str, Any]) -> int:
    n = call_args.get("n", 1)
    if isinstance(n, bool) or int(n) != n or n < 0:
        raise ValueError(f"n must be a non-negative integer, got {n!r}")
    return int(n)


class Bernoulli:
    """
    n independent 0/1 draws with success probability `prob`.
    """

    def invoke(self, params, call_args, rng):
        if "prob" not in params:
            raise ValueError("Bernoulli requires param 'prob'")
        prob = float(params["prob"])
        if not 0.0 <= prob <= 1.0:
            raise ValueError(f"prob must be in [0, 1], got {prob}")
        n = _n_draws(call_args)
        return (rng.random(n) < prob).astype(int)


class Categorical:
    """
    n independent draws from `states` weighted by `probs`.
    """

    def invoke(self, params, call_args, rng):
        states: Sequence[Hashable] = tuple(params["states"])
        weights = normalize_weights(params["probs"], len(states))
        cumulative = np.cumsum(weights)
        n = _n_draws(call_args)
        idx = np.searchsorted(cumulative, rng.random(n), side="right")
        idx = np.minimum(idx, len(states) - 1)
        labels = np.empty(len(states), dtype=object)
        labels[:] = states
        return labels[idx]


class FunctionGenerator:
    """
    Adapts a plain callable `fn(rng, **kwargs)`; params and call args become kwargs.
    """

    def __init__(self, fn: Callable[..., Any]):
        if not callable(fn):
            raise ValueError("fn must be callable")
        self.fn = fn

    def invoke(self, params, call_args, rng):
        return self.fn(rng, **params, **call_args)


__all__ = ["Generator", "Bernoulli", "Categorical", "FunctionGenerator", "MarkovSeries"]
