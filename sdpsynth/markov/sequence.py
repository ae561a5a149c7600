from __future__ import annotations

import numbers
from typing import Any, Hashable, Union

import numpy as np

from sdpsynth.conditional.samplers import Sampler, resolve
from sdpsynth.markov.transition import TransitionMatrix

RngLike = Union[np.random.Generator, int, None]
InitialState = Union[Hashable, Sampler]


def make_markov_series(
    n_steps: int,
    tm: TransitionMatrix,
    t0: InitialState,
    *,
    include_initial: bool = True,
    rng: RngLike = None,
) -> np.ndarray:
    """
    Simulate one entity's state sequence from a first-order Markov chain.

    n_steps is the number of transitions, so the result has n_steps + 1
    states when include_initial is set and n_steps otherwise.

    Draws are consumed in a fixed order: one for t0 when it is a Sampler,
    then one per step. The same seed therefore reproduces the same sequence.
    """
    if isinstance(n_steps, bool) or not isinstance(n_steps, numbers.Real) or not float(n_steps).is_integer():
        raise ValueError(f"n_steps must be an integer, got {n_steps!r}")
    n_steps = int(n_steps)
    if n_steps < 0:
        raise ValueError("n_steps must be >= 0")

    gen = np.random.default_rng(rng)
    state = resolve(t0, gen)
    tm.index_of(state)

    states = [state] if include_initial else []
    for _ in range(n_steps):
        state = tm.apply(state, gen.random())
        states.append(state)

    idx = np.fromiter((tm.index_of(s) for s in states), dtype=int, count=len(states))
    out = state_labels(tm)[idx]
    out.setflags(write=False)
    return out


def state_labels(tm: TransitionMatrix) -> np.ndarray:
    """
    Label array for indexing; mixed label types are kept as objects.
    """
    if len({type(s) for s in tm.states}) > 1:
        labels = np.empty(tm.n_states, dtype=object)
        labels[:] = tm.states
        return labels
    return np.asarray(tm.states)


class MarkovSeries:
    """
    Generator capability producing one Markov sequence per invocation.

    Bound params: tm, optionally t0 and include_initial.
    Call-site args: n_steps, and t0 when each entity brings its own initial
    state (then it must not also be bound).
    """

    def invoke(self, params: dict[str, Any], call_args: dict[str, Any], rng: np.random.Generator) -> np.ndarray:
        if "tm" not in params:
            raise ValueError("MarkovSeries requires param 'tm'")
        if "n_steps" not in call_args:
            raise ValueError("MarkovSeries requires call-site arg n_steps")
        if "t0" in call_args:
            t0 = call_args["t0"]
        elif "t0" in params:
            t0 = params["t0"]
        else:
            raise ValueError("MarkovSeries needs t0 either bound or at the call site")
        return make_markov_series(
            call_args["n_steps"],
            params["tm"],
            t0,
            include_initial=bool(params.get("include_initial", True)),
            rng=rng,
        )
