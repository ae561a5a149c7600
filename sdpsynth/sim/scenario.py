from __future__ import annotations

from typing import Any, Hashable, Mapping

import numpy as np

from sdpsynth.conditional.dispatch import ConditionalProbabilitySpec, GroupEntry
from sdpsynth.conditional.samplers import InitialDistribution
from sdpsynth.markov.sequence import MarkovSeries
from sdpsynth.markov.transition import TransitionMatrix

BINARY_STATES = ("No", "Yes")


def build_markov_spec(
    matrices: Mapping[Hashable, TransitionMatrix],
    t0: Any | Mapping[Hashable, Any] = None,
    *,
    include_initial: bool = True,
) -> ConditionalProbabilitySpec:
    """
    One MarkovSeries entry per group.

    `t0` is either shared by every group or a mapping keyed like `matrices`.
    Its values may be fixed states or Samplers. With t0=None nothing is
    bound and every entity must supply its own t0 at the call site.
    """
    if not matrices:
        raise ValueError("matrices must be non-empty")
    if t0 is None:
        t0_by_group = {}
    elif isinstance(t0, Mapping):
        missing = set(matrices) - set(t0)
        if missing:
            raise ValueError(f"t0 is missing groups: {sorted(map(str, missing))}")
        t0_by_group = dict(t0)
    else:
        t0_by_group = {g: t0 for g in matrices}

    generator = MarkovSeries()
    return ConditionalProbabilitySpec(
        {
            g: GroupEntry(generator=generator, params=_params(tm, t0_by_group.get(g), include_initial))
            for g, tm in matrices.items()
        }
    )


def _params(tm: TransitionMatrix, t0: Any, include_initial: bool) -> dict[str, Any]:
    params = {"tm": tm, "include_initial": include_initial}
    if t0 is not None:
        params["t0"] = t0
    return params


def default_group_matrices() -> dict[str, TransitionMatrix]:
    """
    Toy per-sex transition matrices for a binary status (e.g. FRPL) over time.
    """
    female = np.array([[0.90, 0.10], [0.15, 0.85]], dtype=float)
    male = np.array([[0.85, 0.15], [0.20, 0.80]], dtype=float)
    return {
        "Female": TransitionMatrix(states=BINARY_STATES, P=female),
        "Male": TransitionMatrix(states=BINARY_STATES, P=male),
    }


def build_default_group_spec(initial_yes_prob: float = 0.3) -> ConditionalProbabilitySpec:
    """
    Per-sex Markov spec whose initial state is redrawn for every entity.
    """
    if not 0.0 <= initial_yes_prob <= 1.0:
        raise ValueError("initial_yes_prob must be in [0, 1]")
    t0 = InitialDistribution(BINARY_STATES, [1.0 - initial_yes_prob, initial_yes_prob])
    return build_markov_spec(default_group_matrices(), t0)
