from __future__ import annotations

from dataclasses import dataclass
from typing import Hashable, Iterable, Optional, Sequence

import numpy as np
import pandas as pd

from sdpsynth.errors import InvalidStateSpaceError
from sdpsynth.markov.transition import TransitionMatrix, as_state_space


@dataclass(frozen=True, eq=False)
class TransitionCounts:
    """
    Observed transition counts over a labelled state space.

    counts[i, j] is the number of times states[i] was directly followed by
    states[j]. Counts from different entities combine with `+`.
    """

    states: tuple
    counts: np.ndarray

    def __post_init__(self) -> None:
        states = as_state_space(self.states)
        c = np.array(self.counts, dtype=np.int64)
        if c.shape != (len(states), len(states)):
            raise InvalidStateSpaceError(
                f"counts must have shape ({len(states)}, {len(states)}), got {c.shape}"
            )
        if np.any(c < 0):
            raise ValueError("counts must be non-negative")
        object.__setattr__(self, "states", states)
        object.__setattr__(self, "counts", c)

    @classmethod
    def zeros(cls, states: Sequence[Hashable]) -> "TransitionCounts":
        s = as_state_space(states)
        return cls(states=s, counts=np.zeros((len(s), len(s)), dtype=np.int64))

    def __add__(self, other: "TransitionCounts") -> "TransitionCounts":
        if not isinstance(other, TransitionCounts):
            return NotImplemented
        if other.states != self.states:
            raise InvalidStateSpaceError(
                f"cannot add counts over {list(other.states)} to counts over {list(self.states)}"
            )
        return TransitionCounts(states=self.states, counts=self.counts + other.counts)

    @property
    def total(self) -> int:
        return int(self.counts.sum())

    @property
    def row_totals(self) -> np.ndarray:
        return self.counts.sum(axis=1)

    def visited_states(self) -> tuple:
        # A state is visited if it appears on either end of a transition.
        seen = (self.counts.sum(axis=1) + self.counts.sum(axis=0)) > 0
        return tuple(s for s, v in zip(self.states, seen) if v)

    def normalize(self, sanitize: bool = False) -> TransitionMatrix:
        return TransitionMatrix.normalize(self.counts, self.states, sanitize=sanitize)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.counts, index=list(self.states), columns=list(self.states))


def tally(sequence: Iterable[Hashable], states: Sequence[Hashable]) -> TransitionCounts:
    """
    Count adjacent (state[t], state[t + 1]) pairs of one sequence.
    """
    out = TransitionCounts.zeros(states)
    index = {s: i for i, s in enumerate(out.states)}
    seq = list(sequence)
    try:
        codes = [index[s] for s in seq]
    except (KeyError, TypeError):
        unknown = sorted({repr(s) for s in seq if s not in index})
        raise InvalidStateSpaceError(
            f"sequence contains states outside {list(out.states)}: {unknown}"
        ) from None

    counts = out.counts.copy()
    if len(codes) >= 2:
        np.add.at(counts, (codes[:-1], codes[1:]), 1)
    return TransitionCounts(states=out.states, counts=counts)


def sum_counts(items: Iterable[TransitionCounts], states: Optional[Sequence[Hashable]] = None) -> TransitionCounts:
    items = list(items)
    if not items:
        if states is None:
            raise ValueError("states are required to sum an empty collection of counts")
        return TransitionCounts.zeros(states)
    total = TransitionCounts.zeros(states if states is not None else items[0].states)
    for c in items:
        total = total + c
    return total


def tally_panel(
    panel: pd.DataFrame,
    states: Sequence[Hashable],
    *,
    by: Optional[str] = None,
    entity_col: str = "entity_id",
    time_col: str = "time",
    state_col: str = "state",
) -> dict:
    """
    Tally a long-format panel entity by entity and sum the counts.

    Transitions are never counted across entity boundaries. Returns a dict
    keyed by the `by` column's values, or {None: counts} when `by` is None.
    """
    cols = [entity_col, time_col, state_col] + ([by] if by is not None else [])
    missing = [c for c in cols if c not in panel.columns]
    if missing:
        raise ValueError(f"panel is missing columns: {missing}")

    ordered = panel.sort_values([entity_col, time_col], kind="mergesort")
    out: dict = {}
    for _, rows in ordered.groupby(entity_col, sort=False):
        key = rows[by].iloc[0] if by is not None else None
        if by is not None and rows[by].nunique(dropna=False) > 1:
            raise ValueError(f"entity {rows[entity_col].iloc[0]!r} has more than one {by!r} value")
        c = tally(rows[state_col].tolist(), states)
        out[key] = out[key] + c if key in out else c
    return out
