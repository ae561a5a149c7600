from __future__ import annotations

from dataclasses import dataclass, field
from typing import Hashable, Sequence

import numpy as np
import pandas as pd

from sdpsynth.errors import DegenerateRowError, InvalidStateSpaceError

ROW_SUM_ATOL = 1e-6


def as_state_space(states: Sequence[Hashable]) -> tuple:
    s = tuple(states)
    if len(s) < 1:
        raise InvalidStateSpaceError("state space must contain at least one state")
    if len(set(s)) != len(s):
        raise InvalidStateSpaceError(f"state labels must be unique, got {list(s)}")
    return s


@dataclass(frozen=True, eq=False)
class TransitionMatrix:
    """
    Row-stochastic transition matrix over a labelled, finite state space.

    P[i, j] is the probability of moving from states[i] to states[j].
    """

    states: tuple
    P: np.ndarray
    _index: dict = field(init=False, repr=False, compare=False)
    _cumulative: np.ndarray = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        states = as_state_space(self.states)
        p = np.array(self.P, dtype=float)
        if p.ndim != 2 or p.shape[0] != p.shape[1]:
            raise InvalidStateSpaceError("Transition matrix must be a square 2D array")
        if p.shape[0] != len(states):
            raise InvalidStateSpaceError(
                f"Transition matrix is {p.shape[0]}x{p.shape[1]} but {len(states)} states were declared"
            )
        if not np.all(np.isfinite(p)):
            raise ValueError("Transition matrix must contain finite values")
        if np.any(p < 0.0):
            raise ValueError("Transition probabilities must be non-negative")
        if not np.allclose(p.sum(axis=1), 1.0, rtol=0.0, atol=ROW_SUM_ATOL):
            raise ValueError("Each transition-matrix row must sum to 1")

        p.setflags(write=False)
        cumulative = np.cumsum(p, axis=1)
        cumulative.setflags(write=False)
        object.__setattr__(self, "states", states)
        object.__setattr__(self, "P", p)
        object.__setattr__(self, "_index", {s: i for i, s in enumerate(states)})
        object.__setattr__(self, "_cumulative", cumulative)

    @classmethod
    def normalize(
        cls,
        counts: np.ndarray,
        states: Sequence[Hashable],
        sanitize: bool = False,
    ) -> "TransitionMatrix":
        """
        Divide each row of a non-negative count matrix by its row sum.

        A row summing to zero raises DegenerateRowError, unless sanitize is
        set, in which case it is replaced by a uniform row.
        """
        states = as_state_space(states)
        c = np.asarray(counts, dtype=float)
        if c.ndim != 2 or c.shape != (len(states), len(states)):
            raise InvalidStateSpaceError(
                f"counts must have shape ({len(states)}, {len(states)}), got {c.shape}"
            )
        if not np.all(np.isfinite(c)) or np.any(c < 0.0):
            raise ValueError("counts must be finite and non-negative")

        row_sums = c.sum(axis=1)
        p = np.empty_like(c)
        for i, total in enumerate(row_sums):
            if total > 0.0:
                p[i] = c[i] / total
            elif sanitize:
                p[i] = 1.0 / len(states)
            else:
                raise DegenerateRowError(states[i])
        return cls(states=states, P=p)

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> "TransitionMatrix":
        """
        Build from a labelled square frame (index = from-state, columns = to-state).
        Values need not be normalized.
        """
        rows = list(df.index)
        cols = list(df.columns)
        if rows != cols:
            raise InvalidStateSpaceError(
                f"row labels {rows} must match column labels {cols}"
            )
        return cls.normalize(df.to_numpy(dtype=float), rows)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.P, index=list(self.states), columns=list(self.states))

    @property
    def n_states(self) -> int:
        return len(self.states)

    def index_of(self, state: Hashable) -> int:
        try:
            return self._index[state]
        except (KeyError, TypeError):
            raise InvalidStateSpaceError(
                f"unknown state {state!r}; expected one of {list(self.states)}"
            ) from None

    def row(self, state: Hashable) -> np.ndarray:
        return self.P[self.index_of(state)]

    def apply(self, from_state: Hashable, draw: float) -> Hashable:
        """
        Map a uniform draw in [0, 1) to the next state.

        Picks the first state whose cumulative probability strictly exceeds
        the draw; residual draws left over by rounding fall to the last state.
        """
        if not 0.0 <= draw < 1.0:
            raise ValueError(f"draw must be in [0, 1), got {draw}")
        cum = self._cumulative[self.index_of(from_state)]
        j = int(np.searchsorted(cum, draw, side="right"))
        return self.states[min(j, self.n_states - 1)]

    def stationary_distribution(self) -> np.ndarray:
        eigenvalues, eigenvectors = np.linalg.eig(self.P.T)
        idx = np.argmin(np.abs(eigenvalues - 1.0))
        pi = np.real(eigenvectors[:, idx])
        return pi / pi.sum()
