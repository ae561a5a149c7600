from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Hashable, Iterable, Optional, Sequence, Union

import numpy as np
import pandas as pd
from scipy.stats import norm

from sdpsynth.errors import InsufficientDataError, InvalidStateSpaceError
from sdpsynth.markov.counts import TransitionCounts, tally
from sdpsynth.markov.transition import TransitionMatrix

logger = logging.getLogger(__name__)

# Float slack when comparing an expected cell to a clipped interval endpoint.
BOUND_SLACK = 1e-12


@dataclass(frozen=True, eq=False)
class SeriesFit:
    """
    Empirical transition matrix with per-cell confidence bounds.

    A degenerate fit (only one state visited) carries no estimate; it is
    treated as a pass by check_fit.
    """

    states: tuple
    confidence: float
    counts: TransitionCounts
    degenerate: bool = False
    estimate: Optional[TransitionMatrix] = None
    lower: Optional[np.ndarray] = None
    upper: Optional[np.ndarray] = None
    unobserved_states: tuple = ()


def z_value(confidence: float) -> float:
    """
    Two-sided standard-normal quantile for a confidence level in (0, 1).
    """
    if not 0.0 < confidence < 1.0:
        raise ValueError(f"confidence must be in (0, 1), got {confidence}")
    return float(norm.ppf(0.5 + confidence / 2.0))


def fit_series(
    data: Union[TransitionCounts, Iterable[Hashable]],
    states: Optional[Sequence[Hashable]] = None,
    confidence: float = 0.99,
) -> SeriesFit:
    """
    Estimate a transition matrix from a sequence (or aggregated counts) with
    normal-approximation confidence bounds:

        p_hat +/- z * sqrt(p_hat * (1 - p_hat) / n),  clipped to [0, 1]

    where n is the number of observed transitions out of the row's state.
    States never observed leaving get a uniform estimate and bounds [0, 1].
    """
    z = z_value(confidence)

    if isinstance(data, TransitionCounts):
        counts = data
        if states is not None and tuple(states) != counts.states:
            raise InvalidStateSpaceError(
                f"states {list(states)} do not match counts over {list(counts.states)}"
            )
    else:
        seq = list(data)
        if len(seq) < 2:
            raise InsufficientDataError(f"sequence of length {len(seq)} has no transitions to fit")
        if states is None:
            states = list(pd.unique(pd.Series(seq, dtype=object)))
        counts = tally(seq, states)

    if counts.total < 1:
        raise InsufficientDataError("at least two consecutive observations are required to fit transitions")

    if len(counts.visited_states()) == 1:
        logger.debug("only state %r visited; reporting a degenerate fit", counts.visited_states()[0])
        return SeriesFit(states=counts.states, confidence=confidence, counts=counts, degenerate=True)

    estimate = counts.normalize(sanitize=True)
    n = counts.row_totals.astype(float)[:, None]
    p = estimate.P
    with np.errstate(divide="ignore", invalid="ignore"):
        half_width = z * np.sqrt(p * (1.0 - p) / n)
    lower = np.clip(p - half_width, 0.0, 1.0)
    upper = np.clip(p + half_width, 0.0, 1.0)

    empty = counts.row_totals == 0
    lower[empty] = 0.0
    upper[empty] = 1.0
    unobserved = tuple(s for s, e in zip(counts.states, empty) if e)
    if unobserved:
        logger.debug("no transitions observed out of %s; bounds left at [0, 1]", list(unobserved))

    return SeriesFit(
        states=counts.states,
        confidence=confidence,
        counts=counts,
        estimate=estimate,
        lower=lower,
        upper=upper,
        unobserved_states=unobserved,
    )


def align_expected(expected: TransitionMatrix, states: tuple) -> np.ndarray:
    if set(expected.states) != set(states) or expected.n_states != len(states):
        raise InvalidStateSpaceError(
            f"expected matrix over {list(expected.states)} does not match {list(states)}"
        )
    order = [expected.index_of(s) for s in states]
    return expected.P[np.ix_(order, order)]


def check_fit(expected: TransitionMatrix, fit: SeriesFit) -> bool:
    """
    True if every expected cell lies inside the fitted confidence bounds.
    """
    if fit.degenerate:
        return True
    e = align_expected(expected, fit.states)
    inside = (e >= fit.lower - BOUND_SLACK) & (e <= fit.upper + BOUND_SLACK)
    return bool(np.all(inside))


def check_fit_tolerance(
    expected: TransitionMatrix,
    observed: Union[TransitionMatrix, TransitionCounts],
    tolerance: float,
) -> bool:
    """
    True if every observed cell is strictly within `tolerance` of the expected one.

    With counts, rows for states never observed leaving are skipped; they
    carry no estimate to compare.
    """
    if tolerance <= 0.0:
        raise ValueError("tolerance must be > 0")
    if isinstance(observed, TransitionCounts):
        rows = observed.row_totals > 0
        observed = observed.normalize(sanitize=True)
    else:
        rows = np.ones(observed.n_states, dtype=bool)
    e = align_expected(expected, observed.states)
    close = np.abs(observed.P - e) < tolerance
    return bool(np.all(close[rows]))


def fit_report(expected: TransitionMatrix, fit: SeriesFit) -> pd.DataFrame:
    """
    One row per (from, to) cell with the expected value, estimate and bounds.
    """
    columns = ["from_state", "to_state", "expected", "estimate", "lower", "upper", "n", "within"]
    if fit.degenerate:
        return pd.DataFrame(columns=columns)

    e = align_expected(expected, fit.states)
    rows = []
    for i, a in enumerate(fit.states):
        for j, b in enumerate(fit.states):
            rows.append(
                (
                    a,
                    b,
                    float(e[i, j]),
                    float(fit.estimate.P[i, j]),
                    float(fit.lower[i, j]),
                    float(fit.upper[i, j]),
                    int(fit.counts.row_totals[i]),
                    bool(fit.lower[i, j] - BOUND_SLACK <= e[i, j] <= fit.upper[i, j] + BOUND_SLACK),
                )
            )
    return pd.DataFrame(rows, columns=columns)
