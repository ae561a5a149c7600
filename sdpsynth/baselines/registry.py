from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Hashable, Iterable, Mapping, Sequence

import numpy as np
import pandas as pd

from sdpsynth.conditional.generators import Bernoulli, Generator
from sdpsynth.conditional.samplers import Sampler
from sdpsynth.datasets.toy_baselines import generate_toy_baselines
from sdpsynth.errors import BaselineLookupError

logger = logging.getLogger(__name__)


def _scalar(v: Any) -> Any:
    return v.item() if isinstance(v, np.generic) else v


def _key(values: Sequence[Any]) -> tuple:
    return tuple(_scalar(v) for v in values)


@dataclass(frozen=True, eq=False)
class Baseline:
    """
    Empirical parameter table keyed by a fixed set of covariates.

    Every non-key column of `data` is a generator parameter; lookups are
    exact matches on the key columns.
    """

    name: str
    keys: tuple
    generator: Generator
    data: pd.DataFrame
    _index: Mapping[tuple, Mapping[str, Any]] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        keys = tuple(str(k) for k in self.keys)
        if not keys:
            raise ValueError(f"baseline {self.name!r} must declare at least one key")
        missing = [k for k in keys if k not in self.data.columns]
        if missing:
            raise ValueError(f"baseline {self.name!r} data is missing key columns: {missing}")
        param_cols = [c for c in self.data.columns if c not in keys]
        if not param_cols:
            raise ValueError(f"baseline {self.name!r} data has no parameter columns")
        dup = self.data.duplicated(subset=list(keys))
        if dup.any():
            first = self.data.loc[dup, list(keys)].iloc[0].tolist()
            raise ValueError(f"baseline {self.name!r} has duplicate key combination {first}")

        columns = list(self.data.columns)
        index = {}
        for values in self.data.itertuples(index=False, name=None):
            rec = dict(zip(columns, values))
            index[_key([rec[k] for k in keys])] = MappingProxyType(
                {c: _scalar(rec[c]) for c in param_cols}
            )

        data = self.data.copy()
        object.__setattr__(self, "keys", keys)
        object.__setattr__(self, "data", data)
        object.__setattr__(self, "_index", MappingProxyType(index))

    def lookup(self, combo: Sequence[Any] | Mapping[str, Any]) -> Mapping[str, Any]:
        if isinstance(combo, Mapping):
            try:
                combo = [combo[k] for k in self.keys]
            except KeyError as exc:
                raise BaselineLookupError(
                    f"baseline {self.name!r} requires covariates {list(self.keys)}; missing {exc.args[0]!r}"
                ) from None
        k = _key(combo)
        if len(k) != len(self.keys):
            raise BaselineLookupError(
                f"baseline {self.name!r} expects {len(self.keys)} covariates {list(self.keys)}, got {k}"
            )
        try:
            return self._index[k]
        except (KeyError, TypeError):
            raise BaselineLookupError(
                f"no entry in baseline {self.name!r} for {dict(zip(self.keys, k))}"
            ) from None


class BaselineRegistry(Mapping):
    """
    Immutable collection of baselines by name.

    Build one instance at start-up and pass it to whatever needs it; it is
    never modified afterwards and may be shared between threads.
    """

    def __init__(self, baselines: Iterable[Baseline]):
        by_name: dict[str, Baseline] = {}
        for b in baselines:
            if b.name in by_name:
                raise ValueError(f"duplicate baseline name {b.name!r}")
            by_name[b.name] = b
        self._baselines = MappingProxyType(by_name)
        logger.debug("baseline registry ready: %s", sorted(by_name))

    def __getitem__(self, name: str) -> Baseline:
        try:
            return self._baselines[name]
        except KeyError:
            raise BaselineLookupError(
                f"unknown baseline {name!r}; available: {sorted(self._baselines)}"
            ) from None

    def __iter__(self):
        return iter(self._baselines)

    def __len__(self) -> int:
        return len(self._baselines)

    @property
    def names(self) -> tuple:
        return tuple(self._baselines)


def default_registry(seed: int = 123) -> BaselineRegistry:
    """
    Registry of the packaged binary baselines (ell, iep, frpl, gifted), keyed by age x race.
    """
    tables = generate_toy_baselines(seed=seed)
    return BaselineRegistry(
        Baseline(name=name, keys=("age", "race"), generator=Bernoulli(), data=df)
        for name, df in tables.items()
    )


def assign_baseline(
    registry: BaselineRegistry,
    name: str,
    frame: pd.DataFrame,
    rng: np.random.Generator | int | None = None,
) -> pd.Series:
    """
    One generated value per row of `frame`, using the row's covariates to
    pick the baseline parameters.

    Every row is looked up before anything is drawn. Category labels must
    already match the baseline's; no relabelling is done here.
    """
    baseline = registry[name]
    missing = [k for k in baseline.keys if k not in frame.columns]
    if missing:
        raise BaselineLookupError(
            f"frame is missing covariate columns {missing} required by baseline {name!r}"
        )

    params = [baseline.lookup(combo) for combo in frame[list(baseline.keys)].itertuples(index=False, name=None)]

    gen = np.random.default_rng(rng)
    values = np.empty(len(params), dtype=object)
    for i, p in enumerate(params):
        values[i] = np.asarray(baseline.generator.invoke(p, {"n": 1}, gen)).reshape(-1)[0]
    logger.info("assigned baseline %r to %d entities", name, len(params))
    return pd.Series(values, index=frame.index, name=name).infer_objects()


def initial_state_sampler(
    registry: BaselineRegistry,
    name: str,
    covariates: Mapping[str, Any],
    states: Sequence[Hashable] = (0, 1),
) -> Sampler:
    """
    Sampler that draws an initial Markov state from a binary baseline.

    The baseline row is resolved now; each draw yields states[1] with the
    baseline probability and states[0] otherwise.
    """
    if len(states) != 2:
        raise ValueError("states must hold exactly two labels (failure, success)")
    params = registry[name].lookup(covariates)
    generator = registry[name].generator
    fail, success = states

    def _draw(rng: np.random.Generator) -> Hashable:
        value = np.asarray(generator.invoke(params, {"n": 1}, rng)).reshape(-1)[0]
        return success if value else fail

    return Sampler(_draw)
