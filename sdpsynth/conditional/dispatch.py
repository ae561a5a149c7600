from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Hashable, Iterable, Iterator, Mapping, Optional

import numpy as np
import pandas as pd

from sdpsynth.conditional.generators import Generator
from sdpsynth.conditional.samplers import resolve
from sdpsynth.errors import UnmappedGroupError


@dataclass(frozen=True)
class GroupEntry:
    """
    One group's generator and its bound parameters.

    Values in `params` that are Samplers are redrawn at every dispatch;
    everything else is shared by all entities of the group.
    """

    generator: Generator
    params: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not callable(getattr(self.generator, "invoke", None)):
            raise ValueError("generator must provide an invoke(params, call_args, rng) method")
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))


class ConditionalProbabilitySpec(Mapping):
    """
    Read-only mapping from group key to GroupEntry.
    """

    def __init__(self, entries: Mapping[Hashable, GroupEntry]):
        if not entries:
            raise ValueError("entries must be non-empty")
        for key, entry in entries.items():
            if not isinstance(entry, GroupEntry):
                raise ValueError(f"entry for group {key!r} must be a GroupEntry")
        self._entries = dict(entries)

    def __getitem__(self, key: Hashable) -> GroupEntry:
        try:
            return self._entries[key]
        except (KeyError, TypeError):
            raise UnmappedGroupError(key) from None

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        try:
            return key in self._entries
        except TypeError:
            return False

    def validate_groups(self, keys: Iterable[Hashable]) -> None:
        missing = []
        for k in keys:
            if k not in self and k not in missing:
                missing.append(k)
        if missing:
            raise UnmappedGroupError(*missing)

    def __repr__(self) -> str:
        return f"ConditionalProbabilitySpec(groups={list(self._entries)})"


def dispatch(
    group_key: Hashable,
    spec: ConditionalProbabilitySpec,
    rng: np.random.Generator | int | None = None,
    **call_args: Any,
) -> Any:
    """
    Generate a value for one entity using its group's generator.

    The lookup happens before any random draw, so an unmapped group leaves
    the rng untouched.
    """
    entry = spec[group_key]
    clash = set(entry.params) & set(call_args)
    if clash:
        raise ValueError(f"call-site args {sorted(clash)} collide with bound params")

    gen = np.random.default_rng(rng)
    params = {k: resolve(v, gen) for k, v in entry.params.items()}
    return entry.generator.invoke(params, call_args, gen)


def assign_conditional(
    frame: pd.DataFrame,
    group_col: str,
    spec: ConditionalProbabilitySpec,
    rng: np.random.Generator | int | None = None,
    name: Optional[str] = None,
) -> pd.Series:
    """
    Draw one value per row, conditioned on the row's group.

    All groups are checked before drawing. Groups are then drawn in sorted
    order, each with a single call sized to the group, so results depend only
    on the seed and the frame contents.
    """
    if group_col not in frame.columns:
        raise ValueError(f"frame is missing column {group_col!r}")
    spec.validate_groups(pd.unique(frame[group_col]))

    gen = np.random.default_rng(rng)
    out = pd.Series(index=frame.index, dtype=object, name=name)
    for key, positions in frame.groupby(group_col, sort=True).indices.items():
        values = dispatch(key, spec, gen, n=len(positions))
        out.iloc[positions] = np.asarray(values, dtype=object)
    return out.infer_objects()
