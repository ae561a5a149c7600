from __future__ import annotations

import hashlib
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Hashable, Iterable, Optional

import numpy as np
import pandas as pd

from sdpsynth.conditional.dispatch import ConditionalProbabilitySpec, dispatch

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntityRecord:
    entity_id: Hashable
    group_key: Hashable
    n_steps: int
    t0: Any = None


@dataclass
class PanelResult:
    """
    Sequences generated per entity, plus the entities that failed.

    `sequences` and `groups` keep the input order of the successful entities.
    """

    sequences: dict = field(default_factory=dict)
    groups: dict = field(default_factory=dict)
    failures: dict = field(default_factory=dict)

    def to_frame(self) -> pd.DataFrame:
        """
        Long format: entity_id, group, time, state (time starts at 0 per entity).
        """
        frames = [
            pd.DataFrame(
                {
                    "entity_id": [eid] * len(seq),
                    "group": [self.groups[eid]] * len(seq),
                    "time": np.arange(len(seq), dtype=int),
                    "state": list(seq),
                }
            )
            for eid, seq in self.sequences.items()
        ]
        if not frames:
            return pd.DataFrame(columns=["entity_id", "group", "time", "state"])
        return pd.concat(frames, ignore_index=True)


def stable_key(entity_id: Hashable) -> int:
    """
    Deterministic 64-bit key for an entity id (independent of PYTHONHASHSEED).
    """
    if isinstance(entity_id, np.generic):
        entity_id = entity_id.item()
    token = f"{type(entity_id).__name__}:{entity_id!r}".encode("utf-8")
    return int.from_bytes(hashlib.blake2b(token, digest_size=8).digest(), "little")


def entity_rng(seed: int, entity_id: Hashable) -> np.random.Generator:
    """
    Random stream owned by one entity, derived from the batch seed and the id.
    """
    return np.random.default_rng(np.random.SeedSequence(seed, spawn_key=(stable_key(entity_id),)))


def _generate_one(record: EntityRecord, spec: ConditionalProbabilitySpec, seed: int) -> np.ndarray:
    rng = entity_rng(seed, record.entity_id)
    call_args = {"n_steps": record.n_steps}
    if record.t0 is not None:
        call_args["t0"] = record.t0
    return np.asarray(dispatch(record.group_key, spec, rng, **call_args))


def run_grouped_series(
    entities: Iterable[EntityRecord],
    spec: ConditionalProbabilitySpec,
    *,
    seed: int,
    strict: bool = False,
    max_workers: Optional[int] = None,
) -> PanelResult:
    """
    Generate one sequence per entity using the entity's group entry in `spec`.

    Each entity draws from its own stream seeded by (seed, entity id), so the
    output does not depend on entity order or on max_workers. Failures are
    collected per entity; with strict=True the first failure (in input order)
    is raised instead.
    """
    records = list(entities)
    ids = [r.entity_id for r in records]
    if len(set(ids)) != len(ids):
        raise ValueError("entity ids must be unique")

    result = PanelResult()

    def _collect(record: EntityRecord, outcome) -> None:
        if isinstance(outcome, Exception):
            if strict:
                raise outcome
            logger.warning("entity %r (group %r) failed: %s", record.entity_id, record.group_key, outcome)
            result.failures[record.entity_id] = outcome
        else:
            result.sequences[record.entity_id] = outcome
            result.groups[record.entity_id] = record.group_key

    def _safe(record: EntityRecord):
        try:
            return _generate_one(record, spec, seed)
        except Exception as exc:
            return exc

    if max_workers is not None and max_workers > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures = [pool.submit(_safe, r) for r in records]
            try:
                for record, fut in zip(records, futures):
                    _collect(record, fut.result())
            except Exception:
                for fut in futures:
                    fut.cancel()
                raise
    else:
        for record in records:
            _collect(record, _safe(record))

    logger.info(
        "generated %d sequences (%d failed) from %d entities",
        len(result.sequences),
        len(result.failures),
        len(records),
    )
    return result


def run_grouped_frame(
    frame: pd.DataFrame,
    spec: ConditionalProbabilitySpec,
    *,
    group_col: str,
    id_col: str = "entity_id",
    steps_col: Optional[str] = None,
    n_steps: Optional[int] = None,
    t0_col: Optional[str] = None,
    seed: int,
    strict: bool = False,
    max_workers: Optional[int] = None,
) -> PanelResult:
    """
    Frame wrapper around run_grouped_series: one row per entity, with either a
    per-row `steps_col` or a shared `n_steps`. `t0_col`, if given, holds each
    entity's own initial state.
    """
    if (steps_col is None) == (n_steps is None):
        raise ValueError("exactly one of steps_col or n_steps must be given")
    cols = [id_col, group_col] + [c for c in (steps_col, t0_col) if c is not None]
    missing = [c for c in cols if c not in frame.columns]
    if missing:
        raise ValueError(f"frame is missing columns: {missing}")

    steps = frame[steps_col] if steps_col is not None else pd.Series(n_steps, index=frame.index)
    t0s = frame[t0_col] if t0_col is not None else pd.Series(None, index=frame.index, dtype=object)
    records = (
        EntityRecord(entity_id=eid, group_key=g, n_steps=k, t0=t0)
        for eid, g, k, t0 in zip(frame[id_col], frame[group_col], steps, t0s)
    )
    return run_grouped_series(records, spec, seed=seed, strict=strict, max_workers=max_workers)
