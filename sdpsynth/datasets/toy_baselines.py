from __future__ import annotations

import numpy as np
import pandas as pd

RACES = (
    "White",
    "Black",
    "Hispanic",
    "Asian",
    "AmericanIndian",
    "PacificIslander",
    "MultiRace",
)
SEXES = ("Female", "Male")

# Toy logit-scale parameters per baseline:
#   intercept, slope per year of age (centred at 10), race offsets
_BASELINE_PARAMS = {
    "ell": {
        "intercept": -2.6,
        "age_slope": -0.18,
        "race": {"Hispanic": 2.2, "Asian": 1.6, "PacificIslander": 1.1, "AmericanIndian": 0.6},
    },
    "iep": {
        "intercept": -2.0,
        "age_slope": 0.04,
        "race": {"Black": 0.35, "AmericanIndian": 0.45, "Asian": -0.55},
    },
    "frpl": {
        "intercept": -0.4,
        "age_slope": -0.03,
        "race": {"Black": 1.1, "Hispanic": 1.0, "AmericanIndian": 1.2, "White": -0.6, "Asian": -0.3},
    },
    "gifted": {
        "intercept": -2.4,
        "age_slope": 0.06,
        "race": {"Asian": 0.9, "White": 0.3, "Black": -0.6, "Hispanic": -0.5},
    },
}

BASELINE_NAMES = tuple(_BASELINE_PARAMS)


def _expit(x: np.ndarray) -> np.ndarray:
    return 1.0 / (1.0 + np.exp(-x))


def generate_toy_baseline(
    name: str,
    ages: range = range(4, 21),
    races: tuple = RACES,
    seed: int = 123,
) -> pd.DataFrame:
    """
    Synthetic age x race probability table for one binary baseline.

    Output columns:
    age, race, prob
    """
    if name not in _BASELINE_PARAMS:
        raise ValueError(f"unknown toy baseline {name!r}; expected one of {list(BASELINE_NAMES)}")
    cfg = _BASELINE_PARAMS[name]
    rng = np.random.default_rng(seed)

    rows = []
    for race in races:
        offset = cfg["race"].get(race, 0.0)
        for age in ages:
            logit = cfg["intercept"] + cfg["age_slope"] * (age - 10) + offset
            # small cell-level noise so tables look empirical
            logit += rng.normal(0.0, 0.05)
            rows.append((int(age), race, float(_expit(logit))))

    return pd.DataFrame(rows, columns=["age", "race", "prob"])


def generate_toy_baselines(seed: int = 123) -> dict[str, pd.DataFrame]:
    return {name: generate_toy_baseline(name, seed=seed + i) for i, name in enumerate(BASELINE_NAMES)}


def generate_toy_entities(
    n: int,
    ages: range = range(5, 19),
    seed: int = 123,
) -> pd.DataFrame:
    """
    Minimal entity table (id, age, sex, race) for demos.

    Output columns:
    entity_id, age, sex, race
    """
    if n < 0:
        raise ValueError("n must be >= 0")
    rng = np.random.default_rng(seed)
    race_p = np.array([0.50, 0.16, 0.22, 0.05, 0.01, 0.01, 0.05])
    return pd.DataFrame(
        {
            "entity_id": [f"E{i:05d}" for i in range(n)],
            "age": rng.integers(ages.start, ages.stop, size=n),
            "sex": rng.choice(SEXES, size=n),
            "race": rng.choice(RACES, size=n, p=race_p),
        }
    )
