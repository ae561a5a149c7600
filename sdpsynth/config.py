from dataclasses import dataclass
from pathlib import Path
from typing import Optional

PROJECT_ROOT = Path(__file__).resolve().parents[1]

@dataclass(frozen=True)
class Settings:
    # Paths
    data_dir: Path = PROJECT_ROOT / "data"
    processed_dir: Path = data_dir / "processed"
    output_dir: Path = PROJECT_ROOT / "outputs"

    # Default simulation choices
    default_seed: int = 10_000
    n_periods: int = 12
    n_entities: int = 500

    # Validation
    confidence_level: float = 0.99
    fit_tolerance: float = 0.05

    # Batch behaviour: strict aborts on the first entity failure
    strict: bool = False
    max_workers: Optional[int] = None

settings = Settings()
