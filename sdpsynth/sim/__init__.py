from sdpsynth.sim.driver import EntityRecord, PanelResult, run_grouped_frame, run_grouped_series
from sdpsynth.sim.scenario import build_default_group_spec, build_markov_spec, default_group_matrices

__all__ = [
    "EntityRecord",
    "PanelResult",
    "run_grouped_series",
    "run_grouped_frame",
    "build_markov_spec",
    "default_group_matrices",
    "build_default_group_spec",
]
