from sdpsynth.markov.counts import TransitionCounts, sum_counts, tally, tally_panel
from sdpsynth.markov.fit import SeriesFit, check_fit, check_fit_tolerance, fit_report, fit_series
from sdpsynth.markov.sequence import MarkovSeries, make_markov_series
from sdpsynth.markov.transition import TransitionMatrix

__all__ = [
    "TransitionMatrix",
    "make_markov_series",
    "MarkovSeries",
    "TransitionCounts",
    "tally",
    "sum_counts",
    "tally_panel",
    "SeriesFit",
    "fit_series",
    "check_fit",
    "check_fit_tolerance",
    "fit_report",
]
