import numpy as np
import pandas as pd
import pytest

from sdpsynth.errors import DegenerateRowError, InvalidStateSpaceError
from sdpsynth.markov.sequence import make_markov_series
from sdpsynth.markov.transition import TransitionMatrix


def test_transition_rejects_invalid_rows() -> None:
    bad_p = np.array([[0.9, 0.2], [0.1, 0.8]], dtype=float)
    with pytest.raises(ValueError, match="row must sum to 1"):
        TransitionMatrix(states=("A", "B"), P=bad_p)


def test_transition_rejects_negative_probabilities() -> None:
    bad_p = np.array([[1.1, -0.1], [0.2, 0.8]], dtype=float)
    with pytest.raises(ValueError, match="non-negative"):
        TransitionMatrix(states=("A", "B"), P=bad_p)


def test_transition_rejects_dimension_mismatch() -> None:
    with pytest.raises(InvalidStateSpaceError, match="3 states"):
        TransitionMatrix(states=("A", "B", "C"), P=np.eye(2))
    with pytest.raises(InvalidStateSpaceError, match="square"):
        TransitionMatrix(states=("A", "B"), P=np.ones((2, 3)) / 3)


def test_transition_rejects_duplicate_labels() -> None:
    with pytest.raises(InvalidStateSpaceError, match="unique"):
        TransitionMatrix(states=("A", "A"), P=np.eye(2))


def test_transition_tolerates_small_rounding() -> None:
    p = np.array([[0.3333333, 0.6666666], [0.5, 0.5]])
    tm = TransitionMatrix(states=("A", "B"), P=p)
    assert tm.n_states == 2


def test_transition_matrix_is_read_only() -> None:
    tm = TransitionMatrix(states=("A", "B"), P=np.eye(2))
    with pytest.raises(ValueError):
        tm.P[0, 0] = 0.5


def test_invalid_initial_state_rejected() -> None:
    tm = TransitionMatrix(states=("A", "B"), P=np.eye(2))
    with pytest.raises(InvalidStateSpaceError, match="unknown state"):
        make_markov_series(10, tm, "C", rng=1)


def test_negative_steps_rejected() -> None:
    tm = TransitionMatrix(states=("A", "B"), P=np.eye(2))
    with pytest.raises(ValueError, match=">= 0"):
        make_markov_series(-1, tm, "A", rng=1)


def test_apply_rejects_out_of_range_draw() -> None:
    tm = TransitionMatrix(states=("A", "B"), P=np.eye(2))
    with pytest.raises(ValueError, match=r"\[0, 1\)"):
        tm.apply("A", 1.0)


def test_normalize_rows_sum_to_one() -> None:
    rng = np.random.default_rng(3)
    for _ in range(20):
        k = int(rng.integers(1, 6))
        counts = rng.integers(0, 50, size=(k, k)).astype(float)
        counts[:, 0] += 1.0
        tm = TransitionMatrix.normalize(counts, [f"s{i}" for i in range(k)])
        assert np.allclose(tm.P.sum(axis=1), 1.0, atol=1e-6)


def test_normalize_zero_row_raises() -> None:
    counts = np.array([[3, 1], [0, 0]])
    with pytest.raises(DegenerateRowError, match="'B'") as exc:
        TransitionMatrix.normalize(counts, ["A", "B"])
    assert exc.value.state == "B"


def test_normalize_sanitize_makes_zero_row_uniform() -> None:
    tm = TransitionMatrix.normalize(np.array([[3, 1], [0, 0]]), ["A", "B"], sanitize=True)
    assert np.allclose(tm.row("B"), [0.5, 0.5])
    assert np.allclose(tm.row("A"), [0.75, 0.25])


def test_from_frame_normalizes_and_checks_labels() -> None:
    df = pd.DataFrame([[2, 2], [1, 3]], index=["No", "Yes"], columns=["No", "Yes"])
    tm = TransitionMatrix.from_frame(df)
    assert tm.states == ("No", "Yes")
    assert np.allclose(tm.P, [[0.5, 0.5], [0.25, 0.75]])
    assert tm.to_frame().loc["Yes", "Yes"] == pytest.approx(0.75)

    bad = pd.DataFrame([[1, 1], [1, 1]], index=["No", "Yes"], columns=["Yes", "No"])
    with pytest.raises(InvalidStateSpaceError, match="must match"):
        TransitionMatrix.from_frame(bad)


def test_apply_last_state_catches_residual_draw() -> None:
    # Rows whose cumulative sum lands just under 1 still map every draw.
    p = np.array([[0.1] * 10] * 10)
    tm = TransitionMatrix(states=tuple(range(10)), P=p)
    assert tm.apply(0, np.nextafter(1.0, 0.0)) == 9
    assert tm.apply(0, 0.0) == 0
    assert tm.apply(0, 0.1) == 1


def test_stationary_distribution() -> None:
    tm = TransitionMatrix(states=("A", "B"), P=np.array([[0.9, 0.1], [0.2, 0.8]]))
    pi = tm.stationary_distribution()
    assert np.allclose(pi, [2 / 3, 1 / 3])
    assert np.allclose(pi @ tm.P, pi)


def test_non_integer_steps_rejected() -> None:
    tm = TransitionMatrix(states=("A", "B"), P=np.eye(2))
    for bad in (None, "3", 2.5, float("inf"), True):
        with pytest.raises(ValueError, match="integer"):
            make_markov_series(bad, tm, "A", rng=1)
    assert len(make_markov_series(np.int64(3), tm, "A", rng=1)) == 4
