import numpy as np
import pandas as pd
import pytest

from sdpsynth.conditional.dispatch import (
    ConditionalProbabilitySpec,
    GroupEntry,
    assign_conditional,
    dispatch,
)
from sdpsynth.conditional.generators import Bernoulli, Categorical, FunctionGenerator
from sdpsynth.conditional.samplers import InitialDistribution, Sampler
from sdpsynth.errors import UnmappedGroupError
from sdpsynth.markov.sequence import MarkovSeries
from sdpsynth.markov.transition import TransitionMatrix


def _spec() -> ConditionalProbabilitySpec:
    return ConditionalProbabilitySpec(
        {
            "F": GroupEntry(generator=Bernoulli(), params={"prob": 0.9}),
            "M": GroupEntry(generator=Bernoulli(), params={"prob": 0.1}),
        }
    )


def test_dispatch_uses_group_parameters() -> None:
    f = dispatch("F", _spec(), rng=1, n=5000)
    m = dispatch("M", _spec(), rng=1, n=5000)
    assert abs(f.mean() - 0.9) < 0.03
    assert abs(m.mean() - 0.1) < 0.03


def test_dispatch_unmapped_group_raises_without_drawing() -> None:
    rng = np.random.default_rng(5)
    state_before = rng.bit_generator.state
    with pytest.raises(UnmappedGroupError, match="'X'") as exc:
        dispatch("X", _spec(), rng=rng, n=3)
    assert exc.value.missing == ["X"]
    assert rng.bit_generator.state == state_before


def test_unmapped_group_error_is_a_key_error() -> None:
    with pytest.raises(KeyError):
        _spec()["nobody"]
    assert _spec().get("nobody") is None


def test_dispatch_rejects_colliding_call_args() -> None:
    with pytest.raises(ValueError, match="collide"):
        dispatch("F", _spec(), rng=1, prob=0.5)


def test_validate_groups_lists_every_missing_key() -> None:
    with pytest.raises(UnmappedGroupError) as exc:
        _spec().validate_groups(["F", "X", "Y", "X"])
    assert exc.value.missing == ["X", "Y"]
    _spec().validate_groups(["F", "M"])


def test_spec_requires_group_entries() -> None:
    with pytest.raises(ValueError, match="non-empty"):
        ConditionalProbabilitySpec({})
    with pytest.raises(ValueError, match="GroupEntry"):
        ConditionalProbabilitySpec({"F": Bernoulli()})
    with pytest.raises(ValueError, match="invoke"):
        GroupEntry(generator=object())


def test_bound_params_are_read_only() -> None:
    entry = GroupEntry(generator=Bernoulli(), params={"prob": 0.5})
    with pytest.raises(TypeError):
        entry.params["prob"] = 0.9


def test_sampler_params_are_redrawn_each_dispatch() -> None:
    seen = []

    def _prob(rng):
        p = float(rng.random())
        seen.append(p)
        return p

    spec = ConditionalProbabilitySpec(
        {"G": GroupEntry(generator=Bernoulli(), params={"prob": Sampler(_prob)})}
    )
    rng = np.random.default_rng(0)
    for _ in range(3):
        dispatch("G", spec, rng=rng, n=1)
    assert len(seen) == 3
    assert len(set(seen)) == 3


def test_sampled_initial_state_redrawn_per_entity() -> None:
    tm = TransitionMatrix(states=("No", "Yes"), P=np.eye(2))
    spec = ConditionalProbabilitySpec(
        {
            "G": GroupEntry(
                generator=MarkovSeries(),
                params={"tm": tm, "t0": InitialDistribution(("No", "Yes"), [0.5, 0.5])},
            )
        }
    )
    rng = np.random.default_rng(31)
    starts = {dispatch("G", spec, rng=rng, n_steps=3)[0] for _ in range(50)}
    assert starts == {"No", "Yes"}


def test_markov_dispatch_consumes_one_draw_per_step() -> None:
    tm = TransitionMatrix(states=("No", "Yes"), P=np.array([[0.5, 0.5], [0.5, 0.5]]))
    spec = ConditionalProbabilitySpec({"G": GroupEntry(generator=MarkovSeries(), params={"tm": tm, "t0": "No"})})
    rng = np.random.default_rng(3)
    reference = np.random.default_rng(3)
    reference.random(12)

    seq = dispatch("G", spec, rng=rng, n_steps=12)
    assert len(seq) == 13
    assert rng.bit_generator.state == reference.bit_generator.state


def test_categorical_generator() -> None:
    gen = Categorical()
    out = gen.invoke({"states": ["a", "b", "c"], "probs": [1, 0, 3]}, {"n": 4000}, np.random.default_rng(9))
    assert set(out.tolist()) == {"a", "c"}
    assert abs(np.mean(out == "c") - 0.75) < 0.03


def test_bernoulli_validates_prob() -> None:
    with pytest.raises(ValueError, match="prob"):
        Bernoulli().invoke({"prob": 1.5}, {"n": 1}, np.random.default_rng(0))
    with pytest.raises(ValueError, match="non-negative integer"):
        Bernoulli().invoke({"prob": 0.5}, {"n": -1}, np.random.default_rng(0))


def test_function_generator_receives_params_and_call_args() -> None:
    def _normal(rng, mean, sd, n):
        return rng.normal(mean, sd, size=n)

    spec = ConditionalProbabilitySpec(
        {"G": GroupEntry(generator=FunctionGenerator(_normal), params={"mean": 10.0, "sd": 0.0})}
    )
    assert dispatch("G", spec, rng=0, n=3).tolist() == [10.0, 10.0, 10.0]


def test_assign_conditional_by_group() -> None:
    frame = pd.DataFrame({"sex": ["F", "M"] * 500}, index=np.arange(1000) + 100)
    out = assign_conditional(frame, "sex", _spec(), rng=4, name="ell")
    assert out.name == "ell"
    assert out.index.equals(frame.index)
    assert abs(out[frame["sex"] == "F"].mean() - 0.9) < 0.05
    assert abs(out[frame["sex"] == "M"].mean() - 0.1) < 0.05

    again = assign_conditional(frame, "sex", _spec(), rng=4, name="ell")
    assert out.equals(again)


def test_assign_conditional_checks_all_groups_first() -> None:
    frame = pd.DataFrame({"sex": ["F", "X", "M", "Y"]})
    with pytest.raises(UnmappedGroupError) as exc:
        assign_conditional(frame, "sex", _spec(), rng=1)
    assert exc.value.missing == ["X", "Y"]


def test_unhashable_group_key_is_unmapped() -> None:
    with pytest.raises(UnmappedGroupError):
        dispatch(["F"], _spec(), rng=1, n=1)
