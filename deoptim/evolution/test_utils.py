# Copyright (c) Meta Platforms, Inc. and affiliates.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

import pytest
import numpy as np
from deoptim.common import testing
from deoptim.common import errors
from .problem import Problem
from . import utils


def test_fast_pick_two_random_members() -> None:
    rng = np.random.RandomState(12)
    picked = set()
    for _ in range(200):
        r1, r2 = utils.fast_pick_two_random_members(5, 2, rng)
        assert r1 != r2
        assert 2 not in (r1, r2)
        assert 0 <= r1 < 5 and 0 <= r2 < 5
        picked.update((r1, r2))
    testing.assert_set_equal(picked, {0, 1, 3, 4})
    with pytest.raises(errors.DEoptimValueError):
        utils.fast_pick_two_random_members(2, 0, rng)


def test_pick_random() -> None:
    rng = np.random.RandomState(12)
    for _ in range(50):
        picked = utils.pick_random(range(4), 2, [1], rng)
        assert len(set(picked)) == 2
        assert 1 not in picked
    with pytest.raises(errors.DEoptimValueError):
        utils.pick_random(range(3), 3, [0], rng)


@testing.parametrized(
    below=(-3.0, -1.0),
    above=(12.0, 2.0),
    inside=(0.5, 0.5),
    on_bound=(2.0, 2.0),
)
def test_apply_limits(value: float, expected: float) -> None:
    problem = Problem([-1.0], [2.0])
    assert utils.apply_limits(problem, 0, value) == expected


def test_apply_limits_bounce_back() -> None:
    problem = Problem([-1.0, 0.0], [2.0, 0.0])
    rng = np.random.RandomState(12)
    values = [utils.apply_limits_bounce_back(problem, 0, v, rng) for v in rng.uniform(-10, 10, size=100)]
    assert all(-1.0 <= v <= 2.0 for v in values)
    assert len(set(values)) > 2  # not clamped
    assert utils.apply_limits_bounce_back(problem, 0, 0.5, rng) == 0.5
    assert utils.apply_limits_bounce_back(problem, 1, 12.0, rng) == 0.0


@testing.parametrized(
    up=(0.26, 0.1, 0.3),
    down=(0.24, 0.1, 0.2),
    negative=(-0.26, 0.1, -0.3),
    coarse=(7.0, 5.0, 5.0),
    no_rounding=(0.123456, 0.0, 0.123456),
)
def test_round_to_closest(value: float, steps: float, expected: float) -> None:
    np.testing.assert_almost_equal(utils.round_to_closest(value, steps), expected)


def test_sequential_executor() -> None:
    calls = []

    def func(x: int) -> int:
        calls.append(x)
        return 2 * x

    job = utils.SequentialExecutor().submit(func, 3)
    assert job.done()
    assert job.result() == 6
    assert job.result() == 6
    assert calls == [3]  # computed once


def test_evaluate_wraps_failures() -> None:
    def objective(x: np.ndarray) -> float:
        raise ZeroDivisionError("boom")

    assert utils.evaluate(lambda x: np.sum(x), np.array([1.0, 2.0])) == 3.0
    with pytest.raises(errors.ObjectiveEvaluationError) as excinfo:
        utils.evaluate(objective, np.array([1.0, 2.0]))
    assert isinstance(excinfo.value.__cause__, ZeroDivisionError)
    assert "[1.0, 2.0]" in str(excinfo.value)
