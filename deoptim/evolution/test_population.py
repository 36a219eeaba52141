# Copyright (c) Meta Platforms, Inc. and affiliates.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

import pytest
import numpy as np
from deoptim.common import testing
from deoptim.common import errors
from .population import Population, INVALID_SCORE


def test_population_init() -> None:
    data = [[0.0, 1.0, 2.0], [3.0, 4.0, 5.0]]
    population = Population(data)
    assert population.size == 2
    assert len(population) == 2
    assert population.dimension == 3
    assert population.best_index == 0
    np.testing.assert_array_equal(population.scores, [INVALID_SCORE, INVALID_SCORE])
    data[0][0] = 12.0  # data is copied
    assert population.get_member(0)[0] == 0
    with pytest.raises(errors.DEoptimValueError):
        Population([1.0, 2.0])


def test_best_is_maintained_through_setters() -> None:
    rng = np.random.RandomState(12)
    population = Population(rng.uniform(size=(8, 2)))
    for _ in range(200):
        index = rng.randint(population.size)
        if rng.uniform() < 0.5:
            population.set_score(index, rng.choice([rng.normal(), 0.0, INVALID_SCORE]))
        else:
            population.set_member(index, rng.uniform(size=2), rng.normal())
        testing.assert_best_is_consistent(population)


def test_best_keeps_first_on_ties() -> None:
    population = Population(np.zeros((3, 1)))
    population.set_score(1, 2.0)
    population.set_score(2, 2.0)
    population.set_score(0, 2.0)
    assert population.best_index == 1
    population.set_score(1, 3.0)  # best got worse
    assert population.best_index == 0
    population.set_scores(1.0)
    assert population.best_index == 0
    assert population.best_score == 1.0


def test_get_order_is_stable() -> None:
    population = Population(np.zeros((5, 1)))
    for index, score in enumerate([3.0, 1.0, 3.0, 1.0, 0.0]):
        population.set_score(index, score)
    np.testing.assert_array_equal(population.get_order(), [4, 1, 3, 0, 2])


def test_views_are_read_only() -> None:
    population = Population([[0.0, 1.0], [2.0, 3.0]])
    member = population.get_member(1)
    with pytest.raises(ValueError):
        member[0] = 12.0
    with pytest.raises(ValueError):
        population.data[0, 0] = 12.0
    with pytest.raises(ValueError):
        population.scores[0] = -1.0
    population.set_member(1, [5.0, 6.0])
    np.testing.assert_array_equal(member, [5.0, 6.0])  # views follow updates
    copy = population.get_member_copy(1)
    copy[0] = 12.0
    np.testing.assert_array_equal(population.get_member(1), [5.0, 6.0])


def test_best_member_is_a_copy() -> None:
    population = Population([[0.0, 1.0], [2.0, 3.0]])
    population.set_member(1, [4.0, 5.0], 1.0)
    best = population.get_best_member()
    np.testing.assert_array_equal(best, [4.0, 5.0])
    best[0] = 12.0
    assert population.get_member(1)[0] == 4.0


def test_random_population() -> None:
    lower, upper = np.array([-1.0, 10.0, 0.0]), np.array([1.0, 20.0, 0.0])
    population = Population.random(50, 3, lower, upper, random_state=12)
    assert population.data.shape == (50, 3)
    assert np.all(population.data >= lower)
    assert np.all(population.data <= upper)
    np.testing.assert_array_equal(population.data[:, 2], 0)
    other = Population.random(50, 3, lower, upper, random_state=np.random.RandomState(12))
    np.testing.assert_array_equal(population.data, other.data)
    mid = Population.random(4, 3, lower, upper, distribution=lambda: 0.5)
    np.testing.assert_array_equal(mid.data, np.tile([0.0, 15.0, 0.0], (4, 1)))
    with pytest.raises(errors.DEoptimValueError):
        Population.random(4, 2, lower, upper)


def test_copy_is_independent() -> None:
    population = Population([[0.0], [1.0], [2.0]])
    population.set_score(2, 1.0)
    copy = population.copy()
    assert copy.best_index == 2
    copy.set_member(0, [12.0], 0.0)
    assert population.get_member(0)[0] == 0.0
    assert population.best_index == 2
    assert copy.best_index == 0
    assert repr(population) == "Population(size=3, dimension=1, best_score=1.0)"
