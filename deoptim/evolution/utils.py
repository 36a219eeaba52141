# Copyright (c) Meta Platforms, Inc. and affiliates.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

import math
import numpy as np
import deoptim.common.typing as tp
from deoptim.common import errors
from .problem import Problem


def fast_pick_two_random_members(
    population_size: int, exclude: int, random_state: np.random.RandomState
) -> tp.Tuple[int, int]:
    """Picks two distinct member indices, both different from exclude.
    Draws are rejected and retried until they fit.
    """
    if population_size < 3:
        raise errors.DEoptimValueError(
            f"Picking two members distinct from another one requires at least 3 members (got {population_size})"
        )
    first = exclude
    while first == exclude:
        first = random_state.randint(population_size)
    second = exclude
    while second in (exclude, first):
        second = random_state.randint(population_size)
    return first, second


def pick_random(
    values: tp.Sequence[int], count: int, exclude: tp.Iterable[int], random_state: np.random.RandomState
) -> np.ndarray:
    """Picks count distinct elements of values (without replacement), excluding some of them"""
    excluded = set(exclude)
    candidates = np.array([v for v in values if v not in excluded], dtype=int)
    if candidates.size < count:
        raise errors.DEoptimValueError(f"Cannot pick {count} elements among {candidates.size} candidates")
    return random_state.choice(candidates, size=count, replace=False)


def apply_limits(problem: Problem, index: int, value: float) -> float:
    """Clamps the value to the limits of the problem at the given index"""
    lower = problem.lower[index]
    if value < lower:
        return float(lower)
    upper = problem.upper[index]
    if value > upper:
        return float(upper)
    return value


def apply_limits_bounce_back(problem: Problem, index: int, value: float, random_state: np.random.RandomState) -> float:
    """Replaces a value violating a limit by a uniform random value between the
    violated limit and the opposite one
    """
    lower = problem.lower[index]
    upper = problem.upper[index]
    if value < lower:
        return float(lower + random_state.uniform(0, 1) * (upper - lower))
    if value > upper:
        return float(upper - random_state.uniform(0, 1) * (upper - lower))
    return value


def round_to_closest(value: float, steps: float) -> float:
    """Rounds the value to the closest multiple of steps (no rounding if steps is 0).
    Exact halves are rounded up.
    """
    if not steps:
        return value
    down = math.floor(value / steps) * steps
    up = math.ceil(value / steps) * steps
    return down if abs(value - down) < abs(value - up) else up


class DelayedJob:
    """Future-like object which delays computation
    """

    def __init__(self, func: tp.Callable[..., tp.Any], *args: tp.Any, **kwargs: tp.Any) -> None:
        self.func = func
        self.args = args
        self.kwargs = kwargs
        self._result: tp.Optional[tp.Any] = None
        self._computed = False

    def done(self) -> bool:
        return True

    def result(self) -> tp.Any:
        if not self._computed:
            self._result = self.func(*self.args, **self.kwargs)
            self._computed = True
        return self._result


class SequentialExecutor:
    """Executor which run sequentially and locally
    (just calls the function and returns a FinishedJob)
    """

    def submit(self, fn: tp.Callable[..., tp.Any], *args: tp.Any, **kwargs: tp.Any) -> DelayedJob:
        return DelayedJob(fn, *args, **kwargs)


def evaluate(objective: tp.Objective, candidate: np.ndarray) -> float:
    """Calls the objective on the candidate, wrapping any failure"""
    try:
        return float(objective(candidate))
    except Exception as e:  # pylint: disable=broad-except
        raise errors.ObjectiveEvaluationError(f"Objective function failed on candidate {candidate.tolist()}") from e
