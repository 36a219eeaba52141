# Copyright (c) Meta Platforms, Inc. and affiliates.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

import math
import logging
import numpy as np
import deoptim.common.typing as tp
from deoptim.common import errors

global_logger = logging.getLogger(__name__)


class StopIterationPolicy:
    """Convergence predicate, called once per generation with the best score"""

    def should_stop(self, best_score: float) -> bool:
        raise NotImplementedError

    def reset(self) -> None:
        """Resets the internal state before reuse in an independent run"""

    def __call__(self, best_score: float) -> bool:
        return self.should_stop(best_score)


class NoStop(StopIterationPolicy):
    """Never stops early"""

    def should_stop(self, best_score: float) -> bool:
        return False


class SameScoreCountStop(StopIterationPolicy):
    """Stops when the best score, rounded at the given number of decimals, did not change
    for more than max_same_score_count consecutive generations.

    Parameters
    ----------
    max_same_score_count: int
        number of repetitions of the same rounded score which are tolerated
    precision: int
        number of decimals used for comparing scores

    Note
    ----
    :code:`+inf` scores (invalid members) are ignored: they neither count as a
    repetition nor reset the counter.
    """

    def __init__(self, max_same_score_count: int, precision: int) -> None:
        if max_same_score_count < 0:
            raise errors.DEoptimValueError(f"max_same_score_count must be non-negative (got {max_same_score_count})")
        self.max_same_score_count = max_same_score_count
        self.precision = precision
        self._multiplier = 10.0 ** precision
        self._previous: tp.Optional[float] = None
        self.same_score_count = 0

    def reset(self) -> None:
        self._previous = None
        self.same_score_count = 0

    def should_stop(self, best_score: float) -> bool:
        if best_score == float("-inf"):
            return True  # solved
        if not math.isfinite(best_score):
            return False
        scaled = best_score * self._multiplier
        # huge scores overflow when scaled, they are compared unrounded
        rounded = math.floor(scaled + 0.5) if math.isfinite(scaled) else best_score
        # the first finite score is only a reference, it never counts as a repetition
        if rounded == self._previous:
            self.same_score_count += 1
            return self.same_score_count > self.max_same_score_count
        self._previous = rounded
        self.same_score_count = 0
        return False


class SteadyResultAvgLoop:
    """Repeats full optimizations until their results agree, and returns their average.

    Each call to :code:`optimize` must run a complete and fresh evolution and return its
    result vector. Two consecutive valid results are considered the same if all their
    components agree at the given decimal precision, up to the tolerance (in units of the
    last decimal). Once :code:`same_result_count` consecutive same results are found,
    their average is returned. Each disagreement counts as a try, and after
    :code:`max_tries` of them :code:`tries_exceeded_result` is returned.

    Parameters
    ----------
    same_result_count: int
        number of consecutive same results required
    precision: int
        number of decimals used for comparing results
    tolerance: int
        tolerated difference between truncated components
    max_tries: int
        maximum number of disagreements before giving up
    max_invalid_results: int or None
        maximum number of invalid results before raising (None for no limit)
    """

    def __init__(
        self,
        same_result_count: int = 2,
        precision: int = 3,
        tolerance: int = 10,
        max_tries: int = 10,
        max_invalid_results: tp.Optional[int] = 100,
    ) -> None:
        if same_result_count < 1 or max_tries < 1:
            raise errors.DEoptimValueError("same_result_count and max_tries must be strictly positive")
        self.same_result_count = same_result_count
        self.precision = precision
        self.tolerance = tolerance
        self.max_tries = max_tries
        self.max_invalid_results = max_invalid_results
        self._multiplier = 10.0 ** precision

    def optimize(self) -> tp.ArrayLike:
        raise NotImplementedError

    def tries_exceeded_result(self, valid_results: tp.List[np.ndarray]) -> np.ndarray:
        raise NotImplementedError

    def is_valid_result(self, result: np.ndarray) -> bool:
        """A result is invalid if all its components are 0"""
        return bool(np.any(result != 0))

    def is_same_result(self, previous: np.ndarray, result: np.ndarray) -> bool:
        if previous.shape != result.shape:
            raise errors.DEoptimValueError(
                f"Previous result shape {previous.shape} should be equal to result shape {result.shape}"
            )
        diff = np.abs(np.trunc(previous * self._multiplier) - np.trunc(result * self._multiplier))
        return bool(np.all(diff <= self.tolerance))

    @staticmethod
    def avg_result(results: tp.List[np.ndarray]) -> np.ndarray:
        return np.mean(results, axis=0)

    @staticmethod
    def min_result(results: tp.List[np.ndarray]) -> np.ndarray:
        """Result with the minimal sum of components"""
        return results[int(np.argmin([np.sum(r) for r in results]))]

    def loop(self) -> np.ndarray:
        valid_results: tp.List[np.ndarray] = []
        same_results: tp.List[np.ndarray] = []
        previous: tp.Optional[np.ndarray] = None
        tries = 0
        invalid = 0
        while True:
            result = np.array(self.optimize(), dtype=float)
            if not self.is_valid_result(result):
                invalid += 1
                if self.max_invalid_results is not None and invalid >= self.max_invalid_results:
                    raise errors.DEoptimRuntimeError(f"Got {invalid} invalid results, giving up")
                continue
            valid_results.append(result)
            if previous is None or self.is_same_result(previous, result):
                same_results.append(result)
            else:
                tries += 1
                global_logger.debug("Result %s differs from %s (try %s/%s)", result, previous, tries, self.max_tries)
                if tries >= self.max_tries:
                    return self.tries_exceeded_result(valid_results)
                same_results = [result]
            if len(same_results) >= self.same_result_count:
                return self.avg_result(same_results)
            previous = result


class CallableSteadyResultAvgLoop(SteadyResultAvgLoop):
    """:code:`SteadyResultAvgLoop` built from callables

    Parameters
    ----------
    optimize: callable
        function running a complete evolution and returning its result vector
    tries_exceeded: callable or None
        function computing the fallback result from the list of valid results.
        Defaults to the result with the minimal sum of components.

    See :code:`SteadyResultAvgLoop` for the other parameters.
    """

    def __init__(
        self,
        optimize: tp.Callable[[], tp.ArrayLike],
        tries_exceeded: tp.Optional[tp.Callable[[tp.List[np.ndarray]], np.ndarray]] = None,
        **kwargs: tp.Any,
    ) -> None:
        super().__init__(**kwargs)
        self._optimize = optimize
        self._tries_exceeded = self.min_result if tries_exceeded is None else tries_exceeded

    def optimize(self) -> tp.ArrayLike:
        return self._optimize()

    def tries_exceeded_result(self, valid_results: tp.List[np.ndarray]) -> np.ndarray:
        return self._tries_exceeded(valid_results)
