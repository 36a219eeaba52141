# Copyright (c) Meta Platforms, Inc. and affiliates.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

import time
import logging
import warnings
import numpy as np
import deoptim.common.typing as tp
from deoptim.common import errors
from .population import Population

global_logger = logging.getLogger(__name__)


class Listener:
    """Receives the lifecycle events of an evolution.
    Override the methods of interest, they do nothing by default.
    """

    def evolution_started(self) -> None:
        pass

    def iteration_started(self, generation: int) -> None:
        pass

    def iteration_finished(self, generation: int, population: Population) -> None:
        pass

    def evolution_finished(self, population: Population) -> None:
        pass


class Statistics(tp.NamedTuple):
    """Descriptive statistics of the finite scores of a population"""

    count: int
    invalid: int
    mean: float
    std: float
    minimum: float
    median: float
    maximum: float

    @classmethod
    def from_scores(cls, scores: np.ndarray) -> "Statistics":
        finite = scores[np.isfinite(scores)]
        if not finite.size:
            nan = float("nan")
            return cls(0, scores.size, nan, nan, nan, nan, nan)
        return cls(
            count=int(finite.size),
            invalid=int(scores.size - finite.size),
            mean=float(np.mean(finite)),
            std=float(np.std(finite)),
            minimum=float(np.min(finite)),
            median=float(np.median(finite)),
            maximum=float(np.max(finite)),
        )


class Entry(tp.NamedTuple):
    """Bookkeeping of one generation"""

    score: float
    member: np.ndarray
    statistics: tp.Optional[Statistics]


class Diagnostics:
    """Multicasts evolution events to the registered listeners, in registration order,
    and keeps track of the evolution (one entry per generation, timing, final best).

    Parameters
    ----------
    logging: bool
        whether to register a :code:`LoggingListener` logging the best member at each generation
    statistics: bool
        whether to compute descriptive statistics of the scores at each generation
    """

    def __init__(self, logging: bool = False, statistics: bool = False) -> None:  # pylint: disable=redefined-outer-name
        self.logging = logging
        self.statistics = statistics
        self.entries: tp.List[Entry] = []
        self.time_started: tp.Optional[float] = None
        self.time_finished: tp.Optional[float] = None
        self.best_member: tp.Optional[np.ndarray] = None
        self.best_score = float("inf")
        self._listeners: tp.List[Listener] = []
        self.register_listener(_Bookkeeper(self))
        if logging:
            self.register_listener(LoggingListener())

    @property
    def has_started(self) -> bool:
        return self.time_started is not None

    @property
    def has_finished(self) -> bool:
        return self.time_finished is not None

    @property
    def duration(self) -> tp.Optional[float]:
        if self.time_started is None or self.time_finished is None:
            return None
        return self.time_finished - self.time_started

    def register_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def evolution_started(self) -> None:
        for listener in self._listeners:
            listener.evolution_started()

    def iteration_started(self, generation: int) -> None:
        for listener in self._listeners:
            listener.iteration_started(generation)

    def iteration_finished(self, generation: int, population: Population) -> None:
        for listener in self._listeners:
            listener.iteration_finished(generation, population)

    def evolution_finished(self, population: Population) -> None:
        for listener in self._listeners:
            listener.evolution_finished(population)


class _Bookkeeper(Listener):
    def __init__(self, diagnostics: Diagnostics) -> None:
        self._diagnostics = diagnostics

    def evolution_started(self) -> None:
        self._diagnostics.time_started = time.time()

    def iteration_finished(self, generation: int, population: Population) -> None:
        stats = Statistics.from_scores(np.asarray(population.scores)) if self._diagnostics.statistics else None
        self._diagnostics.entries.append(Entry(population.best_score, population.get_best_member(), stats))

    def evolution_finished(self, population: Population) -> None:
        diag = self._diagnostics
        diag.time_finished = time.time()
        diag.best_member = population.get_best_member()
        diag.best_score = population.best_score


class DisabledDiagnostics(Diagnostics):
    """Diagnostics without any bookkeeping, logging or listener call.
    Only the started/finished state is recorded, and registering a listener warns.
    """

    def __init__(self) -> None:
        super().__init__(logging=False, statistics=False)

    def register_listener(self, listener: Listener) -> None:
        if not isinstance(listener, _Bookkeeper):
            warnings.warn(
                f"{listener.__class__.__name__} will never be called by {self.__class__.__name__}",
                errors.DEoptimRuntimeWarning,
            )

    def evolution_started(self) -> None:
        self.time_started = time.time()

    def iteration_started(self, generation: int) -> None:
        pass

    def iteration_finished(self, generation: int, population: Population) -> None:
        pass

    def evolution_finished(self, population: Population) -> None:
        self.time_finished = time.time()


class LoggingListener(Listener):
    """Logs the best member regularly during the evolution.

    Parameters
    ----------
    logger:
        given logger that the listener will use to log
    log_level:
        log level that logger will write to
    log_interval_generations: int
        max number of generations before performing another log
    log_interval_seconds:
        max number of seconds before performing another log
    """

    def __init__(
        self,
        *,
        logger: logging.Logger = global_logger,
        log_level: int = logging.INFO,
        log_interval_generations: int = 1,
        log_interval_seconds: float = 60.0,
    ) -> None:
        assert log_interval_generations > 0
        assert log_interval_seconds > 0
        self._logger = logger
        self._log_level = log_level
        self._log_interval_generations = int(log_interval_generations)
        self._log_interval_seconds = log_interval_seconds
        self._next_generation = 0
        self._next_time = time.time() + log_interval_seconds

    def evolution_started(self) -> None:
        self._logger.log(self._log_level, "Evolution started")

    def iteration_finished(self, generation: int, population: Population) -> None:
        if time.time() >= self._next_time or generation >= self._next_generation:
            self._next_time = time.time() + self._log_interval_seconds
            self._next_generation = generation + self._log_interval_generations
            self._logger.log(
                self._log_level,
                "%02d [%.6f] %s",
                generation,
                population.best_score,
                population.get_best_member().tolist(),
            )

    def evolution_finished(self, population: Population) -> None:
        self._logger.log(
            self._log_level,
            "Evolution finished with best score %s for %s",
            population.best_score,
            population.get_best_member().tolist(),
        )


class ProgressBar(Listener):
    """Progress bar over generations (requires tqdm)

    Parameters
    ----------
    total: int or None
        expected number of generations, if known
    """

    def __init__(self, total: tp.Optional[int] = None) -> None:
        self._total = total
        self._progress_bar: tp.Any = None

    def evolution_started(self) -> None:
        # pylint: disable=import-outside-toplevel
        try:
            from tqdm import tqdm  # Inline import to avoid additional dependency
        except ImportError as e:
            raise ImportError(
                f"{self.__class__.__name__} requires tqdm which is not installed by default "
                "(pip install tqdm)"
            ) from e
        self._progress_bar = tqdm(total=self._total)

    def iteration_finished(self, generation: int, population: Population) -> None:
        if self._progress_bar is not None:
            self._progress_bar.set_postfix(best=population.best_score)
            self._progress_bar.update(1)

    def evolution_finished(self, population: Population) -> None:
        if self._progress_bar is not None:
            self._progress_bar.close()
            self._progress_bar = None
