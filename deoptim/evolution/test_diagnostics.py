# Copyright (c) Meta Platforms, Inc. and affiliates.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

import logging
import warnings
import pytest
import numpy as np
import deoptim.common.typing as tp
from deoptim.common import errors
from .problem import Problem
from .population import Population
from .strategies import SimpleStrategy
from .core import DEoptim
from . import diagnostics as diag


class _Recorder(diag.Listener):
    def __init__(self, name: str, events: tp.List[tp.Any]) -> None:
        self.name = name
        self.events = events

    def evolution_started(self) -> None:
        self.events.append((self.name, "started"))

    def iteration_started(self, generation: int) -> None:
        self.events.append((self.name, "iteration_started", generation))

    def iteration_finished(self, generation: int, population: Population) -> None:
        self.events.append((self.name, "iteration_finished", generation))

    def evolution_finished(self, population: Population) -> None:
        self.events.append((self.name, "finished"))


def _sphere(x: np.ndarray) -> float:
    return float(np.sum(x ** 2))


def _run(diagnostics: diag.Diagnostics, iterations: int = 3) -> DEoptim:
    problem = Problem([-1.0, -1.0], [1.0, 1.0])
    population = Population.random(10, 2, problem.lower, problem.upper, random_state=12)
    runner = DEoptim(
        iterations, problem, _sphere, SimpleStrategy(random_state=12), population, diagnostics=diagnostics
    )
    runner.evolve()
    return runner


def test_listeners_are_called_in_registration_order() -> None:
    events: tp.List[tp.Any] = []
    diagnostics = diag.Diagnostics()
    diagnostics.register_listener(_Recorder("a", events))
    diagnostics.register_listener(_Recorder("b", events))
    _run(diagnostics, iterations=2)
    expected: tp.List[tp.Any] = [("a", "started"), ("b", "started")]
    for generation in range(2):
        for stage in ["iteration_started", "iteration_finished"]:
            expected.extend([("a", stage, generation), ("b", stage, generation)])
    expected.extend([("a", "finished"), ("b", "finished")])
    assert events == expected


def test_diagnostics_bookkeeping() -> None:
    diagnostics = diag.Diagnostics(statistics=True)
    assert not diagnostics.has_started
    assert diagnostics.duration is None
    runner = _run(diagnostics, iterations=4)
    assert diagnostics.has_started and diagnostics.has_finished
    assert diagnostics.duration is not None and diagnostics.duration >= 0
    assert len(diagnostics.entries) == 4
    scores = [entry.score for entry in diagnostics.entries]
    assert scores == sorted(scores, reverse=True)
    assert diagnostics.best_score == runner.population.best_score == scores[-1]
    np.testing.assert_array_equal(diagnostics.best_member, runner.population.get_best_member())
    np.testing.assert_array_equal(diagnostics.entries[-1].member, diagnostics.best_member)
    stats = diagnostics.entries[-1].statistics
    assert stats is not None
    assert stats.count == 10 and stats.invalid == 0
    assert stats.minimum == diagnostics.best_score
    assert stats.minimum <= stats.median <= stats.maximum


def test_diagnostics_without_statistics() -> None:
    diagnostics = diag.Diagnostics()
    _run(diagnostics, iterations=1)
    assert diagnostics.entries[0].statistics is None


def test_disabled_diagnostics() -> None:
    events: tp.List[tp.Any] = []
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        diagnostics = diag.DisabledDiagnostics()
    with pytest.warns(errors.DEoptimRuntimeWarning, match="_Recorder will never be called"):
        diagnostics.register_listener(_Recorder("a", events))
    _run(diagnostics)
    assert not events
    assert not diagnostics.entries
    assert diagnostics.best_member is None
    assert diagnostics.has_started and diagnostics.has_finished


def test_statistics_ignore_invalid_scores() -> None:
    stats = diag.Statistics.from_scores(np.array([1.0, 3.0, float("inf"), 2.0]))
    assert stats.count == 3
    assert stats.invalid == 1
    assert stats.mean == 2.0
    assert stats.median == 2.0
    assert stats.maximum == 3.0
    empty = diag.Statistics.from_scores(np.array([float("inf")]))
    assert empty.count == 0
    assert np.isnan(empty.mean)


def test_logging_listener(caplog: tp.Any) -> None:
    logger = logging.getLogger("deoptim_test_logging_listener")
    diagnostics = diag.Diagnostics()
    diagnostics.register_listener(diag.LoggingListener(logger=logger, log_interval_generations=2))
    with caplog.at_level(logging.INFO, logger="deoptim_test_logging_listener"):
        _run(diagnostics, iterations=5)
    messages = [record.getMessage() for record in caplog.records if record.name == logger.name]
    assert messages[0] == "Evolution started"
    assert messages[-1].startswith("Evolution finished with best score")
    generations = [int(message.split(" ")[0]) for message in messages[1:-1]]
    assert generations == [0, 2, 4]


def test_diagnostics_logging_option(caplog: tp.Any) -> None:
    with caplog.at_level(logging.INFO, logger=diag.__name__):
        _run(diag.Diagnostics(logging=True), iterations=2)
    messages = [record.getMessage() for record in caplog.records if record.name == diag.__name__]
    assert len(messages) == 4
    assert messages[1].startswith("00 [")


def test_progress_bar() -> None:
    pytest.importorskip("tqdm")
    diagnostics = diag.Diagnostics()
    progress = diag.ProgressBar(total=3)
    diagnostics.register_listener(progress)
    _run(diagnostics, iterations=3)
    assert progress._progress_bar is None  # closed
