# Copyright (c) Meta Platforms, Inc. and affiliates.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

import enum
import logging
import numpy as np
import deoptim.common.typing as tp
from deoptim.common import errors
from .problem import Problem
from .population import Population, INVALID_SCORE
from .strategies import Strategy
from .diagnostics import Diagnostics
from .stopping import StopIterationPolicy, NoStop
from . import configs
from . import utils

global_logger = logging.getLogger(__name__)


class State(enum.Enum):
    NOT_STARTED = "not-started"
    RUNNING = "running"
    FINISHED = "finished"


class DEoptim:
    """Differential evolution runner.

    An instance evolves its population only once: create a new instance
    (with a fresh population and diagnostics) for each run.

    Parameters
    ----------
    iterations: int
        maximum number of generations
    problem: Problem
        box constraints of the search space
    objective: callable
        function to minimize, taking a candidate array and returning a float
    strategy: Strategy
        regeneration strategy of the population
    population: Population
        initial population, evolved in place
    diagnostics: Diagnostics or None
        receiver of the evolution events (a new :code:`Diagnostics` by default)
    stop: StopIterationPolicy or None
        early stopping policy, called with the best score after each generation
        (never stops by default)
    """

    def __init__(
        self,
        iterations: int,
        problem: Problem,
        objective: tp.Objective,
        strategy: Strategy,
        population: Population,
        diagnostics: tp.Optional[Diagnostics] = None,
        stop: tp.Optional[StopIterationPolicy] = None,
    ) -> None:
        if iterations < 0:
            raise errors.DEoptimValueError(f"Number of iterations must be non-negative (got {iterations})")
        if population.dimension != problem.dimension:
            raise errors.DEoptimValueError(
                f"Population dimension {population.dimension} does not match problem dimension {problem.dimension}"
            )
        self.iterations = iterations
        self.problem = problem
        self.objective = objective
        self.strategy = strategy
        self.population = population
        self.diagnostics = Diagnostics() if diagnostics is None else diagnostics
        self.stop = NoStop() if stop is None else stop
        self.state = State.NOT_STARTED
        self.num_generations = 0

    def evolve(self) -> Population:
        """Runs the evolution and returns the (evolved) population

        Raises
        ------
        IllegalReuseError
            if the instance or its diagnostics were already started
        ObjectiveEvaluationError
            if the objective function raised on a candidate
        """
        if self.state != State.NOT_STARTED or self.diagnostics.has_started:
            raise errors.IllegalReuseError(
                "The DE instance can run only once. Create a new instance for each run."
            )
        self.state = State.RUNNING
        self.stop.reset()
        global_logger.debug("Starting evolution of %s with %s", self.population, self.strategy)
        self.diagnostics.evolution_started()
        for index in range(self.population.size):
            member = self.population.get_member(index)
            if self.problem.is_valid(member):
                self.population.set_score(index, utils.evaluate(self.objective, member))
            else:
                self.population.set_score(index, INVALID_SCORE)
        for generation in range(self.iterations):
            self.diagnostics.iteration_started(generation)
            self.strategy.regenerate(self.population, self.problem, self.objective)
            self.num_generations += 1
            self.diagnostics.iteration_finished(generation, self.population)
            best_score = self.population.best_score
            if best_score == float("-inf"):
                global_logger.debug("Solved at generation %s", generation)
                break
            if self.stop.should_stop(best_score):
                global_logger.debug("Early stopping at generation %s with best score %s", generation, best_score)
                break
        self.diagnostics.evolution_finished(self.population)
        self.state = State.FINISHED
        global_logger.debug("Finished evolution after %s generations: %s", self.num_generations, self.population)
        return self.population


class Result(tp.NamedTuple):
    best_member: np.ndarray
    best_score: float
    population: Population
    diagnostics: Diagnostics


def minimize(
    objective: tp.Objective,
    lower: tp.ArrayLike,
    upper: tp.ArrayLike,
    *,
    iterations: int = 200,
    population_size: tp.Optional[int] = None,
    strategy: tp.Union[str, configs.ConfiguredStrategy] = "Simple",
    random_state: tp.Optional[tp.Union[int, np.random.RandomState]] = None,
    executor: tp.Optional[tp.ExecutorLike] = None,
    stop: tp.Optional[StopIterationPolicy] = None,
    diagnostics: tp.Optional[Diagnostics] = None,
) -> Result:
    """Minimizes the objective within the box constraints, with a uniformly random initial population

    Parameters
    ----------
    objective: callable
        function to minimize
    lower: array-like
        lower limits
    upper: array-like
        upper limits
    iterations: int
        maximum number of generations
    population_size: int or None
        number of members, defaults to 10 times the dimension
    strategy: str or ConfiguredStrategy
        name of a registered strategy configuration (see :code:`configs.registry`) or configuration
    random_state: int, RandomState or None
        seed or random state used for the initial population and the strategy
    executor: Executor or None
        executor for parallel strategies (its lifecycle is the caller's responsibility)
    stop: StopIterationPolicy or None
        early stopping policy
    diagnostics: Diagnostics or None
        diagnostics of the run
    """
    problem = Problem(lower, upper)
    rng = random_state if isinstance(random_state, np.random.RandomState) else np.random.RandomState(random_state)
    config = configs.registry[strategy] if isinstance(strategy, str) else strategy
    size = 10 * problem.dimension if population_size is None else population_size
    population = Population.random(size, problem.dimension, problem.lower, problem.upper, random_state=rng)
    runner = DEoptim(
        iterations,
        problem,
        objective,
        config(random_state=rng, executor=executor),
        population,
        diagnostics=diagnostics,
        stop=stop,
    )
    runner.evolve()
    return Result(population.get_best_member(), population.best_score, population, runner.diagnostics)
