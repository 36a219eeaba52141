# Copyright (c) Meta Platforms, Inc. and affiliates.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

"""Regeneration algorithms of the population.

All strategies run exactly one generation per call to :code:`regenerate`,
and only ever replace a member by a trial with a strictly lower score.

- :code:`SimpleStrategy`: DE/best/1/bin with a small random scaling of F.
- :code:`Strategy3`: variable-length crossover walk with jitter, optional
  self-adaptation of CR and F, two boundary policies and optional rounding.
- :code:`SandboxStrategy`: self-adaptive version of the simple strategy.
- :code:`ParallelSimpleStrategy`, :code:`ArrayParallelSimpleStrategy` and
  :code:`ParallelStrategy3`: variants which build all trials of a generation
  from the pre-generation population, then evaluate them through an executor.
  Contrarily to the sequential variants, a trial accepted within a generation
  cannot influence the construction of later trials of the same generation.
"""

import warnings
import numpy as np
import deoptim.common.typing as tp
from deoptim.common import errors
from .problem import Problem
from .population import Population, INVALID_SCORE
from . import utils


class Strategy:
    """Base class for regeneration strategies

    Parameters
    ----------
    random_state: int, RandomState or None
        seed or random state used for every random draw of the strategy
    """

    def __init__(self, random_state: tp.Optional[tp.Union[int, np.random.RandomState]] = None) -> None:
        self.random_state = (
            random_state if isinstance(random_state, np.random.RandomState) else np.random.RandomState(random_state)
        )

    def regenerate(self, population: Population, problem: Problem, objective: tp.Objective) -> None:
        raise NotImplementedError

    def _uniform(self) -> float:
        return self.random_state.uniform(0, 1)

    def __repr__(self) -> str:
        params = {x: y for x, y in self.__dict__.items() if isinstance(y, (bool, int, float))}
        return "{}({})".format(self.__class__.__name__, ", ".join(f"{x}={y!r}" for x, y in sorted(params.items())))


class SelfAdaptation:
    """Self-adaptation of CR and F

    CR is sampled from Normal(mean_cr, 0.1) clipped to [0, 1], and F from
    Cauchy(mean_f, 0.1) capped at 1 and resampled until positive.
    Successful (cr, f) pairs are accumulated and move the means at the end of each
    generation, with a Lehmer (power) mean for F.

    Parameters
    ----------
    cr: float
        initial mean crossover probability
    f: float
        initial mean differential weight
    c: float
        adaptation speed, adaptation is disabled if c <= 0
    reset_accumulators: bool
        if True, the success accumulators are reset at the start of each generation.
        Otherwise they accumulate over the whole run, which damps the adaptation over time.
    """

    def __init__(self, cr: float, f: float, c: float, reset_accumulators: bool = False) -> None:
        self.c = c
        self.reset_accumulators = reset_accumulators
        self.mean_cr = cr
        self.mean_f = f
        self.good_count = 0
        self.good_cr = 0.0
        self.good_f = 0.0
        self.good_f2 = 0.0

    @property
    def active(self) -> bool:
        return self.c > 0

    def start_generation(self) -> None:
        if self.reset_accumulators:
            self.good_count = 0
            self.good_cr = self.good_f = self.good_f2 = 0.0

    def sample(self, random_state: np.random.RandomState) -> tp.Tuple[float, float]:
        cr = float(np.clip(random_state.normal(self.mean_cr, 0.1), 0, 1))
        f = 0.0
        while f <= 0:
            f = min(1.0, self.mean_f + 0.1 * random_state.standard_cauchy())
        return cr, f

    def record_success(self, cr: float, f: float) -> None:
        self.good_count += 1
        self.good_cr += cr / self.good_count
        self.good_f += f
        self.good_f2 += f ** 2

    def end_generation(self) -> None:
        if self.active and self.good_f != 0:
            self.mean_cr = (1 - self.c) * self.mean_cr + self.c * self.good_cr
            self.mean_f = (1 - self.c) * self.mean_f + self.c * self.good_f2 / self.good_f


class _ParallelEvaluation:
    """Mixin for submitting a batch of trials to an executor and waiting for all of them"""

    executor: tp.ExecutorLike

    def _init_executor(self, executor: tp.Optional[tp.ExecutorLike]) -> None:
        self.executor = utils.SequentialExecutor() if executor is None else executor

    def _submit_trials(self, trials: tp.Sequence[np.ndarray], objective: tp.Objective) -> tp.List[float]:
        jobs = [self.executor.submit(objective, trial) for trial in trials]
        scores: tp.List[float] = []
        for trial, job in zip(trials, jobs):  # waits for all jobs, in index order
            try:
                scores.append(float(job.result()))
            except Exception as e:  # pylint: disable=broad-except
                raise errors.ObjectiveEvaluationError(
                    f"Objective function failed on candidate {np.asarray(trial).tolist()}"
                ) from e
        return scores


# # # # # Simple strategy # # # # #


class SimpleStrategy(Strategy):
    """DE/best/1/bin strategy: each element is mutated with probability cr as
    :code:`best + f * (U(0, 1) + 0.0001) * (r1 - r2)` then clamped to the limits.

    Parameters
    ----------
    cr: float
        crossover probability
    f: float
        weighting factor of the differentials
    random_state: int, RandomState or None
        seed or random state
    """

    def __init__(
        self, cr: float = 0.5, f: float = 0.8, random_state: tp.Optional[tp.Union[int, np.random.RandomState]] = None
    ) -> None:
        super().__init__(random_state)
        if not 0 <= cr <= 1:
            raise errors.DEoptimValueError(f"Crossover probability must be in [0, 1] (got {cr})")
        if not cr:
            warnings.warn("Crossover probability is 0, members will never change", errors.InefficientSettingsWarning)
        self.cr = cr
        self.f = f

    def _make_trial(
        self, population: Population, problem: Problem, index: int, best_member: np.ndarray, force: bool = False
    ) -> tp.Tuple[np.ndarray, bool]:
        trial = population.get_member_copy(index)
        r1, r2 = utils.fast_pick_two_random_members(population.size, index, self.random_state)
        member1 = population.get_member(r1)
        member2 = population.get_member(r2)
        changed = False
        for i in range(population.dimension):
            if force or self._uniform() < self.cr:
                value = best_member[i] + self.f * (self._uniform() + 0.0001) * (member1[i] - member2[i])
                value = utils.apply_limits(problem, i, value)
                changed = changed or value != trial[i]
                trial[i] = value
        return trial, changed

    def regenerate(self, population: Population, problem: Problem, objective: tp.Objective) -> None:
        best_member = population.get_best_member()
        for c in range(population.size):
            old_score = population.get_score(c)
            trial, changed = self._make_trial(population, problem, c, best_member)
            if changed:
                score = utils.evaluate(objective, trial)
                if score < old_score:
                    population.set_member(c, trial, score)


class ParallelSimpleStrategy(SimpleStrategy, _ParallelEvaluation):
    """Parallel version of :code:`SimpleStrategy`.
    All trials are built from the pre-generation population and best member, then the
    changed trials (or trials of members with an invalid score) are evaluated through the
    executor, and finally accepted or rejected member by member.

    Parameters
    ----------
    cr: float
        crossover probability (every element is mutated if cr >= 1)
    f: float
        weighting factor of the differentials
    random_state: int, RandomState or None
        seed or random state
    executor: Executor
        executor with a :code:`submit(fn, *args)` method returning future-like objects,
        eg: :code:`concurrent.futures.ThreadPoolExecutor`. Its lifecycle is the caller's
        responsibility. Defaults to a sequential executor.
    """

    def __init__(
        self,
        cr: float = 0.5,
        f: float = 0.8,
        random_state: tp.Optional[tp.Union[int, np.random.RandomState]] = None,
        executor: tp.Optional[tp.ExecutorLike] = None,
    ) -> None:
        super().__init__(cr=cr, f=f, random_state=random_state)
        self._init_executor(executor)

    def regenerate(self, population: Population, problem: Problem, objective: tp.Objective) -> None:
        best_member = population.get_best_member()
        trials: tp.List[np.ndarray] = []
        indices: tp.List[int] = []
        for c in range(population.size):
            trial, changed = self._make_trial(population, problem, c, best_member, force=self.cr >= 1)
            if changed or population.get_score(c) == INVALID_SCORE:
                trials.append(trial)
                indices.append(c)
        if not trials:
            return
        scores = self._submit_trials(trials, objective)
        for c, trial, score in zip(indices, trials, scores):
            if score < population.get_score(c):
                population.set_member(c, trial, score)


class ArrayParallelSimpleStrategy(ParallelSimpleStrategy):
    """Same as :code:`ParallelSimpleStrategy`, with trials gathered in a 2-dimensional array
    and scores in a vector, so that acceptance is computed at once.
    """

    def regenerate(self, population: Population, problem: Problem, objective: tp.Objective) -> None:
        best_member = population.get_best_member()
        trials = np.array(population.data, copy=True)
        submitted = np.zeros(population.size, dtype=bool)
        for c in range(population.size):
            trials[c], changed = self._make_trial(population, problem, c, best_member, force=self.cr >= 1)
            submitted[c] = changed or population.get_score(c) == INVALID_SCORE
        indices = np.flatnonzero(submitted)
        if not indices.size:
            return
        scores = np.array(self._submit_trials(list(trials[indices]), objective), dtype=float)
        improved = scores < population.scores[indices]
        for c, score in zip(indices[improved], scores[improved]):
            population.set_member(int(c), trials[c], float(score))


# # # # # Strategy 3 # # # # #


class Strategy3(Strategy):
    """Strategy with jitter and variable-length crossover.

    Starting from a random element, consecutive elements (cyclically) are set to
    :code:`best + (U(0, 1) * jitter_factor + f) * (r1 - r2)` as long as U(0, 1) < cr
    draws succeed, and at most once per element. The best member is never modified.
    Accepted trials are written to the population at the end of the generation.

    Parameters
    ----------
    cr: float
        crossover probability (initial mean if c > 0)
    f: float
        weighting factor of the differentials (initial mean if c > 0)
    c: float
        speed of the CR/F self-adaptation, disabled if c <= 0
    jitter_factor: float
        scale of the uniform jitter added to f
    bounce_back: bool
        boundary policy. True clamps the violating values to the limits, False replaces them
        by a random value between the violated limit and the opposite one.
    precision: float
        values are rounded to the closest multiple of precision (0 for no rounding)
    random_state: int, RandomState or None
        seed or random state
    reset_accumulators: bool
        reset the self-adaptation accumulators at each generation (see :code:`SelfAdaptation`)
    """

    skip_best = True

    def __init__(
        self,
        cr: float = 0.5,
        f: float = 0.8,
        c: float = 0.0,
        jitter_factor: float = 0.001,
        bounce_back: bool = True,
        precision: float = 0.0,
        random_state: tp.Optional[tp.Union[int, np.random.RandomState]] = None,
        reset_accumulators: bool = False,
    ) -> None:
        super().__init__(random_state)
        if not 0 <= cr <= 1:
            raise errors.DEoptimValueError(f"Crossover probability must be in [0, 1] (got {cr})")
        if precision < 0:
            raise errors.DEoptimValueError(f"Precision must be non-negative (got {precision})")
        self.cr = cr
        self.f = f
        self.jitter_factor = jitter_factor
        self.bounce_back = bounce_back
        self.precision = precision
        self.adaptation = SelfAdaptation(cr, f, c, reset_accumulators=reset_accumulators)

    def _sample_parameters(self) -> tp.Tuple[float, float]:
        if self.adaptation.active:
            self.cr, self.f = self.adaptation.sample(self.random_state)
        return self.cr, self.f

    def _limit(self, problem: Problem, index: int, value: float) -> float:
        # bounce_back=True clamps, bounce_back=False bounces back randomly
        if self.bounce_back:
            return utils.apply_limits(problem, index, value)
        return utils.apply_limits_bounce_back(problem, index, value, self.random_state)

    def _make_trial(
        self, population: Population, problem: Problem, index: int, best_member: np.ndarray, cr: float, f: float
    ) -> tp.Tuple[np.ndarray, bool]:
        dimension = population.dimension
        trial = population.get_member_copy(index)
        r1, r2 = utils.fast_pick_two_random_members(population.size, index, self.random_state)
        member1 = population.get_member(r1)
        member2 = population.get_member(r2)
        j = self.random_state.randint(dimension)
        changed = False
        for k in range(1, dimension + 1):
            jitter = self._uniform() * self.jitter_factor + f
            value = best_member[j] + jitter * (member1[j] - member2[j])
            if self.precision:
                value = utils.round_to_closest(value, self.precision)
            # limits are applied last, bounds need not be multiples of precision
            value = self._limit(problem, j, value)
            changed = changed or value != trial[j]
            trial[j] = value
            j = (j + 1) % dimension
            if not (self._uniform() < cr and k < dimension):
                break
        return trial, changed

    def _apply(self, population: Population, accepted: tp.Dict[int, tp.Tuple[np.ndarray, float]]) -> None:
        for index in sorted(accepted):
            trial, score = accepted[index]
            population.set_member(index, trial, score)

    def regenerate(self, population: Population, problem: Problem, objective: tp.Objective) -> None:
        best_index = population.best_index
        best_member = population.get_best_member()
        self.adaptation.start_generation()
        accepted: tp.Dict[int, tp.Tuple[np.ndarray, float]] = {}
        for c in range(population.size):
            if self.skip_best and c == best_index:
                continue  # never degrade the incumbent optimum
            cr, f = self._sample_parameters()
            old_score = population.get_score(c)
            trial, changed = self._make_trial(population, problem, c, best_member, cr, f)
            if changed or old_score == INVALID_SCORE:
                score = utils.evaluate(objective, trial)
                if score < old_score:
                    accepted[c] = (trial, score)
                    self.adaptation.record_success(cr, f)
        self.adaptation.end_generation()
        self._apply(population, accepted)


class ParallelStrategy3(Strategy3, _ParallelEvaluation):
    """Parallel version of :code:`Strategy3`, evaluating all trials of a generation through
    an executor. Contrarily to :code:`Strategy3`, the best member is regenerated as well.

    Parameters
    ----------
    executor: Executor
        executor with a :code:`submit(fn, *args)` method returning future-like objects.
        Defaults to a sequential executor.

    See :code:`Strategy3` for the other parameters.
    """

    skip_best = False

    def __init__(
        self,
        cr: float = 0.5,
        f: float = 0.8,
        c: float = 0.0,
        jitter_factor: float = 0.001,
        bounce_back: bool = True,
        precision: float = 0.0,
        random_state: tp.Optional[tp.Union[int, np.random.RandomState]] = None,
        executor: tp.Optional[tp.ExecutorLike] = None,
        reset_accumulators: bool = False,
    ) -> None:
        super().__init__(
            cr=cr,
            f=f,
            c=c,
            jitter_factor=jitter_factor,
            bounce_back=bounce_back,
            precision=precision,
            random_state=random_state,
            reset_accumulators=reset_accumulators,
        )
        self._init_executor(executor)

    def regenerate(self, population: Population, problem: Problem, objective: tp.Objective) -> None:
        best_member = population.get_best_member()
        self.adaptation.start_generation()
        trials: tp.List[np.ndarray] = []
        indices: tp.List[int] = []
        parameters: tp.List[tp.Tuple[float, float]] = []
        for c in range(population.size):
            cr, f = self._sample_parameters()
            trial, changed = self._make_trial(population, problem, c, best_member, cr, f)
            if changed or population.get_score(c) == INVALID_SCORE:
                trials.append(trial)
                indices.append(c)
                parameters.append((cr, f))
        if not trials:
            return
        scores = self._submit_trials(trials, objective)
        accepted: tp.Dict[int, tp.Tuple[np.ndarray, float]] = {}
        for c, trial, score, (cr, f) in zip(indices, trials, scores, parameters):
            if score < population.get_score(c):
                accepted[c] = (trial, score)
                self.adaptation.record_success(cr, f)
        self.adaptation.end_generation()
        self._apply(population, accepted)


# # # # # Sandbox strategy # # # # #


class SandboxStrategy(Strategy):
    """Self-adaptive variant of the simple strategy: CR and F are resampled once per
    generation (see :code:`SelfAdaptation`) when c > 0, the trial is clamped to the
    limits after crossover and always evaluated.

    Parameters
    ----------
    cr: float
        crossover probability (initial mean if c > 0)
    f: float
        weighting factor of the differentials (initial mean if c > 0)
    c: float
        speed of the CR/F self-adaptation, disabled if c <= 0
    random_state: int, RandomState or None
        seed or random state
    reset_accumulators: bool
        reset the self-adaptation accumulators at each generation
    """

    def __init__(
        self,
        cr: float = 0.5,
        f: float = 0.8,
        c: float = 0.1,
        random_state: tp.Optional[tp.Union[int, np.random.RandomState]] = None,
        reset_accumulators: bool = False,
    ) -> None:
        super().__init__(random_state)
        if not 0 <= cr <= 1:
            raise errors.DEoptimValueError(f"Crossover probability must be in [0, 1] (got {cr})")
        self.cr = cr
        self.f = f
        self.adaptation = SelfAdaptation(cr, f, c, reset_accumulators=reset_accumulators)

    def regenerate(self, population: Population, problem: Problem, objective: tp.Objective) -> None:
        best_member = population.get_best_member()
        self.adaptation.start_generation()
        if self.adaptation.active:
            self.cr, self.f = self.adaptation.sample(self.random_state)
        members = range(population.size)
        for c in members:
            trial = population.get_member_copy(c)
            old_score = population.get_score(c)
            r1, r2 = utils.pick_random(members, 2, [c], self.random_state)
            member1 = population.get_member(r1)
            member2 = population.get_member(r2)
            for i in range(population.dimension):
                if self._uniform() < self.cr:
                    trial[i] = best_member[i] + self.f * (self._uniform() + 0.0001) * (member1[i] - member2[i])
            np.clip(trial, problem.lower, problem.upper, out=trial)
            score = utils.evaluate(objective, trial)
            if score < old_score:
                population.set_member(c, trial, score)
                self.adaptation.record_success(self.cr, self.f)
        self.adaptation.end_generation()
