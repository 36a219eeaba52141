# Copyright (c) Meta Platforms, Inc. and affiliates.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

import warnings
import numpy as np
import deoptim.common.typing as tp
from deoptim.common import errors
from deoptim.common import tools
from deoptim.common.decorators import Registry
from . import strategies as st


registry: Registry["ConfiguredStrategy"] = Registry()
RandomStateLike = tp.Optional[tp.Union[int, np.random.RandomState]]


def _check_cr(cr: float) -> None:
    if not 0 <= cr <= 1:
        raise errors.DEoptimValueError(f"Crossover probability must be in [0, 1] (got {cr})")


class ConfiguredStrategy:
    """Creates strategy instances with configuration.

    Parameters
    ----------
    config: dict
        dictionnary of all the configurations (as provided by :code:`locals()` in subclasses)

    Note
    ----
    This provides a default repr which can be bypassed through set_name
    """

    parallel = False

    def __init__(self, config: tp.Dict[str, tp.Any]) -> None:
        config.pop("self", None)  # self comes from "locals()"
        config.pop("__class__", None)  # self comes from "locals()"
        self._config = config
        diff = tools.different_from_defaults(instance=self, instance_dict=config, check_mismatches=True)
        params = ", ".join(f"{x}={y!r}" for x, y in sorted(diff.items()))
        self.name = f"{self.__class__.__name__}({params})"

    def config(self) -> tp.Dict[str, tp.Any]:
        return dict(self._config)

    def _build(self, random_state: RandomStateLike, executor: tp.Optional[tp.ExecutorLike]) -> st.Strategy:
        raise NotImplementedError

    def __call__(
        self, random_state: RandomStateLike = None, executor: tp.Optional[tp.ExecutorLike] = None
    ) -> st.Strategy:
        """Creates a strategy

        Parameters
        ----------
        random_state: int, RandomState or None
            seed or random state of the strategy
        executor: Executor or None
            executor for evaluating the trials of parallel strategies
        """
        if executor is not None and not self.parallel:
            warnings.warn(
                f"Executor is ignored by sequential strategy {self.name}", errors.InefficientSettingsWarning
            )
        return self._build(random_state, executor)

    def __repr__(self) -> str:
        return self.name

    def set_name(self, name: str, register: bool = False) -> "ConfiguredStrategy":
        """Set a new representation for the instance"""
        self.name = name
        if register:
            registry.register_name(name, self)
        return self

    def __eq__(self, other: tp.Any) -> tp.Any:
        if self.__class__ == other.__class__:
            if self._config == other._config:
                return True
        return False


class SimpleDE(ConfiguredStrategy):
    """DE/best/1/bin differential evolution

    Parameters
    ----------
    cr: float
        crossover probability
    f: float
        differential weight
    parallel: bool
        whether to evaluate each generation as a batch through an executor
    array_batch: bool
        for parallel strategies, whether to gather trials in an array instead of a list
    """

    def __init__(self, *, cr: float = 0.5, f: float = 0.8, parallel: bool = False, array_batch: bool = False) -> None:
        _check_cr(cr)
        self.parallel = parallel
        super().__init__(locals())

    def _build(self, random_state: RandomStateLike, executor: tp.Optional[tp.ExecutorLike]) -> st.Strategy:
        cr, f = self._config["cr"], self._config["f"]
        if not self.parallel:
            return st.SimpleStrategy(cr=cr, f=f, random_state=random_state)
        cls = st.ArrayParallelSimpleStrategy if self._config["array_batch"] else st.ParallelSimpleStrategy
        return cls(cr=cr, f=f, random_state=random_state, executor=executor)


class Strategy3DE(ConfiguredStrategy):
    """Differential evolution with jitter and variable-length crossover

    Parameters
    ----------
    cr: float
        crossover probability
    f: float
        differential weight
    c: float
        speed of the self-adaptation of CR and F (disabled if c <= 0)
    jitter_factor: float
        scale of the jitter added to f
    bounce_back: bool
        True clamps out-of-bounds values, False bounces them back randomly within the limits
    precision: float
        rounding step of the values (0 for no rounding)
    parallel: bool
        whether to evaluate each generation as a batch through an executor.
        Note that the parallel version also regenerates the best member.
    reset_accumulators: bool
        reset the self-adaptation accumulators at each generation
    """

    def __init__(
        self,
        *,
        cr: float = 0.5,
        f: float = 0.8,
        c: float = 0.0,
        jitter_factor: float = 0.001,
        bounce_back: bool = True,
        precision: float = 0.0,
        parallel: bool = False,
        reset_accumulators: bool = False,
    ) -> None:
        _check_cr(cr)
        if precision < 0:
            raise errors.DEoptimValueError(f"Precision must be non-negative (got {precision})")
        self.parallel = parallel
        super().__init__(locals())

    def _build(self, random_state: RandomStateLike, executor: tp.Optional[tp.ExecutorLike]) -> st.Strategy:
        kwargs = {x: y for x, y in self._config.items() if x != "parallel"}
        if self.parallel:
            return st.ParallelStrategy3(random_state=random_state, executor=executor, **kwargs)
        return st.Strategy3(random_state=random_state, **kwargs)


class SandboxDE(ConfiguredStrategy):
    """Self-adaptive DE/best/1/bin, with CR and F resampled at each generation

    Parameters
    ----------
    cr: float
        initial mean crossover probability
    f: float
        initial mean differential weight
    c: float
        speed of the self-adaptation (disabled if c <= 0)
    reset_accumulators: bool
        reset the self-adaptation accumulators at each generation
    """

    def __init__(
        self, *, cr: float = 0.5, f: float = 0.8, c: float = 0.1, reset_accumulators: bool = False
    ) -> None:
        _check_cr(cr)
        super().__init__(locals())

    def _build(self, random_state: RandomStateLike, executor: tp.Optional[tp.ExecutorLike]) -> st.Strategy:
        return st.SandboxStrategy(random_state=random_state, **self._config)


Simple = SimpleDE().set_name("Simple", register=True)
ParallelSimple = SimpleDE(parallel=True).set_name("ParallelSimple", register=True)
ArrayParallelSimple = SimpleDE(parallel=True, array_batch=True).set_name("ArrayParallelSimple", register=True)
Strategy3 = Strategy3DE().set_name("Strategy3", register=True)
AdaptiveStrategy3 = Strategy3DE(c=0.1).set_name("AdaptiveStrategy3", register=True)
ParallelStrategy3 = Strategy3DE(parallel=True).set_name("ParallelStrategy3", register=True)
Sandbox = SandboxDE().set_name("Sandbox", register=True)
