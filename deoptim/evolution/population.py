# Copyright (c) Meta Platforms, Inc. and affiliates.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

import numpy as np
import deoptim.common.typing as tp
from deoptim.common import errors


INVALID_SCORE = float("inf")
P = tp.TypeVar("P", bound="Population")


class Population:
    """Array of candidates with their scores and a cached index of the best one.

    Parameters
    ----------
    data: array-like
        2-dimensional array of shape (size, dimension), copied at instantiation

    Note
    ----
    - scores are initialized to :code:`INVALID_SCORE` (:code:`+inf`).
    - all score updates must go through :code:`set_score` / :code:`set_member` so that
      :code:`scores[best_index] == min(scores)` holds. Data and scores are only exposed
      as read-only views.
    - indices are not checked beyond numpy indexing, the caller is responsible for them.
    """

    def __init__(self, data: tp.ArrayLike) -> None:
        self._data = np.array(data, dtype=float, copy=True)
        if self._data.ndim != 2:
            raise errors.DEoptimValueError(f"Population data must be 2-dimensional (got shape {self._data.shape})")
        self._scores = np.full(self._data.shape[0], INVALID_SCORE)
        self._best = 0

    @classmethod
    def random(
        cls: tp.Type[P],
        size: int,
        dimension: int,
        lower: tp.ArrayLike,
        upper: tp.ArrayLike,
        random_state: tp.Optional[tp.Union[int, np.random.RandomState]] = None,
        distribution: tp.Optional[tp.Callable[[], float]] = None,
    ) -> P:
        """Creates a population uniformly spread within the limits

        Parameters
        ----------
        size: int
            number of members
        dimension: int
            dimension of each member
        lower: array-like
            lower limits, of length dimension
        upper: array-like
            upper limits, of length dimension
        random_state: int or RandomState
            seed or random state used for sampling in [0, 1)
        distribution: callable
            optional sampler returning values in [0, 1), overrides random_state.
            It is called once per element, member by member.
        """
        low, up = (np.asarray(b, dtype=float) for b in (lower, upper))
        if low.shape != (dimension,) or up.shape != (dimension,):
            raise errors.DEoptimValueError(
                f"Limits of shape {low.shape} and {up.shape} do not match dimension {dimension}"
            )
        if distribution is None:
            rng = (
                random_state
                if isinstance(random_state, np.random.RandomState)
                else np.random.RandomState(random_state)
            )
            samples = rng.uniform(0, 1, size=(size, dimension))
        else:
            samples = np.array([[distribution() for _ in range(dimension)] for _ in range(size)]).reshape(
                size, dimension
            )
        return cls(low + (up - low) * samples)

    @property
    def size(self) -> int:
        return self._data.shape[0]

    @property
    def dimension(self) -> int:
        return self._data.shape[1]

    @property
    def data(self) -> np.ndarray:
        """Read-only view of the population data"""
        view = self._data.view()
        view.flags.writeable = False
        return view

    @property
    def scores(self) -> np.ndarray:
        """Read-only view of the scores"""
        view = self._scores.view()
        view.flags.writeable = False
        return view

    def set_scores(self, score: float) -> None:
        """Sets all the scores to the provided value"""
        self._scores[:] = score
        self._best = 0

    def get_score(self, index: int) -> float:
        return float(self._scores[index])

    def set_score(self, index: int, score: float) -> None:
        best_score = self._scores[self._best]
        self._scores[index] = score
        if score < best_score:
            self._best = index
        elif index == self._best and score > best_score:
            # the best member got worse, another member may now be the best
            self._best = int(np.argmin(self._scores))

    def get_member(self, index: int) -> np.ndarray:
        """Read-only view of the member (reflects later updates of the member)"""
        view = self._data[index]
        view.flags.writeable = False
        return view

    def get_member_copy(self, index: int) -> np.ndarray:
        return np.array(self._data[index], copy=True)

    def set_member(self, index: int, values: tp.ArrayLike, score: tp.Optional[float] = None) -> None:
        """Replaces the values of a member, and its score if provided"""
        self._data[index] = values
        if score is not None:
            self.set_score(index, score)

    def get_order(self) -> np.ndarray:
        """Indices of the members sorted by increasing score (ties are kept in index order)"""
        return np.argsort(self._scores, kind="stable")

    @property
    def best_index(self) -> int:
        return self._best

    @property
    def best_score(self) -> float:
        return float(self._scores[self._best])

    def get_best_member(self) -> np.ndarray:
        return self.get_member_copy(self._best)

    def copy(self: P) -> P:
        """Independent copy of the population, scores and best index included"""
        pop = self.__class__(self._data)
        pop._scores[:] = self._scores
        pop._best = self._best
        return pop

    def __len__(self) -> int:
        return self.size

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(size={self.size}, dimension={self.dimension}, best_score={self.best_score})"
