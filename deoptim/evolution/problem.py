# Copyright (c) Meta Platforms, Inc. and affiliates.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

import numpy as np
import deoptim.common.typing as tp
from deoptim.common import errors


class Problem:
    """Box-constrained search space of a differential evolution run.

    Parameters
    ----------
    lower: array-like
        lower limits of a possible solution
    upper: array-like
        upper limits of a possible solution

    Note
    ----
    Bounds are copied and frozen, the problem is immutable.
    """

    def __init__(self, lower: tp.ArrayLike, upper: tp.ArrayLike) -> None:
        if lower is None or upper is None:
            raise errors.DEoptimValueError("Lower and upper limits of a DE problem can not be None.")
        low, up = (np.array(b, dtype=float, copy=True) for b in (lower, upper))
        if low.ndim != 1 or up.ndim != 1:
            raise errors.DEoptimValueError(f"Limits must be 1-dimensional (got shapes {low.shape} and {up.shape}).")
        if not low.size or low.size != up.size:
            raise errors.DEoptimValueError("Limit lengths must match each other and be bigger than 0.")
        if np.any(low > up):
            raise errors.DEoptimValueError(
                "Lower limit can not be greater than the corresponding upper limit "
                f"(at indices {np.where(low > up)[0].tolist()})."
            )
        low.flags.writeable = False
        up.flags.writeable = False
        self._lower = low
        self._upper = up

    @property
    def lower(self) -> np.ndarray:
        return self._lower

    @property
    def upper(self) -> np.ndarray:
        return self._upper

    @property
    def dimension(self) -> int:
        return self._lower.size

    def is_valid(self, candidate: tp.ArrayLike) -> bool:
        """Checks that every component of the candidate lies within its limits"""
        candidate = np.asarray(candidate)
        return bool(np.all(candidate >= self._lower) and np.all(candidate <= self._upper))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(lower={self._lower.tolist()}, upper={self._upper.tolist()})"
