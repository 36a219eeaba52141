# Copyright (c) Meta Platforms, Inc. and affiliates.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

from .common import typing as typing
from .common import errors as errors
from .evolution import strategies as strategies
from .evolution import stopping as stopping
from .evolution import diagnostics as diagnostics
from .evolution import configs as configs
from .evolution.problem import Problem
from .evolution.population import Population
from .evolution.core import DEoptim
from .evolution.core import minimize


__all__ = [
    "DEoptim",
    "Problem",
    "Population",
    "minimize",
    "strategies",
    "stopping",
    "diagnostics",
    "configs",
    "errors",
    "typing",
]


__version__ = "0.1.0"
