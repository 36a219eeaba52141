# Copyright (c) Meta Platforms, Inc. and affiliates.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

from .core import DEoptim  # runner, evolving a population once
from .strategies import Strategy  # abstract class, for type checking
from .configs import registry
