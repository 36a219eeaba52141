# Copyright (c) Meta Platforms, Inc. and affiliates.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.


# base classes


class DEoptimError(Exception):
    """Base class for error raised by deoptim"""


class DEoptimWarning(Warning):
    pass


# errors
# pylint: disable=too-many-ancestors


class DEoptimRuntimeError(RuntimeError, DEoptimError):
    """Runtime error raised by deoptim"""


class DEoptimValueError(ValueError, DEoptimError):
    """Invalid configuration (bounds, strategy parameters, names...)"""


class IllegalReuseError(DEoptimRuntimeError):
    """Raised when evolving an instance which has already been started"""


class ObjectiveEvaluationError(DEoptimRuntimeError):
    """Raised when the objective function failed on a candidate.
    The original exception is available as :code:`__cause__`.
    """


# warnings


class DEoptimRuntimeWarning(RuntimeWarning, DEoptimWarning):
    """Runtime warning raised by deoptim"""


class InefficientSettingsWarning(DEoptimRuntimeWarning):
    """Evolution settings are not optimal for the strategy"""
