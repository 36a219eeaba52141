# Copyright (c) Meta Platforms, Inc. and affiliates.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

import pytest
from . import tools
from . import errors
from .decorators import Registry


class _Dummy:
    def __init__(self, x: int = 1, y: str = "a", z: float = 0.5) -> None:
        self.x = x
        self.y = y
        self._z = z


def test_different_from_defaults() -> None:
    assert tools.different_from_defaults(instance=_Dummy(x=2)) == {"x": 2}
    assert tools.different_from_defaults(instance=_Dummy(x=1, y="b")) == {"y": "b"}
    instance = _Dummy()
    diff = tools.different_from_defaults(instance=instance, instance_dict={"x": 1, "y": "c", "z": 3.0}, check_mismatches=True)
    assert diff == {"y": "c", "z": 3.0}
    with pytest.raises(RuntimeError):
        tools.different_from_defaults(instance=instance, instance_dict={"x": 1}, check_mismatches=True)


def test_registry() -> None:
    registry: Registry[int] = Registry()
    registry.register_name("one", 1)
    assert "one" in registry
    assert registry["one"] == 1
    assert list(registry) == ["one"]
    with pytest.raises(errors.DEoptimRuntimeError):
        registry.register_name("one", 2)
    with pytest.raises(errors.DEoptimValueError):
        registry["two"]  # pylint: disable=pointless-statement
    registry.unregister("one")
    registry.unregister("one")
    assert not registry
