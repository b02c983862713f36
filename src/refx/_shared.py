"""Small helpers shared by every refx module: value classification and change detection."""

from __future__ import annotations

import dataclasses
import enum
import math
import types
from collections.abc import MutableMapping, MutableSet
from typing import Any

from refx import _anchor

# Sentinel for "no value": distinct from None, which is a legitimate value and key.
_UNSET: Any = type("_Unset", (), {"__repr__": lambda self: "<unset>", "__bool__": lambda self: False})()

# Class attribute that opts a type out of observation (set on Ref classes).
SKIP_FLAG = "__refx_skip__"

PRIMITIVE_TYPES = (type(None), bool, int, float, complex, str, bytes)
_VALUE_TYPES = PRIMITIVE_TYPES + (tuple, frozenset)
_OPAQUE_TYPES = (
    type,
    types.FunctionType,
    types.BuiltinFunctionType,
    types.MethodType,
    types.ModuleType,
    enum.Enum,
    BaseException,
)


class TargetType(enum.Enum):
    INVALID = 0
    COMMON = 1
    COLLECTION = 2


class TargetKind(enum.Enum):
    """Shape of an observable target, fixed at wrap time."""

    RECORD = "record"
    LIST = "list"
    MAP = "map"
    SET = "set"


def is_object(value: Any) -> bool:
    return not isinstance(value, PRIMITIVE_TYPES)


def is_list(value: Any) -> bool:
    return isinstance(value, list)


def is_map(value: Any) -> bool:
    return isinstance(value, MutableMapping)


def is_set(value: Any) -> bool:
    return isinstance(value, MutableSet)


def is_integer_key(key: Any) -> bool:
    return type(key) is int and key >= 0


def is_dunder(name: Any) -> bool:
    return isinstance(name, str) and len(name) > 4 and name[:2] == name[-2:] == "__"


def target_kind(value: Any) -> TargetKind | None:
    """Classify a raw value, or None when it cannot be observed."""
    if getattr(type(value), SKIP_FLAG, False) or value in _anchor.skipped:
        return None
    if isinstance(value, list):
        return TargetKind.LIST
    if isinstance(value, MutableMapping):
        return TargetKind.MAP
    if isinstance(value, MutableSet):
        return TargetKind.SET
    if isinstance(value, _VALUE_TYPES) or isinstance(value, _OPAQUE_TYPES):
        return None
    if not isinstance(getattr(value, "__dict__", None), dict):
        return None
    if dataclasses.is_dataclass(value) and type(value).__dataclass_params__.frozen:
        return None
    return TargetKind.RECORD


def target_type_of(kind: TargetKind | None) -> TargetType:
    if kind is None:
        return TargetType.INVALID
    if kind in (TargetKind.MAP, TargetKind.SET):
        return TargetType.COLLECTION
    return TargetType.COMMON


def has_changed(value: Any, old_value: Any) -> bool:
    """Whether writing ``value`` over ``old_value`` is an observable change.

    Immutable values of the same type compare by value, with NaN equal to
    itself. Everything else compares by identity.
    """
    if value is old_value:
        return False
    if type(value) is not type(old_value) or not isinstance(value, _VALUE_TYPES):
        return True
    if isinstance(value, float) and math.isnan(value) and math.isnan(old_value):
        return False
    if isinstance(value, complex) and value != value and old_value != old_value:
        return False
    return value != old_value


# Class attribute carried by every boxed value type.
REF_FLAG = "__refx_is_ref__"


def is_ref(value: Any) -> bool:
    return getattr(type(value), REF_FLAG, False) is True
