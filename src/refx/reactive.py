"""Reactive object factory: wrap plain data so reads track and writes trigger.

Four variants share one construction path:

    reactive(obj)           deep, mutable
    shallow_reactive(obj)   only the top level is observed
    readonly(obj)           deep, every mutation is rejected with a warning
    shallow_readonly(obj)   top level read-only, nested values as stored

Each variant keeps an identity map from target to wrapper, so wrapping the
same object twice yields the same wrapper. Read-only dominates: ``reactive()``
of a read-only wrapper returns it unchanged, while ``readonly()`` of a
mutable wrapper builds a new read-only wrapper whose reads still go through
(and track) the mutable one.

Nested objects are wrapped lazily, on first read, in the same variant family.
Which backend builds the wrapper is decided by ``refx.backend``.
"""

from __future__ import annotations

import logging
import types
from typing import Any, TypeVar

from refx import _anchor
from refx._shared import (
    TargetKind,
    TargetType,
    is_object,
    is_ref,
    target_kind,
    target_type_of,
)
from refx.backend import should_use_proxy

logger = logging.getLogger("refx.reactive")

T = TypeVar("T")

STATE_ATTR = "__refx_state__"


class WrapperState:
    """What a wrapper wraps and how. Shared by both backends."""

    __slots__ = ("target", "raw", "readonly", "shallow", "kind", "instrumentations")

    def __init__(self, target: Any, readonly: bool, shallow: bool, kind: TargetKind) -> None:
        self.target = target  # raw object, or the mutable wrapper under a read-only one
        self.raw = to_raw(target)
        self.readonly = readonly
        self.shallow = shallow
        self.kind = kind
        self.instrumentations: dict[str, Any] = {}

    @property
    def variant(self) -> str:
        if self.readonly:
            return "shallow_readonly" if self.shallow else "readonly"
        return "shallow_reactive" if self.shallow else "reactive"


class Wrapper:
    """Base of every object either backend hands out."""

    __slots__ = ()

    @property
    def __class__(self):
        return state_of(self).raw.__class__


def state_of(value: Any) -> WrapperState | None:
    if isinstance(value, Wrapper):
        return object.__getattribute__(value, STATE_ATTR)
    return None


# -- flag queries -------------------------------------------------------------


def is_reactive(value: Any) -> bool:
    state = state_of(value)
    if state is None:
        return False
    if state.readonly:
        return is_reactive(state.target)
    return True


def is_readonly(value: Any) -> bool:
    state = state_of(value)
    return state is not None and state.readonly


def is_shallow(value: Any) -> bool:
    state = state_of(value)
    return state is not None and state.shallow


def is_proxy(value: Any) -> bool:
    return state_of(value) is not None


def to_raw(observed: T) -> T:
    state = state_of(observed)
    return to_raw(state.target) if state is not None else observed


def mark_raw(value: T) -> T:
    """Exclude ``value`` from observation; wrapping it returns it unchanged."""
    _anchor.skipped.set(value, True)
    return value


def to_reactive(value: T) -> T:
    return reactive(value) if is_object(value) else value


def to_readonly(value: T) -> T:
    return readonly(value) if is_object(value) else value


def get_target_type(value: Any) -> TargetType:
    return target_type_of(target_kind(to_raw(value)))


# -- factory --------------------------------------------------------------------


def reactive(target: T) -> T:
    """Deep mutable wrapper around ``target``."""
    if is_readonly(target):
        return target
    return _create_reactive_object(target, False, False, _anchor.reactive_map)


def shallow_reactive(target: T) -> T:
    return _create_reactive_object(target, False, True, _anchor.shallow_reactive_map)


def readonly(target: T) -> T:
    """Deep read-only wrapper around ``target``."""
    return _create_reactive_object(target, True, False, _anchor.readonly_map)


def shallow_readonly(target: T) -> T:
    return _create_reactive_object(target, True, True, _anchor.shallow_readonly_map)


def _create_reactive_object(target: Any, is_readonly_: bool, shallow: bool, proxy_map: _anchor.IdentityMap) -> Any:
    if not is_object(target):
        logger.warning("value cannot be made reactive: %r", target)
        return target
    # already a wrapper, unless a read-only view of a mutable wrapper is asked for
    state = state_of(target)
    if state is not None and not (is_readonly_ and not state.readonly):
        return target
    existing = proxy_map.get(target)
    if existing is not None:
        return existing
    kind = target_kind(to_raw(target))
    if target_type_of(kind) is TargetType.INVALID:
        return target

    if should_use_proxy():
        from refx.proxy import create_proxy

        wrapper = create_proxy(target, is_readonly_, shallow, kind)
    else:
        from refx.def_observer import def_proxy

        wrapper = def_proxy(target, is_readonly_, shallow, kind)
    proxy_map.set(target, wrapper)
    return wrapper


def wrap_value(state: WrapperState, key: Any, value: Any) -> Any:
    """Apply the read rules to a value found under ``key``."""
    if state.shallow:
        return value
    if is_ref(value):
        # index access into a list of boxes is not unboxed
        if state.kind is TargetKind.LIST and type(key) is int:
            return value
        return value.value
    if is_object(value):
        return readonly(value) if state.readonly else reactive(value)
    return value


def describe(wrapper: Any) -> str:
    state = state_of(wrapper)
    return f"{state.variant}({state.raw!r})"


# -- record dunders -----------------------------------------------------------


def _forward(wrapper: Any, name: str, *args: Any) -> Any:
    """Call the raw class's ``name`` implementation for a record wrapper.

    Python-level implementations (and ``object``'s own) receive the wrapper as
    ``self``, so attribute reads inside them are tracked. C implementations of
    builtin bases only accept the real instance and receive the target.
    """
    state = state_of(wrapper)
    impl = getattr(type(state.raw), name, None)
    if impl is None:
        raise TypeError(f"{type(state.raw).__name__!r} object does not support {name}")
    if isinstance(impl, types.FunctionType) or impl is getattr(object, name, None):
        return impl(wrapper, *args)
    return impl(state.target, *[to_raw(arg) for arg in args])


class RecordWrapper(Wrapper):
    """Dunders a record wrapper takes from the raw object's class."""

    __slots__ = ()

    def __repr__(self) -> str:
        state = state_of(self)
        if type(state.raw).__repr__ is object.__repr__:
            return f"{state.variant}({object.__repr__(state.raw)})"
        return _forward(self, "__repr__")

    def __str__(self) -> str:
        state = state_of(self)
        if type(state.raw).__str__ is object.__str__:
            return repr(self)
        return _forward(self, "__str__")

    def __eq__(self, other: object) -> bool:
        return _forward(self, "__eq__", other)

    def __ne__(self, other: object) -> bool:
        return _forward(self, "__ne__", other)

    def __hash__(self) -> int:
        state = state_of(self)
        if type(state.raw).__hash__ is None:
            raise TypeError(f"unhashable type: {type(state.raw).__name__!r}")
        return _forward(self, "__hash__")

    def __bool__(self) -> bool:
        raw_cls = type(state_of(self).raw)
        if hasattr(raw_cls, "__bool__"):
            return _forward(self, "__bool__")
        if hasattr(raw_cls, "__len__"):
            return _forward(self, "__len__") != 0
        return True

    def __len__(self) -> int:
        raw_cls = type(state_of(self).raw)
        if not hasattr(raw_cls, "__len__"):
            raise TypeError(f"object of type {raw_cls.__name__!r} has no len()")
        return _forward(self, "__len__")

    def __iter__(self):
        raw_cls = type(state_of(self).raw)
        if not hasattr(raw_cls, "__iter__"):
            raise TypeError(f"{raw_cls.__name__!r} object is not iterable")
        return _forward(self, "__iter__")

    def __contains__(self, item: object) -> bool:
        raw_cls = type(state_of(self).raw)
        if hasattr(raw_cls, "__contains__"):
            return _forward(self, "__contains__", item)
        return any(element is item or element == item for element in self)

    def __getitem__(self, key: Any) -> Any:
        raw_cls = type(state_of(self).raw)
        if not hasattr(raw_cls, "__getitem__"):
            raise TypeError(f"{raw_cls.__name__!r} object is not subscriptable")
        return _forward(self, "__getitem__", key)

    def __setitem__(self, key: Any, value: Any) -> None:
        raw_cls = type(state_of(self).raw)
        if not hasattr(raw_cls, "__setitem__"):
            raise TypeError(f"{raw_cls.__name__!r} object does not support item assignment")
        _forward(self, "__setitem__", key, value)

    def __delitem__(self, key: Any) -> None:
        raw_cls = type(state_of(self).raw)
        if not hasattr(raw_cls, "__delitem__"):
            raise TypeError(f"{raw_cls.__name__!r} object does not support item deletion")
        _forward(self, "__delitem__", key)
