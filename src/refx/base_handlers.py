"""Interception traps for records and lists (native interception backend).

A proxy forwards every attribute access, index access, membership test and
enumeration to one of four handler objects, one per variant. A trap receives
the proxied ``target`` (the raw object, or the mutable wrapper underneath a
read-only one), the key, and the proxy itself as ``receiver``.

Attribute lookup follows Python's own rules with the proxy standing in for
the instance: properties and methods defined on the class are bound to the
proxy, so the reads they make are tracked too. Only instance attributes (and
misses) are dependencies themselves.
"""

from __future__ import annotations

import logging
import types
from typing import Any

from refx._shared import (
    _UNSET,
    TargetKind,
    has_changed,
    is_dunder,
    is_ref,
)
from refx._tracking import (
    ITERATE_KEY,
    LENGTH_KEY,
    TrackOpTypes,
    TriggerOpTypes,
    track,
    trigger,
)
from refx.reactive import is_proxy, state_of, to_raw, wrap_value

logger = logging.getLogger("refx.base_handlers")


def lookup_class_attr(cls: type, name: str) -> Any:
    for klass in cls.__mro__:
        if name in klass.__dict__:
            return klass.__dict__[name]
    return _UNSET


def own_attrs(obj: Any) -> dict[str, Any]:
    return object.__getattribute__(obj, "__dict__")


def is_class_data(cls: type, key: Any) -> bool:
    """Whether ``key`` resolves to a plain value stored on the class, like a default."""
    if not isinstance(key, str) or is_dunder(key):
        return False
    cls_attr = lookup_class_attr(cls, key)
    return cls_attr is not _UNSET and not hasattr(type(cls_attr), "__get__")


def reflect_get(target: Any, key: str, receiver: Any) -> tuple[Any, bool]:
    """Resolve ``key`` as ``getattr`` would, with ``receiver`` as the instance.

    Returns ``(value, own)`` where ``own`` says the value is an instance
    attribute. Raises AttributeError when nothing resolves.
    """
    raw = to_raw(target)
    cls = type(raw)
    cls_attr = lookup_class_attr(cls, key)
    if isinstance(cls_attr, property):
        return cls_attr.__get__(receiver, cls), False
    if cls_attr is not _UNSET and hasattr(type(cls_attr), "__set__"):
        return cls_attr.__get__(target, cls), False
    if key in own_attrs(raw):
        value = own_attrs(raw)[key] if target is raw else getattr(target, key)
        return value, True
    if isinstance(cls_attr, types.FunctionType):
        return types.MethodType(cls_attr, receiver), False
    if cls_attr is not _UNSET:
        getter = getattr(type(cls_attr), "__get__", None)
        return (getter(cls_attr, target, cls) if getter else cls_attr), False
    fallback = lookup_class_attr(cls, "__getattr__")
    if isinstance(fallback, types.FunctionType):
        return fallback(receiver, key), False
    raise AttributeError(f"{cls.__name__!r} object has no attribute {key!r}")


class BaseReactiveHandler:
    def __init__(self, is_readonly: bool = False, shallow: bool = False) -> None:
        self.is_readonly = is_readonly
        self.shallow = shallow

    def _track(self, target: Any, type: TrackOpTypes, key: Any) -> None:
        if not self.is_readonly:
            track(to_raw(target), type, key)

    def get(self, target: Any, key: Any, receiver: Any) -> Any:
        state = state_of(receiver)
        if state.kind is TargetKind.LIST:
            if key == LENGTH_KEY:
                self._track(target, TrackOpTypes.GET, key)
                return len(target)
            self._track(target, TrackOpTypes.GET, key)
            return wrap_value(state, key, target[key])

        if key == "__dict__":
            return types.MappingProxyType({name: getattr(receiver, name) for name in self.own_keys(target, receiver)})
        if is_dunder(key):
            return getattr(target, key)
        try:
            value, own = reflect_get(target, key, receiver)
        except AttributeError:
            self._track(target, TrackOpTypes.GET, key)
            raise
        if not own:
            # methods and descriptors track their own reads
            cls_attr = lookup_class_attr(type(to_raw(target)), key)
            if cls_attr is not _UNSET and hasattr(type(cls_attr), "__get__"):
                return value
        self._track(target, TrackOpTypes.GET, key)
        return wrap_value(state, key, value)

    def has(self, target: Any, key: Any, receiver: Any) -> bool:
        if self.is_readonly and is_proxy(target):
            from refx.def_observer import has_key

            return has_key(target, key)
        raw = to_raw(target)
        if state_of(receiver).kind is TargetKind.LIST:
            result = key == LENGTH_KEY or (type(key) is int and 0 <= key < len(raw))
        else:
            result = key in own_attrs(raw) or lookup_class_attr(type(raw), key) is not _UNSET
        if not is_dunder(key):
            self._track(target, TrackOpTypes.HAS, key)
        return result

    def own_keys(self, target: Any, receiver: Any) -> list[Any]:
        if self.is_readonly and is_proxy(target):
            from refx.def_observer import own_keys

            return own_keys(target)
        raw = to_raw(target)
        if state_of(receiver).kind is TargetKind.LIST:
            self._track(target, TrackOpTypes.ITERATE, LENGTH_KEY)
            return list(range(len(raw)))
        self._track(target, TrackOpTypes.ITERATE, ITERATE_KEY)
        return list(own_attrs(raw))


class MutableReactiveHandler(BaseReactiveHandler):
    def __init__(self, shallow: bool = False) -> None:
        super().__init__(False, shallow)

    def set(self, target: Any, key: Any, value: Any, receiver: Any) -> bool:
        if state_of(receiver).kind is TargetKind.LIST:
            old_value = target[key]
            if not self.shallow:
                value = to_raw(value)
                old_value = to_raw(old_value)
            target[key] = value
            if has_changed(value, old_value):
                trigger(target, TriggerOpTypes.SET, key, value, old_value)
            return True

        cls_attr = lookup_class_attr(type(target), key)
        if isinstance(cls_attr, property):
            # the setter's own writes go through the proxy
            cls_attr.__set__(receiver, value)
            return True
        attrs = own_attrs(target)
        had_key = key in attrs
        old_value = attrs.get(key, _UNSET)
        if not self.shallow:
            value = to_raw(value)
            old_value = to_raw(old_value)
            if is_ref(old_value) and not is_ref(value):
                old_value.value = value
                return True
        setattr(target, key, value)
        if not had_key:
            trigger(target, TriggerOpTypes.ADD, key, value)
        elif has_changed(value, old_value):
            trigger(target, TriggerOpTypes.SET, key, value, old_value)
        return True

    def delete_property(self, target: Any, key: Any, receiver: Any) -> bool:
        attrs = own_attrs(target)
        had_key = key in attrs
        old_value = attrs.get(key, _UNSET)
        delattr(target, key)
        if had_key:
            trigger(target, TriggerOpTypes.DELETE, key, _UNSET, old_value)
        return True


class ReadonlyReactiveHandler(BaseReactiveHandler):
    def __init__(self, shallow: bool = False) -> None:
        super().__init__(True, shallow)

    def set(self, target: Any, key: Any, value: Any, receiver: Any) -> bool:
        logger.warning('Set operation on key "%s" failed: target is readonly.', key)
        return True

    def delete_property(self, target: Any, key: Any, receiver: Any) -> bool:
        logger.warning('Delete operation on key "%s" failed: target is readonly.', key)
        return True


mutable_handlers = MutableReactiveHandler()
shallow_reactive_handlers = MutableReactiveHandler(shallow=True)
readonly_handlers = ReadonlyReactiveHandler()
shallow_readonly_handlers = ReadonlyReactiveHandler(shallow=True)


def handlers_for(is_readonly: bool, shallow: bool) -> BaseReactiveHandler:
    if is_readonly:
        return shallow_readonly_handlers if shallow else readonly_handlers
    return shallow_reactive_handlers if shallow else mutable_handlers
