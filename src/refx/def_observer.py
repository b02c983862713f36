"""Shadow objects built from accessor pairs, for when proxies are off.

Instead of intercepting operations, ``def_proxy`` builds a shadow object and
gives it one accessor pair (a ``property``) per key that exists right now:

- a record gets a per-wrapper subclass of its own class, holding one property
  per instance attribute, so methods and class attributes keep working with
  the shadow as ``self``;
- a list gets a ``ShadowList`` holding one accessor per index plus one for
  its length. After a method changes the length, accessors are defined for
  the new indices and dropped past the new end before the change is
  reported;
- a map or set gets a shadow class carrying the instrumentation table, plus
  read-through accessors for the raw collection's other public attributes.

Accessors only see keys that existed when they were defined. Adding,
deleting, testing for and enumerating keys go through the helpers at the
bottom of this module, which work the same on either backend and on raw
objects:

    state = reactive(SimpleNamespace(a=1))
    set_key(state, "b", 2)     # observed: defines the accessor, triggers ADD
    has_key(state, "b")        # tracked membership test
    own_keys(state)            # tracked enumeration
    del_key(state, "b")
"""

from __future__ import annotations

import functools
import logging
import types
from typing import Any

from refx import _anchor
from refx._array import ListWrapper
from refx._shared import _UNSET, TargetKind, has_changed, is_dunder, is_ref, target_kind
from refx._tracking import LENGTH_KEY, TrackOpTypes, TriggerOpTypes, track, trigger
from refx.base_handlers import handlers_for, is_class_data, lookup_class_attr, own_attrs
from refx.collection_handlers import CollectionWrapper, get_instrumentations
from refx.reactive import (
    STATE_ATTR,
    RecordWrapper,
    Wrapper,
    WrapperState,
    is_proxy,
    state_of,
    to_raw,
    wrap_value,
)

logger = logging.getLogger("refx.def_observer")


def define_reactive(target: Any, key: Any, is_readonly: bool, shallow: bool) -> property:
    """Accessor pair for ``key`` of ``target``: the getter tracks, the setter triggers."""

    def reactive_getter(shadow: Any) -> Any:
        state = state_of(shadow)
        if state.kind is TargetKind.LIST:
            if key == LENGTH_KEY:
                value = len(target)
            else:
                value = target[key]
        else:
            value = getattr(target, key)
        if not is_readonly:
            track(state.raw, TrackOpTypes.GET, key)
        if key == LENGTH_KEY and state.kind is TargetKind.LIST:
            return value
        return wrap_value(state, key, value)

    def reactive_setter(shadow: Any, value: Any) -> None:
        if is_readonly:
            logger.warning('Set operation on key "%s" failed: target is readonly.', key)
            return
        raw = state_of(shadow).raw
        if type(key) is int:
            old_value = raw[key]
        else:
            old_value = own_attrs(raw).get(key, _UNSET)
        if not shallow:
            value = to_raw(value)
            old_value = to_raw(old_value)
            if type(key) is not int and is_ref(old_value) and not is_ref(value):
                old_value.value = value
                return
        if type(key) is int:
            raw[key] = value
        else:
            setattr(raw, key, value)
        if old_value is _UNSET:
            trigger(raw, TriggerOpTypes.ADD, key, value)
        elif has_changed(value, old_value):
            trigger(raw, TriggerOpTypes.SET, key, value, old_value)

    def reactive_deleter(shadow: Any) -> None:
        if is_readonly:
            logger.warning('Delete operation on key "%s" failed: target is readonly.', key)
            return
        raw = state_of(shadow).raw
        attrs = own_attrs(raw)
        if key not in attrs:
            raise AttributeError(key)
        old_value = attrs[key]
        delattr(raw, key)
        if not is_class_data(type(raw), key):
            delattr(type(shadow), key)
        trigger(raw, TriggerOpTypes.DELETE, key, _UNSET, old_value)

    if type(key) is int or key == LENGTH_KEY:
        return property(reactive_getter, reactive_setter)
    return property(reactive_getter, reactive_setter, reactive_deleter)


# -- records ----------------------------------------------------------------------


class ShadowRecord(RecordWrapper):
    """Mixin placed in front of the raw class in a record shadow's MRO."""

    __slots__ = ()

    @property
    def __dict__(self) -> types.MappingProxyType:
        return types.MappingProxyType({key: get_key(self, key) for key in own_keys(self)})

    def __getattr__(self, key: str) -> Any:
        # only reached for names with no accessor and no class attribute
        state = state_of(self)
        fallback = lookup_class_attr(type(state.raw), "__getattr__")
        if not is_dunder(key) and not state.readonly:
            track(state.raw, TrackOpTypes.GET, key)
        if isinstance(fallback, types.FunctionType):
            value = fallback(self, key)
            return value if is_dunder(key) else wrap_value(state, key, value)
        raise AttributeError(f"{type(state.raw).__name__!r} object has no attribute {key!r}")


def _has_accessor(shadow: Any, key: Any) -> bool:
    return isinstance(type(shadow).__dict__.get(key), property)


# Class attributes the metaclass reads back from the class itself.
_CLASS_MACHINERY = frozenset({"_abc_impl"})


def _define_record_accessor(shadow: Any, key: str) -> None:
    state = state_of(shadow)
    setattr(type(shadow), key, define_reactive(state.target, key, state.readonly, state.shallow))


def _new_instance(cls: type) -> Any:
    try:
        return object.__new__(cls)
    except TypeError:
        return cls.__new__(cls)


def _def_record(state: WrapperState) -> Any:
    raw_cls = type(state.raw)
    namespace = {
        STATE_ATTR: state,
        "__module__": raw_cls.__module__,
        "__qualname__": f"Reactive{raw_cls.__qualname__}",
    }
    shadow_cls = type(f"Reactive{raw_cls.__name__}", (ShadowRecord, raw_cls), namespace)
    shadow = _new_instance(shadow_cls)
    for key in list(own_attrs(state.raw)):
        if isinstance(key, str) and not key.startswith("__"):
            _define_record_accessor(shadow, key)
    # class-level defaults, so a read before the first assignment is tracked
    for klass in raw_cls.__mro__:
        for key in list(klass.__dict__):
            if key in _CLASS_MACHINERY or _has_accessor(shadow, key) or not is_class_data(raw_cls, key):
                continue
            _define_record_accessor(shadow, key)
    return shadow


# -- lists ----------------------------------------------------------------------


class ShadowList(ListWrapper):
    """A fresh list-like object whose positions are accessor pairs."""

    __slots__ = (STATE_ATTR, "_slots", "_length", "__weakref__")

    def __init__(self, state: WrapperState) -> None:
        setattr(self, STATE_ATTR, state)
        self._length = define_reactive(state.target, LENGTH_KEY, state.readonly, state.shallow)
        self._slots: list[property] = []
        self._define_slots(0, len(state.raw))

    def _define_slots(self, start: int, stop: int) -> None:
        state = state_of(self)
        self._slots.extend(
            define_reactive(state.target, index, state.readonly, state.shallow) for index in range(start, stop)
        )

    def _read_index(self, index: int) -> Any:
        if index < len(self._slots):
            return self._slots[index].fget(self)
        # positions added behind the shadow's back carry no accessor
        return state_of(self).target[index]

    def _write_index(self, index: int, value: Any) -> None:
        if index < len(self._slots):
            self._slots[index].fset(self, value)
        else:
            state_of(self).raw[index] = value

    def _read_length(self) -> int:
        return self._length.fget(self)

    def _resize(self, old_length: int, new_length: int) -> None:
        del self._slots[new_length:]
        self._define_slots(len(self._slots), new_length)


# -- collections ----------------------------------------------------------------


class ShadowCollection(CollectionWrapper):
    __slots__ = (STATE_ATTR, "__weakref__")

    def __init__(self, state: WrapperState) -> None:
        setattr(self, STATE_ATTR, state)


def _pass_through(name: str) -> property:
    def read(shadow: Any) -> Any:
        return getattr(state_of(shadow).target, name)

    return property(read)


@functools.lru_cache(maxsize=None)
def _collection_class(raw_cls: type, kind: TargetKind, is_readonly: bool) -> type:
    table = get_instrumentations(kind, is_readonly)
    namespace: dict[str, Any] = {"__slots__": ()}
    for name in dir(raw_cls):
        if not name.startswith("_") and name not in table:
            namespace[name] = _pass_through(name)
    for name, method in table.items():
        if name.startswith("__") or hasattr(raw_cls, name):
            namespace[name] = method
    return type(f"Reactive{raw_cls.__name__}", (ShadowCollection,), namespace)


def def_proxy(target: Any, is_readonly: bool, shallow: bool, kind: TargetKind) -> Wrapper:
    """Build the descriptor-emulation shadow of ``target``."""
    state = WrapperState(target, is_readonly, shallow, kind)
    if kind is TargetKind.LIST:
        return ShadowList(state)
    if kind in (TargetKind.MAP, TargetKind.SET):
        state.instrumentations = get_instrumentations(kind, is_readonly)
        return _collection_class(type(state.raw), kind, is_readonly)(state)
    try:
        return _def_record(state)
    except TypeError:
        logger.warning("value cannot be made reactive: %r", target)
        return target


def is_define(value: Any) -> bool:
    """Whether ``value`` is a descriptor-emulation shadow."""
    return isinstance(value, (ShadowRecord, ShadowList, ShadowCollection))


# -- uniform helpers ------------------------------------------------------------


def _shadows_of(raw: Any) -> list[Any]:
    """Record shadows over ``raw``, including read-only ones over its wrappers."""
    maps = (
        _anchor.reactive_map,
        _anchor.shallow_reactive_map,
        _anchor.readonly_map,
        _anchor.shallow_readonly_map,
    )
    seen: list[Any] = []
    pending = [raw]
    while pending:
        key = pending.pop()
        for proxy_map in maps:
            wrapper = proxy_map.get(key)
            if wrapper is None or any(wrapper is known for known in seen):
                continue
            seen.append(wrapper)
            pending.append(wrapper)
    return [wrapper for wrapper in seen if isinstance(wrapper, ShadowRecord)]


def get_key(target: Any, key: Any, default: Any = _UNSET) -> Any:
    """Tracked read of ``key``; returns ``default`` (or raises) when it is missing."""
    state = state_of(target)
    kind = state.kind if state is not None else None
    try:
        if kind is TargetKind.LIST or isinstance(target, list):
            return len(target) if key == LENGTH_KEY else target[key]
        if kind in (TargetKind.MAP, TargetKind.SET) or (state is None and hasattr(target, "keys")):
            return target[key]
        if isinstance(target, ShadowRecord) and not _has_accessor(target, key):
            if is_proxy(state.target):
                return wrap_value(state, key, get_key(state.target, key))
            if not state.readonly:
                track(state.raw, TrackOpTypes.GET, key)
            if key not in own_attrs(state.raw):
                return getattr(target, key)
            return wrap_value(state, key, getattr(state.raw, key))
        return getattr(target, key)
    except (AttributeError, IndexError, KeyError):
        if default is _UNSET:
            raise
        return default


def set_key(target: Any, key: Any, value: Any) -> Any:
    """Write ``key``, adding it when it is new. Observed on both backends."""
    state = state_of(target)
    if state is None:
        _set_raw(target, key, value)
        return value

    if state.kind is TargetKind.LIST:
        length = len(state.raw)
        if key == LENGTH_KEY:
            target.set_length(value)
        elif -length <= key < length:
            target[key] = value
        else:
            padding = key - length

            def grow(raw: list[Any]) -> None:
                raw.extend([None] * padding)
                raw.append(target._store(value))

            target._mutate("set", length, grow)
    elif state.kind is TargetKind.MAP:
        target[key] = value
    elif state.kind is TargetKind.SET:
        target.add(key)
    elif not isinstance(target, ShadowRecord) or _has_accessor(target, key):
        setattr(target, key, value)
    elif isinstance(lookup_class_attr(type(state.raw), key), property):
        setattr(target, key, value)
    elif state.readonly:
        logger.warning('Set operation on key "%s" failed: target is readonly.', key)
    else:
        raw = state.raw
        had_key = key in own_attrs(raw)
        if had_key:
            # added behind the shadow's back: adopt it, then write through
            _define_record_accessor(target, key)
            setattr(target, key, value)
        else:
            setattr(raw, key, value if state.shallow else to_raw(value))
            for shadow in _shadows_of(raw):
                if not _has_accessor(shadow, key):
                    _define_record_accessor(shadow, key)
            trigger(raw, TriggerOpTypes.ADD, key, value)
    return value


def _set_raw(target: Any, key: Any, value: Any) -> None:
    if isinstance(target, list) or hasattr(target, "keys"):
        target[key] = value
        return
    setattr(target, key, value)
    # a shadow built earlier learns the new key without a notification
    for shadow in _shadows_of(target):
        if not _has_accessor(shadow, key):
            _define_record_accessor(shadow, key)


def del_key(target: Any, key: Any) -> None:
    """Remove ``key`` if present. Observed on both backends."""
    state = state_of(target)
    if state is None:
        if hasattr(target, "keys"):
            target.pop(key, None)
            return
        if isinstance(target, list):
            del target[key]
            return
        if key in own_attrs(target):
            delattr(target, key)
        for shadow in _shadows_of(target):
            if _has_accessor(shadow, key):
                delattr(type(shadow), key)
        return

    if state.kind is TargetKind.LIST:
        if type(key) is int and -len(state.raw) <= key < len(state.raw):
            del target[key]
    elif state.kind is TargetKind.MAP:
        target.pop(key, None)
    elif state.kind is TargetKind.SET:
        target.discard(key)
    elif state.readonly:
        logger.warning('Delete operation on key "%s" failed: target is readonly.', key)
    elif key not in own_attrs(state.raw):
        return
    elif not isinstance(target, ShadowRecord) or _has_accessor(target, key):
        delattr(target, key)
    else:
        raw = state.raw
        old_value = own_attrs(raw)[key]
        delattr(raw, key)
        trigger(raw, TriggerOpTypes.DELETE, key, _UNSET, old_value)


def has_key(target: Any, key: Any) -> bool:
    """Tracked membership test for ``key``."""
    state = state_of(target)
    if state is None:
        if isinstance(target, list):
            return key == LENGTH_KEY or (type(key) is int and 0 <= key < len(target))
        if hasattr(target, "keys") or hasattr(target, "add"):
            return key in target
        return hasattr(target, key)
    if state.kind in (TargetKind.MAP, TargetKind.SET):
        return key in target
    return handlers_for(state.readonly, state.shallow).has(state.target, key, target)


def own_keys(target: Any) -> list[Any]:
    """Tracked enumeration of ``target``'s keys (indices for lists)."""
    state = state_of(target)
    if state is None:
        if isinstance(target, list):
            return list(range(len(target)))
        if hasattr(target, "keys") or hasattr(target, "add"):
            return list(target)
        return list(own_attrs(target))
    if state.kind in (TargetKind.MAP, TargetKind.SET):
        return list(target)
    return handlers_for(state.readonly, state.shallow).own_keys(state.target, target)


# -- ref unwrapping views ---------------------------------------------------------


def _ref_accessor(target: Any, key: str) -> property:
    def getter(self: Any) -> Any:
        value = getattr(target, key)
        return value.value if is_ref(value) else value

    def setter(self: Any, value: Any) -> None:
        old_value = getattr(target, key, None)
        if is_ref(old_value) and not is_ref(value):
            old_value.value = value
        else:
            setattr(target, key, value)

    return property(getter, setter)


def def_proxy_ref(target: Any) -> Any:
    """Accessor-pair view of a record that unboxes refs on read.

    Plain writes to a key holding a ref update the ref. Keys added to
    ``target`` after the call are not covered.
    """
    if is_proxy(target) or target_kind(target) is not TargetKind.RECORD:
        logger.warning("target cannot be made reactive: %r", target)
        return target
    cls = type(target)
    namespace = {
        key: _ref_accessor(target, key)
        for key in own_attrs(target)
        if isinstance(key, str) and not key.startswith("__")
    }
    namespace["__module__"] = cls.__module__
    namespace["__qualname__"] = f"RefsProxy{cls.__qualname__}"
    try:
        view_cls = type(f"RefsProxy{cls.__name__}", (cls,), namespace)
        return _new_instance(view_cls)
    except TypeError:
        logger.warning("target cannot be made reactive: %r", target)
        return target
