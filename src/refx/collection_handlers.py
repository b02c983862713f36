"""Instrumented method tables for map-like and set-like collections.

A ``dict`` or ``set`` wrapper never calls the raw collection's methods on its
caller's behalf. Each method here computes what a write actually changed and
calls ``trigger`` with the precise kind (ADD, SET, DELETE, CLEAR), and each
read tracks the precise key or the right iteration dependency:

- key-only iteration of a map tracks ``MAP_KEY_ITERATE_KEY``, so overwriting
  a value does not re-run code that only looked at keys;
- every other iteration, and ``len()``, tracks ``ITERATE_KEY``.

Iteration tracks up front and returns a lazy iterator that wraps each item as
it is produced. Both backends install the same tables.
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable, Iterable

from refx._shared import _UNSET, TargetKind, has_changed, is_map, is_object, is_ref
from refx._tracking import (
    ITERATE_KEY,
    MAP_KEY_ITERATE_KEY,
    TrackOpTypes,
    TriggerOpTypes,
    track,
    trigger,
)
from refx.reactive import (
    Wrapper,
    WrapperState,
    describe,
    reactive,
    readonly,
    state_of,
    to_raw,
    wrap_value,
)

logger = logging.getLogger("refx.collection_handlers")


def _wrap_element(state: WrapperState, value: Any) -> Any:
    if state.shallow or not is_object(value):
        return value
    return readonly(value) if state.readonly else reactive(value)


def check_identity_keys(raw: Any, key: Any) -> None:
    raw_key = to_raw(key)
    if raw_key is not key and raw_key in raw:
        logger.warning(
            "Reactive %s contains both the raw and reactive versions of the same object%s, "
            "which can lead to inconsistencies. Avoid differentiating between the raw and "
            "reactive versions of an object and only use the reactive version if possible.",
            type(raw).__name__,
            " as keys" if is_map(raw) else "",
        )


# -- shared reads ---------------------------------------------------------------


def _lookup(self: Any, key: Any, default: Any = _UNSET) -> Any:
    state = state_of(self)
    target, raw = state.target, state.raw
    raw_key = to_raw(key)
    if not state.readonly:
        if key is not raw_key:
            track(raw, TrackOpTypes.GET, key)
        track(raw, TrackOpTypes.GET, raw_key)
    if key in raw:
        return wrap_value(state, key, target[key])
    if raw_key is not key and raw_key in raw:
        return wrap_value(state, raw_key, target[raw_key])
    if target is not raw:
        # let the mutable wrapper underneath a read-only one track the miss
        target.get(key)
    elif not state.readonly and hasattr(type(raw), "__missing__"):
        value = raw[key]
        if key in raw:
            trigger(raw, TriggerOpTypes.ADD, key, value)
        return wrap_value(state, key, value)
    if default is _UNSET:
        raise KeyError(key)
    return default


def _get(self: Any, key: Any, default: Any = None) -> Any:
    return _lookup(self, key, default)


def _getitem(self: Any, key: Any) -> Any:
    return _lookup(self, key)


def _contains(self: Any, key: Any) -> bool:
    state = state_of(self)
    target = state.target
    raw_key = to_raw(key)
    if not state.readonly:
        if key is not raw_key:
            track(state.raw, TrackOpTypes.HAS, key)
        track(state.raw, TrackOpTypes.HAS, raw_key)
    if key is raw_key:
        return key in target
    return key in target or raw_key in target


def _len(self: Any) -> int:
    state = state_of(self)
    if not state.readonly:
        track(state.raw, TrackOpTypes.ITERATE, ITERATE_KEY)
    return len(state.target)


def _bool(self: Any) -> bool:
    return len(self) > 0


def _make_iteration(method: str) -> Callable[[Any], Any]:
    def iteration(self: Any) -> Any:
        state = state_of(self)
        target = state.target
        is_map = state.kind is TargetKind.MAP
        key_only = is_map and method in ("__iter__", "keys")
        if not state.readonly:
            track(state.raw, TrackOpTypes.ITERATE, MAP_KEY_ITERATE_KEY if key_only else ITERATE_KEY)
        inner = iter(target) if method == "__iter__" else iter(getattr(target, method)())
        if method == "items":
            return ((_wrap_element(state, k), wrap_value(state, k, v)) for k, v in inner)
        if method == "values":
            return (wrap_value(state, None, v) for v in inner)
        return (_wrap_element(state, item) for item in inner)

    iteration.__name__ = method
    return iteration


def _shallow_copy(raw: Any) -> Any:
    return raw.copy() if hasattr(raw, "copy") else type(raw)(raw)


def _copy(self: Any) -> Any:
    """Plain shallow copy of the raw collection."""
    state = state_of(self)
    if not state.readonly:
        track(state.raw, TrackOpTypes.ITERATE, ITERATE_KEY)
    return _shallow_copy(state.raw)


def _eq(self: Any, other: object) -> bool:
    state = state_of(self)
    if not state.readonly:
        track(state.raw, TrackOpTypes.ITERATE, ITERATE_KEY)
    return state.raw == to_raw(other)


def _ne(self: Any, other: object) -> bool:
    return not _eq(self, other)


def _repr(self: Any) -> str:
    return describe(self)


def _make_set_read(method: str) -> Callable[..., Any]:
    def set_read(self: Any, *others: Any) -> Any:
        state = state_of(self)
        if not state.readonly:
            track(state.raw, TrackOpTypes.ITERATE, ITERATE_KEY)
        result = getattr(state.raw, method)(*[to_raw(other) for other in others])
        if isinstance(result, (set, frozenset)):
            return type(result)(_wrap_element(state, item) for item in result)
        return result

    set_read.__name__ = method
    return set_read


# -- map writes -----------------------------------------------------------------


def _locate(raw: Any, key: Any) -> tuple[Any, bool]:
    had_key = key in raw
    if not had_key:
        key = to_raw(key)
        had_key = key in raw
    else:
        check_identity_keys(raw, key)
    return key, had_key


def _setitem(self: Any, key: Any, value: Any) -> None:
    state = state_of(self)
    raw = state.raw
    value = to_raw(value)
    key, had_key = _locate(raw, key)
    old = raw.get(key, _UNSET) if had_key else _UNSET
    if not state.shallow and is_ref(old) and not is_ref(value):
        old.value = value
        return
    raw[key] = value
    if not had_key:
        trigger(raw, TriggerOpTypes.ADD, key, value)
    elif has_changed(value, old):
        trigger(raw, TriggerOpTypes.SET, key, value, old)


def _remove_key(self: Any, key: Any) -> tuple[bool, Any]:
    raw = state_of(self).raw
    key, had_key = _locate(raw, key)
    if not had_key:
        return False, _UNSET
    if is_map(raw):
        old = raw[key]
        del raw[key]
    else:
        old = key
        raw.discard(key)
    trigger(raw, TriggerOpTypes.DELETE, key, _UNSET, old)
    return True, old


def _delitem(self: Any, key: Any) -> None:
    removed, _old = _remove_key(self, key)
    if not removed:
        raise KeyError(key)


def _pop_key(self: Any, key: Any, default: Any = _UNSET) -> Any:
    removed, old = _remove_key(self, key)
    if removed:
        return wrap_value(state_of(self), key, old)
    if default is _UNSET:
        raise KeyError(key)
    return default


def _popitem(self: Any) -> tuple[Any, Any]:
    state = state_of(self)
    raw = state.raw
    if not raw:
        raise KeyError("popitem(): dictionary is empty")
    key, value = raw.popitem()
    trigger(raw, TriggerOpTypes.DELETE, key, _UNSET, value)
    return _wrap_element(state, key), wrap_value(state, key, value)


def _setdefault(self: Any, key: Any, default: Any = None) -> Any:
    raw = state_of(self).raw
    if key not in raw and to_raw(key) not in raw:
        _setitem(self, key, default)
    return _lookup(self, key)


def _update(self: Any, other: Any = (), **kwargs: Any) -> None:
    items = other.items() if hasattr(other, "keys") else other
    for key, value in items:
        _setitem(self, key, value)
    for key, value in kwargs.items():
        _setitem(self, key, value)


def _map_ior(self: Any, other: Any) -> Any:
    _update(self, other)
    return self


def _clear(self: Any) -> None:
    raw = state_of(self).raw
    had_items = len(raw) != 0
    old_target = _shallow_copy(raw)
    raw.clear()
    if had_items:
        trigger(raw, TriggerOpTypes.CLEAR, _UNSET, _UNSET, _UNSET, old_target)


# -- set writes -----------------------------------------------------------------


def _add(self: Any, value: Any) -> None:
    raw = state_of(self).raw
    value = to_raw(value)
    if value not in raw:
        raw.add(value)
        trigger(raw, TriggerOpTypes.ADD, value, value)


def _discard(self: Any, value: Any) -> None:
    _remove_key(self, value)


def _remove(self: Any, value: Any) -> None:
    removed, _old = _remove_key(self, value)
    if not removed:
        raise KeyError(value)


def _pop_element(self: Any) -> Any:
    state = state_of(self)
    raw = state.raw
    if not raw:
        raise KeyError("pop from an empty set")
    value = raw.pop()
    trigger(raw, TriggerOpTypes.DELETE, value, _UNSET, value)
    return _wrap_element(state, value)


def _set_update(self: Any, *others: Iterable[Any]) -> None:
    for other in others:
        for value in other:
            _add(self, value)


def _difference_update(self: Any, *others: Iterable[Any]) -> None:
    for other in others:
        for value in list(other):
            _remove_key(self, value)


def _ior(self: Any, other: Iterable[Any]) -> Any:
    _set_update(self, other)
    return self


def _isub(self: Any, other: Iterable[Any]) -> Any:
    _difference_update(self, other)
    return self


# -- read-only replacements -----------------------------------------------------


def _readonly_method(kind: str, returns_self: bool = False) -> Callable[..., Any]:
    def readonly_method(self: Any, *args: Any, **kwargs: Any) -> Any:
        key = f'on key "{args[0]}" ' if args else ""
        logger.warning("%s operation %sfailed: target is readonly.", kind, key)
        return self if returns_self else None

    return readonly_method


def _readonly_setdefault(self: Any, key: Any, default: Any = None) -> Any:
    raw = state_of(self).raw
    if key in raw or to_raw(key) in raw:
        return _lookup(self, key)
    logger.warning('Set operation on key "%s" failed: target is readonly.', key)
    return default


_SET_READS = (
    "union",
    "intersection",
    "difference",
    "symmetric_difference",
    "issubset",
    "issuperset",
    "isdisjoint",
    "__or__",
    "__and__",
    "__sub__",
    "__xor__",
    "__le__",
    "__lt__",
    "__ge__",
    "__gt__",
)


@functools.lru_cache(maxsize=None)
def get_instrumentations(kind: TargetKind, is_readonly: bool) -> dict[str, Callable[..., Any]]:
    """Method table installed on every collection wrapper of this kind."""
    table: dict[str, Callable[..., Any]] = {
        "__contains__": _contains,
        "__len__": _len,
        "__bool__": _bool,
        "__iter__": _make_iteration("__iter__"),
        "copy": _copy,
        "__eq__": _eq,
        "__ne__": _ne,
        "__repr__": _repr,
    }
    if kind is TargetKind.MAP:
        table.update(
            get=_get,
            __getitem__=_getitem,
            keys=_make_iteration("keys"),
            values=_make_iteration("values"),
            items=_make_iteration("items"),
            __or__=_make_set_read("__or__"),
        )
        if is_readonly:
            table.update(
                __setitem__=_readonly_method("Set"),
                setdefault=_readonly_setdefault,
                update=_readonly_method("Set"),
                __delitem__=_readonly_method("Delete"),
                pop=_readonly_method("Delete"),
                popitem=_readonly_method("Delete"),
                __ior__=_readonly_method("Set", returns_self=True),
                clear=_readonly_method("Clear"),
            )
        else:
            table.update(
                __setitem__=_setitem,
                setdefault=_setdefault,
                update=_update,
                __delitem__=_delitem,
                pop=_pop_key,
                popitem=_popitem,
                clear=_clear,
                __ior__=_map_ior,
            )
    else:
        table.update({name: _make_set_read(name) for name in _SET_READS})
        if is_readonly:
            table.update(
                add=_readonly_method("Add"),
                discard=_readonly_method("Delete"),
                remove=_readonly_method("Delete"),
                pop=_readonly_method("Delete"),
                clear=_readonly_method("Clear"),
                update=_readonly_method("Add"),
                difference_update=_readonly_method("Delete"),
                __ior__=_readonly_method("Add", returns_self=True),
                __isub__=_readonly_method("Delete", returns_self=True),
            )
        else:
            table.update(
                add=_add,
                discard=_discard,
                remove=_remove,
                pop=_pop_element,
                clear=_clear,
                update=_set_update,
                difference_update=_difference_update,
                __ior__=_ior,
                __isub__=_isub,
            )
    return table


def _dispatch(name: str) -> Callable[..., Any]:
    def method(self: Any, *args: Any) -> Any:
        state = state_of(self)
        impl = state.instrumentations.get(name)
        if impl is None:
            if name in _SET_READS:
                return NotImplemented
            raise TypeError(f"{type(state.raw).__name__!r} object does not support {name}")
        return impl(self, *args)

    method.__name__ = name
    return method


class CollectionWrapper(Wrapper):
    """Routes the collection protocol to the wrapper's instrumentation table."""

    __slots__ = ()
    __hash__ = None  # type: ignore[assignment]


def _install_dispatchers() -> None:
    names: set[str] = set()
    for kind in (TargetKind.MAP, TargetKind.SET):
        for is_readonly in (False, True):
            names.update(name for name in get_instrumentations(kind, is_readonly) if name.startswith("__"))
    for name in names:
        setattr(CollectionWrapper, name, _dispatch(name))


_install_dispatchers()
