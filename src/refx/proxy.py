"""Proxy objects over raw targets (the native interception backend).

Python has no single hook for "any operation on this object", so each target
kind gets a proxy class that overrides the hooks that kind needs:

- records: ``__getattribute__``, ``__setattr__`` and ``__delattr__`` route
  every attribute access to the variant's handler traps;
- lists: the sequence dunders and list methods from ``ListWrapper``, with
  index and length access going through the same traps;
- maps and sets: attribute access resolves names in the instrumentation
  table first and falls back to the raw collection.

Proxies report the raw object's class through ``__class__``, so
``isinstance(reactive([]), list)`` holds.
"""

from __future__ import annotations

import types
from typing import Any

from refx._array import ListWrapper
from refx._shared import TargetKind
from refx._tracking import LENGTH_KEY
from refx.base_handlers import BaseReactiveHandler, handlers_for
from refx.collection_handlers import CollectionWrapper, get_instrumentations
from refx.reactive import STATE_ATTR, RecordWrapper, Wrapper, WrapperState


class Proxy(Wrapper):
    __slots__ = ("__refx_state__", "__weakref__")

    def __init__(self, state: WrapperState) -> None:
        object.__setattr__(self, STATE_ATTR, state)


def _state(proxy: Any) -> WrapperState:
    return object.__getattribute__(proxy, STATE_ATTR)


def _handler(proxy: Any) -> BaseReactiveHandler:
    state = _state(proxy)
    return handlers_for(state.readonly, state.shallow)


class RecordProxy(RecordWrapper, Proxy):
    __slots__ = ()

    def __getattribute__(self, name: str) -> Any:
        state = _state(self)
        if name == STATE_ATTR:
            return state
        if name == "__class__":
            return state.raw.__class__
        return _handler(self).get(state.target, name, self)

    def __setattr__(self, name: str, value: Any) -> None:
        _handler(self).set(_state(self).target, name, value, self)

    def __delattr__(self, name: str) -> None:
        _handler(self).delete_property(_state(self).target, name, self)

    def __dir__(self) -> list[str]:
        return dir(_state(self).raw)


class ListProxy(ListWrapper, Proxy):
    __slots__ = ()

    def _read_index(self, index: int) -> Any:
        return _handler(self).get(_state(self).target, index, self)

    def _write_index(self, index: int, value: Any) -> None:
        _handler(self).set(_state(self).target, index, value, self)

    def _read_length(self) -> int:
        return _handler(self).get(_state(self).target, LENGTH_KEY, self)


class CollectionProxy(CollectionWrapper, Proxy):
    __slots__ = ()

    def __getattribute__(self, name: str) -> Any:
        state = _state(self)
        if name == STATE_ATTR:
            return state
        if name == "__class__":
            return state.raw.__class__
        impl = state.instrumentations.get(name)
        if impl is not None and hasattr(type(state.raw), name):
            return types.MethodType(impl, self)
        return getattr(state.target, name)


_PROXY_CLASSES = {
    TargetKind.RECORD: RecordProxy,
    TargetKind.LIST: ListProxy,
    TargetKind.MAP: CollectionProxy,
    TargetKind.SET: CollectionProxy,
}


def create_proxy(target: Any, is_readonly: bool, shallow: bool, kind: TargetKind) -> Wrapper:
    state = WrapperState(target, is_readonly, shallow, kind)
    if kind in (TargetKind.MAP, TargetKind.SET):
        state.instrumentations = get_instrumentations(kind, is_readonly)
    return _PROXY_CLASSES[kind](state)
