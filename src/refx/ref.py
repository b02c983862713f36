"""Boxed single values with their own dependency set.

A ref holds one value behind ``.value``. Reading it inside an effect
subscribes the effect; writing a different value re-runs subscribers.
Objects assigned into a (non-shallow) ref are made reactive, while changes
are detected against the raw value, so writing the raw or the wrapped form of
the same object is not a change.

    count = ref(0)
    effect(lambda: print(count.value))   # prints 0
    count.value += 1                     # prints 1
"""

from __future__ import annotations

import logging
from collections.abc import MutableMapping
from typing import Any, Callable, Generic, Iterator, TypeVar

from refx._shared import _UNSET, TargetKind, has_changed, is_map, is_ref, target_kind
from refx._tracking import DebuggerEvent, Dep, TrackOpTypes, TriggerOpTypes, current_context
from refx.backend import should_use_proxy
from refx.reactive import is_proxy, is_reactive, to_raw, to_reactive

logger = logging.getLogger("refx.ref")

T = TypeVar("T")

__all__ = [
    "BaseRef",
    "Ref",
    "custom_ref",
    "is_ref",
    "proxy_refs",
    "ref",
    "shallow_ref",
    "to_ref",
    "to_refs",
    "trigger_ref",
    "unref",
]


class BaseRef(Generic[T]):
    """Anything with a ``.value`` backed by a single Dep."""

    __slots__ = ("dep", "__weakref__")

    __refx_is_ref__ = True
    # boxes are never wrapped themselves
    __refx_skip__ = True

    def __init__(self) -> None:
        self.dep: Dep | None = None


def track_ref_value(ref: BaseRef[Any]) -> None:
    ctx = current_context.get()
    if ctx.is_tracking():
        if ref.dep is None:
            ref.dep = Dep()
        ctx.track_effects(ref.dep, DebuggerEvent(ctx.active_effect, ref, TrackOpTypes.GET, "value"))


def trigger_ref_value(ref: BaseRef[Any], new_value: Any = None) -> None:
    if ref.dep is not None:
        event = DebuggerEvent(None, ref, TriggerOpTypes.SET, "value", new_value)
        current_context.get().trigger_effects(ref.dep, event)


class Ref(BaseRef[T]):
    __slots__ = ("_raw_value", "_value", "_shallow")

    def __init__(self, value: T, shallow: bool = False) -> None:
        super().__init__()
        self._shallow = shallow
        self._raw_value = value if shallow else to_raw(value)
        self._value = value if shallow else to_reactive(value)

    @property
    def value(self) -> T:
        track_ref_value(self)
        return self._value

    @value.setter
    def value(self, new_value: T) -> None:
        raw = new_value if self._shallow else to_raw(new_value)
        if has_changed(raw, self._raw_value):
            self._raw_value = raw
            self._value = new_value if self._shallow else to_reactive(new_value)
            trigger_ref_value(self, new_value)

    def __repr__(self) -> str:
        return f"Ref({self._value!r})"


def ref(value: Any = None) -> Ref[Any]:
    """Box ``value``. A ref passed in is returned as is."""
    if is_ref(value):
        return value
    return Ref(value)


def shallow_ref(value: Any = None) -> Ref[Any]:
    """Box ``value`` without making it reactive."""
    if is_ref(value):
        return value
    return Ref(value, shallow=True)


def trigger_ref(ref: BaseRef[Any]) -> None:
    """Re-run subscribers of ``ref``, e.g. after mutating a shallow ref's contents."""
    trigger_ref_value(ref, ref.value)


def unref(value: Any) -> Any:
    return value.value if is_ref(value) else value


class CustomRef(BaseRef[T]):
    __slots__ = ("_get", "_set")

    def __init__(self, factory: Callable[[Callable[[], None], Callable[[], None]], tuple[Callable[[], T], Callable[[T], None]]]) -> None:
        super().__init__()
        self._get, self._set = factory(lambda: track_ref_value(self), lambda: trigger_ref_value(self))

    @property
    def value(self) -> T:
        return self._get()

    @value.setter
    def value(self, new_value: T) -> None:
        self._set(new_value)


def custom_ref(factory: Callable[..., tuple[Callable[[], T], Callable[[T], None]]]) -> CustomRef[T]:
    """Ref with user-controlled tracking.

    ``factory(track, trigger)`` returns a ``(get, set)`` pair; ``get`` should
    call ``track()`` and ``set`` should call ``trigger()`` when it changes
    something.
    """
    return CustomRef(factory)


class ObjectRef(BaseRef[T]):
    """A ref that reads and writes one key of a (usually reactive) object."""

    __slots__ = ("_object", "_key", "_default")

    def __init__(self, obj: Any, key: Any, default: Any = _UNSET) -> None:
        super().__init__()
        self._object = obj
        self._key = key
        self._default = default

    @property
    def value(self) -> T:
        from refx.def_observer import get_key

        value = get_key(self._object, self._key, _UNSET)
        if value is _UNSET:
            return None if self._default is _UNSET else self._default
        return value

    @value.setter
    def value(self, new_value: T) -> None:
        from refx.def_observer import set_key

        set_key(self._object, self._key, new_value)

    def __repr__(self) -> str:
        return f"ObjectRef({self._key!r})"


def to_ref(obj: Any, key: Any, default: Any = _UNSET) -> BaseRef[Any]:
    """Ref bound to ``obj[key]`` (or ``obj.key`` for records)."""
    from refx.def_observer import get_key

    current = get_key(obj, key, None)
    if is_ref(current):
        return current
    return ObjectRef(obj, key, default)


def to_refs(obj: Any) -> Any:
    """One ``ObjectRef`` per key of a reactive object: a list for lists, a dict otherwise."""
    from refx.def_observer import own_keys

    if not is_proxy(obj):
        logger.warning("to_refs() expects a reactive object but received a plain one.")
    keys = own_keys(obj)
    if isinstance(obj, list):
        return [to_ref(obj, index) for index in keys]
    return {key: to_ref(obj, key) for key in keys}


def _write_through(old_value: Any, value: Any) -> bool:
    if is_ref(old_value) and not is_ref(value):
        old_value.value = value
        return True
    return False


class RefsView:
    """Attribute view over a record: refs read unboxed, plain writes land in the ref."""

    __slots__ = ("_target",)

    def __init__(self, target: Any) -> None:
        object.__setattr__(self, "_target", target)

    def __getattr__(self, key: str) -> Any:
        return unref(getattr(self._target, key))

    def __setattr__(self, key: str, value: Any) -> None:
        if not _write_through(getattr(self._target, key, None), value):
            setattr(self._target, key, value)

    def __delattr__(self, key: str) -> None:
        delattr(self._target, key)

    def __dir__(self) -> list[str]:
        return dir(self._target)

    def __repr__(self) -> str:
        return f"RefsView({self._target!r})"


class RefsMapView(MutableMapping):
    """The same view over a mapping, by key."""

    __slots__ = ("_target",)

    def __init__(self, target: Any) -> None:
        self._target = target

    def __getitem__(self, key: Any) -> Any:
        return unref(self._target[key])

    def __setitem__(self, key: Any, value: Any) -> None:
        if not _write_through(self._target.get(key), value):
            self._target[key] = value

    def __delitem__(self, key: Any) -> None:
        del self._target[key]

    def __iter__(self) -> Iterator[Any]:
        return iter(self._target)

    def __len__(self) -> int:
        return len(self._target)

    def __repr__(self) -> str:
        return f"RefsMapView({self._target!r})"


def proxy_refs(obj: T) -> T:
    """View of ``obj`` that unboxes refs on read and writes plain values into them.

    Reactive objects already behave this way and are returned unchanged.
    Records get an intercepting view, or accessor pairs when proxies are
    disabled; mappings get a mapping view on either backend.
    """
    if is_reactive(obj):
        return obj
    if is_map(obj):
        return RefsMapView(obj)
    if target_kind(obj) is not TargetKind.RECORD:
        logger.warning("target cannot be made reactive: %r", obj)
        return obj
    if should_use_proxy():
        return RefsView(obj)
    from refx.def_observer import def_proxy_ref

    return def_proxy_ref(obj)
