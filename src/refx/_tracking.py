"""Dependency tracking engine: the heart of refx.

Every read of reactive state calls ``track(target, type, key)``; every write
calls ``trigger(target, type, key, ...)``. The engine keeps a registry
``target -> {key -> Dep}`` where a ``Dep`` is the ordered set of effects that
read that key during their last run.

Re-running an effect must forget the dependencies it no longer reads. Instead
of clearing every ``Dep`` before each run, the engine marks deps with one bit
per nesting level: ``w`` ("was tracked" before this run) and ``n`` ("newly
tracked" during it). When the run ends, deps that were tracked before but not
this time drop the effect. Past ``MAX_MARKER_BITS`` levels of nesting the
engine falls back to full cleanup.

All mutable engine state lives on a ``ReactiveContext``. The current context
comes from a ContextVar that defaults to one process-wide instance, so an
application never has to think about it; tests and embedders can isolate a
reactive world with ``use_context()``.
"""

from __future__ import annotations

import contextvars
import functools
import enum
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Iterable, Iterator, NamedTuple

from refx import _anchor
from refx._shared import _UNSET, is_integer_key, is_list, is_map

if TYPE_CHECKING:
    from refx.effect import ReactiveEffect
    from refx.scope import EffectScope

# Nesting depth up to which bit markers are used. 30 keeps the generation bit
# inside a small int on every platform.
MAX_MARKER_BITS = 30


class TrackOpTypes(str, enum.Enum):
    GET = "get"
    HAS = "has"
    ITERATE = "iterate"


class TriggerOpTypes(str, enum.Enum):
    SET = "set"
    ADD = "add"
    DELETE = "delete"
    CLEAR = "clear"


class _ReservedKey:
    __slots__ = ("description",)

    def __init__(self, description: str) -> None:
        self.description = description

    def __repr__(self) -> str:
        return f"<{self.description}>"


# Dependency keys that no user key can collide with.
ITERATE_KEY = _ReservedKey("iterate")
MAP_KEY_ITERATE_KEY = _ReservedKey("Map key iterate")
# Lists expose their length under this ordinary string key.
LENGTH_KEY = "length"


class Dep:
    """Insertion-ordered set of effects depending on one (target, key) pair."""

    __slots__ = ("_effects", "w", "n", "_release")

    def __init__(
        self,
        effects: Iterable[ReactiveEffect] = (),
        release: Callable[[Dep], None] | None = None,
    ) -> None:
        self._effects: dict[ReactiveEffect, None] = dict.fromkeys(effects)
        self.w = 0  # was tracked, one bit per nesting level
        self.n = 0  # newly tracked
        # called once, when the last effect leaves a registry-owned dep
        self._release = release

    def add(self, effect: ReactiveEffect) -> None:
        self._effects[effect] = None

    def discard(self, effect: ReactiveEffect) -> None:
        self._effects.pop(effect, None)
        if not self._effects and self._release is not None:
            release, self._release = self._release, None
            release(self)

    def __contains__(self, effect: object) -> bool:
        return effect in self._effects

    def __iter__(self) -> Iterator[ReactiveEffect]:
        return iter(list(self._effects))

    def __len__(self) -> int:
        return len(self._effects)

    def __repr__(self) -> str:
        return f"Dep({len(self._effects)} effects)"


@dataclass
class DebuggerEvent:
    """Payload handed to ``on_track`` / ``on_trigger`` hooks."""

    effect: ReactiveEffect | None
    target: Any
    type: TrackOpTypes | TriggerOpTypes
    key: Any = None
    new_value: Any = None
    old_value: Any = None
    old_target: Any = None


class TriggerEvent(NamedTuple):
    """One write observed on a target. A mutation may produce several."""

    type: TriggerOpTypes
    key: Any = _UNSET
    new_value: Any = _UNSET
    old_value: Any = _UNSET
    old_target: Any = None


class ReactiveContext:
    """Scheduling and registry state of one reactive world."""

    def __init__(self) -> None:
        self.target_map = _anchor.IdentityMap()  # target -> {key -> Dep}
        self.effect_stack: list[ReactiveEffect] = []
        self.active_effect: ReactiveEffect | None = None
        self.should_track = True
        self.track_stack: list[bool] = []
        self.effect_track_depth = 0
        self.track_op_bit = 1
        self.active_scope: EffectScope | None = None
        self.scope_stack: list[EffectScope] = []

    # -- should-track stack ------------------------------------------------

    def pause_tracking(self) -> None:
        self.track_stack.append(self.should_track)
        self.should_track = False

    def enable_tracking(self) -> None:
        self.track_stack.append(self.should_track)
        self.should_track = True

    def reset_tracking(self) -> None:
        self.should_track = self.track_stack.pop() if self.track_stack else True

    def is_tracking(self) -> bool:
        return self.should_track and self.active_effect is not None

    # -- track -------------------------------------------------------------

    def deps_for(self, target: Any) -> dict[Any, Dep] | None:
        return self.target_map.get(target)

    def track(self, target: Any, type: TrackOpTypes, key: Any) -> None:
        if not self.is_tracking():
            return
        deps_map = self.target_map.get(target)
        if deps_map is None:
            deps_map = {}
            self.target_map.set(target, deps_map)
        dep = deps_map.get(key)
        if dep is None:
            release = functools.partial(self._release_dep, id(target), deps_map, key)
            dep = deps_map[key] = Dep(release=release)
        self.track_effects(dep, DebuggerEvent(self.active_effect, target, type, key))

    def _release_dep(self, ident: int, deps_map: dict[Any, Dep], key: Any, dep: Dep) -> None:
        if deps_map.get(key) is dep:
            del deps_map[key]
        if not deps_map:
            self.target_map.discard_entry(ident, deps_map)

    def track_effects(self, dep: Dep, event: DebuggerEvent | None = None) -> None:
        effect = self.active_effect
        if effect is None:
            return
        if self.effect_track_depth <= MAX_MARKER_BITS:
            should_track = False
            if not dep.n & self.track_op_bit:
                dep.n |= self.track_op_bit
                should_track = not dep.w & self.track_op_bit
        else:
            should_track = effect not in dep
        if should_track:
            dep.add(effect)
            effect.deps.append(dep)
            if effect.on_track is not None and event is not None:
                event.effect = effect
                effect.on_track(event)

    # -- trigger -----------------------------------------------------------

    def trigger_all(self, target: Any, events: Iterable[TriggerEvent]) -> None:
        """Fan out every event of one mutation and run each affected effect once."""
        deps_map = self.target_map.get(target)
        if deps_map is None:
            return
        effects: dict[ReactiveEffect, DebuggerEvent] = {}
        for event in events:
            info = DebuggerEvent(
                None, target, event.type, event.key, event.new_value, event.old_value, event.old_target
            )
            for dep in _deps_for_event(deps_map, target, event):
                for effect in dep:
                    effects.setdefault(effect, info)
        self._run_effects(effects)

    def trigger(
        self,
        target: Any,
        type: TriggerOpTypes,
        key: Any = _UNSET,
        new_value: Any = _UNSET,
        old_value: Any = _UNSET,
        old_target: Any = None,
    ) -> None:
        self.trigger_all(target, [TriggerEvent(type, key, new_value, old_value, old_target)])

    def trigger_effects(self, dep: Dep | Iterable[ReactiveEffect], event: DebuggerEvent | None = None) -> None:
        self._run_effects({effect: event for effect in dep})

    def _run_effects(self, effects: dict[ReactiveEffect, DebuggerEvent | None]) -> None:
        # Derived values are invalidated before anything re-reads them.
        ordered = [e for e in effects if e.computed is not None] + [e for e in effects if e.computed is None]
        for effect in ordered:
            if effect is self.active_effect and not effect.allow_recurse:
                continue
            event = effects[effect]
            if effect.on_trigger is not None and event is not None:
                event.effect = effect
                effect.on_trigger(event)
            if effect.scheduler is not None:
                effect.scheduler()
            else:
                effect.run()


def _deps_for_event(deps_map: dict[Any, Dep], target: Any, event: TriggerEvent) -> list[Dep]:
    type_, key = event.type, event.key
    if type_ is TriggerOpTypes.CLEAR:
        return list(deps_map.values())

    target_is_list = is_list(target)
    if target_is_list and key == LENGTH_KEY:
        new_length = event.new_value
        return [
            dep
            for dep_key, dep in deps_map.items()
            if dep_key == LENGTH_KEY or (type(dep_key) is int and dep_key >= new_length)
        ]

    keys: list[Any] = []
    if key is not _UNSET:
        keys.append(key)
    if type_ is TriggerOpTypes.ADD:
        if not target_is_list:
            keys.append(ITERATE_KEY)
            if is_map(target):
                keys.append(MAP_KEY_ITERATE_KEY)
        elif is_integer_key(key):
            keys.append(LENGTH_KEY)
    elif type_ is TriggerOpTypes.DELETE:
        if not target_is_list:
            keys.append(ITERATE_KEY)
            if is_map(target):
                keys.append(MAP_KEY_ITERATE_KEY)
    elif type_ is TriggerOpTypes.SET:
        if is_map(target):
            keys.append(ITERATE_KEY)

    deps = []
    for dep_key in keys:
        try:
            dep = deps_map.get(dep_key)
        except TypeError:  # unhashable key can never have been tracked
            continue
        if dep is not None:
            deps.append(dep)
    return deps


# -- current context ----------------------------------------------------------

_default_context = ReactiveContext()

current_context: contextvars.ContextVar[ReactiveContext] = contextvars.ContextVar(
    "current_context", default=_default_context
)


def get_context() -> ReactiveContext:
    return current_context.get()


@contextmanager
def use_context(ctx: ReactiveContext | None = None) -> Iterator[ReactiveContext]:
    """Activate ``ctx`` (or a fresh context) for the duration of the block."""
    ctx = ctx if ctx is not None else ReactiveContext()
    token = current_context.set(ctx)
    try:
        yield ctx
    finally:
        current_context.reset(token)


def track(target: Any, type: TrackOpTypes, key: Any) -> None:
    current_context.get().track(target, type, key)


def trigger(
    target: Any,
    type: TriggerOpTypes,
    key: Any = _UNSET,
    new_value: Any = _UNSET,
    old_value: Any = _UNSET,
    old_target: Any = None,
) -> None:
    current_context.get().trigger(target, type, key, new_value, old_value, old_target)


def trigger_all(target: Any, events: Iterable[TriggerEvent]) -> None:
    current_context.get().trigger_all(target, events)


def pause_tracking() -> None:
    current_context.get().pause_tracking()


def enable_tracking() -> None:
    current_context.get().enable_tracking()


def reset_tracking() -> None:
    current_context.get().reset_tracking()


def is_tracking() -> bool:
    return current_context.get().is_tracking()


@contextmanager
def untracked() -> Iterator[None]:
    """Suspend dependency collection for reads inside the block."""
    ctx = current_context.get()
    ctx.pause_tracking()
    try:
        yield
    finally:
        ctx.reset_tracking()
