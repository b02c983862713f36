"""Computed values: derived state with automatic dependency tracking.

A ComputedRef wraps a getter in an effect. The first read runs the getter,
tracking what it reads, and caches the result. When any dependency changes
the effect does not recompute; its scheduler only marks the value dirty and
notifies the computed's own subscribers. The next read recomputes.

Computed values are lazy: they only recompute when read.

    count = ref(1)

    @computed
    def doubled():
        return count.value * 2

    doubled.value  # 2
    count.value = 5
    doubled.value  # 10
"""

from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar

from refx._tracking import DebuggerEvent
from refx.effect import ReactiveEffect
from refx.ref import BaseRef, track_ref_value, trigger_ref_value

logger = logging.getLogger("refx.computed")

T = TypeVar("T")


class ComputedRef(BaseRef[T]):
    """A derived value that auto-tracks dependencies and caches the result."""

    __slots__ = ("effect", "_value", "_dirty", "_setter", "is_readonly")

    def __init__(
        self,
        getter: Callable[[], T],
        setter: Callable[[T], None] | None = None,
        is_readonly: bool | None = None,
    ) -> None:
        super().__init__()
        self._value: Any = None
        self._dirty = True
        self._setter = setter
        self.is_readonly = setter is None if is_readonly is None else is_readonly
        self.effect = ReactiveEffect(getter, self._invalidate)
        self.effect.computed = self

    def _invalidate(self, computed_trigger: bool = False) -> None:
        if not self._dirty:
            self._dirty = True
            trigger_ref_value(self)

    @property
    def value(self) -> T:
        track_ref_value(self)
        if self._dirty:
            self._dirty = False
            try:
                self._value = self.effect.run()
            except Exception:
                self._dirty = True
                raise
        return self._value

    @value.setter
    def value(self, new_value: T) -> None:
        if self._setter is None:
            logger.warning("Write operation failed: computed value is readonly")
            return
        self._setter(new_value)

    def setter(self, fn: Callable[[T], None]) -> ComputedRef[T]:
        """Attach a setter, property style. Makes the computed writable."""
        self._setter = fn
        self.is_readonly = False
        return self

    def stop(self) -> None:
        """Disconnect from all dependencies. The computed stops updating."""
        self.effect.stop()

    def __repr__(self) -> str:
        name = getattr(self.effect.fn, "__name__", "getter")
        state = "dirty" if self._dirty else f"cached={self._value!r}"
        return f"ComputedRef({name}, {state})"


def computed(
    getter: Callable[[], T],
    setter: Callable[[T], None] | None = None,
    *,
    on_track: Callable[[DebuggerEvent], None] | None = None,
    on_trigger: Callable[[DebuggerEvent], None] | None = None,
) -> ComputedRef[T]:
    """Decorator/factory to create a ComputedRef from a getter.

    Usage:
        first = ref("Ada")
        last = ref("Lovelace")

        @computed
        def full_name():
            return f"{first.value} {last.value}"

        @full_name.setter
        def full_name(value):
            first.value, last.value = value.split(" ", 1)

    Without a setter, writing ``.value`` logs a warning and changes nothing.
    """
    c = ComputedRef(getter, setter)
    c.effect.on_track = on_track
    c.effect.on_trigger = on_trigger
    return c
