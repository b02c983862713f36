"""Deferred computed values: derived state whose notifications are batched.

A DeferredComputedRef invalidates like ``computed``, but instead of telling
its subscribers right away it queues one re-check job. The job recomputes
and notifies only if the result differs from the value subscribers last saw,
so several upstream writes in one synchronous stretch cost at most one
notification, and none when they cancel out.

Deferred computeds that read other deferred computeds are invalidated
synchronously, so a chain always reads consistent values even before the
queue flushes.
"""

from __future__ import annotations

from typing import Any, Callable, TypeVar

from refx._shared import _UNSET, has_changed
from refx.effect import ReactiveEffect
from refx.ref import BaseRef, track_ref_value, trigger_ref_value
from refx.scheduler import queue_job

T = TypeVar("T")


class DeferredComputedRef(BaseRef[T]):
    __slots__ = ("effect", "_value", "_dirty", "_compare_target", "_scheduled")

    is_readonly = True

    def __init__(self, getter: Callable[[], T]) -> None:
        super().__init__()
        self._value: Any = None
        self._dirty = True
        self._compare_target: Any = _UNSET
        self._scheduled = False
        self.effect = ReactiveEffect(getter, self._invalidate)
        self.effect.computed = self

    def _invalidate(self, computed_trigger: bool = False) -> None:
        if self.dep is not None:
            if computed_trigger:
                self._compare_target = self._value
            elif not self._scheduled:
                value_to_compare = self._value if self._compare_target is _UNSET else self._compare_target
                self._scheduled = True
                self._compare_target = _UNSET
                queue_job(lambda: self._recheck(value_to_compare))
            for e in list(self.dep):
                if isinstance(e.computed, DeferredComputedRef):
                    e.scheduler(True)
        self._dirty = True

    def _recheck(self, value_to_compare: Any) -> None:
        try:
            if self.effect.active and has_changed(self._get(), value_to_compare):
                trigger_ref_value(self)
        finally:
            self._scheduled = False

    def _get(self) -> T:
        if self._dirty:
            self._dirty = False
            try:
                self._value = self.effect.run()
            except Exception:
                self._dirty = True
                raise
        return self._value

    @property
    def value(self) -> T:
        track_ref_value(self)
        return self._get()

    def stop(self) -> None:
        self.effect.stop()

    def __repr__(self) -> str:
        state = "dirty" if self._dirty else f"cached={self._value!r}"
        return f"DeferredComputedRef({state})"


def deferred_computed(getter: Callable[[], T]) -> DeferredComputedRef[T]:
    """Decorator/factory for a computed whose subscribers are notified from the job queue."""
    return DeferredComputedRef(getter)
