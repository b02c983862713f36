"""Effects: functions that re-run when the reactive state they read changes.

An effect runs its function once, recording every tracked read as a
dependency. A later write to any of those dependencies re-runs it (or hands
it to its scheduler). Dependencies are recomputed on every run, so branches
that stop being read stop triggering.

    state = reactive({"count": 0})
    runner = effect(lambda: print(state["count"]))   # prints 0
    state["count"] += 1                              # prints 1
    stop(runner)
"""

from __future__ import annotations

from typing import Any, Callable, TypeVar

from refx import _anchor
from refx._tracking import (
    MAX_MARKER_BITS,
    DebuggerEvent,
    Dep,
    ReactiveContext,
    current_context,
)
from refx.scope import EffectScope, record_effect_scope

T = TypeVar("T")


class ReactiveEffect:
    """A tracked computation. Holds the deps it read during its last run."""

    def __init__(
        self,
        fn: Callable[[], Any],
        scheduler: Callable[..., Any] | None = None,
        scope: EffectScope | None = None,
    ) -> None:
        self.id = _anchor.new_id()
        self.fn = fn
        self.scheduler = scheduler
        self.active = True
        self.deps: list[Dep] = []
        # the derived value that owns this effect, if any
        self.computed: Any = None
        self.allow_recurse = False
        self.on_track: Callable[[DebuggerEvent], None] | None = None
        self.on_trigger: Callable[[DebuggerEvent], None] | None = None
        self.on_stop: Callable[[], None] | None = None
        self.ctx: ReactiveContext = current_context.get()
        record_effect_scope(self, scope)

    def run(self) -> Any:
        if not self.active:
            return self.fn()
        ctx = self.ctx
        if self in ctx.effect_stack and not self.allow_recurse:
            return None

        token = current_context.set(ctx)
        ctx.effect_stack.append(self)
        ctx.active_effect = self
        ctx.enable_tracking()
        ctx.effect_track_depth += 1
        ctx.track_op_bit = 1 << ctx.effect_track_depth
        try:
            if ctx.effect_track_depth <= MAX_MARKER_BITS:
                _init_dep_markers(self, ctx.track_op_bit)
            else:
                _cleanup_effect(self)
            return self.fn()
        finally:
            if ctx.effect_track_depth <= MAX_MARKER_BITS:
                _finalize_dep_markers(self, ctx.track_op_bit)
            ctx.effect_track_depth -= 1
            ctx.track_op_bit = 1 << ctx.effect_track_depth
            ctx.reset_tracking()
            ctx.effect_stack.pop()
            ctx.active_effect = ctx.effect_stack[-1] if ctx.effect_stack else None
            current_context.reset(token)

    def stop(self) -> None:
        """Drop every dependency. The effect never runs reactively again."""
        if self.active:
            _cleanup_effect(self)
            if self.on_stop is not None:
                self.on_stop()
            self.active = False

    def __repr__(self) -> str:
        name = getattr(self.fn, "__name__", type(self.fn).__name__)
        state = "active" if self.active else "stopped"
        return f"ReactiveEffect#{self.id}({name}, {state}, {len(self.deps)} deps)"


def _init_dep_markers(effect: ReactiveEffect, bit: int) -> None:
    for dep in effect.deps:
        dep.w |= bit


def _finalize_dep_markers(effect: ReactiveEffect, bit: int) -> None:
    deps = effect.deps
    if not deps:
        return
    kept = 0
    for dep in deps:
        if dep.w & bit and not dep.n & bit:
            dep.discard(effect)
        else:
            deps[kept] = dep
            kept += 1
        # clear bits for this level
        dep.w &= ~bit
        dep.n &= ~bit
    del deps[kept:]


def _cleanup_effect(effect: ReactiveEffect) -> None:
    for dep in effect.deps:
        dep.discard(effect)
    effect.deps.clear()


class ReactiveEffectRunner:
    """Callable handle returned by ``effect()``. Calling it forces a run."""

    __slots__ = ("effect",)

    def __init__(self, effect: ReactiveEffect) -> None:
        self.effect = effect

    def __call__(self) -> Any:
        return self.effect.run()

    def __repr__(self) -> str:
        return f"ReactiveEffectRunner({self.effect!r})"


def effect(
    fn: Callable[[], Any] | ReactiveEffectRunner,
    *,
    lazy: bool = False,
    scheduler: Callable[..., Any] | None = None,
    scope: EffectScope | None = None,
    allow_recurse: bool = False,
    on_track: Callable[[DebuggerEvent], None] | None = None,
    on_trigger: Callable[[DebuggerEvent], None] | None = None,
    on_stop: Callable[[], None] | None = None,
) -> ReactiveEffectRunner:
    """Run ``fn`` now (unless ``lazy``) and again whenever what it read changes.

    With a ``scheduler``, re-runs are handed to it instead of happening
    inline; the scheduler decides when to call the runner.
    """
    if isinstance(fn, ReactiveEffectRunner):
        fn = fn.effect.fn

    reactive_effect = ReactiveEffect(fn, scheduler, scope)
    reactive_effect.allow_recurse = allow_recurse
    reactive_effect.on_track = on_track
    reactive_effect.on_trigger = on_trigger
    reactive_effect.on_stop = on_stop
    if not lazy:
        reactive_effect.run()
    return ReactiveEffectRunner(reactive_effect)


def stop(runner: ReactiveEffectRunner) -> None:
    runner.effect.stop()
