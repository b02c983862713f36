"""Stop a group of effects together.

Effects created while a scope is running register with it; stopping the
scope stops them, runs its cleanup callbacks and stops nested scopes.

    scope = effect_scope()
    scope.run(lambda: effect(render))
    ...
    scope.stop()  # render never runs again
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, TypeVar

from refx._tracking import current_context

if TYPE_CHECKING:
    from refx.effect import ReactiveEffect

logger = logging.getLogger("refx.scope")

T = TypeVar("T")


class EffectScope:
    def __init__(self, detached: bool = False) -> None:
        self.active = True
        self.effects: list[ReactiveEffect] = []
        self.cleanups: list[Callable[[], Any]] = []
        self.scopes: list[EffectScope] = []
        self.parent: EffectScope | None = None
        self._index = -1
        ctx = current_context.get()
        if not detached and ctx.active_scope is not None:
            self.parent = ctx.active_scope
            self._index = len(self.parent.scopes)
            self.parent.scopes.append(self)

    def run(self, fn: Callable[[], T]) -> T | None:
        if not self.active:
            logger.warning("cannot run an inactive effect scope.")
            return None
        self.on()
        try:
            return fn()
        finally:
            self.off()

    def on(self) -> None:
        ctx = current_context.get()
        ctx.scope_stack.append(self)
        ctx.active_scope = self

    def off(self) -> None:
        ctx = current_context.get()
        if ctx.scope_stack:
            ctx.scope_stack.pop()
        ctx.active_scope = ctx.scope_stack[-1] if ctx.scope_stack else None

    def stop(self, from_parent: bool = False) -> None:
        if not self.active:
            return
        for effect in self.effects:
            effect.stop()
        for cleanup in self.cleanups:
            cleanup()
        for scope in self.scopes:
            scope.stop(True)
        # detach from the parent without shifting the other children
        if self.parent is not None and not from_parent:
            last = self.parent.scopes.pop()
            if last is not self:
                self.parent.scopes[self._index] = last
                last._index = self._index
        self.active = False


def effect_scope(detached: bool = False) -> EffectScope:
    return EffectScope(detached)


def record_effect_scope(effect: ReactiveEffect, scope: EffectScope | None = None) -> None:
    scope = scope if scope is not None else current_context.get().active_scope
    if scope is not None and scope.active:
        scope.effects.append(effect)


def get_current_scope() -> EffectScope | None:
    return current_context.get().active_scope


def on_scope_dispose(fn: Callable[[], Any]) -> None:
    scope = current_context.get().active_scope
    if scope is not None:
        scope.cleanups.append(fn)
    else:
        logger.warning(
            "on_scope_dispose() is called when there is no active effect scope"
            " to be associated with."
        )
