"""Textual integration for refx. Opt-in, requires textual.

Guarding, NoMatches handling and thread marshalling live here rather than at
every call site, so core refx stays host-agnostic. Pause state is owned by
this module and keyed by ``id(app)``; an app is in ``_paused_apps`` exactly
while a ``pause(app)`` block is open.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Any, Callable, Iterator

from textual.css.query import NoMatches

from refx.effect import ReactiveEffectRunner
from refx.effect import effect as _effect
from refx.scheduler import set_scheduler

# Paused apps, keyed by id(app)
_paused_apps: set[int] = set()


def install(app: Any) -> None:
    """Flush the job queue from the app's message loop."""
    set_scheduler(app.call_later)


@contextmanager
def pause(app: Any) -> Iterator[None]:
    """Suspend guarded effects during widget replacement."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app: Any) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _paused_apps


def effect(app: Any, fn: Callable[[], Any], **options: Any) -> ReactiveEffectRunner:
    """effect() that safely bridges to Textual widgets.

    Re-runs are skipped while the app is paused or not running (the
    dependencies of the last run stay subscribed), NoMatches from widget
    queries is swallowed, and triggers from other threads are marshalled
    through call_from_thread. ``options`` are passed to ``refx.effect``,
    except ``scheduler`` which this wrapper owns.
    """
    _main = threading.get_ident()

    def _guarded():
        if not is_safe(app):
            return
        if threading.get_ident() != _main:
            app.call_from_thread(_safe)
        else:
            _safe()

    def _safe():
        try:
            runner()
        except NoMatches:
            pass

    runner = _effect(fn, lazy=True, scheduler=_guarded, **options)
    _guarded()
    return runner
