"""Actions and transactions: batched state mutations.

Effects without a scheduler always run inline, before the mutation returns.
Work that goes through the job queue (deferred computed values, effects
scheduled with ``queue_job``) is held back while an ``@action`` or
``with transaction()`` scope is open and flushed once when the outermost
scope exits, so subscribers see the final state of a group of writes.
"""

from __future__ import annotations

import functools
from contextlib import contextmanager
from typing import Callable, Iterator, ParamSpec, TypeVar

from refx.scheduler import begin_batch, end_batch

P = ParamSpec("P")
R = TypeVar("R")


def action(fn: Callable[P, R]) -> Callable[P, R]:
    """Decorator: batch queued jobs until fn returns.

    Only queued work waits. An effect created without a scheduler still
    re-runs at each write inside fn, not once at the end.

    Usage:
        a = ref(0)
        b = ref(0)
        total = deferred_computed(lambda: a.value + b.value)

        @action
        def swap():
            a.value, b.value = b.value, a.value
            # subscribers of total are re-checked once, after both writes
    """

    @functools.wraps(fn)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        begin_batch()
        try:
            return fn(*args, **kwargs)
        finally:
            end_batch()

    return wrapper


@contextmanager
def transaction() -> Iterator[None]:
    """Context manager for batching mutations.

    Usage:
        with transaction():
            state.first = "Ada"
            state.last = "Lovelace"
            # queued jobs flush here, after both are set

    As with ``action``, effects without a scheduler are not deferred.
    """
    begin_batch()
    try:
        yield
    finally:
        end_batch()
