"""List surface shared by both backends.

A list wrapper only has to say how one index, and the length, are read and
written; everything else on the ``list`` API is built here on top of those
four primitives, so both backends produce the same track and trigger calls.

Search methods (``in``, ``index``, ``count``, ``==``) track every index and the
length, then search the raw list. A search that misses is retried with the
unwrapped argument, which finds raw elements when the caller passed their
wrapper.

Methods that change the length pause tracking for their own reads, run on the
raw list and then report one event per affected position (see
``positional_diff``) together with the length change, in a single trigger.
"""

from __future__ import annotations

import logging
import operator
import sys
from typing import Any, Callable, Iterable, Iterator

from refx._shared import _UNSET, has_changed
from refx._tracking import (
    LENGTH_KEY,
    TrackOpTypes,
    TriggerEvent,
    TriggerOpTypes,
    pause_tracking,
    reset_tracking,
    track,
    trigger_all,
)
from refx.reactive import Wrapper, describe, state_of, to_raw, wrap_value

logger = logging.getLogger("refx.array")


def positional_diff(
    start: int, before: list[Any], after: list[Any], old_length: int, new_length: int
) -> list[TriggerEvent]:
    """Events for a list whose tail from ``start`` went from ``before`` to ``after``.

    A position past the old length is an ADD, one past the new length is a
    DELETE, and one inside both is a SET when its value changed.
    """
    events: list[TriggerEvent] = []
    if new_length != old_length:
        events.append(TriggerEvent(TriggerOpTypes.SET, LENGTH_KEY, new_length, old_length))
    for offset in range(max(len(before), len(after))):
        index = start + offset
        if offset >= len(after):
            events.append(TriggerEvent(TriggerOpTypes.DELETE, index, _UNSET, before[offset]))
        elif offset >= len(before):
            events.append(TriggerEvent(TriggerOpTypes.ADD, index, after[offset]))
        elif has_changed(after[offset], before[offset]):
            events.append(TriggerEvent(TriggerOpTypes.SET, index, after[offset], before[offset]))
    return events


class ListWrapper(Wrapper):
    """The ``list`` API over four backend primitives."""

    __slots__ = ()
    __hash__ = None  # type: ignore[assignment]

    # -- backend primitives ------------------------------------------------

    def _read_index(self, index: int) -> Any:
        raise NotImplementedError

    def _write_index(self, index: int, value: Any) -> None:
        raise NotImplementedError

    def _read_length(self) -> int:
        raise NotImplementedError

    def _resize(self, old_length: int, new_length: int) -> None:
        """Called after a method changed the raw list's length."""

    # -- helpers -----------------------------------------------------------

    def _track(self, key: Any) -> None:
        state = state_of(self)
        if not state.readonly:
            track(state.raw, TrackOpTypes.GET, key)
        elif isinstance(state.target, ListWrapper):
            state.target._track(key)

    def _track_all(self) -> list[Any]:
        raw = state_of(self).raw
        self._track(LENGTH_KEY)
        for index in range(len(raw)):
            self._track(index)
        return raw

    def _store(self, value: Any) -> Any:
        return value if state_of(self).shallow else to_raw(value)

    def _mutate(self, name: str, start: int, apply: Callable[[list[Any]], Any]) -> Any:
        state = state_of(self)
        if state.readonly:
            logger.warning('Set operation on methods "%s" failed: target is readonly.', name)
            return None
        raw = state.raw
        pause_tracking()
        try:
            old_length = len(raw)
            start = max(0, min(start, old_length))
            before = raw[start:]
            result = apply(raw)
            after = raw[start:]
            new_length = len(raw)
            if new_length != old_length:
                self._resize(old_length, new_length)
        finally:
            reset_tracking()
        trigger_all(raw, positional_diff(start, before, after, old_length, new_length))
        return result

    def _index_for(self, index: Any) -> int:
        index = operator.index(index)
        if index < 0:
            index += self._read_length()
        return index

    # -- reads -------------------------------------------------------------

    def __len__(self) -> int:
        return self._read_length()

    def __bool__(self) -> bool:
        return self._read_length() > 0

    def __getitem__(self, index: Any) -> Any:
        if isinstance(index, slice):
            return [self._read_index(i) for i in range(*index.indices(self._read_length()))]
        index = self._index_for(index)
        if 0 <= index < len(state_of(self).raw):
            return self._read_index(index)
        self._track(index)
        raise IndexError("list index out of range")

    def __iter__(self) -> Iterator[Any]:
        self._read_length()
        return self._iterate(range(len(state_of(self).raw)))

    def __reversed__(self) -> Iterator[Any]:
        self._read_length()
        return self._iterate(range(len(state_of(self).raw) - 1, -1, -1))

    def _iterate(self, indices: range) -> Iterator[Any]:
        raw = state_of(self).raw
        for index in indices:
            if index >= len(raw):
                return
            yield self._read_index(index)

    def __contains__(self, item: object) -> bool:
        raw = self._track_all()
        if item in raw:
            return True
        raw_item = to_raw(item)
        return raw_item is not item and raw_item in raw

    def index(self, item: Any, start: int = 0, stop: int = sys.maxsize) -> int:
        raw = self._track_all()
        try:
            return raw.index(item, start, stop)
        except ValueError:
            raw_item = to_raw(item)
            if raw_item is item:
                raise
            return raw.index(raw_item, start, stop)

    def count(self, item: Any) -> int:
        raw = self._track_all()
        found = raw.count(item)
        raw_item = to_raw(item)
        if not found and raw_item is not item:
            found = raw.count(raw_item)
        return found

    def __eq__(self, other: object) -> bool:
        raw = self._track_all()
        return raw == to_raw(other)

    def __ne__(self, other: object) -> bool:
        return not self == other

    def copy(self) -> list[Any]:
        return self[:]

    def __add__(self, other: Iterable[Any]) -> list[Any]:
        if not isinstance(other, list):
            return NotImplemented
        return self[:] + list(other)

    def __radd__(self, other: Iterable[Any]) -> list[Any]:
        if not isinstance(other, list):
            return NotImplemented
        return list(other) + self[:]

    def __mul__(self, times: int) -> list[Any]:
        return self[:] * times

    __rmul__ = __mul__

    def __repr__(self) -> str:
        return describe(self)

    # -- writes ------------------------------------------------------------

    def __setitem__(self, index: Any, value: Any) -> None:
        if isinstance(index, slice):
            items = [self._store(item) for item in value]
            start = index.indices(len(state_of(self).raw))[0] if index.step in (None, 1) else 0

            def assign(raw: list[Any]) -> None:
                raw[index] = items

            self._mutate("__setitem__", start, assign)
            return
        index = self._index_for(index)
        if not 0 <= index < len(state_of(self).raw):
            raise IndexError("list assignment index out of range")
        self._write_index(index, value)

    def __delitem__(self, index: Any) -> None:
        raw = state_of(self).raw
        if isinstance(index, slice):
            start = index.indices(len(raw))[0] if index.step in (None, 1) else 0
        else:
            index = self._index_for(index)
            if not 0 <= index < len(raw):
                raise IndexError("list assignment index out of range")
            start = index

        def delete(raw: list[Any]) -> None:
            del raw[index]

        self._mutate("__delitem__", start, delete)

    def append(self, value: Any) -> None:
        value = self._store(value)
        self._mutate("append", len(state_of(self).raw), lambda raw: raw.append(value))

    def extend(self, values: Iterable[Any]) -> None:
        items = [self._store(value) for value in values]
        self._mutate("extend", len(state_of(self).raw), lambda raw: raw.extend(items))

    def __iadd__(self, values: Iterable[Any]) -> ListWrapper:
        self.extend(values)
        return self

    def __imul__(self, times: int) -> ListWrapper:
        start = 0 if times <= 0 else len(state_of(self).raw)
        self._mutate("__imul__", start, lambda raw: raw.__imul__(times))
        return self

    def insert(self, index: int, value: Any) -> None:
        value = self._store(value)
        length = len(state_of(self).raw)
        index = operator.index(index)
        start = max(0, index + length) if index < 0 else min(index, length)
        self._mutate("insert", start, lambda raw: raw.insert(start, value))

    def pop(self, index: int = -1) -> Any:
        state = state_of(self)
        if state.readonly:
            return self._mutate("pop", 0, lambda raw: None)
        length = len(state.raw)
        if not length:
            raise IndexError("pop from empty list")
        index = operator.index(index)
        position = index + length if index < 0 else index
        if not 0 <= position < length:
            raise IndexError("pop index out of range")
        value = self._mutate("pop", position, lambda raw: raw.pop(position))
        return wrap_value(state, position, value)

    def remove(self, value: Any) -> None:
        state = state_of(self)
        if state.readonly:
            self._mutate("remove", 0, lambda raw: None)
            return
        pause_tracking()
        try:
            position = self.index(value)
        finally:
            reset_tracking()
        self._mutate("remove", position, lambda raw: raw.__delitem__(position))

    def clear(self) -> None:
        self._mutate("clear", 0, lambda raw: raw.clear())

    def sort(self, *, key: Callable[[Any], Any] | None = None, reverse: bool = False) -> None:
        state = state_of(self)
        if key is None:
            sort_key = None
        else:

            def sort_key(item: Any) -> Any:
                return key(wrap_value(state, 0, item))

        self._mutate("sort", 0, lambda raw: raw.sort(key=sort_key, reverse=reverse))

    def reverse(self) -> None:
        self._mutate("reverse", 0, lambda raw: raw.reverse())

    def set_length(self, length: int) -> None:
        """Truncate to ``length`` items, or pad with None up to it."""

        def resize(raw: list[Any]) -> None:
            if length < len(raw):
                del raw[length:]
            else:
                raw.extend([None] * (length - len(raw)))

        self._mutate("length", min(length, len(state_of(self).raw)), resize)
