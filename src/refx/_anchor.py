"""Plain Python structures that hold process-wide reactive state.

The four wrapper identity maps and the set of objects marked raw live here,
apart from the behavior modules that read and write them. Everything is keyed
by object identity: two structurally equal dicts never share a wrapper or a
dependency set.

Entries hold their key weakly when the key supports weak references and
strongly otherwise (plain ``dict``/``list``/``set`` do not). Wrapper values
are held weakly so an entry disappears together with its wrapper.
"""

from __future__ import annotations

import itertools
import weakref
from typing import Any, Iterator

_MISSING = object()


class IdentityMap:
    """Mapping keyed by ``id(key)`` that keeps the key alive or watches it die."""

    __slots__ = ("_entries", "_weak_values", "__weakref__")

    def __init__(self, *, weak_values: bool = False) -> None:
        # id(key) -> (key anchor, value or value anchor)
        self._entries: dict[int, tuple[Any, Any]] = {}
        self._weak_values = weak_values

    def _anchor(self, obj: Any, ident: int) -> Any:
        self_ref = weakref.ref(self)

        def _drop(_ref, ident=ident):
            owner = self_ref()
            if owner is None:
                return
            entry = owner._entries.get(ident)
            # the id may already have been reused by a newer entry
            if entry is not None and (entry[0] is _ref or entry[1] is _ref):
                del owner._entries[ident]

        try:
            return weakref.ref(obj, _drop)
        except TypeError:
            return obj

    def get(self, key: Any, default: Any = None) -> Any:
        entry = self._entries.get(id(key))
        if entry is None:
            return default
        key_anchor, value = entry
        held = key_anchor() if isinstance(key_anchor, weakref.ref) else key_anchor
        if held is not key:
            return default
        if isinstance(value, weakref.ref):
            value = value()
            if value is None:
                return default
        return value

    def set(self, key: Any, value: Any) -> None:
        ident = id(key)
        key_anchor = self._anchor(key, ident)
        if self._weak_values:
            value = self._anchor(value, ident)
        self._entries[ident] = (key_anchor, value)

    def delete(self, key: Any) -> None:
        if self.get(key, _MISSING) is not _MISSING:
            del self._entries[id(key)]

    def discard_entry(self, ident: int, value: Any) -> None:
        """Drop the entry under ``ident`` if it still holds ``value``."""
        entry = self._entries.get(ident)
        if entry is not None and entry[1] is value:
            del self._entries[ident]

    def __contains__(self, key: Any) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def __len__(self) -> int:
        return len(self._entries)

    def values(self) -> Iterator[Any]:
        for _key_anchor, value in list(self._entries.values()):
            if isinstance(value, weakref.ref):
                value = value()
                if value is None:
                    continue
            yield value

    def clear(self) -> None:
        self._entries.clear()


# Wrapper identity maps, one per variant: raw target -> wrapper
reactive_map = IdentityMap(weak_values=True)
shallow_reactive_map = IdentityMap(weak_values=True)
readonly_map = IdentityMap(weak_values=True)
shallow_readonly_map = IdentityMap(weak_values=True)

# Objects passed to mark_raw(); never wrapped
skipped = IdentityMap()

# Effects are numbered for repr
_id_counter = itertools.count(1)


def new_id() -> int:
    return next(_id_counter)
