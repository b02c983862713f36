"""Tests for the reactive factory and record wrappers, on both backends."""

import logging
from dataclasses import dataclass
from types import SimpleNamespace

from refx import (
    TargetType,
    del_key,
    effect,
    get_key,
    get_target_type,
    has_key,
    is_proxy,
    is_reactive,
    is_readonly,
    is_shallow,
    mark_raw,
    own_keys,
    reactive,
    readonly,
    ref,
    set_key,
    shallow_reactive,
    shallow_readonly,
    to_raw,
    to_reactive,
    to_readonly,
)


class Person:
    def __init__(self, first, last):
        self.first = first
        self.last = last

    @property
    def full_name(self):
        return f"{self.first} {self.last}"

    def initials(self):
        return self.first[0] + self.last[0]

    def rename(self, first):
        self.first = first


@dataclass(frozen=True)
class Frozen:
    value: int


class Counter:
    count = 0
    step = 1

    def bump(self):
        self.count += self.step


class Settings:
    def __getattr__(self, name):
        return f"default-{name}"


class TestIdentity:
    def test_same_wrapper_for_same_target(self, backend):
        raw = Person("Ada", "Lovelace")
        assert reactive(raw) is reactive(raw)
        assert readonly(raw) is readonly(raw)
        assert reactive(raw) is not readonly(raw)

    def test_to_raw_round_trip(self, backend):
        raw = Person("Ada", "Lovelace")
        p = reactive(raw)
        assert to_raw(p) is raw
        assert to_raw(raw) is raw
        assert to_raw(readonly(p)) is raw

    def test_wrapping_a_wrapper_is_a_noop(self, backend):
        p = reactive(Person("Ada", "Lovelace"))
        assert reactive(p) is p

    def test_readonly_dominates(self, backend):
        raw = Person("Ada", "Lovelace")
        r = readonly(raw)
        assert reactive(r) is r

    def test_isinstance_sees_raw_class(self, backend):
        p = reactive(Person("Ada", "Lovelace"))
        assert isinstance(p, Person)
        assert p.__class__ is Person

    def test_flags(self, backend):
        raw = Person("Ada", "Lovelace")
        assert is_reactive(reactive(raw))
        assert not is_readonly(reactive(raw))
        assert is_readonly(readonly(raw))
        assert not is_reactive(readonly(raw))
        assert is_reactive(readonly(reactive(raw)))
        assert is_shallow(shallow_reactive(raw))
        assert is_shallow(shallow_readonly(raw))
        assert is_proxy(readonly(raw))
        assert not is_proxy(raw)


class TestNonObservable:
    def test_primitive_returned_with_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="refx.reactive"):
            assert reactive(1) == 1
        assert "value cannot be made reactive: 1" in caplog.text

    def test_mark_raw(self, backend):
        raw = mark_raw(Person("Ada", "Lovelace"))
        assert reactive(raw) is raw

    def test_frozen_dataclass_and_tuple_pass_through(self, backend):
        frozen = Frozen(1)
        assert reactive(frozen) is frozen
        pair = (1, 2)
        assert reactive(pair) is pair

    def test_target_types(self):
        assert get_target_type(Person("Ada", "Lovelace")) is TargetType.COMMON
        assert get_target_type([1]) is TargetType.COMMON
        assert get_target_type({}) is TargetType.COLLECTION
        assert get_target_type(set()) is TargetType.COLLECTION
        assert get_target_type((1, 2)) is TargetType.INVALID
        assert get_target_type(mark_raw(SimpleNamespace())) is TargetType.INVALID

    def test_to_reactive_and_to_readonly_skip_primitives(self, backend, caplog):
        with caplog.at_level(logging.WARNING, logger="refx.reactive"):
            assert to_reactive(1) == 1
            assert to_readonly("a") == "a"
        assert caplog.text == ""
        raw = Person("Ada", "Lovelace")
        assert to_reactive(raw) is reactive(raw)
        assert to_readonly(raw) is readonly(raw)


class TestRecordReads:
    def test_attribute_write_reruns_effect(self, backend):
        x = reactive(SimpleNamespace(a=1))
        log = []
        effect(lambda: log.append(x.a))
        x.a = 2
        assert log == [1, 2]

    def test_same_value_write_is_silent(self, backend):
        x = reactive(SimpleNamespace(a=1))
        log = []
        effect(lambda: log.append(x.a))
        x.a = 1
        assert log == [1]

    def test_property_reads_are_tracked(self, backend):
        p = reactive(Person("Ada", "Lovelace"))
        log = []
        effect(lambda: log.append(p.full_name))
        p.last = "Byron"
        assert log == ["Ada Lovelace", "Ada Byron"]

    def test_method_reads_and_writes_go_through_wrapper(self, backend):
        p = reactive(Person("Ada", "Lovelace"))
        log = []
        effect(lambda: log.append(p.initials()))
        p.rename("Augusta")
        assert log == ["AL", "AL"]
        assert p.first == "Augusta"

    def test_nested_objects_wrapped_lazily(self, backend):
        inner = SimpleNamespace(count=0)
        outer = reactive(SimpleNamespace(inner=inner))
        assert outer.inner is reactive(inner)
        assert outer.inner is outer.inner
        log = []
        effect(lambda: log.append(outer.inner.count))
        outer.inner.count = 1
        assert log == [0, 1]

    def test_class_default_read_is_tracked(self, backend):
        c = reactive(Counter())
        log = []
        effect(lambda: log.append(c.count))
        c.count = 1
        assert log == [0, 1]
        assert to_raw(c).count == 1
        del c.count
        assert log == [0, 1, 0]
        assert "count" not in vars(to_raw(c))

    def test_method_shadowing_class_default(self, backend):
        c = reactive(Counter())
        log = []
        effect(lambda: log.append(c.count))
        c.bump()
        c.bump()
        assert log == [0, 1, 2]

    def test_getattr_fallback_is_tracked(self, backend):
        s = reactive(Settings())
        log = []
        effect(lambda: log.append(s.theme))
        set_key(s, "theme", "dark")
        assert log == ["default-theme", "dark"]

    def test_missing_attribute_read_is_tracked(self, backend):
        p = reactive(SimpleNamespace())
        log = []
        effect(lambda: log.append(get_key(p, "late", None)))
        set_key(p, "late", 1)
        assert log == [None, 1]

    def test_wrapper_never_stored_in_raw(self, backend):
        child = reactive(SimpleNamespace(v=1))
        parent = reactive(SimpleNamespace(child=None))
        parent.child = child
        assert to_raw(parent).child is to_raw(child)

    def test_membership_test_tracks_missing_key(self, backend):
        p = reactive(SimpleNamespace(a=1))
        log = []

        def fn():
            log.append(has_key(p, "b"))

        effect(fn)
        set_key(p, "b", 2)
        assert log == [False, True]


class TestRefs:
    def test_refs_unboxed_on_read(self, backend):
        holder = SimpleNamespace(count=ref(1))
        p = reactive(holder)
        assert p.count == 1

    def test_ref_preserved_on_write(self, backend):
        count = ref(1)
        p = reactive(SimpleNamespace(count=count))
        p.count = 5
        assert count.value == 5
        assert to_raw(p).count is count

    def test_ref_replaced_by_ref(self, backend):
        p = reactive(SimpleNamespace(count=ref(1)))
        other = ref(2)
        p.count = other
        assert to_raw(p).count is other
        assert p.count == 2

    def test_list_index_not_unboxed(self, backend):
        box = ref(1)
        items = reactive([box])
        assert items[0] is box

    def test_list_index_write_replaces_ref(self, backend):
        box = ref(1)
        items = reactive([box])
        items[0] = 2
        assert to_raw(items) == [2]
        assert box.value == 1


class TestShapeChanges:
    def test_add_key_triggers_enumeration(self, backend):
        p = reactive(SimpleNamespace(a=1))
        log = []
        effect(lambda: log.append(own_keys(p)))
        set_key(p, "b", 2)
        assert log == [["a"], ["a", "b"]]
        assert p.b == 2

    def test_new_key_is_observed_afterwards(self, backend):
        p = reactive(SimpleNamespace(a=1))
        set_key(p, "b", 2)
        log = []
        effect(lambda: log.append(p.b))
        p.b = 3
        assert log == [2, 3]

    def test_delete_key_triggers(self, backend):
        p = reactive(SimpleNamespace(a=1, b=2))
        keys_log = []
        b_log = []
        effect(lambda: keys_log.append(own_keys(p)))
        effect(lambda: b_log.append(has_key(p, "b")))
        del_key(p, "b")
        assert keys_log == [["a", "b"], ["a"]]
        assert b_log == [True, False]
        assert not hasattr(to_raw(p), "b")

    def test_delattr_on_existing_key(self, backend):
        p = reactive(SimpleNamespace(a=1, b=2))
        log = []
        effect(lambda: log.append(own_keys(p)))
        del p.b
        assert log == [["a", "b"], ["a"]]


class TestReadonly:
    def test_write_rejected_with_warning(self, backend, caplog):
        r = readonly(SimpleNamespace(a=1))
        with caplog.at_level(logging.WARNING):
            r.a = 2
        assert r.a == 1
        assert 'Set operation on key "a" failed: target is readonly.' in caplog.text

    def test_delete_rejected_with_warning(self, backend, caplog):
        r = readonly(SimpleNamespace(a=1))
        with caplog.at_level(logging.WARNING):
            del_key(r, "a")
        assert to_raw(r).a == 1
        assert 'Delete operation on key "a" failed: target is readonly.' in caplog.text

    def test_nested_values_are_readonly(self, backend):
        r = readonly(SimpleNamespace(inner=SimpleNamespace(v=1)))
        assert is_readonly(r.inner)

    def test_readonly_does_not_track(self, backend):
        raw = SimpleNamespace(a=1)
        r = readonly(raw)
        log = []
        effect(lambda: log.append(r.a))
        reactive(raw).a = 2
        assert log == [1]

    def test_readonly_over_reactive_stays_live(self, backend):
        m = reactive(SimpleNamespace(a=1))
        r = readonly(m)
        log = []
        effect(lambda: log.append(r.a))
        m.a = 2
        assert log == [1, 2]


class TestShallow:
    def test_shallow_reactive_does_not_wrap_nested(self, backend):
        inner = SimpleNamespace(v=1)
        s = shallow_reactive(SimpleNamespace(inner=inner))
        assert s.inner is inner
        log = []
        effect(lambda: log.append(s.inner))
        other = SimpleNamespace(v=2)
        s.inner = other
        assert log == [inner, other]

    def test_shallow_readonly_top_level_only(self, backend, caplog):
        inner = SimpleNamespace(v=1)
        s = shallow_readonly(SimpleNamespace(inner=inner))
        with caplog.at_level(logging.WARNING):
            s.inner = None
        assert s.inner is inner
        s.inner.v = 2
        assert inner.v == 2


class TestDunders:
    def test_repr_and_eq_forward(self, backend):
        raw = SimpleNamespace(a=1)
        p = reactive(raw)
        assert repr(p) == repr(raw)
        assert p == SimpleNamespace(a=1)

    def test_vars_snapshot(self, backend):
        p = reactive(SimpleNamespace(a=1, b=2))
        log = []
        effect(lambda: log.append(dict(vars(p))))
        p.a = 3
        assert log == [{"a": 1, "b": 2}, {"a": 3, "b": 2}]
