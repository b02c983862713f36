"""Tests for computed values."""

import logging

import pytest

from refx import ComputedRef, computed, effect, reactive, ref


class TestComputed:
    def test_lazy_eval(self):
        call_count = 0
        o = ref(5)

        def fn():
            nonlocal call_count
            call_count += 1
            return o.value * 2

        c = computed(fn)
        assert call_count == 0  # not yet evaluated
        assert c.value == 10
        assert call_count == 1

    def test_caches_until_dirty(self):
        call_count = 0
        b = ref(1)

        def fn():
            nonlocal call_count
            call_count += 1
            return b.value * 2

        c = computed(fn)
        c.value
        c.value
        assert call_count == 1  # cached, no re-eval
        b.value = 5
        assert call_count == 1  # invalidation does not recompute
        assert c.value == 10
        assert call_count == 2

    def test_dependency_tracking(self):
        """Computed tracks dependencies dynamically."""
        flag = ref(True)
        a = ref(1)
        b = ref(2)

        c = computed(lambda: a.value if flag.value else b.value)
        assert c.value == 1

        flag.value = False
        assert c.value == 2  # now depends on b, not a

    def test_chained_computed(self):
        o = ref(3)
        doubled = computed(lambda: o.value * 2)
        quadrupled = computed(lambda: doubled.value * 2)
        assert quadrupled.value == 12
        o.value = 5
        assert quadrupled.value == 20

    def test_reads_reactive_objects(self):
        state = reactive({"items": [1, 2, 3]})
        total = computed(lambda: sum(state["items"]))
        assert total.value == 6
        state["items"].append(4)
        assert total.value == 10

    def test_stop(self):
        o = ref(5)
        c = computed(lambda: o.value * 2)
        c.value
        c.stop()
        o.value = 10
        assert c.value == 10  # frozen at the last cached value

    def test_propagates_to_effects(self):
        """Computed invalidation propagates to downstream effects."""
        o = ref(5)
        c = computed(lambda: o.value * 2)
        log = []
        effect(lambda: log.append(c.value))
        assert log == [10]
        o.value = 10
        assert log == [10, 20]

    def test_effect_runs_after_computed_invalidates(self):
        """A write reaching both an effect and a computed it reads invalidates the computed first."""
        o = ref(1)
        log = []

        def fn():
            log.append((o.value, c.value))

        c = computed(lambda: o.value + 1)
        effect(fn)
        o.value = 2
        assert (2, 2) not in log
        assert log[-1] == (2, 3)

    def test_exception_leaves_computed_dirty(self):
        fail = ref(True)

        def fn():
            if fail.value:
                raise RuntimeError("not yet")
            return "ok"

        c = computed(fn)
        with pytest.raises(RuntimeError):
            c.value
        fail.value = False
        assert c.value == "ok"

    def test_repr(self):
        def doubled():
            return 2

        c = computed(doubled)
        assert repr(c) == "ComputedRef(doubled, dirty)"
        c.value
        assert repr(c) == "ComputedRef(doubled, cached=2)"


class TestWritableComputed:
    def test_readonly_write_warns(self, caplog):
        c = computed(lambda: 1)
        with caplog.at_level(logging.WARNING, logger="refx.computed"):
            c.value = 2
        assert c.value == 1
        assert "Write operation failed: computed value is readonly" in caplog.text
        assert c.is_readonly

    def test_setter_argument(self):
        source = ref(1)
        c = computed(lambda: source.value + 1, lambda v: setattr(source, "value", v - 1))
        c.value = 10
        assert source.value == 9
        assert c.value == 10
        assert not c.is_readonly

    def test_setter_decorator(self):
        first = ref("Ada")
        last = ref("Lovelace")

        @computed
        def full_name():
            return f"{first.value} {last.value}"

        @full_name.setter
        def full_name(value):
            first.value, last.value = value.split(" ", 1)

        assert isinstance(full_name, ComputedRef)
        full_name.value = "Grace Hopper"
        assert last.value == "Hopper"
        assert full_name.value == "Grace Hopper"


class TestDebugHooks:
    def test_on_track_and_on_trigger(self):
        o = ref(1)
        tracked = []
        triggered = []
        c = computed(
            lambda: o.value,
            on_track=lambda e: tracked.append(e.key),
            on_trigger=lambda e: triggered.append(e.key),
        )
        c.value
        o.value = 2
        assert tracked == ["value"]
        assert triggered == ["value"]
