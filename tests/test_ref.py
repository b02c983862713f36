"""Tests for refs."""

import logging
from types import SimpleNamespace

from refx import (
    custom_ref,
    def_proxy_ref,
    effect,
    is_reactive,
    is_ref,
    proxy_refs,
    reactive,
    ref,
    shallow_ref,
    to_raw,
    to_ref,
    to_refs,
    trigger_ref,
    unref,
)


class TestRef:
    def test_get_set(self):
        r = ref(1)
        assert r.value == 1
        r.value = 2
        assert r.value == 2

    def test_same_value_write_does_not_rerun(self):
        b = ref(1)
        log = []
        effect(lambda: log.append(b.value))
        b.value = 1
        assert log == [1]
        b.value = 2
        assert log == [1, 2]

    def test_nan_is_unchanged(self):
        b = ref(float("nan"))
        log = []
        effect(lambda: log.append(b.value))
        b.value = float("nan")
        assert len(log) == 1

    def test_objects_made_reactive(self):
        inner = SimpleNamespace(v=1)
        r = ref(inner)
        assert r.value is reactive(inner)
        log = []
        effect(lambda: log.append(r.value.v))
        r.value.v = 2
        assert log == [1, 2]

    def test_raw_and_wrapped_writes_are_the_same_value(self):
        inner = SimpleNamespace(v=1)
        r = ref(inner)
        log = []
        effect(lambda: log.append(r.value))
        r.value = reactive(inner)
        r.value = inner
        assert len(log) == 1

    def test_ref_of_ref_is_identity(self):
        r = ref(1)
        assert ref(r) is r
        assert shallow_ref(r) is r

    def test_refs_are_never_wrapped(self):
        r = ref(1)
        assert reactive(r) is r

    def test_repr(self):
        assert repr(ref(3)) == "Ref(3)"


class TestShallowRef:
    def test_value_not_wrapped(self):
        inner = SimpleNamespace(v=1)
        r = shallow_ref(inner)
        assert r.value is inner
        assert not is_reactive(r.value)

    def test_trigger_ref_after_inner_mutation(self):
        inner = SimpleNamespace(v=1)
        r = shallow_ref(inner)
        log = []
        effect(lambda: log.append(r.value.v))
        inner.v = 2
        assert log == [1]
        trigger_ref(r)
        assert log == [1, 2]


class TestHelpers:
    def test_is_ref_and_unref(self):
        r = ref(1)
        assert is_ref(r)
        assert not is_ref(1)
        assert unref(r) == 1
        assert unref(5) == 5


class TestCustomRef:
    def test_user_controlled_tracking(self):
        calls = []

        def factory(track, trigger):
            state = {"value": 0}

            def get():
                track()
                return state["value"]

            def set(value):
                state["value"] = value
                calls.append(value)
                trigger()

            return get, set

        r = custom_ref(factory)
        log = []
        effect(lambda: log.append(r.value))
        r.value = 5
        assert calls == [5]
        assert log == [0, 5]
        assert is_ref(r)


class TestToRef:
    def test_to_ref_reads_and_writes_through(self, backend):
        state = reactive(SimpleNamespace(count=1))
        count = to_ref(state, "count")
        log = []
        effect(lambda: log.append(count.value))
        state.count = 2
        count.value = 3
        assert to_raw(state).count == 3
        assert log == [1, 2, 3]

    def test_to_ref_on_dict_with_default(self, backend):
        state = reactive({})
        missing = to_ref(state, "absent", "fallback")
        assert missing.value == "fallback"
        state["absent"] = "here"
        assert missing.value == "here"

    def test_to_ref_returns_existing_ref(self):
        inner = ref(1)
        holder = SimpleNamespace(inner=inner)
        assert to_ref(holder, "inner") is inner

    def test_to_refs(self, backend):
        state = reactive(SimpleNamespace(a=1, b=2))
        refs = to_refs(state)
        assert set(refs) == {"a", "b"}
        refs["a"].value = 10
        assert state.a == 10

    def test_to_refs_on_list(self, backend):
        items = reactive([1, 2])
        refs = to_refs(items)
        assert [r.value for r in refs] == [1, 2]
        refs[1].value = 5
        assert to_raw(items) == [1, 5]

    def test_to_refs_warns_for_plain_objects(self, caplog):
        with caplog.at_level(logging.WARNING, logger="refx.ref"):
            to_refs({"a": 1})
        assert "to_refs() expects a reactive object" in caplog.text


class Store:
    def __init__(self):
        self.count = ref(1)
        self.label = "plain"


class TestProxyRefs:
    def test_record_reads_unboxed(self, backend):
        store = Store()
        view = proxy_refs(store)
        assert view.count == 1
        assert view.label == "plain"

    def test_plain_write_lands_in_ref(self, backend):
        store = Store()
        box = store.count
        view = proxy_refs(store)
        view.count = 5
        assert store.count is box
        assert box.value == 5
        view.label = "changed"
        assert store.label == "changed"

    def test_ref_write_replaces_ref(self, backend):
        store = Store()
        view = proxy_refs(store)
        other = ref(9)
        view.count = other
        assert store.count is other
        assert view.count == 9

    def test_effect_sees_ref_through_view(self, backend):
        view = proxy_refs(Store())
        log = []
        effect(lambda: log.append(view.count))
        view.count = 2
        assert log == [1, 2]

    def test_mapping_view(self):
        box = ref(1)
        data = {"a": box, "b": 2}
        view = proxy_refs(data)
        assert view["a"] == 1
        view["a"] = 3
        view["b"] = 4
        assert data["a"] is box
        assert box.value == 3
        assert data["b"] == 4
        assert dict(view) == {"a": 3, "b": 4}

    def test_reactive_returned_unchanged(self, backend):
        state = reactive(Store())
        assert proxy_refs(state) is state

    def test_list_rejected(self, caplog):
        items = [ref(1)]
        with caplog.at_level(logging.WARNING, logger="refx.ref"):
            assert proxy_refs(items) is items
        assert "target cannot be made reactive" in caplog.text


class TestDefProxyRef:
    def test_accessor_view_is_subclass(self):
        store = Store()
        view = def_proxy_ref(store)
        assert isinstance(view, Store)
        assert type(view) is not Store
        assert "count" in type(view).__dict__
        assert view.count == 1
        view.count = 2
        assert store.count.value == 2

    def test_wrapper_rejected(self, caplog):
        state = reactive(Store())
        with caplog.at_level(logging.WARNING, logger="refx.def_observer"):
            assert def_proxy_ref(state) is state
        assert "target cannot be made reactive" in caplog.text
