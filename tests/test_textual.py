"""Tests for the Textual integration layer."""

import threading

import pytest
from textual.css.query import NoMatches

from refx import deferred_computed, flush_jobs, queue_job, ref, stop
from refx import textual as stx


class _MockApp:
    """Minimal mock matching the Textual App interface stx needs."""

    def __init__(self, *, is_running=True):
        self.is_running = is_running
        self._call_from_thread_log = []
        self._call_later_log = []

    def call_from_thread(self, fn, *args):
        self._call_from_thread_log.append((fn, args))
        fn(*args)

    def call_later(self, fn, *args):
        self._call_later_log.append((fn, args))
        return True


class TestEffect:
    def test_runs_immediately_when_safe(self):
        app = _MockApp()
        o = ref(1)
        log = []
        stx.effect(app, lambda: log.append(o.value))
        assert log == [1]

    def test_fires_when_safe(self):
        app = _MockApp()
        o = ref(1)
        log = []
        stx.effect(app, lambda: log.append(o.value))
        o.value = 2
        assert log == [1, 2]

    def test_skips_when_not_running(self):
        app = _MockApp(is_running=False)
        o = ref(1)
        log = []
        stx.effect(app, lambda: log.append(o.value))
        o.value = 2
        assert log == []

    def test_skips_during_pause(self):
        app = _MockApp()
        o = ref(1)
        log = []
        stx.effect(app, lambda: log.append(o.value))
        with stx.pause(app):
            o.value = 2
        # Skipped during pause, still subscribed afterwards
        assert log == [1]
        o.value = 3
        assert log == [1, 3]

    def test_catches_nomatch(self):
        """NoMatches from widget queries are silently swallowed."""
        app = _MockApp()
        o = ref(1)
        call_count = 0

        def _fn():
            nonlocal call_count
            call_count += 1
            o.value  # track dependency
            if call_count > 1:
                raise NoMatches("Widget")

        stx.effect(app, _fn)
        assert call_count == 1

        # Second run raises NoMatches, which is swallowed
        o.value = 2
        assert call_count == 2

    def test_propagates_real_errors(self):
        """Non-NoMatches exceptions propagate normally."""
        app = _MockApp()
        o = ref(1)

        def _fn():
            if o.value > 1:
                raise ValueError("boom")

        stx.effect(app, _fn)
        with pytest.raises(ValueError, match="boom"):
            o.value = 2

    def test_stop(self):
        app = _MockApp()
        o = ref(1)
        log = []
        runner = stx.effect(app, lambda: log.append(o.value))
        stop(runner)
        o.value = 2
        assert log == [1]

    def test_thread_marshal(self):
        """Triggers from background thread use call_from_thread."""
        app = _MockApp()
        o = ref(1)
        log = []
        stx.effect(app, lambda: log.append(o.value))

        def _bg():
            o.value = 2

        t = threading.Thread(target=_bg)
        t.start()
        t.join()

        assert log == [1, 2]
        assert len(app._call_from_thread_log) == 1

    def test_reads_deferred_values(self):
        app = _MockApp()
        stx.install(app)
        o = ref(1)
        doubled = deferred_computed(lambda: o.value * 2)
        log = []
        stx.effect(app, lambda: log.append(doubled.value))
        o.value = 2
        assert log == [2]
        [(flush, _args)] = app._call_later_log
        flush()
        assert log == [2, 4]


class TestInstall:
    def test_flush_requested_through_call_later(self):
        app = _MockApp()
        stx.install(app)
        ran = []
        queue_job(lambda: ran.append(1))
        assert app._call_later_log == [(flush_jobs, ())]
        assert ran == []
        flush_jobs()
        assert ran == [1]


class TestPause:
    def test_pause_restores_on_exception(self):
        app = _MockApp()
        assert stx.is_safe(app)

        with pytest.raises(RuntimeError):
            with stx.pause(app):
                assert not stx.is_safe(app)
                raise RuntimeError("oops")

        # Restored despite exception
        assert stx.is_safe(app)

    def test_pause_does_not_mutate_app(self):
        """Pause state lives in the module, not on the app."""
        app = _MockApp()
        attrs_before = set(vars(app))
        with stx.pause(app):
            attrs_during = set(vars(app))
        attrs_after = set(vars(app))
        assert attrs_before == attrs_during, (
            f"pause() added attributes to app: {attrs_during - attrs_before}"
        )
        assert attrs_before == attrs_after

    def test_multiple_apps_independent(self):
        """Pausing one app does not affect another."""
        app_a = _MockApp()
        app_b = _MockApp()
        with stx.pause(app_a):
            assert not stx.is_safe(app_a)
            assert stx.is_safe(app_b)
