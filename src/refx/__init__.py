"""refx: fine-grained reactive state for Python, with two interchangeable backends."""

from importlib.metadata import version as _version

__version__ = _version("refx")

from refx._tracking import (
    ITERATE_KEY,
    MAP_KEY_ITERATE_KEY,
    DebuggerEvent,
    ReactiveContext,
    TrackOpTypes,
    TriggerOpTypes,
    enable_tracking,
    get_context,
    pause_tracking,
    reset_tracking,
    untracked,
    use_context,
)
from refx._shared import TargetType
from refx.backend import disable_proxy, enable_proxy, reset_proxy
from refx.reactive import (
    get_target_type,
    is_proxy,
    is_reactive,
    is_readonly,
    is_shallow,
    mark_raw,
    reactive,
    readonly,
    shallow_reactive,
    shallow_readonly,
    to_raw,
    to_reactive,
    to_readonly,
)
from refx.def_observer import def_proxy_ref, del_key, get_key, has_key, is_define, own_keys, set_key
from refx.effect import ReactiveEffect, ReactiveEffectRunner, effect, stop
from refx.scope import EffectScope, effect_scope, get_current_scope, on_scope_dispose
from refx.ref import custom_ref, is_ref, proxy_refs, ref, shallow_ref, to_ref, to_refs, trigger_ref, unref
from refx.computed import ComputedRef, computed
from refx.deferred_computed import DeferredComputedRef, deferred_computed
from refx.scheduler import flush_jobs, get_pending_count, queue_job, set_scheduler
from refx.action import action, transaction
# textual is opt-in: import refx.textual explicitly

__all__ = [
    "ITERATE_KEY",
    "MAP_KEY_ITERATE_KEY",
    "DebuggerEvent",
    "ReactiveContext",
    "TrackOpTypes",
    "TriggerOpTypes",
    "enable_tracking",
    "get_context",
    "pause_tracking",
    "reset_tracking",
    "untracked",
    "use_context",
    "TargetType",
    "disable_proxy",
    "enable_proxy",
    "reset_proxy",
    "get_target_type",
    "is_proxy",
    "is_reactive",
    "is_readonly",
    "is_shallow",
    "mark_raw",
    "reactive",
    "readonly",
    "shallow_reactive",
    "shallow_readonly",
    "to_raw",
    "to_reactive",
    "to_readonly",
    "def_proxy_ref",
    "del_key",
    "get_key",
    "has_key",
    "is_define",
    "own_keys",
    "set_key",
    "ReactiveEffect",
    "ReactiveEffectRunner",
    "effect",
    "stop",
    "EffectScope",
    "effect_scope",
    "get_current_scope",
    "on_scope_dispose",
    "custom_ref",
    "is_ref",
    "proxy_refs",
    "ref",
    "shallow_ref",
    "to_ref",
    "to_refs",
    "trigger_ref",
    "unref",
    "ComputedRef",
    "computed",
    "DeferredComputedRef",
    "deferred_computed",
    "flush_jobs",
    "get_pending_count",
    "queue_job",
    "set_scheduler",
    "action",
    "transaction",
]
