"""Observation backend switch.

Two backends turn a raw object into a wrapper:

- native interception (``refx.proxy``): a proxy object routes every
  attribute and item access through handler traps, so additions, deletions,
  membership tests and enumeration are all observed;
- descriptor emulation (``refx.def_observer``): a shadow object carries one
  accessor pair per key that existed when it was built. Keys added later
  must go through ``set_key``/``del_key``/``has_key``/``own_keys``.

Interception is the platform default. Setting ``REFX_DISABLE_PROXY=1`` in
the environment makes descriptor emulation the default instead. The switch
only affects wrappers created after it flips.
"""

from __future__ import annotations

import os

_TRUTHY = {"1", "true", "yes", "on"}


def _platform_default() -> bool:
    return os.environ.get("REFX_DISABLE_PROXY", "").strip().lower() not in _TRUTHY


SUPPORTS_PROXY = _platform_default()

_use_proxy = SUPPORTS_PROXY


def should_use_proxy() -> bool:
    return _use_proxy


def disable_proxy() -> None:
    global _use_proxy
    _use_proxy = False


def enable_proxy() -> None:
    global _use_proxy
    _use_proxy = True


def reset_proxy() -> None:
    global _use_proxy
    _use_proxy = SUPPORTS_PROXY
