# SPDX-License-Identifier: Apache-2.0

"""Tri-state values for partial updates.

A field in an update is either :data:`UNSET` (leave the stored value
alone), :data:`CLEAR` (reset it to absent) or a concrete value.
"""

from __future__ import annotations

from typing import Any


class _Marker:
    def __init__(self, name: str) -> None:
        self._name = name

    def __repr__(self) -> str:
        return self._name

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Marker("UNSET")
CLEAR: Any = _Marker("CLEAR")


def is_set(value: Any) -> bool:
    """Return True if ``value`` asks for a change (clear or a new value)."""
    return value is not UNSET


def from_wire(value: Any) -> Any:
    """Map a boundary value to a tri-state.

    ``None`` means the field was not supplied; an empty string or an empty
    collection means it was supplied empty and must be cleared.
    """
    if value is None:
        return UNSET
    if isinstance(value, (str, list, tuple, set, frozenset, dict)) and not value:
        return CLEAR
    return value


def apply(current: Any, value: Any) -> Any:
    """Return the resulting value of applying ``value`` over ``current``."""
    if value is UNSET:
        return current
    if value is CLEAR:
        return None
    return value
