# SPDX-License-Identifier: Apache-2.0

"""Priority arithmetic for the rule store.

Priorities are non-negative and unique. Moves that could momentarily put
two rules on the same priority go through the negative scratch range: a
priority ``p`` is parked at ``scratch(p) = -p - 1`` and restored with the
same function, so parked values never collide with live ones or with each
other.
"""

from __future__ import annotations

import dataclasses
import enum

from fenceline import exception


class InsertPosition(str, enum.Enum):
    FIXED = "FIXED"
    FROM_START = "FROM_START"
    FROM_END = "FROM_END"


# Names used by REST clients of the original service.
_ALIASES = {
    "fixedpriority": InsertPosition.FIXED,
    "offsetfromtop": InsertPosition.FROM_START,
    "offsetfrombottom": InsertPosition.FROM_END,
}


@dataclasses.dataclass(frozen=True)
class Position:
    """Symbolic insert position: a kind and its value or offset."""

    kind: InsertPosition
    value: int = 0

    @classmethod
    def parse(cls, kind, value) -> Position:
        """Build a position from raw input.

        :raises exception.InvalidPosition: on unknown kinds or bad values
        """
        if kind is None:
            raise exception.InvalidPosition(reason="position is missing")
        if not isinstance(kind, InsertPosition):
            text = str(kind)
            kind = _ALIASES.get(text.lower())
            if kind is None:
                try:
                    kind = InsertPosition(text.upper())
                except ValueError:
                    raise exception.InvalidPosition(
                        reason="unknown position %r" % text
                    )
        if value is None:
            value = 0
        elif isinstance(value, str) and value.strip().lstrip("-").isdigit():
            value = int(value)
        elif isinstance(value, bool) or not isinstance(value, int):
            raise exception.InvalidPosition(reason="value %r is not an integer" % value)
        return cls(kind, value)


def resolve_priority(position: Position, min_priority: int | None,
                     max_priority: int | None) -> int:
    """Turn a symbolic position into an absolute priority.

    ``FIXED(v)`` is ``v``. ``FROM_START(o)`` is ``min + o``; an empty store
    yields ``o``. ``FROM_END(o)`` is ``max + 1 - o``, so offset 0 appends
    after the last rule; an empty store yields 0.

    :param min_priority: lowest priority in the store, None when empty
    :param max_priority: highest priority in the store, None when empty
    :raises exception.InvalidPosition: for negative values or results
    """
    if position is None:
        raise exception.InvalidPosition(reason="position is missing")
    if position.value < 0:
        raise exception.InvalidPosition(
            reason="%s value must not be negative" % position.kind.value
        )

    if position.kind is InsertPosition.FIXED:
        target = position.value
    elif position.kind is InsertPosition.FROM_START:
        base = min_priority if min_priority is not None else 0
        target = base + position.value
    else:
        if max_priority is None:
            target = 0
        else:
            target = max_priority + 1 - position.value

    if target < 0:
        raise exception.InvalidPosition(
            reason="offset %d from end is beyond the first rule" % position.value
        )
    return target


def scratch(priority: int) -> int:
    """Park a priority in the negative range, or restore a parked one."""
    return -priority - 1


def check_shift(threshold: int, amount: int) -> None:
    """Validate shift arguments before touching the store.

    :raises exception.ValidationError: for a negative threshold or zero amount
    """
    if threshold is None or threshold < 0:
        raise exception.ValidationError(reason="Bad Priority")
    if amount is None or amount == 0:
        raise exception.ValidationError(reason="shift amount must be non-zero")


def check_shift_room(threshold: int, amount: int, lowest_moved: int | None,
                     highest_kept: int | None) -> None:
    """Check that a downward shift stays clear of the rules it leaves behind.

    Upward shifts always have room. A downward shift moves the lowest moved
    rule to ``lowest_moved + amount``, which must stay non-negative and above
    every rule below the threshold.

    :param lowest_moved: lowest priority >= threshold, None if nothing moves
    :param highest_kept: highest priority < threshold, None if none
    :raises exception.ConflictError: if the shift would collide
    """
    if amount > 0 or lowest_moved is None:
        return
    landing = lowest_moved + amount
    if landing < 0:
        raise exception.ConflictError(
            reason="shifting priority %d by %d goes below zero"
            % (lowest_moved, amount)
        )
    if highest_kept is not None and landing <= highest_kept:
        raise exception.PriorityConflict(priority=landing)
