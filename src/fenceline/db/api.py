# SPDX-License-Identifier: Apache-2.0

"""Rule store interface.

A store hands out transactions. Everything done through one
:class:`RuleTransaction` is committed together when the ``with`` block
exits normally and discarded when it raises.

Priority moves are written once here in terms of a few bulk primitives the
backends implement. Rules being moved are first parked in the negative
scratch range (see :mod:`fenceline.rules.ordering`), so the unique priority
constraint holds after every single write.
"""

from __future__ import annotations

import abc
import contextlib
from collections.abc import Iterator

from oslo_log import log as logging

from fenceline import exception
from fenceline.rules import filter as rule_filter
from fenceline.rules import model
from fenceline.rules import ordering

LOG = logging.getLogger(__name__)


class RuleTransaction(abc.ABC):
    """Operations on the rule store within a single transaction."""

    # Rules

    @abc.abstractmethod
    def get_rule(self, rule_id: int) -> model.Rule:
        """Return a rule with its instance, limits and details.

        :raises exception.RuleNotFound: if no such rule exists
        """

    @abc.abstractmethod
    def create_rule(self, rule: model.Rule) -> int:
        """Store a new rule at ``rule.priority`` and return its id.

        :raises exception.PriorityConflict: if the priority is taken
        """

    @abc.abstractmethod
    def update_rule(self, rule: model.Rule) -> None:
        """Overwrite every field of a stored rule except id and priority.

        Limits and details are left alone; see :meth:`set_details` and
        :meth:`set_limits`.

        :raises exception.RuleNotFound: if the rule does not exist
        """

    @abc.abstractmethod
    def delete_rule(self, rule_id: int) -> bool:
        """Delete a rule with its limits and details."""

    @abc.abstractmethod
    def set_details(self, rule_id: int, details: model.LayerDetails | None) -> None:
        pass

    @abc.abstractmethod
    def set_limits(self, rule_id: int, limits: model.RuleLimits | None) -> None:
        pass

    @abc.abstractmethod
    def search(self, flt: rule_filter.RuleFilter, page: int | None = None,
               entries: int | None = None) -> list[model.Rule]:
        """Return matching rules by ascending priority.

        With ``page`` and ``entries`` only the ``page``-th (0 based) slice of
        ``entries`` rules is returned.
        """

    @abc.abstractmethod
    def count(self, flt: rule_filter.RuleFilter) -> int:
        pass

    # Priority primitives

    @abc.abstractmethod
    def priority_bounds(self) -> tuple[int | None, int | None]:
        """Return (lowest, highest) priority, or (None, None) when empty."""

    @abc.abstractmethod
    def _lowest_from(self, threshold: int) -> int | None:
        """Lowest priority >= threshold."""

    @abc.abstractmethod
    def _highest_below(self, threshold: int) -> int | None:
        """Highest priority < threshold."""

    @abc.abstractmethod
    def _park_from(self, threshold: int) -> int:
        """Move every priority >= threshold to scratch; return the count."""

    @abc.abstractmethod
    def _unpark(self, amount: int) -> None:
        """Restore every parked priority, adding ``amount``."""

    @abc.abstractmethod
    def _set_priority(self, rule_id: int, priority: int) -> None:
        pass

    def shift(self, threshold: int, amount: int) -> int:
        """Move every rule with priority >= threshold by ``amount``.

        :returns: number of rules moved
        :raises exception.ValidationError: for bad arguments
        :raises exception.ConflictError: if a downward move would collide
        """
        ordering.check_shift(threshold, amount)
        ordering.check_shift_room(
            threshold, amount,
            self._lowest_from(threshold), self._highest_below(threshold),
        )
        moved = self._park_from(threshold)
        if moved:
            self._unpark(amount)
        LOG.debug("Shifted %d rule(s) from priority %d by %d",
                  moved, threshold, amount)
        return moved

    def swap(self, rule_a: int, rule_b: int) -> None:
        """Exchange the priorities of two rules.

        :raises exception.RuleNotFound: if either rule is missing
        """
        first = self.get_rule(rule_a)
        second = self.get_rule(rule_b)
        if first.id == second.id:
            return
        self._set_priority(first.id, ordering.scratch(first.priority))
        self._set_priority(second.id, first.priority)
        self._set_priority(first.id, second.priority)
        LOG.debug("Swapped rule %s (now %d) and rule %s (now %d)",
                  first.id, second.priority, second.id, first.priority)

    # Instances

    @abc.abstractmethod
    def create_instance(self, instance: model.Instance) -> int:
        """:raises exception.InstanceExists: if the name is taken"""

    @abc.abstractmethod
    def get_instance(self, instance_id: int | None = None,
                     name: str | None = None) -> model.Instance:
        """:raises exception.InstanceNotFound: if no instance matches"""

    @abc.abstractmethod
    def list_instances(self) -> list[model.Instance]:
        pass

    @abc.abstractmethod
    def delete_instance(self, instance_id: int) -> bool:
        """:raises exception.InstanceInUse: while rules reference it"""


class RuleStore(abc.ABC):
    """Factory of rule store transactions."""

    @abc.abstractmethod
    def transaction(self) -> contextlib.AbstractContextManager[RuleTransaction]:
        pass

    def close(self) -> None:
        pass


def load_store(config) -> RuleStore:
    """Create the store selected by ``config``.

    :param config: mapping with ``DATABASE_BACKEND`` and, for Neo4j,
        ``NEO4J_URI``, ``NEO4J_USERNAME``, ``NEO4J_PASSWORD`` and
        ``AUTO_APPLY_SCHEMA``
    """
    backend = config.get("DATABASE_BACKEND", "neo4j")
    LOG.info("Using %s rule store", backend)
    if backend == "memory":
        from fenceline.db import memory
        return memory.MemoryRuleStore()
    if backend == "neo4j":
        from fenceline.db import neo4j_store
        return neo4j_store.Neo4jRuleStore.from_config(config)
    raise exception.ValidationError(reason="unknown database backend %r" % backend)


def paginate(page: int | None, entries: int | None) -> tuple[int, int] | None:
    """Validate pagination input; return (skip, limit) or None for no paging."""
    if page is None and entries is None:
        return None
    if page is None or entries is None:
        raise exception.ValidationError(
            reason="page and entries must be given together"
        )
    if page < 0 or entries < 1:
        raise exception.ValidationError(
            reason="page must be >= 0 and entries >= 1"
        )
    return page * entries, entries


def iter_page(rules: list[model.Rule], page: int | None,
              entries: int | None) -> Iterator[model.Rule]:
    window = paginate(page, entries)
    if window is None:
        yield from rules
        return
    skip, limit = window
    yield from rules[skip:skip + limit]
