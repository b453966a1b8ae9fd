# SPDX-License-Identifier: Apache-2.0

"""In-process rule store.

Writers are serialised by a lock. Each transaction works on a copy of the
store state that replaces the shared state only on commit, so a failed
operation leaves nothing behind. Every priority write checks uniqueness, so
an algorithm that would pass through a duplicate fails loudly here.
"""

from __future__ import annotations

import contextlib
import dataclasses
import threading
from collections.abc import Generator

from oslo_log import log as logging

from fenceline import exception
from fenceline.db import api
from fenceline.rules import filter as rule_filter
from fenceline.rules import model

LOG = logging.getLogger(__name__)


@dataclasses.dataclass
class _State:
    rules: dict[int, model.Rule] = dataclasses.field(default_factory=dict)
    instances: dict[int, model.Instance] = dataclasses.field(default_factory=dict)
    next_rule_id: int = 1
    next_instance_id: int = 1

    def copy(self) -> _State:
        return _State(
            rules={k: r.copy() for k, r in self.rules.items()},
            instances={k: dataclasses.replace(i) for k, i in self.instances.items()},
            next_rule_id=self.next_rule_id,
            next_instance_id=self.next_instance_id,
        )


class MemoryTransaction(api.RuleTransaction):

    def __init__(self, state: _State) -> None:
        self._state = state
        self._by_priority = {r.priority: r.id for r in state.rules.values()}

    def _rule(self, rule_id: int) -> model.Rule:
        try:
            return self._state.rules[rule_id]
        except KeyError:
            raise exception.RuleNotFound(rule_id=rule_id)

    def _claim(self, rule: model.Rule, priority: int) -> None:
        holder = self._by_priority.get(priority)
        if holder is not None and holder != rule.id:
            raise exception.PriorityConflict(priority=priority)
        if self._by_priority.get(rule.priority) == rule.id:
            del self._by_priority[rule.priority]
        rule.priority = priority
        self._by_priority[priority] = rule.id

    def _resolved(self, rule: model.Rule) -> model.Rule:
        out = rule.copy()
        if out.instance is not None:
            out.instance = dataclasses.replace(
                self._state.instances[out.instance.id]
            )
        return out

    def get_rule(self, rule_id):
        return self._resolved(self._rule(rule_id))

    def create_rule(self, rule):
        if rule.priority is None or rule.priority < 0:
            raise exception.ValidationError(reason="rule priority must be >= 0")
        if rule.priority in self._by_priority:
            raise exception.PriorityConflict(priority=rule.priority)
        stored = rule.copy()
        stored.id = self._state.next_rule_id
        self._state.next_rule_id += 1
        self._claim(stored, rule.priority)
        self._state.rules[stored.id] = stored
        return stored.id

    def update_rule(self, rule):
        stored = self._rule(rule.id)
        replacement = rule.copy()
        replacement.priority = stored.priority
        replacement.limits = stored.limits
        replacement.details = stored.details
        self._state.rules[rule.id] = replacement

    def delete_rule(self, rule_id):
        rule = self._state.rules.pop(rule_id, None)
        if rule is None:
            return False
        del self._by_priority[rule.priority]
        return True

    def set_details(self, rule_id, details):
        self._rule(rule_id).details = details.copy() if details else None

    def set_limits(self, rule_id, limits):
        self._rule(rule_id).limits = limits.copy() if limits else None

    def _matching(self, flt: rule_filter.RuleFilter) -> list[model.Rule]:
        ordered = sorted(self._state.rules.values(), key=lambda r: r.priority)
        return [r for r in ordered if flt.matches(r)]

    def search(self, flt, page=None, entries=None):
        return [self._resolved(r)
                for r in api.iter_page(self._matching(flt), page, entries)]

    def count(self, flt):
        return len(self._matching(flt))

    def priority_bounds(self):
        if not self._by_priority:
            return None, None
        return min(self._by_priority), max(self._by_priority)

    def _lowest_from(self, threshold):
        return min((p for p in self._by_priority if p >= threshold), default=None)

    def _highest_below(self, threshold):
        return max((p for p in self._by_priority if 0 <= p < threshold),
                   default=None)

    def _park_from(self, threshold):
        moving = [self._state.rules[rid]
                  for p, rid in self._by_priority.items() if p >= threshold]
        for rule in moving:
            self._claim(rule, -rule.priority - 1)
        return len(moving)

    def _unpark(self, amount):
        parked = [self._state.rules[rid]
                  for p, rid in self._by_priority.items() if p < 0]
        for rule in parked:
            self._claim(rule, -rule.priority - 1 + amount)

    def _set_priority(self, rule_id, priority):
        self._claim(self._rule(rule_id), priority)

    def create_instance(self, instance):
        for existing in self._state.instances.values():
            if existing.name == instance.name:
                raise exception.InstanceExists(name=instance.name)
        stored = dataclasses.replace(instance, id=self._state.next_instance_id)
        self._state.next_instance_id += 1
        self._state.instances[stored.id] = stored
        return stored.id

    def get_instance(self, instance_id=None, name=None):
        if instance_id is not None and name is not None:
            raise exception.AmbiguousFilter(id=instance_id, name=name)
        for instance in self._state.instances.values():
            if instance_id is not None and instance.id == instance_id:
                return dataclasses.replace(instance)
            if name is not None and instance.name == name:
                return dataclasses.replace(instance)
        raise exception.InstanceNotFound(
            instance=instance_id if instance_id is not None else name
        )

    def list_instances(self):
        return [dataclasses.replace(i) for _, i in
                sorted(self._state.instances.items())]

    def delete_instance(self, instance_id):
        if instance_id not in self._state.instances:
            return False
        users = sum(1 for r in self._state.rules.values()
                    if r.instance is not None and r.instance.id == instance_id)
        if users:
            raise exception.InstanceInUse(instance=instance_id, count=users)
        del self._state.instances[instance_id]
        return True


class MemoryRuleStore(api.RuleStore):
    """Rule store kept in process memory."""

    def __init__(self) -> None:
        self._state = _State()
        self._lock = threading.RLock()

    @contextlib.contextmanager
    def transaction(self) -> Generator[MemoryTransaction, None, None]:
        with self._lock:
            working = self._state.copy()
            yield MemoryTransaction(working)
            self._state = working
