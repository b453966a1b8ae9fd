# SPDX-License-Identifier: Apache-2.0

"""Rule administration service.

Every public method runs in exactly one store transaction. Any exception
raised inside it rolls back the whole call: reordering, rule changes and
detail changes are applied together or not at all.
"""

from __future__ import annotations

import dataclasses
from typing import Any

from oslo_log import log as logging

from fenceline import exception
from fenceline import geometry
from fenceline.db import api as db_api
from fenceline.rules import fields
from fenceline.rules import filter as rule_filter
from fenceline.rules import merge
from fenceline.rules import model
from fenceline.rules import ordering

LOG = logging.getLogger(__name__)


@dataclasses.dataclass
class RuleChanges:
    """Partial update of a rule's own fields.

    Each field is :data:`~fenceline.rules.fields.UNSET`,
    :data:`~fenceline.rules.fields.CLEAR` or a value. ``instance`` takes a
    :class:`~fenceline.rules.model.Instance` carrying an id or a name.
    ``position`` exists only so that attempts to move a rule through an
    update can be refused.
    """

    grant: Any = fields.UNSET
    username: Any = fields.UNSET
    rolename: Any = fields.UNSET
    instance: Any = fields.UNSET
    service: Any = fields.UNSET
    request: Any = fields.UNSET
    workspace: Any = fields.UNSET
    layer: Any = fields.UNSET
    address_range: Any = fields.UNSET
    bbox: Any = fields.UNSET
    position: Any = fields.UNSET


_TEXT_CHANGES = (
    "username", "rolename", "service", "request", "workspace", "layer",
)


class RuleAdminService:
    """Facade over the rule store.

    :param store: the :class:`~fenceline.db.api.RuleStore` to work on
    :param max_limit: cap on the page size of :meth:`search`
    :param default_catalog_mode: catalog mode for details created without one
    """

    def __init__(self, store: db_api.RuleStore, max_limit: int = 1000,
                 default_catalog_mode: model.CatalogMode = model.CatalogMode.HIDE):
        self.store = store
        self.max_limit = max_limit
        self.default_catalog_mode = model.coerce_enum(
            model.CatalogMode, default_catalog_mode, "default_catalog_mode"
        )

    @staticmethod
    def _resolve_instance(tx: db_api.RuleTransaction,
                          ref: model.Instance | None) -> model.Instance | None:
        if ref is None or (ref.id is None and ref.name is None):
            return None
        return tx.get_instance(instance_id=ref.id, name=ref.name)

    def insert(self, rule: model.Rule, position: ordering.Position | None,
               constraints: merge.ConstraintUpdate | None = None) -> int:
        """Insert a rule at a symbolic position.

        Every rule at or after the resolved priority moves up by one first.

        :returns: the new rule id
        :raises exception.InvalidPosition: if position is missing or bad
        :raises exception.MissingGrant: if the rule has no grant
        """
        if position is None:
            raise exception.InvalidPosition(reason="position is missing")
        if rule.grant is None:
            raise exception.MissingGrant()

        with self.store.transaction() as tx:
            new_rule = rule.copy()
            new_rule.instance = self._resolve_instance(tx, rule.instance)
            lowest, highest = tx.priority_bounds()
            new_rule.priority = ordering.resolve_priority(position, lowest, highest)
            tx.shift(new_rule.priority, 1)
            rule_id = tx.create_rule(new_rule)

            details = merge.details_from_constraints(
                constraints, self.default_catalog_mode
            )
            if details is not None:
                tx.set_details(rule_id, details)

        LOG.info("Inserted rule %s at priority %d", rule_id, new_rule.priority)
        return rule_id

    def update(self, rule_id: int, changes: RuleChanges,
               constraints: merge.ConstraintUpdate | None = None) -> None:
        """Apply a partial update to a rule and its layer details.

        The rule and its details are each written only if they changed.

        :raises exception.ImmutableField: if a position is supplied
        :raises exception.RuleNotFound: if the rule does not exist
        """
        if fields.is_set(changes.position):
            raise exception.ImmutableField(field="Position")
        if changes.grant is fields.CLEAR:
            raise exception.ValidationError(reason="grant can't be removed")

        with self.store.transaction() as tx:
            rule = tx.get_rule(rule_id)
            before = rule.copy()

            if fields.is_set(changes.grant):
                rule.grant = model.coerce_enum(model.GrantType, changes.grant, "grant")
            for name in _TEXT_CHANGES:
                value = getattr(changes, name)
                if value == "":
                    value = fields.CLEAR
                setattr(rule, name, fields.apply(getattr(rule, name), value))
            if fields.is_set(changes.instance):
                rule.instance = self._resolve_instance(
                    tx, fields.apply(None, changes.instance)
                )
            if fields.is_set(changes.address_range):
                rule.address_range = model.parse_address_range(
                    fields.apply(None, changes.address_range)
                )
            if fields.is_set(changes.bbox):
                rule.bbox = model.parse_bbox(fields.apply(None, changes.bbox))

            if rule != before:
                LOG.debug("Updating rule %s", rule_id)
                tx.update_rule(rule)
                if (before.grant is model.GrantType.LIMIT
                        and rule.grant is not model.GrantType.LIMIT
                        and rule.limits is not None):
                    LOG.debug("Rule %s is no longer LIMIT, dropping limits", rule_id)
                    tx.set_limits(rule_id, None)
            else:
                LOG.debug("Rule not changed %s", rule_id)

            if constraints is not None:
                details, changed = merge.merge_details(
                    rule.details, constraints, self.default_catalog_mode
                )
                if changed:
                    LOG.debug("Updating details %s", details)
                    tx.set_details(rule_id, details)
                else:
                    LOG.debug("Details not changed for rule %s", rule_id)

    def delete(self, rule_id: int) -> bool:
        with self.store.transaction() as tx:
            deleted = tx.delete_rule(rule_id)
        if deleted:
            LOG.info("Deleted rule %s", rule_id)
        else:
            LOG.warning("Rule not found: %s", rule_id)
        return deleted

    def get(self, rule_id: int) -> model.Rule:
        with self.store.transaction() as tx:
            return tx.get_rule(rule_id)

    def shift(self, priority: int, amount: int = 1) -> int:
        """Move every rule with priority >= ``priority`` by ``amount``.

        :returns: the number of rules moved
        """
        if priority is None or priority < 0:
            raise exception.ValidationError(reason="Bad Priority")
        with self.store.transaction() as tx:
            return tx.shift(priority, amount)

    def swap(self, rule_a: int, rule_b: int) -> None:
        for label, rule_id in (("id1", rule_a), ("id2", rule_b)):
            if rule_id is None or rule_id < 0:
                raise exception.ValidationError(reason="Bad %s" % label)
        with self.store.transaction() as tx:
            tx.swap(rule_a, rule_b)

    def set_limits(self, rule_id: int, catalog_mode: Any = None,
                   allowed_area: Any = None) -> None:
        """Replace the limits of a LIMIT rule.

        ``allowed_area`` is WKT text. When it is not supplied the previous
        area is kept; an empty string removes it.

        :raises exception.RuleNotFound: if the rule does not exist
        :raises exception.ValidationError: if the rule is not a LIMIT rule
        :raises exception.InvalidWKT: if the area cannot be parsed
        """
        area_update = fields.from_wire(allowed_area)
        with self.store.transaction() as tx:
            rule = tx.get_rule(rule_id)
            if rule.grant is not model.GrantType.LIMIT:
                raise exception.ValidationError(
                    reason="rule %s is not a LIMIT rule" % rule_id
                )
            if area_update is fields.UNSET:
                area = rule.limits.allowed_area if rule.limits else None
            elif area_update is fields.CLEAR:
                area = None
            else:
                area = geometry.parse_multipolygon(area_update)
            limits = model.RuleLimits(
                catalog_mode=model.coerce_enum(
                    model.CatalogMode, catalog_mode, "catalog_mode"),
                allowed_area=area,
            )
            tx.set_limits(rule_id, limits)
        LOG.debug("Set limits on rule %s: %s", rule_id, limits)

    def set_details(self, rule_id: int,
                    details: model.LayerDetails | None) -> None:
        """Replace the layer details of a rule wholesale."""
        with self.store.transaction() as tx:
            tx.set_details(rule_id, details)

    def _page(self, page: int | None, entries: int | None) -> int | None:
        if entries is not None and entries > self.max_limit:
            LOG.debug("Capping page size %d to %d", entries, self.max_limit)
            return self.max_limit
        return entries

    def search(self, flt: rule_filter.RuleFilter | None = None,
               page: int | None = None,
               entries: int | None = None) -> list[model.Rule]:
        """Return the rules matching ``flt`` by ascending priority."""
        with self.store.transaction() as tx:
            return tx.search(flt or rule_filter.ANY, page, self._page(page, entries))

    def count(self, flt: rule_filter.RuleFilter | None = None) -> int:
        with self.store.transaction() as tx:
            return tx.count(flt or rule_filter.ANY)

    # Instances

    def create_instance(self, instance: model.Instance) -> int:
        if not instance.name:
            raise exception.ValidationError(reason="instance name is mandatory")
        with self.store.transaction() as tx:
            instance_id = tx.create_instance(instance)
        LOG.info("Created instance %s (%s)", instance_id, instance.name)
        return instance_id

    def get_instance(self, instance_id: int | None = None,
                     name: str | None = None) -> model.Instance:
        with self.store.transaction() as tx:
            return tx.get_instance(instance_id=instance_id, name=name)

    def list_instances(self) -> list[model.Instance]:
        with self.store.transaction() as tx:
            return tx.list_instances()

    def delete_instance(self, instance_id: int) -> bool:
        with self.store.transaction() as tx:
            return tx.delete_instance(instance_id)
