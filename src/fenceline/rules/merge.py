# SPDX-License-Identifier: Apache-2.0

"""Partial updates of per-layer constraints.

:func:`merge_details` applies a :class:`ConstraintUpdate` to the layer
details stored on a rule and tells the caller whether anything changed, so
an unchanged rule is not written back.
"""

from __future__ import annotations

import dataclasses
from typing import Any

from oslo_log import log as logging

from fenceline import exception
from fenceline import geometry
from fenceline.rules import fields
from fenceline.rules import model

LOG = logging.getLogger(__name__)


@dataclasses.dataclass
class ConstraintUpdate:
    """Requested changes to a rule's layer details.

    Every field is :data:`~fenceline.rules.fields.UNSET`,
    :data:`~fenceline.rules.fields.CLEAR` or a value. ``area`` takes WKT
    text; ``attributes`` takes an iterable of
    :class:`~fenceline.rules.model.LayerAttribute`.
    """

    allowed_styles: Any = fields.UNSET
    attributes: Any = fields.UNSET
    cql_filter_read: Any = fields.UNSET
    cql_filter_write: Any = fields.UNSET
    default_style: Any = fields.UNSET
    area: Any = fields.UNSET
    catalog_mode: Any = fields.UNSET
    type: Any = fields.UNSET

    def is_empty(self) -> bool:
        return not any(
            fields.is_set(getattr(self, f.name)) for f in dataclasses.fields(self)
        )


def _index_by_name(attributes) -> dict[str, model.LayerAttribute]:
    indexed: dict[str, model.LayerAttribute] = {}
    for attr in attributes:
        if attr.name in indexed:
            raise exception.ValidationError(
                reason="duplicate attribute %r" % attr.name
            )
        indexed[attr.name] = attr
    return indexed


def reconcile_attributes(
    current: list[model.LayerAttribute],
    requested,
) -> tuple[list[model.LayerAttribute], bool]:
    """Make ``current`` hold exactly the attributes in ``requested``.

    Attributes are matched by name. A match is updated in place, keeping
    the stored object and its position; stored attributes missing from the
    request are dropped and requested names not yet stored are appended.

    :returns: (resulting attribute list, whether anything changed)
    """
    wanted = _index_by_name(requested)
    stored = _index_by_name(current)

    removed = stored.keys() - wanted.keys()
    added = [name for name in wanted if name not in stored]
    changed = bool(removed or added)

    result = []
    for name, attr in stored.items():
        if name in removed:
            LOG.debug("Attribute %s not found in update, will be removed", attr)
            continue
        new = wanted[name]
        if (attr.datatype, attr.access) != (new.datatype, new.access):
            attr.datatype = new.datatype
            attr.access = new.access
            changed = True
        result.append(attr)

    for name in added:
        LOG.debug("New attribute %s found in update, will be added", wanted[name])
        result.append(dataclasses.replace(wanted[name]))

    return result, changed


def _same_area(left, right) -> bool:
    return geometry.to_wkt(left) == geometry.to_wkt(right)


def merge_details(
    existing: model.LayerDetails | None,
    update: ConstraintUpdate,
    default_catalog_mode: model.CatalogMode = model.CatalogMode.HIDE,
) -> tuple[model.LayerDetails, bool]:
    """Compute new layer details from stored ones and a partial update.

    ``existing`` is not modified. When it is None, a fresh details object
    is started and, unless the update supplies one, its catalog mode is set
    to ``default_catalog_mode``.

    :raises exception.InvalidWKT: if the update carries an unparsable area
    :returns: (new details, whether any field changed)
    """
    fresh = existing is None
    details = model.LayerDetails() if fresh else existing.copy()
    changed = False

    def assign(name: str, value: Any) -> None:
        nonlocal changed
        if getattr(details, name) != value:
            setattr(details, name, value)
            changed = True

    if fields.is_set(update.allowed_styles):
        styles = fields.apply(None, update.allowed_styles) or ()
        if isinstance(styles, str) or not all(isinstance(s, str) for s in styles):
            raise exception.ValidationError(
                reason="allowed styles must be a collection of names"
            )
        assign("allowed_styles", set(styles))

    if fields.is_set(update.attributes):
        requested = fields.apply(None, update.attributes) or ()
        details.attributes, attrs_changed = reconcile_attributes(
            details.attributes, requested
        )
        changed = changed or attrs_changed

    for name in ("cql_filter_read", "cql_filter_write", "default_style"):
        value = getattr(update, name)
        if value == "":
            value = fields.CLEAR
        assign(name, fields.apply(getattr(details, name), value))

    if fields.is_set(update.area):
        area = None
        if update.area is not fields.CLEAR and update.area != "":
            area = geometry.parse_multipolygon(update.area)
        if not _same_area(details.area, area):
            details.area = area
            changed = True

    if fields.is_set(update.catalog_mode):
        assign(
            "catalog_mode",
            model.coerce_enum(
                model.CatalogMode,
                fields.apply(None, update.catalog_mode),
                "catalog_mode",
            ),
        )
    elif fresh:
        details.catalog_mode = default_catalog_mode

    if fields.is_set(update.type):
        assign(
            "type",
            model.coerce_enum(
                model.LayerType, fields.apply(None, update.type), "type"
            ),
        )

    if fresh and not update.is_empty():
        changed = True

    LOG.debug("Merged layer details %s (changed=%s)", details, changed)
    return details, changed


def details_from_constraints(
    update: ConstraintUpdate | None,
    default_catalog_mode: model.CatalogMode = model.CatalogMode.HIDE,
) -> model.LayerDetails | None:
    """Build layer details for a new rule; None when no constraints given."""
    if update is None:
        return None
    details, _ = merge_details(None, update, default_catalog_mode)
    return details
