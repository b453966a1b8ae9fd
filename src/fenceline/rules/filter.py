# SPDX-License-Identifier: Apache-2.0

"""Rule filters.

A :class:`RuleFilter` holds one :class:`DimensionFilter` per rule dimension.
Each dimension filter is in one of three states:

``ANY``
    the dimension is ignored.
``DEFAULT``
    only rules where the dimension is absent match.
``VALUE``
    rules carrying exactly the given value match; with ``include_default``
    rules where the dimension is absent match as well.

The instance dimension can be matched by id or by name. Every other
dimension is plain text.
"""

from __future__ import annotations

import dataclasses
import enum

from oslo_log import log as logging

from fenceline import exception
from fenceline.rules import model

LOG = logging.getLogger(__name__)

# Rule attribute holding each text dimension.
TEXT_FIELDS = {
    "user": "username",
    "role": "rolename",
    "service": "service",
    "request": "request",
    "workspace": "workspace",
    "layer": "layer",
}


class FilterType(str, enum.Enum):
    ANY = "ANY"
    DEFAULT = "DEFAULT"
    VALUE = "VALUE"


@dataclasses.dataclass(frozen=True)
class DimensionFilter:
    """Filter on a single rule dimension.

    For ``VALUE`` filters exactly one of ``id`` and ``name`` is set; ``id``
    is only meaningful on the instance dimension.
    """

    type: FilterType = FilterType.ANY
    id: int | None = None
    name: str | None = None
    include_default: bool = False

    def __post_init__(self) -> None:
        if self.id is not None and self.name is not None:
            raise exception.AmbiguousFilter(id=self.id, name=self.name)
        if self.type is FilterType.VALUE and self.id is None and self.name is None:
            raise exception.ValidationError(reason="value filter without a value")

    @classmethod
    def any(cls) -> DimensionFilter:
        return cls(FilterType.ANY)

    @classmethod
    def default(cls) -> DimensionFilter:
        return cls(FilterType.DEFAULT)

    @classmethod
    def by_name(cls, name: str, include_default: bool = False) -> DimensionFilter:
        return cls(FilterType.VALUE, name=name, include_default=include_default)

    @classmethod
    def by_id(cls, id: int, include_default: bool = False) -> DimensionFilter:
        return cls(FilterType.VALUE, id=id, include_default=include_default)

    def matches_text(self, value: str | None) -> bool:
        if self.type is FilterType.ANY:
            return True
        if value is None:
            return self.type is FilterType.DEFAULT or self.include_default
        return self.type is FilterType.VALUE and value == self.name

    def matches_instance(self, instance: model.Instance | None) -> bool:
        if self.type is FilterType.ANY:
            return True
        if instance is None:
            return self.type is FilterType.DEFAULT or self.include_default
        if self.type is not FilterType.VALUE:
            return False
        if self.id is not None:
            return instance.id == self.id
        return instance.name == self.name


@dataclasses.dataclass(frozen=True)
class RuleFilter:
    """Composite filter over all rule dimensions; ANY everywhere by default."""

    user: DimensionFilter = DimensionFilter()
    role: DimensionFilter = DimensionFilter()
    instance: DimensionFilter = DimensionFilter()
    service: DimensionFilter = DimensionFilter()
    request: DimensionFilter = DimensionFilter()
    workspace: DimensionFilter = DimensionFilter()
    layer: DimensionFilter = DimensionFilter()

    def matches(self, rule: model.Rule) -> bool:
        if not self.instance.matches_instance(rule.instance):
            return False
        for dimension, field in TEXT_FIELDS.items():
            if not getattr(self, dimension).matches_text(getattr(rule, field)):
                return False
        return True


ANY = RuleFilter()


def resolve_id_name(id: int | None, name: str | None,
                    include_default: bool | None) -> DimensionFilter:
    """Resolve raw id/name input for an id-or-name dimension.

    An id or name yields a ``VALUE`` filter; ``include_default`` defaults to
    True when not supplied. With neither, an explicit true
    ``include_default`` yields ``DEFAULT`` and anything else ``ANY``.

    :raises exception.AmbiguousFilter: if both id and name are given
    """
    if id is not None and name is not None:
        raise exception.AmbiguousFilter(id=id, name=name)
    if name == "":
        name = None
    include = True if include_default is None else bool(include_default)
    if id is not None:
        return DimensionFilter.by_id(int(id), include)
    if name is not None:
        return DimensionFilter.by_name(name, include)
    if include_default:
        return DimensionFilter.default()
    return DimensionFilter.any()


def resolve_text(name: str | None, include_default: bool | None) -> DimensionFilter:
    """Resolve raw input for a text dimension; blank text counts as absent."""
    return resolve_id_name(None, name or None, include_default)


def build_filter(
    user_name=None, user_default=None,
    role_name=None, role_default=None,
    instance_id=None, instance_name=None, instance_default=None,
    service_name=None, service_default=None,
    request_name=None, request_default=None,
    workspace=None, workspace_default=None,
    layer=None, layer_default=None,
) -> RuleFilter:
    """Build a :class:`RuleFilter` from raw per-dimension query values."""
    rule_filter = RuleFilter(
        user=resolve_text(user_name, user_default),
        role=resolve_text(role_name, role_default),
        instance=resolve_id_name(instance_id, instance_name, instance_default),
        service=resolve_text(service_name, service_default),
        request=resolve_text(request_name, request_default),
        workspace=resolve_text(workspace, workspace_default),
        layer=resolve_text(layer, layer_default),
    )
    LOG.debug("Built rule filter %s", rule_filter)
    return rule_filter
