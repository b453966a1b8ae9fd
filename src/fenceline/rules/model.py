# SPDX-License-Identifier: Apache-2.0

"""Rule data model.

A :class:`Rule` is keyed by seven optional dimensions. An absent dimension
is a wildcard: the rule applies to every value of it. Rules own at most one
:class:`RuleLimits` and at most one :class:`LayerDetails`.
"""

from __future__ import annotations

import dataclasses
import enum
import ipaddress
from typing import Any

from shapely import geometry as sgeom

from fenceline import exception


class GrantType(str, enum.Enum):
    """Access granted by a matching rule."""

    ALLOW = "ALLOW"
    DENY = "DENY"
    LIMIT = "LIMIT"


class CatalogMode(str, enum.Enum):
    HIDE = "HIDE"
    CHALLENGE = "CHALLENGE"
    MIXED = "MIXED"


class LayerType(str, enum.Enum):
    VECTOR = "VECTOR"
    RASTER = "RASTER"
    LAYERGROUP = "LAYERGROUP"


class AccessType(str, enum.Enum):
    NONE = "NONE"
    READONLY = "READONLY"
    READWRITE = "READWRITE"


def coerce_enum(enum_cls: type[enum.Enum], value: Any, field: str) -> Any:
    """Convert ``value`` to a member of ``enum_cls``.

    :raises exception.ValidationError: if the value is not a member name
    """
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).upper())
    except ValueError:
        raise exception.ValidationError(
            reason="%s must be one of %s, got %r"
            % (field, ", ".join(m.value for m in enum_cls), value)
        )


@dataclasses.dataclass
class Instance:
    """A registered network instance rules may be scoped to."""

    id: int | None = None
    name: str | None = None
    description: str | None = None
    base_url: str | None = None


@dataclasses.dataclass
class LayerAttribute:
    """Access level for one attribute of a vector layer."""

    name: str
    datatype: str | None = None
    access: AccessType | None = None


@dataclasses.dataclass
class LayerDetails:
    """Per-layer constraints attached to a rule."""

    allowed_styles: set[str] = dataclasses.field(default_factory=set)
    attributes: list[LayerAttribute] = dataclasses.field(default_factory=list)
    cql_filter_read: str | None = None
    cql_filter_write: str | None = None
    default_style: str | None = None
    area: sgeom.MultiPolygon | None = None
    catalog_mode: CatalogMode | None = None
    type: LayerType | None = None

    def copy(self) -> LayerDetails:
        # Geometries are immutable and can be shared.
        return dataclasses.replace(
            self,
            allowed_styles=set(self.allowed_styles),
            attributes=[dataclasses.replace(a) for a in self.attributes],
        )


@dataclasses.dataclass
class RuleLimits:
    """Catalog mode and allowed area for a LIMIT rule."""

    catalog_mode: CatalogMode | None = None
    allowed_area: sgeom.MultiPolygon | None = None

    def copy(self) -> RuleLimits:
        return dataclasses.replace(self)


@dataclasses.dataclass
class Rule:
    """An authorization rule.

    :ivar priority: evaluation order, lower first; unique across the store
    """

    grant: GrantType | None = None
    id: int | None = None
    priority: int | None = None
    username: str | None = None
    rolename: str | None = None
    instance: Instance | None = None
    service: str | None = None
    request: str | None = None
    workspace: str | None = None
    layer: str | None = None
    address_range: str | None = None
    bbox: tuple[float, float, float, float] | None = None
    limits: RuleLimits | None = None
    details: LayerDetails | None = None

    def copy(self) -> Rule:
        return dataclasses.replace(
            self,
            instance=dataclasses.replace(self.instance) if self.instance else None,
            limits=self.limits.copy() if self.limits else None,
            details=self.details.copy() if self.details else None,
        )


def parse_address_range(value: str | None) -> str | None:
    """Normalise an IPv4/IPv6 CIDR string.

    Blank input means no address restriction.

    :raises exception.ValidationError: on malformed input
    """
    if value is None or not value.strip():
        return None
    try:
        return str(ipaddress.ip_network(value.strip(), strict=False))
    except ValueError as exc:
        raise exception.ValidationError(reason="bad address range: %s" % exc)


def parse_bbox(value: Any) -> tuple[float, float, float, float] | None:
    """Validate a (minx, miny, maxx, maxy) bounding box."""
    if value is None:
        return None
    try:
        minx, miny, maxx, maxy = (float(v) for v in value)
    except (TypeError, ValueError):
        raise exception.ValidationError(
            reason="bbox must be four numbers: minx, miny, maxx, maxy"
        )
    if minx > maxx or miny > maxy:
        raise exception.ValidationError(reason="bbox minimum exceeds maximum")
    return (minx, miny, maxx, maxy)
