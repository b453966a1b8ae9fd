# SPDX-License-Identifier: Apache-2.0

"""WKT conversion for restriction areas.

Areas are always stored as multipolygons. A single polygon is promoted to a
one-member multipolygon; any other geometry type is rejected.
"""

from __future__ import annotations

import shapely
from shapely import errors as shapely_errors
from shapely import geometry as sgeom
from shapely import wkt

from fenceline import exception


def parse_multipolygon(text: str) -> sgeom.MultiPolygon:
    """Convert WKT text to a valid multipolygon.

    :param text: POLYGON or MULTIPOLYGON well-known text
    :raises exception.InvalidWKT: if the text cannot be parsed, is not
        polygonal, or describes an invalid geometry
    """
    try:
        geom = wkt.loads(text)
    except (shapely_errors.ShapelyError, ValueError, TypeError) as exc:
        raise exception.InvalidWKT(reason=str(exc))

    if isinstance(geom, sgeom.Polygon):
        geom = sgeom.MultiPolygon([geom])
    if not isinstance(geom, sgeom.MultiPolygon):
        raise exception.InvalidWKT(
            reason="expected POLYGON or MULTIPOLYGON, got %s" % geom.geom_type
        )
    if geom.is_empty:
        raise exception.InvalidWKT(reason="empty geometry")
    if not geom.is_valid:
        raise exception.InvalidWKT(reason=shapely.is_valid_reason(geom))
    return geom


def to_wkt(geom: sgeom.MultiPolygon | None) -> str | None:
    if geom is None:
        return None
    return geom.wkt


def from_wkt(text: str | None) -> sgeom.MultiPolygon | None:
    """Inverse of :func:`to_wkt` for values read back from storage."""
    if not text:
        return None
    return parse_multipolygon(text)
