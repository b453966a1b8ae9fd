# SPDX-License-Identifier: Apache-2.0

"""Unit tests for the Fenceline geometry module."""

from oslotest import base

from fenceline import exception
from fenceline import geometry


class TestParseMultipolygon(base.BaseTestCase):

    def test_polygon_is_promoted(self):
        geom = geometry.parse_multipolygon(
            "POLYGON ((0 0, 1 0, 1 1, 0 1, 0 0))")
        self.assertEqual("MultiPolygon", geom.geom_type)
        self.assertEqual(1, len(geom.geoms))

    def test_multipolygon(self):
        geom = geometry.parse_multipolygon(
            "MULTIPOLYGON (((0 0, 1 0, 1 1, 0 1, 0 0)),"
            " ((5 5, 6 5, 6 6, 5 6, 5 5)))")
        self.assertEqual(2, len(geom.geoms))

    def test_malformed(self):
        self.assertRaises(exception.InvalidWKT, geometry.parse_multipolygon,
                          "POLYGON ((0 0, 1 0")

    def test_wrong_type(self):
        exc = self.assertRaises(exception.InvalidWKT,
                                geometry.parse_multipolygon,
                                "LINESTRING (0 0, 1 1)")
        self.assertIn("LineString", str(exc))

    def test_empty(self):
        self.assertRaises(exception.InvalidWKT, geometry.parse_multipolygon,
                          "MULTIPOLYGON EMPTY")

    def test_self_intersecting(self):
        self.assertRaises(exception.InvalidWKT, geometry.parse_multipolygon,
                          "POLYGON ((0 0, 2 2, 2 0, 0 2, 0 0))")

    def test_not_text(self):
        self.assertRaises(exception.InvalidWKT, geometry.parse_multipolygon, 12)


class TestWktConversion(base.BaseTestCase):

    def test_none(self):
        self.assertIsNone(geometry.to_wkt(None))
        self.assertIsNone(geometry.from_wkt(None))
        self.assertIsNone(geometry.from_wkt(""))

    def test_stored_text_reads_back(self):
        geom = geometry.parse_multipolygon(
            "POLYGON ((0 0, 1 0, 1 1, 0 1, 0 0))")
        self.assertTrue(geom.equals(geometry.from_wkt(geometry.to_wkt(geom))))
