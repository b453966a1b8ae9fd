# SPDX-License-Identifier: Apache-2.0

"""Unit tests for the Fenceline constraint merge module."""

from oslotest import base

from fenceline import exception
from fenceline import geometry
from fenceline.rules import fields
from fenceline.rules import merge
from fenceline.rules import model

READ = model.AccessType.READONLY
WRITE = model.AccessType.READWRITE
SQUARE = "POLYGON ((0 0, 10 0, 10 10, 0 10, 0 0))"


def _attr(name, access, datatype=None):
    return model.LayerAttribute(name=name, datatype=datatype, access=access)


class TestFields(base.BaseTestCase):
    """Tests for tri-state update values."""

    def test_from_wire(self):
        self.assertIs(fields.UNSET, fields.from_wire(None))
        self.assertIs(fields.CLEAR, fields.from_wire(""))
        self.assertIs(fields.CLEAR, fields.from_wire([]))
        self.assertEqual("x", fields.from_wire("x"))
        self.assertEqual(0, fields.from_wire(0))

    def test_apply(self):
        self.assertEqual("old", fields.apply("old", fields.UNSET))
        self.assertIsNone(fields.apply("old", fields.CLEAR))
        self.assertEqual("new", fields.apply("old", "new"))

    def test_markers_are_not_values(self):
        self.assertFalse(fields.is_set(fields.UNSET))
        self.assertTrue(fields.is_set(fields.CLEAR))
        self.assertEqual("UNSET", repr(fields.UNSET))


class TestReconcileAttributes(base.BaseTestCase):
    """Tests for name-keyed attribute reconciliation."""

    def test_update_remove_and_add(self):
        a = _attr("A", WRITE)
        c = _attr("C", READ)
        current = [a, c]

        result, changed = merge.reconcile_attributes(
            current, [_attr("A", READ), _attr("B", WRITE)]
        )

        self.assertTrue(changed)
        self.assertEqual(["A", "B"], [x.name for x in result])
        self.assertIs(a, result[0])
        self.assertEqual(READ, result[0].access)
        self.assertEqual(WRITE, result[1].access)

    def test_same_attributes_unchanged(self):
        current = [_attr("A", READ, "String")]
        result, changed = merge.reconcile_attributes(
            current, [_attr("A", READ, "String")]
        )
        self.assertFalse(changed)
        self.assertIs(current[0], result[0])

    def test_datatype_change(self):
        current = [_attr("A", READ, "String")]
        _, changed = merge.reconcile_attributes(
            current, [_attr("A", READ, "Integer")]
        )
        self.assertTrue(changed)
        self.assertEqual("Integer", current[0].datatype)

    def test_empty_request_removes_all(self):
        result, changed = merge.reconcile_attributes([_attr("A", READ)], [])
        self.assertEqual([], result)
        self.assertTrue(changed)

    def test_added_attributes_are_copies(self):
        requested = _attr("N", READ)
        result, _ = merge.reconcile_attributes([], [requested])
        self.assertIsNot(requested, result[0])
        self.assertEqual(requested, result[0])

    def test_duplicate_names_rejected(self):
        self.assertRaises(exception.ValidationError, merge.reconcile_attributes,
                          [], [_attr("A", READ), _attr("A", WRITE)])


class TestMergeDetails(base.BaseTestCase):
    """Tests for merging partial constraint updates."""

    def setUp(self):
        super().setUp()
        self.existing = model.LayerDetails(
            allowed_styles={"s1", "s2"},
            attributes=[_attr("A", WRITE)],
            cql_filter_read="x > 1",
            default_style="s1",
            catalog_mode=model.CatalogMode.MIXED,
            type=model.LayerType.VECTOR,
        )

    def test_absent_fields_unchanged(self):
        details, changed = merge.merge_details(
            self.existing, merge.ConstraintUpdate()
        )
        self.assertFalse(changed)
        self.assertEqual(self.existing, details)

    def test_existing_not_modified(self):
        merge.merge_details(self.existing, merge.ConstraintUpdate(
            allowed_styles={"other"},
            attributes=[_attr("A", READ)],
        ))
        self.assertEqual({"s1", "s2"}, self.existing.allowed_styles)
        self.assertEqual(WRITE, self.existing.attributes[0].access)

    def test_clear_fields(self):
        details, changed = merge.merge_details(
            self.existing,
            merge.ConstraintUpdate(
                allowed_styles=fields.CLEAR,
                cql_filter_read="",
                default_style=fields.CLEAR,
            ),
        )
        self.assertTrue(changed)
        self.assertEqual(set(), details.allowed_styles)
        self.assertIsNone(details.cql_filter_read)
        self.assertIsNone(details.default_style)
        self.assertEqual(model.CatalogMode.MIXED, details.catalog_mode)

    def test_same_value_is_not_a_change(self):
        _, changed = merge.merge_details(
            self.existing,
            merge.ConstraintUpdate(default_style="s1", catalog_mode="MIXED"),
        )
        self.assertFalse(changed)

    def test_set_enums(self):
        details, changed = merge.merge_details(
            self.existing,
            merge.ConstraintUpdate(catalog_mode="hide", type="RASTER"),
        )
        self.assertTrue(changed)
        self.assertEqual(model.CatalogMode.HIDE, details.catalog_mode)
        self.assertEqual(model.LayerType.RASTER, details.type)

    def test_bad_enum(self):
        self.assertRaises(exception.ValidationError, merge.merge_details,
                          self.existing,
                          merge.ConstraintUpdate(catalog_mode="SHOW"))

    def test_styles_must_be_names(self):
        for styles in ("roads", [1, 2]):
            self.assertRaises(exception.ValidationError, merge.merge_details,
                              self.existing,
                              merge.ConstraintUpdate(allowed_styles=styles))
        self.assertEqual({"s1", "s2"}, self.existing.allowed_styles)

    def test_area(self):
        details, changed = merge.merge_details(
            self.existing, merge.ConstraintUpdate(area=SQUARE)
        )
        self.assertTrue(changed)
        self.assertEqual("MultiPolygon", details.area.geom_type)

        again, changed = merge.merge_details(
            details, merge.ConstraintUpdate(area=SQUARE)
        )
        self.assertFalse(changed)

        cleared, changed = merge.merge_details(
            details, merge.ConstraintUpdate(area=fields.CLEAR)
        )
        self.assertTrue(changed)
        self.assertIsNone(cleared.area)

    def test_bad_area(self):
        exc = self.assertRaises(exception.InvalidWKT, merge.merge_details,
                                self.existing,
                                merge.ConstraintUpdate(area="POLYGON (("))
        self.assertIn("Error parsing WKT", str(exc))

    def test_fresh_details_default_catalog_mode(self):
        details, changed = merge.merge_details(
            None, merge.ConstraintUpdate(default_style="s")
        )
        self.assertTrue(changed)
        self.assertEqual(model.CatalogMode.HIDE, details.catalog_mode)

    def test_fresh_details_configured_catalog_mode(self):
        details, _ = merge.merge_details(
            None, merge.ConstraintUpdate(),
            default_catalog_mode=model.CatalogMode.CHALLENGE,
        )
        self.assertEqual(model.CatalogMode.CHALLENGE, details.catalog_mode)

    def test_fresh_details_explicit_catalog_mode(self):
        details, _ = merge.merge_details(
            None, merge.ConstraintUpdate(catalog_mode="MIXED")
        )
        self.assertEqual(model.CatalogMode.MIXED, details.catalog_mode)

    def test_details_from_constraints(self):
        self.assertIsNone(merge.details_from_constraints(None))
        details = merge.details_from_constraints(
            merge.ConstraintUpdate(area=geometry.to_wkt(
                geometry.parse_multipolygon(SQUARE)))
        )
        self.assertIsNotNone(details.area)
