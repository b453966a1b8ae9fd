# SPDX-License-Identifier: Apache-2.0

"""Unit tests for the Fenceline rule ordering module."""

from oslotest import base

from fenceline import exception
from fenceline.rules import ordering

FIXED = ordering.InsertPosition.FIXED
FROM_START = ordering.InsertPosition.FROM_START
FROM_END = ordering.InsertPosition.FROM_END


class TestPositionParse(base.BaseTestCase):
    """Tests for Position.parse."""

    def test_parse_enum_names(self):
        """Test enum names are accepted case-insensitively."""
        self.assertEqual(ordering.Position(FIXED, 3),
                         ordering.Position.parse("fixed", 3))
        self.assertEqual(ordering.Position(FROM_END, 0),
                         ordering.Position.parse("FROM_END", None))

    def test_parse_legacy_names(self):
        """Test the historical REST position names."""
        self.assertEqual(FIXED, ordering.Position.parse("fixedPriority", 1).kind)
        self.assertEqual(FROM_START,
                         ordering.Position.parse("offsetFromTop", 1).kind)
        self.assertEqual(FROM_END,
                         ordering.Position.parse("offsetFromBottom", 1).kind)

    def test_parse_missing_kind(self):
        """Test a missing position kind is rejected."""
        self.assertRaises(exception.InvalidPosition,
                          ordering.Position.parse, None, 1)

    def test_parse_unknown_kind(self):
        """Test an unknown position kind is rejected."""
        self.assertRaises(exception.InvalidPosition,
                          ordering.Position.parse, "middle", 1)

    def test_parse_non_integer_value(self):
        """Test a non-integer value is rejected."""
        self.assertRaises(exception.InvalidPosition,
                          ordering.Position.parse, "FIXED", "abc")

    def test_parse_fractional_value(self):
        """Test a fractional value is rejected instead of truncated."""
        for value in (1.7, 2.0, "1.7", True):
            self.assertRaises(exception.InvalidPosition,
                              ordering.Position.parse, "FIXED", value)

    def test_parse_numeric_string(self):
        self.assertEqual(4, ordering.Position.parse("FIXED", "4").value)


class TestResolvePriority(base.BaseTestCase):
    """Tests for resolve_priority."""

    def test_fixed(self):
        pos = ordering.Position(FIXED, 7)
        self.assertEqual(7, ordering.resolve_priority(pos, 2, 20))
        self.assertEqual(7, ordering.resolve_priority(pos, None, None))

    def test_from_start(self):
        pos = ordering.Position(FROM_START, 2)
        self.assertEqual(12, ordering.resolve_priority(pos, 10, 30))

    def test_from_start_empty_store(self):
        """Test an empty store resolves to the offset itself."""
        pos = ordering.Position(FROM_START, 4)
        self.assertEqual(4, ordering.resolve_priority(pos, None, None))

    def test_from_end(self):
        """Test offset 0 appends, offset 1 takes the last slot."""
        self.assertEqual(
            31, ordering.resolve_priority(ordering.Position(FROM_END, 0), 10, 30))
        self.assertEqual(
            30, ordering.resolve_priority(ordering.Position(FROM_END, 1), 10, 30))

    def test_from_end_empty_store(self):
        pos = ordering.Position(FROM_END, 5)
        self.assertEqual(0, ordering.resolve_priority(pos, None, None))

    def test_from_end_beyond_first(self):
        """Test an offset landing below zero is rejected."""
        pos = ordering.Position(FROM_END, 5)
        self.assertRaises(exception.InvalidPosition,
                          ordering.resolve_priority, pos, 0, 2)

    def test_negative_value(self):
        pos = ordering.Position(FIXED, -1)
        self.assertRaises(exception.InvalidPosition,
                          ordering.resolve_priority, pos, None, None)

    def test_missing_position(self):
        self.assertRaises(exception.InvalidPosition,
                          ordering.resolve_priority, None, 0, 1)


class TestScratch(base.BaseTestCase):
    """Tests for the scratch priority encoding."""

    def test_scratch_is_negative(self):
        for priority in (0, 1, 99):
            self.assertLess(ordering.scratch(priority), 0)

    def test_scratch_round_trip(self):
        self.assertEqual(42, ordering.scratch(ordering.scratch(42)))

    def test_scratch_is_injective(self):
        parked = {ordering.scratch(p) for p in range(50)}
        self.assertEqual(50, len(parked))


class TestShiftChecks(base.BaseTestCase):
    """Tests for shift argument validation."""

    def test_negative_threshold(self):
        self.assertRaises(exception.ValidationError,
                          ordering.check_shift, -1, 1)

    def test_zero_amount(self):
        self.assertRaises(exception.ValidationError,
                          ordering.check_shift, 0, 0)

    def test_upward_always_has_room(self):
        ordering.check_shift_room(5, 3, 5, 4)

    def test_downward_with_room(self):
        ordering.check_shift_room(10, -3, 10, 6)

    def test_downward_onto_kept_rule(self):
        self.assertRaises(exception.PriorityConflict,
                          ordering.check_shift_room, 10, -4, 10, 6)

    def test_downward_below_zero(self):
        self.assertRaises(exception.ConflictError,
                          ordering.check_shift_room, 2, -3, 2, None)

    def test_downward_nothing_to_move(self):
        ordering.check_shift_room(10, -20, None, 9)
