"""Tests for the grid geometry value types."""

import os
import sys
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from template_layout.exceptions import GeometryError
from template_layout.geometry import (
    CellArea,
    CellCoord,
    RowRange,
    column_index,
    column_letter,
    parse_area,
    parse_cell,
    split_sheet_reference,
)


class TestColumnConversion(unittest.TestCase):
    def test_single_letter(self):
        self.assertEqual(column_index("A"), 0)
        self.assertEqual(column_index("z"), 25)

    def test_double_letter(self):
        self.assertEqual(column_index("AB"), 27)
        self.assertEqual(column_letter(27), "AB")

    def test_roundtrip(self):
        for i in range(0, 800, 7):
            self.assertEqual(column_index(column_letter(i)), i)

    def test_invalid_letters(self):
        with self.assertRaises(GeometryError):
            column_index("A1")
        with self.assertRaises(GeometryError):
            column_letter(-1)


class TestCellCoord(unittest.TestCase):
    def test_negative_rejected(self):
        with self.assertRaises(GeometryError):
            CellCoord(-1, 0)
        with self.assertRaises(GeometryError):
            CellCoord(0, -3)

    def test_immutable_and_hashable(self):
        coord = CellCoord(4, 1)
        with self.assertRaises(AttributeError):
            coord.row = 5
        self.assertEqual({coord: 1}[CellCoord(4, 1)], 1)

    def test_to_a1(self):
        self.assertEqual(CellCoord(4, 1).to_a1(), "B5")
        self.assertEqual(CellCoord(0, 0).offset(rows=2, cols=3).to_a1(), "D3")


class TestRanges(unittest.TestCase):
    def test_contains_and_iterate(self):
        rows = RowRange(2, 4)
        self.assertIn(2, rows)
        self.assertIn(4, rows)
        self.assertNotIn(5, rows)
        self.assertEqual(list(rows), [2, 3, 4])
        self.assertEqual(rows.count, 3)

    def test_overlaps(self):
        self.assertTrue(RowRange(1, 3).overlaps(RowRange(3, 6)))
        self.assertFalse(RowRange(1, 3).overlaps(RowRange(4, 6)))

    def test_reversed_range_rejected(self):
        with self.assertRaises(GeometryError):
            RowRange(5, 2)


class TestCellArea(unittest.TestCase):
    def test_derived_values(self):
        area = CellArea(CellCoord(2, 1), CellCoord(3, 3))
        self.assertEqual(area.row_range, RowRange(2, 3))
        self.assertEqual(area.row_count, 2)
        self.assertEqual(area.col_count, 3)
        self.assertTrue(area.contains(CellCoord(3, 2)))
        self.assertFalse(area.contains(CellCoord(4, 2)))

    def test_start_after_end_rejected(self):
        with self.assertRaises(GeometryError):
            CellArea(CellCoord(5, 0), CellCoord(4, 0))
        with self.assertRaises(GeometryError):
            CellArea(CellCoord(0, 2), CellCoord(4, 1))

    def test_overlaps_needs_both_axes(self):
        a = CellArea.from_bounds(0, 0, 2, 2)
        self.assertTrue(a.overlaps(CellArea.from_bounds(2, 2, 3, 3)))
        self.assertFalse(a.overlaps(CellArea.from_bounds(0, 3, 2, 4)))
        self.assertFalse(a.overlaps(CellArea.from_bounds(3, 0, 4, 2)))


class TestParsing(unittest.TestCase):
    def test_parse_area(self):
        self.assertEqual(parse_area("A2:C3"), CellArea.from_bounds(1, 0, 2, 2))
        self.assertEqual(parse_area("$H$10"), CellArea.from_bounds(9, 7, 9, 7))
        self.assertEqual(parse_area("b4").to_a1(), "B4")

    def test_parse_cell(self):
        self.assertEqual(parse_cell("$B$5"), CellCoord(4, 1))
        with self.assertRaises(GeometryError):
            parse_cell("A1:B2")

    def test_bad_text(self):
        for text in ("", "12", "A:B", "not a ref"):
            with self.assertRaises(GeometryError):
                parse_area(text)

    def test_split_sheet_reference(self):
        self.assertEqual(split_sheet_reference("'My Sheet'!A1:B2"), ("My Sheet", "A1:B2"))
        self.assertEqual(split_sheet_reference("Data!C3"), ("Data", "C3"))
        self.assertEqual(split_sheet_reference("'It''s'!A1"), ("It's", "A1"))
        self.assertEqual(split_sheet_reference("A1"), (None, "A1"))


if __name__ == "__main__":
    unittest.main()
