"""
Grid Geometry
=============
Immutable 0-based value types describing template and output coordinates.

A1 text is converted with :mod:`openpyxl.utils`, so ``column_letter(0)`` is
``"A"`` and ``parse_cell("$B$5")`` is ``CellCoord(4, 1)``.
"""

from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

from openpyxl.utils import get_column_letter, column_index_from_string
from openpyxl.utils.cell import range_boundaries

from .exceptions import GeometryError


# ---------------------------------------------------------------------------
# Column letters
# ---------------------------------------------------------------------------

def column_letter(col: int) -> str:
    """0-based column index -> letters (``0 -> "A"``, ``27 -> "AB"``)."""
    try:
        return get_column_letter(col + 1)
    except ValueError as exc:
        raise GeometryError(f"Column index out of range: {col}") from exc


def column_index(letters: str) -> int:
    """Column letters -> 0-based index (``"AB" -> 27``)."""
    try:
        return column_index_from_string(letters.upper()) - 1
    except ValueError as exc:
        raise GeometryError(f"Invalid column letters: {letters!r}") from exc


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------

@dataclass(frozen=True, order=True)
class CellCoord:
    """A single cell, 0-based."""
    row: int
    col: int

    def __post_init__(self):
        if self.row < 0 or self.col < 0:
            raise GeometryError(
                f"Cell coordinates must be non-negative, got ({self.row}, {self.col})"
            )

    def offset(self, rows: int = 0, cols: int = 0) -> "CellCoord":
        return CellCoord(self.row + rows, self.col + cols)

    def to_a1(self) -> str:
        return f"{column_letter(self.col)}{self.row + 1}"


@dataclass(frozen=True)
class IndexRange:
    """Inclusive range of row or column indices."""
    start: int
    end: int

    def __post_init__(self):
        if self.start < 0 or self.start > self.end:
            raise GeometryError(f"Invalid index range {self.start}..{self.end}")

    @property
    def count(self) -> int:
        return self.end - self.start + 1

    def __contains__(self, index) -> bool:
        return self.start <= index <= self.end

    def __iter__(self) -> Iterator[int]:
        return iter(range(self.start, self.end + 1))

    def __len__(self) -> int:
        return self.count

    def overlaps(self, other: "IndexRange") -> bool:
        return self.start <= other.end and other.start <= self.end


RowRange = IndexRange
ColRange = IndexRange


@dataclass(frozen=True)
class CellArea:
    """Rectangular block of cells; one repeat-region template block."""
    start: CellCoord
    end: CellCoord

    def __post_init__(self):
        if self.start.row > self.end.row or self.start.col > self.end.col:
            raise GeometryError(
                f"Area start {self.start.to_a1()} is not above-left of "
                f"end {self.end.to_a1()}"
            )

    @classmethod
    def from_bounds(cls, first_row, first_col, last_row, last_col):
        return cls(CellCoord(first_row, first_col), CellCoord(last_row, last_col))

    @property
    def row_range(self) -> RowRange:
        return RowRange(self.start.row, self.end.row)

    @property
    def col_range(self) -> ColRange:
        return ColRange(self.start.col, self.end.col)

    @property
    def row_count(self) -> int:
        return self.end.row - self.start.row + 1

    @property
    def col_count(self) -> int:
        return self.end.col - self.start.col + 1

    def contains(self, coord: CellCoord) -> bool:
        return (self.start.row <= coord.row <= self.end.row
                and self.start.col <= coord.col <= self.end.col)

    def overlaps(self, other: "CellArea") -> bool:
        return (self.row_range.overlaps(other.row_range)
                and self.col_range.overlaps(other.col_range))

    def to_a1(self) -> str:
        if self.start == self.end:
            return self.start.to_a1()
        return f"{self.start.to_a1()}:{self.end.to_a1()}"


# ---------------------------------------------------------------------------
# A1 parsing
# ---------------------------------------------------------------------------

def parse_area(text: str) -> CellArea:
    """Parse ``"A2:C3"``, ``"$H$10"`` or ``"b4"`` into a :class:`CellArea`."""
    if not text or not text.strip():
        raise GeometryError("Empty cell reference")
    try:
        min_col, min_row, max_col, max_row = range_boundaries(text.strip().upper())
    except (ValueError, TypeError) as exc:
        raise GeometryError(f"Invalid cell reference: {text!r}") from exc
    if None in (min_col, min_row, max_col, max_row):
        # whole-row / whole-column references have no finite block
        raise GeometryError(f"Unbounded reference is not a cell area: {text!r}")
    return CellArea.from_bounds(
        min(min_row, max_row) - 1, min(min_col, max_col) - 1,
        max(min_row, max_row) - 1, max(min_col, max_col) - 1,
    )


def parse_cell(text: str) -> CellCoord:
    """Parse a single-cell reference such as ``"$B$5"``."""
    area = parse_area(text)
    if area.start != area.end:
        raise GeometryError(f"Expected a single cell, got a range: {text!r}")
    return area.start


def split_sheet_reference(text: str) -> Tuple[Optional[str], str]:
    """Split ``"'My Sheet'!A1:B2"`` into ``("My Sheet", "A1:B2")``.

    References without a sheet prefix return ``(None, text)``.
    """
    text = text.strip()
    if "!" not in text:
        return None, text
    sheet, _, ref = text.rpartition("!")
    if len(sheet) >= 2 and sheet.startswith("'") and sheet.endswith("'"):
        sheet = sheet[1:-1].replace("''", "'")
    if not sheet:
        raise GeometryError(f"Empty sheet name in reference: {text!r}")
    return sheet, ref
