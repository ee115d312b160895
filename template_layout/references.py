"""
Formula References
==================
Recognises cell and range reference tokens inside a formula string and
rewrites them in place.  Nothing else in the formula is parsed: function
names, operators, numbers and string literals are left exactly as written.

Recognised forms::

    A1   $A$1   a$1   B2:C10   Sheet1!A1   'My Sheet'!$B$2:$B$9
"""

import re
from dataclasses import dataclass, replace
from typing import Callable, Iterator, List, Optional, Tuple, Union

from .geometry import CellCoord, column_index, column_letter


# ---------------------------------------------------------------------------
# Reference pattern
# ---------------------------------------------------------------------------

# The look-behind rejects tokens glued to identifiers (Q1_A1, x.A1), to an
# external-workbook bracket ([Book.xlsx]Sheet!A1) or to a sheet separator
# already consumed; the look-ahead rejects function names such as LOG10( and
# identifiers such as A1_total.
_REFERENCE_PATTERN = re.compile(
    r"(?<![A-Za-z0-9_$.'!\]])"
    r"(?:(?P<sheet>'(?:[^']|'')+'|[A-Za-z0-9_][A-Za-z0-9_.]*)!)?"
    r"(?P<col_abs>\$?)(?P<col>[A-Za-z]{1,3})(?P<row_abs>\$?)(?P<row>[0-9]+)"
    r"(?::(?P<end_col_abs>\$?)(?P<end_col>[A-Za-z]{1,3})"
    r"(?P<end_row_abs>\$?)(?P<end_row>[0-9]+))?"
    r"(?![A-Za-z0-9_(!])"
)


def _string_spans(formula: str) -> List[Tuple[int, int]]:
    """Spans of double-quoted string literals (``""`` is an escaped quote)."""
    spans = []
    i = 0
    start = None
    while i < len(formula):
        if formula[i] == '"':
            if start is None:
                start = i
            elif i + 1 < len(formula) and formula[i + 1] == '"':
                i += 2
                continue
            else:
                spans.append((start, i + 1))
                start = None
        i += 1
    if start is not None:
        spans.append((start, len(formula)))
    return spans


def _in_spans(pos, spans):
    return any(start <= pos < end for start, end in spans)


# ---------------------------------------------------------------------------
# Reference types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CellRef:
    """Cell token: 0-based coordinates plus ``$`` markers."""
    row: int
    col: int
    row_absolute: bool = False
    col_absolute: bool = False

    @property
    def coord(self) -> CellCoord:
        return CellCoord(self.row, self.col)

    @property
    def is_relative(self) -> bool:
        return not (self.row_absolute or self.col_absolute)

    def with_row(self, row: int) -> "CellRef":
        return replace(self, row=row)

    def with_col(self, col: int) -> "CellRef":
        return replace(self, col=col)

    def format(self) -> str:
        return (f"{'$' if self.col_absolute else ''}{column_letter(self.col)}"
                f"{'$' if self.row_absolute else ''}{self.row + 1}")


class _SheetQualified:
    sheet_prefix: Optional[str]

    @property
    def is_local(self) -> bool:
        return self.sheet_prefix is None

    @property
    def sheet_name(self) -> Optional[str]:
        """Sheet name with quoting removed, ``None`` for same-sheet tokens."""
        prefix = self.sheet_prefix
        if prefix is None:
            return None
        if prefix.startswith("'") and prefix.endswith("'"):
            return prefix[1:-1].replace("''", "'")
        return prefix

    def _prefix_text(self) -> str:
        return f"{self.sheet_prefix}!" if self.sheet_prefix is not None else ""


@dataclass(frozen=True)
class CellReference(_SheetQualified):
    cell: CellRef
    sheet_prefix: Optional[str] = None

    def format(self) -> str:
        return self._prefix_text() + self.cell.format()


@dataclass(frozen=True)
class RangeReference(_SheetQualified):
    start: CellRef
    end: CellRef
    sheet_prefix: Optional[str] = None

    @property
    def is_single_cell(self) -> bool:
        return (self.start.row == self.end.row and self.start.col == self.end.col)

    def format(self) -> str:
        return f"{self._prefix_text()}{self.start.format()}:{self.end.format()}"


Reference = Union[CellReference, RangeReference]


# ---------------------------------------------------------------------------
# Scanning and rewriting
# ---------------------------------------------------------------------------

def _cell_from_groups(m, prefix=""):
    return CellRef(
        row=int(m.group(prefix + "row")) - 1,
        col=column_index(m.group(prefix + "col")),
        row_absolute=m.group(prefix + "row_abs") == "$",
        col_absolute=m.group(prefix + "col_abs") == "$",
    )


def _scan(formula: str) -> Iterator[Tuple[int, int, Reference]]:
    spans = _string_spans(formula)
    for m in _REFERENCE_PATTERN.finditer(formula):
        if _in_spans(m.start(), spans):
            continue
        if int(m.group("row")) == 0 or (m.group("end_row") and int(m.group("end_row")) == 0):
            continue
        sheet = m.group("sheet")
        start = _cell_from_groups(m)
        if m.group("end_col"):
            ref = RangeReference(start, _cell_from_groups(m, "end_"), sheet)
        else:
            ref = CellReference(start, sheet)
        yield m.start(), m.end(), ref


def iter_references(formula: str) -> Iterator[Reference]:
    """Every cell/range reference in *formula*, left to right."""
    for _, _, ref in _scan(formula):
        yield ref


def rewrite_references(formula: str,
                       transform: Callable[[Reference], Optional[str]]) -> str:
    """Replace each reference token with ``transform(ref)``.

    A ``None`` result keeps the token's original text.
    """
    parts = []
    last = 0
    for start, end, ref in _scan(formula):
        replacement = transform(ref)
        if replacement is None:
            continue
        parts.append(formula[last:start])
        parts.append(replacement)
        last = end
    if not parts:
        return formula
    parts.append(formula[last:])
    return "".join(parts)
