"""Tests for formula reference scanning and rewriting."""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from template_layout.references import (
    CellRef,
    CellReference,
    RangeReference,
    iter_references,
    rewrite_references,
)


# ---------------------------------------------------------------------------
# Scanning
# ---------------------------------------------------------------------------

class TestIterReferences:
    def test_cell_and_range(self):
        refs = list(iter_references("=A1+SUM(B2:C10)"))
        assert refs == [
            CellReference(CellRef(0, 0)),
            RangeReference(CellRef(1, 1), CellRef(9, 2)),
        ]

    def test_absolute_markers(self):
        (ref,) = iter_references("=$B$5*2")
        assert ref.cell == CellRef(4, 1, row_absolute=True, col_absolute=True)
        (ref,) = iter_references("=B$5")
        assert ref.cell.row_absolute and not ref.cell.col_absolute

    def test_lowercase_columns(self):
        (ref,) = iter_references("=sum(b3)")
        assert ref.cell == CellRef(2, 1)

    def test_sheet_prefixes(self):
        refs = list(iter_references("=Data!A1+'My Sheet'!B2:B4+'It''s'!C1"))
        assert [r.sheet_name for r in refs] == ["Data", "My Sheet", "It's"]
        assert all(not r.is_local for r in refs)

    def test_sheet_name_starting_with_digit(self):
        refs = list(iter_references("=SUM(2024!B3:B4)+Q1_2024!C2"))
        assert [r.sheet_name for r in refs] == ["2024", "Q1_2024"]
        assert refs[0].start.row == 2 and refs[0].end.row == 3

    def test_references_inside_quoted_sheet_name_ignored(self):
        refs = list(iter_references("='Q1 A1 totals'!B2"))
        assert len(refs) == 1
        assert refs[0].cell == CellRef(1, 1)

    @pytest.mark.parametrize("formula", [
        '="A1"&"B2"',
        "=LOG10(5)",
        "=ATAN2(1,2)",
        "=Q1_A1+1",
        "=[Book.xlsx]Prices!A1",
        "=A0",
    ])
    def test_not_references(self, formula):
        assert [r for r in iter_references(formula) if r.is_local] == []

    def test_string_literal_with_escaped_quote(self):
        refs = list(iter_references('=IF(A1="say ""B2""",C3,D4)'))
        assert [r.cell.format() for r in refs] == ["A1", "C3", "D4"]


# ---------------------------------------------------------------------------
# Rewriting
# ---------------------------------------------------------------------------

class TestRewriteReferences:
    def test_none_keeps_original_text(self):
        formula = "=sum( a1 , $B$2 )"
        assert rewrite_references(formula, lambda ref: None) == formula

    def test_replaces_only_tokens(self):
        def bump(ref):
            if isinstance(ref, CellReference):
                return ref.cell.with_row(ref.cell.row + 1).format()
            return None

        assert rewrite_references('=A1&"A1"&B2:C3', bump) == '=A2&"A1"&B2:C3'

    def test_format_roundtrip(self):
        formula = "=SUM('My Sheet'!$A$1:B9)+Data!C3"
        out = rewrite_references(formula, lambda ref: ref.format())
        assert out == formula

