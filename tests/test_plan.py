"""Tests for layout files, the workbook plan and the CLI."""

import os
import sys
import textwrap

import pytest
import yaml

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from template_layout.config import load_config
from template_layout.exceptions import OverlapError, TemplateLayoutError
from template_layout.geometry import parse_cell
from template_layout.main import main
from template_layout.plan import build_workbook_plan, load_layout, parse_layout
from template_layout.regions import RepeatDirection


LAYOUT = textwrap.dedent("""\
    sheets:
      - name: Report
        last_row: 8
        regions:
          - collection: employees
            variable: emp
            area: A3:C3
            empty_range: "'Empty'!A1:C1"
          - collection: months
            variable: month
            area: E1
            direction: RIGHT
        formulas:
          - cell: C3
            formula: "=A3*B3"
          - cell: C5
            formula: "=SUM(C3)"
          - cell: F1
            formula: "=SUM(E1)"
      - name: Summary
        formulas:
          - cell: A1
            formula: "=SUM(Report!C3)"
    collection_sizes:
      months: 3
    data:
      employees:
        - {name: Ann}
        - {name: Bob}
        - {name: Cid}
        - {name: Dee}
""")


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def layout_path(tmp_path):
    path = tmp_path / "layout.yaml"
    path.write_text(LAYOUT)
    return str(path)


@pytest.fixture
def plan(layout_path):
    layouts, sizes = load_layout(layout_path)
    return build_workbook_plan(layouts, sizes)


def _formula(plan, sheet, output):
    matches = [f for f in plan.formulas_for(sheet) if f.output_cell == parse_cell(output)]
    assert len(matches) == 1, f"no single formula written to {sheet}!{output}"
    return matches[0].rewritten


# ---------------------------------------------------------------------------
# Layout parsing
# ---------------------------------------------------------------------------

class TestLoadLayout:
    def test_sizes_from_data_and_announced_counts(self, layout_path):
        _, sizes = load_layout(layout_path)
        assert sizes == {"employees": 4, "months": 3}

    def test_regions(self, layout_path):
        layouts, _ = load_layout(layout_path)
        report = layouts[0]
        assert report.template_last_row == 7
        employees, months = report.regions
        assert employees.variable == "emp"
        assert employees.empty_range.sheet_name == "Empty"
        assert months.direction is RepeatDirection.RIGHT

    def test_missing_area(self):
        with pytest.raises(TemplateLayoutError):
            parse_layout({"sheets": [{"name": "S", "regions": [{"collection": "x"}]}]})

    def test_unnamed_sheet(self):
        with pytest.raises(TemplateLayoutError):
            parse_layout({"sheets": [{"regions": []}]})


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------

class TestWorkbookPlan:
    def test_repeated_formula_per_item(self, plan):
        assert [_formula(plan, "Report", f"C{row}") for row in range(3, 7)] == [
            "=A3*B3", "=A4*B4", "=A5*B5", "=A6*B6",
        ]

    def test_static_formula_expands_and_moves(self, plan):
        assert _formula(plan, "Report", "C8") == "=SUM(C3:C6)"

    def test_right_region_formula(self, plan):
        assert _formula(plan, "Report", "H1") == "=SUM(E1:G1)"

    def test_cross_sheet_reference(self, plan):
        assert _formula(plan, "Summary", "A1") == "=SUM(Report!C3:C6)"

    def test_total_rows(self, plan):
        assert plan.calculators["Report"].get_total_rows() == 11

    def test_empty_collection_skips_placeholder_formulas(self):
        layouts = parse_layout({"sheets": [{
            "name": "S",
            "regions": [{"collection": "rows", "area": "A2:B2", "empty_range": "D10:E10"}],
            "formulas": [{"cell": "B2", "formula": "=A2*2"},
                         {"cell": "D10", "formula": "=1"},
                         {"cell": "B4", "formula": "=SUM(B2)"}],
        }]})
        plan = build_workbook_plan(layouts, {"rows": 0})
        written = {f.output_cell.to_a1(): f.rewritten for f in plan.formulas}
        assert written == {"B4": "=SUM(B2)"}

    def test_overlap_rejected(self):
        layouts = parse_layout({"sheets": [{
            "name": "S",
            "regions": [{"collection": "a", "area": "A1:B2"},
                        {"collection": "b", "area": "B2:C3"}],
        }]})
        with pytest.raises(OverlapError):
            build_workbook_plan(layouts, {"a": 2, "b": 2})


# ---------------------------------------------------------------------------
# Config + CLI
# ---------------------------------------------------------------------------

class TestConfig:
    def test_defaults(self):
        config = load_config(None)
        assert config["max_discrete_references"] == 255
        assert config["log_level"] == "INFO"

    def test_yaml_overrides(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"max_discrete_references": 3}))
        config = load_config(str(path))
        assert config["max_discrete_references"] == 3
        assert config["log_level"] == "INFO"

    def test_limit_from_config(self):
        layouts = parse_layout({"sheets": [{
            "name": "S",
            "regions": [{"collection": "rows", "area": "A2:A3"}],
            "formulas": [{"cell": "A5", "formula": "=SUM(A2)"}],
        }]})
        with pytest.raises(TemplateLayoutError):
            build_workbook_plan(layouts, {"rows": 4}, {"max_discrete_references": 3})


class TestCli:
    def test_prints_plan(self, layout_path, capsys):
        assert main([layout_path, "--log-level", "WARNING"]) == 0
        out = capsys.readouterr().out
        assert "Sheet 'Report'" in out
        assert "=SUM(C3:C6)" in out

    def test_size_override(self, layout_path, capsys):
        assert main([layout_path, "--size", "employees=2", "--log-level", "WARNING"]) == 0
        assert "=SUM(C3:C4)" in capsys.readouterr().out

    def test_bad_size_argument(self, layout_path):
        with pytest.raises(SystemExit):
            main([layout_path, "--size", "employees"])

    def test_layout_error_exit_code(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.safe_dump({"sheets": [{
            "name": "S",
            "regions": [{"collection": "a", "area": "A1:B2"},
                        {"collection": "b", "area": "A2"}],
        }]}))
        assert main([str(path), "--log-level", "CRITICAL"]) == 1

    def test_malformed_yaml_exit_code(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("sheets: [\n  - name: S\n")
        assert main([str(path), "--log-level", "CRITICAL"]) == 1
