"""
Layout Plan
===========
Applies the layout engine to a whole workbook described in YAML: validates
every sheet's repeat regions, expands them for the given collection sizes and
rewrites every template formula for its output position.

Layout file format::

    sheets:
      - name: Report
        last_row: 12                 # optional, 1-based
        regions:
          - collection: employees
            variable: emp
            area: A3:C3
            direction: DOWN          # or RIGHT
            empty_range: "'Empty'!A1:C1"   # optional
        formulas:
          - cell: C5
            formula: "=SUM(C3)"
    collection_sizes:                # announced sizes...
      employees: 5
    data:                            # ...or the data itself
      employees: [...]
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import yaml

from .config import load_config
from .exceptions import TemplateLayoutError
from .formula_adjuster import (
    MAX_DISCRETE_REFERENCES,
    SheetExpansionInfo,
    adjust_for_column_expansion,
    adjust_for_repeat_index,
    adjust_with_position_calculator,
    resolve_formula,
)
from .geometry import CellCoord, parse_area, parse_cell, split_sheet_reference
from .position_calculator import PositionCalculator, extract_collection_sizes
from .regions import (
    EmptyRangeSpec,
    RepeatDirection,
    RepeatRegionSpec,
    region_at,
    validate_no_overlap,
)

logger = logging.getLogger(__name__)


@dataclass
class SheetLayout:
    """Template description of one sheet."""
    name: str
    regions: List[RepeatRegionSpec] = field(default_factory=list)
    formulas: Dict[CellCoord, str] = field(default_factory=dict)
    template_last_row: int = 0


@dataclass
class FormulaPlan:
    """One formula as it will be written to the output sheet."""
    sheet: str
    template_cell: CellCoord
    output_cell: CellCoord
    original: str
    rewritten: str
    is_sequential: bool = True
    item_index: Optional[int] = None  # set for formulas repeated with a region


@dataclass
class WorkbookPlan:
    calculators: Dict[str, PositionCalculator] = field(default_factory=dict)
    formulas: List[FormulaPlan] = field(default_factory=list)

    def formulas_for(self, sheet: str) -> List[FormulaPlan]:
        return [f for f in self.formulas if f.sheet == sheet]


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def _parse_region(sheet_name: str, raw: dict) -> RepeatRegionSpec:
    try:
        collection = raw["collection"]
        area = parse_area(raw["area"])
    except KeyError as exc:
        raise TemplateLayoutError(
            f"Region on sheet '{sheet_name}' is missing {exc.args[0]!r}") from None
    try:
        direction = RepeatDirection.parse(raw.get("direction", "DOWN"))
    except ValueError as exc:
        raise TemplateLayoutError(f"Sheet '{sheet_name}': {exc}") from None
    empty_range = None
    if raw.get("empty_range"):
        empty_sheet, ref = split_sheet_reference(raw["empty_range"])
        if empty_sheet == sheet_name:
            empty_sheet = None
        empty_range = EmptyRangeSpec(parse_area(ref), empty_sheet)
    return RepeatRegionSpec(
        collection=collection,
        variable=raw.get("variable", collection),
        area=area,
        direction=direction,
        empty_range=empty_range,
    )


def parse_layout(raw: dict) -> List[SheetLayout]:
    """Build :class:`SheetLayout` objects from a parsed layout document."""
    layouts = []
    for sheet in raw.get("sheets") or []:
        name = sheet.get("name")
        if not name:
            raise TemplateLayoutError("Every sheet in the layout needs a name")
        regions = [_parse_region(name, r) for r in sheet.get("regions") or []]
        formulas = {}
        for entry in sheet.get("formulas") or []:
            if "cell" not in entry or "formula" not in entry:
                raise TemplateLayoutError(
                    f"Formula entries on sheet '{name}' need both 'cell' and 'formula'")
            formulas[parse_cell(entry["cell"])] = str(entry["formula"])
        last_row = int(sheet.get("last_row", 0) or 0)
        layouts.append(SheetLayout(
            name=name,
            regions=regions,
            formulas=formulas,
            template_last_row=max(0, last_row - 1),
        ))
    return layouts


def load_layout(path):
    """Read a layout file; returns ``(layouts, collection_sizes)``."""
    with open(path, "r") as f:
        raw = yaml.safe_load(f) or {}
    layouts = parse_layout(raw)
    regions = [r for layout in layouts for r in layout.regions]
    sizes = extract_collection_sizes(raw.get("data"), regions,
                                     raw.get("collection_sizes"))
    return layouts, sizes


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------

def _repeated_formulas(layout, calculator, region, template_cell, formula):
    """The formula once per item of the region that contains it."""
    expansion = calculator.get_expansion_for_region(
        region.collection, region.area.start.row, region.area.start.col)
    if expansion.renders_empty_range:
        return []
    base = adjust_with_position_calculator(formula, calculator)
    first = calculator.get_final_position(template_cell)
    plans = []
    for index in range(expansion.effective_item_count):
        if region.direction is RepeatDirection.DOWN:
            step = index * region.area.row_count
            rewritten = adjust_for_repeat_index(base, step)
            output = first.offset(rows=step)
        else:
            step = index * region.area.col_count
            rewritten = adjust_for_column_expansion(base, 0, step)
            output = first.offset(cols=step)
        plans.append(FormulaPlan(layout.name, template_cell, output, formula,
                                 rewritten, True, index))
    return plans


def build_workbook_plan(layouts: List[SheetLayout], collection_sizes: Dict[str, int],
                        config: Optional[dict] = None) -> WorkbookPlan:
    """Expand every sheet and rewrite every formula."""
    config = config or load_config(None)
    limit = int(config.get("max_discrete_references", MAX_DISCRETE_REFERENCES))
    plan = WorkbookPlan()

    for layout in layouts:
        validate_no_overlap(layout.regions)
        last_row = layout.template_last_row or int(config.get("template_last_row", 0))
        calculator = PositionCalculator(layout.regions, collection_sizes, last_row)
        plan.calculators[layout.name] = calculator.calculate()

    sheet_infos = {
        name: SheetExpansionInfo(calc.get_expansions(), dict(collection_sizes))
        for name, calc in plan.calculators.items()
    }

    for layout in layouts:
        calculator = plan.calculators[layout.name]
        others = {name: info for name, info in sheet_infos.items() if name != layout.name}
        for template_cell, formula in sorted(layout.formulas.items()):
            if calculator.is_in_empty_range(template_cell.row, template_cell.col):
                logger.debug("Skipping placeholder formula at %s!%s",
                             layout.name, template_cell.to_a1())
                continue
            region = region_at(layout.regions, template_cell)
            if region is not None:
                plan.formulas.extend(
                    _repeated_formulas(layout, calculator, region, template_cell, formula))
                continue
            output = calculator.get_final_position(template_cell)
            result = resolve_formula(formula, calculator, layout.name, output, others, limit)
            plan.formulas.append(FormulaPlan(layout.name, template_cell, output, formula,
                                             result.formula, result.is_sequential))
        logger.info("Sheet '%s': %d regions, %d output rows",
                    layout.name, len(layout.regions), calculator.get_total_rows())
    return plan
