"""Layout expansion and formula rewriting for data-bound spreadsheet templates.

A template declares *repeat regions*: rectangular blocks bound to a named
collection and copied once per item, growing the sheet downwards (``DOWN``)
or to the right (``RIGHT``).  Given the regions and the collection sizes of
one render pass this package computes:

  * **where every template cell lands** in the output sheet
    (:class:`PositionCalculator`), and
  * **how every formula must be rewritten** so its references still point
    at the right cells (:mod:`template_layout.formula_adjuster`).

Cell I/O, styling and the rendering loops live with the caller.
"""

from .exceptions import (
    FormulaExpansionError,
    GeometryError,
    OverlapError,
    TemplateLayoutError,
)
from .formula_adjuster import (
    MAX_DISCRETE_REFERENCES,
    FormulaExpansionResult,
    SheetExpansionInfo,
    adjust_for_column_expansion,
    adjust_for_repeat_index,
    adjust_for_row_expansion,
    adjust_with_position_calculator,
    check_formula_expansion,
    expand_single_ref_to_column_range,
    expand_single_ref_to_row_range,
    expand_to_range_with_calculator,
    normalize_single_cell_ranges,
    resolve_formula,
)
from .geometry import CellArea, CellCoord, ColRange, RowRange
from .position_calculator import (
    FillerRowInfo,
    PositionCalculator,
    RepeatExpansion,
    RepeatRowInfo,
    StaticRowInfo,
    extract_collection_sizes,
)
from .regions import (
    ColumnGroup,
    EmptyRangeContent,
    EmptyRangeSpec,
    RepeatDirection,
    RepeatRegionSpec,
    validate_no_overlap,
)

__all__ = [
    "CellArea",
    "CellCoord",
    "ColRange",
    "ColumnGroup",
    "EmptyRangeContent",
    "EmptyRangeSpec",
    "FillerRowInfo",
    "FormulaExpansionError",
    "FormulaExpansionResult",
    "GeometryError",
    "MAX_DISCRETE_REFERENCES",
    "OverlapError",
    "PositionCalculator",
    "RepeatDirection",
    "RepeatExpansion",
    "RepeatRegionSpec",
    "RepeatRowInfo",
    "RowRange",
    "SheetExpansionInfo",
    "StaticRowInfo",
    "TemplateLayoutError",
    "adjust_for_column_expansion",
    "adjust_for_repeat_index",
    "adjust_for_row_expansion",
    "adjust_with_position_calculator",
    "check_formula_expansion",
    "expand_single_ref_to_column_range",
    "expand_single_ref_to_row_range",
    "expand_to_range_with_calculator",
    "extract_collection_sizes",
    "normalize_single_cell_ranges",
    "resolve_formula",
    "validate_no_overlap",
]
