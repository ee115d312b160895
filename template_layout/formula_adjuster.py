"""
Formula Adjuster
================
Reference-rewriting passes that keep formulas correct after repeat regions
expand.  Every pass is a pure string transform built on
:func:`~template_layout.references.rewrite_references`; sheet-qualified and
``$``-absolute references pass through untouched unless a pass says
otherwise.

Two families of passes exist:

* offset-based passes (:func:`adjust_for_row_expansion`,
  :func:`adjust_for_repeat_index`, :func:`adjust_for_column_expansion`,
  :func:`expand_single_ref_to_row_range`,
  :func:`expand_single_ref_to_column_range`) for callers that know the
  offsets up front;
* calculator-driven passes (:func:`adjust_with_position_calculator`,
  :func:`expand_to_range_with_calculator`, :func:`resolve_formula`) for the
  general case once a :class:`PositionCalculator` has run.

When a reference to a repeat block is expanded, the result is either one
contiguous range (single-row / single-column blocks) or a comma-separated
list of cells (taller / wider blocks).  Lists longer than
:data:`MAX_DISCRETE_REFERENCES` cannot be written into a function call.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence

from .exceptions import FormulaExpansionError
from .geometry import CellCoord
from .position_calculator import PositionCalculator, RepeatExpansion
from .references import CellRef, CellReference, RangeReference, rewrite_references
from .regions import RepeatDirection

logger = logging.getLogger(__name__)

MAX_DISCRETE_REFERENCES = 255


class FormulaExpansionResult(NamedTuple):
    formula: str
    is_sequential: bool


@dataclass
class SheetExpansionInfo:
    """Expansions of another sheet, for cross-sheet references."""
    expansions: Sequence[RepeatExpansion]
    collection_sizes: Dict[str, int] = field(default_factory=dict)

    def find(self, coord: CellCoord) -> Optional[RepeatExpansion]:
        for expansion in self.expansions:
            if expansion.region.area.contains(coord):
                return expansion
        return None

    def item_count(self, expansion: RepeatExpansion) -> int:
        return self.collection_sizes.get(expansion.region.collection, expansion.item_count)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _prefix(ref) -> str:
    return f"{ref.sheet_prefix}!" if ref.sheet_prefix is not None else ""


def _shift_row(cell: CellRef, amount: int) -> CellRef:
    return cell.with_row(cell.row + amount)


def _shift_col(cell: CellRef, amount: int) -> CellRef:
    return cell.with_col(cell.col + amount)


def _drop_self(positions: List[int], own: Optional[int], sequential: bool,
               key: Callable[[int], int] = lambda p: p) -> List[int]:
    """Remove the formula's own position from an expansion.

    *key* maps a generated position to where it ends up after any later
    shift.  A contiguous run whose shifted span covers the formula cell is
    cut before it (or starts just after it when the cell is the run's first
    position) so the range stays contiguous; a discrete list simply loses
    the entry.
    """
    if own is None or not positions:
        return positions
    if not sequential:
        kept = [p for p in positions if key(p) != own]
        if len(kept) != len(positions):
            logger.debug("Dropping self reference at position %d from expansion", own)
        return kept
    if not key(positions[0]) <= own <= key(positions[-1]):
        return positions
    logger.debug("Truncating expansion before self reference at position %d", own)
    before = [p for p in positions if key(p) < own]
    if before:
        return before
    return [p for p in positions if key(p) > own]


def _render_cells(prefix: str, cells: List[CellRef], sequential: bool) -> str:
    if len(cells) == 1:
        return prefix + cells[0].format()
    if sequential:
        return f"{prefix}{cells[0].format()}:{cells[-1].format()}"
    return ",".join(prefix + cell.format() for cell in cells)


class _ExpansionTally:
    """Tracks whether a pass emitted any discrete list, and the longest one."""

    def __init__(self):
        self.is_sequential = True
        self.max_discrete = 0

    def record(self, count: int, sequential: bool):
        if not sequential and count > 1:
            self.is_sequential = False
            self.max_discrete = max(self.max_discrete, count)


# ---------------------------------------------------------------------------
# Offset-based passes
# ---------------------------------------------------------------------------

def adjust_for_row_expansion(formula: str, repeat_start: int, repeat_end: int,
                             row_offset: int) -> str:
    """Account for ``row_offset`` rows inserted after ``repeat_end``.

    Relative rows below the block move down.  A range ending inside the block
    grows with it, so ``C6:C6`` on a one-row block repeated three times
    becomes ``C6:C8``.
    """
    if row_offset == 0:
        return formula

    def move(cell: CellRef, is_range_end: bool) -> CellRef:
        if cell.row_absolute:
            return cell
        if cell.row > repeat_end:
            return _shift_row(cell, row_offset)
        if is_range_end and repeat_start <= cell.row <= repeat_end:
            return _shift_row(cell, row_offset)
        return cell

    def transform(ref):
        if not ref.is_local:
            return None
        if isinstance(ref, RangeReference):
            return RangeReference(move(ref.start, False), move(ref.end, True)).format()
        return CellReference(move(ref.cell, False)).format()

    return rewrite_references(formula, transform)


def adjust_for_repeat_index(formula: str, repeat_index: int) -> str:
    """Move relative rows down by ``repeat_index`` for the Nth copy of a one-row block."""
    if repeat_index == 0:
        return formula

    def move(cell: CellRef) -> CellRef:
        return cell if cell.row_absolute else _shift_row(cell, repeat_index)

    def transform(ref):
        if not ref.is_local:
            return None
        if isinstance(ref, RangeReference):
            return RangeReference(move(ref.start), move(ref.end)).format()
        return CellReference(move(ref.cell)).format()

    return rewrite_references(formula, transform)


def adjust_for_column_expansion(formula: str, start_col: int, shift_amount: int) -> str:
    """Move relative columns at or right of ``start_col`` by ``shift_amount``."""
    if shift_amount == 0:
        return formula

    def move(cell: CellRef) -> CellRef:
        if cell.col_absolute or cell.col < start_col:
            return cell
        return _shift_col(cell, shift_amount)

    def transform(ref):
        if not ref.is_local:
            return None
        if isinstance(ref, RangeReference):
            return RangeReference(move(ref.start), move(ref.end)).format()
        return CellReference(move(ref.cell)).format()

    return rewrite_references(formula, transform)


def normalize_single_cell_ranges(formula: str) -> str:
    """Rewrite fully relative one-cell ranges (``B8:B8``) as plain cells (``B8``)."""
    def transform(ref):
        if (isinstance(ref, RangeReference) and ref.is_local and ref.is_single_cell
                and ref.start.is_relative and ref.end.is_relative):
            return ref.start.format()
        return None

    return rewrite_references(formula, transform)


def expand_single_ref_to_row_range(formula: str, repeat_start_row: int, repeat_end_row: int,
                                   item_count: int, template_row_count: int,
                                   formula_cell: Optional[CellCoord] = None,
                                   row_shift_amount: int = 0,
                                   row_shift_start_row: Optional[int] = None) -> FormulaExpansionResult:
    """Expand references into a DOWN block so they cover every item.

    A one-row block gives a contiguous range (``B8`` -> ``B8:B10``); a taller
    block gives a discrete list (``B8`` -> ``B8,B10,B12``).  ``formula_cell``
    is the formula's own output cell.  The generated rows are still subject
    to a later shift of ``row_shift_amount`` for rows at or below
    ``row_shift_start_row``; once shifted they never include ``formula_cell``.
    """
    tally = _ExpansionTally()
    count = max(1, item_count)
    if count == 1:
        return FormulaExpansionResult(formula, True)
    sequential = template_row_count == 1

    def shifted(row):
        if row_shift_start_row is not None and row >= row_shift_start_row:
            return row + row_shift_amount
        return row

    def transform(ref):
        if not ref.is_local or isinstance(ref, RangeReference):
            return None
        cell = ref.cell
        if cell.row_absolute or not repeat_start_row <= cell.row <= repeat_end_row:
            return None
        positions = [cell.row + i * template_row_count for i in range(count)]
        if formula_cell is not None and formula_cell.col == cell.col:
            positions = _drop_self(positions, formula_cell.row, sequential, shifted)
        if not positions:
            return None
        tally.record(len(positions), sequential)
        return _render_cells("", [cell.with_row(p) for p in positions], sequential)

    result = rewrite_references(formula, transform)
    return FormulaExpansionResult(result, tally.is_sequential)


def expand_single_ref_to_column_range(formula: str, repeat_start_row: int, repeat_end_row: int,
                                      repeat_start_col: int, repeat_end_col: int,
                                      item_count: int, template_col_count: int,
                                      formula_cell: Optional[CellCoord] = None,
                                      col_shift_amount: int = 0,
                                      col_shift_start_col: Optional[int] = None
                                      ) -> FormulaExpansionResult:
    """Column counterpart of :func:`expand_single_ref_to_row_range` for RIGHT blocks.

    Only references inside the block (rows ``repeat_start_row`` to
    ``repeat_end_row``, columns ``repeat_start_col`` to ``repeat_end_col``)
    are expanded.
    """
    tally = _ExpansionTally()
    count = max(1, item_count)
    if count == 1:
        return FormulaExpansionResult(formula, True)
    sequential = template_col_count == 1

    def shifted(col):
        if col_shift_start_col is not None and col >= col_shift_start_col:
            return col + col_shift_amount
        return col

    def transform(ref):
        if not ref.is_local or isinstance(ref, RangeReference):
            return None
        cell = ref.cell
        if (cell.col_absolute or not repeat_start_row <= cell.row <= repeat_end_row
                or not repeat_start_col <= cell.col <= repeat_end_col):
            return None
        positions = [cell.col + i * template_col_count for i in range(count)]
        if formula_cell is not None and formula_cell.row == cell.row:
            positions = _drop_self(positions, formula_cell.col, sequential, shifted)
        if not positions:
            return None
        tally.record(len(positions), sequential)
        return _render_cells("", [cell.with_col(p) for p in positions], sequential)

    result = rewrite_references(formula, transform)
    return FormulaExpansionResult(result, tally.is_sequential)


# ---------------------------------------------------------------------------
# Calculator-driven passes
# ---------------------------------------------------------------------------

def _map_cell(cell: CellRef, calculator: PositionCalculator) -> CellRef:
    final = calculator.get_final_position(cell.coord)
    return CellRef(
        row=cell.row if cell.row_absolute else final.row,
        col=cell.col if cell.col_absolute else final.col,
        row_absolute=cell.row_absolute,
        col_absolute=cell.col_absolute,
    )


def adjust_with_position_calculator(formula: str, calculator: PositionCalculator) -> str:
    """Relocate every same-sheet reference to its output coordinate.

    Each axis moves independently; an axis marked ``$`` stays where it is.
    """
    def transform(ref):
        if not ref.is_local:
            return None
        if isinstance(ref, RangeReference):
            return RangeReference(_map_cell(ref.start, calculator),
                                  _map_cell(ref.end, calculator)).format()
        return CellReference(_map_cell(ref.cell, calculator)).format()

    return rewrite_references(formula, transform)


def _instance_cells(cell: CellRef, expansion: RepeatExpansion, item_count: int) -> List[CellRef]:
    """Output cells of every item's copy of template cell *cell*."""
    region = expansion.region
    row_offset = cell.row - region.area.start.row
    col_offset = cell.col - region.area.start.col
    cells = []
    for i in range(max(1, item_count)):
        if region.direction is RepeatDirection.DOWN:
            row = expansion.final_start_row + i * region.area.row_count + row_offset
            col = expansion.final_start_col + col_offset
        else:
            row = expansion.final_start_row + row_offset
            col = expansion.final_start_col + i * region.area.col_count + col_offset
        cells.append(CellRef(row, col, cell.row_absolute, cell.col_absolute))
    return cells


def _is_absolute_on_axis(cell: CellRef, direction: RepeatDirection) -> bool:
    return cell.row_absolute if direction is RepeatDirection.DOWN else cell.col_absolute


def _expand_reference(ref, expansion: RepeatExpansion, item_count: int,
                      tally: _ExpansionTally,
                      map_outside: Callable[[CellRef], CellRef],
                      own_cell: Optional[CellCoord] = None) -> Optional[str]:
    """Expanded text of *ref* over *expansion*, or ``None`` if it does not apply."""
    if max(1, item_count) <= 1:
        return None
    region = expansion.region
    direction = region.direction
    prefix = _prefix(ref)

    if isinstance(ref, CellReference):
        cell = ref.cell
        if _is_absolute_on_axis(cell, direction):
            return None
        sequential = (region.area.row_count if direction is RepeatDirection.DOWN
                      else region.area.col_count) == 1
        cells = _instance_cells(cell, expansion, item_count)
        if own_cell is not None and ref.is_local:
            if direction is RepeatDirection.DOWN and own_cell.col == cells[0].col:
                rows = _drop_self([c.row for c in cells], own_cell.row, sequential)
                cells = [c for c in cells if c.row in rows]
            elif direction is RepeatDirection.RIGHT and own_cell.row == cells[0].row:
                cols = _drop_self([c.col for c in cells], own_cell.col, sequential)
                cells = [c for c in cells if c.col in cols]
        if not cells:
            return None
        tally.record(len(cells), sequential)
        return _render_cells(prefix, cells, sequential)

    # range: the end inside the block grows to the last item's copy
    start, end = ref.start, ref.end
    if _is_absolute_on_axis(end, direction):
        return None
    last = _instance_cells(end, expansion, item_count)[-1]
    if region.area.contains(start.coord):
        first = _instance_cells(start, expansion, item_count)[0]
    else:
        first = map_outside(start)
    return RangeReference(first, last, ref.sheet_prefix).format()


def _target_expansion(ref, expansion, other_sheet_expansions):
    """Expansion and item count a reference points into, if any."""
    anchor = ref.cell if isinstance(ref, CellReference) else ref.end
    if ref.is_local:
        if expansion is not None and expansion.region.area.contains(anchor.coord):
            return expansion, None
        return None, None
    info = (other_sheet_expansions or {}).get(ref.sheet_name)
    if info is None:
        return None, None
    target = info.find(anchor.coord)
    if target is None:
        return None, None
    return target, info.item_count(target)


def expand_to_range_with_calculator(formula: str, expansion: RepeatExpansion, item_count: int,
                                    calculator: PositionCalculator,
                                    other_sheet_expansions: Optional[Dict[str, SheetExpansionInfo]] = None
                                    ) -> FormulaExpansionResult:
    """Expand template references into *expansion* (or another sheet's) to cover every item.

    *formula* is in template coordinates.  Expanded references are written in
    output coordinates, including a range start outside the block, which is
    mapped through *calculator*; all other references are left as they are.
    """
    tally = _ExpansionTally()
    formula = normalize_single_cell_ranges(formula)

    def transform(ref):
        target, count = _target_expansion(ref, expansion, other_sheet_expansions)
        if target is None:
            return None
        if count is None:
            return _expand_reference(ref, target, item_count, tally,
                                     map_outside=lambda c: _map_cell(c, calculator))
        return _expand_reference(ref, target, count, tally, map_outside=lambda c: c)

    result = rewrite_references(formula, transform)
    return FormulaExpansionResult(result, tally.is_sequential)


def check_formula_expansion(item_count: int, is_sequential: bool, sheet_name: str,
                            cell_ref: str, formula: str,
                            limit: int = MAX_DISCRETE_REFERENCES) -> None:
    """Raise :class:`FormulaExpansionError` for a discrete list over *limit* items."""
    if not is_sequential and item_count > limit:
        raise FormulaExpansionError(sheet_name, cell_ref, formula, item_count, limit)


def resolve_formula(formula: str, calculator: PositionCalculator,
                    sheet_name: Optional[str] = None,
                    formula_cell: Optional[CellCoord] = None,
                    other_sheet_expansions: Optional[Dict[str, SheetExpansionInfo]] = None,
                    limit: int = MAX_DISCRETE_REFERENCES) -> FormulaExpansionResult:
    """Rewrite a static template formula for the expanded sheet in one pass.

    References into an expanding block (on this sheet or, through
    *other_sheet_expansions*, on another) become ranges or lists over every
    item; every other same-sheet reference is relocated through
    *calculator*.  ``formula_cell`` is the formula's output coordinate and is
    never included in an expansion.
    """
    tally = _ExpansionTally()
    formula = normalize_single_cell_ranges(formula)
    expansions = calculator.get_expansions()

    def local_expansion(anchor: CellRef) -> Optional[RepeatExpansion]:
        for expansion in expansions:
            if expansion.region.area.contains(anchor.coord):
                return expansion
        return None

    def transform(ref):
        if ref.is_local:
            anchor = ref.cell if isinstance(ref, CellReference) else ref.end
            target = local_expansion(anchor)
            if target is not None:
                expanded = _expand_reference(
                    ref, target, target.item_count, tally,
                    map_outside=lambda c: _map_cell(c, calculator),
                    own_cell=formula_cell,
                )
                if expanded is not None:
                    return expanded
            if isinstance(ref, RangeReference):
                return RangeReference(_map_cell(ref.start, calculator),
                                      _map_cell(ref.end, calculator)).format()
            return CellReference(_map_cell(ref.cell, calculator)).format()
        target, count = _target_expansion(ref, None, other_sheet_expansions)
        if target is None:
            return None
        return _expand_reference(ref, target, count, tally, map_outside=lambda c: c)

    result = rewrite_references(formula, transform)
    if not tally.is_sequential:
        cell_ref = formula_cell.to_a1() if formula_cell is not None else "?"
        check_formula_expansion(tally.max_discrete, False, sheet_name or "", cell_ref,
                                formula, limit)
    return FormulaExpansionResult(result, tally.is_sequential)
