"""
Position Calculator
===================
Maps template coordinates to output coordinates once every repeat region has
been expanded for the current collection sizes.

Row growth follows column groups: a DOWN region pushes the rows of everything
below it that shares its :class:`~template_layout.regions.ColumnGroup`, and
nothing else.  Column growth is local to a RIGHT region's own rows.  RIGHT
regions never move rows.

An empty collection still reserves exactly one template block.  When the
region declares an empty range, that block is where the placeholder content
is rendered; otherwise the block renders blank.  Callers pass the true
collection size (0) and must not substitute a placeholder item themselves.
"""

import bisect
import logging
from collections.abc import Mapping, Sized
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Union

from .geometry import CellArea, CellCoord
from .regions import (
    ColumnGroup,
    RegionKey,
    RepeatDirection,
    RepeatRegionSpec,
    template_order,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RepeatExpansion:
    """Computed growth and output anchor of one repeat region."""
    region: RepeatRegionSpec
    item_count: int
    row_expansion: int
    col_expansion: int
    final_start_row: int
    final_start_col: int

    @property
    def effective_item_count(self) -> int:
        """Number of template blocks emitted (an empty collection reserves one)."""
        return max(1, self.item_count)

    @property
    def renders_empty_range(self) -> bool:
        return self.item_count == 0 and self.region.empty_range is not None

    @property
    def final_start(self) -> CellCoord:
        return CellCoord(self.final_start_row, self.final_start_col)

    @property
    def final_end_row(self) -> int:
        return self.final_start_row + self.region.area.row_count + self.row_expansion - 1

    @property
    def final_end_col(self) -> int:
        return self.final_start_col + self.region.area.col_count + self.col_expansion - 1

    @property
    def final_area(self) -> CellArea:
        return CellArea.from_bounds(self.final_start_row, self.final_start_col,
                                    self.final_end_row, self.final_end_col)


@dataclass(frozen=True)
class StaticRowInfo:
    template_row: int


@dataclass(frozen=True)
class RepeatRowInfo:
    region: RepeatRegionSpec
    item_index: int
    template_offset: int


@dataclass(frozen=True)
class FillerRowInfo:
    """Output row with no template content in this column.

    Produced beside a taller sibling region of the same column group.
    """


RowInfo = Union[StaticRowInfo, RepeatRowInfo, FillerRowInfo]


# ---------------------------------------------------------------------------
# Collection sizes
# ---------------------------------------------------------------------------

def extract_collection_sizes(data: Optional[Mapping], regions: Sequence[RepeatRegionSpec],
                             announced_counts: Optional[Mapping] = None) -> Dict[str, int]:
    """Size of every collection bound by *regions*.

    Sized values (lists, tuples, sets...) contribute their length; strings,
    scalars and missing names count as empty.  ``announced_counts`` carries
    sizes announced ahead of time by a streaming data provider and wins over
    *data*.
    """
    data = data or {}
    announced_counts = announced_counts or {}
    sizes = {}
    for region in regions:
        name = region.collection
        if name in sizes:
            continue
        if name in announced_counts:
            sizes[name] = max(0, int(announced_counts[name]))
            continue
        value = data.get(name)
        if isinstance(value, Sized) and not isinstance(value, (str, bytes)):
            sizes[name] = len(value)
        else:
            sizes[name] = 0
    return sizes


# ---------------------------------------------------------------------------
# Calculator
# ---------------------------------------------------------------------------

class PositionCalculator:
    """Coordinate oracle for one sheet of one render pass.

    :meth:`calculate` runs once (explicitly or on the first query); every
    query afterwards is a pure read.
    """

    def __init__(self, regions: Sequence[RepeatRegionSpec],
                 collection_sizes: Mapping, template_last_row: int = 0):
        self.regions = template_order(regions)
        self.collection_sizes = dict(collection_sizes)
        self.template_last_row = template_last_row
        self._calculated = False
        self._expansions: List[RepeatExpansion] = []
        self._by_key: Dict[RegionKey, RepeatExpansion] = {}
        self._by_collection: Dict[str, RepeatExpansion] = {}
        self._groups: List[ColumnGroup] = []
        self._group_starts: List[int] = []
        self._row_expansion: Dict[RegionKey, int] = {}
        self._col_expansion: Dict[RegionKey, int] = {}

    # -- expansion pass ----------------------------------------------------

    def calculate(self) -> "PositionCalculator":
        if self._calculated:
            return self

        self._groups = ColumnGroup.from_regions(self.regions)
        self._group_starts = [g.col_range.start for g in self._groups]

        counts = {}
        for region in self.regions:
            count = max(0, int(self.collection_sizes.get(region.collection, 0)))
            counts[region.key] = count
            extra = max(1, count) - 1
            if region.direction is RepeatDirection.DOWN:
                self._row_expansion[region.key] = extra * region.area.row_count
                self._col_expansion[region.key] = 0
            else:
                self._row_expansion[region.key] = 0
                self._col_expansion[region.key] = extra * region.area.col_count

        for region in self.regions:
            start = region.area.start
            expansion = RepeatExpansion(
                region=region,
                item_count=counts[region.key],
                row_expansion=self._row_expansion[region.key],
                col_expansion=self._col_expansion[region.key],
                final_start_row=start.row + self._row_shift(start.row, start.col),
                final_start_col=start.col + self._col_shift(start.row, start.col),
            )
            self._expansions.append(expansion)
            self._by_key[region.key] = expansion
            self._by_collection.setdefault(region.collection, expansion)
            logger.debug(
                "Region '%s' at %s: %d items, +%d rows, +%d cols, starts at %s",
                region.collection, region.area.to_a1(), expansion.item_count,
                expansion.row_expansion, expansion.col_expansion,
                expansion.final_start.to_a1(),
            )

        self._calculated = True
        logger.info("Calculated %d expansions in %d column groups; %d output rows",
                    len(self._expansions), len(self._groups), self.get_total_rows())
        return self

    def _ensure_calculated(self):
        if not self._calculated:
            self.calculate()

    def _group_for_col(self, col: int) -> Optional[ColumnGroup]:
        idx = bisect.bisect_right(self._group_starts, col) - 1
        if idx >= 0 and col in self._groups[idx]:
            return self._groups[idx]
        return None

    def _row_shift(self, row: int, col: int) -> int:
        """Rows inserted above template row *row* in column *col*."""
        group = self._group_for_col(col)
        if group is None:
            return 0
        return sum(self._row_expansion[m.key] for m in group.regions
                   if m.area.end.row < row)

    def _col_shift(self, row: int, col: int) -> int:
        """Columns inserted left of template column *col* in row *row*."""
        return sum(
            self._col_expansion[r.key] for r in self.regions
            if r.direction is RepeatDirection.RIGHT
            and r.area.end.col < col and row in r.area.row_range
        )

    def _region_containing(self, row: int, col: int) -> Optional[RepeatRegionSpec]:
        for region in self.regions:
            area = region.area
            if area.start.row <= row <= area.end.row and area.start.col <= col <= area.end.col:
                return region
        return None

    # -- lookups -------------------------------------------------------------

    def get_expansions(self) -> List[RepeatExpansion]:
        self._ensure_calculated()
        return list(self._expansions)

    def get_column_groups(self) -> List[ColumnGroup]:
        self._ensure_calculated()
        return list(self._groups)

    def get_expansion_for_region(self, collection: str, start_row: int,
                                 start_col: int) -> Optional[RepeatExpansion]:
        self._ensure_calculated()
        return self._by_key.get(RegionKey(collection, start_row, start_col))

    def get_expansion_for(self, collection: str) -> Optional[RepeatExpansion]:
        self._ensure_calculated()
        return self._by_collection.get(collection)

    # -- forward mapping -----------------------------------------------------

    def get_final_position(self, coord: CellCoord) -> CellCoord:
        """Output coordinate of template cell *coord*.

        Cells inside a region block map to the block's first instance.
        """
        self._ensure_calculated()
        region = self._region_containing(coord.row, coord.col)
        if region is not None:
            expansion = self._by_key[region.key]
            return CellCoord(
                expansion.final_start_row + coord.row - region.area.start.row,
                expansion.final_start_col + coord.col - region.area.start.col,
            )
        return CellCoord(coord.row + self._row_shift(coord.row, coord.col),
                         coord.col + self._col_shift(coord.row, coord.col))

    def get_final_range(self, start: CellCoord, end: CellCoord) -> CellArea:
        """Map both corners of a rectangle; the result is re-ordered if needed."""
        first = self.get_final_position(start)
        last = self.get_final_position(end)
        return CellArea.from_bounds(min(first.row, last.row), min(first.col, last.col),
                                    max(first.row, last.row), max(first.col, last.col))

    def get_row_for_repeat_item(self, expansion: RepeatExpansion, item_index: int,
                                template_row_offset: int = 0) -> int:
        if expansion.region.direction is RepeatDirection.DOWN:
            return (expansion.final_start_row
                    + item_index * expansion.region.area.row_count
                    + template_row_offset)
        return expansion.final_start_row + template_row_offset

    def get_col_for_repeat_item(self, expansion: RepeatExpansion, item_index: int,
                                template_col_offset: int = 0) -> int:
        if expansion.region.direction is RepeatDirection.RIGHT:
            return (expansion.final_start_col
                    + item_index * expansion.region.area.col_count
                    + template_col_offset)
        return expansion.final_start_col + template_col_offset

    def get_empty_range_target(self, expansion: RepeatExpansion) -> Optional[CellArea]:
        """Output area the empty-range placeholder is written into.

        The placeholder is clipped to the one reserved template block.
        """
        if not expansion.renders_empty_range:
            return None
        region = expansion.region
        content = region.empty_range_content
        if content is not None and content.row_count:
            rows, cols = content.row_count, content.col_count
        else:
            rows = region.empty_range.area.row_count
            cols = region.empty_range.area.col_count
        rows = min(rows, region.area.row_count)
        cols = min(cols, region.area.col_count)
        return CellArea.from_bounds(
            expansion.final_start_row, expansion.final_start_col,
            expansion.final_start_row + rows - 1, expansion.final_start_col + cols - 1,
        )

    def get_total_rows(self) -> int:
        """Number of rows in the output sheet."""
        self._ensure_calculated()
        last = max([self.template_last_row]
                   + [r.area.end.row for r in self.regions])
        final_last = last
        for group in self._groups:
            final_last = max(final_last, last + self._row_shift(last, group.col_range.start))
        for expansion in self._expansions:
            final_last = max(final_last, expansion.final_end_row)
        return final_last + 1

    def is_in_empty_range(self, template_row: int, col: int) -> bool:
        """True when the template cell belongs to a same-sheet empty-range placeholder.

        Placeholder cells are never rendered as static content, whatever the
        collection size.
        """
        for region in self.regions:
            empty = region.empty_range
            if empty is None or not empty.is_local:
                continue
            area = empty.area
            if area.start.row <= template_row <= area.end.row and area.start.col <= col <= area.end.col:
                return True
        return False

    # -- reverse mapping -----------------------------------------------------

    def get_row_info_for_column(self, actual_row: int, col: int) -> RowInfo:
        """What template content belongs at output (*actual_row*, *col*)."""
        self._ensure_calculated()
        group = self._group_for_col(col)
        if group is None:
            return StaticRowInfo(actual_row)

        for member in group.regions:
            if col not in member.area.col_range:
                continue
            expansion = self._by_key[member.key]
            offset = actual_row - expansion.final_start_row
            height = member.area.row_count
            if 0 <= offset < height * expansion.effective_item_count:
                return RepeatRowInfo(member, offset // height, offset % height)

        # shift is a step function of the template row, constant between the
        # end rows of the group's members
        bounds = sorted({m.area.end.row for m in group.regions})
        lower = 0
        for upper in bounds + [None]:
            shift = self._row_shift(lower, col)
            template_row = actual_row - shift
            if template_row >= lower and (upper is None or template_row <= upper):
                region = self._region_containing(template_row, col)
                if region is None or region.direction is RepeatDirection.RIGHT:
                    return StaticRowInfo(template_row)
                break
            if upper is None:
                break
            lower = upper + 1
        return FillerRowInfo()
