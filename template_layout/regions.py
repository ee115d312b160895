"""
Repeat-Region Model
===================
Collection bindings over template blocks, the column groups that couple
vertically growing regions, and the static no-overlap validity gate.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, NamedTuple, Optional, Sequence, Tuple

from .exceptions import OverlapError
from .geometry import CellArea, CellCoord, ColRange

logger = logging.getLogger(__name__)


class RepeatDirection(Enum):
    DOWN = "DOWN"
    RIGHT = "RIGHT"

    @classmethod
    def parse(cls, value) -> "RepeatDirection":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(f"Unknown repeat direction: {value!r}") from None


class RegionKey(NamedTuple):
    """Positional identity of a region (one collection may be bound twice)."""
    collection: str
    row: int
    col: int


@dataclass(frozen=True)
class EmptyRangeSpec:
    """Placeholder block rendered when a collection has no items."""
    area: CellArea
    sheet_name: Optional[str] = None  # None means the region's own sheet

    @property
    def is_local(self) -> bool:
        return self.sheet_name is None


@dataclass(frozen=True)
class CellSnapshot:
    value: Any = None
    style_id: Optional[int] = None


@dataclass(frozen=True)
class EmptyRangeContent:
    """Read-only snapshot of an empty-range placeholder, read upstream.

    Coordinates of ``merged_areas`` are relative to the placeholder's
    top-left cell.
    """
    cells: Tuple[Tuple[CellSnapshot, ...], ...] = ()
    merged_areas: Tuple[CellArea, ...] = ()
    row_heights: Tuple[Optional[float], ...] = ()

    @property
    def row_count(self) -> int:
        return len(self.cells)

    @property
    def col_count(self) -> int:
        return max((len(row) for row in self.cells), default=0)


@dataclass(frozen=True)
class RepeatRegionSpec:
    """One collection bound to one template block."""
    collection: str
    variable: str
    area: CellArea
    direction: RepeatDirection = RepeatDirection.DOWN
    empty_range: Optional[EmptyRangeSpec] = None
    empty_range_content: Optional[EmptyRangeContent] = field(
        default=None, compare=False, hash=False, repr=False)

    @property
    def key(self) -> RegionKey:
        return RegionKey(self.collection, self.area.start.row, self.area.start.col)

    @property
    def is_down(self) -> bool:
        return self.direction is RepeatDirection.DOWN

    def overlaps_rows(self, other: "RepeatRegionSpec") -> bool:
        return self.area.row_range.overlaps(other.area.row_range)

    def overlaps_columns(self, other: "RepeatRegionSpec") -> bool:
        return self.area.col_range.overlaps(other.area.col_range)

    def overlaps(self, other: "RepeatRegionSpec") -> bool:
        return self.area.overlaps(other.area)


def template_order(regions: Sequence[RepeatRegionSpec]) -> List[RepeatRegionSpec]:
    """Regions sorted top-to-bottom, then left-to-right."""
    return sorted(regions, key=lambda r: (r.area.start.row, r.area.start.col))


# ---------------------------------------------------------------------------
# Column groups
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ColumnGroup:
    """DOWN regions whose column ranges overlap, directly or transitively.

    Members of a group grow in lock-step: every member pushes the rows of the
    members below it.
    """
    group_id: int
    col_range: ColRange
    regions: Tuple[RepeatRegionSpec, ...]

    def __contains__(self, col) -> bool:
        return col in self.col_range

    @classmethod
    def from_regions(cls, regions: Sequence[RepeatRegionSpec]) -> List["ColumnGroup"]:
        """Cluster DOWN regions by column overlap; RIGHT regions are ignored."""
        down = [r for r in template_order(regions) if r.is_down]
        parent = list(range(len(down)))

        def find(i):
            while parent[i] != i:
                parent[i] = parent[parent[i]]
                i = parent[i]
            return i

        for i in range(len(down)):
            for j in range(i + 1, len(down)):
                if down[i].overlaps_columns(down[j]):
                    ri, rj = find(i), find(j)
                    if ri != rj:
                        parent[max(ri, rj)] = min(ri, rj)

        clusters = {}
        for i, region in enumerate(down):
            clusters.setdefault(find(i), []).append(region)

        ordered = sorted(
            clusters.values(),
            key=lambda members: min(r.area.start.col for r in members),
        )
        groups = []
        for group_id, members in enumerate(ordered):
            col_range = ColRange(
                min(r.area.start.col for r in members),
                max(r.area.end.col for r in members),
            )
            groups.append(cls(group_id, col_range, tuple(members)))
            logger.debug("Column group %d: %s cols %d..%d", group_id,
                         [r.collection for r in members],
                         col_range.start, col_range.end)
        return groups


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_no_overlap(regions: Sequence[RepeatRegionSpec]) -> None:
    """Raise :class:`OverlapError` for the first pair sharing a cell."""
    ordered = template_order(regions)
    for i, first in enumerate(ordered):
        for second in ordered[i + 1:]:
            if first.overlaps(second):
                raise OverlapError(first, second)


def region_at(regions: Sequence[RepeatRegionSpec], coord: CellCoord) -> Optional[RepeatRegionSpec]:
    """Region whose template block contains *coord*, if any."""
    for region in regions:
        if region.area.contains(coord):
            return region
    return None
