"""
Exceptions
==========
Errors raised by the layout engine.  Only two conditions are fatal to a
render: overlapping repeat regions and discrete reference lists that are too
long for a spreadsheet function call.  Everything else (unknown collections,
foreign-sheet or absolute references) passes through untouched.
"""


class TemplateLayoutError(Exception):
    """Base class for all layout-engine errors."""


class GeometryError(TemplateLayoutError, ValueError):
    """Invalid coordinate, range or A1 reference text."""


class OverlapError(TemplateLayoutError):
    """Two repeat regions share at least one template cell."""

    def __init__(self, first, second):
        self.first = first
        self.second = second
        super().__init__(
            f"Repeat regions overlap: '{first.collection}' "
            f"({first.direction.value}, {first.area.to_a1()}) and "
            f"'{second.collection}' ({second.direction.value}, "
            f"{second.area.to_a1()}) share both rows and columns"
        )


class FormulaExpansionError(TemplateLayoutError):
    """A discrete (non-contiguous) reference list exceeds the argument limit."""

    def __init__(self, sheet_name, cell_ref, formula, item_count=None, limit=255):
        self.sheet_name = sheet_name
        self.cell_ref = cell_ref
        self.formula = formula
        self.item_count = item_count
        self.limit = limit
        detail = f" ({item_count} items)" if item_count is not None else ""
        super().__init__(
            f"Formula in '{sheet_name}'!{cell_ref} would expand to more than "
            f"{limit} non-contiguous references{detail}: {formula}. "
            f"Use a single-row/column repeat block so the reference becomes a "
            f"contiguous range, or aggregate the collection upstream."
        )
