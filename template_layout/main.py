#!/usr/bin/env python
"""
Template Layout – CLI entry point.

Usage:
    python -m template_layout <layout.yaml> [--config config.yaml]
                              [--size employees=12 ...] [--log-level DEBUG]

Prints every repeat region's expansion and every formula as it will be
written to the output sheets.
"""

import argparse
import logging
import sys

import yaml

from .config import load_config, setup_logging
from .exceptions import TemplateLayoutError
from .plan import build_workbook_plan, load_layout


def _parse_sizes(values):
    sizes = {}
    for value in values or []:
        name, sep, count = value.partition("=")
        if not sep or not count.strip().isdigit():
            raise argparse.ArgumentTypeError(f"Expected NAME=COUNT, got {value!r}")
        sizes[name.strip()] = int(count)
    return sizes


def print_plan(plan, out=None):
    out = out or sys.stdout
    for sheet, calculator in plan.calculators.items():
        print(f"Sheet '{sheet}' ({calculator.get_total_rows()} rows)", file=out)
        for expansion in calculator.get_expansions():
            region = expansion.region
            print(f"  {region.collection:<20} {region.direction.value:<5} "
                  f"{region.area.to_a1():<10} items={expansion.item_count:<5} "
                  f"-> {expansion.final_area.to_a1()}", file=out)
        for formula in plan.formulas_for(sheet):
            print(f"  {formula.template_cell.to_a1():>6} -> "
                  f"{formula.output_cell.to_a1():<6} {formula.rewritten}", file=out)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Expand repeat regions of a spreadsheet template and rewrite its formulas"
    )
    parser.add_argument("layout", help="Path to the layout YAML file")
    parser.add_argument("--config", default=None, help="Path to config YAML file")
    parser.add_argument(
        "--size", action="append", default=[], metavar="NAME=COUNT",
        help="Collection size (overrides the layout file; repeatable)",
    )
    parser.add_argument(
        "--log-level", type=str, default=None,
        help="Logging level: DEBUG, INFO, WARNING, ERROR",
    )
    args = parser.parse_args(argv)

    config = load_config(args.config)
    setup_logging(args.log_level or config.get("log_level", "INFO"))
    logger = logging.getLogger(__name__)

    try:
        overrides = _parse_sizes(args.size)
    except argparse.ArgumentTypeError as exc:
        parser.error(str(exc))

    try:
        layouts, sizes = load_layout(args.layout)
        sizes.update(overrides)
        plan = build_workbook_plan(layouts, sizes, config)
    except (OSError, yaml.YAMLError, TemplateLayoutError) as exc:
        logger.error(str(exc))
        return 1

    print_plan(plan)
    return 0


if __name__ == "__main__":
    sys.exit(main())
