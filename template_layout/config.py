"""Configuration and logging setup for the layout engine."""

import logging
import os

import yaml

from .formula_adjuster import MAX_DISCRETE_REFERENCES


def load_config(config_path=None):
    """Load configuration from a YAML file, falling back to defaults."""
    defaults = {
        "max_discrete_references": MAX_DISCRETE_REFERENCES,
        "log_level": "INFO",
        "template_last_row": 0,
    }
    if config_path and os.path.exists(config_path):
        with open(config_path, "r") as f:
            user_config = yaml.safe_load(f) or {}
        defaults.update(user_config)
    return defaults


def setup_logging(level_str: str = "INFO"):
    """Configure logging."""
    level = getattr(logging, level_str.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%H:%M:%S'
    )
