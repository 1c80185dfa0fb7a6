"""CLI helper functions for the assertion migration tool.

This module contains utility functions used by the CLI commands,
separated from the main CLI module for better organization.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

import logging
from typing import Any

from .context import MigrationConfig
from .events import ConsoleReporter, EventBus
from .rules.catalog import SubstitutionRule
from .rules.families import RewriteFamily

USAGE = """\
Usage: splurge-assert-migrate migrate [OPTIONS] PACKAGES...

Rewrite testify-style assertion calls in PACKAGES to the testutil
assertion modules. PACKAGES are import names, directories, files or
glob patterns resolved against --root.

Options:
  --transitive      Also rewrite every package that imports one of PACKAGES
  -v, --verbose     Report why candidate calls were not rewritten
  -r, --root DIR    Workspace root (default: current directory)
  --dry-run         Report matches without writing files
  --format          Format rewritten files with isort and black
  -c, --config FILE YAML configuration file
  --log-level LEVEL DEBUG, INFO, WARNING or ERROR
  --engine-help     Show the rewrite engine help and this usage
"""


def setup_logging_with_level(log_level: str) -> None:
    """Set up logging with a specific level."""
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger().setLevel(numeric_level)


def create_event_bus() -> EventBus:
    """Create an event bus with the console progress reporter attached."""
    event_bus = EventBus()
    ConsoleReporter(event_bus)
    return event_bus


def build_config(base: MigrationConfig, **overrides: Any) -> MigrationConfig:
    """Apply command line overrides on top of ``base``.

    ``None`` values and ``False`` flags leave the base setting in place, so
    a configuration file can turn a flag on without the CLI turning it off.
    """
    changes = {key: value for key, value in overrides.items() if value is not None and value is not False}
    return base.with_override(**changes) if changes else base


def describe_rule(rule: SubstitutionRule, family: RewriteFamily) -> str:
    """One-line description of ``rule`` rendered for ``family``."""
    qualifiers = family.qualifiers()
    return f"{rule.name:<10} {rule.before.render(qualifiers)} -> {rule.after.render(qualifiers)}"
