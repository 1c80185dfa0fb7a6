"""Programmatic API for splurge_assert_migrate.

This module exposes a small programmatic entry point, ``migrate``, used
by the CLI and tests. It delegates work to ``MigrationOrchestrator`` and
returns a ``Result`` containing the run report.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

from __future__ import annotations

from collections.abc import Iterable

from .context import MigrationConfig
from .events import EventBus
from .migration_orchestrator import MigrationOrchestrator
from .report import RunReport
from .result import Result


def migrate(
    packages: Iterable[str] | str, config: MigrationConfig | None = None, event_bus: EventBus | None = None
) -> Result[RunReport]:
    """Migrate one or more packages programmatically.

    Args:
        packages: Package patterns (or a single pattern string).
        config: Optional ``MigrationConfig`` to control the run.
        event_bus: Optional event bus, for callers that want progress events.

    Returns:
        ``Result`` containing the ``RunReport`` on success, or a failure
        ``Result`` describing the fatal error.
    """
    patterns = [packages] if isinstance(packages, str) else list(packages)
    return MigrationOrchestrator(event_bus).run(patterns, config)
