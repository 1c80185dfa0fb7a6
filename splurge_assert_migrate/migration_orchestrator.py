"""Main orchestrator that coordinates a rewrite run.

The orchestrator resolves the configuration, opens a rewrite engine for
the duration of the run and executes the expand, load and rewrite steps
as one task, publishing lifecycle events on its event bus.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

import logging
import time
from collections.abc import Iterable

from .context import MigrationConfig, PipelineContext
from .engine.engine import RewriteEngine
from .events import EventBus, LoggingSubscriber, RunCompletedEvent, RunStartedEvent
from .exceptions import MigrationError
from .pipeline import Task
from .report import RunReport, RunState
from .result import Result
from .rules.catalog import CATALOG, SubstitutionRule
from .steps import ExpandTemplatesStep, LoadProgramStep, RewritePackagesStep


class MigrationOrchestrator:
    """Run the assertion migration over a set of packages.

    Args:
        event_bus: Optional external event bus. A new one is created when omitted.
        catalog: Substitution rules to expand; defaults to the built-in catalog.
    """

    def __init__(self, event_bus: EventBus | None = None, catalog: Iterable[SubstitutionRule] = CATALOG) -> None:
        self.event_bus = event_bus or EventBus()
        self.logger_subscriber = LoggingSubscriber(self.event_bus)
        self.catalog = tuple(catalog)
        self._logger = logging.getLogger(__name__)

    def run(self, packages: Iterable[str], config: MigrationConfig | None = None) -> Result[RunReport]:
        """Rewrite ``packages`` according to ``config``.

        Args:
            packages: Package patterns: import names, directories, files or globs.
            config: Optional ``MigrationConfig``; defaults are used when omitted.

        Returns:
            ``Result`` holding the ``RunReport``. Matcher failures on single
            files produce a warning result; template, load and write
            failures produce an error result.
        """
        if config is None:
            config = MigrationConfig()

        try:
            config.validate()
            families = config.rewrite_families()
        except MigrationError as e:
            self._logger.error(f"Invalid configuration: {e}")
            return Result.failure(e)

        context = PipelineContext.create(list(packages), config)
        self.event_bus.publish(RunStartedEvent(timestamp=time.time(), run_id=context.run_id, context=context))
        start_time = time.time()

        with RewriteEngine(config.root_directory, verbose=config.verbose) as engine:
            state = RunState(engine=engine, families=families, catalog=self.catalog)
            task: Task[RunState, RunReport] = Task(
                "rewrite",
                [
                    ExpandTemplatesStep("expand_templates", self.event_bus),
                    LoadProgramStep("load_program", self.event_bus),
                    RewritePackagesStep("rewrite_packages", self.event_bus),
                ],
                self.event_bus,
            )
            result = task.execute(context, state)

        self.event_bus.publish(
            RunCompletedEvent(
                timestamp=time.time(),
                run_id=context.run_id,
                context=context,
                final_result=result,
                duration_ms=(time.time() - start_time) * 1000,
            )
        )
        if result.is_error():
            self._logger.error(f"Migration failed: {result.error}")
        return result
