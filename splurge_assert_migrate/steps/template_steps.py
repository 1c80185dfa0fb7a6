"""Steps that prepare the template units and load the combined program.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

import time

from ..context import PipelineContext
from ..events import ProgramLoadedEvent, TemplatesExpandedEvent
from ..exceptions import ProgramLoadError
from ..expander import ExpansionContext, expand_and_register
from ..pipeline import Step
from ..report import RunState
from ..result import Result
from ..rules.catalog import validate_catalog
from ..rules.families import ARITY_VARIANTS


class ExpandTemplatesStep(Step[RunState, RunState]):
    """Expand the catalog for every family and arity variant and register the units."""

    def execute(self, context: PipelineContext, state: RunState) -> Result[RunState]:
        problems = validate_catalog(state.catalog)
        if problems:
            self._logger.warning(f"Rule catalog is ambiguous: {'; '.join(problems)}")

        count, units = expand_and_register(
            state.engine, state.catalog, state.families, ARITY_VARIANTS, ExpansionContext()
        )
        state.units = units
        state.report.unit_count = count
        self.event_bus.publish(
            TemplatesExpandedEvent(
                timestamp=time.time(), run_id=context.run_id, unit_count=count, rule_count=len(state.catalog)
            )
        )
        if problems:
            return Result.warning(state, problems, {"unit_count": count})
        return Result.success(state, {"unit_count": count})


class LoadProgramStep(Step[RunState, RunState]):
    """Load the requested packages together with the registered template units."""

    def execute(self, context: PipelineContext, state: RunState) -> Result[RunState]:
        if not context.packages:
            return Result.failure(ProgramLoadError("No packages requested"))

        program = state.engine.load_program(context.packages, transitive=context.config.transitive)
        state.program = program
        self.event_bus.publish(
            ProgramLoadedEvent(
                timestamp=time.time(),
                run_id=context.run_id,
                package_names=tuple(program.packages),
                unit_count=len(program.units),
            )
        )
        return Result.success(state, {"packages": list(program.packages)})
