"""Apply every matcher and the import reconciler to each target file.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

import time
from collections import Counter

import libcst as cst

from ..context import PipelineContext
from ..engine.matcher import Matcher
from ..engine.program import Package, TargetFile, is_template_name
from ..events import FileRewrittenEvent, MatchFailedEvent, PackageStartedEvent
from ..exceptions import MatchApplicationError, ProgramLoadError
from ..expander import TemplateUnit
from ..pipeline import Step
from ..reconciler import ImportReconciler
from ..report import FileReport, RunReport, RunState
from ..result import Result
from .format_steps import CodeFormatter


class RewritePackagesStep(Step[RunState, RunReport]):
    """Rewrite every non-template package of the loaded program.

    For each file all matchers run in unit order, then the reconciler.
    The file is written only when the summed count is non-zero and the
    run is not a dry run.
    """

    def execute(self, context: PipelineContext, state: RunState) -> Result[RunReport]:
        program = state.program
        if program is None:
            return Result.failure(ProgramLoadError("Program was not loaded before rewriting"))

        config = context.config
        handles = {handle.name: handle for handle in program.units}
        matchers: list[tuple[TemplateUnit, Matcher]] = []
        for unit in state.units:
            handle = handles.get(unit.name)
            if handle is None:
                return Result.failure(ProgramLoadError(f"Unit {unit.name} is missing from the loaded program"))
            matchers.append((unit, state.engine.make_matcher(program, handle)))

        reconciler = ImportReconciler(state.families)
        formatter = CodeFormatter(config.line_length) if config.format_output else None
        report = state.report
        report.dry_run = config.dry_run

        packages = program.transitive_packages() if config.transitive else program.initial_packages()
        for package in packages:
            if package.is_template or is_template_name(package.name):
                continue
            self._rewrite_package(context, package, matchers, reconciler, formatter, state)

        self._logger.info(
            f"Rewrote {report.total_matches} matches in {report.files_changed} files "
            f"across {len(report.packages)} packages"
        )
        if report.failures:
            return Result.warning(report, list(report.failures))
        return Result.success(report)

    def _rewrite_package(
        self,
        context: PipelineContext,
        package: Package,
        matchers: list[tuple[TemplateUnit, Matcher]],
        reconciler: ImportReconciler,
        formatter: CodeFormatter | None,
        state: RunState,
    ) -> None:
        report = state.report
        report.packages.append(package.name)
        self.event_bus.publish(
            PackageStartedEvent(
                timestamp=time.time(), run_id=context.run_id, package=package.name, file_count=len(package.files)
            )
        )

        for target_file in package.files:
            rule_counts: Counter[str] = Counter()
            rewrites = 0
            for unit, matcher in matchers:
                try:
                    count = matcher.apply(target_file)
                except MatchApplicationError as e:
                    report.failures.append(str(e))
                    self.event_bus.publish(
                        MatchFailedEvent(
                            timestamp=time.time(),
                            run_id=context.run_id,
                            path=str(target_file.path),
                            unit_name=unit.name,
                            error=e,
                        )
                    )
                    continue
                if count:
                    rewrites += count
                    rule_counts[unit.rule.name] += count

            import_changes = reconciler.reconcile(target_file)
            matches = rewrites + import_changes
            if matches == 0:
                continue

            if formatter is not None:
                self._format(formatter, target_file)

            self.event_bus.publish(
                FileRewrittenEvent(
                    timestamp=time.time(),
                    run_id=context.run_id,
                    path=str(target_file.path),
                    package=package.name,
                    matches=matches,
                    rule_counts=dict(rule_counts),
                    dry_run=context.is_dry_run(),
                )
            )
            if not context.is_dry_run():
                state.engine.write_file(target_file.path, target_file)

            report.rule_counts.update(rule_counts)
            report.files.append(
                FileReport(
                    path=str(target_file.path),
                    package=package.name,
                    matches=matches,
                    rewrites=rewrites,
                    import_changes=import_changes,
                    rule_counts=dict(rule_counts),
                    written=not context.is_dry_run(),
                )
            )

    def _format(self, formatter: CodeFormatter, target_file: TargetFile) -> None:
        formatted = formatter.format(target_file.code, str(target_file.path))
        if formatted != target_file.code:
            target_file.set_module(cst.parse_module(formatted))
