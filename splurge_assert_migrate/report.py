"""Run state threaded through the pipeline and the report it produces.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .engine.engine import RewriteEngine
    from .engine.program import Program
    from .expander import TemplateUnit
    from .rules.catalog import SubstitutionRule
    from .rules.families import RewriteFamily


@dataclass
class FileReport:
    """Outcome for one target file with a non-zero match count."""

    path: str
    package: str
    matches: int
    rewrites: int
    import_changes: int
    rule_counts: dict[str, int] = field(default_factory=dict)
    written: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "package": self.package,
            "matches": self.matches,
            "rewrites": self.rewrites,
            "import_changes": self.import_changes,
            "rule_counts": dict(self.rule_counts),
            "written": self.written,
        }


@dataclass
class RunReport:
    """Summary of one rewrite run.

    Attributes:
        packages: Names of the target packages visited, in order.
        files: One entry per file whose match count was non-zero.
        rule_counts: Rewrites per originating rule name.
        unit_count: Number of template units registered.
        failures: Descriptions of matcher failures that were tolerated.
    """

    packages: list[str] = field(default_factory=list)
    files: list[FileReport] = field(default_factory=list)
    rule_counts: Counter[str] = field(default_factory=Counter)
    unit_count: int = 0
    failures: list[str] = field(default_factory=list)
    dry_run: bool = False

    @property
    def total_matches(self) -> int:
        return sum(f.matches for f in self.files)

    @property
    def files_changed(self) -> int:
        return len(self.files)

    def to_dict(self) -> dict[str, Any]:
        return {
            "packages": list(self.packages),
            "files": [f.to_dict() for f in self.files],
            "rule_counts": dict(self.rule_counts),
            "unit_count": self.unit_count,
            "failures": list(self.failures),
            "dry_run": self.dry_run,
            "total_matches": self.total_matches,
        }


@dataclass
class RunState:
    """Mutable state handed from step to step within one run."""

    engine: RewriteEngine
    families: tuple[RewriteFamily, ...]
    catalog: tuple[SubstitutionRule, ...]
    units: list[TemplateUnit] = field(default_factory=list)
    program: Program | None = None
    report: RunReport = field(default_factory=RunReport)
