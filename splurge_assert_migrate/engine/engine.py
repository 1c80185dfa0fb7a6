"""Example-based rewrite engine.

The engine is the narrow collaborator the rewrite pipeline builds on:
it accepts template units, loads and checks them together with the
target packages, hands out one matcher per unit and writes rewritten
files back. Template units are materialised in a scratch directory
owned by the engine and removed when the engine is closed.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

from __future__ import annotations

import logging
import tempfile
from collections.abc import Iterable
from pathlib import Path
from types import TracebackType

import libcst as cst

from ..exceptions import PersistError, ProgramLoadError, TemplateGenerationError
from .matcher import Matcher
from .program import Program, TargetFile, UnitHandle, is_template_name, load_program

ENGINE_HELP = """\
Example-based refactoring.

A template unit is a Python module declaring two functions with the same
annotated signature, each consisting of a single call:

    from typing import Any

    from testify import require
    from testutil import assertions as gassert


    def before(t: Any, a: object, b: object) -> None:
        require.equal(t, a, b)


    def after(t: Any, a: object, b: object) -> None:
        gassert.eq(t, b, a)

Every call in the target program whose callee resolves to the function
called in before() (aliases and dotted imports are followed), with the
same number of positional arguments, is replaced by the call in after()
with the parameters bound to the actual arguments. A literal argument
whose type contradicts its parameter annotation blocks the match.
Imports referenced by after() are added to the file when missing.
"""


class RewriteEngine:
    """Register template units, load programs and build matchers.

    Use as a context manager so the scratch directory holding the units
    is removed on both success and failure.

    Args:
        root: Workspace root that package patterns are resolved against.
        verbose: Emit matcher diagnostics for rejected candidate calls.
    """

    def __init__(self, root: str | Path = ".", verbose: bool = False) -> None:
        self.root = Path(root)
        self.verbose = verbose
        self._scratch: tempfile.TemporaryDirectory[str] | None = None
        self._units: list[UnitHandle] = []
        self._logger = logging.getLogger(__name__)

    def __enter__(self) -> RewriteEngine:
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def scratch_dir(self) -> Path | None:
        return Path(self._scratch.name) if self._scratch is not None else None

    @property
    def units(self) -> list[UnitHandle]:
        return list(self._units)

    def open(self) -> None:
        if self._scratch is None:
            self._scratch = tempfile.TemporaryDirectory(prefix="rewrite-templates-")
            self._logger.debug(f"Template scratch directory: {self._scratch.name}")

    def close(self) -> None:
        if self._scratch is not None:
            self._scratch.cleanup()
            self._scratch = None
        self._units = []

    def register_unit(self, name: str, source_text: str) -> UnitHandle:
        """Write a template unit to the scratch directory and parse it.

        Raises:
            TemplateGenerationError: If the name is outside the template
                namespace, is already registered, or the unit cannot be
                written or parsed.
        """
        if not is_template_name(name):
            raise TemplateGenerationError(f"Unit name {name!r} is outside the template namespace", unit_name=name)
        if any(unit.name == name for unit in self._units):
            raise TemplateGenerationError(f"Unit {name} is already registered", unit_name=name)
        self.open()
        scratch = self.scratch_dir
        if scratch is None:
            raise TemplateGenerationError("Template scratch directory is not available", unit_name=name)

        path = scratch / f"{name.replace('.', '_')}.py"
        try:
            path.write_text(source_text, encoding="utf-8")
            module = cst.parse_module(source_text)
        except OSError as e:
            raise TemplateGenerationError(f"Cannot write unit {name}: {e}", unit_name=name) from e
        except cst.ParserSyntaxError as e:
            raise TemplateGenerationError(f"Unit {name} does not parse: {e.message}", unit_name=name) from e

        handle = UnitHandle(name=name, path=path, source=source_text, module=module)
        self._units.append(handle)
        return handle

    def load_program(
        self, roots: Iterable[str], extra_units: Iterable[UnitHandle] | None = None, transitive: bool = False
    ) -> Program:
        """Load target packages together with the registered (or given) units.

        Raises:
            ProgramLoadError: If any package or unit fails to load or check.
        """
        units = list(extra_units) if extra_units is not None else self.units
        program = load_program(self.root, roots, units, transitive=transitive)
        self._logger.info(
            f"Loaded {len(program.packages)} packages and {len(program.units)} template units from {program.root}"
        )
        return program

    def make_matcher(self, program: Program, handle: UnitHandle) -> Matcher:
        """Derive the matcher for one unit of ``program``.

        Raises:
            ProgramLoadError: If the unit is not part of ``program`` or its
                shapes cannot be turned into a matcher.
        """
        if handle not in program.units:
            raise ProgramLoadError(f"Unit {handle.name} is not part of the loaded program", source_file=handle.name)
        try:
            return Matcher(handle, verbose=self.verbose)
        except (ValueError, KeyError) as e:
            raise ProgramLoadError(f"Cannot build matcher for {handle.name}: {e}", source_file=handle.name) from e

    def write_file(self, path: str | Path, target_file: TargetFile) -> None:
        """Write ``target_file``'s current code to ``path``, byte for byte.

        Raises:
            PersistError: If the file cannot be written.
        """
        try:
            with open(path, "w", encoding="utf-8", newline="") as f:
                f.write(target_file.code)
        except OSError as e:
            raise PersistError(f"Cannot write {path}: {e}", target_file=str(path)) from e
