"""Whole-program image: target packages, template units and the import graph.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

from __future__ import annotations

import builtins
import logging
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

import libcst as cst
from libcst.helpers import get_full_name_for_node

from ..exceptions import ProgramLoadError
from ..imports import ImportRecord, collect_imports, referenced_names
from ..rules.shapes import SlotType

logger = logging.getLogger(__name__)

# Reserved top-level namespace for synthetic template units. No real
# package can live here, so exclusion never needs substring matching.
TEMPLATE_NAMESPACE = "__rewrite_templates__"

SKIP_DIRS = {
    "__pycache__",
    "build",
    "dist",
    "node_modules",
    "site-packages",
    "venv",
}

KNOWN_ANNOTATIONS = {slot.annotation for slot in SlotType}

_GLOB_CHARS = set("*?[")


def is_template_name(name: str) -> bool:
    """Return True when ``name`` lives in the reserved template namespace."""
    return name.split(".", 1)[0] == TEMPLATE_NAMESPACE


def template_unit_name(ordinal: int) -> str:
    return f"{TEMPLATE_NAMESPACE}.unit{ordinal:04d}"


@dataclass
class TargetFile:
    """One source file of the program, mutated in place during a run."""

    path: Path
    package: str
    module: cst.Module
    original_code: str
    imports: list[ImportRecord] = field(default_factory=list)

    @classmethod
    def parse(cls, path: Path, package: str) -> TargetFile:
        """Read and parse ``path``.

        Raises:
            ProgramLoadError: If the file cannot be read or parsed.
        """
        try:
            code = path.read_bytes().decode("utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ProgramLoadError(f"Cannot read {path}: {e}", source_file=str(path)) from e
        try:
            module = cst.parse_module(code)
        except cst.ParserSyntaxError as e:
            raise ProgramLoadError(f"Cannot parse {path}: {e.message}", source_file=str(path), line=e.raw_line) from e
        return cls(path=path, package=package, module=module, original_code=code, imports=collect_imports(module))

    @property
    def code(self) -> str:
        return self.module.code

    def set_module(self, module: cst.Module) -> None:
        """Replace the module and refresh the import list from it."""
        self.module = module
        self.imports = collect_imports(module)


@dataclass
class Package:
    """A directory of Python files, named by its import path."""

    name: str
    directory: Path | None
    files: list[TargetFile] = field(default_factory=list)
    is_template: bool = False

    def __str__(self) -> str:
        return self.name


@dataclass
class UnitHandle:
    """A registered template unit as seen by the engine."""

    name: str
    path: Path
    source: str
    module: cst.Module


@dataclass
class Program:
    """Loaded and checked program image."""

    root: Path
    packages: dict[str, Package]
    initial: list[str]
    units: list[UnitHandle]
    dependents: dict[str, set[str]] = field(default_factory=dict)

    def unit_packages(self) -> list[Package]:
        return [
            Package(name=unit.name, directory=unit.path.parent, is_template=True, files=[_unit_file(unit)])
            for unit in self.units
        ]

    def initial_packages(self) -> list[Package]:
        """Template units followed by the requested packages."""
        return self.unit_packages() + [self.packages[name] for name in self.initial]

    def all_packages(self) -> list[Package]:
        return self.unit_packages() + list(self.packages.values())

    def transitive_packages(self) -> list[Package]:
        """Template units, the requested packages and every package that transitively imports one of them."""
        seen: list[str] = list(self.initial)
        queue = deque(self.initial)
        while queue:
            current = queue.popleft()
            for dependent in sorted(self.dependents.get(current, ())):
                if dependent not in seen:
                    seen.append(dependent)
                    queue.append(dependent)
        return self.unit_packages() + [self.packages[name] for name in seen]


def _unit_file(unit: UnitHandle) -> TargetFile:
    return TargetFile(
        path=unit.path,
        package=unit.name,
        module=unit.module,
        original_code=unit.source,
        imports=collect_imports(unit.module),
    )


def _import_name(root: Path, directory: Path) -> str:
    """Dotted import path of ``directory``, honouring ``__init__.py`` package chains."""
    parts: list[str] = []
    current = directory
    while current != root and (current / "__init__.py").exists():
        parts.insert(0, current.name)
        current = current.parent
    if parts:
        return ".".join(parts)
    relative = directory.relative_to(root)
    return ".".join(relative.parts) if relative.parts else root.name


def discover_packages(root: Path) -> dict[str, Path]:
    """Map import name to directory for every directory under ``root`` holding Python files."""
    found: dict[str, Path] = {}
    candidates = [root] + sorted(p for p in root.rglob("*") if p.is_dir())
    for directory in candidates:
        relative_parts = directory.relative_to(root).parts
        if any(part.startswith(".") or part in SKIP_DIRS for part in relative_parts):
            continue
        if not any(directory.glob("*.py")):
            continue
        name = _import_name(root, directory)
        if name in found or is_template_name(name):
            name = ".".join(relative_parts) or root.name
        found[name] = directory
    return found


def resolve_roots(root: Path, patterns: Iterable[str], directories: dict[str, Path]) -> list[str]:
    """Resolve command-line package patterns to package names.

    A pattern may be a package import name, a directory or ``.py`` file
    path (absolute or relative to ``root``), or a glob evaluated against
    ``root``.

    Raises:
        ProgramLoadError: If a pattern matches no package.
    """
    by_directory = {path.resolve(): name for name, path in directories.items()}
    resolved: list[str] = []

    def add(name: str) -> None:
        if name not in resolved:
            resolved.append(name)

    for pattern in patterns:
        matched: list[str] = []
        if pattern in directories:
            matched.append(pattern)
        elif _GLOB_CHARS & set(pattern):
            base = Path(pattern)
            hits = Path(base.anchor).glob(str(base.relative_to(base.anchor))) if base.is_absolute() else root.glob(pattern)
            for hit in sorted(hits):
                directory = hit if hit.is_dir() else hit.parent
                name = by_directory.get(directory.resolve())
                if name is not None and name not in matched:
                    matched.append(name)
        else:
            candidate = Path(pattern)
            if not candidate.is_absolute():
                candidate = root / candidate
            if candidate.is_file() and candidate.suffix == ".py":
                candidate = candidate.parent
            name = by_directory.get(candidate.resolve()) if candidate.is_dir() else None
            if name is not None:
                matched.append(name)

        if not matched:
            raise ProgramLoadError(f"No Python package matches {pattern!r} under {root}", source_file=pattern)
        for name in matched:
            add(name)
    return resolved


class _ImportedModules(cst.CSTVisitor):
    """Collect every module name imported anywhere in a file."""

    def __init__(self, current_package: str) -> None:
        self.current_package = current_package
        self.modules: set[str] = set()

    def visit_Import(self, node: cst.Import) -> None:
        for alias in node.names:
            self.modules.add(alias.evaluated_name)

    def visit_ImportFrom(self, node: cst.ImportFrom) -> None:
        base = get_full_name_for_node(node.module) if node.module is not None else ""
        if node.relative:
            anchor = self.current_package.split(".")
            keep = len(anchor) - (len(node.relative) - 1)
            if keep <= 0:
                return
            base = ".".join(anchor[:keep] + ([base] if base else []))
        if not base:
            return
        self.modules.add(base)
        if not isinstance(node.names, cst.ImportStar):
            for alias in node.names:
                self.modules.add(f"{base}.{alias.evaluated_name}")


def _owning_package(module_name: str, package_names: set[str]) -> str | None:
    parts = module_name.split(".")
    while parts:
        candidate = ".".join(parts)
        if candidate in package_names:
            return candidate
        parts.pop()
    return None


def build_dependents(packages: dict[str, Package]) -> dict[str, set[str]]:
    """Reverse import graph: package name -> names of packages importing it."""
    names = set(packages)
    dependents: dict[str, set[str]] = {name: set() for name in names}
    for package in packages.values():
        for target_file in package.files:
            visitor = _ImportedModules(package.name)
            target_file.module.visit(visitor)
            for module_name in visitor.modules:
                owner = _owning_package(module_name, names)
                if owner is not None and owner != package.name:
                    dependents[owner].add(package.name)
    return dependents


def _function_defs(module: cst.Module) -> dict[str, cst.FunctionDef]:
    return {stmt.name.value: stmt for stmt in module.body if isinstance(stmt, cst.FunctionDef)}


def _param_signature(module: cst.Module, func: cst.FunctionDef) -> list[tuple[str, str]]:
    params = func.params
    if params.star_arg is not cst.MaybeSentinel.DEFAULT or params.kwonly_params or params.star_kwarg or params.posonly_params:
        raise ValueError(f"{func.name.value}() may only declare plain positional parameters")
    signature: list[tuple[str, str]] = []
    for param in params.params:
        if param.default is not None:
            raise ValueError(f"{func.name.value}() parameter {param.name.value} must not have a default")
        if param.annotation is None:
            raise ValueError(f"{func.name.value}() parameter {param.name.value} is missing an annotation")
        annotation = module.code_for_node(param.annotation.annotation)
        if annotation not in KNOWN_ANNOTATIONS:
            raise ValueError(f"{func.name.value}() parameter {param.name.value} has unknown type {annotation!r}")
        signature.append((param.name.value, annotation))
    return signature


def single_call(func: cst.FunctionDef) -> cst.Call:
    """Return the only call expression in ``func``'s body."""
    body = func.body
    if isinstance(body, cst.IndentedBlock):
        statements = list(body.body)
        if len(statements) == 1 and isinstance(statements[0], cst.SimpleStatementLine):
            smalls = statements[0].body
        else:
            smalls = []
    else:
        smalls = list(body.body)
    if len(smalls) != 1 or not isinstance(smalls[0], cst.Expr) or not isinstance(smalls[0].value, cst.Call):
        raise ValueError(f"{func.name.value}() must contain exactly one call expression")
    return smalls[0].value


def check_unit(unit: UnitHandle) -> None:
    """Check that a template unit is well-formed.

    The unit must define exactly ``before`` and ``after`` with identical
    annotated positional signatures, each body a single call whose names
    all resolve to a parameter, an import of the unit or a builtin.

    Raises:
        ProgramLoadError: Describing the first problem found.
    """
    try:
        functions = _function_defs(unit.module)
        if set(functions) != {"before", "after"}:
            raise ValueError(f"expected functions before() and after(), found {sorted(functions)}")
        before_sig = _param_signature(unit.module, functions["before"])
        after_sig = _param_signature(unit.module, functions["after"])
        if before_sig != after_sig:
            raise ValueError("before() and after() signatures differ")

        imported = {record.bound_name for record in collect_imports(unit.module)}
        params = {name for name, _ in before_sig}
        shadowed = params & imported
        if shadowed:
            raise ValueError(f"parameters shadow imported names: {sorted(shadowed)}")
        known = params | imported | set(dir(builtins))
        for fn_name in ("before", "after"):
            call = single_call(functions[fn_name])
            if not isinstance(call.func, cst.Attribute) or not isinstance(call.func.value, cst.Name):
                raise ValueError(f"{fn_name}() must call a function of an imported module")
            unresolved = referenced_names(call) - known
            if unresolved:
                raise ValueError(f"{fn_name}() references undefined names: {sorted(unresolved)}")
    except ValueError as e:
        raise ProgramLoadError(f"Template unit {unit.name} is invalid: {e}", source_file=unit.name) from e


def load_program(
    root: Path, patterns: Iterable[str], units: Iterable[UnitHandle], transitive: bool = False
) -> Program:
    """Discover, parse and check the program rooted at ``root``.

    Only the requested packages are parsed unless ``transitive`` is set,
    in which case every package under ``root`` is parsed so that
    dependents can be found.

    Raises:
        ProgramLoadError: On unresolvable patterns, unreadable or
            unparsable files, or malformed template units.
    """
    root = root.resolve()
    if not root.is_dir():
        raise ProgramLoadError(f"Root directory does not exist: {root}", source_file=str(root))

    unit_list = list(units)
    for unit in unit_list:
        check_unit(unit)

    directories = discover_packages(root)
    initial = resolve_roots(root, patterns, directories)
    to_parse = list(directories) if transitive else initial

    packages: dict[str, Package] = {}
    for name in to_parse:
        directory = directories[name]
        package = Package(name=name, directory=directory)
        for path in sorted(directory.glob("*.py")):
            package.files.append(TargetFile.parse(path, name))
        packages[name] = package
        logger.debug(f"Loaded package {name} ({len(package.files)} files)")

    dependents = build_dependents(packages) if transitive else {}
    return Program(root=root, packages=packages, initial=initial, units=unit_list, dependents=dependents)
