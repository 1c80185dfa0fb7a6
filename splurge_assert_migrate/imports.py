"""Module-level import model shared by the engine and the reconciler.

A file's imports are described two ways: the lightweight list of
``ImportRecord`` values kept on a target file, and the import statements
inside the libcst module body. ``ImportSet`` is the single canonical
value both are regenerated from, so they cannot drift apart.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, replace

import libcst as cst
from libcst.helpers import get_full_name_for_node
from libcst.metadata import Assignment, BaseAssignment, MetadataWrapper, ScopeProvider

# (statement index, small statement index, alias index) within module.body
ImportKey = tuple[int, int, int]


@dataclass(frozen=True)
class ImportRecord:
    """One imported name.

    Attributes:
        path: Dotted path of the imported object. For ``from a import b``
            this is ``a.b``; relative imports keep their leading dots and a
            star import ends in ``.*``.
        alias: Explicit ``as`` name, or None.
        is_used: Whether the bound name is referenced outside import statements.
        from_import: True for ``from ... import ...`` entries.
    """

    path: str
    alias: str | None = None
    is_used: bool = False
    from_import: bool = False

    @property
    def bound_name(self) -> str:
        """Local name this entry introduces into the module namespace."""
        if self.alias:
            return self.alias
        stripped = self.path.lstrip(".")
        if self.from_import:
            return stripped.rsplit(".", 1)[-1]
        return stripped.split(".", 1)[0]

    @property
    def binds_module(self) -> bool:
        """True when ``bound_name`` refers to ``path`` itself rather than its top package."""
        return self.from_import or self.alias is not None or "." not in self.path

    @property
    def natural_name(self) -> str:
        """Name bound when no alias is given."""
        return replace(self, alias=None).bound_name

    def with_alias(self, alias: str | None) -> ImportRecord:
        if alias is not None and self.binds_module and alias == self.natural_name:
            alias = None
        return replace(self, alias=alias)

    def same_entry(self, other: ImportRecord) -> bool:
        return (self.path, self.alias, self.from_import) == (other.path, other.alias, other.from_import)

    def render(self) -> str:
        """Render as a single Python import statement."""
        suffix = f" as {self.alias}" if self.alias else ""
        if not self.from_import:
            return f"import {self.path}{suffix}"
        level = len(self.path) - len(self.path.lstrip("."))
        rest = self.path[level:]
        if "." in rest:
            module, name = rest.rsplit(".", 1)
            module = "." * level + module
        else:
            module, name = "." * level, rest
        return f"from {module} import {name}{suffix}"

    @classmethod
    def for_module(cls, path: str, alias: str | None = None) -> ImportRecord:
        """Record importing module ``path`` in the preferred ``from a import b`` style."""
        record = cls(path=path, from_import="." in path)
        return record.with_alias(alias)


class _ReferencedNames(cst.CSTVisitor):
    """Collect names read outside import statements, attribute tails and keyword labels."""

    def __init__(self) -> None:
        self.names: set[str] = set()

    def visit_Import(self, node: cst.Import) -> bool:
        return False

    def visit_ImportFrom(self, node: cst.ImportFrom) -> bool:
        return False

    def visit_Attribute(self, node: cst.Attribute) -> bool:
        node.value.visit(self)
        return False

    def visit_Arg(self, node: cst.Arg) -> bool:
        node.value.visit(self)
        return False

    def visit_Name(self, node: cst.Name) -> None:
        self.names.add(node.value)


def referenced_names(node: cst.CSTNode) -> set[str]:
    """Names read anywhere under ``node``, ignoring imports, attribute tails and keyword labels."""
    collector = _ReferencedNames()
    node.visit(collector)
    return collector.names


def _import_from_module_name(node: cst.ImportFrom) -> str:
    level = len(node.relative)
    module = get_full_name_for_node(node.module) if node.module is not None else ""
    return "." * level + (module or "")


def _statement_entries(small: cst.Import | cst.ImportFrom) -> Iterator[tuple[int, ImportRecord]]:
    if isinstance(small, cst.Import):
        for ai, alias in enumerate(small.names):
            yield ai, ImportRecord(path=alias.evaluated_name, alias=alias.evaluated_alias)
        return
    base = _import_from_module_name(small)
    joiner = "" if base.endswith(".") or not base else "."
    if isinstance(small.names, cst.ImportStar):
        yield 0, ImportRecord(path=f"{base}{joiner}*", from_import=True)
        return
    for ai, alias in enumerate(small.names):
        path = f"{base}{joiner}{alias.evaluated_name}"
        yield ai, ImportRecord(path=path, alias=alias.evaluated_alias, from_import=True)


def statement_records(small: cst.Import | cst.ImportFrom) -> list[ImportRecord]:
    """Entries introduced by one import statement."""
    return [record for _, record in _statement_entries(small)]


def _iter_import_entries(module: cst.Module) -> Iterator[tuple[ImportKey, ImportRecord]]:
    for si, stmt in enumerate(module.body):
        if not isinstance(stmt, cst.SimpleStatementLine):
            continue
        for ji, small in enumerate(stmt.body):
            if isinstance(small, cst.Import | cst.ImportFrom):
                for ai, record in _statement_entries(small):
                    yield (si, ji, ai), record


def is_module_binding(assignment: BaseAssignment, name: str, path: str) -> bool:
    """True when ``assignment`` is an import binding ``name`` to module ``path``."""
    if not isinstance(assignment, Assignment) or not isinstance(assignment.node, cst.Import | cst.ImportFrom):
        return False
    return any(
        record.bound_name == name and record.path == path and record.binds_module
        for record in statement_records(assignment.node)
    )


def collect_imports(module: cst.Module) -> list[ImportRecord]:
    """Return the module's top-level import entries in source order."""
    return ImportSet.from_module(module).records()


class ImportSet:
    """Canonical, ordered set of a module's top-level import entries.

    Entries are keyed by their position in the module body so the set can
    be written back with :meth:`apply_to` without disturbing unrelated
    statements, comments or formatting.
    """

    def __init__(self, entries: list[tuple[ImportKey, ImportRecord]]) -> None:
        self._entries = entries

    @classmethod
    def from_module(cls, module: cst.Module) -> ImportSet:
        used = referenced_names(module)
        entries = [
            (key, replace(record, is_used=record.bound_name in used and not record.path.endswith("*")))
            for key, record in _iter_import_entries(module)
        ]
        return cls(entries)

    def records(self) -> list[ImportRecord]:
        return [record for _, record in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ImportRecord]:
        return iter(self.records())

    def find(self, predicate: Callable[[ImportRecord], bool]) -> list[ImportRecord]:
        return [record for record in self.records() if predicate(record)]

    def drop(self, predicate: Callable[[ImportRecord], bool]) -> list[ImportRecord]:
        """Remove entries matching ``predicate`` and return them."""
        kept: list[tuple[ImportKey, ImportRecord]] = []
        dropped: list[ImportRecord] = []
        for key, record in self._entries:
            if predicate(record):
                dropped.append(record)
            else:
                kept.append((key, record))
        self._entries = kept
        return dropped

    def realias(self, predicate: Callable[[ImportRecord], bool], alias: str) -> list[tuple[ImportRecord, ImportRecord]]:
        """Give every matching entry ``alias``; return ``(old, new)`` pairs that changed."""
        changed: list[tuple[ImportRecord, ImportRecord]] = []
        updated: list[tuple[ImportKey, ImportRecord]] = []
        for key, record in self._entries:
            if predicate(record):
                new_record = record.with_alias(alias)
                if not new_record.same_entry(record):
                    changed.append((record, new_record))
                    record = new_record
            updated.append((key, record))
        self._entries = updated
        return changed

    def apply_to(self, module: cst.Module) -> cst.Module:
        """Regenerate the module's import statements from this set."""
        wanted = dict(self._entries)
        import_lines = {key[0] for key, _ in _iter_import_entries(module)}
        new_body: list[cst.BaseStatement] = []
        carried_comments: list[cst.EmptyLine] = []

        for si, stmt in enumerate(module.body):
            if isinstance(stmt, cst.SimpleStatementLine) and si in import_lines:
                rewritten = self._rewrite_line(si, stmt, wanted)
                if rewritten is None:
                    carried_comments.extend(line for line in stmt.leading_lines if line.comment is not None)
                    continue
                stmt = rewritten
            if carried_comments:
                stmt = stmt.with_changes(leading_lines=[*carried_comments, *stmt.leading_lines])
                carried_comments = []
            new_body.append(stmt)

        return module.with_changes(body=new_body)

    def _rewrite_line(
        self, si: int, stmt: cst.SimpleStatementLine, wanted: dict[ImportKey, ImportRecord]
    ) -> cst.SimpleStatementLine | None:
        smalls: list[cst.BaseSmallStatement] = []
        for ji, small in enumerate(stmt.body):
            if isinstance(small, cst.Import):
                names = self._rewrite_aliases(si, ji, small.names, wanted)
                if names:
                    smalls.append(small.with_changes(names=names))
            elif isinstance(small, cst.ImportFrom):
                if isinstance(small.names, cst.ImportStar):
                    if (si, ji, 0) in wanted:
                        smalls.append(small)
                    continue
                names = self._rewrite_aliases(si, ji, small.names, wanted)
                if names:
                    smalls.append(small.with_changes(names=names))
            else:
                smalls.append(small)

        if not smalls:
            return None
        last = smalls[-1]
        if not isinstance(last.semicolon, cst.MaybeSentinel):
            smalls[-1] = last.with_changes(semicolon=cst.MaybeSentinel.DEFAULT)
        return stmt.with_changes(body=smalls)

    @staticmethod
    def _rewrite_aliases(
        si: int, ji: int, aliases: Sequence[cst.ImportAlias], wanted: dict[ImportKey, ImportRecord]
    ) -> list[cst.ImportAlias]:
        kept: list[cst.ImportAlias] = []
        for ai, alias in enumerate(aliases):
            record = wanted.get((si, ji, ai))
            if record is None:
                continue
            if record.alias != alias.evaluated_alias:
                asname = cst.AsName(name=cst.Name(record.alias)) if record.alias else None
                alias = alias.with_changes(asname=asname)
            kept.append(alias)
        if kept and not isinstance(kept[-1].comma, cst.MaybeSentinel):
            kept[-1] = kept[-1].with_changes(comma=cst.MaybeSentinel.DEFAULT)
        return kept


class _BindingRenamer(cst.CSTTransformer):
    def __init__(self, targets: set[int], new: str) -> None:
        super().__init__()
        self.targets = targets
        self.new = new

    def leave_Name(self, original_node: cst.Name, updated_node: cst.Name) -> cst.Name:
        if id(original_node) in self.targets:
            return updated_node.with_changes(value=self.new)
        return updated_node


def rebind_references(module: cst.Module, record: ImportRecord, new: str) -> cst.Module | None:
    """Rename the reads of ``record``'s import binding so they read ``new``.

    Only names that resolve to that import are renamed; locals and
    parameters spelled the same are left alone. The import statement
    itself is not touched.

    Returns:
        The renamed module, or None when ``new`` is already bound to
        something other than ``record.path`` at module level or in a
        scope that reads the import.
    """
    old = record.bound_name
    if old == new:
        return module
    wrapper = MetadataWrapper(module)
    scopes = wrapper.resolve(ScopeProvider)
    global_scope = next((scope.globals for scope in scopes.values() if scope is not None), None)
    if global_scope is None:
        return module

    bindings = [a for a in global_scope.assignments[old] if is_module_binding(a, old, record.path)]
    accesses = [access for binding in bindings for access in binding.references]
    visible = [*global_scope.assignments[new]]
    for access in accesses:
        visible.extend(access.scope[new])
    if any(not is_module_binding(assignment, new, record.path) for assignment in visible):
        return None

    targets = {id(access.node) for access in accesses if isinstance(access.node, cst.Name)}
    return wrapper.module.visit(_BindingRenamer(targets, new))


def insert_import(module: cst.Module, record: ImportRecord) -> cst.Module:
    """Insert ``record`` after the last top-level import (or the module docstring)."""
    statement = cst.parse_statement(record.render() + "\n")
    position = 0
    for si, stmt in enumerate(module.body):
        if isinstance(stmt, cst.SimpleStatementLine) and any(
            isinstance(small, cst.Import | cst.ImportFrom) for small in stmt.body
        ):
            position = si + 1
    if position == 0 and module.body:
        first = module.body[0]
        if (
            isinstance(first, cst.SimpleStatementLine)
            and len(first.body) == 1
            and isinstance(first.body[0], cst.Expr)
            and isinstance(first.body[0].value, cst.SimpleString | cst.ConcatenatedString)
        ):
            position = 1
    body = list(module.body)
    body.insert(position, statement)
    return module.with_changes(body=body)
