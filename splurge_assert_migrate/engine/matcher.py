"""Matchers derived from template units.

A ``Matcher`` learns one before/after pair from a checked template unit.
Applied to a target file it finds every call whose callee resolves
(through the file's own imports, so aliases are followed) to the
before-shape's function, with exactly the before-shape's arity and
type-compatible arguments, and replaces it with the after-shape
instantiated with the matched arguments.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import libcst as cst
from libcst.metadata import MetadataWrapper, QualifiedNameProvider, Scope, ScopeProvider

from ..exceptions import MatchApplicationError
from ..imports import ImportRecord, collect_imports, insert_import, is_module_binding, referenced_names
from .program import TargetFile, UnitHandle, single_call

logger = logging.getLogger(__name__)

_ANY = frozenset({"str", "int", "float", "complex", "bool", "None", "container", "function"})

# Literal kinds each annotation accepts. Non-literal arguments are always accepted.
ACCEPTED_LITERALS: dict[str, frozenset[str]] = {
    "Any": _ANY,
    "object": _ANY,
    "bool": frozenset({"bool"}),
    "str": frozenset({"str"}),
    "int": frozenset({"int", "bool"}),
    "BaseException | None": frozenset({"None"}),
}


def literal_kind(expr: cst.BaseExpression) -> str | None:
    """Classify a literal expression, or return None when the type is not evident."""
    if isinstance(expr, cst.SimpleString | cst.ConcatenatedString | cst.FormattedString):
        return "str"
    if isinstance(expr, cst.Integer):
        return "int"
    if isinstance(expr, cst.Float):
        return "float"
    if isinstance(expr, cst.Imaginary):
        return "complex"
    if isinstance(expr, cst.Name) and expr.value in ("True", "False"):
        return "bool"
    if isinstance(expr, cst.Name) and expr.value == "None":
        return "None"
    if isinstance(expr, cst.List | cst.Tuple | cst.Set | cst.Dict | cst.ListComp | cst.SetComp | cst.DictComp):
        return "container"
    if isinstance(expr, cst.Lambda):
        return "function"
    return None


def is_compatible(annotation: str, expr: cst.BaseExpression) -> bool:
    kind = literal_kind(expr)
    return kind is None or kind in ACCEPTED_LITERALS.get(annotation, _ANY)


class _Substitute(cst.CSTTransformer):
    """Replace parameter names in an after-shape with bound argument values."""

    def __init__(self, bindings: dict[str, cst.BaseExpression]) -> None:
        super().__init__()
        self.bindings = bindings

    def leave_Attribute(self, original_node: cst.Attribute, updated_node: cst.Attribute) -> cst.Attribute:
        return updated_node.with_changes(attr=original_node.attr)

    def leave_Name(self, original_node: cst.Name, updated_node: cst.BaseExpression) -> cst.BaseExpression:
        if isinstance(updated_node, cst.Name) and updated_node.value in self.bindings:
            return self.bindings[updated_node.value]
        return updated_node


class _CallRewriter(cst.CSTTransformer):
    METADATA_DEPENDENCIES = (QualifiedNameProvider, ScopeProvider)

    def __init__(self, matcher: Matcher, filename: str) -> None:
        super().__init__()
        self.matcher = matcher
        self.filename = filename
        self.count = 0

    def leave_Call(self, original_node: cst.Call, updated_node: cst.Call) -> cst.BaseExpression:
        qualified = self.get_metadata(QualifiedNameProvider, original_node.func, set())
        if not any(q.name == self.matcher.target for q in qualified):
            return updated_node
        scope = self.get_metadata(ScopeProvider, original_node, None)
        if self.matcher.shadowed(scope, updated_node, self.filename):
            return updated_node
        replacement = self.matcher.instantiate(updated_node, self.filename)
        if replacement is None:
            return updated_node
        self.count += 1
        return replacement


class Matcher:
    """Type-aware rewriter for one template unit.

    Args:
        unit: A unit that already passed :func:`check_unit`.
        verbose: Log why candidate calls were rejected.
    """

    def __init__(self, unit: UnitHandle, verbose: bool = False) -> None:
        self.unit = unit
        self.verbose = verbose
        functions = {stmt.name.value: stmt for stmt in unit.module.body if isinstance(stmt, cst.FunctionDef)}
        before_fn, after_fn = functions["before"], functions["after"]

        self.params: tuple[str, ...] = tuple(p.name.value for p in before_fn.params.params)
        self.annotations: dict[str, str] = {
            p.name.value: unit.module.code_for_node(p.annotation.annotation)
            for p in before_fn.params.params
            if p.annotation is not None
        }

        imports = {record.bound_name: record for record in collect_imports(unit.module)}
        before_call = single_call(before_fn)
        func = before_call.func
        if not (isinstance(func, cst.Attribute) and isinstance(func.value, cst.Name)) or func.value.value not in imports:
            raise ValueError(f"{unit.name}: before() must call a function of an imported module")
        self.target = f"{imports[func.value.value].path}.{func.attr.value}"
        self.before_args: tuple[str, ...] = tuple(
            arg.value.value for arg in before_call.args if isinstance(arg.value, cst.Name)
        )
        if self.before_args != self.params:
            raise ValueError(f"{unit.name}: before() must pass its parameters through in order")

        self.after_call = single_call(after_fn)
        after_names = referenced_names(self.after_call)
        self.after_imports: tuple[ImportRecord, ...] = tuple(
            record for name, record in imports.items() if name in after_names
        )

    @property
    def name(self) -> str:
        return self.unit.name

    def _may_match(self, target_file: TargetFile) -> bool:
        return any(
            self.target == record.path or self.target.startswith(record.path + ".")
            for record in target_file.imports
        )

    def instantiate(self, call: cst.Call, filename: str = "<unknown>") -> cst.Call | None:
        """Build the after-shape for a call already known to target this matcher.

        Returns None when the call's arity or argument types do not fit.
        """
        args = call.args
        if len(args) != len(self.params) or any(arg.keyword is not None or arg.star for arg in args):
            self._reject(filename, call, f"expected {len(self.params)} positional arguments")
            return None
        bindings: dict[str, cst.BaseExpression] = {}
        for name, arg in zip(self.params, args, strict=True):
            annotation = self.annotations.get(name, "object")
            if not is_compatible(annotation, arg.value):
                self._reject(filename, call, f"argument {name} is not compatible with {annotation}")
                return None
            bindings[name] = arg.value

        substitute = _Substitute(bindings)
        new_args = self._arrange_args(args, [a.value.visit(substitute) for a in self.after_call.args])
        return call.with_changes(func=self.after_call.func, args=new_args)

    @staticmethod
    def _arrange_args(original: Sequence[cst.Arg], values: list[cst.BaseExpression]) -> list[cst.Arg]:
        """Place ``values`` into the original argument slots, keeping commas and spacing."""
        arranged: list[cst.Arg] = []
        for i, value in enumerate(values):
            if i < len(original):
                arranged.append(original[i].with_changes(value=value))
            else:
                arranged.append(cst.Arg(value=value))
        if len(values) != len(original) and arranged:
            arranged[-1] = arranged[-1].with_changes(comma=cst.MaybeSentinel.DEFAULT)
            for i in range(len(arranged) - 1):
                if arranged[i].comma is cst.MaybeSentinel.DEFAULT:
                    arranged[i] = arranged[i].with_changes(
                        comma=cst.Comma(whitespace_after=cst.SimpleWhitespace(" "))
                    )
        return arranged

    def shadowed(self, scope: Scope | None, call: cst.Call, filename: str = "<unknown>") -> bool:
        """True when a module name the after-shape uses is bound to something else in ``scope``.

        ``scope`` sees the enclosing function's locals and every module
        level assignment, so a local ``h`` or an ``import somelib as
        gassert`` blocks the rewrite.
        """
        if scope is None:
            return False
        for record in self.after_imports:
            name = record.bound_name
            if any(not is_module_binding(assignment, name, record.path) for assignment in scope[name]):
                self._reject(filename, call, f"{name} is already bound to something other than {record.path}")
                return True
        return False

    def _reject(self, filename: str, call: cst.Call, reason: str) -> None:
        if self.verbose:
            logger.info(f"{self.name}: skipping call in {filename}: {reason}")

    def _ensure_imports(self, module: cst.Module) -> cst.Module:
        existing = collect_imports(module)
        for record in self.after_imports:
            if any(r.path == record.path and r.binds_module and r.bound_name == record.bound_name for r in existing):
                continue
            module = insert_import(module, record)
            existing = collect_imports(module)
        return module

    def apply(self, target_file: TargetFile) -> int:
        """Rewrite every match in ``target_file`` in place.

        Returns:
            Number of calls replaced.

        Raises:
            MatchApplicationError: If the file could not be processed.
        """
        if not self._may_match(target_file):
            return 0
        try:
            rewriter = _CallRewriter(self, str(target_file.path))
            new_module = MetadataWrapper(target_file.module).visit(rewriter)
            if rewriter.count:
                target_file.set_module(self._ensure_imports(new_module))
        except Exception as e:
            raise MatchApplicationError(
                f"Matcher {self.name} failed on {target_file.path}: {e}",
                unit_name=self.name,
                source_file=str(target_file.path),
            ) from e
        return rewriter.count
