"""The catalog of substitution rules.

Each rule states one call migration once: the minimal signature
(without trailing message arguments), the source call and the
destination call. The expander multiplies every rule by the rewrite
families and arity variants.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from ..exceptions import CatalogError
from .families import MAX_MESSAGE_ARGS
from .shapes import CallShape, Namespace, Signature, SlotType, dest, helper, signature, source

TB = SlotType.TEST
ERR = SlotType.ERROR
OBJ = SlotType.OBJECT
BOOL = SlotType.BOOL
STR = SlotType.STR
INT = SlotType.INT


@dataclass(frozen=True)
class SubstitutionRule:
    """One semantic API migration.

    Attributes:
        name: Rule identifier, unique within a catalog.
        signature: Bound variables shared by both shapes.
        before: Source-namespace call, arguments are plain variables.
        after: Destination-namespace call, may reorder variables and wrap
            them in helper calls.
    """

    name: str
    signature: Signature
    before: CallShape
    after: CallShape

    def __post_init__(self) -> None:
        if self.before.namespace is not Namespace.SOURCE or self.before.namespaces() != {Namespace.SOURCE}:
            raise CatalogError("before-shape must be a plain source-namespace call", self.name)
        if self.after.namespace is not Namespace.DEST or Namespace.SOURCE in self.after.namespaces():
            raise CatalogError("after-shape must be a destination-namespace call", self.name)

        declared = set(self.signature.names)
        before_vars = self.before.variables()
        if len(set(before_vars)) != len(before_vars) or set(before_vars) != declared:
            raise CatalogError(
                f"before-shape must bind each signature variable exactly once: {before_vars} vs {sorted(declared)}",
                self.name,
            )
        if set(self.after.variables()) != declared:
            raise CatalogError(
                f"after-shape must reference the same variables as the signature: {self.after.variables()}",
                self.name,
            )

    @property
    def uses_helper(self) -> bool:
        return Namespace.HELPER in self.after.namespaces()

    def arity_range(self) -> range:
        """Call arities this rule's before-shape can match across all variants."""
        base = self.before.arity()
        return range(base, base + MAX_MESSAGE_ARGS + 1)


def _rule(name: str, sig: Signature, before: CallShape, after: CallShape) -> SubstitutionRule:
    return SubstitutionRule(name=name, signature=sig, before=before, after=after)


CATALOG: tuple[SubstitutionRule, ...] = (
    _rule("no_error", signature(("t", TB), ("err", ERR)), source("no_error", "t", "err"), dest("no_error", "t", "err")),
    _rule(
        "no_errorf",
        signature(("t", TB), ("err", ERR), ("f", STR)),
        source("no_errorf", "t", "err", "f"),
        dest("no_error", "t", "err", "f"),
    ),
    _rule("error", signature(("t", TB), ("err", ERR)), source("error", "t", "err"), dest("not_nil", "t", "err")),
    _rule("not_nil", signature(("t", TB), ("a", OBJ)), source("not_nil", "t", "a"), dest("not_nil", "t", "a")),
    _rule(
        "not_nilf",
        signature(("t", TB), ("a", OBJ), ("f", STR)),
        source("not_nilf", "t", "a", "f"),
        dest("not_nil", "t", "a", "f"),
    ),
    _rule("nil", signature(("t", TB), ("a", OBJ)), source("nil", "t", "a"), dest("nil", "t", "a")),
    # The destination puts the expected value first.
    _rule(
        "equal",
        signature(("t", TB), ("a", OBJ), ("b", OBJ)),
        source("equal", "t", "a", "b"),
        dest("eq", "t", "b", "a"),
    ),
    _rule(
        "equalf",
        signature(("t", TB), ("a", OBJ), ("b", OBJ), ("f", STR)),
        source("equalf", "t", "a", "b", "f"),
        dest("eq", "t", "b", "a", "f"),
    ),
    _rule(
        "regexp",
        signature(("t", TB), ("a", OBJ), ("b", OBJ)),
        source("regexp", "t", "a", "b"),
        dest("regexp", "t", "b", "a"),
    ),
    _rule("true", signature(("t", TB), ("a", BOOL)), source("true", "t", "a"), dest("true", "t", "a")),
    _rule("false", signature(("t", TB), ("a", BOOL)), source("false", "t", "a"), dest("false", "t", "a")),
    _rule(
        "truef",
        signature(("t", TB), ("a", BOOL), ("f", STR)),
        source("truef", "t", "a", "f"),
        dest("true", "t", "a", "f"),
    ),
    _rule(
        "falsef",
        signature(("t", TB), ("a", BOOL), ("f", STR)),
        source("falsef", "t", "a", "f"),
        dest("false", "t", "a", "f"),
    ),
    # No direct destination counterpart: expressed through helper matchers.
    _rule(
        "not_equal",
        signature(("t", TB), ("a", OBJ), ("b", OBJ)),
        source("not_equal", "t", "a", "b"),
        dest("that", "t", "a", helper("not_", helper("eq", "b"))),
    ),
    _rule(
        "contains",
        signature(("t", TB), ("s", OBJ), ("sub", OBJ)),
        source("contains", "t", "s", "sub"),
        dest("that", "t", "s", helper("contains", "sub")),
    ),
    _rule(
        "len",
        signature(("t", TB), ("obj", OBJ), ("n", INT)),
        source("len", "t", "obj", "n"),
        dest("that", "t", "obj", helper("has_len", "n")),
    ),
)


def validate_catalog(rules: Iterable[SubstitutionRule]) -> list[str]:
    """Return a list of problems that make a catalog ambiguous.

    Two rules conflict when they have the same name, or when their
    before-shapes call the same source function with overlapping arity
    ranges, since a single call could then match both.
    """
    problems: list[str] = []
    seen_names: set[str] = set()
    by_function: dict[str, list[SubstitutionRule]] = {}
    for rule in rules:
        if rule.name in seen_names:
            problems.append(f"duplicate rule name: {rule.name}")
        seen_names.add(rule.name)
        by_function.setdefault(rule.before.function, []).append(rule)

    for function, group in by_function.items():
        for i, first in enumerate(group):
            for second in group[i + 1 :]:
                overlap = set(first.arity_range()) & set(second.arity_range())
                if overlap:
                    problems.append(
                        f"rules {first.name!r} and {second.name!r} both match {function}() "
                        f"with {min(overlap)} arguments"
                    )
    return problems


def rule_by_name(name: str, rules: Iterable[SubstitutionRule] = CATALOG) -> SubstitutionRule:
    for rule in rules:
        if rule.name == name:
            return rule
    raise KeyError(name)
