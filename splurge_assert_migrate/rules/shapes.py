"""Structured shapes used to describe substitution rules.

A rule is never written as raw program text. Signatures are tuples of
typed parameter slots and call bodies are small expression trees whose
callee lives in a symbolic namespace (source, destination or helper).
Shapes are rendered to Python text only when a template unit is built,
so they can be inspected and tested without parsing anything.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum


class SlotType(Enum):
    """Type of a signature slot, rendered as its Python annotation."""

    TEST = "Any"
    ERROR = "BaseException | None"
    OBJECT = "object"
    BOOL = "bool"
    STR = "str"
    INT = "int"

    @property
    def annotation(self) -> str:
        return self.value

    @property
    def needs_typing_any(self) -> bool:
        return self is SlotType.TEST


class Namespace(Enum):
    """Symbolic qualifier of a call; families decide the concrete module."""

    SOURCE = "source"
    DEST = "dest"
    HELPER = "helper"


@dataclass(frozen=True)
class ParamSlot:
    """One named, typed parameter of a template signature."""

    name: str
    type: SlotType

    def render(self) -> str:
        return f"{self.name}: {self.type.annotation}"


@dataclass(frozen=True)
class Signature:
    """Ordered parameter slots shared by a template's before and after functions."""

    params: tuple[ParamSlot, ...]

    def __post_init__(self) -> None:
        names = self.names
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate parameter names in signature: {names}")

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(p.name for p in self.params)

    def extended(self, extra: tuple[ParamSlot, ...]) -> Signature:
        """Return a new signature with ``extra`` slots appended."""
        return Signature(self.params + extra)

    def render(self) -> str:
        return ", ".join(p.render() for p in self.params)

    def slot_types(self) -> set[SlotType]:
        return {p.type for p in self.params}


@dataclass(frozen=True)
class Var:
    """Reference to a bound signature variable."""

    name: str

    def render(self, qualifiers: Mapping[Namespace, str]) -> str:
        return self.name


@dataclass(frozen=True)
class CallShape:
    """A call ``<namespace>.<function>(args...)``.

    Trailing message arguments are spliced onto the outermost call only,
    through the ``trailing`` argument of :meth:`render`.
    """

    namespace: Namespace
    function: str
    args: tuple[Var | CallShape, ...]

    def variables(self) -> tuple[str, ...]:
        """Return bound variable names in left-to-right order, nested calls included."""
        found: list[str] = []
        for arg in self.args:
            if isinstance(arg, Var):
                found.append(arg.name)
            else:
                found.extend(arg.variables())
        return tuple(found)

    def namespaces(self) -> set[Namespace]:
        """Return every namespace referenced by this call and its nested calls."""
        spaces = {self.namespace}
        for arg in self.args:
            if isinstance(arg, CallShape):
                spaces |= arg.namespaces()
        return spaces

    def arity(self) -> int:
        return len(self.args)

    def render(self, qualifiers: Mapping[Namespace, str], trailing: tuple[str, ...] = ()) -> str:
        """Render to Python call text.

        Args:
            qualifiers: Local module name to use for each namespace.
            trailing: Extra argument names appended after the shape's own.

        Returns:
            Call expression text such as ``gassert.eq(t, b, a, m0)``.
        """
        parts = [arg.render(qualifiers) for arg in self.args]
        parts.extend(trailing)
        return f"{qualifiers[self.namespace]}.{self.function}({', '.join(parts)})"


def _as_arg(value: str | Var | CallShape) -> Var | CallShape:
    return Var(value) if isinstance(value, str) else value


def signature(*slots: tuple[str, SlotType]) -> Signature:
    """Build a ``Signature`` from ``(name, type)`` pairs."""
    return Signature(tuple(ParamSlot(name, slot_type) for name, slot_type in slots))


def source(function: str, *names: str) -> CallShape:
    """Build a before-shape call in the source namespace."""
    return CallShape(Namespace.SOURCE, function, tuple(Var(n) for n in names))


def dest(function: str, *args: str | CallShape) -> CallShape:
    """Build an after-shape call in the destination namespace."""
    return CallShape(Namespace.DEST, function, tuple(_as_arg(a) for a in args))


def helper(function: str, *args: str | CallShape) -> CallShape:
    """Build a nested helper-namespace call, e.g. a matcher constructor."""
    return CallShape(Namespace.HELPER, function, tuple(_as_arg(a) for a in args))
