"""Rewrite families and arity variants.

A ``RewriteFamily`` pairs one source assertion module with its
destination module (plus the helper module that after-shapes may use
for matcher constructors). An ``ArityVariant`` is one fixed count of
trailing message arguments. Every rule is expanded against every
family and every variant independently.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .shapes import Namespace, ParamSlot, SlotType

MAX_MESSAGE_ARGS = 5


def _last_segment(path: str) -> str:
    return path.rsplit(".", 1)[-1]


@dataclass(frozen=True)
class RewriteFamily:
    """Source/destination module pair a rule expands against.

    Attributes:
        name: Short identifier (``strict``, ``soft``).
        source_path: Dotted path of the module being migrated away from.
        dest_path: Dotted path of the replacement module.
        dest_alias: Local name after-shapes use for the destination module.
        helper_path: Dotted path of the helper (matcher) module.
        helper_alias: Local name after-shapes use for the helper module.
        source_alias: Local name before-shapes use for the source module;
            defaults to the last segment of ``source_path``.
    """

    name: str
    source_path: str
    dest_path: str
    dest_alias: str
    helper_path: str = "testutil.h"
    helper_alias: str = "h"
    source_alias: str | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("RewriteFamily requires a name")
        for label, path in (("source_path", self.source_path), ("dest_path", self.dest_path)):
            if not path or any(not part.isidentifier() for part in path.split(".")):
                raise ValueError(f"{label} must be a dotted module path, got {path!r}")
        if self.source_path == self.dest_path:
            raise ValueError("source_path and dest_path must differ")
        if self.source_alias is None:
            object.__setattr__(self, "source_alias", _last_segment(self.source_path))
        local_names = (self.source_alias, self.dest_alias, self.helper_alias)
        if len(set(local_names)) != len(local_names):
            raise ValueError(f"Family {self.name!r} reuses a local module name: {local_names}")

    def qualifiers(self) -> dict[Namespace, str]:
        """Local names to render each shape namespace with."""
        return {
            Namespace.SOURCE: self.source_alias or _last_segment(self.source_path),
            Namespace.DEST: self.dest_alias,
            Namespace.HELPER: self.helper_alias,
        }

    def path_for(self, namespace: Namespace) -> str:
        return {
            Namespace.SOURCE: self.source_path,
            Namespace.DEST: self.dest_path,
            Namespace.HELPER: self.helper_path,
        }[namespace]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RewriteFamily:
        fields = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**fields)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "source_path": self.source_path,
            "source_alias": self.source_alias,
            "dest_path": self.dest_path,
            "dest_alias": self.dest_alias,
            "helper_path": self.helper_path,
            "helper_alias": self.helper_alias,
        }


# Fail-fast family: a failed check stops the test.
STRICT = RewriteFamily(
    name="strict",
    source_path="testify.require",
    dest_path="testutil.assertions",
    dest_alias="gassert",
)

# Soft-check family: a failed check is recorded and the test continues.
SOFT = RewriteFamily(
    name="soft",
    source_path="testify.asserts",
    dest_path="testutil.expect",
    dest_alias="gexpect",
)

DEFAULT_FAMILIES: tuple[RewriteFamily, ...] = (STRICT, SOFT)


@dataclass(frozen=True)
class ArityVariant:
    """A fixed number of optional trailing message arguments."""

    count: int

    def __post_init__(self) -> None:
        if not 0 <= self.count <= MAX_MESSAGE_ARGS:
            raise ValueError(f"ArityVariant count must be within 0..{MAX_MESSAGE_ARGS}, got {self.count}")

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(f"m{i}" for i in range(self.count))

    def slots(self) -> tuple[ParamSlot, ...]:
        return tuple(ParamSlot(name, SlotType.OBJECT) for name in self.names)


ARITY_VARIANTS: tuple[ArityVariant, ...] = tuple(ArityVariant(n) for n in range(MAX_MESSAGE_ARGS + 1))
