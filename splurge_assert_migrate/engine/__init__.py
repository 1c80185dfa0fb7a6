"""libcst-backed example-based rewrite engine."""

from .engine import ENGINE_HELP, RewriteEngine
from .matcher import Matcher, is_compatible, literal_kind
from .program import (
    TEMPLATE_NAMESPACE,
    Package,
    Program,
    TargetFile,
    UnitHandle,
    check_unit,
    is_template_name,
    template_unit_name,
)

__all__ = [
    "ENGINE_HELP",
    "RewriteEngine",
    "Matcher",
    "is_compatible",
    "literal_kind",
    "TEMPLATE_NAMESPACE",
    "Package",
    "Program",
    "TargetFile",
    "UnitHandle",
    "check_unit",
    "is_template_name",
    "template_unit_name",
]
