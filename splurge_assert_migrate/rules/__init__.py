"""Substitution rules, rewrite families and arity variants."""

from .catalog import CATALOG, SubstitutionRule, rule_by_name, validate_catalog
from .families import ARITY_VARIANTS, DEFAULT_FAMILIES, MAX_MESSAGE_ARGS, SOFT, STRICT, ArityVariant, RewriteFamily
from .shapes import CallShape, Namespace, ParamSlot, Signature, SlotType, Var

__all__ = [
    "CATALOG",
    "SubstitutionRule",
    "rule_by_name",
    "validate_catalog",
    "ARITY_VARIANTS",
    "DEFAULT_FAMILIES",
    "MAX_MESSAGE_ARGS",
    "SOFT",
    "STRICT",
    "ArityVariant",
    "RewriteFamily",
    "CallShape",
    "Namespace",
    "ParamSlot",
    "Signature",
    "SlotType",
    "Var",
]
