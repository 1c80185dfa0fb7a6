"""Pipeline steps of a rewrite run."""

from .format_steps import CodeFormatter
from .rewrite_steps import RewritePackagesStep
from .template_steps import ExpandTemplatesStep, LoadProgramStep

__all__ = [
    "CodeFormatter",
    "ExpandTemplatesStep",
    "LoadProgramStep",
    "RewritePackagesStep",
]
