"""splurge_assert_migrate package.

This initializer stays lightweight: submodules are imported on demand
when a public name is first accessed, so importing the package does not
pull in libcst, typer or pydantic.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

__version__ = "2025.1.0"
__author__ = "Jim Schilling"
__description__ = "Template-driven migration of assertion library calls"

__all__ = [
    "main",
    "migrate",
    "MigrationOrchestrator",
    "MigrationConfig",
    "PipelineContext",
    "RunReport",
    "Result",
    "ResultStatus",
    "EventBus",
    "LoggingSubscriber",
    "ConsoleReporter",
    "RewriteEngine",
    "ImportReconciler",
    "TemplateExpander",
    "CATALOG",
    "RewriteFamily",
    "STRICT",
    "SOFT",
    # Exceptions
    "MigrationError",
    "TemplateGenerationError",
    "ProgramLoadError",
    "MatchApplicationError",
    "PersistError",
    "ValidationError",
    "ConfigurationError",
    "CatalogError",
]


def __getattr__(name: str):
    """Lazily import submodules/attributes on demand."""
    import importlib

    mapping = {
        "main": "splurge_assert_migrate.main",
        "cli": "splurge_assert_migrate.cli",
        "migrate": "splurge_assert_migrate.main",
        "MigrationOrchestrator": "splurge_assert_migrate.migration_orchestrator",
        "MigrationConfig": "splurge_assert_migrate.context",
        "PipelineContext": "splurge_assert_migrate.context",
        "RunReport": "splurge_assert_migrate.report",
        "Result": "splurge_assert_migrate.result",
        "ResultStatus": "splurge_assert_migrate.result",
        "EventBus": "splurge_assert_migrate.events",
        "LoggingSubscriber": "splurge_assert_migrate.events",
        "ConsoleReporter": "splurge_assert_migrate.events",
        "RewriteEngine": "splurge_assert_migrate.engine",
        "ImportReconciler": "splurge_assert_migrate.reconciler",
        "TemplateExpander": "splurge_assert_migrate.expander",
        "CATALOG": "splurge_assert_migrate.rules",
        "RewriteFamily": "splurge_assert_migrate.rules",
        "STRICT": "splurge_assert_migrate.rules",
        "SOFT": "splurge_assert_migrate.rules",
        "MigrationError": "splurge_assert_migrate.exceptions",
        "TemplateGenerationError": "splurge_assert_migrate.exceptions",
        "ProgramLoadError": "splurge_assert_migrate.exceptions",
        "MatchApplicationError": "splurge_assert_migrate.exceptions",
        "PersistError": "splurge_assert_migrate.exceptions",
        "ValidationError": "splurge_assert_migrate.exceptions",
        "ConfigurationError": "splurge_assert_migrate.exceptions",
        "CatalogError": "splurge_assert_migrate.exceptions",
    }

    if name not in mapping:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

    module = importlib.import_module(mapping[name])
    if name in {"main", "cli"}:
        return module
    return getattr(module, name)


def __dir__():
    return sorted(list(globals().keys()) + __all__)
