"""Exceptions raised by the assertion migration tool.

Every exception derives from ``MigrationError`` and carries a
``details`` mapping (unit name, file path, rule name and so on) next to
its message, so callers and tests can inspect failures without parsing
text.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

from typing import Any


def _details(**items: Any) -> dict[str, Any]:
    return {key: value for key, value in items.items() if value is not None and value != ""}


class MigrationError(Exception):
    """Root of the tool's exception hierarchy.

    Args:
        message: Human-readable error message.
        details: Optional mapping with structured diagnostic data.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class TemplateGenerationError(MigrationError):
    """A template unit could not be rendered, written or registered.

    Aborts the run, since a missing unit would quietly leave assertions
    of its rule untouched.
    """

    def __init__(self, message: str, unit_name: str | None = None, rule_name: str | None = None):
        super().__init__(message, _details(unit_name=unit_name, rule_name=rule_name))


class ProgramLoadError(MigrationError):
    """Template units and target packages did not load together.

    Args:
        message: Description of the parse or check failure.
        source_file: Path or unit name that failed, when known.
        line: Line of the failure, when known.
    """

    def __init__(self, message: str, source_file: str | None = None, line: int | None = None):
        super().__init__(message, _details(source_file=source_file, line=line))


class MatchApplicationError(MigrationError):
    """One matcher failed on one file; the run goes on without it."""

    def __init__(self, message: str, unit_name: str, source_file: str):
        super().__init__(message, _details(unit_name=unit_name, source_file=source_file))


class PersistError(MigrationError):
    """A rewritten file could not be written back.

    Aborts the run; files written before the failure keep their new
    content.

    Args:
        message: Description of the write failure.
        target_file: Path that could not be written.
    """

    def __init__(self, message: str, target_file: str):
        super().__init__(message, _details(target_file=target_file))


class ValidationError(MigrationError):
    """Configuration values failed validation.

    Args:
        message: Description of the failure.
        validation_type: What was being validated, e.g. ``"configuration"``.
        field: Offending field, when a single one is to blame.
    """

    def __init__(self, message: str, validation_type: str, field: str | None = None):
        super().__init__(message, _details(validation_type=validation_type, field=field))


class ConfigurationError(MigrationError):
    """Configuration could not be read or turned into rewrite families."""

    def __init__(self, message: str, config_key: str | None = None):
        super().__init__(message, _details(config_key=config_key))


class CatalogError(MigrationError):
    """A substitution rule, or the catalog as a whole, is malformed."""

    def __init__(self, message: str, rule_name: str | None = None):
        super().__init__(message, _details(rule_name=rule_name))
