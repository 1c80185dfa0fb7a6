"""Configuration validation using pydantic schemas.

This module provides runtime validation for configuration objects so
that malformed families, paths or levels are reported before a run
starts rather than half way through rewriting a tree.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING, Any, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ValidationError
from .rules.families import DEFAULT_FAMILIES

if TYPE_CHECKING:
    from .context import MigrationConfig

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def _check_dotted(value: str, label: str) -> str:
    if not value or any(not part.isidentifier() for part in value.split(".")):
        raise ValueError(f"{label} must be a dotted module path like 'testify.require', got '{value}'")
    return value


def _check_identifier(value: str | None, label: str) -> str | None:
    if value is not None and not value.isidentifier():
        raise ValueError(f"{label} must be a valid Python identifier, got '{value}'")
    return value


class FamilyModel(BaseModel):
    """Validated rewrite family."""

    name: str = Field(min_length=1, description="Short family identifier")
    source_path: str = Field(description="Module whose calls are migrated away from")
    dest_path: str = Field(description="Replacement module")
    dest_alias: str = Field(description="Local name rewritten calls use for the replacement module")
    helper_path: str = Field(default="testutil.h", description="Module providing matcher helpers")
    helper_alias: str = Field(default="h", description="Local name for the helper module")
    source_alias: str | None = Field(default=None, description="Local name for the source module")

    @field_validator("source_path", "dest_path", "helper_path")
    @classmethod
    def validate_paths(cls, v, info):
        return _check_dotted(v, info.field_name)

    @field_validator("dest_alias", "helper_alias", "source_alias")
    @classmethod
    def validate_aliases(cls, v, info):
        return _check_identifier(v, info.field_name)

    @model_validator(mode="after")
    def validate_distinct_modules(self) -> Self:
        if self.source_path == self.dest_path:
            raise ValueError(f"family '{self.name}': source_path and dest_path must differ")
        source_alias = self.source_alias or self.source_path.rsplit(".", 1)[-1]
        local_names = [source_alias, self.dest_alias, self.helper_alias]
        if len(set(local_names)) != len(local_names):
            raise ValueError(f"family '{self.name}': local module names must be distinct, got {local_names}")
        return self


class ValidatedMigrationConfig(BaseModel):
    """Validated version of MigrationConfig with runtime validation."""

    model_config = ConfigDict(validate_assignment=True)

    root_directory: str = Field(default=".", description="Workspace root package patterns are resolved against")
    transitive: bool = Field(default=False, description="Also rewrite every package that imports a requested one")
    verbose: bool = Field(default=False, description="Report why candidate calls were not rewritten")
    dry_run: bool = Field(default=False, description="Report matches without writing files")
    format_output: bool = Field(default=False, description="Format rewritten files with isort and black")
    line_length: int = Field(default=120, ge=60, le=200, description="Line length used when formatting")
    log_level: str = Field(default="INFO", description="Default logging level")
    families: list[FamilyModel] = Field(
        default_factory=lambda: [FamilyModel(**family.to_dict()) for family in DEFAULT_FAMILIES],
        description="Rewrite families to apply",
    )

    @field_validator("root_directory")
    @classmethod
    def validate_root_directory(cls, v):
        if not isinstance(v, str) or not v.strip():
            raise ValueError("root_directory must be a non-empty path string")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        if not isinstance(v, str):
            raise ValueError("log_level must be a string (DEBUG, INFO, WARNING, ERROR)")

        upper_v = v.upper()
        if upper_v not in VALID_LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}, got '{v}'. "
                "Choose DEBUG to see every rejected candidate call, INFO for normal operation."
            )
        return upper_v

    @model_validator(mode="after")
    def validate_families(self) -> Self:
        """Reject family sets that would make a rewrite ambiguous."""
        if not self.families:
            raise ValueError("At least one rewrite family must be configured")

        errors = []
        names = [family.name for family in self.families]
        if len(set(names)) != len(names):
            errors.append(f"family names must be unique, got {names}")
        sources = [family.source_path for family in self.families]
        if len(set(sources)) != len(sources):
            errors.append(f"each source module may belong to one family only, got {sources}")
        dest_aliases: dict[str, str] = {}
        for family in self.families:
            previous = dest_aliases.setdefault(family.dest_path, family.dest_alias)
            if previous != family.dest_alias:
                errors.append(f"{family.dest_path} is aliased both '{previous}' and '{family.dest_alias}'")

        if errors:
            raise ValueError(f"Configuration conflicts detected: {'; '.join(errors)}")
        return self


def validate_migration_config(config_dict: dict[str, Any]) -> ValidatedMigrationConfig:
    """Validate a migration configuration dictionary.

    Args:
        config_dict: Configuration dictionary to validate

    Returns:
        Validated configuration object

    Raises:
        ValidationError: If configuration is invalid
    """
    try:
        return ValidatedMigrationConfig(**config_dict)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid migration configuration: {e}", validation_type="configuration") from e


def validate_migration_config_object(config: MigrationConfig) -> ValidatedMigrationConfig:
    """Validate an existing MigrationConfig object."""
    return validate_migration_config(dataclasses.asdict(config))
