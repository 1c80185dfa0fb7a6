"""Run options and the per-run context shared by the steps.

``MigrationConfig`` holds what a user can set from the command line or
a YAML file, including the rewrite families. ``PipelineContext`` adds
the package patterns and run id of one run. ``ContextManager`` reads
configuration files.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

import dataclasses
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .config_validation import validate_migration_config_object
from .exceptions import ConfigurationError, MigrationError
from .result import Result
from .rules.families import DEFAULT_FAMILIES, RewriteFamily


def _default_families() -> list[dict[str, Any]]:
    return [family.to_dict() for family in DEFAULT_FAMILIES]


@dataclass(frozen=True)
class MigrationConfig:
    """Run configuration.

    Serializable so callers can build it from dictionaries or YAML files.
    """

    root_directory: str = "."
    transitive: bool = False
    verbose: bool = False

    dry_run: bool = False
    """Report what would change without writing any file"""

    format_output: bool = False
    """Run isort and black over rewritten files"""
    line_length: int = 120

    log_level: str = "INFO"
    """Default logging level (DEBUG, INFO, WARNING, ERROR)"""

    families: list[dict[str, Any]] = field(default_factory=_default_families)
    """Rewrite families, each a mapping of ``RewriteFamily`` fields"""

    def with_override(self, **kwargs: Any) -> "MigrationConfig":
        """Return a new ``MigrationConfig`` with specified overrides."""
        return dataclasses.replace(self, **kwargs)

    def validate(self) -> None:
        """Validate the configuration.

        Raises:
            ValidationError: If configuration is invalid.
        """
        validate_migration_config_object(self)

    def rewrite_families(self) -> tuple[RewriteFamily, ...]:
        """Build the configured families.

        Raises:
            ConfigurationError: If a family mapping is malformed.
        """
        families: list[RewriteFamily] = []
        for entry in self.families:
            try:
                families.append(RewriteFamily.from_dict(entry))
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Invalid rewrite family {entry!r}: {e}", config_key="families") from e
        return tuple(families)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "MigrationConfig":
        """Create config from dictionary.

        Unknown keys are ignored.

        Raises:
            ValidationError: If configuration is invalid.
        """
        filtered = {k: v for k, v in config_dict.items() if k in cls.__dataclass_fields__}
        config = cls(**filtered)
        config.validate()
        return config

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass(frozen=True)
class PipelineContext:
    """What every step of one run can see.

    Holds the workspace root, the package patterns named on the command
    line, the validated ``MigrationConfig`` and the ``run_id`` stamped on
    every event of the run.
    """

    root: str
    packages: tuple[str, ...]
    config: MigrationConfig
    run_id: str

    @classmethod
    def create(
        cls,
        packages: list[str] | tuple[str, ...],
        config: MigrationConfig | None = None,
        run_id: str | None = None,
    ) -> "PipelineContext":
        """Start the context of a new run.

        Args:
            packages: Package patterns requested by the caller.
            config: Run options; defaults apply when omitted.
            run_id: Identifier for the run's events; a UUID4 when omitted.
        """
        config = config or MigrationConfig()
        return cls(
            root=config.root_directory,
            packages=tuple(packages),
            config=config,
            run_id=run_id or str(uuid.uuid4()),
        )

    def is_dry_run(self) -> bool:
        return self.config.dry_run

    def to_dict(self) -> dict[str, Any]:
        return {
            "root": self.root,
            "packages": list(self.packages),
            "run_id": self.run_id,
            "config": self.config.to_dict(),
        }


class ContextManager:
    """Loading of ``MigrationConfig`` values from files."""

    @staticmethod
    def load_config_from_file(config_file: str) -> Result[MigrationConfig]:
        """Read a YAML file into a validated ``MigrationConfig``.

        Top-level keys that are not configuration fields are ignored.

        Args:
            config_file: Path of the YAML file.

        Returns:
            ``Result`` with the configuration, or a ``ConfigurationError``
            or a ``ValidationError`` naming the problem.
        """
        failed = {"config_file": config_file}
        try:
            text = Path(config_file).read_text(encoding="utf-8")
        except FileNotFoundError:
            return Result.failure(ConfigurationError(f"Configuration file not found: {config_file}"), failed)
        except OSError as e:
            return Result.failure(ConfigurationError(f"Cannot read configuration file {config_file}: {e}"), failed)

        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            return Result.failure(ConfigurationError(f"Invalid YAML in {config_file}: {e}"), failed)
        if not isinstance(data, dict):
            return Result.failure(ConfigurationError("Configuration file must contain a mapping"), failed)

        try:
            return Result.success(MigrationConfig.from_dict(data))
        except MigrationError as e:
            return Result.failure(e, failed)
