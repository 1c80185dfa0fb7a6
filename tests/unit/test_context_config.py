"""Tests for MigrationConfig, PipelineContext and configuration loading."""

import pytest

from splurge_assert_migrate.config_validation import ValidatedMigrationConfig, validate_migration_config
from splurge_assert_migrate.context import ContextManager, MigrationConfig, PipelineContext
from splurge_assert_migrate.exceptions import ConfigurationError, ValidationError
from splurge_assert_migrate.rules import DEFAULT_FAMILIES


def test_default_config_is_valid():
    config = MigrationConfig()
    config.validate()
    assert config.rewrite_families() == DEFAULT_FAMILIES
    assert config.to_dict()["line_length"] == 120


def test_from_dict_ignores_unknown_keys():
    config = MigrationConfig.from_dict({"transitive": True, "unknown": 1})
    assert config.transitive is True
    assert not hasattr(config, "unknown")


@pytest.mark.parametrize(
    "data",
    [
        {"log_level": "LOUD"},
        {"line_length": 10},
        {"root_directory": "  "},
        {"families": []},
        {"families": [DEFAULT_FAMILIES[0].to_dict(), DEFAULT_FAMILIES[0].to_dict()]},
        {"families": [{**DEFAULT_FAMILIES[0].to_dict(), "dest_alias": "not valid"}]},
        {"families": [{**DEFAULT_FAMILIES[0].to_dict(), "dest_path": "testify.require"}]},
    ],
)
def test_invalid_configs_raise(data):
    with pytest.raises(ValidationError) as exc_info:
        MigrationConfig.from_dict(data)
    assert exc_info.value.details["validation_type"] == "configuration"


def test_conflicting_destination_aliases():
    strict, soft = (family.to_dict() for family in DEFAULT_FAMILIES)
    soft["dest_path"] = strict["dest_path"]
    with pytest.raises(ValidationError) as exc_info:
        validate_migration_config({"families": [strict, soft]})
    assert "aliased both" in str(exc_info.value)


def test_log_level_is_normalised():
    assert validate_migration_config({"log_level": "debug"}).log_level == "DEBUG"


def test_validated_defaults_match_dataclass():
    validated = ValidatedMigrationConfig()
    config = MigrationConfig()
    assert validated.line_length == config.line_length
    assert [family.model_dump() for family in validated.families] == config.families


def test_rewrite_families_wraps_bad_entries():
    config = MigrationConfig(families=[{"name": "broken"}])
    with pytest.raises(ConfigurationError):
        config.rewrite_families()


def test_with_override_returns_new_config():
    config = MigrationConfig()
    changed = config.with_override(dry_run=True)
    assert changed.dry_run and not config.dry_run


def test_pipeline_context(tmp_path):
    config = MigrationConfig(root_directory=str(tmp_path))
    context = PipelineContext.create(["p", "q"], config, run_id="1234567890")
    assert context.packages == ("p", "q")
    assert context.root == str(tmp_path)
    assert context.run_id == "1234567890"
    assert not context.is_dry_run()
    assert PipelineContext.create(["p"], config.with_override(dry_run=True)).is_dry_run()
    assert context.to_dict()["packages"] == ["p", "q"]
    assert context.to_dict()["config"]["root_directory"] == str(tmp_path)


def test_pipeline_context_generates_run_id():
    context = PipelineContext.create(["p"])
    assert len(context.run_id) == 36
    assert context.root == "."


def test_load_config_from_yaml(tmp_path):
    config_file = tmp_path / "migrate.yaml"
    config_file.write_text(
        "transitive: true\n"
        "line_length: 100\n"
        "families:\n"
        "  - name: strict\n"
        "    source_path: testify.require\n"
        "    dest_path: testutil.assertions\n"
        "    dest_alias: gassert\n",
        encoding="utf-8",
    )
    result = ContextManager.load_config_from_file(str(config_file))
    assert result.is_success()
    config = result.unwrap()
    assert config.transitive and config.line_length == 100
    assert [family.name for family in config.rewrite_families()] == ["strict"]


@pytest.mark.parametrize(
    "content, message",
    [
        (None, "not found"),
        ("key: [unclosed\n", "Invalid YAML"),
        ("- just\n- a list\n", "must contain a mapping"),
    ],
)
def test_load_config_failures(tmp_path, content, message):
    config_file = tmp_path / "migrate.yaml"
    if content is not None:
        config_file.write_text(content, encoding="utf-8")
    result = ContextManager.load_config_from_file(str(config_file))
    assert result.is_error()
    assert isinstance(result.error, ConfigurationError)
    assert message in str(result.error)


def test_load_config_invalid_values(tmp_path):
    config_file = tmp_path / "migrate.yaml"
    config_file.write_text("log_level: LOUD\n", encoding="utf-8")
    result = ContextManager.load_config_from_file(str(config_file))
    assert result.is_error()
    assert isinstance(result.error, ValidationError)
