"""Unit tests for the command line interface."""

from typer.testing import CliRunner

from splurge_assert_migrate import __version__
from splurge_assert_migrate.cli import app
from splurge_assert_migrate.cli_helpers import build_config, describe_rule
from splurge_assert_migrate.context import MigrationConfig
from splurge_assert_migrate.rules import STRICT, rule_by_name
from tests.test_utils import NO_MATCHES, STRICT_EQUAL, write_package

runner = CliRunner()


def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert f"splurge-assert-migrate {__version__}" in result.output


def test_no_packages_prints_usage_and_fails():
    result = runner.invoke(app, ["migrate"])
    assert result.exit_code == 1
    assert "Usage: splurge-assert-migrate migrate" in result.output


def test_engine_help_exits_with_two():
    result = runner.invoke(app, ["migrate", "--engine-help", "pkg"])
    assert result.exit_code == 2
    assert "Example-based refactoring." in result.output
    assert "Usage: splurge-assert-migrate migrate" in result.output


def test_rules_lists_both_families():
    result = runner.invoke(app, ["rules"])
    assert result.exit_code == 0
    assert "[strict] testify.require -> testutil.assertions as gassert" in result.output
    assert "[soft] testify.asserts -> testutil.expect as gexpect" in result.output
    assert "16 rules, 192 template units" in result.output


def test_migrate_rewrites_and_reports(tmp_path):
    write_package(tmp_path, "p", {"core_test.py": STRICT_EQUAL, "plain.py": NO_MATCHES})
    result = runner.invoke(app, ["migrate", "--root", str(tmp_path), "p"])
    assert result.exit_code == 0, result.output
    assert "Handling package p" in result.output
    assert f"=== {tmp_path.resolve() / 'p' / 'core_test.py'} (2 matches)" in result.output
    assert "plain.py" not in result.output
    assert "gassert.eq(t, want, got)" in (tmp_path / "p" / "core_test.py").read_text(encoding="utf-8")


def test_migrate_dry_run_leaves_files(tmp_path):
    write_package(tmp_path, "p", {"core_test.py": STRICT_EQUAL})
    result = runner.invoke(app, ["migrate", "--root", str(tmp_path), "--dry-run", "p"])
    assert result.exit_code == 0, result.output
    assert "(2 matches)" in result.output
    assert (tmp_path / "p" / "core_test.py").read_text(encoding="utf-8") == STRICT_EQUAL


def test_migrate_unknown_package_fails(tmp_path):
    result = runner.invoke(app, ["migrate", "--root", str(tmp_path), "missing"])
    assert result.exit_code == 1
    assert "Error:" in result.output


def test_migrate_with_config_file(tmp_path):
    write_package(tmp_path, "p", {"core_test.py": STRICT_EQUAL})
    config_file = tmp_path / "migrate.yaml"
    config_file.write_text(f"root_directory: {tmp_path}\ndry_run: true\n", encoding="utf-8")
    result = runner.invoke(app, ["migrate", "--config", str(config_file), "p"])
    assert result.exit_code == 0, result.output
    assert (tmp_path / "p" / "core_test.py").read_text(encoding="utf-8") == STRICT_EQUAL


def test_migrate_with_bad_config_file(tmp_path):
    result = runner.invoke(app, ["migrate", "--config", str(tmp_path / "absent.yaml"), "p"])
    assert result.exit_code == 1
    assert "Error loading configuration file" in result.output


def test_build_config_keeps_base_for_unset_flags():
    base = MigrationConfig(dry_run=True)
    config = build_config(base, dry_run=False, transitive=True, root_directory=None)
    assert config.dry_run and config.transitive
    assert build_config(base) is base


def test_describe_rule():
    line = describe_rule(rule_by_name("equal"), STRICT)
    assert line.endswith("require.equal(t, a, b) -> gassert.eq(t, b, a)")
