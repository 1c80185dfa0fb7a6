"""Property-based tests for the import model and the rewrite of generated modules.

These tests verify that rendered import records read back unchanged,
that a file's import list always agrees with its import statements
after matchers and the reconciler ran, and that a second pass over a
rewritten file changes nothing.
"""

from pathlib import Path

import libcst as cst
from hypothesis import given
from hypothesis import strategies as st

from splurge_assert_migrate.engine import Matcher, TargetFile, UnitHandle, is_compatible
from splurge_assert_migrate.engine.matcher import ACCEPTED_LITERALS
from splurge_assert_migrate.expander import ExpansionContext, TemplateExpander
from splurge_assert_migrate.imports import ImportSet, collect_imports
from splurge_assert_migrate.reconciler import ImportReconciler
from splurge_assert_migrate.rules import CATALOG
from tests.hypothesis_config import DEFAULT_SETTINGS, PACKAGE_SETTINGS
from tests.property.strategies import assertion_modules, identifiers, import_records
from tests.test_utils import declared_imports, record_pairs


def _matchers() -> list[Matcher]:
    matchers = []
    for unit in TemplateExpander().expand(CATALOG, ExpansionContext()):
        module = cst.parse_module(unit.source)
        matchers.append(Matcher(UnitHandle(name=unit.name, path=None, source=unit.source, module=module)))
    return matchers


MATCHERS = _matchers()


def rewrite(target_file: TargetFile) -> tuple[int, int]:
    rewrites = sum(matcher.apply(target_file) for matcher in MATCHERS)
    return rewrites, ImportReconciler().reconcile(target_file)


def make_file(code: str) -> TargetFile:
    module = cst.parse_module(code)
    return TargetFile(
        path=Path("generated_test.py"), package="pkg", module=module, original_code=code, imports=collect_imports(module)
    )


class TestImportProperties:
    """Property-based tests for import records and reconciliation."""

    @DEFAULT_SETTINGS
    @given(record=import_records())
    def test_rendered_record_reads_back(self, record) -> None:
        module = cst.parse_module(record.render() + "\n")
        assert collect_imports(module) == [record]

    @DEFAULT_SETTINGS
    @given(records=st.lists(import_records(), min_size=1, max_size=6))
    def test_apply_without_changes_is_lossless(self, records) -> None:
        code = "".join(record.render() + "\n" for record in records)
        module = cst.parse_module(code)
        assert ImportSet.from_module(module).apply_to(module).code == code

    @DEFAULT_SETTINGS
    @given(annotation=st.sampled_from(sorted(ACCEPTED_LITERALS)), name=identifiers)
    def test_non_literal_arguments_are_always_compatible(self, annotation, name) -> None:
        assert is_compatible(annotation, cst.Name(name))

    @PACKAGE_SETTINGS
    @given(code=assertion_modules())
    def test_import_list_agrees_with_statements(self, code) -> None:
        target_file = make_file(code)
        rewrite(target_file)

        cst.parse_module(target_file.code)
        assert declared_imports(target_file.module) == record_pairs(target_file.imports)

    @PACKAGE_SETTINGS
    @given(code=assertion_modules())
    def test_second_pass_changes_nothing(self, code) -> None:
        target_file = make_file(code)
        rewrite(target_file)
        once = target_file.code

        assert rewrite(target_file) == (0, 0)
        assert target_file.code == once

    @PACKAGE_SETTINGS
    @given(code=assertion_modules())
    def test_unreferenced_source_modules_are_not_imported(self, code) -> None:
        target_file = make_file(code)
        rewrite(target_file)

        used = {record.bound_name for record in collect_imports(target_file.module) if record.is_used}
        for record in target_file.imports:
            if record.path.startswith("testify."):
                assert record.bound_name in used
