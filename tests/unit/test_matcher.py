"""Unit tests for matchers derived from template units."""

import libcst as cst
import pytest

from splurge_assert_migrate.engine import Matcher, TargetFile, UnitHandle, is_compatible, literal_kind
from splurge_assert_migrate.exceptions import MatchApplicationError
from splurge_assert_migrate.expander import TemplateExpander
from splurge_assert_migrate.rules import SOFT, STRICT, ArityVariant, rule_by_name


def matcher_for(rule_name: str, family=STRICT, messages: int = 0, verbose: bool = False) -> Matcher:
    unit = TemplateExpander().render_unit(
        "__rewrite_templates__.unit0000", 0, rule_by_name(rule_name), family, ArityVariant(messages)
    )
    handle = UnitHandle(name=unit.name, path=None, source=unit.source, module=cst.parse_module(unit.source))
    return Matcher(handle, verbose=verbose)


def target(tmp_path, code: str) -> TargetFile:
    path = tmp_path / "case_test.py"
    path.write_text(code, encoding="utf-8")
    return TargetFile.parse(path, "pkg")


def test_matcher_learns_target_and_params():
    matcher = matcher_for("equal", messages=2)
    assert matcher.target == "testify.require.equal"
    assert matcher.params == ("t", "a", "b", "m0", "m1")
    assert [record.render() for record in matcher.after_imports] == ["from testutil import assertions as gassert"]


def test_rewrites_and_adds_import(tmp_path):
    target_file = target(tmp_path, "from testify import require\n\nrequire.equal(t, got, 3)\n")
    assert matcher_for("equal").apply(target_file) == 1
    assert target_file.code == (
        "from testify import require\nfrom testutil import assertions as gassert\n\ngassert.eq(t, 3, got)\n"
    )
    assert ("testutil.assertions", "gassert") in [(r.path, r.alias) for r in target_file.imports]


def test_follows_import_alias(tmp_path):
    target_file = target(tmp_path, "from testify import require as r\nr.nil(t, x)\n")
    assert matcher_for("nil").apply(target_file) == 1
    assert "gassert.nil(t, x)" in target_file.code


def test_follows_dotted_import(tmp_path):
    target_file = target(tmp_path, "import testify.require\ntestify.require.no_error(t, err)\n")
    assert matcher_for("no_error").apply(target_file) == 1
    assert target_file.code.endswith("gassert.no_error(t, err)\n")


def test_ignores_other_family(tmp_path):
    code = "from testify import asserts\nasserts.nil(t, x)\n"
    target_file = target(tmp_path, code)
    assert matcher_for("nil", family=STRICT).apply(target_file) == 0
    assert target_file.code == code
    assert matcher_for("nil", family=SOFT).apply(target_file) == 1
    assert "gexpect.nil(t, x)" in target_file.code


def test_ignores_unrelated_name_with_same_spelling(tmp_path):
    code = "from testify import require\n\nclass Local:\n    require = None\n\nother.require.equal(t, a, b)\n"
    target_file = target(tmp_path, code)
    assert matcher_for("equal").apply(target_file) == 0
    assert target_file.code == code


def test_arity_must_match_variant(tmp_path):
    code = "from testify import require\nrequire.equal(t, a, b, 'message')\n"
    target_file = target(tmp_path, code)
    assert matcher_for("equal", messages=0).apply(target_file) == 0
    assert matcher_for("equal", messages=1).apply(target_file) == 1
    assert "gassert.eq(t, b, a, 'message')" in target_file.code


def test_keyword_arguments_are_not_matched(tmp_path):
    code = "from testify import require\nrequire.equal(t, a, b=1)\n"
    target_file = target(tmp_path, code)
    assert matcher_for("equal").apply(target_file) == 0


def test_literal_type_blocks_match(tmp_path, caplog):
    code = "from testify import require\nrequire.true(t, 1)\nrequire.no_error(t, 'boom')\n"
    target_file = target(tmp_path, code)
    with caplog.at_level("INFO"):
        assert matcher_for("true", verbose=True).apply(target_file) == 0
        assert matcher_for("no_error").apply(target_file) == 0
    assert target_file.code == code
    assert "argument a is not compatible with bool" in caplog.text


def test_compatible_literals_are_matched(tmp_path):
    target_file = target(tmp_path, "from testify import require\nrequire.true(t, True)\nrequire.no_error(t, None)\n")
    assert matcher_for("true").apply(target_file) == 1
    assert matcher_for("no_error").apply(target_file) == 1
    assert "gassert.true(t, True)" in target_file.code
    assert "gassert.no_error(t, None)" in target_file.code


def test_helper_rule_adds_helper_import(tmp_path):
    target_file = target(tmp_path, 'from testify import require\nrequire.contains(t, s, "x")\n')
    assert matcher_for("contains").apply(target_file) == 1
    assert 'gassert.that(t, s, h.contains("x"))' in target_file.code
    assert "from testutil import h\n" in target_file.code


def test_nested_helpers_and_argument_expressions(tmp_path):
    target_file = target(tmp_path, "from testify import require\nrequire.not_equal(t, compute(1, 2), obj.value)\n")
    assert matcher_for("not_equal").apply(target_file) == 1
    assert "gassert.that(t, compute(1, 2), h.not_(h.eq(obj.value)))" in target_file.code


def test_existing_destination_import_is_not_duplicated(tmp_path):
    code = "from testify import require\nfrom testutil import assertions as gassert\nrequire.nil(t, x)\n"
    target_file = target(tmp_path, code)
    assert matcher_for("nil").apply(target_file) == 1
    assert target_file.code.count("import assertions") == 1


def test_destination_import_under_another_name_gets_the_family_alias(tmp_path):
    code = "from testify import require\nfrom testutil import assertions\nrequire.nil(t, x)\n"
    target_file = target(tmp_path, code)
    assert matcher_for("nil").apply(target_file) == 1
    assert "from testutil import assertions\nfrom testutil import assertions as gassert\n" in target_file.code
    assert "gassert.nil(t, x)" in target_file.code


@pytest.mark.parametrize(
    "code, name",
    [
        ("from testify import require\n\nh = {'k': 1}\nrequire.contains(t, h, 'k')\n", "h"),
        (
            "import somelib as gassert\nfrom testify import require\ngassert.setup()\nrequire.contains(t, s, 1)\n",
            "gassert",
        ),
        ("from testify import require\n\ndef test_x(t):\n    h = make()\n    require.contains(t, h, 1)\n", "h"),
    ],
)
def test_shadowed_destination_names_block_the_match(tmp_path, caplog, code, name):
    target_file = target(tmp_path, code)
    with caplog.at_level("INFO"):
        assert matcher_for("contains", verbose=True).apply(target_file) == 0
    assert target_file.code == code
    assert f"{name} is already bound to something other than" in caplog.text


def test_local_binding_only_blocks_its_own_function(tmp_path):
    code = (
        "from testify import require\n"
        "\n"
        "def test_a(t):\n"
        "    gassert = make()\n"
        "    require.nil(t, gassert)\n"
        "\n"
        "def test_b(t):\n"
        "    require.nil(t, x)\n"
    )
    target_file = target(tmp_path, code)
    assert matcher_for("nil").apply(target_file) == 1
    assert "    require.nil(t, gassert)\n" in target_file.code
    assert "    gassert.nil(t, x)\n" in target_file.code


def test_nested_calls_are_rewritten(tmp_path):
    target_file = target(tmp_path, "from testify import require\nrequire.true(t, require.equal(t, a, b))\n")
    assert matcher_for("equal").apply(target_file) == 1
    assert "require.true(t, gassert.eq(t, b, a))" in target_file.code


def test_failure_is_wrapped(tmp_path, mocker):
    target_file = target(tmp_path, "from testify import require\nrequire.nil(t, x)\n")
    matcher = matcher_for("nil")
    mocker.patch.object(matcher, "instantiate", side_effect=RuntimeError("boom"))
    with pytest.raises(MatchApplicationError) as exc_info:
        matcher.apply(target_file)
    assert exc_info.value.details["unit_name"] == matcher.name


@pytest.mark.parametrize(
    "text, kind",
    [
        ("'x'", "str"),
        ("f'{x}'", "str"),
        ("1", "int"),
        ("1.5", "float"),
        ("True", "bool"),
        ("None", "None"),
        ("[1]", "container"),
        ("lambda: 1", "function"),
        ("x", None),
        ("f(1)", None),
    ],
)
def test_literal_kind(text, kind):
    assert literal_kind(cst.parse_expression(text)) == kind


@pytest.mark.parametrize(
    "annotation, text, ok",
    [
        ("bool", "True", True),
        ("bool", "1", False),
        ("int", "True", True),
        ("str", "1", False),
        ("BaseException | None", "None", True),
        ("BaseException | None", "'err'", False),
        ("BaseException | None", "err", True),
        ("object", "[1, 2]", True),
        ("Any", "None", True),
    ],
)
def test_is_compatible(annotation, text, ok):
    assert is_compatible(annotation, cst.parse_expression(text)) is ok
