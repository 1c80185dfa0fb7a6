"""Unit tests for the rewrite engine and program loading."""

import libcst as cst
import pytest

from splurge_assert_migrate.engine import RewriteEngine, UnitHandle, check_unit, is_template_name, template_unit_name
from splurge_assert_migrate.engine.program import build_dependents, discover_packages, load_program, resolve_roots
from splurge_assert_migrate.exceptions import PersistError, ProgramLoadError, TemplateGenerationError
from splurge_assert_migrate.expander import TemplateExpander
from splurge_assert_migrate.rules import STRICT, ArityVariant, rule_by_name
from tests.test_utils import STRICT_EQUAL, write_package

EQUAL_UNIT = TemplateExpander().render_unit(template_unit_name(0), 0, rule_by_name("equal"), STRICT, ArityVariant(0))


def make_handle(source: str, name: str = "__rewrite_templates__.unit0000") -> UnitHandle:
    return UnitHandle(name=name, path=None, source=source, module=cst.parse_module(source))


def test_template_namespace_is_an_exact_segment():
    assert is_template_name("__rewrite_templates__.unit0001")
    assert not is_template_name("my__rewrite_templates__.unit0001")
    assert not is_template_name("pkg.__rewrite_templates__")
    assert template_unit_name(7) == "__rewrite_templates__.unit0007"


def test_register_unit_writes_into_scratch_dir():
    with RewriteEngine() as engine:
        handle = engine.register_unit(EQUAL_UNIT.name, EQUAL_UNIT.source)
        scratch = engine.scratch_dir
        assert handle.path.parent == scratch
        assert handle.path.read_text(encoding="utf-8") == EQUAL_UNIT.source
        assert engine.units == [handle]
    assert not scratch.exists()
    assert engine.units == []


def test_scratch_dir_removed_when_run_fails():
    with pytest.raises(RuntimeError):
        with RewriteEngine() as engine:
            engine.register_unit(EQUAL_UNIT.name, EQUAL_UNIT.source)
            scratch = engine.scratch_dir
            raise RuntimeError("boom")
    assert not scratch.exists()


@pytest.mark.parametrize(
    "name, source",
    [
        ("templates.unit0000", "x = 1\n"),
        ("__rewrite_templates__.unit0000", "def broken(:\n"),
    ],
)
def test_register_unit_rejects_bad_units(name, source):
    with RewriteEngine() as engine:
        with pytest.raises(TemplateGenerationError) as exc_info:
            engine.register_unit(name, source)
        assert exc_info.value.details["unit_name"] == name


def test_register_unit_rejects_duplicates():
    with RewriteEngine() as engine:
        engine.register_unit(EQUAL_UNIT.name, EQUAL_UNIT.source)
        with pytest.raises(TemplateGenerationError):
            engine.register_unit(EQUAL_UNIT.name, EQUAL_UNIT.source)


def test_check_unit_accepts_rendered_unit():
    check_unit(make_handle(EQUAL_UNIT.source))


@pytest.mark.parametrize(
    "source, message",
    [
        ("def before(a: object) -> None:\n    f(a)\n", "expected functions before() and after()"),
        (
            "from testify import require\n"
            "def before(t: object, a: object) -> None:\n    require.nil(t, a)\n"
            "def after(t: object) -> None:\n    require.nil(t)\n",
            "signatures differ",
        ),
        (
            "from testify import require\n"
            "def before(t: list, a: object) -> None:\n    require.nil(t, a)\n"
            "def after(t: list, a: object) -> None:\n    require.nil(t, a)\n",
            "unknown type",
        ),
        (
            "from testify import require\n"
            "def before(t: object, a: object) -> None:\n    require.nil(t, a)\n"
            "def after(t: object, a: object) -> None:\n    gassert.nil(t, a)\n",
            "undefined names",
        ),
        (
            "from testify import require\n"
            "def before(t: object, a: object) -> None:\n    require.nil(t, a)\n    require.nil(t, a)\n"
            "def after(t: object, a: object) -> None:\n    require.nil(t, a)\n",
            "exactly one call",
        ),
        (
            "from testify import require\n"
            "def before(require: object) -> None:\n    require.nil(require)\n"
            "def after(require: object) -> None:\n    require.nil(require)\n",
            "shadow",
        ),
    ],
)
def test_check_unit_rejects_malformed_units(source, message):
    with pytest.raises(ProgramLoadError) as exc_info:
        check_unit(make_handle(source))
    assert message in str(exc_info.value)


def test_discover_and_resolve_packages(tmp_path):
    write_package(tmp_path, "p", {"core.py": STRICT_EQUAL})
    write_package(tmp_path, "p.sub", {"deep.py": "x = 1\n"})
    write_package(tmp_path, "loose", {"mod.py": "x = 1\n"}, init=False)
    (tmp_path / ".hidden").mkdir()
    (tmp_path / ".hidden" / "skip.py").write_text("x = 1\n")

    directories = discover_packages(tmp_path)
    assert set(directories) == {"p", "p.sub", "loose"}

    assert resolve_roots(tmp_path, ["p"], directories) == ["p"]
    assert resolve_roots(tmp_path, ["p/sub"], directories) == ["p.sub"]
    assert resolve_roots(tmp_path, ["loose/mod.py"], directories) == ["loose"]
    assert resolve_roots(tmp_path, ["p*", "p"], directories) == ["p"]
    assert resolve_roots(tmp_path, [str(tmp_path / "p")], directories) == ["p"]


def test_resolve_unknown_pattern_fails(tmp_path):
    write_package(tmp_path, "p", {"core.py": STRICT_EQUAL})
    with pytest.raises(ProgramLoadError) as exc_info:
        resolve_roots(tmp_path, ["nothing"], discover_packages(tmp_path))
    assert exc_info.value.details["source_file"] == "nothing"


def test_load_program_and_dependents(tmp_path):
    write_package(tmp_path, "p", {"core.py": STRICT_EQUAL})
    write_package(tmp_path, "q", {"uses.py": "from p import core\n"})
    write_package(tmp_path, "r", {"later.py": "import q.uses\n"})
    write_package(tmp_path, "other", {"alone.py": "import os\n"})

    program = load_program(tmp_path, ["p"], [], transitive=True)
    assert program.dependents["p"] == {"q"}
    assert program.dependents["q"] == {"r"}
    assert [package.name for package in program.transitive_packages()] == ["p", "q", "r"]
    assert [package.name for package in program.initial_packages()] == ["p"]

    narrow = load_program(tmp_path, ["p"], [])
    assert list(narrow.packages) == ["p"]
    assert narrow.dependents == {}


def test_relative_imports_count_as_dependencies(tmp_path):
    write_package(tmp_path, "top.p", {"core.py": "x = 1\n"})
    write_package(tmp_path, "top.q", {"uses.py": "from ..p import core\n"})
    program = load_program(tmp_path, ["top.p"], [], transitive=True)
    assert build_dependents(program.packages)["top.p"] == {"top.q"}


def test_load_program_reports_syntax_errors(tmp_path):
    write_package(tmp_path, "p", {"bad.py": "def broken(:\n"})
    with pytest.raises(ProgramLoadError) as exc_info:
        load_program(tmp_path, ["p"], [])
    assert exc_info.value.details["source_file"].endswith("bad.py")


def test_load_program_checks_units(tmp_path):
    write_package(tmp_path, "p", {"core.py": STRICT_EQUAL})
    bad = make_handle("x = 1\n")
    with pytest.raises(ProgramLoadError):
        load_program(tmp_path, ["p"], [bad])


def test_load_program_missing_root(tmp_path):
    with pytest.raises(ProgramLoadError):
        load_program(tmp_path / "missing", ["p"], [])


def test_engine_load_program_includes_registered_units(tmp_path):
    write_package(tmp_path, "p", {"core.py": STRICT_EQUAL})
    with RewriteEngine(tmp_path) as engine:
        handle = engine.register_unit(EQUAL_UNIT.name, EQUAL_UNIT.source)
        program = engine.load_program(["p"])
        packages = program.initial_packages()
        assert packages[0].is_template and packages[0].name == EQUAL_UNIT.name
        assert packages[1].name == "p"
        matcher = engine.make_matcher(program, handle)
        assert matcher.target == "testify.require.equal"


def test_make_matcher_rejects_foreign_unit(tmp_path):
    write_package(tmp_path, "p", {"core.py": STRICT_EQUAL})
    with RewriteEngine(tmp_path) as engine:
        program = engine.load_program(["p"])
        with pytest.raises(ProgramLoadError):
            engine.make_matcher(program, make_handle(EQUAL_UNIT.source))


def test_write_file_preserves_bytes(tmp_path):
    write_package(tmp_path, "p", {"core.py": "x = 1\r\ny = 2\r\n"})
    with RewriteEngine(tmp_path) as engine:
        program = engine.load_program(["p"])
        target_file = next(f for f in program.packages["p"].files if f.path.name == "core.py")
        target = tmp_path / "copy.py"
        engine.write_file(target, target_file)
    assert target.read_bytes() == b"x = 1\r\ny = 2\r\n"


def test_write_file_failure(tmp_path):
    write_package(tmp_path, "p", {"core.py": STRICT_EQUAL})
    with RewriteEngine(tmp_path) as engine:
        program = engine.load_program(["p"])
        with pytest.raises(PersistError) as exc_info:
            engine.write_file(tmp_path / "p", program.packages["p"].files[0])
    assert exc_info.value.details["target_file"] == str(tmp_path / "p")
