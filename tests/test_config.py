import json

import pytest

from hanode.config import PackageManager, ProjectConfig, load_config, parse_config
from hanode.errors import ConfigInvalid


def test_defaults_are_applied():
    config = parse_config({"v": 1, "projects": [{"path": "app", "run_command": "node ."}]})
    project = config.projects[0]
    assert project == ProjectConfig(path="app", run_command="node .")
    assert project.pkg is PackageManager.NPM
    assert project.library is False
    assert config.main_project is project


def test_unknown_keys_are_ignored():
    config = parse_config({"v": 1, "extra": True,
                           "projects": [{"path": "a", "run_command": "x", "colour": "red"}]})
    assert config.projects[0].path == "a"


def test_projects_keep_configuration_order():
    config = parse_config({"v": 1, "projects": [
        {"path": "c"}, {"path": "a", "run_command": "go", "pkg": "pnpm"}, {"path": "b", "pkg": "yarn"},
    ]})
    assert [p.path for p in config.projects] == ["c", "a", "b"]
    assert config.projects[1].pkg is PackageManager.PNPM


def test_every_violation_is_reported():
    with pytest.raises(ConfigInvalid) as info:
        parse_config({"v": 2, "projects": [
            {"path": 3, "library": "yes"},
            {"path": "ok", "pkg": "bun", "build_command": 1},
            "nope",
        ]})
    violations = info.value.violations
    assert len(violations) == 6
    assert any(v.startswith("v:") for v in violations)
    assert any("projects[0].path" in v for v in violations)
    assert any("projects[0].library" in v for v in violations)
    assert any("projects[1].pkg" in v for v in violations)
    assert any("projects[1].build_command" in v for v in violations)
    assert any("projects[2]" in v for v in violations)


@pytest.mark.parametrize("raw", [
    [],
    {"v": 1},
    {"v": True, "projects": [{"path": "a", "run_command": "x"}]},
    {"v": 1, "projects": {}},
])
def test_structural_errors(raw):
    with pytest.raises(ConfigInvalid):
        parse_config(raw)


def test_empty_project_list_is_rejected():
    with pytest.raises(ConfigInvalid, match="no projects"):
        parse_config({"v": 1, "projects": []})


def test_zero_main_projects_is_rejected():
    with pytest.raises(ConfigInvalid, match="no project with run_command"):
        parse_config({"v": 1, "projects": [{"path": "a"}, {"path": "b", "run_command": ""}]})


def test_multiple_main_projects_are_rejected():
    with pytest.raises(ConfigInvalid, match="multiple projects"):
        parse_config({"v": 1, "projects": [
            {"path": "a", "run_command": "x"}, {"path": "b", "run_command": "y"},
        ]})


def test_load_config_errors(tmp_path):
    with pytest.raises(ConfigInvalid, match="not found"):
        load_config(tmp_path / "hanode.config.json")

    bad = tmp_path / "bad.json"
    bad.write_text("{not json")
    with pytest.raises(ConfigInvalid, match="error parsing JSON"):
        load_config(bad)


def test_load_config_reads_file(tmp_path):
    path = tmp_path / "hanode.config.json"
    path.write_text(json.dumps({"v": 1, "projects": [{"path": "a", "run_command": "npm start",
                                                       "library": False, "pkg": "yarn"}]}))
    config = load_config(path)
    assert config.version == 1
    assert config.main_project.run_command == "npm start"
    assert config.main_project.pkg is PackageManager.YARN


@pytest.mark.parametrize("path", ["", "  ", "/srv/app", "../escaped", "app/../../escaped", ".."])
def test_project_path_must_stay_relative(path):
    with pytest.raises(ConfigInvalid) as info:
        parse_config({"v": 1, "projects": [{"path": path, "run_command": "node ."}]})
    assert len(info.value.violations) == 1
    assert info.value.violations[0].startswith("projects[0].path:")


@pytest.mark.parametrize("path", [".", "app", "packages/app", "./app"])
def test_nested_relative_paths_are_accepted(path):
    config = parse_config({"v": 1, "projects": [{"path": path, "run_command": "node ."}]})
    assert config.main_project.path == path
