"""The ``hanode.config.json`` project configuration.

Raw JSON is parsed into frozen dataclasses in one explicit step. Every
structural violation found is collected and reported together as a single
:class:`ConfigInvalid`.
"""

import json
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Any, Optional

from hanode.errors import ConfigInvalid

CONFIG_VERSION = 1


class PackageManager(str, Enum):
    NPM = "npm"
    YARN = "yarn"
    PNPM = "pnpm"


@dataclass(frozen=True)
class ProjectConfig:
    path: str
    run_command: Optional[str] = None
    build_command: Optional[str] = None
    library: bool = False
    pkg: PackageManager = PackageManager.NPM

    @property
    def is_main(self) -> bool:
        return bool(self.run_command)


@dataclass(frozen=True)
class ProjectConfigSet:
    version: int
    projects: tuple

    @property
    def main_project(self) -> ProjectConfig:
        return next(p for p in self.projects if p.is_main)


def _parse_project(index: int, raw: Any, violations: list[str]) -> Optional[ProjectConfig]:
    where = f"projects[{index}]"
    if not isinstance(raw, dict):
        violations.append(f"{where}: expected object, got {type(raw).__name__}")
        return None

    count = len(violations)
    path = raw.get("path")
    if not isinstance(path, str):
        violations.append(f"{where}.path: expected string")
    elif not path.strip():
        violations.append(f"{where}.path: must not be empty")
    elif PurePosixPath(path).is_absolute() or ".." in PurePosixPath(path).parts:
        # Projects are resolved under both the config dir and the destination.
        violations.append(f"{where}.path: expected a relative directory inside the project, got {path!r}")

    for key in ("run_command", "build_command"):
        value = raw.get(key)
        if value is not None and not isinstance(value, str):
            violations.append(f"{where}.{key}: expected string")

    library = raw.get("library", False)
    if library is None:
        library = False
    if not isinstance(library, bool):
        violations.append(f"{where}.library: expected boolean")

    pkg = raw.get("pkg")
    manager = PackageManager.NPM
    if pkg is not None:
        try:
            manager = PackageManager(pkg)
        except ValueError:
            allowed = ", ".join(m.value for m in PackageManager)
            violations.append(f"{where}.pkg: expected one of {allowed}, got {pkg!r}")

    if len(violations) > count:
        return None
    return ProjectConfig(
        path=path,
        run_command=raw.get("run_command"),
        build_command=raw.get("build_command"),
        library=library,
        pkg=manager,
    )


def parse_config(raw: Any, source: str = "<config>") -> ProjectConfigSet:
    """Validate decoded JSON and build a :class:`ProjectConfigSet`."""
    if not isinstance(raw, dict):
        raise ConfigInvalid(source, [f"expected a JSON object, got {type(raw).__name__}"])

    violations: list[str] = []
    version = raw.get("v")
    # bool is an int subclass; `true` is not version 1.
    if version != CONFIG_VERSION or isinstance(version, bool):
        violations.append(f"v: expected {CONFIG_VERSION}, got {version!r}")

    raw_projects = raw.get("projects")
    projects: list[ProjectConfig] = []
    if not isinstance(raw_projects, list):
        violations.append("projects: expected array")
    else:
        for index, item in enumerate(raw_projects):
            project = _parse_project(index, item, violations)
            if project is not None:
                projects.append(project)

    if violations:
        raise ConfigInvalid(source, violations)

    if not projects:
        raise ConfigInvalid(source, ["no projects found"])

    mains = [p.path for p in projects if p.is_main]
    if not mains:
        raise ConfigInvalid(source, ["no project with run_command found"])
    if len(mains) > 1:
        raise ConfigInvalid(source, [f"multiple projects with run_command found: {', '.join(mains)}"])

    return ProjectConfigSet(version=version, projects=tuple(projects))


def load_config(path: Path) -> ProjectConfigSet:
    path = Path(path)
    if not path.is_file():
        raise ConfigInvalid(str(path), ["config file not found"])
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigInvalid(str(path), [f"error parsing JSON: {e}"]) from e
    return parse_config(raw, str(path))
