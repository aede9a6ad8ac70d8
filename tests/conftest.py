"""Shared fixtures: project trees on disk and a command runner that records calls."""

import json
from pathlib import Path

import pytest

from hanode.commands import CommandResult


class RecordingRunner:
    """Stands in for ``run_command``; records (command, cwd) and succeeds."""

    def __init__(self):
        self.calls = []

    def __call__(self, command, context=None, description="", **kwargs):
        self.calls.append((command, context.cwd if context else None))
        return CommandResult(command, 0, b"", b"")

    @property
    def commands(self):
        return [c for c, _ in self.calls]


@pytest.fixture
def runner() -> RecordingRunner:
    return RecordingRunner()


def write_files(root: Path, files: dict):
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")


@pytest.fixture
def source_tree(tmp_path: Path):
    """A source dir with an app and a library project plus hanode.config.json."""
    src = tmp_path / "src"
    write_files(src, {
        "app/package.json": '{"name": "app"}',
        "app/package-lock.json": '{"lockfileVersion": 3}',
        "app/.gitignore": "build/\n*.log\n",
        "app/src/index.js": "console.log('hi')\n",
        "app/build/out.js": "compiled\n",
        "app/debug.log": "noise\n",
        "app/node_modules/dep/index.js": "module.exports = 1\n",
        "lib/package.json": '{"name": "lib"}',
        "lib/index.js": "export default 1\n",
    })
    config = {
        "v": 1,
        "projects": [
            {"path": "lib", "library": True, "build_command": "npm run build"},
            {"path": "app", "run_command": "node src/index.js"},
        ],
    }
    (src / "hanode.config.json").write_text(json.dumps(config), encoding="utf-8")
    return src
