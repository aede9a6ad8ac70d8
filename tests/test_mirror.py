import os
from pathlib import Path

import pytest

from hanode.errors import SourceMissing
from hanode.ignore import IgnoreMatcher
from hanode.mirror import mirror_tree

from conftest import write_files


def snapshot(root: Path) -> dict:
    return {
        p.relative_to(root).as_posix(): p.read_bytes()
        for p in sorted(root.rglob("*")) if p.is_file()
    }


def test_gitignored_build_directory_is_not_copied(tmp_path):
    src = tmp_path / "projA"
    write_files(src, {
        ".gitignore": "build/\n",
        "src/app.js": "app",
        "build/out.js": "out",
    })
    dest = tmp_path / "dest" / "projA"

    mirror_tree(src, dest, IgnoreMatcher((src / ".gitignore").read_text()))

    assert (dest / "src" / "app.js").read_text() == "app"
    assert not (dest / "build").exists()
    assert (dest / ".gitignore").exists()


def test_rules_use_project_relative_paths(tmp_path):
    src = tmp_path / "p"
    write_files(src, {"src/generated/x.js": "x", "generated/y.js": "y"})
    dest = tmp_path / "out"

    mirror_tree(src, dest, IgnoreMatcher("/generated"))

    assert (dest / "src" / "generated" / "x.js").exists()
    assert not (dest / "generated").exists()


def test_excluded_directory_is_not_descended(tmp_path, monkeypatch):
    src = tmp_path / "p"
    write_files(src, {"node_modules/a/b.js": "b", "index.js": "i"})
    visited = []
    real_scandir = os.scandir

    def tracking_scandir(path):
        visited.append(Path(path).name)
        return real_scandir(path)

    monkeypatch.setattr(os, "scandir", tracking_scandir)
    mirror_tree(src, tmp_path / "out", IgnoreMatcher("node_modules"))

    assert "node_modules" not in visited
    assert (tmp_path / "out" / "index.js").exists()


def test_mirror_is_idempotent_and_overwrites(tmp_path):
    src = tmp_path / "p"
    write_files(src, {"a.txt": "one", "d/b.bin": bytes(range(256)), "skip.log": "x"})
    dest = tmp_path / "out"
    matcher = IgnoreMatcher("*.log")

    assert mirror_tree(src, dest, matcher) == 2
    first = snapshot(dest)
    mirror_tree(src, dest, matcher)
    assert snapshot(dest) == first
    assert first == {"a.txt": b"one", "d/b.bin": bytes(range(256))}

    (src / "a.txt").write_text("two")
    mirror_tree(src, dest, matcher)
    assert (dest / "a.txt").read_text() == "two"


def test_existing_destination_files_are_kept(tmp_path):
    src = tmp_path / "p"
    write_files(src, {"a.txt": "a"})
    dest = tmp_path / "out"
    write_files(dest, {"node_modules/x.js": "x"})

    mirror_tree(src, dest, IgnoreMatcher())

    assert (dest / "node_modules" / "x.js").exists()


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unsupported")
def test_symlinks_are_skipped(tmp_path):
    src = tmp_path / "p"
    write_files(src, {"real.txt": "r", "dir/inner.txt": "i"})
    os.symlink(src / "real.txt", src / "link.txt")
    os.symlink(src / "dir", src / "linkdir")
    dest = tmp_path / "out"

    mirror_tree(src, dest, IgnoreMatcher())

    assert (dest / "real.txt").exists()
    assert not (dest / "link.txt").exists()
    assert not (dest / "linkdir").exists()


def test_missing_source_raises(tmp_path):
    with pytest.raises(SourceMissing):
        mirror_tree(tmp_path / "nope", tmp_path / "out", IgnoreMatcher())
    assert not (tmp_path / "out").exists()


def test_executable_bit_is_preserved(tmp_path):
    src = tmp_path / "p"
    write_files(src, {"bin/run.sh": "#!/bin/sh\n"})
    os.chmod(src / "bin" / "run.sh", 0o755)

    mirror_tree(src, tmp_path / "out", IgnoreMatcher())

    assert os.access(tmp_path / "out" / "bin" / "run.sh", os.X_OK)
