"""Ignore-aware recursive copy of a project tree."""

import logging
import os
import shutil
from pathlib import Path
from typing import Optional

from hanode.errors import SourceMissing
from hanode.ignore import IgnoreMatcher

log = logging.getLogger("hanode.monitor")


def mirror_tree(source_dir: Path, dest_dir: Path, matcher: IgnoreMatcher,
                parent: Optional[str] = None) -> int:
    """Copy ``source_dir`` into ``dest_dir``, skipping ignored entries.

    ``parent`` is the path of ``source_dir`` relative to the project root;
    ignore rules are always evaluated against project-relative paths, never
    against the recursion root. Excluded directories are not descended into.
    Symbolic links are skipped with a warning.

    Returns the number of files copied.
    """
    source_dir = Path(source_dir)
    dest_dir = Path(dest_dir)
    if not source_dir.is_dir():
        raise SourceMissing(source_dir)
    dest_dir.mkdir(parents=True, exist_ok=True)

    copied = 0
    with os.scandir(source_dir) as it:
        entries = sorted(it, key=lambda e: e.name)

    for entry in entries:
        relative = f"{parent}/{entry.name}" if parent else entry.name

        if entry.is_symlink():
            log.warning(f"  Skipping symlink {relative}")
            continue

        is_dir = entry.is_dir(follow_symlinks=False)
        if matcher.matches(relative, is_dir=is_dir):
            continue

        target = dest_dir / entry.name
        if is_dir:
            copied += mirror_tree(Path(entry.path), target, matcher, relative)
        elif entry.is_file(follow_symlinks=False):
            shutil.copy(entry.path, target)
            copied += 1
        else:
            log.warning(f"  Skipping special file {relative}")

    return copied
