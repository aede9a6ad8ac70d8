"""Content fingerprint of a project's dependency manifests.

The digest gates dependency installation: when the manifest and lockfiles
are byte-identical to the previous run, installing again is skipped.
"""

import hashlib
from enum import Enum
from pathlib import Path
from typing import Optional

from hanode.errors import ManifestMissing

MANIFEST_FILE = "package.json"
FINGERPRINT_FILE = "dependencies.hash"

# Hash order is fixed; absent files contribute nothing.
TRACKED_FILES = ("package.json", "package-lock.json", "yarn.lock", "pnpm-lock.yaml")


class InstallDecision(str, Enum):
    CHANGED = "changed"
    UNCHANGED = "unchanged"


def compute_fingerprint(project_dir: Path) -> str:
    digest = hashlib.md5()
    for filename in TRACKED_FILES:
        path = Path(project_dir) / filename
        if path.is_file():
            digest.update(path.read_bytes())
    return digest.hexdigest()


def read_fingerprint(project_dir: Path) -> Optional[str]:
    path = Path(project_dir) / FINGERPRINT_FILE
    if not path.is_file():
        return None
    return path.read_text(encoding="utf-8").strip()


def decide_install(project_dir: Path) -> InstallDecision:
    """Compare the stored fingerprint with the current one, then store it.

    The state file is rewritten even when nothing changed so it always holds
    the last observed value.
    """
    project_dir = Path(project_dir)
    if not (project_dir / MANIFEST_FILE).is_file():
        raise ManifestMissing(project_dir, MANIFEST_FILE)

    previous = read_fingerprint(project_dir)
    current = compute_fingerprint(project_dir)
    (project_dir / FINGERPRINT_FILE).write_text(current, encoding="utf-8")

    if previous is None or previous != current:
        return InstallDecision.CHANGED
    return InstallDecision.UNCHANGED
