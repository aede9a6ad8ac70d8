"""Error taxonomy shared by the monitor and the git server.

Nothing here is retried. Every error aborts the current run and carries
enough context (project path, command, captured output) to diagnose it.
"""

from pathlib import Path
from typing import Optional


class HanodeError(Exception):
    """Base class for every failure the CLIs report and exit on."""


class ConfigInvalid(HanodeError):
    def __init__(self, source: str, violations: list[str]):
        self.source = source
        self.violations = list(violations)
        details = "; ".join(self.violations)
        super().__init__(f"Invalid hanode config {source}: {details}")


class SourceMissing(HanodeError):
    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"Source directory does not exist: {path}")


class ManifestMissing(HanodeError):
    def __init__(self, project_dir: Path, manifest: str = "package.json"):
        self.project_dir = project_dir
        self.manifest = manifest
        super().__init__(f"{manifest} not found in {project_dir}")


class LockfileMissing(HanodeError):
    def __init__(self, project_dir: Path, lockfile: str):
        self.project_dir = project_dir
        self.lockfile = lockfile
        super().__init__(f"{lockfile} not found in {project_dir}, required for clean install")


class ExternalCommandFailed(HanodeError):
    def __init__(self, command, cwd: Optional[Path], returncode: int,
                 stdout: bytes = b"", stderr: bytes = b"", description: str = ""):
        self.command = command
        self.cwd = cwd
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.description = description
        shown = command if isinstance(command, str) else " ".join(str(c) for c in command)
        context = f"Error {description}: " if description else ""
        message = f"{context}`{shown}` exited with code {returncode} (cwd: {cwd})"
        tail = self.stderr_text.strip()
        if tail:
            message += f"\n{tail[-2000:]}"
        super().__init__(message)

    @property
    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")
