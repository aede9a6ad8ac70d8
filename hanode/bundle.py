"""Project bundling: mirror, install, build, launcher.

Each configured project is processed strictly in configuration order, since a
later project may consume the build output of an earlier one. Any failure
aborts the whole run; re-running is safe because mirroring is idempotent and
installs are gated by the dependency fingerprint.
"""

import logging
import os
import shlex
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from hanode import settings
from hanode.commands import CommandContext, CommandResult, run_command
from hanode.config import PackageManager, ProjectConfig, ProjectConfigSet, load_config
from hanode.errors import HanodeError, LockfileMissing
from hanode.fingerprint import FINGERPRINT_FILE, InstallDecision, decide_install
from hanode.ignore import IgnoreMatcher
from hanode.mirror import mirror_tree

log = logging.getLogger("hanode.monitor")

# Appended after the project's own rules so they always win.
IMPLICIT_IGNORES = ("node_modules", FINGERPRINT_FILE)

Runner = Callable[..., CommandResult]


# ---------------------------------------------------------------------------
# Install command selection
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class InstallCommands:
    standard: str
    frozen: str
    lockfile: str


INSTALL_COMMANDS = {
    PackageManager.NPM: InstallCommands("npm install", "npm ci", "package-lock.json"),
    PackageManager.YARN: InstallCommands("yarn install", "yarn install --frozen-lockfile", "yarn.lock"),
    PackageManager.PNPM: InstallCommands("pnpm install", "pnpm install --frozen-lockfile", "pnpm-lock.yaml"),
}


def select_install_command(pkg: PackageManager, library: bool, project_dir: Path) -> str:
    """Libraries get a plain install; applications must install from their lockfile."""
    commands = INSTALL_COMMANDS[PackageManager(pkg)]
    if library:
        return commands.standard
    if not (Path(project_dir) / commands.lockfile).is_file():
        raise LockfileMissing(Path(project_dir), commands.lockfile)
    return commands.frozen


# ---------------------------------------------------------------------------
# Per-project bundle
# ---------------------------------------------------------------------------

class BundleStatus(str, Enum):
    PENDING = "pending"
    MIRRORED = "mirrored"
    INSTALL_SKIPPED = "install-skipped"
    INSTALLED = "installed"
    BUILD_SKIPPED = "build-skipped"
    BUILT = "built"
    DONE = "done"
    FAILED = "failed"


class ProjectBundle:
    def __init__(self, config_dir: Path, dest_dir: Path, config: ProjectConfig,
                 runner: Runner = run_command):
        self.config = config
        self.src_path = (Path(config_dir) / config.path).resolve()
        self.dest_path = (Path(dest_dir) / config.path).resolve()
        self.gitignore_path = self.src_path / ".gitignore"
        self.runner = runner
        self.history = [BundleStatus.PENDING]
        self.error = ""

    @property
    def status(self) -> BundleStatus:
        return self.history[-1]

    def _advance(self, status: BundleStatus):
        self.history.append(status)

    def ignore_matcher(self) -> IgnoreMatcher:
        matcher = IgnoreMatcher()
        if self.gitignore_path.is_file():
            matcher.add(self.gitignore_path.read_text(encoding="utf-8"))
        matcher.add(IMPLICIT_IGNORES)
        return matcher

    def copy_files(self):
        log.info(f"Copying {self.config.path}...")
        copied = mirror_tree(self.src_path, self.dest_path, self.ignore_matcher())
        log.info(f"  {copied} files copied to {self.dest_path}")
        self._advance(BundleStatus.MIRRORED)

    def _execute(self, command: str, description: str) -> CommandResult:
        context = CommandContext.inherit(cwd=self.dest_path)
        result = self.runner(command, context, description=description)
        if result.text.strip():
            log.info(result.text.rstrip()[-2000:])
        if result.error_text.strip():
            log.warning(result.error_text.rstrip()[-2000:])
        return result

    def install_dependencies(self) -> bool:
        """Install dependencies if the fingerprint changed. Returns True if installed."""
        if decide_install(self.dest_path) is InstallDecision.UNCHANGED:
            log.info(f"  Dependencies unchanged for {self.config.path}, skipping install")
            self._advance(BundleStatus.INSTALL_SKIPPED)
            return False

        log.info(f"Dependencies changed for {self.config.path}. Installing...")
        try:
            command = select_install_command(self.config.pkg, self.config.library, self.dest_path)
            mode = "standard" if self.config.library else "clean"
            log.info(f"Installing dependencies with {self.config.pkg.value} ({mode} install)...")
            self._execute(command, "installing dependencies")
        except HanodeError:
            # The new fingerprint is already stored; drop it so the next run installs again.
            (self.dest_path / FINGERPRINT_FILE).unlink(missing_ok=True)
            raise
        self._advance(BundleStatus.INSTALLED)
        return True

    def build(self) -> bool:
        if not self.config.build_command:
            self._advance(BundleStatus.BUILD_SKIPPED)
            return False
        log.info(f"Building {self.config.path}...")
        self._execute(self.config.build_command, "building")
        self._advance(BundleStatus.BUILT)
        return True

    def run(self):
        try:
            self.copy_files()
            self.install_dependencies()
            self.build()
        except HanodeError as e:
            self.error = str(e)
            self._advance(BundleStatus.FAILED)
            log.error(f"❌ {self.config.path} failed: {e}")
            raise
        self._advance(BundleStatus.DONE)


# ---------------------------------------------------------------------------
# Launcher script
# ---------------------------------------------------------------------------

def render_launcher(project_dir: Path, run_command_line: str,
                    exports: Optional[dict] = None,
                    shebang: str = settings.LAUNCHER_SHEBANG) -> str:
    if exports is None:
        exports = settings.LAUNCHER_EXPORTS
    lines = [shebang, "set -o pipefail"]
    for name, option in exports.items():
        lines.append(f"export {name}=\"$(bashio::config '{option}')\"")
    lines.append(f"cd {shlex.quote(str(project_dir))}")
    lines.append(f"exec {run_command_line}")
    return "\n".join(lines) + "\n"


def write_launcher(script_path: Path, project_dir: Path, run_command_line: str) -> Path:
    script_path = Path(script_path)
    script_path.parent.mkdir(parents=True, exist_ok=True)
    script_path.write_text(render_launcher(project_dir, run_command_line), encoding="utf-8")
    os.chmod(script_path, 0o755)
    return script_path


# ---------------------------------------------------------------------------
# Whole run
# ---------------------------------------------------------------------------

def bundle_projects(config_set: ProjectConfigSet, config_dir: Path, dest_dir: Path,
                    runner: Runner = run_command) -> list[ProjectBundle]:
    main_project = config_set.main_project
    dest_dir = Path(dest_dir)
    dest_dir.mkdir(parents=True, exist_ok=True)

    bundles = []
    total = len(config_set.projects)
    for i, project in enumerate(config_set.projects, 1):
        log.info(f"[{i}/{total}] {project.path}")
        bundle = ProjectBundle(config_dir, dest_dir, project, runner=runner)
        bundles.append(bundle)
        bundle.run()

    launcher = write_launcher(
        dest_dir / settings.LAUNCHER_NAME,
        (dest_dir / main_project.path).resolve(),
        main_project.run_command,
    )
    log.info(f"Launcher written to {launcher} (main project: {main_project.path})")
    return bundles


def run_monitor(src_dir: Path, dest_dir: Path, runner: Runner = run_command) -> list[ProjectBundle]:
    """Load ``hanode.config.json`` from ``src_dir`` and bundle every project.

    The config is fully validated before anything is copied.
    """
    config_path = (Path(src_dir) / settings.CONFIG_FILENAME).resolve()
    config_set = load_config(config_path)
    return bundle_projects(config_set, config_path.parent, dest_dir, runner=runner)
