"""Bare repository bootstrap and post-push deployment."""

import logging
import os
import shlex
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from hanode import settings
from hanode.commands import CommandContext, run_command
from hanode.errors import ExternalCommandFailed

log = logging.getLogger("hanode.git")

ZERO_SHA = "0" * 40
DEPLOY_HOOK = "deploy"


@dataclass(frozen=True)
class GitServerConfig:
    project_root: Path = settings.GIT_PROJECT_ROOT
    repo_name: str = settings.GIT_REPO_NAME
    deploy_path: Path = settings.GIT_DEPLOY_PATH
    username: str = settings.GIT_USERNAME
    password: str = settings.GIT_PASSWORD
    realm: str = settings.GIT_REALM
    host: str = settings.GIT_HOST
    port: int = settings.GIT_PORT
    public_url: str = settings.GIT_PUBLIC_URL
    deploy_branches: tuple = settings.GIT_DEPLOY_BRANCHES
    hook_log: str = settings.GIT_HOOK_LOG
    # Writes to the user's global git config; off in tests.
    mark_safe: bool = True
    env: dict = field(default_factory=dict)

    @property
    def repo_path(self) -> Path:
        return Path(self.project_root) / self.repo_name

    def context(self, cwd=None) -> CommandContext:
        return CommandContext.inherit(cwd=cwd, **self.env)


# ---------------------------------------------------------------------------
# Bootstrap
# ---------------------------------------------------------------------------

def mark_safe_directories(config: GitServerConfig):
    """Avoid git's "dubious ownership" refusal when the repo owner differs."""
    for directory in (str(config.repo_path), "*"):
        try:
            run_command(["git", "config", "--global", "--add", "safe.directory", directory],
                        config.context(), description="marking repository as safe")
        except ExternalCommandFailed as e:
            log.warning(f"Could not mark {directory} as a safe directory: {e}")


def has_default_branch(repo_path: Path) -> bool:
    heads = Path(repo_path) / "refs" / "heads"
    if (heads / "main").exists() or (heads / "master").exists():
        return True
    # Refs may only exist packed after a gc.
    packed = Path(repo_path) / "packed-refs"
    if packed.is_file():
        text = packed.read_text(encoding="utf-8", errors="replace")
        return "refs/heads/main" in text or "refs/heads/master" in text
    return False


def seed_initial_commit(config: GitServerConfig) -> bool:
    """Push a README-only commit to ``master``. Returns False on failure."""
    repo_path = config.repo_path
    log.info("Creating initial commit in the repository")
    with tempfile.TemporaryDirectory(prefix="git-init-") as tmp:
        context = config.context(cwd=tmp)
        (Path(tmp) / "README.md").write_text("# My Hanode Project\n", encoding="utf-8")
        steps = [
            ["git", "init"],
            ["git", "config", "user.email", "hanode@example.com"],
            ["git", "config", "user.name", "Hanode Addon"],
            ["git", "add", "README.md"],
            ["git", "commit", "-m", "Initial commit"],
            ["git", "remote", "add", "origin", str(repo_path)],
            ["git", "push", "origin", "HEAD:refs/heads/master"],
        ]
        try:
            for step in steps:
                run_command(step, context, description="creating initial commit")
            run_command(["git", "symbolic-ref", "HEAD", "refs/heads/master"],
                        config.context(cwd=repo_path), description="setting HEAD")
        except ExternalCommandFailed as e:
            log.error(f"Error creating initial commit: {e}")
            return False
    log.info("Initial commit created successfully")
    return True


def render_deploy_hook(config: GitServerConfig) -> str:
    template = """#!/bin/bash
# Installed by hanode. Reads "<old> <new> <ref>" lines on stdin.

GIT_WORK_TREE=__DEPLOY_PATH__
export GIT_WORK_TREE
mkdir -p "$GIT_WORK_TREE"
LOG=__HOOK_LOG__

while read oldrev newrev ref; do
  branch="${ref##*/}"
  echo "Received push to branch: $branch (old: $oldrev new: $newrev)" >> "$LOG"

  if [ "$newrev" = "__ZERO__" ]; then
    echo "Branch $branch deleted, nothing to deploy" >> "$LOG"
    continue
  fi

  case " __BRANCHES__ " in
    *" $branch "*)
      echo "Deploying $branch branch to $GIT_WORK_TREE" >> "$LOG"
      git --work-tree="$GIT_WORK_TREE" --git-dir=__GIT_DIR__ checkout -f "$branch" || exit 1
      echo "Deployment completed successfully" >> "$LOG"
      ;;
    *)
      echo "Not deploying branch $branch" >> "$LOG"
      ;;
  esac
done
"""
    return (template
            .replace("__DEPLOY_PATH__", shlex.quote(str(config.deploy_path)))
            .replace("__HOOK_LOG__", shlex.quote(str(config.hook_log)))
            .replace("__ZERO__", ZERO_SHA)
            .replace("__BRANCHES__", " ".join(config.deploy_branches))
            .replace("__GIT_DIR__", shlex.quote(str(config.repo_path))))


def install_deploy_hook(config: GitServerConfig) -> Path:
    hook_path = config.repo_path / "hooks" / DEPLOY_HOOK
    if not hook_path.exists():
        hook_path.parent.mkdir(parents=True, exist_ok=True)
        hook_path.write_text(render_deploy_hook(config), encoding="utf-8")
        log.info(f"Installed deploy hook at {hook_path}")
    os.chmod(hook_path, 0o755)
    return hook_path


def ensure_repo_exists(config: GitServerConfig) -> Path:
    """Create the bare repository, seed it and install the deploy hook, as needed."""
    repo_path = config.repo_path
    if config.mark_safe:
        mark_safe_directories(config)

    if not repo_path.exists():
        log.info(f"Creating bare repository at {repo_path}")
        repo_path.parent.mkdir(parents=True, exist_ok=True)
        run_command(["git", "init", "--bare", str(repo_path)], config.context(),
                    description="creating bare repository")

    if not has_default_branch(repo_path):
        seed_initial_commit(config)

    install_deploy_hook(config)
    return repo_path


# ---------------------------------------------------------------------------
# After a push
# ---------------------------------------------------------------------------

def snapshot_refs(repo_path: Path, config: GitServerConfig) -> dict:
    result = run_command(["git", "for-each-ref", "--format=%(objectname) %(refname)"],
                         config.context(cwd=repo_path), description="listing refs")
    refs = {}
    for line in result.text.splitlines():
        sha, _, ref = line.partition(" ")
        if ref:
            refs[ref] = sha
    return refs


def ref_updates(before: dict, after: dict) -> list[str]:
    """``old new ref`` lines for every ref created, moved or deleted."""
    lines = []
    for ref in sorted(set(before) | set(after)):
        old = before.get(ref, ZERO_SHA)
        new = after.get(ref, ZERO_SHA)
        if old != new:
            lines.append(f"{old} {new} {ref}")
    return lines


def after_receive(repo_path: Path, before: dict, config: GitServerConfig) -> bool:
    """Refresh server info and run the deploy hook. Returns True if the hook ran."""
    context = config.context(cwd=repo_path)
    run_command(["git", "update-server-info"], context, description="updating server info")

    updates = ref_updates(before, snapshot_refs(repo_path, config))
    hook_path = Path(repo_path) / "hooks" / DEPLOY_HOOK
    if not updates:
        log.info("Push changed no refs, nothing to deploy")
        return False
    if not hook_path.exists():
        log.warning(f"No deploy hook at {hook_path}")
        return False

    log.info(f"Running deploy hook for {len(updates)} ref update(s)")
    os.chmod(hook_path, 0o755)
    result = run_command([str(hook_path)], context, description="running deploy hook",
                         input=("\n".join(updates) + "\n").encode())
    if result.text.strip():
        log.info(result.text.rstrip())
    return True
