"""Command line entry points: ``hanode-monitor`` and ``hanode-git-server``."""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from hanode import __version__, settings
from hanode.bundle import run_monitor
from hanode.errors import HanodeError
from hanode.git_repo import GitServerConfig

log = logging.getLogger("hanode")


def configure_logging(level: str = settings.LOG_LEVEL):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def build_monitor_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hanode-monitor", description="Hanode monitor")
    parser.add_argument("src_dir", type=Path,
                        help=f"Path to the source dir, containing {settings.CONFIG_FILENAME}")
    parser.add_argument("dest_dir", type=Path, help="Path to the destination directory")
    parser.add_argument("--log-level", default=settings.LOG_LEVEL)
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def monitor_main(argv: Optional[list[str]] = None) -> int:
    args = build_monitor_parser().parse_args(argv)
    configure_logging(args.log_level)

    log.info("=" * 60)
    log.info(f"HANODE MONITOR | {args.src_dir} -> {args.dest_dir}")
    log.info("=" * 60)
    try:
        bundles = run_monitor(args.src_dir, args.dest_dir)
    except HanodeError as e:
        log.error(str(e))
        return 1

    log.info(f"🏁 {len(bundles)} project(s) bundled")
    return 0


def build_git_server_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hanode-git-server",
                                     description="Git over HTTP with push-to-deploy")
    parser.add_argument("--host", default=settings.GIT_HOST)
    parser.add_argument("--port", type=int, default=settings.GIT_PORT)
    parser.add_argument("--root", type=Path, default=settings.GIT_PROJECT_ROOT,
                        help="Directory holding the bare repositories")
    parser.add_argument("--repo", default=settings.GIT_REPO_NAME, help="Repository name")
    parser.add_argument("--deploy-path", type=Path, default=settings.GIT_DEPLOY_PATH)
    parser.add_argument("--log-level", default=settings.LOG_LEVEL)
    return parser


def git_server_main(argv: Optional[list[str]] = None) -> int:
    from hanode.git_server import serve

    args = build_git_server_parser().parse_args(argv)
    configure_logging(args.log_level)
    config = GitServerConfig(
        project_root=args.root,
        repo_name=args.repo,
        deploy_path=args.deploy_path,
        host=args.host,
        port=args.port,
    )
    try:
        serve(config)
    except HanodeError as e:
        log.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(monitor_main())
