"""Runtime settings.

Values come from the environment (or a ``.env`` file next to the working
directory) and fall back to the defaults the Home Assistant add-on image uses.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# ---------------------------------------------------------------------------
# Monitor
# ---------------------------------------------------------------------------

CONFIG_FILENAME = os.getenv("HANODE_CONFIG_FILENAME", "hanode.config.json")
LAUNCHER_NAME = os.getenv("HANODE_LAUNCHER_NAME", "run-hanode-project.sh")
LAUNCHER_SHEBANG = os.getenv("HANODE_LAUNCHER_SHEBANG", "#!/usr/bin/with-contenv bashio")

# Variables the launcher exports, read from the add-on options via bashio.
LAUNCHER_EXPORTS = {
    "HOME_ASSISTANT_URL": "home_assistant_url",
    "HOME_ASSISTANT_ACCESS_TOKEN": "home_assistant_access_token",
}

LOG_LEVEL = os.getenv("HANODE_LOG_LEVEL", "INFO").upper()

# ---------------------------------------------------------------------------
# Git server
# ---------------------------------------------------------------------------

GIT_PROJECT_ROOT = Path(os.getenv("GIT_PROJECT_ROOT", "/home/git/repos"))
GIT_REPO_NAME = os.getenv("GIT_REPO_NAME", "my-hanode-project.git")
GIT_DEPLOY_PATH = Path(os.getenv("GIT_DEPLOY_PATH", "/var/www/hanode-app"))
GIT_USERNAME = os.getenv("GIT_USERNAME", "hanode")
GIT_PASSWORD = os.getenv("GIT_PASSWORD", "hanode")
GIT_REALM = os.getenv("GIT_REALM", "Git Repository")
GIT_HOST = os.getenv("GIT_HOST", "0.0.0.0")
GIT_PORT = int(os.getenv("GIT_PORT", "80"))
# Address users reach the server at (the add-on maps port 80 to 7622).
GIT_PUBLIC_URL = os.getenv("GIT_PUBLIC_URL", "http://localhost:7622")
GIT_DEPLOY_BRANCHES = tuple(
    b.strip() for b in os.getenv("GIT_DEPLOY_BRANCHES", "master,main,release").split(",") if b.strip()
)
GIT_HOOK_LOG = os.getenv("GIT_HOOK_LOG", "/tmp/git-hook.log")
