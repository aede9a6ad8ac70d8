"""Git smart-HTTP server for a single push-to-deploy repository.

The git protocol itself is handled by ``git upload-pack`` / ``git
receive-pack`` in stateless-rpc mode; this module only routes requests,
checks Basic credentials and shuttles bytes to and from the child process.
"""

import base64
import gzip
import hmac
import logging
import re
import zlib
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Optional
from urllib.parse import parse_qs, urlsplit

from hanode.commands import run_command
from hanode.errors import ExternalCommandFailed
from hanode.git_repo import GitServerConfig, after_receive, ensure_repo_exists, snapshot_refs
from hanode.welcome import render_welcome_page

log = logging.getLogger("hanode.git")

SERVICES = {
    "git-upload-pack": "upload-pack",
    "git-receive-pack": "receive-pack",
}

REPO_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")

# Files the dumb protocol reads; kept current by `git update-server-info`.
DUMB_PATHS = re.compile(r"^(HEAD|info/refs|objects/info/[^/]+|objects/[0-9a-f]{2}/[0-9a-f]{38}|objects/pack/pack-[0-9a-f]+\.(pack|idx))$")


def pkt_line(payload: str) -> bytes:
    data = payload.encode()
    return f"{len(data) + 4:04x}".encode() + data


def service_advertisement_header(service: str) -> bytes:
    return pkt_line(f"# service={service}\n") + b"0000"


def check_basic_auth(header: Optional[str], username: str, password: str) -> bool:
    if not header or not header.startswith("Basic "):
        return False
    try:
        decoded = base64.b64decode(header[6:].strip(), validate=True).decode("utf-8")
    except (ValueError, UnicodeDecodeError):
        return False
    user, sep, secret = decoded.partition(":")
    if not sep:
        return False
    user_ok = hmac.compare_digest(user.encode(), username.encode())
    password_ok = hmac.compare_digest(secret.encode(), password.encode())
    return user_ok and password_ok


class GitRequestHandler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"
    server_version = "hanode-git"

    @property
    def config(self) -> GitServerConfig:
        return self.server.config

    def log_message(self, format, *args):
        log.debug(f"{self.address_string()} {format % args}")

    # -- responses ---------------------------------------------------------

    def _send(self, status: int, body: bytes, content_type: str = "text/plain; charset=utf-8",
              headers: Optional[dict] = None):
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        for key, value in (headers or {}).items():
            self.send_header(key, value)
        if status >= 400:
            # The request body may be unread; do not reuse the connection.
            self.send_header("Connection", "close")
            self.close_connection = True
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(body)

    def _bad_request(self):
        self._send(400, b"Bad Request")

    def _not_found(self):
        self._send(404, b"Not Found")

    def _unauthorized(self):
        self._send(401, b"Unauthorized",
                   headers={"WWW-Authenticate": f'Basic realm="{self.config.realm}"'})

    # -- request body ------------------------------------------------------

    def _read_body(self) -> bytes:
        if "chunked" in self.headers.get("Transfer-Encoding", "").lower():
            chunks = []
            while True:
                size_line = self.rfile.readline()
                size = int(size_line.split(b";")[0].strip() or b"0", 16)
                if size == 0:
                    # Trailer section ends with an empty line.
                    while self.rfile.readline() not in (b"\r\n", b"\n", b""):
                        pass
                    break
                chunks.append(self.rfile.read(size))
                self.rfile.readline()
            body = b"".join(chunks)
        else:
            length = int(self.headers.get("Content-Length") or 0)
            body = self.rfile.read(length) if length > 0 else b""

        if self.headers.get("Content-Encoding", "").lower() in ("gzip", "x-gzip"):
            body = gzip.decompress(body)
        return body

    # -- routing -----------------------------------------------------------

    def do_GET(self):
        self._route("GET")

    def do_POST(self):
        self._route("POST")

    def _route(self, method: str):
        url = urlsplit(self.path)
        path = url.path

        if method == "GET" and path in ("/", "/index.html"):
            html = render_welcome_page(self.config)
            self._send(200, html.encode("utf-8"), "text/html; charset=utf-8")
            return

        if path != "/git" and not path.startswith("/git/"):
            self._not_found()
            return

        if not check_basic_auth(self.headers.get("Authorization"),
                                self.config.username, self.config.password):
            self._unauthorized()
            return

        log.debug(f"Git request: {method} {self.path}")
        segments = [s for s in path[len("/git"):].split("/") if s]
        query = parse_qs(url.query)
        self._route_git(method, segments, query)

    def _resolve_repo(self, name: Optional[str]) -> Optional[Path]:
        name = name or self.config.repo_name
        if not REPO_NAME_RE.match(name) or ".." in name:
            return None
        repo_path = Path(self.config.project_root) / name
        if not repo_path.is_dir():
            return None
        return repo_path

    def _route_git(self, method: str, segments: list, query: dict):
        if method == "GET" and segments[-2:] == ["info", "refs"] and "service" in query:
            repo = self._resolve_repo(segments[0] if len(segments) == 3 else None)
            service = query["service"][0]
            if repo is None or service not in SERVICES:
                self._not_found()
                return
            self._advertise_refs(repo, service)
            return

        if method == "POST" and segments and segments[-1] in SERVICES:
            repo = self._resolve_repo(segments[0] if len(segments) == 2 else None)
            if repo is None:
                self._not_found()
                return
            self._stateless_rpc(repo, segments[-1])
            return

        if method == "GET" and len(segments) >= 2:
            repo = self._resolve_repo(segments[0])
            relative = "/".join(segments[1:])
            if repo is not None and DUMB_PATHS.match(relative):
                self._send_repo_file(repo, relative)
                return

        self._not_found()

    # -- git ---------------------------------------------------------------

    def _advertise_refs(self, repo: Path, service: str):
        command = SERVICES[service]
        log.debug(f"Running: git {command} --stateless-rpc --advertise-refs {repo}")
        try:
            result = run_command(["git", command, "--stateless-rpc", "--advertise-refs", str(repo)],
                                 self.config.context(), description=f"advertising refs for {service}")
        except ExternalCommandFailed as e:
            log.error(f"Git command error: {e}")
            self._send(500, b"Internal Server Error")
            return
        body = service_advertisement_header(service) + result.stdout
        self._send(200, body, f"application/x-{service}-advertisement",
                   headers={"Cache-Control": "no-cache"})

    def _stateless_rpc(self, repo: Path, service: str):
        command = SERVICES[service]
        try:
            body = self._read_body()
        except (ValueError, EOFError, gzip.BadGzipFile, zlib.error) as e:
            log.warning(f"Rejecting malformed {service} request body: {e}")
            self._bad_request()
            return
        before = None
        if command == "receive-pack":
            try:
                before = snapshot_refs(repo, self.config)
            except ExternalCommandFailed as e:
                log.error(f"Git command error: {e}")
                self._send(500, b"Internal Server Error")
                return

        log.debug(f"Running git {command} process")
        result = run_command(["git", command, "--stateless-rpc", str(repo)], self.config.context(),
                             description=f"running git {command}", input=body, check=False)
        if result.error_text.strip():
            log.error(f"Git stderr: {result.error_text.rstrip()}")
        log.debug(f"Git {command} process exited with code {result.returncode}")

        if not result.ok:
            self._send(500, b"Internal Server Error")
            return

        if command == "receive-pack":
            log.debug("Triggering deploy hook")
            try:
                after_receive(repo, before, self.config)
            except ExternalCommandFailed as e:
                # The push itself succeeded; only the deployment did not.
                log.error(f"Error in post-receive processing: {e}")

        self._send(200, result.stdout, f"application/x-{service}-result",
                   headers={"Cache-Control": "no-cache"})

    def _send_repo_file(self, repo: Path, relative: str):
        path = (repo / relative).resolve()
        if repo.resolve() not in path.parents or not path.is_file():
            self._not_found()
            return
        content_type = "text/plain; charset=utf-8" if relative in ("HEAD", "info/refs") \
            else "application/octet-stream"
        self._send(200, path.read_bytes(), content_type)


class GitHTTPServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address, config: GitServerConfig):
        self.config = config
        super().__init__(address, GitRequestHandler)


def serve(config: GitServerConfig):
    ensure_repo_exists(config)
    server = GitHTTPServer((config.host, config.port), config)
    log.info(f"Git HTTP server running on port {server.server_address[1]}")
    log.info(f"Serving {config.repo_path}, deploying to {config.deploy_path}")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        log.info("Shutting down")
    finally:
        server.server_close()
