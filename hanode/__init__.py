"""hanode: push-to-deploy tooling (project bundler + git-over-HTTP server)."""

__version__ = "0.3.0"
