"""Gitignore-style path exclusion.

Patterns are compiled to regular expressions once, then evaluated in order
with the last matching rule winning. Paths are always relative to the
project root and use ``/`` separators.
"""

import re
from dataclasses import dataclass
from typing import Iterable, Union


@dataclass(frozen=True)
class IgnoreRule:
    pattern: str
    regex: "re.Pattern[str]"
    negated: bool = False
    dir_only: bool = False

    def applies_to(self, path: str, is_dir: bool) -> bool:
        if self.dir_only and not is_dir:
            return False
        return self.regex.match(path) is not None


def _strip_trailing_spaces(line: str) -> str:
    # Trailing spaces are dropped unless escaped with a backslash.
    while line.endswith(" ") and not line.endswith("\\ "):
        line = line[:-1]
    return line


def _translate_class(pattern: str, i: int) -> tuple[str, int]:
    """Translate a ``[...]`` class starting at ``pattern[i]``."""
    j = i + 1
    if j < len(pattern) and pattern[j] in "!^":
        j += 1
    if j < len(pattern) and pattern[j] == "]":
        j += 1
    while j < len(pattern) and pattern[j] != "]":
        j += 1
    if j >= len(pattern):
        return re.escape("["), i + 1
    body = pattern[i + 1:j]
    negate = body[:1] in ("!", "^")
    if negate:
        body = body[1:]
    body = body.replace("\\", "\\\\").replace("[", "\\[")
    if body.startswith("]"):
        body = "\\" + body
    # A class never matches the path separator, not even through a range.
    if negate:
        return "[^/" + body + "]", j + 1
    return "(?!/)[" + body + "]", j + 1


def _translate(pattern: str) -> str:
    """Translate an anchored gitignore glob into a regex body."""
    out = []
    i, n = 0, len(pattern)
    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern.startswith("**", i):
                at_start = i == 0 or pattern[i - 1] == "/"
                after = i + 2
                if at_start and after == n:
                    out.append(".*")
                    i = after
                    continue
                if at_start and pattern.startswith("/", after):
                    # "**/" matches zero or more leading directories.
                    out.append("(?:.*/)?")
                    i = after + 1
                    continue
            while i < n and pattern[i] == "*":
                i += 1
            out.append("[^/]*")
            continue
        if c == "?":
            out.append("[^/]")
        elif c == "[":
            translated, i = _translate_class(pattern, i)
            out.append(translated)
            continue
        elif c == "\\" and i + 1 < n:
            i += 1
            out.append(re.escape(pattern[i]))
        else:
            out.append(re.escape(c))
        i += 1
    return "".join(out)


def compile_rule(line: str):
    """Compile one gitignore line, or return None for blanks and comments."""
    line = line.rstrip("\r\n")
    if not line.strip() or line.startswith("#"):
        return None
    line = _strip_trailing_spaces(line)

    negated = False
    if line.startswith("!"):
        negated = True
        line = line[1:]
    elif line.startswith("\\#") or line.startswith("\\!"):
        line = line[1:]

    dir_only = line.endswith("/")
    body = line.rstrip("/")
    if not body:
        return None

    anchored = "/" in body
    body = body.lstrip("/")
    regex = _translate(body)
    if not anchored:
        regex = "(?:.*/)?" + regex
    return IgnoreRule(pattern=line, regex=re.compile("^" + regex + "$", re.DOTALL),
                      negated=negated, dir_only=dir_only)


class IgnoreMatcher:
    """Accumulates gitignore pattern blocks and answers exclusion queries."""

    def __init__(self, *blocks: Union[str, Iterable[str]]):
        self.rules: list[IgnoreRule] = []
        for block in blocks:
            self.add(block)

    def add(self, block: Union[str, Iterable[str]]) -> "IgnoreMatcher":
        lines = block.splitlines() if isinstance(block, str) else block
        for line in lines:
            rule = compile_rule(line)
            if rule is not None:
                self.rules.append(rule)
        return self

    def _decide(self, path: str, is_dir: bool) -> bool:
        ignored = False
        for rule in self.rules:
            if rule.applies_to(path, is_dir):
                ignored = not rule.negated
        return ignored

    def matches(self, relative_path: str, is_dir: bool = False) -> bool:
        path = str(relative_path).replace("\\", "/")
        while path.startswith("./"):
            path = path[2:]
        path = path.lstrip("/")
        if path.endswith("/"):
            is_dir = True
            path = path.rstrip("/")
        if not path:
            return False

        # A path inside an excluded directory can never be re-included.
        parts = path.split("/")
        for depth in range(1, len(parts)):
            if self._decide("/".join(parts[:depth]), True):
                return True
        return self._decide(path, is_dir)
