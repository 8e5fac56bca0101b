"""Gitignore-style rules that stop generated files from being written.

Rules live in ``.specgen-ignore`` at the output root:

    # comment
    README.md          any file named README.md, at any depth
    /setup.py          only the setup.py at the output root
    docs/              everything below any docs directory
    src/**/test_*.py   glob anchored at the output root
    !docs/index.md     re-include a file excluded by an earlier rule

The last matching rule decides. With no rules file every path is allowed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path, PurePosixPath

logger = logging.getLogger(__name__)

IGNORE_FILENAME = ".specgen-ignore"


def _match_segments(pattern: tuple[str, ...], parts: tuple[str, ...]) -> bool:
    """Glob-match path segments; ``*`` stays inside a segment, ``**`` spans any number."""
    if not pattern:
        return not parts
    head, rest = pattern[0], pattern[1:]
    if head == "**":
        return any(_match_segments(rest, parts[i:]) for i in range(len(parts) + 1))
    return bool(parts) and fnmatchcase(parts[0], head) and _match_segments(rest, parts[1:])


@dataclass(frozen=True)
class IgnoreRule:
    pattern: str
    negated: bool = False
    directory_only: bool = False
    anchored: bool = False

    @classmethod
    def parse(cls, line: str) -> IgnoreRule | None:
        line = line.strip()
        if not line or line.startswith("#"):
            return None
        negated = line.startswith("!")
        if negated:
            line = line[1:]
        directory_only = line.endswith("/")
        line = line.rstrip("/")
        anchored = "/" in line
        line = line.lstrip("/")
        if not line:
            return None
        return cls(line, negated, directory_only, anchored)

    def _match_anchored(self, parts: tuple[str, ...]) -> bool:
        return _match_segments(tuple(self.pattern.split("/")), parts)

    def matches(self, relative: PurePosixPath) -> bool:
        parts = relative.parts
        # Parent directories match every rule; the file itself skips directory-only rules
        candidates = [(i, i < len(parts)) for i in range(1, len(parts) + 1)]
        for end, is_directory in candidates:
            if self.directory_only and not is_directory:
                continue
            if self.anchored:
                if self._match_anchored(parts[:end]):
                    return True
            elif fnmatchcase(parts[end - 1], self.pattern):
                return True
        return False


class IgnoreMatcher:
    """Decide whether a path below ``root`` may be written."""

    def __init__(self, root: Path, rules: list[IgnoreRule] | None = None) -> None:
        self.root = Path(root)
        self.rules = rules or []

    @classmethod
    def from_file(cls, root: Path, rules_file: Path) -> IgnoreMatcher:
        rules: list[IgnoreRule] = []
        if rules_file.is_file():
            with open(rules_file, encoding="utf-8") as f:
                for line in f:
                    rule = IgnoreRule.parse(line)
                    if rule is not None:
                        rules.append(rule)
        return cls(root, rules)

    def _relative(self, path: Path | str) -> PurePosixPath | None:
        path = Path(path)
        for base, candidate in ((self.root, path), (self.root.resolve(), path.resolve())):
            try:
                return PurePosixPath(candidate.relative_to(base).as_posix())
            except ValueError:
                continue
        if path.is_absolute():
            return None
        return PurePosixPath(path.as_posix())

    def allows(self, path: Path | str) -> bool:
        relative = self._relative(path)
        if relative is None or not self.rules:
            return True
        allowed = True
        for rule in self.rules:
            if rule.matches(relative):
                allowed = rule.negated
        return allowed


def load_ignore_matcher(output_dir: Path, override: Path | str | None = None) -> IgnoreMatcher:
    """Read ignore rules from ``override`` if usable, else from the output directory."""
    if override is not None:
        override_path = Path(override)
        if override_path.is_file():
            return IgnoreMatcher.from_file(output_dir, override_path)
        logger.warning(
            "Ignore file specified at %s is not valid. This will fall back to an"
            " existing ignore file if present in the output directory.",
            override,
        )
    return IgnoreMatcher.from_file(output_dir, Path(output_dir) / IGNORE_FILENAME)
