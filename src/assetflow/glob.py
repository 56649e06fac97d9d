# glob.py
# Ordered include/exclude glob sets.
#
# Rules are kept in declared order. Inclusion rules decide which files are
# picked up and in which order (first matching rule wins); exclusion rules
# ("!pattern") are applied afterwards, regardless of where they appear.

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Sequence, Tuple

from .errors import ConfigError

_MAGIC = set("*?[{")


def _expand_braces(pattern: str) -> List[str]:
    """Expand `{a,b}` alternations (nested allowed) into plain patterns."""
    depth = 0
    start = -1
    for i, ch in enumerate(pattern):
        if ch == "{":
            if depth == 0:
                start = i
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth < 0:
                raise ConfigError("Malformed glob: unbalanced '}'", {"pattern": pattern})
            if depth == 0:
                inner = pattern[start + 1:i]
                head, tail = pattern[:start], pattern[i + 1:]
                out: List[str] = []
                for alt in _split_top_level(inner):
                    out.extend(_expand_braces(head + alt + tail))
                return out
    if depth != 0:
        raise ConfigError("Malformed glob: unbalanced '{'", {"pattern": pattern})
    return [pattern]


def _split_top_level(inner: str) -> List[str]:
    parts: List[str] = []
    depth = 0
    current = ""
    for ch in inner:
        if ch == "," and depth == 0:
            parts.append(current)
            current = ""
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
        current += ch
    parts.append(current)
    return parts


def _translate(pattern: str) -> str:
    """Translate one brace-free glob into a regex over '/'-separated paths."""
    out: List[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        ch = pattern[i]
        if ch == "*":
            if pattern[i:i + 2] == "**":
                i += 2
                if i < n and pattern[i] == "/":
                    i += 1
                    out.append("(?:.*/)?")
                else:
                    out.append(".*")
                continue
            out.append("[^/]*")
        elif ch == "?":
            out.append("[^/]")
        elif ch == "[":
            end = pattern.find("]", i + 1)
            if end == -1:
                raise ConfigError("Malformed glob: unbalanced '['", {"pattern": pattern})
            body = pattern[i + 1:end]
            if body.startswith("!"):
                body = "^" + body[1:]
            out.append("[" + body.replace("\\", "\\\\") + "]")
            i = end
        else:
            out.append(re.escape(ch))
        i += 1
    return "".join(out)


def _static_base(pattern: str) -> str:
    parts = pattern.split("/")
    static: List[str] = []
    for part in parts:
        if any(c in _MAGIC for c in part):
            break
        static.append(part)
    if len(static) == len(parts):
        # literal file path
        static = static[:-1]
    base = "/".join(static)
    if pattern.startswith("/") and not base:
        return "/"
    return base or "."


@dataclass(frozen=True)
class _Rule:
    pattern: str
    negated: bool
    base: str
    regex: re.Pattern
    absolute: bool

    def key(self, path: Path, cwd: Path) -> str | None:
        if self.absolute:
            return path.as_posix()
        try:
            return path.relative_to(cwd).as_posix()
        except ValueError:
            return None

    def match(self, path: Path, cwd: Path) -> bool:
        key = self.key(path, cwd)
        return key is not None and self.regex.fullmatch(key) is not None


def _normalize(pattern: str) -> str:
    pattern = pattern.replace("\\", "/")
    while pattern.startswith("./"):
        pattern = pattern[2:]
    return pattern


class GlobSet:
    """
    Ordered set of glob rules.

    Example:
        GlobSet(["src/js/**/*.js", "!src/js/vendors/**/*.js"])
    """

    def __init__(self, patterns: str | Iterable[str]):
        if isinstance(patterns, str):
            patterns = [patterns]
        self.patterns: Tuple[str, ...] = tuple(patterns)
        if not self.patterns:
            raise ConfigError("Glob set has no patterns")

        self._includes: List[List[_Rule]] = []
        self._excludes: List[_Rule] = []
        for raw in self.patterns:
            if not isinstance(raw, str) or not raw.strip():
                raise ConfigError("Malformed glob: empty pattern", {"patterns": list(self.patterns)})
            negated = raw.startswith("!")
            body = _normalize(raw[1:] if negated else raw)
            if not body:
                raise ConfigError("Malformed glob: bare negation", {"pattern": raw})
            rules = [
                _Rule(
                    pattern=p,
                    negated=negated,
                    base=_static_base(p),
                    regex=re.compile(_translate(p)),
                    absolute=p.startswith("/"),
                )
                for p in _expand_braces(body)
            ]
            if negated:
                self._excludes.extend(rules)
            else:
                self._includes.append(rules)

        if not self._includes:
            raise ConfigError("Glob set has only exclusions", {"patterns": list(self.patterns)})

    def __repr__(self) -> str:
        return f"GlobSet({list(self.patterns)!r})"

    def __add__(self, other: GlobSet | Sequence[str]) -> GlobSet:
        extra = other.patterns if isinstance(other, GlobSet) else tuple(other)
        return GlobSet(self.patterns + extra)

    def roots(self, cwd: Path | str = ".") -> List[Path]:
        """Static directories that contain every possible match."""
        cwd = Path(cwd).resolve()
        seen: List[Path] = []
        for rules in self._includes:
            for rule in rules:
                root = (cwd / rule.base).resolve()
                if root not in seen:
                    seen.append(root)
        return seen

    def _excluded(self, path: Path, cwd: Path) -> bool:
        return any(rule.match(path, cwd) for rule in self._excludes)

    def matches(self, path: Path | str, cwd: Path | str = ".") -> bool:
        cwd = Path(cwd).resolve()
        path = Path(path)
        if not path.is_absolute():
            path = cwd / path
        if not any(rule.match(path, cwd) for rules in self._includes for rule in rules):
            return False
        return not self._excluded(path, cwd)

    def resolve(self, cwd: Path | str = ".") -> List[Tuple[Path, Path]]:
        """
        Return matching files as (path, base) pairs in declared glob order.

        Within one inclusion rule files are ordered by their path parts, so
        the same tree always resolves to the same sequence.
        """
        cwd = Path(cwd).resolve()
        seen: set[Path] = set()
        out: List[Tuple[Path, Path]] = []

        for rules in self._includes:
            found: List[Tuple[Path, Path]] = []
            for rule in rules:
                base = (cwd / rule.base).resolve()
                for path in _walk(base):
                    if path not in seen and rule.match(path, cwd):
                        seen.add(path)
                        found.append((path, base))
            found.sort(key=lambda pb: pb[0].parts)
            out.extend(found)

        return [(p, b) for p, b in out if not self._excluded(p, cwd)]


def _walk(root: Path) -> Iterable[Path]:
    if root.is_file():
        yield root
        return
    if not root.is_dir():
        return
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for name in sorted(filenames):
            yield Path(dirpath) / name
