"""Glob matching and specificity ranking for injectable partials.

Patterns are POSIX-style with globstar and brace support:

    **/*.sql          any .sql file at any depth
    reports/*.sql     .sql files directly under reports/
    {src,lib}/*.py    alternation
    reports/x.sql     not a glob: anchored exact match

Specificity is a (wildcard weight, literal length) pair where the weight is 2
per ``**`` plus 1 per remaining ``*`` or ``?``. Lower weight wins, then the
longer pattern.
"""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass

GLOB_CHARS_RX = re.compile(r"[*?\[{]")


def normalize(path: str) -> str:
    """Normalize a POSIX path (``./a//b/../c`` -> ``a/c``)."""
    return posixpath.normpath(path.replace("\\", "/"))


def is_glob(pattern: str) -> bool:
    """Return True when *pattern* contains glob syntax."""
    return bool(GLOB_CHARS_RX.search(pattern))


def wildcard_weight(pattern: str) -> int:
    """Count wildcards: 2 per ``**`` and 1 per remaining ``*``/``?``."""
    star_star = pattern.count("**") * 2
    singles = len(re.findall(r"[*?]", pattern.replace("**", "")))
    return star_star + singles


def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Compile *pattern* into an anchored regular expression."""
    if not is_glob(pattern):
        return re.compile(f"^{re.escape(normalize(pattern))}$")

    out: list[str] = []
    depth = 0
    i = 0
    n = len(pattern)

    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern.startswith("**", i):
                end = i + 2
                seg_start = i == 0 or pattern[i - 1] == "/"
                seg_end = end == n or pattern[end] == "/"
                if seg_start and seg_end:
                    if end < n:
                        out.append("(?:[^/]*/)*")
                        i = end + 1
                    else:
                        out.append(".*")
                        i = end
                    continue
                out.append("[^/]*")
                i = end
                continue
            out.append("[^/]*")
            i += 1
        elif c == "?":
            out.append("[^/]")
            i += 1
        elif c == "[":
            close = pattern.find("]", i + 2)
            if close == -1:
                out.append(re.escape(c))
                i += 1
                continue
            body = pattern[i + 1 : close].replace("\\", "\\\\")
            if body.startswith("!"):
                body = "^" + body[1:]
            out.append(f"[{body}]")
            i = close + 1
        elif c == "{" and pattern.find("}", i) != -1:
            out.append("(?:")
            depth += 1
            i += 1
        elif c == "," and depth:
            out.append("|")
            i += 1
        elif c == "}" and depth:
            out.append(")")
            depth -= 1
            i += 1
        elif c == "\\" and i + 1 < n:
            out.append(re.escape(pattern[i + 1]))
            i += 2
        else:
            out.append(re.escape(c))
            i += 1

    out.extend(")" * depth)
    return re.compile("^" + "".join(out) + "$")


@dataclass(frozen=True)
class GlobEntry:
    """One injection-index entry: a compiled glob owned by a partial."""

    identity: str
    glob: str
    matcher: re.Pattern[str]
    wildcard_weight: int
    literal_length: int

    @classmethod
    def build(cls, identity: str, glob: str) -> GlobEntry:
        g = normalize(glob)
        return cls(
            identity=identity,
            glob=g,
            matcher=glob_to_regex(g),
            wildcard_weight=wildcard_weight(g),
            literal_length=len(g),
        )

    def matches(self, path: str) -> bool:
        return self.matcher.match(path) is not None


def rank(entries: list[GlobEntry], path: str) -> list[GlobEntry]:
    """Return the entries matching *path*, most specific first.

    The sort is stable, so entries that tie on both keys keep index order.
    """
    p = normalize(path)
    hits = [e for e in entries if e.matches(p)]
    return sorted(hits, key=lambda e: (e.wildcard_weight, -e.literal_length))
