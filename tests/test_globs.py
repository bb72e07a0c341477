"""Tests for glob matching and specificity."""

import pytest

from interpolant.globs import GlobEntry, glob_to_regex, normalize, rank, wildcard_weight


@pytest.mark.parametrize(
    "pattern,path,expected",
    [
        ("**/*.sql", "reports/x.sql", True),
        ("**/*.sql", "x.sql", True),
        ("**/*.sql", "a/b/c/x.sql", True),
        ("reports/*.sql", "reports/x.sql", True),
        ("reports/*.sql", "reports/sub/x.sql", False),
        ("reports/**", "reports/sub/x.sql", True),
        ("*.sql", "reports/x.sql", False),
        ("q?.sql", "q1.sql", True),
        ("q[0-9].sql", "q7.sql", True),
        ("q[!0-9].sql", "q7.sql", False),
        ("{src,lib}/*.py", "lib/a.py", True),
        ("{src,lib}/*.py", "bin/a.py", False),
        ("reports/x.sql", "reports/x.sql", True),
        ("reports/x.sql", "reports/x.sqlite", False),
    ],
)
def test_matching(pattern, path, expected):
    """Globs follow POSIX globstar semantics."""
    assert (glob_to_regex(pattern).match(path) is not None) is expected


def test_wildcard_weight():
    """2 per globstar plus 1 per remaining wildcard."""
    assert wildcard_weight("**/*.sql") == 3
    assert wildcard_weight("reports/*.sql") == 1
    assert wildcard_weight("reports/x.sql") == 0
    assert wildcard_weight("a/**/b?/*") == 4


def test_normalize():
    """Paths are normalized before matching."""
    assert normalize("./reports//x.sql") == "reports/x.sql"
    assert normalize("a\\b\\..\\c.sql") == "a/c.sql"


def test_rank_prefers_fewer_wildcards_then_longer_globs():
    """Most specific entries come first."""
    entries = [
        GlobEntry.build("any", "**/*.sql"),
        GlobEntry.build("reports", "reports/*.sql"),
        GlobEntry.build("exact", "reports/x.sql"),
        GlobEntry.build("short", "*/*.sql"),
    ]
    ranked = [e.identity for e in rank(entries, "./reports/x.sql")]
    assert ranked == ["exact", "reports", "short", "any"]


def test_rank_ties_keep_index_order():
    """Equal weight and length resolve by position."""
    entries = [GlobEntry.build("first", "a/*.sql"), GlobEntry.build("second", "*/q.sql")]
    assert [e.identity for e in rank(entries, "a/q.sql")] == ["first", "second"]
