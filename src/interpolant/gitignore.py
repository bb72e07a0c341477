"""Append ignore rules to a project's .gitignore."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Optional

log = logging.getLogger(__name__)


def _rule_pattern(rule: str) -> re.Pattern[str]:
    # Match the rule with or without a leading slash, on its own line
    bare = rule.lstrip("/")
    return re.compile(rf"^/?{re.escape(bare)}\s*$", re.MULTILINE)


def register_gitignore(
    rule: str,
    comment: Optional[str] = None,
    root: Path | str = ".",
    gitignore_file: str = ".gitignore",
) -> Path:
    """Ensure `<root>/<gitignore_file>` contains *rule* and return its path.

    When *comment* is given it is written as a ``# comment`` line above a newly
    added rule. Existing rules are left untouched.
    """
    gitignore_path = Path(root) / gitignore_file
    if not gitignore_path.exists():
        content = ""
    else:
        content = gitignore_path.read_text(encoding="utf-8")
        if _rule_pattern(rule).search(content) is not None:
            return gitignore_path

    if content and not content.endswith("\n"):
        content += "\n"
    if comment:
        content += f"# {comment}\n"
    content += f"{rule}\n"
    gitignore_path.write_text(content, encoding="utf-8")
    log.info(f"Added '{rule}' to {gitignore_path}")
    return gitignore_path
