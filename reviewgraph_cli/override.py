"""Extract an explicit review order from free-text review requests.

Recognized forms::

    Review order: models.py, utils.py -> main.py

    ## Review order
    1. `models.py`
    2. `utils.py`
"""

from __future__ import annotations

import re
from typing import List, Optional

_HEADING = re.compile(r"^\s*#{1,6}\s*review[\s_-]*order\b[^\n]*$", re.IGNORECASE)
_INLINE = re.compile(r"^\s*[*_]*review[\s_-]*order[*_]*\s*:[*_]*\s*(.*)$", re.IGNORECASE)
_BULLET = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+")
_SEPARATOR = re.compile(r",|->|=>|→|;")


def parse_override_list(text: str) -> List[str]:
    """Split a comma, arrow or line separated list of node ids."""
    ids: List[str] = []
    for line in text.splitlines():
        line = _BULLET.sub("", line)
        for piece in _SEPARATOR.split(line):
            piece = piece.strip().strip("`'\"").strip()
            if piece:
                ids.append(piece)
    return ids


def extract_override(text: str) -> Optional[List[str]]:
    """Return the ids listed under a "review order" section, if any."""
    lines = text.splitlines()
    for i, line in enumerate(lines):
        inline = _INLINE.match(line)
        if inline and inline.group(1).strip():
            return parse_override_list(inline.group(1))
        if not (inline or _HEADING.match(line)):
            continue

        items: List[str] = []
        for follow in lines[i + 1:]:
            if follow.lstrip().startswith("#"):
                break
            if not follow.strip():
                if items:
                    break
                continue
            items.append(follow)
        return parse_override_list("\n".join(items))
    return None
