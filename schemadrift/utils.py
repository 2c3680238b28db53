"""
utils
=====

File and Markdown helpers shared by the codec and the report writers.
No database access happens here.
"""

from __future__ import annotations

import re
from pathlib import Path


def write_bytes(path: Path, data: bytes) -> None:
    """Write *data* to *path*, creating missing parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


def write_text(path: Path, content: str) -> None:
    """Write *content* as UTF-8 with ``\\n`` line endings."""
    normalized = content.replace("\r\n", "\n").replace("\r", "\n")
    write_bytes(path, normalized.encode("utf-8"))


def md_anchor(title: str) -> str:
    """Turn a heading into the anchor GitHub generates for it (ASCII titles)."""
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower())
    return slug.strip("-")
