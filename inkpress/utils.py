"""Utility functions for inkpress.

This module contains string and path helpers shared by the pipeline stages.

Key functions:
    slugify: Convert filenames and titles to URL slugs.
    strip_date_prefix: Drop a YYYY-MM-DD- prefix from a filename stem.
    first_paragraph: Plain-text excerpt of a Markdown paragraph.
    escape_html: Escape special HTML characters.
    is_markdown: Check if a path is a Markdown file.
    ensure_clean_dir: Ensure a directory exists and is empty.
    build_taxonomy_index: Build an index of pages by category or tag.
"""

from __future__ import annotations

import re
import shutil
from collections.abc import Iterable
from pathlib import Path

MARKDOWN_SUFFIXES = (".md", ".markdown")

_TAG_RE = re.compile(r"<[^>]+>")
_INLINE_LINK_RE = re.compile(r"!?\[([^\]]*)\](?:\([^)]*\)|\[[^\]]*\])")
_EMPHASIS_RE = re.compile(r"(\*{1,3}|_{1,3}|`+)")


def strip_date_prefix(name: str) -> str:
    """Drop a leading YYYY-MM-DD- prefix from a filename stem.

    Examples:
        >>> strip_date_prefix("2016-05-05-monads-in-swift")
        'monads-in-swift'
    """
    parts = name.split("-")
    if len(parts) >= 4 and all(p.isdigit() for p in parts[:3]):
        return "-".join(parts[3:])
    return name


def slugify(name: str, strip_date: bool = True) -> str:
    """Convert a filename stem or title to a slug.

    Args:
        name: Filename stem or free text.
        strip_date: Drop a leading YYYY-MM-DD- prefix first.

    Returns:
        URL-friendly slug.
    """
    cleaned = re.sub(r"[^a-zA-Z0-9]+", "-", strip_date_prefix(name) if strip_date else name)
    cleaned = cleaned.strip("-").lower()
    return cleaned or "index"


def first_paragraph(text: str, limit: int | None = None) -> str:
    """Reduce a Markdown paragraph to plain text.

    Inline links keep their text, HTML tags and emphasis markers are
    dropped and whitespace is collapsed.

    Args:
        text: Markdown source of a single paragraph.
        limit: Optional maximum character length of the result.

    Returns:
        Cleaned plain text.
    """
    para = _INLINE_LINK_RE.sub(lambda m: m.group(1), text)
    para = _TAG_RE.sub("", para)
    para = _EMPHASIS_RE.sub("", para)
    collapsed = " ".join(para.split())
    if limit is not None:
        return collapsed[:limit]
    return collapsed


def escape_html(text: str) -> str:
    """Escape special HTML characters in a string.

    Examples:
        >>> escape_html('xs >>= f & "g"')
        'xs &gt;&gt;= f &amp; &quot;g&quot;'
    """
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def is_markdown(path: Path) -> bool:
    """Check if a path is a Markdown file (.md or .markdown)."""
    return path.suffix.lower() in MARKDOWN_SUFFIXES


def is_internal_path(path: Path) -> bool:
    """Check if any component of a relative path starts with an underscore."""
    return any(part.startswith("_") for part in path.parts)


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty.

    Args:
        path: Directory path to clean or create.
    """
    if path.exists():
        shutil.rmtree(str(path))
    path.mkdir(parents=True, exist_ok=True)


def build_taxonomy_index(pages: Iterable, attribute: str) -> dict[str, list]:
    """Build an index mapping terms to the pages carrying them.

    A page listing the same term twice appears once under that term.

    Args:
        pages: Iterable of Page objects.
        attribute: Name of the term sequence attribute ("categories" or "tags").

    Returns:
        Dictionary mapping each term to a list of pages, in page order.
    """
    index: dict[str, list] = {}
    for page in pages:
        for term in getattr(page, attribute):
            bucket = index.setdefault(term, [])
            if not bucket or bucket[-1] is not page:
                bucket.append(page)
    return index
