"""Document loading for inkpress.

This module reads content files and splits them into a front matter block
and a body block. It does not interpret either part.

Key classes:
- Document: Immutable raw input unit.
- FileDocumentLoader: Reads and discovers Markdown files on disk.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from .errors import ReadError
from .utils import is_internal_path, is_markdown

log = logging.getLogger(__name__)

DELIMITER_RE = re.compile(r"^---[ \t]*(?:\r?\n|$)", re.MULTILINE)
BARE_KEY_RE = re.compile(r"^[A-Za-z_][\w-]*[ \t]*:")
_BOM = "\ufeff"


@dataclass(frozen=True)
class Document:
    """Raw content file split into front matter and body.

    Attributes:
        source_path: Path the document was read from.
        raw_text: Full decoded file content. A leading UTF-8 BOM is not part
            of it, so for such files the parts rebuild the file without its
            BOM.
        front_matter_raw: Text between the delimiters (empty if none).
        body_raw: Everything after the closing delimiter.
        open_delimiter: The opening ``---`` line as written, or "".
        close_delimiter: The closing ``---`` line as written, or "".
        body_line: 1-based line number where the body starts.
        front_matter_line: 1-based line number of the first front matter line.
    """

    source_path: Path
    raw_text: str
    front_matter_raw: str
    body_raw: str
    open_delimiter: str = ""
    close_delimiter: str = ""
    body_line: int = 1
    front_matter_line: int = 1

    @property
    def has_front_matter(self) -> bool:
        return bool(self.close_delimiter)

    @classmethod
    def from_text(cls, text: str, source_path: Path, allow_bare: bool = True) -> Document:
        """Split raw text into a Document."""
        front, body, opening, closing = split_front_matter(text, allow_bare=allow_bare)
        front_line = 2 if opening else 1
        body_line = 1
        if closing:
            body_line = (opening + front + closing).count("\n") + 1
        return cls(
            source_path=source_path,
            raw_text=text,
            front_matter_raw=front,
            body_raw=body,
            open_delimiter=opening,
            close_delimiter=closing,
            body_line=body_line,
            front_matter_line=front_line,
        )


def split_front_matter(text: str, allow_bare: bool = True) -> tuple[str, str, str, str]:
    """Split text into (front_matter_raw, body_raw, open_delimiter, close_delimiter).

    The delimiters are returned exactly as written so that
    ``open + front + close + body == text`` whenever front matter is found.
    Text without a delimiter pattern is returned whole as the body.

    Args:
        text: Raw document text.
        allow_bare: Also accept a header of ``key: value`` lines closed by a
            single ``---`` line with no opening delimiter.

    Returns:
        Tuple of the four parts.
    """
    opening = DELIMITER_RE.match(text)
    if opening:
        closing = DELIMITER_RE.search(text, opening.end())
        if closing is None:
            return "", text, "", ""
        return (
            text[opening.end() : closing.start()],
            text[closing.end() :],
            opening.group(0),
            closing.group(0),
        )

    if not allow_bare:
        return "", text, "", ""
    closing = DELIMITER_RE.search(text)
    if closing is None or closing.start() == 0:
        return "", text, "", ""
    header = text[: closing.start()]
    if not _looks_like_bare_header(header):
        return "", text, "", ""
    return header, text[closing.end() :], "", closing.group(0)


def _looks_like_bare_header(header: str) -> bool:
    lines = [line for line in header.splitlines() if line.strip()]
    if not lines or not BARE_KEY_RE.match(lines[0]):
        return False
    for line in lines[1:]:
        if BARE_KEY_RE.match(line) or line[:1] in (" ", "\t") or line.lstrip().startswith("- "):
            continue
        return False
    return True


class FileDocumentLoader:
    """Loads Documents from files on disk.

    Attributes:
        allow_bare: Whether headers without an opening delimiter are accepted.
    """

    def __init__(self, allow_bare: bool = True):
        self.allow_bare = allow_bare

    def load(self, path: Path) -> Document:
        """Read a file and split it into a Document.

        Args:
            path: Path to the content file.

        Returns:
            Document for the file.

        Raises:
            ReadError: If the file is missing, unreadable or not UTF-8.
        """
        path = Path(path)
        try:
            data = path.read_bytes()
        except FileNotFoundError as exc:
            raise ReadError("file not found", path) from exc
        except IsADirectoryError as exc:
            raise ReadError("is a directory", path) from exc
        except OSError as exc:
            raise ReadError(f"cannot read file: {exc.strerror or exc}", path) from exc
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            line = data[: exc.start].count(b"\n") + 1
            raise ReadError("file is not valid UTF-8 text", path, line) from exc
        if text.startswith(_BOM):
            text = text[len(_BOM) :]
        log.debug("Loaded %s (%d bytes)", path, len(data))
        return Document.from_text(text, path, allow_bare=self.allow_bare)

    def iter_files(self, content_dir: Path) -> list[Path]:
        """List Markdown files under a content directory.

        Files inside directories whose name starts with ``_`` are skipped.

        Args:
            content_dir: Directory to search.

        Returns:
            Sorted list of paths to Markdown files.
        """
        files: list[Path] = []
        for path in content_dir.rglob("*"):
            if path.is_dir() or not is_markdown(path):
                continue
            rel = path.relative_to(content_dir)
            if is_internal_path(rel.parent):
                continue
            files.append(path)
        return sorted(files)
