"""Error types raised by the inkpress document pipeline.

Every stage raises a subclass of PipelineError carrying the source path and,
where it can be determined, the line number that triggered the failure.
"""

from __future__ import annotations

from pathlib import Path


class PipelineError(Exception):
    """Base error for a single document's pipeline.

    Attributes:
        message: Human-readable error message.
        source_path: Path to the document that failed, if known.
        line: 1-based line number in the source file, if known.
    """

    def __init__(
        self,
        message: str,
        source_path: Path | str | None = None,
        line: int | None = None,
    ):
        self.message = message
        self.source_path = Path(source_path) if source_path is not None else None
        self.line = line
        super().__init__(self._format())

    def _format(self) -> str:
        if self.source_path is None:
            return self.message
        if self.line is None:
            return f"{self.source_path}: {self.message}"
        return f"{self.source_path}:{self.line}: {self.message}"


class ReadError(PipelineError):
    """The document could not be read as UTF-8 text."""


class MetadataError(PipelineError):
    """The front matter block is malformed or incomplete."""


class UnresolvedReferenceError(PipelineError):
    """A reference-style link names a label that is never defined.

    Attributes:
        label: The label as written in the document.
    """

    def __init__(
        self,
        label: str,
        source_path: Path | str | None = None,
        line: int | None = None,
    ):
        self.label = label
        super().__init__(f"unresolved link reference: [{label}]", source_path, line)


class AssemblyError(PipelineError):
    """A page cannot be assembled from the parsed metadata."""
