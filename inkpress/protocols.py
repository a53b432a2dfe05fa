"""Protocol definitions for inkpress.

Each pipeline stage is described by a small protocol so that ContentPipeline
can be assembled from alternative implementations, for example in tests.
"""

from __future__ import annotations

from abc import abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .content import Page
    from .frontmatter import FrontMatter
    from .loader import Document
    from .renderers import RenderedBody


@runtime_checkable
class DocumentLoader(Protocol):
    """Protocol for reading a source file into a Document."""

    @abstractmethod
    def load(self, path: Path) -> Document:
        """Read and split a content file.

        Raises:
            ReadError: If the file cannot be read as UTF-8 text.
        """
        ...

    @abstractmethod
    def iter_files(self, content_dir: Path) -> list[Path]:
        """List the content files under a directory."""
        ...


@runtime_checkable
class MetadataParser(Protocol):
    """Protocol for parsing a raw front matter block."""

    @abstractmethod
    def parse(
        self, raw: str, source_path: Path | None = None, line_offset: int = 1
    ) -> FrontMatter:
        """Parse front matter text.

        Raises:
            MetadataError: If the block is malformed or incomplete.
        """
        ...


@runtime_checkable
class ContentRenderer(Protocol):
    """Protocol for rendering a document body."""

    @abstractmethod
    def render(
        self, body: str, source_path: Path | None = None, line_offset: int = 1
    ) -> RenderedBody:
        """Render a body to HTML blocks.

        Raises:
            UnresolvedReferenceError: If a reference label has no definition.
        """
        ...

    @property
    @abstractmethod
    def source_type(self) -> str:
        """Return the source type identifier (e.g., 'markdown')."""
        ...


@runtime_checkable
class PageBuilder(Protocol):
    """Protocol for assembling a Page from parsed parts."""

    @abstractmethod
    def assemble(
        self, front_matter: FrontMatter, rendered: RenderedBody, source_path: Path
    ) -> Page:
        """Assemble a Page.

        Raises:
            AssemblyError: If required fields are missing.
        """
        ...
