"""Page assembly for inkpress.

This module merges parsed front matter and a rendered body into an
immutable Page, and chains the pipeline stages for a single document.

Key classes:
- Page: Frozen dataclass representing a rendered page.
- UrlDeriver: Derives a page URL from a permalink pattern.
- PageAssembler: Builds a Page from FrontMatter and a RenderedBody.
- ContentPipeline: Loader -> Parser -> Renderer -> Assembler for one file.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from .errors import AssemblyError
from .frontmatter import FrontMatter, FrontMatterParser
from .loader import FileDocumentLoader
from .protocols import ContentRenderer, DocumentLoader, MetadataParser, PageBuilder
from .references import LinkReference
from .renderers import BlockKind, Heading, MarkdownRenderer, RenderedBlock, RenderedBody
from .utils import first_paragraph, slugify

log = logging.getLogger(__name__)

DEFAULT_PERMALINK = "/{year}/{month}/{day}/{slug}/"
DESCRIPTION_LIMIT = 160


@dataclass(frozen=True)
class Page:
    """A rendered page ready for an external layout engine.

    Attributes:
        title: Page title from front matter.
        date: Publication date.
        layout: Name of the layout to apply. Never resolved here.
        categories: Categories in front matter order.
        tags: Tags in front matter order.
        front_matter: All front matter keys, known and unknown.
        blocks: Rendered body blocks in document order.
        links: Link references used in the body.
        content: Rendered body HTML.
        toc: Headings for a table of contents.
        slug: URL-friendly slug.
        url: URL path for the page.
        excerpt: Plain text of the first paragraph.
        description: Front matter description or truncated excerpt.
        draft: Whether the page is unpublished.
        source_path: Path of the source file, as a string.
    """

    title: str
    date: datetime
    layout: str
    categories: tuple[str, ...]
    tags: tuple[str, ...]
    front_matter: FrontMatter
    blocks: tuple[RenderedBlock, ...]
    links: tuple[LinkReference, ...]
    content: str
    toc: tuple[Heading, ...] = ()
    slug: str = ""
    url: str = ""
    excerpt: str = ""
    description: str = ""
    draft: bool = False
    source_path: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly record of the page."""
        return {
            "title": self.title,
            "date": self.date.isoformat(),
            "layout": self.layout,
            "categories": list(self.categories),
            "tags": list(self.tags),
            "slug": self.slug,
            "url": self.url,
            "excerpt": self.excerpt,
            "description": self.description,
            "draft": self.draft,
            "front_matter": self.front_matter.to_dict(),
            "content": self.content,
            "blocks": [
                {
                    "kind": block.kind.value,
                    "html": block.html,
                    "language": block.language,
                }
                for block in self.blocks
            ],
            "links": [
                {"label": link.label, "url": link.url, "title": link.title}
                for link in self.links
            ],
            "toc": [
                {"id": heading.id, "text": heading.text, "level": heading.level}
                for heading in self.toc
            ],
            "source_path": self.source_path,
        }


class UrlDeriver:
    """Derives URLs for pages from a permalink pattern.

    The pattern may use ``{year}``, ``{month}``, ``{day}``, ``{slug}`` and
    ``{category}`` (the slug of the first category, empty if none).
    """

    def __init__(self, pattern: str = DEFAULT_PERMALINK):
        self.pattern = pattern

    def derive(self, slug: str, date: datetime, categories: tuple[str, ...]) -> str:
        """Derive the URL for a page.

        Args:
            slug: URL-friendly slug.
            date: Publication date.
            categories: Page categories.

        Returns:
            URL path with a leading and trailing slash.
        """
        path = self.pattern.format(
            year=f"{date.year:04d}",
            month=f"{date.month:02d}",
            day=f"{date.day:02d}",
            slug=slug,
            category=slugify(categories[0]) if categories else "",
        )
        segments = [segment for segment in path.split("/") if segment]
        return "/" + "/".join(segments) + "/" if segments else "/"


class PageAssembler:
    """Combines FrontMatter and a RenderedBody into a Page.

    Attributes:
        default_layout: Layout used when front matter names none.
        url_deriver: UrlDeriver for pages without a ``permalink`` key.
    """

    def __init__(
        self,
        default_layout: str | None = "post",
        url_deriver: UrlDeriver | None = None,
    ):
        self.default_layout = default_layout
        self.url_deriver = url_deriver or UrlDeriver()

    def assemble(
        self,
        front_matter: FrontMatter,
        rendered: RenderedBody,
        source_path: Path,
    ) -> Page:
        """Assemble a Page.

        Args:
            front_matter: Parsed front matter.
            rendered: Rendered document body.
            source_path: Path of the source file.

        Returns:
            The assembled Page.

        Raises:
            AssemblyError: If title, date or a layout name is missing.
        """
        title = front_matter.title
        if not title:
            raise AssemblyError("page has no title", source_path)
        date = front_matter.date
        if not isinstance(date, datetime):
            raise AssemblyError("page has no date", source_path)
        layout = front_matter.layout or self.default_layout
        if not layout:
            raise AssemblyError("page has no layout", source_path)

        categories = front_matter.categories
        explicit_slug = front_matter.get("slug")
        if explicit_slug:
            slug = slugify(str(explicit_slug), strip_date=False)
        else:
            slug = slugify(Path(source_path).stem)
        permalink = front_matter.get("permalink")
        url = str(permalink) if permalink else self.url_deriver.derive(slug, date, categories)

        excerpt = next(
            (
                first_paragraph(block.source)
                for block in rendered.blocks
                if block.kind is BlockKind.PARAGRAPH
            ),
            "",
        )
        description = str(front_matter.get("description") or excerpt[:DESCRIPTION_LIMIT])

        return Page(
            title=title,
            date=date,
            layout=layout,
            categories=categories,
            tags=front_matter.tags,
            front_matter=front_matter,
            blocks=rendered.blocks,
            links=rendered.links,
            content=rendered.html,
            toc=rendered.toc,
            slug=slug,
            url=url,
            excerpt=excerpt,
            description=description,
            draft=_is_draft(front_matter),
            source_path=str(source_path),
        )


def _is_draft(front_matter: FrontMatter) -> bool:
    return front_matter.get("published") is False or front_matter.get("draft") is True


class ContentPipeline:
    """Runs one document through Loader, Parser, Renderer and Assembler.

    Each stage is a pure transformation; the first error raised by any
    stage ends processing of that document.
    """

    def __init__(
        self,
        loader: DocumentLoader | None = None,
        parser: MetadataParser | None = None,
        renderer: ContentRenderer | None = None,
        assembler: PageBuilder | None = None,
    ):
        self.loader = loader or FileDocumentLoader()
        self.parser = parser or FrontMatterParser()
        self.renderer = renderer or MarkdownRenderer()
        self.assembler = assembler or PageAssembler()

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> ContentPipeline:
        """Create a pipeline from a loaded configuration dictionary."""
        return cls(
            loader=FileDocumentLoader(allow_bare=bool(config.get("bare_front_matter", True))),
            parser=FrontMatterParser(
                date_formats=config.get("date_formats"),
                required_keys=config.get("required_keys"),
            ),
            assembler=PageAssembler(
                default_layout=config.get("default_layout"),
                url_deriver=UrlDeriver(config.get("permalink") or DEFAULT_PERMALINK),
            ),
        )

    def process(self, path: Path) -> Page:
        """Build a Page from a source file.

        Args:
            path: Path to the Markdown file.

        Returns:
            The assembled Page.

        Raises:
            PipelineError: The first error raised by any stage.
        """
        document = self.loader.load(path)
        front_matter = self.parser.parse(
            document.front_matter_raw,
            source_path=document.source_path,
            line_offset=document.front_matter_line,
        )
        rendered = self.renderer.render(
            document.body_raw,
            source_path=document.source_path,
            line_offset=document.body_line,
        )
        page = self.assembler.assemble(front_matter, rendered, document.source_path)
        log.debug("Assembled %s -> %s", path, page.url)
        return page
