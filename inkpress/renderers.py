"""Markdown body rendering for inkpress.

Rendering happens in two passes. The first pass (scan_blocks) splits the
body into blocks and collects every link reference definition; the second
pass (MarkdownRenderer.render) substitutes reference links and renders each
block to HTML with mistune. Fenced and indented code is never handed to
mistune: its content is kept byte for byte and only escaped for HTML. Code
nested in list items is rendered by mistune but never rewritten.

Key classes:
- Block: A classified segment of body text.
- MarkdownRenderer: Renders a body into RenderedBlocks.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from pathlib import Path

import mistune

from .errors import UnresolvedReferenceError
from .references import LinkReference, LinkReferenceResolver, parse_definition, substitute
from .utils import escape_html

FENCE_RE = re.compile(r"^(?P<indent> {0,3})(?P<fence>`{3,}|~{3,})(?P<info>.*)$")
HEADING_RE = re.compile(r"^ {0,3}(?P<marks>#{1,6})(?:[ \t]|$)")
BLOCKQUOTE_RE = re.compile(r"^ {0,3}>")
LIST_ITEM_RE = re.compile(r"^(?P<indent> {0,3})(?P<marker>[-*+]|\d{1,9}[.)])(?P<space>[ \t]+|$)")
CODE_INDENT = 4


class BlockKind(str, enum.Enum):
    PARAGRAPH = "paragraph"
    FENCED_CODE = "fenced_code"
    INDENTED_CODE = "indented_code"
    HEADING = "heading"
    BLOCKQUOTE = "blockquote"
    LIST = "list"
    LINK_REFERENCE_DEFINITION = "link_reference_definition"


@dataclass(frozen=True)
class Block:
    """A segment of body text.

    Attributes:
        kind: Block classification.
        text: Source text. For fenced code, the verbatim content between
            the fence lines; for indented code, the lines without their
            four-column indent.
        line: 1-based file line where the block starts.
        language: First word of a fence's info string, if any.
        info: Full info string of a fence, if any.
        level: Heading level (1-6), 0 for other blocks.
        verbatim: For lists, ``(start, end)`` line index ranges of ``text``
            holding nested code that must not be rewritten.
    """

    kind: BlockKind
    text: str
    line: int
    language: str | None = None
    info: str | None = None
    level: int = 0
    verbatim: tuple[tuple[int, int], ...] = ()


@dataclass(frozen=True)
class Heading:
    """A heading collected for table of contents generation.

    Attributes:
        id: Anchor ID for the heading (URL-friendly slug).
        text: The rendered text of the heading.
        level: Heading level (1-6).
    """

    id: str
    text: str
    level: int


@dataclass(frozen=True)
class RenderedBlock:
    """HTML output for one block."""

    kind: BlockKind
    html: str
    source: str
    line: int
    language: str | None = None


@dataclass(frozen=True)
class RenderedBody:
    """Output of rendering a document body.

    Attributes:
        blocks: Rendered blocks in document order, definitions excluded.
        links: Link references used by the body, in order of first use.
        toc: Headings in document order.
    """

    blocks: tuple[RenderedBlock, ...]
    links: tuple[LinkReference, ...]
    toc: tuple[Heading, ...]

    @property
    def html(self) -> str:
        return "".join(block.html for block in self.blocks)


def _generate_heading_id(text: str) -> str:
    """Generate a URL-friendly ID from heading text.

    Args:
        text: The heading text.

    Returns:
        URL-friendly slug suitable for anchor links.
    """
    slug = re.sub(r"<[^>]+>", "", text).lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-")


def _is_fence(match: re.Match | None) -> bool:
    if match is None:
        return False
    return not (match.group("fence").startswith("`") and "`" in match.group("info"))


def _split_lines(text: str) -> list[str]:
    # Lines keep their endings and only "\n" separates them.
    lines = [line + "\n" for line in text.split("\n")]
    lines[-1] = lines[-1][:-1]
    if not lines[-1]:
        lines.pop()
    return lines


def _indent_width(line: str) -> int:
    """Width of a line's leading whitespace, with tab stops every 4 columns."""
    width = 0
    for char in line:
        if char == " ":
            width += 1
        elif char == "\t":
            width += 4 - width % 4
        else:
            break
    return width


def _strip_columns(line: str, columns: int) -> str:
    """Remove up to ``columns`` columns of leading whitespace."""
    width = 0
    index = 0
    while index < len(line) and width < columns:
        if line[index] == " ":
            width += 1
        elif line[index] == "\t":
            width += 4 - width % 4
        else:
            break
        index += 1
    return line[index:]


def _fence_end(lines: list[str], start: int, marker: str, columns: int = 0) -> int:
    """Return the index of the line closing the fence opened at ``start``.

    Returns ``len(lines)`` for an unclosed fence.
    """
    closing = re.compile(rf"^ {{0,3}}{re.escape(marker[0])}{{{len(marker)},}}[ \t]*$")
    end = start + 1
    while end < len(lines) and not closing.match(_strip_columns(lines[end].rstrip("\r\n"), columns)):
        end += 1
    return end


def _indented_code_end(lines: list[str], start: int, columns: int) -> int:
    """Return the index after the last line of an indented code run."""
    end = start
    for index in range(start, len(lines)):
        content = lines[index].rstrip("\r\n")
        if not content.strip():
            continue
        if _indent_width(content) < columns:
            break
        end = index + 1
    return end


def _interrupts(content: str) -> bool:
    return bool(
        HEADING_RE.match(content)
        or BLOCKQUOTE_RE.match(content)
        or _is_fence(FENCE_RE.match(content))
        or parse_definition(content)
    )


def _list_content_indent(content: str) -> int:
    """Column where the content of a list item starts."""
    match = LIST_ITEM_RE.match(content)
    marker_width = len(match.group("indent")) + len(match.group("marker"))
    spaces = _indent_width(match.group("space"))
    if not content[match.end() :].strip() or spaces > CODE_INDENT:
        spaces = 1
    return marker_width + spaces


def _starts_list(content: str, group_kind: BlockKind | None) -> bool:
    match = LIST_ITEM_RE.match(content)
    if match is None:
        return False
    if group_kind is BlockKind.PARAGRAPH:
        # Only non-empty bullets and lists numbered from 1 interrupt a paragraph.
        marker = match.group("marker")
        return bool(content[match.end() :].strip()) and (marker in "-*+" or marker[:-1] == "1")
    return group_kind is None


def _continues_list(line: str, content_indent: int) -> bool:
    content = line.rstrip("\r\n")
    return bool(LIST_ITEM_RE.match(content)) or _indent_width(content) >= content_indent


def _scan_list(lines: list[str], start: int) -> tuple[int, tuple[tuple[int, int], ...]]:
    """Find the extent of a list starting at ``start``.

    Fenced and indented code nested in list items is located so that it can
    be kept out of reference substitution.

    Returns:
        Tuple of (index after the list, verbatim line ranges relative to
        ``start``).
    """
    content_indent = _list_content_indent(lines[start].rstrip("\r\n"))
    verbatim: list[tuple[int, int]] = []
    index = start + 1
    after_blank = False
    while index < len(lines):
        content = lines[index].rstrip("\r\n")
        if not content.strip():
            following = index + 1
            while following < len(lines) and not lines[following].strip():
                following += 1
            if following == len(lines) or not _continues_list(lines[following], content_indent):
                break
            after_blank = True
            index += 1
            continue

        width = _indent_width(content)
        if width < content_indent:
            if LIST_ITEM_RE.match(content):
                content_indent = _list_content_indent(content)
            elif _interrupts(content):
                break
            index += 1
        else:
            fence = FENCE_RE.match(_strip_columns(content, content_indent))
            if _is_fence(fence):
                end = min(_fence_end(lines, index, fence.group("fence"), content_indent) + 1, len(lines))
            elif after_blank and width >= content_indent + CODE_INDENT:
                end = _indented_code_end(lines, index, content_indent + CODE_INDENT)
            else:
                end = None
            if end is None:
                index += 1
            else:
                verbatim.append((index - start, end - start))
                index = end
        after_blank = False
    return index, tuple(verbatim)


def scan_blocks(body: str, line_offset: int = 1) -> tuple[list[Block], LinkReferenceResolver]:
    """First pass: classify body lines into blocks and collect definitions.

    Args:
        body: Markdown body text.
        line_offset: File line number of the first body line.

    Returns:
        Tuple of (blocks in document order, resolver with every definition).
    """
    lines = _split_lines(body)
    blocks: list[Block] = []
    resolver = LinkReferenceResolver()
    group: list[str] = []
    group_kind: BlockKind | None = None
    group_line = 0

    def flush() -> None:
        nonlocal group, group_kind
        if group_kind is not None:
            blocks.append(Block(kind=group_kind, text="".join(group), line=group_line))
        group = []
        group_kind = None

    index = 0
    while index < len(lines):
        line = lines[index]
        lineno = line_offset + index
        content = line.rstrip("\r\n")

        fence = FENCE_RE.match(content)
        if _is_fence(fence):
            flush()
            end = _fence_end(lines, index, fence.group("fence"))
            info = fence.group("info").strip() or None
            blocks.append(
                Block(
                    kind=BlockKind.FENCED_CODE,
                    text="".join(lines[index + 1 : end]),
                    line=lineno,
                    language=info.split()[0] if info else None,
                    info=info,
                )
            )
            index = end + 1
            continue

        if not content.strip():
            flush()
            index += 1
            continue

        if group_kind is None and _indent_width(content) >= CODE_INDENT:
            end = _indented_code_end(lines, index, CODE_INDENT)
            blocks.append(
                Block(
                    kind=BlockKind.INDENTED_CODE,
                    text="".join(_strip_columns(code, CODE_INDENT) for code in lines[index:end]),
                    line=lineno,
                )
            )
            index = end
            continue

        definition = parse_definition(content)
        if definition is not None:
            flush()
            resolver.define(definition.label, definition.url, definition.title)
            blocks.append(
                Block(kind=BlockKind.LINK_REFERENCE_DEFINITION, text=line, line=lineno)
            )
            index += 1
            continue

        heading = HEADING_RE.match(content)
        if heading:
            flush()
            blocks.append(
                Block(
                    kind=BlockKind.HEADING,
                    text=line,
                    line=lineno,
                    level=len(heading.group("marks")),
                )
            )
            index += 1
            continue

        if _starts_list(content, group_kind):
            flush()
            end, verbatim = _scan_list(lines, index)
            blocks.append(
                Block(
                    kind=BlockKind.LIST,
                    text="".join(lines[index:end]),
                    line=lineno,
                    verbatim=verbatim,
                )
            )
            index = end
            continue

        if BLOCKQUOTE_RE.match(content):
            if group_kind is not BlockKind.BLOCKQUOTE:
                flush()
                group_kind = BlockKind.BLOCKQUOTE
                group_line = lineno
        elif group_kind is None:
            group_kind = BlockKind.PARAGRAPH
            group_line = lineno
        group.append(line)
        index += 1

    flush()
    return blocks, resolver


class _PageHTMLRenderer(mistune.HTMLRenderer):
    """mistune renderer that adds heading ids and records headings.

    Attributes:
        headings: Heading objects collected during rendering.
    """

    def __init__(self):
        super().__init__(escape=False)
        self.headings: list[Heading] = []
        self._heading_id_counts: dict[str, int] = {}

    def heading(self, text: str, level: int, **attrs) -> str:
        """Render a heading with an auto-generated, de-duplicated ID."""
        base_id = _generate_heading_id(text) or "section"

        if base_id in self._heading_id_counts:
            self._heading_id_counts[base_id] += 1
            heading_id = f"{base_id}-{self._heading_id_counts[base_id]}"
        else:
            self._heading_id_counts[base_id] = 0
            heading_id = base_id

        self.headings.append(Heading(id=heading_id, text=text, level=level))
        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def block_code(self, code: str, info: str | None = None) -> str:
        """Render an indented or nested code block without highlighting."""
        return render_code_block(code, info.split()[0] if info else None)


def render_code_block(code: str, language: str | None) -> str:
    """Render verbatim code as an HTML pre/code element.

    The code is only HTML-escaped; unescaping the element's text gives the
    original content back.
    """
    lang_class = f' class="language-{escape_html(language)}"' if language else ""
    return f"<pre><code{lang_class}>{escape_html(code)}</code></pre>\n"


class MarkdownRenderer:
    """Renders a Markdown body into HTML blocks.

    Attributes:
        plugins: mistune plugins enabled for text blocks.
    """

    plugins = ("strikethrough", "table", "url")

    @property
    def source_type(self) -> str:
        """Return the source type identifier."""
        return "markdown"

    def render(
        self,
        body: str,
        source_path: Path | None = None,
        line_offset: int = 1,
    ) -> RenderedBody:
        """Render a document body.

        Args:
            body: Markdown body text.
            source_path: Path of the document, for error messages.
            line_offset: File line number of the first body line.

        Returns:
            RenderedBody with blocks, used links and headings.

        Raises:
            UnresolvedReferenceError: If a reference label has no definition.
        """
        blocks, resolver = scan_blocks(body, line_offset)
        renderer = _PageHTMLRenderer()
        markdown = mistune.create_markdown(renderer=renderer, plugins=list(self.plugins))
        used: list[LinkReference] = []
        rendered: list[RenderedBlock] = []

        for block in blocks:
            if block.kind is BlockKind.LINK_REFERENCE_DEFINITION:
                continue
            if block.kind in (BlockKind.FENCED_CODE, BlockKind.INDENTED_CODE):
                html = render_code_block(block.text, block.language)
            else:
                html = markdown(self._substitute(block, resolver, used, source_path))
            rendered.append(
                RenderedBlock(
                    kind=block.kind,
                    html=html,
                    source=block.text,
                    line=block.line,
                    language=block.language,
                )
            )

        return RenderedBody(
            blocks=tuple(rendered),
            links=tuple(used),
            toc=tuple(renderer.headings),
        )

    def _substitute(
        self,
        block: Block,
        resolver: LinkReferenceResolver,
        used: list[LinkReference],
        source_path: Path | None,
    ) -> str:
        """Rewrite reference spans of a block, leaving nested code untouched."""

        def on_missing(label: str) -> None:
            self._unresolved(label, block, source_path)

        if not block.verbatim:
            return substitute(block.text, resolver, on_missing, used)
        lines = _split_lines(block.text)
        parts: list[str] = []
        position = 0
        for start, end in block.verbatim:
            parts.append(substitute("".join(lines[position:start]), resolver, on_missing, used))
            parts.append("".join(lines[start:end]))
            position = end
        parts.append(substitute("".join(lines[position:]), resolver, on_missing, used))
        return "".join(parts)

    def _unresolved(self, label: str, block: Block, source_path: Path | None) -> None:
        position = block.text.find(f"[{label}]")
        line = block.line
        if position > 0:
            line += block.text.count("\n", 0, position)
        raise UnresolvedReferenceError(label, source_path, line)
