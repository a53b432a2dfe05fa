"""Reference-style link resolution for inkpress.

Link reference definitions (``[label]: url "title"``) are collected from the
whole document before any ``[text][label]`` span is substituted, so a
definition may appear before or after its first use.

Key classes:
- LinkReference: A resolved label/url/title triple.
- LinkReferenceResolver: Case-insensitive label registry.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass

log = logging.getLogger(__name__)

DEFINITION_RE = re.compile(
    r"""^\ {0,3}\[(?P<label>[^\]]*\S[^\]]*)\]:[ \t]*
        (?:<(?P<angle>[^>\n]*)>|(?P<url>\S+))
        (?:[ \t]+(?:"(?P<dq>[^"\n]*)"|'(?P<sq>[^'\n]*)'|\((?P<pq>[^)\n]*)\)))?
        [ \t]*$""",
    re.VERBOSE,
)

# [text][label], [text][] and ![alt][label]; text may hold one level of brackets.
REFERENCE_SPAN_RE = re.compile(
    r"(?<!\\)(?P<bang>!?)\[(?P<text>(?:[^\[\]\\]|\\.|\[[^\[\]]*\])*)\]\[(?P<label>[^\[\]]*)\]"
)
CODE_SPAN_RE = re.compile(r"(`+)(?:.|\n)*?(?<!`)\1(?!`)")


def normalize_label(label: str) -> str:
    """Case-fold a label and collapse its whitespace."""
    return " ".join(label.split()).casefold()


@dataclass(frozen=True)
class LinkReference:
    """A link reference definition.

    Attributes:
        label: Label as first written in the definition.
        url: Link destination.
        title: Optional link title.
    """

    label: str
    url: str
    title: str | None = None


def parse_definition(line: str) -> LinkReference | None:
    """Parse a single link reference definition line.

    Args:
        line: A line of body text, with or without its line ending.

    Returns:
        LinkReference if the line is a definition, otherwise None.
    """
    match = DEFINITION_RE.match(line.rstrip("\r\n"))
    if not match:
        return None
    url = match.group("angle") if match.group("angle") is not None else match.group("url")
    title = next(
        (match.group(name) for name in ("dq", "sq", "pq") if match.group(name) is not None),
        None,
    )
    return LinkReference(label=match.group("label").strip(), url=url, title=title)


class LinkReferenceResolver:
    """Registry of link reference definitions for one document.

    Labels compare case-insensitively with surrounding whitespace trimmed.
    When a label is defined twice the last definition wins.
    """

    def __init__(self):
        self._definitions: dict[str, LinkReference] = {}

    def define(self, label: str, url: str, title: str | None = None) -> LinkReference:
        """Register a definition, replacing any earlier one for the same label.

        Args:
            label: Reference label.
            url: Link destination.
            title: Optional link title.

        Returns:
            The stored LinkReference.
        """
        key = normalize_label(label)
        if not key:
            raise ValueError("link reference label must not be empty")
        reference = LinkReference(label=label.strip(), url=url, title=title)
        if key in self._definitions:
            log.debug("Link reference [%s] redefined; last definition wins", label.strip())
        self._definitions[key] = reference
        return reference

    def resolve(self, label: str) -> LinkReference | None:
        """Look up a label.

        Returns:
            The LinkReference, or None when the label is not defined.
        """
        return self._definitions.get(normalize_label(label))

    def __contains__(self, label: object) -> bool:
        return isinstance(label, str) and normalize_label(label) in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)

    def __iter__(self) -> Iterator[LinkReference]:
        return iter(self._definitions.values())


def substitute(
    text: str,
    resolver: LinkReferenceResolver,
    on_missing: Callable[[str], None],
    used: list[LinkReference] | None = None,
) -> str:
    """Replace reference spans with inline Markdown links.

    ``[text][label]`` becomes ``[text](<url> "title")``; ``[text][]`` uses the
    text as its label. Code spans are left untouched.

    Args:
        text: Markdown source of one block.
        resolver: Resolver holding every definition of the document.
        on_missing: Called with the label of an undefined reference. It is
            expected to raise.
        used: Optional list collecting each resolved reference once.

    Returns:
        Text with every reference span rewritten.
    """

    def repl(match: re.Match) -> str:
        label = match.group("label").strip() or match.group("text")
        reference = resolver.resolve(label)
        if reference is None:
            on_missing(label.strip())
            return match.group(0)
        if used is not None and reference not in used:
            used.append(reference)
        return f"{match.group('bang')}[{match.group('text')}]({_inline_target(reference)})"

    parts: list[str] = []
    position = 0
    for code in CODE_SPAN_RE.finditer(text):
        parts.append(REFERENCE_SPAN_RE.sub(repl, text[position : code.start()]))
        parts.append(code.group(0))
        position = code.end()
    parts.append(REFERENCE_SPAN_RE.sub(repl, text[position:]))
    return "".join(parts)


def _inline_target(reference: LinkReference) -> str:
    target = f"<{reference.url}>"
    if reference.title is None:
        return target
    title = reference.title.replace("\\", "\\\\").replace('"', '\\"')
    return f'{target} "{title}"'
