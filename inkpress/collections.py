from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence

from .content import Page
from .utils import build_taxonomy_index


class PageCollection(Sequence[Page]):
    """Lightweight helper for working with lists of Pages."""

    def __init__(self, pages: Iterable[Page]):
        self._pages = list(pages)

    def __iter__(self) -> Iterator[Page]:
        return iter(self._pages)

    def __len__(self) -> int:
        return len(self._pages)

    def __getitem__(self, item):
        return self._pages[item]

    def in_category(self, name: str) -> PageCollection:
        return PageCollection(p for p in self._pages if name in p.categories)

    def with_tag(self, tag: str) -> PageCollection:
        return PageCollection(p for p in self._pages if tag in p.tags)

    def drafts(self) -> PageCollection:
        return PageCollection(p for p in self._pages if p.draft)

    def published(self) -> PageCollection:
        return PageCollection(p for p in self._pages if not p.draft)

    def sorted(self, reverse: bool = True) -> PageCollection:
        """Sort pages by date, then by slug.

        Args:
            reverse: If True (default), newest first.

        Returns:
            A new PageCollection with sorted pages.
        """
        return PageCollection(
            sorted(self._pages, key=lambda p: (p.date, p.slug), reverse=reverse)
        )

    def latest(self, count: int = 5) -> PageCollection:
        return PageCollection(self.sorted()[:count])

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"PageCollection({len(self._pages)} pages)"


class TaxonomyIndex(Mapping[str, PageCollection]):
    """Mapping of category or tag name to the pages carrying it."""

    def __init__(self, mapping: Mapping[str, Iterable[Page]]):
        self._mapping = {k: PageCollection(v) for k, v in mapping.items()}

    @classmethod
    def build(cls, pages: Iterable[Page], attribute: str) -> TaxonomyIndex:
        """Index pages by their ``categories`` or ``tags`` attribute."""
        return cls(build_taxonomy_index(pages, attribute))

    def __getitem__(self, key: str) -> PageCollection:
        return self._mapping[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._mapping)

    def __len__(self) -> int:
        return len(self._mapping)

    def to_dict(self) -> dict[str, list[dict[str, str]]]:
        """Return term -> list of {title, url, date} sorted newest first."""
        return {
            term: [
                {"title": p.title, "url": p.url, "date": p.date.isoformat()}
                for p in pages.sorted()
            ]
            for term, pages in sorted(self._mapping.items())
        }

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"TaxonomyIndex({len(self._mapping)} terms)"
