"""Front matter parsing for inkpress.

The front matter block is a restricted YAML subset: ``key: value`` lines and
``key: [a, b]`` lists, optionally with indented ``- item`` continuations.
Lines are checked before YAML parsing so that errors point at the offending
line of the source file.

Key classes:
- FrontMatter: Read-only mapping with typed accessors.
- FrontMatterParser: Parses raw front matter text into FrontMatter.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Mapping
from datetime import date, datetime
from pathlib import Path
from typing import Any

import yaml

from .errors import MetadataError

DEFAULT_DATE_FORMATS = (
    "%Y-%m-%d %H:%M:%S %z",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M %z",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
)
DEFAULT_REQUIRED_KEYS = ("title", "date")

_KEY_RE = re.compile(r"^([^\s:#][^:]*?)\s*:(?:\s|$)")


class FrontMatter(Mapping[str, Any]):
    """Immutable mapping of front matter keys to values.

    Unknown keys are kept as parsed. The well-known keys are also exposed
    as typed properties.
    """

    def __init__(self, data: Mapping[str, Any] | None = None):
        self._data = dict(data or {})

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, FrontMatter):
            return self._data == other._data
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    @property
    def title(self) -> str | None:
        value = self._data.get("title")
        return None if value is None else str(value)

    @property
    def date(self) -> datetime | None:
        return self._data.get("date")

    @property
    def layout(self) -> str | None:
        value = self._data.get("layout")
        return None if value is None else str(value)

    @property
    def categories(self) -> tuple[str, ...]:
        return self._data.get("categories", ())

    @property
    def tags(self) -> tuple[str, ...]:
        return self._data.get("tags", ())

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly copy (dates as ISO strings, tuples as lists)."""
        return {str(key): _jsonable(value) for key, value in self._data.items()}

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"FrontMatter({self._data!r})"


def _jsonable(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    return value


_PLAIN_TYPES = (str, int, float, bool, date, type(None))


def _unsupported_type(value: Any) -> str | None:
    """Return the type name of the first value a page record cannot hold."""
    if isinstance(value, (list, tuple)):
        children = value
    elif isinstance(value, dict):
        children = value.values()
    elif isinstance(value, _PLAIN_TYPES):
        return None
    else:
        return type(value).__name__
    for child in children:
        found = _unsupported_type(child)
        if found:
            return found
    return None


class FrontMatterParser:
    """Parses raw front matter text into a FrontMatter record.

    Attributes:
        date_formats: strptime formats accepted for string dates.
        required_keys: Keys that must be present in a non-empty block.
    """

    def __init__(
        self,
        date_formats: Iterable[str] | None = None,
        required_keys: Iterable[str] | None = None,
    ):
        self.date_formats = tuple(date_formats or DEFAULT_DATE_FORMATS)
        self.required_keys = tuple(
            DEFAULT_REQUIRED_KEYS if required_keys is None else required_keys
        )

    def parse(
        self,
        raw: str,
        source_path: Path | None = None,
        line_offset: int = 1,
    ) -> FrontMatter:
        """Parse front matter text.

        Args:
            raw: Text between the front matter delimiters.
            source_path: Path of the document, for error messages.
            line_offset: File line number of the first line of ``raw``.

        Returns:
            FrontMatter record. Empty when ``raw`` is blank.

        Raises:
            MetadataError: On malformed lines, duplicate or missing keys,
                invalid YAML, values such as sets or binary data, or an
                unrecognized date.
        """
        if not raw.strip():
            return FrontMatter()

        key_lines = self._check_lines(raw, source_path, line_offset)
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            mark = getattr(exc, "problem_mark", None)
            line = line_offset + mark.line if mark is not None else None
            problem = getattr(exc, "problem", None) or str(exc)
            raise MetadataError(f"invalid front matter: {problem}", source_path, line) from exc
        if not isinstance(data, dict):
            raise MetadataError("front matter is not a key/value block", source_path, line_offset)

        for key in self.required_keys:
            if data.get(key) in (None, ""):
                raise MetadataError(f"missing required key '{key}'", source_path, line_offset)
        for key, value in data.items():
            unsupported = _unsupported_type(value)
            if unsupported:
                raise MetadataError(
                    f"unsupported value for '{key}': {unsupported}",
                    source_path,
                    key_lines.get(str(key), line_offset),
                )

        if "date" in data and data["date"] is not None:
            data["date"] = self.parse_date(
                data["date"], source_path, key_lines.get("date", line_offset)
            )
        for key in ("categories", "tags"):
            if key in data:
                data[key] = _term_list(data[key])
        return FrontMatter(data)

    def parse_date(
        self, value: Any, source_path: Path | None = None, line: int | None = None
    ) -> datetime:
        """Convert a front matter date value to a datetime.

        Args:
            value: Value parsed by YAML (datetime, date or string).
            source_path: Path of the document, for error messages.
            line: File line number of the ``date`` key.

        Returns:
            datetime for the value.

        Raises:
            MetadataError: If a string matches none of the date formats.
        """
        if isinstance(value, datetime):
            return value.replace(tzinfo=None)
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day)
        text = str(value).strip()
        for fmt in self.date_formats:
            try:
                return datetime.strptime(text, fmt).replace(tzinfo=None)
            except ValueError:
                continue
        raise MetadataError(f"unrecognized date '{text}'", source_path, line)

    def _check_lines(self, raw: str, source_path: Path | None, line_offset: int) -> dict[str, int]:
        """Validate top-level lines and return each key's file line number."""
        seen: dict[str, int] = {}
        for index, line in enumerate(raw.splitlines()):
            lineno = line_offset + index
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            if line[:1] in (" ", "\t") or stripped.startswith("- "):
                continue
            match = _KEY_RE.match(line)
            if not match:
                raise MetadataError(
                    f"expected 'key: value', got {stripped!r}", source_path, lineno
                )
            key = match.group(1).strip("\"'")
            if key in seen:
                raise MetadataError(
                    f"duplicate key '{key}' (first defined on line {seen[key]})",
                    source_path,
                    lineno,
                )
            seen[key] = lineno
        return seen


def _term_list(value: Any) -> tuple[str, ...]:
    """Normalize a categories/tags value to a tuple of strings.

    Order and duplicates are preserved. A plain string is split on whitespace.
    """
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(value.split())
    if isinstance(value, (list, tuple)):
        return tuple(str(item) for item in value if item is not None)
    return (str(value),)
