"""Batch building for inkpress.

This module runs every content file of a project through the document
pipeline, isolates per-document failures and writes the resulting Page
records and cross-document indexes.

Key functions:
- build_site: Build every document of a project into a BuildReport.
- load_config: Loads project configuration from inkpress.yaml.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .collections import PageCollection, TaxonomyIndex
from .content import ContentPipeline, Page
from .errors import AssemblyError, PipelineError
from .frontmatter import DEFAULT_DATE_FORMATS, DEFAULT_REQUIRED_KEYS
from .utils import ensure_clean_dir

log = logging.getLogger(__name__)

CONFIG_FILENAME = "inkpress.yaml"


class BuildError(Exception):
    """Error during a fail-fast build with file context.

    Attributes:
        source_path: Path to the source file that caused the error.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        source_path: Path,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source_path}: {message}")


DEFAULT_CONFIG: dict[str, Any] = {
    "content_dir": "site",
    "output_dir": "output",
    "date_formats": list(DEFAULT_DATE_FORMATS),
    "required_keys": list(DEFAULT_REQUIRED_KEYS),
    "default_layout": "post",
    "permalink": "/{year}/{month}/{day}/{slug}/",
    "bare_front_matter": True,
    "fail_fast": False,
    "workers": None,
}


@dataclass
class BuildFailure:
    """A document that could not be turned into a Page.

    Attributes:
        source_path: Path to the failed document.
        error: The error that ended the document's pipeline.
    """

    source_path: Path
    error: Exception

    @property
    def message(self) -> str:
        return _format_error_message(self.error)

    @property
    def line(self) -> int | None:
        return getattr(self.error, "line", None)


@dataclass
class BuildReport:
    """Result of a batch build.

    Attributes:
        pages: Pages built successfully, in discovery order.
        failures: Documents that failed, in discovery order.
        skipped: Draft pages left out of the output.
        output_dir: Directory where the output was written.
        categories: Index of pages by category.
        tags: Index of pages by tag.
    """

    pages: list[Page]
    failures: list[BuildFailure]
    output_dir: Path
    skipped: list[Page] = field(default_factory=list)
    categories: TaxonomyIndex = field(default_factory=lambda: TaxonomyIndex({}))
    tags: TaxonomyIndex = field(default_factory=lambda: TaxonomyIndex({}))

    @property
    def ok(self) -> bool:
        return not self.failures


def load_config(project_root: Path) -> dict[str, Any]:
    """Load project configuration from inkpress.yaml.

    Args:
        project_root: Root directory of the project.

    Returns:
        Dictionary containing configuration values, with defaults applied.
    """
    config_path = project_root / CONFIG_FILENAME
    config = DEFAULT_CONFIG.copy()
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
            if isinstance(loaded, dict):
                config.update(loaded)
    return config


def process_documents(
    paths: Iterable[Path],
    pipeline: ContentPipeline,
    workers: int | None = None,
    fail_fast: bool = False,
) -> tuple[list[Page], list[BuildFailure]]:
    """Run documents through the pipeline on a bounded worker pool.

    Args:
        paths: Source files to process.
        pipeline: Pipeline applied to each file.
        workers: Maximum worker threads. Defaults to the CPU count.
        fail_fast: Raise BuildError on the first failure instead of
            collecting it.

    Returns:
        Tuple of (pages, failures), both in input order.

    Raises:
        BuildError: In fail-fast mode, for the first failed document.
    """
    paths = list(paths)
    pages: list[Page] = []
    failures: list[BuildFailure] = []
    if not paths:
        return pages, failures

    max_workers = max(1, min(workers or os.cpu_count() or 1, len(paths)))
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [(path, executor.submit(pipeline.process, path)) for path in paths]
        for path, future in futures:
            try:
                pages.append(future.result())
            except Exception as exc:
                if fail_fast:
                    for _, pending in futures:
                        pending.cancel()
                    raise BuildError(path, _format_error_message(exc), exc) from exc
                if isinstance(exc, PipelineError):
                    log.warning("Failed %s", exc)
                else:
                    log.exception("Unexpected error while processing %s", path)
                failures.append(BuildFailure(path, exc))
    return pages, failures


def build_site(
    project_root: Path,
    include_drafts: bool = False,
    fail_fast: bool | None = None,
    workers: int | None = None,
    clean_output: bool = True,
    output_dir_override: Path | None = None,
) -> BuildReport:
    """Build every document of a project.

    A failing document never stops the others unless fail-fast is enabled;
    it is reported in BuildReport.failures and produces no output.
    Pages whose URL repeats an earlier page's URL or leads outside the
    output directory are reported the same way.

    Args:
        project_root: Root directory of the project.
        include_drafts: Whether to keep unpublished pages.
        fail_fast: Stop at the first failure. Defaults to the config value.
        workers: Worker thread count. Defaults to the config value.
        clean_output: Whether to wipe the output directory before building.
        output_dir_override: Optional output path instead of config output_dir.

    Returns:
        BuildReport with pages, failures and indexes.

    Raises:
        FileNotFoundError: If the content directory does not exist.
        BuildError: In fail-fast mode, for the first failed document.
    """
    config = load_config(project_root)
    if fail_fast is None:
        fail_fast = bool(config.get("fail_fast"))
    if workers is None:
        workers = config.get("workers")

    content_dir = project_root / config.get("content_dir", "site")
    if not content_dir.exists():
        raise FileNotFoundError(f"Expected content directory at {content_dir}")
    output_dir = output_dir_override or (project_root / config.get("output_dir", "output"))

    pipeline = ContentPipeline.from_config(config)
    paths = pipeline.loader.iter_files(content_dir)
    log.info("Building %d documents from %s", len(paths), content_dir)
    built, failures = process_documents(paths, pipeline, workers=workers, fail_fast=fail_fast)

    pages = [page for page in built if include_drafts or not page.draft]
    skipped = [page for page in built if page.draft and not include_drafts]
    pages, rejected = claim_output_paths(pages, output_dir)
    for failure in rejected:
        if fail_fast:
            raise BuildError(failure.source_path, failure.message, failure.error)
        log.warning("Failed %s", failure.error)
    if rejected:
        order = {path: index for index, path in enumerate(paths)}
        failures = sorted(failures + rejected, key=lambda f: order.get(f.source_path, len(order)))
    published = PageCollection(pages)
    categories = TaxonomyIndex.build(published, "categories")
    tags = TaxonomyIndex.build(published, "tags")

    if clean_output:
        ensure_clean_dir(output_dir)
    else:
        output_dir.mkdir(parents=True, exist_ok=True)
    for page in pages:
        _write_page(output_dir, page)
    _write_json(output_dir / "categories.json", categories.to_dict())
    _write_json(output_dir / "tags.json", tags.to_dict())

    log.info("Built %d pages, %d failed, %d drafts skipped", len(pages), len(failures), len(skipped))
    return BuildReport(
        pages=pages,
        failures=failures,
        output_dir=output_dir,
        skipped=skipped,
        categories=categories,
        tags=tags,
    )


def claim_output_paths(
    pages: Iterable[Page], output_dir: Path
) -> tuple[list[Page], list[BuildFailure]]:
    """Give each page its own output directory inside ``output_dir``.

    A page whose URL points outside the output directory, or at a directory
    already claimed by an earlier page, is rejected with an AssemblyError.

    Args:
        pages: Pages in discovery order.
        output_dir: Root of the build output.

    Returns:
        Tuple of (accepted pages, failures for the rejected ones).
    """
    root = output_dir.resolve()
    claimed: dict[Path, Page] = {}
    accepted: list[Page] = []
    rejected: list[BuildFailure] = []
    for page in pages:
        source_path = Path(page.source_path)
        target = (output_dir / page.url.strip("/")).resolve()
        if target != root and root not in target.parents:
            error = AssemblyError(f"URL {page.url} points outside the output directory", source_path)
        elif target in claimed:
            error = AssemblyError(
                f"URL {page.url} is already used by {claimed[target].source_path}", source_path
            )
        else:
            claimed[target] = page
            accepted.append(page)
            continue
        rejected.append(BuildFailure(source_path, error))
    return accepted, rejected


def _format_error_message(exc: Exception) -> str:
    """Format an exception into a user-friendly error message.

    Args:
        exc: The exception to format.

    Returns:
        A human-readable error message.
    """
    if isinstance(exc, PipelineError):
        prefix = f"line {exc.line}: " if exc.line is not None else ""
        return f"{type(exc).__name__}: {prefix}{exc.message}"
    return f"{type(exc).__name__}: {exc}"


def _write_page(output_dir: Path, page: Page) -> None:
    """Write a page record to ``<output>/<url>/index.json``."""
    target_dir = output_dir / page.url.strip("/")
    target_dir.mkdir(parents=True, exist_ok=True)
    _write_json(target_dir / "index.json", page.to_dict())


def _write_json(path: Path, payload: Any) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)
        f.write("\n")
