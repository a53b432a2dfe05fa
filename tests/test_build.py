import json
from pathlib import Path

import pytest

from inkpress.build import (
    DEFAULT_CONFIG,
    BuildError,
    _format_error_message,
    build_site,
    load_config,
    process_documents,
)
from inkpress.content import ContentPipeline
from inkpress.errors import AssemblyError, MetadataError, ReadError

GOOD_POST = """---
title: Functors
date: 2016-05-05 13:52
categories: [haskell]
tags: [functor]
---
Every monad is a [functor][f].

[f]: https://wiki.haskell.org/Functor
"""

DRAFT_POST = """---
title: Applicatives
date: 2016-06-01
categories: [haskell]
published: false
---
Work in progress.
"""

BAD_POST = """---
title: Broken
date: next tuesday
---
Body.
"""


def create_project(tmp_path: Path) -> Path:
    project = tmp_path
    site = project / "site"
    (site / "posts").mkdir(parents=True)
    (site / "_templates").mkdir()
    (site / "posts" / "2016-05-05-functors.md").write_text(GOOD_POST, encoding="utf-8")
    (site / "posts" / "2016-06-01-applicatives.md").write_text(DRAFT_POST, encoding="utf-8")
    (site / "_templates" / "ignored.md").write_text("not content", encoding="utf-8")
    return project


def test_load_config_defaults_and_overrides(tmp_path):
    assert load_config(tmp_path) == DEFAULT_CONFIG

    (tmp_path / "inkpress.yaml").write_text(
        "output_dir: public\nworkers: 2\npermalink: /blog/{slug}/\n", encoding="utf-8"
    )
    config = load_config(tmp_path)
    assert config["output_dir"] == "public"
    assert config["workers"] == 2
    assert config["permalink"] == "/blog/{slug}/"
    assert config["content_dir"] == "site"


def test_build_site_writes_page_records(tmp_path):
    project = create_project(tmp_path)
    report = build_site(project)

    assert report.ok
    assert [page.title for page in report.pages] == ["Functors"]
    assert [page.title for page in report.skipped] == ["Applicatives"]
    assert report.output_dir == project / "output"

    record = json.loads(
        (project / "output" / "2016" / "05" / "05" / "functors" / "index.json").read_text(
            encoding="utf-8"
        )
    )
    assert record["title"] == "Functors"
    assert record["layout"] == "post"
    assert 'href="https://wiki.haskell.org/Functor"' in record["content"]
    assert not (project / "output" / "2016" / "06").exists()

    categories = json.loads((project / "output" / "categories.json").read_text(encoding="utf-8"))
    assert [entry["title"] for entry in categories["haskell"]] == ["Functors"]
    tags = json.loads((project / "output" / "tags.json").read_text(encoding="utf-8"))
    assert list(tags) == ["functor"]


def test_build_site_includes_drafts_on_request(tmp_path):
    project = create_project(tmp_path)
    report = build_site(project, include_drafts=True)
    assert sorted(page.title for page in report.pages) == ["Applicatives", "Functors"]
    assert report.skipped == []
    assert [p.title for p in report.categories["haskell"]] == ["Functors", "Applicatives"]


def test_batch_isolates_failed_documents(tmp_path):
    project = create_project(tmp_path)
    bad = project / "site" / "posts" / "2016-05-06-broken.md"
    bad.write_text(BAD_POST, encoding="utf-8")

    report = build_site(project, workers=2)
    assert not report.ok
    assert [page.title for page in report.pages] == ["Functors"]
    assert len(report.failures) == 1
    failure = report.failures[0]
    assert failure.source_path == bad
    assert isinstance(failure.error, MetadataError)
    assert failure.line == 3
    assert failure.message.startswith("MetadataError: line 3:")
    assert (project / "output" / "2016" / "05" / "05" / "functors" / "index.json").exists()
    assert not (project / "output" / "2016" / "05" / "06").exists()


def test_fail_fast_raises_build_error(tmp_path):
    project = create_project(tmp_path)
    bad = project / "site" / "posts" / "2016-05-06-broken.md"
    bad.write_text(BAD_POST, encoding="utf-8")

    with pytest.raises(BuildError) as excinfo:
        build_site(project, fail_fast=True)
    assert excinfo.value.source_path == bad
    assert isinstance(excinfo.value.original_error, MetadataError)

    (project / "inkpress.yaml").write_text("fail_fast: true\n", encoding="utf-8")
    with pytest.raises(BuildError):
        build_site(project)


def test_missing_content_dir(tmp_path):
    with pytest.raises(FileNotFoundError):
        build_site(tmp_path)


def test_process_documents_collects_read_errors(tmp_path):
    good = tmp_path / "good.md"
    good.write_text(GOOD_POST, encoding="utf-8")
    missing = tmp_path / "missing.md"

    pages, failures = process_documents([missing, good], ContentPipeline(), workers=1)
    assert [page.title for page in pages] == ["Functors"]
    assert [f.source_path for f in failures] == [missing]
    assert isinstance(failures[0].error, ReadError)

    assert process_documents([], ContentPipeline()) == ([], [])


def test_process_documents_records_unexpected_errors(tmp_path):
    class ExplodingPipeline(ContentPipeline):
        def process(self, path):
            raise RuntimeError("boom")

    pages, failures = process_documents([tmp_path / "a.md"], ExplodingPipeline())
    assert pages == []
    assert failures[0].message == "RuntimeError: boom"
    assert failures[0].line is None


def test_format_error_message():
    assert _format_error_message(MetadataError("bad", "p.md", 4)) == "MetadataError: line 4: bad"
    assert _format_error_message(ReadError("gone", "p.md")) == "ReadError: gone"
    assert _format_error_message(ValueError("x")) == "ValueError: x"


def test_duplicate_urls_fail_the_later_document(tmp_path):
    project = create_project(tmp_path)
    clash = project / "site" / "posts" / "2016-05-05-zz-functors-again.md"
    clash.write_text(
        "---\ntitle: Functors Again\ndate: 2016-05-05\nslug: functors\n---\nAgain.\n",
        encoding="utf-8",
    )

    report = build_site(project)
    assert [page.title for page in report.pages] == ["Functors"]
    assert [failure.source_path for failure in report.failures] == [clash]
    assert isinstance(report.failures[0].error, AssemblyError)
    assert "already used by" in report.failures[0].message
    record = json.loads(
        (project / "output" / "2016" / "05" / "05" / "functors" / "index.json").read_text(
            encoding="utf-8"
        )
    )
    assert record["title"] == "Functors"

    with pytest.raises(BuildError) as excinfo:
        build_site(project, fail_fast=True)
    assert excinfo.value.source_path == clash


def test_permalink_outside_output_dir_is_rejected(tmp_path):
    project = create_project(tmp_path / "project")
    escaping = project / "site" / "posts" / "2016-05-07-escape.md"
    escaping.write_text(
        "---\ntitle: Escape\ndate: 2016-05-07\npermalink: /../../escaped/\n---\nOut.\n",
        encoding="utf-8",
    )

    report = build_site(project)
    assert [page.title for page in report.pages] == ["Functors"]
    assert [failure.source_path for failure in report.failures] == [escaping]
    assert "outside the output directory" in report.failures[0].message
    assert not (tmp_path / "escaped").exists()
    assert not (project / "escaped").exists()


def test_unsupported_front_matter_value_fails_only_its_document(tmp_path):
    project = create_project(tmp_path)
    odd = project / "site" / "posts" / "2016-05-08-odd.md"
    odd.write_text(
        "---\ntitle: Odd\ndate: 2016-05-08\nextra: !!set {x: null}\n---\nBody.\n",
        encoding="utf-8",
    )

    report = build_site(project)
    assert [page.title for page in report.pages] == ["Functors"]
    assert [failure.source_path for failure in report.failures] == [odd]
    assert isinstance(report.failures[0].error, MetadataError)
    assert (project / "output" / "tags.json").exists()
