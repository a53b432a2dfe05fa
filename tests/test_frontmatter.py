from datetime import datetime
from pathlib import Path

import pytest

from inkpress.errors import MetadataError
from inkpress.frontmatter import FrontMatter, FrontMatterParser

POST_HEADER = """layout: post
title: "Monads in Swift"
date: 2016-05-05 13:52
categories: [swift, haskell]
tags: [monad, functor, monad]
comments: true
"""


def test_parse_known_and_unknown_keys():
    front_matter = FrontMatterParser().parse(POST_HEADER)
    assert front_matter.title == "Monads in Swift"
    assert front_matter.date == datetime(2016, 5, 5, 13, 52)
    assert front_matter.layout == "post"
    assert front_matter.categories == ("swift", "haskell")
    assert front_matter.tags == ("monad", "functor", "monad")
    assert front_matter["comments"] is True
    assert set(front_matter) == {"layout", "title", "date", "categories", "tags", "comments"}


def test_blank_front_matter_is_empty():
    front_matter = FrontMatterParser().parse("  \n")
    assert len(front_matter) == 0
    assert front_matter.title is None
    assert front_matter.categories == ()


def test_date_formats():
    parser = FrontMatterParser()
    assert parser.parse("title: X\ndate: 2016-05-05\n").date == datetime(2016, 5, 5)
    assert parser.parse("title: X\ndate: 2016-05-05 13:52:07\n").date == datetime(
        2016, 5, 5, 13, 52, 7
    )
    assert parser.parse_date("2016-05-05 13:52 +0200") == datetime(2016, 5, 5, 13, 52)

    custom = FrontMatterParser(date_formats=["%d/%m/%Y"])
    assert custom.parse('title: X\ndate: "05/06/2016"\n').date == datetime(2016, 6, 5)


def test_unrecognized_date_reports_line():
    raw = "title: X\nlayout: post\ndate: May 5th\n"
    with pytest.raises(MetadataError) as excinfo:
        FrontMatterParser().parse(raw, source_path=Path("post.md"), line_offset=2)
    assert excinfo.value.line == 4
    assert "May 5th" in excinfo.value.message
    assert str(excinfo.value).startswith("post.md:4:")


def test_line_without_separator():
    raw = "title: X\nthis line has no separator\ndate: 2016-05-05\n"
    with pytest.raises(MetadataError) as excinfo:
        FrontMatterParser().parse(raw, line_offset=2)
    assert excinfo.value.line == 3


def test_missing_required_keys():
    with pytest.raises(MetadataError, match="title"):
        FrontMatterParser().parse("date: 2016-05-05\n")
    with pytest.raises(MetadataError, match="date"):
        FrontMatterParser().parse("title: X\n")

    relaxed = FrontMatterParser(required_keys=["title"])
    assert relaxed.parse("title: X\n").date is None


def test_duplicate_keys_are_rejected():
    with pytest.raises(MetadataError, match="duplicate key 'tags'") as excinfo:
        FrontMatterParser().parse("title: X\ndate: 2016-05-05\ntags: [a]\ntags: [b]\n")
    assert excinfo.value.line == 4


def test_invalid_yaml_and_non_mapping():
    with pytest.raises(MetadataError, match="invalid front matter"):
        FrontMatterParser().parse("title: [unclosed\ndate: 2016-05-05\n")
    with pytest.raises(MetadataError):
        FrontMatterParser().parse("- just\n- a list\n")


def test_list_continuations_and_string_terms():
    raw = "title: X\ndate: 2016-05-05\ncategories:\n  - swift\n  - haskell\ntags: monad functor\n"
    front_matter = FrontMatterParser().parse(raw)
    assert front_matter.categories == ("swift", "haskell")
    assert front_matter.tags == ("monad", "functor")


def test_front_matter_mapping_and_to_dict():
    front_matter = FrontMatterParser().parse(POST_HEADER)
    assert front_matter == FrontMatterParser().parse(POST_HEADER)
    assert front_matter != FrontMatter({"title": "Other"})
    data = front_matter.to_dict()
    assert data["date"] == "2016-05-05T13:52:00"
    assert data["tags"] == ["monad", "functor", "monad"]
    with pytest.raises(TypeError):
        front_matter["title"] = "changed"


@pytest.mark.parametrize(
    "value, type_name",
    [("!!set {swift: null}", "set"), ("!!binary aGFza2VsbA==", "bytes"), ("[a, !!set {b: null}]", "set")],
)
def test_values_a_page_record_cannot_hold_are_rejected(value, type_name):
    raw = f"title: X\ndate: 2016-05-05\nextra: {value}\n"
    with pytest.raises(MetadataError) as excinfo:
        FrontMatterParser().parse(raw, source_path=Path("post.md"), line_offset=2)
    assert excinfo.value.line == 4
    assert f"unsupported value for 'extra': {type_name}" in str(excinfo.value)


def test_to_dict_stringifies_keys():
    front_matter = FrontMatterParser().parse("title: X\ndate: 2016-05-05\n2016-01-01: new year\n")
    assert front_matter.to_dict()["2016-01-01"] == "new year"
