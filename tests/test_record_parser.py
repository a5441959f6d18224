import pytest

from panel_corpus.exceptions import MalformedPageError
from panel_corpus.models import PanelDetail
from panel_corpus.record_parser import (
    SPLIT_RULES,
    SplitRule,
    parse_detail,
    split_compound_fields,
    split_description_block,
    split_title,
    strip_id_prefix,
)

POSITIONS = {'title': 0, 'organizer': 1, 'posted': 2, 'desc': 3}


def make_detail(desc_block, organizers="Jane Doe; John Smith", title="042. Gender and Technology"):
    return PanelDetail(
        raw_title=title,
        raw_organizer_block=organizers,
        raw_posted_date=" March 3, 2021 ",
        raw_desc_block=desc_block,
        url="https://panels.example.org/2021/03/x/",
    )


def test_split_title_strips_numeric_prefix():
    assert split_title("042. Gender and Technology") == ("042", "Gender and Technology")


@pytest.mark.parametrize("raw", ["7: Title", "7 - Title", "  7)  Title ", "7 .Title"])
def test_split_title_separators(raw):
    assert split_title(raw) == ("7", "Title")


def test_split_title_without_id():
    assert split_title("Gender and Technology") == (None, "Gender and Technology")


def test_strip_id_prefix_is_idempotent():
    once = strip_id_prefix("042. Gender and Technology")
    assert strip_id_prefix(once) == once == "Gender and Technology"


@pytest.mark.parametrize("raw", [
    "042. 10 Years of Feminist Data",
    "042 - 2030 Agenda and Gender",
    "042: 3.5 Degrees",
])
def test_strip_id_prefix_is_idempotent_for_numeric_titles(raw):
    once = strip_id_prefix(raw)
    assert split_title(once) == (None, once)
    assert strip_id_prefix(once) == once


@pytest.mark.parametrize("raw", ["2030 Agenda and Gender", "3.5 Degrees", "10 Years of Feminist Data"])
def test_bare_leading_number_is_not_an_id(raw):
    assert split_title(raw) == (None, raw)


def test_split_title_id_only():
    assert split_title("042.") == ("042", "")


def test_organizer_split():
    assert SPLIT_RULES['organizers'].apply("Jane Doe; John Smith") == ["Jane Doe", "John Smith"]


def test_organizer_split_drops_empty_segments():
    assert SPLIT_RULES['organizers'].apply("Jane Doe; ; John Smith; ") == ["Jane Doe", "John Smith"]


def test_split_rule_keeps_empties_when_asked():
    rule = SplitRule(delimiter=',', trim=True, drop_empty=False)
    assert rule.apply("a, ,b") == ["a", "", "b"]
    assert rule.apply(None) == []


def test_description_and_keywords_example():
    description, keywords, unseparated = split_description_block(
        "Foo bar baz.\n\nContact: x@example.com\n\nKeywords: alpha, beta"
    )
    assert description == "Foo bar baz."
    assert keywords == ["alpha", "beta"]
    assert unseparated is False


def test_keywords_split_on_comma_and_semicolon():
    _, keywords, _ = split_description_block("Text.\n\nContact: a\n\nKeywords: a, b; c,, d")
    assert keywords == ["a", "b", "c", "d"]


def test_keyword_marker_is_case_sensitive():
    _, keywords, _ = split_description_block("Text.\n\nContact: a\n\nkeywords: a, b")
    assert keywords == []


def test_missing_contact_marker_keeps_whole_block_and_flags_it():
    block = "Foo bar baz.\n\nKeywords: alpha"
    description, keywords, unseparated = split_description_block(block)
    assert description == block
    assert keywords == ["alpha"]
    assert unseparated is True


def test_parse_detail_joins_description_tail():
    fields = ["042. Title", "Jane Doe", "March 3, 2021", "Foo.", "Contact: a@b.org", "Keywords: x"]
    detail = parse_detail(fields, POSITIONS, url="https://panels.example.org/2021/03/x/")
    assert detail.raw_title == "042. Title"
    assert detail.raw_organizer_block == "Jane Doe"
    assert detail.raw_posted_date == "March 3, 2021"
    assert detail.raw_desc_block == "Foo.\n\nContact: a@b.org\n\nKeywords: x"


def test_parse_detail_too_short_names_url():
    url = "https://panels.example.org/2021/03/short/"
    with pytest.raises(MalformedPageError) as excinfo:
        parse_detail(["042. Title", "Jane Doe"], POSITIONS, url=url)
    assert excinfo.value.url == url
    assert url in str(excinfo.value)


def test_split_compound_fields():
    record = split_compound_fields(make_detail(
        "Foo bar baz.\n\nContact: x@example.com\n\nKeywords: alpha, beta"
    ))
    assert record.id == "042"
    assert record.title == "Gender and Technology"
    assert record.organizers == ["Jane Doe", "John Smith"]
    assert record.posted == "March 3, 2021"
    assert record.description == "Foo bar baz."
    assert record.keywords == ["alpha", "beta"]
    assert record.has_unseparated_suffix is False


def test_split_compound_fields_without_keywords():
    record = split_compound_fields(make_detail("Just a description."))
    assert record.keywords == []
    assert record.description == "Just a description."
    assert record.has_unseparated_suffix is True


def test_split_compound_fields_requires_id():
    with pytest.raises(MalformedPageError):
        split_compound_fields(make_detail("Text.", title="Gender and Technology"))
