import pytest

from recipe_harvester.app.services.url_parsing.errors import AIExtractionError, AIResponseParseError
from recipe_harvester.app.services.url_parsing.json_repair import (
    first_balanced_object,
    parse_json_response,
    sanitize_json_text,
)


def test_valid_json_parses_directly():
    assert parse_json_response('{"title": "Soup"}') == {"title": "Soup"}


def test_fenced_output_with_trailing_commas():
    raw = '```json\n{"title": "Soup", "ingredients": ["salt",],}\n```'
    assert parse_json_response(raw) == {"title": "Soup", "ingredients": ["salt"]}


def test_bare_keys_and_double_commas():
    raw = '{title: "Soup",, servings: 4}'
    assert parse_json_response(raw) == {"title": "Soup", "servings": 4}


def test_prose_around_object_is_ignored():
    raw = 'Here is the recipe you asked for: {"title": "Soup"} Enjoy!'
    assert parse_json_response(raw) == {"title": "Soup"}


def test_first_balanced_object_wins_when_several_are_present():
    raw = '{"title": "Soup"} and also {"title": "Stew"}'
    assert parse_json_response(raw) == {"title": "Soup"}


def test_urls_survive_comment_stripping():
    raw = '{"image": "https://example.com/soup.jpg", // hero image\n"title": "Soup",}'
    parsed = parse_json_response(raw)
    assert parsed["image"] == "https://example.com/soup.jpg"
    assert parsed["title"] == "Soup"


def test_balanced_object_ignores_braces_inside_strings():
    text = 'noise {"note": "use {braces} freely", "n": 1} trailing }'
    assert first_balanced_object(text) == '{"note": "use {braces} freely", "n": 1}'


def test_sanitize_removes_block_comments():
    assert sanitize_json_text('{"a": 1 /* count */}') == '{"a": 1 }'


def test_unrecoverable_text_raises_after_every_tier():
    with pytest.raises(AIResponseParseError) as exc_info:
        parse_json_response("the model refused to answer", context="detailed extraction")
    assert exc_info.value.attempts == 4
    assert "detailed extraction" in str(exc_info.value)
    assert "after 4 attempts" in str(exc_info.value)
    assert isinstance(exc_info.value, AIExtractionError)


def test_repairs_leave_string_contents_alone():
    raw = '{"title": "Pad Thai", "instructions": ["Meanwhile, prepare: the sauce", "Serve, garnish,, ]"],}'
    assert parse_json_response(raw) == {
        "title": "Pad Thai",
        "instructions": ["Meanwhile, prepare: the sauce", "Serve, garnish,, ]"],
    }


def test_sanitize_handles_escaped_quotes_in_strings():
    assert sanitize_json_text('{"note": "say \\"hi, there: now\\"",}') == '{"note": "say \\"hi, there: now\\""}'
