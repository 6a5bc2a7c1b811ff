import pytest

from prep_format import parse_json_content, strip_json_fences


@pytest.mark.parametrize(
    "raw",
    [
        '{"a": 1}',
        '```json\n{"a": 1}\n```',
        '```\n{"a": 1}\n```',
        '```JSON\n{"a": 1}\n```',
        '\n\n  ```json\n{"a": 1}\n```  \n\n',
        '```json\r\n{"a": 1}\r\n```\r\n',
        '```json {"a": 1}```',
    ],
)
def test_fences_are_stripped(raw):
    assert strip_json_fences(raw) == '{"a": 1}'


@pytest.mark.parametrize(
    "raw",
    [
        "",
        "plain text",
        '```json\n```json\n{"a": 1}\n```\n```',
        "``````",
        "```",
        '{"code": "```"}',
        "  ```python\nprint(1)\n``` trailing",
    ],
)
def test_stripping_is_idempotent(raw):
    once = strip_json_fences(raw)
    assert strip_json_fences(once) == once


def test_none_becomes_empty_string():
    assert strip_json_fences(None) == ""


def test_parse_json_content_accepts_fenced_object():
    assert parse_json_content('```json\n{"maps": []}\n```') == {"maps": []}


@pytest.mark.parametrize("content", [None, "", "not json", "```json\n{broken\n```", "null"])
def test_parse_json_content_returns_none_on_garbage(content):
    assert parse_json_content(content) is None
