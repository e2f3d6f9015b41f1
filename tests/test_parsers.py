"""Tests for output parsing helpers."""

import pytest
from pydantic import BaseModel

from agentrelay.utils.helpers import preview_text, serialize_content
from agentrelay.utils.parsers import OutputParserError, find_json_in_string, parse_json_output, validate_output


class Verdict(BaseModel):
    verdict: str
    score: int


def test_plain_json():
    assert parse_json_output('{"a": 1}') == {"a": 1}


def test_fenced_code_block():
    output = 'Result:\n```json\n{"verdict": "ok", "score": 3}\n```\nThanks'
    assert parse_json_output(output) == {"verdict": "ok", "score": 3}


def test_embedded_object_and_array():
    assert parse_json_output('The answer is {"a": {"b": [1, 2]}} overall') == {"a": {"b": [1, 2]}}
    assert parse_json_output('tools: ["x", "y"]') == ["x", "y"]


def test_unescaped_quotes_are_repaired():
    assert parse_json_output('{"quote": "he said "hi" twice"}') == {"quote": 'he said "hi" twice'}


def test_no_json_raises():
    with pytest.raises(OutputParserError):
        parse_json_output("no json here")


def test_find_json_in_string():
    assert find_json_in_string('x {"a": [1, {"b": 2}]} y {"c": 3}') == '{"a": [1, {"b": 2}]}'
    assert find_json_in_string("nothing") == ""
    assert find_json_in_string("{unbalanced") == ""


def test_validate_output():
    assert validate_output('{"verdict": "pass", "score": 9}', Verdict) == Verdict(verdict="pass", score=9)
    with pytest.raises(OutputParserError, match="Verdict"):
        validate_output('{"verdict": "pass"}', Verdict)


def test_serialize_content():
    assert serialize_content("text") == "text"
    assert serialize_content(None) == ""
    assert serialize_content({"a": 1}) == '{\n  "a": 1\n}'
    assert '"score": 1' in serialize_content(Verdict(verdict="v", score=1))


def test_preview_text_truncates_and_flattens():
    assert preview_text("a\n  b") == "a b"
    assert preview_text("x" * 50, limit=10) == "xxxxxxx..."
