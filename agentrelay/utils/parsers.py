"""
Output parsing utilities for extracting JSON answers from model text.
"""

import json
from typing import Any, Iterator, List, Type

from pydantic import BaseModel, ValidationError


class OutputParserError(Exception):
    """
    Exception raised when model output cannot be parsed or validated.
    """
    def __init__(self, message, output=None):
        self.message = message
        self.output = output
        super().__init__(self.message)

    def __str__(self):
        if self.output:
            return f"{self.message}\nProblematic output: {self.output}"
        return self.message


def _escape_unescaped_quotes(json_text: str) -> str:
    """Escape bare double quotes that appear inside JSON string values."""
    result: List[str] = []
    in_string = False
    escape_next = False
    for index, char in enumerate(json_text):
        if escape_next:
            result.append(char)
            escape_next = False
        elif char == '\\':
            result.append(char)
            escape_next = True
        elif char != '"':
            result.append(char)
        elif not in_string:
            in_string = True
            result.append(char)
        else:
            rest = json_text[index + 1:].lstrip(" \t\r\n")
            if rest and rest[0] not in ",:}]":
                result.append('\\"')
            else:
                result.append(char)
                in_string = False
    return "".join(result)


def find_json_in_string(string: str) -> str:
    """
    Return the left-most balanced ``{...}`` or ``[...]`` block in ``string``.
    The block is not validated; an empty string means none was found.
    """
    openers = {"{": "}", "[": "]"}
    start = None
    stack: List[str] = []

    for i, c in enumerate(string):
        if c in openers:
            if not stack:
                start = i
            stack.append(openers[c])
        elif stack and c == stack[-1]:
            stack.pop()
            if not stack:
                return string[start:i + 1]
    return ""


def _code_block_body(output: str) -> str:
    parts = output.split("```")
    if len(parts) < 2:
        return ""
    body = parts[1]
    if body[:4].lower() == "json":
        body = body[4:]
    return body.strip()


def _candidates(output: str) -> Iterator[str]:
    yield output
    if "```" in output:
        body = _code_block_body(output)
        if body:
            yield body
    embedded = find_json_in_string(output)
    if embedded:
        yield embedded


def parse_json_output(output: str) -> Any:
    """Parse ``output`` as JSON, also trying fenced code blocks and embedded objects."""
    for candidate in _candidates(output):
        for text in (candidate, _escape_unescaped_quotes(candidate)):
            try:
                return json.loads(text)
            except json.JSONDecodeError:
                continue
    raise OutputParserError("Failed to parse output as JSON", output)


def validate_output(output: str, schema: Type[BaseModel]) -> BaseModel:
    """Parse model text as JSON and validate it against ``schema``.

    Raises:
        OutputParserError: if the text holds no JSON or the JSON does not validate.
    """
    data = parse_json_output(output)
    try:
        return schema.model_validate(data)
    except ValidationError as exc:
        raise OutputParserError(f"Output does not match {schema.__name__}: {exc}", output) from exc
