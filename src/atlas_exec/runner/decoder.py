"""Decode one or many JSON documents printed back-to-back on stdout."""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any, TypeVar

from atlas_exec.errors import MalformedOutputError, ResultCountError

T = TypeVar("T")

_DECODER = json.JSONDecoder()


def decode_values(stdout: str) -> list[Any]:
    """Decode a stream of concatenated JSON values until end of input.

    Values may be separated by any whitespace. A decode error anywhere
    discards everything decoded so far.
    """

    values: list[Any] = []
    index = _skip_whitespace(stdout, 0)
    while index < len(stdout):
        try:
            value, index = _DECODER.raw_decode(stdout, index)
        except json.JSONDecodeError as error:
            raise MalformedOutputError(
                f"unexpected output format: decoding JSON from stdout: {error}",
                stdout=stdout,
            ) from error
        values.append(value)
        index = _skip_whitespace(stdout, index)
    return values


def decode_records(stdout: str) -> list[dict[str, Any]]:
    """Decode a stream of JSON objects, one per reported target."""

    values = decode_values(stdout)
    for value in values:
        if not isinstance(value, dict):
            raise MalformedOutputError(
                f"unexpected output format: expected JSON object, got {type(value).__name__}",
                stdout=stdout,
            )
    return values


def first_result(items: Sequence[T]) -> T:
    """Return the only item, or fail when the command produced zero or many."""

    if len(items) != 1:
        raise ResultCountError(len(items))
    return items[0]


def _skip_whitespace(text: str, index: int) -> int:
    while index < len(text) and text[index].isspace():
        index += 1
    return index
