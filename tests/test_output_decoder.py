from __future__ import annotations

import json

import allure
import pytest

from atlas_exec.errors import MalformedOutputError, ResultCountError
from atlas_exec.runner import decode_records, decode_values, first_result

pytestmark = [
    allure.epic("Atlas Client"),
    allure.feature("Output Decoding"),
]


def test_decodes_back_to_back_objects() -> None:
    records = decode_records('{"Target":"1"}{"Target":"2"}\n  {"Target":"3"}\n')

    assert [record["Target"] for record in records] == ["1", "2", "3"]


def test_empty_stream_decodes_to_no_records() -> None:
    assert decode_values("") == []
    assert decode_values(" \n\t") == []


def test_decodes_top_level_array_as_one_value() -> None:
    values = decode_values('[{"Name":"plan"}]')

    assert values == [[{"Name": "plan"}]]


def test_trailing_garbage_discards_everything() -> None:
    with pytest.raises(MalformedOutputError) as error:
        decode_records('{"Target":"1"} trailing')

    assert error.value.message.startswith("unexpected output format: decoding JSON from stdout")
    assert error.value.stdout == '{"Target":"1"} trailing'


def test_records_must_be_objects() -> None:
    with pytest.raises(MalformedOutputError, match="expected JSON object"):
        decode_records("[1, 2]")


def test_first_result_returns_single_item() -> None:
    assert first_result(["only"]) == "only"


@pytest.mark.parametrize("items", [[], ["a", "b"]])
def test_first_result_rejects_other_counts(items: list[str]) -> None:
    with pytest.raises(ResultCountError) as error:
        first_result(items)

    assert error.value.count == len(items)
    assert "use the slice variant instead" in str(error.value)


@pytest.mark.parametrize("count", [1, 2, 5])
def test_encoded_records_decode_in_order(count: int) -> None:
    records = [
        {"Target": str(index), "Applied": [f"stmt {index}"], "Nested": {"Depth": index}}
        for index in range(count)
    ]
    separators = ["", "\n", " \t", "\r\n"]
    stream = "".join(
        separators[index % len(separators)] + json.dumps(record)
        for index, record in enumerate(records)
    )

    assert decode_records(stream) == records
