from __future__ import annotations

import json
import random

import allure
import pytest

from atlas_exec.runner import OutcomeClass, RawOutcome, classify_outcome
from atlas_exec.runner.classifier import has_record_error

pytestmark = [
    allure.epic("Atlas Client"),
    allure.feature("Outcome Classification"),
]


def test_stderr_wins_over_valid_stdout_records() -> None:
    classified = classify_outcome(
        RawOutcome(
            exit_code=1,
            stdout='{"Driver":"sqlite3","Error":"boom"}',
            stderr='Error: required flag "url" not set',
        ),
    )

    assert classified.outcome_class is OutcomeClass.STRUCTURAL_FAILURE
    assert classified.detail == 'Error: required flag "url" not set'


def test_successful_exit_is_clean() -> None:
    classified = classify_outcome(RawOutcome(exit_code=0, stdout='{"Driver":"sqlite3"}', stderr=""))

    assert classified.outcome_class is OutcomeClass.CLEAN
    assert classified.records == ()


def test_failed_exit_with_record_error_is_partial_failure() -> None:
    stdout = (
        '{"Driver":"sqlite3","Target":"1"}\n'
        '{"Driver":"sqlite3","Error":"sql/migrate: executing statement failed"}'
    )
    classified = classify_outcome(RawOutcome(exit_code=1, stdout=stdout, stderr=""))

    assert classified.outcome_class is OutcomeClass.PARTIAL_FAILURE
    assert len(classified.records) == 2
    assert classified.detail == "sql/migrate: executing statement failed"


def test_failed_exit_with_clean_records_is_soft_failure() -> None:
    stdout = json.dumps({"Files": [{"Name": "1.sql", "Reports": [{"Diagnostics": [{}]}]}]})
    classified = classify_outcome(RawOutcome(exit_code=1, stdout=stdout, stderr=""))

    assert classified.outcome_class is OutcomeClass.SOFT_FAILURE
    assert classified.records[0]["Files"][0]["Name"] == "1.sql"


def test_failed_exit_with_empty_stdout_is_malformed() -> None:
    classified = classify_outcome(RawOutcome(exit_code=2, stdout="", stderr=""))

    assert classified.outcome_class is OutcomeClass.MALFORMED
    assert classified.detail.startswith("unexpected output format")


def test_failed_exit_with_non_json_stdout_is_malformed() -> None:
    classified = classify_outcome(RawOutcome(exit_code=1, stdout="not json", stderr=""))

    assert classified.outcome_class is OutcomeClass.MALFORMED
    assert "decoding JSON from stdout" in classified.detail


def test_unknown_exit_code_without_output_is_malformed() -> None:
    classified = classify_outcome(RawOutcome(exit_code=None, stdout="", stderr=""))

    assert classified.outcome_class is OutcomeClass.MALFORMED


def test_partial_failure_detail_is_never_empty_for_object_errors() -> None:
    stdout = '{"Target":"1"}\n{"Target":"2","Error":{"Code":5,"Reason":"locked"}}'
    classified = classify_outcome(RawOutcome(exit_code=1, stdout=stdout, stderr=""))

    assert classified.outcome_class is OutcomeClass.PARTIAL_FAILURE
    assert classified.detail == '{"Code": 5, "Reason": "locked"}'


def test_nested_changes_error_counts_as_record_error() -> None:
    record = {"Changes": {"Error": {"Stmt": "CREATE TABLE t", "Text": "table exists"}}}

    assert has_record_error(record)
    assert not has_record_error({"Changes": {"Applied": ["CREATE TABLE t"]}})


def test_classification_is_deterministic_for_random_streams() -> None:
    rng = random.Random(20240101)
    alphabet = "abc {}[]\":,\n\tError"
    for _ in range(200):
        stdout = "".join(rng.choice(alphabet) for _ in range(rng.randint(0, 40)))
        stderr = "".join(rng.choice(alphabet) for _ in range(rng.randint(0, 5)))
        raw = RawOutcome(exit_code=rng.choice([0, 1, 2, None]), stdout=stdout, stderr=stderr)

        first = classify_outcome(raw)
        second = classify_outcome(raw)

        assert first.outcome_class is second.outcome_class
        if stderr:
            assert first.outcome_class is OutcomeClass.STRUCTURAL_FAILURE


@pytest.mark.parametrize("exit_code", [0, 1, 3, None])
def test_any_stderr_is_structural_whatever_the_exit_code(exit_code: int | None) -> None:
    classified = classify_outcome(RawOutcome(exit_code=exit_code, stdout="{}", stderr="x"))

    assert classified.outcome_class is OutcomeClass.STRUCTURAL_FAILURE
