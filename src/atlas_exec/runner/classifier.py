"""Deterministic classification of a completed `atlas` invocation."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from atlas_exec.errors import MalformedOutputError, record_error_text
from atlas_exec.runner.decoder import decode_records
from atlas_exec.runner.executor import RawOutcome


class OutcomeClass(str, Enum):
    """Mutually exclusive outcome classes of one invocation."""

    CLEAN = "clean"
    STRUCTURAL_FAILURE = "structural_failure"
    PARTIAL_FAILURE = "partial_failure"
    SOFT_FAILURE = "soft_failure"
    MALFORMED = "malformed"


@dataclass(slots=True, frozen=True)
class Classification:
    """Outcome class plus the records decoded while classifying, if any."""

    outcome_class: OutcomeClass
    raw: RawOutcome
    records: tuple[dict[str, Any], ...] = ()
    detail: str = ""


def classify_outcome(raw: RawOutcome) -> Classification:
    """Classify raw process output; the first matching rule wins.

    1. non-empty stderr: structural failure, whatever stdout holds;
    2. successful exit: clean;
    3. failed exit with JSON records on stdout: partial failure when a record
       carries an error, soft failure otherwise;
    4. anything else (empty or non-JSON stdout): malformed.
    """

    if raw.stderr:
        return Classification(OutcomeClass.STRUCTURAL_FAILURE, raw, detail=raw.stderr)
    if raw.succeeded:
        return Classification(OutcomeClass.CLEAN, raw)
    if not raw.stdout:
        return Classification(
            OutcomeClass.MALFORMED,
            raw,
            detail="unexpected output format: empty output",
        )

    try:
        records = decode_records(raw.stdout)
    except MalformedOutputError as error:
        return Classification(OutcomeClass.MALFORMED, raw, detail=error.message)

    failed = [record for record in records if has_record_error(record)]
    if failed:
        return Classification(
            OutcomeClass.PARTIAL_FAILURE,
            raw,
            records=tuple(records),
            detail=record_error_text(records[-1]) or record_error_text(failed[-1]),
        )
    return Classification(OutcomeClass.SOFT_FAILURE, raw, records=tuple(records))


def has_record_error(record: Mapping[str, Any]) -> bool:
    """Whether a decoded record carries a populated record-level error field."""

    return bool(record_error_text(record))
