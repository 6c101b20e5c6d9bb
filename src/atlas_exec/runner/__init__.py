"""Execution engine: run the tool, classify its outcome, decode its records."""

from atlas_exec.runner.classifier import Classification, OutcomeClass, classify_outcome
from atlas_exec.runner.decoder import decode_records, decode_values, first_result
from atlas_exec.runner.environ import build_environment, check_overrides, os_environ
from atlas_exec.runner.executor import CancelToken, InvocationRequest, ProcessExecutor, RawOutcome

__all__ = [
    "CancelToken",
    "Classification",
    "InvocationRequest",
    "OutcomeClass",
    "ProcessExecutor",
    "RawOutcome",
    "build_environment",
    "check_overrides",
    "classify_outcome",
    "decode_records",
    "decode_values",
    "first_result",
    "os_environ",
]
