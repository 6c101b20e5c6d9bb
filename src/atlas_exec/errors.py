"""Error taxonomy raised by the Atlas CLI client.

Every failure surfaced by the client derives from `AtlasExecError`, which keeps
the raw process streams and exit code for diagnostics. Callers branch on the
exception class, never on message text:

- `ConfigurationError`: invalid setup, raised before any process starts.
- `InvocationCancelled`: the caller cancelled the call or its timeout elapsed.
- `InvocationStartError`: the executable could not be spawned.
- `CommandError`: the tool reported a fault on stderr.
- `MalformedOutputError`: stdout did not hold the JSON the command promises.
- `ResultCountError`: a single-target command produced zero or many records.
- `PartialFailureError`: a multi-target run where at least one target failed.
- `SoftFailureError`: the command completed with findings (`LintError`).
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Any

DEFAULT_EXIT_CODE = 1


class AtlasExecError(Exception):
    """Base error with the raw output of the failed invocation."""

    def __init__(
        self,
        message: str,
        *,
        stdout: str = "",
        stderr: str = "",
        exit_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.stdout = stdout
        self.stderr = stderr
        self._exit_code = exit_code

    @property
    def exit_code(self) -> int:
        """Exit code of the process, or the system default when none was observed.

        An observed 0 is reported as is, e.g. for stderr output on a clean exit.
        """

        if self._exit_code is None:
            return DEFAULT_EXIT_CODE
        return self._exit_code

    def __str__(self) -> str:
        return self.message


class ConfigurationError(AtlasExecError, ValueError):
    """Client setup is invalid (empty exec path, forbidden env override, ...)."""


class InvalidParamsError(ConfigurationError):
    """Parameters for one command are invalid or incomplete."""

    def __init__(self, command: str, reason: str) -> None:
        super().__init__(f"atlasexec: command {command!r} has invalid parameters: {reason}")
        self.command = command
        self.reason = reason


class InvocationCancelled(AtlasExecError):
    """The running process was terminated because the caller cancelled the call."""


class InvocationTimeout(InvocationCancelled):
    """The running process was terminated because its deadline elapsed."""


class InvocationStartError(AtlasExecError):
    """The executable could not be started."""


class ExecutableNotFound(InvocationStartError):
    """The executable does not exist or is not on PATH."""


class CommandError(AtlasExecError):
    """Structural failure: the tool wrote a diagnostic to stderr."""


class MalformedOutputError(AtlasExecError):
    """Stdout did not match the expected output format."""


class ResultCountError(AtlasExecError):
    """A single-result command did not produce exactly one record."""

    def __init__(self, count: int) -> None:
        super().__init__(
            f"expected exactly one result, got {count}; use the slice variant instead",
        )
        self.count = count


class PartialFailureError(AtlasExecError):
    """Some targets of a multi-target run failed.

    `records` holds every record the tool emitted, in emission order, so
    callers can inspect which targets succeeded. The message is the error of
    the last record, which is where the tool reports the failure.
    `detail` is the fallback message when no record yields error text.
    """

    def __init__(
        self,
        records: Sequence[Any],
        *,
        stdout: str = "",
        stderr: str = "",
        exit_code: int | None = None,
        detail: str = "",
    ) -> None:
        self.records = list(records)
        last = self.records[-1] if self.records else None
        super().__init__(
            record_error_text(last) or detail,
            stdout=stdout,
            stderr=stderr,
            exit_code=exit_code,
        )


class MigrateApplyError(PartialFailureError):
    """Error of a `migrate apply` attempt; records are `MigrateApply` values."""


class MigrateDownError(PartialFailureError):
    """Error of a `migrate down` attempt; records are `MigrateDown` values."""


class SchemaApplyError(PartialFailureError):
    """Error of a `schema apply` attempt; records are `SchemaApply` values."""


class SoftFailureError(AtlasExecError):
    """The command completed, but produced findings the caller treats as failure."""

    def __init__(
        self,
        message: str,
        records: Sequence[Any],
        *,
        stdout: str = "",
        stderr: str = "",
        exit_code: int | None = None,
    ) -> None:
        super().__init__(message, stdout=stdout, stderr=stderr, exit_code=exit_code)
        self.records = list(records)


class LintError(SoftFailureError):
    """Lint finished with diagnostics; the report is kept on `report`."""

    def __init__(
        self,
        records: Sequence[Any],
        *,
        stdout: str = "",
        stderr: str = "",
        exit_code: int | None = None,
    ) -> None:
        super().__init__(
            "lint error",
            records,
            stdout=stdout,
            stderr=stderr,
            exit_code=exit_code,
        )

    @property
    def report(self) -> Any:
        return self.records[-1] if self.records else None


def record_error_text(record: Any) -> str:
    """Return the record-level error of one decoded or typed record, or ''."""

    if record is None:
        return ""
    if isinstance(record, Mapping):
        text = _error_value_text(record.get("Error"))
        if text:
            return text
        changes = record.get("Changes")
        if isinstance(changes, Mapping):
            return _error_value_text(changes.get("Error"))
        return ""

    text = getattr(record, "error", None)
    if isinstance(text, str) and text:
        return text
    changes = getattr(record, "changes", None)
    nested = getattr(changes, "error", None) if changes is not None else None
    if nested is not None:
        return str(getattr(nested, "text", "") or "")
    return ""


def _error_value_text(value: object) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        for key in ("Error", "Text"):
            nested = value.get(key)
            if isinstance(nested, str) and nested:
                return nested
        for key in ("SQL", "Stmt"):
            nested = value.get(key)
            if isinstance(nested, str) and nested:
                return nested
    if isinstance(value, (Mapping, list)) and value:
        return json.dumps(value, sort_keys=True)
    return ""
