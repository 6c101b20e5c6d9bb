"""Typed result records decoded from `atlas` JSON output.

The tool omits empty fields from its JSON, so every constructor tolerates
missing keys and falls back to empty values.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any


def _str(raw: dict[str, Any], key: str) -> str:
    value = raw.get(key)
    return value if isinstance(value, str) else ""


def _int(raw: dict[str, Any], key: str) -> int:
    value = raw.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        return 0
    return value


def _dict(raw: dict[str, Any], key: str) -> dict[str, Any] | None:
    value = raw.get(key)
    return value if isinstance(value, dict) else None


def _dicts(raw: dict[str, Any], key: str) -> list[dict[str, Any]]:
    value = raw.get(key)
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _strs(raw: dict[str, Any], key: str) -> list[str]:
    value = raw.get(key)
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def _time(raw: dict[str, Any], key: str) -> datetime | None:
    value = raw.get(key)
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def _plural(count: int) -> str:
    return "s" if count > 1 else ""


@dataclass(slots=True)
class Env:
    """Environment the command ran against."""

    driver: str = ""
    url: str = ""
    dir: str = ""

    @classmethod
    def from_dict(cls, raw: dict[str, Any] | None) -> Env:
        if raw is None:
            return cls()
        url = raw.get("URL")
        if isinstance(url, dict):
            # The tool may emit a parsed URL object; keep its string form.
            url = url.get("URL") or url.get("String") or ""
        return cls(
            driver=_str(raw, "Driver"),
            url=url if isinstance(url, str) else "",
            dir=_str(raw, "Dir"),
        )


@dataclass(slots=True)
class File:
    """A migration file."""

    name: str = ""
    version: str = ""
    description: str = ""

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> File:
        return cls(
            name=_str(raw, "Name"),
            version=_str(raw, "Version"),
            description=_str(raw, "Description"),
        )


@dataclass(slots=True)
class SQLError:
    """A statement and the error the database returned for it."""

    sql: str = ""
    error: str = ""

    @classmethod
    def from_dict(cls, raw: dict[str, Any] | None) -> SQLError | None:
        if raw is None:
            return None
        # Older releases emit {"Stmt", "Text"} instead of {"SQL", "Error"}.
        return cls(
            sql=_str(raw, "SQL") or _str(raw, "Stmt"),
            error=_str(raw, "Error") or _str(raw, "Text"),
        )


@dataclass(slots=True)
class StmtError:
    """A statement grouped with its execution error."""

    stmt: str = ""
    text: str = ""

    @classmethod
    def from_dict(cls, raw: dict[str, Any] | None) -> StmtError | None:
        if raw is None:
            return None
        return cls(stmt=_str(raw, "Stmt"), text=_str(raw, "Text"))


@dataclass(slots=True)
class Check:
    """One assertion and its error, if any."""

    stmt: str = ""
    error: str | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Check:
        error = raw.get("Error")
        return cls(stmt=_str(raw, "Stmt"), error=error if isinstance(error, str) else None)


@dataclass(slots=True)
class FileChecks:
    """Checks executed before applying a file."""

    name: str = ""
    stmts: list[Check] = field(default_factory=list)
    error: StmtError | None = None
    start: datetime | None = None
    end: datetime | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> FileChecks:
        return cls(
            name=_str(raw, "Name"),
            stmts=[Check.from_dict(item) for item in _dicts(raw, "Stmts")],
            error=StmtError.from_dict(_dict(raw, "Error")),
            start=_time(raw, "Start"),
            end=_time(raw, "End"),
        )


@dataclass(slots=True)
class AppliedFile:
    """A file applied during a migration attempt."""

    file: File
    start: datetime | None = None
    end: datetime | None = None
    skipped: int = 0
    applied: list[str] = field(default_factory=list)
    checks: list[FileChecks] = field(default_factory=list)
    error: SQLError | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> AppliedFile:
        return cls(
            file=File.from_dict(raw),
            start=_time(raw, "Start"),
            end=_time(raw, "End"),
            skipped=_int(raw, "Skipped"),
            applied=_strs(raw, "Applied"),
            checks=[FileChecks.from_dict(item) for item in _dicts(raw, "Checks")],
            error=SQLError.from_dict(_dict(raw, "Error")),
        )


@dataclass(slots=True)
class RevertedFile:
    """A file reverted during a migrate down attempt."""

    file: File
    start: datetime | None = None
    end: datetime | None = None
    skipped: int = 0
    applied: list[str] = field(default_factory=list)
    scope: str = ""
    error: SQLError | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> RevertedFile:
        return cls(
            file=File.from_dict(raw),
            start=_time(raw, "Start"),
            end=_time(raw, "End"),
            skipped=_int(raw, "Skipped"),
            applied=_strs(raw, "Applied"),
            scope=_str(raw, "Scope"),
            error=SQLError.from_dict(_dict(raw, "Error")),
        )


@dataclass(slots=True)
class MigrateApply:
    """Summary of a migration apply attempt on one database."""

    env: Env = field(default_factory=Env)
    pending: list[File] = field(default_factory=list)
    applied: list[AppliedFile] = field(default_factory=list)
    current: str = ""
    target: str = ""
    start: datetime | None = None
    end: datetime | None = None
    error: str = ""

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> MigrateApply:
        env = _dict(raw, "Env")
        return cls(
            env=Env.from_dict(env if env is not None else raw),
            pending=[File.from_dict(item) for item in _dicts(raw, "Pending")],
            applied=[AppliedFile.from_dict(item) for item in _dicts(raw, "Applied")],
            current=_str(raw, "Current"),
            target=_str(raw, "Target"),
            start=_time(raw, "Start"),
            end=_time(raw, "End"),
            error=_str(raw, "Error"),
        )

    def summary(self, indent: str = "") -> str:  # noqa: C901
        """Render the `-- 12ms / -- 2 migrations / ...` summary block."""

        passed_checks = failed_checks = 0
        passed_stmts = failed_stmts = 0
        passed_files = failed_files = 0
        for applied in self.applied:
            for file_checks in applied.checks:
                for check in file_checks.stmts:
                    if check.error is not None:
                        failed_checks += 1
                    else:
                        passed_checks += 1
            passed_stmts += len(applied.applied)
            if applied.error is not None:
                failed_files += 1
                # The last statement failed, unless the failure was an assertion.
                if not applied.checks or applied.checks[-1].error is None:
                    passed_stmts -= 1
                    failed_stmts += 1
            else:
                passed_files += 1

        lines = [_format_duration(self.start, self.end)]
        if passed_files and failed_files:
            lines.append(
                f"{passed_files} migration{_plural(passed_files)} ok, "
                f"{failed_files} with errors",
            )
        elif passed_files:
            lines.append(f"{passed_files} migration{_plural(passed_files)}")
        elif failed_files:
            lines.append(f"{failed_files} migration{_plural(failed_files)} with errors")

        if passed_checks and failed_checks:
            lines.append(
                f"{passed_checks} check{_plural(passed_checks)} ok, "
                f"{failed_checks} failure{_plural(failed_checks)}",
            )
        elif passed_checks:
            lines.append(f"{passed_checks} check{_plural(passed_checks)}")
        elif failed_checks:
            lines.append(f"{failed_checks} check error{_plural(failed_checks)}")

        if passed_stmts and failed_stmts:
            lines.append(
                f"{passed_stmts} sql statement{_plural(passed_stmts)} ok, "
                f"{failed_stmts} with errors",
            )
        elif passed_stmts:
            lines.append(f"{passed_stmts} sql statement{_plural(passed_stmts)}")
        elif failed_stmts:
            lines.append(f"{failed_stmts} sql statement{_plural(failed_stmts)} with errors")

        return f"\n{indent}".join(f"-- {line}" for line in lines)


@dataclass(slots=True)
class MigrateDown:
    """Summary of a migrate down attempt on one database."""

    planned: list[File] = field(default_factory=list)
    reverted: list[RevertedFile] = field(default_factory=list)
    current: str = ""
    target: str = ""
    total: int = 0
    start: datetime | None = None
    end: datetime | None = None
    url: str = ""
    status: str = ""
    error: str = ""

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> MigrateDown:
        return cls(
            planned=[File.from_dict(item) for item in _dicts(raw, "Planned")],
            reverted=[RevertedFile.from_dict(item) for item in _dicts(raw, "Reverted")],
            current=_str(raw, "Current"),
            target=_str(raw, "Target"),
            total=_int(raw, "Total"),
            start=_time(raw, "Start"),
            end=_time(raw, "End"),
            url=_str(raw, "URL"),
            status=_str(raw, "Status"),
            error=_str(raw, "Error"),
        )


@dataclass(slots=True)
class Revision:
    """An applied migration tracked in the revisions table."""

    version: str = ""
    description: str = ""
    type: str = ""
    applied: int = 0
    total: int = 0
    executed_at: datetime | None = None
    execution_time: timedelta = field(default_factory=timedelta)
    error: str = ""
    error_stmt: str = ""
    operator_version: str = ""

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Revision:
        return cls(
            version=_str(raw, "Version"),
            description=_str(raw, "Description"),
            type=_str(raw, "Type"),
            applied=_int(raw, "Applied"),
            total=_int(raw, "Total"),
            executed_at=_time(raw, "ExecutedAt"),
            # Durations are emitted in nanoseconds.
            execution_time=timedelta(microseconds=_int(raw, "ExecutionTime") / 1000),
            error=_str(raw, "Error"),
            error_stmt=_str(raw, "ErrorStmt"),
            operator_version=_str(raw, "OperatorVersion"),
        )


@dataclass(slots=True)
class MigrateStatus:
    """Migration status of one database."""

    available: list[File] = field(default_factory=list)
    pending: list[File] = field(default_factory=list)
    applied: list[Revision] = field(default_factory=list)
    current: str = ""
    next: str = ""
    count: int = 0
    total: int = 0
    status: str = ""
    error: str = ""
    sql: str = ""

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> MigrateStatus:
        return cls(
            available=[File.from_dict(item) for item in _dicts(raw, "Available")],
            pending=[File.from_dict(item) for item in _dicts(raw, "Pending")],
            applied=[Revision.from_dict(item) for item in _dicts(raw, "Applied")],
            current=_str(raw, "Current"),
            next=_str(raw, "Next"),
            count=_int(raw, "Count"),
            total=_int(raw, "Total"),
            status=_str(raw, "Status"),
            error=_str(raw, "Error"),
            sql=_str(raw, "SQL"),
        )


@dataclass(slots=True)
class FileReport:
    """Lint findings of one file."""

    name: str = ""
    text: str = ""
    reports: list[dict[str, Any]] = field(default_factory=list)
    error: str = ""

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> FileReport:
        return cls(
            name=_str(raw, "Name"),
            text=_str(raw, "Text"),
            reports=_dicts(raw, "Reports"),
            error=_str(raw, "Error"),
        )

    @property
    def diagnostics_count(self) -> int:
        return sum(len(_dicts(report, "Diagnostics")) for report in self.reports)


@dataclass(slots=True)
class StepReport:
    """One analysis step of a lint run."""

    name: str = ""
    text: str = ""
    error: str = ""
    result: FileReport | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> StepReport:
        result = _dict(raw, "Result")
        return cls(
            name=_str(raw, "Name"),
            text=_str(raw, "Text"),
            error=_str(raw, "Error"),
            result=FileReport.from_dict(result) if result is not None else None,
        )


@dataclass(slots=True)
class SummaryReport:
    """Summary of the analysis of all files of a lint run."""

    url: str = ""
    env: Env = field(default_factory=Env)
    current_schema: str = ""
    desired_schema: str = ""
    steps: list[StepReport] = field(default_factory=list)
    files: list[FileReport] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> SummaryReport:
        schema = _dict(raw, "Schema") or {}
        return cls(
            url=_str(raw, "URL"),
            env=Env.from_dict(_dict(raw, "Env")),
            current_schema=_str(schema, "Current"),
            desired_schema=_str(schema, "Desired"),
            steps=[StepReport.from_dict(item) for item in _dicts(raw, "Steps")],
            files=[FileReport.from_dict(item) for item in _dicts(raw, "Files")],
        )

    def diagnostics_count(self) -> int:
        """Total number of diagnostics in the report."""

        return sum(report.diagnostics_count for report in self.files)


@dataclass(slots=True)
class Changes:
    """SQL changes applied or pending during a schema apply."""

    applied: list[str] = field(default_factory=list)
    pending: list[str] = field(default_factory=list)
    error: StmtError | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any] | None) -> Changes:
        if raw is None:
            return cls()
        return cls(
            applied=_strs(raw, "Applied"),
            pending=_strs(raw, "Pending"),
            error=StmtError.from_dict(_dict(raw, "Error")),
        )


@dataclass(slots=True)
class SchemaApply:
    """Summary of a schema apply execution on one database."""

    env: Env = field(default_factory=Env)
    changes: Changes = field(default_factory=Changes)
    error: str = ""

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> SchemaApply:
        env = _dict(raw, "Env")
        return cls(
            env=Env.from_dict(env if env is not None else raw),
            changes=Changes.from_dict(_dict(raw, "Changes")),
            error=_str(raw, "Error"),
        )


@dataclass(slots=True)
class SchemaPlanFile:
    """A schema plan file, local or stored in the registry."""

    name: str = ""
    from_hash: str = ""
    to_hash: str = ""
    migration: str = ""
    url: str = ""
    link: str = ""
    status: str = ""

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> SchemaPlanFile:
        return cls(
            name=_str(raw, "Name"),
            from_hash=_str(raw, "FromHash"),
            to_hash=_str(raw, "ToHash"),
            migration=_str(raw, "Migration"),
            url=_str(raw, "URL"),
            link=_str(raw, "Link"),
            status=_str(raw, "Status"),
        )


@dataclass(slots=True)
class SchemaPlan:
    """Result of `schema plan` and `schema plan lint`."""

    env: Env = field(default_factory=Env)
    repo: str = ""
    lint: SummaryReport | None = None
    file: SchemaPlanFile | None = None
    error: str = ""

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> SchemaPlan:
        lint = _dict(raw, "Lint")
        plan_file = _dict(raw, "File")
        return cls(
            env=Env.from_dict(_dict(raw, "Env")),
            repo=_str(raw, "Repo"),
            lint=SummaryReport.from_dict(lint) if lint is not None else None,
            file=SchemaPlanFile.from_dict(plan_file) if plan_file is not None else None,
            error=_str(raw, "Error"),
        )


@dataclass(slots=True)
class SchemaPlanApprove:
    """Result of `schema plan approve`."""

    url: str = ""
    link: str = ""
    status: str = ""

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> SchemaPlanApprove:
        return cls(url=_str(raw, "URL"), link=_str(raw, "Link"), status=_str(raw, "Status"))


@dataclass(slots=True)
class WhoAmI:
    """Result of `whoami`."""

    org: str = ""

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> WhoAmI:
        return cls(org=_str(raw, "Org"))


@dataclass(slots=True)
class Version:
    """Parsed `atlas version` output."""

    version: str
    sha: str = ""
    canary: bool = False

    def __str__(self) -> str:
        text = f"atlas version v{self.version}"
        if self.sha:
            text += f"-{self.sha}"
        if self.canary:
            text += "-canary"
        return text


@dataclass(slots=True)
class CopilotMessage:
    """One JSON message emitted by a one-shot copilot session."""

    type: str
    session_id: str = ""
    content: str = ""

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> CopilotMessage:
        return cls(
            type=_str(raw, "type"),
            session_id=_str(raw, "sessionID"),
            content=_str(raw, "content"),
        )


class Copilot(list[CopilotMessage]):
    """Messages of one copilot session; `str()` joins their content."""

    def __str__(self) -> str:
        return "".join(message.content for message in self)


def _format_duration(start: datetime | None, end: datetime | None) -> str:
    if start is None or end is None:
        return "0s"
    seconds = (end - start).total_seconds()
    if seconds < 0.001:
        return f"{round(seconds * 1_000_000)}µs"
    if seconds < 1:
        return f"{_trim_float(seconds * 1000)}ms"
    return f"{_trim_float(seconds)}s"


def _trim_float(value: float) -> str:
    return f"{value:.3f}".rstrip("0").rstrip(".")
