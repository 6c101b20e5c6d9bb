from __future__ import annotations

from datetime import timedelta

import allure

from atlas_exec.models import (
    Copilot,
    CopilotMessage,
    MigrateApply,
    MigrateStatus,
    SchemaApply,
    SchemaPlan,
    SummaryReport,
    Version,
)

pytestmark = [
    allure.epic("Atlas Client"),
    allure.feature("Result Records"),
]


def _applied_file(version: str, statements: list[str], *, error: dict | None = None) -> dict:
    payload: dict = {
        "Name": f"{version}_init.sql",
        "Version": version,
        "Applied": statements,
    }
    if error is not None:
        payload["Error"] = error
    return payload


def test_migrate_apply_reads_env_and_files() -> None:
    result = MigrateApply.from_dict(
        {
            "Driver": "sqlite3",
            "URL": {"URL": "sqlite://file.db"},
            "Dir": "file://migrations",
            "Pending": [{"Name": "1_init.sql", "Version": "1"}],
            "Applied": [_applied_file("1", ["CREATE TABLE t (c int);"])],
            "Current": "",
            "Target": "1",
            "Start": "2024-01-01T10:00:00.000000+00:00",
            "End": "2024-01-01T10:00:00.012500+00:00",
        },
    )

    assert result.env.driver == "sqlite3"
    assert result.env.url == "sqlite://file.db"
    assert result.pending[0].name == "1_init.sql"
    assert result.applied[0].file.version == "1"
    assert result.target == "1"


def test_migrate_apply_summary_counts_files_and_statements() -> None:
    result = MigrateApply.from_dict(
        {
            "Applied": [
                _applied_file("1", ["CREATE TABLE a (c int);", "CREATE TABLE b (c int);"]),
                _applied_file("2", ["CREATE TABLE c (c int);"]),
            ],
            "Start": "2024-01-01T10:00:00.000000+00:00",
            "End": "2024-01-01T10:00:00.012500+00:00",
        },
    )

    assert result.summary("  ") == "-- 12.5ms\n  -- 2 migrations\n  -- 3 sql statements"


def test_migrate_apply_summary_marks_failed_statement() -> None:
    result = MigrateApply.from_dict(
        {
            "Applied": [
                _applied_file("1", ["CREATE TABLE a (c int);"]),
                _applied_file(
                    "2",
                    ["CREATE TABLE b (c int);", "BAD SQL;"],
                    error={"SQL": "BAD SQL;", "Error": "syntax error"},
                ),
            ],
        },
    )

    assert result.summary() == (
        "-- 0s\n"
        "-- 1 migration ok, 1 with errors\n"
        "-- 2 sql statements ok, 1 with errors"
    )
    assert result.applied[1].error is not None
    assert result.applied[1].error.error == "syntax error"


def test_migrate_status_reads_revisions() -> None:
    status = MigrateStatus.from_dict(
        {
            "Status": "PENDING",
            "Current": "1",
            "Next": "2",
            "Count": 1,
            "Total": 2,
            "Applied": [{"Version": "1", "ExecutionTime": 1_500_000, "Applied": 1, "Total": 1}],
            "Pending": [{"Name": "2_add.sql", "Version": "2"}],
        },
    )

    assert status.status == "PENDING"
    assert status.applied[0].execution_time == timedelta(microseconds=1500)
    assert status.pending[0].version == "2"


def test_summary_report_counts_diagnostics() -> None:
    report = SummaryReport.from_dict(
        {
            "URL": "sqlite://dev",
            "Files": [
                {"Name": "1.sql", "Reports": [{"Diagnostics": [{"Text": "a"}, {"Text": "b"}]}]},
                {"Name": "2.sql", "Reports": [{"Diagnostics": [{"Text": "c"}]}]},
                {"Name": "3.sql"},
            ],
        },
    )

    assert report.diagnostics_count() == 3
    assert report.files[0].diagnostics_count == 2


def test_schema_apply_reads_changes() -> None:
    result = SchemaApply.from_dict(
        {
            "Driver": "sqlite3",
            "Changes": {"Applied": ["CREATE TABLE t (c int);"], "Pending": []},
        },
    )

    assert result.env.driver == "sqlite3"
    assert result.changes.applied == ["CREATE TABLE t (c int);"]
    assert result.changes.error is None


def test_schema_plan_reads_lint_and_file() -> None:
    plan = SchemaPlan.from_dict(
        {
            "Repo": "app",
            "File": {"Name": "add_users", "FromHash": "a", "ToHash": "b", "Status": "PENDING"},
            "Lint": {"Files": []},
        },
    )

    assert plan.repo == "app"
    assert plan.file is not None
    assert plan.file.to_hash == "b"
    assert plan.lint is not None


def test_version_string_rendering() -> None:
    assert str(Version("0.21.1")) == "atlas version v0.21.1"
    assert str(Version("0.21.1", sha="a1b2c3", canary=True)) == (
        "atlas version v0.21.1-a1b2c3-canary"
    )


def test_copilot_joins_message_content() -> None:
    session = Copilot(
        [
            CopilotMessage.from_dict({"type": "message", "sessionID": "s1", "content": "Hello "}),
            CopilotMessage.from_dict({"type": "message", "sessionID": "s1", "content": "world"}),
        ],
    )

    assert str(session) == "Hello world"
    assert session[0].session_id == "s1"
