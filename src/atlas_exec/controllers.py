"""Controllers for atlas-exec CLI commands."""

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from atlas_exec.args import (
    MigrateApplyParams,
    MigrateLintParams,
    MigrateStatusParams,
    SchemaApplyParams,
    SchemaInspectParams,
)
from atlas_exec.client import AtlasClient
from atlas_exec.config import Settings


@dataclass(slots=True)
class MigrateStatusCommand:
    """CLI input for migration status."""

    config_url: str
    env: str
    url: str
    dir_url: str


@dataclass(slots=True)
class MigrateApplyCommand:
    """CLI input for applying pending migrations."""

    config_url: str
    env: str
    url: str
    dir_url: str
    dry_run: bool
    amount: int
    summary: bool = False


@dataclass(slots=True)
class MigrateLintCommand:
    """CLI input for linting the migration directory."""

    config_url: str
    env: str
    dev_url: str
    dir_url: str
    latest: int
    strict: bool = False


@dataclass(slots=True)
class SchemaInspectCommand:
    """CLI input for schema inspection."""

    config_url: str
    env: str
    url: str
    dev_url: str
    output_format: str
    schemas: tuple[str, ...] = ()
    excludes: tuple[str, ...] = ()


@dataclass(slots=True)
class SchemaApplyCommand:
    """CLI input for declarative schema apply."""

    config_url: str
    env: str
    url: str
    dev_url: str
    to: str
    dry_run: bool
    schemas: tuple[str, ...] = ()
    excludes: tuple[str, ...] = ()


@dataclass(slots=True)
class CommandResult:
    """Lines to print and whether the command should exit successfully."""

    lines: list[str] = field(default_factory=list)
    success: bool = True


class AtlasCliController:
    """Runs CLI commands through one `AtlasClient` built from settings."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def version(self) -> CommandResult:
        return CommandResult([str(self._client().version())])

    def whoami(self) -> CommandResult:
        return CommandResult([_to_json(self._client().whoami())])

    def migrate_status(self, command: MigrateStatusCommand) -> CommandResult:
        status = self._client().migrate_status(
            MigrateStatusParams(
                config_url=command.config_url,
                env=command.env,
                url=command.url,
                dir_url=command.dir_url,
            ),
        )
        return CommandResult([_to_json(status)])

    def migrate_apply(self, command: MigrateApplyCommand) -> CommandResult:
        results = self._client().migrate_apply_slice(
            MigrateApplyParams(
                config_url=command.config_url,
                env=command.env,
                url=command.url,
                dir_url=command.dir_url,
                dry_run=command.dry_run,
                amount=command.amount,
            ),
        )
        if command.summary:
            return CommandResult([result.summary() for result in results])
        return CommandResult([_to_json(result) for result in results])

    def migrate_lint(self, command: MigrateLintCommand) -> CommandResult:
        report = self._client().migrate_lint(
            MigrateLintParams(
                config_url=command.config_url,
                env=command.env,
                dev_url=command.dev_url,
                dir_url=command.dir_url,
                latest=command.latest,
            ),
        )
        findings = report.diagnostics_count() > 0 or any(file.error for file in report.files)
        return CommandResult([_to_json(report)], success=not (command.strict and findings))

    def schema_inspect(self, command: SchemaInspectCommand) -> CommandResult:
        out = self._client().schema_inspect(
            SchemaInspectParams(
                config_url=command.config_url,
                env=command.env,
                url=command.url,
                dev_url=command.dev_url,
                format=command.output_format,
                schema=command.schemas,
                exclude=command.excludes,
            ),
        )
        return CommandResult([out.rstrip("\n")])

    def schema_apply(self, command: SchemaApplyCommand) -> CommandResult:
        results = self._client().schema_apply_slice(
            SchemaApplyParams(
                config_url=command.config_url,
                env=command.env,
                url=command.url,
                dev_url=command.dev_url,
                to=command.to,
                dry_run=command.dry_run,
                schema=command.schemas,
                exclude=command.excludes,
            ),
        )
        return CommandResult([_to_json(result) for result in results])

    def _client(self) -> AtlasClient:
        return AtlasClient.from_settings(self.settings)


def _to_json(value: Any) -> str:
    payload = dataclasses.asdict(value) if dataclasses.is_dataclass(value) else value
    return json.dumps(payload, ensure_ascii=False, default=_json_default, sort_keys=True)


def _json_default(value: object) -> object:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, timedelta):
        return value.total_seconds()
    return str(value)
