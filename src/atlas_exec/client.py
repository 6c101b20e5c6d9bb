"""Typed client for the Atlas CLI."""

from __future__ import annotations

import logging
import re
import shutil
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Any, TypeVar

from atlas_exec.args import (
    CopilotParams,
    LoginParams,
    MigrateApplyParams,
    MigrateDownParams,
    MigrateLintParams,
    MigratePushParams,
    MigrateStatusParams,
    MigrateTestParams,
    SchemaApplyParams,
    SchemaInspectParams,
    SchemaPlanApproveParams,
    SchemaPlanLintParams,
    SchemaPlanListParams,
    SchemaPlanParams,
    SchemaPlanPullParams,
    SchemaPlanPushParams,
    SchemaPlanValidateParams,
    SchemaTestParams,
    copilot_args,
    login_args,
    migrate_apply_args,
    migrate_down_args,
    migrate_lint_args,
    migrate_push_args,
    migrate_status_args,
    migrate_test_args,
    schema_apply_args,
    schema_inspect_args,
    schema_plan_approve_args,
    schema_plan_args,
    schema_plan_lint_args,
    schema_plan_list_args,
    schema_plan_pull_args,
    schema_plan_push_args,
    schema_plan_validate_args,
    schema_test_args,
    whoami_args,
)
from atlas_exec.config import DEFAULT_ENVIRONMENT, DEFAULT_EXEC_PATH, Settings
from atlas_exec.errors import (
    CommandError,
    ConfigurationError,
    ExecutableNotFound,
    InvalidParamsError,
    LintError,
    MalformedOutputError,
    MigrateApplyError,
    MigrateDownError,
    PartialFailureError,
    SchemaApplyError,
    SoftFailureError,
)
from atlas_exec.models import (
    Copilot,
    CopilotMessage,
    MigrateApply,
    MigrateDown,
    MigrateStatus,
    SchemaApply,
    SchemaPlan,
    SchemaPlanApprove,
    SchemaPlanFile,
    SummaryReport,
    Version,
    WhoAmI,
)
from atlas_exec.runner import (
    CancelToken,
    Classification,
    InvocationRequest,
    OutcomeClass,
    ProcessExecutor,
    RawOutcome,
    build_environment,
    check_overrides,
    classify_outcome,
    decode_records,
    decode_values,
    first_result,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_VERSION_RE = re.compile(r"^atlas version v(\d+\.\d+.\d+)-?([a-z0-9]*)?")


class AtlasClient:
    """Run `atlas` commands and return typed results.

    A client is bound to one executable, one working directory and one base
    environment. Each call spawns exactly one process and blocks until it
    exits, is cancelled through `cancel`, or exceeds `timeout_seconds`.
    Concurrent calls are safe as long as they do not share a working
    directory.
    """

    def __init__(
        self,
        working_dir: str | Path | None = None,
        exec_path: str = DEFAULT_EXEC_PATH,
        *,
        env: Mapping[str, str] | None = None,
        settings: Settings | None = None,
    ) -> None:
        if not exec_path:
            raise ConfigurationError("execPath cannot be empty")
        resolved = shutil.which(exec_path)
        if resolved is None:
            raise ExecutableNotFound(f"looking up atlas-cli: {exec_path!r} not found")
        directory = Path(working_dir) if working_dir else None
        if directory is not None and not directory.is_dir():
            raise ConfigurationError(
                f"initializing Atlas with working dir {str(directory)!r}: no such directory",
            )
        if env is not None:
            check_overrides(env, DEFAULT_ENVIRONMENT)

        self.settings = settings or Settings(exec_path=exec_path)
        self.exec_path = resolved
        self.working_dir = directory
        self._env = dict(env) if env is not None else None
        self._executor = ProcessExecutor(
            resolved,
            poll_interval_seconds=self.settings.poll_interval_seconds,
            terminate_grace_seconds=self.settings.terminate_grace_seconds,
        )

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> AtlasClient:
        """Build a client from `ATLAS_EXEC_*` settings."""

        resolved = settings or Settings.from_env()
        try:
            resolved.validate()
        except ValueError as error:
            raise ConfigurationError(str(error)) from error
        return cls(resolved.working_dir, resolved.exec_path, settings=resolved)

    def with_work_dir(self, working_dir: str | Path) -> AtlasClient:
        """Return a copy of this client running in another directory."""

        return AtlasClient(working_dir, self.exec_path, env=self._env, settings=self.settings)

    def set_env(self, env: Mapping[str, str]) -> None:
        """Replace the base environment; by default the OS environment is inherited."""

        check_overrides(env, DEFAULT_ENVIRONMENT)
        self._env = dict(env)

    # Primitives

    def invoke(
        self,
        args: Sequence[str],
        *,
        cancel: CancelToken | None = None,
        timeout_seconds: float | None = None,
    ) -> str:
        """Run a text command and return its stdout."""

        classification = self._run(args, cancel=cancel, timeout_seconds=timeout_seconds)
        if classification.outcome_class is OutcomeClass.CLEAN:
            return classification.raw.stdout
        # Text commands have no JSON contract: any failure is the tool's own report.
        raise _command_error(classification.raw)

    def invoke_many(  # noqa: PLR0913
        self,
        args: Sequence[str],
        factory: Callable[[dict[str, Any]], T] | None = None,
        *,
        partial_error: type[PartialFailureError] = PartialFailureError,
        soft_error: type[SoftFailureError] | None = SoftFailureError,
        cancel: CancelToken | None = None,
        timeout_seconds: float | None = None,
    ) -> list[Any]:
        """Run a JSON command and return one record per reported target.

        `soft_error=None` returns the decoded findings of a soft failure
        instead of raising.
        """

        classification = self._run(args, cancel=cancel, timeout_seconds=timeout_seconds)
        raw = classification.raw
        outcome_class = classification.outcome_class

        if outcome_class is OutcomeClass.STRUCTURAL_FAILURE:
            raise _command_error(raw)
        if outcome_class is OutcomeClass.MALFORMED:
            raise MalformedOutputError(
                classification.detail,
                stdout=raw.stdout,
                stderr=raw.stderr,
                exit_code=raw.exit_code,
            )
        if outcome_class is OutcomeClass.CLEAN:
            return _convert(decode_records(raw.stdout), factory)

        records = _convert(list(classification.records), factory)
        if outcome_class is OutcomeClass.PARTIAL_FAILURE:
            raise partial_error(
                records,
                stdout=raw.stdout,
                exit_code=raw.exit_code,
                detail=classification.detail,
            )
        if soft_error is None:
            return records
        if soft_error is SoftFailureError:
            raise SoftFailureError(
                f"atlas exited with code {raw.exit_code} and reported findings",
                records,
                stdout=raw.stdout,
                exit_code=raw.exit_code,
            )
        raise soft_error(records, stdout=raw.stdout, exit_code=raw.exit_code)

    def invoke_one(
        self,
        args: Sequence[str],
        factory: Callable[[dict[str, Any]], T],
        **kwargs: Any,
    ) -> T:
        """Run a single-target JSON command; anything but one record is an error."""

        return first_result(self.invoke_many(args, factory, **kwargs))

    # Account

    def login(self, params: LoginParams, **kwargs: Any) -> None:
        """Run `login`."""

        self.invoke(login_args(params), **kwargs)

    def logout(self, **kwargs: Any) -> None:
        """Run `logout`."""

        self.invoke(["logout"], **kwargs)

    def whoami(self, **kwargs: Any) -> WhoAmI:
        """Run `whoami`."""

        return self.invoke_one(whoami_args(), WhoAmI.from_dict, **kwargs)

    def version(self, **kwargs: Any) -> Version:
        """Run `version` and parse its text output."""

        out = self.invoke(["version"], **kwargs)
        matched = _VERSION_RE.match(out)
        if matched is None:
            raise MalformedOutputError("unexpected output format", stdout=out)
        return Version(
            version=matched.group(1),
            sha=matched.group(2) or "",
            canary="canary" in out,
        )

    # Versioned migrations

    def migrate_apply(self, params: MigrateApplyParams, **kwargs: Any) -> MigrateApply:
        """Run `migrate apply` against exactly one target."""

        return first_result(self.migrate_apply_slice(params, **kwargs))

    def migrate_apply_slice(
        self,
        params: MigrateApplyParams,
        **kwargs: Any,
    ) -> list[MigrateApply]:
        """Run `migrate apply` against every target of the environment."""

        return self.invoke_many(
            migrate_apply_args(params),
            MigrateApply.from_dict,
            partial_error=MigrateApplyError,
            **kwargs,
        )

    def migrate_down(self, params: MigrateDownParams, **kwargs: Any) -> MigrateDown:
        """Run `migrate down`."""

        return self.invoke_one(
            migrate_down_args(params),
            MigrateDown.from_dict,
            partial_error=MigrateDownError,
            **kwargs,
        )

    def migrate_status(self, params: MigrateStatusParams, **kwargs: Any) -> MigrateStatus:
        """Run `migrate status`."""

        return self.invoke_one(migrate_status_args(params), MigrateStatus.from_dict, **kwargs)

    def migrate_lint(self, params: MigrateLintParams, **kwargs: Any) -> SummaryReport:
        """Run `migrate lint` and return the report, findings included."""

        if params.web:
            raise InvalidParamsError(
                "migrate lint",
                "Web reporting is not supported with migrate_lint, use migrate_lint_error",
            )
        return self.invoke_one(
            migrate_lint_args(params),
            SummaryReport.from_dict,
            soft_error=None,
            **kwargs,
        )

    def migrate_lint_error(self, params: MigrateLintParams, **kwargs: Any) -> None:
        """Run `migrate lint`, raising `LintError` when the report has findings."""

        report = self.invoke_one(
            migrate_lint_args(params),
            SummaryReport.from_dict,
            soft_error=LintError,
            **kwargs,
        )
        if report.diagnostics_count() > 0 or any(file.error for file in report.files):
            raise LintError([report])

    def migrate_push(self, params: MigratePushParams, **kwargs: Any) -> str:
        """Run `migrate push` and return the URL of the pushed directory."""

        return self.invoke(migrate_push_args(params), **kwargs)

    def migrate_test(self, params: MigrateTestParams, **kwargs: Any) -> str:
        """Run `migrate test`."""

        return self.invoke(migrate_test_args(params), **kwargs)

    # Declarative schemas

    def schema_apply(self, params: SchemaApplyParams, **kwargs: Any) -> SchemaApply:
        """Run `schema apply` against exactly one target."""

        return first_result(self.schema_apply_slice(params, **kwargs))

    def schema_apply_slice(self, params: SchemaApplyParams, **kwargs: Any) -> list[SchemaApply]:
        """Run `schema apply` against every target of the environment."""

        return self.invoke_many(
            schema_apply_args(params),
            SchemaApply.from_dict,
            partial_error=SchemaApplyError,
            **kwargs,
        )

    def schema_inspect(self, params: SchemaInspectParams, **kwargs: Any) -> str:
        """Run `schema inspect`."""

        return self.invoke(schema_inspect_args(params), **kwargs)

    def schema_test(self, params: SchemaTestParams, **kwargs: Any) -> str:
        """Run `schema test`."""

        return self.invoke(schema_test_args(params), **kwargs)

    def schema_plan(self, params: SchemaPlanParams, **kwargs: Any) -> SchemaPlan:
        """Run `schema plan`."""

        return self.invoke_one(schema_plan_args(params), SchemaPlan.from_dict, **kwargs)

    def schema_plan_list(
        self,
        params: SchemaPlanListParams,
        **kwargs: Any,
    ) -> list[SchemaPlanFile]:
        """Run `schema plan list`; the tool prints one JSON array of plan files."""

        out = self.invoke(schema_plan_list_args(params), **kwargs)
        plans = first_result(decode_values(out))
        if not isinstance(plans, list):
            raise MalformedOutputError(
                "unexpected output format: expected a JSON array of plans",
                stdout=out,
            )
        return [SchemaPlanFile.from_dict(item) for item in plans if isinstance(item, dict)]

    def schema_plan_push(self, params: SchemaPlanPushParams, **kwargs: Any) -> str:
        """Run `schema plan push`."""

        return self.invoke(schema_plan_push_args(params), **kwargs)

    def schema_plan_pull(self, params: SchemaPlanPullParams, **kwargs: Any) -> str:
        """Run `schema plan pull` and return the plan file content."""

        return self.invoke(schema_plan_pull_args(params), **kwargs)

    def schema_plan_lint(self, params: SchemaPlanLintParams, **kwargs: Any) -> SchemaPlan:
        """Run `schema plan lint`."""

        return self.invoke_one(schema_plan_lint_args(params), SchemaPlan.from_dict, **kwargs)

    def schema_plan_validate(self, params: SchemaPlanValidateParams, **kwargs: Any) -> None:
        """Run `schema plan validate`."""

        self.invoke(schema_plan_validate_args(params), **kwargs)

    def schema_plan_approve(
        self,
        params: SchemaPlanApproveParams,
        **kwargs: Any,
    ) -> SchemaPlanApprove:
        """Run `schema plan approve`."""

        return self.invoke_one(
            schema_plan_approve_args(params),
            SchemaPlanApprove.from_dict,
            **kwargs,
        )

    # Copilot

    def copilot(self, params: CopilotParams, **kwargs: Any) -> Copilot:
        """Run a one-shot copilot session."""

        return Copilot(self.invoke_many(copilot_args(params), CopilotMessage.from_dict, **kwargs))

    def _run(
        self,
        args: Sequence[str],
        *,
        cancel: CancelToken | None,
        timeout_seconds: float | None,
    ) -> Classification:
        request = InvocationRequest(
            args=tuple(args),
            env=build_environment(self._env, DEFAULT_ENVIRONMENT),
            working_dir=self.working_dir,
            cancel=cancel,
            timeout_seconds=(
                timeout_seconds if timeout_seconds is not None else self.settings.timeout_seconds
            ),
        )
        classification = classify_outcome(self._executor.run(request))
        logger.debug(
            "atlas %s: %s",
            " ".join(request.args[:2]),
            classification.outcome_class.value,
        )
        return classification


def _command_error(raw: RawOutcome) -> CommandError:
    message = raw.stderr or raw.stdout or f"atlas exited with code {raw.exit_code}"
    return CommandError(message, stdout=raw.stdout, stderr=raw.stderr, exit_code=raw.exit_code)


def _convert(
    records: list[dict[str, Any]],
    factory: Callable[[dict[str, Any]], T] | None,
) -> list[Any]:
    if factory is None:
        return records
    return [factory(record) for record in records]
