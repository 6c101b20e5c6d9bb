"""Argument vector builders for `atlas` commands.

Each command has one parameter dataclass and one pure builder turning it into
the ordered list of tokens passed to the executable. Unset fields produce no
tokens.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum

from atlas_exec.errors import InvalidParamsError

JSON_FORMAT = "{{ json . }}"
SQL_FORMAT = "{{ sql . }}"


class MigrateExecOrder(str, Enum):
    """Execution order of pending migration files."""

    LINEAR = "linear"
    LINEAR_SKIP = "linear-skip"
    NON_LINEAR = "non-linear"


class TriggerType(str, Enum):
    """What triggered a deployment."""

    CLI = "CLI"
    KUBERNETES = "KUBERNETES"
    TERRAFORM = "TERRAFORM"
    GITHUB_ACTION = "GITHUB_ACTION"
    CIRCLECI_ORB = "CIRCLECI_ORB"


class SCMType(str, Enum):
    """Source control system a run originates from."""

    GITHUB = "GITHUB"
    GITLAB = "GITLAB"


@dataclass(slots=True, frozen=True)
class StringVar:
    value: str

    def as_args(self, key: str) -> list[str]:
        return ["--var", f"{key}={self.value}"]


@dataclass(slots=True, frozen=True)
class IntVar:
    value: int

    def as_args(self, key: str) -> list[str]:
        return ["--var", f"{key}={self.value}"]


@dataclass(slots=True, frozen=True)
class ListVar:
    """Several values for one key; each becomes its own `--var` pair."""

    items: tuple[VarValue, ...]

    def as_args(self, key: str) -> list[str]:
        args: list[str] = []
        for item in self.items:
            args.extend(item.as_args(key))
        return args


VarValue = StringVar | IntVar | ListVar


@dataclass(slots=True, frozen=True)
class Vars:
    """Input variables passed as repeated `--var key=value` flags."""

    values: Mapping[str, VarValue] = field(default_factory=dict)

    @classmethod
    def of(cls, mapping: Mapping[str, object]) -> Vars:
        """Build from plain Python values: str, int, or (nested) lists of them."""

        return cls({key: _coerce_var(key, value) for key, value in mapping.items()})

    def as_args(self) -> list[str]:
        args: list[str] = []
        for key in sorted(self.values):
            args.extend(self.values[key].as_args(key))
        return args


def _coerce_var(key: str, value: object) -> VarValue:
    if isinstance(value, (StringVar, IntVar, ListVar)):
        return value
    if isinstance(value, bool):
        raise InvalidParamsError("--var", f"unsupported value type bool for {key!r}")
    if isinstance(value, str):
        return StringVar(value)
    if isinstance(value, int):
        return IntVar(value)
    if isinstance(value, (list, tuple)):
        return ListVar(tuple(_coerce_var(key, item) for item in value))
    raise InvalidParamsError("--var", f"unsupported value type {type(value).__name__} for {key!r}")


@dataclass(slots=True)
class RunContext:
    """Where a command is triggered from, e.g. a CI job on a branch."""

    repo: str = ""
    path: str = ""
    branch: str = ""
    commit: str = ""
    url: str = ""
    username: str = ""
    user_id: str = ""
    scm_type: SCMType | str = ""

    def to_json(self) -> str:
        return _compact_json(
            {
                "repo": self.repo,
                "path": self.path,
                "branch": self.branch,
                "commit": self.commit,
                "url": self.url,
                "username": self.username,
                "userID": self.user_id,
                "scmType": _enum_value(self.scm_type),
            },
        )


@dataclass(slots=True)
class DeployRunContext:
    """Context of a `migrate apply` / `migrate down` deployment."""

    trigger_type: TriggerType | str = ""
    trigger_version: str = ""

    def to_json(self) -> str:
        return _compact_json(
            {
                "triggerType": _enum_value(self.trigger_type),
                "triggerVersion": self.trigger_version,
            },
        )


@dataclass(slots=True)
class LoginParams:
    token: str = ""


@dataclass(slots=True)
class MigrateApplyParams:
    config_url: str = ""
    env: str = ""
    vars: Vars | None = None
    context: DeployRunContext | None = None
    url: str = ""
    dir_url: str = ""
    allow_dirty: bool = False
    dry_run: bool = False
    revisions_schema: str = ""
    baseline_version: str = ""
    tx_mode: str = ""
    exec_order: MigrateExecOrder | str = ""
    to_version: str = ""
    amount: int = 0


@dataclass(slots=True)
class MigrateDownParams:
    config_url: str = ""
    env: str = ""
    vars: Vars | None = None
    context: DeployRunContext | None = None
    dev_url: str = ""
    url: str = ""
    dir_url: str = ""
    revisions_schema: str = ""
    to_version: str = ""
    to_tag: str = ""
    amount: int = 0


@dataclass(slots=True)
class MigrateStatusParams:
    config_url: str = ""
    env: str = ""
    vars: Vars | None = None
    url: str = ""
    dir_url: str = ""
    revisions_schema: str = ""


@dataclass(slots=True)
class MigrateLintParams:
    config_url: str = ""
    env: str = ""
    vars: Vars | None = None
    context: RunContext | None = None
    dev_url: str = ""
    dir_url: str = ""
    base: str = ""
    latest: int = 0
    git_base: str = ""
    git_dir: str = ""
    web: bool = False


@dataclass(slots=True)
class MigratePushParams:
    config_url: str = ""
    env: str = ""
    vars: Vars | None = None
    context: RunContext | None = None
    dev_url: str = ""
    dir_url: str = ""
    dir_format: str = ""
    lock_timeout: str = ""
    name: str = ""
    tag: str = ""


@dataclass(slots=True)
class MigrateTestParams:
    config_url: str = ""
    env: str = ""
    vars: Vars | None = None
    context: RunContext | None = None
    dir_url: str = ""
    dev_url: str = ""
    run: str = ""
    revisions_schema: str = ""


@dataclass(slots=True)
class SchemaApplyParams:
    config_url: str = ""
    env: str = ""
    vars: Vars | None = None
    dev_url: str = ""
    url: str = ""
    to: str = ""
    tx_mode: str = ""
    exclude: Sequence[str] = ()
    schema: Sequence[str] = ()
    dry_run: bool = False


@dataclass(slots=True)
class SchemaInspectParams:
    config_url: str = ""
    env: str = ""
    vars: Vars | None = None
    format: str = ""
    dev_url: str = ""
    url: str = ""
    exclude: Sequence[str] = ()
    schema: Sequence[str] = ()


@dataclass(slots=True)
class SchemaTestParams:
    config_url: str = ""
    env: str = ""
    vars: Vars | None = None
    dev_url: str = ""
    url: str = ""
    run: str = ""


@dataclass(slots=True)
class SchemaPlanParams:
    config_url: str = ""
    env: str = ""
    vars: Vars | None = None
    context: RunContext | None = None
    dev_url: str = ""
    from_: Sequence[str] = ()
    to: Sequence[str] = ()
    repo: str = ""
    name: str = ""
    dry_run: bool = False
    pending: bool = False
    push: bool = False
    save: bool = False


@dataclass(slots=True)
class SchemaPlanListParams:
    config_url: str = ""
    env: str = ""
    vars: Vars | None = None
    context: RunContext | None = None
    dev_url: str = ""
    from_: Sequence[str] = ()
    to: Sequence[str] = ()
    repo: str = ""
    pending: bool = False


@dataclass(slots=True)
class SchemaPlanPushParams:
    config_url: str = ""
    env: str = ""
    vars: Vars | None = None
    context: RunContext | None = None
    dev_url: str = ""
    from_: Sequence[str] = ()
    to: Sequence[str] = ()
    repo: str = ""
    pending: bool = False
    file: str = ""


@dataclass(slots=True)
class SchemaPlanPullParams:
    config_url: str = ""
    env: str = ""
    vars: Vars | None = None
    url: str = ""


@dataclass(slots=True)
class SchemaPlanLintParams:
    config_url: str = ""
    env: str = ""
    vars: Vars | None = None
    context: RunContext | None = None
    dev_url: str = ""
    from_: Sequence[str] = ()
    to: Sequence[str] = ()
    repo: str = ""
    file: str = ""


@dataclass(slots=True)
class SchemaPlanValidateParams:
    config_url: str = ""
    env: str = ""
    vars: Vars | None = None
    context: RunContext | None = None
    dev_url: str = ""
    from_: Sequence[str] = ()
    to: Sequence[str] = ()
    repo: str = ""
    name: str = ""
    file: str = ""


@dataclass(slots=True)
class SchemaPlanApproveParams:
    config_url: str = ""
    env: str = ""
    vars: Vars | None = None
    url: str = ""


@dataclass(slots=True)
class CopilotParams:
    prompt: str = ""
    session: str = ""
    fs_write: str = ""
    fs_delete: str = ""


def login_args(params: LoginParams) -> list[str]:
    if not params.token:
        raise InvalidParamsError("login", "token cannot be empty")
    return ["login", "--token", params.token]


def whoami_args() -> list[str]:
    return ["whoami", "--format", JSON_FORMAT]


def migrate_apply_args(params: MigrateApplyParams) -> list[str]:
    args = ["migrate", "apply", "--format", JSON_FORMAT]
    _flag(args, "--env", params.env)
    _flag(args, "--config", params.config_url)
    _context(args, params.context)
    _flag(args, "--url", params.url)
    _flag(args, "--dir", params.dir_url)
    _switch(args, "--allow-dirty", params.allow_dirty)
    _switch(args, "--dry-run", params.dry_run)
    _flag(args, "--revisions-schema", params.revisions_schema)
    _flag(args, "--baseline", params.baseline_version)
    _flag(args, "--tx-mode", params.tx_mode)
    _flag(args, "--exec-order", _enum_value(params.exec_order))
    _flag(args, "--to-version", params.to_version)
    if params.amount > 0:
        args.append(str(params.amount))
    _vars(args, params.vars)
    return args


def migrate_down_args(params: MigrateDownParams) -> list[str]:
    args = ["migrate", "down", "--format", JSON_FORMAT]
    _flag(args, "--env", params.env)
    _flag(args, "--config", params.config_url)
    _flag(args, "--dev-url", params.dev_url)
    _context(args, params.context)
    _flag(args, "--url", params.url)
    _flag(args, "--dir", params.dir_url)
    _flag(args, "--revisions-schema", params.revisions_schema)
    _flag(args, "--to-version", params.to_version)
    _flag(args, "--to-tag", params.to_tag)
    if params.amount > 0:
        args.append(str(params.amount))
    _vars(args, params.vars)
    return args


def migrate_status_args(params: MigrateStatusParams) -> list[str]:
    args = ["migrate", "status", "--format", JSON_FORMAT]
    _flag(args, "--env", params.env)
    _flag(args, "--config", params.config_url)
    _flag(args, "--url", params.url)
    _flag(args, "--dir", params.dir_url)
    _flag(args, "--revisions-schema", params.revisions_schema)
    _vars(args, params.vars)
    return args


def migrate_lint_args(params: MigrateLintParams) -> list[str]:
    args = ["migrate", "lint", "--format", JSON_FORMAT]
    _flag(args, "--env", params.env)
    _flag(args, "--config", params.config_url)
    _flag(args, "--dev-url", params.dev_url)
    _flag(args, "--dir", params.dir_url)
    _context(args, params.context)
    _switch(args, "-w", params.web)
    if params.latest > 0:
        args.extend(["--latest", str(params.latest)])
    _flag(args, "--git-base", params.git_base)
    _flag(args, "--git-dir", params.git_dir)
    _flag(args, "--base", params.base)
    _vars(args, params.vars)
    return args


def migrate_push_args(params: MigratePushParams) -> list[str]:
    if not params.name:
        raise InvalidParamsError("migrate push", "missing required argument name")
    args = ["migrate", "push"]
    _flag(args, "--dev-url", params.dev_url)
    _flag(args, "--dir", params.dir_url)
    _flag(args, "--dir-format", params.dir_format)
    _flag(args, "--lock-timeout", params.lock_timeout)
    _context(args, params.context)
    _flag(args, "--config", params.config_url)
    _flag(args, "--env", params.env)
    args.append(f"{params.name}:{params.tag}" if params.tag else params.name)
    _vars(args, params.vars)
    return args


def migrate_test_args(params: MigrateTestParams) -> list[str]:
    args = ["migrate", "test"]
    _flag(args, "--env", params.env)
    _flag(args, "--config", params.config_url)
    _flag(args, "--dir", params.dir_url)
    _flag(args, "--dev-url", params.dev_url)
    _flag(args, "--run", params.run)
    _flag(args, "--revisions-schema", params.revisions_schema)
    _context(args, params.context)
    _vars(args, params.vars)
    return args


def schema_apply_args(params: SchemaApplyParams) -> list[str]:
    args = ["schema", "apply", "--format", JSON_FORMAT]
    _flag(args, "--env", params.env)
    _flag(args, "--config", params.config_url)
    _flag(args, "--url", params.url)
    _flag(args, "--to", params.to)
    args.append("--dry-run" if params.dry_run else "--auto-approve")
    _flag(args, "--tx-mode", params.tx_mode)
    _flag(args, "--dev-url", params.dev_url)
    _list_flag(args, "--schema", params.schema)
    _list_flag(args, "--exclude", params.exclude)
    _vars(args, params.vars)
    return args


def schema_inspect_args(params: SchemaInspectParams) -> list[str]:
    args = ["schema", "inspect"]
    _flag(args, "--env", params.env)
    _flag(args, "--config", params.config_url)
    _flag(args, "--url", params.url)
    _flag(args, "--dev-url", params.dev_url)
    if params.format == "sql":
        args.extend(["--format", SQL_FORMAT])
    else:
        _flag(args, "--format", params.format)
    _list_flag(args, "--schema", params.schema)
    _list_flag(args, "--exclude", params.exclude)
    _vars(args, params.vars)
    return args


def schema_test_args(params: SchemaTestParams) -> list[str]:
    args = ["schema", "test"]
    _flag(args, "--env", params.env)
    _flag(args, "--config", params.config_url)
    _flag(args, "--url", params.url)
    _flag(args, "--dev-url", params.dev_url)
    _flag(args, "--run", params.run)
    _vars(args, params.vars)
    return args


def schema_plan_args(params: SchemaPlanParams) -> list[str]:
    args = ["schema", "plan", "--format", JSON_FORMAT]
    _plan_common(args, params.config_url, params.env, params.vars, params.context)
    _flag(args, "--dev-url", params.dev_url)
    _list_flag(args, "--from", params.from_)
    _list_flag(args, "--to", params.to)
    _flag(args, "--name", params.name)
    _flag(args, "--repo", params.repo)
    _switch(args, "--save", params.save)
    _switch(args, "--push", params.push)
    _switch(args, "--pending", params.pending)
    args.append("--dry-run" if params.dry_run else "--auto-approve")
    return args


def schema_plan_list_args(params: SchemaPlanListParams) -> list[str]:
    args = ["schema", "plan", "list", "--format", JSON_FORMAT]
    _plan_common(args, params.config_url, params.env, params.vars, params.context)
    _flag(args, "--dev-url", params.dev_url)
    _list_flag(args, "--from", params.from_)
    _list_flag(args, "--to", params.to)
    _flag(args, "--repo", params.repo)
    _switch(args, "--pending", params.pending)
    args.append("--auto-approve")
    return args


def schema_plan_push_args(params: SchemaPlanPushParams) -> list[str]:
    if not params.file:
        raise InvalidParamsError("schema plan push", "missing required flag --file")
    args = ["schema", "plan", "push", "--format", JSON_FORMAT]
    _plan_common(args, params.config_url, params.env, params.vars, params.context)
    _flag(args, "--dev-url", params.dev_url)
    _list_flag(args, "--from", params.from_)
    _list_flag(args, "--to", params.to)
    args.extend(["--file", params.file])
    _flag(args, "--repo", params.repo)
    args.append("--pending" if params.pending else "--auto-approve")
    return args


def schema_plan_pull_args(params: SchemaPlanPullParams) -> list[str]:
    if not params.url:
        raise InvalidParamsError("schema plan pull", "missing required flag --url")
    args = ["schema", "plan", "pull"]
    _plan_common(args, params.config_url, params.env, params.vars, None)
    args.extend(["--url", params.url])
    return args


def schema_plan_lint_args(params: SchemaPlanLintParams) -> list[str]:
    if not params.file:
        raise InvalidParamsError("schema plan lint", "missing required flag --file")
    args = ["schema", "plan", "lint", "--format", JSON_FORMAT]
    _plan_common(args, params.config_url, params.env, params.vars, params.context)
    _flag(args, "--dev-url", params.dev_url)
    _list_flag(args, "--from", params.from_)
    _list_flag(args, "--to", params.to)
    args.extend(["--file", params.file])
    _flag(args, "--repo", params.repo)
    args.append("--auto-approve")
    return args


def schema_plan_validate_args(params: SchemaPlanValidateParams) -> list[str]:
    if not params.file:
        raise InvalidParamsError("schema plan validate", "missing required flag --file")
    args = ["schema", "plan", "validate"]
    _plan_common(args, params.config_url, params.env, params.vars, params.context)
    _flag(args, "--dev-url", params.dev_url)
    _list_flag(args, "--from", params.from_)
    _list_flag(args, "--to", params.to)
    args.extend(["--file", params.file])
    _flag(args, "--name", params.name)
    _flag(args, "--repo", params.repo)
    args.append("--auto-approve")
    return args


def schema_plan_approve_args(params: SchemaPlanApproveParams) -> list[str]:
    if not params.url:
        raise InvalidParamsError("schema plan approve", "missing required flag --url")
    args = ["schema", "plan", "approve", "--format", JSON_FORMAT]
    _plan_common(args, params.config_url, params.env, params.vars, None)
    args.extend(["--url", params.url])
    return args


def copilot_args(params: CopilotParams) -> list[str]:
    args = ["copilot", "-q", params.prompt]
    _flag(args, "-r", params.session)
    if params.fs_write:
        args.extend(["-p", f"fs.write={params.fs_write}"])
    if params.fs_delete:
        args.extend(["-p", f"fs.delete={params.fs_delete}"])
    return args


def _flag(args: list[str], name: str, value: str) -> None:
    if value:
        args.extend([name, value])


def _switch(args: list[str], name: str, enabled: bool) -> None:
    if enabled:
        args.append(name)


def _list_flag(args: list[str], name: str, values: Sequence[str]) -> None:
    if values:
        args.extend([name, ",".join(values)])


def _context(args: list[str], context: RunContext | DeployRunContext | None) -> None:
    if context is not None:
        args.extend(["--context", context.to_json()])


def _vars(args: list[str], variables: Vars | None) -> None:
    if variables is not None:
        args.extend(variables.as_args())


def _plan_common(
    args: list[str],
    config_url: str,
    env: str,
    variables: Vars | None,
    context: RunContext | None,
) -> None:
    _flag(args, "--config", config_url)
    _flag(args, "--env", env)
    _vars(args, variables)
    _context(args, context)


def _enum_value(value: Enum | str) -> str:
    return value.value if isinstance(value, Enum) else value


def _compact_json(payload: dict[str, str]) -> str:
    return json.dumps(
        {key: value for key, value in payload.items() if value},
        separators=(",", ":"),
    )
