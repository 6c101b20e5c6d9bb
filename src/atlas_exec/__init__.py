"""Typed Python client for the Atlas schema management CLI."""

from atlas_exec.client import AtlasClient
from atlas_exec.errors import (
    AtlasExecError,
    CommandError,
    ConfigurationError,
    ExecutableNotFound,
    InvalidParamsError,
    InvocationCancelled,
    InvocationStartError,
    InvocationTimeout,
    LintError,
    MalformedOutputError,
    MigrateApplyError,
    MigrateDownError,
    PartialFailureError,
    ResultCountError,
    SchemaApplyError,
    SoftFailureError,
)
from atlas_exec.runner import CancelToken
from atlas_exec.workdir import WorkingDir, with_atlas_hcl, with_migrations

__version__ = "0.1.0"

__all__ = [
    "AtlasClient",
    "AtlasExecError",
    "CancelToken",
    "CommandError",
    "ConfigurationError",
    "ExecutableNotFound",
    "InvalidParamsError",
    "InvocationCancelled",
    "InvocationStartError",
    "InvocationTimeout",
    "LintError",
    "MalformedOutputError",
    "MigrateApplyError",
    "MigrateDownError",
    "PartialFailureError",
    "ResultCountError",
    "SchemaApplyError",
    "SoftFailureError",
    "WorkingDir",
    "__version__",
    "with_atlas_hcl",
    "with_migrations",
]
