"""CLI entrypoint for atlas-exec."""

import dataclasses
import logging
from collections.abc import Callable
from pathlib import Path

import rich_click as click

from atlas_exec import __version__
from atlas_exec.config import Settings
from atlas_exec.controllers import (
    AtlasCliController,
    CommandResult,
    MigrateApplyCommand,
    MigrateLintCommand,
    MigrateStatusCommand,
    SchemaApplyCommand,
    SchemaInspectCommand,
)
from atlas_exec.errors import AtlasExecError

click.rich_click.USE_MARKDOWN = True

_config_option = click.option("--config", "config_url", default="", help="Atlas config URL.")
_env_option = click.option("--env", default="", help="Environment from the Atlas config.")


@click.group()
@click.version_option(version=__version__, prog_name="atlas-exec")
@click.option(
    "--exec-path",
    default=None,
    help="Path to the atlas executable. Overrides ATLAS_EXEC_PATH.",
)
@click.option(
    "--working-dir",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Directory atlas runs in. Overrides ATLAS_EXEC_WORKING_DIR.",
)
@click.option(
    "--timeout",
    "timeout_seconds",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Abort the atlas process after this many seconds.",
)
@click.option("--verbose", is_flag=True, default=False, help="Enable debug logging.")
@click.pass_context
def atlas_exec(
    ctx: click.Context,
    exec_path: str | None,
    working_dir: Path | None,
    timeout_seconds: float | None,
    verbose: bool,
) -> None:
    """Typed runner for the Atlas schema management CLI."""

    if verbose:
        logging.basicConfig(level=logging.DEBUG)
    settings = Settings.from_env()
    overrides = {
        "exec_path": exec_path,
        "working_dir": working_dir,
        "timeout_seconds": timeout_seconds,
    }
    settings = dataclasses.replace(
        settings,
        **{key: value for key, value in overrides.items() if value is not None},
    )
    ctx.obj = AtlasCliController(settings)


@atlas_exec.command("version")
@click.pass_obj
def version(controller: AtlasCliController) -> None:
    """Print the version of the atlas executable."""

    _run(controller.version)


@atlas_exec.command("whoami")
@click.pass_obj
def whoami(controller: AtlasCliController) -> None:
    """Show the Atlas Cloud organization of the current login."""

    _run(controller.whoami)


@atlas_exec.group()
def migrate() -> None:
    """Versioned migration commands."""


@migrate.command("status")
@_config_option
@_env_option
@click.option("--url", default="", help="Target database URL.")
@click.option("--dir", "dir_url", default="", help="Migration directory URL.")
@click.pass_obj
def migrate_status(
    controller: AtlasCliController,
    config_url: str,
    env: str,
    url: str,
    dir_url: str,
) -> None:
    """Show the migration status of the target database."""

    _run(
        lambda: controller.migrate_status(
            MigrateStatusCommand(config_url=config_url, env=env, url=url, dir_url=dir_url),
        ),
    )


@migrate.command("apply")
@_config_option
@_env_option
@click.option("--url", default="", help="Target database URL.")
@click.option("--dir", "dir_url", default="", help="Migration directory URL.")
@click.option("--dry-run", is_flag=True, default=False, help="Print SQL without executing it.")
@click.option(
    "--amount",
    type=click.IntRange(min=0),
    default=0,
    show_default=True,
    help="Number of pending files to apply; 0 applies all.",
)
@click.option(
    "--summary/--json",
    default=False,
    show_default=True,
    help="Print a human readable summary instead of JSON.",
)
@click.pass_obj
def migrate_apply(  # noqa: PLR0913
    controller: AtlasCliController,
    config_url: str,
    env: str,
    url: str,
    dir_url: str,
    dry_run: bool,
    amount: int,
    summary: bool,
) -> None:
    """Apply pending migrations to every target of the environment."""

    _run(
        lambda: controller.migrate_apply(
            MigrateApplyCommand(
                config_url=config_url,
                env=env,
                url=url,
                dir_url=dir_url,
                dry_run=dry_run,
                amount=amount,
                summary=summary,
            ),
        ),
    )


@migrate.command("lint")
@_config_option
@_env_option
@click.option("--dev-url", default="", help="Dev database URL.")
@click.option("--dir", "dir_url", default="", help="Migration directory URL.")
@click.option(
    "--latest",
    type=click.IntRange(min=0),
    default=0,
    show_default=True,
    help="Lint only the latest N migration files.",
)
@click.option(
    "--strict",
    is_flag=True,
    default=False,
    help="Exit with an error when the report has findings.",
)
@click.pass_obj
def migrate_lint(  # noqa: PLR0913
    controller: AtlasCliController,
    config_url: str,
    env: str,
    dev_url: str,
    dir_url: str,
    latest: int,
    strict: bool,
) -> None:
    """Lint the migration directory and print the report."""

    _run(
        lambda: controller.migrate_lint(
            MigrateLintCommand(
                config_url=config_url,
                env=env,
                dev_url=dev_url,
                dir_url=dir_url,
                latest=latest,
                strict=strict,
            ),
        ),
        failure_message="Migration lint reported findings.",
    )


@atlas_exec.group()
def schema() -> None:
    """Declarative schema commands."""


@schema.command("inspect")
@_config_option
@_env_option
@click.option("--url", default="", help="Database or schema URL to inspect.")
@click.option("--dev-url", default="", help="Dev database URL.")
@click.option("--format", "output_format", default="", help="Go template for the output.")
@click.option("--schema", "schemas", multiple=True, help="Schema to inspect. Can be repeated.")
@click.option("--exclude", "excludes", multiple=True, help="Resource to skip. Can be repeated.")
@click.pass_obj
def schema_inspect(  # noqa: PLR0913
    controller: AtlasCliController,
    config_url: str,
    env: str,
    url: str,
    dev_url: str,
    output_format: str,
    schemas: tuple[str, ...],
    excludes: tuple[str, ...],
) -> None:
    """Print the inspected schema as produced by atlas."""

    _run(
        lambda: controller.schema_inspect(
            SchemaInspectCommand(
                config_url=config_url,
                env=env,
                url=url,
                dev_url=dev_url,
                output_format=output_format,
                schemas=schemas,
                excludes=excludes,
            ),
        ),
    )


@schema.command("apply")
@_config_option
@_env_option
@click.option("--url", default="", help="Target database URL.")
@click.option("--dev-url", default="", help="Dev database URL.")
@click.option("--to", default="", help="Desired schema URL.")
@click.option("--dry-run", is_flag=True, default=False, help="Print SQL without executing it.")
@click.option("--schema", "schemas", multiple=True, help="Schema to manage. Can be repeated.")
@click.option("--exclude", "excludes", multiple=True, help="Resource to skip. Can be repeated.")
@click.pass_obj
def schema_apply(  # noqa: PLR0913
    controller: AtlasCliController,
    config_url: str,
    env: str,
    url: str,
    dev_url: str,
    to: str,
    dry_run: bool,
    schemas: tuple[str, ...],
    excludes: tuple[str, ...],
) -> None:
    """Apply the desired schema to every target of the environment."""

    _run(
        lambda: controller.schema_apply(
            SchemaApplyCommand(
                config_url=config_url,
                env=env,
                url=url,
                dev_url=dev_url,
                to=to,
                dry_run=dry_run,
                schemas=schemas,
                excludes=excludes,
            ),
        ),
    )


def _run(
    action: Callable[[], CommandResult],
    *,
    failure_message: str = "atlas command failed.",
) -> None:
    try:
        result = action()
    except AtlasExecError as error:
        exception = click.ClickException(error.message or failure_message)
        exception.exit_code = error.exit_code or 1
        raise exception from error
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException(failure_message)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    atlas_exec()
