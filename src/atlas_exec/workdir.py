"""Temporary working directory for running `atlas` against generated files."""

from __future__ import annotations

import logging
import shutil
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import IO, Any

logger = logging.getLogger(__name__)

WorkingDirOption = Callable[["WorkingDir"], None]


class WorkingDir:
    """Temporary directory holding `atlas.hcl`, migrations and other inputs.

    Use it as a context manager, or call `close()`, to remove the directory
    and everything written into it.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._closed = False

    @classmethod
    def create(cls, *options: WorkingDirOption) -> WorkingDir:
        workdir = cls(Path(tempfile.mkdtemp(prefix="atlasexec-")))
        try:
            for option in options:
                option(workdir)
        except BaseException:
            workdir.close()
            raise
        logger.debug("Created atlas working dir %s", workdir.path())
        return workdir

    def path(self, *parts: str) -> Path:
        return self._path.joinpath(*parts)

    def write_file(self, name: str, data: str | bytes) -> Path:
        target = self.path(name)
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(data, bytes):
            target.write_bytes(data)
        else:
            target.write_text(data, "utf-8")
        return target

    def create_file(self, name: str, writer: Callable[[IO[str]], Any]) -> Path:
        """Create `name` and let `writer` fill it through an open text handle."""

        target = self.path(name)
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("w", encoding="utf-8") as handle:
            writer(handle)
        return target

    def copy_dir(self, name: str, src: str | Path) -> Path:
        """Copy the tree under `src` into `name` inside the working dir."""

        source = Path(src)
        if not source.is_dir():
            raise FileNotFoundError(f"atlasexec: source directory {str(source)!r} does not exist")
        target = self.path(name)
        shutil.copytree(source, target, dirs_exist_ok=True)
        return target

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        shutil.rmtree(self._path, ignore_errors=True)

    def __enter__(self) -> WorkingDir:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def with_atlas_hcl(content: str | Callable[[IO[str]], Any]) -> WorkingDirOption:
    """Write `atlas.hcl` from literal text or a writer callback."""

    def apply(workdir: WorkingDir) -> None:
        if callable(content):
            workdir.create_file("atlas.hcl", content)
        else:
            workdir.write_file("atlas.hcl", content)

    return apply


def with_migrations(src: str | Path | None) -> WorkingDirOption:
    """Copy a migrations directory into `migrations/`; `None` copies nothing."""

    def apply(workdir: WorkingDir) -> None:
        if src is not None:
            workdir.copy_dir("migrations", src)

    return apply
