"""Subprocess executor for one `atlas` invocation."""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import threading
import time
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from atlas_exec.errors import (
    ExecutableNotFound,
    InvocationCancelled,
    InvocationStartError,
    InvocationTimeout,
)

logger = logging.getLogger(__name__)


class CancelToken:
    """Cancellation signal shared between a caller and one or more calls."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(slots=True, frozen=True)
class InvocationRequest:
    """Inputs required to run the tool once."""

    args: tuple[str, ...]
    env: Mapping[str, str]
    working_dir: Path | None = None
    cancel: CancelToken | None = None
    timeout_seconds: float | None = None


@dataclass(slots=True, frozen=True)
class RawOutcome:
    """Exit status and trimmed output streams of a completed process."""

    exit_code: int | None
    stdout: str
    stderr: str

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


class ProcessExecutor:
    """Run the tool as a child process and capture both streams separately."""

    def __init__(
        self,
        exec_path: str,
        *,
        poll_interval_seconds: float = 0.05,
        terminate_grace_seconds: float = 2.0,
    ) -> None:
        self.exec_path = exec_path
        self.poll_interval_seconds = poll_interval_seconds
        self.terminate_grace_seconds = terminate_grace_seconds

    def run(self, request: InvocationRequest) -> RawOutcome:
        argv = [self.exec_path, *request.args]
        logger.debug("Running %s (cwd=%s)", argv, request.working_dir or ".")
        try:
            process = subprocess.Popen(  # noqa: S603
                argv,
                cwd=request.working_dir,
                env=dict(request.env),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                start_new_session=os.name != "nt",
            )
        except FileNotFoundError as error:
            raise ExecutableNotFound(
                f"atlas executable not found: {self.exec_path}",
            ) from error
        except OSError as error:
            raise InvocationStartError(f"atlas failed to start: {error}") from error

        try:
            return self._wait(process, request)
        except BaseException:
            # Never leave the child behind, whatever interrupted the wait.
            if process.poll() is None:
                _terminate_process(process, grace_seconds=self.terminate_grace_seconds)
            raise

    def _wait(self, process: subprocess.Popen[str], request: InvocationRequest) -> RawOutcome:
        deadline: float | None = None
        if request.timeout_seconds is not None:
            deadline = time.monotonic() + request.timeout_seconds

        while True:
            if request.cancel is not None and request.cancel.cancelled:
                stdout, stderr = _terminate_process(
                    process,
                    grace_seconds=self.terminate_grace_seconds,
                )
                logger.warning("Terminated atlas process %s: call cancelled", process.pid)
                raise InvocationCancelled(
                    "atlas invocation cancelled",
                    stdout=stdout.strip(),
                    stderr=stderr.strip(),
                    exit_code=process.returncode,
                )

            wait_seconds = self.poll_interval_seconds
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    stdout, stderr = _terminate_process(
                        process,
                        grace_seconds=self.terminate_grace_seconds,
                    )
                    logger.warning(
                        "Terminated atlas process %s: timed out after %ss",
                        process.pid,
                        request.timeout_seconds,
                    )
                    raise InvocationTimeout(
                        f"atlas invocation timed out after {request.timeout_seconds}s",
                        stdout=stdout.strip(),
                        stderr=stderr.strip(),
                        exit_code=process.returncode,
                    )
                wait_seconds = min(wait_seconds, remaining)

            try:
                stdout, stderr = process.communicate(timeout=wait_seconds)
            except subprocess.TimeoutExpired:
                continue

            outcome = RawOutcome(
                exit_code=process.returncode,
                stdout=stdout.strip(),
                stderr=stderr.strip(),
            )
            logger.debug(
                "atlas exited with %s (stdout=%d chars, stderr=%d chars)",
                outcome.exit_code,
                len(outcome.stdout),
                len(outcome.stderr),
            )
            return outcome


def _terminate_process(
    process: subprocess.Popen[str],
    *,
    grace_seconds: float,
) -> tuple[str, str]:
    """Stop the child and every process in its group, then drain both pipes.

    Draining is bounded by the grace period after each signal. Pipes still held
    open after the kill are closed and their output is dropped.
    """

    _signal_group(process, force=False)
    try:
        stdout, stderr = process.communicate(timeout=grace_seconds)
    except subprocess.TimeoutExpired:
        _signal_group(process, force=True)
        try:
            stdout, stderr = process.communicate(timeout=grace_seconds)
        except subprocess.TimeoutExpired:
            logger.warning(
                "atlas process %s left pipes open after kill; closing them",
                process.pid,
            )
            _close_pipes(process)
            process.wait(timeout=grace_seconds)
            return "", ""
    return stdout or "", stderr or ""


def _signal_group(process: subprocess.Popen[str], *, force: bool) -> None:
    if os.name == "nt":
        try:
            if force:
                process.kill()
            else:
                process.terminate()
        except OSError:
            return
        return
    try:
        os.killpg(process.pid, signal.SIGKILL if force else signal.SIGTERM)
    except ProcessLookupError:
        # Group already gone: the leader and everything it started exited.
        return


def _close_pipes(process: subprocess.Popen[str]) -> None:
    for stream in (process.stdout, process.stderr):
        if stream is not None:
            stream.close()
