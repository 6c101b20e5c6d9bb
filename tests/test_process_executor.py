from __future__ import annotations

import json
import os
import threading
import time
from pathlib import Path

import allure
import pytest

from atlas_exec.config import DEFAULT_ENVIRONMENT
from atlas_exec.errors import ExecutableNotFound, InvocationCancelled, InvocationTimeout
from atlas_exec.runner import CancelToken, InvocationRequest, ProcessExecutor, build_environment

pytestmark = [
    allure.epic("Atlas Client"),
    allure.feature("Process Execution"),
]


def _request(**kwargs) -> InvocationRequest:
    return InvocationRequest(
        args=kwargs.pop("args", ("version",)),
        env=build_environment(None, DEFAULT_ENVIRONMENT),
        **kwargs,
    )


def test_captures_streams_separately_and_trims_them(fake_atlas: Path, monkeypatch) -> None:
    monkeypatch.setenv("FAKE_ATLAS_STDOUT", "  out text \n")
    monkeypatch.setenv("FAKE_ATLAS_STDERR", "\nerr text\n")
    monkeypatch.setenv("FAKE_ATLAS_EXIT_CODE", "3")

    outcome = ProcessExecutor(str(fake_atlas)).run(_request())

    assert outcome.exit_code == 3
    assert outcome.stdout == "out text"
    assert outcome.stderr == "err text"
    assert not outcome.succeeded


def test_runs_in_working_dir_with_default_environment(
    fake_atlas: Path,
    atlas_record: Path,
    tmp_path: Path,
) -> None:
    workdir = tmp_path / "work"
    workdir.mkdir()

    outcome = ProcessExecutor(str(fake_atlas)).run(
        _request(args=("schema", "inspect"), working_dir=workdir),
    )

    assert outcome.succeeded
    recorded = json.loads(atlas_record.read_text("utf-8"))
    assert recorded["args"] == ["schema", "inspect"]
    assert Path(recorded["cwd"]).resolve() == workdir.resolve()
    assert recorded["env"]["ATLAS_NO_UPDATE_NOTIFIER"] == "1"
    assert recorded["env"]["ATLAS_NO_UPGRADE_SUGGESTIONS"] == "1"


def test_cancel_terminates_running_process(fake_atlas: Path, monkeypatch) -> None:
    monkeypatch.setenv("FAKE_ATLAS_SLEEP", "10")
    token = CancelToken()
    timer = threading.Timer(0.01, token.cancel)
    timer.start()

    started = time.monotonic()
    try:
        with pytest.raises(InvocationCancelled) as error:
            ProcessExecutor(str(fake_atlas), poll_interval_seconds=0.01).run(
                _request(cancel=token),
            )
    finally:
        timer.cancel()

    assert not isinstance(error.value, InvocationTimeout)
    assert time.monotonic() - started < 5


def test_cancel_leaves_no_process_running(fake_atlas: Path, atlas_pids, monkeypatch) -> None:
    monkeypatch.setenv("FAKE_ATLAS_SLEEP", "10")
    token = CancelToken()
    atlas_pids.cancel_when_running(token, 1)

    with pytest.raises(InvocationCancelled):
        ProcessExecutor(str(fake_atlas), poll_interval_seconds=0.01).run(
            _request(cancel=token),
        )

    [pid] = atlas_pids.wait(1)
    with pytest.raises(ProcessLookupError):
        os.kill(pid, 0)


def test_cancel_stops_background_children_holding_the_pipes(
    fake_atlas: Path,
    atlas_pids,
    monkeypatch,
) -> None:
    monkeypatch.setenv("FAKE_ATLAS_SLEEP", "10")
    monkeypatch.setenv("FAKE_ATLAS_SPAWN_CHILD", "1")
    token = CancelToken()
    atlas_pids.cancel_when_running(token, 2)

    started = time.monotonic()
    with pytest.raises(InvocationCancelled):
        ProcessExecutor(
            str(fake_atlas),
            poll_interval_seconds=0.01,
            terminate_grace_seconds=0.5,
        ).run(_request(cancel=token))
    elapsed = time.monotonic() - started

    pids = atlas_pids.wait(2)
    assert len(pids) == 2
    assert elapsed < 5
    assert atlas_pids.all_exited(pids)


def test_timeout_stops_background_children(fake_atlas: Path, atlas_pids, monkeypatch) -> None:
    monkeypatch.setenv("FAKE_ATLAS_SLEEP", "10")
    monkeypatch.setenv("FAKE_ATLAS_SPAWN_CHILD", "1")

    started = time.monotonic()
    with pytest.raises(InvocationTimeout):
        ProcessExecutor(
            str(fake_atlas),
            poll_interval_seconds=0.01,
            terminate_grace_seconds=0.5,
        ).run(_request(timeout_seconds=2.0))

    assert time.monotonic() - started < 5
    assert atlas_pids.all_exited(atlas_pids.wait(2))


def test_already_cancelled_token_stops_immediately(fake_atlas: Path, monkeypatch) -> None:
    monkeypatch.setenv("FAKE_ATLAS_SLEEP", "10")
    token = CancelToken()
    token.cancel()

    with pytest.raises(InvocationCancelled):
        ProcessExecutor(str(fake_atlas)).run(_request(cancel=token))


def test_timeout_terminates_running_process(fake_atlas: Path, monkeypatch) -> None:
    monkeypatch.setenv("FAKE_ATLAS_SLEEP", "10")

    started = time.monotonic()
    with pytest.raises(InvocationTimeout, match="timed out after 0.2s"):
        ProcessExecutor(str(fake_atlas), poll_interval_seconds=0.01).run(
            _request(timeout_seconds=0.2),
        )

    assert time.monotonic() - started < 5


def test_missing_executable_raises_not_found(tmp_path: Path) -> None:
    with pytest.raises(ExecutableNotFound):
        ProcessExecutor(str(tmp_path / "no-such-atlas")).run(_request())
