"""Shared test fixtures."""

from __future__ import annotations

import json
import os
import stat
import sys
import threading
import time
from dataclasses import dataclass
from pathlib import Path

import pytest

# Stand-in for the `atlas` binary. Behaviour is driven by FAKE_ATLAS_* variables
# so each test states the exact streams and exit code it needs.
_FAKE_ATLAS_SCRIPT = """
import json
import os
import subprocess
import sys
import time
from pathlib import Path

args = sys.argv[1:]
record = os.environ.get("FAKE_ATLAS_RECORD_FILE")
if record:
    Path(record).write_text(
        json.dumps(
            {
                "args": args,
                "cwd": os.getcwd(),
                "env": {k: v for k, v in os.environ.items() if k.startswith("ATLAS_")},
            },
        ),
        "utf-8",
    )

expected = os.environ.get("FAKE_ATLAS_ARGS")
if expected is not None and expected != " ".join(args):
    sys.stderr.write(f"Error: unexpected args: {' '.join(args)}")
    raise SystemExit(1)

pids = [os.getpid()]
if os.environ.get("FAKE_ATLAS_SPAWN_CHILD"):
    # Inherits stdout and stderr, so it holds both pipes open.
    child = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(30)"])
    pids.append(child.pid)
pid_file = os.environ.get("FAKE_ATLAS_PID_FILE")
if pid_file:
    staging = Path(pid_file + ".tmp")
    staging.write_text(json.dumps(pids), "utf-8")
    os.replace(staging, pid_file)

sleep_seconds = float(os.environ.get("FAKE_ATLAS_SLEEP", "0") or 0)
if sleep_seconds:
    time.sleep(sleep_seconds)

sys.stdout.write(os.environ.get("FAKE_ATLAS_STDOUT", ""))
sys.stdout.flush()
sys.stderr.write(os.environ.get("FAKE_ATLAS_STDERR", ""))
sys.stderr.flush()
raise SystemExit(int(os.environ.get("FAKE_ATLAS_EXIT_CODE", "0") or 0))
"""

_FAKE_ATLAS_VARIABLES = (
    "FAKE_ATLAS_RECORD_FILE",
    "FAKE_ATLAS_ARGS",
    "FAKE_ATLAS_SLEEP",
    "FAKE_ATLAS_STDOUT",
    "FAKE_ATLAS_STDERR",
    "FAKE_ATLAS_EXIT_CODE",
    "FAKE_ATLAS_PID_FILE",
    "FAKE_ATLAS_SPAWN_CHILD",
)


def write_fake_atlas(path: Path) -> Path:
    implementation = path.parent / f"{path.name}_impl.py"
    implementation.write_text(_FAKE_ATLAS_SCRIPT.strip() + "\n", "utf-8")
    path.write_text(
        f'#!/usr/bin/env sh\nexec "{sys.executable}" "{implementation}" "$@"\n',
        "utf-8",
    )
    path.chmod(path.stat().st_mode | stat.S_IXUSR)
    return path


@pytest.fixture()
def fake_atlas(tmp_path: Path, monkeypatch) -> Path:
    """Fake `atlas` on PATH; returns the launcher path."""

    if os.name == "nt":
        pytest.skip("fake atlas launcher requires a POSIX shell")
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir(parents=True, exist_ok=True)
    launcher = write_fake_atlas(bin_dir / "atlas")
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")
    for name in _FAKE_ATLAS_VARIABLES:
        monkeypatch.delenv(name, raising=False)
    for name in list(os.environ):
        if name.startswith("ATLAS_EXEC_"):
            monkeypatch.delenv(name, raising=False)
    return launcher


@pytest.fixture()
def atlas_record(fake_atlas: Path, tmp_path: Path, monkeypatch) -> Path:
    """File the fake atlas writes its argv, cwd and ATLAS_* environment to."""

    path = tmp_path / "atlas_record.json"
    monkeypatch.setenv("FAKE_ATLAS_RECORD_FILE", str(path))
    return path


def process_exited(pid: int) -> bool:
    """Whether `pid` is gone; an unreaped zombie counts as gone."""

    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return True
    except PermissionError:
        return False
    try:
        stat_line = Path(f"/proc/{pid}/stat").read_text("utf-8")
    except OSError:
        return False
    return stat_line.rsplit(")", 1)[-1].split()[:1] in (["Z"], ["X"])


@dataclass
class FakeAtlasPids:
    """Pids the fake atlas reports: its own, then any background child."""

    path: Path

    def wait(self, count: int, timeout: float = 5.0) -> list[int]:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if self.path.exists():
                pids = json.loads(self.path.read_text("utf-8"))
                if len(pids) >= count:
                    return pids
            time.sleep(0.01)
        return []

    def cancel_when_running(self, token, count: int) -> threading.Thread:
        """Cancel `token` once the fake atlas has started `count` processes."""

        def target() -> None:
            self.wait(count)
            token.cancel()

        thread = threading.Thread(target=target, daemon=True)
        thread.start()
        return thread

    def all_exited(self, pids: list[int], timeout: float = 5.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if all(process_exited(pid) for pid in pids):
                return True
            time.sleep(0.01)
        return False


@pytest.fixture()
def atlas_pids(fake_atlas: Path, tmp_path: Path, monkeypatch) -> FakeAtlasPids:
    """Makes the fake atlas write the pids it runs as to a JSON file."""

    path = tmp_path / "atlas_pids.json"
    monkeypatch.setenv("FAKE_ATLAS_PID_FILE", str(path))
    return FakeAtlasPids(path)
