"""Runtime configuration for the Atlas CLI client."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType

DEFAULT_EXEC_PATH = "atlas"

# Operational variables always exported to the child process. Callers may not
# override these through their base environment.
DEFAULT_ENVIRONMENT = MappingProxyType(
    {
        "ATLAS_NO_UPDATE_NOTIFIER": "1",
        "ATLAS_NO_UPGRADE_SUGGESTIONS": "1",
    },
)


@dataclass(slots=True, frozen=True)
class Settings:
    """Client settings grouped for one `atlas` executable."""

    exec_path: str = DEFAULT_EXEC_PATH
    working_dir: Path | None = None
    timeout_seconds: float | None = None
    terminate_grace_seconds: float = 2.0
    poll_interval_seconds: float = 0.05

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment with sane defaults for local development."""

        working_dir_raw = os.getenv("ATLAS_EXEC_WORKING_DIR", "").strip()
        return cls(
            exec_path=os.getenv("ATLAS_EXEC_PATH", DEFAULT_EXEC_PATH),
            working_dir=Path(working_dir_raw) if working_dir_raw else None,
            timeout_seconds=_env_optional_float("ATLAS_EXEC_TIMEOUT_SECONDS"),
            terminate_grace_seconds=float(
                os.getenv("ATLAS_EXEC_TERMINATE_GRACE_SECONDS", "2.0"),
            ),
            poll_interval_seconds=float(
                os.getenv("ATLAS_EXEC_POLL_INTERVAL_SECONDS", "0.05"),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error if a setting is out of range."""

        if not self.exec_path.strip():
            raise ValueError("ATLAS_EXEC_PATH must not be empty.")
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ValueError("ATLAS_EXEC_TIMEOUT_SECONDS must be > 0.")
        if self.terminate_grace_seconds <= 0:
            raise ValueError("ATLAS_EXEC_TERMINATE_GRACE_SECONDS must be > 0.")
        if self.poll_interval_seconds <= 0:
            raise ValueError("ATLAS_EXEC_POLL_INTERVAL_SECONDS must be > 0.")


def _env_optional_float(name: str) -> float | None:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    return float(raw)
