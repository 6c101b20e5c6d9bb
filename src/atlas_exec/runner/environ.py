"""Child-process environment assembly."""

from __future__ import annotations

import os
from collections.abc import Mapping
from types import MappingProxyType

from atlas_exec.errors import ConfigurationError


def os_environ() -> dict[str, str]:
    """Snapshot the current process environment."""

    return dict(os.environ)


def check_overrides(base: Mapping[str, str], fixed: Mapping[str, str]) -> None:
    """Reject a caller environment that sets any of the fixed operational keys."""

    for key in sorted(base):
        if key in fixed:
            raise ConfigurationError(
                f"atlasexec: cannot override the default environment variable {key!r}",
            )


def build_environment(
    base: Mapping[str, str] | None,
    fixed: Mapping[str, str],
) -> Mapping[str, str]:
    """Merge the caller base (or the OS environment) with the fixed table.

    Keys of `fixed` are written last. An explicit caller base containing one of
    them is a configuration error; the OS snapshot may contain them and is
    silently overridden.
    """

    if base is None:
        env = os_environ()
    else:
        check_overrides(base, fixed)
        env = dict(base)
    env.update(fixed)
    return MappingProxyType(env)
