"""Resource limits for build/compile processes spawned by agents.

Agents routinely kick off ``npm install``, ``make`` or ``cargo build``. Left
alone those use every core and make the host unusable. Before spawning such a
child we:

- cap parallel jobs for npm, make, cargo and cmake through environment
  variables (half the cores, at least one)
- lower the child's scheduling priority (nice on POSIX, a below-normal
  priority class on Windows)

Helpers work on the keyword arguments of ``subprocess.Popen`` /
``asyncio.create_subprocess_exec``.
"""

import asyncio
import os
import subprocess
import sys
from typing import Any, Dict, List, Optional

# Moderate offset: noticeably lower priority without starving the build
DEFAULT_NICE_VALUE = 10

LIMITED_ENV_VARS = (
    "NPM_CONFIG_JOBS",
    "MAKEFLAGS",
    "CARGO_BUILD_JOBS",
    "CMAKE_BUILD_PARALLEL_LEVEL",
)


def available_parallelism() -> int:
    """Number of CPUs this process may run on (1 if unknown)."""
    if hasattr(os, "sched_getaffinity"):
        try:
            return max(1, len(os.sched_getaffinity(0)))
        except OSError:
            pass
    return os.cpu_count() or 1


def default_parallel_jobs(cores: Optional[int] = None) -> int:
    """Parallel job ceiling: half the available cores, minimum 1."""
    if cores is None:
        cores = available_parallelism()
    return max(1, cores // 2)


def get_compilation_limit_env_vars(cores: Optional[int] = None) -> Dict[str, str]:
    """Environment variables capping build parallelism.

    - NPM_CONFIG_JOBS: npm install/build
    - MAKEFLAGS: make (and the cc1 processes it runs)
    - CARGO_BUILD_JOBS: cargo (rustc)
    - CMAKE_BUILD_PARALLEL_LEVEL: cmake --build
    """
    jobs = str(default_parallel_jobs(cores))
    return {
        "NPM_CONFIG_JOBS": jobs,
        "MAKEFLAGS": f"-j{jobs}",
        "CARGO_BUILD_JOBS": jobs,
        "CMAKE_BUILD_PARALLEL_LEVEL": jobs,
    }


def _make_nice_hook(nice_value: int):
    def _lower_priority() -> None:
        # Runs in the child between fork and exec. A failure here must not
        # abort the spawn, so report it and carry on.
        try:
            os.nice(nice_value)
        except OSError as e:
            os.write(2, f"warning: failed to set nice value: {e}\n".encode())

    return _lower_priority


def apply_process_priority(popen_kwargs: Dict[str, Any], nice_value: int = DEFAULT_NICE_VALUE) -> Dict[str, Any]:
    """Lower the scheduling priority of the process about to be spawned.

    POSIX: installs a ``preexec_fn`` calling ``os.nice``. Windows has no
    pre-exec hook, so the child is created with
    ``BELOW_NORMAL_PRIORITY_CLASS`` instead.

    Args:
        popen_kwargs: Keyword arguments for the spawn call (modified in place)
        nice_value: Niceness increment

    Returns:
        The same dict, for chaining
    """
    if sys.platform == "win32":
        flags = popen_kwargs.get("creationflags", 0)
        popen_kwargs["creationflags"] = flags | getattr(subprocess, "BELOW_NORMAL_PRIORITY_CLASS", 0)
        return popen_kwargs

    existing = popen_kwargs.get("preexec_fn")
    hook = _make_nice_hook(nice_value)
    if existing is None:
        popen_kwargs["preexec_fn"] = hook
    else:
        def _chained() -> None:
            existing()
            hook()

        popen_kwargs["preexec_fn"] = _chained
    return popen_kwargs


def apply_all_limits(
    popen_kwargs: Optional[Dict[str, Any]] = None,
    nice_value: int = DEFAULT_NICE_VALUE,
    cores: Optional[int] = None,
) -> Dict[str, Any]:
    """Apply job ceilings and priority de-escalation to spawn kwargs.

    Without an explicit ``env`` the child inherits ``os.environ`` plus the
    limits. Values the caller already set for the limit variables are
    overridden.
    """
    popen_kwargs = dict(popen_kwargs or {})
    base_env = popen_kwargs.get("env")
    env = dict(os.environ if base_env is None else base_env)
    env.update(get_compilation_limit_env_vars(cores))
    popen_kwargs["env"] = env
    return apply_process_priority(popen_kwargs, nice_value)


def spawn_limited(cmd: List[str], nice_value: int = DEFAULT_NICE_VALUE, **kwargs: Any) -> subprocess.Popen:
    """``subprocess.Popen`` with resource limits applied."""
    return subprocess.Popen(cmd, **apply_all_limits(kwargs, nice_value))


async def spawn_limited_async(
    cmd: List[str], nice_value: int = DEFAULT_NICE_VALUE, **kwargs: Any
) -> asyncio.subprocess.Process:
    """``asyncio.create_subprocess_exec`` with resource limits applied."""
    return await asyncio.create_subprocess_exec(*cmd, **apply_all_limits(kwargs, nice_value))
