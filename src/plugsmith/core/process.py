"""External process execution."""

import os
import shlex
import subprocess
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path

from plugsmith.core.logging import debug


@dataclass(frozen=True)
class RunResult:
    """Captured outcome of an external command."""

    args: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def diagnostic(self) -> str:
        """stderr if present, otherwise stdout."""
        return self.stderr or self.stdout


def run_command(
    args: Iterable[str],
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> RunResult:
    """Run a command to completion and capture its output.

    A missing executable or working directory is reported as a failed
    result carrying the OS error text instead of raising.
    """
    argv = list(args)
    debug(f"RUN {shlex.join(argv)}", cwd=str(cwd) if cwd else None)

    merged_env = None
    if env is not None:
        merged_env = dict(os.environ)
        merged_env.update(env)

    try:
        process = subprocess.run(
            argv,
            cwd=str(cwd) if cwd is not None else None,
            env=merged_env,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as e:
        return RunResult(args=argv, returncode=-1, stdout="", stderr=str(e))

    return RunResult(
        args=argv,
        returncode=process.returncode,
        stdout=process.stdout or "",
        stderr=process.stderr or "",
    )
