"""Running ``Rscript`` and other external programs.

FACETS lives in R, so every segmentation call goes through here. Failures
surface as :class:`ExternalCommandError` with the tail of the program's
stderr, which is where R prints its ``Error in ...`` lines.
"""

from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
import time
from pathlib import Path
from typing import List, Optional, Sequence

logger = logging.getLogger(__name__)

STDERR_TAIL_LINES = 40


class ExternalCommandError(RuntimeError):
    """A child process exited non-zero."""

    def __init__(
        self,
        message: str,
        *,
        cmd: Sequence[str],
        returncode: int,
        stdout: Optional[str] = None,
        stderr: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.cmd = [str(c) for c in cmd]
        self.returncode = int(returncode)
        self.stdout = stdout
        self.stderr = stderr

    @classmethod
    def from_process(cls, cp: subprocess.CompletedProcess) -> "ExternalCommandError":
        lines = [
            f"{Path(str(cp.args[0])).name} failed (exit code {cp.returncode}).",
            f"Command: {cmd_to_str(cp.args)}",
            "STDERR (last lines):",
        ]
        lines.extend("  " + line for line in stderr_tail(cp.stderr))
        return cls(
            "\n".join(lines),
            cmd=cp.args,
            returncode=cp.returncode,
            stdout=cp.stdout,
            stderr=cp.stderr,
        )


def cmd_to_str(cmd: Sequence[object]) -> str:
    return " ".join(shlex.quote(str(x)) for x in cmd)


def stderr_tail(stderr: Optional[str], n: int = STDERR_TAIL_LINES) -> List[str]:
    lines = (stderr or "").rstrip().splitlines()
    if not lines:
        return ["(empty)"]
    if len(lines) > n:
        return ["..."] + lines[-n:]
    return lines


def ensure_executable_in_path(exe: str, *, hint: Optional[str] = None) -> None:
    """Raise FileNotFoundError unless ``exe`` resolves to an executable.

    ``exe`` may be a bare name looked up on PATH or a path to a binary.
    """
    if shutil.which(exe) is None:
        msg = f"Required executable '{exe}' was not found in your PATH."
        if hint:
            msg += "\n\n" + hint
        raise FileNotFoundError(msg)


def run_command(
    cmd: Sequence[object],
    *,
    cwd: Optional[str | Path] = None,
    check: bool = True,
) -> subprocess.CompletedProcess:
    """Run ``cmd`` to completion with stdout and stderr captured as text.

    With ``check``, a non-zero exit raises :class:`ExternalCommandError`.
    """
    argv = [str(c) for c in cmd]
    logger.debug("Running command: %s", cmd_to_str(argv))

    started = time.monotonic()
    cp = subprocess.run(
        argv,
        cwd=None if cwd is None else str(cwd),
        check=False,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    )
    logger.debug("Exit code %d after %.1fs", cp.returncode, time.monotonic() - started)

    if check and cp.returncode != 0:
        raise ExternalCommandError.from_process(cp)
    return cp
