from __future__ import annotations

import logging
import os
import shlex
import subprocess
from dataclasses import dataclass
from typing import Mapping, Sequence

from ..errors import CommandFailure, LaunchFailure

logger = logging.getLogger(__name__)

DEFAULT_TAG = "tempsystem"


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def fmt_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


def run_cmd(
    argv: Sequence[str],
    *,
    tag: str = DEFAULT_TAG,
    check: bool = True,
    capture: bool = False,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
    timeout_s: float | None = None,
    dry_run: bool = False,
) -> CmdResult:
    """Run a command with consistent logging.

    - Always logs the command, once, prefixed with ``[tag]``.
    - stdout/stderr go straight to the terminal unless ``capture`` is set,
      in which case stdout is captured and stderr still passes through.
    - The exit status is returned untouched; ``check`` turns a non-zero
      status into CommandFailure.
    - dry_run logs but does not execute.
    """

    argv_list = list(argv)
    logger.info("[%s] %s", tag, fmt_argv(argv_list))

    if dry_run:
        return CmdResult(argv=argv_list, returncode=0)

    try:
        p = subprocess.run(
            argv_list,
            text=True,
            stdout=subprocess.PIPE if capture else None,
            cwd=cwd,
            env=dict(os.environ, **(env or {})),
            timeout=timeout_s,
        )
    except subprocess.TimeoutExpired:
        logger.error("[%s] timed out after %ss", tag, timeout_s)
        raise CommandFailure(argv_list, -1)
    except OSError as e:
        raise LaunchFailure(argv_list, e) from e

    stdout = p.stdout or ""
    if capture and stdout:
        logger.debug("STDOUT %s", stdout.strip())

    if check and p.returncode != 0:
        raise CommandFailure(argv_list, p.returncode)

    return CmdResult(argv=argv_list, returncode=p.returncode, stdout=stdout)
