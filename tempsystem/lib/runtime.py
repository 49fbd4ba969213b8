from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Optional, Protocol, Sequence

from ..errors import CommandFailure, ContainerRuntimeFailure, LaunchFailure
from .command import CmdResult, run_cmd

logger = logging.getLogger(__name__)

SUPPORTED_RUNTIMES = ("docker", "podman")
DRY_RUN_CONTAINER_ID = "dry-run"


@dataclass(frozen=True)
class CreateOptions:
    image: str
    hostname: str = "tempsystem"
    name: Optional[str] = None
    dns: Sequence[str] = ("1.1.1.1", "1.0.0.1")
    privileged: bool = False
    binds: Sequence[str] = ()
    command: Sequence[str] = ("sleep", "infinity")


class ContainerRuntime(Protocol):
    """What the lifecycle needs from a container runtime."""

    def create(self, opts: CreateOptions) -> str:
        ...

    def start(self, container_id: str) -> None:
        ...

    def copy_in(self, container_id: str, host_path: str, container_path: str) -> None:
        ...

    def exec(
        self,
        container_id: str,
        argv: Sequence[str],
        *,
        user: str = "root",
        tag: str = "exec",
        env: Mapping[str, str] | None = None,
        workdir: str | None = None,
        timeout_s: float | None = None,
    ) -> CmdResult:
        ...

    def attach(
        self,
        container_id: str,
        argv: Sequence[str],
        *,
        user: str,
        workdir: str,
        env: Mapping[str, str] | None = None,
    ) -> int:
        ...

    def remove(self, container_id: str) -> None:
        ...


def _env_args(env: Mapping[str, str] | None) -> list[str]:
    out: list[str] = []
    for k, v in (env or {}).items():
        out += ["-e", f"{k}={v}"]
    return out


@dataclass
class CliRuntime:
    """docker/podman driven through their command line interface."""

    binary: str = "docker"
    dry_run: bool = False
    tag: str = "tempsystem"

    def __post_init__(self) -> None:
        if self.binary not in SUPPORTED_RUNTIMES:
            raise ValueError(f"Unsupported container runtime: {self.binary}")

    def _run(self, operation: str, argv: Sequence[str], *, capture: bool = False) -> CmdResult:
        try:
            return run_cmd([self.binary, *argv], tag=self.tag, capture=capture, dry_run=self.dry_run)
        except (CommandFailure, LaunchFailure) as e:
            raise ContainerRuntimeFailure(operation, str(e)) from e

    def create(self, opts: CreateOptions) -> str:
        argv = ["create", "--tty", "--hostname", opts.hostname]
        if opts.name:
            argv += ["--name", opts.name]
        for server in opts.dns:
            argv += ["--dns", server]
        if opts.privileged:
            argv.append("--privileged")
        for bind in opts.binds:
            argv += ["-v", bind]
        argv += [opts.image, *opts.command]

        r = self._run("create", argv, capture=True)
        if self.dry_run:
            return DRY_RUN_CONTAINER_ID

        lines = [ln.strip() for ln in r.stdout.splitlines() if ln.strip()]
        if not lines:
            raise ContainerRuntimeFailure("create", "runtime printed no container id")
        # Image pull progress may precede the id.
        container_id = lines[-1]
        logger.debug("Created container %s", container_id)
        return container_id

    def start(self, container_id: str) -> None:
        self._run("start", ["start", container_id], capture=True)

    def copy_in(self, container_id: str, host_path: str, container_path: str) -> None:
        self._run("copy", ["cp", host_path, f"{container_id}:{container_path}"])

    def exec(
        self,
        container_id: str,
        argv: Sequence[str],
        *,
        user: str = "root",
        tag: str = "exec",
        env: Mapping[str, str] | None = None,
        workdir: str | None = None,
        timeout_s: float | None = None,
    ) -> CmdResult:
        """Run argv inside the container; the exit status is returned, not checked."""

        cmd = [self.binary, "exec", "-u", user, *_env_args(env)]
        if workdir:
            cmd += ["-w", workdir]
        cmd += [container_id, *argv]
        return run_cmd(cmd, tag=tag, check=False, timeout_s=timeout_s, dry_run=self.dry_run)

    def attach(
        self,
        container_id: str,
        argv: Sequence[str],
        *,
        user: str,
        workdir: str,
        env: Mapping[str, str] | None = None,
    ) -> int:
        cmd = ["exec", "-it", "-u", user, "-w", workdir, *_env_args(env), container_id, *argv]
        try:
            r = run_cmd([self.binary, *cmd], tag=self.tag, check=False, dry_run=self.dry_run)
        except LaunchFailure as e:
            raise ContainerRuntimeFailure("attach", str(e)) from e
        return r.returncode

    def remove(self, container_id: str) -> None:
        # --volumes also drops anonymous volumes created for the container.
        self._run("remove", ["rm", "--force", "--volumes", container_id], capture=True)
