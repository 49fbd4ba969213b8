"""Container lifecycle: create, stage, provision, attach, remove.

A Lifecycle is a context manager. Entering it creates and starts the
container; leaving it removes the container, whatever happened in between.
"""

from __future__ import annotations

import contextlib
import logging
import os
import signal
import threading
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence

from .errors import CommandFailure, ContainerRuntimeFailure, LaunchFailure, ProvisioningError
from .lib.command import CmdResult
from .lib.env import CNF_STAGING_PATH, Paths
from .lib.runtime import ContainerRuntime, CreateOptions
from .pipeline import PipelineResult, run_pipeline
from .provisioning import ROOT, ProvisioningPlan, StepCommand, build_steps
from .session import Session, SessionState
from .session_config import SessionConfig

logger = logging.getLogger(__name__)

TEARDOWN_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGINT", "SIGTERM", "SIGHUP") if hasattr(signal, name)
)


def install_interrupt_handlers() -> None:
    """Turn SIGTERM/SIGHUP into KeyboardInterrupt, like SIGINT already is."""

    for sig in TEARDOWN_SIGNALS:
        signal.signal(sig, signal.default_int_handler)


@contextlib.contextmanager
def _signals_ignored() -> Iterator[None]:
    # signal.signal only works from the main thread.
    if threading.current_thread() is not threading.main_thread():
        yield
        return
    previous = {sig: signal.signal(sig, signal.SIG_IGN) for sig in TEARDOWN_SIGNALS}
    try:
        yield
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


class Lifecycle:
    def __init__(self, cfg: SessionConfig, runtime: ContainerRuntime, *, cwd: Optional[str] = None) -> None:
        self.cfg = cfg
        self.runtime = runtime
        self.cwd = cwd or os.getcwd()
        self.paths = Paths(user=cfg.user, shell=cfg.shell)
        self.session = Session(image=cfg.image, extra_packages=tuple(cfg.extra_packages))
        self.progress = PipelineResult()

    # -- container -------------------------------------------------------

    def _binds(self) -> List[str]:
        binds: List[str] = []
        if self.cfg.mount_cwd:
            binds.append(f"{self.cwd}:{self.paths.work_dir}" + (":ro" if self.cfg.ro_cwd else ""))
        if self.cfg.sync_zsh_history == "mount":
            src = Path.home() / ".zsh_history"
            if src.is_file():
                binds.append(f"{src}:{self.paths.zsh_history}")
            else:
                # The runtime would create a directory in its place.
                logger.warning("No %s to mount; skipping history sync", src)
        return binds

    def create(self) -> str:
        opts = CreateOptions(
            image=self.session.image,
            name=self.session.name,
            privileged=self.cfg.privileged,
            binds=self._binds(),
        )
        logger.info("Creating container from %s", self.session.image)
        container_id = self.runtime.create(opts)
        self.session.container_id = container_id
        self.session.transition(SessionState.CREATED)
        self.runtime.start(container_id)
        return container_id

    def remove(self, *, by_name: bool = False) -> None:
        """Remove the container exactly once; failures are logged, not raised.

        With ``by_name`` the session's container name is used when no id was
        recorded, for a create that was interrupted after the runtime acted.
        """

        if self.session.removed:
            return
        with _signals_ignored():
            target = self.session.container_id
            if target is None and by_name:
                target = self.session.name
            self.session.transition(SessionState.REMOVED)
            if target is None:
                return
            try:
                self.runtime.remove(target)
                logger.info("Removed container %s", target)
            except ContainerRuntimeFailure as e:
                logger.error("Could not remove container %s: %s", target, e)

    def __enter__(self) -> "Lifecycle":
        try:
            self.create()
        except KeyboardInterrupt:
            self.remove(by_name=True)
            raise
        except BaseException:
            self.remove()
            raise
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is KeyboardInterrupt:
            logger.warning("Interrupted during %s; removing container", self.session.state.value)
        self.remove()

    # -- provisioning ----------------------------------------------------

    def _plan(self) -> ProvisioningPlan:
        return ProvisioningPlan(
            paths=self.paths,
            extra_packages=self.session.extra_packages,
            extra_aur_packages=tuple(self.cfg.extra_aur_packages),
            update_system=self.cfg.update_system,
            update_pkgfile=self.cfg.update_pkgfile,
            chaotic_aur=self.cfg.chaotic_aur,
            stage_command_not_found=bool(self.cfg.command_not_found),
        )

    def _execute(self, cmd: StepCommand, tag: str) -> CmdResult:
        if self.session.container_id is None:
            raise RuntimeError("container not created yet")
        env: Dict[str, str] = {}
        workdir = None
        if cmd.user != ROOT:
            env["HOME"] = self.paths.home
            workdir = self.paths.home
        return self.runtime.exec(
            self.session.container_id,
            cmd.argv,
            user=cmd.user,
            tag=tag,
            env=env,
            workdir=workdir,
            timeout_s=self.cfg.step_timeout,
        )

    def stage_files(self) -> None:
        if self.cfg.command_not_found:
            self.runtime.copy_in(self.session.container_id, self.cfg.command_not_found, CNF_STAGING_PATH)

    def provision(self) -> PipelineResult:
        self.session.transition(SessionState.PROVISIONING)
        self.stage_files()
        steps = build_steps(self._plan())
        return run_pipeline(steps=steps, execute=self._execute, result=self.progress)

    def sync_history(self) -> None:
        if self.cfg.sync_zsh_history != "copy":
            return
        src = Path.home() / ".zsh_history"
        if not src.exists():
            logger.warning("No %s to copy; skipping history sync", src)
            return
        cid = self.session.container_id
        self.runtime.copy_in(cid, str(src), self.paths.zsh_history)
        chown = StepCommand.of(["chown", f"{self.paths.user}:{self.paths.user}", self.paths.zsh_history])
        try:
            r = self._execute(chown, "history")
        except (CommandFailure, LaunchFailure) as e:
            raise ProvisioningError("history", e) from e
        if r.returncode != 0:
            raise ProvisioningError("history", CommandFailure(r.argv, r.returncode))

    # -- session ---------------------------------------------------------

    def attach(self, command: Optional[Sequence[str]] = None) -> int:
        argv = list(command or self.cfg.command)
        env = {"SHOW_WELCOME": "true"} if argv == [self.paths.shell] else {}
        self.session.transition(SessionState.ATTACHED)
        logger.info("Entering container %s as %s", self.session.container_id, self.paths.user)
        code = self.runtime.attach(
            self.session.container_id,
            argv,
            user=self.paths.user,
            workdir=self.paths.work_dir,
            env=env,
        )
        logger.info("Session ended with exit code %s", code)
        return code

    def run(self, command: Optional[Sequence[str]] = None) -> int:
        """Provision then attach. Must be called inside ``with``."""

        self.provision()
        self.sync_history()
        return self.attach(command)


def run_session(cfg: SessionConfig, runtime: ContainerRuntime, *, cwd: Optional[str] = None) -> int:
    with Lifecycle(cfg, runtime, cwd=cwd) as lc:
        return lc.run()
