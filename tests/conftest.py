"""Shared fixtures: a container runtime that records calls instead of running them."""

from __future__ import annotations

import signal
from typing import Callable, List, Optional, Sequence, Tuple

import pytest

from tempsystem.errors import ContainerRuntimeFailure
from tempsystem.lib.command import CmdResult
from tempsystem.session_config import SessionConfig


class FakeRuntime:
    def __init__(
        self,
        *,
        exec_code: Optional[Callable[[Sequence[str]], int]] = None,
        interrupt_on: Optional[str] = None,
        create_error: bool = False,
        start_error: bool = False,
        remove_error: bool = False,
        attach_code: int = 0,
        exec_error: Optional[Tuple[str, BaseException]] = None,
        interrupt_create: bool = False,
        interrupt_attach: bool = False,
    ):
        self.exec_code = exec_code or (lambda argv: 0)
        self.interrupt_on = interrupt_on
        self.create_error = create_error
        self.start_error = start_error
        self.remove_error = remove_error
        self.attach_code = attach_code
        self.exec_error = exec_error
        self.interrupt_create = interrupt_create
        self.interrupt_attach = interrupt_attach
        self.calls: List[tuple] = []
        self.execs: List[tuple] = []
        self.removed: List[str] = []
        # Whether SIGINT was ignored while each removal ran.
        self.remove_sigint_ignored: List[bool] = []

    def create(self, opts):
        self.calls.append(("create", opts))
        if self.interrupt_create:
            raise KeyboardInterrupt
        if self.create_error:
            raise ContainerRuntimeFailure("create", "pull access denied")
        return "c0ffee"

    def start(self, container_id):
        self.calls.append(("start", container_id))
        if self.start_error:
            raise ContainerRuntimeFailure("start", "boom")

    def copy_in(self, container_id, host_path, container_path):
        self.calls.append(("copy_in", container_id, host_path, container_path))

    def exec(self, container_id, argv, *, user="root", tag="exec", env=None, workdir=None, timeout_s=None):
        argv = list(argv)
        self.calls.append(("exec", container_id, tag))
        self.execs.append((tag, user, argv))
        if self.interrupt_on and self.interrupt_on in " ".join(argv):
            raise KeyboardInterrupt
        if self.exec_error and self.exec_error[0] in " ".join(argv):
            raise self.exec_error[1]
        return CmdResult(argv=argv, returncode=self.exec_code(argv))

    def attach(self, container_id, argv, *, user, workdir, env=None):
        self.calls.append(("attach", container_id, list(argv), user, workdir, dict(env or {})))
        if self.interrupt_attach:
            raise KeyboardInterrupt
        return self.attach_code

    def remove(self, container_id):
        self.calls.append(("remove", container_id))
        self.removed.append(container_id)
        self.remove_sigint_ignored.append(signal.getsignal(signal.SIGINT) is signal.SIG_IGN)
        if self.remove_error:
            raise ContainerRuntimeFailure("remove", "no such container")

    def ops(self) -> List[str]:
        return [c[0] for c in self.calls]

    def exec_tags(self) -> List[str]:
        out: List[str] = []
        for tag, _, _ in self.execs:
            if not out or out[-1] != tag:
                out.append(tag)
        return out


@pytest.fixture
def fake_runtime():
    return FakeRuntime()


@pytest.fixture
def make_runtime():
    return FakeRuntime


@pytest.fixture
def cfg():
    return SessionConfig(raw={"image": "archlinux:latest"})
