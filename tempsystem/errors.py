from __future__ import annotations

import shlex
from typing import Sequence


def _fmt(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


class TempsystemError(RuntimeError):
    pass


class LaunchFailure(TempsystemError):
    """The command could not be started at all."""

    def __init__(self, argv: Sequence[str], cause: BaseException) -> None:
        self.argv = list(argv)
        self.cause = cause
        super().__init__(f"Could not launch {_fmt(self.argv)}: {cause}")


class CommandFailure(TempsystemError):
    """The command ran and exited non-zero."""

    def __init__(self, argv: Sequence[str], returncode: int) -> None:
        self.argv = list(argv)
        self.returncode = returncode
        super().__init__(f"Command failed ({returncode}): {_fmt(self.argv)}")


class ToleratedFailure(TempsystemError):
    """A non-zero exit that the step's policy allows. Recorded, never raised."""

    def __init__(self, step_id: str, returncode: int) -> None:
        self.step_id = step_id
        self.returncode = returncode
        super().__init__(f"Step {step_id} exited {returncode} (tolerated)")


class ProvisioningError(TempsystemError):
    def __init__(self, step_id: str, cause: TempsystemError) -> None:
        self.step_id = step_id
        self.cause = cause
        super().__init__(f"Provisioning step {step_id} failed: {cause}")


class ContainerRuntimeFailure(TempsystemError):
    def __init__(self, operation: str, detail: str) -> None:
        self.operation = operation
        self.detail = detail
        super().__init__(f"Container {operation} failed: {detail}")


class PackageNotFound(CommandFailure):
    def __init__(self, package: str, argv: Sequence[str], returncode: int) -> None:
        self.package = package
        super().__init__(argv, returncode)

    def __str__(self) -> str:
        return f"package `{self.package}` does not exist"
