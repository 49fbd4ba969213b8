from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from .errors import CommandFailure, LaunchFailure, PackageNotFound, ProvisioningError, ToleratedFailure
from .lib.command import CmdResult
from .provisioning import ProvisioningStep, StepCommand

logger = logging.getLogger(__name__)

# Runs one command inside the container and returns its unchecked result.
Executor = Callable[[StepCommand, str], CmdResult]


@dataclass
class PipelineResult:
    ran_steps: List[str] = field(default_factory=list)
    tolerated: List[ToleratedFailure] = field(default_factory=list)
    current_step: Optional[str] = None


def _run_commands(step: ProvisioningStep, commands: Sequence[StepCommand], execute: Executor) -> None:
    for cmd in commands:
        r = execute(cmd, step.step_id)
        if r.returncode != 0:
            if cmd.checks_package:
                raise PackageNotFound(cmd.checks_package, r.argv, r.returncode)
            raise CommandFailure(r.argv, r.returncode)


def _run_cleanup(step: ProvisioningStep, execute: Executor) -> None:
    for cmd in step.cleanup:
        try:
            r = execute(cmd, step.step_id)
        except (CommandFailure, LaunchFailure) as e:
            # Timeouts surface as CommandFailure even for unchecked commands.
            logger.warning("Cleanup for %s failed: %s", step.step_id, e)
            continue
        if r.returncode != 0:
            logger.warning("Cleanup for %s exited %s", step.step_id, r.returncode)


def run_pipeline(
    *,
    steps: Sequence[ProvisioningStep],
    execute: Executor,
    result: Optional[PipelineResult] = None,
) -> PipelineResult:
    """Run steps in order; the first fatal failure stops the sequence.

    A step marked ``tolerate_failure`` records a ToleratedFailure instead of
    aborting. Cleanup commands of a step run even when its commands failed.
    Pass ``result`` to observe progress if the run is interrupted.
    """

    result = result if result is not None else PipelineResult()

    for step in steps:
        result.current_step = step.step_id
        logger.info("Running step %s", step.step_id)
        try:
            _run_commands(step, step.commands, execute)
        except CommandFailure as e:
            if not step.tolerate_failure:
                raise ProvisioningError(step.step_id, e) from e
            tolerated = ToleratedFailure(step.step_id, e.returncode)
            logger.warning("%s; continuing", tolerated)
            result.tolerated.append(tolerated)
        except LaunchFailure as e:
            raise ProvisioningError(step.step_id, e) from e
        finally:
            _run_cleanup(step, execute)
        result.ran_steps.append(step.step_id)

    result.current_step = None
    return result
