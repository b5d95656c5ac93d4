from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Generic, List, Optional, TypeVar

logger = logging.getLogger("advisor.steps")

ContextT = TypeVar("ContextT")


@dataclass
class PipelineStep(Generic[ContextT]):
    """Named step for the sequential pipeline runner."""
    name: str
    fn: Callable[[ContextT], None]
    skip_if: Optional[Callable[[ContextT], bool]] = None


class StepRunner(Generic[ContextT]):
    """Run named steps strictly in order over a mutable per-request context."""

    def __init__(self, steps: List[PipelineStep[ContextT]]) -> None:
        """Purpose: Initialize the runner with an ordered list of steps.
        Inputs/Outputs: Input is a list of PipelineStep; no return value.
        Side Effects / State: Stores a copy of the step list for later execution.
        Dependencies: None beyond PipelineStep definitions.
        Failure Modes: Duplicate step names raise ValueError.
        If Removed: Neither the turn pipeline nor the link engine can run.
        Testing Notes: Provide a minimal step list and ensure order is preserved.
        """
        names = [step.name for step in steps]
        if len(names) != len(set(names)):
            raise ValueError(f"duplicate pipeline step names: {names}")
        self._steps = list(steps)

    @property
    def step_names(self) -> List[str]:
        return [step.name for step in self._steps]

    def run(self, context: ContextT) -> None:
        """Purpose: Execute steps in order, honoring skip_if guards.
        Inputs/Outputs: Input is a mutable context object; no return value.
        Side Effects / State: Invokes step functions that mutate context; debug logs.
        Dependencies: PipelineStep.fn and PipelineStep.skip_if.
        Failure Modes: Exceptions in step functions propagate to the caller unchanged.
        If Removed: Stage ordering would be implicit again.
        Testing Notes: Verify skip_if and ordering with simple recording steps.
        """
        for step in self._steps:
            if step.skip_if and step.skip_if(context):
                logger.debug("step=%s status=skipped", step.name)
                continue
            started = time.perf_counter()
            step.fn(context)
            logger.debug(
                "step=%s status=success elapsed_ms=%.2f",
                step.name,
                (time.perf_counter() - started) * 1000,
            )
