"""Step and task primitives for a rewrite run.

A run is a ``Task`` holding an ordered list of ``Step`` objects: expand
the templates, load the program, rewrite the packages. Each step
receives what the previous one produced and the task stops at the
first step that fails.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from .context import PipelineContext
from .events import EventBus, StepCompletedEvent, StepStartedEvent
from .result import Result

T = TypeVar("T")
R = TypeVar("R")


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


class Step(ABC, Generic[T, R]):
    """One stage of a run.

    Subclasses implement ``execute``; callers use ``run``, which
    announces the step on the event bus and turns any exception raised
    by ``execute`` into an error result.
    """

    def __init__(self, name: str, event_bus: EventBus) -> None:
        self.name = name
        self.event_bus = event_bus
        self._logger = logging.getLogger(f"{__name__}.{name}")

    @abstractmethod
    def execute(self, context: PipelineContext, input_data: T) -> Result[R]:
        """Do the work of the step.

        Args:
            context: Run-wide context with the configuration.
            input_data: Value produced by the previous step.

        Returns:
            ``Result`` with this step's output.
        """

    def run(self, context: PipelineContext, input_data: T) -> Result[R]:
        step_type = type(self).__name__
        self.event_bus.publish(
            StepStartedEvent(
                timestamp=time.time(), run_id=context.run_id, context=context, step_name=self.name, step_type=step_type
            )
        )
        start = time.perf_counter()
        try:
            result = self.execute(context, input_data)
        except Exception as e:
            self._logger.error(f"Step {self.name} raised {type(e).__name__}: {e}", exc_info=True)
            result = Result.failure(e, {"step": self.name, "run_id": context.run_id})
        else:
            self._logger.debug(f"Step {self.name} finished with status {result.status.value}")

        self.event_bus.publish(
            StepCompletedEvent(
                timestamp=time.time(),
                run_id=context.run_id,
                context=context,
                step_name=self.name,
                step_type=step_type,
                result=result,
                duration_ms=_elapsed_ms(start),
            )
        )
        return result


class Task(Generic[T, R]):
    """Ordered steps run one after another.

    Data flows from each step to the next; a step that returns no data
    passes its input through. Warnings from every step are gathered onto
    the final result.
    """

    def __init__(self, name: str, steps: list[Step], event_bus: EventBus) -> None:
        self.name = name
        self.steps = list(steps)
        self.event_bus = event_bus
        self._logger = logging.getLogger(f"{__name__}.{name}")

    def __len__(self) -> int:
        return len(self.steps)

    def execute(self, context: PipelineContext, input_data: T) -> Result[R]:
        if not self.steps:
            return Result.skipped(f"Task {self.name} has no steps")

        data = input_data
        warnings: list[str] = []
        result: Result = Result.success(data)
        for index, step in enumerate(self.steps):
            result = step.run(context, data)
            if result.is_error():
                self._logger.error(f"Task {self.name} stopped at step {index + 1}/{len(self)}: {step.name}")
                return Result.failure(
                    result.error or RuntimeError(f"Step {step.name} failed"),
                    {"task": self.name, "failed_step": step.name, "step_index": index, "run_id": context.run_id},
                )
            warnings.extend(result.warnings)
            if result.data is not None:
                data = result.data

        if result.is_skipped():
            return result.with_warnings(warnings)
        return Result.success(data, result.metadata).with_warnings(warnings)
