"""Run events and the bus that delivers them.

Defines a small thread-safe publish/subscribe hub together with the
event dataclasses published while a rewrite run proceeds.
``LoggingSubscriber`` turns events into log lines and
``ConsoleReporter`` prints the per-package and per-file progress lines
the command line tool shows.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

import typer

from .context import PipelineContext
from .result import Result

T = TypeVar("T")
EventHandler = Callable[[Any], None]


@dataclass(frozen=True)
class BaseEvent:
    """Fields shared by every event: wall-clock time and the run it belongs to."""

    timestamp: float
    run_id: str

    def __post_init__(self) -> None:
        if self.timestamp < 0:
            raise ValueError("Timestamp cannot be negative")


@dataclass(frozen=True)
class RunStartedEvent(BaseEvent):
    """Published once, before the scratch directory is created."""

    context: PipelineContext


@dataclass(frozen=True)
class RunCompletedEvent(BaseEvent):
    """Published once after the scratch directory is gone, whatever the outcome."""

    context: PipelineContext
    final_result: Result[Any]
    duration_ms: float


@dataclass(frozen=True)
class StepStartedEvent(BaseEvent):
    """Published by ``Step.run`` before ``execute`` is called."""

    context: PipelineContext
    step_name: str
    step_type: str


@dataclass(frozen=True)
class StepCompletedEvent(BaseEvent):
    """Published by ``Step.run`` with the step's result, errors included."""

    context: PipelineContext
    step_name: str
    step_type: str
    result: Result[Any]
    duration_ms: float


@dataclass(frozen=True)
class TemplatesExpandedEvent(BaseEvent):
    """Event fired once every template unit is registered."""

    unit_count: int
    rule_count: int


@dataclass(frozen=True)
class ProgramLoadedEvent(BaseEvent):
    """Event fired after the combined program is loaded and checked."""

    package_names: tuple[str, ...]
    unit_count: int


@dataclass(frozen=True)
class PackageStartedEvent(BaseEvent):
    """Event fired when a target package is about to be rewritten."""

    package: str
    file_count: int


@dataclass(frozen=True)
class FileRewrittenEvent(BaseEvent):
    """Event fired for a file with a non-zero match count, before it is written."""

    path: str
    package: str
    matches: int
    rule_counts: dict[str, int] = field(default_factory=dict)
    dry_run: bool = False


@dataclass(frozen=True)
class MatchFailedEvent(BaseEvent):
    """Event fired when one matcher fails on one file."""

    path: str
    unit_name: str
    error: Exception


class EventBus:
    """Synchronous publish/subscribe hub shared by the steps of a run.

    Subscriptions are keyed by exact event class. Handlers run in the
    order they subscribed, outside the lock, and a handler that raises
    is logged without stopping delivery to the others.
    """

    def __init__(self) -> None:
        self._handlers: dict[type, list[EventHandler]] = {}
        self._lock = threading.Lock()
        self._logger = logging.getLogger(__name__)

    def subscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None:
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)

    def publish(self, event: BaseEvent) -> None:
        event_name = type(event).__name__
        with self._lock:
            handlers = tuple(self._handlers.get(type(event), ()))
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                self._logger.error(f"Event handler error for {event_name}: {e}", exc_info=True)


class EventSubscriber(ABC):
    """Subscriber owning a fixed list of (event type, handler) pairs."""

    def __init__(self, event_bus: EventBus) -> None:
        self.event_bus = event_bus
        self._setup_subscriptions()

    @abstractmethod
    def _subscriptions(self) -> list[tuple[type, EventHandler]]:
        """Return the ``(event type, handler)`` pairs this subscriber owns."""

    def _setup_subscriptions(self) -> None:
        for event_type, handler in self._subscriptions():
            self.event_bus.subscribe(event_type, handler)


class LoggingSubscriber(EventSubscriber):
    """Turns run events into log records on the ``splurge_assert_migrate.events`` logger."""

    def __init__(self, event_bus: EventBus) -> None:
        self._logger = logging.getLogger(__name__)
        super().__init__(event_bus)

    def _subscriptions(self) -> list[tuple[type, EventHandler]]:
        return [
            (RunStartedEvent, self._on_run_started),
            (RunCompletedEvent, self._on_run_completed),
            (StepStartedEvent, self._on_step_started),
            (StepCompletedEvent, self._on_step_completed),
            (TemplatesExpandedEvent, self._on_templates_expanded),
            (ProgramLoadedEvent, self._on_program_loaded),
            (MatchFailedEvent, self._on_match_failed),
        ]

    def _on_run_started(self, event: RunStartedEvent) -> None:
        self._logger.info(
            f"Run started: {', '.join(event.context.packages)} under {event.context.root} (run_id: {event.run_id})"
        )

    def _on_run_completed(self, event: RunCompletedEvent) -> None:
        status = "SUCCESS" if event.final_result.is_ok() else "FAILED"
        self._logger.info(f"Run completed in {event.duration_ms:.2f}ms: {status}")

    def _on_step_started(self, event: StepStartedEvent) -> None:
        self._logger.debug(f"Step started: {event.step_name} ({event.step_type})")

    def _on_step_completed(self, event: StepCompletedEvent) -> None:
        status = event.result.status.value.upper()
        self._logger.debug(f"Step completed in {event.duration_ms:.2f}ms: {event.step_name} ({status})")

    def _on_templates_expanded(self, event: TemplatesExpandedEvent) -> None:
        self._logger.info(f"Expanded {event.rule_count} rules into {event.unit_count} template units")

    def _on_program_loaded(self, event: ProgramLoadedEvent) -> None:
        self._logger.info(f"Program loaded: {len(event.package_names)} packages, {event.unit_count} template units")

    def _on_match_failed(self, event: MatchFailedEvent) -> None:
        self._logger.error(f"Matcher {event.unit_name} failed on {event.path}: {event.error}")


class ConsoleReporter(EventSubscriber):
    """Print run progress: one stdout line per package, one stderr line per rewritten file."""

    def _subscriptions(self) -> list[tuple[type, EventHandler]]:
        return [
            (PackageStartedEvent, self._on_package_started),
            (FileRewrittenEvent, self._on_file_rewritten),
        ]

    def _on_package_started(self, event: PackageStartedEvent) -> None:
        typer.echo(f"Handling package {event.package}")

    def _on_file_rewritten(self, event: FileRewrittenEvent) -> None:
        typer.echo(f"=== {event.path} ({event.matches} matches)", err=True)
