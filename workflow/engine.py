"""The workflow engine: runs a command's phases and folds events into state."""

from __future__ import annotations

import getpass
import inspect
import socket
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar, Optional

from workflow.events import Event
from workflow.git import GitClient
from workflow.models import (
    EventError,
    ExecutionError,
    Language,
    ValidationError,
    WorkflowError,
    WorkflowState,
)
from workflow.storage import EventStoreType


def _current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"


def _new_session_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class WorkflowContext:
    """Who runs a session, and where."""

    session_id: str = field(default_factory=_new_session_id)
    user: str = field(default_factory=_current_user)
    hostname: str = field(default_factory=socket.gethostname)

    @classmethod
    def with_session_id(cls, session_id: str) -> "WorkflowContext":
        """Context for the given session, with the current user and host."""
        return cls(session_id=session_id)


@dataclass
class AppContext:
    """Application-wide settings and services shared by all sessions."""

    workflows_dir: Path
    language: Language = Language.ENGLISH
    git_client: GitClient = field(default_factory=GitClient)

    def __post_init__(self) -> None:
        self.workflows_dir = Path(self.workflows_dir)


@dataclass
class EngineContext:
    """What a command sees while it runs: its session and a way to queue follow-ups."""

    workflow_context: WorkflowContext
    scheduler: Optional[Callable[[Any], Any]] = None

    async def schedule_command(self, command: Any) -> None:
        """Hand a follow-up command to the session's processor."""
        if self.scheduler is None:
            raise ExecutionError("no scheduler is attached to this engine context")
        result = self.scheduler(command)
        if inspect.isawaitable(result):
            await result


class Engine:
    """Pure business logic: load, validate and emit, then apply events and run effects."""

    name: ClassVar[str] = "EngineV1"
    version: ClassVar[str] = "1.0.0"

    def __init__(self, app_context: AppContext) -> None:
        self.app_context = app_context

    async def process_command(
        self, command: Any, context: EngineContext, current_state: WorkflowState
    ) -> list[Event]:
        """Run the load, validate and emit phases and return the emitted events."""
        try:
            loaded = await command.load(context, self.app_context, current_state)
        except WorkflowError as exc:
            raise ExecutionError(f"Load phase failed: {exc}") from exc
        try:
            command.validate(loaded)
        except WorkflowError as exc:
            raise ValidationError(f"Validation phase failed: {exc}") from exc
        try:
            events = await command.emit(loaded, context, self.app_context, current_state)
        except WorkflowError as exc:
            raise EventError(f"Emit phase failed: {exc}") from exc
        return list(events)

    def handle_events(self, current_state: WorkflowState, events: Iterable[Event]) -> WorkflowState:
        """Apply events in order; raise EventError on an invalid transition."""
        state = current_state
        for event in events:
            new_state = event.apply(state)
            if new_state is None:
                raise EventError(f"Failed to apply event {event!r}")
            state = new_state
        return state

    async def effect(
        self,
        command: Any,
        previous_state: WorkflowState,
        current_state: WorkflowState,
        context: EngineContext,
    ) -> None:
        """Run the command's side effects."""
        try:
            await command.effect(previous_state, current_state, context, self.app_context)
        except WorkflowError as exc:
            raise ExecutionError(f"Effect phase failed: {exc}") from exc


def create_engine(store_type: EventStoreType, app_context: AppContext) -> Engine:
    """Create an engine; persistence is handled outside it, whatever the store type."""
    return Engine(app_context)