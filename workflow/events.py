"""Workflow events and the state transitions they cause."""

from __future__ import annotations

import enum
import json
import uuid
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import datetime, timezone
from typing import Any, ClassVar, Optional

from workflow.models import (
    AvailableLanguagesListedState,
    CurrentLanguageRetrievedState,
    InitialState,
    LanguageSetState,
    SyncRequestedState,
    Workflow,
    WorkflowArgumentsResolvedState,
    WorkflowCompletedState,
    WorkflowsDiscoveredState,
    WorkflowSelectedState,
    WorkflowsListedState,
    WorkflowStartedState,
    WorkflowState,
    WorkflowsSyncedState,
)


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        text = value.isoformat()
        return text[:-6] + "Z" if text.endswith("+00:00") else text
    if isinstance(value, enum.Enum):
        return value.value
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: _jsonable(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Mapping):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


@dataclass(frozen=True, kw_only=True)
class Event(ABC):
    """Something that happened in a session; applying it yields a new state."""

    event_id: str = field(default_factory=_new_id)
    timestamp: datetime = field(default_factory=_utcnow)

    event_type: ClassVar[str] = ""
    state_type: ClassVar[str] = "workflow-state"

    @abstractmethod
    def apply(self, current_state: Optional[WorkflowState]) -> Optional[WorkflowState]:
        """Return the state after this event, or None if the transition is invalid."""

    def to_dict(self) -> dict[str, Any]:
        return _jsonable(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass(frozen=True, kw_only=True)
class WorkflowDiscoveredEvent(Event):
    workflow: Workflow
    file_path: str

    event_type: ClassVar[str] = "workflow-discovered"

    def apply(self, current_state):
        current = current_state if current_state is not None else InitialState()
        match current:
            case InitialState():
                return WorkflowsDiscoveredState(discovered_workflows=(self.workflow,))
            case WorkflowsDiscoveredState(discovered_workflows=workflows):
                if not any(w.name == self.workflow.name for w in workflows):
                    workflows = (*workflows, self.workflow)
                return WorkflowsDiscoveredState(discovered_workflows=workflows)
        return None


@dataclass(frozen=True, kw_only=True)
class WorkflowSelectedEvent(Event):
    workflow: Workflow
    user: str

    event_type: ClassVar[str] = "workflow-selected"

    def apply(self, current_state):
        current = current_state if current_state is not None else InitialState()
        if isinstance(current, WorkflowsDiscoveredState) and any(
            w.name == self.workflow.name for w in current.discovered_workflows
        ):
            return WorkflowSelectedState(
                discovered_workflows=current.discovered_workflows,
                selected_workflow=self.workflow,
            )
        return None


@dataclass(frozen=True, kw_only=True)
class WorkflowStartedEvent(Event):
    user: str
    hostname: str
    execution_id: str

    event_type: ClassVar[str] = "workflow-started"

    def apply(self, current_state):
        if isinstance(current_state, WorkflowSelectedState):
            return WorkflowStartedState(
                discovered_workflows=current_state.discovered_workflows,
                selected_workflow=current_state.selected_workflow,
                execution_id=self.execution_id,
            )
        return None


@dataclass(frozen=True, kw_only=True)
class WorkflowArgumentsResolvedEvent(Event):
    arguments: Mapping[str, str] = field(default_factory=dict)

    event_type: ClassVar[str] = "workflow-arguments-resolved"

    def apply(self, current_state):
        if isinstance(current_state, WorkflowStartedState):
            return WorkflowArgumentsResolvedState(
                discovered_workflows=current_state.discovered_workflows,
                selected_workflow=current_state.selected_workflow,
                execution_id=current_state.execution_id,
                resolved_arguments=dict(self.arguments),
            )
        return None


@dataclass(frozen=True, kw_only=True)
class WorkflowCompletedEvent(Event):
    event_type: ClassVar[str] = "workflow-completed"

    def apply(self, current_state):
        if isinstance(current_state, WorkflowArgumentsResolvedState):
            return WorkflowCompletedState(
                discovered_workflows=current_state.discovered_workflows,
                completed_workflow=current_state.selected_workflow,
                execution_id=current_state.execution_id,
                resolved_arguments=dict(current_state.resolved_arguments),
            )
        return None


@dataclass(frozen=True, kw_only=True)
class AvailableWorkflowsListedEvent(Event):
    workflows: tuple[str, ...] = ()

    event_type: ClassVar[str] = "available-workflows-listed"

    def apply(self, current_state):
        current = current_state if current_state is not None else InitialState()
        if isinstance(current, WorkflowsDiscoveredState):
            return WorkflowsListedState(discovered_workflows=current.discovered_workflows)
        if isinstance(current, InitialState):
            return WorkflowsListedState(discovered_workflows=())
        return None


@dataclass(frozen=True, kw_only=True)
class SyncRequestedEvent(Event):
    remote_url: str
    branch: str
    ssh_key: Optional[str] = None

    event_type: ClassVar[str] = "SyncRequested"
    state_type: ClassVar[str] = "SyncRequestedState"

    def apply(self, current_state):
        return SyncRequestedState(remote_url=self.remote_url, branch=self.branch, ssh_key=self.ssh_key)


@dataclass(frozen=True, kw_only=True)
class WorkflowsSyncedEvent(Event):
    remote_url: str
    branch: str
    commit_id: str
    synced_count: int

    event_type: ClassVar[str] = "workflows-synced"

    def apply(self, current_state):
        if isinstance(current_state, SyncRequestedState):
            return WorkflowsSyncedState(
                remote_url=self.remote_url,
                branch=self.branch,
                commit_id=self.commit_id,
                synced_count=self.synced_count,
                synced_at=self.timestamp,
            )
        return None


@dataclass(frozen=True, kw_only=True)
class LanguageSetEvent(Event):
    language: str

    event_type: ClassVar[str] = "language-set"

    def apply(self, current_state):
        return LanguageSetState(language=self.language, set_at=self.timestamp)


@dataclass(frozen=True, kw_only=True)
class CurrentLanguageRetrievedEvent(Event):
    language: str

    event_type: ClassVar[str] = "current-language-retrieved"

    def apply(self, current_state):
        return CurrentLanguageRetrievedState(language=self.language, retrieved_at=self.timestamp)


@dataclass(frozen=True, kw_only=True)
class AvailableLanguagesListedEvent(Event):
    languages: tuple[str, ...] = ()

    event_type: ClassVar[str] = "available-languages-listed"

    def apply(self, current_state):
        return AvailableLanguagesListedState(languages=tuple(self.languages), listed_at=self.timestamp)