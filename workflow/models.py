"""Domain model: workflow definitions, languages, errors and workflow states."""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Union

import yaml


class WorkflowError(Exception):
    """Base class for every error raised while handling workflows."""


class ValidationError(WorkflowError):
    """Input or state did not satisfy a command's requirements."""


class ExecutionError(WorkflowError):
    """A command failed while it was running."""


class EventError(WorkflowError):
    """An event could not be produced or applied."""


class FileSystemError(WorkflowError):
    """Reading or writing files failed."""


class SerializationError(WorkflowError):
    """A document could not be parsed or produced."""


class NetworkError(WorkflowError):
    """A remote operation failed."""


class ConfigurationError(WorkflowError):
    """The application configuration is unusable."""


class ArgumentType(enum.Enum):
    """Kind of value a workflow argument takes."""

    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ENUM = "enum"

    @classmethod
    def _missing_(cls, value: object) -> Optional["ArgumentType"]:
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return None


def _optional_str(data: Mapping[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    return None if value is None else str(value)


def _str_tuple(data: Mapping[str, Any], key: str) -> tuple[str, ...]:
    value = data.get(key)
    if value is None:
        return ()
    if not isinstance(value, (list, tuple)):
        raise SerializationError(f"field '{key}' must be a list")
    return tuple(str(item) for item in value)


@dataclass(frozen=True)
class WorkflowArgument:
    """One argument a workflow's command template expects."""

    name: str
    arg_type: ArgumentType = ArgumentType.TEXT
    description: Optional[str] = None
    default_value: Optional[str] = None
    enum_variants: Optional[tuple[str, ...]] = None
    enum_command: Optional[str] = None
    enum_name: Optional[str] = None
    dynamic_resolution: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "WorkflowArgument":
        """Build an argument from a parsed YAML mapping."""
        if not isinstance(data, Mapping):
            raise SerializationError("workflow argument must be a mapping")
        name = data.get("name")
        if not isinstance(name, str) or not name:
            raise SerializationError("workflow argument is missing a name")
        try:
            arg_type = ArgumentType(data.get("arg_type", "text"))
        except ValueError as exc:
            raise SerializationError(f"unknown argument type for '{name}': {exc}") from exc
        variants = data.get("enum_variants")
        return cls(
            name=name,
            arg_type=arg_type,
            description=_optional_str(data, "description"),
            default_value=_optional_str(data, "default_value"),
            enum_variants=None if variants is None else _str_tuple(data, "enum_variants"),
            enum_command=_optional_str(data, "enum_command"),
            enum_name=_optional_str(data, "enum_name"),
            dynamic_resolution=_optional_str(data, "dynamic_resolution"),
        )


@dataclass(frozen=True)
class Workflow:
    """A named command template with its arguments and metadata."""

    name: str
    command: str
    description: str = ""
    arguments: tuple[WorkflowArgument, ...] = ()
    source_url: Optional[str] = None
    author: Optional[str] = None
    author_url: Optional[str] = None
    shells: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()

    def __str__(self) -> str:
        return self.name

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Workflow":
        """Build a workflow from a parsed YAML mapping."""
        if not isinstance(data, Mapping):
            raise SerializationError("workflow document must be a mapping")
        name = data.get("name")
        command = data.get("command")
        if not isinstance(name, str) or not name:
            raise SerializationError("workflow is missing a name")
        if not isinstance(command, str):
            raise SerializationError(f"workflow '{name}' is missing a command")
        raw_arguments = data.get("arguments") or []
        if not isinstance(raw_arguments, (list, tuple)):
            raise SerializationError(f"arguments of workflow '{name}' must be a list")
        return cls(
            name=name,
            command=command,
            description=str(data.get("description") or ""),
            arguments=tuple(WorkflowArgument.from_dict(arg) for arg in raw_arguments),
            source_url=_optional_str(data, "source_url"),
            author=_optional_str(data, "author"),
            author_url=_optional_str(data, "author_url"),
            shells=_str_tuple(data, "shells"),
            tags=_str_tuple(data, "tags"),
        )

    @classmethod
    def from_yaml(cls, text: str) -> "Workflow":
        """Parse a workflow from YAML text."""
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise SerializationError(str(exc)) from exc
        return cls.from_dict(data)


class Language(enum.Enum):
    """Languages the application can speak."""

    ENGLISH = "en"
    SPANISH = "es"

    @property
    def code(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str) -> "Language":
        """Resolve a language code or name; raise ValidationError if unknown."""
        lowered = value.strip().lower()
        for member in cls:
            if lowered in (member.value, member.name.lower()):
                return member
        raise ValidationError(f"Unsupported language: {value}")


@dataclass(frozen=True)
class InitialState:
    """Nothing has happened in the session yet."""


@dataclass(frozen=True)
class WorkflowsDiscoveredState:
    discovered_workflows: tuple[Workflow, ...] = ()


@dataclass(frozen=True)
class WorkflowsListedState:
    discovered_workflows: tuple[Workflow, ...] = ()


@dataclass(frozen=True)
class WorkflowSelectedState:
    discovered_workflows: tuple[Workflow, ...]
    selected_workflow: Workflow


@dataclass(frozen=True)
class WorkflowStartedState:
    discovered_workflows: tuple[Workflow, ...]
    selected_workflow: Workflow
    execution_id: str


@dataclass(frozen=True)
class WorkflowArgumentsResolvedState:
    discovered_workflows: tuple[Workflow, ...]
    selected_workflow: Workflow
    execution_id: str
    resolved_arguments: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class WorkflowCompletedState:
    discovered_workflows: tuple[Workflow, ...]
    completed_workflow: Workflow
    execution_id: str
    resolved_arguments: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SyncRequestedState:
    remote_url: str
    branch: str
    ssh_key: Optional[str] = None


@dataclass(frozen=True)
class WorkflowsSyncedState:
    remote_url: str
    branch: str
    commit_id: str
    synced_count: int
    synced_at: datetime


@dataclass(frozen=True)
class LanguageSetState:
    language: str
    set_at: datetime


@dataclass(frozen=True)
class CurrentLanguageRetrievedState:
    language: str
    retrieved_at: datetime


@dataclass(frozen=True)
class AvailableLanguagesListedState:
    languages: tuple[str, ...]
    listed_at: datetime


WorkflowState = Union[
    InitialState,
    WorkflowsDiscoveredState,
    WorkflowsListedState,
    WorkflowSelectedState,
    WorkflowStartedState,
    WorkflowArgumentsResolvedState,
    WorkflowCompletedState,
    SyncRequestedState,
    WorkflowsSyncedState,
    LanguageSetState,
    CurrentLanguageRetrievedState,
    AvailableLanguagesListedState,
]