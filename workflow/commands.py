"""Workflow commands: discovering, listing, selecting, starting, resolving and completing workflows."""

from __future__ import annotations

import shutil
import subprocess
import uuid
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, ClassVar, Optional, TypeVar

import jinja2

from workflow.engine import AppContext, EngineContext
from workflow.events import (
    AvailableWorkflowsListedEvent,
    Event,
    WorkflowArgumentsResolvedEvent,
    WorkflowCompletedEvent,
    WorkflowDiscoveredEvent,
    WorkflowSelectedEvent,
    WorkflowStartedEvent,
)
from workflow.models import (
    ArgumentType,
    FileSystemError,
    InitialState,
    ValidationError,
    Workflow,
    WorkflowArgument,
    WorkflowArgumentsResolvedState,
    WorkflowCompletedState,
    WorkflowError,
    WorkflowsDiscoveredState,
    WorkflowSelectedState,
    WorkflowsListedState,
    WorkflowStartedState,
    WorkflowState,
)

T = TypeVar("T")

_WORKFLOW_SUFFIXES = (".yaml", ".yml")

_CLIPBOARD_TOOLS: tuple[tuple[str, ...], ...] = (
    ("pbcopy",),
    ("wl-copy",),
    ("xclip", "-selection", "clipboard"),
    ("xsel", "--clipboard", "--input"),
    ("clip",),
)


class Command(ABC):
    """A unit of work run by the engine in four phases: load, validate, emit, effect."""

    name: ClassVar[str] = ""
    description: ClassVar[str] = ""
    is_interactive: ClassVar[bool] = False
    is_mutating: ClassVar[bool] = False

    @abstractmethod
    async def load(
        self, context: EngineContext, app_context: AppContext, current_state: WorkflowState
    ) -> Any:
        """Gather what the command needs."""

    def validate(self, loaded_data: Any) -> None:
        """Check the loaded data; raise a WorkflowError if it is unusable."""

    @abstractmethod
    async def emit(
        self,
        loaded_data: Any,
        context: EngineContext,
        app_context: AppContext,
        current_state: WorkflowState,
    ) -> list[Event]:
        """Return the events this command produces."""

    async def effect(
        self,
        previous_state: WorkflowState,
        current_state: WorkflowState,
        context: EngineContext,
        app_context: AppContext,
    ) -> None:
        """Perform side effects once the events are applied."""


def select_option(message: str, options: Iterable[T]) -> T:
    """Ask the user to pick one of the options by number or by its text."""
    choices = list(options)
    if not choices:
        raise ValidationError(f"{message}: no options to choose from")
    print(message)
    for number, option in enumerate(choices, start=1):
        print(f"  {number}) {option}")
    while True:
        try:
            answer = input("> ").strip()
        except (EOFError, KeyboardInterrupt) as exc:
            raise ValidationError(f"Selection failed for {message}: input was cancelled") from exc
        if answer.isdigit() and 1 <= int(answer) <= len(choices):
            return choices[int(answer) - 1]
        for option in choices:
            if str(option) == answer:
                return option
        print(f"Please enter a number between 1 and {len(choices)}.")


def ask_text(message: str, default: Optional[str] = None) -> str:
    """Ask the user for a line of text; an empty answer takes the default if there is one."""
    prompt = f"{message} [{default}]: " if default else f"{message}: "
    try:
        answer = input(prompt)
    except (EOFError, KeyboardInterrupt) as exc:
        raise ValidationError(f"Input failed for {message}: input was cancelled") from exc
    if not answer and default:
        return default
    return answer


def resolve_workflow_arguments(arguments: Iterable[WorkflowArgument]) -> dict[str, str]:
    """Resolve each argument in order; later ones may refer to earlier values."""
    values: dict[str, str] = {}
    for arg in arguments:
        values[arg.name] = resolve_argument(arg, values)
    return values


def resolve_argument(arg: WorkflowArgument, current_values: Mapping[str, str]) -> str:
    """Resolve one argument interactively."""
    if arg.arg_type is ArgumentType.ENUM:
        if arg.enum_variants is not None:
            return select_option(f"Select {arg.name}", arg.enum_variants)
        if arg.enum_command is not None and arg.enum_name is not None:
            return _resolve_enum_command(arg, arg.enum_command, current_values)
        raise ValidationError(f"Enum argument '{arg.name}' is missing its variants or command")
    default = arg.default_value
    if default is not None and (not default or default == "~"):
        default = None
    return ask_text(f"Enter {arg.name}", default)


def _resolve_enum_command(
    arg: WorkflowArgument, enum_command: str, current_values: Mapping[str, str]
) -> str:
    command = enum_command
    reference = arg.dynamic_resolution
    if reference is not None:
        if reference not in current_values:
            raise ValidationError(f"Dynamic resolution failed: argument '{reference}' has no value")
        command = enum_command.replace("{{" + reference + "}}", current_values[reference])

    print(f"Executing: {command}")
    try:
        result = subprocess.run(["sh", "-c", command], capture_output=True, check=False)
    except OSError as exc:
        raise ValidationError(f"Failed to execute command: {exc}") from exc
    if result.returncode != 0:
        stderr = result.stderr.decode(errors="replace")
        raise ValidationError(f"Command failed: {stderr}")
    try:
        output = result.stdout.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ValidationError(f"Failed to parse command output: {exc}") from exc

    options = [line.strip() for line in output.splitlines() if line.strip()]
    if not options:
        raise ValidationError(f"No options found for {arg.name}")
    return select_option(f"Select {arg.name}", options)


def render_command(template: str, arguments: Mapping[str, Any]) -> str:
    """Render a workflow's command template with the resolved arguments."""
    environment = jinja2.Environment(
        undefined=jinja2.StrictUndefined, autoescape=False, keep_trailing_newline=True
    )
    try:
        return environment.from_string(template).render(**dict(arguments))
    except jinja2.TemplateError as exc:
        raise ValidationError(f"Failed to render command template: {exc}") from exc


def copy_to_clipboard(text: str) -> None:
    """Put text on the system clipboard using the first clipboard tool found."""
    for tool, *tool_args in _CLIPBOARD_TOOLS:
        executable = shutil.which(tool)
        if executable is None:
            continue
        try:
            result = subprocess.run(
                [executable, *tool_args], input=text.encode(), capture_output=True, check=False
            )
        except OSError as exc:
            raise ValidationError(f"Failed to set clipboard contents: {exc}") from exc
        if result.returncode != 0:
            stderr = result.stderr.decode(errors="replace").strip()
            raise ValidationError(f"Failed to set clipboard contents: {stderr}")
        return
    raise ValidationError("Failed to create clipboard context: no clipboard utility found")


@dataclass(frozen=True)
class DiscoverWorkflowsCommand(Command):
    """Reads the workflow YAML files from the workflows directory."""

    name: ClassVar[str] = "discover-workflows"
    description: ClassVar[str] = "Discovers available workflow files"

    async def load(self, context, app_context, current_state) -> tuple[Workflow, ...]:
        directory = app_context.workflows_dir
        if not directory.exists():
            return ()
        try:
            paths = [
                path
                for path in directory.iterdir()
                if path.is_file() and path.suffix in _WORKFLOW_SUFFIXES
            ]
        except OSError as exc:
            raise FileSystemError(str(exc)) from exc
        workflows = []
        for path in paths:
            try:
                content = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                raise FileSystemError(str(exc)) from exc
            workflows.append(Workflow.from_yaml(content))
        return tuple(sorted(workflows, key=lambda workflow: workflow.name))

    async def emit(self, loaded_data, context, app_context, current_state) -> list[Event]:
        return [
            WorkflowDiscoveredEvent(workflow=workflow, file_path=f"{workflow.name}.yaml")
            for workflow in loaded_data
        ]


@dataclass(frozen=True)
class ListWorkflowsCommand(Command):
    """Prints the names of the discovered workflows."""

    name: ClassVar[str] = "list-workflows"
    description: ClassVar[str] = "Lists all available workflow YAML files"

    async def load(self, context, app_context, current_state) -> None:
        return None

    async def emit(self, loaded_data, context, app_context, current_state) -> list[Event]:
        if isinstance(current_state, WorkflowsDiscoveredState):
            workflows: Sequence[Workflow] = current_state.discovered_workflows
        elif isinstance(current_state, InitialState):
            workflows = ()
        else:
            raise ValidationError("Workflows have not been discovered yet")
        return [AvailableWorkflowsListedEvent(workflows=tuple(w.name for w in workflows))]

    async def effect(self, previous_state, current_state, context, app_context) -> None:
        print("Available workflows:")
        print()
        if isinstance(current_state, WorkflowsListedState) and current_state.discovered_workflows:
            for workflow in current_state.discovered_workflows:
                print(f"  - {workflow.name}")
        else:
            print("  No workflows found")


@dataclass(frozen=True)
class InteractivelySelectWorkflowCommand(Command):
    """Lets the user pick one of the discovered workflows."""

    name: ClassVar[str] = "select-workflow"
    description: ClassVar[str] = "Selects and loads a specific workflow"
    is_mutating: ClassVar[bool] = True

    async def load(self, context, app_context, current_state) -> Workflow:
        if not isinstance(current_state, WorkflowsDiscoveredState):
            raise ValidationError("Workflows have not been discovered yet")
        return select_option("Select a workflow", current_state.discovered_workflows)

    async def emit(self, loaded_data, context, app_context, current_state) -> list[Event]:
        return [WorkflowSelectedEvent(workflow=loaded_data, user=context.workflow_context.user)]

    async def effect(self, previous_state, current_state, context, app_context) -> None:
        if isinstance(current_state, WorkflowSelectedState):
            workflow = current_state.selected_workflow
            print(f"Selected workflow: {workflow.name}")
            print(f"Description: {workflow.description}")
            if workflow.arguments:
                print(f"Arguments: {len(workflow.arguments)}")
        else:
            print("No workflow selected")


@dataclass(frozen=True)
class StartWorkflowCommand(Command):
    """Starts the selected workflow."""

    name: ClassVar[str] = "start-workflow"
    description: ClassVar[str] = "Starts the selected workflow"
    is_mutating: ClassVar[bool] = True

    async def load(self, context, app_context, current_state) -> None:
        return None

    async def emit(self, loaded_data, context, app_context, current_state) -> list[Event]:
        if not isinstance(current_state, WorkflowSelectedState):
            raise ValidationError("No workflow selected to start")
        return [
            WorkflowStartedEvent(
                user=context.workflow_context.user,
                hostname=context.workflow_context.hostname,
                execution_id=str(uuid.uuid4()),
            )
        ]

    async def effect(self, previous_state, current_state, context, app_context) -> None:
        if isinstance(current_state, WorkflowStartedState):
            workflow = current_state.selected_workflow
            print(f"Starting workflow: {workflow.name}")
            print(f"Description: {workflow.description}")
            print(f"Command: {workflow.command}")
        else:
            print("No workflow started")


@dataclass(frozen=True)
class ResolveArgumentsCommand(Command):
    """Asks for the started workflow's arguments and renders its command."""

    name: ClassVar[str] = "resolve-arguments"
    description: ClassVar[str] = "Interactively resolves workflow arguments with dynamic resolution"
    is_interactive: ClassVar[bool] = True
    is_mutating: ClassVar[bool] = True

    async def load(self, context, app_context, current_state) -> tuple[Workflow, dict[str, str]]:
        if not isinstance(current_state, WorkflowStartedState):
            raise ValidationError("No workflow started to resolve arguments for")
        workflow = current_state.selected_workflow
        try:
            resolved = resolve_workflow_arguments(workflow.arguments)
        except WorkflowError as exc:
            raise ValidationError(f"Failed to resolve arguments: {exc}") from exc
        return workflow, resolved

    def validate(self, loaded_data) -> None:
        workflow, resolved = loaded_data
        for arg in workflow.arguments:
            if arg.name not in resolved:
                raise ValidationError(f"Argument not resolved: {arg.name}")

    async def emit(self, loaded_data, context, app_context, current_state) -> list[Event]:
        if not isinstance(current_state, WorkflowStartedState):
            raise ValidationError("No workflow execution in progress")
        _, resolved = loaded_data
        return [WorkflowArgumentsResolvedEvent(arguments=dict(resolved))]

    async def effect(self, previous_state, current_state, context, app_context) -> None:
        if not isinstance(current_state, WorkflowArgumentsResolvedState):
            print("No arguments resolved")
            return
        workflow = current_state.selected_workflow
        print(f"Resolved arguments for workflow: {workflow.name}")
        for key, value in current_state.resolved_arguments.items():
            print(f"  {key} = {value}")

        rendered = render_command(workflow.command, current_state.resolved_arguments)
        print("Generated command:")
        print(rendered)

        try:
            copy_to_clipboard(rendered)
        except WorkflowError as exc:
            print(f"Failed to copy to clipboard: {exc}")
        else:
            print("Command copied to clipboard.")
        print("The command can now be pasted and executed in your terminal.")


@dataclass(frozen=True)
class CompleteWorkflowCommand(Command):
    """Marks the current workflow as completed."""

    name: ClassVar[str] = "complete-workflow"
    description: ClassVar[str] = "Marks the current workflow as completed"
    is_mutating: ClassVar[bool] = True

    async def load(self, context, app_context, current_state) -> None:
        return None

    async def emit(self, loaded_data, context, app_context, current_state) -> list[Event]:
        if not isinstance(current_state, WorkflowArgumentsResolvedState):
            raise ValidationError("No workflow ready to complete")
        return [WorkflowCompletedEvent()]

    async def effect(self, previous_state, current_state, context, app_context) -> None:
        if isinstance(current_state, WorkflowCompletedState):
            print(f"Completed workflow: {current_state.completed_workflow.name}")
        else:
            print("No workflow completed")