# workflow

`workflow` is a library for guided, event-sourced sessions around YAML files
that describe shell commands. A workflow names a command template and the
arguments it needs. The library finds workflow files in a directory and lets
the user pick one. It then resolves each argument, renders the final command
and records every step as an event.

## Modules

- `workflow.models`: the domain model.
  - `Workflow` and `WorkflowArgument` are read from YAML with
    `Workflow.from_yaml` or built from a mapping with `from_dict`.
  - An `ArgumentType` is `TEXT`, `NUMBER`, `BOOLEAN` or `ENUM`. The value in
    the file may be in any letter case.
  - `Language` covers English (`en`) and Spanish (`es`). `Language.parse`
    accepts a code or a name.
  - The session states run from `InitialState` through
    `WorkflowsDiscoveredState`, `WorkflowsListedState`,
    `WorkflowSelectedState`, `WorkflowStartedState`,
    `WorkflowArgumentsResolvedState` and `WorkflowCompletedState`. The sync and
    language states are `SyncRequestedState`, `WorkflowsSyncedState`,
    `LanguageSetState`, `CurrentLanguageRetrievedState` and
    `AvailableLanguagesListedState`.
- `workflow.events`: an `Event` subclass for each step.
  - `Event.apply(state)` returns the next state, or `None` when the transition
    is not allowed. For example, a workflow can only be selected if it is among
    the discovered ones.
  - `to_dict` and `to_json` serialise an event. Timestamps are in UTC.
- `workflow.commands`: commands that run in four phases, `load`, `validate`,
  `emit` and `effect`.
  - The commands are `DiscoverWorkflowsCommand`, `ListWorkflowsCommand`,
    `InteractivelySelectWorkflowCommand`, `StartWorkflowCommand`,
    `ResolveArgumentsCommand` and `CompleteWorkflowCommand`.
  - The helpers are `select_option`, `ask_text`, `resolve_workflow_arguments`,
    `resolve_argument`, `render_command` (Jinja2 with strict undefined
    variables) and `copy_to_clipboard`.
- `workflow.engine`: `Engine` runs a command's phases. `handle_events` folds
  events into a state. `AppContext`, `WorkflowContext` and `EngineContext`
  carry settings and session details. `EngineContext.schedule_command` passes
  a follow-up command to whatever scheduler is attached.
- `workflow.journal`: `InMemoryJournal` holds the events of each session.
  - `persist_events` stores events.
  - `replay_events` reads them back.
  - `highest_sequence_nr` gives the number of stored events.
  - `delete_events` drops events from the start.
  - `create_journal(JournalType.IN_MEMORY)` returns a new journal.
- `workflow.storage`: `InMemoryEventStore` keeps the events of each session as
  `AggregateEvent` records with `EventMetadata`. It rebuilds and caches the
  current state from them.
- `workflow.git`: `GitClient` runs the `git` executable. `clone_repository`
  replaces a directory's contents with a repository's files, leaving out
  hidden entries such as `.git`, and returns the HEAD commit id.
  `get_commit_info` returns a `CommitInfo`.

## A workflow file

```yaml
name: deploy-service
description: Deploy a service to an environment
command: "deploy --env {{ environment }} --service {{ service }}"
arguments:
  - name: environment
    arg_type: Enum
    enum_variants: [staging, production]
  - name: service
    arg_type: Text
    default_value: api
```

An enum argument can take its choices from a shell command instead of a list.
Set `enum_command` and `enum_name` for this. The command runs with `sh -c` and
each non-empty output line becomes a choice. If `dynamic_resolution` names an
earlier argument, `{{name}}` in the command is replaced by that argument's
value.

## Running commands through the engine

```python
import asyncio
from pathlib import Path

from workflow.commands import DiscoverWorkflowsCommand, ListWorkflowsCommand
from workflow.engine import AppContext, Engine, EngineContext, WorkflowContext
from workflow.journal import InMemoryJournal
from workflow.models import InitialState


async def main():
    engine = Engine(AppContext(workflows_dir=Path("workflows")))
    context = EngineContext(WorkflowContext())
    journal = InMemoryJournal()
    state = InitialState()
    for command in (DiscoverWorkflowsCommand(), ListWorkflowsCommand()):
        events = await engine.process_command(command, context, state)
        await journal.persist_events(context.workflow_context.session_id, events)
        previous, state = state, engine.handle_events(state, events)
        await engine.effect(command, previous, state, context)


asyncio.run(main())
```

Selecting a workflow and resolving its arguments prompt on standard input. A
choice can be given by its number or by its text.

## Errors

Failures raise subclasses of `WorkflowError`:

- `ValidationError`
- `ExecutionError`
- `EventError`
- `FileSystemError`
- `SerializationError`
- `NetworkError`
- `ConfigurationError`

`Engine` wraps errors from each phase with the name of that phase. For example,
an error raised while loading becomes an `ExecutionError` that starts with
"Load phase failed". One `except WorkflowError` handles them all.

## What this package does not do

- It installs no command-line program. You drive sessions from your own code,
  as shown above.
- It does not supervise sessions or route commands between them. Each caller
  keeps its own state and journal.
- It has no commands for syncing workflows from a repository or for setting
  and reporting the language. `GitClient` can clone, but nothing here records
  the result as events.
- Storage is in memory only. Events and states are lost when the process ends.