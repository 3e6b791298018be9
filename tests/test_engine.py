import pytest

from workflow.engine import AppContext, Engine, EngineContext, WorkflowContext, create_engine
from workflow.events import (
    AvailableWorkflowsListedEvent,
    LanguageSetEvent,
    WorkflowDiscoveredEvent,
    WorkflowStartedEvent,
)
from workflow.models import (
    EventError,
    ExecutionError,
    FileSystemError,
    InitialState,
    LanguageSetState,
    ValidationError,
    Workflow,
    WorkflowsListedState,
)
from workflow.storage import EventStoreType


class RecordingCommand:
    def __init__(self, fail_at=None):
        self.fail_at = fail_at
        self.calls = []
        self.effect_args = None

    async def load(self, context, app_context, current_state):
        self.calls.append("load")
        if self.fail_at == "load":
            raise FileSystemError("disk gone")
        return {"language": "es"}

    def validate(self, loaded_data):
        self.calls.append("validate")
        if self.fail_at == "validate":
            raise ValidationError("bad data")

    async def emit(self, loaded_data, context, app_context, current_state):
        self.calls.append("emit")
        if self.fail_at == "emit":
            raise EventError("cannot emit")
        return [LanguageSetEvent(language=loaded_data["language"])]

    async def effect(self, previous_state, current_state, context, app_context):
        self.calls.append("effect")
        self.effect_args = (previous_state, current_state, context, app_context)
        if self.fail_at == "effect":
            raise FileSystemError("effect broke")


class AsyncRecorder:
    def __init__(self):
        self.commands = []

    async def __call__(self, command):
        self.commands.append(command)


@pytest.fixture
def app_context(tmp_path):
    return AppContext(workflows_dir=tmp_path)


@pytest.fixture
def engine(app_context):
    return Engine(app_context)


@pytest.fixture
def context():
    return EngineContext(WorkflowContext.with_session_id("s1"))


@pytest.mark.asyncio
async def test_process_command_runs_phases_in_order(engine, context):
    command = RecordingCommand()
    events = await engine.process_command(command, context, InitialState())
    assert command.calls == ["load", "validate", "emit"]
    assert [e.language for e in events] == ["es"]


@pytest.mark.asyncio
async def test_load_failure_becomes_execution_error(engine, context):
    command = RecordingCommand(fail_at="load")
    with pytest.raises(ExecutionError) as info:
        await engine.process_command(command, context, InitialState())
    assert "disk gone" in str(info.value)
    assert isinstance(info.value.__cause__, FileSystemError)
    assert command.calls == ["load"]


@pytest.mark.asyncio
async def test_validate_failure_becomes_validation_error(engine, context):
    command = RecordingCommand(fail_at="validate")
    with pytest.raises(ValidationError) as info:
        await engine.process_command(command, context, InitialState())
    assert "bad data" in str(info.value)
    assert "emit" not in command.calls


@pytest.mark.asyncio
async def test_emit_failure_becomes_event_error(engine, context):
    with pytest.raises(EventError) as info:
        await engine.process_command(RecordingCommand(fail_at="emit"), context, InitialState())
    assert "cannot emit" in str(info.value)


def test_handle_events_folds_in_order(engine):
    workflow = Workflow(name="deploy", command="echo hi")
    events = [
        WorkflowDiscoveredEvent(workflow=workflow, file_path="deploy.yaml"),
        AvailableWorkflowsListedEvent(workflows=("deploy",)),
    ]
    state = engine.handle_events(InitialState(), events)
    assert state == WorkflowsListedState(discovered_workflows=(workflow,))


def test_handle_events_without_events_keeps_state(engine):
    state = InitialState()
    assert engine.handle_events(state, []) is state


def test_handle_events_invalid_transition_raises(engine):
    event = WorkflowStartedEvent(user="u", hostname="h", execution_id="e")
    with pytest.raises(EventError):
        engine.handle_events(InitialState(), [event])


@pytest.mark.asyncio
async def test_effect_receives_states_and_contexts(engine, context, app_context):
    command = RecordingCommand()
    previous = InitialState()
    event = LanguageSetEvent(language="en")
    current = engine.handle_events(previous, [event])
    await engine.effect(command, previous, current, context)
    assert command.effect_args == (previous, current, context, app_context)
    assert isinstance(current, LanguageSetState)


@pytest.mark.asyncio
async def test_effect_failure_becomes_execution_error(engine, context):
    with pytest.raises(ExecutionError) as info:
        await engine.effect(RecordingCommand(fail_at="effect"), InitialState(), InitialState(), context)
    assert "effect broke" in str(info.value)


@pytest.mark.asyncio
async def test_schedule_command_with_sync_scheduler():
    scheduled = []
    ctx = EngineContext(WorkflowContext(), scheduler=scheduled.append)
    await ctx.schedule_command("follow-up")
    assert scheduled == ["follow-up"]


@pytest.mark.asyncio
async def test_schedule_command_awaits_async_scheduler():
    recorder = AsyncRecorder()
    ctx = EngineContext(WorkflowContext(), scheduler=recorder)
    await ctx.schedule_command("next")
    await ctx.schedule_command("after")
    assert recorder.commands == ["next", "after"]


@pytest.mark.asyncio
async def test_schedule_command_without_scheduler_raises():
    with pytest.raises(ExecutionError):
        await EngineContext(WorkflowContext()).schedule_command("next")


def test_workflow_context_with_session_id():
    ctx = WorkflowContext.with_session_id("abc")
    assert ctx.session_id == "abc"
    assert ctx.user == WorkflowContext().user
    assert WorkflowContext().session_id != WorkflowContext().session_id


def test_create_engine_uses_app_context(app_context):
    engine = create_engine(EventStoreType.IN_MEMORY, app_context)
    assert engine.app_context is app_context
    assert (engine.name, engine.version) == ("EngineV1", "1.0.0")