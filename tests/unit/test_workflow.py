import asyncio

import pytest

from forensic_report.core.exceptions import WorkflowBusyError
from forensic_report.core.exceptions import WorkflowStateError
from forensic_report.generation_logic.static_content import WORKFLOW_SECTIONS
from forensic_report.generation_logic.workflow import ReportSession
from forensic_report.generation_logic.workflow import ReportWorkflow
from forensic_report.generation_logic.workflow import SessionStore
from forensic_report.generation_logic.workflow import WorkflowState
from forensic_report.generation_logic.workflow import accept
from forensic_report.generation_logic.workflow import regenerate
from forensic_report.generation_logic.workflow import start
from forensic_report.models.report_models import GeneratedSection

SECTION_IDS = [spec.id.value for spec in WORKFLOW_SECTIONS]


async def _advance_to(section_id, generate, fact_sheet):
    session = await start(ReportSession(fact_sheet=fact_sheet), generate)
    while WORKFLOW_SECTIONS[session.cursor].id.value != section_id:
        session = await accept(session, generate)
    return session


@pytest.mark.asyncio
async def test_start_generates_first_section(make_generator, fact_sheet):
    generate = make_generator()

    session = await start(ReportSession(fact_sheet=fact_sheet), generate)

    assert session.state is WorkflowState.REVIEWING
    assert session.cursor == 0
    assert session.draft == "openingletter text"
    assert session.active_section.id.value == "openingletter"
    assert session.accepted == {}
    assert generate.calls == [("openingletter", None)]


@pytest.mark.asyncio
async def test_failed_start_stays_idle_and_can_be_retried(make_generator, fact_sheet):
    generate = make_generator(fail_on={"openingletter"})

    session = await start(ReportSession(fact_sheet=fact_sheet), generate)
    assert session.state is WorkflowState.IDLE
    assert session.draft is None
    assert "openingletter" in session.last_error

    generate.failing.clear()
    session = await start(session, generate)
    assert session.state is WorkflowState.REVIEWING
    assert session.last_error is None


@pytest.mark.asyncio
async def test_start_twice_is_rejected(make_generator, fact_sheet):
    generate = make_generator()
    session = await start(ReportSession(fact_sheet=fact_sheet), generate)

    with pytest.raises(WorkflowStateError):
        await start(session, generate)


@pytest.mark.asyncio
async def test_actions_require_reviewing_state(make_generator, fact_sheet):
    generate = make_generator()
    idle = ReportSession(fact_sheet=fact_sheet)

    with pytest.raises(WorkflowStateError):
        await accept(idle, generate)
    with pytest.raises(WorkflowStateError):
        await regenerate(idle, "feedback", generate)
    assert generate.calls == []


@pytest.mark.asyncio
async def test_regenerate_replaces_draft_with_feedback(make_generator, fact_sheet):
    generate = make_generator()
    session = await start(ReportSession(fact_sheet=fact_sheet), generate)

    updated = await regenerate(session, "shorter please", generate)

    assert updated.draft == "openingletter text (shorter please)"
    assert updated.cursor == 0
    assert updated.state is WorkflowState.REVIEWING
    assert generate.calls[-1] == ("openingletter", "shorter please")
    # Transitions never mutate their input
    assert session.draft == "openingletter text"


@pytest.mark.asyncio
async def test_failed_regeneration_keeps_previous_draft(make_generator, fact_sheet):
    generate = make_generator()
    session = await start(ReportSession(fact_sheet=fact_sheet), generate)
    generate.failing.add("openingletter")

    updated = await regenerate(session, "try again", generate)

    assert updated.draft == session.draft
    assert updated.cursor == session.cursor
    assert updated.state is WorkflowState.REVIEWING
    assert updated.last_error is not None


@pytest.mark.asyncio
async def test_accept_commits_and_advances(make_generator, fact_sheet):
    generate = make_generator()
    session = await start(ReportSession(fact_sheet=fact_sheet), generate)

    session = await accept(session, generate)

    assert session.cursor == 1
    assert session.accepted == {"openingletter": "openingletter text"}
    assert session.draft == "introduction text"
    assert generate.calls[-1] == ("introduction", None)


@pytest.mark.asyncio
async def test_failed_generation_after_accept_reverts_cursor(make_generator, fact_sheet):
    generate = make_generator(fail_on={"background"})
    session = await _advance_to("authorization", generate, fact_sheet)
    authorization_index = SECTION_IDS.index("authorization")
    assert session.cursor == authorization_index

    session = await accept(session, generate)

    assert session.cursor == authorization_index
    assert session.state is WorkflowState.REVIEWING
    assert session.accepted["authorization"] == "authorization text"
    assert session.draft == "authorization text"
    assert "background" in session.last_error

    # Operator retries advancing once the service recovers
    generate.failing.clear()
    session = await accept(session, generate)
    assert session.cursor == authorization_index + 1
    assert session.draft == "background text"
    assert list(session.accepted) == SECTION_IDS[: authorization_index + 1]


@pytest.mark.asyncio
async def test_accepting_every_section_compiles_document(make_generator, fact_sheet):
    generate = make_generator()
    session = await start(ReportSession(fact_sheet=fact_sheet), generate)
    for _ in WORKFLOW_SECTIONS:
        session = await accept(session, generate)

    assert session.state is WorkflowState.COMPLETE
    assert session.cursor == len(WORKFLOW_SECTIONS)
    assert session.active_section is None
    assert list(session.accepted) == SECTION_IDS

    document = session.document
    positions = [document.index(f"## {spec.title}\n\n{spec.id.value} text") for spec in WORKFLOW_SECTIONS]
    assert positions == sorted(positions)
    for spec in WORKFLOW_SECTIONS:
        assert document.count(f"## {spec.title}\n") == 1
    # The last accept compiles without generating anything new
    assert len(generate.calls) == len(WORKFLOW_SECTIONS)


@pytest.mark.asyncio
async def test_complete_session_rejects_changes(make_generator, fact_sheet):
    generate = make_generator()
    session = await start(ReportSession(fact_sheet=fact_sheet), generate)
    for _ in WORKFLOW_SECTIONS:
        session = await accept(session, generate)

    with pytest.raises(WorkflowStateError, match="start a new session"):
        await accept(session, generate)
    with pytest.raises(WorkflowStateError, match="start a new session"):
        await regenerate(session, "one more change", generate)


@pytest.mark.asyncio
async def test_report_workflow_rejects_concurrent_actions(fact_sheet):
    release = asyncio.Event()

    async def slow_generate(section, fact_sheet, custom_instructions):
        await release.wait()
        return GeneratedSection(section=f"{section} text", section_name=section)

    workflow = ReportWorkflow(fact_sheet, generate=slow_generate)
    pending = asyncio.create_task(workflow.start())
    await asyncio.sleep(0)

    assert workflow.busy is True
    assert workflow.to_public()["busy"] is True
    with pytest.raises(WorkflowBusyError):
        await workflow.accept()

    release.set()
    session = await pending
    assert workflow.busy is False
    assert session.state is WorkflowState.REVIEWING


@pytest.mark.asyncio
async def test_report_workflow_releases_busy_flag_on_error(make_generator, fact_sheet):
    workflow = ReportWorkflow(fact_sheet, generate=make_generator())

    with pytest.raises(WorkflowStateError):
        await workflow.accept()
    assert workflow.busy is False


@pytest.mark.asyncio
async def test_report_workflow_public_view(make_generator, fact_sheet):
    workflow = ReportWorkflow(fact_sheet, generate=make_generator())
    await workflow.start()
    await workflow.regenerate("add detail")

    view = workflow.to_public()
    assert view["sessionId"] == workflow.session_id
    assert view["state"] == "reviewing"
    assert view["activeSection"] == {"id": "openingletter", "title": "Opening Letter"}
    assert view["draft"] == "openingletter text (add detail)"
    assert view["accepted"] == {}
    assert view["lastError"] is None
    assert view["document"] is None


def test_session_store_create_get_discard(make_generator, fact_sheet):
    store = SessionStore(generate=make_generator())
    workflow = store.create(fact_sheet)

    assert store.get(workflow.session_id) is workflow
    store.discard(workflow.session_id)
    assert store.get(workflow.session_id) is None


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_session_store_evicts_idle_sessions(make_generator, fact_sheet):
    clock = FakeClock()
    store = SessionStore(generate=make_generator(), ttl=60, clock=clock)
    stale = store.create(fact_sheet)

    clock.now += 30
    fresh = store.create(fact_sheet)
    clock.now += 45

    assert store.get(stale.session_id) is None
    assert store.get(fresh.session_id) is fresh
    assert len(store) == 1


def test_session_store_get_keeps_session_alive(make_generator, fact_sheet):
    clock = FakeClock()
    store = SessionStore(generate=make_generator(), ttl=60, clock=clock)
    workflow = store.create(fact_sheet)

    for _ in range(3):
        clock.now += 50
        assert store.get(workflow.session_id) is workflow


def test_session_store_keeps_busy_sessions(make_generator, fact_sheet, monkeypatch):
    clock = FakeClock()
    store = SessionStore(generate=make_generator(), ttl=60, clock=clock)
    workflow = store.create(fact_sheet)
    monkeypatch.setattr(workflow, "_busy", True)

    clock.now += 600

    assert store.prune() == 0
    assert len(store) == 1


def test_session_store_zero_ttl_never_evicts(make_generator, fact_sheet):
    clock = FakeClock()
    store = SessionStore(generate=make_generator(), ttl=0, clock=clock)
    workflow = store.create(fact_sheet)

    clock.now += 10**6

    assert store.get(workflow.session_id) is workflow
