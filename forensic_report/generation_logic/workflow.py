"""Sequential section workflow: generate, review, regenerate or accept, compile.

Transitions are plain async functions taking a ``ReportSession`` and returning
a new one; the input session is never mutated. Generation failures do not
raise: the returned session carries ``last_error`` and the state the operator
should see. Transitions that are not valid in the current state raise
``WorkflowStateError``.
"""

import logging
import time
from collections.abc import Awaitable
from collections.abc import Callable
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

from forensic_report.core.config import settings
from forensic_report.core.exceptions import SectionGenerationError
from forensic_report.core.exceptions import WorkflowBusyError
from forensic_report.core.exceptions import WorkflowStateError
from forensic_report.generation_logic.report_finalization import compile_report
from forensic_report.generation_logic.static_content import WORKFLOW_SECTIONS
from forensic_report.models.report_models import FactSheet
from forensic_report.models.report_models import GeneratedSection
from forensic_report.models.report_models import SectionSpec
from forensic_report.models.report_models import WeatherData
from forensic_report.services.section_generator import SectionGenerationService

__all__ = [
    "GenerateFn",
    "ReportSession",
    "ReportWorkflow",
    "SessionStore",
    "WorkflowState",
    "accept",
    "regenerate",
    "service_generator",
    "start",
]

logger = logging.getLogger(__name__)

# (section id, fact sheet, custom instructions) -> generated section
GenerateFn = Callable[[str, FactSheet, str | None], Awaitable[GeneratedSection]]


class WorkflowState(str, Enum):
    IDLE = "idle"
    REVIEWING = "reviewing"
    COMPLETE = "complete"


class ReportSession(BaseModel):
    """Everything one operator session knows about the report being written."""

    model_config = ConfigDict(frozen=True)

    fact_sheet: FactSheet = Field(default_factory=FactSheet)
    state: WorkflowState = WorkflowState.IDLE
    cursor: int = 0
    draft: str | None = None
    draft_weather: WeatherData = Field(default_factory=WeatherData)
    accepted: dict[str, str] = Field(default_factory=dict)
    last_error: str | None = None
    document: str | None = None

    @property
    def active_section(self) -> SectionSpec | None:
        if self.state is WorkflowState.COMPLETE or self.cursor >= len(WORKFLOW_SECTIONS):
            return None
        return WORKFLOW_SECTIONS[self.cursor]


def _require(session: ReportSession, expected: WorkflowState, action: str) -> None:
    if session.state is WorkflowState.COMPLETE:
        raise WorkflowStateError(f"Cannot {action}: the report is already compiled, start a new session to revise it.")
    if session.state is not expected:
        raise WorkflowStateError(f"Cannot {action} while the workflow is {session.state.value}.")


async def start(session: ReportSession, generate: GenerateFn) -> ReportSession:
    """Generate the first section. On failure the session stays idle for a retry."""
    _require(session, WorkflowState.IDLE, "start")
    spec = WORKFLOW_SECTIONS[0]
    try:
        generated = await generate(spec.id.value, session.fact_sheet, None)
    except SectionGenerationError as e:
        logger.error("Could not generate '%s' to start the report: %s", spec.title, str(e))
        return session.model_copy(update={"cursor": 0, "last_error": str(e)})

    logger.info("Workflow started, reviewing '%s'", spec.title)
    return session.model_copy(
        update={
            "state": WorkflowState.REVIEWING,
            "cursor": 0,
            "draft": generated.section,
            "draft_weather": generated.weather_data,
            "last_error": None,
        }
    )


async def regenerate(session: ReportSession, feedback: str | None, generate: GenerateFn) -> ReportSession:
    """Replace the draft of the active section, using *feedback* as extra instructions.

    A failed regeneration leaves the previous draft untouched.
    """
    _require(session, WorkflowState.REVIEWING, "regenerate")
    spec = WORKFLOW_SECTIONS[session.cursor]
    try:
        generated = await generate(spec.id.value, session.fact_sheet, feedback)
    except SectionGenerationError as e:
        logger.error("Regeneration of '%s' failed, keeping previous draft: %s", spec.title, str(e))
        return session.model_copy(update={"last_error": str(e)})

    logger.info("Regenerated '%s'", spec.title)
    return session.model_copy(
        update={
            "draft": generated.section,
            "draft_weather": generated.weather_data,
            "last_error": None,
        }
    )


async def accept(session: ReportSession, generate: GenerateFn) -> ReportSession:
    """Commit the active draft and move on to the next section.

    After the last section the report is compiled and the session completes.
    If the next section cannot be generated the cursor stays on the accepted
    section so the operator can retry advancing.
    """
    _require(session, WorkflowState.REVIEWING, "accept")
    if session.draft is None:
        raise WorkflowStateError("Cannot accept: the active section has no content.")

    current = WORKFLOW_SECTIONS[session.cursor]
    accepted = {**session.accepted, current.id.value: session.draft}
    next_index = session.cursor + 1
    logger.info("Accepted '%s' (%d/%d)", current.title, next_index, len(WORKFLOW_SECTIONS))

    if next_index >= len(WORKFLOW_SECTIONS):
        return session.model_copy(
            update={
                "state": WorkflowState.COMPLETE,
                "cursor": next_index,
                "accepted": accepted,
                "draft": None,
                "draft_weather": WeatherData(),
                "last_error": None,
                "document": compile_report(accepted),
            }
        )

    upcoming = WORKFLOW_SECTIONS[next_index]
    try:
        generated = await generate(upcoming.id.value, session.fact_sheet, None)
    except SectionGenerationError as e:
        logger.error("Could not generate '%s', staying on '%s': %s", upcoming.title, current.title, str(e))
        return session.model_copy(update={"accepted": accepted, "last_error": str(e)})

    return session.model_copy(
        update={
            "cursor": next_index,
            "accepted": accepted,
            "draft": generated.section,
            "draft_weather": generated.weather_data,
            "last_error": None,
        }
    )


def service_generator(service: SectionGenerationService | None = None) -> GenerateFn:
    """Adapt ``SectionGenerationService`` to the workflow's generate callable."""
    service = service or SectionGenerationService()

    async def _generate(section: str, fact_sheet: FactSheet, custom_instructions: str | None) -> GeneratedSection:
        return await service.generate_section(str(uuid4()), section, fact_sheet, custom_instructions)

    return _generate


class ReportWorkflow:
    """Operator-facing controller owning one session.

    Only one action may be outstanding at a time; a second one is rejected
    with ``WorkflowBusyError`` until the first completes.
    """

    def __init__(self, fact_sheet: FactSheet, generate: GenerateFn | None = None, session_id: str | None = None):
        self.session_id = session_id or str(uuid4())
        self.session = ReportSession(fact_sheet=fact_sheet)
        self._generate = generate or service_generator()
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    async def _run(self, action: str, transition: Callable[..., Awaitable[ReportSession]], *args: Any) -> ReportSession:
        if self._busy:
            raise WorkflowBusyError("Another action is still in progress for this report; wait for it to finish.")
        self._busy = True
        logger.debug("[%s] Running '%s'", self.session_id, action)
        try:
            self.session = await transition(self.session, *args, self._generate)
        finally:
            self._busy = False
        return self.session

    async def start(self) -> ReportSession:
        return await self._run("start", start)

    async def regenerate(self, feedback: str | None = None) -> ReportSession:
        return await self._run("regenerate", regenerate, feedback)

    async def accept(self) -> ReportSession:
        return await self._run("accept", accept)

    def to_public(self) -> dict[str, Any]:
        session = self.session
        active = session.active_section
        return {
            "sessionId": self.session_id,
            "state": session.state.value,
            "cursor": session.cursor,
            "activeSection": {"id": active.id.value, "title": active.title} if active else None,
            "draft": session.draft,
            "weatherData": session.draft_weather.to_public(),
            "accepted": dict(session.accepted),
            "busy": self._busy,
            "lastError": session.last_error,
            "document": session.document,
        }


class SessionStore:
    """In-process registry of workflows; nothing survives a restart.

    Sessions untouched for longer than ``ttl`` seconds are evicted whenever the
    store is used. A ``ttl`` of 0 disables eviction.
    """

    def __init__(
        self,
        generate: GenerateFn | None = None,
        ttl: int | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._generate = generate
        self._ttl = settings.session_ttl if ttl is None else ttl
        self._clock = clock
        self._workflows: dict[str, ReportWorkflow] = {}
        self._last_used: dict[str, float] = {}

    def create(self, fact_sheet: FactSheet) -> ReportWorkflow:
        self.prune()
        workflow = ReportWorkflow(fact_sheet, generate=self._generate)
        self._workflows[workflow.session_id] = workflow
        self._last_used[workflow.session_id] = self._clock()
        logger.info("[%s] Report session created", workflow.session_id)
        return workflow

    def get(self, session_id: str) -> ReportWorkflow | None:
        self.prune()
        workflow = self._workflows.get(session_id)
        if workflow is not None:
            self._last_used[session_id] = self._clock()
        return workflow

    def discard(self, session_id: str) -> None:
        self._workflows.pop(session_id, None)
        self._last_used.pop(session_id, None)

    def prune(self) -> int:
        """Evict expired sessions, skipping busy ones. Returns how many were removed."""
        if self._ttl <= 0:
            return 0
        now = self._clock()
        expired = [
            session_id
            for session_id, last_used in self._last_used.items()
            if now - last_used > self._ttl and not self._workflows[session_id].busy
        ]
        for session_id in expired:
            self.discard(session_id)
            logger.info("[%s] Report session expired", session_id)
        return len(expired)

    def __len__(self) -> int:
        return len(self._workflows)
