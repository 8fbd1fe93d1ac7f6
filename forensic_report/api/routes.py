import logging
from collections.abc import Callable
from functools import wraps
from typing import Any
from uuid import uuid4

from fastapi import APIRouter
from fastapi import HTTPException
from fastapi import Request
from fastapi import Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pydantic import Field as PydanticField

from forensic_report.core.exceptions import WorkflowBusyError
from forensic_report.core.exceptions import WorkflowStateError
from forensic_report.generation_logic.section_request import CORS_HEADERS
from forensic_report.generation_logic.section_request import process_generate_request
from forensic_report.generation_logic.static_content import WORKFLOW_SECTIONS
from forensic_report.generation_logic.workflow import ReportWorkflow
from forensic_report.generation_logic.workflow import SessionStore
from forensic_report.generation_logic.workflow import WorkflowState
from forensic_report.models.report_models import FactSheet
from forensic_report.services.section_generator import SectionGenerationService

# Configure module logger
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

# Answers with its own fixed CORS headers for any origin.
GENERATE_REPORT_PATH = "/generate-report"

section_service = SectionGenerationService()
session_store = SessionStore()


# --- Error Handling Decorator for workflow endpoints ---
def handle_workflow_errors(func: Callable) -> Callable:
    """Decorator mapping workflow errors onto HTTP status codes."""

    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> dict[str, Any]:
        try:
            return await func(*args, **kwargs)
        except WorkflowBusyError as e:
            logger.warning("Rejected action on busy session: %s", str(e))
            raise HTTPException(status_code=409, detail=str(e)) from e
        except WorkflowStateError as e:
            logger.warning("Invalid workflow transition: %s", str(e))
            raise HTTPException(status_code=409, detail=str(e)) from e

    return wrapper


def _get_workflow(session_id: str) -> ReportWorkflow:
    workflow = session_store.get(session_id)
    if workflow is None:
        raise HTTPException(status_code=404, detail=f"Unknown report session: {session_id}")
    return workflow


# ---------------------------------------------------------------------------
# Single-section generation
# ---------------------------------------------------------------------------


@router.options(GENERATE_REPORT_PATH)
async def generate_report_preflight() -> Response:
    """Answer CORS preflight requests with permissive headers."""
    return Response(status_code=200, headers=CORS_HEADERS)


@router.post(GENERATE_REPORT_PATH)
async def generate_report(request: Request) -> JSONResponse:
    """
    Generates one report section from `{section, context, customInstructions}`.

    The body is read by hand so that malformed JSON is reported with the same
    `{error, details}` payload (status 500) as a failed generation.
    """
    request_id = str(uuid4())
    raw_body = await request.body()
    status_code, payload = await process_generate_request(raw_body, service=section_service, request_id=request_id)
    return JSONResponse(payload, status_code=status_code, headers=CORS_HEADERS)


@router.get("/sections")
async def list_sections() -> list[dict[str, Any]]:
    """Section catalog in report order."""
    return [{"id": spec.id.value, "title": spec.title, "requiresWeather": spec.requires_weather} for spec in WORKFLOW_SECTIONS]


# ---------------------------------------------------------------------------
# Operator workflow
# ---------------------------------------------------------------------------


class SessionCreatePayload(BaseModel):
    context: FactSheet = PydanticField(default_factory=FactSheet, description="Fact sheet collected from the operator.")


class RegeneratePayload(BaseModel):
    custom_instructions: str | None = PydanticField(default=None, alias="customInstructions")


@router.post("/sessions", status_code=201)
@handle_workflow_errors
async def create_session(payload: SessionCreatePayload) -> dict[str, Any]:
    """Creates a report session and generates its first section."""
    workflow = session_store.create(payload.context)
    await workflow.start()
    return workflow.to_public()


@router.get("/sessions/{session_id}")
async def get_session(session_id: str) -> dict[str, Any]:
    return _get_workflow(session_id).to_public()


@router.post("/sessions/{session_id}/start")
@handle_workflow_errors
async def retry_start(session_id: str) -> dict[str, Any]:
    """Retries generating the first section after a failed start."""
    workflow = _get_workflow(session_id)
    await workflow.start()
    return workflow.to_public()


@router.post("/sessions/{session_id}/regenerate")
@handle_workflow_errors
async def regenerate_section(session_id: str, payload: RegeneratePayload) -> dict[str, Any]:
    """Regenerates the active section with optional operator feedback."""
    workflow = _get_workflow(session_id)
    await workflow.regenerate(payload.custom_instructions)
    return workflow.to_public()


@router.post("/sessions/{session_id}/accept")
@handle_workflow_errors
async def accept_section(session_id: str) -> dict[str, Any]:
    """Accepts the active section and generates the next one, or compiles the report."""
    workflow = _get_workflow(session_id)
    await workflow.accept()
    return workflow.to_public()


@router.get("/sessions/{session_id}/document")
async def get_document(session_id: str) -> dict[str, Any]:
    workflow = _get_workflow(session_id)
    if workflow.session.state is not WorkflowState.COMPLETE:
        raise HTTPException(status_code=409, detail="The report has not been compiled yet.")
    return {"sessionId": session_id, "document": workflow.session.document}


@router.delete("/sessions/{session_id}", status_code=204)
async def discard_session(session_id: str) -> Response:
    _get_workflow(session_id)
    session_store.discard(session_id)
    return Response(status_code=204)
