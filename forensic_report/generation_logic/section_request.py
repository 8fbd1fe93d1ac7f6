"""Boundary processing of a single section-generation request.

Shared by the FastAPI route and the serverless handler so both speak the same
``{section, sectionName, weatherData}`` / ``{error, details}`` protocol.
"""

import json
import logging
from typing import Any
from uuid import uuid4

from forensic_report.models.report_models import ErrorResponse
from forensic_report.models.report_models import GenerateSectionRequest
from forensic_report.services.section_generator import SectionGenerationService

__all__ = [
    "CORS_HEADERS",
    "GENERATION_FAILED_MESSAGE",
    "parse_generate_request",
    "process_generate_request",
]

logger = logging.getLogger(__name__)

CORS_HEADERS: dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}

GENERATION_FAILED_MESSAGE = "Failed to generate report section"


def parse_generate_request(raw_body: str | bytes | None) -> GenerateSectionRequest:
    """Decode the JSON body; raises ValueError when it is missing or not a JSON object."""
    if raw_body is None:
        raise ValueError("Request body is empty")
    data = json.loads(raw_body)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("Request body must be a JSON object")
    return GenerateSectionRequest.model_validate(data)


async def process_generate_request(
    raw_body: str | bytes | None,
    service: SectionGenerationService | None = None,
    request_id: str | None = None,
) -> tuple[int, dict[str, Any]]:
    """Generate the requested section and return ``(status_code, payload)``.

    Any failure, from an unparsable body to a failed generation call, yields
    a 500 with ``{error, details}``.
    """
    request_id = request_id or str(uuid4())
    service = service or SectionGenerationService()
    try:
        payload = parse_generate_request(raw_body)
        logger.info("[%s] Section generation requested: '%s'", request_id, payload.section)
        generated = await service.generate_section(
            request_id,
            payload.section,
            payload.context,
            payload.custom_instructions,
        )
        return 200, generated.to_public()
    except Exception as e:
        logger.error("[%s] Error generating report section: %s", request_id, str(e), exc_info=True)
        error = ErrorResponse(error=GENERATION_FAILED_MESSAGE, details=str(e))
        return 500, error.model_dump()
