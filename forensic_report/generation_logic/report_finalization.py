"""Compiles accepted sections into the final report document."""

import logging
from collections.abc import Mapping

from forensic_report.core.exceptions import WorkflowStateError
from forensic_report.generation_logic.static_content import WORKFLOW_SECTIONS

__all__ = [
    "DOCUMENT_MEDIA_TYPE",
    "compile_report",
]

logger = logging.getLogger(__name__)

DOCUMENT_MEDIA_TYPE = "text/markdown"


def compile_report(accepted: Mapping[str, str], request_id: str | None = None) -> str:
    """Concatenate every accepted section in catalog order under its display title.

    Raises WorkflowStateError if any catalog section has not been accepted.
    """
    missing = [spec.title for spec in WORKFLOW_SECTIONS if spec.id.value not in accepted]
    if missing:
        raise WorkflowStateError(f"Cannot compile report, sections not accepted: {', '.join(missing)}")

    parts = [f"## {spec.title}\n\n{accepted[spec.id.value].strip()}" for spec in WORKFLOW_SECTIONS]
    document = "\n\n".join(parts) + "\n"
    logger.info("[%s] Compiled report with %d sections (%d chars)", request_id, len(parts), len(document))
    return document
