# This file serves as the entry point for a serverless function.
# It imports the actual generation logic from the application package.
import asyncio
import json
import logging

from forensic_report.generation_logic.section_request import CORS_HEADERS
from forensic_report.generation_logic.section_request import process_generate_request

logger = logging.getLogger(__name__)


def handler(event, context):
    """Generate one report section from a function-style ``{httpMethod, body}`` event."""
    event = event or {}
    if event.get("httpMethod") == "OPTIONS":
        return {"statusCode": 200, "headers": dict(CORS_HEADERS), "body": ""}

    logger.info("Generate-report function invoked.")
    status_code, payload = asyncio.run(process_generate_request(event.get("body")))
    logger.info("Generate-report function finished with status %d.", status_code)
    return {"statusCode": status_code, "headers": dict(CORS_HEADERS), "body": json.dumps(payload)}
