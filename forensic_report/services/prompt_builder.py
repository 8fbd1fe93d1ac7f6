"""Assembles the instruction text sent to the text-generation service for one section.

The service keeps no memory between sections, so every prompt restates the
relevant facts together with the global consistency rules.
"""

import logging
import pathlib
import re
from typing import Any

import jinja2
from pydantic import ValidationError

from forensic_report.core.exceptions import ConfigurationError
from forensic_report.generation_logic.static_content import FALLBACK_TEMPLATE
from forensic_report.generation_logic.static_content import WORKFLOW_SECTIONS
from forensic_report.generation_logic.static_content import get_section_spec
from forensic_report.generation_logic.static_content import section_title
from forensic_report.models.report_models import FactSheet
from forensic_report.models.report_models import WeatherData

logger = logging.getLogger(__name__)

PROMPT_DIR = pathlib.Path(__file__).parent / "prompt_templates"
env = jinja2.Environment(
    loader=jinja2.FileSystemLoader(PROMPT_DIR),
    trim_blocks=True,
    lstrip_blocks=True,
    autoescape=False,
)

WEATHER_NOTE_LABEL = "Weather Data Note"

# Field order of the readable weather block.
WEATHER_LABELS: tuple[tuple[str, str], ...] = (
    ("max_temp", "Max Temperature"),
    ("min_temp", "Min Temperature"),
    ("avg_temp", "Average Temperature"),
    ("max_wind_gust", "Max Wind Gust"),
    ("max_wind_time", "Max Wind Gust Time"),
    ("total_precip", "Total Precipitation"),
    ("humidity", "Average Humidity"),
    ("conditions", "Conditions"),
    ("hail_possible", "Hail Possible"),
    ("thunderstorm", "Thunderstorm"),
)

_EXTRA_BLANK_LINES = re.compile(r"\n{3,}")


def safe_string(value: Any) -> str:
    """Display string for a fact; absent or blank values become ''."""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, int | float) and not isinstance(value, bool):
        return str(value)
    return ""


def safe_join(values: Any, separator: str = ", ") -> str:
    """Join a list of facts; anything that is not a non-empty list joins to ''."""
    if not isinstance(values, list | tuple):
        return ""
    return separator.join(item for item in (safe_string(v) for v in values) if item)


def _as_fact_sheet(fact_sheet: FactSheet | dict[str, Any] | None) -> FactSheet:
    if isinstance(fact_sheet, FactSheet):
        return fact_sheet
    if isinstance(fact_sheet, dict):
        return FactSheet.model_validate(fact_sheet)
    return FactSheet()


def _as_weather(weather: WeatherData | dict[str, Any] | None) -> WeatherData:
    if isinstance(weather, WeatherData):
        return weather
    if isinstance(weather, dict):
        try:
            return WeatherData.model_validate(weather)
        except ValidationError:
            logger.warning("Ignoring malformed weather summary: %s", weather)
    return WeatherData()


def weather_narrative(weather: WeatherData | dict[str, Any] | None) -> str:
    """Narrative for the weather summary: labelled note, readable block, or ''."""
    data = _as_weather(weather)
    if data.note:
        return f"{WEATHER_NOTE_LABEL}: {data.note}"
    lines = [f"- {label}: {getattr(data, field)}" for field, label in WEATHER_LABELS if getattr(data, field)]
    return "\n".join(lines)


def _prompt_context(
    fact_sheet: FactSheet,
    weather_summary: str,
    title: str,
    section_name: str,
) -> dict[str, Any]:
    facts = {
        "investigation_date": safe_string(fact_sheet.investigation_date),
        "date_of_loss": safe_string(fact_sheet.date_of_loss),
        "claim_types": safe_join(fact_sheet.claim_type),
        "property_type": safe_string(fact_sheet.property_type),
        "property_age": safe_string(fact_sheet.property_age),
        "construction_type": safe_string(fact_sheet.construction_type),
        "current_use": safe_string(fact_sheet.current_use),
        "square_footage": safe_string(fact_sheet.square_footage),
        "address": safe_string(fact_sheet.address),
        "client_name": safe_string(fact_sheet.client_name),
        "engineer_name": safe_string(fact_sheet.engineer_name),
        "engineer_email": safe_string(fact_sheet.engineer_email),
        "engineer_license": safe_string(fact_sheet.engineer_license),
        "engineer_phone": safe_string(fact_sheet.engineer_phone),
        "property_owner_name": safe_string(fact_sheet.property_owner_name),
        "project_name": safe_string(fact_sheet.project_name),
        "affected_areas": safe_join(fact_sheet.affected_areas),
        "roof_types": safe_join(fact_sheet.roof_type),
        "notes": safe_string(fact_sheet.notes),
    }
    signature_parts = [
        facts["engineer_name"],
        f"License: {facts['engineer_license']}" if facts["engineer_license"] else "",
        f"Email: {facts['engineer_email']}" if facts["engineer_email"] else "",
        f"Phone: {facts['engineer_phone']}" if facts["engineer_phone"] else "",
    ]
    return {
        **facts,
        "has_facts": any(facts.values()),
        "signature": ", ".join(part for part in signature_parts if part),
        "weather_summary": weather_summary,
        "title": title,
        "section_name": section_name,
        "toc_titles": [spec.title for spec in WORKFLOW_SECTIONS],
    }


def _render(template_name: str, context: dict[str, Any], collapse: bool = True) -> str:
    try:
        rendered = env.get_template(template_name).render(**context)
    except jinja2.TemplateNotFound:
        logger.error("Prompt template not found: %s", template_name)
        raise ConfigurationError(f"Prompt template '{template_name}' not found.") from None
    if collapse:
        rendered = _EXTRA_BLANK_LINES.sub("\n\n", rendered)
    return rendered.strip()


def build_prompt(
    section_id: str | None,
    fact_sheet: FactSheet | dict[str, Any] | None,
    weather: WeatherData | dict[str, Any] | None = None,
    custom_instructions: str | None = "",
) -> str:
    """Build the full instruction for *section_id*.

    Deterministic for identical inputs. Missing facts are substituted with
    empty strings and never with placeholder tokens. Only a broken template
    installation raises (``ConfigurationError``).
    """
    section_name = section_id.strip() if isinstance(section_id, str) else ""
    spec = get_section_spec(section_name)
    title = section_title(section_name)
    context = _prompt_context(_as_fact_sheet(fact_sheet), weather_narrative(weather), title, section_name)

    global_block = _render("global_instructions.jinja2", context)
    section_block = _render(spec.template if spec else FALLBACK_TEMPLATE, context)
    custom = custom_instructions if isinstance(custom_instructions, str) and custom_instructions.strip() else ""

    return _render(
        "section_prompt.jinja2",
        {
            "global_block": global_block,
            "section_block": section_block,
            "custom_instructions": custom,
            "title": title,
        },
        collapse=False,
    )
