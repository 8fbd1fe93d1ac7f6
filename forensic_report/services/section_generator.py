from __future__ import annotations

import logging

from forensic_report.core.exceptions import SectionGenerationError
from forensic_report.generation_logic.static_content import requires_weather
from forensic_report.models.report_models import FactSheet
from forensic_report.models.report_models import GeneratedSection
from forensic_report.models.report_models import WeatherData
from forensic_report.services.llm import LLMError
from forensic_report.services.llm import call_llm
from forensic_report.services.prompt_builder import build_prompt
from forensic_report.services.weather import fetch_weather

logger = logging.getLogger(__name__)


class SectionGenerationService:
    """Runs one section generation: weather enrichment, prompt assembly, LLM call."""

    async def load_weather(self, request_id: str, section: str, fact_sheet: FactSheet) -> WeatherData:
        """Weather summary for *section*, or an empty one when it is not needed or not available."""
        if not requires_weather(section):
            logger.debug("[%s] Section '%s' does not use weather data", request_id, section)
            return WeatherData()
        result = await fetch_weather(fact_sheet.address, fact_sheet.date_of_loss, request_id=request_id)
        if not result.success:
            logger.warning(
                "[%s] Proceeding without weather data for '%s': %s",
                request_id,
                section,
                result.error,
            )
            return WeatherData()
        return result.data

    async def generate_section(
        self,
        request_id: str,
        section: str,
        fact_sheet: FactSheet,
        custom_instructions: str | None = None,
    ) -> GeneratedSection:
        """
        Generates the text of a single section.

        Raises SectionGenerationError when the text-generation call fails.
        """
        logger.info(
            "[%s] Generating section '%s'%s",
            request_id,
            section,
            " with custom instructions" if custom_instructions else "",
        )

        weather = await self.load_weather(request_id, section, fact_sheet)
        prompt = build_prompt(section, fact_sheet, weather, custom_instructions)
        logger.debug("[%s] Prompt for '%s' assembled, length: %d chars", request_id, section, len(prompt))

        try:
            text = await call_llm(prompt, request_id=request_id)
        except LLMError as e:
            logger.error(
                "[%s] Generation failed for section '%s': %s",
                request_id,
                section,
                str(e),
                exc_info=False,
            )
            raise SectionGenerationError(str(e)) from e

        logger.info("[%s] Generated section '%s' with %d chars", request_id, section, len(text))
        return GeneratedSection(section=text, section_name=section, weather_data=weather)
