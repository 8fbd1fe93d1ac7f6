import pytest

from forensic_report.core.exceptions import SectionGenerationError
from forensic_report.models.report_models import FactSheet
from forensic_report.models.report_models import GeneratedSection


@pytest.fixture
def fact_sheet_data():
    return {
        "investigationDate": "2024-06-12",
        "dateOfLoss": "2024-05-01",
        "claimType": ["Hail", "Wind"],
        "propertyType": "Commercial",
        "propertyAge": "15 years",
        "constructionType": "Steel frame",
        "currentUse": "Warehouse",
        "squareFootage": 24000,
        "address": "123 Main St, Dallas, TX",
        "clientName": "Acme Insurance",
        "engineerName": "Jordan Lee, P.E.",
        "engineerEmail": "jlee@example.com",
        "engineerLicense": "TX-12345",
        "engineerPhone": "555-0100",
        "propertyOwnerName": "Lone Star Storage LLC",
        "projectName": "Lone Star Warehouse",
        "affectedAreas": ["Roof", "North elevation"],
        "roofType": ["TPO"],
    }


@pytest.fixture
def fact_sheet(fact_sheet_data):
    return FactSheet.model_validate(fact_sheet_data)


# Fixture factory creating fake section generators for the workflow
@pytest.fixture
def make_generator():
    def _make_generator(fail_on: set[str] | None = None):
        calls: list[tuple[str, str | None]] = []
        failing = set(fail_on or ())

        async def _generate(section, fact_sheet, custom_instructions):
            calls.append((section, custom_instructions))
            if section in failing:
                raise SectionGenerationError(f"generation failed for {section}")
            text = f"{section} text"
            if custom_instructions:
                text += f" ({custom_instructions})"
            return GeneratedSection(section=text, section_name=section)

        _generate.calls = calls
        _generate.failing = failing
        return _generate

    return _make_generator
