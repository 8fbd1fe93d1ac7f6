"""Static section catalog shared by the workflow, the prompt builder and the API.

One table holds the canonical order, display titles, weather relevance and
prompt template of every section so those facts cannot drift apart.
"""

from types import MappingProxyType

from forensic_report.models.report_models import SectionId
from forensic_report.models.report_models import SectionSpec

__all__ = [
    "FALLBACK_TEMPLATE",
    "SECTION_CATALOG",
    "TABLE_OF_CONTENTS",
    "WORKFLOW_SECTIONS",
    "get_section_spec",
    "requires_weather",
    "section_title",
]

FALLBACK_TEMPLATE = "sections/generic.jinja2"

# Ordered sections making up the compiled report.
WORKFLOW_SECTIONS: tuple[SectionSpec, ...] = (
    SectionSpec(
        id=SectionId.OPENING_LETTER,
        title="Opening Letter",
        requires_weather=False,
        template="sections/openingletter.jinja2",
    ),
    SectionSpec(
        id=SectionId.INTRODUCTION,
        title="Introduction",
        requires_weather=False,
        template="sections/introduction.jinja2",
    ),
    SectionSpec(
        id=SectionId.AUTHORIZATION,
        title="Authorization and Scope of Investigation",
        requires_weather=True,
        template="sections/authorization.jinja2",
    ),
    SectionSpec(
        id=SectionId.BACKGROUND,
        title="Background Information",
        requires_weather=True,
        template="sections/background.jinja2",
    ),
    SectionSpec(
        id=SectionId.OBSERVATIONS,
        title="Site Observations and Analysis",
        requires_weather=True,
        template="sections/observations.jinja2",
    ),
    SectionSpec(
        id=SectionId.MOISTURE,
        title="Survey",
        requires_weather=True,
        template="sections/moisture.jinja2",
    ),
    SectionSpec(
        id=SectionId.METEOROLOGIST,
        title="Meteorologist Report",
        requires_weather=True,
        template="sections/meteorologist.jinja2",
    ),
    SectionSpec(
        id=SectionId.CONCLUSIONS,
        title="Conclusions and Recommendations",
        requires_weather=True,
        template="sections/conclusions.jinja2",
    ),
    SectionSpec(
        id=SectionId.REBUTTAL,
        title="Rebuttal",
        requires_weather=True,
        template="sections/rebuttal.jinja2",
    ),
    SectionSpec(
        id=SectionId.LIMITATIONS,
        title="Limitations",
        requires_weather=True,
        template="sections/limitations.jinja2",
    ),
)

# Requestable on its own but not part of the compiled workflow.
TABLE_OF_CONTENTS = SectionSpec(
    id=SectionId.TABLE_OF_CONTENTS,
    title="Table of Contents",
    requires_weather=False,
    template="sections/tableofcontents.jinja2",
)

SECTION_CATALOG: MappingProxyType[SectionId, SectionSpec] = MappingProxyType(
    {spec.id: spec for spec in (*WORKFLOW_SECTIONS, TABLE_OF_CONTENTS)}
)

# Every SectionId must have exactly one catalog entry.
assert set(SECTION_CATALOG) == set(SectionId), "section catalog is out of sync with SectionId"


def get_section_spec(section: str | SectionId | None) -> SectionSpec | None:
    """Return the catalog entry for *section* (normalized), or None for unknown ids."""
    section_id = section if isinstance(section, SectionId) else SectionId.parse(section)
    if section_id is None:
        return None
    return SECTION_CATALOG[section_id]


def requires_weather(section: str | SectionId | None) -> bool:
    """Whether a weather lookup is attempted for *section*.

    Unknown sections are not on the exclusion list, so they do get weather data.
    """
    spec = get_section_spec(section)
    return True if spec is None else spec.requires_weather


def section_title(section: str | SectionId | None) -> str:
    """Display title of *section*; unknown ids are echoed back trimmed."""
    spec = get_section_spec(section)
    if spec is not None:
        return spec.title
    return section.value if isinstance(section, SectionId) else (section or "").strip()
