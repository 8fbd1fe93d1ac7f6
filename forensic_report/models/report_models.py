from enum import Enum
from typing import Any

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import field_validator


def _coerce_scalar(value: Any) -> str | None:
    """Turn a form value into a display string; blanks and non-scalars become None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _coerce_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str | int | float):
        value = [value]
    if not isinstance(value, list | tuple):
        return []
    return [item for item in (_coerce_scalar(v) for v in value) if item]


class FactSheet(BaseModel):
    """Operator-supplied claim and property facts driving every section."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    investigation_date: str | None = Field(default=None, alias="investigationDate")
    date_of_loss: str | None = Field(default=None, alias="dateOfLoss")
    claim_type: list[str] = Field(default_factory=list, alias="claimType")
    property_type: str | None = Field(default=None, alias="propertyType")
    property_age: str | None = Field(default=None, alias="propertyAge")
    construction_type: str | None = Field(default=None, alias="constructionType")
    current_use: str | None = Field(default=None, alias="currentUse")
    square_footage: str | None = Field(default=None, alias="squareFootage")
    address: str | None = None
    client_name: str | None = Field(default=None, alias="clientName")
    engineer_name: str | None = Field(default=None, alias="engineerName")
    engineer_email: str | None = Field(default=None, alias="engineerEmail")
    engineer_license: str | None = Field(default=None, alias="engineerLicense")
    engineer_phone: str | None = Field(default=None, alias="engineerPhone")
    property_owner_name: str | None = Field(default=None, alias="propertyOwnerName")
    project_name: str | None = Field(default=None, alias="projectName")
    affected_areas: list[str] = Field(default_factory=list, alias="affectedAreas")
    roof_type: list[str] = Field(default_factory=list, alias="roofType")
    notes: str | None = None

    @field_validator(
        "investigation_date",
        "date_of_loss",
        "property_type",
        "property_age",
        "construction_type",
        "current_use",
        "square_footage",
        "address",
        "client_name",
        "engineer_name",
        "engineer_email",
        "engineer_license",
        "engineer_phone",
        "property_owner_name",
        "project_name",
        "notes",
        mode="before",
    )
    @classmethod
    def _scalar(cls, v: Any) -> str | None:
        return _coerce_scalar(v)

    @field_validator("claim_type", "affected_areas", "roof_type", mode="before")
    @classmethod
    def _list(cls, v: Any) -> list[str]:
        return _coerce_list(v)


class WeatherData(BaseModel):
    """Normalized weather summary for the date of loss.

    Either empty, note-only (future date), or populated with the normalized
    observations. Serialize with ``exclude_none=True`` so an empty summary is ``{}``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    note: str | None = None
    max_temp: str | None = Field(default=None, alias="maxTemp")
    min_temp: str | None = Field(default=None, alias="minTemp")
    avg_temp: str | None = Field(default=None, alias="avgTemp")
    max_wind_gust: str | None = Field(default=None, alias="maxWindGust")
    max_wind_time: str | None = Field(default=None, alias="maxWindTime")
    total_precip: str | None = Field(default=None, alias="totalPrecip")
    humidity: str | None = None
    conditions: str | None = None
    hail_possible: str | None = Field(default=None, alias="hailPossible")
    thunderstorm: str | None = None

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)

    def to_public(self) -> dict[str, str]:
        return self.model_dump(by_alias=True, exclude_none=True)


class WeatherResult(BaseModel):
    """Outcome of a weather lookup; ``success=False`` means proceed without weather data."""

    success: bool = True
    data: WeatherData = Field(default_factory=WeatherData)
    error: str | None = None


class SectionId(str, Enum):
    """Closed set of section identifiers the prompt catalog knows about."""

    OPENING_LETTER = "openingletter"
    TABLE_OF_CONTENTS = "tableofcontents"
    INTRODUCTION = "introduction"
    AUTHORIZATION = "authorization"
    BACKGROUND = "background"
    OBSERVATIONS = "observations"
    MOISTURE = "moisture"
    METEOROLOGIST = "meteorologist"
    CONCLUSIONS = "conclusions"
    REBUTTAL = "rebuttal"
    LIMITATIONS = "limitations"

    @classmethod
    def parse(cls, raw: str | None) -> "SectionId | None":
        """Normalize (trim, lower-case) *raw* and map it onto a known id, or None."""
        normalized = (raw or "").strip().lower()
        try:
            return cls(normalized)
        except ValueError:
            return None


class SectionSpec(BaseModel):
    """Static catalog entry: display title, weather relevance and prompt template."""

    model_config = ConfigDict(frozen=True)

    id: SectionId
    title: str
    requires_weather: bool
    template: str


class GenerateSectionRequest(BaseModel):
    """Inbound body of the section generation endpoint."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    section: str = ""
    context: FactSheet = Field(default_factory=FactSheet)
    custom_instructions: str | None = Field(default=None, alias="customInstructions")

    @field_validator("section", mode="before")
    @classmethod
    def _section(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""

    @field_validator("context", mode="before")
    @classmethod
    def _context(cls, v: Any) -> Any:
        return v if isinstance(v, dict | FactSheet) else {}

    @field_validator("custom_instructions", mode="before")
    @classmethod
    def _custom(cls, v: Any) -> str | None:
        return v if isinstance(v, str) else None


class GeneratedSection(BaseModel):
    """Text returned for one section together with the weather data used for it."""

    model_config = ConfigDict(populate_by_name=True)

    section: str
    section_name: str = Field(alias="sectionName")
    weather_data: WeatherData = Field(default_factory=WeatherData, alias="weatherData")

    def to_public(self) -> dict[str, Any]:
        return {
            "section": self.section,
            "sectionName": self.section_name,
            "weatherData": self.weather_data.to_public(),
        }


class ErrorResponse(BaseModel):
    error: str
    details: str
