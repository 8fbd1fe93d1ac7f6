"""Historical weather enrichment for the date of loss.

The lookup is advisory: every failure is reported through ``WeatherResult``
and never raised, so section generation can always proceed without it.
"""

import logging
from datetime import date
from datetime import datetime
from datetime import timezone
from typing import Any
from uuid import uuid4

import httpx

from forensic_report.core.config import settings
from forensic_report.models.report_models import WeatherData
from forensic_report.models.report_models import WeatherResult

logger = logging.getLogger(__name__)

# Formats accepted from the intake form besides ISO 8601.
_FALLBACK_DATE_FORMATS = ("%m/%d/%Y", "%m-%d-%Y", "%B %d, %Y", "%b %d, %Y")


def _utc_date(value: datetime) -> date:
    """Calendar date of *value*; offset-aware timestamps are read in UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.date()


def parse_loss_date(value: Any) -> date | None:
    """Parse a form date into a calendar date, or None when absent or unparsable."""
    if isinstance(value, datetime):
        return _utc_date(value)
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return _utc_date(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        pass
    for fmt in _FALLBACK_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def _describe_http_error(error: httpx.HTTPError) -> str:
    """Error message for a failed lookup with the API key left out of the URL."""
    if isinstance(error, httpx.HTTPStatusError):
        url = error.request.url.copy_remove_param("key")
        return f"Weather API returned status {error.response.status_code} for {url}"
    return f"Weather API request failed: {type(error).__name__}"


def _fmt_number(value: Any) -> str:
    """Render a numeric reading without a spurious trailing ``.0``."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def normalize_history(payload: dict[str, Any]) -> WeatherData:
    """Turn a weather-history response into a ``WeatherData`` summary.

    Raises KeyError, IndexError, TypeError or ValueError when the payload is
    missing the expected fields.
    """
    forecast_day = payload["forecast"]["forecastday"][0]
    day = forecast_day["day"]
    hours = forecast_day["hour"]
    if not hours:
        raise ValueError("Weather response contains no hourly samples")

    max_gust = max(hour["gust_mph"] for hour in hours)
    # First sample in chronological order reaching the maximum gust
    max_gust_time = next((hour.get("time") or "" for hour in hours if hour["gust_mph"] == max_gust), "")

    conditions = str(day["condition"]["text"])
    lowered = conditions.lower()

    return WeatherData(
        max_temp=f"{_fmt_number(day['maxtemp_f'])}°F",
        min_temp=f"{_fmt_number(day['mintemp_f'])}°F",
        avg_temp=f"{_fmt_number(day['avgtemp_f'])}°F",
        max_wind_gust=f"{_fmt_number(max_gust)} mph",
        max_wind_time=max_gust_time,
        total_precip=f"{_fmt_number(day['totalprecip_in'])} inches",
        humidity=f"{_fmt_number(day['avghumidity'])}%",
        conditions=conditions,
        hail_possible="Yes" if "hail" in lowered else "No",
        thunderstorm="Yes" if "thunder" in lowered else "No",
    )


async def fetch_weather(
    location: str | None,
    loss_date: Any,
    *,
    today: date | None = None,
    http_client: httpx.AsyncClient | None = None,
    request_id: str | None = None,
) -> WeatherResult:
    """Look up the weather at *location* on *loss_date*.

    - Missing location or missing/unparsable date: empty summary, no call.
    - Date strictly after *today*: note-only summary, no call.
    - Otherwise one lookup for that calendar date; any failure yields
      ``success=False`` with the error message. No retries are attempted.
    """
    request_id = request_id or str(uuid4())
    parsed = parse_loss_date(loss_date)
    if not location or not isinstance(location, str) or not location.strip() or parsed is None:
        logger.info("[%s] Weather lookup skipped: location or date of loss missing", request_id)
        return WeatherResult(success=True, data=WeatherData())

    today = today or date.today()
    formatted = parsed.isoformat()
    if parsed > today:
        logger.info("[%s] Weather lookup skipped: %s is in the future", request_id, formatted)
        return WeatherResult(
            success=True,
            data=WeatherData(note=f"Weather data not found for a future date: {formatted}"),
        )

    if not settings.weather_api_key:
        logger.warning("[%s] Weather lookup skipped: no weather API key configured", request_id)
        return WeatherResult(success=False, error="Weather API key is not configured")

    params = {"key": settings.weather_api_key, "q": location.strip(), "dt": formatted}
    logger.info("[%s] Fetching weather history for %s on %s", request_id, location.strip(), formatted)
    try:
        if http_client is None:
            async with httpx.AsyncClient(timeout=settings.weather_timeout) as client:
                response = await client.get(settings.weather_api_url, params=params)
        else:
            response = await http_client.get(settings.weather_api_url, params=params)
        response.raise_for_status()
        data = normalize_history(response.json())
    except httpx.HTTPError as e:
        message = _describe_http_error(e)
        logger.error("[%s] Weather API error: %s", request_id, message)
        return WeatherResult(success=False, error=message)
    except (KeyError, IndexError, TypeError, ValueError) as e:
        logger.error("[%s] Weather API error: %s", request_id, str(e))
        return WeatherResult(success=False, error=str(e))

    logger.debug("[%s] Weather summary: %s", request_id, data.to_public())
    return WeatherResult(success=True, data=data)
