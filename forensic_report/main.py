import logging

from fastapi import FastAPI
from fastapi import Request
from fastapi import status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from forensic_report.api.routes import GENERATE_REPORT_PATH
from forensic_report.api.routes import router
from forensic_report.core.config import settings
from forensic_report.core.cors import OpenPathCORSMiddleware
from forensic_report.core.exceptions import ConfigurationError
from forensic_report.core.logging import setup_logging

setup_logging()

app = FastAPI(title="Forensic Report Writer")

logger = logging.getLogger(__name__)


@app.on_event("startup")
async def startup_event() -> None:
    logger.info("Application started, model: %s", settings.model_id)
    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY is not set; section generation will fail until it is configured.")
    if not settings.weather_api_key:
        logger.warning("WEATHER_API_KEY is not set; sections will be generated without weather data.")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    logger.error(f"HTTP exception: {exc.detail} (status: {exc.status_code})")
    return JSONResponse({"detail": exc.detail}, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.error("Request validation failed: %s", exc.errors(), exc_info=False)
    return JSONResponse(
        {"error": "Input validation failed", "details": exc.errors()},
        status_code=422,
    )


@app.exception_handler(ConfigurationError)
async def configuration_exception_handler(_request: Request, exc: ConfigurationError) -> JSONResponse:
    logger.error(f"Configuration error: {str(exc)}")
    return JSONResponse({"error": "Server configuration error", "details": str(exc)}, status_code=500)


@app.get("/health", status_code=status.HTTP_200_OK, tags=["Health"])
async def health_check() -> dict[str, str]:
    logger.info("Health check endpoint called")
    return {"status": "ok"}


app.add_middleware(
    OpenPathCORSMiddleware,
    open_paths=[router.prefix + GENERATE_REPORT_PATH],
    allow_origins=settings.cors_allowed_origins,
    allow_methods=["POST", "GET", "OPTIONS", "DELETE"],
    allow_headers=["*"],
)
app.include_router(router)
