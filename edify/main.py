"""FastAPI application entry point."""
import os

# Force UTC before anything caches timezone information
os.environ['TZ'] = 'UTC'

import time
import sys

if hasattr(time, "tzset"):
    time.tzset()

for stream in (sys.stdout, sys.stderr):
    if hasattr(stream, "reconfigure"):
        stream.reconfigure(encoding="utf-8", errors="backslashreplace")

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from contextlib import asynccontextmanager

from edify.config import get_settings
from edify.version import APP_VERSION
from edify.routers import health, tools, moderator, violations, usage, history
from edify.services.ai.pricing import get_exchange_rate_provider

logs_dir = Path("logs")
logs_dir.mkdir(exist_ok=True)

log_file = logs_dir / "edify.log"
sql_log_file = logs_dir / "edify_sql.log"
api_log_file = logs_dir / "edify_api.log"

log_format = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

# 1 MB per file, 5 backups
rotating_handler = RotatingFileHandler(log_file, maxBytes=1024 * 1024, backupCount=5, encoding='utf-8')
rotating_handler.setFormatter(log_format)

sql_rotating_handler = RotatingFileHandler(sql_log_file, maxBytes=1024 * 1024, backupCount=5, encoding='utf-8')
sql_rotating_handler.setFormatter(log_format)

# Request log is busier: 2 MB per file, 15 backups
api_rotating_handler = RotatingFileHandler(api_log_file, maxBytes=2 * 1024 * 1024, backupCount=15, encoding='utf-8')
api_rotating_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))

# force=True overrides uvicorn's configuration
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(), rotating_handler],
    force=True,
)

logger = logging.getLogger(__name__)

api_logger = logging.getLogger("edify.api")
api_logger.handlers.clear()
api_logger.addHandler(api_rotating_handler)
api_logger.setLevel(logging.INFO)
api_logger.propagate = False

uvicorn_access_logger = logging.getLogger("uvicorn.access")
uvicorn_access_logger.setLevel(logging.INFO)
if rotating_handler not in uvicorn_access_logger.handlers:
    uvicorn_access_logger.addHandler(rotating_handler)

sqlalchemy_logger = logging.getLogger("sqlalchemy.engine.Engine")
sqlalchemy_logger.handlers.clear()
sqlalchemy_logger.addHandler(sql_rotating_handler)
sqlalchemy_logger.setLevel(logging.INFO)
sqlalchemy_logger.propagate = False


class SQLTransactionFilter(logging.Filter):
    """Drops transaction bookkeeping from the SQL log and flattens statements onto one line."""

    def filter(self, record):
        if record.levelno == logging.INFO and hasattr(record, 'getMessage'):
            message = record.getMessage()

            if any(keyword in message for keyword in ['ROLLBACK', 'BEGIN', 'COMMIT', 'generated in']):
                return False

            if any(kw in message for kw in ['SELECT', 'DELETE', 'INSERT', 'UPDATE']):
                record.msg = ' '.join(message.split())
                record.args = ()

        return True


sqlalchemy_logger.addFilter(SQLTransactionFilter())

settings = get_settings()


def check_integrations() -> None:
    """Warn about unconfigured providers; the API still starts without them."""
    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY is not set: content checks will fail closed and tools will not generate")
    if not settings.resend_api_key:
        logger.warning("RESEND_API_KEY is not set: moderation emails will not be sent")


@asynccontextmanager
async def lifespan(app_instance: FastAPI):
    """Log the configuration on startup and drop cached state on shutdown."""
    logger.info("=" * 60)
    logger.info(f"AiEdify API {APP_VERSION} Starting")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Database: {settings.database_url.split('@')[-1] if '@' in settings.database_url else 'SQLite'}")
    logger.info(f"Generation model: {settings.ai_generation_model}; classifier model: {settings.ai_classifier_model}")
    logger.info(f"Blocking flags at severity >= {settings.content_block_min_severity}")
    logger.info("=" * 60)

    check_integrations()

    try:
        yield
    finally:
        get_exchange_rate_provider().clear()
        logger.info("AiEdify API Shutting Down... Goodbye!")


app = FastAPI(
    title="AiEdify API",
    description="AI content tools for educators with content safety and moderation",
    version=APP_VERSION,
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors with user-friendly messages."""
    logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")

    errors = []
    for error in exc.errors():
        loc = error.get("loc", [])
        field_path = " -> ".join(str(x) for x in loc[1:]) if len(loc) > 1 else "unknown field"
        errors.append({
            "field": field_path,
            "message": error.get("msg", "Validation error"),
            "type": error.get("type", "unknown"),
        })

    return JSONResponse(
        status_code=422,
        content={
            "error": "Request validation failed",
            "errors": errors,
        }
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every request and its outcome to the dedicated API log."""
    start_time = time.time()

    client_ip = request.client.host if request.client else "unknown"
    user_agent = request.headers.get("user-agent", "unknown")
    method = request.method
    path = request.url.path

    request_id = f"{method}:{path}:{int(start_time * 1000) % 100000}"
    api_logger.info(f">> {request_id} | START | {method} {path} | IP: {client_ip} | UA: {user_agent[:50]}...")

    # Email-action links carry the signing token in the query string
    if request.query_params and path != "/api/moderator/email-action":
        api_logger.info(f">> {request_id} | QUERY | {request.query_params}")

    try:
        response = await call_next(request)
    except Exception as e:
        api_logger.error(
            f"<< {request_id} | EXCEPTION | {method} {path} | "
            f"Error: {str(e)[:100]} | Time: {time.time() - start_time:.3f}s | IP: {client_ip}"
        )
        raise

    api_logger.info(
        f"<< {request_id} | COMPLETE | {method} {path} | Status: {response.status_code} | "
        f"Time: {time.time() - start_time:.3f}s | IP: {client_ip}"
    )
    if response.status_code >= 400:
        api_logger.warning(
            f"<< {request_id} | ERROR_RESPONSE | Content-Type: {response.headers.get('content-type', 'unknown')}"
        )
    return response


allowed_origins = [origin.strip() for origin in settings.allowed_origins.split(",") if origin.strip()]
if not allowed_origins:
    allowed_origins = [
        settings.app_url,
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(tools.router)
app.include_router(moderator.router)
app.include_router(violations.router)
app.include_router(usage.router)
app.include_router(history.router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "AiEdify API",
        "version": APP_VERSION,
        "environment": settings.environment,
        "docs": "/docs",
    }
