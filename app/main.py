"""FastAPI application entry point."""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from app.config import ConfigError, get_settings
from app.db import close_db, init_db
from app.deps import APIException
from core.errors import ErrorCode, create_api_error

logger = logging.getLogger(__name__)

_SESSION_COOKIE = "now_spinning_session"
_SESSION_MAX_AGE = 30 * 24 * 60 * 60  # 30 days


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle hook."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    await init_db()
    logger.info("DB ready at %s (dev_mode=%s)", settings.db_abs_path, settings.dev_mode)
    yield
    await close_db()
    logger.info("DB closed")


app = FastAPI(
    title="now-spinning",
    version="0.1.0",
    lifespan=lifespan,
)

# Signed session cookie holding the opaque user id.
app.add_middleware(
    SessionMiddleware,
    secret_key=get_settings().secret_key,
    session_cookie=_SESSION_COOKIE,
    max_age=_SESSION_MAX_AGE,
    same_site="lax",
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
from app.routes_auth import router as auth_router  # noqa: E402
from app.routes_discogs import router as discogs_router  # noqa: E402
from app.routes_session import router as session_router  # noqa: E402

app.include_router(auth_router)
app.include_router(discogs_router)
app.include_router(session_router)


# ---------------------------------------------------------------------------
# Error envelope
# ---------------------------------------------------------------------------

@app.exception_handler(APIException)
async def api_exception_handler(request: Request, exc: APIException):
    return JSONResponse(
        create_api_error(exc.code, exc.message),
        status_code=exc.status_code,
        headers=exc.headers,
    )


@app.exception_handler(ConfigError)
async def config_error_handler(request: Request, exc: ConfigError):
    logger.error("Configuration error on %s: %s", request.url.path, exc)
    return JSONResponse(create_api_error(ErrorCode.CONFIG_ERROR, str(exc)), status_code=500)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = [
        {"loc": [str(part) for part in err["loc"]], "msg": err["msg"], "type": err["type"]}
        for err in exc.errors()
    ]
    return JSONResponse(
        create_api_error(ErrorCode.VALIDATION_ERROR, "Request validation failed", details),
        status_code=400,
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(
        create_api_error(ErrorCode.INTERNAL_ERROR, "An unexpected error occurred"),
        status_code=500,
    )


@app.get("/api/health")
async def health():
    """Simple health-check endpoint."""
    return {
        "status": "ok",
        "version": app.version,
        "timestamp": int(time.time() * 1000),
        "dev_mode": get_settings().dev_mode,
    }
