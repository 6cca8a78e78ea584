"""Zonare API: FastAPI application for address → zoning lookups.

Run:
    uvicorn zonare.api.main:app --reload
    # or
    zonare-api
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from urllib.parse import urlparse

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.middleware.base import BaseHTTPMiddleware

from zonare.api.routes import get_services, router
from zonare.config import settings
from zonare.container import Services, build_services
from zonare.observability.logging import bind_correlation_id, setup_logging
from zonare.observability.tracing import init_tracing
from zonare.storage.db import init_db

logger = logging.getLogger(__name__)

DB_INIT_TIMEOUT = 15


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build services and initialize the DB on startup, release them on shutdown."""
    setup_logging(json_format=settings.log_json, level=settings.log_level)
    init_tracing(settings.mlflow_tracking_uri, settings.mlflow_experiment_name)

    services = build_services(settings)
    app.state.services = services

    if services.engine is not None:
        parsed = urlparse(settings.database_url)
        redacted_host = f"{parsed.hostname}:{parsed.port}" if parsed.port else parsed.hostname
        logger.info("Connecting to database at %s/%s", redacted_host, parsed.path.lstrip("/"))
        try:
            await asyncio.wait_for(init_db(services.engine), timeout=DB_INIT_TIMEOUT)
            logger.info("Database initialized successfully")
        except asyncio.TimeoutError:
            logger.error("Database initialization timed out after %ds, API starts degraded", DB_INIT_TIMEOUT)
        except Exception as e:
            logger.error("Database initialization failed: %s, API starts degraded", e)

    logger.info("Zonare API ready")
    yield
    logger.info("Shutting down")
    await services.aclose()


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """Set correlation ID from X-Request-ID header or generate a new one."""

    async def dispatch(self, request: Request, call_next):
        with bind_correlation_id(request.headers.get("x-request-id")) as cid:
            response = await call_next(request)
        response.headers["x-request-id"] = cid
        return response


app = FastAPI(
    title="Zonare",
    description="Address to zoning regulation lookups over Romanian municipal urbanism portals.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(CorrelationIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are client errors: 400, not FastAPI's default 422."""
    errors = [
        f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'body')}: {err.get('msg', '')}"
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"detail": "; ".join(errors) or "Invalid request"})


@app.get("/health")
async def health(services: Services = Depends(get_services)):
    """Health check: database connectivity and whether RAG is enabled."""
    checks = {"rag": "enabled" if services.rag is not None else "disabled"}

    if services.engine is None:
        checks["database"] = "not_configured"
    else:
        try:
            async with services.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            checks["database"] = "ok"
        except Exception as e:
            checks["database"] = f"error: {e}"

    status = "healthy" if checks["database"] in ("ok", "not_configured") else "degraded"
    return {"status": status, "checks": checks}


def run():
    """Entry point for zonare-api console script."""
    uvicorn.run("zonare.api.main:app", host="0.0.0.0", port=8000, reload=True)
