#!/usr/bin/env python3
"""
API Builder FastAPI Server

REST back-end for the no-code API builder: projects, plugins, third-party
connectors, staged API generation and the evaluation dashboard.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from urllib.parse import parse_qsl, urlencode

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..connectors import ConnectorError
from ..monitoring import APICall, CallTimings
from .dependencies import (
    get_config,
    get_connector_registry,
    get_generation_manager,
    get_monitoring_service,
    init_services,
    services_ready,
)
from .routers import connectors, evaluation, generation, plugins, projects

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    # Startup
    load_dotenv()
    if not services_ready():
        init_services()

    config = get_config()
    monitoring = get_monitoring_service()
    periodic = asyncio.create_task(
        monitoring.run_periodic(
            metrics_interval=config.get("monitoring.metrics_interval", 60),
            save_interval=config.get("monitoring.save_interval", 300),
        )
    )
    logger.info(f"🚀 API Builder server ready on {config.get('urls.backend')}")

    yield

    # Shutdown
    periodic.cancel()
    try:
        await periodic
    except asyncio.CancelledError:
        pass
    await get_generation_manager().shutdown()
    monitoring.save()
    logger.info("API monitoring data saved on shutdown")


# Create FastAPI app with metadata
app = FastAPI(
    title="API Builder",
    description="Back-end for building APIs from third-party SaaS connectors, with request monitoring",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure as needed for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


SENSITIVE_QUERY_PARAMS = {
    "access_token",
    "api_key",
    "apikey",
    "client_secret",
    "code",
    "refresh_token",
    "state",
    "token",
}


def _content_length(headers) -> int:
    try:
        return int(headers.get("content-length", 0))
    except ValueError:
        return 0


def redact_query(query: str) -> str:
    """Mask credential-bearing query parameters"""
    pairs = parse_qsl(query, keep_blank_values=True)
    return urlencode(
        [(key, "[REDACTED]" if key.lower() in SENSITIVE_QUERY_PARAMS else value) for key, value in pairs],
        safe="[]",
    )


def route_template(scope) -> str:
    """
    Full route template of a matched request, e.g. /api/projects/{project_id}.

    The matched route may carry its path without the prefix it was included
    under; missing leading segments are taken from the request path.
    """
    path = scope.get("path", "")
    template = getattr(scope.get("route"), "path", None)
    if not template:
        return path

    actual = [segment for segment in path.split("/") if segment]
    relative = [segment for segment in template.split("/") if segment]
    missing = len(actual) - len(relative)
    if missing <= 0:
        return template
    return "/" + "/".join(actual[:missing] + relative)


def build_call_record(request: Request, status_code: int, duration: float, trace_id: str) -> APICall:
    """Describe a handled request for the monitoring service"""
    success = status_code < 400
    query = request.url.query
    return APICall(
        id=trace_id,
        method=request.method,
        url=request.url.path + (f"?{redact_query(query)}" if query else ""),
        endpoint=route_template(request.scope),
        status_code=status_code,
        duration=duration,
        user_id=request.headers.get("user-id"),
        user_agent=request.headers.get("user-agent"),
        ip_address=request.client.host if request.client else None,
        request_size=_content_length(request.headers),
        success=success,
        error=None if success else f"HTTP {status_code}",
        timings=CallTimings(ttfb=duration * 0.8, download=duration * 0.2, total=duration),
    )


@app.middleware("http")
async def monitor_requests(request: Request, call_next):
    """Time every request and hand it to the monitoring service"""
    monitoring = get_monitoring_service()
    tracker = monitoring.tracker
    trace_id = tracker.start_operation(
        f"{request.method} {request.url.path}",
        user_id=request.headers.get("user-id"),
    )
    started = time.perf_counter()

    try:
        response = await call_next(request)
    except Exception as e:
        duration = (time.perf_counter() - started) * 1000
        tracker.end_operation(trace_id, False, e)
        call = build_call_record(request, 500, duration, trace_id)
        call.error = str(e) or type(e).__name__
        monitoring.track_call(call)
        raise

    duration = (time.perf_counter() - started) * 1000
    # client errors are reported once, by the monitoring service
    server_error = response.status_code >= 500
    tracker.end_operation(
        trace_id,
        not server_error,
        error=f"HTTP {response.status_code}" if server_error else None,
        metadata={"status": response.status_code},
    )

    call = build_call_record(request, response.status_code, duration, trace_id)
    call.response_size = _content_length(response.headers)
    monitoring.track_call(call)

    response.headers["x-trace-id"] = trace_id
    return response


@app.exception_handler(ConnectorError)
async def connector_error_handler(request: Request, exc: ConnectorError):
    """Map connector failures to JSON errors"""
    content = {"detail": exc.message}
    if exc.provider_id:
        content["provider_id"] = exc.provider_id
    supported = getattr(exc, "supported_formats", None)
    if supported:
        content["supported_formats"] = supported
    return JSONResponse(status_code=exc.status_code, content=content)


# Include routers
app.include_router(projects.router, prefix="/api")
app.include_router(plugins.router, prefix="/api")
app.include_router(connectors.router, prefix="/api")
app.include_router(evaluation.router, prefix="/api")
app.include_router(generation.router, prefix="/api")


@app.get("/", response_model=dict)
async def root():
    """Root endpoint with API information"""
    return {
        "name": "API Builder",
        "version": __version__,
        "description": "REST API for building APIs from third-party connectors",
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


@app.get("/health", response_model=dict)
async def health_check():
    """Health check endpoint"""
    monitoring = get_monitoring_service()
    return {
        "status": "healthy",
        "provider_count": len(get_connector_registry()),
        "tracked_calls": len(monitoring.calls),
        "active_alerts": len(monitoring.get_active_alerts()),
        "version": __version__,
    }


@app.get("/api/health", response_model=dict)
async def api_health():
    """Liveness check used by the frontend"""
    return {
        "status": "OK",
        "message": "API Builder Server is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api_builder.api.main:app", host="0.0.0.0", port=3002, reload=True)
