"""
Main FastAPI application for the Sports Tracker API.

Serves read access to live game snapshots and their event history, and runs
the recurring feed sync in-process unless SCHEDULER_ENABLED is false.
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.routes import events, games, stats, sync
from app.api.schemas import envelope
from app.core.config import settings
from app.core.database import get_db, init_db
from app.core.exceptions import GameNotFoundError, InvalidQueryError, StorageUnavailableError
from app.core.logging import configure_logging, get_logger
from app.core.middleware import CorrelationIdMiddleware
from app.core.metrics import update_circuit_breaker_metrics

# Configure structured logging (JSON in production, colored for local development)
configure_logging(
    level=settings.LOG_LEVEL,
    json_output=settings.LOG_JSON
)
logger = get_logger(__name__)


def get_rate_limit_key(request: Request) -> str:
    """
    Get the rate limit key for a request.

    Uses IP address, with fallback to X-Forwarded-For for proxied requests.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


limiter = Limiter(
    key_func=get_rate_limit_key,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    storage_uri="memory://",
    enabled=settings.RATE_LIMIT_ENABLED
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan events."""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION} ({settings.ENVIRONMENT})")

    missing = settings.validate_required_secrets()
    if missing:
        raise RuntimeError(f"Missing required settings for {settings.ENVIRONMENT}: {', '.join(missing)}")

    init_db()
    logger.info("Database tables ready")

    if settings.SCHEDULER_ENABLED:
        from app.core.scheduler import start_scheduler
        await start_scheduler()
    else:
        logger.info("Sync scheduler disabled (SCHEDULER_ENABLED=false)")

    logger.info("Application started")

    yield

    from app.core.scheduler import stop_scheduler
    await stop_scheduler()
    logger.info("Shutting down application")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Live scores for soccer, tennis and hockey with a versioned per-game event history",
    lifespan=lifespan
)
app.state.limiter = limiter

# Applies RATE_LIMIT_DEFAULT to every route without its own @limiter.limit
app.add_middleware(SlowAPIMiddleware)

# Add correlation ID middleware (must be added before CORS for proper header handling)
app.add_middleware(CorrelationIdMiddleware)

# Prometheus metrics must be set up before routes are included
instrumentator = Instrumentator()
instrumentator.instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(games.router, prefix="/api")
app.include_router(events.router, prefix="/api")
app.include_router(stats.router, prefix="/api")
app.include_router(sync.router, prefix="/api")


@app.get("/")
@limiter.limit("60/minute")
async def root(request: Request):
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "sports": ["soccer", "tennis", "hockey"],
        "endpoints": {
            "games": "/api/games",
            "live": "/api/games/live",
            "by_sport": "/api/games/sport/{sport}",
            "by_status": "/api/games/status/{status}",
            "game": "/api/games/{id}",
            "history": "/api/games/{id}/events",
            "recent_events": "/api/events/recent",
            "stats": "/api/stats",
            "sync": "/api/sync/status",
            "metrics": "/metrics",
            "docs": "/docs",
            "health": "/health"
        }
    }


@app.get("/health")
@limiter.limit("120/minute")  # Higher limit for health checks
async def health_check(request: Request):
    """Liveness check."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION
    }


@app.get("/api/health")
async def api_health(db: Session = Depends(get_db)):
    """Detailed health check: database reachability and scheduler state."""
    from app.core.scheduler import get_scheduler

    health_status = {"status": "healthy", "version": settings.APP_VERSION, "components": {}}

    try:
        db.execute(text("SELECT 1"))
        health_status["components"]["database"] = {"status": "connected"}
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        health_status["components"]["database"] = {"status": "unreachable"}
        health_status["status"] = "degraded"

    scheduler = get_scheduler()
    health_status["components"]["scheduler"] = {
        "status": "running" if scheduler and scheduler.running else "stopped"
    }
    update_circuit_breaker_metrics()

    status_code = 200 if health_status["status"] == "healthy" else 503
    return JSONResponse(status_code=status_code, content=health_status)


# Exception handlers
@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    response = JSONResponse(status_code=429, content=envelope(error=f"Rate limit exceeded: {exc.detail}"))
    return request.app.state.limiter._inject_headers(response, request.state.view_rate_limit)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = [
        f"{'.'.join(str(part) for part in error['loc'][1:]) or error['loc'][0]}: {error['msg']}"
        for error in exc.errors()
    ]
    return JSONResponse(status_code=400, content=envelope(error="Invalid request: " + "; ".join(problems)))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=envelope(error=str(exc.detail)),
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(GameNotFoundError)
async def game_not_found_handler(request: Request, exc: GameNotFoundError):
    return JSONResponse(status_code=404, content=envelope(error=str(exc)))


@app.exception_handler(InvalidQueryError)
async def invalid_query_handler(request: Request, exc: InvalidQueryError):
    return JSONResponse(status_code=400, content=envelope(error=str(exc)))


@app.exception_handler(StorageUnavailableError)
async def storage_unavailable_handler(request: Request, exc: StorageUnavailableError):
    logger.critical(f"Storage unavailable: {exc}")
    return JSONResponse(status_code=503, content=envelope(error="Storage temporarily unavailable"))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler. Never leaks internal error detail."""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content=envelope(error="Internal server error"))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )
