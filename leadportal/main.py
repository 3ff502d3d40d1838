from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response
from starlette.middleware.base import BaseHTTPMiddleware
from leadportal.api import affiliates, auth, leads
from leadportal.core.config import settings
from leadportal.core.errors import AppError
from leadportal.core.redis import init_redis, close_redis, redis_ok
from leadportal.core.metrics import request_count, request_duration, db_connected, redis_connected, get_metrics_text
from leadportal.db.session import create_tables, engine
from leadportal.services.storage import S3DocumentStore
import time
import traceback
import logging

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception:
            self._observe(request, 500, time.time() - start_time)
            raise

        self._observe(request, response.status_code, time.time() - start_time)
        return response

    @staticmethod
    def _observe(request: Request, status: int, duration: float):
        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)
        request_count.labels(method=request.method, endpoint=endpoint, status=status).inc()
        request_duration.labels(method=request.method, endpoint=endpoint).observe(duration)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting...")

    logger.info("Initializing Redis connection...")
    try:
        await init_redis()
        redis_connected.set(1)
        logger.info("Redis connected")
    except Exception as e:
        logger.error(f"Redis connection failed: {e}")
        redis_connected.set(0)

    try:
        if settings.AUTO_CREATE_TABLES:
            await create_tables()
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        db_connected.set(1)
        logger.info("Database connected")
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        db_connected.set(0)

    app.state.document_store = S3DocumentStore.from_settings()
    logger.info(f"Document storage: s3://{settings.AWS_S3_BUCKET}")

    yield

    logger.info("Application shutting down...")
    await close_redis()
    redis_connected.set(0)
    await engine.dispose()
    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.API_TITLE,
    description=settings.API_DESCRIPTION,
    version=settings.API_VERSION,
    lifespan=lifespan
)

app.add_middleware(MetricsMiddleware)

app.include_router(auth.router)
app.include_router(leads.router)
app.include_router(affiliates.router)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}", exc_info=exc)
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(part) for part in error.get("loc", ())[1:]), "message": error.get("msg", "")}
        for error in exc.errors()
    ]
    message = "; ".join(f"{error['field']}: {error['message']}" for error in errors) or "Invalid request"
    return JSONResponse(status_code=400, content={"message": message, "errors": errors})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Server error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    error = {"message": str(exc) or "Internal Server Error"}
    if not settings.is_production:
        error["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return JSONResponse(status_code=500, content={"error": error})


@app.get("/metrics", tags=["monitoring"])
async def metrics():
    return Response(
        content=get_metrics_text(),
        media_type="text/plain; version=0.0.4; charset=utf-8"
    )


async def _database_ok() -> bool:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning(f"Database check failed: {e}")
        db_connected.set(0)
        return False
    db_connected.set(1)
    return True


@app.get("/health", tags=["monitoring"])
async def health_check():
    return {
        "status": "healthy",
        "service": settings.API_TITLE,
        "version": settings.API_VERSION,
        "dependencies": {
            "redis": "connected" if await redis_ok() else "disconnected",
            "database": "connected" if await _database_ok() else "disconnected"
        }
    }


@app.get("/readiness", tags=["monitoring"])
async def readiness_check():
    if not await _database_ok():
        return JSONResponse(status_code=503, content={"ready": False, "reason": "Database not available"})

    return {
        "ready": True,
        "service": settings.API_TITLE
    }


@app.get("/", tags=["root"])
async def root():
    return {
        "message": settings.API_TITLE,
        "version": settings.API_VERSION,
        "docs": "/docs",
        "health": "/health",
        "metrics": "/metrics"
    }
