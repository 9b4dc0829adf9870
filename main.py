import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from shortlink_app.config import settings
from shortlink_app.api.v1 import urls, redirect
from shortlink_app.dependencies import get_click_aggregator
from shortlink_app.errors import GenerationExhausted, NotFound, StoreUnavailable
from shortlink_app.logging_config import setup_logging
from shortlink_app.redis_client import close_redis

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.log_level)

    if "sql" in (settings.alias_backend, settings.counter_backend):
        # Import models to ensure they're registered with Base
        from shortlink_app.database.connection import engine, Base
        from shortlink_app.models import AliasRecord, ClickCounter  # noqa: F401

        Base.metadata.create_all(bind=engine)

    aggregator = None
    if settings.aggregator_enabled:
        aggregator = get_click_aggregator()
        aggregator.start()

    yield

    if aggregator is not None:
        # Lets the in-flight batch finish before the loop goes away
        await aggregator.shutdown()
    await close_redis()


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="A URL shortener with asynchronous click analytics",
    debug=settings.debug,
    lifespan=lifespan
)


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": "Short URL not found"})


@app.exception_handler(StoreUnavailable)
@app.exception_handler(GenerationExhausted)
async def unavailable_handler(request: Request, exc: Exception):
    logger.error("Request failed: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Service temporarily unavailable"}
    )


@app.exception_handler(RequestValidationError)
async def validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": jsonable_encoder(exc.errors())})


@app.get("/")
def read_root():
    """Root endpoint with API information"""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc"
    }


@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "environment": settings.environment}


######## Include routers
app.include_router(urls.router, prefix="/api/v1")
app.include_router(redirect.router)
