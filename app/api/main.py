import asyncio
import contextlib
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.routes import router
from app.core.cache import ResponseCache
from app.core.config import settings
from app.data_access.database import create_db_and_tables


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handles system startup and shutdown events.

    Initializes logging, creates the transaction tables, and builds the one
    response cache the handlers share. The cache sweeper runs until shutdown,
    when the cache is flushed.
    """
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[logging.StreamHandler()] # This sends it to the Terminal
    )

    # Fails fast if the store is unreachable
    create_db_and_tables()

    cache = ResponseCache(
        default_ttl=settings.CACHE_DEFAULT_TTL,
        check_period=settings.CACHE_CHECK_PERIOD,
    )
    app.state.cache = cache
    sweeper = asyncio.create_task(cache.run_sweeper())
    logger.info("🚀 Transactions API ready.")

    yield

    sweeper.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweeper
    cache.flush()

# Define the FastAPI app with metadata for Swagger UI
app = FastAPI(
    title="Retail Transactions API",
    description="Search, filter and manage retail sales transactions, with a cached query layer",
    version="1.0.0",
    lifespan=lifespan
)

# Include our routes
app.include_router(router)


# --- Error shape: every failure is {"error": ..., "details": ...} ---
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    content = {"error": exc.detail}
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        content["details"] = f"{request.method} {request.url.path} failed; see server logs."
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Missing or malformed fields are a client error (400), not FastAPI's default 422."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Validation failed", "details": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Server Error", "details": str(exc)},
    )


@app.get("/")
def read_root() -> dict[str, str]:
    """Landing endpoint for the API.

    Returns:
        Dict[str, str]: A welcome message.
    """
    return {"message": "Welcome to the Retail Transactions API"}


if __name__ == "__main__":
    uvicorn.run("app.api.main:app", host="0.0.0.0", port=settings.PORT)
