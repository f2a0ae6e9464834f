"""
Application entry point: logging, upstream client lifecycle, error mapping
and routers.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from confidential_checks.config import settings
from confidential_checks.dependencies import confidential_codec, record_store
from confidential_checks.infrastructure.observability.logging import get_logger, setup_logging
from confidential_checks.routes import checks, health, status
from confidential_checks.services.errors import (
    CheckServiceError,
    DecryptionFailure,
    EncryptionFailure,
    LedgerReadError,
    NotAuthenticated,
    NotFound,
    RejectedByUser,
    SubmissionFailure,
)

setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)

# Most specific first: RejectedByUser is a SubmissionFailure
ERROR_STATUS_CODES: list[tuple[type[CheckServiceError], int]] = [
    (NotAuthenticated, 401),
    (NotFound, 404),
    (RejectedByUser, 409),
    (EncryptionFailure, 502),
    (DecryptionFailure, 502),
    (SubmissionFailure, 502),
    (LedgerReadError, 503),
]


def status_code_for(error: CheckServiceError) -> int:
    for error_type, code in ERROR_STATUS_CODES:
        if isinstance(error, error_type):
            return code
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Warm up the relayer on startup; close both upstream clients on shutdown."""
    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    try:
        await confidential_codec.initialize()
    except EncryptionFailure as e:
        # Encryption retries initialization lazily on first use
        logger.error("Relayer initialization failed", error=e.message)

    yield

    logger.info("Application shutting down")
    shutdown_errors = []
    for name, client in (("relayer", confidential_codec), ("ledger", record_store)):
        try:
            await client.close()
        except Exception as e:
            logger.error(f"Error closing {name} client", error=str(e))
            shutdown_errors.append(f"{name}: {e}")

    if shutdown_errors:
        logger.warning("Some clients had shutdown errors", errors=shutdown_errors)
    else:
        logger.info("All clients closed successfully")


app = FastAPI(
    title="Confidential Background Checks",
    description="Encrypted risk scores with on-chain verified disclosure",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(checks.router)
app.include_router(status.router)


@app.exception_handler(CheckServiceError)
async def check_service_error_handler(request: Request, exc: CheckServiceError):
    code = status_code_for(exc)
    logger.info(
        "Check operation failed",
        path=request.url.path,
        status_code=code,
        error_code=exc.error_code,
    )
    return JSONResponse(status_code=code, content={"detail": exc.message, "error_code": exc.error_code})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000

    logger.info(
        "HTTP request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(process_time, 2),
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
