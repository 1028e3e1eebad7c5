"""Entry point for the ClassReel media server."""

import logging
import time
import uuid

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from common.database import get_db_connection, init_database
from common.exceptions import (
    AccountNotFoundError,
    ChunkIntegrityError,
    ChunkNotFoundError,
    ClassReelException,
    DuplicateEmailError,
    DuplicateVideoError,
    InvalidCredentialsError,
    InvalidClassCodeError,
    InvalidLicenseKeyError,
    NotMemberError,
    PayloadTooLargeError,
    QuotaExceededError,
    UploadFailedError,
    VideoNotFoundError
)
from common.logging_config import setup_logging
from mediaserver.cleanup_task import OrphanedChunkCleaner
from mediaserver.config import ORPHAN_GRACE, ORPHAN_SWEEP_INTERVAL, SERVER_HOST, SERVER_PORT
from mediaserver.routes.account_routes import router as account_router
from mediaserver.routes.video_routes import router as video_router
from mediaserver.service_locator import get_account_service, get_chunk_store, get_license_registry

logger = setup_logging('mediaserver')
setup_logging('chunkstore')

app = FastAPI(
    title="ClassReel Media Server",
    description="Classroom video sharing: license-provisioned accounts and chunked video storage",
    version="1.0.0"
)

cleanup_task = None


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Middleware to log all HTTP requests and responses.
    """
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()

    logger.info(
        f"Request started: {request.method} {request.url.path} [request_id={request_id}]"
    )

    response = await call_next(request)

    duration = time.time() - start_time

    logger.info(
        f"Request completed: {request.method} {request.url.path} "
        f"status={response.status_code} duration={duration:.3f}s [request_id={request_id}]"
    )

    response.headers["X-Request-ID"] = request_id

    return response


@app.on_event("startup")
async def startup_event():
    """
    Initialize database, services and background tasks on application startup.
    """
    global cleanup_task

    logger.info("Media server starting up...")

    init_database()
    logger.info("Database initialized")

    registry = get_license_registry()
    get_account_service()
    logger.info(f"Services ready ({len(registry)} license keys)")

    cleanup_task = OrphanedChunkCleaner(
        get_chunk_store(),
        interval_seconds=ORPHAN_SWEEP_INTERVAL,
        grace_seconds=ORPHAN_GRACE,
    )
    await cleanup_task.start()
    logger.info("Background cleanup task started")


@app.on_event("shutdown")
async def shutdown_event():
    """
    Cleanup resources on application shutdown.
    """
    logger.info("Media server shutting down...")

    if cleanup_task:
        await cleanup_task.stop()
        logger.info("Cleanup task stopped")


def _error_response(request: Request, exc: ClassReelException, status_code: int,
                     level: int = logging.WARNING) -> JSONResponse:
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.log(
        level,
        f"{type(exc).__name__}: {exc} [request_id={request_id}] path={request.url.path}",
        exc_info=level >= logging.ERROR
    )
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "code": exc.code}
    )


@app.exception_handler(InvalidLicenseKeyError)
async def invalid_license_key_handler(request: Request, exc: InvalidLicenseKeyError):
    return _error_response(request, exc, status.HTTP_400_BAD_REQUEST)


@app.exception_handler(QuotaExceededError)
async def quota_exceeded_handler(request: Request, exc: QuotaExceededError):
    return _error_response(request, exc, status.HTTP_400_BAD_REQUEST)


@app.exception_handler(NotMemberError)
async def not_member_handler(request: Request, exc: NotMemberError):
    return _error_response(request, exc, status.HTTP_400_BAD_REQUEST)


@app.exception_handler(InvalidClassCodeError)
async def invalid_class_code_handler(request: Request, exc: InvalidClassCodeError):
    return _error_response(request, exc, status.HTTP_400_BAD_REQUEST)


@app.exception_handler(InvalidCredentialsError)
async def invalid_credentials_handler(request: Request, exc: InvalidCredentialsError):
    return _error_response(request, exc, status.HTTP_401_UNAUTHORIZED)


@app.exception_handler(AccountNotFoundError)
async def account_not_found_handler(request: Request, exc: AccountNotFoundError):
    return _error_response(request, exc, status.HTTP_404_NOT_FOUND)


@app.exception_handler(VideoNotFoundError)
async def video_not_found_handler(request: Request, exc: VideoNotFoundError):
    return _error_response(request, exc, status.HTTP_404_NOT_FOUND)


@app.exception_handler(ChunkNotFoundError)
async def chunk_not_found_handler(request: Request, exc: ChunkNotFoundError):
    return _error_response(request, exc, status.HTTP_404_NOT_FOUND, logging.ERROR)


@app.exception_handler(DuplicateEmailError)
async def duplicate_email_handler(request: Request, exc: DuplicateEmailError):
    return _error_response(request, exc, status.HTTP_409_CONFLICT)


@app.exception_handler(DuplicateVideoError)
async def duplicate_video_handler(request: Request, exc: DuplicateVideoError):
    return _error_response(request, exc, status.HTTP_409_CONFLICT)


@app.exception_handler(PayloadTooLargeError)
async def payload_too_large_handler(request: Request, exc: PayloadTooLargeError):
    return _error_response(request, exc, status.HTTP_413_REQUEST_ENTITY_TOO_LARGE)


@app.exception_handler(UploadFailedError)
async def upload_failed_handler(request: Request, exc: UploadFailedError):
    return _error_response(request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, logging.ERROR)


@app.exception_handler(ChunkIntegrityError)
async def chunk_integrity_handler(request: Request, exc: ChunkIntegrityError):
    return _error_response(request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, logging.ERROR)


@app.exception_handler(ClassReelException)
async def classreel_exception_handler(request: Request, exc: ClassReelException):
    return _error_response(request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, logging.ERROR)


app.include_router(account_router)
app.include_router(video_router)


@app.get("/")
async def root():
    """
    Root endpoint for health check.
    """
    return {"message": "ClassReel Media Server API", "status": "running"}


@app.get("/health")
async def health_check():
    """
    Health check endpoint for Docker healthcheck.
    Returns 200 if service is alive.
    """
    return {"status": "healthy", "service": "mediaserver"}


@app.get("/ready")
async def ready_check():
    """
    Readiness check endpoint.
    Verifies the database answers queries.
    """
    try:
        with get_db_connection() as conn:
            conn.execute("SELECT 1 FROM videos LIMIT 1").fetchall()
        db_status = "ok"
    except Exception as e:
        db_status = f"error: {str(e)}"

    ready = db_status == "ok"
    status_code = status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE

    return JSONResponse(
        status_code=status_code,
        content={
            "ready": ready,
            "database": db_status
        }
    )


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    uvicorn.run(
        "mediaserver.main:app",
        host=SERVER_HOST,
        port=SERVER_PORT,
    )


if __name__ == "__main__":
    main()
