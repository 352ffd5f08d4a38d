import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from safe_download.api import containers, policy
from safe_download.config import settings
from safe_download.models.errors import PolicyUnavailableError, SafeDownloadError
from safe_download.services.engine import build_engine

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting Safe Download Gateway API")
    engine = getattr(app.state, "engine", None)
    if engine is None:
        engine = build_engine()
        app.state.engine = engine
    await engine.start()
    try:
        yield
    finally:
        await engine.stop()
        logger.info("Shutting down Safe Download Gateway API")


app = FastAPI(
    title="Safe Download Gateway API",
    description="Trust-policy gate and signature verification for signed downloads",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(policy.router)
app.include_router(containers.router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Safe Download Gateway API",
        "version": "0.1.0",
        "status": "running",
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


# Global exception handlers


@app.exception_handler(PolicyUnavailableError)
async def policy_unavailable_handler(request: Request, exc: PolicyUnavailableError):
    """Handle requests that arrive before the trust policy has loaded."""
    logger.warning(f"Policy unavailable: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "error_code": exc.error_code.value,
            "message": str(exc),
            "detail": exc.remediation or "The trust policy has not been loaded yet. Please retry shortly.",
        },
    )


@app.exception_handler(SafeDownloadError)
async def safe_download_error_handler(request: Request, exc: SafeDownloadError):
    """Handle engine errors that escape a route."""
    logger.error(f"Safe download error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error_code": exc.error_code.value,
            "message": str(exc),
            "detail": exc.remediation or "The request could not be processed.",
        },
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors."""
    logger.warning(f"Validation error: {exc}")
    errors = exc.errors()
    error_messages = []

    for error in errors:
        field = " -> ".join(str(loc) for loc in error["loc"])
        message = error["msg"]
        error_messages.append(f"{field}: {message}")

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "VALIDATION_ERROR",
            "message": "Invalid request data",
            "detail": "; ".join(error_messages),
        },
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """
    Handle all other unexpected exceptions.

    Logs detailed error information while returning a user-friendly message.
    """
    logger.error(f"Unexpected error: {exc}", exc_info=True)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred",
            "detail": "The server encountered an unexpected error. Please try again later.",
        },
    )


def run() -> None:
    """Run the API server with uvicorn."""
    uvicorn.run(
        "safe_download.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
