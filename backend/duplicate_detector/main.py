import time
from contextlib import asynccontextmanager
from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import text

from duplicate_detector.api.responses import failure, success
from duplicate_detector.api.routers import auth, duplicates, projects, search, users
from duplicate_detector.core.config import settings
from duplicate_detector.core.database import get_db, init_db
from duplicate_detector.core.exceptions import DuplicateDetectorError, ValidationError
from duplicate_detector.core.logging import setup_logging, get_logger


logger = get_logger(__name__)

# --- Application Lifecycle (Lifespan) ---
@asynccontextmanager
async def lifespan(_app: FastAPI):
    """
    Lifecycle manager for the FastAPI application.
    Configures logging and verifies the database before serving requests.
    """
    setup_logging()
    logger.info("Checking database connection...")
    init_db()
    logger.info("Application ready. Docs at http://localhost:8000/docs")
    yield
    logger.info("Shutting down...")

# --- FastAPI Instance ---
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Duplicate code and pattern similarity dashboard API",
    version=settings.VERSION,
    lifespan=lifespan
)

# --- CORS Configuration ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Request Timing ---
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """One access line per request carrying endpoint, status and duration_ms."""
    started = time.perf_counter()
    response = await call_next(request)
    duration_ms = round((time.perf_counter() - started) * 1000, 1)

    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code}",
        extra={
            "endpoint": request.url.path,
            "method": request.method,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        }
    )
    return response

# --- Error Envelope ---
@app.exception_handler(DuplicateDetectorError)
async def domain_error_handler(request: Request, exc: DuplicateDetectorError):
    """
    Maps domain errors to their HTTP status and the stable error code
    carried by the exception class.
    """
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(
            f"{request.method} {request.url.path} -> {exc.code}: {exc.message}",
            extra={"endpoint": request.url.path}
        )
    details = exc.errors if isinstance(exc, ValidationError) else None
    return JSONResponse(
        status_code=exc.status_code,
        content=failure(exc.code, exc.message, details),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Request bodies and query parameters rejected by FastAPI share the envelope."""
    details = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=ValidationError.status_code,
        content=failure(ValidationError.code, "Invalid request", details),
    )

# --- REST API Routers ---
app.include_router(auth.router, prefix="/api/v1/auth", tags=["Authentication"])
app.include_router(users.router, prefix="/api/v1/users", tags=["Users"])
app.include_router(projects.router, prefix="/api/v1/projects", tags=["Projects"])
app.include_router(duplicates.router, prefix="/api/v1/duplicates", tags=["Duplicates"])
app.include_router(search.router, prefix="/api/v1/search", tags=["Search"])

# --- Root Endpoint ---
@app.get("/", tags=["System"])
async def root():
    """Basic root endpoint for service discovery."""
    return success({
        "message": f"Welcome to {settings.PROJECT_NAME} API",
        "status": "active",
        "docs": "/docs"
    })

# --- Health Check Endpoints ---
@app.get("/api/v1/health", tags=["System"])
def health_check(db: Session = Depends(get_db)):
    """
    Verifies the operational status of the API and its database connection.
    Returns 503 with status 'degraded' when the database is unreachable.
    """
    try:
        db.execute(text("SELECT 1"))
        database = "connected"
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        database = "unreachable"

    healthy = database == "connected"
    return JSONResponse(
        status_code=200 if healthy else 503,
        content=success({
            "status": "healthy" if healthy else "degraded",
            "database": database,
            "environment": settings.ENVIRONMENT,
            "version": settings.VERSION,
        }),
    )


@app.get("/api/v1/ready", tags=["System"])
def readiness_check(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Readiness check failed: {e}")
        return JSONResponse(status_code=503, content=failure("NOT_READY", "Database unavailable"))
    return success({"status": "ready"})
