"""
Main FastAPI Application
"""
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
import logging

from sitebooks.core.config import settings
from sitebooks.core.database import init_db, SessionLocal
from sitebooks.core.errors import ServiceError, ErrorKind, kind_for_status
from sitebooks.core.rate_limit import RateLimitMiddleware
from sitebooks.api.v1 import (
    auth, users, projects, banking, contractors, machines, vendors,
    employees, expenses, consumables, non_consumables, reports
)
from sitebooks.services.user_service import UserService

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    logger.info("Starting up...")
    init_db()

    # First super admin
    db = SessionLocal()
    try:
        UserService(db).ensure_superadmin(
            settings.SUPERADMIN_EMAIL, settings.SUPERADMIN_PASSWORD, settings.SUPERADMIN_NAME
        )
        db.commit()
    finally:
        db.close()

    logger.info("Database initialized")

    yield

    # Shutdown
    logger.info("Shutting down...")


# Create app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Rate limiting middleware (must be after CORS)
app.add_middleware(RateLimitMiddleware)


# Exception handlers
@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error(f"Service error on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "kind": exc.kind.value}
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "kind": kind_for_status(exc.status_code).value},
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=400,
        content={
            "error": f"{field}: {message}" if field else message,
            "kind": ErrorKind.VALIDATION.value,
        }
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "An unexpected error occurred", "kind": ErrorKind.INTERNAL.value}
    )


# Health check
@app.get("/health")
async def health_check():
    return {"status": "healthy", "version": settings.APP_VERSION}


# Include routers
app.include_router(auth.router, prefix="/api/v1")
app.include_router(users.router, prefix="/api/v1")
app.include_router(projects.router, prefix="/api/v1")
app.include_router(banking.router, prefix="/api/v1")
app.include_router(contractors.router, prefix="/api/v1")
app.include_router(machines.router, prefix="/api/v1")
app.include_router(vendors.router, prefix="/api/v1")
app.include_router(employees.router, prefix="/api/v1")
app.include_router(expenses.router, prefix="/api/v1")
app.include_router(consumables.router, prefix="/api/v1")
app.include_router(non_consumables.router, prefix="/api/v1")
app.include_router(reports.router, prefix="/api/v1")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
