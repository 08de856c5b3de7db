# main.py
# Main application file for the FastAPI recipe service.

import logging.config
from pathlib import Path
from fastapi import FastAPI, Request
from fastapi.staticfiles import StaticFiles
import uvicorn
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

# Import the CORS middleware
from fastapi.middleware.cors import CORSMiddleware

# Rate limiting
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

# Import local modules
from recipebox.db.session import engine, SessionLocal
from recipebox import models
from recipebox.api import auth, recipes
from recipebox.core.config import settings
from recipebox.core.logging_middleware import StructuredLoggingMiddleware
from recipebox.storage import DatabaseStorage
from recipebox.uploads import UPLOAD_URL_PREFIX

# Load logging configuration
LOGGING_CONFIG = Path(__file__).resolve().parents[1] / "logging.ini"
if LOGGING_CONFIG.exists():
    logging.config.fileConfig(str(LOGGING_CONFIG), disable_existing_loggers=False)

# Get the logger instance
logger = logging.getLogger(__name__)

# Initialize rate limiter - uses client IP address for rate limit key
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    enabled=settings.ENVIRONMENT != "testing",
)

# Create all database tables
models.Base.metadata.create_all(bind=engine)

# Uploaded images are served straight from disk
Path(settings.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)

# Initialize the FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="API for managing personal recipes.",
    version="1.0.0",
)

# The one store for the process; routes reach it through storage.get_storage
app.state.storage = DatabaseStorage(SessionLocal)

# Add rate limiter to app state and register exception handler
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# --- Add Structured Logging Middleware ---
app.add_middleware(StructuredLoggingMiddleware)

# --- Add CORS Middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,  # Allows specified origins
    allow_credentials=True,  # Allows cookies to be included in requests
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],  # Explicit HTTP methods
    allow_headers=["Authorization", "Content-Type", "Accept"],  # Explicit headers
)


# --- Security Headers Middleware ---

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response: Response = await call_next(request)
        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Control referrer information
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # Content Security Policy - restrict resource loading
        if settings.ENVIRONMENT in ["development", "testing"]:
            # Relaxed to allow FastAPI Swagger UI assets
            response.headers["Content-Security-Policy"] = (
                "default-src 'self'; "
                "img-src 'self' data: https://fastapi.tiangolo.com; "
                "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
                "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net"
            )
        else:
            response.headers["Content-Security-Policy"] = "default-src 'self'"
        return response


app.add_middleware(SecurityHeadersMiddleware)

# Include API routers
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(recipes.router, prefix="/api/recipes", tags=["Recipes"])

app.mount(UPLOAD_URL_PREFIX, StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")


@app.get("/", tags=["Root"])
async def read_root():
    """
    Root endpoint to check if the API is running.
    """
    logger.debug("Root endpoint accessed")
    return {"message": "Welcome to the Recipe Box API!"}


if __name__ == "__main__":
    # Development server; run behind a process manager in production.
    uvicorn.run("recipebox.main:app", host="0.0.0.0", port=8000, reload=True)
