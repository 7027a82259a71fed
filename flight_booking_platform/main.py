"""FastAPI application setup and configuration."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from flight_booking_platform.config import settings
from flight_booking_platform.api import api_router
from flight_booking_platform.database import init_database, close_database
from flight_booking_platform.middleware import (
    ErrorHandlerMiddleware,
    LoggingMiddleware,
    register_exception_handlers,
)
from flight_booking_platform.utils.logging_config import setup_logging

# Set up logging
setup_logging(
    log_level="DEBUG" if settings.debug else settings.log_level,
    log_file="logs/flight_booking.log" if settings.environment == "production" else None,
    enable_json_logging=settings.enable_json_logging or settings.environment == "production",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    # Startup
    logger.info("Starting Flight Booking Platform")
    await init_database()
    yield
    # Shutdown
    logger.info("Shutting down Flight Booking Platform")
    await close_database()


app = FastAPI(
    title="Flight Booking Platform API",
    description="""
    ## Flight Booking Platform

    Flight search and booking with strict seat accounting.

    ### Key Features

    * **Flight Search**: Route, date, cabin and capacity filters with round-trip results
    * **Bookings**: Multi-passenger bookings that never oversell a flight
    * **Modifications**: Add, edit or remove passengers with automatic repricing
    * **Live Status**: Server-sent event stream of flight updates

    ### Authentication

    Send the access token issued by the auth provider as
    `Authorization: Bearer <access_token>`.

    ### Error Handling

    ```json
    {
      "error": {
        "error_code": "ERROR_CODE",
        "message": "Human readable error message",
        "details": {},
        "suggestions": []
      },
      "error_id": "...",
      "timestamp": "..."
    }
    ```
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {
            "name": "flights",
            "description": "Flight search, status stream and flight administration"
        },
        {
            "name": "bookings",
            "description": "Booking creation, modification and cancellation"
        },
        {
            "name": "users",
            "description": "Profiles, booking statistics and role management"
        },
        {
            "name": "health",
            "description": "System health endpoints"
        }
    ],
    lifespan=lifespan,
)

register_exception_handlers(app)

# 1. Logging middleware (first to capture all requests)
app.add_middleware(
    LoggingMiddleware,
    log_requests=settings.enable_request_logging,
)

# 2. Error handling middleware (catch all errors)
app.add_middleware(
    ErrorHandlerMiddleware,
    debug=settings.debug
)

# 3. CORS middleware
if settings.debug:
    # Credentials cannot be combined with wildcard origins
    cors_origins = ["*"]
    cors_allow_credentials = False
else:
    cors_origins = settings.cors_origins
    cors_allow_credentials = settings.cors_allow_credentials

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
    expose_headers=settings.cors_expose_headers
)

# Include API routes
app.include_router(api_router)


@app.get("/", tags=["health"])
async def root():
    """Basic information about the API."""
    return {
        "message": "Flight Booking Platform API",
        "version": "1.0.0",
        "docs_url": "/docs",
        "status": "operational"
    }


@app.get("/health", tags=["health"])
async def health_check():
    """Liveness check for uptime monitoring."""
    return {"status": "healthy", "service": "flight-booking-platform"}
