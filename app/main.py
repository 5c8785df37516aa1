# app/main.py
"""
FastAPI application entry point.
Includes security middleware, business/global error handlers, and all routers.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from app.routers import stations, slots, reservations, charging, vehicles, health
from app.database import create_tables
from app.config import settings
from app.utils.errors import ServiceError
from app.utils.logger import get_logger
import time

logger = get_logger(__name__)

app = FastAPI(
    title="EV Charging Booking API",
    description="Stations, ports, slots and conflict-free slot reservations.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS (mobile and staff apps call the API directly) ──────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── API Key Middleware ───────────────────────────────────────────────────────
class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Optional shared-secret check between the auth gateway and this service.
    Health and docs stay open. Set API_KEY in .env; leave empty to disable.
    """
    async def dispatch(self, request: Request, call_next):
        open_paths = {"/api/v1/health", "/docs", "/redoc", "/openapi.json"}
        if request.url.path in open_paths or not settings.API_KEY:
            return await call_next(request)

        api_key = request.headers.get("X-API-Key")
        if api_key != settings.API_KEY:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Invalid or missing API key"},
            )
        return await call_next(request)


if settings.API_KEY:
    app.add_middleware(APIKeyMiddleware)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Business Error Handler ───────────────────────────────────────────────────
ERROR_STATUS = {
    "InvalidInput": status.HTTP_400_BAD_REQUEST,
    "Forbidden": status.HTTP_403_FORBIDDEN,
    "NotFound": status.HTTP_404_NOT_FOUND,
    "Conflict": status.HTTP_409_CONFLICT,
    "ServerError": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    code = ERROR_STATUS.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    if code >= 500:
        logger.error(f"{exc.kind} on {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.kind} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=code,
        content={"success": False, "error": exc.kind, "message": exc.message},
    )


# ── Global Exception Handler ─────────────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": "ServerError", "message": "Internal server error"},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(stations.router,     prefix="/api/v1", tags=["Stations & Ports"])
app.include_router(slots.router,        prefix="/api/v1", tags=["Slots"])
app.include_router(reservations.router, prefix="/api/v1", tags=["Reservations"])
app.include_router(charging.router,     prefix="/api/v1", tags=["Charging"])
app.include_router(vehicles.router,     prefix="/api/v1", tags=["Vehicles"])
app.include_router(health.router,       prefix="/api/v1", tags=["Health"])


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("EV Charging Booking backend starting up...")
    create_tables()
    logger.info("Database tables ready")
    logger.info(f"Listening on http://{settings.BACKEND_IP}:{settings.BACKEND_PORT}")
    logger.info("API docs at /docs")


@app.on_event("shutdown")
async def shutdown():
    logger.info("EV Charging Booking backend shutting down...")
