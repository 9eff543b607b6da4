import logging
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from premiads.core.config import APP_NAME, APP_VERSION, FRONTEND_URL, DEBUG, LOG_LEVEL
from premiads.database import Database
from premiads.routes.missions.submission_routes import mission_router, submission_router
from premiads.routes.missions.moderation_routes import router as moderation_router
from premiads.routes.missions.reward_routes import router as reward_router
from premiads.utils.response import validation_error_response

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for the application"""
    # Startup
    await Database.connect_db()
    yield
    # Shutdown
    await Database.close_db()


app = FastAPI(
    title=APP_NAME,
    version=APP_VERSION,
    description="PremiAds API for mission submissions, moderation and rewards",
    lifespan=lifespan
)

# CORS middleware
# In development, allow all origins for easier testing
cors_origins = [
    FRONTEND_URL,
    "http://localhost:3000",
    "http://localhost:5173",
    "http://localhost:8080",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins if not DEBUG else ["*"],
    allow_credentials=not DEBUG,  # Can't use credentials with wildcard origin
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = {
        ".".join(str(part) for part in error["loc"]): error["msg"]
        for error in exc.errors()
    }
    return validation_error_response(errors=errors)


# Include routers with /api prefix
app.include_router(mission_router, prefix="/api")  # Mission-scoped submission routes
app.include_router(submission_router, prefix="/api")  # Generic submission operations
app.include_router(moderation_router, prefix="/api")
app.include_router(reward_router, prefix="/api")


@app.get("/")
async def read_root():
    """Root endpoint"""
    return {
        "message": f"Welcome to {APP_NAME} API",
        "version": APP_VERSION,
        "docs": "/docs"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}
