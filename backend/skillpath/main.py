"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from skillpath.api.routes import admin_roadmaps, student_roadmaps, teacher_roadmaps
from skillpath.core.config import get_settings
from skillpath.core.database import close_db, init_db
from skillpath.core.exceptions import SkillPathError
from skillpath.core.logging import configure_logging, get_logger

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    configure_logging(debug=settings.DEBUG, sql_echo=settings.DATABASE_ECHO)
    logger.info(
        "Starting SkillPath",
        version=settings.APP_VERSION,
        env=settings.ENV,
        debug=settings.DEBUG,
    )
    await init_db()
    yield
    # Shutdown
    logger.info("Shutting down SkillPath")
    await close_db()


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="School-to-career learning roadmaps with teacher-validated progress",
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.is_development else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SkillPathError)
async def skillpath_error_handler(request: Request, exc: SkillPathError) -> JSONResponse:
    """Render service-layer errors as ``{"detail": message}``."""
    logger.info(
        "Request rejected",
        path=request.url.path,
        status_code=exc.status_code,
        error=type(exc).__name__,
        detail=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Include routers
app.include_router(admin_roadmaps.router, prefix="/api")
app.include_router(student_roadmaps.router, prefix="/api")
app.include_router(teacher_roadmaps.router, prefix="/api")


@app.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "env": settings.ENV,
    }


@app.get("/")
async def root() -> dict:
    """Root endpoint."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
