from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from .config import settings
from .database import close_db, init_db, ping
from .exceptions import GradingError
from .routers import attempts_router, grading_router, quizzes_router
from .utils.dependencies import (
    build_memory_container, build_mongo_container, set_container, storage_backend
)

# Setup logging
logging.basicConfig(
    level=logging.INFO if not settings.DEBUG else logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"Starting {settings.APP_NAME} (storage: {storage_backend()})...")

    if settings.use_memory_storage:
        logger.warning("Memory storage enabled: attempts are not persisted")
        set_container(build_memory_container())
    else:
        db = init_db()
        set_container(build_mongo_container(db))

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.APP_NAME}...")
    set_container(None)
    close_db()


# Create FastAPI app
app = FastAPI(
    title="Grading Service - Micro Learning System",
    description="Quiz attempts, automatic scoring and manual grading",
    version=settings.VERSION,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(GradingError)
async def grading_error_handler(request: Request, exc: GradingError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.name}: {exc.detail}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.name}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.name, "detail": exc.detail}
    )


# Include routers
app.include_router(quizzes_router)
app.include_router(attempts_router)
app.include_router(grading_router)


# Health check endpoint
@app.get("/health")
async def health_check():
    if settings.use_memory_storage:
        db_status = "memory"
    else:
        db_status = "connected" if ping() else "disconnected"

    return {
        "status": "healthy",
        "service": settings.APP_ID,
        "version": settings.VERSION,
        "database": db_status
    }


@app.get("/")
async def root():
    return {
        "message": "Grading Service - Micro Learning System",
        "docs": "/docs",
        "health": "/health"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "grading_service.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )
