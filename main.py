"""
LessonForge Pipeline Backend - FastAPI Application

Main entry point for the outline-to-lesson generation API.
Pipeline logic lives in content_pipeline/ and shared infrastructure in shared/.
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import get_settings, validate_required_settings
from database import get_db_manager
from content_pipeline.api import routes as pipeline_routes
from content_pipeline.services.recovery import WorkflowRecoveryService
from content_pipeline.workflows.dispatcher import get_dispatcher
from shared.api import health

logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="LessonForge Pipeline Backend",
    description="Outline validation, content block generation and lesson code generation pipeline",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router)
app.include_router(pipeline_routes.router)


@app.on_event("startup")
async def startup_event():
    """Validate configuration and database, then resume interrupted workflows."""
    logger.info("Starting LessonForge Pipeline Backend...")
    validate_required_settings()

    db_manager = get_db_manager()
    if not db_manager.health_check():
        logger.warning("Database health check failed on startup")
        return

    db_manager.create_tables()
    logger.info("Database connection healthy")

    if get_settings().resume_on_startup:
        with db_manager.session_scope() as session:
            WorkflowRecoveryService(session, get_dispatcher()).resume_incomplete()

    logger.info("Application started successfully")


@app.on_event("shutdown")
async def shutdown_event():
    """Wait for running workflows before the process exits."""
    get_dispatcher().shutdown(timeout=30)
    get_db_manager().close()
    logger.info("Application stopped")


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True
    )
