"""
FastAPI application entry point.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pipeline_sync import __version__
from pipeline_sync.api import ci, deployments, monitors, webhooks
from pipeline_sync.config import get_settings
from pipeline_sync.middleware.logging import RequestLoggingMiddleware
from pipeline_sync.services.container import ServiceContainer
from pipeline_sync.utils.logging import get_logger, setup_logging

settings = get_settings()

# Configure structured logging
setup_logging(settings.log_level)

logger = get_logger(__name__)

# Create FastAPI application
app = FastAPI(
    title="Pipeline Board Sync",
    description="Mirrors GitHub, Jenkins and Docker pipeline state onto a monday.com board",
    version=__version__
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add request logging middleware
app.add_middleware(RequestLoggingMiddleware)


@app.get("/health")
async def health_check():
    """Health check endpoint for container orchestration."""
    container = getattr(app.state, "container", None)
    return {
        "status": "healthy",
        "version": __version__,
        "running_monitors": container.registry.running_count() if container else 0,
    }


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Pipeline Board Sync API",
        "version": __version__,
        "docs": "/docs",
        "endpoints": {
            "github_webhook": "/webhooks/github",
            "deploy_notification": "/api/docker/deploy-notification",
            "deploy_failure": "/api/docker/deploy-failure",
            "monitors": "/api/monitors",
        },
    }


# Include API routers
app.include_router(webhooks.router)
app.include_router(deployments.router)
app.include_router(ci.router)
app.include_router(monitors.router)


@app.on_event("startup")
async def startup_event():
    """Build and connect services on application startup."""
    logger.info("Starting Pipeline Board Sync API")

    container = ServiceContainer.from_settings(get_settings())
    await container.startup()
    app.state.container = container
    logger.info("Services initialized")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup services on application shutdown."""
    logger.info("Shutting down Pipeline Board Sync API")

    container = getattr(app.state, "container", None)
    if container is not None:
        await container.close()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
