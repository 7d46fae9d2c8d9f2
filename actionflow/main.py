"""
Actionflow - FastAPI Application Entry Point.

An async execution engine for visual action workflows.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from actionflow.config import settings
from actionflow.api.routes import actions, websocket, workflows
from actionflow.workflows.story_generator import DEMO_GRAPH_ID, register_story_generator_workflow


# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    await register_story_generator_workflow()

    yield

    # Shutdown
    logger.info("Shutting down...")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="""
## Actionflow API

Build workflows from typed action nodes and run them from their trigger.

### Features
- **Nodes**: trigger, AI generation, HTTP request, log, conditional and generic actions
- **Edges**: connection rules checked as you connect nodes
- **Branching**: conditional nodes follow their `true` or `false` edges
- **Retries**: per-node retry count with linear backoff
- **Error policy**: per-node continue-on-error, failures reach successors as input
- **Real-time Updates**: WebSocket streaming of node status changes

### Quick Start
1. List node kinds: `GET /actions`
2. Create a workflow: `POST /workflows/create`
3. Run it: `POST /workflows/{graph_id}/run`
4. Watch node statuses: `GET /workflows/{graph_id}/nodes`

### Demo Workflow
A pre-registered story generator is available with ID: `story-generator-demo`
    """,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include routers
app.include_router(workflows.router)
app.include_router(actions.router)
app.include_router(websocket.router)


# ============================================================
# Root Endpoints
# ============================================================

@app.get("/", tags=["Root"])
async def root():
    """API root - returns basic info and links."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "description": "An execution engine for visual action workflows",
        "docs": "/docs",
        "redoc": "/redoc",
        "endpoints": {
            "workflows": "/workflows",
            "actions": "/actions",
            "websocket_run": "/ws/workflows/{graph_id}/run",
        },
        "demo_workflow": DEMO_GRAPH_ID,
    }


@app.get("/health", tags=["Root"])
async def health():
    """Health check endpoint."""
    from actionflow.storage.memory import run_storage, workflow_storage

    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "workflows_count": len(workflow_storage),
        "runs_count": len(run_storage),
    }


# ============================================================
# Error Handlers
# ============================================================

@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for unhandled errors."""
    logger.exception(f"Unhandled error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal Server Error",
            "detail": str(exc) if settings.DEBUG else "An unexpected error occurred",
        },
    )
