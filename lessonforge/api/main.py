"""LessonForge API - skill orchestration service.

Exposes the skill registry, the workflow orchestrator and the learning
builder agent over HTTP:
- Skills: list registered skills and rank them against a request
- Workflows: create from templates, execute in the background, poll progress
- Agent: conversational entry point that routes requests to skills
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from lessonforge import __version__
from lessonforge.api.dependencies import Runtime, build_runtime
from lessonforge.api.routes import agent, skills, workflows
from lessonforge.config import load_settings

settings = load_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup: build the runtime unless one was injected
    if getattr(app.state, "runtime", None) is None:
        logger.info("Building runtime...")
        app.state.runtime = build_runtime(settings)
    runtime: Runtime = app.state.runtime
    logger.info(f"Loaded {runtime.registry.count()} skills")
    logger.info(f"Loaded {runtime.factory.templates.count()} workflow templates")
    logger.info("LessonForge API ready")
    yield
    # Shutdown
    logger.info("Shutting down LessonForge API")


def create_app(runtime: Optional[Runtime] = None) -> FastAPI:
    """Create the FastAPI app, optionally with a prebuilt runtime."""
    app = FastAPI(
        title="LessonForge API",
        description="""
## Skill Orchestration Service

Routes free-text requests to content skills and runs multi-step
workflows that build, validate and catalog educational games.

### Key Endpoints

- `GET /v1/skills` - List registered skills
- `POST /v1/skills/detect` - Rank skills for a request
- `GET /v1/workflows/templates` - List workflow templates
- `POST /v1/workflows` - Create a workflow
- `POST /v1/workflows/{id}/execute` - Start execution
- `GET /v1/workflows/{id}/progress` - Poll progress
- `POST /v1/agent/chat` - Talk to the learning builder agent
""",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.runtime = runtime

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers with /v1 prefix
    app.include_router(skills.router, prefix="/v1")
    app.include_router(workflows.router, prefix="/v1")
    app.include_router(agent.router, prefix="/v1")

    @app.get("/")
    async def root():
        """Root endpoint with API info."""
        return {
            "service": "LessonForge API",
            "version": __version__,
            "description": "Skill orchestration and workflow execution service",
            "docs": "/docs",
            "endpoints": {
                "skills": "/v1/skills",
                "workflows": "/v1/workflows",
                "templates": "/v1/workflows/templates",
                "agent": "/v1/agent/chat",
            },
        }

    @app.get("/health")
    async def health(request: Request):
        """Health check endpoint."""
        runtime: Runtime = request.app.state.runtime
        return {
            "status": "healthy",
            "skills_loaded": runtime.registry.count(),
            "templates_loaded": runtime.factory.templates.count(),
            "workflows_tracked": len(runtime.orchestrator.get_all_workflows()),
            "llm_configured": runtime.backend is not None,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "lessonforge.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
