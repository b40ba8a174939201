"""
LLM Router Application

FastAPI application exposing the routing engine over HTTP.
This is the main entry point for running the router.

Run with:
    uvicorn llm_router.transport.app:app

Configuration is read from environment variables (see llm_router.config):
- ROUTER_ROUTES_PATH: Route definition file (default: "configs/routes.yaml")
- ROUTER_EMBEDDING_MODEL: Embedding model (default: "fake/384")
  - OpenAI: "text-embedding-3-small"
  - Azure OpenAI: "azure/my-embedding-deployment"
  - Ollama: "ollama/nomic-embed-text"
  - Google Gemini: "gemini/text-embedding-004"
  - HuggingFace: "huggingface/sentence-transformers/all-MiniLM-L6-v2"
- ROUTER_INDEX_BACKEND: "memory" or "qdrant"
- ROUTER_QDRANT_URL: Qdrant endpoint

Environment variables can be loaded from a .env file in the project root.
"""

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

# Load environment variables from .env file
load_dotenv()

from llm_router.catalog import Route
from llm_router.config import settings_from_env
from llm_router.errors import (
    EmbeddingDimensionMismatch,
    EmbeddingUnavailable,
    IndexBuildInProgress,
    IndexUnavailable,
    InvalidQuery,
    InvalidRouteDefinition,
    RouteNotFound,
    RouterError,
    RoutingCancelled,
)
from llm_router.routing import Query, RoutingDecision
from llm_router.service import RouterService, create_router_service
from llm_router.transport.schemas import (
    ErrorResponse,
    ReindexRequest,
    ReindexResponse,
    RouteList,
    RouteRequest,
)

# Configure logging
logging.basicConfig(
    level=os.getenv("ROUTER_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Global instance (created at startup)
service: RouterService | None = None

ERROR_STATUS = {
    InvalidQuery: 400,
    RouteNotFound: 404,
    IndexBuildInProgress: 409,
    InvalidRouteDefinition: 422,
    EmbeddingDimensionMismatch: 500,
    EmbeddingUnavailable: 503,
    IndexUnavailable: 503,
    RoutingCancelled: 504,
}


def _status_for(error: RouterError) -> int:
    for error_type, status in ERROR_STATUS.items():
        if isinstance(error, error_type):
            return status
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Builds the router service and, if configured, the first index generation.
    """
    global service

    # Startup
    logger.info("Starting LLM Router...")

    settings = settings_from_env()
    service = create_router_service(settings)

    if settings.build_on_startup:
        try:
            await service.builder.build_from_file(settings.routes_path)
        except RouterError as e:
            # Keep serving; readiness stays false until a reindex succeeds
            logger.error(f"Initial index build failed: {e}")

    logger.info("LLM Router started")

    yield

    # Shutdown
    logger.info("Shutting down LLM Router...")
    await service.close()
    service = None
    logger.info("LLM Router stopped")


app = FastAPI(
    title="LLM Router",
    description="Semantic nearest-neighbour routing of requests to model/provider targets",
    version="0.1.0",
    lifespan=lifespan
)


@app.exception_handler(RouterError)
async def router_error_handler(request: Request, exc: RouterError):
    status = _status_for(exc)
    if status >= 500:
        logger.warning(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=status,
        content=ErrorResponse(error=exc.code, message=str(exc)).model_dump(),
    )


def _service() -> RouterService:
    if service is None:
        raise IndexUnavailable("Router not initialized")
    return service


@app.post("/v1/route", response_model=RoutingDecision)
async def route(body: RouteRequest) -> RoutingDecision:
    """
    Route a query to a model/provider target.

    Returns a decision with outcome "matched" or "no_confident_match".
    """
    return await _service().engine.route(
        Query(text=body.text, vector=body.vector),
        k=body.k,
        confidence_threshold=body.confidence_threshold,
    )


@app.get("/v1/routes", response_model=RouteList)
async def list_routes() -> RouteList:
    """List routes of the live catalog generation."""
    snapshot = _service().catalog.snapshot
    return RouteList(generation=snapshot.generation, routes=snapshot.list_routes())


@app.get("/v1/routes/{name}", response_model=Route)
async def get_route(name: str) -> Route:
    """Get one route of the live catalog generation."""
    return _service().catalog.get(name)


@app.post("/v1/admin/reindex", response_model=ReindexResponse)
async def reindex(body: ReindexRequest | None = None) -> ReindexResponse:
    """
    Rebuild the index and publish a new catalog generation.

    Uses the routes in the body when given, else re-reads the routes file.
    Fails with 409 if a build is already running.
    """
    svc = _service()
    if body is not None and body.routes is not None:
        report = await svc.builder.build(body.routes, wait=False)
    else:
        report = await svc.builder.build_from_file(svc.settings.routes_path, wait=False)
    return ReindexResponse(
        generation=report.generation,
        collection=report.collection,
        dimension=report.dimension,
        routes=report.routes,
        points=report.points,
        verified=report.verified,
        duration_ms=report.duration_ms,
    )


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    snapshot = service.catalog.snapshot if service else None
    return {
        "status": "healthy" if snapshot and snapshot.is_loaded else "starting",
        "generation": snapshot.generation if snapshot else 0,
        "routes": snapshot.route_count if snapshot else 0,
        "vectors": snapshot.vector_count if snapshot else 0,
        "collection": snapshot.collection if snapshot else None,
        "building": service.builder.building if service else False,
    }


@app.get("/ready")
async def readiness_check():
    """Ready once a catalog generation has been published."""
    if service is None or not service.catalog.is_loaded:
        return PlainTextResponse("not ready", status_code=503)
    return PlainTextResponse("ok")
