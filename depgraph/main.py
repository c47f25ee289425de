import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from depgraph.config import get_settings
from depgraph.utils.db import get_db, engine, Base
from depgraph.models.graph_schemas import GraphResponse
from depgraph.models.repo import ProjectCreate, ProjectOut
from depgraph.services.errors import (
    GraphRequestError, MissingParameterError, AnalysisFailedError,
)
from depgraph.services.graph_service import GraphService
from depgraph.services.project_service import ProjectService

settings = get_settings()

# Setup Logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("depgraph")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: Ensure DB tables exist
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Local fallback root: {settings.LOCAL_SOURCE_ROOT or '<none>'}")
    yield
    # Shutdown
    await engine.dispose()

app = FastAPI(
    title="Dependency Graph API",
    description="Builds file-level import graphs of JS/TS projects for visualization.",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_body(kind: str, detail: str, exc: BaseException | None = None) -> dict:
    body = {"error": kind, "details": detail}
    if exc is not None and not settings.is_production:
        body["trace"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return body


@app.exception_handler(GraphRequestError)
async def graph_request_error_handler(_request: Request, exc: GraphRequestError):
    cause = exc.__cause__ if exc.status_code >= 500 else None
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.kind, exc.detail, cause),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_request: Request, exc: RequestValidationError):
    """Report missing/invalid query parameters as 400 instead of 422."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    if first.get("type") == "missing":
        field = first.get("loc", ["", "parameter"])[-1]
        err = MissingParameterError(f"Missing required parameter: {field}")
        return JSONResponse(status_code=err.status_code, content=_error_body(err.kind, err.detail))

    logger.warning(f"Validation error: {exc}")
    return JSONResponse(
        status_code=400,
        content=_error_body("invalid_parameter", first.get("msg", "Invalid parameters")),
    )


@app.exception_handler(Exception)
async def global_exception_handler(_request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content=_error_body(AnalysisFailedError.kind, str(exc), exc))


@app.get("/health")
async def health_check():
    return {"status": "ok"}


# Dependency Graph Routes
@app.get("/api/graph", response_model=GraphResponse, response_model_exclude_none=True)
async def get_graph(
    projectId: str = Query(..., description="Project whose source is analyzed"),
    db: AsyncSession = Depends(get_db),
):
    """
    Returns the file-level import graph for a project.
    Nodes and edges are capped; `total` carries the untruncated counts.
    """
    if not projectId.strip():
        raise MissingParameterError("Missing required parameter: projectId")

    try:
        return await GraphService.get_graph(projectId, db)
    except GraphRequestError:
        raise
    except Exception as e:
        logger.error(f"[{projectId}] Graph analysis failed: {e}")
        raise AnalysisFailedError(str(e)) from e


# Project Records
@app.post("/projects", response_model=ProjectOut, status_code=201)
async def create_project(body: ProjectCreate, db: AsyncSession = Depends(get_db)):
    project = await ProjectService.create_project(db, body)
    return ProjectService.to_out(project)


@app.get("/projects/{project_id}", response_model=ProjectOut)
async def get_project(project_id: str, db: AsyncSession = Depends(get_db)):
    project = await ProjectService.get_project(db, project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return ProjectService.to_out(project)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("depgraph.main:app", host="127.0.0.1", port=8000, log_level=settings.LOG_LEVEL.lower())
