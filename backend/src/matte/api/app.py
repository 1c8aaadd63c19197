"""FastAPI application."""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from matte.auth.dependencies import caller_dependency
from matte.auth.endpoints import create_auth_router
from matte.auth.types import CallerIdentity
from matte.errors import (
    AccessDenied,
    FieldIssue,
    LifecycleConflict,
    RecordNotFound,
    RecordValidationError,
)
from matte.framework import FrameworkConfig, Matte
from matte.records.repository import EntityRepository
from matte.schema.types import SYSTEM_COLUMNS, EntityDefinition

logger = logging.getLogger(__name__)

_TRUE_STRINGS = {"true", "1", "yes"}
_FALSE_STRINGS = {"false", "0", "no"}


class CreateRequest(BaseModel):
    """Request body for create operations."""

    data: dict[str, Any]


class UpdateRequest(BaseModel):
    """Request body for update operations."""

    data: dict[str, Any]


def create_app(framework: Matte) -> FastAPI:
    """Create the HTTP API for a framework instance.

    The framework is started on application startup (if it is not already)
    and closed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        framework.start()
        yield
        framework.close()

    app = FastAPI(title="Matte API", lifespan=lifespan)
    app.state.framework = framework

    # CORS for frontend dev server
    app.add_middleware(
        CORSMiddleware,
        allow_origins=os.environ.get("MATTE_CORS_ORIGINS", "http://localhost:5173").split(","),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_error_handlers(app)
    app.include_router(create_auth_router(framework.auth))

    current_caller = caller_dependency(framework.auth)

    def resolve(route: str) -> EntityRepository:
        entity = framework.registry.get_by_route(route)
        if entity is None:
            raise HTTPException(404, f"Entity '{route}' not found")
        return framework.repository(entity.name)

    # --- Metadata Endpoints ---

    @app.get("/api/metadata")
    async def list_metadata() -> dict[str, Any]:
        """List all registered entities with their fields and layout."""
        return {"entities": [entity.to_dict() for entity in framework.registry.all()]}

    @app.get("/api/metadata/{name}")
    async def get_metadata(name: str) -> dict[str, Any]:
        """Full metadata for one entity, looked up by name or route."""
        entity = framework.registry.get(name) or framework.registry.get_by_route(name)
        if entity is None:
            raise HTTPException(404, f"Entity '{name}' not found")
        return entity.to_dict()

    # --- CRUD Endpoints ---

    @app.get("/api/{route}")
    async def list_records(
        route: str,
        request: Request,
        caller: CallerIdentity = Depends(current_caller),
    ) -> dict[str, Any]:
        """List records; query parameters are equality filters."""
        repo = resolve(route)
        filters = parse_filters(repo.entity, dict(request.query_params))
        return {"data": repo.find_all(caller, filters)}

    @app.post("/api/{route}", status_code=201)
    async def create_record(
        route: str,
        body: CreateRequest,
        caller: CallerIdentity = Depends(current_caller),
    ) -> dict[str, Any]:
        """Create a record."""
        repo = resolve(route)
        return {"data": repo.create(body.data, caller)}

    @app.get("/api/{route}/{id}")
    async def get_record(
        route: str,
        id: str,
        caller: CallerIdentity = Depends(current_caller),
    ) -> dict[str, Any]:
        """Get a single record."""
        repo = resolve(route)
        return {"data": repo.find_by_id(id, caller)}

    @app.put("/api/{route}/{id}")
    async def update_record(
        route: str,
        id: str,
        body: UpdateRequest,
        caller: CallerIdentity = Depends(current_caller),
    ) -> dict[str, Any]:
        """Update a record."""
        repo = resolve(route)
        return {"data": repo.update(id, body.data, caller)}

    @app.delete("/api/{route}/{id}")
    async def delete_record(
        route: str,
        id: str,
        caller: CallerIdentity = Depends(current_caller),
    ) -> dict[str, Any]:
        """Delete a record."""
        repo = resolve(route)
        repo.delete(id, caller)
        return {"success": True}

    return app


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AccessDenied)
    async def access_denied(request: Request, exc: AccessDenied) -> JSONResponse:
        if exc.authenticated:
            return JSONResponse(status_code=403, content={"detail": exc.message})
        return JSONResponse(
            status_code=401,
            content={"detail": exc.message},
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(RecordNotFound)
    async def not_found(request: Request, exc: RecordNotFound) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": "Record not found"})

    @app.exception_handler(RecordValidationError)
    async def invalid_record(request: Request, exc: RecordValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={
                "detail": str(exc),
                "errors": [issue.to_dict() for issue in exc.issues],
            },
        )

    @app.exception_handler(LifecycleConflict)
    async def lifecycle_conflict(request: Request, exc: LifecycleConflict) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": str(exc)})


def parse_filters(entity: EntityDefinition, params: dict[str, str]) -> dict[str, Any]:
    """Convert query string values to the types of the fields they filter.

    Raises:
        RecordValidationError: A value cannot be converted to its field's type
    """
    filters: dict[str, Any] = {}
    issues = []
    for key, raw in params.items():
        field = entity.schema.get(key)
        if field is None or key in SYSTEM_COLUMNS:
            filters[key] = raw
            continue
        if field.type == "number":
            try:
                filters[key] = float(raw)
            except ValueError:
                issues.append(FieldIssue(f"{key} must be a number", "INVALID_NUMBER", key))
        elif field.type == "boolean":
            lowered = raw.lower()
            if lowered in _TRUE_STRINGS:
                filters[key] = True
            elif lowered in _FALSE_STRINGS:
                filters[key] = False
            else:
                issues.append(FieldIssue(f"{key} must be true or false", "INVALID_BOOLEAN", key))
        else:
            filters[key] = raw
    if issues:
        raise RecordValidationError(issues)
    return filters


def create_app_from_env() -> FastAPI:
    """App factory for uvicorn: configuration and entities from the environment."""
    # Metadata lives next to /backend when run from there
    cwd = Path.cwd()
    base_path = cwd.parent if cwd.name == "backend" else cwd

    framework = Matte(FrameworkConfig.from_env(base_path))
    loaded = framework.load_metadata()
    logger.info("Loaded %d entities from %s", len(loaded), framework.config.metadata_path)
    return create_app(framework)
