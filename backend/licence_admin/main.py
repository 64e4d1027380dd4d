"""FastAPI application factory and HTTP controllers.

This module defines the HTTP endpoints of the licence application admin
backend. Controllers are intentionally thin: they accept requests,
delegate to services, and return JSON responses. Errors raised by the
services are turned into ``{"error": <message>}`` bodies by the exception
handlers registered in `create_app`.

Endpoints implemented (all under ``API_PREFIX``):
- GET /test
- GET /health
- GET /applications
- POST /applications
- GET /applications/stats
- GET /applications/stats/summary
- GET /applications/test/data
- GET /applications/user/{sub}
- GET /applications/{id}
- PATCH /applications/{id}/status
- PUT /applications/{id}
- GET/POST /licence-categories
- GET/PUT/DELETE /licence-categories/{code}
"""

import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import models, services
from .config import settings
from .database import Database, get_database
from .errors import LicenceAdminError, NotFoundError, StorageError, ValidationError
from .schema import initialize_schema
from .schemas import (
    ApplicationIn,
    ApplicationUpdateIn,
    LicenceCategoryIn,
    LicenceCategoryUpdateIn,
    StatusUpdateIn,
)
from .utils.fixtures import sample_applications

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

logger = logging.getLogger("licence_admin.api")
if not logger.handlers:
    logging.basicConfig(level=settings.LOG_LEVEL, format=LOG_FORMAT)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _error(status_code: int, message: str, headers=None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


diagnostics_router = APIRouter()
applications_router = APIRouter()
categories_router = APIRouter()


@diagnostics_router.get("/test")
def backend_test():
    """Liveness probe that does not touch the database."""
    return {"message": "Backend is working!", "timestamp": _now()}


@diagnostics_router.get("/health")
def health():
    return {"status": "OK", "timestamp": _now(), "service": "Application Admin API"}


@applications_router.get("")
def list_applications(
    page: int = 1,
    limit: int = 100,
    status: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: str = Query("created_at", alias="sortBy"),
    sort_order: str = Query("DESC", alias="sortOrder"),
    db: Database = Depends(get_database),
):
    """List applications with filtering, search, sorting and pagination.

    `status=all` disables the status filter. Unknown sort columns fall
    back to `created_at`.
    """
    svc = services.ApplicationService(db)
    return svc.list_applications(
        page=page, limit=limit, status=status, search=search, sort_by=sort_by, sort_order=sort_order
    )


@applications_router.post("", status_code=201)
def create_application(payload: ApplicationIn, db: Database = Depends(get_database)):
    """Submit a new application; duplicates of `application_id` are rejected."""
    return services.ApplicationService(db).save_application(payload.model_dump(by_alias=True))


@applications_router.get("/stats")
def application_stats(db: Database = Depends(get_database)):
    return {"stats": services.ApplicationService(db).get_application_stats()}


@applications_router.get("/stats/summary")
def application_stats_summary(db: Database = Depends(get_database)):
    """Return the total and the count of applications per status."""
    return services.ApplicationService(db).get_status_summary()


@applications_router.get("/test/data")
def application_test_data():
    """Fixed sample data for front-end development; no database access."""
    return sample_applications()


@applications_router.get("/user/{sub}")
def user_applications(
    sub: str,
    page: int = 1,
    limit: int = 10,
    status: Optional[str] = None,
    db: Database = Depends(get_database),
):
    return services.ApplicationService(db).list_user_applications(sub, page=page, limit=limit, status=status)


@applications_router.get("/{identifier}")
def get_application(identifier: str, db: Database = Depends(get_database)):
    """Look up an application by application id, numeric id or medical certificate id."""
    application = services.ApplicationService(db).find_application(identifier)
    if not application:
        raise HTTPException(status_code=404, detail="Application not found")
    return application


@applications_router.patch("/{identifier}/status")
def update_application_status(identifier: str, payload: StatusUpdateIn, db: Database = Depends(get_database)):
    if not payload.status:
        raise HTTPException(status_code=400, detail="Status is required")
    if payload.status not in models.APPLICATION_STATUSES:
        raise HTTPException(status_code=400, detail="Invalid status value")
    application = services.ApplicationService(db).set_status(identifier, payload.status)
    if not application:
        raise HTTPException(status_code=404, detail="Application not found")
    return {"message": "Application status updated successfully", "application": application}


@applications_router.put("/{identifier}")
def update_application(identifier: str, payload: ApplicationUpdateIn, db: Database = Depends(get_database)):
    """Partially update an application; only supplied fields are written."""
    fields = payload.model_dump(exclude_unset=True)
    if not fields:
        raise HTTPException(status_code=400, detail="No valid fields to update")
    application = services.ApplicationService(db).update_application(identifier, fields)
    if not application:
        raise HTTPException(status_code=404, detail="Application not found")
    return {"message": "Application updated successfully", "application": application}


@categories_router.get("")
def list_licence_categories(
    include_inactive: bool = Query(False, alias="includeInactive"),
    db: Database = Depends(get_database),
):
    return services.LicenceCategoryService(db).get_licence_categories(include_inactive=include_inactive)


@categories_router.get("/{category_code}")
def get_licence_category(category_code: str, db: Database = Depends(get_database)):
    return services.LicenceCategoryService(db).get_licence_category_by_code(category_code)


@categories_router.post("", status_code=201)
def add_licence_category(payload: LicenceCategoryIn, db: Database = Depends(get_database)):
    return services.LicenceCategoryService(db).add_licence_category(payload.model_dump())


@categories_router.put("/{category_code}")
def update_licence_category(
    category_code: str, payload: LicenceCategoryUpdateIn, db: Database = Depends(get_database)
):
    return services.LicenceCategoryService(db).update_licence_category(
        category_code, payload.model_dump(exclude_unset=True)
    )


@categories_router.delete("/{category_code}")
def delete_licence_category(category_code: str, db: Database = Depends(get_database)):
    """Soft delete: the category is marked inactive and stays readable by code."""
    category = services.LicenceCategoryService(db).delete_licence_category(category_code)
    return {"message": "Licence category deleted successfully", "category": category}


async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception(
            "request_failed %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": elapsed_ms,
                    "client": request.client.host if request.client else "unknown",
                },
                ensure_ascii=True,
            ),
        )
        raise
    response.headers["X-Request-ID"] = req_id
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
    logger.info(
        "request_done %s",
        json.dumps(
            {
                "request_id": req_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
                "client": request.client.host if request.client else "unknown",
            },
            ensure_ascii=True,
        ),
    )
    return response


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(LicenceAdminError)
    async def domain_error_handler(request: Request, exc: LicenceAdminError):
        if isinstance(exc, ValidationError):
            return _error(400, str(exc))
        if isinstance(exc, NotFoundError):
            return _error(404, str(exc))
        if isinstance(exc, StorageError):
            logger.error("Storage failure on %s: %s", request.url.path, exc)
        return _error(500, str(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        # unmatched paths arrive with Starlette's generic detail
        if exc.status_code == 404 and exc.detail == "Not Found":
            return _error(404, "Route not found")
        return _error(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
        )
        return _error(400, f"Invalid request: {problems}")

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s", request.url.path)
        return _error(500, "Internal server error")


def create_app(database: Optional[Database] = None) -> FastAPI:
    """Build the application around `database` (a new pooled `Database` by default).

    The schema is initialised when the application starts; a failure
    there aborts startup.
    """
    database = database or Database()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await run_in_threadpool(initialize_schema, app.state.database)
        yield
        app.state.database.dispose()

    app = FastAPI(title="Licence Application Admin API", lifespan=lifespan)
    app.state.database = database
    app.middleware("http")(request_context_middleware)
    _register_exception_handlers(app)

    prefix = settings.API_PREFIX
    app.include_router(diagnostics_router, prefix=prefix)
    app.include_router(applications_router, prefix=f"{prefix}/applications")
    app.include_router(categories_router, prefix=f"{prefix}/licence-categories")
    return app


app = create_app()
