import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.cache.layer import CacheLayer
from app.core.config import get_settings
from app.core.errors import ErrorKind, ServiceError
from app.core.i18n import translator_for
from app.database import create_db_and_tables, engine
from app.routers import projects, tasks

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if settings.create_tables:
        await create_db_and_tables()

    app.state.cache = CacheLayer(settings)
    await app.state.cache.init_cache()
    yield
    await app.state.cache.close()
    await engine.dispose()


app = FastAPI(
    title="Project & Task Management API",
    description="Async project and task management API with SQLModel and a Redis read-through cache",
    swagger_ui_parameters={"displayRequestDuration": True},
    version="1.0.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(projects.router)
app.include_router(tasks.router)


STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CACHE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _message_key(exc: ServiceError) -> str:
    if exc.kind is ErrorKind.NOT_FOUND:
        return f"{exc.entity}NotFound" if exc.entity in ("project", "task") else "notFound"
    if exc.kind is ErrorKind.CONFLICT:
        return "projectHasTasks"
    if exc.kind is ErrorKind.VALIDATION:
        return "validationError"
    return "cacheError"


def _error_response(
    request: Request, status_code: int, key: str, data=None
) -> JSONResponse:
    body = translator_for(request).respond(data, key, status_code)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    status_code = STATUS_BY_KIND[exc.kind]
    data = None
    if exc.kind is ErrorKind.VALIDATION:
        data = {"errors": [{"field": exc.entity, "message": exc.detail}]}
    return _error_response(request, status_code, _message_key(exc), data)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in err["loc"]),
            "message": err["msg"],
        }
        for err in exc.errors()
    ]
    return _error_response(
        request, status.HTTP_400_BAD_REQUEST, "validationError", {"errors": errors}
    )


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning(f"Integrity error: {exc.orig}")
    return _error_response(request, status.HTTP_409_CONFLICT, "integrityError")


@app.exception_handler(OperationalError)
async def database_error_handler(request: Request, exc: OperationalError):
    logger.error(f"Database unavailable: {exc.orig}")
    return _error_response(
        request, status.HTTP_503_SERVICE_UNAVAILABLE, "databaseConnectionError"
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return _error_response(request, exc.status_code, "notFound")
    body = translator_for(request).respond(None, "serverError", exc.status_code)
    body["message"] = str(exc.detail)
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return _error_response(
        request, status.HTTP_500_INTERNAL_SERVER_ERROR, "serverError"
    )


@app.get("/")
async def root():
    return {
        "message": "Welcome to Project & Task Management API",
        "docs": "/docs",
        "version": "1.0.0",
    }


@app.get("/health")
async def health_check(request: Request):
    cache: CacheLayer = request.app.state.cache
    return {"status": "healthy", "cache": cache.get_stats()}
