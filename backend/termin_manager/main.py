import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from termin_manager.core.errors import StoreError, Unavailable
from termin_manager.core.logging import configure_logging
from termin_manager.core.settings import settings

from termin_manager.api.teams import router as teams_router
from termin_manager.api.sessions import router as sessions_router
from termin_manager.api.appointments import router as appointments_router
from termin_manager.api.notifications import router as notifications_router
from termin_manager.api.stream import router as stream_router

VERSION = "0.1.0"

configure_logging()
logger = logging.getLogger(__name__)

# prod: no interactive docs
_DOCS = settings.ENV != "prod"

app = FastAPI(
    title=settings.APP_NAME,
    version=VERSION,
    docs_url="/docs" if _DOCS else None,
    redoc_url="/redoc" if _DOCS else None,
    openapi_url="/openapi.json" if _DOCS else None,
)

app.include_router(teams_router)
app.include_router(sessions_router)
app.include_router(appointments_router)
app.include_router(notifications_router)
app.include_router(stream_router)


@app.exception_handler(StoreError)
def store_error_handler(request: Request, exc: StoreError):
    headers = None
    if isinstance(exc, Unavailable):
        headers = {"Retry-After": str(exc.retry_after_s)}
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_dict()}, headers=headers)


@app.exception_handler(RequestValidationError)
def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"detail": {"error_code": "VALIDATION_ERROR", "errors": jsonable_encoder(exc.errors())}},
    )


@app.exception_handler(SQLAlchemyError)
def db_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("DB error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=503,
        content={"detail": {"error_code": "UNAVAILABLE", "message": "Database unavailable"}},
        headers={"Retry-After": str(Unavailable.retry_after_s)},
    )


@app.get("/health")
def health():
    return {
        "ok": True,
        "service": "termin-manager",
        "env": settings.ENV,
        "version": VERSION,
    }
