import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from predictleague.api.router import router
from predictleague.core.config import get_settings
from predictleague.core.errors import AppError
from predictleague.db.session import SessionLocal
from predictleague.services.chat import ChatRoomRegistry

logger = logging.getLogger(__name__)

settings = get_settings()
logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

origin_regex = settings.CORS_ORIGIN_REGEX.strip() if settings.CORS_ORIGIN_REGEX else None
if origin_regex == "":
    origin_regex = None

app = FastAPI(title="Predict League", version="1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_origin_regex=origin_regex,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.chat_rooms = ChatRoomRegistry()
app.include_router(router)


def _error_body(message: str, detail: str, exc: Exception | None = None) -> dict:
    body = {"success": False, "message": message, "detail": detail}
    if exc is not None and not settings.is_production:
        body["error"] = {
            "message": str(exc),
            "traceback": traceback.format_exception(type(exc), exc, exc.__traceback__),
        }
    return body


@app.exception_handler(AppError)
def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("app_error method=%s path=%s code=%s", request.method, request.url.path, exc.code)
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message, exc.code, exc))
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message, exc.code))


@app.exception_handler(StarletteHTTPException)
def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    detail = exc.detail if isinstance(exc.detail, str) else "http_error"
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(detail, detail),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    body = _error_body("Invalid or missing input", "validation_error")
    body["errors"] = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
    return JSONResponse(status_code=422, content=body)


@app.exception_handler(OperationalError)
def handle_db_unavailable(request: Request, exc: OperationalError) -> JSONResponse:
    logger.warning(
        "db_unavailable method=%s path=%s detail=%s",
        request.method,
        request.url.path,
        str(exc),
    )
    return JSONResponse(status_code=503, content=_error_body("Database unavailable", "db_unavailable", exc))


@app.exception_handler(IntegrityError)
def handle_integrity_error(request: Request, exc: IntegrityError) -> JSONResponse:
    detail = "db_integrity_error"
    orig = getattr(exc, "orig", None)
    constraint = getattr(getattr(orig, "diag", None), "constraint_name", None)
    if constraint:
        detail = f"db_integrity_error:{constraint}"
    logger.warning("db_integrity_error path=%s detail=%s", request.url.path, detail)
    return JSONResponse(status_code=409, content=_error_body("Conflicting data", detail, exc))


@app.exception_handler(Exception)
def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unexpected_error method=%s path=%s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=_error_body("Server error", "server_error", exc))


@app.get("/health")
def health() -> dict:
    return {"ok": True, "env": settings.APP_ENV}


@app.get("/health/db")
def health_db():
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
        return {"ok": True, "env": settings.APP_ENV, "db": "up"}
    except OperationalError as exc:
        logger.warning("health_db_unavailable detail=%s", str(exc))
        return JSONResponse(
            status_code=503,
            content={
                "ok": False,
                "env": settings.APP_ENV,
                "db": "down",
                "detail": "db_unavailable",
            },
        )
