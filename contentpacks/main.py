import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# ✅ Import All API Routes
from contentpacks.api.routes import billing_webhook, content, content_packs, health

from contentpacks.core.config import CORS_ORIGINS, LOG_DIR, LOG_LEVEL, RUN_MIGRATIONS
from contentpacks.core.errors import ContentPackError, InternalError
from contentpacks.core.logging_config import sanitize_log_data, setup_logging
from contentpacks.db.migrate import run_migrations
from contentpacks.services.default_pack import get_default_pack

setup_logging(LOG_LEVEL, LOG_DIR)
logger = logging.getLogger(__name__)

STATUS_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    413: "PAYLOAD_TOO_LARGE",
    422: "BAD_REQUEST",
    500: "INTERNAL_SERVER_ERROR",
    503: "SERVICE_UNAVAILABLE",
}


def error_response(status_code: int, code: str, message: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": code,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
        headers=headers,
    )


# ============================================
# ✅ FASTAPI APP INIT
# ============================================

app = FastAPI(title="Content Pack Service")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Authorization", "Content-Type", "Idempotency-Key"],
)


# ============================================
# ✅ ERROR HANDLERS
# ============================================

@app.exception_handler(ContentPackError)
async def content_pack_error_handler(request: Request, exc: ContentPackError):
    if exc.status_code >= 500:
        logger.error(f"Request failed: path={request.url.path}, code={exc.code}, message={exc.message}")
    else:
        logger.info(f"Request rejected: path={request.url.path}, code={exc.code}, message={exc.message}")
    return error_response(exc.status_code, exc.code, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    details = ", ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
    )
    return error_response(400, "BAD_REQUEST", f"Invalid request: {details}")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    code = STATUS_CODES.get(exc.status_code, "ERROR")
    return error_response(exc.status_code, code, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"Unhandled error: method={request.method}, path={request.url.path}, "
        f"headers={sanitize_log_data(dict(request.headers))}",
        exc_info=exc,
    )
    error = InternalError()
    return error_response(error.status_code, error.code, error.message)


# ============================================
# ✅ REGISTER ALL ROUTERS
# ============================================

app.include_router(content.router)
app.include_router(content_packs.router)
app.include_router(billing_webhook.router)
app.include_router(health.router)


@app.on_event("startup")
def on_startup():
    if RUN_MIGRATIONS:
        run_migrations()
    # Fail fast if the bundled default pack does not validate
    get_default_pack()


# ============================================
# ✅ HEALTH CHECK ROOT ENDPOINT
# ============================================

@app.get("/")
def root():
    return {"status": "Content Pack Service running"}
