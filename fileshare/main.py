import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from fileshare.config import settings
from fileshare.errors import FileShareError, StorageFailure
from fileshare.middleware import ObservabilityMiddleware, RateLimitMiddleware, SecurityHeadersMiddleware
from fileshare.routers.activity import router as activity_router
from fileshare.routers.files import router as files_router
from fileshare.routers.health import router as health_router
from fileshare.routers.share import router as share_router
from fileshare.telemetry.logging import init_logging
from fileshare.telemetry.metrics import router as metrics_router

init_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="fileshare API")

# Trust X-Forwarded-For/Proto from the reverse proxy
app.add_middleware(ProxyHeadersMiddleware)

app.add_middleware(ObservabilityMiddleware)

# Per-IP limit for requests without an Authorization header
app.add_middleware(RateLimitMiddleware, limit_per_minute=settings.public_rate_per_min)

_allowed_origins = settings.cors_origins
app.add_middleware(
    CORSMiddleware,  # type: ignore[arg-type]
    allow_origins=(["*"] if _allowed_origins == ["*"] else _allowed_origins),
    allow_credentials=_allowed_origins != ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(SecurityHeadersMiddleware)


@app.exception_handler(FileShareError)
async def fileshare_error_handler(request: Request, exc: FileShareError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.code})


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    # read paths let SQLAlchemyError through; they map to StorageFailure here
    logger.error("storage error on %s %s: %s", request.method, request.url.path, exc.__class__.__name__)
    return JSONResponse(status_code=StorageFailure.status_code, content={"detail": StorageFailure.code})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # pydantic error objects may carry exceptions in ctx; keep the payload JSON-safe
    sanitized: list[dict] = []
    for err in exc.errors():
        e = dict(err)
        ctx = e.get("ctx")
        if isinstance(ctx, dict):
            e["ctx"] = {str(k): str(v) for k, v in ctx.items()}
        elif ctx is not None:
            e["ctx"] = str(ctx)
        if "input" in e and not isinstance(e["input"], (str, int, float, bool, type(None), list, dict)):
            e["input"] = str(e["input"])
        sanitized.append(e)
    return JSONResponse(status_code=400, content={"detail": sanitized})


app.include_router(health_router)
app.include_router(metrics_router)
app.include_router(files_router)
app.include_router(share_router)
app.include_router(activity_router)
