# app/main.py
from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, FastAPI, HTTPException, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

# --- Logging & request-id ---
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response as StarletteResponse

from app.core.config import get_cors_origins, settings
from app.core.logging import configure_logging, logger
from app.core.request_id import clear_request_id, new_request_id, set_request_id

from api.routers.rss import router as rss_router

configure_logging(service_name="api", level=settings.LOG_LEVEL)

app = FastAPI(
    title="SPIEGEL RSS Headlines API",
    version=settings.APP_VERSION,
    docs_url="/documentation",
    redoc_url=None,
)


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        req_id = request.headers.get("x-request-id") or new_request_id()
        set_request_id(req_id)

        logger.info("request_started", method=request.method, path=str(request.url.path))
        try:
            response: StarletteResponse = await call_next(request)
        except Exception as exc:
            logger.error("request_exception", error=str(exc.__class__.__name__))
            clear_request_id()
            raise
        logger.info("request_ended", status_code=response.status_code)
        response.headers["X-Request-Id"] = req_id
        clear_request_id()
        return response


# --- CORS ---
# Added first so it is the outermost middleware.
_cors_origins = get_cors_origins()
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials="*" not in _cors_origins,
    allow_methods=["GET", "HEAD", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "Content-Length", "X-Request-Id"],
)

app.add_middleware(RequestIdMiddleware)


# --- Error envelope: every error is {"error": "<message>"} ---
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=dict(exc.headers or {}),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_exception", exc_info=True)
    return JSONResponse(status_code=500, content={"error": "Internal Server Error"})


# --- Health endpoints ---
@app.head("/")
async def root_head():
    return Response(status_code=200)

@app.get("/healthz")
async def healthz():
    return {"status": "healthy"}

@app.get("/health")
async def health():
    return {"ok": True}


# --- API router ---
api_router = APIRouter(prefix="/api")
api_router.include_router(rss_router)
app.include_router(api_router)


# --- Terminal frontend (static, optional) ---
STATIC_DIR = Path(settings.STATIC_DIR).resolve()
TERMINAL_PAGE = STATIC_DIR / "terminal.html"

if STATIC_DIR.is_dir():
    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")


@app.get("/", include_in_schema=False)
@app.get("/terminal", include_in_schema=False)
async def serve_terminal():
    if not TERMINAL_PAGE.is_file():
        raise HTTPException(status_code=404, detail="terminal.html not found")
    return FileResponse(str(TERMINAL_PAGE))


logger.info("routers_registered", routers=["api(rss)"], static_dir=str(STATIC_DIR), static_mounted=STATIC_DIR.is_dir())
