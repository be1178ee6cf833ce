"""FastAPI application entry point."""

from __future__ import annotations

import logging
import logging.handlers
import os
import sys
import time
import uuid

from quizsmith.core.config import settings

# ── Logging configuration (done once, before any app imports) ─

os.makedirs(settings.LOG_DIR, exist_ok=True)

_fmt = logging.Formatter("%(asctime)s %(name)s %(levelname)s %(message)s")
_stream_handler = logging.StreamHandler(sys.stdout)
_stream_handler.setFormatter(_fmt)
_file_handler = logging.handlers.RotatingFileHandler(
    os.path.join(settings.LOG_DIR, "quizsmith.log"), maxBytes=5 * 1024 * 1024, backupCount=3
)
_file_handler.setFormatter(_fmt)

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    handlers=[_stream_handler, _file_handler],
)
# Quieten noisy third-party loggers
for _noisy in ("httpx", "httpcore", "openai", "uvicorn.access"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from quizsmith import __version__
from quizsmith.routes.health import router as health_router
from quizsmith.routes.quiz import router as quiz_router

logger = logging.getLogger("main")


# ── App ───────────────────────────────────────────────────


app = FastAPI(title="Quizsmith API", version=__version__)


# ── Middleware ────────────────────────────────────────────


@app.middleware("http")
async def log_requests(request, call_next):
    request_id = uuid.uuid4().hex[:8]
    request.state.request_id = request_id
    start = time.time()
    try:
        response = await call_next(request)
        dt = time.time() - start
        logger.info("%s %s %s %.2fs [%s]", request.method, request.url.path, response.status_code, dt, request_id)
        response.headers["X-Request-ID"] = request_id
        return response
    except Exception as e:
        dt = time.time() - start
        logger.error("%s %s ERROR %s %.2fs [%s]", request.method, request.url.path, type(e).__name__, dt, request_id)
        raise


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Error handlers ────────────────────────────────────────


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    request_id = getattr(request.state, "request_id", "unknown")
    logger.exception("Unhandled %s [request_id=%s]", type(exc).__name__, request_id)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "request_id": request_id},
    )


# ── Routes ────────────────────────────────────────────────

app.include_router(health_router, tags=["health"])
app.include_router(quiz_router, tags=["quiz"])

logger.info(
    "Quizsmith %s started (environment=%s, llm=%s)",
    __version__,
    settings.ENVIRONMENT,
    "offline" if settings.LLM_OFFLINE or not settings.OPENAI_API_KEY else "live",
)


def run() -> None:
    """Serve the API with uvicorn (``quizsmith`` console script)."""
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000, log_config=None)


if __name__ == "__main__":
    run()
