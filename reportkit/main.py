"""
FastAPI entry point — mounts the export, action and Power Query routers,
CORS, the structured error handler and the market cache warmer.

Run with: uvicorn reportkit.main:app
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from reportkit import scheduler
from reportkit.core import config
from reportkit.core.errors import ApiError
from reportkit.routers import actions, download, powerquery

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s — %(message)s",
)
logger = logging.getLogger("reportkit")


# ---------------------------------------------------------------------------
# Lifespan — start/stop the cache warmer with the app
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting %s export service…", config.PRODUCT_NAME)
    scheduler.start()
    yield
    scheduler.stop()
    logger.info("%s export service stopped.", config.PRODUCT_NAME)


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(
    title=f"{config.PRODUCT_NAME} Export API",
    description="Crypto market data exports (xlsx/csv/json/iqy) and Power Query workbooks",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    return JSONResponse(exc.payload, status_code=exc.status_code, headers=exc.headers)


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
app.include_router(download.router)
app.include_router(actions.router)
app.include_router(powerquery.router)


@app.get("/api/health")
def health():
    return {"status": "ok", "service": "reportkit"}
