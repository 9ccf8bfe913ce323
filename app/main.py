from __future__ import annotations

import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import state
from app.api.router import api_router

logger = logging.getLogger(__name__)

logging.basicConfig(
    level=os.environ.get("RACE_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Grand Tour race server")


@app.on_event("startup")
def _startup_init_state() -> None:
    # 1) DB path from the environment (no default)
    # 2) schema init + integrity validate once (per db_path)
    db_path = os.environ.get("RACE_DB_PATH")
    if not db_path:
        raise RuntimeError("RACE_DB_PATH is required (no default db_path).")
    state.set_db_path(db_path)

    state.startup_init_state()


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def _auth_guard_middleware(request: Request, call_next):
    """Optional trainer auth guard.

    If RACE_ADMIN_TOKEN is configured, require it on state-changing API calls.
    Players still need to submit decisions and reflections without it.
    """
    required_token = (os.environ.get("RACE_ADMIN_TOKEN") or "").strip()
    if not required_token:
        return await call_next(request)

    path = request.url.path or ""
    method = (request.method or "GET").upper()
    if method != "POST" or not path.startswith("/api/"):
        return await call_next(request)

    if path == "/api/decisions" or path.endswith("/reflections"):
        return await call_next(request)

    provided = (request.headers.get("X-Admin-Token") or "").strip()
    if provided != required_token:
        return JSONResponse(status_code=401, content={"detail": "Unauthorized: invalid X-Admin-Token"})

    return await call_next(request)


@app.get("/")
async def root():
    """Health check."""
    return {"message": "Grand Tour race server", "docs": "/docs"}


app.include_router(api_router)
