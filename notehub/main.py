from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager, suppress
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from .admin import ensure_sheet_structure, run_sync, smoke_test
from .articles import (
    add_article,
    delete_article,
    get_article_by_id,
    get_articles,
    update_article,
)
from .auth import current_user_email, require_write_token
from .backends import make_row_store, make_slack_client
from .config import reload_settings, settings
from .credentials import load_credentials
from .drive import upload_image
from .errors import ArticleNotFound, StoreError
from .feed import get_content, get_slack_messages, search_content
from .logging_setup import RequestLogMiddleware, init_logging
from .metrics import LAT, REQS, router as metrics_router
from .models import ArticleForm, UploadResult
from .ratelimit import allow
from .resolver import ResolvedConfig, resolve_from_settings
from .scheduler import run_once, run_periodic, state as sync_state
from .slack import SlackClient
from .store import RowStore

logger = logging.getLogger(__name__)


class Health(BaseModel):
    status: str
    time: str


class ImageUpload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(..., alias="fileName")
    mime_type: str = Field(..., alias="mimeType")
    data: str = Field(..., alias="base64Data")


def get_config(request: Request) -> ResolvedConfig:
    return request.app.state.config


def get_store(request: Request) -> RowStore:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="row store not configured")
    return store


def get_slack(request: Request) -> Optional[SlackClient]:
    return getattr(request.app.state, "slack", None)


async def _sync_once(app: FastAPI) -> str:
    store = getattr(app.state, "store", None)
    slack = getattr(app.state, "slack", None)
    if store is None:
        raise RuntimeError("row store not configured")
    if slack is None:
        return "skip (no slack config)"
    return await asyncio.to_thread(run_sync, store, app.state.config, slack, settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    reload_settings()
    config = resolve_from_settings(settings)
    app.state.config = config
    try:
        app.state.store = make_row_store(settings, config)
    except StoreError as exc:
        logger.warning("row store unavailable: %s", exc)
        app.state.store = None
    app.state.slack = make_slack_client(settings, config) if config.bot_token else None

    tasks: list[asyncio.Task[None]] = []
    if settings.SYNC_ENABLED:
        tasks.append(
            asyncio.create_task(
                run_periodic(
                    lambda: _sync_once(app),
                    settings.SYNC_INTERVAL_SECONDS,
                    settings.SYNC_JITTER_SECONDS,
                    settings.SYNC_BACKOFF_MAX_SECONDS,
                )
            )
        )
    try:
        yield
    finally:
        for task in tasks:
            task.cancel()
            with suppress(asyncio.CancelledError, Exception):
                await task
        dispose = getattr(app.state.store, "dispose", None)
        if dispose is not None:
            dispose()


init_logging(settings.LOG_LEVEL)

app = FastAPI(title="NoteHub", version="0.1.0", lifespan=lifespan)
app.add_middleware(RequestLogMiddleware)
app.include_router(metrics_router())

origins = [o.strip() for o in settings.CORS_ALLOW_ORIGINS.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def _metrics_and_rate(request: Request, call_next):
    method = request.method
    path = request.url.path
    start = time.time()
    status_code = 500
    try:
        if settings.RATE_LIMIT_ENABLED:
            client_host = request.client.host if request.client else "unknown"
            if not allow(client_host, settings.RATE_LIMIT_RPS, settings.RATE_LIMIT_BURST):
                response = JSONResponse({"detail": "rate limit"}, status_code=429)
                status_code = response.status_code
                return response
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        REQS.labels(method, path, str(status_code)).inc()
        LAT.labels(method, path).observe(time.time() - start)


@app.get("/health", response_model=Health)
def health():
    return Health(status="ok", time=datetime.now(timezone.utc).isoformat())


@app.get("/me")
def me(email: str = Depends(current_user_email)):
    return {"email": email}


@app.get("/content")
def content(
    store: RowStore = Depends(get_store),
    config: ResolvedConfig = Depends(get_config),
):
    return get_content(store, config)


@app.get("/search")
def search(
    q: str = Query("", description="case-insensitive substring"),
    store: RowStore = Depends(get_store),
    config: ResolvedConfig = Depends(get_config),
):
    return search_content(store, config, q)


@app.get("/slack/messages")
def slack_messages(
    channel_id: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    store: RowStore = Depends(get_store),
    config: ResolvedConfig = Depends(get_config),
):
    return get_slack_messages(store, config.messages_sheet, channel_id, limit)


@app.get("/articles")
def list_articles(
    store: RowStore = Depends(get_store),
    config: ResolvedConfig = Depends(get_config),
):
    return get_articles(store, config.articles_sheet)


@app.get("/articles/{article_id}")
def read_article(
    article_id: str,
    store: RowStore = Depends(get_store),
    config: ResolvedConfig = Depends(get_config),
):
    article = get_article_by_id(store, config.articles_sheet, article_id)
    if article is None:
        raise HTTPException(status_code=404, detail="article not found")
    return article


@app.post("/articles", status_code=201)
def create_article(
    form: ArticleForm,
    _=Depends(require_write_token),
    email: str = Depends(current_user_email),
    store: RowStore = Depends(get_store),
    config: ResolvedConfig = Depends(get_config),
    slack: Optional[SlackClient] = Depends(get_slack),
):
    article = add_article(store, config, form, email, slack)
    return {"detail": "article posted", "article": article}


@app.put("/articles/{article_id}")
def edit_article(
    article_id: str,
    form: ArticleForm,
    _=Depends(require_write_token),
    email: str = Depends(current_user_email),
    store: RowStore = Depends(get_store),
    config: ResolvedConfig = Depends(get_config),
):
    try:
        article = update_article(store, config.articles_sheet, article_id, form, email)
    except ArticleNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"detail": "article updated", "article": article}


@app.delete("/articles/{article_id}")
def remove_article(
    article_id: str,
    _=Depends(require_write_token),
    email: str = Depends(current_user_email),
    store: RowStore = Depends(get_store),
    config: ResolvedConfig = Depends(get_config),
):
    try:
        delete_article(store, config.articles_sheet, article_id, email)
    except ArticleNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"detail": "article deleted"}


@app.post("/images", response_model=UploadResult)
def images(
    payload: ImageUpload,
    response: Response,
    _=Depends(require_write_token),
    config: ResolvedConfig = Depends(get_config),
):
    creds = load_credentials(settings)
    if creds is None or not config.spreadsheet_id:
        raise HTTPException(status_code=503, detail="no creds")
    result = upload_image(
        creds,
        config.spreadsheet_id,
        config.images_folder,
        payload.file_name,
        payload.mime_type,
        payload.data,
        settings.DRIVE_SHARE_DOMAIN,
    )
    if not result.success:
        response.status_code = 502
    return result


@app.post("/sync")
async def sync(request: Request, _=Depends(require_write_token)):
    try:
        status = await run_once(lambda: _sync_once(request.app))
    except RuntimeError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    if status is None:
        raise HTTPException(status_code=409, detail="sync already running")
    return {"status": status}


@app.get("/sync/status")
def sync_status():
    return {
        "running": sync_state.running,
        "last_started": sync_state.last_started,
        "last_finished": sync_state.last_finished,
        "last_status": sync_state.last_status,
        "last_error": sync_state.last_error,
        "total_runs": sync_state.total_runs,
        "total_errors": sync_state.total_errors,
        "enabled": settings.SYNC_ENABLED,
        "interval": settings.SYNC_INTERVAL_SECONDS,
        "jitter": settings.SYNC_JITTER_SECONDS,
        "backoff_max": settings.SYNC_BACKOFF_MAX_SECONDS,
    }


@app.post("/admin/init-sheets")
def init_sheets(
    _=Depends(require_write_token),
    store: RowStore = Depends(get_store),
    config: ResolvedConfig = Depends(get_config),
):
    return {"detail": ensure_sheet_structure(store, config)}


@app.post("/admin/smoke")
def smoke(
    _=Depends(require_write_token),
    store: RowStore = Depends(get_store),
    config: ResolvedConfig = Depends(get_config),
    slack: Optional[SlackClient] = Depends(get_slack),
):
    return smoke_test(store, config, settings, slack)
