"""FastAPI service exposing headlines, the sentiment trend, and saved articles."""

from __future__ import annotations

import logging
import os
import random
from collections import OrderedDict
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from fastapi import FastAPI, Header, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .catalog import load_catalog
from .config import get_settings
from .controller import Outcome, Status
from .dashboard import Dashboard
from .errors import CatalogError, StoreError
from .logs import configure_logging
from .models import ScoredArticle
from .store import FileSavedStore, SavedStateStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Catalog and store shared by every request, plus one session per identity.

    Sessions are kept in least-recently-used order; once `max_sessions` is
    exceeded the oldest is closed, which releases its store subscription.
    """

    catalog: list[ScoredArticle]
    store: SavedStateStore
    max_sessions: int = 256
    sessions: OrderedDict[str, Dashboard] = field(default_factory=OrderedDict)

    def session(self, user_id: Optional[str]) -> Dashboard:
        if not user_id:
            return Dashboard(store=self.store, catalog=self.catalog)
        dashboard = self.sessions.get(user_id)
        if dashboard is not None:
            self.sessions.move_to_end(user_id)
            return dashboard
        dashboard = Dashboard(store=self.store, user_id=user_id, catalog=self.catalog)
        dashboard.start()
        self.sessions[user_id] = dashboard
        while len(self.sessions) > self.max_sessions:
            evicted_id, evicted = self.sessions.popitem(last=False)
            evicted.close()
            logger.debug("Closed idle session for %s", evicted_id)
        return dashboard

    def end_session(self, user_id: str) -> bool:
        dashboard = self.sessions.pop(user_id, None)
        if dashboard is None:
            return False
        dashboard.close()
        return True

    def close(self) -> None:
        for dashboard in self.sessions.values():
            dashboard.close()
        self.sessions.clear()


_services: Optional[Services] = None


def build_services() -> Services:
    settings = get_settings()
    configure_logging(settings.log_level)
    rng = random.Random(settings.seed) if settings.seed is not None else None
    catalog = load_catalog(settings.catalog_path, rng=rng)
    store = FileSavedStore(settings.data_dir, namespace=settings.app_id)
    return Services(catalog=catalog, store=store, max_sessions=settings.max_sessions)


def get_services() -> Services:
    """Build the shared services on first use (scoring the catalog exactly once)."""
    global _services
    if _services is None:
        _services = build_services()
    return _services


def reset_services(services: Optional[Services] = None) -> None:
    """Drop (or replace) the shared services; used when settings change."""
    global _services
    if _services is not None:
        _services.close()
    _services = services


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        get_services()
    except CatalogError as exc:
        raise RuntimeError(f"Cannot start: {exc}") from exc
    yield
    reset_services()


app = FastAPI(title="FinSense", lifespan=lifespan)


def _add_cors(app: FastAPI) -> None:
    """Allow a browser dashboard to call the API during local development."""
    allow_all = os.getenv("CORS_ALLOW_ALL", "true").lower() == "true"
    origins_env = os.getenv("CORS_ALLOW_ORIGINS", "")
    origins = [o.strip() for o in origins_env.split(",") if o.strip()]
    allow_credentials = (
        os.getenv("CORS_ALLOW_CREDENTIALS", "true").lower() == "true"
    )
    if allow_all or not origins:
        origins = ["*"]
    if origins == ["*"] and allow_credentials:
        # Starlette/FastAPI disallow wildcard origins when credentials are enabled.
        allow_credentials = False
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )


_add_cors(app)


def _dump(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return [_dump(item) for item in value]
    return value.model_dump(mode="json", by_alias=True)


def _status_body(current: Status) -> Dict[str, Any]:
    return {
        "state": current.state.value,
        "message": current.message,
        "action": current.action,
        "article_id": current.article_id,
    }


def _outcome_response(
    outcome: Optional[Outcome], dashboard: Dashboard, success_code: int
) -> JSONResponse:
    if outcome is None:
        return JSONResponse(
            status_code=status.HTTP_202_ACCEPTED,
            content={"status": "skipped", "detail": "No user identity; nothing to do."},
        )
    if not outcome.ok:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"status": "error", "detail": outcome.detail},
        )
    body = {
        "status": outcome.state.value,
        "action": outcome.action,
        "article_id": outcome.article_id,
        "message": dashboard.status.current.message,
        "saved_ids": sorted(dashboard.saved_ids()),
    }
    return JSONResponse(status_code=success_code, content=body)


@app.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/articles")
async def list_articles(
    sentiment: str = "all",
    q: str = "",
    x_user_id: Optional[str] = Header(None),
) -> Dict[str, Any]:
    dashboard = get_services().session(x_user_id)
    try:
        view = dashboard.view(sentiment.lower(), q)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
        ) from exc
    return {
        "loaded": view.loaded,
        "count": len(view.articles or []),
        "articles": _dump(view.articles or []),
    }


@app.get("/trend")
async def trend() -> list[Dict[str, Any]]:
    view = get_services().session(None).view()
    return _dump(view.trend)


@app.get("/saved")
async def list_saved(x_user_id: Optional[str] = Header(None)) -> list[Dict[str, Any]]:
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-User-Id header is required.",
        )
    services = get_services()
    dashboard = services.session(x_user_id)
    # Pick up saves made through the CLI or another worker.
    try:
        services.store.refresh(x_user_id)
    except StoreError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
        ) from exc
    return _dump(dashboard.saved_articles())


@app.put("/saved/{article_id}", status_code=status.HTTP_201_CREATED)
async def save_article(
    article_id: str, x_user_id: Optional[str] = Header(None)
) -> JSONResponse:
    dashboard = get_services().session(x_user_id)
    try:
        article = dashboard.article(article_id)
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown article id: {article_id}",
        ) from exc
    outcome = await dashboard.controller.save(article)
    return _outcome_response(outcome, dashboard, status.HTTP_201_CREATED)


@app.delete("/saved/{article_id}")
async def remove_article(
    article_id: str, x_user_id: Optional[str] = Header(None)
) -> JSONResponse:
    dashboard = get_services().session(x_user_id)
    outcome = await dashboard.remove(article_id)
    return _outcome_response(outcome, dashboard, status.HTTP_200_OK)


@app.get("/status")
async def current_status(x_user_id: Optional[str] = Header(None)) -> Dict[str, Any]:
    return _status_body(get_services().session(x_user_id).status.current)


@app.delete("/session")
async def end_session(x_user_id: Optional[str] = Header(None)) -> Dict[str, Any]:
    """Close the caller's session and its saved-article subscription."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-User-Id header is required.",
        )
    return {"closed": get_services().end_session(x_user_id)}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "finsense.server:app",
        host=os.getenv("FINSENSE_HOST", "0.0.0.0"),
        port=int(os.getenv("FINSENSE_PORT", "8000")),
        reload=os.getenv("FINSENSE_RELOAD", "false").lower() == "true",
    )
