"""FastAPI app, lifespan bootstrap, and HTTP routes.

Defines the application instance and the public REST endpoints:

- GET  /                -> redirect to Swagger UI (/docs)
- GET  /healthz         -> liveness
- GET  /healthcheck     -> upstream check + session count
- GET  /api/characters  -> upstream first listing page, passed through verbatim
- /sessions/...         -> per-viewer browsing (filters, sort, pages, detail)
"""

import locale
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse, Response

from . import metrics, upstream
from .logging_config import configure_logging
from .schemas import (
    CharacterDetail,
    CharactersView,
    FilterCriteria,
    HealthcheckOut,
    PageChange,
    ProblemDetail,
    SessionOut,
    ViewChange,
)
from .session import BrowserSession, UnknownCharacter
from .session_store import session_store
from .settings import settings

configure_logging()
log = logging.getLogger(__name__)

PROXY_FAILURE_MESSAGE = "Failed to get characters"

# ---------------------------------------------------------------------
# App
# ---------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log the upstream target on startup; drop every session on shutdown."""
    log.info(
        "startup upstream=%s max_fetch_pages=%d session_ttl=%.0fs session_max=%d",
        settings.UPSTREAM_BASE_URL,
        settings.MAX_FETCH_PAGES,
        settings.SESSION_TTL_SECONDS,
        settings.SESSION_MAX,
    )
    try:
        yield
    finally:
        session_store.clear()
        log.info("shutdown sessions cleared")


app = FastAPI(title="Rick & Morty Character Browser", version="1.0.0", lifespan=lifespan)
metrics.install(app)


_STATUS_TITLES = {
    400: "Bad Request",
    404: "Not Found",
    422: "Unprocessable Entity",
    500: "Internal Server Error",
}


def _problem(
    status: int,
    title: str | None = None,
    detail: str | None = None,
    instance: str | None = None,
) -> JSONResponse:
    """Return an RFC7807 problem+json response."""
    body = {
        "type": "about:blank",
        "title": title or _STATUS_TITLES.get(status, "Error"),
        "status": status,
        "detail": detail,
        "instance": instance,
    }
    return JSONResponse(
        status_code=status, content=body, media_type="application/problem+json"
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(req: Request, exc: HTTPException):
    detail = exc.detail if isinstance(exc.detail, str) else None
    return _problem(
        status=exc.status_code,
        title=_STATUS_TITLES.get(exc.status_code),
        detail=detail,
        instance=req.url.path,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(req: Request, exc: RequestValidationError):
    msg = exc.errors()[0]["msg"] if exc.errors() else "Validation error"
    return _problem(
        status=422, title=_STATUS_TITLES[422], detail=msg, instance=req.url.path
    )


_problem_resp = {
    "application/problem+json": {"schema": ProblemDetail.model_json_schema()},
}
_not_found = {404: {"content": _problem_resp, "model": ProblemDetail}}


def get_browser_session(sid: str) -> BrowserSession:
    """Resolve the `{sid}` path parameter to a live session or 404."""
    session = session_store.get(sid)
    if session is None:
        raise HTTPException(status_code=404, detail="Unknown or expired session")
    return session


# ---------------------------------------------------------------------
# Service routes
# ---------------------------------------------------------------------


@app.get("/", include_in_schema=False)
async def root(_request: Request):
    """Redirect the root path to the interactive API docs (/docs)."""
    return RedirectResponse(url=app.docs_url or "/docs", status_code=307)


@app.get("/healthz", include_in_schema=False)
async def healthz():
    """Lightweight, in-process health endpoint; never touches the network."""
    return {"status": "ok"}


@app.get("/healthcheck", response_model=HealthcheckOut)
async def healthcheck():
    """Deep health check: is the upstream API answering?"""
    upstream_ok = await upstream.quick_upstream_check()
    metrics.observe_health(upstream_ok)
    status = "ok" if upstream_ok else "degraded"
    log.info(
        "route.healthcheck status=%s upstream_ok=%s sessions=%d",
        status,
        upstream_ok,
        len(session_store),
    )
    return {
        "status": status,
        "upstream_ok": upstream_ok,
        "active_sessions": len(session_store),
    }


@app.get("/api/characters")
async def proxy_characters():
    """Return the upstream listing's first page unchanged.

    Any upstream failure yields HTTP 500 with ``{"message": "Failed to get characters"}``.
    """
    try:
        body = await upstream.fetch_first_page()
    except upstream.UpstreamError as exc:
        log.warning("route.proxy upstream_failed error=%r", exc)
        return JSONResponse(status_code=500, content={"message": PROXY_FAILURE_MESSAGE})
    return JSONResponse(content=body)


# ---------------------------------------------------------------------
# Browser sessions
# ---------------------------------------------------------------------


@app.post("/sessions", response_model=SessionOut, status_code=201)
async def create_session():
    """Open a browsing session and load every character into it.

    A failed load still creates the session, just with an empty list; the client
    can retry through ``POST /sessions/{sid}/reload``.
    """
    sid, session = session_store.create()
    count = await session.load()
    log.info("route.sessions.create sid=%s loaded=%d", sid, count)
    return {"session_id": sid, "view": session.render()}


@app.get("/sessions/{sid}", response_model=CharactersView, responses=_not_found)
async def get_view(session: BrowserSession = Depends(get_browser_session)):
    return session.render()


@app.delete("/sessions/{sid}", status_code=204, responses=_not_found)
async def delete_session(sid: str):
    if not session_store.discard(sid):
        raise HTTPException(status_code=404, detail="Unknown or expired session")
    return Response(status_code=204)


@app.post("/sessions/{sid}/reload", response_model=CharactersView, responses=_not_found)
async def reload_session(session: BrowserSession = Depends(get_browser_session)):
    await session.load()
    return session.render()


@app.put("/sessions/{sid}/filters", response_model=CharactersView, responses=_not_found)
async def set_filters(
    criteria: FilterCriteria, session: BrowserSession = Depends(get_browser_session)
):
    """Replace the filter criteria and return page 1 of the new view.

    When an active filter set matches nothing, the response carries a one-time
    ``alert`` and the filters come back cleared.
    """
    await session.set_filters(criteria)
    log.info(
        "route.filters active=%s total=%d",
        session.filters.is_active(),
        len(session.visible()),
    )
    return session.render()


@app.put("/sessions/{sid}/view", response_model=CharactersView, responses=_not_found)
async def change_view(
    change: ViewChange, session: BrowserSession = Depends(get_browser_session)
):
    """Change page size and/or sort order; either resets to the first page."""
    if change.page_size is not None:
        await session.set_page_size(change.page_size)
    if change.sort is not None:
        await session.set_sort(change.sort)
    return session.render()


@app.post(
    "/sessions/{sid}/page",
    response_model=CharactersView,
    responses={
        400: {"content": _problem_resp, "model": ProblemDetail},
        **_not_found,
    },
)
async def change_page(
    change: PageChange, session: BrowserSession = Depends(get_browser_session)
):
    """Navigate: ``{"action": "first|previous|next|last"}`` or ``{"page": n}`` (1-based)."""
    if change.page is not None:
        try:
            session.select_page(change.page)
        except IndexError as exc:
            raise HTTPException(status_code=400, detail="Page out of range") from exc
    elif change.action == "first":
        session.first_page()
    elif change.action == "previous":
        session.previous_page()
    elif change.action == "next":
        session.next_page()
    elif change.action == "last":
        session.last_page()
    else:
        raise HTTPException(status_code=422, detail="Provide either 'action' or 'page'")
    return session.render()


@app.post(
    "/sessions/{sid}/characters/{character_id}/detail",
    response_model=CharacterDetail,
    responses=_not_found,
)
async def open_detail(
    character_id: int, session: BrowserSession = Depends(get_browser_session)
):
    try:
        detail = await session.open_detail(character_id)
    except UnknownCharacter as exc:
        raise HTTPException(status_code=404, detail="Unknown character") from exc
    log.info(
        "route.detail id=%d first=%r last=%r",
        detail.id,
        detail.first_seen_episode,
        detail.last_seen_episode,
    )
    return detail


@app.get("/sessions/{sid}/detail", response_model=CharacterDetail, responses=_not_found)
async def current_detail(session: BrowserSession = Depends(get_browser_session)):
    if session.detail is None:
        raise HTTPException(status_code=404, detail="No character is open")
    return session.detail


@app.delete("/sessions/{sid}/detail", status_code=204, responses=_not_found)
async def close_detail(session: BrowserSession = Depends(get_browser_session)):
    session.close_detail()
    return Response(status_code=204)


def run() -> None:
    """Serve the app with uvicorn on the configured port."""
    import uvicorn

    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error as exc:
        log.warning("startup.locale unavailable error=%r", exc)
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT, log_config=None)  # nosec B104
