import time
from fastapi import FastAPI, Request, Response
from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    CONTENT_TYPE_LATEST,
)

# --- Metric objects ---
REQUESTS = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labelnames=["path", "method", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_latency_seconds",
    "Request latency seconds",
    labelnames=["path", "method"],
)
UPSTREAM_REQUESTS = Counter(
    "upstream_requests_total",
    "Requests sent to the Rick & Morty API",
    labelnames=["outcome"],
)
EMPTY_ALERTS = Counter(
    "empty_filter_alerts_total",
    "Filter sets that matched nothing and triggered a reset",
)
ACTIVE_SESSIONS_G = Gauge("browser_sessions_active", "Browser sessions held in memory")
UPSTREAM_OK_G = Gauge("upstream_ok", "Upstream availability (1 ok, 0 down)")


# --- Public helpers ---
def record_upstream(outcome: str) -> None:
    UPSTREAM_REQUESTS.labels(outcome=outcome).inc()


def record_empty_alert() -> None:
    EMPTY_ALERTS.inc()


def observe_sessions(count: int) -> None:
    ACTIVE_SESSIONS_G.set(count)


def observe_health(upstream_ok: bool) -> None:
    UPSTREAM_OK_G.set(1 if upstream_ok else 0)


def _route_path(request: Request) -> str:
    # Use the route template so per-session ids don't explode label cardinality
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


# --- Installation: middleware + /metrics endpoint ---
def install(app: FastAPI) -> None:
    @app.middleware("http")
    async def _metrics_mw(request: Request, call_next):
        t0 = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            path = _route_path(request)
            REQUEST_LATENCY.labels(path=path, method=request.method).observe(
                time.perf_counter() - t0
            )
            REQUESTS.labels(path=path, method=request.method, status=str(status)).inc()

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
