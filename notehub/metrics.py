from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

REQS = Counter(
    "notehub_requests_total",
    "Requests",
    ["method", "path", "status"],
)
LAT = Histogram(
    "notehub_latency_seconds",
    "Latency",
    ["method", "path"],
)
SYNCED = Counter(
    "notehub_sync_messages_total",
    "Slack messages appended to the messages sheet",
    ["channel"],
)
SYNC_FAILURES = Counter(
    "notehub_sync_failures_total",
    "Channel syncs aborted",
    ["kind"],
)


def router() -> APIRouter:
    r = APIRouter()

    @r.get("/metrics", include_in_schema=False)
    def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return r
