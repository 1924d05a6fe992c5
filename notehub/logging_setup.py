import logging
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

access_log = logging.getLogger("notehub.access")

# chatty third-party loggers and the level they are held at
_QUIET = {
    "googleapiclient.discovery_cache": logging.ERROR,
    "urllib3.connectionpool": logging.WARNING,
}


def init_logging(level: str = "INFO"):
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        level=getattr(logging, level.upper(), logging.INFO),
    )
    for name, quiet_level in _QUIET.items():
        logging.getLogger(name).setLevel(quiet_level)


class RequestLogMiddleware(BaseHTTPMiddleware):
    """One access line per request: method, path, status, caller, duration."""

    async def dispatch(self, request: Request, call_next):
        start = time.time()
        response = await call_next(request)
        duration_ms = (time.time() - start) * 1000
        access_log.info(
            "%s %s %s %s %.2fms",
            request.method,
            request.url.path,
            response.status_code,
            request.headers.get("X-User-Email") or "-",
            duration_ms,
        )
        return response
