import logging
import json
import time
import random
from typing import Optional
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

# Wide-event request log. Does not propagate so the root handler does not repeat it;
# handlers come from logging.ini, with a bare JSON-line fallback.
structured_logger = logging.getLogger("recipebox.structured_log")
structured_logger.propagate = False

if not structured_logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    structured_logger.addHandler(handler)
    structured_logger.setLevel(logging.INFO)


def _user_fields(request: Request) -> dict:
    """Caller identity, set on request.state by the auth dependency."""
    user = getattr(request.state, "user", None)
    if user is None:
        return {"user_id": None, "user_email": None, "user_name": None}

    user_name: Optional[str] = None
    if user.first_name or user.last_name:
        user_name = f"{user.first_name or ''} {user.last_name or ''}".strip()
    return {"user_id": str(user.id), "user_email": user.email, "user_name": user_name}


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    One JSON log line per request, tail sampled:

    1. server errors (status >= 500) are always logged
    2. slow requests (> SLOW_THRESHOLD_MS) are always logged
    3. everything else is logged with probability SAMPLE_RATE
    """

    SLOW_THRESHOLD_MS = 500
    SAMPLE_RATE = 0.05

    def should_log(self, status_code: int, duration_ms: float) -> bool:
        if status_code >= 500:
            return True
        if duration_ms > self.SLOW_THRESHOLD_MS:
            return True
        return random.random() < self.SAMPLE_RATE

    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()

        response = None
        error_details = None
        status_code = 500  # stays 500 if the app raises

        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception as e:
            error_details = str(e)
            raise
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000

            if self.should_log(status_code, duration_ms):
                log_payload = {
                    "timestamp": time.time(),
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": status_code,
                    "duration_ms": round(duration_ms, 2),
                    "client_ip": request.client.host if request.client else None,
                    "user_agent": request.headers.get("user-agent"),
                    "query_params": dict(request.query_params),
                    "error": error_details,
                    **_user_fields(request),
                }
                structured_logger.info(json.dumps(log_payload))

        return response
