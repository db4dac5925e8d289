import logging
import json
import time
import random
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

# Wide-event logger; kept off the root logger so events are not printed twice
structured_logger = logging.getLogger("recettes_api.structured_log")
structured_logger.propagate = False

if not structured_logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))  # the message is the JSON event
    structured_logger.addHandler(handler)
    structured_logger.setLevel(logging.INFO)


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    One JSON event per request, with tail sampling:

    1. Server errors (status >= 500) are always logged
    2. Slow requests (> SLOW_THRESHOLD_MS) are always logged
    3. Everything else is sampled at SAMPLE_RATE
    """

    SLOW_THRESHOLD_MS = 500
    SAMPLE_RATE = 0.05

    def should_log(self, status_code: int, duration_ms: float) -> bool:
        if status_code >= 500:
            return True
        if duration_ms > self.SLOW_THRESHOLD_MS:
            return True
        return random.random() < self.SAMPLE_RATE

    @staticmethod
    def identity(request: Request) -> dict:
        # Set by the auth dependencies when a valid token was presented
        user = getattr(request.state, "user", None)
        if user is None:
            return {"user_id": None, "user_email": None, "user_name": None}
        return {
            "user_id": str(user.id),
            "user_email": user.email,
            "user_name": user.nom,
        }

    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()

        response = None
        error_details = None
        status_code = 500  # stays 500 if call_next raises

        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception as e:
            error_details = str(e)
            raise
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000

            if self.should_log(status_code, duration_ms):
                event = {
                    "timestamp": time.time(),
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": status_code,
                    "duration_ms": round(duration_ms, 2),
                    "client_ip": request.client.host if request.client else None,
                    "user_agent": request.headers.get("user-agent"),
                    "query_params": dict(request.query_params),
                    "error": error_details,
                    **self.identity(request),
                }
                structured_logger.info(json.dumps(event))

        return response
