import logging
import time

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware:
    """Пишет в лог метод, путь, статус и длительность каждого запроса."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        started = time.monotonic()
        response = self.get_response(request)
        logger.info(
            "request completed: method=%s path=%s status=%s duration_ms=%.1f",
            request.method,
            request.path,
            response.status_code,
            (time.monotonic() - started) * 1000,
        )
        return response
