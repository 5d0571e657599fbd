import logging
import time
import uuid

from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger("django.request")


class RequestLogMiddleware(MiddlewareMixin):
    """
    Atribui um request_id (X-Request-ID recebido ou gerado) e regista
    uma linha JSON por pedido com método, caminho, status e latência.
    """

    def process_request(self, request):
        request.request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request._start_time = time.monotonic()

    def process_response(self, request, response):
        started = getattr(request, "_start_time", None)
        latency = int((time.monotonic() - started) * 1000) if started is not None else 0
        request_id = getattr(request, "request_id", "-")

        logger.info(
            "http_request",
            extra={
                "event": "http_request",
                "request_id": request_id,
                "path": request.path,
                "method": request.method,
                "status": response.status_code,
                "latency_ms": latency,
            },
        )
        response["X-Request-ID"] = request_id
        return response
