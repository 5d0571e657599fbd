# commons/views/commons_views.py
import logging

from django.conf import settings
from django.db import DatabaseError, connection
from django.http import JsonResponse
from django.utils import timezone

logger = logging.getLogger("django.request")


def liveness(request):
    return JsonResponse({"ok": True})


def readiness(request):
    """Pronto quando a base de dados responde a um SELECT 1."""
    try:
        with connection.cursor() as cur:
            cur.execute("SELECT 1")
            cur.fetchone()
    except DatabaseError as e:
        logger.warning(
            "readiness_db_indisponivel",
            extra={"event": "readiness", "error": str(e), "outcome": "failure"},
        )
        return JsonResponse({"ok": False, "error": str(e)}, status=503)
    return JsonResponse({"ok": True})


def time_now(request):
    agora = timezone.localtime()
    return JsonResponse({"now": agora.isoformat(), "timezone": settings.TIME_ZONE})
