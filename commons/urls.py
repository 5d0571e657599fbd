# commons/urls.py
from django.urls import path

from .views.commons_views import liveness, readiness, time_now

app_name = "commons"

urlpatterns = [
    path("health/liveness", liveness, name="health_liveness"),
    path("health/readiness", readiness, name="health_readiness"),
    path("time/now", time_now, name="time_now"),
]
