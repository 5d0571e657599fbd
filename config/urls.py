# config/urls.py
from django.contrib import admin
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/v1/commons/", include(("commons.urls", "commons"), namespace="commons")),
    path("api/v1/fiscal/", include(("fiscal.urls", "fiscal"), namespace="fiscal")),
    path(
        "api/v1/subscricoes/",
        include(("subscricoes.urls", "subscricoes"), namespace="subscricoes"),
    ),
    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
]
