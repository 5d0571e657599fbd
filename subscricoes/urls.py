# subscricoes/urls.py

from django.urls import path

from subscricoes.views.subscricao_views import processar_subscricoes_view

app_name = "subscricoes"

urlpatterns = [
    path("processar", processar_subscricoes_view, name="processar"),
    path("processar/", processar_subscricoes_view),
]
