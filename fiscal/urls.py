# fiscal/urls.py

from django.urls import path

from fiscal.views.documento_views import (
    anular_documento_view,
    documento_detalhe_view,
    emitir_documento_view,
    listar_documentos_view,
    nota_credito_view,
)
from fiscal.views.pagamento_views import pagamentos_view
from fiscal.views.serie_views import (
    serie_detalhe_view,
    series_view,
    verificar_cadeia_view,
)

app_name = "fiscal"

urlpatterns = [
    # séries
    path("series/", series_view, name="series"),
    path("series/<uuid:serie_id>/", serie_detalhe_view, name="serie_detalhe"),
    path(
        "series/<uuid:serie_id>/verificar-cadeia",
        verificar_cadeia_view,
        name="serie_verificar_cadeia",
    ),
    path("series/<uuid:serie_id>/verificar-cadeia/", verificar_cadeia_view),

    # documentos - emissão
    path("documentos/emitir", emitir_documento_view, name="documento_emitir"),
    path("documentos/emitir/", emitir_documento_view),

    # documentos - consulta
    path("documentos/", listar_documentos_view, name="documentos"),
    path("documentos/<uuid:documento_id>/", documento_detalhe_view, name="documento_detalhe"),

    # documentos - anulação e retificação
    path("documentos/<uuid:documento_id>/anular", anular_documento_view, name="documento_anular"),
    path("documentos/<uuid:documento_id>/anular/", anular_documento_view),
    path(
        "documentos/<uuid:documento_id>/nota-credito",
        nota_credito_view,
        name="documento_nota_credito",
    ),
    path("documentos/<uuid:documento_id>/nota-credito/", nota_credito_view),

    # documentos - pagamentos
    path(
        "documentos/<uuid:documento_id>/pagamentos",
        pagamentos_view,
        name="documento_pagamentos",
    ),
    path("documentos/<uuid:documento_id>/pagamentos/", pagamentos_view),
]
