# fiscal/views/pagamento_views.py

import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import APIException
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from fiscal.serializers_pagamento import (
    PagamentoSerializer,
    RegistarPagamentoInputSerializer,
    RegistarPagamentoOutputSerializer,
)
from fiscal.services.exceptions import EmissaoError
from fiscal.services.pagamento_service import listar_pagamentos, registar_pagamento
from fiscal.views.erros_api import erro_dominio, erro_inesperado

logger = logging.getLogger("faturacao.fiscal")


@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def pagamentos_view(request, documento_id):
    """
    GET  /api/v1/fiscal/documentos/<id>/pagamentos  -> pagamentos do documento
    POST /api/v1/fiscal/documentos/<id>/pagamentos  -> regista pagamento (201)

    O POST recalcula o estado_pagamento do documento; nada mais muda nele.
    """
    if request.method == "GET":
        try:
            pagamentos = listar_pagamentos(documento_id)
        except EmissaoError as exc:
            raise erro_dominio(
                "listar_pagamentos_api", request, exc, documento_id=str(documento_id)
            ) from exc
        return Response(PagamentoSerializer(pagamentos, many=True).data)

    ser_in = RegistarPagamentoInputSerializer(data=request.data)
    ser_in.is_valid(raise_exception=True)
    dados = ser_in.validated_data

    try:
        result = registar_pagamento(
            documento_id=documento_id,
            valor=dados["valor"],
            metodo=dados["metodo"],
            data=dados.get("data"),
            referencia=dados.get("referencia"),
            observacoes=dados.get("observacoes"),
            utilizador_id=getattr(request.user, "id", None),
        )
    except EmissaoError as exc:
        raise erro_dominio(
            "registar_pagamento_api", request, exc, documento_id=str(documento_id)
        ) from exc
    except APIException:
        raise
    except Exception as exc:
        raise erro_inesperado("registar_pagamento_api", request, exc) from exc

    logger.info(
        "registar_pagamento_api",
        extra={
            "event": "registar_pagamento_api",
            "user_id": getattr(request.user, "id", None),
            "documento_id": str(documento_id),
            "pagamento_id": str(result.pagamento.id),
            "estado_pagamento": result.documento.estado_pagamento,
            "outcome": "success",
        },
    )
    return Response(
        RegistarPagamentoOutputSerializer(result).data, status=status.HTTP_201_CREATED
    )
