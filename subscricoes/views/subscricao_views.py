# subscricoes/views/subscricao_views.py

import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import APIException
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from subscricoes.serializers import (
    ProcessarSubscricoesInputSerializer,
    ProcessarSubscricoesOutputSerializer,
)
from subscricoes.services.processamento_service import processar_subscricoes

logger = logging.getLogger("faturacao.subscricoes")


@api_view(["POST"])
@permission_classes([IsAuthenticated])
def processar_subscricoes_view(request):
    """
    POST /api/v1/subscricoes/processar

    Emite os documentos das subscrições vencidas. Responde 200 mesmo com
    falhas parciais; cada subscrição traz o seu status em "detalhes".
    """
    ser_in = ProcessarSubscricoesInputSerializer(data=request.data)
    ser_in.is_valid(raise_exception=True)

    try:
        resultado = processar_subscricoes(hoje=ser_in.validated_data.get("hoje"))
    except APIException:
        raise
    except Exception as exc:
        logger.exception(
            "processar_subscricoes_erro",
            extra={
                "event": "processar_subscricoes",
                "user_id": getattr(request.user, "id", None),
                "error": str(exc),
            },
        )
        raise APIException(
            detail={
                "code": "SUBSCRICOES_5999",
                "message": "Erro no processamento de subscrições.",
            }
        ) from exc

    ser_out = ProcessarSubscricoesOutputSerializer(
        {
            "total": resultado.total,
            "sucesso": resultado.sucesso,
            "erros": resultado.erros,
            "detalhes": resultado.detalhes,
        }
    )
    return Response(ser_out.data, status=status.HTTP_200_OK)
