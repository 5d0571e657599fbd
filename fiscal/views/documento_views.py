# fiscal/views/documento_views.py

import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import APIException
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from fiscal.models import Documento
from fiscal.serializers_emissao import (
    AnularDocumentoInputSerializer,
    DocumentoResumoSerializer,
    DocumentoSerializer,
    EmitirDocumentoInputSerializer,
    EmitirDocumentoOutputSerializer,
    NotaCreditoInputSerializer,
)
from fiscal.services.anulacao_service import anular_documento, emitir_nota_credito
from fiscal.services.emissao_service import emitir_documento
from fiscal.services.exceptions import DocumentoNaoEncontrado, EmissaoError
from fiscal.services.notificacao_service import enviar_documento_por_email
from fiscal.views.erros_api import erro_dominio, erro_inesperado

logger = logging.getLogger("faturacao.fiscal")

# Limite da listagem (sem paginação configurada)
LIMITE_LISTAGEM = 200


def _utilizador_id(request):
    return getattr(request.user, "id", None)


def _obter_documento(documento_id) -> Documento:
    documento = (
        Documento.objects.select_related("serie")
        .prefetch_related("linhas")
        .filter(id=documento_id)
        .first()
    )
    if documento is None:
        raise DocumentoNaoEncontrado(
            "Documento não encontrado.", documento_id=str(documento_id)
        )
    return documento


@api_view(["POST"])
@permission_classes([IsAuthenticated])
def emitir_documento_view(request):
    """
    Endpoint HTTP para emissão de documento fiscal.

    URL final:
        POST /api/v1/fiscal/documentos/emitir

    Fluxo:
      1) Valida payload com EmitirDocumentoInputSerializer.
      2) Chama fiscal.services.emissao_service.emitir_documento
         (email ao cliente como efeito pós-emissão).
      3) Retorna EmitirDocumentoOutputSerializer com 201.
    """
    ser_in = EmitirDocumentoInputSerializer(data=request.data)
    ser_in.is_valid(raise_exception=True)
    serie_id = ser_in.validated_data["serie_id"]

    try:
        result = emitir_documento(
            serie_id=serie_id,
            conteudo=ser_in.to_conteudo(),
            utilizador_id=_utilizador_id(request),
            efeitos=[enviar_documento_por_email],
        )
    except EmissaoError as exc:
        raise erro_dominio("emitir_documento_api", request, exc, serie_id=str(serie_id)) from exc
    except APIException:
        raise
    except Exception as exc:
        raise erro_inesperado("emitir_documento_api", request, exc) from exc

    logger.info(
        "emitir_documento_api",
        extra={
            "event": "emitir_documento_api",
            "user_id": _utilizador_id(request),
            "serie_id": str(serie_id),
            "documento_id": str(result.documento.id),
            "numero_formatado": result.documento.numero_formatado,
            "outcome": "success",
        },
    )
    return Response(EmitirDocumentoOutputSerializer(result).data, status=status.HTTP_201_CREATED)


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def listar_documentos_view(request):
    """
    GET /api/v1/fiscal/documentos/?serie_id=&cliente_id=&estado=&ano=
    """
    qs = Documento.objects.all().order_by("-data_emissao", "-numero")
    params = request.query_params
    if params.get("serie_id"):
        qs = qs.filter(serie_id=params["serie_id"])
    if params.get("cliente_id"):
        qs = qs.filter(cliente_id=params["cliente_id"])
    if params.get("estado"):
        qs = qs.filter(estado=params["estado"])
    if params.get("ano"):
        qs = qs.filter(data_emissao__year=params["ano"])

    return Response(DocumentoResumoSerializer(qs[:LIMITE_LISTAGEM], many=True).data)


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def documento_detalhe_view(request, documento_id):
    try:
        documento = _obter_documento(documento_id)
    except EmissaoError as exc:
        raise erro_dominio("documento_detalhe", request, exc) from exc
    return Response(DocumentoSerializer(documento).data)


@api_view(["POST"])
@permission_classes([IsAuthenticated])
def anular_documento_view(request, documento_id):
    """
    POST /api/v1/fiscal/documentos/<id>/anular

    Idempotente: anular de novo devolve 200 com o documento já anulado.
    """
    ser_in = AnularDocumentoInputSerializer(data=request.data)
    ser_in.is_valid(raise_exception=True)

    try:
        result = anular_documento(
            documento_id=documento_id,
            motivo=ser_in.validated_data["motivo"],
            utilizador_id=_utilizador_id(request),
        )
    except EmissaoError as exc:
        raise erro_dominio(
            "anular_documento_api", request, exc, documento_id=str(documento_id)
        ) from exc
    except APIException:
        raise
    except Exception as exc:
        raise erro_inesperado("anular_documento_api", request, exc) from exc

    logger.info(
        "anular_documento_api",
        extra={
            "event": "anular_documento_api",
            "user_id": _utilizador_id(request),
            "documento_id": str(documento_id),
            "outcome": "already_cancelled" if result.ja_anulado else "success",
        },
    )
    return Response(DocumentoSerializer(result.documento).data, status=status.HTTP_200_OK)


@api_view(["POST"])
@permission_classes([IsAuthenticated])
def nota_credito_view(request, documento_id):
    """
    POST /api/v1/fiscal/documentos/<id>/nota-credito

    Credita o documento na totalidade, na série de notas de crédito indicada.
    """
    ser_in = NotaCreditoInputSerializer(data=request.data)
    ser_in.is_valid(raise_exception=True)

    try:
        result = emitir_nota_credito(
            documento_original_id=documento_id,
            serie_id=ser_in.validated_data["serie_id"],
            utilizador_id=_utilizador_id(request),
            observacoes=ser_in.validated_data.get("observacoes"),
            efeitos=[enviar_documento_por_email],
        )
    except EmissaoError as exc:
        raise erro_dominio(
            "nota_credito_api", request, exc, documento_id=str(documento_id)
        ) from exc
    except APIException:
        raise
    except Exception as exc:
        raise erro_inesperado("nota_credito_api", request, exc) from exc

    logger.info(
        "nota_credito_api",
        extra={
            "event": "nota_credito_api",
            "user_id": _utilizador_id(request),
            "documento_original_id": str(documento_id),
            "documento_id": str(result.documento.id),
            "outcome": "success",
        },
    )
    return Response(EmitirDocumentoOutputSerializer(result).data, status=status.HTTP_201_CREATED)
