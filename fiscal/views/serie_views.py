# fiscal/views/serie_views.py

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import APIException
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from fiscal.models import Serie
from fiscal.serializers import (
    AtualizarSerieInputSerializer,
    CriarSerieInputSerializer,
    SerieSerializer,
    VerificacaoCadeiaOutputSerializer,
)
from fiscal.services.exceptions import EmissaoError, SerieNaoEncontrada
from fiscal.services.serie_service import atualizar_serie, criar_serie, eliminar_serie
from fiscal.services.verificacao_service import verificar_cadeia
from fiscal.views.erros_api import erro_dominio, erro_inesperado


@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def series_view(request):
    """
    GET  /api/v1/fiscal/series/   lista séries (filtros: ano, tipo_documento, ativa)
    POST /api/v1/fiscal/series/   cria série
    """
    if request.method == "GET":
        qs = Serie.objects.all()
        ano = request.query_params.get("ano")
        tipo = request.query_params.get("tipo_documento")
        ativa = request.query_params.get("ativa")
        if ano:
            qs = qs.filter(ano=ano)
        if tipo:
            qs = qs.filter(tipo_documento=tipo)
        if ativa is not None:
            qs = qs.filter(ativa=ativa.lower() in ("1", "true", "sim"))
        return Response(SerieSerializer(qs, many=True).data)

    ser_in = CriarSerieInputSerializer(data=request.data)
    ser_in.is_valid(raise_exception=True)

    try:
        serie = criar_serie(**ser_in.validated_data)
    except EmissaoError as exc:
        raise erro_dominio("serie_criar", request, exc) from exc
    except APIException:
        raise
    except Exception as exc:
        raise erro_inesperado("serie_criar", request, exc) from exc

    return Response(SerieSerializer(serie).data, status=status.HTTP_201_CREATED)


@api_view(["GET", "PATCH", "DELETE"])
@permission_classes([IsAuthenticated])
def serie_detalhe_view(request, serie_id):
    try:
        if request.method == "GET":
            serie = Serie.objects.filter(id=serie_id).first()
            if serie is None:
                raise SerieNaoEncontrada("Série não encontrada.", serie_id=str(serie_id))
            return Response(SerieSerializer(serie).data)

        if request.method == "DELETE":
            eliminar_serie(serie_id)
            return Response(status=status.HTTP_204_NO_CONTENT)

        ser_in = AtualizarSerieInputSerializer(data=request.data, partial=True)
        ser_in.is_valid(raise_exception=True)
        serie = atualizar_serie(serie_id, **ser_in.validated_data)
        return Response(SerieSerializer(serie).data)

    except EmissaoError as exc:
        raise erro_dominio("serie_detalhe", request, exc, serie_id=str(serie_id)) from exc
    except APIException:
        raise
    except Exception as exc:
        raise erro_inesperado("serie_detalhe", request, exc) from exc


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def verificar_cadeia_view(request, serie_id):
    """
    GET /api/v1/fiscal/series/<id>/verificar-cadeia

    Devolve 200 mesmo com a cadeia quebrada; "valida" e "quebras" dizem o resto.
    """
    try:
        resultado = verificar_cadeia(serie_id)
    except EmissaoError as exc:
        raise erro_dominio("verificar_cadeia", request, exc, serie_id=str(serie_id)) from exc
    except APIException:
        raise
    except Exception as exc:
        raise erro_inesperado("verificar_cadeia", request, exc) from exc

    ser_out = VerificacaoCadeiaOutputSerializer(
        {
            "serie_id": resultado.serie_id,
            "serie_codigo": resultado.serie_codigo,
            "total_documentos": resultado.total_documentos,
            "numero_atual": resultado.numero_atual,
            "valida": resultado.valida,
            "quebras": resultado.quebras,
        }
    )
    return Response(ser_out.data)
