# fiscal/views/erros_api.py

import logging

from rest_framework import status
from rest_framework.exceptions import APIException, NotFound, ValidationError

from fiscal.services.exceptions import (
    ClienteNaoEncontrado,
    ConflitoConcorrencia,
    DocumentoImutavel,
    DocumentoNaoEncontrado,
    EmissaoError,
    EstadoDocumentoInvalido,
    FalhaPersistencia,
    SerieBloqueada,
    SerieNaoEncontrada,
    ValidacaoFalhou,
)

logger = logging.getLogger("faturacao.fiscal")


class ConflitoAPIException(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflito com o estado atual do recurso."
    default_code = "conflict"


class IndisponivelAPIException(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Serviço temporariamente indisponível."
    default_code = "service_unavailable"


_NAO_ENCONTRADO = (SerieNaoEncontrada, ClienteNaoEncontrado, DocumentoNaoEncontrado)
_CONFLITO = (ConflitoConcorrencia, SerieBloqueada, DocumentoImutavel, EstadoDocumentoInvalido)


def traduzir_erro(exc: EmissaoError) -> APIException:
    """
    Converte um erro de domínio na APIException equivalente,
    com corpo {"code", "message"} (+ "errors" nas validações).
    """
    detalhe = exc.as_dict()
    if isinstance(exc, _NAO_ENCONTRADO):
        return NotFound(detail=detalhe)
    if isinstance(exc, ValidacaoFalhou):
        return ValidationError(detail=detalhe)
    if isinstance(exc, _CONFLITO):
        return ConflitoAPIException(detail=detalhe)
    if isinstance(exc, FalhaPersistencia):
        return IndisponivelAPIException(detail=detalhe)
    return ValidationError(detail=detalhe)


def outcome_de(exc: EmissaoError) -> str:
    if isinstance(exc, _NAO_ENCONTRADO):
        return "not_found"
    if isinstance(exc, ValidacaoFalhou):
        return "validation_error"
    if isinstance(exc, _CONFLITO):
        return "conflict"
    if isinstance(exc, FalhaPersistencia):
        return "unavailable"
    return "domain_error"


def erro_dominio(event: str, request, exc: EmissaoError, **extra) -> APIException:
    outcome = outcome_de(exc)
    logger.warning(
        f"{event}_{outcome}",
        extra={
            "event": event,
            "user_id": getattr(request.user, "id", None),
            "code": exc.code,
            "detail": exc.mensagem,
            "outcome": outcome,
            **extra,
        },
    )
    return traduzir_erro(exc)


def erro_inesperado(event: str, request, exc: Exception) -> APIException:
    logger.exception(
        f"{event}_erro",
        extra={
            "event": event,
            "user_id": getattr(request.user, "id", None),
            "error": str(exc),
        },
    )
    return APIException(
        detail={"code": "FISCAL_5999", "message": "Erro inesperado no módulo fiscal."}
    )
