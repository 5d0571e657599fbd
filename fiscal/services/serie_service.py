# fiscal/services/serie_service.py

import logging
import re
from typing import Optional
from uuid import UUID

from django.db import IntegrityError, transaction

from fiscal.models import Serie, TipoDocumento
from fiscal.services.exceptions import (
    SerieBloqueada,
    SerieNaoEncontrada,
    ValidacaoFalhou,
)

logger = logging.getLogger("faturacao.fiscal")

_CODIGO_VALIDACAO_RE = re.compile(r"[A-Z0-9]+")

# Numa série bloqueada só estes campos podem mudar
CAMPOS_EDITAVEIS_BLOQUEADA = {"descricao", "ativa", "codigo_validacao_at"}
CAMPOS_EDITAVEIS = CAMPOS_EDITAVEIS_BLOQUEADA | {
    "codigo",
    "tipo_documento",
    "prefixo",
    "ano",
    "data_inicio",
}


def _normalizar_codigo_validacao(valor: Optional[str]) -> Optional[str]:
    valor = (valor or "").strip().upper()
    if not valor:
        return None
    if not _CODIGO_VALIDACAO_RE.fullmatch(valor):
        raise ValidacaoFalhou(
            "Código de validação inválido.",
            erros={"codigo_validacao_at": "Só letras maiúsculas e dígitos."},
        )
    return valor


def _obter_serie(serie_id: UUID, *, para_update: bool = False) -> Serie:
    qs = Serie.objects.select_for_update() if para_update else Serie.objects
    try:
        return qs.get(id=serie_id)
    except (Serie.DoesNotExist, ValueError):
        raise SerieNaoEncontrada("Série não encontrada.", serie_id=str(serie_id))


@transaction.atomic
def criar_serie(
    *,
    codigo: str,
    tipo_documento: str,
    prefixo: str,
    ano: int,
    descricao: str = "",
    codigo_validacao_at: Optional[str] = None,
    data_inicio=None,
    ativa: bool = True,
) -> Serie:
    erros = {}
    codigo = (codigo or "").strip()
    prefixo = (prefixo or "").strip()
    if not codigo:
        erros["codigo"] = "Código obrigatório."
    if not prefixo:
        erros["prefixo"] = "Prefixo obrigatório."
    if tipo_documento not in TipoDocumento.values:
        erros["tipo_documento"] = "Tipo de documento inválido."
    if not ano or int(ano) < 2000:
        erros["ano"] = "Ano inválido."
    if codigo and Serie.objects.filter(codigo=codigo).exists():
        erros["codigo"] = f"Já existe uma série com o código {codigo}."
    if erros:
        raise ValidacaoFalhou("Dados da série inválidos.", erros=erros)

    try:
        serie = Serie.objects.create(
            codigo=codigo,
            descricao=descricao or "",
            tipo_documento=tipo_documento,
            prefixo=prefixo,
            ano=int(ano),
            codigo_validacao_at=_normalizar_codigo_validacao(codigo_validacao_at),
            data_inicio=data_inicio,
            ativa=ativa,
        )
    except IntegrityError as exc:
        raise ValidacaoFalhou(
            "Dados da série inválidos.",
            erros={"codigo": f"Já existe uma série com o código {codigo}."},
        ) from exc

    logger.info(
        "serie_criada",
        extra={
            "event": "serie_criar",
            "serie_id": str(serie.id),
            "codigo": serie.codigo,
            "ano": serie.ano,
            "outcome": "success",
        },
    )
    return serie


@transaction.atomic
def atualizar_serie(serie_id: UUID, **alteracoes) -> Serie:
    """
    Atualiza uma série.

    Depois da primeira emissão (bloqueada=True) só descricao, ativa e
    codigo_validacao_at (este apenas enquanto vazio) podem mudar.
    numero_atual nunca é alterado por aqui.
    """
    serie = _obter_serie(serie_id, para_update=True)

    desconhecidos = set(alteracoes) - CAMPOS_EDITAVEIS
    if desconhecidos:
        raise ValidacaoFalhou(
            "Campos não editáveis.",
            erros={campo: "Campo não editável." for campo in sorted(desconhecidos)},
        )

    if serie.bloqueada:
        estruturais = [
            campo
            for campo in alteracoes
            if campo not in CAMPOS_EDITAVEIS_BLOQUEADA
            and alteracoes[campo] != getattr(serie, campo)
        ]
        if estruturais:
            raise SerieBloqueada(
                f"Série {serie.codigo} já tem documentos emitidos; "
                f"não é possível alterar: {', '.join(estruturais)}.",
                serie_id=str(serie.id),
            )

    if "codigo_validacao_at" in alteracoes:
        novo = _normalizar_codigo_validacao(alteracoes["codigo_validacao_at"])
        if serie.bloqueada and serie.codigo_validacao_at and novo != serie.codigo_validacao_at:
            raise SerieBloqueada(
                f"Série {serie.codigo} já tem código de validação e documentos emitidos.",
                serie_id=str(serie.id),
            )
        alteracoes["codigo_validacao_at"] = novo

    if "tipo_documento" in alteracoes and alteracoes["tipo_documento"] not in TipoDocumento.values:
        raise ValidacaoFalhou(
            "Dados da série inválidos.",
            erros={"tipo_documento": "Tipo de documento inválido."},
        )

    codigo = alteracoes.get("codigo")
    if codigo and Serie.objects.filter(codigo=codigo).exclude(id=serie.id).exists():
        raise ValidacaoFalhou(
            "Dados da série inválidos.",
            erros={"codigo": f"Já existe uma série com o código {codigo}."},
        )

    for campo, valor in alteracoes.items():
        setattr(serie, campo, valor)
    # numero_atual/bloqueada ficam de fora: pertencem ao alocador
    serie.save(update_fields=[*alteracoes.keys(), "updated_at"])

    logger.info(
        "serie_atualizada",
        extra={
            "event": "serie_atualizar",
            "serie_id": str(serie.id),
            "campos": sorted(alteracoes),
            "outcome": "success",
        },
    )
    return serie


@transaction.atomic
def eliminar_serie(serie_id: UUID) -> None:
    serie = _obter_serie(serie_id, para_update=True)
    codigo = serie.codigo
    # Serie.delete levanta SerieBloqueada se já houve emissões
    serie.delete()

    logger.info(
        "serie_eliminada",
        extra={
            "event": "serie_eliminar",
            "serie_id": str(serie_id),
            "codigo": codigo,
            "outcome": "success",
        },
    )
