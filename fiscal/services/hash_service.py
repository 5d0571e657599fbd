# fiscal/services/hash_service.py
"""
Hash encadeado dos documentos fiscais.

O hash de cada documento cobre, por esta ordem e separados por ";":

    data de emissão        AAAA-MM-DD
    data de criação        AAAA-MM-DDTHH:MM:SS (sem frações nem fuso)
    número formatado       tal como apresentado (ex: "FT 2024/00001")
    total bruto            duas casas decimais, "." como separador
    hash anterior          hash do documento anterior da série, ou ""

e é o SHA-256 (hex, minúsculas) da codificação UTF-8 dessa string.
Qualquer alteração a este formato invalida a verificação de todos os
documentos já emitidos.
"""

from __future__ import annotations

import hashlib
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union
from zoneinfo import ZoneInfo

from django.conf import settings
from django.utils import timezone

SEPARADOR = ";"
DUAS_CASAS = Decimal("0.01")

Valor = Union[Decimal, int, float, str]


def fuso_horario() -> ZoneInfo:
    """Fuso fixo do projeto (TIME_ZONE), independente de timezone.activate()."""
    return ZoneInfo(settings.TIME_ZONE)


def formatar_data_emissao(data_emissao: Union[date, datetime]) -> str:
    if isinstance(data_emissao, datetime):
        if timezone.is_aware(data_emissao):
            data_emissao = timezone.localtime(data_emissao, fuso_horario())
        data_emissao = data_emissao.date()
    return data_emissao.strftime("%Y-%m-%d")


def formatar_data_criacao(data_criacao: datetime) -> str:
    if timezone.is_aware(data_criacao):
        data_criacao = timezone.localtime(data_criacao, fuso_horario())
    return data_criacao.strftime("%Y-%m-%dT%H:%M:%S")


def para_decimal(valor: Valor) -> Decimal:
    if isinstance(valor, Decimal):
        return valor
    # str() evita herdar o erro binário de floats (ex: 0.1 + 0.2)
    return Decimal(str(valor))


def formatar_valor(valor: Valor) -> str:
    return format(para_decimal(valor).quantize(DUAS_CASAS, rounding=ROUND_HALF_UP), "f")


def montar_dados_hash(
    *,
    data_emissao: Union[date, datetime],
    data_criacao: datetime,
    numero_formatado: str,
    total_liquido: Valor,
    hash_anterior: Optional[str],
) -> str:
    return SEPARADOR.join(
        [
            formatar_data_emissao(data_emissao),
            formatar_data_criacao(data_criacao),
            numero_formatado,
            formatar_valor(total_liquido),
            hash_anterior or "",
        ]
    )


def calcular_hash_documento(
    *,
    data_emissao: Union[date, datetime],
    data_criacao: datetime,
    numero_formatado: str,
    total_liquido: Valor,
    hash_anterior: Optional[str],
) -> str:
    """
    Função pura: não consulta base de dados nem relógio.
    """
    dados = montar_dados_hash(
        data_emissao=data_emissao,
        data_criacao=data_criacao,
        numero_formatado=numero_formatado,
        total_liquido=total_liquido,
        hash_anterior=hash_anterior,
    )
    return hashlib.sha256(dados.encode("utf-8")).hexdigest()


def calcular_hash_de_documento(documento, hash_anterior: Optional[str]) -> str:
    """Recalcula o hash a partir dos campos persistidos de um Documento."""
    return calcular_hash_documento(
        data_emissao=documento.data_emissao,
        data_criacao=documento.data_criacao,
        numero_formatado=documento.numero_formatado,
        total_liquido=documento.total_liquido,
        hash_anterior=hash_anterior,
    )


def validar_encadeamento(
    *,
    hash_anterior: Optional[str],
    hash_documento_anterior: Optional[str],
) -> bool:
    """
    hash_anterior: o que o documento guardou.
    hash_documento_anterior: o hash efetivo do documento anterior da série
    (None quando o documento é o primeiro).
    """
    if not hash_anterior and not hash_documento_anterior:
        return True
    if hash_anterior and hash_documento_anterior:
        return hash_anterior == hash_documento_anterior
    return False
