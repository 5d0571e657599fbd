# fiscal/services/dto.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import TYPE_CHECKING, List, Optional
from uuid import UUID

if TYPE_CHECKING:
    from fiscal.models import Documento

DUAS_CASAS = Decimal("0.01")
ZERO = Decimal("0.00")


def _q(valor) -> Decimal:
    return Decimal(str(valor)).quantize(DUAS_CASAS, rounding=ROUND_HALF_UP)


@dataclass
class LinhaConteudo:
    """
    Linha já calculada pelo chamador (base e IVA incluídos).
    """
    descricao: str
    quantidade: Decimal
    preco_unitario: Decimal
    taxa_iva_percentagem: Decimal
    base: Decimal
    valor_iva: Decimal
    desconto: Decimal = ZERO
    artigo_codigo: str = ""

    @classmethod
    def calcular(
        cls,
        *,
        descricao: str,
        quantidade,
        preco_unitario,
        taxa_iva_percentagem,
        desconto=ZERO,
        artigo_codigo: str = "",
    ) -> "LinhaConteudo":
        quantidade = Decimal(str(quantidade))
        preco_unitario = Decimal(str(preco_unitario))
        taxa = Decimal(str(taxa_iva_percentagem))
        desconto = _q(desconto)
        base = _q(quantidade * preco_unitario - desconto)
        valor_iva = _q(base * taxa / Decimal("100"))
        return cls(
            descricao=descricao,
            quantidade=quantidade,
            preco_unitario=preco_unitario,
            taxa_iva_percentagem=taxa,
            base=base,
            valor_iva=valor_iva,
            desconto=desconto,
            artigo_codigo=artigo_codigo,
        )


@dataclass
class ConteudoDocumento:
    cliente_id: UUID
    linhas: List[LinhaConteudo]
    total_base: Decimal
    total_iva: Decimal
    total_liquido: Decimal
    total_descontos: Decimal = ZERO
    data_emissao: Optional[date] = None
    data_criacao: Optional[datetime] = None
    observacoes: Optional[str] = None
    documento_original_id: Optional[UUID] = None
    estado_pagamento: Optional[str] = None

    @classmethod
    def a_partir_de_linhas(
        cls,
        *,
        cliente_id: UUID,
        linhas: List[LinhaConteudo],
        **kwargs,
    ) -> "ConteudoDocumento":
        total_base = sum((_q(l.base) for l in linhas), ZERO)
        total_iva = sum((_q(l.valor_iva) for l in linhas), ZERO)
        total_descontos = sum((_q(l.desconto) for l in linhas), ZERO)
        return cls(
            cliente_id=cliente_id,
            linhas=list(linhas),
            total_base=total_base,
            total_iva=total_iva,
            total_liquido=total_base + total_iva,
            total_descontos=total_descontos,
            **kwargs,
        )


@dataclass
class FalhaEfeito:
    efeito: str
    erro: str


@dataclass
class EmissaoResult:
    """
    Resultado da emissão. O documento já está confirmado quando isto é devolvido;
    falhas_efeitos só reporta efeitos pós-emissão (email, webhooks, stock).
    """
    documento: Documento
    dados_qrcode: str
    tentativas: int
    falhas_efeitos: List[FalhaEfeito] = field(default_factory=list)
