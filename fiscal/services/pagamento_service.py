# fiscal/services/pagamento_service.py

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from fiscal.models import (
    AcaoAuditoria,
    Documento,
    DocumentoAuditoria,
    EstadoDocumento,
    EstadoPagamento,
    MetodoPagamento,
    Pagamento,
)
from fiscal.services.dto import DUAS_CASAS
from fiscal.services.exceptions import (
    DocumentoNaoEncontrado,
    EstadoDocumentoInvalido,
    ValidacaoFalhou,
)
from fiscal.services.hash_service import fuso_horario, para_decimal

logger = logging.getLogger("faturacao.fiscal")

# Margem para arredondamentos ao comparar total pago com o total do documento
TOLERANCIA_PAGAMENTO = Decimal("0.01")


@dataclass
class RegistarPagamentoResult:
    pagamento: Pagamento
    documento: Documento
    total_pago: Decimal


def calcular_estado_pagamento(total_pago: Decimal, total_documento: Decimal) -> str:
    if total_pago >= total_documento - TOLERANCIA_PAGAMENTO:
        return EstadoPagamento.PAGO
    if total_pago > 0:
        return EstadoPagamento.PARCIAL
    return EstadoPagamento.PENDENTE


def _obter_documento(documento_id: UUID, *, bloquear: bool = False) -> Documento:
    qs = Documento.objects.select_for_update() if bloquear else Documento.objects.all()
    try:
        return qs.get(id=documento_id)
    except (Documento.DoesNotExist, ValueError):
        raise DocumentoNaoEncontrado(
            "Documento não encontrado.", documento_id=str(documento_id)
        )


def listar_pagamentos(documento_id: UUID) -> list[Pagamento]:
    documento = _obter_documento(documento_id)
    return list(documento.pagamentos.all())


@transaction.atomic
def registar_pagamento(
    *,
    documento_id: UUID,
    valor,
    metodo: str,
    data: Optional[date] = None,
    referencia: Optional[str] = None,
    observacoes: Optional[str] = None,
    utilizador_id: Optional[int] = None,
) -> RegistarPagamentoResult:
    """
    Regista um pagamento e recalcula o estado_pagamento do documento.

    Regras principais:
      - valor > 0 e método conhecido.
      - Documento bloqueado (select_for_update) durante o recálculo, para
        que pagamentos simultâneos somem sobre o mesmo total.
      - Documentos anulados não recebem pagamentos.
      - Só estado_pagamento muda no documento; hash e cadeia ficam intactos.
    """
    erros = {}
    try:
        valor = para_decimal(valor).quantize(DUAS_CASAS)
    except ArithmeticError:
        valor = None
    if valor is None or valor <= 0:
        erros["valor"] = "Valor tem de ser positivo."
    if metodo not in MetodoPagamento.values:
        erros["metodo"] = "Método de pagamento inválido."
    if erros:
        raise ValidacaoFalhou("Pagamento inválido.", erros=erros)

    documento = _obter_documento(documento_id, bloquear=True)

    if documento.estado == EstadoDocumento.ANULADO:
        raise EstadoDocumentoInvalido(
            f"Documento {documento.numero_formatado} está anulado; não aceita pagamentos.",
            documento_id=str(documento.id),
        )

    pagamento = Pagamento.objects.create(
        documento=documento,
        valor=valor,
        metodo=metodo,
        data=data or timezone.localdate(timezone=fuso_horario()),
        referencia=referencia or None,
        observacoes=observacoes or None,
        utilizador_id=utilizador_id,
    )

    total_pago = documento.pagamentos.aggregate(total=Sum("valor"))["total"] or Decimal("0.00")
    estado_anterior = documento.estado_pagamento
    documento.estado_pagamento = calcular_estado_pagamento(total_pago, documento.total_liquido)
    documento.save(update_fields=["estado_pagamento", "updated_at"])

    DocumentoAuditoria.objects.create(
        acao=AcaoAuditoria.PAY,
        documento=documento,
        serie_id=documento.serie_id,
        numero=documento.numero,
        utilizador_id=utilizador_id,
        detalhes={
            "numero_formatado": documento.numero_formatado,
            "pagamento_id": str(pagamento.id),
            "valor": str(valor),
            "metodo": metodo,
            "total_pago": str(total_pago),
            "estado_pagamento_anterior": estado_anterior,
            "estado_pagamento": documento.estado_pagamento,
        },
    )

    logger.info(
        "registar_pagamento",
        extra={
            "event": "registar_pagamento",
            "documento_id": str(documento.id),
            "numero_formatado": documento.numero_formatado,
            "valor": str(valor),
            "total_pago": str(total_pago),
            "estado_pagamento": documento.estado_pagamento,
            "outcome": "success",
        },
    )
    return RegistarPagamentoResult(
        pagamento=pagamento, documento=documento, total_pago=total_pago
    )
