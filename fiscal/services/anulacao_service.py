# fiscal/services/anulacao_service.py

import logging
from dataclasses import dataclass
from typing import Iterable, Optional
from uuid import UUID

from django.db import transaction
from django.utils import timezone

from fiscal.models import (
    AcaoAuditoria,
    Documento,
    DocumentoAuditoria,
    EstadoDocumento,
    Serie,
    TipoDocumento,
)
from fiscal.services.dto import ConteudoDocumento, EmissaoResult, LinhaConteudo
from fiscal.services.emissao_service import Efeito, emitir_documento
from fiscal.services.exceptions import (
    DocumentoNaoEncontrado,
    EstadoDocumentoInvalido,
    ValidacaoFalhou,
)

logger = logging.getLogger("faturacao.fiscal")

MOTIVO_MIN_CARACTERES = 15


@dataclass
class AnularDocumentoResult:
    documento: Documento
    ja_anulado: bool


def _validar_motivo(motivo: Optional[str]) -> str:
    motivo = (motivo or "").strip()
    if len(motivo) < MOTIVO_MIN_CARACTERES:
        raise ValidacaoFalhou(
            "Motivo de anulação muito curto.",
            erros={"motivo": f"Mínimo {MOTIVO_MIN_CARACTERES} caracteres."},
        )
    return motivo


@transaction.atomic
def anular_documento(
    *,
    documento_id: UUID,
    motivo: str,
    utilizador_id: Optional[int] = None,
) -> AnularDocumentoResult:
    """
    Anula um documento emitido.

    Regras principais:
      - O documento mantém número, hash e lugar na cadeia; só muda o estado.
      - Se já estiver anulado, é idempotente (não regista nova auditoria).
      - Registra auditoria ANNUL.
    """
    motivo = _validar_motivo(motivo)

    try:
        documento = Documento.objects.select_for_update().get(id=documento_id)
    except (Documento.DoesNotExist, ValueError):
        raise DocumentoNaoEncontrado(
            "Documento não encontrado.", documento_id=str(documento_id)
        )

    if documento.estado == EstadoDocumento.ANULADO:
        logger.info(
            "anular_documento_idempotente",
            extra={
                "event": "anular_documento",
                "documento_id": str(documento.id),
                "numero_formatado": documento.numero_formatado,
                "outcome": "already_cancelled",
            },
        )
        return AnularDocumentoResult(documento=documento, ja_anulado=True)

    if documento.retificacoes.filter(estado=EstadoDocumento.EMITIDO).exists():
        raise EstadoDocumentoInvalido(
            f"Documento {documento.numero_formatado} tem notas de crédito emitidas; "
            "anule-as primeiro.",
            documento_id=str(documento.id),
        )

    documento.estado = EstadoDocumento.ANULADO
    documento.motivo_anulacao = motivo
    documento.data_anulacao = timezone.now()
    documento.save(update_fields=["estado", "motivo_anulacao", "data_anulacao", "updated_at"])

    DocumentoAuditoria.objects.create(
        acao=AcaoAuditoria.ANNUL,
        documento=documento,
        serie_id=documento.serie_id,
        numero=documento.numero,
        utilizador_id=utilizador_id,
        detalhes={
            "numero_formatado": documento.numero_formatado,
            "motivo": motivo,
        },
    )

    logger.info(
        "anular_documento",
        extra={
            "event": "anular_documento",
            "documento_id": str(documento.id),
            "numero_formatado": documento.numero_formatado,
            "utilizador_id": utilizador_id,
            "outcome": "success",
        },
    )
    return AnularDocumentoResult(documento=documento, ja_anulado=False)


def _linhas_do_original(original: Documento) -> list[LinhaConteudo]:
    return [
        LinhaConteudo(
            descricao=linha.descricao,
            quantidade=linha.quantidade,
            preco_unitario=linha.preco_unitario,
            taxa_iva_percentagem=linha.taxa_iva_percentagem,
            base=linha.base,
            valor_iva=linha.valor_iva,
            desconto=linha.desconto,
            artigo_codigo=linha.artigo_codigo,
        )
        for linha in original.linhas.all()
    ]


def emitir_nota_credito(
    *,
    documento_original_id: UUID,
    serie_id: UUID,
    utilizador_id: Optional[int] = None,
    linhas: Optional[list[LinhaConteudo]] = None,
    observacoes: Optional[str] = None,
    efeitos: Iterable[Efeito] = (),
) -> EmissaoResult:
    """
    Emite uma nota de crédito que retifica documento_original_id.

    Sem linhas explícitas, credita o documento original na totalidade.
    O total creditado (notas emitidas + esta) não pode exceder o original;
    a regra é revista dentro da transação de emissão com o original bloqueado.
    A série escolhida tem de ser do tipo NOTA_CREDITO; a nota de crédito
    segue a cadeia de hash dessa série, não a do original.
    """
    try:
        original = Documento.objects.get(id=documento_original_id)
    except (Documento.DoesNotExist, ValueError):
        raise DocumentoNaoEncontrado(
            "Documento original não encontrado.",
            documento_id=str(documento_original_id),
        )

    tipo_serie = (
        Serie.objects.filter(id=serie_id).values_list("tipo_documento", flat=True).first()
    )
    if tipo_serie is not None and tipo_serie != TipoDocumento.NOTA_CREDITO:
        raise ValidacaoFalhou(
            "A série indicada não é de notas de crédito.",
            erros={"serie_id": "Série tem de ser do tipo NOTA_CREDITO."},
        )

    linhas = linhas if linhas is not None else _linhas_do_original(original)
    conteudo = ConteudoDocumento.a_partir_de_linhas(
        cliente_id=original.cliente_id,
        linhas=linhas,
        documento_original_id=original.id,
        observacoes=observacoes or f"Retifica {original.numero_formatado}",
    )

    return emitir_documento(
        serie_id=serie_id,
        conteudo=conteudo,
        utilizador_id=utilizador_id,
        efeitos=efeitos,
    )
