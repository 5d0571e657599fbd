# subscricoes/services/processamento_service.py

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from django.utils import timezone

from fiscal.services.dto import ConteudoDocumento, LinhaConteudo
from fiscal.services.emissao_service import emitir_documento
from fiscal.services.exceptions import EmissaoError
from fiscal.services.notificacao_service import enviar_documento_por_email
from subscricoes.models import EstadoSubscricao, Subscricao

logger = logging.getLogger("faturacao.subscricoes")

STATUS_SUCESSO = "sucesso"
STATUS_ERRO = "erro"
STATUS_IGNORADA = "ignorada"


class SubscricaoJaProcessada(Exception):
    """Outro processamento avançou a subscrição entre a leitura e a emissão."""


@dataclass
class ResultadoSubscricao:
    subscricao_id: str
    status: str
    numero_formatado: Optional[str] = None
    documento_id: Optional[str] = None
    erro: Optional[str] = None


@dataclass
class ProcessamentoResult:
    total: int = 0
    detalhes: List[ResultadoSubscricao] = field(default_factory=list)

    @property
    def sucesso(self) -> int:
        return sum(1 for d in self.detalhes if d.status == STATUS_SUCESSO)

    @property
    def erros(self) -> int:
        return sum(1 for d in self.detalhes if d.status == STATUS_ERRO)


def _conteudo_da_subscricao(sub: Subscricao, hoje: date) -> ConteudoDocumento:
    linhas = [
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
        for linha in sub.linhas.all()
    ]
    return ConteudoDocumento.a_partir_de_linhas(
        cliente_id=sub.cliente_id,
        linhas=linhas,
        data_emissao=hoje,
        observacoes=f"Fatura gerada automaticamente pela subscrição: {sub.descricao}",
    )


def _avancar_subscricao(sub: Subscricao, hoje: date):
    """
    Devolve o callback ao_persistir: corre dentro da transação da emissão,
    por isso documento e avanço da subscrição são gravados juntos ou nada.
    """
    lida = sub.proxima_emissao

    def avancar(documento) -> None:
        proxima = sub.calcular_proxima_emissao(lida)
        estado = EstadoSubscricao.ATIVA
        if sub.data_fim and proxima > sub.data_fim:
            estado = EstadoSubscricao.CONCLUIDA

        atualizadas = Subscricao.objects.filter(
            id=sub.id,
            estado=EstadoSubscricao.ATIVA,
            proxima_emissao=lida,
        ).update(
            ultima_emissao=hoje,
            proxima_emissao=proxima,
            estado=estado,
            updated_at=timezone.now(),
        )
        if atualizadas != 1:
            raise SubscricaoJaProcessada(
                f"Subscrição {sub.id} já foi processada por outra execução."
            )

        sub.ultima_emissao = hoje
        sub.proxima_emissao = proxima
        sub.estado = estado

    return avancar


def processar_subscricoes(hoje: Optional[date] = None) -> ProcessamentoResult:
    """
    Emite um documento por cada subscrição ATIVA com proxima_emissao <= hoje.

    Regras principais:
      - A emissão passa pelo coordenador fiscal (numeração, hash, ATCUD).
      - proxima_emissao avança na mesma transação do documento; se passar
        data_fim, a subscrição fica CONCLUIDA.
      - Email ao cliente (envio_email_automatico) é efeito pós-commit.
      - Falhas de uma subscrição ficam no resultado e não param as restantes.
    """
    hoje = hoje or timezone.localdate()

    pendentes = list(
        Subscricao.objects.filter(
            estado=EstadoSubscricao.ATIVA,
            proxima_emissao__lte=hoje,
        )
        .select_related("cliente", "serie")
        .prefetch_related("linhas")
        .order_by("proxima_emissao", "created_at")
    )

    resultado = ProcessamentoResult(total=len(pendentes))

    logger.info(
        "processar_subscricoes_iniciado",
        extra={
            "event": "processar_subscricoes",
            "hoje": hoje.isoformat(),
            "pendentes": len(pendentes),
        },
    )

    for sub in pendentes:
        try:
            emissao = emitir_documento(
                serie_id=sub.serie_id,
                conteudo=_conteudo_da_subscricao(sub, hoje),
                ao_persistir=_avancar_subscricao(sub, hoje),
                efeitos=[enviar_documento_por_email],
            )
        except SubscricaoJaProcessada as exc:
            logger.info(
                "processar_subscricao_ignorada",
                extra={
                    "event": "processar_subscricoes",
                    "subscricao_id": str(sub.id),
                    "outcome": "already_processed",
                },
            )
            resultado.detalhes.append(
                ResultadoSubscricao(
                    subscricao_id=str(sub.id), status=STATUS_IGNORADA, erro=str(exc)
                )
            )
            continue
        except EmissaoError as exc:
            logger.warning(
                "processar_subscricao_erro",
                extra={
                    "event": "processar_subscricoes",
                    "subscricao_id": str(sub.id),
                    "code": exc.code,
                    "error": exc.mensagem,
                    "outcome": "failure",
                },
            )
            resultado.detalhes.append(
                ResultadoSubscricao(
                    subscricao_id=str(sub.id), status=STATUS_ERRO, erro=exc.mensagem
                )
            )
            continue
        except Exception as exc:
            # a transação desta subscrição já foi revertida; o lote continua
            logger.exception(
                "processar_subscricao_erro_inesperado",
                extra={
                    "event": "processar_subscricoes",
                    "subscricao_id": str(sub.id),
                    "error": str(exc),
                    "outcome": "failure",
                },
            )
            resultado.detalhes.append(
                ResultadoSubscricao(
                    subscricao_id=str(sub.id), status=STATUS_ERRO, erro=str(exc)
                )
            )
            continue

        resultado.detalhes.append(
            ResultadoSubscricao(
                subscricao_id=str(sub.id),
                status=STATUS_SUCESSO,
                numero_formatado=emissao.documento.numero_formatado,
                documento_id=str(emissao.documento.id),
            )
        )

    logger.info(
        "processar_subscricoes_finalizado",
        extra={
            "event": "processar_subscricoes",
            "total": resultado.total,
            "sucesso": resultado.sucesso,
            "erros": resultado.erros,
            "outcome": "success",
        },
    )
    return resultado
