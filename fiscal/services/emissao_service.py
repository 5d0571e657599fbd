# fiscal/services/emissao_service.py

from __future__ import annotations

import logging
import time
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Iterable, List, Optional
from uuid import UUID

from django.conf import settings
from django.db import DatabaseError, IntegrityError, OperationalError, transaction
from django.utils import timezone

from clientes.models import Cliente
from empresa.models import Empresa
from fiscal.models import (
    AcaoAuditoria,
    Documento,
    DocumentoAuditoria,
    EstadoDocumento,
    EstadoPagamento,
    LinhaDocumento,
    Serie,
    TipoDocumento,
)
from fiscal.services.atcud_service import gerar_atcud
from fiscal.services.dto import (
    DUAS_CASAS,
    ConteudoDocumento,
    EmissaoResult,
    FalhaEfeito,
)
from fiscal.services.exceptions import (
    ClienteNaoEncontrado,
    ConflitoConcorrencia,
    FalhaPersistencia,
    SerieNaoEncontrada,
    ValidacaoFalhou,
)
from fiscal.services.hash_service import calcular_hash_documento, fuso_horario, para_decimal
from fiscal.services.numero_service import alocar_numero
from fiscal.services.qrcode_service import dados_qrcode_documento

logger = logging.getLogger("faturacao.fiscal")

Efeito = Callable[[Documento], None]

# Tipos que retificam outro documento e por isso exigem documento_original
TIPOS_RETIFICATIVOS = {TipoDocumento.NOTA_CREDITO, TipoDocumento.NOTA_DEBITO}
TIPOS_PAGOS_NA_EMISSAO = {TipoDocumento.FATURA_RECIBO, TipoDocumento.RECIBO}

# Mensagens/códigos de base de dados que indicam escrita concorrente
_MARCAS_LOCK_SQLITE = ("database is locked", "database table is locked")
_SQLSTATE_CONFLITO = {"40001", "40P01"}  # serialization_failure, deadlock_detected
_MARCAS_UNIQUE_NUMERO = ("uniq_documento_serie_numero", "fiscal_documento.serie_id")


# ---------------------------------------------------------------------------
# Helpers internos
# ---------------------------------------------------------------------------

def _resolver_serie(serie_id: UUID) -> Serie:
    try:
        serie = Serie.objects.get(id=serie_id)
    except (Serie.DoesNotExist, ValueError):
        raise SerieNaoEncontrada("Série não encontrada.", serie_id=str(serie_id))
    if not serie.ativa:
        raise SerieNaoEncontrada(f"Série {serie.codigo} está inativa.", serie_id=str(serie_id))
    return serie


def _resolver_cliente(cliente_id: UUID) -> Cliente:
    try:
        return Cliente.objects.get(id=cliente_id, ativo=True)
    except (Cliente.DoesNotExist, ValueError):
        raise ClienteNaoEncontrado("Cliente não encontrado.", cliente_id=str(cliente_id))


def _resolver_empresa() -> Empresa:
    empresa = Empresa.atual()
    if empresa is None:
        raise ValidacaoFalhou("Empresa emitente não configurada.")
    return empresa


def _resolver_datas(conteudo: ConteudoDocumento) -> tuple[date, datetime]:
    data_emissao = conteudo.data_emissao or timezone.localdate(timezone=fuso_horario())
    if isinstance(data_emissao, datetime):
        data_emissao = timezone.localtime(data_emissao, fuso_horario()).date() if timezone.is_aware(data_emissao) else data_emissao.date()

    data_criacao = conteudo.data_criacao or timezone.now()
    if timezone.is_naive(data_criacao):
        data_criacao = timezone.make_aware(data_criacao, fuso_horario())
    # o hash usa precisão ao segundo; o valor gravado tem de coincidir
    data_criacao = data_criacao.replace(microsecond=0)
    return data_emissao, data_criacao


def erros_documento_original(
    original: Documento,
    *,
    cliente_id,
    tipo_documento: str,
    total_liquido: Decimal,
) -> dict[str, str]:
    """
    Regras do documento retificado. Corre antes da transação e de novo
    dentro dela, já com o original bloqueado.
    """
    if original.estado != EstadoDocumento.EMITIDO:
        return {"documento_original_id": "Documento original não está emitido."}
    if original.tipo_documento in TIPOS_RETIFICATIVOS:
        return {"documento_original_id": "Não é possível retificar um documento retificativo."}
    if str(original.cliente_id) != str(cliente_id):
        return {"documento_original_id": "Documento original pertence a outro cliente."}

    if tipo_documento == TipoDocumento.NOTA_CREDITO:
        total_creditado = sum(
            original.retificacoes.filter(
                estado=EstadoDocumento.EMITIDO,
                tipo_documento=TipoDocumento.NOTA_CREDITO,
            ).values_list("total_liquido", flat=True),
            Decimal("0.00"),
        )
        if total_creditado + total_liquido > original.total_liquido:
            return {
                "total_liquido": (
                    "Nota de crédito excede o valor por creditar do documento original. "
                    f"Disponível: {original.total_liquido - total_creditado}."
                )
            }
    return {}


def _bloquear_documento_original(
    original_id: UUID,
    *,
    conteudo: ConteudoDocumento,
    tipo_documento: str,
) -> Documento:
    try:
        original = Documento.objects.select_for_update().get(id=original_id)
    except Documento.DoesNotExist:
        raise ValidacaoFalhou(
            "Conteúdo do documento inválido.",
            erros={"documento_original_id": "Documento original não encontrado."},
        )

    erros = erros_documento_original(
        original,
        cliente_id=conteudo.cliente_id,
        tipo_documento=tipo_documento,
        total_liquido=para_decimal(conteudo.total_liquido).quantize(DUAS_CASAS),
    )
    if erros:
        logger.warning(
            "emitir_documento_original_alterado",
            extra={
                "event": "emitir_documento",
                "documento_original_id": str(original_id),
                "erros": erros,
                "outcome": "validation_error",
            },
        )
        raise ValidacaoFalhou("Conteúdo do documento inválido.", erros=erros)
    return original


def validar_conteudo(
    conteudo: ConteudoDocumento,
    *,
    serie: Serie,
    data_emissao: date,
) -> Optional[Documento]:
    """
    Valida o conteúdo antes de entrar na secção crítica.
    Devolve o documento original quando o tipo da série é retificativo.
    """
    erros: dict[str, str] = {}

    if not conteudo.linhas:
        erros["linhas"] = "O documento tem de ter pelo menos uma linha."

    soma_base = Decimal("0.00")
    soma_iva = Decimal("0.00")
    for indice, linha in enumerate(conteudo.linhas, start=1):
        if para_decimal(linha.quantidade) <= 0:
            erros[f"linhas[{indice}].quantidade"] = "Quantidade tem de ser positiva."
        if para_decimal(linha.base) < 0 or para_decimal(linha.valor_iva) < 0:
            erros[f"linhas[{indice}]"] = "Base e IVA não podem ser negativos."
        if not (linha.descricao or "").strip():
            erros[f"linhas[{indice}].descricao"] = "Descrição obrigatória."
        soma_base += para_decimal(linha.base).quantize(DUAS_CASAS)
        soma_iva += para_decimal(linha.valor_iva).quantize(DUAS_CASAS)

    total_base = para_decimal(conteudo.total_base).quantize(DUAS_CASAS)
    total_iva = para_decimal(conteudo.total_iva).quantize(DUAS_CASAS)
    total_liquido = para_decimal(conteudo.total_liquido).quantize(DUAS_CASAS)

    if min(total_base, total_iva, total_liquido) < 0:
        erros["totais"] = "Totais não podem ser negativos."
    if conteudo.linhas and soma_base != total_base:
        erros["total_base"] = f"Soma das bases ({soma_base}) difere de total_base ({total_base})."
    if conteudo.linhas and soma_iva != total_iva:
        erros["total_iva"] = f"Soma do IVA ({soma_iva}) difere de total_iva ({total_iva})."
    if total_base + total_iva != total_liquido:
        erros["total_liquido"] = "total_liquido tem de ser total_base + total_iva."

    if data_emissao.year != serie.ano:
        erros["data_emissao"] = f"Data de emissão fora do ano da série ({serie.ano})."

    if conteudo.estado_pagamento and conteudo.estado_pagamento not in EstadoPagamento.values:
        erros["estado_pagamento"] = "Estado de pagamento inválido."

    original = None
    if serie.tipo_documento in TIPOS_RETIFICATIVOS:
        if not conteudo.documento_original_id:
            erros["documento_original_id"] = "Documento retificativo exige documento original."
        else:
            original = (
                Documento.objects.filter(id=conteudo.documento_original_id).first()
            )
            if original is None:
                erros["documento_original_id"] = "Documento original não encontrado."
            else:
                erros.update(
                    erros_documento_original(
                        original,
                        cliente_id=conteudo.cliente_id,
                        tipo_documento=serie.tipo_documento,
                        total_liquido=total_liquido,
                    )
                )
    elif conteudo.documento_original_id:
        erros["documento_original_id"] = "Só notas de crédito/débito referenciam um documento original."

    if erros:
        raise ValidacaoFalhou("Conteúdo do documento inválido.", erros=erros)

    return original


def _e_conflito(exc: DatabaseError) -> bool:
    mensagem = str(exc)
    if isinstance(exc, IntegrityError):
        return any(marca in mensagem for marca in _MARCAS_UNIQUE_NUMERO)
    if isinstance(exc, OperationalError):
        if any(marca in mensagem for marca in _MARCAS_LOCK_SQLITE):
            return True
        causa = exc.__cause__
        sqlstate = getattr(causa, "sqlstate", None) or getattr(causa, "pgcode", None)
        return sqlstate in _SQLSTATE_CONFLITO
    return False


def _persistir_documento(
    *,
    serie: Serie,
    numero: int,
    numero_formatado: str,
    conteudo: ConteudoDocumento,
    cliente: Cliente,
    empresa: Empresa,
    data_emissao: date,
    data_criacao: datetime,
    hash_documento: str,
    hash_anterior: Optional[str],
    atcud: str,
    original: Optional[Documento],
    utilizador_id: Optional[int],
) -> Documento:
    estado_pagamento = conteudo.estado_pagamento or (
        EstadoPagamento.PAGO
        if serie.tipo_documento in TIPOS_PAGOS_NA_EMISSAO
        else EstadoPagamento.PENDENTE
    )

    documento = Documento.objects.create(
        serie=serie,
        tipo_documento=serie.tipo_documento,
        numero=numero,
        numero_formatado=numero_formatado,
        data_emissao=data_emissao,
        data_criacao=data_criacao,
        cliente=cliente,
        cliente_nome=cliente.nome,
        cliente_nif=cliente.nif,
        cliente_morada=cliente.morada,
        cliente_codigo_postal=cliente.codigo_postal,
        cliente_localidade=cliente.localidade,
        empresa_nome=empresa.nome,
        empresa_nif=empresa.nif,
        empresa_morada=empresa.morada,
        empresa_codigo_postal=empresa.codigo_postal,
        empresa_localidade=empresa.localidade,
        empresa_pais=empresa.pais or settings.FATURACAO_PAIS_EMISSOR_PADRAO,
        total_base=para_decimal(conteudo.total_base).quantize(DUAS_CASAS),
        total_iva=para_decimal(conteudo.total_iva).quantize(DUAS_CASAS),
        total_descontos=para_decimal(conteudo.total_descontos).quantize(DUAS_CASAS),
        total_liquido=para_decimal(conteudo.total_liquido).quantize(DUAS_CASAS),
        hash=hash_documento,
        hash_anterior=hash_anterior,
        atcud=atcud,
        estado=EstadoDocumento.EMITIDO,
        estado_pagamento=estado_pagamento,
        documento_original=original,
        observacoes=conteudo.observacoes,
        utilizador_id=utilizador_id,
    )

    LinhaDocumento.objects.bulk_create(
        [
            LinhaDocumento(
                documento=documento,
                ordem=ordem,
                artigo_codigo=linha.artigo_codigo or "",
                descricao=linha.descricao,
                quantidade=para_decimal(linha.quantidade),
                preco_unitario=para_decimal(linha.preco_unitario),
                desconto=para_decimal(linha.desconto).quantize(DUAS_CASAS),
                taxa_iva_percentagem=para_decimal(linha.taxa_iva_percentagem),
                base=para_decimal(linha.base).quantize(DUAS_CASAS),
                valor_iva=para_decimal(linha.valor_iva).quantize(DUAS_CASAS),
            )
            for ordem, linha in enumerate(conteudo.linhas, start=1)
        ]
    )
    return documento


def _emitir_em_transacao(
    *,
    serie_id: UUID,
    tipo_documento: str,
    conteudo: ConteudoDocumento,
    cliente: Cliente,
    empresa: Empresa,
    data_emissao: date,
    data_criacao: datetime,
    original: Optional[Documento],
    utilizador_id: Optional[int],
    ao_persistir: Optional[Efeito],
) -> Documento:
    """
    Secção crítica: tudo ou nada. Se algo falhar depois da alocação,
    o cursor da série volta ao valor anterior com o rollback.
    """
    with transaction.atomic():
        # Original bloqueado antes da série: anulação e outras notas de
        # crédito sobre o mesmo documento ficam à espera deste commit.
        if original is not None:
            original = _bloquear_documento_original(
                original.id,
                conteudo=conteudo,
                tipo_documento=tipo_documento,
            )

        alocacao = alocar_numero(serie_id)
        serie = alocacao.serie
        numero = alocacao.numero

        # Último documento da MESMA série, pela numeração (não pela data).
        # Documentos anulados continuam na cadeia.
        anterior = (
            Documento.objects.filter(serie_id=serie.id, numero__lt=numero)
            .order_by("-numero")
            .only("id", "numero", "hash")
            .first()
        )
        hash_anterior = anterior.hash if anterior else None

        if anterior is not None and anterior.numero != numero - 1:
            logger.warning(
                "emitir_documento_lacuna_numeracao",
                extra={
                    "event": "emitir_documento",
                    "serie_id": str(serie.id),
                    "numero": numero,
                    "numero_anterior": anterior.numero,
                },
            )

        numero_formatado = serie.formatar_numero(numero)
        hash_documento = calcular_hash_documento(
            data_emissao=data_emissao,
            data_criacao=data_criacao,
            numero_formatado=numero_formatado,
            total_liquido=conteudo.total_liquido,
            hash_anterior=hash_anterior,
        )
        atcud = gerar_atcud(serie.codigo_validacao_at, numero)

        documento = _persistir_documento(
            serie=serie,
            numero=numero,
            numero_formatado=numero_formatado,
            conteudo=conteudo,
            cliente=cliente,
            empresa=empresa,
            data_emissao=data_emissao,
            data_criacao=data_criacao,
            hash_documento=hash_documento,
            hash_anterior=hash_anterior,
            atcud=atcud,
            original=original,
            utilizador_id=utilizador_id,
        )

        DocumentoAuditoria.objects.create(
            acao=AcaoAuditoria.EMIT,
            documento=documento,
            serie_id=serie.id,
            numero=numero,
            utilizador_id=utilizador_id,
            detalhes={
                "numero_formatado": numero_formatado,
                "hash": hash_documento,
                "hash_anterior": hash_anterior,
                "atcud": atcud,
                "total_liquido": str(documento.total_liquido),
            },
        )

        if ao_persistir is not None:
            ao_persistir(documento)

    return documento


def _executar_efeitos(
    documento: Documento,
    efeitos: Iterable[Efeito],
    falhas: List[FalhaEfeito],
) -> None:
    """
    Efeitos pós-emissão (email, webhooks, stock). Best-effort: a falha de um
    efeito é registada e não afeta o documento nem os restantes efeitos.
    """
    for efeito in efeitos:
        nome = getattr(efeito, "__name__", repr(efeito))
        try:
            efeito(documento)
        except Exception as exc:
            logger.exception(
                "efeito_pos_emissao_falhou",
                extra={
                    "event": "efeito_pos_emissao",
                    "documento_id": str(documento.id),
                    "numero_formatado": documento.numero_formatado,
                    "efeito": nome,
                    "outcome": "failure",
                },
            )
            falhas.append(FalhaEfeito(efeito=nome, erro=str(exc)))


# ---------------------------------------------------------------------------
# Função de domínio principal
# ---------------------------------------------------------------------------

def emitir_documento(
    *,
    serie_id: UUID,
    conteudo: ConteudoDocumento,
    utilizador_id: Optional[int] = None,
    ao_persistir: Optional[Efeito] = None,
    efeitos: Iterable[Efeito] = (),
) -> EmissaoResult:
    """
    Ponto único de emissão de documentos fiscais (API direta, conversão de
    encomendas, subscrições, notas de crédito).

    Regras principais:

      1. Resolve série (ativa), cliente e emitente; valida o conteúdo.
      2. Numa única transação: aloca o número (numero_service), lê o hash do
         último documento da mesma série, calcula hash e ATCUD, grava o
         documento, as linhas, a auditoria e o cursor da série.
         ao_persistir(documento) corre dentro desta transação.
      3. ConflitoConcorrencia (ou erro de base de dados equivalente) repete o
         passo 2 inteiro, até FATURACAO_EMISSAO_MAX_TENTATIVAS vezes.
         Outros erros de base de dados sobem como FalhaPersistencia.
      4. Depois do commit: monta os dados do QR code e executa os efeitos
         (best-effort, nunca desfazem a emissão).
    """
    max_tentativas = max(1, int(getattr(settings, "FATURACAO_EMISSAO_MAX_TENTATIVAS", 5)))
    backoff = float(getattr(settings, "FATURACAO_EMISSAO_BACKOFF_SEGUNDOS", 0.02))

    logger.info(
        "emitir_documento_iniciado",
        extra={
            "event": "emitir_documento",
            "serie_id": str(serie_id),
            "cliente_id": str(conteudo.cliente_id),
            "utilizador_id": utilizador_id,
        },
    )

    serie = _resolver_serie(serie_id)
    cliente = _resolver_cliente(conteudo.cliente_id)
    empresa = _resolver_empresa()
    data_emissao, data_criacao = _resolver_datas(conteudo)
    original = validar_conteudo(conteudo, serie=serie, data_emissao=data_emissao)

    tentativa = 0
    while True:
        tentativa += 1
        try:
            documento = _emitir_em_transacao(
                serie_id=serie.id,
                tipo_documento=serie.tipo_documento,
                conteudo=conteudo,
                cliente=cliente,
                empresa=empresa,
                data_emissao=data_emissao,
                data_criacao=data_criacao,
                original=original,
                utilizador_id=utilizador_id,
                ao_persistir=ao_persistir,
            )
            break
        except ConflitoConcorrencia:
            if tentativa >= max_tentativas:
                logger.error(
                    "emitir_documento_conflito_esgotado",
                    extra={
                        "event": "emitir_documento",
                        "serie_id": str(serie.id),
                        "tentativas": tentativa,
                        "outcome": "conflito",
                    },
                )
                raise
        except DatabaseError as exc:
            if not _e_conflito(exc):
                logger.error(
                    "emitir_documento_falha_persistencia",
                    extra={
                        "event": "emitir_documento",
                        "serie_id": str(serie.id),
                        "error": str(exc),
                        "outcome": "falha_persistencia",
                    },
                )
                raise FalhaPersistencia(
                    "Não foi possível gravar o documento.", serie_id=str(serie.id)
                ) from exc
            if tentativa >= max_tentativas:
                raise ConflitoConcorrencia(
                    f"Série {serie.codigo} sob contenção; tente novamente.",
                    serie_id=str(serie.id),
                ) from exc

        logger.warning(
            "emitir_documento_nova_tentativa",
            extra={
                "event": "emitir_documento",
                "serie_id": str(serie.id),
                "tentativa": tentativa,
            },
        )
        time.sleep(backoff * tentativa)

    resultado = EmissaoResult(
        documento=documento,
        dados_qrcode=dados_qrcode_documento(documento),
        tentativas=tentativa,
    )

    logger.info(
        "emitir_documento_finalizado",
        extra={
            "event": "emitir_documento",
            "serie_id": str(serie.id),
            "documento_id": str(documento.id),
            "numero": documento.numero,
            "numero_formatado": documento.numero_formatado,
            "atcud": documento.atcud,
            "tentativas": tentativa,
            "outcome": "success",
        },
    )

    efeitos = list(efeitos)
    if efeitos:
        # Sem transação externa corre já; dentro de uma, só após o commit dela.
        transaction.on_commit(
            lambda: _executar_efeitos(documento, efeitos, resultado.falhas_efeitos)
        )

    return resultado
