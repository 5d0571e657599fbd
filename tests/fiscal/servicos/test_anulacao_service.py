# tests/fiscal/servicos/test_anulacao_service.py
import uuid
from decimal import Decimal

import pytest

from fiscal.models import (
    AcaoAuditoria,
    DocumentoAuditoria,
    EstadoDocumento,
    TipoDocumento,
)
from fiscal.services.anulacao_service import anular_documento, emitir_nota_credito
from fiscal.services.dto import LinhaConteudo
from fiscal.services.emissao_service import emitir_documento
from fiscal.services.exceptions import (
    DocumentoNaoEncontrado,
    EstadoDocumentoInvalido,
    ValidacaoFalhou,
)

MOTIVO = "Erro na identificação do cliente."


@pytest.fixture
def serie_nc(criar_serie):
    return criar_serie(
        codigo="NC-ATUAL",
        prefixo="NC",
        tipo_documento=TipoDocumento.NOTA_CREDITO,
        codigo_validacao_at="NCVALID1",
    )


@pytest.fixture
def fatura(empresa, cliente, serie, conteudo_simples):
    return emitir_documento(serie_id=serie.id, conteudo=conteudo_simples(cliente, "100.00")).documento


# ---------------------------------------------------------------------------
# Anulação
# ---------------------------------------------------------------------------

@pytest.mark.django_db
def test_anular_documento_mantem_cadeia(fatura, cliente, serie, conteudo_simples):
    hash_original = fatura.hash

    result = anular_documento(documento_id=fatura.id, motivo=MOTIVO, utilizador_id=3)

    doc = result.documento
    assert result.ja_anulado is False
    assert doc.estado == EstadoDocumento.ANULADO
    assert doc.motivo_anulacao == MOTIVO
    assert doc.data_anulacao is not None
    assert doc.hash == hash_original

    auditoria = DocumentoAuditoria.objects.get(documento=doc, acao=AcaoAuditoria.ANNUL)
    assert auditoria.utilizador_id == 3
    assert auditoria.detalhes["motivo"] == MOTIVO

    # o documento anulado continua a ser o anterior na cadeia
    seguinte = emitir_documento(serie_id=serie.id, conteudo=conteudo_simples(cliente)).documento
    assert seguinte.numero == 2
    assert seguinte.hash_anterior == hash_original


@pytest.mark.django_db
def test_anular_documento_idempotente(fatura):
    anular_documento(documento_id=fatura.id, motivo=MOTIVO)
    result = anular_documento(documento_id=fatura.id, motivo=MOTIVO)

    assert result.ja_anulado is True
    assert DocumentoAuditoria.objects.filter(acao=AcaoAuditoria.ANNUL).count() == 1


@pytest.mark.django_db
def test_anular_motivo_curto(fatura):
    with pytest.raises(ValidacaoFalhou) as exc:
        anular_documento(documento_id=fatura.id, motivo="curto")
    assert "motivo" in exc.value.erros


@pytest.mark.django_db
def test_anular_documento_inexistente():
    with pytest.raises(DocumentoNaoEncontrado):
        anular_documento(documento_id=uuid.uuid4(), motivo=MOTIVO)


@pytest.mark.django_db
def test_nao_anula_documento_com_nota_credito_emitida(fatura, serie_nc):
    emitir_nota_credito(documento_original_id=fatura.id, serie_id=serie_nc.id)

    with pytest.raises(EstadoDocumentoInvalido):
        anular_documento(documento_id=fatura.id, motivo=MOTIVO)


# ---------------------------------------------------------------------------
# Nota de crédito
# ---------------------------------------------------------------------------

@pytest.mark.django_db
def test_nota_credito_total(fatura, serie_nc):
    resultado = emitir_nota_credito(
        documento_original_id=fatura.id, serie_id=serie_nc.id, utilizador_id=5
    )
    nc = resultado.documento

    assert nc.tipo_documento == TipoDocumento.NOTA_CREDITO
    assert nc.documento_original_id == fatura.id
    assert nc.numero_formatado == f"NC {serie_nc.ano}/00001"
    assert nc.atcud == "NCVALID1-1"
    # cadeia própria da série de notas de crédito
    assert nc.hash_anterior is None
    assert nc.total_liquido == fatura.total_liquido
    assert nc.linhas.count() == fatura.linhas.count()
    assert "*D:NC*" in resultado.dados_qrcode


@pytest.mark.django_db
def test_nota_credito_parcial_nao_excede_original(fatura, serie_nc):
    parcial = [
        LinhaConteudo.calcular(
            descricao="Devolução parcial",
            quantidade=Decimal("1"),
            preco_unitario=Decimal("60.00"),
            taxa_iva_percentagem=Decimal("23"),
        )
    ]
    emitir_nota_credito(documento_original_id=fatura.id, serie_id=serie_nc.id, linhas=parcial)

    with pytest.raises(ValidacaoFalhou) as exc:
        emitir_nota_credito(documento_original_id=fatura.id, serie_id=serie_nc.id, linhas=parcial)
    assert "total_liquido" in exc.value.erros


@pytest.mark.django_db
def test_nota_credito_em_serie_errada(fatura, serie):
    with pytest.raises(ValidacaoFalhou) as exc:
        emitir_nota_credito(documento_original_id=fatura.id, serie_id=serie.id)
    assert "serie_id" in exc.value.erros


@pytest.mark.django_db
def test_nota_credito_de_documento_anulado(fatura, serie_nc):
    anular_documento(documento_id=fatura.id, motivo=MOTIVO)
    with pytest.raises(ValidacaoFalhou) as exc:
        emitir_nota_credito(documento_original_id=fatura.id, serie_id=serie_nc.id)
    assert "documento_original_id" in exc.value.erros
