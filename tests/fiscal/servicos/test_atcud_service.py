# tests/fiscal/servicos/test_atcud_service.py
import pytest

from fiscal.services.atcud_service import (
    ATCUD,
    ATCUD_NAO_APLICAVEL,
    gerar_atcud,
    parse_atcud,
    validar_atcud,
)


def test_gerar_atcud_com_codigo_validacao():
    assert gerar_atcud("PT123456", 7) == "PT123456-7"
    assert gerar_atcud("ABC123", 1) == "ABC123-1"


@pytest.mark.parametrize("codigo", [None, "", "   "])
def test_gerar_atcud_sem_codigo_usa_zero(codigo):
    assert gerar_atcud(codigo, 42) == "0-42"


def test_gerar_atcud_nunca_devolve_nao_aplicavel():
    assert gerar_atcud(None, 1) != ATCUD_NAO_APLICAVEL


@pytest.mark.parametrize("valor", ["ABC123-1", "0-42", "AAJFJMVNTN-12345"])
def test_validar_atcud_aceita(valor):
    assert validar_atcud(valor)


@pytest.mark.parametrize(
    "valor",
    ["", "ABC123", "abc-1", "ABC-", "-1", "ABC-1a", "ABC 1-2", "ABC-1\n"],
)
def test_validar_atcud_rejeita(valor):
    assert not validar_atcud(valor)


def test_parse_atcud():
    assert parse_atcud("ABC123-17") == ATCUD(codigo_validacao="ABC123", numero=17)
    assert parse_atcud("lixo") is None
