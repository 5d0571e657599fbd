# tests/fiscal/servicos/test_hash_service.py
from datetime import date, datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest
from django.utils import timezone

from fiscal.services.hash_service import (
    calcular_hash_documento,
    formatar_data_criacao,
    formatar_valor,
    montar_dados_hash,
    validar_encadeamento,
)

HASH_PRIMEIRO = "f7d8a56bbb1d95f2d1f6e7677ebbce6b2f28a064987f17716c8bd661cdc532be"
HASH_SEGUNDO = "f2de0dc9d932a946e66a97ee98761a3e3d5a747fb0c8927cf6dd314a174cffa3"


def _base(**overrides):
    dados = {
        "data_emissao": date(2024, 1, 15),
        "data_criacao": datetime(2024, 1, 15, 10, 30, 0),
        "numero_formatado": "FT 2024/00001",
        "total_liquido": Decimal("123.45"),
        "hash_anterior": None,
    }
    dados.update(overrides)
    return dados


def test_montar_dados_hash_formato_fixo():
    assert montar_dados_hash(**_base()) == "2024-01-15;2024-01-15T10:30:00;FT 2024/00001;123.45;"


def test_hash_primeiro_documento_valor_conhecido():
    h = calcular_hash_documento(**_base())
    assert h == HASH_PRIMEIRO
    assert len(h) == 64
    assert h == h.lower()


def test_hash_segundo_documento_encadeado():
    h = calcular_hash_documento(
        **_base(
            data_criacao=datetime(2024, 1, 15, 10, 31, 0),
            numero_formatado="FT 2024/00002",
            total_liquido=Decimal("50.00"),
            hash_anterior=HASH_PRIMEIRO,
        )
    )
    assert h == HASH_SEGUNDO


def test_hash_deterministico():
    assert calcular_hash_documento(**_base()) == calcular_hash_documento(**_base())


@pytest.mark.parametrize(
    "campo,valor",
    [
        ("data_emissao", date(2024, 1, 16)),
        ("data_criacao", datetime(2024, 1, 15, 10, 30, 1)),
        ("numero_formatado", "FT 2024/00002"),
        ("total_liquido", Decimal("123.46")),
        ("hash_anterior", "a" * 64),
    ],
)
def test_hash_muda_com_qualquer_campo(campo, valor):
    assert calcular_hash_documento(**_base(**{campo: valor})) != HASH_PRIMEIRO


def test_hash_anterior_vazio_equivale_a_none():
    assert calcular_hash_documento(**_base(hash_anterior="")) == HASH_PRIMEIRO


def test_total_aceita_float_e_string_sem_erro_binario():
    assert calcular_hash_documento(**_base(total_liquido=123.45)) == HASH_PRIMEIRO
    assert calcular_hash_documento(**_base(total_liquido="123.450")) == HASH_PRIMEIRO
    assert formatar_valor(0.1 + 0.2) == "0.30"
    assert formatar_valor(Decimal("2.005")) == "2.01"
    assert formatar_valor(50) == "50.00"


def test_data_criacao_com_fuso_convertida_para_hora_local(settings):
    settings.TIME_ZONE = "Europe/Lisbon"
    # 10:30 em Lisboa no inverno == 10:30 UTC; no verão UTC+1
    inverno = datetime(2024, 1, 15, 10, 30, 0, tzinfo=ZoneInfo("UTC"))
    assert calcular_hash_documento(**_base(data_criacao=inverno)) == HASH_PRIMEIRO

    verao_utc = datetime(2024, 7, 1, 9, 0, 0, tzinfo=ZoneInfo("UTC"))
    dados = montar_dados_hash(**_base(data_criacao=verao_utc))
    assert ";2024-07-01T10:00:00;" in dados


def test_hash_nao_depende_do_fuso_ativo(settings):
    settings.TIME_ZONE = "Europe/Lisbon"
    inverno = datetime(2024, 1, 15, 10, 30, 0, tzinfo=ZoneInfo("UTC"))

    with timezone.override(ZoneInfo("America/Sao_Paulo")):
        assert calcular_hash_documento(**_base(data_criacao=inverno)) == HASH_PRIMEIRO
        assert formatar_data_criacao(inverno) == "2024-01-15T10:30:00"


def test_data_criacao_ignora_microsegundos():
    com_micro = datetime(2024, 1, 15, 10, 30, 0, 987654)
    assert calcular_hash_documento(**_base(data_criacao=com_micro)) == HASH_PRIMEIRO


def test_validar_encadeamento():
    assert validar_encadeamento(hash_anterior=None, hash_documento_anterior=None)
    assert validar_encadeamento(hash_anterior="", hash_documento_anterior=None)
    assert validar_encadeamento(hash_anterior="abc", hash_documento_anterior="abc")
    assert not validar_encadeamento(hash_anterior="abc", hash_documento_anterior="abd")
    assert not validar_encadeamento(hash_anterior=None, hash_documento_anterior="abc")
    assert not validar_encadeamento(hash_anterior="abc", hash_documento_anterior=None)
