# tests/fiscal/api_v1/test_fiscal_api.py
import uuid

import pytest
from django.urls import reverse
from rest_framework.test import APIClient

from fiscal.models import Documento, EstadoDocumento, TipoDocumento
from fiscal.services.emissao_service import emitir_documento


def _payload_emissao(serie, cliente, **extra):
    payload = {
        "serie_id": str(serie.id),
        "cliente_id": str(cliente.id),
        "linhas": [
            {
                "descricao": "Licença anual",
                "quantidade": "2",
                "preco_unitario": "50.00",
                "taxa_iva_percentagem": "23",
            }
        ],
    }
    payload.update(extra)
    return payload


# ---------------------------------------------------------------------------
# Autenticação
# ---------------------------------------------------------------------------

@pytest.mark.django_db
@pytest.mark.parametrize(
    "method,url",
    [
        ("get", "/api/v1/fiscal/series/"),
        ("post", "/api/v1/fiscal/documentos/emitir"),
        ("get", "/api/v1/fiscal/documentos/"),
        ("post", "/api/v1/subscricoes/processar"),
    ],
)
def test_endpoints_exigem_autenticacao(method, url):
    resp = getattr(APIClient(), method)(url, data={}, format="json")
    assert resp.status_code == 401


# ---------------------------------------------------------------------------
# Séries
# ---------------------------------------------------------------------------

@pytest.mark.django_db
def test_criar_e_listar_series(api_client):
    resp = api_client.post(
        reverse("fiscal:series"),
        data={
            "codigo": "FT2030",
            "tipo_documento": TipoDocumento.FATURA,
            "prefixo": "FT",
            "ano": 2030,
            "codigo_validacao_at": "ABC123",
        },
        format="json",
    )
    assert resp.status_code == 201, resp.content
    body = resp.json()
    assert body["numero_atual"] == 0
    assert body["bloqueada"] is False

    resp = api_client.get(reverse("fiscal:series"), {"ano": 2030})
    assert resp.status_code == 200
    assert [s["codigo"] for s in resp.json()] == ["FT2030"]


@pytest.mark.django_db
def test_criar_serie_duplicada_devolve_400(api_client, serie):
    resp = api_client.post(
        reverse("fiscal:series"),
        data={"codigo": serie.codigo, "tipo_documento": "FATURA", "prefixo": "FT", "ano": 2030},
        format="json",
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "FISCAL_4202"


@pytest.mark.django_db
def test_serie_bloqueada_patch_e_delete_devolvem_409(
    api_client, empresa, cliente, serie, conteudo_simples
):
    emitir_documento(serie_id=serie.id, conteudo=conteudo_simples(cliente))
    url = reverse("fiscal:serie_detalhe", args=[serie.id])

    resp = api_client.patch(url, data={"prefixo": "ZZ"}, format="json")
    assert resp.status_code == 409
    assert resp.json()["code"] == "FISCAL_4091"

    resp = api_client.delete(url)
    assert resp.status_code == 409

    resp = api_client.patch(url, data={"descricao": "Principal"}, format="json")
    assert resp.status_code == 200
    assert resp.json()["descricao"] == "Principal"


@pytest.mark.django_db
def test_eliminar_serie_sem_emissoes(api_client, serie):
    resp = api_client.delete(reverse("fiscal:serie_detalhe", args=[serie.id]))
    assert resp.status_code == 204


@pytest.mark.django_db
def test_verificar_cadeia(api_client, empresa, cliente, serie, conteudo_simples):
    for _ in range(3):
        emitir_documento(serie_id=serie.id, conteudo=conteudo_simples(cliente))

    resp = api_client.get(reverse("fiscal:serie_verificar_cadeia", args=[serie.id]))
    assert resp.status_code == 200
    body = resp.json()
    assert body["valida"] is True
    assert body["total_documentos"] == 3
    assert body["quebras"] == []


# ---------------------------------------------------------------------------
# Documentos
# ---------------------------------------------------------------------------

@pytest.mark.django_db
def test_emitir_documento_via_api(api_client, user, empresa, cliente, serie):
    resp = api_client.post(
        reverse("fiscal:documento_emitir"),
        data=_payload_emissao(serie, cliente),
        format="json",
    )
    assert resp.status_code == 201, resp.content

    body = resp.json()
    doc = body["documento"]
    assert doc["numero"] == 1
    assert doc["numero_formatado"] == f"FT {serie.ano}/00001"
    assert doc["atcud"] == "AAJFJMVNTN-1"
    assert doc["total_base"] == "100.00"
    assert doc["total_iva"] == "23.00"
    assert doc["total_liquido"] == "123.00"
    assert doc["hash_anterior"] is None
    assert len(doc["hash"]) == 64
    assert body["tentativas"] == 1
    assert body["dados_qrcode"].startswith(f"A:{empresa.nif}*B:{cliente.nif}*C:PT*D:FT*")

    assert Documento.objects.get(id=doc["id"]).utilizador_id == user.id


@pytest.mark.django_db
def test_emitir_documento_totais_inconsistentes(api_client, empresa, cliente, serie):
    resp = api_client.post(
        reverse("fiscal:documento_emitir"),
        data=_payload_emissao(serie, cliente, total_liquido="999.99"),
        format="json",
    )
    assert resp.status_code == 400
    body = resp.json()
    assert body["code"] == "FISCAL_4202"
    assert "total_liquido" in body["errors"]


@pytest.mark.django_db
def test_emitir_documento_serie_inexistente(api_client, empresa, cliente, serie):
    payload = _payload_emissao(serie, cliente)
    payload["serie_id"] = str(uuid.uuid4())

    resp = api_client.post(reverse("fiscal:documento_emitir"), data=payload, format="json")
    assert resp.status_code == 404
    assert resp.json()["code"] == "FISCAL_4200"


@pytest.mark.django_db
def test_emitir_documento_cliente_inexistente(api_client, empresa, cliente, serie):
    payload = _payload_emissao(serie, cliente)
    payload["cliente_id"] = str(uuid.uuid4())

    resp = api_client.post(reverse("fiscal:documento_emitir"), data=payload, format="json")
    assert resp.status_code == 404
    assert resp.json()["code"] == "FISCAL_4201"


@pytest.mark.django_db
def test_emitir_documento_payload_invalido(api_client, serie, cliente):
    resp = api_client.post(
        reverse("fiscal:documento_emitir"),
        data=_payload_emissao(serie, cliente, linhas=[]),
        format="json",
    )
    assert resp.status_code == 400
    assert "linhas" in resp.json()


@pytest.mark.django_db
def test_emitir_documento_falha_persistencia_devolve_503(
    api_client, empresa, cliente, serie, monkeypatch
):
    from django.db import DatabaseError

    from fiscal.services import emissao_service

    def _falha(**kwargs):
        raise DatabaseError("ligação perdida")

    monkeypatch.setattr(emissao_service, "_persistir_documento", _falha)

    resp = api_client.post(
        reverse("fiscal:documento_emitir"),
        data=_payload_emissao(serie, cliente),
        format="json",
    )
    assert resp.status_code == 503
    assert resp.json()["code"] == "FISCAL_5030"


@pytest.mark.django_db
def test_emitir_documento_conflito_devolve_409(
    api_client, empresa, cliente, serie, monkeypatch, settings
):
    from fiscal.services import emissao_service
    from fiscal.services.exceptions import ConflitoConcorrencia

    settings.FATURACAO_EMISSAO_MAX_TENTATIVAS = 2

    def _conflito(serie_id):
        raise ConflitoConcorrencia("cursor mudou")

    monkeypatch.setattr(emissao_service, "alocar_numero", _conflito)

    resp = api_client.post(
        reverse("fiscal:documento_emitir"),
        data=_payload_emissao(serie, cliente),
        format="json",
    )
    assert resp.status_code == 409
    assert resp.json()["code"] == "FISCAL_4090"


@pytest.mark.django_db
def test_listar_e_detalhar_documentos(api_client, empresa, cliente, serie, conteudo_simples):
    doc = emitir_documento(serie_id=serie.id, conteudo=conteudo_simples(cliente)).documento

    resp = api_client.get(reverse("fiscal:documentos"), {"serie_id": str(serie.id)})
    assert resp.status_code == 200
    assert [d["numero"] for d in resp.json()] == [1]

    resp = api_client.get(reverse("fiscal:documento_detalhe", args=[doc.id]))
    assert resp.status_code == 200
    body = resp.json()
    assert body["hash"] == doc.hash
    assert len(body["linhas"]) == 1
    assert body["dados_qrcode"].endswith(f"*J:{doc.hash[:10]}")

    resp = api_client.get(reverse("fiscal:documento_detalhe", args=[uuid.uuid4()]))
    assert resp.status_code == 404


@pytest.mark.django_db
def test_anular_documento_via_api(api_client, empresa, cliente, serie, conteudo_simples):
    doc = emitir_documento(serie_id=serie.id, conteudo=conteudo_simples(cliente)).documento
    url = reverse("fiscal:documento_anular", args=[doc.id])

    resp = api_client.post(url, data={"motivo": "curto"}, format="json")
    assert resp.status_code == 400

    resp = api_client.post(url, data={"motivo": "Documento emitido em duplicado."}, format="json")
    assert resp.status_code == 200
    assert resp.json()["estado"] == EstadoDocumento.ANULADO

    resp = api_client.post(url, data={"motivo": "Documento emitido em duplicado."}, format="json")
    assert resp.status_code == 200


@pytest.mark.django_db
def test_nota_credito_via_api(api_client, empresa, cliente, serie, criar_serie, conteudo_simples):
    doc = emitir_documento(serie_id=serie.id, conteudo=conteudo_simples(cliente)).documento
    serie_nc = criar_serie(codigo="NC-API", prefixo="NC", tipo_documento=TipoDocumento.NOTA_CREDITO)

    resp = api_client.post(
        reverse("fiscal:documento_nota_credito", args=[doc.id]),
        data={"serie_id": str(serie_nc.id)},
        format="json",
    )
    assert resp.status_code == 201, resp.content
    nc = resp.json()["documento"]
    assert nc["documento_original_id"] == str(doc.id)
    assert nc["total_liquido"] == str(doc.total_liquido)
    assert nc["atcud"] == "0-1"


@pytest.mark.django_db
def test_schema_openapi_disponivel(api_client):
    resp = api_client.get("/api/schema/")
    assert resp.status_code == 200
