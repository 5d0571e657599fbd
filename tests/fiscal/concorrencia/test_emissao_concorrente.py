# tests/fiscal/concorrencia/test_emissao_concorrente.py
from concurrent.futures import ThreadPoolExecutor, as_completed

import pytest
from django.db import close_old_connections, connection

from fiscal.models import Documento
from fiscal.services.emissao_service import emitir_documento
from fiscal.services.verificacao_service import verificar_cadeia

N = 50


def _emitir_em_paralelo(pedidos, conteudo_simples, cliente):
    """
    pedidos: lista de serie_id, uma emissão por entrada.
    Cada thread usa a sua própria ligação e fecha-a no fim.
    """

    def worker(serie_id):
        close_old_connections()
        try:
            return emitir_documento(serie_id=serie_id, conteudo=conteudo_simples(cliente))
        finally:
            connection.close()

    with ThreadPoolExecutor(max_workers=10) as ex:
        futuros = [ex.submit(worker, serie_id) for serie_id in pedidos]
        return [f.result() for f in as_completed(futuros)]


def _assert_cadeia_continua(serie, total):
    docs = list(Documento.objects.filter(serie=serie).order_by("numero"))
    assert [d.numero for d in docs] == list(range(1, total + 1))

    anterior = None
    for doc in docs:
        assert doc.hash_anterior == (anterior.hash if anterior else None)
        anterior = doc

    serie.refresh_from_db()
    assert serie.numero_atual == total


@pytest.mark.django_db(transaction=True)
def test_emissoes_concorrentes_na_mesma_serie_sem_buracos(empresa, cliente, serie, conteudo_simples):
    """
    N emissões em paralelo na mesma série -> números 1..N, sem duplicados,
    e cada documento encadeia no hash do número anterior.
    """
    resultados = _emitir_em_paralelo([serie.id] * N, conteudo_simples, cliente)

    numeros = sorted(r.documento.numero for r in resultados)
    assert numeros == list(range(1, N + 1)), f"Números não contínuos: {numeros}"

    _assert_cadeia_continua(serie, N)
    assert verificar_cadeia(serie.id).valida


@pytest.mark.django_db(transaction=True)
def test_emissoes_concorrentes_em_duas_series(empresa, cliente, criar_serie, conteudo_simples):
    serie_a = criar_serie(codigo="CONC-A", prefixo="FA")
    serie_b = criar_serie(codigo="CONC-B", prefixo="FB")

    pedidos = [serie_a.id, serie_b.id] * (N // 2)
    resultados = _emitir_em_paralelo(pedidos, conteudo_simples, cliente)

    assert len(resultados) == N
    _assert_cadeia_continua(serie_a, N // 2)
    _assert_cadeia_continua(serie_b, N // 2)

    # cadeias não se cruzam
    hashes_a = set(Documento.objects.filter(serie=serie_a).values_list("hash", flat=True))
    anteriores_b = set(
        Documento.objects.filter(serie=serie_b).values_list("hash_anterior", flat=True)
    )
    assert not (hashes_a & anteriores_b)
