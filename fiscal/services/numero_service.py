# fiscal/services/numero_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from django.db import transaction
from django.utils import timezone

from fiscal.models import Serie
from fiscal.services.exceptions import ConflitoConcorrencia, SerieNaoEncontrada

logger = logging.getLogger("faturacao.fiscal")


@dataclass
class AlocacaoNumero:
    serie: Serie
    numero: int


def alocar_numero(serie_id: UUID) -> AlocacaoNumero:
    """
    Atribui o próximo número da série.

    Regras:
      - Tem de correr dentro de transaction.atomic(): o avanço do cursor só
        fica visível se o documento for persistido na mesma transação.
      - Lock pessimista (select_for_update) na linha da série; em PostgreSQL
        serializa emissões concorrentes na mesma série sem bloquear outras séries.
      - Compare-and-set no UPDATE (WHERE numero_atual = valor lido): se outro
        escritor avançou o cursor entretanto, levanta ConflitoConcorrencia e o
        chamador repete todo o bloco (leitura incluída).
      - Marca a série como bloqueada.
    """
    if not transaction.get_connection().in_atomic_block:
        raise RuntimeError("alocar_numero tem de ser chamado dentro de transaction.atomic().")

    try:
        serie = Serie.objects.select_for_update().get(id=serie_id)
    except Serie.DoesNotExist:
        raise SerieNaoEncontrada("Série não encontrada.", serie_id=str(serie_id))

    if not serie.ativa:
        raise SerieNaoEncontrada(
            f"Série {serie.codigo} está inativa.", serie_id=str(serie_id)
        )

    lido = serie.numero_atual
    proximo = lido + 1

    atualizadas = Serie.objects.filter(id=serie.id, numero_atual=lido).update(
        numero_atual=proximo,
        bloqueada=True,
        updated_at=timezone.now(),
    )
    if atualizadas != 1:
        logger.warning(
            "alocar_numero_conflito",
            extra={
                "event": "alocar_numero",
                "serie_id": str(serie.id),
                "numero_lido": lido,
                "outcome": "conflito",
            },
        )
        raise ConflitoConcorrencia(
            f"Cursor da série {serie.codigo} alterado por outra emissão.",
            serie_id=str(serie.id),
        )

    serie.numero_atual = proximo
    serie.bloqueada = True

    logger.debug(
        "alocar_numero",
        extra={
            "event": "alocar_numero",
            "serie_id": str(serie.id),
            "numero": proximo,
            "outcome": "success",
        },
    )
    return AlocacaoNumero(serie=serie, numero=proximo)
