# fiscal/services/verificacao_service.py

import logging
from dataclasses import dataclass, field
from typing import List, Optional
from uuid import UUID

from fiscal.models import Documento, Serie
from fiscal.services.exceptions import SerieNaoEncontrada
from fiscal.services.hash_service import (
    calcular_hash_de_documento,
    validar_encadeamento,
)

logger = logging.getLogger("faturacao.fiscal")

QUEBRA_LACUNA = "lacuna_numeracao"
QUEBRA_CURSOR = "cursor_divergente"
QUEBRA_HASH = "hash_divergente"
QUEBRA_ELO = "hash_anterior_divergente"
QUEBRA_PRIMEIRO = "primeiro_com_hash_anterior"


@dataclass
class QuebraCadeia:
    numero: Optional[int]
    tipo: str
    motivo: str


@dataclass
class VerificacaoCadeiaResult:
    serie_id: str
    serie_codigo: str
    total_documentos: int
    numero_atual: int
    quebras: List[QuebraCadeia] = field(default_factory=list)

    @property
    def valida(self) -> bool:
        return not self.quebras


def verificar_cadeia(serie_id: UUID) -> VerificacaoCadeiaResult:
    """
    Percorre os documentos da série por número e confirma que:
      - a numeração é contínua a partir de 1 e o cursor coincide com o último número;
      - cada hash guardado é igual ao recalculado a partir dos campos gravados;
      - cada hash_anterior é o hash do documento com o número anterior;
      - o primeiro documento não tem hash_anterior.

    Só reporta. Não corrige nada.
    """
    try:
        serie = Serie.objects.get(id=serie_id)
    except (Serie.DoesNotExist, ValueError):
        raise SerieNaoEncontrada("Série não encontrada.", serie_id=str(serie_id))

    documentos = (
        Documento.objects.filter(serie_id=serie.id)
        .order_by("numero")
        .only(
            "id",
            "numero",
            "numero_formatado",
            "data_emissao",
            "data_criacao",
            "total_liquido",
            "hash",
            "hash_anterior",
        )
    )

    resultado = VerificacaoCadeiaResult(
        serie_id=str(serie.id),
        serie_codigo=serie.codigo,
        total_documentos=0,
        numero_atual=serie.numero_atual,
    )

    anterior: Optional[Documento] = None
    for documento in documentos.iterator():
        resultado.total_documentos += 1
        esperado = anterior.numero + 1 if anterior else 1

        if documento.numero != esperado:
            resultado.quebras.append(
                QuebraCadeia(
                    numero=documento.numero,
                    tipo=QUEBRA_LACUNA,
                    motivo=f"Esperado número {esperado}, encontrado {documento.numero}.",
                )
            )

        if anterior is None:
            if documento.hash_anterior:
                resultado.quebras.append(
                    QuebraCadeia(
                        numero=documento.numero,
                        tipo=QUEBRA_PRIMEIRO,
                        motivo="Primeiro documento da série com hash_anterior preenchido.",
                    )
                )
        elif not validar_encadeamento(
            hash_anterior=documento.hash_anterior,
            hash_documento_anterior=anterior.hash,
        ):
            resultado.quebras.append(
                QuebraCadeia(
                    numero=documento.numero,
                    tipo=QUEBRA_ELO,
                    motivo=f"hash_anterior não corresponde ao hash de {anterior.numero_formatado}.",
                )
            )

        recalculado = calcular_hash_de_documento(documento, documento.hash_anterior)
        if recalculado != documento.hash:
            resultado.quebras.append(
                QuebraCadeia(
                    numero=documento.numero,
                    tipo=QUEBRA_HASH,
                    motivo="Hash guardado difere do recalculado.",
                )
            )

        anterior = documento

    ultimo = anterior.numero if anterior else 0
    if serie.numero_atual != ultimo:
        resultado.quebras.append(
            QuebraCadeia(
                numero=None,
                tipo=QUEBRA_CURSOR,
                motivo=f"numero_atual={serie.numero_atual}, último documento={ultimo}.",
            )
        )

    log = logger.info if resultado.valida else logger.warning
    log(
        "verificar_cadeia",
        extra={
            "event": "verificar_cadeia",
            "serie_id": str(serie.id),
            "total_documentos": resultado.total_documentos,
            "quebras": len(resultado.quebras),
            "outcome": "success" if resultado.valida else "quebrada",
        },
    )
    return resultado
