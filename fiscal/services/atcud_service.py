# fiscal/services/atcud_service.py
"""
ATCUD: código único do documento, "<código de validação da série>-<número>".

Séries sem código de validação (ambientes de teste, séries ainda não
comunicadas à AT) usam sempre o prefixo "0". A string vazia fica reservada
para documentos onde o ATCUD não se aplica e nunca é devolvida por gerar_atcud.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

ATCUD_SEM_CODIGO_VALIDACAO = "0"
ATCUD_NAO_APLICAVEL = ""

_ATCUD_RE = re.compile(r"[A-Z0-9]+-[0-9]+")


@dataclass(frozen=True)
class ATCUD:
    codigo_validacao: str
    numero: int


def gerar_atcud(codigo_validacao: Optional[str], numero: int) -> str:
    codigo = (codigo_validacao or "").strip()
    if not codigo:
        codigo = ATCUD_SEM_CODIGO_VALIDACAO
    return f"{codigo}-{numero}"


def validar_atcud(atcud: str) -> bool:
    return bool(atcud) and _ATCUD_RE.fullmatch(atcud) is not None


def parse_atcud(atcud: str) -> Optional[ATCUD]:
    if not validar_atcud(atcud):
        return None
    codigo, numero = atcud.split("-", 1)
    return ATCUD(codigo_validacao=codigo, numero=int(numero))
