# fiscal/services/qrcode_service.py

from __future__ import annotations

from datetime import date, datetime
from typing import Union

from django.utils import timezone

from fiscal.services.hash_service import Valor, formatar_valor

# NIF genérico de consumidor final
NIF_CONSUMIDOR_FINAL = "999999990"

CODIGOS_TIPO_DOCUMENTO = {
    "FATURA": "FT",
    "FATURA_RECIBO": "FR",
    "FATURA_SIMPLIFICADA": "FS",
    "NOTA_CREDITO": "NC",
    "NOTA_DEBITO": "ND",
    "RECIBO": "RC",
    "GUIA_REMESSA": "GR",
    "GUIA_TRANSPORTE": "GT",
    "FATURA_PROFORMA": "FP",
    "ORCAMENTO": "OR",
}
CODIGO_TIPO_PADRAO = "FT"

CAMPOS_OBRIGATORIOS = ("A:", "B:", "C:", "D:", "E:", "F:", "G:", "H:", "I:", "J:")

CARACTERES_HASH = 10


def mapear_tipo_documento(tipo_documento: str) -> str:
    return CODIGOS_TIPO_DOCUMENTO.get(tipo_documento, CODIGO_TIPO_PADRAO)


def _formatar_data_qrcode(data_emissao: Union[date, datetime, str]) -> str:
    if isinstance(data_emissao, str):
        # aceita "AAAA-MM-DD" ou ISO completo
        return data_emissao.split("T")[0].replace("-", "")
    if isinstance(data_emissao, datetime):
        if timezone.is_aware(data_emissao):
            data_emissao = timezone.localtime(data_emissao)
        data_emissao = data_emissao.date()
    return data_emissao.strftime("%Y%m%d")


def gerar_dados_qrcode(
    *,
    nif_emissor: str,
    nif_cliente: str | None,
    pais_emissor: str,
    tipo_documento: str,
    data_emissao: Union[date, datetime, str],
    numero_documento: str,
    atcud: str,
    total_base: Valor,
    total_iva: Valor,
    hash_documento: str,
) -> str:
    """
    Monta a string do QR code: A:NIF*B:NIF cliente*C:País*D:Tipo*E:Data*
    F:Número*G:ATCUD*H:Base*I:IVA*J:10 primeiros caracteres do hash.

    Derivado: não entra no cálculo do hash.
    """
    campos = [
        f"A:{nif_emissor}",
        f"B:{nif_cliente or NIF_CONSUMIDOR_FINAL}",
        f"C:{pais_emissor}",
        f"D:{mapear_tipo_documento(tipo_documento)}",
        f"E:{_formatar_data_qrcode(data_emissao)}",
        f"F:{numero_documento}",
        f"G:{atcud}",
        f"H:{formatar_valor(total_base)}",
        f"I:{formatar_valor(total_iva)}",
        f"J:{hash_documento[:CARACTERES_HASH]}",
    ]
    return "*".join(campos)


def validar_dados_qrcode(dados: str) -> bool:
    return all(campo in dados for campo in CAMPOS_OBRIGATORIOS)


def dados_qrcode_documento(documento) -> str:
    return gerar_dados_qrcode(
        nif_emissor=documento.empresa_nif,
        nif_cliente=documento.cliente_nif,
        pais_emissor=documento.empresa_pais,
        tipo_documento=documento.tipo_documento,
        data_emissao=documento.data_emissao,
        numero_documento=documento.numero_formatado,
        atcud=documento.atcud,
        total_base=documento.total_base,
        total_iva=documento.total_iva,
        hash_documento=documento.hash,
    )
