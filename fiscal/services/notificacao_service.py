# fiscal/services/notificacao_service.py

import logging

from django.conf import settings
from django.core.mail import send_mail

from fiscal.services.qrcode_service import dados_qrcode_documento

logger = logging.getLogger("faturacao.fiscal")


def enviar_documento_por_email(documento) -> None:
    """
    Efeito pós-emissão: envia o resumo do documento ao cliente.

    Só envia quando o cliente tem email e envio_email_automatico ativo.
    Erros de envio sobem para o coordenador, que os regista sem desfazer a emissão.
    """
    cliente = documento.cliente
    if not cliente.envio_email_automatico or not cliente.email:
        return

    corpo = "\n".join(
        [
            f"{documento.empresa_nome} (NIF {documento.empresa_nif})",
            "",
            f"Documento: {documento.numero_formatado}",
            f"Data de emissão: {documento.data_emissao:%Y-%m-%d}",
            f"Total: {documento.total_liquido} EUR",
            f"ATCUD: {documento.atcud}",
            "",
            f"QR: {dados_qrcode_documento(documento)}",
        ]
    )
    send_mail(
        subject=f"{documento.empresa_nome} - {documento.numero_formatado}",
        message=corpo,
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[cliente.email],
        fail_silently=False,
    )

    logger.info(
        "documento_email_enviado",
        extra={
            "event": "documento_email",
            "documento_id": str(documento.id),
            "numero_formatado": documento.numero_formatado,
            "outcome": "success",
        },
    )
