import uuid

from django.db import models
from django.utils import timezone


class MetodoPagamento(models.TextChoices):
    NUMERARIO = "NUMERARIO", "Numerário"
    MULTIBANCO = "MULTIBANCO", "Multibanco"
    MBWAY = "MBWAY", "MB WAY"
    CARTAO_CREDITO = "CARTAO_CREDITO", "Cartão de crédito"
    CARTAO_DEBITO = "CARTAO_DEBITO", "Cartão de débito"
    TRANSFERENCIA = "TRANSFERENCIA", "Transferência bancária"
    CHEQUE = "CHEQUE", "Cheque"
    OUTRO = "OUTRO", "Outro"


class Pagamento(models.Model):
    """
    Pagamento recebido por conta de um documento emitido.

    Não altera o documento fiscal: só o estado_pagamento do documento é
    recalculado a partir da soma dos pagamentos.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    documento = models.ForeignKey(
        "fiscal.Documento",
        on_delete=models.PROTECT,
        related_name="pagamentos",
    )

    valor = models.DecimalField(max_digits=14, decimal_places=2)
    metodo = models.CharField(max_length=20, choices=MetodoPagamento.choices)
    data = models.DateField(default=timezone.localdate)
    referencia = models.CharField(max_length=120, blank=True, null=True)
    observacoes = models.TextField(blank=True, null=True)

    utilizador_id = models.IntegerField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "fiscal_pagamento"
        ordering = ["-data", "-created_at"]
        indexes = [
            models.Index(fields=["documento", "data"], name="idx_pagamento_documento_data"),
        ]

    def __str__(self):
        return f"{self.documento_id} - {self.valor} ({self.metodo})"
