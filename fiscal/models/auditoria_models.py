import uuid
from django.db import models
from django.utils import timezone


class AcaoAuditoria(models.TextChoices):
    EMIT = "EMIT", "Emissão"
    ANNUL = "ANNUL", "Anulação"
    PAY = "PAY", "Pagamento"


class DocumentoAuditoria(models.Model):
    """
    Trilha de auditoria de eventos fiscais sobre documentos.
    Escrita na mesma transação da alteração de estado que regista.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    acao = models.CharField(max_length=16, choices=AcaoAuditoria.choices)

    documento = models.ForeignKey(
        "fiscal.Documento",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="auditorias",
    )

    serie_id = models.UUIDField()
    numero = models.PositiveIntegerField()
    utilizador_id = models.IntegerField(blank=True, null=True)

    detalhes = models.JSONField(blank=True, null=True)

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "fiscal_documento_auditoria"
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["acao"]),
            models.Index(fields=["serie_id", "numero"]),
        ]

    def __str__(self):
        return f"[{self.acao}] serie={self.serie_id} numero={self.numero}"
