import uuid
from django.db import models

from fiscal.services.exceptions import SerieBloqueada


class TipoDocumento(models.TextChoices):
    FATURA = "FATURA", "Fatura"
    FATURA_RECIBO = "FATURA_RECIBO", "Fatura-Recibo"
    FATURA_SIMPLIFICADA = "FATURA_SIMPLIFICADA", "Fatura Simplificada"
    NOTA_CREDITO = "NOTA_CREDITO", "Nota de Crédito"
    NOTA_DEBITO = "NOTA_DEBITO", "Nota de Débito"
    RECIBO = "RECIBO", "Recibo"
    GUIA_REMESSA = "GUIA_REMESSA", "Guia de Remessa"
    GUIA_TRANSPORTE = "GUIA_TRANSPORTE", "Guia de Transporte"
    FATURA_PROFORMA = "FATURA_PROFORMA", "Fatura Pró-forma"
    ORCAMENTO = "ORCAMENTO", "Orçamento"


class Serie(models.Model):
    """
    Série de numeração de um tipo de documento, num ano fiscal.

    Exemplo:
      - FT 2024 -> "FT 2024/00001", "FT 2024/00002", ...
      - NC 2024 -> notas de crédito, cadeia de hash própria

    numero_atual é o último número atribuído (0 = nenhum documento).
    bloqueada passa a True na primeira emissão: a partir daí a série não pode
    ser eliminada nem renumerada (mas continua a aceitar novas emissões).
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
    )

    codigo = models.CharField(
        max_length=20,
        unique=True,
        help_text="Código único da série (ex: FT2024).",
    )

    descricao = models.CharField(max_length=200, blank=True, default="")

    tipo_documento = models.CharField(
        max_length=32,
        choices=TipoDocumento.choices,
    )

    prefixo = models.CharField(
        max_length=10,
        help_text="Prefixo apresentado no número formatado (ex: FT).",
    )

    ano = models.PositiveIntegerField(
        help_text="Ano fiscal da série.",
    )

    numero_atual = models.PositiveIntegerField(
        default=0,
        help_text="Último número utilizado. Próximo será numero_atual + 1.",
    )

    codigo_validacao_at = models.CharField(
        max_length=64,
        blank=True,
        null=True,
        help_text="Código de validação da série atribuído pela AT (base do ATCUD).",
    )

    ativa = models.BooleanField(
        default=True,
        help_text="Se desativada, a série não aceita novas emissões.",
    )

    bloqueada = models.BooleanField(
        default=False,
        help_text="Marcada na primeira emissão; impede eliminação e renumeração.",
    )

    data_inicio = models.DateField(null=True, blank=True)

    created_at = models.DateTimeField(
        auto_now_add=True,
    )
    updated_at = models.DateTimeField(
        auto_now=True,
    )

    class Meta:
        db_table = "fiscal_serie"
        verbose_name = "Série"
        verbose_name_plural = "Séries"
        ordering = ["-ano", "codigo"]
        indexes = [
            models.Index(fields=["tipo_documento", "ano"], name="idx_serie_tipo_ano"),
            models.Index(fields=["ativa"], name="idx_serie_ativa"),
        ]

    def __str__(self):
        return f"{self.codigo} ({self.get_tipo_documento_display()} {self.ano})"

    @property
    def proximo_numero(self) -> int:
        """Retorna em memória qual será o próximo número a emitir."""
        return self.numero_atual + 1

    def formatar_numero(self, numero: int) -> str:
        return f"{self.prefixo} {self.ano}/{numero:05d}"

    def delete(self, *args, **kwargs):
        if self.bloqueada:
            raise SerieBloqueada(
                f"Série {self.codigo} já tem documentos emitidos e não pode ser eliminada."
            )
        return super().delete(*args, **kwargs)
