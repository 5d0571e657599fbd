import uuid
from django.db import models
from django.core.validators import MinLengthValidator, RegexValidator


nif_validator = RegexValidator(r"^\d{9}$", "NIF deve ter 9 dígitos.")


class Empresa(models.Model):
    """
    Empresa emitente.
    Os dados são copiados (snapshot) para cada documento no momento da emissão,
    para que alterações posteriores não afetem documentos já emitidos.
    """
    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
    )

    nome = models.CharField(
        max_length=200,
        help_text="Denominação social do emitente.",
    )

    nif = models.CharField(
        max_length=9,
        unique=True,
        validators=[MinLengthValidator(9), nif_validator],
        db_index=True,
        help_text="NIF do emitente (9 dígitos). Campo A do QR code.",
    )

    morada = models.CharField(max_length=255, blank=True, default="")
    codigo_postal = models.CharField(max_length=8, blank=True, default="")
    localidade = models.CharField(max_length=100, blank=True, default="")

    pais = models.CharField(
        max_length=2,
        default="PT",
        help_text="País do emitente (ISO 3166-1 alfa-2). Campo C do QR code.",
    )

    email = models.EmailField(blank=True, default="")

    ativo = models.BooleanField(
        default=True,
        db_index=True,
    )

    created_at = models.DateTimeField(
        auto_now_add=True,
    )
    updated_at = models.DateTimeField(
        auto_now=True,
    )

    class Meta:
        verbose_name = "Empresa"
        verbose_name_plural = "Empresas"
        ordering = ["created_at"]

    def __str__(self):
        return f"{self.nome} ({self.nif})"

    @classmethod
    def atual(cls):
        """Emitente ativo (a instalação trabalha com um único emitente)."""
        return cls.objects.filter(ativo=True).order_by("created_at").first()
