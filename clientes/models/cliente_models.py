import uuid
from django.db import models


class Cliente(models.Model):
    """
    Cliente (adquirente). NIF é opcional: sem NIF o documento é emitido
    a consumidor final.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    nome = models.CharField(max_length=200)
    nif = models.CharField(max_length=20, blank=True, null=True, db_index=True)

    morada = models.CharField(max_length=255, blank=True, default="")
    codigo_postal = models.CharField(max_length=8, blank=True, default="")
    localidade = models.CharField(max_length=100, blank=True, default="")
    pais = models.CharField(max_length=2, default="PT")

    email = models.EmailField(blank=True, null=True)
    envio_email_automatico = models.BooleanField(
        default=False,
        help_text="Envia automaticamente por email os documentos emitidos em lote (subscrições).",
    )

    ativo = models.BooleanField(default=True, db_index=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Cliente"
        verbose_name_plural = "Clientes"
        ordering = ["nome"]

    def __str__(self):
        return f"{self.nome} ({self.nif or 'consumidor final'})"
