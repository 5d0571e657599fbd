import uuid
from decimal import Decimal

from django.db import models

from fiscal.services.exceptions import DocumentoImutavel


class EstadoDocumento(models.TextChoices):
    EMITIDO = "EMITIDO", "Emitido"
    ANULADO = "ANULADO", "Anulado"


class EstadoPagamento(models.TextChoices):
    PENDENTE = "PENDENTE", "Pendente"
    PARCIAL = "PARCIAL", "Parcial"
    PAGO = "PAGO", "Pago"


# Campos fixados no momento da emissão. Qualquer correção é um novo documento.
CAMPOS_IMUTAVEIS = (
    "serie_id",
    "numero",
    "numero_formatado",
    "data_emissao",
    "data_criacao",
    "total_liquido",
    "hash",
    "hash_anterior",
    "atcud",
)


class Documento(models.Model):
    """
    Documento fiscal encadeado.

    - Um registo por (serie, numero); criado diretamente no estado EMITIDO.
    - hash_anterior é o hash do documento com o número imediatamente anterior
      na mesma série (NULL apenas no primeiro documento da série).
    - Após a emissão só mudam campos de gestão (estado de pagamento, anulação),
      que não entram no cálculo do hash.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    serie = models.ForeignKey(
        "fiscal.Serie",
        on_delete=models.PROTECT,
        related_name="documentos",
    )
    tipo_documento = models.CharField(max_length=32)

    numero = models.PositiveIntegerField()
    numero_formatado = models.CharField(max_length=40)

    data_emissao = models.DateField()
    # Pode diferir de data_emissao em importações com data retroativa.
    data_criacao = models.DateTimeField()

    cliente = models.ForeignKey(
        "clientes.Cliente",
        on_delete=models.PROTECT,
        related_name="documentos",
    )

    # Snapshot do cliente
    cliente_nome = models.CharField(max_length=200)
    cliente_nif = models.CharField(max_length=20, blank=True, null=True)
    cliente_morada = models.CharField(max_length=255, blank=True, default="")
    cliente_codigo_postal = models.CharField(max_length=8, blank=True, default="")
    cliente_localidade = models.CharField(max_length=100, blank=True, default="")

    # Snapshot do emitente
    empresa_nome = models.CharField(max_length=200)
    empresa_nif = models.CharField(max_length=9)
    empresa_morada = models.CharField(max_length=255, blank=True, default="")
    empresa_codigo_postal = models.CharField(max_length=8, blank=True, default="")
    empresa_localidade = models.CharField(max_length=100, blank=True, default="")
    empresa_pais = models.CharField(max_length=2, default="PT")

    total_base = models.DecimalField(max_digits=14, decimal_places=2)
    total_iva = models.DecimalField(max_digits=14, decimal_places=2)
    total_descontos = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    # Total bruto (base + IVA); é este o valor que entra no hash.
    total_liquido = models.DecimalField(max_digits=14, decimal_places=2)

    hash = models.CharField(max_length=64)
    hash_anterior = models.CharField(max_length=64, blank=True, null=True)
    atcud = models.CharField(max_length=80)

    estado = models.CharField(
        max_length=16,
        choices=EstadoDocumento.choices,
        default=EstadoDocumento.EMITIDO,
    )
    estado_pagamento = models.CharField(
        max_length=16,
        choices=EstadoPagamento.choices,
        default=EstadoPagamento.PENDENTE,
    )

    # Nota de crédito -> documento que retifica
    documento_original = models.ForeignKey(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="retificacoes",
    )

    motivo_anulacao = models.TextField(blank=True, null=True)
    data_anulacao = models.DateTimeField(blank=True, null=True)

    observacoes = models.TextField(blank=True, null=True)

    # Sem FK para o utilizador (autenticação é externa a este módulo)
    utilizador_id = models.IntegerField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "fiscal_documento"
        ordering = ["serie", "numero"]
        constraints = [
            models.UniqueConstraint(
                fields=["serie", "numero"],
                name="uniq_documento_serie_numero",
            ),
        ]
        indexes = [
            models.Index(fields=["serie", "-numero"], name="idx_documento_serie_numero"),
            models.Index(fields=["estado"], name="idx_documento_estado"),
            models.Index(fields=["atcud"], name="idx_documento_atcud"),
        ]

    def __str__(self):
        return f"{self.numero_formatado} ({self.estado})"

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._registar_valores_emissao()
        return instance

    def _registar_valores_emissao(self):
        self._valores_emissao = {
            campo: self.__dict__[campo]
            for campo in CAMPOS_IMUTAVEIS
            if campo in self.__dict__
        }

    def save(self, *args, **kwargs):
        originais = getattr(self, "_valores_emissao", None)
        if not self._state.adding and originais:
            alterados = [
                campo
                for campo, valor in originais.items()
                if self.__dict__.get(campo) != valor
            ]
            if alterados:
                raise DocumentoImutavel(
                    f"Documento {originais.get('numero_formatado')} já emitido; "
                    f"campos imutáveis alterados: {', '.join(alterados)}."
                )
        super().save(*args, **kwargs)
        self._registar_valores_emissao()

    @property
    def primeiro_da_serie(self) -> bool:
        return not self.hash_anterior


class LinhaDocumento(models.Model):
    documento = models.ForeignKey(
        Documento,
        on_delete=models.CASCADE,
        related_name="linhas",
    )
    ordem = models.PositiveIntegerField()

    artigo_codigo = models.CharField(max_length=60, blank=True, default="")
    descricao = models.CharField(max_length=255)

    quantidade = models.DecimalField(max_digits=14, decimal_places=3)
    preco_unitario = models.DecimalField(max_digits=14, decimal_places=4)
    desconto = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    taxa_iva_percentagem = models.DecimalField(max_digits=5, decimal_places=2)

    base = models.DecimalField(max_digits=14, decimal_places=2)
    valor_iva = models.DecimalField(max_digits=14, decimal_places=2)

    class Meta:
        db_table = "fiscal_documento_linha"
        ordering = ["documento", "ordem"]

    def __str__(self):
        return f"{self.ordem}: {self.descricao}"
