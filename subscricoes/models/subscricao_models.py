import calendar
import uuid
from datetime import date, timedelta
from decimal import Decimal

from django.db import models


class Frequencia(models.TextChoices):
    SEMANAL = "SEMANAL", "Semanal"
    MENSAL = "MENSAL", "Mensal"
    TRIMESTRAL = "TRIMESTRAL", "Trimestral"
    SEMESTRAL = "SEMESTRAL", "Semestral"
    ANUAL = "ANUAL", "Anual"


class EstadoSubscricao(models.TextChoices):
    ATIVA = "ATIVA", "Ativa"
    PAUSADA = "PAUSADA", "Pausada"
    CONCLUIDA = "CONCLUIDA", "Concluída"


MESES_POR_FREQUENCIA = {
    Frequencia.MENSAL: 1,
    Frequencia.TRIMESTRAL: 3,
    Frequencia.SEMESTRAL: 6,
    Frequencia.ANUAL: 12,
}


def somar_meses(data: date, meses: int) -> date:
    """Soma meses mantendo o dia, limitado ao último dia do mês de destino."""
    indice = data.month - 1 + meses
    ano = data.year + indice // 12
    mes = indice % 12 + 1
    dia = min(data.day, calendar.monthrange(ano, mes)[1])
    return date(ano, mes, dia)


class Subscricao(models.Model):
    """
    Faturação recorrente: emite um documento na série indicada sempre que
    proxima_emissao chega, com as linhas da subscrição.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    descricao = models.CharField(max_length=200)

    cliente = models.ForeignKey(
        "clientes.Cliente",
        on_delete=models.PROTECT,
        related_name="subscricoes",
    )
    serie = models.ForeignKey(
        "fiscal.Serie",
        on_delete=models.PROTECT,
        related_name="subscricoes",
    )

    frequencia = models.CharField(
        max_length=16,
        choices=Frequencia.choices,
        default=Frequencia.MENSAL,
    )
    estado = models.CharField(
        max_length=16,
        choices=EstadoSubscricao.choices,
        default=EstadoSubscricao.ATIVA,
        db_index=True,
    )

    data_inicio = models.DateField()
    proxima_emissao = models.DateField(db_index=True)
    ultima_emissao = models.DateField(blank=True, null=True)
    data_fim = models.DateField(blank=True, null=True)

    total_base = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    total_iva = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    total_liquido = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "subscricoes_subscricao"
        ordering = ["proxima_emissao", "descricao"]

    def __str__(self):
        return f"{self.descricao} ({self.get_frequencia_display()})"

    def calcular_proxima_emissao(self, a_partir_de: date | None = None) -> date:
        base = a_partir_de or self.proxima_emissao
        if self.frequencia == Frequencia.SEMANAL:
            return base + timedelta(weeks=1)
        return somar_meses(base, MESES_POR_FREQUENCIA[self.frequencia])

    def recalcular_totais(self) -> None:
        linhas = list(self.linhas.all())
        self.total_base = sum((l.base for l in linhas), Decimal("0.00"))
        self.total_iva = sum((l.valor_iva for l in linhas), Decimal("0.00"))
        self.total_liquido = self.total_base + self.total_iva


class LinhaSubscricao(models.Model):
    subscricao = models.ForeignKey(
        Subscricao,
        on_delete=models.CASCADE,
        related_name="linhas",
    )
    ordem = models.PositiveIntegerField(default=1)

    artigo_codigo = models.CharField(max_length=60, blank=True, default="")
    descricao = models.CharField(max_length=255)

    quantidade = models.DecimalField(max_digits=14, decimal_places=3)
    preco_unitario = models.DecimalField(max_digits=14, decimal_places=4)
    desconto = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    taxa_iva_percentagem = models.DecimalField(max_digits=5, decimal_places=2)

    base = models.DecimalField(max_digits=14, decimal_places=2)
    valor_iva = models.DecimalField(max_digits=14, decimal_places=2)

    class Meta:
        db_table = "subscricoes_linha"
        ordering = ["subscricao", "ordem"]

    def __str__(self):
        return f"{self.ordem}: {self.descricao}"
