# fiscal/serializers_pagamento.py
from decimal import Decimal

from rest_framework import serializers

from fiscal.models import EstadoPagamento, MetodoPagamento, Pagamento


class PagamentoSerializer(serializers.ModelSerializer):
    class Meta:
        model = Pagamento
        fields = [
            "id",
            "documento_id",
            "valor",
            "metodo",
            "data",
            "referencia",
            "observacoes",
            "utilizador_id",
            "created_at",
        ]
        read_only_fields = fields


class RegistarPagamentoInputSerializer(serializers.Serializer):
    valor = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=Decimal("0.01")
    )
    metodo = serializers.ChoiceField(choices=MetodoPagamento.choices)
    data = serializers.DateField(required=False)
    referencia = serializers.CharField(
        max_length=120, required=False, allow_blank=True, allow_null=True
    )
    observacoes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class RegistarPagamentoOutputSerializer(serializers.Serializer):
    pagamento = PagamentoSerializer()
    total_pago = serializers.DecimalField(max_digits=14, decimal_places=2)
    estado_pagamento = serializers.ChoiceField(
        choices=EstadoPagamento.choices, source="documento.estado_pagamento"
    )
