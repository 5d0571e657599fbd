# fiscal/serializers.py
from rest_framework import serializers

from fiscal.models import Serie, TipoDocumento


class SerieSerializer(serializers.ModelSerializer):
    class Meta:
        model = Serie
        fields = [
            "id",
            "codigo",
            "descricao",
            "tipo_documento",
            "prefixo",
            "ano",
            "numero_atual",
            "codigo_validacao_at",
            "ativa",
            "bloqueada",
            "data_inicio",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class CriarSerieInputSerializer(serializers.Serializer):
    codigo = serializers.CharField(max_length=20)
    descricao = serializers.CharField(max_length=200, required=False, allow_blank=True, default="")
    tipo_documento = serializers.ChoiceField(choices=TipoDocumento.choices)
    prefixo = serializers.CharField(max_length=10)
    ano = serializers.IntegerField(min_value=2000, max_value=9999)
    codigo_validacao_at = serializers.CharField(
        max_length=64, required=False, allow_blank=True, allow_null=True
    )
    data_inicio = serializers.DateField(required=False, allow_null=True)
    ativa = serializers.BooleanField(required=False, default=True)


class AtualizarSerieInputSerializer(serializers.Serializer):
    """
    Todos os campos opcionais (PATCH). A service decide o que uma série
    bloqueada ainda aceita.
    """

    codigo = serializers.CharField(max_length=20, required=False)
    descricao = serializers.CharField(max_length=200, required=False, allow_blank=True)
    tipo_documento = serializers.ChoiceField(choices=TipoDocumento.choices, required=False)
    prefixo = serializers.CharField(max_length=10, required=False)
    ano = serializers.IntegerField(min_value=2000, max_value=9999, required=False)
    codigo_validacao_at = serializers.CharField(
        max_length=64, required=False, allow_blank=True, allow_null=True
    )
    data_inicio = serializers.DateField(required=False, allow_null=True)
    ativa = serializers.BooleanField(required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("Indique pelo menos um campo a alterar.")
        return attrs


class QuebraCadeiaSerializer(serializers.Serializer):
    numero = serializers.IntegerField(allow_null=True)
    tipo = serializers.CharField()
    motivo = serializers.CharField()


class VerificacaoCadeiaOutputSerializer(serializers.Serializer):
    serie_id = serializers.CharField()
    serie_codigo = serializers.CharField()
    total_documentos = serializers.IntegerField()
    numero_atual = serializers.IntegerField()
    valida = serializers.BooleanField()
    quebras = QuebraCadeiaSerializer(many=True)
