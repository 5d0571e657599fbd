# subscricoes/serializers.py
from rest_framework import serializers


class ProcessarSubscricoesInputSerializer(serializers.Serializer):
    hoje = serializers.DateField(
        required=False,
        help_text="Data de referência (omissão: hoje). Útil para reprocessar um dia.",
    )


class ResultadoSubscricaoSerializer(serializers.Serializer):
    subscricao_id = serializers.CharField()
    status = serializers.CharField()
    numero_formatado = serializers.CharField(allow_null=True)
    documento_id = serializers.CharField(allow_null=True)
    erro = serializers.CharField(allow_null=True)


class ProcessarSubscricoesOutputSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    sucesso = serializers.IntegerField()
    erros = serializers.IntegerField()
    detalhes = ResultadoSubscricaoSerializer(many=True)
