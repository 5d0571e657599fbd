# fiscal/serializers_emissao.py
from decimal import Decimal

from rest_framework import serializers

from fiscal.models import Documento, EstadoPagamento, LinhaDocumento
from fiscal.services.dto import ConteudoDocumento, LinhaConteudo
from fiscal.services.qrcode_service import dados_qrcode_documento


class LinhaInputSerializer(serializers.Serializer):
    """
    Linha de documento. base e valor_iva são opcionais: quando omitidos,
    são calculados a partir de quantidade, preço, desconto e taxa.
    """

    descricao = serializers.CharField(max_length=255)
    artigo_codigo = serializers.CharField(max_length=60, required=False, allow_blank=True, default="")
    quantidade = serializers.DecimalField(max_digits=14, decimal_places=3)
    preco_unitario = serializers.DecimalField(max_digits=14, decimal_places=4)
    desconto = serializers.DecimalField(
        max_digits=14, decimal_places=2, required=False, default=Decimal("0.00")
    )
    taxa_iva_percentagem = serializers.DecimalField(max_digits=5, decimal_places=2)
    base = serializers.DecimalField(max_digits=14, decimal_places=2, required=False)
    valor_iva = serializers.DecimalField(max_digits=14, decimal_places=2, required=False)

    def to_linha(self, data) -> LinhaConteudo:
        if "base" in data and "valor_iva" in data:
            return LinhaConteudo(
                descricao=data["descricao"],
                quantidade=data["quantidade"],
                preco_unitario=data["preco_unitario"],
                taxa_iva_percentagem=data["taxa_iva_percentagem"],
                base=data["base"],
                valor_iva=data["valor_iva"],
                desconto=data["desconto"],
                artigo_codigo=data["artigo_codigo"],
            )
        return LinhaConteudo.calcular(
            descricao=data["descricao"],
            quantidade=data["quantidade"],
            preco_unitario=data["preco_unitario"],
            taxa_iva_percentagem=data["taxa_iva_percentagem"],
            desconto=data["desconto"],
            artigo_codigo=data["artigo_codigo"],
        )


class EmitirDocumentoInputSerializer(serializers.Serializer):
    """
    Dados de entrada para emissão via API.

    Totais omitidos são derivados das linhas; quando enviados, a service
    confirma que batem com as linhas.
    """

    serie_id = serializers.UUIDField()
    cliente_id = serializers.UUIDField()
    linhas = LinhaInputSerializer(many=True, allow_empty=False)

    total_base = serializers.DecimalField(max_digits=14, decimal_places=2, required=False)
    total_iva = serializers.DecimalField(max_digits=14, decimal_places=2, required=False)
    total_liquido = serializers.DecimalField(max_digits=14, decimal_places=2, required=False)

    data_emissao = serializers.DateField(required=False)
    data_criacao = serializers.DateTimeField(required=False)
    observacoes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    documento_original_id = serializers.UUIDField(required=False, allow_null=True)
    estado_pagamento = serializers.ChoiceField(
        choices=EstadoPagamento.choices, required=False, allow_null=True
    )

    def to_conteudo(self) -> ConteudoDocumento:
        data = self.validated_data
        linha_ser = LinhaInputSerializer()
        linhas = [linha_ser.to_linha(linha) for linha in data["linhas"]]

        opcionais = {
            campo: data.get(campo)
            for campo in (
                "data_emissao",
                "data_criacao",
                "observacoes",
                "documento_original_id",
                "estado_pagamento",
            )
        }
        conteudo = ConteudoDocumento.a_partir_de_linhas(
            cliente_id=data["cliente_id"], linhas=linhas, **opcionais
        )
        for campo in ("total_base", "total_iva", "total_liquido"):
            if data.get(campo) is not None:
                setattr(conteudo, campo, data[campo])
        return conteudo


class LinhaDocumentoSerializer(serializers.ModelSerializer):
    class Meta:
        model = LinhaDocumento
        fields = [
            "ordem",
            "artigo_codigo",
            "descricao",
            "quantidade",
            "preco_unitario",
            "desconto",
            "taxa_iva_percentagem",
            "base",
            "valor_iva",
        ]


class DocumentoResumoSerializer(serializers.ModelSerializer):
    serie_id = serializers.UUIDField(read_only=True)
    cliente_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = Documento
        fields = [
            "id",
            "serie_id",
            "tipo_documento",
            "numero",
            "numero_formatado",
            "data_emissao",
            "cliente_id",
            "cliente_nome",
            "total_liquido",
            "atcud",
            "estado",
            "estado_pagamento",
        ]
        read_only_fields = fields


class DocumentoSerializer(serializers.ModelSerializer):
    """
    Documento completo, com linhas e dados do QR code (derivados, não gravados).
    """

    serie_id = serializers.UUIDField(read_only=True)
    cliente_id = serializers.UUIDField(read_only=True)
    documento_original_id = serializers.UUIDField(read_only=True, allow_null=True)
    linhas = LinhaDocumentoSerializer(many=True, read_only=True)
    dados_qrcode = serializers.SerializerMethodField()

    class Meta:
        model = Documento
        fields = [
            "id",
            "serie_id",
            "tipo_documento",
            "numero",
            "numero_formatado",
            "data_emissao",
            "data_criacao",
            "cliente_id",
            "cliente_nome",
            "cliente_nif",
            "empresa_nome",
            "empresa_nif",
            "empresa_pais",
            "total_base",
            "total_iva",
            "total_descontos",
            "total_liquido",
            "hash",
            "hash_anterior",
            "atcud",
            "estado",
            "estado_pagamento",
            "documento_original_id",
            "motivo_anulacao",
            "data_anulacao",
            "observacoes",
            "linhas",
            "dados_qrcode",
        ]
        read_only_fields = fields

    def get_dados_qrcode(self, obj) -> str:
        return dados_qrcode_documento(obj)


class FalhaEfeitoSerializer(serializers.Serializer):
    efeito = serializers.CharField()
    erro = serializers.CharField()


class EmitirDocumentoOutputSerializer(serializers.Serializer):
    """
    Espelha o EmissaoResult devolvido por emissao_service.emitir_documento.
    """

    documento = DocumentoSerializer()
    dados_qrcode = serializers.CharField()
    tentativas = serializers.IntegerField()
    falhas_efeitos = FalhaEfeitoSerializer(many=True)


class AnularDocumentoInputSerializer(serializers.Serializer):
    motivo = serializers.CharField(
        help_text="Motivo descritivo da anulação (mínimo 15 caracteres).",
    )

    def validate_motivo(self, value):
        if len(value.strip()) < 15:
            raise serializers.ValidationError(
                "Motivo de anulação muito curto (mínimo 15 caracteres)."
            )
        return value.strip()


class NotaCreditoInputSerializer(serializers.Serializer):
    serie_id = serializers.UUIDField(
        help_text="Série de notas de crédito onde a nota será emitida.",
    )
    observacoes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
