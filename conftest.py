# conftest.py (na raiz do projeto)

from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APIClient

from clientes.models import Cliente
from empresa.models import Empresa
from fiscal.models import Serie, TipoDocumento
from fiscal.services.dto import ConteudoDocumento, LinhaConteudo


# =============================================================================
# CONFIGURAÇÃO COMUM
# =============================================================================

@pytest.fixture(autouse=True)
def _settings_de_teste(settings):
    settings.EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"
    settings.FATURACAO_EMISSAO_BACKOFF_SEGUNDOS = 0
    settings.ALLOWED_HOSTS = ["*", "testserver"]


# =============================================================================
# DADOS BASE: EMITENTE, CLIENTES, SÉRIES
# =============================================================================

@pytest.fixture
def empresa(db):
    return Empresa.objects.create(
        nome="Exemplo Software, Lda",
        nif="123456789",
        morada="Rua das Flores, 10",
        codigo_postal="1000-001",
        localidade="Lisboa",
        pais="PT",
        email="faturacao@exemplo.pt",
    )


@pytest.fixture
def cliente(db):
    return Cliente.objects.create(
        nome="Cliente Exemplo",
        nif="987654321",
        morada="Avenida Central, 5",
        codigo_postal="4000-100",
        localidade="Porto",
        email="cliente@exemplo.pt",
    )


@pytest.fixture
def criar_serie(db):
    """
    Factory de séries. Por omissão cria uma série de faturas do ano corrente.

    Uso:
        serie = criar_serie(codigo="FT2024", ano=2024, codigo_validacao_at="AAJFJMVNTN")
    """
    contador = {"n": 0}

    def _criar(**kwargs):
        contador["n"] += 1
        dados = {
            "codigo": f"FT{contador['n']:03d}",
            "tipo_documento": TipoDocumento.FATURA,
            "prefixo": "FT",
            "ano": timezone.localdate().year,
        }
        dados.update(kwargs)
        return Serie.objects.create(**dados)

    return _criar


@pytest.fixture
def serie(criar_serie):
    return criar_serie(codigo="FT-ATUAL", codigo_validacao_at="AAJFJMVNTN")


@pytest.fixture
def conteudo_simples():
    """
    Factory de conteúdo com uma linha: conteudo_simples(cliente, "100.00", taxa="23").
    """

    def _build(cliente, preco="100.00", *, taxa="23", quantidade="1", **kwargs):
        linha = LinhaConteudo.calcular(
            descricao="Serviço de consultoria",
            quantidade=Decimal(quantidade),
            preco_unitario=Decimal(preco),
            taxa_iva_percentagem=Decimal(taxa),
        )
        return ConteudoDocumento.a_partir_de_linhas(
            cliente_id=cliente.id, linhas=[linha], **kwargs
        )

    return _build


# =============================================================================
# API
# =============================================================================

@pytest.fixture
def user(db):
    User = get_user_model()
    return User.objects.create_user(username="operador", password="123456")


@pytest.fixture
def api_client(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client
