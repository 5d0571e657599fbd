from .serie_models import Serie, TipoDocumento
from .documento_models import (
    Documento,
    LinhaDocumento,
    EstadoDocumento,
    EstadoPagamento,
    CAMPOS_IMUTAVEIS,
)
from .auditoria_models import DocumentoAuditoria, AcaoAuditoria
from .pagamento_models import Pagamento, MetodoPagamento


__all__ = [
    "Serie",
    "TipoDocumento",
    "Documento",
    "LinhaDocumento",
    "EstadoDocumento",
    "EstadoPagamento",
    "CAMPOS_IMUTAVEIS",
    "DocumentoAuditoria",
    "AcaoAuditoria",
    "Pagamento",
    "MetodoPagamento",
]
