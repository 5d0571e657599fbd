from .subscricao_models import (
    EstadoSubscricao,
    Frequencia,
    LinhaSubscricao,
    Subscricao,
)

__all__ = [
    "EstadoSubscricao",
    "Frequencia",
    "LinhaSubscricao",
    "Subscricao",
]
