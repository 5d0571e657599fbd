from .empresa_models import Empresa

__all__ = ["Empresa"]
