# api/procedures/repositories/__init__.py
from .procedure_repository import (
    AsignacionRepository,
    CatalogoRepository,
    ProcedimientoRepository,
    SesionRepository,
)

__all__ = [
    'AsignacionRepository',
    'CatalogoRepository',
    'ProcedimientoRepository',
    'SesionRepository',
]
