# api/procedures/services/__init__.py
from .procedure_service import ProcedimientoService
from .assignment_service import AsignacionService
from .session_service import SesionService

__all__ = [
    'ProcedimientoService',
    'AsignacionService',
    'SesionService',
]
