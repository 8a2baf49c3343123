# patients/models/__init__.py
from .constants import CONDICION_EDAD, EDAD_MAXIMA_PEDIATRICA, SEXOS
from .paciente import Paciente

__all__ = [
    'Paciente',
    'SEXOS',
    'CONDICION_EDAD',
    'EDAD_MAXIMA_PEDIATRICA',
]
