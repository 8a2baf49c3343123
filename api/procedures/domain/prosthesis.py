# api/procedures/domain/prosthesis.py
"""
Regla de exclusividad de prótesis completas.

Un paciente puede tener como máximo una prótesis completa activa; se
considera activa mientras no esté finalizada ni cancelada.
"""
from django.db import models

from . import errors, fdi
from .estados import ProcedureStatus

PROSTHESIS_KEYWORDS = ('completa superior', 'completa inferior', 'completa total')

ESTADOS_INACTIVOS = frozenset({ProcedureStatus.FINALIZADO, ProcedureStatus.CANCELADO})

MENSAJE_PROTESIS_ACTIVA = (
    'Ya existe una prótesis activa. Debes finalizar o cancelar la prótesis '
    'existente antes de crear una nueva.'
)


class ProsthesisKind(models.TextChoices):
    SUPERIOR = 'upper', 'Completa Superior'
    INFERIOR = 'lower', 'Completa Inferior'
    TOTAL = 'total', 'Completa Total'


def _nombre_tratamiento(tratamiento):
    if tratamiento is None:
        return ''
    nombre = getattr(tratamiento, 'name', tratamiento)
    return (nombre or '').lower()


def is_prosthesis(tratamiento):
    """True si el tratamiento (o su nombre) corresponde a una prótesis completa"""
    nombre = _nombre_tratamiento(tratamiento)
    return any(kw in nombre for kw in PROSTHESIS_KEYWORDS)


def prosthesis_kind(tratamiento):
    """Tipo de prótesis según el nombre del tratamiento, o None"""
    nombre = _nombre_tratamiento(tratamiento)
    for kind in ProsthesisKind:
        if kind.label.lower() in nombre:
            return kind
    return None


def is_active(procedimiento):
    return procedimiento.status not in ESTADOS_INACTIVOS


def active_prostheses(procedimientos):
    return [
        p for p in procedimientos
        if is_active(p) and is_prosthesis(p.treatment)
    ]


def has_active_prosthesis(procedimientos):
    return bool(active_prostheses(procedimientos))


def ensure_prosthesis_allowed(procedimientos, tratamiento):
    """
    Lanza ConflictError si `tratamiento` es una prótesis y el paciente ya
    tiene otra prótesis activa. Para cualquier otro tratamiento no hace nada.
    """
    if not is_prosthesis(tratamiento):
        return
    existentes = active_prostheses(procedimientos)
    if existentes:
        raise errors.ConflictError(
            MENSAJE_PROTESIS_ACTIVA,
            procedure_id=existentes[0].id,
        )


def teeth_for_prosthesis(kind, pediatrico=False):
    """Dientes que cubre una prótesis: arcada superior, inferior o ambas"""
    kind = ProsthesisKind(kind)
    if kind == ProsthesisKind.SUPERIOR:
        return fdi.dientes_superiores(pediatrico)
    if kind == ProsthesisKind.INFERIOR:
        return fdi.dientes_inferiores(pediatrico)
    return fdi.dientes_arcada(pediatrico)
