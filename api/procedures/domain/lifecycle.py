# api/procedures/domain/lifecycle.py
"""
Máquina de estados del procedimiento y de su asignación.

Cada función recibe un snapshot y el usuario que actúa, valida la
transición y devuelve snapshots nuevos. Si la transición no procede se
lanza la excepción correspondiente y el snapshot original queda intacto.
"""
import logging
from dataclasses import dataclass, replace
from typing import Optional

from . import errors, fdi, prosthesis
from .estados import (
    Accion,
    AssignmentStatus,
    ESTADOS_CREACION_MANUAL,
    ESTADOS_EDITABLES,
    ProcedureStatus,
    destino,
)
from .snapshots import (
    AssignmentSnapshot,
    AutoAssignCreation,
    ManualCreation,
    ProcedureSnapshot,
)

logger = logging.getLogger(__name__)

MAX_FINAL_NOTES = 1000
MAX_ABANDON_REASON = 500
MOTIVO_CANCELACION = 'Procedimiento cancelado por su creador'
MAX_SESIONES_TOTALES = 50

CAMPOS_EDITABLES = frozenset({
    'status', 'treatment', 'notes', 'teeth', 'tooth_surface', 'is_repair', 'chair_id', 'sessions_total',
})


@dataclass(frozen=True)
class TransitionResult:
    """Procedimiento resultante y la asignación afectada por la transición"""
    procedure: ProcedureSnapshot
    assignment: Optional[AssignmentSnapshot] = None


# ==================== CAPACIDADES ====================

def _mismo_id(a, b):
    return a is not None and b is not None and str(a) == str(b)


def is_user_assigned(assignment, acting_user):
    """El alumno de la asignación es el usuario que actúa"""
    if assignment is None or acting_user is None:
        return False
    return _mismo_id(assignment.student_id, acting_user.id)


def is_creator(procedure, acting_user):
    if acting_user is None:
        return False
    return _mismo_id(procedure.created_by_id, acting_user.id)


def can_edit(procedure):
    return procedure.status in ESTADOS_EDITABLES


def can_cancel(procedure, acting_user):
    return is_creator(procedure, acting_user) and destino(procedure.status, Accion.CANCELAR) is not None


def _exigir_actor(acting_user):
    if acting_user is None or not acting_user.id:
        raise errors.AuthorizationError('No se pudo identificar al usuario')


def _exigir_misma_catedra(treatment, chair_id):
    if treatment.chair_id and chair_id and str(treatment.chair_id) != str(chair_id):
        raise errors.ValidationError('El tratamiento no pertenece a la cátedra seleccionada')


def validar_sesiones_totales(total):
    """Entero entre 1 y MAX_SESIONES_TOTALES; cualquier otro valor es ValidationError"""
    try:
        total = int(total)
    except (TypeError, ValueError):
        raise errors.ValidationError('El número de sesiones debe ser un entero')
    if not 1 <= total <= MAX_SESIONES_TOTALES:
        raise errors.ValidationError(f'El número de sesiones debe estar entre 1 y {MAX_SESIONES_TOTALES}')
    return total


def _transicion_invalida(procedure, accion):
    logger.debug(f"Transición '{accion}' rechazada para procedimiento {procedure.id} en estado {procedure.status}")
    return errors.InvalidTransitionError(
        f"No se puede {Accion(accion).label.lower()} un procedimiento en estado "
        f"'{ProcedureStatus(procedure.status).label}'",
        procedure_id=procedure.id,
        status=str(procedure.status),
    )


# ==================== CREACIÓN ====================

def plan_creation(
    existentes,
    *,
    treatment,
    teeth,
    intent,
    acting_user,
    tooth_surface=None,
    is_repair=False,
    sessions_total=None,
    chair_id=None,
    notes='',
    patient_id=None,
    pediatrico=False,
    now=None,
):
    """
    Valida una intención de creación y devuelve el snapshot a persistir.

    `existentes` son los procedimientos actuales del paciente; se usan para
    la regla de exclusividad de prótesis. Una prótesis completa ignora
    `teeth` y cubre la arcada entera (temporal si `pediatrico`).
    """
    _exigir_actor(acting_user)

    if isinstance(intent, ManualCreation):
        estado = intent.status
        if estado not in ESTADOS_CREACION_MANUAL:
            raise errors.ValidationError(
                f"Estado inicial '{estado}' no permitido al crear un procedimiento"
            )
    elif isinstance(intent, AutoAssignCreation):
        estado = ProcedureStatus.PROCESO
    else:
        raise errors.ValidationError('Intención de creación desconocida')

    if treatment is None:
        raise errors.ValidationError('Debe seleccionar un tratamiento')
    _exigir_misma_catedra(treatment, chair_id)

    if prosthesis.is_prosthesis(treatment):
        dientes = prosthesis.teeth_for_prosthesis(prosthesis.prosthesis_kind(treatment), pediatrico)
    else:
        dientes = fdi.normalizar_dientes(teeth)
    requiere_diente = treatment.requires_tooth or estado == ProcedureStatus.AUSENTE
    if requiere_diente and not dientes:
        raise errors.ValidationError('Debe seleccionar al menos un diente')

    superficie = fdi.validar_superficie(tooth_surface)

    if sessions_total is None:
        sessions_total = treatment.estimated_sessions or 1
    sessions_total = validar_sesiones_totales(sessions_total)

    prosthesis.ensure_prosthesis_allowed(existentes, treatment)

    asignacion = None
    if isinstance(intent, AutoAssignCreation):
        asignacion = AssignmentSnapshot(
            id=None,
            student_id=str(acting_user.id),
            status=AssignmentStatus.ACTIVA,
            assigned_at=now,
            notes=intent.notes or '',
        )

    return ProcedureSnapshot(
        id=None,
        treatment=treatment,
        status=estado,
        teeth=dientes,
        tooth_surface=superficie,
        is_repair=bool(is_repair),
        created_by_id=str(acting_user.id),
        chair_id=chair_id or treatment.chair_id,
        sessions_total=sessions_total,
        assignment=asignacion,
        notes=notes or '',
        patient_id=patient_id,
    )


# ==================== TRANSICIONES ====================

def assign(procedure, acting_user, now=None):
    """disponible → proceso, creando una asignación activa para el usuario"""
    _exigir_actor(acting_user)

    if procedure.active_assignment is not None:
        raise errors.ConflictError(
            'Este procedimiento ya tiene una asignación activa',
            procedure_id=procedure.id,
        )
    nuevo_estado = destino(procedure.status, Accion.ASIGNAR)
    if nuevo_estado is None:
        raise _transicion_invalida(procedure, Accion.ASIGNAR)

    asignacion = AssignmentSnapshot(
        id=None,
        student_id=str(acting_user.id),
        status=AssignmentStatus.ACTIVA,
        assigned_at=now,
    )
    return TransitionResult(
        procedure=replace(procedure, status=nuevo_estado, assignment=asignacion),
        assignment=asignacion,
    )


def complete(procedure, acting_user, now=None, final_notes=None):
    """proceso → finalizado; solo el alumno asignado"""
    _exigir_actor(acting_user)

    activa = procedure.active_assignment
    nuevo_estado = destino(procedure.status, Accion.COMPLETAR)
    if nuevo_estado is None or activa is None:
        raise _transicion_invalida(procedure, Accion.COMPLETAR)
    if not is_user_assigned(activa, acting_user):
        raise errors.AuthorizationError('Solo el alumno asignado puede completar este procedimiento')
    if final_notes and len(final_notes) > MAX_FINAL_NOTES:
        raise errors.ValidationError(f'Las notas finales no pueden superar {MAX_FINAL_NOTES} caracteres')

    asignacion = replace(
        activa,
        status=AssignmentStatus.COMPLETADA,
        completed_at=now,
        final_notes=final_notes or '',
    )
    return TransitionResult(
        procedure=replace(procedure, status=nuevo_estado, assignment=asignacion),
        assignment=asignacion,
    )


def abandon(procedure, acting_user, reason, now=None):
    """
    El alumno abandona el caso: la asignación queda 'abandonada' como
    historial y el procedimiento vuelve a estar disponible.
    """
    motivo = (reason or '').strip()
    if not motivo:
        raise errors.ValidationError('Debe indicar el motivo del abandono')
    if len(motivo) > MAX_ABANDON_REASON:
        raise errors.ValidationError(f'El motivo no puede superar {MAX_ABANDON_REASON} caracteres')

    _exigir_actor(acting_user)

    activa = procedure.active_assignment
    nuevo_estado = destino(procedure.status, Accion.ABANDONAR)
    if nuevo_estado is None or activa is None:
        raise _transicion_invalida(procedure, Accion.ABANDONAR)
    if not is_user_assigned(activa, acting_user):
        raise errors.AuthorizationError('Solo el alumno asignado puede abandonar este procedimiento')

    asignacion = replace(
        activa,
        status=AssignmentStatus.ABANDONADA,
        abandoned_at=now,
        abandon_reason=motivo,
    )
    return TransitionResult(
        procedure=replace(procedure, status=nuevo_estado, assignment=None),
        assignment=asignacion,
    )


def cancel(procedure, acting_user, now=None):
    """
    Cancela el procedimiento (estado terminal). Solo el creador.

    Si había una asignación activa se marca como abandonada.
    """
    _exigir_actor(acting_user)

    if not is_creator(procedure, acting_user):
        raise errors.AuthorizationError('Solo el usuario que creó este procedimiento puede cancelarlo')
    nuevo_estado = destino(procedure.status, Accion.CANCELAR)
    if nuevo_estado is None:
        raise _transicion_invalida(procedure, Accion.CANCELAR)

    asignacion = None
    activa = procedure.active_assignment
    if activa is not None:
        asignacion = replace(
            activa,
            status=AssignmentStatus.ABANDONADA,
            abandoned_at=now,
            abandon_reason=MOTIVO_CANCELACION,
        )
    return TransitionResult(
        procedure=replace(procedure, status=nuevo_estado, assignment=None),
        assignment=asignacion,
    )


def edit(procedure, cambios, existentes=()):
    """
    Aplica cambios de edición. Solo mientras el procedimiento está
    disponible o contraindicado; el estado solo puede alternar entre ambos.
    """
    if not can_edit(procedure):
        raise _transicion_invalida(procedure, Accion.EDITAR)

    desconocidos = set(cambios) - CAMPOS_EDITABLES
    if desconocidos:
        raise errors.ValidationError(f"Campos no editables: {', '.join(sorted(desconocidos))}")

    valores = dict(cambios)

    if 'status' in valores and valores['status'] not in ESTADOS_EDITABLES:
        raise errors.ValidationError(
            'El estado solo puede cambiarse entre disponible y contraindicado'
        )

    if 'teeth' in valores:
        valores['teeth'] = fdi.normalizar_dientes(valores['teeth'])
    if 'tooth_surface' in valores:
        valores['tooth_surface'] = fdi.validar_superficie(valores['tooth_surface'])
    if 'sessions_total' in valores:
        valores['sessions_total'] = validar_sesiones_totales(valores['sessions_total'])

    tratamiento = valores.get('treatment', procedure.treatment)
    if 'treatment' in valores:
        if tratamiento is None:
            raise errors.ValidationError('Debe seleccionar un tratamiento')
        _exigir_misma_catedra(tratamiento, valores.get('chair_id', procedure.chair_id))
        otros = [p for p in existentes if p.id != procedure.id]
        prosthesis.ensure_prosthesis_allowed(otros, tratamiento)

    dientes = valores.get('teeth', procedure.teeth)
    if tratamiento is not None and tratamiento.requires_tooth and not dientes:
        raise errors.ValidationError('Este tratamiento requiere especificar el diente')

    return replace(procedure, **valores)
