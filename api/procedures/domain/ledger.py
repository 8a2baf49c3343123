# api/procedures/domain/ledger.py
"""
Libro de sesiones de tratamiento de una asignación.

Los números de sesión son identificadores estables: se asignan como
max(existentes) + 1 y nunca se reenumeran al eliminar una sesión. Si se
elimina la de número más alto, la siguiente sesión reutiliza ese número.
"""
from dataclasses import replace

from . import errors
from .estados import SessionStatus
from .lifecycle import is_user_assigned, validar_sesiones_totales
from .snapshots import SessionSnapshot

MAX_NOTAS_SESION = 1000


def ordered_sessions(sesiones):
    """Sesiones ordenadas por número ascendente"""
    return tuple(sorted(sesiones, key=lambda s: s.session_number))


def next_session_number(sesiones):
    return max((s.session_number for s in sesiones), default=0) + 1


def _exigir_mutable(assignment, acting_user):
    if not assignment.is_active:
        raise errors.InvalidTransitionError(
            'Las sesiones solo pueden modificarse mientras la asignación está activa',
            assignment_id=assignment.id,
            status=str(assignment.status),
        )
    if not is_user_assigned(assignment, acting_user):
        raise errors.AuthorizationError('Solo el alumno asignado puede registrar sesiones')


def _validar_estado_sesion(estado):
    if estado not in SessionStatus.values:
        raise errors.ValidationError(f"Estado de sesión '{estado}' inválido")
    return estado


def _validar_notas(notas):
    if notas and len(notas) > MAX_NOTAS_SESION:
        raise errors.ValidationError(f'Las notas no pueden superar {MAX_NOTAS_SESION} caracteres')
    return notas


def _buscar(assignment, session_id):
    for sesion in assignment.sessions:
        if str(sesion.id) == str(session_id):
            return sesion
    raise errors.ValidationError('Sesión no encontrada en esta asignación', session_id=session_id)


def _con_sesiones(assignment, sesiones, delta):
    return replace(
        assignment,
        sessions=ordered_sessions(sesiones),
        sessions_completed=max(0, assignment.sessions_completed + delta),
    )


def create_session(assignment, acting_user, session_date, notes=None, status=SessionStatus.COMPLETADA):
    """
    Registra una sesión nueva. Devuelve (asignación actualizada, sesión).

    Por defecto la sesión queda 'completada' y suma al contador.
    """
    if session_date is None:
        raise errors.ValidationError('La fecha de la sesión es obligatoria')
    _validar_estado_sesion(status)
    _validar_notas(notes)
    _exigir_mutable(assignment, acting_user)

    sesion = SessionSnapshot(
        id=None,
        session_number=next_session_number(assignment.sessions),
        session_date=session_date,
        status=status,
        notes=notes,
        created_by_id=str(acting_user.id),
    )
    delta = 1 if status == SessionStatus.COMPLETADA else 0
    return _con_sesiones(assignment, assignment.sessions + (sesion,), delta), sesion


def update_session(assignment, acting_user, session_id, **cambios):
    """
    Modifica fecha, notas o estado de una sesión.

    Entrar o salir del estado 'completada' ajusta el contador.
    """
    desconocidos = set(cambios) - {'session_date', 'notes', 'status'}
    if desconocidos:
        raise errors.ValidationError(f"Campos no editables: {', '.join(sorted(desconocidos))}")
    if 'status' in cambios:
        _validar_estado_sesion(cambios['status'])
    if 'notes' in cambios:
        _validar_notas(cambios['notes'])
    if 'session_date' in cambios and cambios['session_date'] is None:
        raise errors.ValidationError('La fecha de la sesión es obligatoria')
    _exigir_mutable(assignment, acting_user)

    anterior = _buscar(assignment, session_id)
    nueva = replace(anterior, **cambios)

    delta = 0
    if anterior.status != nueva.status:
        if anterior.status == SessionStatus.COMPLETADA:
            delta = -1
        elif nueva.status == SessionStatus.COMPLETADA:
            delta = 1

    sesiones = tuple(nueva if s is anterior else s for s in assignment.sessions)
    return _con_sesiones(assignment, sesiones, delta), nueva


def delete_session(assignment, acting_user, session_id):
    """Elimina una sesión sin reenumerar las siguientes"""
    _exigir_mutable(assignment, acting_user)

    sesion = _buscar(assignment, session_id)
    delta = -1 if sesion.status == SessionStatus.COMPLETADA else 0
    sesiones = tuple(s for s in assignment.sessions if s is not sesion)
    return _con_sesiones(assignment, sesiones, delta), sesion


def set_sessions_total(procedure, acting_user, total):
    """Ajusta las sesiones planificadas del procedimiento (1 a MAX_SESIONES_TOTALES)"""
    total = validar_sesiones_totales(total)

    asignacion = procedure.active_assignment
    if asignacion is None:
        raise errors.InvalidTransitionError(
            'Solo se puede ajustar el número de sesiones con una asignación activa',
            procedure_id=procedure.id,
        )
    _exigir_mutable(asignacion, acting_user)
    return replace(procedure, sessions_total=total)
