# api/procedures/services/mapper.py
"""
Conversión de modelos de Django a los snapshots inmutables del motor clínico.
"""
from ..domain.estados import AssignmentStatus
from ..domain.snapshots import (
    ActingUser,
    AssignmentSnapshot,
    ProcedureSnapshot,
    SessionSnapshot,
    TreatmentRef,
)


def _id(valor):
    return str(valor) if valor is not None else None


def acting_user(usuario):
    return ActingUser(
        id=str(usuario.pk),
        rol=getattr(usuario, 'rol', None),
        nombre=usuario.get_full_name() if hasattr(usuario, 'get_full_name') else '',
    )


def treatment_ref(tratamiento):
    if tratamiento is None:
        return None
    return TreatmentRef(
        id=_id(tratamiento.pk),
        name=tratamiento.name,
        code=tratamiento.code,
        chair_id=_id(tratamiento.chair_id),
        estimated_sessions=tratamiento.estimated_sessions,
        requires_tooth=tratamiento.requires_tooth,
    )


def session_snapshot(sesion):
    return SessionSnapshot(
        id=_id(sesion.pk),
        session_number=sesion.session_number,
        session_date=sesion.session_date,
        status=sesion.status,
        notes=sesion.notes,
        created_by_id=_id(sesion.created_by_id),
    )


def assignment_snapshot(asignacion):
    sesiones = sorted(asignacion.sessions.all(), key=lambda s: s.session_number)
    return AssignmentSnapshot(
        id=_id(asignacion.pk),
        student_id=_id(asignacion.student_id),
        status=asignacion.status,
        sessions_completed=asignacion.sessions_completed,
        assigned_at=asignacion.assigned_at,
        completed_at=asignacion.completed_at,
        abandoned_at=asignacion.abandoned_at,
        notes=asignacion.notes,
        final_notes=asignacion.final_notes,
        abandon_reason=asignacion.abandon_reason,
        sessions=tuple(session_snapshot(s) for s in sesiones),
    )


def asignacion_vigente(procedimiento):
    """La asignación activa o, si no hay, la última completada"""
    asignaciones = sorted(
        procedimiento.assignments.all(),
        key=lambda a: a.assigned_at,
        reverse=True,
    )
    for estado in (AssignmentStatus.ACTIVA, AssignmentStatus.COMPLETADA):
        for asignacion in asignaciones:
            if asignacion.status == estado:
                return asignacion
    return None


def procedure_snapshot(procedimiento):
    asignacion = asignacion_vigente(procedimiento)
    return ProcedureSnapshot(
        id=_id(procedimiento.pk),
        treatment=treatment_ref(procedimiento.treatment),
        status=procedimiento.status,
        teeth=procedimiento.teeth,
        tooth_surface=procedimiento.tooth_surface,
        is_repair=procedimiento.is_repair,
        created_by_id=_id(procedimiento.created_by_id),
        chair_id=_id(procedimiento.chair_id),
        sessions_total=procedimiento.sessions_total,
        assignment=assignment_snapshot(asignacion) if asignacion else None,
        notes=procedimiento.notes,
        patient_id=_id(procedimiento.patient_id),
    )
