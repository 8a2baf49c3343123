# api/procedures/services/assignment_service.py
import logging

from django.db import transaction
from django.http import Http404
from django.utils import timezone

from ..domain import errors, ledger, lifecycle
from ..domain.estados import AssignmentStatus
from ..repositories import AsignacionRepository, ProcedimientoRepository
from . import mapper
from .procedure_service import registrar_rechazo

logger = logging.getLogger(__name__)


def _bloquear_asignacion_activa(assignment_id):
    """
    Bloquea el procedimiento y la asignación, en ese orden.

    La asignación debe seguir activa: si otro cliente ya la cerró el motor
    recibe un estado que no admite la transición.
    """
    asignacion = AsignacionRepository.obtener_por_id(assignment_id)
    if asignacion is None:
        raise Http404("Asignación no encontrada")

    procedimiento = ProcedimientoRepository.bloquear(asignacion.patient_procedure_id)
    asignacion = AsignacionRepository.bloquear(assignment_id)

    if asignacion.status != AssignmentStatus.ACTIVA:
        raise errors.InvalidTransitionError(
            f"La asignación ya está {asignacion.get_status_display().lower()}",
            assignment_id=assignment_id,
            status=asignacion.status,
        )
    return procedimiento, asignacion


class AsignacionService:
    """Servicio con la lógica de negocio de asignaciones de alumnos"""

    @staticmethod
    def obtener(assignment_id):
        asignacion = AsignacionRepository.obtener_por_id(assignment_id)
        if asignacion is None:
            raise Http404("Asignación no encontrada")
        return asignacion

    @staticmethod
    def mis_asignaciones(usuario):
        """Asignaciones activas y completadas del alumno, más recientes primero"""
        return AsignacionRepository.obtener_por_alumno(
            usuario,
            estados=[AssignmentStatus.ACTIVA, AssignmentStatus.COMPLETADA],
        )

    @staticmethod
    @transaction.atomic
    def completar(assignment_id, usuario, final_notes=None):
        """proceso → finalizado; la asignación queda completada"""
        with registrar_rechazo('Completar asignación', asignacion=assignment_id):
            procedimiento, asignacion = _bloquear_asignacion_activa(assignment_id)

            resultado = lifecycle.complete(
                mapper.procedure_snapshot(procedimiento),
                mapper.acting_user(usuario),
                now=timezone.now(),
                final_notes=final_notes,
            )

            AsignacionRepository.actualizar(asignacion, {
                'status': resultado.assignment.status,
                'completed_at': resultado.assignment.completed_at,
                'final_notes': resultado.assignment.final_notes,
            })
            ProcedimientoRepository.actualizar(procedimiento, {'status': resultado.procedure.status})

        logger.info(f"Asignación {assignment_id} completada por {usuario.username}")
        return AsignacionService.obtener(assignment_id)

    @staticmethod
    @transaction.atomic
    def abandonar(assignment_id, usuario, reason):
        """El alumno deja el caso; el procedimiento vuelve a estar disponible"""
        with registrar_rechazo('Abandonar asignación', asignacion=assignment_id):
            procedimiento, asignacion = _bloquear_asignacion_activa(assignment_id)

            resultado = lifecycle.abandon(
                mapper.procedure_snapshot(procedimiento),
                mapper.acting_user(usuario),
                reason,
                now=timezone.now(),
            )

            AsignacionRepository.actualizar(asignacion, {
                'status': resultado.assignment.status,
                'abandoned_at': resultado.assignment.abandoned_at,
                'abandon_reason': resultado.assignment.abandon_reason,
            })
            ProcedimientoRepository.actualizar(procedimiento, {'status': resultado.procedure.status})

        logger.info(f"Asignación {assignment_id} abandonada por {usuario.username}: {resultado.assignment.abandon_reason}")
        return AsignacionService.obtener(assignment_id)

    @staticmethod
    @transaction.atomic
    def ajustar_sesiones_totales(assignment_id, usuario, total):
        """Cambia las sesiones planificadas del procedimiento (1 a 50)"""
        with registrar_rechazo('Ajustar sesiones totales', asignacion=assignment_id):
            procedimiento, _ = _bloquear_asignacion_activa(assignment_id)

            nuevo = ledger.set_sessions_total(
                mapper.procedure_snapshot(procedimiento),
                mapper.acting_user(usuario),
                total,
            )
            ProcedimientoRepository.actualizar(procedimiento, {'sessions_total': nuevo.sessions_total})

        logger.info(f"Sesiones planificadas del procedimiento {procedimiento.id}: {nuevo.sessions_total}")
        return AsignacionService.obtener(assignment_id)
