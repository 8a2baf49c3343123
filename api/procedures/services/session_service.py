# api/procedures/services/session_service.py
import logging

from django.db import IntegrityError, transaction
from django.http import Http404

from ..domain import errors, ledger
from ..domain.estados import SessionStatus
from ..repositories import AsignacionRepository, SesionRepository
from . import mapper
from .procedure_service import registrar_rechazo

logger = logging.getLogger(__name__)


def _bloquear(assignment_id):
    asignacion = AsignacionRepository.bloquear(assignment_id)
    if asignacion is None:
        raise Http404("Asignación no encontrada")
    return asignacion


def _guardar_contador(asignacion, snapshot):
    if asignacion.sessions_completed != snapshot.sessions_completed:
        AsignacionRepository.actualizar(asignacion, {'sessions_completed': snapshot.sessions_completed})


class SesionService:
    """Libro de sesiones de una asignación"""

    @staticmethod
    def listar(assignment_id):
        if AsignacionRepository.obtener_por_id(assignment_id) is None:
            raise Http404("Asignación no encontrada")
        return SesionRepository.obtener_por_asignacion(assignment_id)

    @staticmethod
    def obtener(session_id):
        sesion = SesionRepository.obtener_por_id(session_id)
        if sesion is None:
            raise Http404("Sesión no encontrada")
        return sesion

    @staticmethod
    @transaction.atomic
    def crear(assignment_id, usuario, session_date, notes=None, status=SessionStatus.COMPLETADA):
        with registrar_rechazo('Registrar sesión', asignacion=assignment_id):
            asignacion = _bloquear(assignment_id)

            snapshot, nueva = ledger.create_session(
                mapper.assignment_snapshot(asignacion),
                mapper.acting_user(usuario),
                session_date,
                notes=notes,
                status=status,
            )

            try:
                with transaction.atomic():
                    sesion = SesionRepository.crear({
                        'assignment': asignacion,
                        'session_number': nueva.session_number,
                        'session_date': nueva.session_date,
                        'notes': nueva.notes,
                        'status': nueva.status,
                        'created_by': usuario,
                    })
            except IntegrityError:
                raise errors.ConflictError(
                    f"La sesión {nueva.session_number} ya fue registrada. Actualice e intente de nuevo",
                    assignment_id=assignment_id,
                )
            _guardar_contador(asignacion, snapshot)

        logger.info(
            f"Sesión {sesion.session_number} registrada en asignación {assignment_id} "
            f"({snapshot.sessions_completed} completadas)"
        )
        return sesion

    @staticmethod
    @transaction.atomic
    def actualizar(session_id, usuario, cambios):
        """Modifica fecha, notas o estado de la sesión"""
        sesion = SesionService.obtener(session_id)
        with registrar_rechazo('Actualizar sesión', sesion=session_id):
            asignacion = _bloquear(sesion.assignment_id)

            snapshot, modificada = ledger.update_session(
                mapper.assignment_snapshot(asignacion),
                mapper.acting_user(usuario),
                str(session_id),
                **cambios
            )

            SesionRepository.actualizar(sesion, {
                'session_date': modificada.session_date,
                'notes': modificada.notes,
                'status': modificada.status,
            })
            _guardar_contador(asignacion, snapshot)

        logger.info(f"Sesión {sesion.session_number} de asignación {asignacion.id} actualizada")
        return sesion

    @staticmethod
    @transaction.atomic
    def eliminar(session_id, usuario):
        """Elimina la sesión; las demás conservan su número"""
        sesion = SesionService.obtener(session_id)
        with registrar_rechazo('Eliminar sesión', sesion=session_id):
            asignacion = _bloquear(sesion.assignment_id)

            snapshot, eliminada = ledger.delete_session(
                mapper.assignment_snapshot(asignacion),
                mapper.acting_user(usuario),
                str(session_id),
            )

            SesionRepository.eliminar(sesion)
            _guardar_contador(asignacion, snapshot)

        logger.info(f"Sesión {eliminada.session_number} eliminada de asignación {asignacion.id}")
        return asignacion
