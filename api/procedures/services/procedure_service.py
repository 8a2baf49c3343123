# api/procedures/services/procedure_service.py
import logging
from contextlib import contextmanager

from django.conf import settings
from django.db import IntegrityError, transaction
from django.http import Http404
from django.utils import timezone

from ..domain import errors, lifecycle, odontogram, prosthesis
from ..domain.estados import AssignmentStatus, ProcedureStatus
from ..domain.fdi import join_tooth_fdi
from ..domain.snapshots import AutoAssignCreation, ManualCreation
from ..repositories import AsignacionRepository, CatalogoRepository, ProcedimientoRepository
from . import mapper

logger = logging.getLogger(__name__)

# Campos del procedimiento que el motor no valida y se guardan tal cual
CAMPOS_ADICIONALES = (
    'priority',
    'contraindication_reason',
    'treatment_subclass',
    'treatment_subclass_option',
)


@contextmanager
def registrar_rechazo(operacion, **contexto):
    """Deja en el log las operaciones rechazadas por el motor y re-lanza el error"""
    try:
        yield
    except errors.ProcedureError as e:
        detalle = ', '.join(f"{k}={v}" for k, v in contexto.items())
        logger.warning(f"{operacion} rechazado [{e.kind}] ({detalle}): {e.message}")
        raise


def _id(valor):
    return str(valor) if valor is not None else None


class ProcedimientoService:
    """Servicio con la lógica de negocio de procedimientos del paciente"""

    @staticmethod
    def obtener(procedure_id):
        procedimiento = ProcedimientoRepository.obtener_por_id(procedure_id)
        if procedimiento is None:
            raise Http404("Procedimiento no encontrado")
        return procedimiento

    @staticmethod
    def snapshots_del_paciente(paciente_id):
        return [
            mapper.procedure_snapshot(p)
            for p in ProcedimientoRepository.obtener_por_paciente(paciente_id)
        ]

    @staticmethod
    def _resolver_tratamiento(data):
        """Un diente ausente sin tratamiento usa el tratamiento de 'Diente Ausente'"""
        tratamiento = data.get('treatment')
        if tratamiento is None and data.get('status') == ProcedureStatus.AUSENTE:
            codigo = getattr(settings, 'ABSENT_TREATMENT_CODE', 'AUS-001')
            tratamiento = CatalogoRepository.obtener_tratamiento_por_codigo(codigo)
            if tratamiento is None:
                raise errors.ValidationError(
                    f"Tratamiento '{codigo}' (Diente Ausente) no encontrado. Contacte al administrador."
                )
        return tratamiento

    @staticmethod
    @transaction.atomic
    def crear(paciente_id, usuario, data):
        """
        Crea un procedimiento para el paciente.

        `data` admite: treatment, chair, teeth, tooth_surface, is_repair, status,
        auto_assign, assignment_notes, notes, sessions_total y los campos
        adicionales (priority, contraindication_reason, subclase y opción).
        La verificación de prótesis y el alta ocurren con la fila del paciente bloqueada.
        """
        with registrar_rechazo('Crear procedimiento', paciente=paciente_id):
            paciente = ProcedimientoRepository.bloquear_paciente(paciente_id)
            if paciente is None:
                raise Http404("Paciente no encontrado")

            tratamiento = ProcedimientoService._resolver_tratamiento(data)
            existentes = ProcedimientoService.snapshots_del_paciente(paciente.id)

            if data.get('auto_assign'):
                intent = AutoAssignCreation(notes=data.get('assignment_notes') or '')
            else:
                intent = ManualCreation(status=data.get('status') or ProcedureStatus.DISPONIBLE)

            chair = data.get('chair')
            ahora = timezone.now()
            plan = lifecycle.plan_creation(
                existentes,
                treatment=mapper.treatment_ref(tratamiento),
                teeth=data.get('teeth') or (),
                intent=intent,
                acting_user=mapper.acting_user(usuario),
                tooth_surface=data.get('tooth_surface'),
                is_repair=data.get('is_repair', False),
                sessions_total=data.get('sessions_total'),
                chair_id=_id(chair.pk) if chair else None,
                notes=data.get('notes') or '',
                patient_id=str(paciente.id),
                pediatrico=paciente.es_pediatrico,
                now=ahora,
            )

            registro = {
                'patient': paciente,
                'treatment': tratamiento,
                'chair_id': plan.chair_id,
                'tooth_fdi': join_tooth_fdi(plan.teeth),
                'tooth_surface': plan.tooth_surface,
                'is_repair': plan.is_repair,
                'status': plan.status,
                'notes': plan.notes,
                'sessions_total': plan.sessions_total,
                'created_by': usuario,
            }
            for campo in CAMPOS_ADICIONALES:
                if data.get(campo) is not None:
                    registro[campo] = data[campo]

            procedimiento = ProcedimientoRepository.crear(registro)

            if plan.assignment is not None:
                AsignacionRepository.crear({
                    'patient_procedure': procedimiento,
                    'student': usuario,
                    'status': AssignmentStatus.ACTIVA,
                    'assigned_at': ahora,
                    'notes': plan.assignment.notes,
                })

        logger.info(
            f"Procedimiento {procedimiento.id} ({tratamiento.name}) creado en estado "
            f"'{procedimiento.status}' para paciente {paciente.id} por {usuario.username}"
        )
        return ProcedimientoService.obtener(procedimiento.id)

    @staticmethod
    def crear_protesis(paciente_id, kind, usuario, auto_assign=False, notes=''):
        """Crea una prótesis completa cubriendo todos los dientes de la(s) arcada(s)"""
        with registrar_rechazo('Crear prótesis', paciente=paciente_id, tipo=kind):
            try:
                kind = prosthesis.ProsthesisKind(kind)
            except ValueError:
                raise errors.ValidationError(f"Tipo de prótesis '{kind}' inválido")

            paciente = ProcedimientoRepository.obtener_paciente(paciente_id)
            if paciente is None:
                raise Http404("Paciente no encontrado")

            catedra = None
            chair_key = getattr(settings, 'PROSTHESIS_CHAIR_KEY', None)
            if chair_key:
                catedra = CatalogoRepository.obtener_catedra_por_key(chair_key)
            tratamiento = CatalogoRepository.obtener_tratamiento_por_nombre(kind.label, chair=catedra)
            if tratamiento is None:
                raise errors.ValidationError(f"Tratamiento '{kind.label}' no encontrado")

        return ProcedimientoService.crear(paciente_id, usuario, {
            'treatment': tratamiento,
            'teeth': prosthesis.teeth_for_prosthesis(kind, paciente.es_pediatrico),
            'auto_assign': auto_assign,
            'notes': notes,
        })

    @staticmethod
    @transaction.atomic
    def asignar(procedure_id, usuario):
        """disponible → proceso. Devuelve la asignación creada."""
        with registrar_rechazo('Asignar procedimiento', procedimiento=procedure_id):
            procedimiento = ProcedimientoRepository.bloquear(procedure_id)
            if procedimiento is None:
                raise Http404("Procedimiento no encontrado")

            ahora = timezone.now()
            resultado = lifecycle.assign(
                mapper.procedure_snapshot(procedimiento),
                mapper.acting_user(usuario),
                now=ahora,
            )

            try:
                with transaction.atomic():
                    asignacion = AsignacionRepository.crear({
                        'patient_procedure': procedimiento,
                        'student': usuario,
                        'status': AssignmentStatus.ACTIVA,
                        'assigned_at': ahora,
                    })
            except IntegrityError:
                raise errors.ConflictError(
                    'Este procedimiento ya tiene una asignación activa',
                    procedure_id=procedure_id,
                )

            ProcedimientoRepository.actualizar(procedimiento, {'status': resultado.procedure.status})

        logger.info(f"Procedimiento {procedure_id} asignado a {usuario.username}")
        return asignacion

    @staticmethod
    @transaction.atomic
    def cancelar(procedure_id, usuario):
        """Cancela el procedimiento; solo su creador"""
        with registrar_rechazo('Cancelar procedimiento', procedimiento=procedure_id):
            procedimiento = ProcedimientoRepository.bloquear(procedure_id)
            if procedimiento is None:
                raise Http404("Procedimiento no encontrado")

            resultado = lifecycle.cancel(
                mapper.procedure_snapshot(procedimiento),
                mapper.acting_user(usuario),
                now=timezone.now(),
            )

            if resultado.assignment is not None:
                activa = AsignacionRepository.obtener_activa(procedimiento)
                AsignacionRepository.actualizar(activa, {
                    'status': resultado.assignment.status,
                    'abandoned_at': resultado.assignment.abandoned_at,
                    'abandon_reason': resultado.assignment.abandon_reason,
                })
                logger.info(f"Asignación {activa.id} abandonada por cancelación del procedimiento")

            ProcedimientoRepository.actualizar(procedimiento, {'status': resultado.procedure.status})

        logger.info(f"Procedimiento {procedure_id} cancelado por {usuario.username}")
        return ProcedimientoService.obtener(procedure_id)

    @staticmethod
    @transaction.atomic
    def actualizar(procedure_id, usuario, data):
        """Edita un procedimiento disponible o contraindicado"""
        with registrar_rechazo('Actualizar procedimiento', procedimiento=procedure_id):
            procedimiento = ProcedimientoRepository.bloquear(procedure_id)
            if procedimiento is None:
                raise Http404("Procedimiento no encontrado")

            cambios = {}
            for campo in ('status', 'notes', 'teeth', 'tooth_surface', 'is_repair', 'sessions_total'):
                if campo in data:
                    cambios[campo] = data[campo]
            if 'treatment' in data:
                cambios['treatment'] = mapper.treatment_ref(data['treatment'])
            if 'chair' in data:
                cambios['chair_id'] = _id(data['chair'].pk) if data['chair'] else None

            existentes = ProcedimientoService.snapshots_del_paciente(procedimiento.patient_id)
            nuevo = lifecycle.edit(mapper.procedure_snapshot(procedimiento), cambios, existentes)

            registro = {}
            for campo in ('status', 'notes', 'tooth_surface', 'is_repair', 'sessions_total'):
                if campo in cambios:
                    registro[campo] = getattr(nuevo, campo)
            if 'teeth' in cambios:
                registro['tooth_fdi'] = join_tooth_fdi(nuevo.teeth)
            if 'treatment' in data:
                registro['treatment'] = data['treatment']
            if 'chair' in data:
                registro['chair'] = data['chair']
            for campo in CAMPOS_ADICIONALES:
                if campo in data:
                    registro[campo] = data[campo]

            ProcedimientoRepository.actualizar(procedimiento, registro)

        logger.info(f"Procedimiento {procedure_id} actualizado por {usuario.username}: {sorted(registro)}")
        return ProcedimientoService.obtener(procedure_id)

    @staticmethod
    def odontograma(paciente_id, status=None, chair_id=None):
        """Vista por diente del paciente (dentición temporal o permanente según su edad)"""
        paciente = ProcedimientoRepository.obtener_paciente(paciente_id)
        if paciente is None:
            raise Http404("Paciente no encontrado")

        procedimientos = ProcedimientoService.snapshots_del_paciente(paciente.id)
        vistas = odontogram.build_odontogram(
            procedimientos,
            status=status,
            chair_id=chair_id,
            pediatrico=paciente.es_pediatrico,
        )
        return {
            'patient_id': str(paciente.id),
            'pediatric': paciente.es_pediatrico,
            'has_active_prosthesis': prosthesis.has_active_prosthesis(procedimientos),
            'teeth': [vista.as_dict() for vista in vistas],
        }


def estados_de_procedimiento():
    """Catálogo de estados con su color para la UI"""
    return [
        {
            'value': estado.value,
            'label': estado.label,
            'color': odontogram.STATUS_COLORS[estado],
            'border_color': odontogram.STATUS_BORDER_COLORS[estado],
        }
        for estado in ProcedureStatus
    ]
