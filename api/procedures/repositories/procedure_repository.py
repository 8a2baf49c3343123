# api/procedures/repositories/procedure_repository.py
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import Prefetch

from api.patients.models import Paciente

from ..domain.estados import AssignmentStatus
from ..models import (
    Assignment,
    Chair,
    PatientProcedure,
    Treatment,
    TreatmentSession,
)


def _asignaciones_con_sesiones():
    return Prefetch(
        'assignments',
        queryset=Assignment.objects.select_related('student').prefetch_related('sessions')
    )


class CatalogoRepository:
    """Cátedras y tratamientos disponibles"""

    @staticmethod
    def obtener_catedra_por_key(key):
        try:
            return Chair.objects.get(key=key)
        except Chair.DoesNotExist:
            return None

    @staticmethod
    def obtener_tratamiento_por_codigo(codigo):
        try:
            return Treatment.objects.select_related('chair').get(code=codigo)
        except Treatment.DoesNotExist:
            return None

    @staticmethod
    def obtener_tratamiento_por_nombre(nombre, chair=None):
        queryset = Treatment.objects.select_related('chair').filter(name__iexact=nombre, active=True)
        if chair is not None:
            queryset = queryset.filter(chair=chair)
        return queryset.first()


class ProcedimientoRepository:
    """Repositorio para procedimientos del paciente"""

    @staticmethod
    def base_queryset():
        return PatientProcedure.objects.select_related(
            'patient', 'treatment', 'treatment__chair', 'chair', 'created_by'
        ).prefetch_related(_asignaciones_con_sesiones())

    @staticmethod
    def obtener_por_paciente(paciente_id, filtros=None):
        """Procedimientos de un paciente con filtros opcionales (status, chair)"""
        queryset = ProcedimientoRepository.base_queryset().filter(patient_id=paciente_id)

        if filtros:
            if filtros.get('status'):
                queryset = queryset.filter(status=filtros['status'])
            if filtros.get('chair'):
                queryset = queryset.filter(chair_id=filtros['chair'])

        return queryset.order_by('-fecha_creacion')

    @staticmethod
    def obtener_por_id(procedure_id):
        try:
            return ProcedimientoRepository.base_queryset().get(id=procedure_id)
        except PatientProcedure.DoesNotExist:
            return None

    @staticmethod
    def bloquear(procedure_id):
        """Obtiene el procedimiento con bloqueo de fila (usar dentro de transaction.atomic)"""
        try:
            return PatientProcedure.objects.select_for_update().select_related(
                'treatment', 'treatment__chair', 'chair', 'patient'
            ).get(id=procedure_id)
        except PatientProcedure.DoesNotExist:
            return None

    @staticmethod
    def obtener_paciente(paciente_id):
        try:
            return Paciente.objects.get(id=paciente_id)
        except (Paciente.DoesNotExist, DjangoValidationError):
            return None

    @staticmethod
    def bloquear_paciente(paciente_id):
        try:
            return Paciente.objects.select_for_update().get(id=paciente_id)
        except Paciente.DoesNotExist:
            return None

    @staticmethod
    def crear(data):
        return PatientProcedure.objects.create(**data)

    @staticmethod
    def actualizar(procedimiento, data):
        for campo, valor in data.items():
            setattr(procedimiento, campo, valor)
        procedimiento.save()
        return procedimiento


class AsignacionRepository:
    """Repositorio para asignaciones de alumnos"""

    @staticmethod
    def obtener_por_id(assignment_id):
        try:
            return Assignment.objects.select_related(
                'student', 'patient_procedure'
            ).prefetch_related('sessions').get(id=assignment_id)
        except Assignment.DoesNotExist:
            return None

    @staticmethod
    def bloquear(assignment_id):
        try:
            return Assignment.objects.select_for_update().get(id=assignment_id)
        except Assignment.DoesNotExist:
            return None

    @staticmethod
    def obtener_activa(procedimiento):
        return Assignment.objects.filter(
            patient_procedure=procedimiento,
            status=AssignmentStatus.ACTIVA
        ).first()

    @staticmethod
    def obtener_por_alumno(student, estados=None):
        queryset = Assignment.objects.select_related(
            'patient_procedure',
            'patient_procedure__patient',
            'patient_procedure__treatment',
            'patient_procedure__chair',
        ).prefetch_related('sessions').filter(student=student)
        if estados:
            queryset = queryset.filter(status__in=estados)
        return queryset.order_by('-assigned_at')

    @staticmethod
    def crear(data):
        return Assignment.objects.create(**data)

    @staticmethod
    def actualizar(asignacion, data):
        for campo, valor in data.items():
            setattr(asignacion, campo, valor)
        asignacion.save(update_fields=list(data) + ['actualizado_por', 'fecha_modificacion'])
        return asignacion


class SesionRepository:
    """Repositorio para sesiones de tratamiento"""

    @staticmethod
    def obtener_por_asignacion(assignment_id):
        return TreatmentSession.objects.filter(assignment_id=assignment_id).order_by('session_number')

    @staticmethod
    def obtener_por_id(session_id):
        try:
            return TreatmentSession.objects.select_related('assignment').get(id=session_id)
        except TreatmentSession.DoesNotExist:
            return None

    @staticmethod
    def crear(data):
        return TreatmentSession.objects.create(**data)

    @staticmethod
    def actualizar(sesion, data):
        for campo, valor in data.items():
            setattr(sesion, campo, valor)
        sesion.save()
        return sesion

    @staticmethod
    def eliminar(sesion):
        sesion.delete()
