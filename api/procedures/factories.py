import factory
from django.utils import timezone

from api.patients.factories import PacienteFactory
from api.users.factories import UsuarioFactory

from .domain.estados import AssignmentStatus, ProcedureStatus
from .models import Assignment, Chair, PatientProcedure, Treatment


class ChairFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Chair
        django_get_or_create = ('key',)

    name = factory.Sequence(lambda n: f'Cátedra {n}')
    key = factory.Sequence(lambda n: f'catedra-{n}')


class TreatmentFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Treatment

    chair = factory.SubFactory(ChairFactory)
    name = factory.Sequence(lambda n: f'Tratamiento {n}')
    code = factory.Sequence(lambda n: f'TRT-{n:03d}')
    estimated_sessions = 2


class PatientProcedureFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = PatientProcedure

    patient = factory.SubFactory(PacienteFactory)
    treatment = factory.SubFactory(TreatmentFactory)
    chair = factory.SelfAttribute('treatment.chair')
    tooth_fdi = '11'
    status = ProcedureStatus.DISPONIBLE
    sessions_total = 2
    created_by = factory.SubFactory(UsuarioFactory)


class AssignmentFactory(factory.django.DjangoModelFactory):
    """Asignación activa; el procedimiento queda en proceso"""
    class Meta:
        model = Assignment

    patient_procedure = factory.SubFactory(PatientProcedureFactory, status=ProcedureStatus.PROCESO)
    student = factory.SubFactory(UsuarioFactory)
    status = AssignmentStatus.ACTIVA
    assigned_at = factory.LazyFunction(timezone.now)
