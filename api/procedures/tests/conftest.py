# api/procedures/tests/conftest.py
"""
Fixtures compartidas para tests de procedimientos clínicos.
"""
import pytest
from rest_framework.test import APIClient

from api.patients.factories import PacienteFactory, PacientePediatricoFactory
from api.procedures.factories import ChairFactory, TreatmentFactory
from api.users.factories import DocenteFactory, UsuarioFactory


@pytest.fixture
def alumno(db):
    return UsuarioFactory(username='alumno.uno', nombres='Ana', apellidos='Vera')


@pytest.fixture
def otro_alumno(db):
    return UsuarioFactory(username='alumno.dos', nombres='Luis', apellidos='Mora')


@pytest.fixture
def docente(db):
    return DocenteFactory(username='docente.uno', nombres='Marta', apellidos='Salas')


@pytest.fixture
def paciente(db):
    return PacienteFactory()


@pytest.fixture
def paciente_pediatrico(db):
    return PacientePediatricoFactory()


@pytest.fixture
def catedra(db):
    return ChairFactory(name='Operatoria', key='operatoria')


@pytest.fixture
def tratamiento(catedra):
    """Tratamiento común con dos sesiones estimadas"""
    return TreatmentFactory(chair=catedra, name='Resina compuesta', code='RES-001')


@pytest.fixture
def tratamientos_protesis(db):
    """Prótesis completas superior, inferior y total en la cátedra de prótesis"""
    catedra = ChairFactory(name='Prótesis', key='protesis')
    return {
        'upper': TreatmentFactory(chair=catedra, name='Completa Superior', code='PRT-SUP'),
        'lower': TreatmentFactory(chair=catedra, name='Completa Inferior', code='PRT-INF'),
        'total': TreatmentFactory(chair=catedra, name='Completa Total', code='PRT-TOT'),
    }


@pytest.fixture
def tratamiento_ausente(db):
    catedra = ChairFactory(name='Diagnóstico', key='diagnostico')
    return TreatmentFactory(chair=catedra, name='Diente Ausente', code='AUS-001', estimated_sessions=1)


@pytest.fixture
def api_client():
    """Cliente API"""
    return APIClient()
