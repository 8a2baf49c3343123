"""
Tests del cliente HTTP y del flujo de UI (sin red: la sesión de requests es un mock).
"""
from datetime import date
from unittest import mock

import pytest
import requests

from api.procedures.client import (
    ClinicaApiClient,
    ProcedureWorkflow,
    assignment_from_json,
    procedure_from_json,
)
from api.procedures.domain import errors
from api.procedures.domain.estados import AssignmentStatus, ProcedureStatus
from api.procedures.domain.prosthesis import ProsthesisKind
from api.procedures.domain.snapshots import (
    ActingUser,
    AssignmentSnapshot,
    AutoAssignCreation,
    ProcedureSnapshot,
    TreatmentRef,
)

ALUMNO = ActingUser(id='u-1', rol='Alumno')
OTRO_ALUMNO = ActingUser(id='u-2', rol='Alumno')

RESINA = TreatmentRef(id='t-1', name='Resina compuesta', chair_id='c-1')
PROTESIS = TreatmentRef(id='t-9', name='Completa Superior', chair_id='c-9', requires_tooth=False)


def _respuesta(status_code=200, body=None):
    response = mock.Mock(status_code=status_code)
    if body is None:
        response.content = b''
        response.json.side_effect = ValueError('sin cuerpo')
    else:
        response.content = b'{...}'
        response.json.return_value = body
    return response


def _envuelta(data, status_code=200):
    return _respuesta(status_code, {
        'success': True,
        'status_code': status_code,
        'message': 'Operación exitosa',
        'data': data,
        'errors': None,
    })


def _error(status_code, error_kind=None, message='Error'):
    body = {'success': False, 'status_code': status_code, 'message': message, 'data': None, 'errors': {}}
    if error_kind:
        body['error_kind'] = error_kind
    return _respuesta(status_code, body)


PROCEDIMIENTO_JSON = {
    'id': 'p-1',
    'patient': 'pa-1',
    'treatment': 't-1',
    'treatment_detalle': {'id': 't-1', 'name': 'Resina compuesta', 'code': 'RES-001', 'chair': 'c-1',
                          'estimated_sessions': 2, 'requires_tooth': True},
    'chair': 'c-1',
    'tooth_fdi': '11,12',
    'teeth': ['11', '12'],
    'tooth_surface': 'O',
    'is_repair': False,
    'status': 'proceso',
    'sessions_total': 2,
    'created_by': 'u-1',
    'notes': '',
    'assignment': {
        'id': 'a-1',
        'student': 'u-1',
        'status': 'activa',
        'sessions_completed': 1,
        'assigned_at': '2024-05-06 09:30:00',
        'sessions': [
            {'id': 's-2', 'session_number': 2, 'session_date': '2024-05-13', 'status': 'programada'},
            {'id': 's-1', 'session_number': 1, 'session_date': '2024-05-06', 'status': 'completada'},
        ],
    },
}


@pytest.fixture
def sesion_http():
    sesion = mock.Mock()
    sesion.headers = {}
    return sesion


@pytest.fixture
def cliente(sesion_http):
    return ClinicaApiClient(base_url='http://api.test/api/procedures', token='abc', timeout=5, session=sesion_http)


class TestConversionJSON:

    def test_procedimiento_desde_json(self):
        """Test: el JSON de la API se convierte al snapshot del motor"""
        procedimiento = procedure_from_json(PROCEDIMIENTO_JSON)

        assert procedimiento.id == 'p-1'
        assert procedimiento.teeth == ('11', '12')
        assert procedimiento.treatment.name == 'Resina compuesta'
        assert procedimiento.treatment.chair_id == 'c-1'
        assert procedimiento.active_assignment.id == 'a-1'
        assert procedimiento.sessions_completed == 1

    def test_sesiones_ordenadas_por_numero(self):
        asignacion = assignment_from_json(PROCEDIMIENTO_JSON['assignment'])
        assert [s.session_number for s in asignacion.sessions] == [1, 2]
        assert asignacion.sessions[0].session_date == date(2024, 5, 6)

    def test_dientes_desde_texto(self):
        datos = dict(PROCEDIMIENTO_JSON, teeth=None, tooth_fdi='21, 22')
        assert procedure_from_json(datos).teeth == ('21', '22')


class TestClinicaApiClient:

    def test_token_bearer(self, cliente, sesion_http):
        assert sesion_http.headers['Authorization'] == 'Bearer abc'

    def test_desenvuelve_respuesta(self, cliente, sesion_http):
        sesion_http.request.return_value = _envuelta(PROCEDIMIENTO_JSON)

        procedimiento = cliente.fetch_procedure('p-1')

        assert procedimiento.id == 'p-1'
        sesion_http.request.assert_called_once_with(
            'GET', 'http://api.test/api/procedures/procedures/p-1/', timeout=5.0
        )

    def test_recorre_paginas(self, cliente, sesion_http):
        """Test: el listado sigue el enlace `next` hasta la última página"""
        segundo = dict(PROCEDIMIENTO_JSON, id='p-2', assignment=None, status='disponible')
        sesion_http.request.side_effect = [
            _envuelta({'count': 2, 'next': 'http://api.test/api/procedures/procedures/?page=2',
                       'previous': None, 'results': [PROCEDIMIENTO_JSON]}),
            _envuelta({'count': 2, 'next': None, 'previous': None, 'results': [segundo]}),
        ]

        procedimientos = cliente.fetch_procedures('pa-1')

        assert [p.id for p in procedimientos] == ['p-1', 'p-2']
        segunda_llamada = sesion_http.request.call_args_list[1]
        assert segunda_llamada.args[1] == 'http://api.test/api/procedures/procedures/?page=2'

    @pytest.mark.parametrize('error_kind, esperado', [
        ('conflict', errors.ConflictError),
        ('invalid_transition', errors.InvalidTransitionError),
        ('authorization', errors.AuthorizationError),
        ('validation', errors.ValidationError),
    ])
    def test_error_kind_del_servidor(self, cliente, sesion_http, error_kind, esperado):
        sesion_http.request.return_value = _error(400, error_kind, message='Mensaje del servidor')

        with pytest.raises(esperado) as excinfo:
            cliente.assign_procedure('p-1')

        assert excinfo.value.message == 'Mensaje del servidor'

    @pytest.mark.parametrize('status_code, esperado', [
        (409, errors.ConflictError),
        (422, errors.InvalidTransitionError),
        (403, errors.AuthorizationError),
        (500, errors.CollaboratorError),
    ])
    def test_error_por_codigo_http(self, cliente, sesion_http, status_code, esperado):
        """Test: sin cuerpo JSON se clasifica por el código HTTP"""
        response = _respuesta(status_code)
        response.content = b'<html>Error</html>'
        sesion_http.request.return_value = response

        with pytest.raises(esperado):
            cliente.cancel_procedure('p-1')

    def test_falla_de_red(self, cliente, sesion_http):
        sesion_http.request.side_effect = requests.ConnectionError('servidor caído')

        with pytest.raises(errors.CollaboratorError):
            cliente.fetch_chairs()

    def test_json_invalido(self, cliente, sesion_http):
        response = _respuesta(200)
        response.content = b'no es json'
        sesion_http.request.return_value = response

        with pytest.raises(errors.CollaboratorError):
            cliente.fetch_odontogram('pa-1')

    def test_crear_sesion_envia_fecha_iso(self, cliente, sesion_http):
        sesion_http.request.return_value = _envuelta(
            {'id': 's-3', 'session_number': 3, 'session_date': '2024-05-20', 'status': 'completada'}, 201
        )

        sesion = cliente.create_session('a-1', date(2024, 5, 20), notes='Obturación')

        assert sesion.session_number == 3
        _, kwargs = sesion_http.request.call_args
        assert kwargs['json'] == {'session_date': '2024-05-20', 'notes': 'Obturación', 'status': 'completada'}


# =============================================================================
# FLUJO
# =============================================================================

def _disponible(**kwargs):
    datos = {'id': 'p-1', 'treatment': RESINA, 'teeth': ('11',), 'created_by_id': ALUMNO.id,
             'chair_id': 'c-1', 'sessions_total': 2}
    datos.update(kwargs)
    return ProcedureSnapshot(**datos)


def _en_proceso(estudiante=ALUMNO, **kwargs):
    asignacion = AssignmentSnapshot(id='a-1', student_id=estudiante.id, status=AssignmentStatus.ACTIVA)
    return _disponible(status=ProcedureStatus.PROCESO, assignment=asignacion, **kwargs)


@pytest.fixture
def api():
    return mock.create_autospec(ClinicaApiClient, instance=True)


def _flujo(api, procedimientos, usuario=ALUMNO):
    api.fetch_procedures.return_value = procedimientos
    flujo = ProcedureWorkflow(api, usuario)
    flujo.load('pa-1')
    return flujo


class TestProcedureWorkflow:

    def test_procedimiento_desconocido(self, api):
        flujo = _flujo(api, [])
        with pytest.raises(errors.ValidationError):
            flujo.get('p-99')

    def test_asignar(self, api):
        flujo = _flujo(api, [_disponible()])

        flujo.assign('p-1')

        api.assign_procedure.assert_called_once_with('p-1')
        assert api.fetch_procedures.call_count == 2

    def test_rechazo_local_no_llama_a_la_api(self, api):
        """Test: un procedimiento ya asignado se rechaza sin tocar la red"""
        flujo = _flujo(api, [_en_proceso(estudiante=OTRO_ALUMNO)])

        with pytest.raises(errors.ConflictError):
            flujo.assign('p-1')

        api.assign_procedure.assert_not_called()

    def test_conflicto_del_servidor_refresca(self, api):
        """Test: si otro alumno ganó la carrera se relee el estado y se re-lanza"""
        flujo = _flujo(api, [_disponible()])
        api.fetch_procedures.return_value = [_en_proceso(estudiante=OTRO_ALUMNO)]
        api.assign_procedure.side_effect = errors.ConflictError()

        with pytest.raises(errors.ConflictError):
            flujo.assign('p-1')

        assert api.fetch_procedures.call_count == 2
        assert flujo.get('p-1').status == ProcedureStatus.PROCESO

    def test_error_de_validacion_no_refresca(self, api):
        flujo = _flujo(api, [_disponible()])
        api.assign_procedure.side_effect = errors.ValidationError()

        with pytest.raises(errors.ValidationError):
            flujo.assign('p-1')

        assert api.fetch_procedures.call_count == 1

    def test_completar_usa_la_asignacion_activa(self, api):
        flujo = _flujo(api, [_en_proceso()])

        flujo.complete('p-1', final_notes='Sin complicaciones')

        api.complete_assignment.assert_called_once_with('a-1', 'Sin complicaciones')

    def test_completar_otro_alumno(self, api):
        flujo = _flujo(api, [_en_proceso()], usuario=OTRO_ALUMNO)

        with pytest.raises(errors.AuthorizationError):
            flujo.complete('p-1')

        api.complete_assignment.assert_not_called()

    def test_abandonar_sin_motivo(self, api):
        flujo = _flujo(api, [_en_proceso()])

        with pytest.raises(errors.ValidationError):
            flujo.abandon('p-1', '   ')

        api.abandon_assignment.assert_not_called()

    def test_abandonar(self, api):
        flujo = _flujo(api, [_en_proceso()])

        flujo.abandon('p-1', '  Paciente no asistió  ')

        api.abandon_assignment.assert_called_once_with('a-1', 'Paciente no asistió')

    def test_cancelar_no_creador(self, api):
        flujo = _flujo(api, [_disponible(created_by_id=OTRO_ALUMNO.id)])

        with pytest.raises(errors.AuthorizationError):
            flujo.cancel('p-1')

        api.cancel_procedure.assert_not_called()

    def test_editar_envia_los_campos(self, api):
        flujo = _flujo(api, [_disponible()])
        campos = {'notes': 'Control', 'priority': 'alta'}

        flujo.edit('p-1', campos)

        api.update_procedure.assert_called_once_with('p-1', campos)

    def test_editar_en_proceso(self, api):
        flujo = _flujo(api, [_en_proceso()])

        with pytest.raises(errors.InvalidTransitionError):
            flujo.edit('p-1', {'notes': 'Control'})

        api.update_procedure.assert_not_called()

    def test_crear_con_auto_asignacion(self, api):
        flujo = _flujo(api, [])

        flujo.create(RESINA, ['11', '12'], AutoAssignCreation())

        args, kwargs = api.create_procedure.call_args
        assert args == ('pa-1', 't-1', ('11', '12'))
        assert kwargs['auto_assign'] is True
        assert kwargs['status'] == ProcedureStatus.PROCESO

    def test_crear_protesis_relee_antes_de_validar(self, api):
        """Test: una prótesis creada por otro usuario bloquea la creación local"""
        flujo = _flujo(api, [])
        otra = _disponible(id='p-7', treatment=TreatmentRef(id='t-8', name='Completa Total', chair_id='c-9'))
        api.fetch_procedures.return_value = [otra]

        with pytest.raises(errors.ConflictError):
            flujo.create(PROTESIS, [], AutoAssignCreation())

        api.create_procedure.assert_not_called()

    def test_crear_protesis(self, api):
        flujo = _flujo(api, [_disponible()])

        flujo.create_prosthesis('upper', auto_assign=True, notes='Paciente desdentado')

        api.create_prosthesis.assert_called_once_with(
            'pa-1', ProsthesisKind.SUPERIOR, auto_assign=True, notes='Paciente desdentado'
        )
        assert api.fetch_procedures.call_count == 3

    def test_crear_protesis_con_protesis_activa_no_llama_a_la_api(self, api):
        """Test: con otra prótesis activa el flujo rechaza la creación localmente"""
        otra = _disponible(id='p-7', treatment=TreatmentRef(id='t-8', name='Completa Total', chair_id='c-9'))
        flujo = _flujo(api, [otra])

        with pytest.raises(errors.ConflictError):
            flujo.create_prosthesis(ProsthesisKind.INFERIOR)

        api.create_prosthesis.assert_not_called()

    def test_crear_protesis_conflicto_del_servidor_refresca(self, api):
        """Test: si el servidor ya tiene una prótesis activa se relee el estado y se re-lanza"""
        flujo = _flujo(api, [])
        otra = _disponible(id='p-7', treatment=TreatmentRef(id='t-8', name='Completa Total', chair_id='c-9'))
        api.create_prosthesis.side_effect = errors.ConflictError('Ya existe una prótesis activa')

        def _servidor(patient_id):
            if api.create_prosthesis.called:
                return [otra]
            return []
        api.fetch_procedures.side_effect = _servidor

        with pytest.raises(errors.ConflictError):
            flujo.create_prosthesis('total')

        assert flujo.procedimientos == [otra]

    def test_crear_protesis_tipo_invalido(self, api):
        flujo = _flujo(api, [])

        with pytest.raises(errors.ValidationError):
            flujo.create_prosthesis('parcial')

        api.create_prosthesis.assert_not_called()


class TestWorkflowSesiones:

    def test_registrar_sesion(self, api):
        flujo = _flujo(api, [_en_proceso()])

        flujo.add_session('p-1', date(2024, 5, 6), notes='Anestesia')

        api.create_session.assert_called_once_with(
            'a-1', date(2024, 5, 6), notes='Anestesia', status='completada'
        )
        assert api.fetch_procedures.call_count == 2

    def test_falla_del_servidor_relee_contador(self, api):
        """Test: cualquier error al registrar una sesión fuerza releer el estado"""
        flujo = _flujo(api, [_en_proceso()])
        api.create_session.side_effect = errors.CollaboratorError()

        with pytest.raises(errors.CollaboratorError):
            flujo.add_session('p-1', date(2024, 5, 6))

        assert api.fetch_procedures.call_count == 2

    def test_falla_al_releer_conserva_el_error_original(self, api):
        flujo = _flujo(api, [_en_proceso()])
        api.create_session.side_effect = errors.ValidationError('Fecha inválida')
        api.fetch_procedures.side_effect = errors.CollaboratorError()

        with pytest.raises(errors.ValidationError):
            flujo.add_session('p-1', date(2024, 5, 6))

    def test_sesion_sin_asignacion_activa(self, api):
        flujo = _flujo(api, [_disponible()])

        with pytest.raises(errors.InvalidTransitionError):
            flujo.add_session('p-1', date(2024, 5, 6))

        api.create_session.assert_not_called()

    def test_total_fuera_de_rango(self, api):
        flujo = _flujo(api, [_en_proceso()])

        with pytest.raises(errors.ValidationError):
            flujo.set_sessions_total('p-1', 0)

        api.set_sessions_total.assert_not_called()

    def test_odontograma_local(self, api):
        flujo = _flujo(api, [_en_proceso()])

        vistas = flujo.odontogram()

        diente = next(v for v in vistas if v.tooth_fdi == '11')
        assert diente.display_status == ProcedureStatus.PROCESO
        assert len(vistas) == 32
