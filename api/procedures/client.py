# api/procedures/client.py
"""
Cliente de la API de procedimientos y coordinador de flujo para la UI.

`ClinicaApiClient` habla HTTP con el backend y traduce las respuestas de
error a la taxonomía del motor clínico. `ProcedureWorkflow` valida cada
acción con el motor antes de llamar a la API y, ante un conflicto o una
falla, vuelve a leer el estado del servidor en lugar de confiar en el
estado local.
"""
import logging
import os
from datetime import date, datetime
from urllib.parse import urljoin

import requests

from .domain import errors, ledger, lifecycle, odontogram, prosthesis
from .domain.estados import ProcedureStatus, SessionStatus
from .domain.snapshots import (
    AssignmentSnapshot,
    AutoAssignCreation,
    ProcedureSnapshot,
    SessionSnapshot,
    TreatmentRef,
)

logger = logging.getLogger(__name__)

DEFAULT_API_URL = 'http://localhost:8000/api/procedures/'
DEFAULT_TIMEOUT = 10

ERROR_POR_STATUS = {
    400: errors.ValidationError,
    401: errors.AuthorizationError,
    403: errors.AuthorizationError,
    409: errors.ConflictError,
    422: errors.InvalidTransitionError,
}


# =============================================================================
# JSON → SNAPSHOTS
# =============================================================================

def _fecha(valor):
    if not valor:
        return None
    if isinstance(valor, date):
        return valor
    return date.fromisoformat(valor)


def _fecha_hora(valor):
    if not valor:
        return None
    if isinstance(valor, datetime):
        return valor
    return datetime.fromisoformat(valor)


def treatment_from_json(data, chair_id=None):
    if not data:
        return None
    return TreatmentRef(
        id=str(data['id']),
        name=data['name'],
        code=data.get('code', ''),
        chair_id=str(data['chair']) if data.get('chair') else chair_id,
        estimated_sessions=data.get('estimated_sessions') or 1,
        requires_tooth=data.get('requires_tooth', True),
    )


def session_from_json(data):
    return SessionSnapshot(
        id=str(data['id']),
        session_number=data['session_number'],
        session_date=_fecha(data['session_date']),
        status=data.get('status', SessionStatus.COMPLETADA),
        notes=data.get('notes'),
        created_by_id=str(data['created_by']) if data.get('created_by') else None,
    )


def assignment_from_json(data):
    if not data:
        return None
    sesiones = sorted(
        (session_from_json(s) for s in data.get('sessions') or ()),
        key=lambda s: s.session_number,
    )
    return AssignmentSnapshot(
        id=str(data['id']),
        student_id=str(data['student']),
        status=data['status'],
        sessions_completed=data.get('sessions_completed', 0),
        assigned_at=_fecha_hora(data.get('assigned_at')),
        completed_at=_fecha_hora(data.get('completed_at')),
        abandoned_at=_fecha_hora(data.get('abandoned_at')),
        notes=data.get('notes') or '',
        final_notes=data.get('final_notes'),
        abandon_reason=data.get('abandon_reason'),
        sessions=tuple(sesiones),
    )


def procedure_from_json(data):
    teeth = data.get('teeth')
    if teeth is None:
        teeth = [t.strip() for t in (data.get('tooth_fdi') or '').split(',') if t.strip()]
    return ProcedureSnapshot(
        id=str(data['id']),
        treatment=treatment_from_json(data.get('treatment_detalle')),
        status=data['status'],
        teeth=tuple(teeth),
        tooth_surface=data.get('tooth_surface'),
        is_repair=data.get('is_repair', False),
        created_by_id=str(data['created_by']) if data.get('created_by') else None,
        chair_id=str(data['chair']) if data.get('chair') else None,
        sessions_total=data.get('sessions_total') or 1,
        assignment=assignment_from_json(data.get('assignment')),
        notes=data.get('notes') or '',
        patient_id=str(data['patient']) if data.get('patient') else None,
    )


# =============================================================================
# CLIENTE HTTP
# =============================================================================

class ClinicaApiClient:
    """Cliente HTTP de la API de procedimientos (requests + JWT Bearer)"""

    def __init__(self, base_url=None, token=None, timeout=None, session=None):
        base_url = base_url or os.getenv('CLINICA_API_URL', DEFAULT_API_URL)
        self.base_url = base_url.rstrip('/') + '/'
        self.timeout = float(timeout or os.getenv('CLINICA_API_TIMEOUT', DEFAULT_TIMEOUT))
        self.session = session or requests.Session()
        if token:
            self.session.headers['Authorization'] = f'Bearer {token}'

    # ---------------------------------------------------------------- HTTP

    def _url(self, path):
        if path.startswith('http://') or path.startswith('https://'):
            return path
        return urljoin(self.base_url, path.lstrip('/'))

    def _request(self, method, path, **kwargs):
        url = self._url(path)
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"{method} {url} falló: {e}")
            raise errors.CollaboratorError(f"No se pudo comunicar con el servidor: {e}") from e

        if response.status_code >= 400:
            raise self._error_desde_respuesta(response)

        if response.status_code == 204 or not response.content:
            return None
        try:
            body = response.json()
        except ValueError as e:
            raise errors.CollaboratorError('Respuesta inválida del servidor') from e

        if isinstance(body, dict) and 'success' in body and 'data' in body:
            return body['data']
        return body

    @staticmethod
    def _error_desde_respuesta(response):
        """El `error_kind` del servidor manda; si falta, se usa el código HTTP"""
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        clase = errors.ERRORES_POR_KIND.get(body.get('error_kind'))
        if clase is None:
            clase = ERROR_POR_STATUS.get(response.status_code, errors.CollaboratorError)

        mensaje = body.get('message') or None
        logger.warning(f"API respondió {response.status_code} [{clase.kind}]: {mensaje}")
        return clase(mensaje, status_code=response.status_code)

    def _lista(self, path, params=None):
        """Recorre todas las páginas de un listado"""
        resultados = []
        data = self._request('GET', path, params=params)
        while True:
            if isinstance(data, dict) and 'results' in data:
                resultados.extend(data['results'])
                siguiente = data.get('next')
                if not siguiente:
                    break
                data = self._request('GET', siguiente)
            else:
                resultados.extend(data or [])
                break
        return resultados

    # ------------------------------------------------------------- lectura

    def fetch_procedures(self, patient_id):
        datos = self._lista('procedures/', params={'patient': patient_id, 'page_size': 200})
        return [procedure_from_json(p) for p in datos]

    def fetch_procedure(self, procedure_id):
        return procedure_from_json(self._request('GET', f'procedures/{procedure_id}/'))

    def fetch_chairs(self):
        return self._lista('chairs/')

    def fetch_treatments(self, chair_id=None):
        params = {'chair': chair_id} if chair_id else None
        return [treatment_from_json(t) for t in self._lista('treatments/', params=params)]

    def fetch_odontogram(self, patient_id, status=None, chair_id=None):
        params = {'patient': patient_id}
        if status:
            params['status'] = status
        if chair_id:
            params['chair'] = chair_id
        return self._request('GET', 'procedures/odontogram/', params=params)

    def my_assignments(self):
        return [assignment_from_json(a) for a in self._lista('assignments/mine/')]

    # ----------------------------------------------------------- procedimientos

    def create_procedure(self, patient_id, treatment_id, teeth, surface=None, is_repair=False,
                         auto_assign=False, status=ProcedureStatus.DISPONIBLE, notes=''):
        payload = {
            'patient': str(patient_id),
            'treatment': str(treatment_id) if treatment_id else None,
            'teeth': list(teeth or ()),
            'tooth_surface': surface,
            'is_repair': is_repair,
            'auto_assign': auto_assign,
            'status': str(status),
            'notes': notes,
        }
        return procedure_from_json(self._request('POST', 'procedures/', json=payload))

    def create_prosthesis(self, patient_id, kind, auto_assign=False, notes=''):
        payload = {'patient': str(patient_id), 'kind': str(kind), 'auto_assign': auto_assign, 'notes': notes}
        return procedure_from_json(self._request('POST', 'procedures/prosthesis/', json=payload))

    def assign_procedure(self, procedure_id):
        return assignment_from_json(self._request('POST', f'procedures/{procedure_id}/assign/'))

    def cancel_procedure(self, procedure_id):
        return procedure_from_json(self._request('POST', f'procedures/{procedure_id}/cancel/'))

    def update_procedure(self, procedure_id, fields):
        return procedure_from_json(self._request('PATCH', f'procedures/{procedure_id}/', json=fields))

    # ------------------------------------------------------------ asignaciones

    def complete_assignment(self, assignment_id, final_notes=None):
        payload = {'final_notes': final_notes} if final_notes else {}
        return assignment_from_json(self._request('POST', f'assignments/{assignment_id}/complete/', json=payload))

    def abandon_assignment(self, assignment_id, reason):
        return assignment_from_json(
            self._request('POST', f'assignments/{assignment_id}/abandon/', json={'reason': reason})
        )

    def set_sessions_total(self, assignment_id, total):
        return assignment_from_json(
            self._request('PATCH', f'assignments/{assignment_id}/sessions-total/', json={'sessions_total': total})
        )

    # ---------------------------------------------------------------- sesiones

    def list_sessions(self, assignment_id):
        datos = self._request('GET', f'assignments/{assignment_id}/sessions/') or []
        return [session_from_json(s) for s in datos]

    def create_session(self, assignment_id, session_date, notes=None, status=SessionStatus.COMPLETADA):
        payload = {'session_date': session_date.isoformat(), 'notes': notes, 'status': str(status)}
        return session_from_json(self._request('POST', f'assignments/{assignment_id}/sessions/', json=payload))

    def update_session(self, session_id, **fields):
        if isinstance(fields.get('session_date'), date):
            fields['session_date'] = fields['session_date'].isoformat()
        return session_from_json(self._request('PATCH', f'sessions/{session_id}/', json=fields))

    def delete_session(self, session_id):
        return self._request('DELETE', f'sessions/{session_id}/')


# =============================================================================
# FLUJO PARA LA UI
# =============================================================================

class ProcedureWorkflow:
    """
    Coordina las acciones de un usuario sobre los procedimientos de un paciente.

    Toda mutación se valida primero con el motor (sin tocar la red). Un
    ConflictError o InvalidTransitionError del servidor refresca el estado
    local y se re-lanza; nunca se reintenta automáticamente.
    """

    def __init__(self, client, acting_user, patient_id=None):
        self.client = client
        self.acting_user = acting_user
        self.patient_id = patient_id
        self.procedimientos = []

    # ---------------------------------------------------------------- estado

    def load(self, patient_id):
        self.patient_id = patient_id
        return self.refresh()

    def refresh(self):
        self.procedimientos = self.client.fetch_procedures(self.patient_id)
        return self.procedimientos

    def get(self, procedure_id):
        for procedimiento in self.procedimientos:
            if procedimiento.id == str(procedure_id):
                return procedimiento
        raise errors.ValidationError('Procedimiento no encontrado', procedure_id=procedure_id)

    def _activa(self, procedure_id):
        procedimiento = self.get(procedure_id)
        asignacion = procedimiento.active_assignment
        if asignacion is None:
            raise errors.InvalidTransitionError(
                'El procedimiento no tiene una asignación activa',
                procedure_id=procedure_id,
            )
        return procedimiento, asignacion

    def _llamar(self, accion, operacion, *args, **kwargs):
        """Ejecuta la llamada; ante un conflicto de estado refresca y re-lanza"""
        try:
            return operacion(*args, **kwargs)
        except (errors.ConflictError, errors.InvalidTransitionError) as e:
            logger.warning(f"{accion}: el estado del servidor cambió ({e.kind}); refrescando")
            self.refresh()
            raise

    def _llamar_sesiones(self, accion, operacion, *args, **kwargs):
        """Como `_llamar`, pero cualquier falla fuerza releer el contador de sesiones"""
        try:
            resultado = operacion(*args, **kwargs)
        except errors.ProcedureError as e:
            logger.warning(f"{accion} falló ({e.kind}); releyendo sesiones del servidor")
            try:
                self.refresh()
            except errors.CollaboratorError as refresco:
                logger.error(f"No se pudo refrescar después de {accion}: {refresco}")
            raise
        self.refresh()
        return resultado

    # ------------------------------------------------------------ transiciones

    def create(self, treatment, teeth, intent, surface=None, is_repair=False, notes='', pediatrico=False):
        """
        Crea un procedimiento. El estado se relee justo antes de validar para
        que la regla de prótesis use datos frescos.
        """
        self.refresh()
        plan = lifecycle.plan_creation(
            self.procedimientos,
            treatment=treatment,
            teeth=teeth,
            intent=intent,
            acting_user=self.acting_user,
            tooth_surface=surface,
            is_repair=is_repair,
            notes=notes,
            patient_id=self.patient_id,
            pediatrico=pediatrico,
        )
        creado = self._llamar(
            'Crear procedimiento',
            self.client.create_procedure,
            self.patient_id,
            treatment.id if treatment else None,
            plan.teeth,
            surface=plan.tooth_surface,
            is_repair=plan.is_repair,
            auto_assign=isinstance(intent, AutoAssignCreation),
            status=plan.status,
            notes=plan.notes,
        )
        self.refresh()
        return creado

    def create_prosthesis(self, kind, auto_assign=False, notes=''):
        """Prótesis completa; el servidor elige el tratamiento y los dientes de la arcada"""
        try:
            kind = prosthesis.ProsthesisKind(kind)
        except ValueError:
            raise errors.ValidationError(f"Tipo de prótesis '{kind}' inválido")
        self.refresh()
        prosthesis.ensure_prosthesis_allowed(self.procedimientos, kind.label)
        creado = self._llamar(
            'Crear prótesis',
            self.client.create_prosthesis,
            self.patient_id,
            kind,
            auto_assign=auto_assign,
            notes=notes,
        )
        self.refresh()
        return creado

    def assign(self, procedure_id):
        lifecycle.assign(self.get(procedure_id), self.acting_user)
        asignacion = self._llamar('Asignar', self.client.assign_procedure, procedure_id)
        self.refresh()
        return asignacion

    def complete(self, procedure_id, final_notes=None):
        procedimiento, asignacion = self._activa(procedure_id)
        lifecycle.complete(procedimiento, self.acting_user, final_notes=final_notes)
        resultado = self._llamar('Completar', self.client.complete_assignment, asignacion.id, final_notes)
        self.refresh()
        return resultado

    def abandon(self, procedure_id, reason):
        procedimiento = self.get(procedure_id)
        lifecycle.abandon(procedimiento, self.acting_user, reason)
        asignacion = procedimiento.active_assignment
        resultado = self._llamar('Abandonar', self.client.abandon_assignment, asignacion.id, reason.strip())
        self.refresh()
        return resultado

    def cancel(self, procedure_id):
        lifecycle.cancel(self.get(procedure_id), self.acting_user)
        resultado = self._llamar('Cancelar', self.client.cancel_procedure, procedure_id)
        self.refresh()
        return resultado

    def edit(self, procedure_id, fields):
        """`fields` usa los nombres de la API; el motor valida los que conoce"""
        procedimiento = self.get(procedure_id)
        cambios = {k: v for k, v in fields.items() if k in lifecycle.CAMPOS_EDITABLES and k != 'treatment'}
        lifecycle.edit(procedimiento, cambios, self.procedimientos)
        resultado = self._llamar('Editar', self.client.update_procedure, procedure_id, fields)
        self.refresh()
        return resultado

    # ---------------------------------------------------------------- sesiones

    def add_session(self, procedure_id, session_date, notes=None, status=SessionStatus.COMPLETADA):
        _, asignacion = self._activa(procedure_id)
        ledger.create_session(asignacion, self.acting_user, session_date, notes=notes, status=status)
        return self._llamar_sesiones(
            'Registrar sesión', self.client.create_session, asignacion.id, session_date,
            notes=notes, status=status,
        )

    def update_session(self, procedure_id, session_id, **cambios):
        _, asignacion = self._activa(procedure_id)
        ledger.update_session(asignacion, self.acting_user, session_id, **cambios)
        return self._llamar_sesiones('Actualizar sesión', self.client.update_session, session_id, **cambios)

    def delete_session(self, procedure_id, session_id):
        _, asignacion = self._activa(procedure_id)
        ledger.delete_session(asignacion, self.acting_user, session_id)
        return self._llamar_sesiones('Eliminar sesión', self.client.delete_session, session_id)

    def set_sessions_total(self, procedure_id, total):
        procedimiento, asignacion = self._activa(procedure_id)
        ledger.set_sessions_total(procedimiento, self.acting_user, total)
        return self._llamar_sesiones('Ajustar sesiones', self.client.set_sessions_total, asignacion.id, total)

    # ------------------------------------------------------------- odontograma

    def odontogram(self, status=None, chair_id=None, pediatrico=False):
        return odontogram.build_odontogram(
            self.procedimientos, status=status, chair_id=chair_id, pediatrico=pediatrico
        )
