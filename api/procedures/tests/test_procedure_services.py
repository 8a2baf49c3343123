"""
Tests de los servicios de procedimientos, asignaciones y sesiones (con base de datos).
"""
import uuid
from datetime import date

import pytest
from django.db import IntegrityError, transaction
from django.http import Http404
from django.utils import timezone

from api.procedures.domain import errors, lifecycle
from api.procedures.domain.estados import AssignmentStatus, ProcedureStatus, SessionStatus
from api.procedures.models import Assignment, PatientProcedure
from api.procedures.services import AsignacionService, ProcedimientoService, SesionService


def _crear(paciente, usuario, tratamiento, **data):
    data.setdefault('treatment', tratamiento)
    data.setdefault('teeth', ['11'])
    return ProcedimientoService.crear(paciente.id, usuario, data)


def _en_proceso(paciente, alumno, tratamiento):
    """Procedimiento auto-asignado al alumno; devuelve (procedimiento, asignación)"""
    procedimiento = _crear(paciente, alumno, tratamiento, auto_assign=True)
    return procedimiento, procedimiento.assignments.get(status=AssignmentStatus.ACTIVA)


@pytest.mark.django_db
class TestCrearProcedimiento:

    def test_crear_disponible(self, paciente, alumno, tratamiento, catedra):
        """Test: creación manual con valores por defecto del tratamiento"""
        procedimiento = _crear(paciente, alumno, tratamiento, teeth=['11', '12'], tooth_surface='o')

        assert procedimiento.status == ProcedureStatus.DISPONIBLE
        assert procedimiento.tooth_fdi == '11,12'
        assert procedimiento.teeth == ('11', '12')
        assert procedimiento.tooth_surface == 'O'
        assert procedimiento.chair == catedra
        assert procedimiento.sessions_total == tratamiento.estimated_sessions
        assert procedimiento.created_by == alumno
        assert procedimiento.assignments.count() == 0

    def test_crear_con_auto_asignacion(self, paciente, alumno, tratamiento):
        """Test: auto-asignación deja el procedimiento en proceso con asignación activa"""
        procedimiento = _crear(paciente, alumno, tratamiento, auto_assign=True, assignment_notes='Turno mañana')

        assert procedimiento.status == ProcedureStatus.PROCESO
        asignacion = procedimiento.active_assignment
        assert asignacion.student == alumno
        assert asignacion.notes == 'Turno mañana'
        assert asignacion.sessions_completed == 0

    def test_campos_adicionales(self, paciente, alumno, tratamiento):
        procedimiento = _crear(
            paciente, alumno, tratamiento,
            status=ProcedureStatus.CONTRAINDICADO,
            contraindication_reason='Paciente anticoagulado',
            priority=PatientProcedure.Priority.ALTA,
        )
        procedimiento.refresh_from_db()
        assert procedimiento.status == ProcedureStatus.CONTRAINDICADO
        assert procedimiento.contraindication_reason == 'Paciente anticoagulado'
        assert procedimiento.priority == PatientProcedure.Priority.ALTA

    def test_diente_ausente_usa_tratamiento_por_defecto(self, paciente, alumno, tratamiento_ausente):
        """Test: un diente ausente sin tratamiento usa 'Diente Ausente'"""
        procedimiento = ProcedimientoService.crear(paciente.id, alumno, {
            'status': ProcedureStatus.AUSENTE,
            'teeth': ['36'],
        })
        assert procedimiento.treatment == tratamiento_ausente
        assert procedimiento.status == ProcedureStatus.AUSENTE

    def test_diente_ausente_sin_tratamiento_configurado(self, paciente, alumno):
        with pytest.raises(errors.ValidationError):
            ProcedimientoService.crear(paciente.id, alumno, {
                'status': ProcedureStatus.AUSENTE,
                'teeth': ['36'],
            })

    def test_estado_inicial_invalido(self, paciente, alumno, tratamiento):
        with pytest.raises(errors.ValidationError):
            _crear(paciente, alumno, tratamiento, status=ProcedureStatus.FINALIZADO)
        assert PatientProcedure.objects.count() == 0

    def test_paciente_inexistente(self, alumno, tratamiento):
        with pytest.raises(Http404):
            ProcedimientoService.crear(uuid.uuid4(), alumno, {'treatment': tratamiento, 'teeth': ['11']})


@pytest.mark.django_db
class TestProtesis:

    def test_crear_protesis_superior(self, paciente, alumno, tratamientos_protesis):
        """Test: la prótesis superior cubre los 16 dientes superiores"""
        procedimiento = ProcedimientoService.crear_protesis(paciente.id, 'upper', alumno)

        assert procedimiento.treatment == tratamientos_protesis['upper']
        assert len(procedimiento.teeth) == 16
        assert procedimiento.teeth[0] == '18'

    def test_segunda_protesis_rechazada(self, paciente, alumno, docente, tratamientos_protesis):
        """Test: con una prótesis activa no se puede crear otra"""
        ProcedimientoService.crear_protesis(paciente.id, 'upper', alumno)

        with pytest.raises(errors.ConflictError):
            ProcedimientoService.crear_protesis(paciente.id, 'lower', docente)
        assert PatientProcedure.objects.filter(patient=paciente).count() == 1

    def test_protesis_permitida_tras_cancelar(self, paciente, alumno, tratamientos_protesis):
        primera = ProcedimientoService.crear_protesis(paciente.id, 'upper', alumno)
        ProcedimientoService.cancelar(primera.id, alumno)

        segunda = ProcedimientoService.crear_protesis(paciente.id, 'total', alumno, auto_assign=True)
        assert len(segunda.teeth) == 32
        assert segunda.status == ProcedureStatus.PROCESO

    def test_protesis_pediatrica(self, paciente_pediatrico, alumno, tratamientos_protesis):
        """Test: en pacientes pediátricos se usan los dientes temporales"""
        procedimiento = ProcedimientoService.crear_protesis(paciente_pediatrico.id, 'total', alumno)
        assert len(procedimiento.teeth) == 20
        assert procedimiento.teeth[0] == '55'

    def test_tipo_invalido(self, paciente, alumno, tratamientos_protesis):
        with pytest.raises(errors.ValidationError):
            ProcedimientoService.crear_protesis(paciente.id, 'parcial', alumno)

    def test_protesis_tambien_bloquea_creacion_manual(self, paciente, alumno, tratamientos_protesis):
        ProcedimientoService.crear_protesis(paciente.id, 'upper', alumno)
        with pytest.raises(errors.ConflictError):
            _crear(paciente, alumno, tratamientos_protesis['lower'], teeth=['31'])

    def test_creacion_generica_de_protesis_usa_la_arcada(self, paciente, alumno, tratamientos_protesis):
        """Test: una prótesis creada por el alta genérica cubre la arcada, no los dientes enviados"""
        procedimiento = _crear(paciente, alumno, tratamientos_protesis['upper'], teeth=['11'])

        assert len(procedimiento.teeth) == 16
        assert procedimiento.tooth_fdi.startswith('18,17')

    def test_creacion_generica_de_protesis_pediatrica(self, paciente_pediatrico, alumno, tratamientos_protesis):
        procedimiento = _crear(paciente_pediatrico, alumno, tratamientos_protesis['lower'], teeth=[])

        assert len(procedimiento.teeth) == 10
        assert '11' not in procedimiento.teeth

    @pytest.mark.parametrize('total', [0, 51, 'abc'])
    def test_sesiones_totales_invalidas(self, paciente, alumno, tratamiento, total):
        with pytest.raises(errors.ValidationError):
            _crear(paciente, alumno, tratamiento, sessions_total=total)
        assert not PatientProcedure.objects.filter(patient=paciente).exists()


@pytest.mark.django_db
class TestAsignacion:

    def test_asignar(self, paciente, docente, alumno, tratamiento):
        """Test: disponible → proceso con asignación activa del alumno"""
        procedimiento = _crear(paciente, docente, tratamiento)

        asignacion = ProcedimientoService.asignar(procedimiento.id, alumno)

        procedimiento.refresh_from_db()
        assert procedimiento.status == ProcedureStatus.PROCESO
        assert asignacion.status == AssignmentStatus.ACTIVA
        assert asignacion.student == alumno

    def test_segundo_alumno_recibe_conflicto(self, paciente, docente, alumno, otro_alumno, tratamiento):
        """Test: solo un alumno gana la asignación"""
        procedimiento = _crear(paciente, docente, tratamiento)
        ProcedimientoService.asignar(procedimiento.id, alumno)

        with pytest.raises(errors.ConflictError):
            ProcedimientoService.asignar(procedimiento.id, otro_alumno)
        assert Assignment.objects.filter(patient_procedure=procedimiento).count() == 1

    def test_restriccion_una_asignacion_activa(self, paciente, docente, alumno, otro_alumno, tratamiento):
        """Test: la base de datos impide dos asignaciones activas"""
        procedimiento = _crear(paciente, docente, tratamiento)
        Assignment.objects.create(patient_procedure=procedimiento, student=alumno, assigned_at=timezone.now())

        with pytest.raises(IntegrityError):
            with transaction.atomic():
                Assignment.objects.create(
                    patient_procedure=procedimiento, student=otro_alumno, assigned_at=timezone.now()
                )

    def test_completar(self, paciente, alumno, otro_alumno, tratamiento):
        procedimiento, asignacion = _en_proceso(paciente, alumno, tratamiento)

        with pytest.raises(errors.AuthorizationError):
            AsignacionService.completar(asignacion.id, otro_alumno)

        asignacion = AsignacionService.completar(asignacion.id, alumno, 'Alta del paciente')
        procedimiento.refresh_from_db()
        assert procedimiento.status == ProcedureStatus.FINALIZADO
        assert asignacion.status == AssignmentStatus.COMPLETADA
        assert asignacion.completed_at is not None
        assert asignacion.final_notes == 'Alta del paciente'

    def test_completar_dos_veces(self, paciente, alumno, tratamiento):
        """Test: una asignación ya completada no admite otra transición"""
        _, asignacion = _en_proceso(paciente, alumno, tratamiento)
        AsignacionService.completar(asignacion.id, alumno)

        with pytest.raises(errors.InvalidTransitionError):
            AsignacionService.completar(asignacion.id, alumno)

    def test_abandonar_conserva_historial(self, paciente, alumno, otro_alumno, tratamiento):
        """Test: abandonar libera el procedimiento y conserva la asignación"""
        procedimiento, asignacion = _en_proceso(paciente, alumno, tratamiento)

        with pytest.raises(errors.ValidationError):
            AsignacionService.abandonar(asignacion.id, alumno, '   ')

        asignacion = AsignacionService.abandonar(asignacion.id, alumno, 'El paciente viajó')
        procedimiento.refresh_from_db()
        assert procedimiento.status == ProcedureStatus.DISPONIBLE
        assert asignacion.status == AssignmentStatus.ABANDONADA
        assert asignacion.abandon_reason == 'El paciente viajó'
        assert asignacion.abandoned_at is not None

        ProcedimientoService.asignar(procedimiento.id, otro_alumno)
        assert procedimiento.assignments.count() == 2

    def test_cancelar_en_proceso(self, paciente, docente, alumno, tratamiento):
        """Test: cancelar en proceso abandona la asignación activa"""
        procedimiento = _crear(paciente, docente, tratamiento)
        asignacion = ProcedimientoService.asignar(procedimiento.id, alumno)

        with pytest.raises(errors.AuthorizationError):
            ProcedimientoService.cancelar(procedimiento.id, alumno)

        procedimiento = ProcedimientoService.cancelar(procedimiento.id, docente)
        asignacion.refresh_from_db()
        assert procedimiento.status == ProcedureStatus.CANCELADO
        assert asignacion.status == AssignmentStatus.ABANDONADA
        assert asignacion.abandon_reason == lifecycle.MOTIVO_CANCELACION

    def test_cancelar_finalizado(self, paciente, alumno, tratamiento):
        procedimiento, asignacion = _en_proceso(paciente, alumno, tratamiento)
        AsignacionService.completar(asignacion.id, alumno)

        with pytest.raises(errors.InvalidTransitionError):
            ProcedimientoService.cancelar(procedimiento.id, alumno)

    def test_mis_asignaciones(self, paciente, alumno, tratamiento):
        """Test: la lista del alumno excluye asignaciones abandonadas"""
        _, activa = _en_proceso(paciente, alumno, tratamiento)
        _, abandonada = _en_proceso(paciente, alumno, tratamiento)
        AsignacionService.abandonar(abandonada.id, alumno, 'Sin disponibilidad')

        ids = [a.id for a in AsignacionService.mis_asignaciones(alumno)]
        assert ids == [activa.id]


@pytest.mark.django_db
class TestEditarProcedimiento:

    def test_editar_disponible(self, paciente, docente, tratamiento):
        procedimiento = _crear(paciente, docente, tratamiento)

        procedimiento = ProcedimientoService.actualizar(procedimiento.id, docente, {
            'status': ProcedureStatus.CONTRAINDICADO,
            'contraindication_reason': 'Infección activa',
            'teeth': ['14', '15'],
        })
        assert procedimiento.status == ProcedureStatus.CONTRAINDICADO
        assert procedimiento.contraindication_reason == 'Infección activa'
        assert procedimiento.tooth_fdi == '14,15'

    def test_editar_en_proceso(self, paciente, alumno, tratamiento):
        procedimiento, _ = _en_proceso(paciente, alumno, tratamiento)
        with pytest.raises(errors.InvalidTransitionError):
            ProcedimientoService.actualizar(procedimiento.id, alumno, {'notes': 'cambio'})

    def test_editar_estado_no_permitido(self, paciente, docente, tratamiento):
        procedimiento = _crear(paciente, docente, tratamiento)
        with pytest.raises(errors.ValidationError):
            ProcedimientoService.actualizar(procedimiento.id, docente, {'status': ProcedureStatus.FINALIZADO})


@pytest.mark.django_db
class TestSesiones:

    def test_numeracion_y_contador(self, paciente, alumno, tratamiento):
        """Test: 3 sesiones, se elimina la 2 y la siguiente es la 4"""
        _, asignacion = _en_proceso(paciente, alumno, tratamiento)

        sesiones = [
            SesionService.crear(asignacion.id, alumno, date(2024, 5, dia))
            for dia in (6, 13, 20)
        ]
        assert [s.session_number for s in sesiones] == [1, 2, 3]
        asignacion.refresh_from_db()
        assert asignacion.sessions_completed == 3

        asignacion = SesionService.eliminar(sesiones[1].id, alumno)
        assert asignacion.sessions_completed == 2

        nueva = SesionService.crear(asignacion.id, alumno, date(2024, 5, 27), notes='Obturación')
        assert nueva.session_number == 4
        assert [s.session_number for s in SesionService.listar(asignacion.id)] == [1, 3, 4]

    def test_sesiones_excedidas(self, paciente, alumno, tratamiento):
        """Test: superar las sesiones planificadas no bloquea el registro"""
        procedimiento, asignacion = _en_proceso(paciente, alumno, tratamiento)
        for dia in (1, 2, 3):
            SesionService.crear(asignacion.id, alumno, date(2024, 6, dia))
        asignacion.refresh_from_db()
        assert asignacion.sessions_completed > procedimiento.sessions_total

    def test_cambiar_estado_ajusta_contador(self, paciente, alumno, tratamiento):
        _, asignacion = _en_proceso(paciente, alumno, tratamiento)
        sesion = SesionService.crear(asignacion.id, alumno, date(2024, 5, 6))

        sesion = SesionService.actualizar(sesion.id, alumno, {'status': SessionStatus.CANCELADA})
        asignacion.refresh_from_db()
        assert sesion.status == SessionStatus.CANCELADA
        assert asignacion.sessions_completed == 0

    def test_sesion_programada(self, paciente, alumno, tratamiento):
        _, asignacion = _en_proceso(paciente, alumno, tratamiento)
        SesionService.crear(asignacion.id, alumno, date(2024, 7, 1), status=SessionStatus.PROGRAMADA)
        asignacion.refresh_from_db()
        assert asignacion.sessions_completed == 0

    def test_otro_alumno_no_registra(self, paciente, alumno, otro_alumno, tratamiento):
        _, asignacion = _en_proceso(paciente, alumno, tratamiento)
        with pytest.raises(errors.AuthorizationError):
            SesionService.crear(asignacion.id, otro_alumno, date(2024, 5, 6))

    def test_asignacion_completada_no_admite_sesiones(self, paciente, alumno, tratamiento):
        _, asignacion = _en_proceso(paciente, alumno, tratamiento)
        AsignacionService.completar(asignacion.id, alumno)
        with pytest.raises(errors.InvalidTransitionError):
            SesionService.crear(asignacion.id, alumno, date(2024, 5, 6))

    def test_ajustar_sesiones_totales(self, paciente, alumno, tratamiento):
        procedimiento, asignacion = _en_proceso(paciente, alumno, tratamiento)

        with pytest.raises(errors.ValidationError):
            AsignacionService.ajustar_sesiones_totales(asignacion.id, alumno, 51)

        AsignacionService.ajustar_sesiones_totales(asignacion.id, alumno, 6)
        procedimiento.refresh_from_db()
        assert procedimiento.sessions_total == 6


@pytest.mark.django_db
class TestOdontograma:

    def test_odontograma_del_paciente(self, paciente, alumno, docente, tratamiento):
        _crear(paciente, docente, tratamiento, teeth=['11'])
        _en_proceso(paciente, alumno, tratamiento)

        datos = ProcedimientoService.odontograma(paciente.id)

        assert datos['pediatric'] is False
        assert datos['has_active_prosthesis'] is False
        assert len(datos['teeth']) == 32
        diente = next(d for d in datos['teeth'] if d['tooth_fdi'] == '11')
        assert diente['display_status'] == ProcedureStatus.PROCESO
        assert diente['procedure_count'] == 2

    def test_filtro_por_estado(self, paciente, alumno, docente, tratamiento):
        _crear(paciente, docente, tratamiento, teeth=['11'])
        _en_proceso(paciente, alumno, tratamiento)

        datos = ProcedimientoService.odontograma(paciente.id, status=ProcedureStatus.DISPONIBLE)
        diente = next(d for d in datos['teeth'] if d['tooth_fdi'] == '11')
        assert diente['display_status'] == ProcedureStatus.DISPONIBLE
        assert diente['procedure_count'] == 2

    def test_paciente_inexistente(self):
        with pytest.raises(Http404):
            ProcedimientoService.odontograma(uuid.uuid4())
