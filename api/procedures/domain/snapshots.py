# api/procedures/domain/snapshots.py
"""
Registros inmutables que el motor clínico manipula en memoria.

Los servicios construyen estos registros a partir de los modelos de Django
(o el cliente a partir del JSON de la API); el motor nunca toca la base de
datos ni el usuario "actual" ambiental: el actor llega siempre explícito.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional, Tuple, Union

from .estados import AssignmentStatus, ProcedureStatus, SessionStatus


@dataclass(frozen=True)
class ActingUser:
    """Usuario que ejecuta la acción"""
    id: str
    rol: Optional[str] = None
    nombre: str = ''


@dataclass(frozen=True)
class TreatmentRef:
    """Referencia al tipo de tratamiento (nombre, código, cátedra)"""
    id: Optional[str]
    name: str
    code: str = ''
    chair_id: Optional[str] = None
    estimated_sessions: int = 1
    requires_tooth: bool = True


@dataclass(frozen=True)
class SessionSnapshot:
    id: Optional[str]
    session_number: int
    session_date: date
    status: str = SessionStatus.COMPLETADA
    notes: Optional[str] = None
    created_by_id: Optional[str] = None


@dataclass(frozen=True)
class AssignmentSnapshot:
    """Reclamo de un alumno sobre un procedimiento"""
    id: Optional[str]
    student_id: str
    status: str = AssignmentStatus.ACTIVA
    sessions_completed: int = 0
    assigned_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    abandoned_at: Optional[datetime] = None
    notes: str = ''
    final_notes: Optional[str] = None
    abandon_reason: Optional[str] = None
    sessions: Tuple[SessionSnapshot, ...] = ()

    @property
    def is_active(self):
        return self.status == AssignmentStatus.ACTIVA


@dataclass(frozen=True)
class ProcedureSnapshot:
    """Procedimiento clínico planificado o ejecutado sobre uno o más dientes"""
    id: Optional[str]
    treatment: Optional[TreatmentRef]
    status: str = ProcedureStatus.DISPONIBLE
    teeth: Tuple[str, ...] = ()
    tooth_surface: Optional[str] = None
    is_repair: bool = False
    created_by_id: Optional[str] = None
    chair_id: Optional[str] = None
    sessions_total: int = 1
    assignment: Optional[AssignmentSnapshot] = None
    notes: str = ''
    patient_id: Optional[str] = None

    @property
    def sessions_completed(self):
        return self.assignment.sessions_completed if self.assignment else 0

    @property
    def sessions_exceeded(self):
        """El conteo de sesiones superó lo planificado (solo informativo)"""
        return self.sessions_completed > self.sessions_total

    @property
    def active_assignment(self):
        if self.assignment is not None and self.assignment.is_active:
            return self.assignment
        return None

    @property
    def treatment_name(self):
        return self.treatment.name if self.treatment else ''


@dataclass(frozen=True)
class ManualCreation:
    """Creación con un estado inicial elegido por el usuario"""
    status: str = ProcedureStatus.DISPONIBLE
    kind: str = field(default='manual', init=False)


@dataclass(frozen=True)
class AutoAssignCreation:
    """Creación en la que el creador se asigna el procedimiento en el mismo paso"""
    notes: str = ''
    kind: str = field(default='auto-assign', init=False)


CreationIntent = Union[ManualCreation, AutoAssignCreation]
