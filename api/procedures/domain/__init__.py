# api/procedures/domain/__init__.py
"""
Motor del ciclo clínico: estados, transiciones, libro de sesiones,
exclusividad de prótesis y agregación del odontograma.

No depende de la base de datos; opera sobre snapshots en memoria.
"""
from .errors import (
    AuthorizationError,
    CollaboratorError,
    ConflictError,
    InvalidTransitionError,
    ProcedureError,
    ValidationError,
)
from .estados import AssignmentStatus, ProcedureStatus, SessionStatus
from .snapshots import (
    ActingUser,
    AssignmentSnapshot,
    AutoAssignCreation,
    ManualCreation,
    ProcedureSnapshot,
    SessionSnapshot,
    TreatmentRef,
)

__all__ = [
    'ActingUser',
    'AssignmentSnapshot',
    'AssignmentStatus',
    'AuthorizationError',
    'AutoAssignCreation',
    'CollaboratorError',
    'ConflictError',
    'InvalidTransitionError',
    'ManualCreation',
    'ProcedureError',
    'ProcedureSnapshot',
    'ProcedureStatus',
    'SessionSnapshot',
    'SessionStatus',
    'TreatmentRef',
    'ValidationError',
]
