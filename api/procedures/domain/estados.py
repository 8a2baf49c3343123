# api/procedures/domain/estados.py
"""
Vocabulario de estados del ciclo clínico.

Define los conjuntos cerrados de estados para procedimientos, asignaciones
y sesiones, junto con la tabla de transiciones permitidas del procedimiento.
"""
from django.db import models


class ProcedureStatus(models.TextChoices):
    """Estados posibles de un procedimiento del paciente"""
    DISPONIBLE = 'disponible', 'Disponible'
    PROCESO = 'proceso', 'En Proceso'
    FINALIZADO = 'finalizado', 'Finalizado'
    CONTRAINDICADO = 'contraindicado', 'Contraindicado'
    AUSENTE = 'ausente', 'Ausente'
    CANCELADO = 'cancelado', 'Cancelado'


class AssignmentStatus(models.TextChoices):
    """Estados de la asignación de un alumno"""
    ACTIVA = 'activa', 'Activa'
    COMPLETADA = 'completada', 'Completada'
    ABANDONADA = 'abandonada', 'Abandonada'


class SessionStatus(models.TextChoices):
    """Estados de una sesión de tratamiento"""
    PROGRAMADA = 'programada', 'Programada'
    COMPLETADA = 'completada', 'Completada'
    CANCELADA = 'cancelada', 'Cancelada'


class Accion(models.TextChoices):
    """Acciones que disparan transiciones del procedimiento"""
    ASIGNAR = 'assign', 'Asignar'
    COMPLETAR = 'complete', 'Completar'
    ABANDONAR = 'abandon', 'Abandonar'
    CANCELAR = 'cancel', 'Cancelar'
    EDITAR = 'edit', 'Editar'


# Estado origen -> {acción: estado destino}
TRANSICIONES = {
    ProcedureStatus.DISPONIBLE: {
        Accion.ASIGNAR: ProcedureStatus.PROCESO,
        Accion.CANCELAR: ProcedureStatus.CANCELADO,
    },
    ProcedureStatus.PROCESO: {
        Accion.COMPLETAR: ProcedureStatus.FINALIZADO,
        Accion.ABANDONAR: ProcedureStatus.DISPONIBLE,
        Accion.CANCELAR: ProcedureStatus.CANCELADO,
    },
    ProcedureStatus.CONTRAINDICADO: {
        Accion.CANCELAR: ProcedureStatus.CANCELADO,
    },
    ProcedureStatus.AUSENTE: {
        Accion.CANCELAR: ProcedureStatus.CANCELADO,
    },
    ProcedureStatus.FINALIZADO: {},
    ProcedureStatus.CANCELADO: {},
}

# Estados desde los que se permite editar notas/tratamiento o alternar
# entre disponible y contraindicado
ESTADOS_EDITABLES = frozenset({ProcedureStatus.DISPONIBLE, ProcedureStatus.CONTRAINDICADO})

# Estados válidos al crear un procedimiento sin auto-asignación
ESTADOS_CREACION_MANUAL = frozenset({
    ProcedureStatus.DISPONIBLE,
    ProcedureStatus.CONTRAINDICADO,
    ProcedureStatus.AUSENTE,
})


def destino(estado, accion):
    """Estado resultante de aplicar `accion` sobre `estado`, o None si no está permitido"""
    return TRANSICIONES.get(estado, {}).get(accion)
