# api/procedures/domain/errors.py
"""
Taxonomía de errores del motor de procedimientos.

Todas las excepciones llevan un `kind` estable y un mensaje legible para
el usuario; la capa de presentación decide cómo mostrarlas.
"""


class ProcedureError(Exception):
    """Error base del motor clínico"""
    kind = 'error'
    default_message = 'No se pudo completar la operación'

    def __init__(self, message=None, **context):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def as_dict(self):
        """Representación estructurada (kind + mensaje) para la UI"""
        data = {'kind': self.kind, 'message': self.message}
        if self.context:
            data['context'] = self.context
        return data


class InvalidTransitionError(ProcedureError):
    """La transición no está permitida desde el estado actual"""
    kind = 'invalid_transition'
    default_message = 'La acción no está permitida en el estado actual del procedimiento'


class ValidationError(ProcedureError):
    """Dato requerido ausente o con formato inválido"""
    kind = 'validation'
    default_message = 'Datos de entrada inválidos'


class ConflictError(ProcedureError):
    """El estado del servidor ya no coincide con el estado local"""
    kind = 'conflict'
    default_message = 'El procedimiento fue modificado por otro usuario. Actualice e intente de nuevo'


class AuthorizationError(ProcedureError):
    """El usuario no tiene la capacidad requerida para la acción"""
    kind = 'authorization'
    default_message = 'No tiene permisos para esta acción'


class CollaboratorError(ProcedureError):
    """Falla genérica de la API o de la red"""
    kind = 'collaborator'
    default_message = 'No se pudo comunicar con el servidor'


ERRORES_POR_KIND = {
    cls.kind: cls
    for cls in (
        InvalidTransitionError,
        ValidationError,
        ConflictError,
        AuthorizationError,
        CollaboratorError,
    )
}
