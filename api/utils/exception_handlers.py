# api/utils/exception_handlers.py
from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status
import logging

from api.procedures.domain import errors as domain_errors

logger = logging.getLogger(__name__)

# Código HTTP para cada tipo de error del motor clínico
DOMAIN_STATUS_CODES = {
    domain_errors.ValidationError.kind: status.HTTP_400_BAD_REQUEST,
    domain_errors.AuthorizationError.kind: status.HTTP_403_FORBIDDEN,
    domain_errors.ConflictError.kind: status.HTTP_409_CONFLICT,
    domain_errors.InvalidTransitionError.kind: status.HTTP_422_UNPROCESSABLE_ENTITY,
    domain_errors.CollaboratorError.kind: status.HTTP_502_BAD_GATEWAY,
}


def custom_exception_handler(exc, context):
    """
    Devuelve todas las excepciones con el formato estándar de la API.

    Los errores del motor clínico se traducen por su `kind`; el resto pasa
    por el handler de DRF y se envuelve igual.
    """
    if isinstance(exc, domain_errors.ProcedureError):
        return _domain_error_response(exc)

    # Llamar al handler por defecto de DRF
    response = exception_handler(exc, context)
    
    if response is not None:
        # Log del error para debugging
        logger.error(
            f"API Error: {exc.__class__.__name__} - {str(exc)}",
            extra={'status_code': response.status_code}
        )
        
        # Personalizar formato de error
        custom_response = {
            'success': False,
            'status_code': response.status_code,
            'message': _get_error_message(exc, response),
            'error_kind': _drf_error_kind(response.status_code),
            'data': None,
            'errors': _format_errors(response.data)
        }
        
        response.data = custom_response
    else:
        # Excepción no manejada por DRF (500 Internal Server Error)
        logger.critical(
            f"Unhandled Exception: {exc.__class__.__name__} - {str(exc)}",
            exc_info=True,
        )
        
        response = Response(
            {
                'success': False,
                'status_code': 500,
                'message': 'Error interno del servidor',
                'error_kind': 'error',
                'data': None,
                'errors': {'detail': ['Ha ocurrido un error inesperado']}
            },
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )
    
    return response


def _domain_error_response(exc):
    """Convierte un error del motor clínico en la respuesta estándar"""
    status_code = DOMAIN_STATUS_CODES.get(exc.kind, status.HTTP_400_BAD_REQUEST)
    logger.warning(f"Domain Error [{exc.kind}]: {exc.message}")

    errors = {'detail': [exc.message]}
    if exc.context:
        errors['context'] = {key: str(value) for key, value in exc.context.items()}

    return Response(
        {
            'success': False,
            'status_code': status_code,
            'message': exc.message,
            'error_kind': exc.kind,
            'data': None,
            'errors': errors,
        },
        status=status_code
    )


def _drf_error_kind(status_code):
    """Tipo de error equivalente para las excepciones propias de DRF"""
    if status_code == status.HTTP_400_BAD_REQUEST:
        return domain_errors.ValidationError.kind
    if status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN):
        return domain_errors.AuthorizationError.kind
    return 'error'


MENSAJES_POR_STATUS = {
    400: 'Error en los datos enviados',
    401: 'Credenciales no válidas',
    403: 'No tiene permisos para esta acción',
    404: 'Recurso no encontrado',
    405: 'Método no permitido',
    409: 'Conflicto con el estado actual',
    422: 'Acción no permitida en el estado actual',
}


def _primer_mensaje(detalle):
    """Primer mensaje legible dentro de un `detail` de DRF (dict, lista o texto)"""
    if isinstance(detalle, dict):
        for valor in detalle.values():
            return _primer_mensaje(valor)
        return None
    if isinstance(detalle, (list, tuple)):
        return _primer_mensaje(detalle[0]) if detalle else None
    return str(detalle)


def _get_error_message(exc, response):
    mensaje = _primer_mensaje(getattr(exc, 'detail', None))
    return mensaje or MENSAJES_POR_STATUS.get(response.status_code, 'Error en la solicitud')


def _format_errors(data):
    """Normaliza los errores de DRF a {campo: [mensajes]}"""
    if isinstance(data, list):
        return {'non_field_errors': data}
    if not isinstance(data, dict):
        return {'detail': [str(data)]}

    errores = {}
    for campo, mensajes in data.items():
        if isinstance(mensajes, dict):
            errores[campo] = _format_errors(mensajes)
        elif isinstance(mensajes, list):
            errores[campo] = mensajes
        else:
            errores[campo] = [str(mensajes)]
    return errores
