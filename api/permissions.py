# api/permissions.py
from rest_framework import permissions


class TienePermisoPorRolConfigurable(permissions.BasePermission):
    """
    Permisos por rol (Administrador, Docente, Alumno) para la clínica.
    
    Uso:
        permission_classes = [TienePermisoPorRolConfigurable]
    
    Los permisos se configuran por modelo y rol. Las reglas finas
    (alumno asignado, creador del procedimiento) las decide el motor clínico.
    """
    
    # ============================================================================
    # CONFIGURACIÓN DE PERMISOS POR MODELO
    # ============================================================================
    PERMISOS = {
        # === CATÁLOGO ===
        'chair': {
            'Docente': ['GET'],
            'Alumno': ['GET'],
        },
        'treatment': {
            'Docente': ['GET'],
            'Alumno': ['GET'],
        },

        # === PROCEDIMIENTOS ===
        'patientprocedure': {
            'Docente': ['GET', 'POST', 'PUT', 'PATCH'],
            'Alumno': ['GET', 'POST', 'PUT', 'PATCH'],
        },
        'assignment': {
            'Docente': ['GET'],
            'Alumno': ['GET', 'POST', 'PATCH'],
        },
        'treatmentsession': {
            'Docente': ['GET'],
            'Alumno': ['GET', 'POST', 'PUT', 'PATCH', 'DELETE'],
        },
    }
    
    # ============================================================================
    # PERMISOS POR DEFECTO (para modelos sin configuración específica)
    # ============================================================================
    PERMISOS_BASE = {
        'Docente': ['GET'],
        'Alumno': ['GET'],
    }

    def has_permission(self, request, view):
        user = request.user
        
        # 1. Usuario no autenticado = sin acceso
        if not user or not user.is_authenticated:
            return False
        
        # 2. Administrador = acceso total
        if user.rol == 'Administrador':
            return True
        
        # 3. Buscar permisos específicos o usar base
        model_name = self._get_model_name(view)
        permisos_modelo = self.PERMISOS.get(model_name, self.PERMISOS_BASE)
        
        # 4. Verificar si el método HTTP está permitido
        metodos_permitidos = permisos_modelo.get(user.rol, [])
        if request.method in ('HEAD', 'OPTIONS'):
            return 'GET' in metodos_permitidos
        return request.method in metodos_permitidos
    
    def _get_model_name(self, view):
        """
        Extrae el nombre del modelo desde la vista.
        
        Intenta en orden:
        1. view.queryset.model._meta.model_name
        2. view.model._meta.model_name
        3. Nombre de la clase de vista (fallback)
        """
        if getattr(view, 'queryset', None) is not None:
            return view.queryset.model._meta.model_name
        if getattr(view, 'model', None) is not None:
            return view.model._meta.model_name
        return self._clean_view_name(view.__class__.__name__)
    
    def _clean_view_name(self, view_name):
        """
        Limpia el nombre de la vista para obtener el modelo.
        
        Ejemplo:
            'ChairViewSet' -> 'chair'
        """
        view_name = view_name.lower()
        
        # Remover sufijos comunes
        for suffix in ['viewset', 'view', 'api']:
            if view_name.endswith(suffix):
                view_name = view_name[:-len(suffix)]
        
        return view_name.strip('_')
