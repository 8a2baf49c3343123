# api/patients/admin.py
from django.contrib import admin

from .models.paciente import Paciente


@admin.register(Paciente)
class PacienteAdmin(admin.ModelAdmin):
    list_display = (
        'cedula_pasaporte',
        'nombre_completo',
        'sexo',
        'edad_completa',
        'es_pediatrico',
        'activo',
    )
    list_filter = ('sexo', 'activo', 'condicion_edad')
    search_fields = ('nombres', 'apellidos', 'cedula_pasaporte')
    list_per_page = 20
    ordering = ('apellidos', 'nombres')
    readonly_fields = ('fecha_creacion', 'fecha_modificacion', 'creado_por', 'actualizado_por')

    @admin.display(boolean=True, description='Pediátrico')
    def es_pediatrico(self, obj):
        return obj.es_pediatrico
