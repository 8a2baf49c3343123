# api/procedures/admin.py
from django.contrib import admin

from .models import (
    Assignment,
    Chair,
    PatientProcedure,
    Treatment,
    TreatmentSession,
    TreatmentSubclass,
    TreatmentSubclassOption,
)


@admin.register(Chair)
class ChairAdmin(admin.ModelAdmin):
    list_display = ('name', 'key', 'color', 'active')
    list_filter = ('active',)
    search_fields = ('name', 'key')


class TreatmentSubclassInline(admin.TabularInline):
    model = TreatmentSubclass
    extra = 0


@admin.register(Treatment)
class TreatmentAdmin(admin.ModelAdmin):
    list_display = ('code', 'name', 'chair', 'requires_tooth', 'estimated_sessions', 'active')
    list_filter = ('chair', 'requires_tooth', 'active')
    search_fields = ('code', 'name')
    inlines = [TreatmentSubclassInline]


@admin.register(TreatmentSubclassOption)
class TreatmentSubclassOptionAdmin(admin.ModelAdmin):
    list_display = ('name', 'subclass', 'active')
    search_fields = ('name',)


class AssignmentInline(admin.TabularInline):
    model = Assignment
    extra = 0
    fields = ('student', 'status', 'sessions_completed', 'assigned_at', 'completed_at', 'abandoned_at')
    readonly_fields = fields
    can_delete = False


@admin.register(PatientProcedure)
class PatientProcedureAdmin(admin.ModelAdmin):
    """Solo lectura del estado: las transiciones se hacen por la API"""
    list_display = ('treatment', 'patient', 'tooth_fdi', 'status', 'chair', 'created_by', 'fecha_creacion')
    list_filter = ('status', 'chair', 'is_repair')
    search_fields = ('patient__nombres', 'patient__apellidos', 'treatment__name', 'tooth_fdi')
    readonly_fields = ('status', 'created_by', 'fecha_creacion', 'fecha_modificacion', 'actualizado_por')
    inlines = [AssignmentInline]
    list_per_page = 20


class TreatmentSessionInline(admin.TabularInline):
    model = TreatmentSession
    extra = 0
    fields = ('session_number', 'session_date', 'status', 'notes', 'created_by')
    readonly_fields = fields
    can_delete = False


@admin.register(Assignment)
class AssignmentAdmin(admin.ModelAdmin):
    list_display = ('patient_procedure', 'student', 'status', 'sessions_completed', 'assigned_at')
    list_filter = ('status',)
    search_fields = ('student__username', 'student__nombres', 'student__apellidos')
    readonly_fields = (
        'patient_procedure', 'student', 'status', 'sessions_completed',
        'assigned_at', 'completed_at', 'abandoned_at', 'abandon_reason',
    )
    inlines = [TreatmentSessionInline]
