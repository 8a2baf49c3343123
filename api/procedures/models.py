# api/procedures/models.py
import uuid

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django_currentuser.db.models import CurrentUserField

from api.patients.models import Paciente

from .domain import fdi
from .domain.estados import AssignmentStatus, ProcedureStatus, SessionStatus
from .domain.lifecycle import MAX_SESIONES_TOTALES


class AuditoriaModel(models.Model):
    """Campos de auditoría comunes a los modelos del módulo clínico"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, unique=True)

    actualizado_por = CurrentUserField(
        on_update=True,
        related_name='%(class)s_actualizado_por',
        null=True,
        blank=True,
        editable=False,
        verbose_name="Actualizado por"
    )

    fecha_creacion = models.DateTimeField(auto_now_add=True, verbose_name="Fecha de creación")
    fecha_modificacion = models.DateTimeField(auto_now=True, verbose_name="Fecha de modificación")

    class Meta:
        abstract = True


# =============================================================================
# CATÁLOGO: CÁTEDRAS Y TRATAMIENTOS
# =============================================================================

class Chair(AuditoriaModel):
    """Cátedra académica (Cirugía, Endodoncia, Prótesis...) dueña de un grupo de tratamientos"""
    name = models.CharField(max_length=100, verbose_name="Nombre")
    key = models.SlugField(max_length=50, unique=True, verbose_name="Clave")
    color = models.CharField(max_length=7, default='#3B82F6', verbose_name="Color")
    icon = models.CharField(max_length=50, blank=True, verbose_name="Ícono")
    active = models.BooleanField(default=True, verbose_name="Activa")

    class Meta:
        verbose_name = "Cátedra"
        verbose_name_plural = "Cátedras"
        ordering = ['name']

    def __str__(self):
        return self.name


class Treatment(AuditoriaModel):
    """Tipo de tratamiento ofrecido por una cátedra"""
    chair = models.ForeignKey(
        Chair,
        on_delete=models.PROTECT,
        related_name='treatments',
        null=True,
        blank=True,
        verbose_name="Cátedra"
    )
    name = models.CharField(max_length=150, verbose_name="Nombre")
    code = models.CharField(max_length=20, unique=True, verbose_name="Código")
    description = models.TextField(blank=True, verbose_name="Descripción")
    requires_tooth = models.BooleanField(default=True, verbose_name="Requiere diente")
    estimated_sessions = models.PositiveSmallIntegerField(
        default=1,
        validators=[MinValueValidator(1), MaxValueValidator(MAX_SESIONES_TOTALES)],
        verbose_name="Sesiones estimadas"
    )
    active = models.BooleanField(default=True, verbose_name="Activo")

    class Meta:
        verbose_name = "Tratamiento"
        verbose_name_plural = "Tratamientos"
        ordering = ['chair__name', 'name']
        indexes = [
            models.Index(fields=['chair', 'active']),
        ]

    def __str__(self):
        return f"{self.code} - {self.name}"


class TreatmentSubclass(AuditoriaModel):
    """Variante de un tratamiento (p. ej. Resina: clase I, clase II)"""
    treatment = models.ForeignKey(Treatment, on_delete=models.CASCADE, related_name='subclasses')
    name = models.CharField(max_length=150, verbose_name="Nombre")
    active = models.BooleanField(default=True)

    class Meta:
        verbose_name = "Subclase de tratamiento"
        verbose_name_plural = "Subclases de tratamiento"
        ordering = ['name']

    def __str__(self):
        return f"{self.treatment.name} / {self.name}"


class TreatmentSubclassOption(AuditoriaModel):
    subclass = models.ForeignKey(TreatmentSubclass, on_delete=models.CASCADE, related_name='options')
    name = models.CharField(max_length=150, verbose_name="Nombre")
    active = models.BooleanField(default=True)

    class Meta:
        verbose_name = "Opción de subclase"
        verbose_name_plural = "Opciones de subclase"
        ordering = ['name']

    def __str__(self):
        return self.name


# =============================================================================
# PROCEDIMIENTOS, ASIGNACIONES Y SESIONES
# =============================================================================

class PatientProcedure(AuditoriaModel):
    """
    Procedimiento clínico planificado o ejecutado sobre uno o más dientes.

    Los dientes se guardan como códigos FDI separados por comas; fuera del
    modelo se manejan siempre como tupla ordenada (ver `teeth`).
    """

    class Priority(models.TextChoices):
        BAJA = 'baja', 'Baja'
        MEDIA = 'media', 'Media'
        ALTA = 'alta', 'Alta'

    patient = models.ForeignKey(
        Paciente,
        on_delete=models.CASCADE,
        related_name='procedimientos',
        verbose_name="Paciente"
    )
    treatment = models.ForeignKey(
        Treatment,
        on_delete=models.PROTECT,
        related_name='patient_procedures',
        verbose_name="Tratamiento"
    )
    treatment_subclass = models.ForeignKey(
        TreatmentSubclass,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='patient_procedures'
    )
    treatment_subclass_option = models.ForeignKey(
        TreatmentSubclassOption,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='patient_procedures'
    )
    chair = models.ForeignKey(
        Chair,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='patient_procedures',
        verbose_name="Cátedra"
    )

    tooth_fdi = models.CharField(
        max_length=255,
        blank=True,
        help_text="Códigos FDI separados por comas (11-48, 51-85)"
    )
    tooth_surface = models.CharField(
        max_length=1,
        choices=list(fdi.FDIConstants.SUPERFICIES.items()),
        null=True,
        blank=True,
        verbose_name="Superficie"
    )
    is_repair = models.BooleanField(default=False, verbose_name="Es reparación")

    status = models.CharField(
        max_length=20,
        choices=ProcedureStatus.choices,
        default=ProcedureStatus.DISPONIBLE,
        db_index=True,
        verbose_name="Estado"
    )
    notes = models.TextField(blank=True, verbose_name="Notas")
    contraindication_reason = models.TextField(blank=True, verbose_name="Motivo de contraindicación")
    priority = models.CharField(max_length=10, choices=Priority.choices, default=Priority.MEDIA)
    sessions_total = models.PositiveSmallIntegerField(
        default=1,
        validators=[MinValueValidator(1), MaxValueValidator(MAX_SESIONES_TOTALES)],
        verbose_name="Sesiones planificadas"
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='procedimientos_creados',
        verbose_name="Creado por"
    )

    class Meta:
        verbose_name = "Procedimiento del paciente"
        verbose_name_plural = "Procedimientos del paciente"
        ordering = ['-fecha_creacion']
        indexes = [
            models.Index(fields=['patient', 'status']),
            models.Index(fields=['chair', 'status']),
        ]

    def __str__(self):
        return f"{self.treatment.name} [{self.tooth_fdi or '-'}] ({self.get_status_display()})"

    @property
    def teeth(self):
        return fdi.parse_tooth_fdi(self.tooth_fdi)

    @teeth.setter
    def teeth(self, dientes):
        self.tooth_fdi = fdi.join_tooth_fdi(dientes)

    @property
    def active_assignment(self):
        return self.assignments.filter(status=AssignmentStatus.ACTIVA).first()


class Assignment(AuditoriaModel):
    """Reclamo de un alumno sobre un procedimiento. Se conserva como historial."""
    patient_procedure = models.ForeignKey(
        PatientProcedure,
        on_delete=models.CASCADE,
        related_name='assignments',
        verbose_name="Procedimiento"
    )
    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='asignaciones',
        verbose_name="Alumno"
    )
    status = models.CharField(
        max_length=20,
        choices=AssignmentStatus.choices,
        default=AssignmentStatus.ACTIVA,
        db_index=True
    )
    sessions_completed = models.PositiveIntegerField(default=0)

    assigned_at = models.DateTimeField(verbose_name="Fecha de asignación")
    completed_at = models.DateTimeField(null=True, blank=True)
    abandoned_at = models.DateTimeField(null=True, blank=True)

    notes = models.TextField(blank=True)
    final_notes = models.TextField(blank=True, null=True)
    abandon_reason = models.CharField(max_length=500, blank=True, null=True)

    class Meta:
        verbose_name = "Asignación"
        verbose_name_plural = "Asignaciones"
        ordering = ['-assigned_at']
        constraints = [
            models.UniqueConstraint(
                fields=['patient_procedure'],
                condition=models.Q(status='activa'),
                name='unica_asignacion_activa_por_procedimiento',
            ),
        ]
        indexes = [
            models.Index(fields=['student', 'status']),
        ]

    def __str__(self):
        return f"{self.student} → {self.patient_procedure_id} ({self.status})"


class TreatmentSession(AuditoriaModel):
    """Sesión clínica registrada sobre una asignación"""
    assignment = models.ForeignKey(
        Assignment,
        on_delete=models.CASCADE,
        related_name='sessions',
        verbose_name="Asignación"
    )
    session_number = models.PositiveIntegerField(verbose_name="Número de sesión")
    session_date = models.DateField(verbose_name="Fecha de la sesión")
    notes = models.TextField(blank=True, null=True)
    status = models.CharField(
        max_length=20,
        choices=SessionStatus.choices,
        default=SessionStatus.COMPLETADA
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='sesiones_registradas'
    )

    class Meta:
        verbose_name = "Sesión de tratamiento"
        verbose_name_plural = "Sesiones de tratamiento"
        ordering = ['assignment', 'session_number']
        constraints = [
            models.UniqueConstraint(
                fields=['assignment', 'session_number'],
                name='numero_sesion_unico_por_asignacion',
            ),
        ]

    def __str__(self):
        return f"Sesión {self.session_number} ({self.session_date})"
