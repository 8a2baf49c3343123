# patients/models/paciente.py
import uuid

from django.core.exceptions import ValidationError
from django.db import models
from django_currentuser.db.models import CurrentUserField

from .constants import SEXOS, CONDICION_EDAD, EDAD_MAXIMA_PEDIATRICA


class Paciente(models.Model):
    """Paciente atendido en la clínica"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, unique=True)

    nombres = models.CharField(max_length=100, verbose_name="Nombres completos")
    apellidos = models.CharField(max_length=100, verbose_name="Apellidos completos")

    sexo = models.CharField(max_length=1, choices=SEXOS, verbose_name="Sexo")
    edad = models.PositiveIntegerField(verbose_name="Edad")
    condicion_edad = models.CharField(max_length=1, choices=CONDICION_EDAD, default='A', verbose_name="Condición de edad")

    cedula_pasaporte = models.CharField(max_length=20, unique=True, verbose_name="Cédula/Pasaporte")
    fecha_nacimiento = models.DateField(verbose_name="Fecha de nacimiento")

    creado_por = CurrentUserField(
        related_name="pacientes_creados",
        null=True,
        blank=True,
        editable=False,
        verbose_name="Creado por"
    )
    actualizado_por = CurrentUserField(
        on_update=True,
        related_name="pacientes_actualizados",
        null=True,
        blank=True,
        editable=False,
        verbose_name="Actualizado por"
    )
    fecha_creacion = models.DateTimeField(auto_now_add=True, verbose_name="Fecha de creación")
    fecha_modificacion = models.DateTimeField(auto_now=True, verbose_name="Fecha de modificación")
    activo = models.BooleanField(default=True, verbose_name="Activo")

    class Meta:
        verbose_name = "Paciente"
        verbose_name_plural = "Pacientes"
        ordering = ['apellidos', 'nombres']
        indexes = [
            models.Index(fields=['apellidos', 'nombres']),
            models.Index(fields=['activo']),
        ]

    def clean(self):
        """Validaciones del formulario"""
        if not self.nombres or not self.apellidos:
            raise ValidationError("Los nombres y apellidos son obligatorios.")
        if not self.cedula_pasaporte:
            raise ValidationError("La cédula o pasaporte es obligatorio.")
        if self.edad is not None and not self.condicion_edad:
            raise ValidationError("Debe especificar la condición de edad (horas, días, meses, años).")

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.nombre_completo} - {self.cedula_pasaporte}"

    # ================== PROPIEDADES ÚTILES ==================
    @property
    def nombre_completo(self):
        return f"{self.apellidos}, {self.nombres}".strip()

    @property
    def edad_completa(self):
        """Retorna la edad con su condición"""
        if self.edad is not None and self.condicion_edad:
            condicion = dict(CONDICION_EDAD).get(self.condicion_edad)
            return f"{self.edad} {condicion}"
        return ""

    @property
    def es_pediatrico(self):
        """
        True si el odontograma debe mostrar dentición temporal.

        Edades en horas, días o meses son siempre pediátricas.
        """
        if self.condicion_edad != 'A':
            return True
        return self.edad is not None and self.edad <= EDAD_MAXIMA_PEDIATRICA
