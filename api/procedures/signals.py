# api/procedures/signals.py
import logging

from django.db.models.signals import post_save, pre_save
from django.dispatch import receiver

from .models import Assignment, PatientProcedure

logger = logging.getLogger(__name__)


def _estado_anterior(sender, instance):
    if instance._state.adding:
        return None
    return sender.objects.filter(pk=instance.pk).values_list('status', flat=True).first()


@receiver(pre_save, sender=PatientProcedure)
@receiver(pre_save, sender=Assignment)
def guardar_estado_anterior(sender, instance, **kwargs):
    instance._estado_anterior = _estado_anterior(sender, instance)


@receiver(post_save, sender=PatientProcedure)
def procedimiento_audit(sender, instance, created, **kwargs):
    if created:
        logger.info(f"[AUDIT] Procedimiento creado: {instance.id} estado={instance.status}")
        return
    anterior = getattr(instance, '_estado_anterior', None)
    if anterior and anterior != instance.status:
        logger.info(f"[AUDIT] Procedimiento {instance.id}: {anterior} → {instance.status}")


@receiver(post_save, sender=Assignment)
def asignacion_audit(sender, instance, created, **kwargs):
    if created:
        logger.info(
            f"[AUDIT] Asignación creada: {instance.id} "
            f"(procedimiento {instance.patient_procedure_id}, alumno {instance.student_id})"
        )
        return
    anterior = getattr(instance, '_estado_anterior', None)
    if anterior and anterior != instance.status:
        logger.info(f"[AUDIT] Asignación {instance.id}: {anterior} → {instance.status}")
