# api/procedures/domain/odontogram.py
"""
Agregador del odontograma.

A partir de todos los procedimientos del paciente calcula, diente por
diente, un único estado de visualización y el número de procedimientos.
Función pura: mismas entradas producen exactamente la misma salida.
"""
from dataclasses import dataclass
from typing import Optional, Tuple

from . import fdi
from .estados import ProcedureStatus
from .snapshots import ProcedureSnapshot

# El orden es significativo: gana el primer estado presente en el diente
PRECEDENCIA = (
    ProcedureStatus.AUSENTE,
    ProcedureStatus.PROCESO,
    ProcedureStatus.DISPONIBLE,
    ProcedureStatus.FINALIZADO,
    ProcedureStatus.CONTRAINDICADO,
)

STATUS_COLORS = {
    ProcedureStatus.DISPONIBLE: '#FEF3C7',
    ProcedureStatus.PROCESO: '#DBEAFE',
    ProcedureStatus.FINALIZADO: '#D1FAE5',
    ProcedureStatus.CONTRAINDICADO: '#FEE2E2',
    ProcedureStatus.AUSENTE: '#D1D5DB',
    ProcedureStatus.CANCELADO: '#E5E7EB',
}

STATUS_BORDER_COLORS = {
    ProcedureStatus.DISPONIBLE: '#F59E0B',
    ProcedureStatus.PROCESO: '#3B82F6',
    ProcedureStatus.FINALIZADO: '#10B981',
    ProcedureStatus.CONTRAINDICADO: '#EF4444',
    ProcedureStatus.AUSENTE: '#6B7280',
    ProcedureStatus.CANCELADO: '#9CA3AF',
}

COLOR_SANO = '#FFFFFF'
BORDE_SANO = '#E0E0E0'

TODOS = 'all'


@dataclass(frozen=True)
class ToothView:
    """Vista derivada de un diente del odontograma"""
    tooth_fdi: str
    display_status: Optional[str]
    procedures: Tuple[ProcedureSnapshot, ...]
    procedure_count: int

    @property
    def is_absent(self):
        return self.display_status == ProcedureStatus.AUSENTE

    @property
    def show_badge(self):
        return self.procedure_count > 0 and not self.is_absent

    @property
    def color(self):
        return STATUS_COLORS.get(self.display_status, COLOR_SANO)

    @property
    def border_color(self):
        return STATUS_BORDER_COLORS.get(self.display_status, BORDE_SANO)

    @property
    def label(self):
        if self.display_status is None:
            return 'Sano'
        return ProcedureStatus(self.display_status).label

    def as_dict(self):
        return {
            'tooth_fdi': self.tooth_fdi,
            'display_status': self.display_status,
            'label': self.label,
            'color': self.color,
            'border_color': self.border_color,
            'procedure_count': self.procedure_count,
            'show_badge': self.show_badge,
            'is_absent': self.is_absent,
            'procedure_ids': [p.id for p in self.procedures],
        }


def _sin_filtro(valor):
    return valor is None or valor == '' or valor == TODOS


def filter_procedures(procedimientos, status=None, chair_id=None):
    """Aplica los filtros de estado y cátedra (ambos opcionales)"""
    resultado = []
    for p in procedimientos:
        if not _sin_filtro(status) and p.status != status:
            continue
        if not _sin_filtro(chair_id) and str(p.chair_id) != str(chair_id):
            continue
        resultado.append(p)
    return resultado


def procedures_by_tooth(procedimientos):
    """
    Agrupa procedimientos por diente. Un procedimiento que abarca varios
    dientes aparece en cada uno de ellos.
    """
    por_diente = {}
    for p in procedimientos:
        for diente in p.teeth:
            por_diente.setdefault(diente, []).append(p)
    return por_diente


def display_status(procedimientos):
    """Primer estado de PRECEDENCIA presente en el diente, o None"""
    presentes = {p.status for p in procedimientos}
    for estado in PRECEDENCIA:
        if estado in presentes:
            return estado
    return None


def build_odontogram(procedimientos, status=None, chair_id=None, pediatrico=False):
    """
    Construye una vista por cada diente de la arcada del paciente.

    El color sale de los procedimientos filtrados; el contador del
    diente cuenta todos sus procedimientos sin filtrar.
    """
    filtrados = filter_procedures(procedimientos, status=status, chair_id=chair_id)
    por_diente_filtrado = procedures_by_tooth(filtrados)
    por_diente_total = procedures_by_tooth(procedimientos)

    vistas = []
    for diente in fdi.dientes_arcada(pediatrico):
        bucket = tuple(por_diente_filtrado.get(diente, ()))
        vistas.append(ToothView(
            tooth_fdi=diente,
            display_status=display_status(bucket),
            procedures=bucket,
            procedure_count=len(por_diente_total.get(diente, ())),
        ))
    return vistas
