"""
Tests de la regla de exclusividad de prótesis completas.
"""
import pytest

from api.procedures.domain import errors, prosthesis
from api.procedures.domain.estados import ProcedureStatus
from api.procedures.domain.prosthesis import ProsthesisKind
from api.procedures.domain.snapshots import ProcedureSnapshot, TreatmentRef

SUPERIOR = TreatmentRef(id='t-1', name='Prótesis Completa Superior')
INFERIOR = TreatmentRef(id='t-2', name='Completa Inferior')
RESINA = TreatmentRef(id='t-3', name='Resina compuesta')


def _procedimiento(tratamiento, status=ProcedureStatus.DISPONIBLE, id='p-1'):
    return ProcedureSnapshot(id=id, treatment=tratamiento, status=status)


class TestDeteccion:

    @pytest.mark.parametrize('nombre,esperado', [
        ('Prótesis Completa Superior', True),
        ('COMPLETA INFERIOR', True),
        ('completa total acrílica', True),
        ('Prótesis parcial removible', False),
        ('Resina', False),
        ('', False),
    ])
    def test_is_prosthesis(self, nombre, esperado):
        """Test: se detecta por palabra clave sin distinguir mayúsculas"""
        assert prosthesis.is_prosthesis(nombre) is esperado

    def test_is_prosthesis_sin_tratamiento(self):
        assert prosthesis.is_prosthesis(None) is False

    def test_prosthesis_kind(self):
        assert prosthesis.prosthesis_kind(SUPERIOR) == ProsthesisKind.SUPERIOR
        assert prosthesis.prosthesis_kind(INFERIOR) == ProsthesisKind.INFERIOR
        assert prosthesis.prosthesis_kind(RESINA) is None


class TestExclusividad:

    @pytest.mark.parametrize('estado', [
        ProcedureStatus.DISPONIBLE,
        ProcedureStatus.PROCESO,
        ProcedureStatus.CONTRAINDICADO,
        ProcedureStatus.AUSENTE,
    ])
    def test_protesis_activa_bloquea(self, estado):
        """Test: cualquier estado distinto de finalizado/cancelado cuenta como activo"""
        existentes = [_procedimiento(SUPERIOR, status=estado)]
        assert prosthesis.has_active_prosthesis(existentes)
        with pytest.raises(errors.ConflictError) as excinfo:
            prosthesis.ensure_prosthesis_allowed(existentes, INFERIOR)
        assert excinfo.value.context['procedure_id'] == 'p-1'

    @pytest.mark.parametrize('estado', [ProcedureStatus.FINALIZADO, ProcedureStatus.CANCELADO])
    def test_protesis_inactiva_no_bloquea(self, estado):
        existentes = [_procedimiento(SUPERIOR, status=estado)]
        assert not prosthesis.has_active_prosthesis(existentes)
        prosthesis.ensure_prosthesis_allowed(existentes, INFERIOR)

    def test_tratamiento_comun_no_se_restringe(self):
        """Test: con una prótesis activa se pueden crear otros tratamientos"""
        prosthesis.ensure_prosthesis_allowed([_procedimiento(SUPERIOR)], RESINA)

    def test_sin_procedimientos(self):
        prosthesis.ensure_prosthesis_allowed([], SUPERIOR)


class TestDientesDeProtesis:

    def test_superior_adulto(self):
        dientes = prosthesis.teeth_for_prosthesis(ProsthesisKind.SUPERIOR)
        assert len(dientes) == 16
        assert dientes[0] == '18'
        assert all(d[0] in '12' for d in dientes)

    def test_inferior_pediatrico(self):
        dientes = prosthesis.teeth_for_prosthesis('lower', pediatrico=True)
        assert len(dientes) == 10
        assert dientes[0] == '85'

    def test_total(self):
        """Test: la prótesis total cubre ambas arcadas"""
        assert len(prosthesis.teeth_for_prosthesis(ProsthesisKind.TOTAL)) == 32
        assert len(prosthesis.teeth_for_prosthesis(ProsthesisKind.TOTAL, pediatrico=True)) == 20
