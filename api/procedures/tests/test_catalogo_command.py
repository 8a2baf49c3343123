"""
Tests del comando de carga del catálogo de procedimientos.
"""
import pytest
from django.core.management import call_command

from api.procedures.domain import prosthesis
from api.procedures.models import Chair, Treatment


@pytest.mark.django_db
class TestCargarCatalogo:

    def test_carga_catedras_y_tratamientos(self):
        """Test: el catálogo incluye las prótesis completas y el diente ausente"""
        call_command('cargar_catalogo_procedimientos')

        assert Chair.objects.filter(key='protesis').exists()
        completas = Treatment.objects.filter(chair__key='protesis', name__startswith='Completa')
        assert sorted(prosthesis.prosthesis_kind(t) for t in completas) == ['lower', 'total', 'upper']
        assert Treatment.objects.get(code='AUS-001').name == 'Diente Ausente'

    def test_es_idempotente(self):
        call_command('cargar_catalogo_procedimientos')
        total = Treatment.objects.count()

        call_command('cargar_catalogo_procedimientos')

        assert Treatment.objects.count() == total
        assert Chair.objects.filter(key='operatoria').count() == 1
