# api/procedures/management/commands/cargar_catalogo_procedimientos.py
import csv
from io import StringIO

from django.conf import settings
from django.core.management.base import BaseCommand
from django.db import transaction

from api.procedures.models import Chair, Treatment


class Command(BaseCommand):
    help = 'Carga (o actualiza) las cátedras y tratamientos base de la clínica'

    CATEDRAS = """key,name,color,icon
cirugias,Cirugías,#ef4444,scissors
periodoncia,Periodoncia,#f97316,droplet
pediatria,Pediatría,#eab308,baby
operatoria,Operatoria,#22c55e,tool
endodoncia,Endodoncia,#06b6d4,activity
protesis,Prótesis,#3b82f6,layers
preventiva,Preventiva,#8b5cf6,shield"""

    TRATAMIENTOS = """chair,code,name,requires_tooth,sessions
cirugias,CIR-001,Exodoncia Simple,true,1
cirugias,CIR-002,Exodoncia Complicada,true,1
cirugias,CIR-005,Frenectomía,false,1
periodoncia,PER-001,Profilaxis,false,1
periodoncia,PER-002,Curetaje Cerrado,true,2
pediatria,PED-002,Sellado de Fosetas,true,1
pediatria,PED-004,Pulpotomía,true,2
operatoria,OP-001,Caries Clase I,true,1
operatoria,OP-002,Caries Clase II,true,1
operatoria,OP-004,Caries Clase IV,true,2
endodoncia,END-001,Endodoncia Unirradicular,true,3
endodoncia,END-003,Endodoncia Multirradicular,true,5
protesis,PROT-001,Prótesis Parcial Removible,false,6
protesis,PROT-C01,Completa Superior,false,8
protesis,PROT-C02,Completa Inferior,false,8
protesis,PROT-C03,Completa Total,false,10
preventiva,PREV-001,Diagnóstico y Plan de Tratamiento,false,1
preventiva,AUS-001,Diente Ausente,true,1"""

    @transaction.atomic
    def handle(self, *args, **options):
        catedras = self.cargar_catedras()
        self.cargar_tratamientos(catedras)

        clave_protesis = getattr(settings, 'PROSTHESIS_CHAIR_KEY', 'protesis')
        if clave_protesis not in catedras:
            self.stdout.write(
                self.style.WARNING(f"⚠️ La cátedra de prótesis '{clave_protesis}' no está en el catálogo base")
            )

        self.stdout.write(self.style.SUCCESS('✅ Catálogo de procedimientos cargado'))
        self.stdout.write(
            f'📊 Resumen: {Chair.objects.count()} cátedras, {Treatment.objects.count()} tratamientos'
        )

    def cargar_catedras(self):
        catedras = {}
        for row in csv.DictReader(StringIO(self.CATEDRAS)):
            catedra, _ = Chair.objects.update_or_create(
                key=row['key'],
                defaults={'name': row['name'], 'color': row['color'], 'icon': row['icon'], 'active': True}
            )
            catedras[catedra.key] = catedra
        self.stdout.write(f'✅ {len(catedras)} cátedras')
        return catedras

    def cargar_tratamientos(self, catedras):
        count = 0
        for row in csv.DictReader(StringIO(self.TRATAMIENTOS)):
            Treatment.objects.update_or_create(
                code=row['code'],
                defaults={
                    'chair': catedras[row['chair']],
                    'name': row['name'],
                    'requires_tooth': row['requires_tooth'] == 'true',
                    'estimated_sessions': int(row['sessions']),
                    'active': True,
                }
            )
            count += 1
        self.stdout.write(f'✅ {count} tratamientos')
