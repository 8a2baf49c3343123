from datetime import date

import factory

from .models import Paciente


class PacienteFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Paciente

    nombres = factory.Faker('first_name', locale='es_ES')
    apellidos = factory.Faker('last_name', locale='es_ES')
    sexo = 'F'
    edad = 34
    condicion_edad = 'A'
    cedula_pasaporte = factory.Sequence(lambda n: f'17{n:08d}')
    fecha_nacimiento = date(1991, 3, 14)


class PacientePediatricoFactory(PacienteFactory):
    edad = 7
    fecha_nacimiento = date(2018, 6, 2)
