import factory
from .models import Rol, Usuario

class UsuarioFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Usuario

    nombres = factory.Faker('first_name', locale='es_ES')
    apellidos = factory.Faker('last_name', locale='es_ES')
    username = factory.Sequence(lambda n: f'usuario{n}')
    telefono = '0991234567'
    correo = factory.Sequence(lambda n: f'usuario{n}@clinica.test')
    rol = Rol.ALUMNO


class DocenteFactory(UsuarioFactory):
    rol = Rol.DOCENTE


class AdministradorFactory(UsuarioFactory):
    rol = Rol.ADMINISTRADOR
    is_staff = True
