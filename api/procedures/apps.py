from django.apps import AppConfig


class ProceduresConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'api.procedures'
    verbose_name = 'Procedimientos clínicos'

    def ready(self):
        # Importa las señales cuando la aplicación se inicie
        import api.procedures.signals
