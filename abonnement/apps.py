from django.apps import AppConfig


class AbonnementConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'abonnement'

    def ready(self):
        from . import signals  # noqa: F401
