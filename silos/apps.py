from django.apps import AppConfig


class SilosConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'silos'
