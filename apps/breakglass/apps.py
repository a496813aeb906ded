"""
Break-glass app configuration.
"""
from django.apps import AppConfig


class BreakglassConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.breakglass'
    verbose_name = 'Break-Glass Overrides'
