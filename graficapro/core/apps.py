# graficapro/core/apps.py

from django.apps import AppConfig

class CoreConfig(AppConfig):
    name = 'graficapro.core'
    label = 'core'
    verbose_name = 'Entidades, Sincronização e Sessão (Core)'
    # Sem modelos: o banco pertence à Infrastructure.
    default_auto_field = 'django.db.models.BigAutoField'
