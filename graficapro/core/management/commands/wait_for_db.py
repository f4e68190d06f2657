"""
Management command para aguardar o banco de dados aceitar conexões.
"""
import time
from django.db import connections
from django.db.utils import OperationalError
from django.core.management.base import BaseCommand, CommandError


class Command(BaseCommand):
    """Pausa a execução até o banco 'default' responder (início dos containers)."""
    help = 'Aguarda o banco de dados ficar disponível.'

    def add_arguments(self, parser):
        parser.add_argument('--tentativas', type=int, default=30)
        parser.add_argument('--intervalo', type=float, default=1.0)

    def handle(self, *args, **options):
        self.stdout.write('Aguardando pelo banco de dados...')
        for tentativa in range(1, options['tentativas'] + 1):
            try:
                connections['default'].ensure_connection()
            except OperationalError:
                self.stdout.write(
                    f"Banco de dados indisponível (tentativa {tentativa}), "
                    f"aguardando {options['intervalo']} segundo(s)..."
                )
                time.sleep(options['intervalo'])
            else:
                self.stdout.write(self.style.SUCCESS('Banco de dados disponível!'))
                return
        raise CommandError('O banco de dados não ficou disponível a tempo.')
