from decimal import Decimal

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from graficapro.core.dependency_injection import get_persistencia
from graficapro.core.entities import Material, TipoEntidade, UnidadeMaterial
from graficapro.core.sessao import GerenciadorSessao
from graficapro.infrastructure.gateways import ProvedorAutenticacaoDjango
from graficapro.infrastructure.mappers import UsuarioMapper

MATERIAIS_INICIAIS = [
    ('Cartão de Visita 4x4', 'Impressos', Decimal('89.90'), UnidadeMaterial.MILHAR),
    ('Panfleto A5 Couché 90g', 'Impressos', Decimal('180.00'), UnidadeMaterial.MILHAR),
    ('Banner Lona 440g', 'Comunicação Visual', Decimal('65.00'), UnidadeMaterial.METRO_QUADRADO),
    ('Adesivo Vinil Brilho', 'Comunicação Visual', Decimal('55.00'), UnidadeMaterial.METRO_QUADRADO),
    ('Convite Personalizado', 'Papelaria', Decimal('350.00'), UnidadeMaterial.CENTO),
    ('Papel Sulfite A4 Colorido', 'Papelaria', Decimal('1.50'), UnidadeMaterial.FOLHA),
    ('Caneca Personalizada', 'Brindes', Decimal('29.90'), UnidadeMaterial.UNIDADE),
]


class Command(BaseCommand):
    help = 'Cadastra um catálogo inicial de materiais de gráfica para um usuário'

    def add_arguments(self, parser):
        parser.add_argument('email', help='E-mail (username) do usuário dono do catálogo')

    def handle(self, *args, **options):
        User = get_user_model()
        try:
            user = User.objects.get(username__iexact=options['email'])
        except User.DoesNotExist:
            raise CommandError(f"Usuário {options['email']} não encontrado.")

        sessao = GerenciadorSessao(
            provedor=ProvedorAutenticacaoDjango(),
            persistencia=get_persistencia(),
            arquivar_somente_entregues=settings.GRAFICAPRO_ARQUIVAR_SOMENTE_ENTREGUES,
        )
        sessao.ativar(UsuarioMapper.to_entity(user))
        existentes = {material.nome for material in sessao.materiais}

        self.stdout.write('Criando materiais iniciais...')
        for nome, categoria, preco, unidade in MATERIAIS_INICIAIS:
            if nome in existentes:
                continue
            material = Material(nome=nome, categoria=categoria, preco_base=preco, unidade=unidade)
            sessao.sincronizacao.criar(TipoEntidade.MATERIAL, material)
            self.stdout.write(self.style.SUCCESS(f'Criado material "{nome}"'))

        self.stdout.write(self.style.SUCCESS(f'Catálogo com {len(sessao.materiais)} materiais.'))
