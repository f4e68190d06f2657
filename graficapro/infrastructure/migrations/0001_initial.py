from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='PerfilUsuario',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('provedor', models.CharField(default='email', max_length=20)),
                ('avatar', models.URLField(blank=True, max_length=500, null=True)),
                ('usuario', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='perfil', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Perfil de Usuário',
                'verbose_name_plural': 'Perfis de Usuário',
                'db_table': 'graficapro_perfil_usuario',
            },
        ),
        migrations.CreateModel(
            name='Pedido',
            fields=[
                ('id', models.CharField(editable=False, max_length=64, primary_key=True, serialize=False)),
                ('criado_em', models.DateTimeField(auto_now_add=True)),
                ('data', models.DateField()),
                ('nome_cliente', models.CharField(max_length=255)),
                ('telefone', models.CharField(blank=True, max_length=30)),
                ('tipo_material', models.CharField(max_length=255)),
                ('medidas', models.CharField(blank=True, max_length=255)),
                ('quantidade', models.PositiveIntegerField(default=1)),
                ('cor', models.CharField(blank=True, max_length=255)),
                ('informacoes_adicionais', models.TextField(blank=True)),
                ('valor_entrada', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('valor_restante', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('status', models.CharField(choices=[('Pendente', 'Pendente'), ('Em Processo', 'Em Processo'), ('Entregue', 'Entregue')], default='Pendente', max_length=20)),
                ('designer_id', models.CharField(blank=True, max_length=64, null=True)),
                ('anexos', models.JSONField(blank=True, default=list)),
                ('arquivado', models.BooleanField(default=False)),
                ('usuario', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Pedido',
                'verbose_name_plural': 'Pedidos',
                'db_table': 'graficapro_pedido',
                'ordering': ['-criado_em'],
                'abstract': False,
            },
        ),
        migrations.CreateModel(
            name='Orcamento',
            fields=[
                ('id', models.CharField(editable=False, max_length=64, primary_key=True, serialize=False)),
                ('criado_em', models.DateTimeField(auto_now_add=True)),
                ('data', models.DateField()),
                ('nome_cliente', models.CharField(max_length=255)),
                ('email', models.CharField(blank=True, max_length=254)),
                ('telefone', models.CharField(blank=True, max_length=30)),
                ('tipo_material', models.CharField(max_length=255)),
                ('medidas', models.CharField(blank=True, max_length=255)),
                ('quantidade', models.PositiveIntegerField(default=1)),
                ('valor_total', models.DecimalField(decimal_places=2, max_digits=12)),
                ('status', models.CharField(choices=[('Aguardando', 'Aguardando'), ('Aprovado', 'Aprovado'), ('Expirado', 'Expirado')], default='Aguardando', max_length=20)),
                ('prazo_entrega', models.CharField(blank=True, max_length=255)),
                ('valido_ate', models.DateField(blank=True, null=True)),
                ('observacoes', models.TextField(blank=True)),
                ('usuario', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Orçamento',
                'verbose_name_plural': 'Orçamentos',
                'db_table': 'graficapro_orcamento',
                'ordering': ['-criado_em'],
                'abstract': False,
            },
        ),
        migrations.CreateModel(
            name='Material',
            fields=[
                ('id', models.CharField(editable=False, max_length=64, primary_key=True, serialize=False)),
                ('criado_em', models.DateTimeField(auto_now_add=True)),
                ('nome', models.CharField(max_length=255)),
                ('categoria', models.CharField(default='Geral', max_length=100)),
                ('preco_base', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('unidade', models.CharField(choices=[('un', 'un'), ('m2', 'm2'), ('cento', 'cento'), ('milhar', 'milhar'), ('folha', 'folha')], default='un', max_length=10)),
                ('usuario', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Material',
                'verbose_name_plural': 'Materiais',
                'db_table': 'graficapro_material',
                'ordering': ['-criado_em'],
                'abstract': False,
            },
        ),
        migrations.CreateModel(
            name='Designer',
            fields=[
                ('id', models.CharField(editable=False, max_length=64, primary_key=True, serialize=False)),
                ('criado_em', models.DateTimeField(auto_now_add=True)),
                ('nome', models.CharField(max_length=255)),
                ('especialidade', models.CharField(blank=True, max_length=255)),
                ('email', models.CharField(blank=True, max_length=254)),
                ('status', models.CharField(choices=[('Ativo', 'Ativo'), ('Inativo', 'Inativo')], default='Ativo', max_length=10)),
                ('usuario', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Designer',
                'verbose_name_plural': 'Designers',
                'db_table': 'graficapro_designer',
                'ordering': ['-criado_em'],
                'abstract': False,
            },
        ),
    ]
