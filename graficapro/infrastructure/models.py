# Define os modelos do banco de dados usados pelo adaptador de persistência remoto.

from decimal import Decimal

from django.conf import settings
from django.db import models

from graficapro.core.entities import (
    CATEGORIA_PADRAO, StatusDesigner, StatusOrcamento, StatusPedido, UnidadeMaterial
)


def _choices(enum_cls):
    return [(membro.value, membro.value) for membro in enum_cls]


# ====================================================================
# PERFIL DO USUÁRIO
# ====================================================================

class PerfilUsuario(models.Model):
    """
    Dados de perfil que o modelo de usuário padrão não tem.
    O e-mail é o username; o nome fica em first_name.
    """
    usuario = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='perfil')
    provedor = models.CharField(max_length=20, default='email')
    avatar = models.URLField(max_length=500, blank=True, null=True)

    class Meta:
        verbose_name = 'Perfil de Usuário'
        verbose_name_plural = 'Perfis de Usuário'
        db_table = 'graficapro_perfil_usuario'

    def __str__(self):
        return f"{self.usuario} ({self.provedor})"


# ====================================================================
# COLEÇÕES DO USUÁRIO
# O id vem do cliente (uuid) e nunca é reatribuído.
# ====================================================================

class EntidadeDoUsuario(models.Model):
    """Campos comuns: id opaco, dono e carimbo de criação (ordem de exibição)."""
    id = models.CharField(primary_key=True, max_length=64, editable=False)
    usuario = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='+')
    criado_em = models.DateTimeField(auto_now_add=True)

    class Meta:
        abstract = True
        ordering = ['-criado_em']


class Pedido(EntidadeDoUsuario):
    data = models.DateField()
    nome_cliente = models.CharField(max_length=255)
    telefone = models.CharField(max_length=30, blank=True)
    tipo_material = models.CharField(max_length=255)
    medidas = models.CharField(max_length=255, blank=True)
    quantidade = models.PositiveIntegerField(default=1)
    cor = models.CharField(max_length=255, blank=True)
    informacoes_adicionais = models.TextField(blank=True)
    valor_entrada = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    valor_restante = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    status = models.CharField(max_length=20, choices=_choices(StatusPedido), default=StatusPedido.PENDENTE.value)
    # Referência fraca: não é FK, o designer pode ter sido excluído.
    designer_id = models.CharField(max_length=64, blank=True, null=True)
    anexos = models.JSONField(default=list, blank=True)
    arquivado = models.BooleanField(default=False)

    class Meta(EntidadeDoUsuario.Meta):
        verbose_name = 'Pedido'
        verbose_name_plural = 'Pedidos'
        db_table = 'graficapro_pedido'

    def __str__(self):
        return f"Pedido {self.id} - {self.nome_cliente}"


class Orcamento(EntidadeDoUsuario):
    data = models.DateField()
    nome_cliente = models.CharField(max_length=255)
    email = models.CharField(max_length=254, blank=True)
    telefone = models.CharField(max_length=30, blank=True)
    tipo_material = models.CharField(max_length=255)
    medidas = models.CharField(max_length=255, blank=True)
    quantidade = models.PositiveIntegerField(default=1)
    valor_total = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=20, choices=_choices(StatusOrcamento), default=StatusOrcamento.AGUARDANDO.value)
    prazo_entrega = models.CharField(max_length=255, blank=True)
    valido_ate = models.DateField(blank=True, null=True)
    observacoes = models.TextField(blank=True)

    class Meta(EntidadeDoUsuario.Meta):
        verbose_name = 'Orçamento'
        verbose_name_plural = 'Orçamentos'
        db_table = 'graficapro_orcamento'

    def __str__(self):
        return f"Orçamento {self.id} - {self.nome_cliente}"


class Material(EntidadeDoUsuario):
    nome = models.CharField(max_length=255)
    categoria = models.CharField(max_length=100, default=CATEGORIA_PADRAO)
    preco_base = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    unidade = models.CharField(max_length=10, choices=_choices(UnidadeMaterial), default=UnidadeMaterial.UNIDADE.value)

    class Meta(EntidadeDoUsuario.Meta):
        verbose_name = 'Material'
        verbose_name_plural = 'Materiais'
        db_table = 'graficapro_material'

    def __str__(self):
        return self.nome


class Designer(EntidadeDoUsuario):
    nome = models.CharField(max_length=255)
    especialidade = models.CharField(max_length=255, blank=True)
    email = models.CharField(max_length=254, blank=True)
    status = models.CharField(max_length=10, choices=_choices(StatusDesigner), default=StatusDesigner.ATIVO.value)

    class Meta(EntidadeDoUsuario.Meta):
        verbose_name = 'Designer'
        verbose_name_plural = 'Designers'
        db_table = 'graficapro_designer'

    def __str__(self):
        return self.nome
