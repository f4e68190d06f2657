# Configuração da interface administrativa do Django para os modelos do GráficaPro.

from django.contrib import admin

from graficapro.infrastructure.models import Designer, Material, Orcamento, Pedido, PerfilUsuario


@admin.register(PerfilUsuario)
class PerfilUsuarioAdmin(admin.ModelAdmin):
    list_display = ('usuario', 'provedor')
    list_filter = ('provedor',)
    search_fields = ('usuario__email', 'usuario__first_name')


@admin.register(Pedido)
class PedidoAdmin(admin.ModelAdmin):
    list_display = ('id', 'nome_cliente', 'tipo_material', 'status', 'arquivado', 'data', 'usuario')
    list_filter = ('status', 'arquivado', 'data')
    search_fields = ('nome_cliente', 'tipo_material', 'telefone')
    readonly_fields = ('id', 'criado_em')


@admin.register(Orcamento)
class OrcamentoAdmin(admin.ModelAdmin):
    list_display = ('id', 'nome_cliente', 'tipo_material', 'valor_total', 'status', 'data', 'usuario')
    list_filter = ('status', 'data')
    search_fields = ('nome_cliente', 'email', 'tipo_material')
    readonly_fields = ('id', 'criado_em')


@admin.register(Material)
class MaterialAdmin(admin.ModelAdmin):
    list_display = ('nome', 'categoria', 'preco_base', 'unidade', 'usuario')
    list_filter = ('categoria', 'unidade')
    search_fields = ('nome',)


@admin.register(Designer)
class DesignerAdmin(admin.ModelAdmin):
    list_display = ('nome', 'especialidade', 'email', 'status', 'usuario')
    list_filter = ('status',)
    search_fields = ('nome', 'especialidade')
