"""
Rotas da API REST do GráficaPro (montadas em /api/).
"""
from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView

from . import views


urlpatterns = [
    # ====================================================================
    # 1. AUTENTICAÇÃO
    # ====================================================================
    path('auth/cadastro/', views.CadastroAPIView.as_view(), name='api_cadastro'),
    path('auth/token/', views.TokenAPIView.as_view(), name='api_token'),
    path('auth/token/refresh/', TokenRefreshView.as_view(), name='api_token_refresh'),
    path('auth/usuario/', views.UsuarioAtualAPIView.as_view(), name='api_usuario_atual'),
    path('auth/sair/', views.SairAPIView.as_view(), name='api_sair'),

    # ====================================================================
    # 2. PAINEL E FINANCEIRO
    # ====================================================================
    path('dashboard/', views.DashboardAPIView.as_view(), name='api_dashboard'),
    path('financeiro/', views.FinanceiroAPIView.as_view(), name='api_financeiro'),

    # ====================================================================
    # 3. PEDIDOS
    # ====================================================================
    path('pedidos/', views.PedidoListAPIView.as_view(), name='api_pedidos'),
    path('pedidos/arquivar-entregues/', views.ArquivarEntreguesAPIView.as_view(), name='api_arquivar_entregues'),
    path('pedidos/<str:pk>/', views.PedidoDetailAPIView.as_view(), name='api_pedido_detalhe'),
    path('pedidos/<str:pk>/status/', views.PedidoStatusAPIView.as_view(), name='api_pedido_status'),
    path('pedidos/<str:pk>/arquivar/', views.PedidoArquivarAPIView.as_view(), name='api_pedido_arquivar'),
    path('pedidos/<str:pk>/restaurar/', views.PedidoRestaurarAPIView.as_view(), name='api_pedido_restaurar'),

    # ====================================================================
    # 4. ORÇAMENTOS
    # ====================================================================
    path('orcamentos/', views.OrcamentoListAPIView.as_view(), name='api_orcamentos'),
    path('orcamentos/<str:pk>/', views.OrcamentoDetailAPIView.as_view(), name='api_orcamento_detalhe'),
    path('orcamentos/<str:pk>/status/', views.OrcamentoStatusAPIView.as_view(), name='api_orcamento_status'),
    path('orcamentos/<str:pk>/converter/', views.ConverterOrcamentoAPIView.as_view(), name='api_orcamento_converter'),
    path('orcamentos/<str:pk>/whatsapp/', views.WhatsappOrcamentoAPIView.as_view(), name='api_orcamento_whatsapp'),

    # ====================================================================
    # 5. MATERIAIS E DESIGNERS
    # ====================================================================
    path('materiais/', views.MaterialListAPIView.as_view(), name='api_materiais'),
    path('materiais/<str:pk>/', views.MaterialDetailAPIView.as_view(), name='api_material_detalhe'),
    path('designers/', views.DesignerListAPIView.as_view(), name='api_designers'),
    path('designers/<str:pk>/', views.DesignerDetailAPIView.as_view(), name='api_designer_detalhe'),
]
