from dataclasses import replace

from rest_framework import serializers

from graficapro.core.derivacoes import ranking_materiais
from graficapro.core.entities import (
    CATEGORIA_PADRAO,
    Anexo,
    Designer,
    Material,
    Orcamento,
    Pedido,
    StatusDesigner,
    StatusOrcamento,
    StatusPedido,
    UnidadeMaterial,
)


class CampoEnum(serializers.ChoiceField):
    """ChoiceField que recebe o rótulo e entrega o membro do Enum."""

    def __init__(self, enum_cls, **kwargs):
        self.enum_cls = enum_cls
        super().__init__(choices=[(m.value, m.value) for m in enum_cls], **kwargs)

    def to_internal_value(self, data):
        return self.enum_cls(super().to_internal_value(data))

    def to_representation(self, value):
        return self.enum_cls(value).value


def _moeda(**kwargs):
    return serializers.DecimalField(max_digits=12, decimal_places=2, **kwargs)


class EntidadeSerializer(serializers.Serializer):
    """
    Serializer de uma entidade (dataclass) da Core.

    `to_entity()` constrói a entidade a partir dos dados validados ou, com
    `base`, devolve uma cópia da entidade existente com os campos enviados.
    """
    entity_class = None

    id = serializers.CharField(read_only=True)

    def _dados_entidade(self):
        return dict(self.validated_data)

    def to_entity(self, base=None):
        dados = self._dados_entidade()
        if base is not None:
            return replace(base, **dados)
        return self.entity_class(**dados)


# ====================================================================
# SERIALIZERS DAS COLEÇÕES
# ====================================================================

class AnexoSerializer(serializers.Serializer):
    nome = serializers.CharField(max_length=255)
    tipo = serializers.CharField(max_length=255)
    dados = serializers.CharField()


class PedidoSerializer(EntidadeSerializer):
    """
    Pedido de impressão. O arquivamento não é editável aqui; use as rotas
    `arquivar/` e `restaurar/`.
    """
    entity_class = Pedido

    data = serializers.DateField(required=False)
    nome_cliente = serializers.CharField(max_length=255)
    telefone = serializers.CharField(max_length=30, required=False, allow_blank=True)
    tipo_material = serializers.CharField(max_length=255)
    medidas = serializers.CharField(max_length=255, required=False, allow_blank=True)
    quantidade = serializers.IntegerField(min_value=0, required=False)
    cor = serializers.CharField(max_length=255, required=False, allow_blank=True)
    informacoes_adicionais = serializers.CharField(required=False, allow_blank=True)
    valor_entrada = _moeda(min_value=0, required=False)
    valor_restante = _moeda(min_value=0, required=False)
    valor_total = _moeda(read_only=True)
    status = CampoEnum(StatusPedido, required=False)
    designer_id = serializers.CharField(max_length=64, required=False, allow_null=True, allow_blank=True)
    designer = serializers.SerializerMethodField()
    anexos = AnexoSerializer(many=True, required=False)
    arquivado = serializers.BooleanField(read_only=True)

    def get_designer(self, obj):
        sessao = self.context.get('sessao')
        if sessao is None:
            return None
        return sessao.nome_designer(obj.designer_id)

    def _dados_entidade(self):
        dados = super()._dados_entidade()
        if 'anexos' in dados:
            dados['anexos'] = [Anexo(**dict(anexo)) for anexo in dados['anexos']]
        if dados.get('designer_id') == '':
            dados['designer_id'] = None
        return dados


class StatusPedidoSerializer(serializers.Serializer):
    status = CampoEnum(StatusPedido)


class OrcamentoSerializer(EntidadeSerializer):
    entity_class = Orcamento

    data = serializers.DateField(required=False)
    nome_cliente = serializers.CharField(max_length=255)
    email = serializers.CharField(max_length=254, required=False, allow_blank=True)
    telefone = serializers.CharField(max_length=30, required=False, allow_blank=True)
    tipo_material = serializers.CharField(max_length=255)
    medidas = serializers.CharField(max_length=255, required=False, allow_blank=True)
    quantidade = serializers.IntegerField(min_value=0, required=False)
    valor_total = _moeda()
    status = CampoEnum(StatusOrcamento, required=False)
    prazo_entrega = serializers.CharField(max_length=255, required=False, allow_blank=True)
    valido_ate = serializers.DateField(required=False, allow_null=True)
    observacoes = serializers.CharField(required=False, allow_blank=True)


class StatusOrcamentoSerializer(serializers.Serializer):
    status = CampoEnum(StatusOrcamento)


class MaterialSerializer(EntidadeSerializer):
    entity_class = Material

    nome = serializers.CharField(max_length=255)
    categoria = serializers.CharField(max_length=100, required=False, allow_blank=True, default=CATEGORIA_PADRAO)
    preco_base = _moeda(min_value=0)
    unidade = CampoEnum(UnidadeMaterial, required=False)


class DesignerSerializer(EntidadeSerializer):
    entity_class = Designer

    nome = serializers.CharField(max_length=255)
    especialidade = serializers.CharField(max_length=255, required=False, allow_blank=True)
    email = serializers.CharField(max_length=254, required=False, allow_blank=True)
    status = CampoEnum(StatusDesigner, required=False)


# ====================================================================
# SERIALIZERS DE LEITURA (DERIVAÇÕES)
# ====================================================================

class EstatisticasSerializer(serializers.Serializer):
    total_pedidos = serializers.IntegerField()
    pendentes = serializers.IntegerField()
    em_processo = serializers.IntegerField()
    entregues = serializers.IntegerField()
    receita_total = _moeda()
    orcamentos_pendentes = serializers.IntegerField()


class ResumoFinanceiroSerializer(serializers.Serializer):
    total = _moeda()
    recebido = _moeda()
    a_receber = _moeda()
    percentual_recebido = _moeda()
    ranking = serializers.SerializerMethodField()

    def get_ranking(self, obj):
        return [
            {'material': material, 'valor': str(valor)}
            for material, valor in ranking_materiais(obj)
        ]


# ====================================================================
# SERIALIZERS DE AUTENTICAÇÃO
# ====================================================================

class UsuarioSerializer(serializers.Serializer):
    id = serializers.CharField()
    nome = serializers.CharField()
    email = serializers.CharField()
    provedor = serializers.CharField(allow_null=True)
    avatar = serializers.CharField(allow_null=True)


class CadastroSerializer(serializers.Serializer):
    nome = serializers.CharField(max_length=150)
    email = serializers.EmailField()
    senha = serializers.CharField(min_length=6, write_only=True, style={'input_type': 'password'})


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    senha = serializers.CharField(write_only=True, style={'input_type': 'password'})


class SairSerializer(serializers.Serializer):
    refresh = serializers.CharField(required=False, write_only=True)
