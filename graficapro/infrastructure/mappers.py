"""
Mapeadores (Mappers) para converter entre:
1. Modelos do Django ORM / dicionários JSON do armazenamento local
2. Entidades de Domínio (graficapro.core.entities)
"""
from dataclasses import fields
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional, Type

from django.apps import apps

from graficapro.core.entities import (
    Anexo,
    Designer as DesignerEntity,
    Material as MaterialEntity,
    Orcamento as OrcamentoEntity,
    Pedido as PedidoEntity,
    StatusDesigner,
    StatusOrcamento,
    StatusPedido,
    TipoEntidade,
    UnidadeMaterial,
    Usuario as UsuarioEntity,
)


def get_model(app_label: str, model_name: str):
    """Retorna um modelo do Django de forma segura (lazy loading)."""
    return apps.get_model(app_label, model_name)


def _data(valor) -> Optional[date]:
    if valor is None or isinstance(valor, date):
        return valor
    return date.fromisoformat(valor)


class BaseMapper:
    """
    Conversão genérica baseada nos campos do dataclass da entidade.

    As subclasses definem a entidade, o nome do modelo e como restaurar os
    campos que não são texto puro (`_converter`).
    """
    entity_class: Type = None
    model_name: str = None

    @classmethod
    def model_class(cls):
        return get_model('infrastructure', cls.model_name)

    @classmethod
    def _nomes_campos(cls):
        return [f.name for f in fields(cls.entity_class)]

    @classmethod
    def _converter(cls, dados: Dict[str, Any]) -> Dict[str, Any]:
        return dados

    @classmethod
    def to_entity(cls, model):
        """Converte um Model Django para a Entidade do Core."""
        if not model:
            return None
        dados = {nome: getattr(model, nome) for nome in cls._nomes_campos()}
        return cls.entity_class(**cls._converter(dados))

    @classmethod
    def to_model_fields(cls, entity) -> Dict[str, Any]:
        """Campos para `update_or_create` (sem o id, que é a chave)."""
        dados = cls.to_dict(entity)
        dados.pop('id')
        for nome, valor in list(dados.items()):
            atual = getattr(entity, nome)
            if isinstance(atual, (Decimal, date)):
                dados[nome] = atual
        return dados

    @classmethod
    def to_dict(cls, entity) -> Dict[str, Any]:
        """Representação JSON (texto, números, listas) da entidade."""
        dados = {}
        for nome in cls._nomes_campos():
            valor = getattr(entity, nome)
            if isinstance(valor, Decimal):
                valor = str(valor)
            elif isinstance(valor, date):
                valor = valor.isoformat()
            elif hasattr(valor, 'value'):
                valor = valor.value
            dados[nome] = valor
        return dados

    @classmethod
    def from_dict(cls, dados: Dict[str, Any]):
        conhecidos = {nome: dados[nome] for nome in cls._nomes_campos() if nome in dados}
        return cls.entity_class(**cls._converter(conhecidos))


# ====================================================================
# MAPPERS DAS COLEÇÕES
# ====================================================================

class PedidoMapper(BaseMapper):
    entity_class = PedidoEntity
    model_name = 'Pedido'

    @classmethod
    def _converter(cls, dados):
        if 'data' in dados:
            dados['data'] = _data(dados['data'])
        for campo in ('valor_entrada', 'valor_restante'):
            if campo in dados:
                dados[campo] = Decimal(str(dados[campo]))
        if 'status' in dados:
            dados['status'] = StatusPedido(dados['status'])
        if 'anexos' in dados:
            dados['anexos'] = [Anexo(**anexo) for anexo in dados['anexos'] or []]
        if dados.get('designer_id') == '':
            dados['designer_id'] = None
        return dados

    @classmethod
    def to_dict(cls, entity):
        dados = super().to_dict(entity)
        dados['anexos'] = [
            {'nome': anexo.nome, 'tipo': anexo.tipo, 'dados': anexo.dados} for anexo in entity.anexos
        ]
        return dados


class OrcamentoMapper(BaseMapper):
    entity_class = OrcamentoEntity
    model_name = 'Orcamento'

    @classmethod
    def _converter(cls, dados):
        for campo in ('data', 'valido_ate'):
            if campo in dados:
                dados[campo] = _data(dados[campo])
        if 'valor_total' in dados:
            dados['valor_total'] = Decimal(str(dados['valor_total']))
        if 'status' in dados:
            dados['status'] = StatusOrcamento(dados['status'])
        return dados


class MaterialMapper(BaseMapper):
    entity_class = MaterialEntity
    model_name = 'Material'

    @classmethod
    def _converter(cls, dados):
        if 'preco_base' in dados:
            dados['preco_base'] = Decimal(str(dados['preco_base']))
        if 'unidade' in dados:
            dados['unidade'] = UnidadeMaterial(dados['unidade'])
        return dados


class DesignerMapper(BaseMapper):
    entity_class = DesignerEntity
    model_name = 'Designer'

    @classmethod
    def _converter(cls, dados):
        if 'status' in dados:
            dados['status'] = StatusDesigner(dados['status'])
        return dados


MAPPERS = {
    TipoEntidade.PEDIDO: PedidoMapper,
    TipoEntidade.ORCAMENTO: OrcamentoMapper,
    TipoEntidade.MATERIAL: MaterialMapper,
    TipoEntidade.DESIGNER: DesignerMapper,
}


def mapper_para(tipo: TipoEntidade) -> Type[BaseMapper]:
    return MAPPERS[TipoEntidade(tipo)]


# ====================================================================
# MAPPER DE USUÁRIO
# ====================================================================

class UsuarioMapper:
    """Mapeador entre o usuário do django.contrib.auth (+ perfil) e a entidade."""

    @staticmethod
    def to_entity(model: Any) -> Optional[UsuarioEntity]:
        if not model:
            return None
        perfil = getattr(model, 'perfil', None)
        return UsuarioEntity(
            id=str(model.pk),
            nome=model.first_name or model.get_username(),
            email=model.email,
            provedor=perfil.provedor if perfil else 'email',
            avatar=perfil.avatar if perfil else None,
        )

    @staticmethod
    def to_dict(entity: UsuarioEntity) -> Dict[str, Any]:
        return {
            'id': entity.id,
            'nome': entity.nome,
            'email': entity.email,
            'senha': entity.senha,
            'provedor': entity.provedor,
            'avatar': entity.avatar,
        }

    @staticmethod
    def from_dict(dados: Dict[str, Any]) -> UsuarioEntity:
        return UsuarioEntity(**dados)
