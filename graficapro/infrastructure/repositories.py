"""
Camada de Infraestrutura: Implementação dos adaptadores de persistência.

Esta camada traduz as operações abstratas definidas nas Portas da Core
em chamadas concretas ao framework (Django ORM, cache do Django).
Nenhuma exceção do banco sai daqui sem ser traduzida para a taxonomia da Core.
"""
import json
import logging
from contextlib import contextmanager
from typing import List

from django.core.cache import caches
from django.db import DatabaseError, transaction
from psycopg2 import errorcodes

from graficapro.core.entities import ColecoesUsuario, TipoEntidade
from graficapro.core.exceptions import (
    ErroPersistencia,
    ErroPersistenciaGenerico,
    PermissaoNegadaError,
    TabelaAusenteError,
)
from graficapro.core.ports import IPersistencia

from .mappers import mapper_para

logger = logging.getLogger(__name__)


# ====================================================================
# TRADUÇÃO DE ERROS DO BANCO
# ====================================================================

def _sqlstate(erro: Exception):
    causa = erro.__cause__ or erro
    return getattr(causa, 'pgcode', None)


def traduzir_erro_banco(erro: DatabaseError) -> ErroPersistencia:
    """
    Classifica uma falha do banco: tabela ausente, permissão negada ou genérica.
    Reconhece os códigos SQLSTATE do PostgreSQL e as mensagens do SQLite.
    """
    codigo = _sqlstate(erro)
    texto = str(erro).lower()
    if codigo == errorcodes.UNDEFINED_TABLE or 'no such table' in texto:
        return TabelaAusenteError()
    if codigo == errorcodes.INSUFFICIENT_PRIVILEGE or 'permission denied' in texto:
        return PermissaoNegadaError()
    return ErroPersistenciaGenerico(str(erro) or None)


@contextmanager
def erros_de_banco(operacao: str):
    try:
        yield
    except DatabaseError as erro:
        traduzido = traduzir_erro_banco(erro)
        logger.warning("Erro de banco em %s: %s -> %s", operacao, erro, type(traduzido).__name__)
        raise traduzido from erro


# ====================================================================
# 1. ADAPTADOR REMOTO (Django ORM)
# ====================================================================

class PersistenciaDjango(IPersistencia):
    """
    Uma tabela por tipo de entidade, cada linha carimbada com o dono.
    A chave primária é o id da entidade, gerado no cliente.
    """

    def carregar_tudo(self, usuario_id: str) -> ColecoesUsuario:
        colecoes = ColecoesUsuario()
        with erros_de_banco('carregar_tudo'):
            for tipo, destino in colecoes.por_tipo().items():
                mapper = mapper_para(tipo)
                qs = mapper.model_class().objects.filter(usuario_id=usuario_id)
                destino.extend(mapper.to_entity(model) for model in qs)
        return colecoes

    def _gravar(self, tipo: TipoEntidade, entidade, usuario_id: str):
        mapper = mapper_para(tipo)
        Model = mapper.model_class()
        dono = Model.objects.filter(pk=entidade.id).values_list('usuario_id', flat=True).first()
        if dono is not None and str(dono) != str(usuario_id):
            raise PermissaoNegadaError(
                f"{tipo.value} ID {entidade.id} pertence a outro usuário."
            )
        Model.objects.update_or_create(
            id=entidade.id,
            usuario_id=usuario_id,
            defaults=mapper.to_model_fields(entidade),
        )
        return entidade

    def salvar(self, tipo: TipoEntidade, entidade, usuario_id: str):
        with erros_de_banco(f'salvar {tipo.value}'):
            with transaction.atomic():
                return self._gravar(tipo, entidade, usuario_id)

    def deletar(self, tipo: TipoEntidade, entidade_id: str, usuario_id: str):
        Model = mapper_para(tipo).model_class()
        with erros_de_banco(f'deletar {tipo.value}'):
            Model.objects.filter(pk=entidade_id, usuario_id=usuario_id).delete()

    def salvar_lote(self, tipo: TipoEntidade, entidades: List, usuario_id: str) -> List:
        with erros_de_banco(f'salvar_lote {tipo.value}'):
            with transaction.atomic():
                return [self._gravar(tipo, entidade, usuario_id) for entidade in entidades]


# ====================================================================
# 2. ADAPTADOR LOCAL (cache do Django como chave/valor)
# ====================================================================

class PersistenciaLocal(IPersistencia):
    """
    Espelho da coleção inteira: cada coleção do usuário é um único JSON sob a
    chave `user:<id>:<colecao>`, reescrito a cada alteração.
    """

    def __init__(self, alias: str = 'default'):
        self.alias = alias

    @property
    def cache(self):
        return caches[self.alias]

    @staticmethod
    def chave(usuario_id: str, tipo: TipoEntidade) -> str:
        return f"user:{usuario_id}:{TipoEntidade(tipo).value}"

    def _ler(self, tipo: TipoEntidade, usuario_id: str) -> List:
        try:
            bruto = self.cache.get(self.chave(usuario_id, tipo))
            if not bruto:
                return []
            mapper = mapper_para(tipo)
            return [mapper.from_dict(item) for item in json.loads(bruto)]
        except (ValueError, TypeError, KeyError) as erro:
            raise ErroPersistenciaGenerico(
                f"Dados locais corrompidos em {tipo.value}: {erro}"
            ) from erro

    def _escrever(self, tipo: TipoEntidade, usuario_id: str, entidades: List):
        mapper = mapper_para(tipo)
        bruto = json.dumps([mapper.to_dict(entidade) for entidade in entidades])
        self.cache.set(self.chave(usuario_id, tipo), bruto, timeout=None)

    def carregar_tudo(self, usuario_id: str) -> ColecoesUsuario:
        colecoes = ColecoesUsuario()
        for tipo, destino in colecoes.por_tipo().items():
            destino.extend(self._ler(tipo, usuario_id))
        return colecoes

    def salvar(self, tipo: TipoEntidade, entidade, usuario_id: str):
        self.salvar_lote(tipo, [entidade], usuario_id)
        return entidade

    def deletar(self, tipo: TipoEntidade, entidade_id: str, usuario_id: str):
        atuais = self._ler(tipo, usuario_id)
        self._escrever(tipo, usuario_id, [e for e in atuais if e.id != entidade_id])

    def salvar_lote(self, tipo: TipoEntidade, entidades: List, usuario_id: str) -> List:
        atuais = self._ler(tipo, usuario_id)
        posicoes = {entidade.id: i for i, entidade in enumerate(atuais)}
        novos = []
        for entidade in entidades:
            if entidade.id in posicoes:
                atuais[posicoes[entidade.id]] = entidade
            else:
                novos.append(entidade)
        # Novos itens entram no topo, como no armazém em memória.
        self._escrever(tipo, usuario_id, list(reversed(novos)) + atuais)
        return list(entidades)
