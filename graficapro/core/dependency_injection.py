# graficapro/core/dependency_injection.py
"""
Módulo de Injeção de Dependência (DI).
Escolhe os adaptadores concretos da camada de Infraestrutura conforme as
configurações e monta o gerenciador de sessão da Core com eles.
"""
from django.conf import settings

from graficapro.infrastructure.gateways import ProvedorAutenticacaoDjango, ProvedorAutenticacaoLocal
from graficapro.infrastructure.repositories import PersistenciaDjango, PersistenciaLocal

from .ports import IPersistencia, IProvedorAutenticacao
from .sessao import GerenciadorSessao

PERSISTENCIAS = {
    'remoto': PersistenciaDjango,
    'local': PersistenciaLocal,
}


def get_persistencia() -> IPersistencia:
    # Usuários do modo local não existem no banco.
    if settings.GRAFICAPRO_AUTENTICACAO == 'local':
        return PersistenciaLocal()
    return PERSISTENCIAS[settings.GRAFICAPRO_PERSISTENCIA]()


def get_provedor_autenticacao(request=None) -> IProvedorAutenticacao:
    if settings.GRAFICAPRO_AUTENTICACAO == 'local':
        return ProvedorAutenticacaoLocal(request)
    return ProvedorAutenticacaoDjango(request)


def get_gerenciador_sessao(request=None) -> GerenciadorSessao:
    return GerenciadorSessao(
        provedor=get_provedor_autenticacao(request),
        persistencia=get_persistencia(),
        arquivar_somente_entregues=settings.GRAFICAPRO_ARQUIVAR_SOMENTE_ENTREGUES,
    )
