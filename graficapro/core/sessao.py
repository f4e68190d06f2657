# graficapro/core/sessao.py
"""
Ciclo de vida da sessão: qual usuário tem os dados carregados.

ANONIMO -> AUTENTICANDO -> ATIVO -> ANONIMO. Cada sessão ativa recebe um
armazém novo, criado na ativação e descartado no encerramento.
"""
import logging
from enum import Enum
from typing import Callable, List, Optional

from graficapro.core import derivacoes
from graficapro.core.entities import (
    Designer, EstatisticasDashboard, Material, Orcamento, Pedido, ResumoFinanceiro, Usuario
)
from graficapro.core.ports import IPersistencia, IProvedorAutenticacao
from graficapro.core.store import ArmazemEntidades
from graficapro.core.use_cases import ConverterOrcamentoUseCase, SincronizacaoUseCase

logger = logging.getLogger(__name__)


class EstadoSessao(str, Enum):
    ANONIMO = 'anonimo'
    AUTENTICANDO = 'autenticando'
    ATIVO = 'ativo'


class GerenciadorSessao:
    """Liga o provedor de identidade, a persistência e o armazém da sessão."""

    def __init__(
        self,
        provedor: IProvedorAutenticacao,
        persistencia: IPersistencia,
        arquivar_somente_entregues: bool = True,
    ):
        self.provedor = provedor
        self.persistencia = persistencia
        self.arquivar_somente_entregues = arquivar_somente_entregues
        self.estado = EstadoSessao.ANONIMO
        self.usuario: Optional[Usuario] = None
        self._abrir_armazem()
        provedor.ao_mudar_sessao(self._ao_mudar_sessao)

    def _abrir_armazem(self):
        self.armazem = ArmazemEntidades()
        self.sincronizacao = SincronizacaoUseCase(
            armazem=self.armazem,
            persistencia=self.persistencia,
            obter_usuario=lambda: self.usuario,
            arquivar_somente_entregues=self.arquivar_somente_entregues,
        )
        self.conversao = ConverterOrcamentoUseCase(self.sincronizacao)

    @property
    def ativa(self) -> bool:
        return self.estado == EstadoSessao.ATIVO

    # --- Transições ---

    def restaurar(self) -> Optional[Usuario]:
        """Verificação única de sessão existente, feita na inicialização."""
        usuario = self.provedor.sessao_atual()
        if usuario is not None:
            self.ativar(usuario)
        return usuario

    def entrar(self, email: str, senha: str) -> Usuario:
        return self._autenticar(lambda: self.provedor.entrar(email, senha))

    def cadastrar(self, nome: str, email: str, senha: str) -> Usuario:
        return self._autenticar(lambda: self.provedor.cadastrar(nome, email, senha))

    def _autenticar(self, acao: Callable[[], Usuario]) -> Usuario:
        if self.estado != EstadoSessao.ANONIMO:
            self.encerrar()
        self.estado = EstadoSessao.AUTENTICANDO
        try:
            usuario = acao()
        except Exception as erro:
            self.estado = EstadoSessao.ANONIMO
            logger.warning("Autenticação rejeitada: %s (%s)", erro, type(erro).__name__)
            raise
        self.ativar(usuario)
        return usuario

    def ativar(self, usuario: Usuario):
        """
        Vincula o usuário e recarrega as quatro coleções (substituição completa).

        Se a carga falhar o usuário continua autenticado, com coleções vazias,
        e o erro é propagado para que a interface mostre a mensagem adequada.
        """
        self._abrir_armazem()
        self.usuario = usuario
        self.estado = EstadoSessao.ATIVO
        logger.info("Sessão ativa para o usuário %s", usuario.id)
        self.recarregar()

    def recarregar(self):
        colecoes = self.persistencia.carregar_tudo(self.usuario.id)
        self.armazem.carregar(colecoes)

    def encerrar(self):
        """Limpa imediatamente as quatro coleções e volta ao estado anônimo."""
        if self.usuario is not None:
            logger.info("Sessão encerrada para o usuário %s", self.usuario.id)
        self.armazem.limpar()
        self.usuario = None
        self.estado = EstadoSessao.ANONIMO
        self._abrir_armazem()

    def sair(self):
        self.encerrar()
        self.provedor.sair()

    def _ao_mudar_sessao(self, usuario: Optional[Usuario]):
        # Durante a autenticação quem ativa é o próprio _autenticar.
        if self.estado == EstadoSessao.AUTENTICANDO:
            return
        if usuario is None:
            if self.estado == EstadoSessao.ATIVO:
                self.encerrar()
        elif self.usuario is None or self.usuario.id != usuario.id:
            self.ativar(usuario)

    # --- Leituras para a interface ---

    @property
    def pedidos(self) -> List[Pedido]:
        return self.armazem.pedidos.listar()

    @property
    def orcamentos(self) -> List[Orcamento]:
        return self.armazem.orcamentos.listar()

    @property
    def materiais(self) -> List[Material]:
        return self.armazem.materiais.listar()

    @property
    def designers(self) -> List[Designer]:
        return self.armazem.designers.listar()

    def estatisticas(self) -> EstatisticasDashboard:
        return derivacoes.calcular_estatisticas(self.armazem.pedidos, self.armazem.orcamentos)

    def resumo_financeiro(self, incluir_arquivados: bool = True) -> ResumoFinanceiro:
        pedidos = self.pedidos if incluir_arquivados else derivacoes.pedidos_ativos(self.pedidos)
        return derivacoes.calcular_resumo_financeiro(pedidos)

    def nome_designer(self, designer_id: Optional[str]) -> str:
        return derivacoes.nome_designer(self.armazem.designers, designer_id)
