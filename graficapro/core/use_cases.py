# graficapro/core/use_cases.py
"""
Implementação dos Casos de Uso (Lógica de Negócio) da aplicação.
Esta camada depende apenas das Entidades e Portas (Interfaces) do Core,
garantindo o isolamento da lógica de negócio.

Disciplina de sincronização: persistir e depois confirmar no armazém.
Toda mutação passa primeiro pelo adaptador de persistência; o armazém em
memória só é alterado depois do sucesso. Vale para qualquer adaptador,
inclusive o local (que na prática nunca falha).
"""
import logging
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Callable, List, Optional

# Entidades e Exceções
from graficapro.core.entities import (
    ENTIDADES_POR_TIPO, Orcamento, Pedido, StatusOrcamento, StatusPedido, TipoEntidade, Usuario
)
from graficapro.core.exceptions import (
    ArquivamentoNaoPermitidoError,
    ConversaoParcialError,
    DadosInvalidosError,
    ErroLotePersistencia,
    ItemNaoEncontradoError,
    OrcamentoNaoConvertivelError,
    SessaoInativaError,
)
from graficapro.core.ports import IPersistencia
from graficapro.core.store import ArmazemEntidades

logger = logging.getLogger(__name__)


# ====================================================================
# 1. NÚCLEO DE SINCRONIZAÇÃO
# ====================================================================

class SincronizacaoUseCase:
    """
    Caminho único de mutação: garante que o armazém em memória e a persistência
    sejam informados de cada alteração exatamente uma vez por ação do usuário.
    """

    def __init__(
        self,
        armazem: ArmazemEntidades,
        persistencia: IPersistencia,
        obter_usuario: Callable[[], Optional[Usuario]],
        arquivar_somente_entregues: bool = True,
    ):
        self.armazem = armazem
        self.persistencia = persistencia
        self.obter_usuario = obter_usuario
        self.arquivar_somente_entregues = arquivar_somente_entregues

    def _usuario_ativo(self) -> Usuario:
        usuario = self.obter_usuario()
        if usuario is None:
            raise SessaoInativaError()
        return usuario

    def sincronizar(self, tipo: TipoEntidade, payload, deletar: bool = False):
        """
        Aplica uma inserção/atualização ou exclusão.

        A exclusão recebe a entidade ou apenas o seu id. Em caso de falha o erro
        é registrado e propagado, e o armazém permanece intacto.
        """
        tipo = TipoEntidade(tipo)
        usuario = self._usuario_ativo()
        colecao = self.armazem[tipo]

        if deletar:
            entidade_id = getattr(payload, 'id', payload)
            try:
                self.persistencia.deletar(tipo, entidade_id, usuario.id)
            except Exception as erro:
                logger.warning("Falha ao excluir %s %s: %s (%s)",
                               tipo.value, entidade_id, erro, type(erro).__name__)
                raise
            colecao.remover(entidade_id)
            logger.info("%s %s excluído para o usuário %s", tipo.value, entidade_id, usuario.id)
            return None

        if not isinstance(payload, ENTIDADES_POR_TIPO[tipo]):
            raise DadosInvalidosError(
                f"Esperado {ENTIDADES_POR_TIPO[tipo].__name__} para {tipo.value}, "
                f"recebido {type(payload).__name__}."
            )
        payload.validar()
        try:
            self.persistencia.salvar(tipo, payload, usuario.id)
        except Exception as erro:
            logger.warning("Falha ao salvar %s %s: %s (%s)",
                           tipo.value, payload.id, erro, type(erro).__name__)
            raise
        if not colecao.atualizar(payload):
            colecao.inserir(payload)
        logger.info("%s %s salvo para o usuário %s", tipo.value, payload.id, usuario.id)
        return payload

    # --- Atalhos (todos passam por `sincronizar`) ---

    def criar(self, tipo: TipoEntidade, entidade):
        return self.sincronizar(tipo, entidade)

    def excluir(self, tipo: TipoEntidade, entidade_id: str):
        return self.sincronizar(tipo, entidade_id, deletar=True)

    def buscar(self, tipo: TipoEntidade, entidade_id: str):
        self._usuario_ativo()
        entidade = self.armazem[tipo].buscar(entidade_id)
        if entidade is None:
            raise ItemNaoEncontradoError(f"{tipo.value} ID {entidade_id} não encontrado.")
        return entidade

    def atualizar_status_pedido(self, pedido_id: str, status: StatusPedido) -> Pedido:
        pedido = self.buscar(TipoEntidade.PEDIDO, pedido_id)
        try:
            status = StatusPedido(status)
        except ValueError:
            raise DadosInvalidosError(f"O status '{status}' não é um status de pedido válido.")
        if pedido.status == status:
            return pedido
        return self.sincronizar(TipoEntidade.PEDIDO, replace(pedido, status=status))

    def arquivar_pedido(self, pedido_id: str) -> Pedido:
        pedido = self.buscar(TipoEntidade.PEDIDO, pedido_id)
        if pedido.arquivado:
            return pedido
        if self.arquivar_somente_entregues and pedido.status != StatusPedido.ENTREGUE:
            raise ArquivamentoNaoPermitidoError()
        return self.sincronizar(TipoEntidade.PEDIDO, replace(pedido, arquivado=True))

    def restaurar_pedido(self, pedido_id: str) -> Pedido:
        pedido = self.buscar(TipoEntidade.PEDIDO, pedido_id)
        if not pedido.arquivado:
            return pedido
        return self.sincronizar(TipoEntidade.PEDIDO, replace(pedido, arquivado=False))

    def atualizar_status_orcamento(self, orcamento_id: str, status: StatusOrcamento) -> Orcamento:
        orcamento = self.buscar(TipoEntidade.ORCAMENTO, orcamento_id)
        try:
            status = StatusOrcamento(status)
        except ValueError:
            raise DadosInvalidosError(f"O status '{status}' não é um status de orçamento válido.")
        if orcamento.status == status:
            return orcamento
        return self.sincronizar(TipoEntidade.ORCAMENTO, replace(orcamento, status=status))

    def arquivar_entregues(self) -> List[Pedido]:
        """
        Arquiva em lote todos os pedidos entregues e ativos.
        Uma única chamada à persistência; em falha nenhum pedido é alterado.
        """
        usuario = self._usuario_ativo()
        colecao = self.armazem.pedidos
        selecionados = [
            replace(pedido, arquivado=True)
            for pedido in colecao
            if pedido.status == StatusPedido.ENTREGUE and not pedido.arquivado
        ]
        if not selecionados:
            return []

        try:
            self.persistencia.salvar_lote(TipoEntidade.PEDIDO, selecionados, usuario.id)
        except Exception as erro:
            logger.warning("Falha ao arquivar %d pedidos entregues: %s (%s)",
                           len(selecionados), erro, type(erro).__name__)
            raise ErroLotePersistencia(causa=erro, quantidade=len(selecionados)) from erro

        for pedido in selecionados:
            colecao.atualizar(pedido)
        logger.info("%d pedidos entregues arquivados para o usuário %s", len(selecionados), usuario.id)
        return selecionados


# ====================================================================
# 2. CONVERSÃO DE ORÇAMENTO EM PEDIDO
# ====================================================================

def montar_pedido_de_orcamento(orcamento: Orcamento, data_conversao: Optional[date] = None) -> Pedido:
    """Constrói o novo pedido; o e-mail do orçamento é anexado às observações."""
    return Pedido(
        data=data_conversao or date.today(),
        nome_cliente=orcamento.nome_cliente,
        telefone=orcamento.telefone,
        tipo_material=orcamento.tipo_material,
        medidas=orcamento.medidas,
        quantidade=orcamento.quantidade,
        cor='',
        informacoes_adicionais=f"{orcamento.observacoes or ''}\nEmail: {orcamento.email or 'N/A'}",
        valor_entrada=Decimal('0'),
        valor_restante=orcamento.valor_total,
        status=StatusPedido.PENDENTE,
        arquivado=False,
    )


class ConverterOrcamentoUseCase:
    """
    Transforma um orçamento aguardando aprovação em um novo pedido e marca o
    orçamento como aprovado. São duas gravações independentes, nesta ordem:
    primeiro o pedido, depois o orçamento.
    """

    def __init__(self, sincronizacao: SincronizacaoUseCase):
        self.sincronizacao = sincronizacao

    def executar(self, orcamento_id: str) -> Pedido:
        orcamento = self.sincronizacao.buscar(TipoEntidade.ORCAMENTO, orcamento_id)
        if orcamento.status != StatusOrcamento.AGUARDANDO:
            raise OrcamentoNaoConvertivelError()

        pedido = montar_pedido_de_orcamento(orcamento)
        # Se o pedido falhar, o orçamento continua aguardando.
        self.sincronizacao.sincronizar(TipoEntidade.PEDIDO, pedido)

        try:
            self.sincronizacao.sincronizar(
                TipoEntidade.ORCAMENTO, replace(orcamento, status=StatusOrcamento.APROVADO)
            )
        except Exception as erro:
            logger.error("Pedido %s criado a partir do orçamento %s, mas o orçamento "
                         "não foi marcado como aprovado: %s", pedido.id, orcamento.id, erro)
            raise ConversaoParcialError(pedido=pedido, causa=erro) from erro

        logger.info("Orçamento %s convertido no pedido %s", orcamento.id, pedido.id)
        return pedido
