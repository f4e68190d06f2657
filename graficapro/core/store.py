# graficapro/core/store.py
"""
Armazém de entidades em memória: o retrato da sessão que a interface exibe.

As operações são síncronas e não disparam persistência; quem persiste é o
SincronizacaoUseCase. A ordem das listas é a de exibição (mais recentes primeiro).
"""
from typing import Dict, Iterable, Iterator, List, Optional

from graficapro.core.entities import ColecoesUsuario, TipoEntidade


class ColecaoEntidades:
    """Sequência ordenada de entidades de um único tipo, endereçadas pelo id."""

    def __init__(self, tipo: TipoEntidade, entidades: Optional[Iterable] = None):
        self.tipo = tipo
        self._itens: List = list(entidades or [])

    def __iter__(self) -> Iterator:
        return iter(self._itens)

    def __len__(self) -> int:
        return len(self._itens)

    def __contains__(self, entidade_id) -> bool:
        return self.buscar(entidade_id) is not None

    # --- Consultas ---

    def listar(self) -> List:
        """Cópia rasa da lista; alterar o resultado não altera a coleção."""
        return list(self._itens)

    def buscar(self, entidade_id):
        return next((item for item in self._itens if item.id == entidade_id), None)

    # --- Mutações ---

    def inserir(self, entidade):
        """Insere no início (mais recente primeiro). Unicidade do id é do chamador."""
        self._itens.insert(0, entidade)

    def atualizar(self, entidade) -> bool:
        """Substitui o item de mesmo id. Sem correspondência, não faz nada."""
        for indice, item in enumerate(self._itens):
            if item.id == entidade.id:
                self._itens[indice] = entidade
                return True
        return False

    def remover(self, entidade_id) -> bool:
        tamanho = len(self._itens)
        self._itens = [item for item in self._itens if item.id != entidade_id]
        return len(self._itens) != tamanho

    def substituir_tudo(self, entidades: Iterable):
        self._itens = list(entidades)

    def limpar(self):
        self.substituir_tudo([])


class ArmazemEntidades:
    """As quatro coleções de uma sessão."""

    def __init__(self):
        self._colecoes: Dict[TipoEntidade, ColecaoEntidades] = {
            tipo: ColecaoEntidades(tipo) for tipo in TipoEntidade
        }

    def __getitem__(self, tipo: TipoEntidade) -> ColecaoEntidades:
        return self._colecoes[TipoEntidade(tipo)]

    @property
    def pedidos(self) -> ColecaoEntidades:
        return self._colecoes[TipoEntidade.PEDIDO]

    @property
    def orcamentos(self) -> ColecaoEntidades:
        return self._colecoes[TipoEntidade.ORCAMENTO]

    @property
    def materiais(self) -> ColecaoEntidades:
        return self._colecoes[TipoEntidade.MATERIAL]

    @property
    def designers(self) -> ColecaoEntidades:
        return self._colecoes[TipoEntidade.DESIGNER]

    def carregar(self, colecoes: ColecoesUsuario):
        """Substituição completa (não mescla) a partir da persistência."""
        for tipo, entidades in colecoes.por_tipo().items():
            self._colecoes[tipo].substituir_tudo(entidades)

    def limpar(self):
        for colecao in self._colecoes.values():
            colecao.limpar()

    def vazio(self) -> bool:
        return all(len(colecao) == 0 for colecao in self._colecoes.values())
