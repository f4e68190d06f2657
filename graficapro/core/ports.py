# graficapro/core/ports.py
"""
Definição das Portas (Interfaces/Protocolos) da Arquitetura Limpa.

Estes protocolos definem o contrato que a camada de Infraestrutura (Persistência,
Autenticação) DEVE seguir para se conectar à camada Core (Casos de Uso).
"""

from typing import Protocol, List, Optional, Callable
from abc import abstractmethod

from graficapro.core.entities import ColecoesUsuario, TipoEntidade, Usuario


# ====================================================================
# 1. PERSISTÊNCIA
# ====================================================================

class IPersistencia(Protocol):
    """
    Protocolo do adaptador de persistência (remoto relacional ou local chave/valor).

    Todas as operações são escopadas pelo usuário dono e falham com
    TabelaAusenteError, PermissaoNegadaError ou ErroPersistenciaGenerico.
    """

    @abstractmethod
    def carregar_tudo(self, usuario_id: str) -> ColecoesUsuario: ...

    @abstractmethod
    def salvar(self, tipo: TipoEntidade, entidade, usuario_id: str):
        """Insere ou substitui pelo id, carimbando o dono."""
        ...

    @abstractmethod
    def deletar(self, tipo: TipoEntidade, entidade_id: str, usuario_id: str): ...

    @abstractmethod
    def salvar_lote(self, tipo: TipoEntidade, entidades: List, usuario_id: str) -> List:
        """Variante em lote de `salvar`; tudo ou nada do ponto de vista do chamador."""
        ...


# ====================================================================
# 2. AUTENTICAÇÃO
# ====================================================================

class IProvedorAutenticacao(Protocol):
    """Protocolo do provedor de identidade que abre e encerra sessões."""

    @abstractmethod
    def sessao_atual(self) -> Optional[Usuario]: ...

    @abstractmethod
    def ao_mudar_sessao(self, callback: Callable[[Optional[Usuario]], None]): ...

    @abstractmethod
    def cadastrar(self, nome: str, email: str, senha: str) -> Usuario:
        """Falha com IdentidadeDuplicadaError, LimiteTentativasError ou ErroAutenticacao."""
        ...

    @abstractmethod
    def entrar(self, email: str, senha: str) -> Usuario:
        """Falha com CredenciaisInvalidasError, LimiteTentativasError ou ErroAutenticacao."""
        ...

    @abstractmethod
    def sair(self): ...
