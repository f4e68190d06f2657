import base64
import mimetypes
import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from graficapro.core.exceptions import DadosInvalidosError

# ====================================================================
# ENUMERAÇÕES
# Os valores são os rótulos exibidos e persistidos.
# ====================================================================

class TipoEntidade(str, Enum):
    """Tipos de entidade sincronizados; o valor é o nome da coleção."""
    PEDIDO = 'pedidos'
    ORCAMENTO = 'orcamentos'
    MATERIAL = 'materiais'
    DESIGNER = 'designers'


class StatusPedido(str, Enum):
    PENDENTE = 'Pendente'
    EM_PROCESSO = 'Em Processo'
    ENTREGUE = 'Entregue'


class StatusOrcamento(str, Enum):
    AGUARDANDO = 'Aguardando'
    APROVADO = 'Aprovado'
    EXPIRADO = 'Expirado'


class StatusDesigner(str, Enum):
    ATIVO = 'Ativo'
    INATIVO = 'Inativo'


class UnidadeMaterial(str, Enum):
    UNIDADE = 'un'
    METRO_QUADRADO = 'm2'
    CENTO = 'cento'
    MILHAR = 'milhar'
    FOLHA = 'folha'


CATEGORIA_PADRAO = 'Geral'


def gerar_id() -> str:
    return str(uuid.uuid4())


# ====================================================================
# ENTIDADES CORE
# Representam os objetos de negócio puros.
# ====================================================================

@dataclass
class Usuario:
    """Entidade do Usuário, dono das quatro coleções."""
    nome: str
    email: str
    id: str = field(default_factory=gerar_id)
    senha: Optional[str] = None
    provedor: Optional[str] = None
    avatar: Optional[str] = None


@dataclass
class Anexo:
    """Arquivo embutido em um pedido, codificado como data URI."""
    nome: str
    tipo: str
    dados: str

    @classmethod
    def de_bytes(cls, nome: str, conteudo: bytes, tipo: Optional[str] = None) -> 'Anexo':
        """Codifica o conteúdo bruto de um arquivo como `data:<mime>;base64,...`."""
        if not tipo:
            tipo = mimetypes.guess_type(nome)[0] or 'application/octet-stream'
        payload = base64.b64encode(conteudo).decode('ascii')
        return cls(nome=nome, tipo=tipo, dados=f'data:{tipo};base64,{payload}')

    def conteudo(self) -> bytes:
        """Decodifica o data URI de volta para bytes."""
        cabecalho, _, payload = self.dados.partition(',')
        if not cabecalho.startswith('data:') or not cabecalho.endswith(';base64'):
            raise DadosInvalidosError(f"Anexo '{self.nome}' não contém um data URI base64.")
        return base64.b64decode(payload)


@dataclass
class Pedido:
    """Entidade do Pedido de impressão."""
    nome_cliente: str
    tipo_material: str
    telefone: str = ''
    medidas: str = ''
    quantidade: int = 1
    cor: str = ''
    informacoes_adicionais: str = ''
    valor_entrada: Decimal = Decimal('0')
    valor_restante: Decimal = Decimal('0')
    status: StatusPedido = StatusPedido.PENDENTE
    designer_id: Optional[str] = None
    anexos: List[Anexo] = field(default_factory=list)
    arquivado: bool = False
    data: date = field(default_factory=date.today)
    id: str = field(default_factory=gerar_id)

    @property
    def valor_total(self) -> Decimal:
        """Entrada e restante são independentes; o total é apenas a soma."""
        return self.valor_entrada + self.valor_restante

    def validar(self):
        if not self.nome_cliente or not self.tipo_material:
            raise DadosInvalidosError("Campos obrigatórios: Nome e Material.")
        if self.quantidade < 0:
            raise DadosInvalidosError("A quantidade não pode ser negativa.")
        if self.valor_entrada < 0 or self.valor_restante < 0:
            raise DadosInvalidosError("Os valores de entrada e restante não podem ser negativos.")


@dataclass
class Orcamento:
    """Entidade do Orçamento (proposta comercial)."""
    nome_cliente: str
    tipo_material: str
    valor_total: Decimal
    email: str = ''
    telefone: str = ''
    medidas: str = ''
    quantidade: int = 1
    status: StatusOrcamento = StatusOrcamento.AGUARDANDO
    prazo_entrega: str = ''
    valido_ate: Optional[date] = None
    observacoes: str = ''
    data: date = field(default_factory=date.today)
    id: str = field(default_factory=gerar_id)

    def validar(self):
        if not self.nome_cliente or not self.tipo_material or not self.valor_total:
            raise DadosInvalidosError(
                "Por favor, preencha os campos obrigatórios (Cliente, Material e Valor)."
            )
        if self.valor_total < 0:
            raise DadosInvalidosError("O valor total não pode ser negativo.")
        if self.quantidade < 0:
            raise DadosInvalidosError("A quantidade não pode ser negativa.")


@dataclass
class Material:
    """Item do catálogo de preços."""
    nome: str
    preco_base: Decimal = Decimal('0')
    categoria: str = CATEGORIA_PADRAO
    unidade: UnidadeMaterial = UnidadeMaterial.UNIDADE
    id: str = field(default_factory=gerar_id)

    def validar(self):
        if not self.nome:
            raise DadosInvalidosError("O nome do material é obrigatório.")
        if self.preco_base < 0:
            raise DadosInvalidosError("O preço base não pode ser negativo.")
        if not self.categoria:
            self.categoria = CATEGORIA_PADRAO


@dataclass
class Designer:
    """Membro da equipe, referenciado fracamente pelos pedidos."""
    nome: str
    especialidade: str = ''
    email: str = ''
    status: StatusDesigner = StatusDesigner.ATIVO
    id: str = field(default_factory=gerar_id)

    def validar(self):
        if not self.nome:
            raise DadosInvalidosError("O nome do designer é obrigatório.")


# ====================================================================
# AGREGADOS (somente leitura, recalculados a cada consulta)
# ====================================================================

@dataclass
class ColecoesUsuario:
    """As quatro coleções de um usuário, como carregadas da persistência."""
    pedidos: List[Pedido] = field(default_factory=list)
    orcamentos: List[Orcamento] = field(default_factory=list)
    materiais: List[Material] = field(default_factory=list)
    designers: List[Designer] = field(default_factory=list)

    def por_tipo(self) -> Dict[TipoEntidade, list]:
        return {
            TipoEntidade.PEDIDO: self.pedidos,
            TipoEntidade.ORCAMENTO: self.orcamentos,
            TipoEntidade.MATERIAL: self.materiais,
            TipoEntidade.DESIGNER: self.designers,
        }


@dataclass
class EstatisticasDashboard:
    total_pedidos: int = 0
    pendentes: int = 0
    em_processo: int = 0
    entregues: int = 0
    receita_total: Decimal = Decimal('0')
    orcamentos_pendentes: int = 0


@dataclass
class ResumoFinanceiro:
    total: Decimal = Decimal('0')
    recebido: Decimal = Decimal('0')
    a_receber: Decimal = Decimal('0')
    por_material: Dict[str, Decimal] = field(default_factory=dict)

    @property
    def percentual_recebido(self) -> Decimal:
        """Percentual já recebido; zero quando não há faturamento."""
        if not self.total:
            return Decimal('0')
        return self.recebido / self.total * 100


ENTIDADES_POR_TIPO = {
    TipoEntidade.PEDIDO: Pedido,
    TipoEntidade.ORCAMENTO: Orcamento,
    TipoEntidade.MATERIAL: Material,
    TipoEntidade.DESIGNER: Designer,
}
