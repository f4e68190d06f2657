# graficapro/core/derivacoes.py
"""
Agregados somente leitura calculados a partir do conteúdo atual do armazém.
Funções puras, recalculadas a cada chamada; nada é guardado.
"""
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple
from urllib.parse import quote

from graficapro.core.entities import (
    Designer, EstatisticasDashboard, Orcamento, Pedido, ResumoFinanceiro,
    StatusOrcamento, StatusPedido,
)

SEM_RESPONSAVEL = 'Sem responsável'
DESIGNER_DESCONHECIDO = 'Desconhecido'

ABA_ATIVOS = 'ativos'
ABA_ARQUIVADOS = 'arquivados'


def pedidos_ativos(pedidos: Iterable[Pedido]) -> List[Pedido]:
    return [pedido for pedido in pedidos if not pedido.arquivado]


def calcular_estatisticas(pedidos: Iterable[Pedido], orcamentos: Iterable[Orcamento]) -> EstatisticasDashboard:
    """Estatísticas do painel; pedidos arquivados ficam de fora."""
    ativos = pedidos_ativos(pedidos)
    return EstatisticasDashboard(
        total_pedidos=len(ativos),
        pendentes=sum(1 for p in ativos if p.status == StatusPedido.PENDENTE),
        em_processo=sum(1 for p in ativos if p.status == StatusPedido.EM_PROCESSO),
        entregues=sum(1 for p in ativos if p.status == StatusPedido.ENTREGUE),
        receita_total=sum((p.valor_total for p in ativos), Decimal('0')),
        orcamentos_pendentes=sum(1 for o in orcamentos if o.status == StatusOrcamento.AGUARDANDO),
    )


def calcular_resumo_financeiro(pedidos: Iterable[Pedido]) -> ResumoFinanceiro:
    """
    Resumo financeiro sobre o conjunto recebido (por padrão todos os pedidos,
    arquivados inclusive; filtrar é responsabilidade do chamador).
    """
    resumo = ResumoFinanceiro()
    for pedido in pedidos:
        resumo.total += pedido.valor_total
        resumo.recebido += pedido.valor_entrada
        resumo.a_receber += pedido.valor_restante
        resumo.por_material[pedido.tipo_material] = (
            resumo.por_material.get(pedido.tipo_material, Decimal('0')) + pedido.valor_total
        )
    return resumo


def ranking_materiais(resumo: ResumoFinanceiro) -> List[Tuple[str, Decimal]]:
    """Faturamento por material, do maior para o menor."""
    return sorted(resumo.por_material.items(), key=lambda item: item[1], reverse=True)


def pedidos_recentes(pedidos: Iterable[Pedido], limite: int = 5) -> List[Pedido]:
    return pedidos_ativos(pedidos)[:limite]


def filtrar_pedidos(
    pedidos: Iterable[Pedido],
    aba: str = ABA_ATIVOS,
    busca: Optional[str] = None,
    status: Optional[StatusPedido] = None,
) -> List[Pedido]:
    """Filtro da listagem: aba ativos/arquivados, busca por cliente ou material e status."""
    termo = (busca or '').lower()
    arquivados = aba == ABA_ARQUIVADOS
    resultado = []
    for pedido in pedidos:
        if pedido.arquivado != arquivados:
            continue
        if termo and termo not in pedido.nome_cliente.lower() and termo not in pedido.tipo_material.lower():
            continue
        if status is not None and pedido.status != status:
            continue
        resultado.append(pedido)
    return resultado


def contagem_pedidos(pedidos: Iterable[Pedido]) -> Dict[str, int]:
    """Contadores das abas: entregues ainda ativos e arquivados."""
    pedidos = list(pedidos)
    return {
        'entregues_ativos': sum(1 for p in pedidos if p.status == StatusPedido.ENTREGUE and not p.arquivado),
        'arquivados': sum(1 for p in pedidos if p.arquivado),
    }


# ====================================================================
# REFERÊNCIA FRACA A DESIGNERS
# ====================================================================

def buscar_designer(designers: Iterable[Designer], designer_id: Optional[str]) -> Optional[Designer]:
    if not designer_id:
        return None
    return next((d for d in designers if d.id == designer_id), None)


def nome_designer(designers: Iterable[Designer], designer_id: Optional[str]) -> str:
    """Nome do responsável; a referência pode apontar para um designer já excluído."""
    if not designer_id:
        return SEM_RESPONSAVEL
    designer = buscar_designer(designers, designer_id)
    return designer.nome if designer else DESIGNER_DESCONHECIDO


# ====================================================================
# MENSAGEM DE ORÇAMENTO (WhatsApp)
# ====================================================================

def formatar_moeda(valor: Decimal) -> str:
    """Formata em reais no padrão pt-BR (R$ 1.234,56)."""
    texto = f"{Decimal(valor):,.2f}"
    return "R$ " + texto.replace(',', '_').replace('.', ',').replace('_', '.')


def mensagem_whatsapp_orcamento(orcamento: Orcamento) -> str:
    linhas = [
        f"Olá *{orcamento.nome_cliente}*! Segue o seu orçamento da *GráficaPro*:",
        "",
        f"*Material:* {orcamento.tipo_material}",
    ]
    if orcamento.medidas:
        linhas.append(f"*Medida:* {orcamento.medidas}")
    linhas.append(f"*Quantidade:* {orcamento.quantidade}")
    linhas.append(f"*Valor Total:* {formatar_moeda(orcamento.valor_total)}")
    if orcamento.prazo_entrega:
        linhas.append(f"*Prazo de Entrega:* {orcamento.prazo_entrega}")
    if orcamento.valido_ate:
        linhas.append(f"*Válido até:* {orcamento.valido_ate.strftime('%d/%m/%Y')}")
    if orcamento.observacoes:
        linhas.extend(["", f"*Obs:* {orcamento.observacoes}"])
    linhas.extend(["", "Ficamos no aguardo da sua aprovação!"])
    return "\n".join(linhas)


def link_whatsapp(orcamento: Orcamento) -> str:
    telefone = ''.join(c for c in orcamento.telefone if c.isdigit())
    return f"https://wa.me/55{telefone}?text={quote(mensagem_whatsapp_orcamento(orcamento))}"
