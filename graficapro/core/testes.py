# graficapro/core/testes.py

import unittest
from dataclasses import replace
from datetime import date
from decimal import Decimal
from unittest.mock import Mock

# Importamos as classes que queremos testar
from graficapro.core import derivacoes
from graficapro.core.entities import (
    ColecoesUsuario, Designer, Material, Orcamento, Pedido, StatusOrcamento,
    StatusPedido, TipoEntidade, Usuario,
)
from graficapro.core.exceptions import (
    ArquivamentoNaoPermitidoError, BaseErroCore, ConversaoParcialError,
    CredenciaisInvalidasError, DadosInvalidosError, ErroLotePersistencia,
    ErroPersistenciaGenerico, IdentidadeDuplicadaError, ItemNaoEncontradoError, OrcamentoNaoConvertivelError,
    PermissaoNegadaError, SessaoInativaError, TabelaAusenteError, mensagem_usuario,
)
from graficapro.core.sessao import EstadoSessao, GerenciadorSessao
from graficapro.core.store import ArmazemEntidades, ColecaoEntidades
from graficapro.core.use_cases import ConverterOrcamentoUseCase, SincronizacaoUseCase


class PersistenciaMemoria:
    """
    Persistência falsa em memória. `falhas` mapeia o nome da operação para a
    exceção que ela deve levantar; `chamadas` registra a ordem das operações.
    """

    def __init__(self, dados=None):
        self.registros = dados or {}
        self.falhas = {}
        self.chamadas = []

    def _verificar(self, operacao, tipo=None):
        erro = self.falhas.get((operacao, tipo)) or self.falhas.get(operacao)
        if erro is not None:
            raise erro

    def _colecao(self, usuario_id, tipo):
        return self.registros.setdefault(usuario_id, {}).setdefault(TipoEntidade(tipo), {})

    def carregar_tudo(self, usuario_id):
        self.chamadas.append(('carregar_tudo', usuario_id))
        self._verificar('carregar_tudo')
        colecoes = ColecoesUsuario()
        for tipo, destino in colecoes.por_tipo().items():
            destino.extend(self._colecao(usuario_id, tipo).values())
        return colecoes

    def salvar(self, tipo, entidade, usuario_id):
        self.chamadas.append(('salvar', tipo, entidade.id))
        self._verificar('salvar', tipo)
        self._colecao(usuario_id, tipo)[entidade.id] = entidade
        return entidade

    def deletar(self, tipo, entidade_id, usuario_id):
        self.chamadas.append(('deletar', tipo, entidade_id))
        self._verificar('deletar', tipo)
        self._colecao(usuario_id, tipo).pop(entidade_id, None)

    def salvar_lote(self, tipo, entidades, usuario_id):
        self.chamadas.append(('salvar_lote', tipo, [e.id for e in entidades]))
        self._verificar('salvar_lote', tipo)
        for entidade in entidades:
            self._colecao(usuario_id, tipo)[entidade.id] = entidade
        return entidades


class ProvedorFalso:
    """Provedor de identidade controlado pelo teste."""

    def __init__(self, usuarios=None, sessao=None):
        self.usuarios = usuarios or {}
        self.sessao = sessao
        self.callbacks = []
        self.erro = None

    def sessao_atual(self):
        return self.sessao

    def ao_mudar_sessao(self, callback):
        self.callbacks.append(callback)

    def _abrir(self, usuario):
        self.sessao = usuario
        for callback in self.callbacks:
            callback(usuario)
        return usuario

    def entrar(self, email, senha):
        if self.erro:
            raise self.erro
        if email not in self.usuarios:
            raise CredenciaisInvalidasError()
        return self._abrir(self.usuarios[email])

    def cadastrar(self, nome, email, senha):
        if self.erro:
            raise self.erro
        usuario = Usuario(nome=nome, email=email)
        self.usuarios[email] = usuario
        return self._abrir(usuario)

    def sair(self):
        self.sessao = None
        for callback in self.callbacks:
            callback(None)

    def encerrar_externamente(self):
        self.sair()


def novo_pedido(**campos):
    dados = {'nome_cliente': 'Acme', 'tipo_material': 'Banner'}
    dados.update(campos)
    return Pedido(**dados)


# ====================================================================
# ARMAZÉM
# ====================================================================

class TestColecaoEntidades(unittest.TestCase):

    def setUp(self):
        self.colecao = ColecaoEntidades(TipoEntidade.PEDIDO)

    def test_inserir_coloca_no_topo(self):
        primeiro, segundo = novo_pedido(), novo_pedido()
        self.colecao.inserir(primeiro)
        self.colecao.inserir(segundo)
        self.assertEqual([p.id for p in self.colecao], [segundo.id, primeiro.id])

    def test_atualizar_sem_correspondencia_nao_faz_nada(self):
        self.colecao.inserir(novo_pedido())
        self.assertFalse(self.colecao.atualizar(novo_pedido()))
        self.assertEqual(len(self.colecao), 1)

    def test_atualizar_substitui_na_mesma_posicao(self):
        a, b = novo_pedido(), novo_pedido()
        self.colecao.substituir_tudo([a, b])
        self.assertTrue(self.colecao.atualizar(replace(b, cor='Azul')))
        self.assertEqual(self.colecao.listar()[1].cor, 'Azul')

    def test_remover_id_inexistente_nao_faz_nada(self):
        self.colecao.inserir(novo_pedido())
        self.assertFalse(self.colecao.remover('nao-existe'))
        self.assertEqual(len(self.colecao), 1)

    def test_listar_devolve_copia(self):
        self.colecao.inserir(novo_pedido())
        self.colecao.listar().clear()
        self.assertEqual(len(self.colecao), 1)

    def test_armazem_limpar_esvazia_as_quatro_colecoes(self):
        armazem = ArmazemEntidades()
        armazem.carregar(ColecoesUsuario(
            pedidos=[novo_pedido()],
            orcamentos=[Orcamento(nome_cliente='A', tipo_material='B', valor_total=Decimal('1'))],
            materiais=[Material(nome='Lona')],
            designers=[Designer(nome='Ana')],
        ))
        self.assertFalse(armazem.vazio())
        armazem.limpar()
        self.assertTrue(armazem.vazio())


# ====================================================================
# NÚCLEO DE SINCRONIZAÇÃO
# ====================================================================

class TestSincronizacao(unittest.TestCase):

    def setUp(self):
        self.usuario = Usuario(id='u1', nome='Maria', email='maria@grafica.com')
        self.armazem = ArmazemEntidades()
        self.persistencia = PersistenciaMemoria()
        self.usuario_ativo = self.usuario
        self.sincronizacao = SincronizacaoUseCase(
            armazem=self.armazem,
            persistencia=self.persistencia,
            obter_usuario=lambda: self.usuario_ativo,
        )

    def test_sem_sessao_nada_e_persistido(self):
        """
        Cenário: Mutação sem usuário conectado falha antes de tocar a persistência.
        """
        self.usuario_ativo = None
        with self.assertRaises(SessaoInativaError):
            self.sincronizacao.criar(TipoEntidade.PEDIDO, novo_pedido())
        self.assertEqual(self.persistencia.chamadas, [])
        self.assertTrue(self.armazem.vazio())

    def test_upsert_com_sucesso_atualiza_armazem_e_persistencia(self):
        """
        Cenário: Após um upsert bem-sucedido o armazém e a persistência têm a mesma entidade.
        """
        pedido = novo_pedido(valor_entrada=Decimal('10'))

        # ACT
        self.sincronizacao.criar(TipoEntidade.PEDIDO, pedido)

        # ASSERT
        self.assertEqual(self.armazem.pedidos.buscar(pedido.id), pedido)
        self.assertEqual(self.persistencia.registros['u1'][TipoEntidade.PEDIDO][pedido.id], pedido)
        self.assertEqual(self.persistencia.chamadas, [('salvar', TipoEntidade.PEDIDO, pedido.id)])

    def test_upsert_existente_substitui_no_lugar(self):
        pedido = novo_pedido()
        self.sincronizacao.criar(TipoEntidade.PEDIDO, pedido)
        self.sincronizacao.criar(TipoEntidade.PEDIDO, novo_pedido())

        self.sincronizacao.sincronizar(TipoEntidade.PEDIDO, replace(pedido, cor='Vermelho'))

        self.assertEqual(len(self.armazem.pedidos), 2)
        self.assertEqual(self.armazem.pedidos.listar()[1].cor, 'Vermelho')

    def test_falha_no_upsert_nao_altera_armazem(self):
        """
        Cenário: A persistência recusa a gravação; o armazém continua idêntico.
        """
        existente = novo_pedido()
        self.sincronizacao.criar(TipoEntidade.PEDIDO, existente)
        antes = self.armazem.pedidos.listar()
        self.persistencia.falhas['salvar'] = PermissaoNegadaError()

        with self.assertRaises(PermissaoNegadaError):
            self.sincronizacao.sincronizar(TipoEntidade.PEDIDO, replace(existente, cor='Verde'))
        with self.assertRaises(PermissaoNegadaError):
            self.sincronizacao.criar(TipoEntidade.PEDIDO, novo_pedido())

        self.assertEqual(self.armazem.pedidos.listar(), antes)

    def test_falha_na_exclusao_nao_altera_armazem(self):
        material = Material(nome='Lona')
        self.sincronizacao.criar(TipoEntidade.MATERIAL, material)
        self.persistencia.falhas['deletar'] = TabelaAusenteError()

        with self.assertRaises(TabelaAusenteError):
            self.sincronizacao.excluir(TipoEntidade.MATERIAL, material.id)

        self.assertIn(material.id, self.armazem.materiais)

    def test_exclusao_com_sucesso(self):
        material = Material(nome='Lona')
        self.sincronizacao.criar(TipoEntidade.MATERIAL, material)

        self.sincronizacao.sincronizar(TipoEntidade.MATERIAL, material, deletar=True)

        self.assertNotIn(material.id, self.armazem.materiais)
        self.assertEqual(self.persistencia.registros['u1'][TipoEntidade.MATERIAL], {})

    def test_entidade_de_outro_tipo_e_rejeitada(self):
        """
        Cenário: Um Pedido enviado como orçamento é recusado antes da persistência.
        """
        with self.assertRaises(DadosInvalidosError):
            self.sincronizacao.criar(TipoEntidade.ORCAMENTO, novo_pedido())
        self.assertEqual(self.persistencia.chamadas, [])
        self.assertTrue(self.armazem.vazio())

    def test_dados_invalidos_nao_chegam_a_persistencia(self):
        with self.assertRaises(DadosInvalidosError):
            self.sincronizacao.criar(TipoEntidade.PEDIDO, novo_pedido(nome_cliente=''))
        with self.assertRaises(DadosInvalidosError):
            self.sincronizacao.criar(
                TipoEntidade.ORCAMENTO,
                Orcamento(nome_cliente='A', tipo_material='B', valor_total=Decimal('0')),
            )
        self.assertEqual(self.persistencia.chamadas, [])

    def test_material_sem_categoria_recebe_geral(self):
        material = self.sincronizacao.criar(TipoEntidade.MATERIAL, Material(nome='Lona', categoria=''))
        self.assertEqual(material.categoria, 'Geral')

    def test_buscar_inexistente(self):
        with self.assertRaises(ItemNaoEncontradoError):
            self.sincronizacao.buscar(TipoEntidade.DESIGNER, 'nao-existe')

    def test_atualizar_status_pedido(self):
        pedido = self.sincronizacao.criar(TipoEntidade.PEDIDO, novo_pedido())
        atualizado = self.sincronizacao.atualizar_status_pedido(pedido.id, 'Em Processo')
        self.assertEqual(atualizado.status, StatusPedido.EM_PROCESSO)
        self.assertEqual(self.armazem.pedidos.buscar(pedido.id).status, StatusPedido.EM_PROCESSO)

    def test_atualizar_status_pedido_invalido(self):
        pedido = self.sincronizacao.criar(TipoEntidade.PEDIDO, novo_pedido())
        with self.assertRaises(DadosInvalidosError):
            self.sincronizacao.atualizar_status_pedido(pedido.id, 'Cancelado')

    def test_arquivar_e_restaurar_sao_idempotentes(self):
        """
        Cenário: Arquivar um pedido já arquivado e restaurar um pedido ativo não fazem nada.
        """
        pedido = self.sincronizacao.criar(TipoEntidade.PEDIDO, novo_pedido(status=StatusPedido.ENTREGUE))

        # Restaurar um pedido nunca arquivado
        self.persistencia.chamadas.clear()
        self.assertFalse(self.sincronizacao.restaurar_pedido(pedido.id).arquivado)
        self.assertEqual(self.persistencia.chamadas, [])

        # Arquivar duas vezes
        self.sincronizacao.arquivar_pedido(pedido.id)
        estado = self.armazem.pedidos.buscar(pedido.id)
        self.persistencia.chamadas.clear()
        self.sincronizacao.arquivar_pedido(pedido.id)
        self.assertEqual(self.persistencia.chamadas, [])
        self.assertEqual(self.armazem.pedidos.buscar(pedido.id), estado)
        self.assertTrue(estado.arquivado)

    def test_arquivar_pedido_nao_entregue_e_recusado_por_padrao(self):
        pedido = self.sincronizacao.criar(TipoEntidade.PEDIDO, novo_pedido())
        with self.assertRaises(ArquivamentoNaoPermitidoError):
            self.sincronizacao.arquivar_pedido(pedido.id)
        self.assertFalse(self.armazem.pedidos.buscar(pedido.id).arquivado)

    def test_arquivar_qualquer_pedido_com_politica_desligada(self):
        self.sincronizacao.arquivar_somente_entregues = False
        pedido = self.sincronizacao.criar(TipoEntidade.PEDIDO, novo_pedido())
        self.assertTrue(self.sincronizacao.arquivar_pedido(pedido.id).arquivado)

    def test_arquivar_entregues_em_lote(self):
        """
        Cenário: Apenas pedidos entregues e ativos são arquivados, em uma única chamada.
        """
        entregue = self.sincronizacao.criar(TipoEntidade.PEDIDO, novo_pedido(status=StatusPedido.ENTREGUE))
        pendente = self.sincronizacao.criar(TipoEntidade.PEDIDO, novo_pedido())
        ja_arquivado = self.sincronizacao.criar(
            TipoEntidade.PEDIDO, novo_pedido(status=StatusPedido.ENTREGUE, arquivado=True)
        )
        self.persistencia.chamadas.clear()

        # ACT
        arquivados = self.sincronizacao.arquivar_entregues()

        # ASSERT
        self.assertEqual([p.id for p in arquivados], [entregue.id])
        self.assertEqual(self.persistencia.chamadas, [('salvar_lote', TipoEntidade.PEDIDO, [entregue.id])])
        self.assertTrue(self.armazem.pedidos.buscar(entregue.id).arquivado)
        self.assertFalse(self.armazem.pedidos.buscar(pendente.id).arquivado)
        self.assertTrue(self.armazem.pedidos.buscar(ja_arquivado.id).arquivado)

    def test_arquivar_entregues_sem_candidatos_nao_chama_persistencia(self):
        self.sincronizacao.criar(TipoEntidade.PEDIDO, novo_pedido())
        self.persistencia.chamadas.clear()
        self.assertEqual(self.sincronizacao.arquivar_entregues(), [])
        self.assertEqual(self.persistencia.chamadas, [])

    def test_falha_no_lote_nao_arquiva_nenhum(self):
        for _ in range(3):
            self.sincronizacao.criar(TipoEntidade.PEDIDO, novo_pedido(status=StatusPedido.ENTREGUE))
        self.persistencia.falhas['salvar_lote'] = PermissaoNegadaError()

        with self.assertRaises(ErroLotePersistencia) as contexto:
            self.sincronizacao.arquivar_entregues()

        self.assertIsInstance(contexto.exception.causa, PermissaoNegadaError)
        self.assertEqual(contexto.exception.quantidade, 3)
        self.assertFalse(any(p.arquivado for p in self.armazem.pedidos))

    def test_ultima_gravacao_prevalece(self):
        """
        Cenário: Duas edições do mesmo pedido em sequência; não há serialização por id,
        então o estado final é o da última resposta recebida.
        """
        pedido = self.sincronizacao.criar(TipoEntidade.PEDIDO, novo_pedido())
        self.sincronizacao.sincronizar(TipoEntidade.PEDIDO, replace(pedido, cor='Azul'))
        self.sincronizacao.sincronizar(TipoEntidade.PEDIDO, replace(pedido, medidas='2x1m'))

        final = self.armazem.pedidos.buscar(pedido.id)
        self.assertEqual(final.medidas, '2x1m')
        self.assertEqual(final.cor, '')


# ====================================================================
# CONVERSÃO DE ORÇAMENTO
# ====================================================================

class TestConverterOrcamento(unittest.TestCase):

    def setUp(self):
        self.armazem = ArmazemEntidades()
        self.persistencia = PersistenciaMemoria()
        self.sincronizacao = SincronizacaoUseCase(
            armazem=self.armazem,
            persistencia=self.persistencia,
            obter_usuario=lambda: Usuario(id='u1', nome='Maria', email='maria@grafica.com'),
        )
        self.use_case = ConverterOrcamentoUseCase(self.sincronizacao)
        self.orcamento = self.sincronizacao.criar(TipoEntidade.ORCAMENTO, Orcamento(
            id='b1',
            nome_cliente='Acme',
            telefone='119999',
            tipo_material='Banner',
            medidas='2x1m',
            quantidade=1,
            valor_total=Decimal('150.00'),
            observacoes='Rush job',
            status=StatusOrcamento.AGUARDANDO,
        ))
        self.persistencia.chamadas.clear()

    def test_conversao_com_sucesso(self):
        """
        Cenário: O orçamento aguardando vira um pedido pendente e passa a aprovado.
        """
        # ACT
        pedido = self.use_case.executar('b1')

        # ASSERT
        self.assertEqual(pedido.valor_entrada, Decimal('0'))
        self.assertEqual(pedido.valor_restante, Decimal('150.00'))
        self.assertEqual(pedido.status, StatusPedido.PENDENTE)
        self.assertEqual(pedido.tipo_material, 'Banner')
        self.assertEqual(pedido.nome_cliente, 'Acme')
        self.assertEqual(pedido.telefone, '119999')
        self.assertEqual(pedido.medidas, '2x1m')
        self.assertEqual(pedido.cor, '')
        self.assertFalse(pedido.arquivado)
        self.assertEqual(pedido.data, date.today())
        self.assertEqual(pedido.informacoes_adicionais, 'Rush job\nEmail: N/A')
        self.assertEqual(self.armazem.orcamentos.buscar('b1').status, StatusOrcamento.APROVADO)
        self.assertEqual(self.armazem.pedidos.listar(), [pedido])

        # O pedido é gravado antes do orçamento
        self.assertEqual(
            [chamada[1] for chamada in self.persistencia.chamadas],
            [TipoEntidade.PEDIDO, TipoEntidade.ORCAMENTO],
        )

    def test_email_do_orcamento_vai_para_as_observacoes(self):
        self.sincronizacao.sincronizar(
            TipoEntidade.ORCAMENTO, replace(self.orcamento, email='compras@acme.com')
        )
        pedido = self.use_case.executar('b1')
        self.assertTrue(pedido.informacoes_adicionais.endswith('Email: compras@acme.com'))

    def test_orcamento_ja_aprovado_nao_converte(self):
        self.sincronizacao.atualizar_status_orcamento('b1', StatusOrcamento.APROVADO)
        self.persistencia.chamadas.clear()

        with self.assertRaises(OrcamentoNaoConvertivelError):
            self.use_case.executar('b1')

        self.assertEqual(self.persistencia.chamadas, [])
        self.assertEqual(len(self.armazem.pedidos), 0)

    def test_falha_ao_gravar_pedido_mantem_orcamento_aguardando(self):
        self.persistencia.falhas[('salvar', TipoEntidade.PEDIDO)] = ErroPersistenciaGenerico('timeout')

        with self.assertRaises(ErroPersistenciaGenerico):
            self.use_case.executar('b1')

        self.assertEqual(len(self.armazem.pedidos), 0)
        self.assertEqual(self.armazem.orcamentos.buscar('b1').status, StatusOrcamento.AGUARDANDO)

    def test_falha_ao_aprovar_orcamento_gera_conversao_parcial(self):
        """
        Cenário: O pedido foi criado mas o orçamento não pôde ser atualizado.
        """
        self.persistencia.falhas[('salvar', TipoEntidade.ORCAMENTO)] = PermissaoNegadaError()

        with self.assertRaises(ConversaoParcialError) as contexto:
            self.use_case.executar('b1')

        erro = contexto.exception
        self.assertIsInstance(erro.causa, PermissaoNegadaError)
        self.assertIn(erro.pedido.id, self.armazem.pedidos)
        self.assertEqual(self.armazem.orcamentos.buscar('b1').status, StatusOrcamento.AGUARDANDO)


# ====================================================================
# DERIVAÇÕES
# ====================================================================

class TestDerivacoes(unittest.TestCase):

    def test_resumo_financeiro(self):
        """
        Cenário: Três pedidos (100,0), (50,50), (0,200) somam 400, 150 recebidos e 250 a receber.
        """
        pedidos = [
            novo_pedido(valor_entrada=Decimal('100'), valor_restante=Decimal('0'), tipo_material='Banner'),
            novo_pedido(valor_entrada=Decimal('50'), valor_restante=Decimal('50'), tipo_material='Adesivo'),
            novo_pedido(valor_entrada=Decimal('0'), valor_restante=Decimal('200'), tipo_material='Banner',
                        arquivado=True),
        ]

        resumo = derivacoes.calcular_resumo_financeiro(pedidos)

        self.assertEqual(resumo.total, Decimal('400'))
        self.assertEqual(resumo.recebido, Decimal('150'))
        self.assertEqual(resumo.a_receber, Decimal('250'))
        self.assertEqual(resumo.percentual_recebido, Decimal('37.5'))
        self.assertEqual(derivacoes.ranking_materiais(resumo),
                         [('Banner', Decimal('300')), ('Adesivo', Decimal('100'))])

    def test_percentual_sem_faturamento_e_zero(self):
        self.assertEqual(derivacoes.calcular_resumo_financeiro([]).percentual_recebido, Decimal('0'))

    def test_estatisticas_ignoram_arquivados(self):
        pedidos = [
            novo_pedido(status=StatusPedido.PENDENTE, valor_entrada=Decimal('10')),
            novo_pedido(status=StatusPedido.EM_PROCESSO),
            novo_pedido(status=StatusPedido.ENTREGUE, arquivado=True, valor_entrada=Decimal('999')),
            novo_pedido(status=StatusPedido.PENDENTE, arquivado=True),
        ]
        orcamentos = [
            Orcamento(nome_cliente='A', tipo_material='B', valor_total=Decimal('1')),
            Orcamento(nome_cliente='A', tipo_material='B', valor_total=Decimal('1'),
                      status=StatusOrcamento.EXPIRADO),
        ]

        estatisticas = derivacoes.calcular_estatisticas(pedidos, orcamentos)

        self.assertEqual(estatisticas.total_pedidos, 2)
        self.assertEqual(estatisticas.pendentes, 1)
        self.assertEqual(estatisticas.em_processo, 1)
        self.assertEqual(estatisticas.entregues, 0)
        self.assertEqual(estatisticas.receita_total, Decimal('10'))
        self.assertEqual(estatisticas.orcamentos_pendentes, 1)

    def test_pedidos_recentes_apenas_ativos(self):
        pedidos = [novo_pedido(arquivado=True)] + [novo_pedido() for _ in range(6)]
        recentes = derivacoes.pedidos_recentes(pedidos)
        self.assertEqual(len(recentes), 5)
        self.assertFalse(any(p.arquivado for p in recentes))

    def test_filtrar_pedidos(self):
        a = novo_pedido(nome_cliente='Padaria Central', tipo_material='Panfleto')
        b = novo_pedido(nome_cliente='Oficina', tipo_material='Banner', status=StatusPedido.ENTREGUE)
        c = novo_pedido(nome_cliente='Oficina', tipo_material='Adesivo', arquivado=True)
        pedidos = [a, b, c]

        self.assertEqual(derivacoes.filtrar_pedidos(pedidos), [a, b])
        self.assertEqual(derivacoes.filtrar_pedidos(pedidos, aba='arquivados'), [c])
        self.assertEqual(derivacoes.filtrar_pedidos(pedidos, busca='BANNER'), [b])
        self.assertEqual(derivacoes.filtrar_pedidos(pedidos, busca='padaria'), [a])
        self.assertEqual(derivacoes.filtrar_pedidos(pedidos, status=StatusPedido.ENTREGUE), [b])
        self.assertEqual(derivacoes.contagem_pedidos(pedidos), {'entregues_ativos': 1, 'arquivados': 1})

    def test_designer_excluido_vira_desconhecido(self):
        """
        Cenário: Excluir um designer referenciado não afeta o pedido; o nome vira o marcador.
        """
        sincronizacao = SincronizacaoUseCase(
            armazem=ArmazemEntidades(),
            persistencia=PersistenciaMemoria(),
            obter_usuario=lambda: Usuario(id='u1', nome='Maria', email='m@g.com'),
        )
        designer = sincronizacao.criar(TipoEntidade.DESIGNER, Designer(nome='Ana'))
        pedido = sincronizacao.criar(TipoEntidade.PEDIDO, novo_pedido(designer_id=designer.id))
        designers = sincronizacao.armazem.designers
        self.assertEqual(derivacoes.nome_designer(designers, pedido.designer_id), 'Ana')

        sincronizacao.excluir(TipoEntidade.DESIGNER, designer.id)

        self.assertEqual(sincronizacao.armazem.pedidos.buscar(pedido.id), pedido)
        self.assertIsNone(derivacoes.buscar_designer(designers, pedido.designer_id))
        self.assertEqual(derivacoes.nome_designer(designers, pedido.designer_id), derivacoes.DESIGNER_DESCONHECIDO)
        self.assertEqual(derivacoes.nome_designer(designers, None), derivacoes.SEM_RESPONSAVEL)

    def test_formatar_moeda(self):
        self.assertEqual(derivacoes.formatar_moeda(Decimal('1234.5')), 'R$ 1.234,50')
        self.assertEqual(derivacoes.formatar_moeda(Decimal('0')), 'R$ 0,00')

    def test_mensagem_e_link_whatsapp(self):
        orcamento = Orcamento(
            nome_cliente='Acme', tipo_material='Banner', valor_total=Decimal('150'),
            telefone='(11) 99999-0000', valido_ate=date(2024, 3, 5), prazo_entrega='5 dias úteis',
        )

        mensagem = derivacoes.mensagem_whatsapp_orcamento(orcamento)
        link = derivacoes.link_whatsapp(orcamento)

        self.assertIn('*Valor Total:* R$ 150,00', mensagem)
        self.assertIn('*Válido até:* 05/03/2024', mensagem)
        self.assertIn('*Prazo de Entrega:* 5 dias úteis', mensagem)
        self.assertNotIn('*Medida:*', mensagem)
        self.assertTrue(link.startswith('https://wa.me/5511999990000?text='))


# ====================================================================
# SESSÃO
# ====================================================================

class TestGerenciadorSessao(unittest.TestCase):

    def setUp(self):
        self.maria = Usuario(id='u1', nome='Maria', email='maria@grafica.com')
        self.joao = Usuario(id='u2', nome='João', email='joao@grafica.com')
        self.persistencia = PersistenciaMemoria()
        self.provedor = ProvedorFalso(usuarios={
            'maria@grafica.com': self.maria, 'joao@grafica.com': self.joao,
        })
        self.sessao = GerenciadorSessao(self.provedor, self.persistencia)

    def test_entrar_carrega_as_colecoes(self):
        self.persistencia.registros['u1'] = {TipoEntidade.MATERIAL: {'m1': Material(id='m1', nome='Lona')}}

        self.sessao.entrar('maria@grafica.com', 'segredo')

        self.assertEqual(self.sessao.estado, EstadoSessao.ATIVO)
        self.assertEqual(self.sessao.usuario, self.maria)
        self.assertEqual([m.id for m in self.sessao.materiais], ['m1'])
        self.assertEqual(self.persistencia.chamadas.count(('carregar_tudo', 'u1')), 1)

    def test_rejeicao_do_provedor_volta_a_anonimo(self):
        with self.assertRaises(CredenciaisInvalidasError):
            self.sessao.entrar('ninguem@grafica.com', 'x')
        self.assertEqual(self.sessao.estado, EstadoSessao.ANONIMO)
        self.assertIsNone(self.sessao.usuario)

    def test_sair_limpa_tudo_e_outro_usuario_nao_ve_nada(self):
        """
        Cenário: Depois do logout, um segundo usuário não enxerga nada do primeiro.
        """
        self.sessao.entrar('maria@grafica.com', 'x')
        for tipo, entidade in [
            (TipoEntidade.PEDIDO, novo_pedido()),
            (TipoEntidade.ORCAMENTO, Orcamento(nome_cliente='A', tipo_material='B', valor_total=Decimal('5'))),
            (TipoEntidade.MATERIAL, Material(nome='Lona')),
            (TipoEntidade.DESIGNER, Designer(nome='Ana')),
        ]:
            self.sessao.sincronizacao.criar(tipo, entidade)

        # ACT
        self.sessao.sair()

        # ASSERT
        self.assertEqual(self.sessao.estado, EstadoSessao.ANONIMO)
        self.assertTrue(self.sessao.armazem.vazio())
        self.sessao.entrar('joao@grafica.com', 'x')
        self.assertTrue(self.sessao.armazem.vazio())
        self.assertEqual(self.sessao.usuario, self.joao)

    def test_mutacao_depois_do_logout_e_recusada(self):
        self.sessao.entrar('maria@grafica.com', 'x')
        sincronizacao = self.sessao.sincronizacao
        self.sessao.sair()
        with self.assertRaises(SessaoInativaError):
            sincronizacao.criar(TipoEntidade.MATERIAL, Material(nome='Lona'))

    def test_encerramento_informado_pelo_provedor(self):
        self.sessao.entrar('maria@grafica.com', 'x')
        self.sessao.sincronizacao.criar(TipoEntidade.MATERIAL, Material(nome='Lona'))

        self.provedor.encerrar_externamente()

        self.assertEqual(self.sessao.estado, EstadoSessao.ANONIMO)
        self.assertEqual(self.sessao.materiais, [])

    def test_troca_de_usuario_substitui_colecoes(self):
        self.persistencia.registros['u2'] = {TipoEntidade.DESIGNER: {'d1': Designer(id='d1', nome='Bia')}}
        self.sessao.entrar('maria@grafica.com', 'x')
        self.sessao.sincronizacao.criar(TipoEntidade.DESIGNER, Designer(nome='Ana'))

        self.sessao.entrar('joao@grafica.com', 'x')

        self.assertEqual([d.nome for d in self.sessao.designers], ['Bia'])

    def test_falha_ao_carregar_mantem_usuario_autenticado(self):
        self.persistencia.falhas['carregar_tudo'] = TabelaAusenteError()

        with self.assertRaises(TabelaAusenteError):
            self.sessao.entrar('maria@grafica.com', 'x')

        self.assertTrue(self.sessao.ativa)
        self.assertTrue(self.sessao.armazem.vazio())

    def test_restaurar_sessao_existente(self):
        self.provedor.sessao = self.maria
        self.assertEqual(self.sessao.restaurar(), self.maria)
        self.assertTrue(self.sessao.ativa)

    def test_restaurar_sem_sessao(self):
        self.assertIsNone(self.sessao.restaurar())
        self.assertEqual(self.sessao.estado, EstadoSessao.ANONIMO)

    def test_cadastrar_ativa_a_sessao(self):
        usuario = self.sessao.cadastrar('Carla', 'carla@grafica.com', 'segredo')
        self.assertTrue(self.sessao.ativa)
        self.assertEqual(self.sessao.usuario, usuario)

    def test_leituras_derivadas(self):
        self.sessao.entrar('maria@grafica.com', 'x')
        self.sessao.sincronizacao.criar(TipoEntidade.PEDIDO, novo_pedido(
            valor_entrada=Decimal('30'), valor_restante=Decimal('70'), arquivado=True,
        ))
        self.assertEqual(self.sessao.estatisticas().total_pedidos, 0)
        self.assertEqual(self.sessao.resumo_financeiro().total, Decimal('100'))
        self.assertEqual(self.sessao.resumo_financeiro(incluir_arquivados=False).total, Decimal('0'))
        self.assertEqual(self.sessao.nome_designer(None), 'Sem responsável')

    def test_callback_do_provedor_e_registrado(self):
        provedor = Mock()
        GerenciadorSessao(provedor, PersistenciaMemoria())
        provedor.ao_mudar_sessao.assert_called_once()

    def test_cadastro_recusado_volta_a_anonimo(self):
        self.provedor.erro = IdentidadeDuplicadaError()
        with self.assertRaises(IdentidadeDuplicadaError):
            self.sessao.cadastrar('Maria', 'maria@grafica.com', 'segredo')
        self.assertEqual(self.sessao.estado, EstadoSessao.ANONIMO)


# ====================================================================
# MENSAGENS PARA O USUÁRIO
# ====================================================================

def _subclasses(classe):
    for sub in classe.__subclasses__():
        yield sub
        yield from _subclasses(sub)


class TestMensagemUsuario(unittest.TestCase):

    def _instanciar(self, classe):
        if classe is ErroLotePersistencia:
            return classe(causa=TabelaAusenteError(), quantidade=2)
        if classe is ConversaoParcialError:
            return classe(pedido=novo_pedido(), causa=PermissaoNegadaError())
        return classe()

    def test_toda_classe_tem_exatamente_uma_mensagem(self):
        for classe in [BaseErroCore] + list(_subclasses(BaseErroCore)):
            with self.subTest(classe=classe.__name__):
                mensagem = mensagem_usuario(self._instanciar(classe))
                self.assertIsInstance(mensagem, str)
                self.assertTrue(mensagem)

    def test_erro_generico_exibe_a_propria_mensagem(self):
        self.assertEqual(mensagem_usuario(ErroPersistenciaGenerico('Conexão recusada')), 'Conexão recusada')

    def test_erro_de_lote_exibe_a_mensagem_da_causa(self):
        erro = ErroLotePersistencia(causa=PermissaoNegadaError(), quantidade=3)
        self.assertEqual(mensagem_usuario(erro), PermissaoNegadaError.mensagem_padrao)

    def test_excecao_desconhecida_recebe_mensagem_generica(self):
        self.assertEqual(mensagem_usuario(RuntimeError('boom')), BaseErroCore.mensagem_padrao)
