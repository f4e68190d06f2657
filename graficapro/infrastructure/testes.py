import json
from decimal import Decimal
from io import StringIO
from unittest.mock import Mock, patch

from django.contrib.auth import get_user_model
from django.contrib.sessions.backends.db import SessionStore
from django.core.cache import caches
from django.core.management import call_command
from django.db import DatabaseError, ProgrammingError
from django.test import RequestFactory, TestCase, override_settings
from psycopg2 import errorcodes

# Importamos as classes que queremos testar
from graficapro.core.entities import (
    Anexo, Designer, Material, Orcamento, Pedido, StatusPedido, TipoEntidade, UnidadeMaterial,
)
from graficapro.core.exceptions import (
    CredenciaisInvalidasError, DadosInvalidosError, ErroPersistenciaGenerico, IdentidadeDuplicadaError,
    LimiteTentativasError, PermissaoNegadaError, TabelaAusenteError,
)
from graficapro.core.store import ArmazemEntidades
from graficapro.core.use_cases import SincronizacaoUseCase
from graficapro.infrastructure.gateways import ProvedorAutenticacaoDjango, ProvedorAutenticacaoLocal
from graficapro.infrastructure.mappers import PedidoMapper, UsuarioMapper
from graficapro.infrastructure.models import Material as MaterialModel, Pedido as PedidoModel, PerfilUsuario
from graficapro.infrastructure.repositories import PersistenciaDjango, PersistenciaLocal, traduzir_erro_banco

User = get_user_model()


def pedido_exemplo(**campos):
    dados = {
        'nome_cliente': 'Padaria Central',
        'tipo_material': 'Panfleto A5',
        'telefone': '11988887777',
        'quantidade': 1000,
        'valor_entrada': Decimal('90.00'),
        'valor_restante': Decimal('90.00'),
        'anexos': [Anexo.de_bytes('arte.pdf', b'%PDF-1.4')],
    }
    dados.update(campos)
    return Pedido(**dados)


# A classe de teste herda do TestCase do Django, que prepara o banco de dados de teste
class PersistenciaDjangoTestCase(TestCase):

    def setUp(self):
        """
        Configura o ambiente para cada teste: o adaptador e dois usuários reais no banco.
        """
        self.persistencia = PersistenciaDjango()
        self.maria = User.objects.create_user(username='maria@grafica.com', password='segredo1')
        self.joao = User.objects.create_user(username='joao@grafica.com', password='segredo2')
        self.maria_id = str(self.maria.pk)
        self.joao_id = str(self.joao.pk)

    def test_salvar_e_carregar_mantem_a_entidade(self):
        """
        Cenário: A entidade gravada é a mesma que volta na carga.
        """
        pedido = pedido_exemplo()

        # ACT
        self.persistencia.salvar(TipoEntidade.PEDIDO, pedido, self.maria_id)
        colecoes = self.persistencia.carregar_tudo(self.maria_id)

        # ASSERT
        self.assertEqual(colecoes.pedidos, [pedido])
        self.assertEqual(colecoes.pedidos[0].anexos[0].conteudo(), b'%PDF-1.4')
        self.assertEqual(PedidoModel.objects.get(pk=pedido.id).usuario, self.maria)

    def test_salvar_novamente_atualiza_a_linha(self):
        material = Material(nome='Lona 440g', preco_base=Decimal('60'), unidade=UnidadeMaterial.METRO_QUADRADO)
        self.persistencia.salvar(TipoEntidade.MATERIAL, material, self.maria_id)

        material.preco_base = Decimal('65.50')
        self.persistencia.salvar(TipoEntidade.MATERIAL, material, self.maria_id)

        self.assertEqual(MaterialModel.objects.count(), 1)
        self.assertEqual(MaterialModel.objects.get(pk=material.id).preco_base, Decimal('65.50'))

    def test_colecoes_sao_separadas_por_usuario(self):
        self.persistencia.salvar(TipoEntidade.DESIGNER, Designer(nome='Ana'), self.maria_id)
        self.persistencia.salvar(TipoEntidade.DESIGNER, Designer(nome='Bia'), self.joao_id)

        nomes = [d.nome for d in self.persistencia.carregar_tudo(self.joao_id).designers]

        self.assertEqual(nomes, ['Bia'])

    def test_gravar_linha_de_outro_usuario_e_negado(self):
        pedido = pedido_exemplo()
        self.persistencia.salvar(TipoEntidade.PEDIDO, pedido, self.maria_id)

        with self.assertRaises(PermissaoNegadaError):
            self.persistencia.salvar(TipoEntidade.PEDIDO, pedido, self.joao_id)

        self.assertEqual(PedidoModel.objects.get(pk=pedido.id).usuario, self.maria)

    def test_deletar_so_afeta_o_dono(self):
        orcamento = Orcamento(nome_cliente='Acme', tipo_material='Banner', valor_total=Decimal('150'))
        self.persistencia.salvar(TipoEntidade.ORCAMENTO, orcamento, self.maria_id)

        self.persistencia.deletar(TipoEntidade.ORCAMENTO, orcamento.id, self.joao_id)
        self.assertEqual(len(self.persistencia.carregar_tudo(self.maria_id).orcamentos), 1)

        self.persistencia.deletar(TipoEntidade.ORCAMENTO, orcamento.id, self.maria_id)
        self.assertEqual(self.persistencia.carregar_tudo(self.maria_id).orcamentos, [])

    def test_lote_e_tudo_ou_nada(self):
        """
        Cenário: Um item do lote é recusado; nenhum dos outros é gravado.
        """
        alheio = pedido_exemplo(status=StatusPedido.ENTREGUE)
        self.persistencia.salvar(TipoEntidade.PEDIDO, alheio, self.joao_id)
        proprio = pedido_exemplo(status=StatusPedido.ENTREGUE)
        self.persistencia.salvar(TipoEntidade.PEDIDO, proprio, self.maria_id)

        proprio.arquivado = True
        alheio.arquivado = True
        with self.assertRaises(PermissaoNegadaError):
            self.persistencia.salvar_lote(TipoEntidade.PEDIDO, [proprio, alheio], self.maria_id)

        self.assertFalse(PedidoModel.objects.get(pk=proprio.id).arquivado)

    def test_lote_com_sucesso(self):
        pedidos = [pedido_exemplo(arquivado=True) for _ in range(3)]
        self.persistencia.salvar_lote(TipoEntidade.PEDIDO, pedidos, self.maria_id)
        self.assertEqual(PedidoModel.objects.filter(usuario=self.maria, arquivado=True).count(), 3)

    def test_tabela_ausente_na_carga(self):
        mapper = Mock()
        mapper.model_class.return_value.objects.filter.side_effect = ProgrammingError(
            'no such table: graficapro_pedido'
        )
        with patch('graficapro.infrastructure.repositories.mapper_para', return_value=mapper):
            with self.assertRaises(TabelaAusenteError):
                self.persistencia.carregar_tudo(self.maria_id)

    def test_sincronizacao_com_banco_real(self):
        """
        Cenário: Após um upsert pelo núcleo de sincronização, armazém e banco concordam.
        """
        armazem = ArmazemEntidades()
        usuario = UsuarioMapper.to_entity(self.maria)
        sincronizacao = SincronizacaoUseCase(armazem, self.persistencia, lambda: usuario)
        pedido = pedido_exemplo()

        sincronizacao.criar(TipoEntidade.PEDIDO, pedido)
        sincronizacao.atualizar_status_pedido(pedido.id, StatusPedido.EM_PROCESSO)

        no_banco = self.persistencia.carregar_tudo(self.maria_id).pedidos
        self.assertEqual(no_banco, armazem.pedidos.listar())
        self.assertEqual(no_banco[0].status, StatusPedido.EM_PROCESSO)


class ErroPostgres(Exception):
    def __init__(self, pgcode):
        super().__init__(pgcode)
        self.pgcode = pgcode


class TraducaoErroBancoTestCase(TestCase):

    def _com_causa(self, classe, pgcode):
        erro = classe('falha')
        erro.__cause__ = ErroPostgres(pgcode)
        return erro

    def test_codigos_do_postgres(self):
        self.assertIsInstance(
            traduzir_erro_banco(self._com_causa(ProgrammingError, errorcodes.UNDEFINED_TABLE)),
            TabelaAusenteError,
        )
        self.assertIsInstance(
            traduzir_erro_banco(self._com_causa(ProgrammingError, errorcodes.INSUFFICIENT_PRIVILEGE)),
            PermissaoNegadaError,
        )

    def test_mensagens_do_sqlite(self):
        self.assertIsInstance(traduzir_erro_banco(ProgrammingError('no such table: x')), TabelaAusenteError)
        self.assertIsInstance(
            traduzir_erro_banco(DatabaseError('permission denied for table x')), PermissaoNegadaError
        )

    def test_demais_erros_sao_genericos_com_a_mensagem(self):
        erro = traduzir_erro_banco(DatabaseError('disk I/O error'))
        self.assertIsInstance(erro, ErroPersistenciaGenerico)
        self.assertEqual(erro.message, 'disk I/O error')


class PersistenciaLocalTestCase(TestCase):

    def setUp(self):
        caches['default'].clear()
        self.persistencia = PersistenciaLocal()

    def test_colecao_inteira_sob_uma_chave(self):
        material = Material(nome='Couché 150g', preco_base=Decimal('1.20'), unidade=UnidadeMaterial.FOLHA)

        self.persistencia.salvar(TipoEntidade.MATERIAL, material, 'u1')

        bruto = json.loads(caches['default'].get('user:u1:materiais'))
        self.assertEqual(bruto[0]['nome'], 'Couché 150g')
        self.assertEqual(bruto[0]['preco_base'], '1.20')
        self.assertEqual(bruto[0]['unidade'], 'folha')
        self.assertEqual(self.persistencia.carregar_tudo('u1').materiais, [material])

    def test_novos_no_topo_e_atualizacao_no_lugar(self):
        primeiro, segundo = pedido_exemplo(), pedido_exemplo(nome_cliente='Oficina')
        self.persistencia.salvar(TipoEntidade.PEDIDO, primeiro, 'u1')
        self.persistencia.salvar(TipoEntidade.PEDIDO, segundo, 'u1')

        primeiro.status = StatusPedido.ENTREGUE
        self.persistencia.salvar(TipoEntidade.PEDIDO, primeiro, 'u1')

        pedidos = self.persistencia.carregar_tudo('u1').pedidos
        self.assertEqual([p.id for p in pedidos], [segundo.id, primeiro.id])
        self.assertEqual(pedidos[1].status, StatusPedido.ENTREGUE)

    def test_deletar(self):
        designer = Designer(nome='Ana')
        self.persistencia.salvar(TipoEntidade.DESIGNER, designer, 'u1')
        self.persistencia.deletar(TipoEntidade.DESIGNER, designer.id, 'u1')
        self.assertEqual(self.persistencia.carregar_tudo('u1').designers, [])

    def test_usuarios_isolados(self):
        self.persistencia.salvar(TipoEntidade.DESIGNER, Designer(nome='Ana'), 'u1')
        self.assertEqual(self.persistencia.carregar_tudo('u2').designers, [])

    def test_lote(self):
        pedidos = [pedido_exemplo() for _ in range(2)]
        self.persistencia.salvar_lote(TipoEntidade.PEDIDO, pedidos, 'u1')
        self.assertEqual(len(self.persistencia.carregar_tudo('u1').pedidos), 2)

    def test_dados_corrompidos(self):
        caches['default'].set('user:u1:orcamentos', '{nao e json', timeout=None)
        with self.assertRaises(ErroPersistenciaGenerico):
            self.persistencia.carregar_tudo('u1')


class MapperTestCase(TestCase):

    def test_pedido_para_dicionario(self):
        pedido = pedido_exemplo(designer_id='d1')
        dados = PedidoMapper.to_dict(pedido)
        self.assertEqual(dados['status'], 'Pendente')
        self.assertEqual(dados['valor_entrada'], '90.00')
        self.assertEqual(dados['data'], pedido.data.isoformat())
        self.assertEqual(PedidoMapper.from_dict(dados), pedido)

    def test_usuario_do_django(self):
        user = User.objects.create_user(username='ana@grafica.com', email='ana@grafica.com', first_name='Ana')
        PerfilUsuario.objects.create(usuario=user, provedor='email')

        usuario = UsuarioMapper.to_entity(user)

        self.assertEqual(usuario.id, str(user.pk))
        self.assertEqual(usuario.nome, 'Ana')
        self.assertEqual(usuario.provedor, 'email')


# ====================================================================
# PROVEDORES DE AUTENTICAÇÃO
# ====================================================================

@override_settings(GRAFICAPRO_LIMITE_TENTATIVAS=3, GRAFICAPRO_JANELA_TENTATIVAS=60)
class ProvedorAutenticacaoDjangoTestCase(TestCase):

    def setUp(self):
        caches['default'].clear()
        self.provedor = ProvedorAutenticacaoDjango()

    def test_cadastrar_cria_usuario_e_perfil(self):
        notificados = []
        self.provedor.ao_mudar_sessao(notificados.append)

        usuario = self.provedor.cadastrar('Maria Souza', 'Maria@Grafica.com', 'segredo1')

        user = User.objects.get(username='maria@grafica.com')
        self.assertEqual(usuario.id, str(user.pk))
        self.assertEqual(usuario.nome, 'Maria Souza')
        self.assertEqual(user.perfil.provedor, 'email')
        self.assertTrue(user.check_password('segredo1'))
        self.assertEqual(notificados, [usuario])

    def test_cadastro_duplicado(self):
        self.provedor.cadastrar('Maria', 'maria@grafica.com', 'segredo1')
        with self.assertRaises(IdentidadeDuplicadaError):
            self.provedor.cadastrar('Outra Maria', 'MARIA@grafica.com', 'segredo2')

    def test_cadastro_invalido(self):
        with self.assertRaises(DadosInvalidosError):
            self.provedor.cadastrar('', 'maria@grafica.com', 'segredo1')

    def test_entrar(self):
        self.provedor.cadastrar('Maria', 'maria@grafica.com', 'segredo1')
        usuario = ProvedorAutenticacaoDjango().entrar('maria@grafica.com', 'segredo1')
        self.assertEqual(usuario.email, 'maria@grafica.com')

    def test_senha_errada(self):
        self.provedor.cadastrar('Maria', 'maria@grafica.com', 'segredo1')
        with self.assertRaises(CredenciaisInvalidasError):
            self.provedor.entrar('maria@grafica.com', 'errada')

    def test_limite_de_tentativas(self):
        """
        Cenário: Depois de três falhas seguidas, nem a senha correta é aceita.
        """
        self.provedor.cadastrar('Maria', 'maria@grafica.com', 'segredo1')
        for _ in range(3):
            with self.assertRaises(CredenciaisInvalidasError):
                self.provedor.entrar('maria@grafica.com', 'errada')

        with self.assertRaises(LimiteTentativasError):
            self.provedor.entrar('maria@grafica.com', 'segredo1')

    def test_sucesso_zera_as_falhas(self):
        self.provedor.cadastrar('Maria', 'maria@grafica.com', 'segredo1')
        for _ in range(2):
            with self.assertRaises(CredenciaisInvalidasError):
                self.provedor.entrar('maria@grafica.com', 'errada')
        self.provedor.entrar('maria@grafica.com', 'segredo1')
        for _ in range(2):
            with self.assertRaises(CredenciaisInvalidasError):
                self.provedor.entrar('maria@grafica.com', 'errada')
        self.provedor.entrar('maria@grafica.com', 'segredo1')

    def test_sessao_atual_vem_da_requisicao(self):
        user = User.objects.create_user(username='ana@grafica.com', email='ana@grafica.com', first_name='Ana')
        request = RequestFactory().get('/')
        request.user = user

        usuario = ProvedorAutenticacaoDjango(request).sessao_atual()

        self.assertEqual(usuario.id, str(user.pk))
        self.assertIsNone(ProvedorAutenticacaoDjango().sessao_atual())

    def test_sair_notifica(self):
        notificados = []
        self.provedor.ao_mudar_sessao(notificados.append)
        self.provedor.sair()
        self.assertEqual(notificados, [None])

    def test_contador_expirado_entre_add_e_incr(self):
        """
        Cenário: A chave de tentativas some antes do incr; a falha ainda é contada.
        """
        self.provedor.cadastrar('Maria', 'maria@grafica.com', 'segredo1')
        cache = caches['default']

        with patch.object(cache, 'incr', side_effect=ValueError('chave inexistente')):
            with self.assertRaises(CredenciaisInvalidasError):
                self.provedor.entrar('maria@grafica.com', 'errada')

        self.assertEqual(cache.get('graficapro:tentativas:maria@grafica.com'), 1)


class ProvedorAutenticacaoLocalTestCase(TestCase):

    def setUp(self):
        caches['default'].clear()
        self.provedor = ProvedorAutenticacaoLocal()

    def test_cadastrar_guarda_senha_em_hash(self):
        usuario = self.provedor.cadastrar('Maria', 'maria@grafica.com', 'segredo1')

        guardados = json.loads(caches['default'].get(ProvedorAutenticacaoLocal.CHAVE_USUARIOS))
        self.assertEqual(guardados[0]['id'], usuario.id)
        self.assertNotEqual(guardados[0]['senha'], 'segredo1')
        self.assertIsNone(usuario.senha)

    def test_entrar_sair_e_sessao_atual(self):
        usuario = self.provedor.cadastrar('Maria', 'maria@grafica.com', 'segredo1')
        self.provedor.sair()
        self.assertIsNone(self.provedor.sessao_atual())

        self.assertEqual(self.provedor.entrar('maria@grafica.com', 'segredo1'), usuario)
        self.assertEqual(self.provedor.sessao_atual(), usuario)

    def test_credenciais_invalidas_e_duplicidade(self):
        self.provedor.cadastrar('Maria', 'maria@grafica.com', 'segredo1')
        with self.assertRaises(CredenciaisInvalidasError):
            self.provedor.entrar('maria@grafica.com', 'errada')
        with self.assertRaises(IdentidadeDuplicadaError):
            self.provedor.cadastrar('Maria', 'maria@grafica.com', 'segredo1')

    def requisicao_com_sessao(self):
        request = RequestFactory().get('/')
        request.session = SessionStore()
        return request

    def test_usuario_conectado_pertence_a_sessao_de_quem_entrou(self):
        """
        Cenário: O login de Maria não abre sessão para outro cliente nem para um provedor sem requisição.
        """
        # ARRANGE
        request_maria = self.requisicao_com_sessao()
        request_anonimo = self.requisicao_com_sessao()

        # ACT
        usuario = ProvedorAutenticacaoLocal(request_maria).cadastrar('Maria', 'maria@grafica.com', 'segredo1')

        # ASSERT
        self.assertEqual(ProvedorAutenticacaoLocal(request_maria).sessao_atual(), usuario)
        self.assertIsNone(ProvedorAutenticacaoLocal(request_anonimo).sessao_atual())
        self.assertIsNone(ProvedorAutenticacaoLocal().sessao_atual())

    def test_sair_limpa_a_sessao_http(self):
        request = self.requisicao_com_sessao()
        ProvedorAutenticacaoLocal(request).cadastrar('Maria', 'maria@grafica.com', 'segredo1')

        ProvedorAutenticacaoLocal(request).sair()

        self.assertIsNone(ProvedorAutenticacaoLocal(request).sessao_atual())


# ====================================================================
# COMANDOS DE GERENCIAMENTO
# ====================================================================

class LoadInitialDataTestCase(TestCase):

    def test_carrega_materiais_uma_unica_vez(self):
        user = User.objects.create_user(username='maria@grafica.com', email='maria@grafica.com')

        call_command('load_initial_data', 'maria@grafica.com', stdout=StringIO())
        quantidade = MaterialModel.objects.filter(usuario=user).count()
        call_command('load_initial_data', 'maria@grafica.com', stdout=StringIO())

        self.assertGreater(quantidade, 0)
        self.assertEqual(MaterialModel.objects.filter(usuario=user).count(), quantidade)

    def test_wait_for_db(self):
        saida = StringIO()
        call_command('wait_for_db', stdout=saida)
        self.assertIn('Banco de dados disponível!', saida.getvalue())
