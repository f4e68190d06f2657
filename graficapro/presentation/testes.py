import json
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core.cache import caches
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APIClient

from graficapro.core.entities import TipoEntidade
from graficapro.core.exceptions import (
    ConversaoParcialError, ErroLotePersistencia, ErroPersistenciaGenerico, PermissaoNegadaError,
    TabelaAusenteError,
)
from graficapro.infrastructure.models import Material as MaterialModel, Pedido as PedidoModel
from graficapro.infrastructure.repositories import PersistenciaDjango
from graficapro.presentation.views import status_http

User = get_user_model()


class ApiTestCase(TestCase):
    """Base: um usuário autenticado via force_authenticate."""

    def setUp(self):
        caches['default'].clear()
        self.user = User.objects.create_user(
            username='maria@grafica.com', email='maria@grafica.com', password='segredo1', first_name='Maria'
        )
        self.client = APIClient()
        self.client.force_authenticate(user=self.user)

    def criar_pedido(self, **campos):
        dados = {'nome_cliente': 'Padaria Central', 'tipo_material': 'Panfleto', 'quantidade': 500}
        dados.update(campos)
        resposta = self.client.post('/api/pedidos/', dados, format='json')
        self.assertEqual(resposta.status_code, status.HTTP_201_CREATED, resposta.data)
        return resposta.data


# ====================================================================
# AUTENTICAÇÃO
# ====================================================================

class AutenticacaoApiTestCase(TestCase):

    def setUp(self):
        caches['default'].clear()
        self.client = APIClient()

    def test_sem_sessao_responde_401(self):
        resposta = self.client.get('/api/pedidos/')
        self.assertEqual(resposta.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(resposta.data['erro'], 'SessaoInativaError')
        self.assertIn('login', resposta.data['mensagem'])

    def test_cadastro_login_e_uso_do_token(self):
        """
        Cenário: Cadastrar, obter o token JWT por login e usá-lo nas rotas protegidas.
        """
        resposta = self.client.post('/api/auth/cadastro/', {
            'nome': 'Maria', 'email': 'maria@grafica.com', 'senha': 'segredo1',
        }, format='json')
        self.assertEqual(resposta.status_code, status.HTTP_201_CREATED)
        self.assertIn('access', resposta.data)

        resposta = self.client.post('/api/auth/token/', {
            'email': 'maria@grafica.com', 'senha': 'segredo1',
        }, format='json')
        self.assertEqual(resposta.status_code, status.HTTP_200_OK)

        cliente_jwt = APIClient()
        cliente_jwt.credentials(HTTP_AUTHORIZATION=f"Bearer {resposta.data['access']}")
        resposta = cliente_jwt.get('/api/auth/usuario/')
        self.assertEqual(resposta.status_code, status.HTTP_200_OK)
        self.assertEqual(resposta.data['nome'], 'Maria')

        resposta = self.client.post('/api/auth/token/refresh/', {
            'refresh': self.client.post('/api/auth/token/', {
                'email': 'maria@grafica.com', 'senha': 'segredo1',
            }, format='json').data['refresh'],
        }, format='json')
        self.assertEqual(resposta.status_code, status.HTTP_200_OK)

    def test_cadastro_duplicado_responde_409(self):
        dados = {'nome': 'Maria', 'email': 'maria@grafica.com', 'senha': 'segredo1'}
        self.client.post('/api/auth/cadastro/', dados, format='json')
        resposta = APIClient().post('/api/auth/cadastro/', dados, format='json')
        self.assertEqual(resposta.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resposta.data['mensagem'], 'Este e-mail já está cadastrado.')

    def test_senha_errada_responde_401(self):
        User.objects.create_user(username='maria@grafica.com', password='segredo1')
        resposta = self.client.post('/api/auth/token/', {
            'email': 'maria@grafica.com', 'senha': 'errada',
        }, format='json')
        self.assertEqual(resposta.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(resposta.data['mensagem'], 'E-mail ou senha incorretos.')

    @override_settings(GRAFICAPRO_LIMITE_TENTATIVAS=2)
    def test_excesso_de_tentativas_responde_429(self):
        User.objects.create_user(username='maria@grafica.com', password='segredo1')
        for _ in range(2):
            self.client.post('/api/auth/token/', {'email': 'maria@grafica.com', 'senha': 'x'}, format='json')
        resposta = self.client.post('/api/auth/token/', {
            'email': 'maria@grafica.com', 'senha': 'segredo1',
        }, format='json')
        self.assertEqual(resposta.status_code, status.HTTP_429_TOO_MANY_REQUESTS)

    def test_sair(self):
        user = User.objects.create_user(username='maria@grafica.com', password='segredo1')
        self.client.force_authenticate(user=user)
        resposta = self.client.post('/api/auth/sair/')
        self.assertEqual(resposta.status_code, status.HTTP_204_NO_CONTENT)

    def cadastrar_com_tokens(self, email='maria@grafica.com'):
        resposta = APIClient().post('/api/auth/cadastro/', {
            'nome': 'Maria', 'email': email, 'senha': 'segredo1',
        }, format='json')
        self.assertEqual(resposta.status_code, status.HTTP_201_CREATED)
        return resposta.data['access'], resposta.data['refresh']

    def test_sair_revoga_o_refresh_token(self):
        """
        Cenário: Depois do logout o refresh token não gera novos access tokens.
        """
        # ARRANGE
        access, refresh = self.cadastrar_com_tokens()
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {access}')

        # ACT
        resposta = self.client.post('/api/auth/sair/', {'refresh': refresh}, format='json')

        # ASSERT
        self.assertEqual(resposta.status_code, status.HTTP_204_NO_CONTENT)
        resposta = APIClient().post('/api/auth/token/refresh/', {'refresh': refresh}, format='json')
        self.assertEqual(resposta.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_sair_com_jwt_exige_o_refresh_token(self):
        access, refresh = self.cadastrar_com_tokens()
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {access}')

        resposta = self.client.post('/api/auth/sair/')

        self.assertEqual(resposta.status_code, status.HTTP_400_BAD_REQUEST)
        resposta = APIClient().post('/api/auth/token/refresh/', {'refresh': refresh}, format='json')
        self.assertEqual(resposta.status_code, status.HTTP_200_OK)

    def test_sair_com_refresh_de_outro_usuario_responde_403(self):
        access, _ = self.cadastrar_com_tokens()
        _, refresh_joao = self.cadastrar_com_tokens('joao@grafica.com')
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {access}')

        resposta = self.client.post('/api/auth/sair/', {'refresh': refresh_joao}, format='json')

        self.assertEqual(resposta.status_code, status.HTTP_403_FORBIDDEN)
        resposta = APIClient().post('/api/auth/token/refresh/', {'refresh': refresh_joao}, format='json')
        self.assertEqual(resposta.status_code, status.HTTP_200_OK)


# ====================================================================
# PEDIDOS
# ====================================================================

class PedidoApiTestCase(ApiTestCase):

    def test_criar_e_listar(self):
        pedido = self.criar_pedido(valor_entrada='50.00', valor_restante='70.00')

        self.assertEqual(pedido['status'], 'Pendente')
        self.assertEqual(pedido['valor_total'], '120.00')
        self.assertEqual(pedido['designer'], 'Sem responsável')
        self.assertFalse(pedido['arquivado'])

        resposta = self.client.get('/api/pedidos/')
        self.assertEqual([p['id'] for p in resposta.data['pedidos']], [pedido['id']])
        self.assertEqual(resposta.data['contagem'], {'entregues_ativos': 0, 'arquivados': 0})
        self.assertTrue(PedidoModel.objects.filter(pk=pedido['id'], usuario=self.user).exists())

    def test_dados_invalidos_responde_400(self):
        resposta = self.client.post('/api/pedidos/', {'tipo_material': 'Banner'}, format='json')
        self.assertEqual(resposta.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('nome_cliente', resposta.data)
        self.assertEqual(PedidoModel.objects.count(), 0)

    def test_atualizar_consultar_e_excluir(self):
        pedido = self.criar_pedido()
        url = f"/api/pedidos/{pedido['id']}/"

        resposta = self.client.put(url, {'cor': 'CMYK', 'medidas': 'A5'}, format='json')
        self.assertEqual(resposta.status_code, status.HTTP_200_OK)
        self.assertEqual(resposta.data['cor'], 'CMYK')
        self.assertEqual(resposta.data['nome_cliente'], 'Padaria Central')

        self.assertEqual(self.client.get(url).data['medidas'], 'A5')
        self.assertEqual(self.client.delete(url).status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(self.client.get(url).status_code, status.HTTP_404_NOT_FOUND)

    def test_fluxo_de_status_e_arquivamento(self):
        """
        Cenário: Só o pedido entregue pode ser arquivado; depois pode ser restaurado.
        """
        pedido = self.criar_pedido()
        base = f"/api/pedidos/{pedido['id']}"

        resposta = self.client.post(f'{base}/arquivar/')
        self.assertEqual(resposta.status_code, status.HTTP_409_CONFLICT)

        resposta = self.client.post(f'{base}/status/', {'status': 'Entregue'}, format='json')
        self.assertEqual(resposta.data['status'], 'Entregue')

        resposta = self.client.post(f'{base}/arquivar/')
        self.assertEqual(resposta.status_code, status.HTTP_200_OK)
        self.assertTrue(resposta.data['arquivado'])

        arquivados = self.client.get('/api/pedidos/', {'aba': 'arquivados'}).data['pedidos']
        self.assertEqual([p['id'] for p in arquivados], [pedido['id']])

        resposta = self.client.post(f'{base}/restaurar/')
        self.assertFalse(resposta.data['arquivado'])

    def test_status_invalido_responde_400(self):
        pedido = self.criar_pedido()
        resposta = self.client.post(f"/api/pedidos/{pedido['id']}/status/", {'status': 'Cancelado'}, format='json')
        self.assertEqual(resposta.status_code, status.HTTP_400_BAD_REQUEST)

    @override_settings(GRAFICAPRO_ARQUIVAR_SOMENTE_ENTREGUES=False)
    def test_politica_de_arquivamento_desligada(self):
        pedido = self.criar_pedido()
        resposta = self.client.post(f"/api/pedidos/{pedido['id']}/arquivar/")
        self.assertEqual(resposta.status_code, status.HTTP_200_OK)

    def test_arquivar_entregues(self):
        entregue = self.criar_pedido(status='Entregue')
        self.criar_pedido()

        resposta = self.client.post('/api/pedidos/arquivar-entregues/')

        self.assertEqual(resposta.data['arquivados'], 1)
        self.assertTrue(PedidoModel.objects.get(pk=entregue['id']).arquivado)

    def test_busca_e_filtro_por_status(self):
        self.criar_pedido(nome_cliente='Oficina do Zé', tipo_material='Banner')
        self.criar_pedido(status='Em Processo')

        por_busca = self.client.get('/api/pedidos/', {'busca': 'banner'}).data['pedidos']
        por_status = self.client.get('/api/pedidos/', {'status': 'Em Processo'}).data['pedidos']

        self.assertEqual([p['nome_cliente'] for p in por_busca], ['Oficina do Zé'])
        self.assertEqual([p['status'] for p in por_status], ['Em Processo'])

    def test_designer_excluido_aparece_como_desconhecido(self):
        designer = self.client.post('/api/designers/', {'nome': 'Ana', 'especialidade': 'Vetores'},
                                    format='json').data
        pedido = self.criar_pedido(designer_id=designer['id'])
        self.assertEqual(pedido['designer'], 'Ana')

        self.client.delete(f"/api/designers/{designer['id']}/")

        resposta = self.client.get(f"/api/pedidos/{pedido['id']}/")
        self.assertEqual(resposta.status_code, status.HTTP_200_OK)
        self.assertEqual(resposta.data['designer'], 'Desconhecido')

    def test_outro_usuario_nao_ve_os_pedidos(self):
        pedido = self.criar_pedido()
        outro = User.objects.create_user(username='joao@grafica.com', password='segredo2')
        cliente = APIClient()
        cliente.force_authenticate(user=outro)

        self.assertEqual(cliente.get('/api/pedidos/').data['pedidos'], [])
        self.assertEqual(cliente.get(f"/api/pedidos/{pedido['id']}/").status_code, status.HTTP_404_NOT_FOUND)

    def test_tabela_ausente_responde_503(self):
        with patch.object(PersistenciaDjango, 'carregar_tudo', side_effect=TabelaAusenteError()):
            resposta = self.client.get('/api/dashboard/')
        self.assertEqual(resposta.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertEqual(resposta.data['mensagem'], TabelaAusenteError.mensagem_padrao)


# ====================================================================
# ORÇAMENTOS
# ====================================================================

class OrcamentoApiTestCase(ApiTestCase):

    def criar_orcamento(self):
        resposta = self.client.post('/api/orcamentos/', {
            'nome_cliente': 'Acme',
            'telefone': '(11) 9999-9000',
            'tipo_material': 'Banner',
            'medidas': '2x1m',
            'quantidade': 1,
            'valor_total': '150.00',
            'observacoes': 'Rush job',
            'email': 'compras@acme.com',
        }, format='json')
        self.assertEqual(resposta.status_code, status.HTTP_201_CREATED, resposta.data)
        return resposta.data

    def test_converter_em_pedido(self):
        """
        Cenário: A conversão cria o pedido pendente e aprova o orçamento.
        """
        orcamento = self.criar_orcamento()

        resposta = self.client.post(f"/api/orcamentos/{orcamento['id']}/converter/")

        self.assertEqual(resposta.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resposta.data['valor_entrada'], '0.00')
        self.assertEqual(resposta.data['valor_restante'], '150.00')
        self.assertEqual(resposta.data['status'], 'Pendente')
        self.assertEqual(resposta.data['informacoes_adicionais'], 'Rush job\nEmail: compras@acme.com')
        self.assertEqual(self.client.get(f"/api/orcamentos/{orcamento['id']}/").data['status'], 'Aprovado')

        resposta = self.client.post(f"/api/orcamentos/{orcamento['id']}/converter/")
        self.assertEqual(resposta.status_code, status.HTTP_409_CONFLICT)

    def test_conversao_parcial_responde_207(self):
        orcamento = self.criar_orcamento()
        salvar_original = PersistenciaDjango.salvar

        def salvar(persistencia, tipo, entidade, usuario_id):
            if tipo == TipoEntidade.ORCAMENTO:
                raise PermissaoNegadaError()
            return salvar_original(persistencia, tipo, entidade, usuario_id)

        with patch.object(PersistenciaDjango, 'salvar', salvar):
            resposta = self.client.post(f"/api/orcamentos/{orcamento['id']}/converter/")

        self.assertEqual(resposta.status_code, status.HTTP_207_MULTI_STATUS)
        self.assertEqual(resposta.data['erro'], 'ConversaoParcialError')
        self.assertTrue(PedidoModel.objects.filter(pk=resposta.data['pedido']['id']).exists())
        self.assertEqual(self.client.get(f"/api/orcamentos/{orcamento['id']}/").data['status'], 'Aguardando')

    def test_status_e_whatsapp(self):
        orcamento = self.criar_orcamento()

        resposta = self.client.post(f"/api/orcamentos/{orcamento['id']}/status/", {'status': 'Expirado'},
                                    format='json')
        self.assertEqual(resposta.data['status'], 'Expirado')

        resposta = self.client.get(f"/api/orcamentos/{orcamento['id']}/whatsapp/")
        self.assertTrue(resposta.data['link'].startswith('https://wa.me/551199999000?text='))
        self.assertIn('R$ 150,00', resposta.data['mensagem'])

    def test_excluir(self):
        orcamento = self.criar_orcamento()
        resposta = self.client.delete(f"/api/orcamentos/{orcamento['id']}/")
        self.assertEqual(resposta.status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(self.client.get('/api/orcamentos/').data, [])


# ====================================================================
# MATERIAIS, PAINEL E FINANCEIRO
# ====================================================================

class MaterialApiTestCase(ApiTestCase):

    def test_crud(self):
        resposta = self.client.post('/api/materiais/', {'nome': 'Lona 440g', 'preco_base': '65.00',
                                                        'unidade': 'm2', 'categoria': ''}, format='json')
        self.assertEqual(resposta.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resposta.data['categoria'], 'Geral')
        url = f"/api/materiais/{resposta.data['id']}/"

        resposta = self.client.put(url, {'preco_base': '70.00'}, format='json')
        self.assertEqual(resposta.data['preco_base'], '70.00')
        self.assertEqual(resposta.data['unidade'], 'm2')

        self.assertEqual(self.client.delete(url).status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(MaterialModel.objects.count(), 0)

    def test_unidade_invalida(self):
        resposta = self.client.post('/api/materiais/', {'nome': 'Lona', 'preco_base': '1', 'unidade': 'kg'},
                                    format='json')
        self.assertEqual(resposta.status_code, status.HTTP_400_BAD_REQUEST)

    @override_settings(GRAFICAPRO_PERSISTENCIA='local')
    def test_modo_local_nao_usa_o_banco(self):
        resposta = self.client.post('/api/materiais/', {'nome': 'Lona', 'preco_base': '1'}, format='json')

        self.assertEqual(resposta.status_code, status.HTTP_201_CREATED)
        self.assertEqual(MaterialModel.objects.count(), 0)
        self.assertIsNotNone(caches['default'].get(f'user:{self.user.pk}:materiais'))
        self.assertEqual(len(self.client.get('/api/materiais/').data), 1)


class PainelApiTestCase(ApiTestCase):

    def test_dashboard(self):
        self.criar_pedido(valor_entrada='100.00')
        self.criar_pedido(status='Entregue', valor_restante='40.00')
        arquivado = self.criar_pedido(status='Entregue')
        self.client.post(f"/api/pedidos/{arquivado['id']}/arquivar/")

        resposta = self.client.get('/api/dashboard/')

        estatisticas = resposta.data['estatisticas']
        self.assertEqual(estatisticas['total_pedidos'], 2)
        self.assertEqual(estatisticas['entregues'], 1)
        self.assertEqual(estatisticas['receita_total'], '140.00')
        self.assertEqual(len(resposta.data['pedidos_recentes']), 2)

    def test_financeiro(self):
        """
        Cenário: (100,0), (50,50) e (0,200) somam 400, com 37,5% recebido.
        """
        self.criar_pedido(valor_entrada='100', valor_restante='0', tipo_material='Banner')
        self.criar_pedido(valor_entrada='50', valor_restante='50', tipo_material='Adesivo')
        self.criar_pedido(valor_entrada='0', valor_restante='200', tipo_material='Banner')

        resposta = self.client.get('/api/financeiro/')

        self.assertEqual(resposta.data['total'], '400.00')
        self.assertEqual(resposta.data['recebido'], '150.00')
        self.assertEqual(resposta.data['a_receber'], '250.00')
        self.assertEqual(resposta.data['percentual_recebido'], '37.50')
        self.assertEqual(resposta.data['ranking'][0], {'material': 'Banner', 'valor': '300.00'})


class MapeamentoHttpTestCase(TestCase):

    def test_status_por_erro(self):
        self.assertEqual(status_http(PermissaoNegadaError()), status.HTTP_403_FORBIDDEN)
        self.assertEqual(status_http(ErroPersistenciaGenerico('x')), status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(
            status_http(ErroLotePersistencia(causa=TabelaAusenteError(), quantidade=1)),
            status.HTTP_503_SERVICE_UNAVAILABLE,
        )
        self.assertEqual(
            status_http(ConversaoParcialError(pedido=type('P', (), {'id': 'p1'})(), causa=Exception())),
            status.HTTP_207_MULTI_STATUS,
        )


@override_settings(GRAFICAPRO_AUTENTICACAO='local')
class ModoLocalApiTestCase(TestCase):

    def setUp(self):
        caches['default'].clear()
        self.client = APIClient()

    def test_cadastro_local_sem_tokens_e_dados_no_cache(self):
        """
        Cenário: No modo local o cadastro abre a sessão sem JWT e os dados vão para o cache.
        """
        resposta = self.client.post('/api/auth/cadastro/', {
            'nome': 'Maria', 'email': 'maria@grafica.com', 'senha': 'segredo1',
        }, format='json')
        self.assertEqual(resposta.status_code, status.HTTP_201_CREATED)
        self.assertNotIn('access', resposta.data)
        usuario_id = resposta.data['usuario']['id']

        resposta = self.client.post('/api/materiais/', {'nome': 'Lona', 'preco_base': '10'}, format='json')

        self.assertEqual(resposta.status_code, status.HTTP_201_CREATED)
        self.assertEqual(MaterialModel.objects.count(), 0)
        self.assertEqual(len(json.loads(caches['default'].get(f'user:{usuario_id}:materiais'))), 1)

        self.assertEqual(self.client.post('/api/auth/sair/').status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(self.client.get('/api/materiais/').status_code, status.HTTP_401_UNAUTHORIZED)

    def test_cliente_anonimo_nao_herda_a_sessao_local(self):
        """
        Cenário: Maria entra no modo local; outro cliente, sem cookie, continua sem sessão.
        """
        # ARRANGE
        self.client.post('/api/auth/cadastro/', {
            'nome': 'Maria', 'email': 'maria@grafica.com', 'senha': 'segredo1',
        }, format='json')
        self.client.post('/api/materiais/', {'nome': 'Lona', 'preco_base': '10'}, format='json')

        # ACT
        resposta = APIClient().get('/api/materiais/')

        # ASSERT
        self.assertEqual(resposta.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(len(self.client.get('/api/materiais/').data), 1)

    def test_login_local_abre_sessao_apenas_no_cliente(self):
        self.client.post('/api/auth/cadastro/', {
            'nome': 'Maria', 'email': 'maria@grafica.com', 'senha': 'segredo1',
        }, format='json')
        outro = APIClient()

        resposta = outro.post('/api/auth/token/', {'email': 'maria@grafica.com', 'senha': 'segredo1'}, format='json')

        self.assertEqual(resposta.status_code, status.HTTP_200_OK)
        self.assertEqual(outro.get('/api/auth/usuario/').data['email'], 'maria@grafica.com')
        self.assertEqual(APIClient().get('/api/auth/usuario/').status_code, status.HTTP_401_UNAUTHORIZED)
