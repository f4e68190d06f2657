import logging

from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView, exception_handler
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.settings import api_settings as jwt_settings
from rest_framework_simplejwt.tokens import RefreshToken

from graficapro.core import derivacoes
from graficapro.core.dependency_injection import get_gerenciador_sessao
from graficapro.core.entities import StatusPedido, TipoEntidade
from graficapro.core.exceptions import (
    ArquivamentoNaoPermitidoError,
    BaseErroCore,
    ConversaoParcialError,
    CredenciaisInvalidasError,
    DadosInvalidosError,
    ErroLotePersistencia,
    IdentidadeDuplicadaError,
    ItemNaoEncontradoError,
    LimiteTentativasError,
    OrcamentoNaoConvertivelError,
    PermissaoNegadaError,
    SessaoInativaError,
    TabelaAusenteError,
    mensagem_usuario,
)

from .serializers import (
    CadastroSerializer,
    DesignerSerializer,
    EstatisticasSerializer,
    LoginSerializer,
    MaterialSerializer,
    OrcamentoSerializer,
    PedidoSerializer,
    ResumoFinanceiroSerializer,
    SairSerializer,
    StatusOrcamentoSerializer,
    StatusPedidoSerializer,
    UsuarioSerializer,
)

logger = logging.getLogger(__name__)


# ====================================================================
# TRATAMENTO DE ERROS: taxonomia da Core -> HTTP
# ====================================================================

STATUS_POR_ERRO = [
    (SessaoInativaError, status.HTTP_401_UNAUTHORIZED),
    (CredenciaisInvalidasError, status.HTTP_401_UNAUTHORIZED),
    (DadosInvalidosError, status.HTTP_400_BAD_REQUEST),
    (ItemNaoEncontradoError, status.HTTP_404_NOT_FOUND),
    (PermissaoNegadaError, status.HTTP_403_FORBIDDEN),
    (TabelaAusenteError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (LimiteTentativasError, status.HTTP_429_TOO_MANY_REQUESTS),
    (IdentidadeDuplicadaError, status.HTTP_409_CONFLICT),
    (OrcamentoNaoConvertivelError, status.HTTP_409_CONFLICT),
    (ArquivamentoNaoPermitidoError, status.HTTP_409_CONFLICT),
    (ConversaoParcialError, status.HTTP_207_MULTI_STATUS),
]


def status_http(erro: BaseErroCore) -> int:
    if isinstance(erro, ErroLotePersistencia):
        erro = erro.causa
    for classe, codigo in STATUS_POR_ERRO:
        if isinstance(erro, classe):
            return codigo
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def tratar_erro_core(exc, context):
    """
    EXCEPTION_HANDLER do DRF: erros da Core viram uma resposta com a mensagem
    para o usuário; o restante segue o tratamento padrão do DRF.
    """
    if not isinstance(exc, BaseErroCore):
        return exception_handler(exc, context)

    codigo = status_http(exc)
    corpo = {'erro': type(exc).__name__, 'mensagem': mensagem_usuario(exc)}
    if isinstance(exc, ConversaoParcialError):
        corpo['pedido'] = PedidoSerializer(exc.pedido).data
    if codigo >= 500:
        logger.error("Erro na API: %s (%s)", exc, type(exc).__name__)
    return Response(corpo, status=codigo)


# ====================================================================
# BASE: cada requisição abre uma sessão para o usuário autenticado
# ====================================================================

class SessaoAPIView(APIView):
    """
    Abre um GerenciadorSessao para o usuário da requisição e recarrega as
    coleções dele. Sem usuário, responde com SessaoInativaError (401).
    """
    permission_classes = [AllowAny]

    def initial(self, request, *args, **kwargs):
        super().initial(request, *args, **kwargs)
        self.sessao = get_gerenciador_sessao(request)
        if self.sessao.restaurar() is None:
            raise SessaoInativaError()

    def get_serializer_context(self):
        return {'request': self.request, 'sessao': self.sessao}


class ColecaoAPIView(SessaoAPIView):
    """Listagem e criação genéricas de uma coleção."""
    tipo: TipoEntidade = None
    serializer_class = None

    def listar(self, request):
        return self.sessao.armazem[self.tipo].listar()

    def get(self, request):
        serializer = self.serializer_class(
            self.listar(request), many=True, context=self.get_serializer_context()
        )
        return Response(serializer.data)

    def post(self, request):
        serializer = self.serializer_class(data=request.data, context=self.get_serializer_context())
        serializer.is_valid(raise_exception=True)
        entidade = self.sessao.sincronizacao.criar(self.tipo, serializer.to_entity())
        return Response(
            self.serializer_class(entidade, context=self.get_serializer_context()).data,
            status=status.HTTP_201_CREATED,
        )


class DetalheAPIView(SessaoAPIView):
    """Consulta, atualização (parcial) e exclusão genéricas de uma entidade."""
    tipo: TipoEntidade = None
    serializer_class = None

    def get(self, request, pk):
        entidade = self.sessao.sincronizacao.buscar(self.tipo, pk)
        return Response(self.serializer_class(entidade, context=self.get_serializer_context()).data)

    def put(self, request, pk):
        atual = self.sessao.sincronizacao.buscar(self.tipo, pk)
        serializer = self.serializer_class(data=request.data, partial=True, context=self.get_serializer_context())
        serializer.is_valid(raise_exception=True)
        entidade = self.sessao.sincronizacao.sincronizar(self.tipo, serializer.to_entity(base=atual))
        return Response(self.serializer_class(entidade, context=self.get_serializer_context()).data)

    patch = put

    def delete(self, request, pk):
        self.sessao.sincronizacao.buscar(self.tipo, pk)
        self.sessao.sincronizacao.excluir(self.tipo, pk)
        return Response(status=status.HTTP_204_NO_CONTENT)


# ====================================================================
# AUTENTICAÇÃO
# ====================================================================

def _resposta_autenticacao(sessao, usuario, codigo):
    corpo = {'usuario': UsuarioSerializer(usuario).data}
    user = getattr(sessao.provedor, 'usuario_model', None)
    if user is not None:
        refresh = RefreshToken.for_user(user)
        corpo['refresh'] = str(refresh)
        corpo['access'] = str(refresh.access_token)
    return Response(corpo, status=codigo)


class CadastroAPIView(APIView):
    """Cria a conta e já devolve os tokens JWT da nova sessão."""
    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = CadastroSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        sessao = get_gerenciador_sessao(request)
        usuario = sessao.cadastrar(
            serializer.validated_data['nome'],
            serializer.validated_data['email'],
            serializer.validated_data['senha'],
        )
        return _resposta_autenticacao(sessao, usuario, status.HTTP_201_CREATED)


class TokenAPIView(APIView):
    """Login por e-mail e senha; devolve o usuário e o par de tokens JWT."""
    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        sessao = get_gerenciador_sessao(request)
        usuario = sessao.entrar(serializer.validated_data['email'], serializer.validated_data['senha'])
        return _resposta_autenticacao(sessao, usuario, status.HTTP_200_OK)


class UsuarioAtualAPIView(SessaoAPIView):
    def get(self, request):
        return Response(UsuarioSerializer(self.sessao.usuario).data)


class SairAPIView(SessaoAPIView):
    """
    Encerra a sessão. Clientes JWT enviam o `refresh`, que vai para a
    blacklist; o access token em uso expira sozinho.
    """

    def post(self, request):
        serializer = SairSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        refresh = serializer.validated_data.get('refresh')
        if refresh:
            self._revogar(refresh)
        elif request.auth is not None:
            raise DadosInvalidosError("Envie o refresh token para encerrar a sessão.")
        self.sessao.sair()
        return Response(status=status.HTTP_204_NO_CONTENT)

    def _revogar(self, refresh: str):
        try:
            token = RefreshToken(refresh)
        except TokenError as erro:
            raise DadosInvalidosError("Refresh token inválido ou expirado.") from erro
        if str(token.get(jwt_settings.USER_ID_CLAIM)) != str(self.sessao.usuario.id):
            raise PermissaoNegadaError()
        token.blacklist()
        logger.info("Refresh token revogado para o usuário %s", self.sessao.usuario.id)


# ====================================================================
# PAINEL E FINANCEIRO
# ====================================================================

class DashboardAPIView(SessaoAPIView):
    """Estatísticas dos pedidos ativos e os cinco pedidos ativos mais recentes."""

    def get(self, request):
        recentes = derivacoes.pedidos_recentes(self.sessao.pedidos)
        return Response({
            'estatisticas': EstatisticasSerializer(self.sessao.estatisticas()).data,
            'pedidos_recentes': PedidoSerializer(
                recentes, many=True, context=self.get_serializer_context()
            ).data,
        })


class FinanceiroAPIView(SessaoAPIView):
    """Resumo financeiro; `?incluir_arquivados=false` restringe aos pedidos ativos."""

    def get(self, request):
        incluir = request.query_params.get('incluir_arquivados', 'true').lower() != 'false'
        resumo = self.sessao.resumo_financeiro(incluir_arquivados=incluir)
        return Response(ResumoFinanceiroSerializer(resumo).data)


# ====================================================================
# PEDIDOS
# ====================================================================

class PedidoListAPIView(ColecaoAPIView):
    """
    Lista filtrada pela aba (`ativos`/`arquivados`), pela busca em cliente ou
    material e pelo status; cria pedidos.
    """
    tipo = TipoEntidade.PEDIDO
    serializer_class = PedidoSerializer

    def listar(self, request):
        status_filtro = request.query_params.get('status')
        if status_filtro:
            try:
                status_filtro = StatusPedido(status_filtro)
            except ValueError:
                raise DadosInvalidosError(f"O status '{status_filtro}' não é um status de pedido válido.")
        return derivacoes.filtrar_pedidos(
            self.sessao.pedidos,
            aba=request.query_params.get('aba', derivacoes.ABA_ATIVOS),
            busca=request.query_params.get('busca'),
            status=status_filtro or None,
        )

    def get(self, request):
        resposta = super().get(request)
        return Response({
            'pedidos': resposta.data,
            'contagem': derivacoes.contagem_pedidos(self.sessao.pedidos),
        })


class PedidoDetailAPIView(DetalheAPIView):
    tipo = TipoEntidade.PEDIDO
    serializer_class = PedidoSerializer


class PedidoStatusAPIView(SessaoAPIView):
    def post(self, request, pk):
        serializer = StatusPedidoSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        pedido = self.sessao.sincronizacao.atualizar_status_pedido(pk, serializer.validated_data['status'])
        return Response(PedidoSerializer(pedido, context=self.get_serializer_context()).data)


class PedidoArquivarAPIView(SessaoAPIView):
    def post(self, request, pk):
        pedido = self.sessao.sincronizacao.arquivar_pedido(pk)
        return Response(PedidoSerializer(pedido, context=self.get_serializer_context()).data)


class PedidoRestaurarAPIView(SessaoAPIView):
    def post(self, request, pk):
        pedido = self.sessao.sincronizacao.restaurar_pedido(pk)
        return Response(PedidoSerializer(pedido, context=self.get_serializer_context()).data)


class ArquivarEntreguesAPIView(SessaoAPIView):
    """Arquiva de uma vez todos os pedidos entregues que ainda estão ativos."""

    def post(self, request):
        arquivados = self.sessao.sincronizacao.arquivar_entregues()
        return Response({
            'arquivados': len(arquivados),
            'pedidos': PedidoSerializer(arquivados, many=True, context=self.get_serializer_context()).data,
        })


# ====================================================================
# ORÇAMENTOS
# ====================================================================

class OrcamentoListAPIView(ColecaoAPIView):
    tipo = TipoEntidade.ORCAMENTO
    serializer_class = OrcamentoSerializer


class OrcamentoDetailAPIView(DetalheAPIView):
    tipo = TipoEntidade.ORCAMENTO
    serializer_class = OrcamentoSerializer


class OrcamentoStatusAPIView(SessaoAPIView):
    def post(self, request, pk):
        serializer = StatusOrcamentoSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        orcamento = self.sessao.sincronizacao.atualizar_status_orcamento(pk, serializer.validated_data['status'])
        return Response(OrcamentoSerializer(orcamento).data)


class ConverterOrcamentoAPIView(SessaoAPIView):
    """Gera um pedido a partir do orçamento e marca o orçamento como aprovado."""

    def post(self, request, pk):
        pedido = self.sessao.conversao.executar(pk)
        return Response(
            PedidoSerializer(pedido, context=self.get_serializer_context()).data,
            status=status.HTTP_201_CREATED,
        )


class WhatsappOrcamentoAPIView(SessaoAPIView):
    def get(self, request, pk):
        orcamento = self.sessao.sincronizacao.buscar(TipoEntidade.ORCAMENTO, pk)
        return Response({
            'mensagem': derivacoes.mensagem_whatsapp_orcamento(orcamento),
            'link': derivacoes.link_whatsapp(orcamento),
        })


# ====================================================================
# MATERIAIS E DESIGNERS
# ====================================================================

class MaterialListAPIView(ColecaoAPIView):
    tipo = TipoEntidade.MATERIAL
    serializer_class = MaterialSerializer


class MaterialDetailAPIView(DetalheAPIView):
    tipo = TipoEntidade.MATERIAL
    serializer_class = MaterialSerializer


class DesignerListAPIView(ColecaoAPIView):
    tipo = TipoEntidade.DESIGNER
    serializer_class = DesignerSerializer


class DesignerDetailAPIView(DetalheAPIView):
    tipo = TipoEntidade.DESIGNER
    serializer_class = DesignerSerializer
