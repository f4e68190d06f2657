import json
import logging
from typing import Callable, List, Optional

from django.conf import settings
from django.contrib.auth import authenticate, get_user_model, login, logout
from django.contrib.auth.hashers import check_password, make_password
from django.core.cache import caches
from django.db import IntegrityError, transaction

from graficapro.core.entities import Usuario
from graficapro.core.exceptions import (
    CredenciaisInvalidasError,
    DadosInvalidosError,
    IdentidadeDuplicadaError,
    LimiteTentativasError,
)
from graficapro.core.ports import IProvedorAutenticacao

from .mappers import UsuarioMapper, get_model

logger = logging.getLogger(__name__)


# ====================================================================
# GATEWAYS: Provedores de identidade que abrem e encerram sessões.
# ====================================================================

class ProvedorAutenticacaoBase(IProvedorAutenticacao):
    """
    Comportamento comum aos provedores: ouvintes de mudança de sessão,
    validação do cadastro e limite de tentativas de login por e-mail.
    A sessão HTTP, quando existe, é a da requisição recebida.
    """

    def __init__(self, request=None, alias_cache: str = 'default'):
        self.request = request
        self.alias_cache = alias_cache
        self._ouvintes: List[Callable[[Optional[Usuario]], None]] = []

    @property
    def cache(self):
        return caches[self.alias_cache]

    @property
    def sessao_http(self):
        if self.request is None:
            return None
        return getattr(self.request, 'session', None)

    def ao_mudar_sessao(self, callback: Callable[[Optional[Usuario]], None]):
        self._ouvintes.append(callback)

    def _notificar(self, usuario: Optional[Usuario]):
        for callback in list(self._ouvintes):
            callback(usuario)

    @staticmethod
    def _normalizar_email(email: str) -> str:
        return (email or '').strip().lower()

    @staticmethod
    def _validar_cadastro(nome: str, email: str, senha: str):
        if not (nome or '').strip():
            raise DadosInvalidosError("O nome é obrigatório.")
        if '@' not in email:
            raise DadosInvalidosError("Informe um e-mail válido.")
        if not senha:
            raise DadosInvalidosError("A senha é obrigatória.")

    # --- Limite de tentativas ---

    def _chave_tentativas(self, email: str) -> str:
        return f"graficapro:tentativas:{email}"

    def _verificar_limite(self, email: str):
        limite = getattr(settings, 'GRAFICAPRO_LIMITE_TENTATIVAS', 5)
        if self.cache.get(self._chave_tentativas(email), 0) >= limite:
            logger.warning("Limite de tentativas atingido para %s", email)
            raise LimiteTentativasError()

    def _registrar_falha(self, email: str):
        janela = getattr(settings, 'GRAFICAPRO_JANELA_TENTATIVAS', 300)
        chave = self._chave_tentativas(email)
        self.cache.add(chave, 0, timeout=janela)
        try:
            self.cache.incr(chave)
        except ValueError:
            # A chave expirou entre o add e o incr.
            self.cache.set(chave, 1, timeout=janela)

    def _limpar_falhas(self, email: str):
        self.cache.delete(self._chave_tentativas(email))


class ProvedorAutenticacaoDjango(ProvedorAutenticacaoBase):
    """
    Identidade pelo django.contrib.auth: o e-mail é o username e o nome fica
    em first_name. Quando há uma requisição HTTP com sessão, o login e o
    logout também são aplicados a ela.
    """

    def __init__(self, request=None, alias_cache: str = 'default'):
        super().__init__(request, alias_cache)
        self.usuario_model = None

    def sessao_atual(self) -> Optional[Usuario]:
        user = getattr(self.request, 'user', None)
        if user is None or not user.is_authenticated:
            return None
        self.usuario_model = user
        return UsuarioMapper.to_entity(user)

    def cadastrar(self, nome: str, email: str, senha: str) -> Usuario:
        email = self._normalizar_email(email)
        self._validar_cadastro(nome, email, senha)
        self._verificar_limite(email)

        User = get_user_model()
        PerfilUsuario = get_model('infrastructure', 'PerfilUsuario')
        if User.objects.filter(username__iexact=email).exists():
            self._registrar_falha(email)
            raise IdentidadeDuplicadaError()
        try:
            with transaction.atomic():
                user = User.objects.create_user(
                    username=email, email=email, password=senha, first_name=nome.strip()
                )
                PerfilUsuario.objects.create(usuario=user, provedor='email')
        except IntegrityError as erro:
            raise IdentidadeDuplicadaError() from erro

        logger.info("Novo usuário cadastrado: %s", user.pk)
        return self._abrir(user)

    def entrar(self, email: str, senha: str) -> Usuario:
        email = self._normalizar_email(email)
        self._verificar_limite(email)
        user = authenticate(self.request, username=email, password=senha)
        if user is None:
            self._registrar_falha(email)
            raise CredenciaisInvalidasError()
        self._limpar_falhas(email)
        return self._abrir(user)

    def _abrir(self, user) -> Usuario:
        self.usuario_model = user
        if self.sessao_http is not None:
            login(self.request, user, backend='django.contrib.auth.backends.ModelBackend')
        usuario = UsuarioMapper.to_entity(user)
        self._notificar(usuario)
        return usuario

    def sair(self):
        if self.sessao_http is not None:
            logout(self.request)
        self.usuario_model = None
        self._notificar(None)


class ProvedorAutenticacaoLocal(ProvedorAutenticacaoBase):
    """
    Modo local: a lista de usuários é um JSON no cache, com as senhas em hash.
    O usuário conectado fica na sessão HTTP de quem fez o login; sem
    requisição (comandos, testes), apenas nesta instância.
    """
    CHAVE_USUARIOS = 'graficapro:usuarios'
    CHAVE_SESSAO = 'graficapro_usuario_local'

    def __init__(self, request=None, alias_cache: str = 'default'):
        super().__init__(request, alias_cache)
        self._atual: Optional[dict] = None

    def _usuarios(self) -> List[dict]:
        bruto = self.cache.get(self.CHAVE_USUARIOS)
        return json.loads(bruto) if bruto else []

    @staticmethod
    def _publico(dados: dict) -> Usuario:
        usuario = UsuarioMapper.from_dict(dados)
        usuario.senha = None
        return usuario

    def sessao_atual(self) -> Optional[Usuario]:
        sessao = self.sessao_http
        dados = sessao.get(self.CHAVE_SESSAO) if sessao is not None else self._atual
        return self._publico(dados) if dados else None

    def cadastrar(self, nome: str, email: str, senha: str) -> Usuario:
        email = self._normalizar_email(email)
        self._validar_cadastro(nome, email, senha)
        self._verificar_limite(email)

        usuarios = self._usuarios()
        if any(u['email'] == email for u in usuarios):
            self._registrar_falha(email)
            raise IdentidadeDuplicadaError()
        novo = Usuario(nome=nome.strip(), email=email, senha=make_password(senha), provedor='email')
        usuarios.append(UsuarioMapper.to_dict(novo))
        self.cache.set(self.CHAVE_USUARIOS, json.dumps(usuarios), timeout=None)
        logger.info("Novo usuário local cadastrado: %s", novo.id)
        return self._abrir(UsuarioMapper.to_dict(novo))

    def entrar(self, email: str, senha: str) -> Usuario:
        email = self._normalizar_email(email)
        self._verificar_limite(email)
        for dados in self._usuarios():
            if dados['email'] == email and check_password(senha, dados.get('senha')):
                self._limpar_falhas(email)
                return self._abrir(dados)
        self._registrar_falha(email)
        raise CredenciaisInvalidasError()

    def _abrir(self, dados: dict) -> Usuario:
        usuario = self._publico(dados)
        publico = UsuarioMapper.to_dict(usuario)
        sessao = self.sessao_http
        if sessao is not None:
            sessao.cycle_key()
            sessao[self.CHAVE_SESSAO] = publico
        else:
            self._atual = publico
        self._notificar(usuario)
        return usuario

    def sair(self):
        sessao = self.sessao_http
        if sessao is not None:
            sessao.flush()
        self._atual = None
        self._notificar(None)
