class BaseErroCore(Exception):
    """Classe base para todas as exceções da Camada Core."""
    mensagem_padrao = "Ocorreu um erro inesperado. Tente novamente."

    def __init__(self, message=None):
        self.message = message or self.mensagem_padrao
        super().__init__(self.message)


class DadosInvalidosError(BaseErroCore):
    """Erro levantado quando dados inválidos são fornecidos."""
    mensagem_padrao = "Os dados fornecidos são inválidos."


class ItemNaoEncontradoError(BaseErroCore):
    """Erro levantado quando um item (genérico) não é encontrado."""
    mensagem_padrao = "O item solicitado não foi encontrado."


# ===============================================
# ERROS DE SESSÃO E AUTENTICAÇÃO
# ===============================================

class SessaoInativaError(BaseErroCore):
    """Mutação tentada sem usuário ativo; nunca chega à persistência."""
    mensagem_padrao = "Nenhum usuário conectado. Faça login para continuar."


class ErroAutenticacao(BaseErroCore):
    """Base para as rejeições do provedor de autenticação."""
    mensagem_padrao = "Não foi possível autenticar. Tente novamente."


class IdentidadeDuplicadaError(ErroAutenticacao):
    mensagem_padrao = "Este e-mail já está cadastrado."


class CredenciaisInvalidasError(ErroAutenticacao):
    mensagem_padrao = "E-mail ou senha incorretos."


class LimiteTentativasError(ErroAutenticacao):
    mensagem_padrao = "Muitas tentativas em pouco tempo. Aguarde alguns instantes e tente novamente."


# ===============================================
# ERROS DE PERSISTÊNCIA
# ===============================================

class ErroPersistencia(BaseErroCore):
    """Base para as falhas reportadas por um adaptador de persistência."""


class TabelaAusenteError(ErroPersistencia):
    """A tabela/coleção de apoio não foi provisionada."""
    mensagem_padrao = (
        "A estrutura de dados não foi encontrada no servidor. "
        "Execute as migrações do banco de dados antes de continuar."
    )


class PermissaoNegadaError(ErroPersistencia):
    """O armazenamento rejeitou a operação pelas suas regras de acesso."""
    mensagem_padrao = "Você não tem permissão para realizar esta operação."


class ErroPersistenciaGenerico(ErroPersistencia):
    """Qualquer outra falha; a mensagem é exibida como veio."""
    mensagem_padrao = "Falha ao salvar os dados. Tente novamente."


class ErroLotePersistencia(ErroPersistencia):
    """Falha agregada de uma operação em lote; nenhuma entidade foi alterada."""

    def __init__(self, causa: Exception, quantidade: int, message=None):
        self.causa = causa
        self.quantidade = quantidade
        if message is None:
            message = f"Falha ao atualizar {quantidade} registro(s) em lote: {causa}"
        super().__init__(message)


# ===============================================
# ERROS DE REGRA DE NEGÓCIO
# ===============================================

class OrcamentoNaoConvertivelError(BaseErroCore):
    mensagem_padrao = "Apenas orçamentos aguardando aprovação podem ser convertidos em pedido."


class ArquivamentoNaoPermitidoError(BaseErroCore):
    mensagem_padrao = "Apenas pedidos entregues podem ser arquivados."


class ConversaoParcialError(BaseErroCore):
    """O pedido foi criado, mas o status do orçamento não pôde ser atualizado."""

    def __init__(self, pedido, causa: Exception, message=None):
        self.pedido = pedido
        self.causa = causa
        if message is None:
            message = (f"Pedido {pedido.id} criado, mas a atualização do status do "
                       f"orçamento falhou: {causa}")
        super().__init__(message)


# ===============================================
# MENSAGENS PARA O USUÁRIO
# ===============================================

MENSAGENS_USUARIO = {
    SessaoInativaError: SessaoInativaError.mensagem_padrao,
    TabelaAusenteError: TabelaAusenteError.mensagem_padrao,
    PermissaoNegadaError: PermissaoNegadaError.mensagem_padrao,
    LimiteTentativasError: LimiteTentativasError.mensagem_padrao,
    IdentidadeDuplicadaError: IdentidadeDuplicadaError.mensagem_padrao,
    CredenciaisInvalidasError: CredenciaisInvalidasError.mensagem_padrao,
    ArquivamentoNaoPermitidoError: ArquivamentoNaoPermitidoError.mensagem_padrao,
    OrcamentoNaoConvertivelError: OrcamentoNaoConvertivelError.mensagem_padrao,
}


def mensagem_usuario(erro: Exception) -> str:
    """
    Converte qualquer erro em exatamente uma mensagem exibível.

    Erros genéricos, de validação e de conversão parcial carregam a própria
    mensagem; erros de lote exibem a mensagem da causa.
    """
    if isinstance(erro, ErroLotePersistencia):
        return mensagem_usuario(erro.causa)
    for classe, mensagem in MENSAGENS_USUARIO.items():
        if isinstance(erro, classe):
            return mensagem
    if isinstance(erro, BaseErroCore):
        return erro.message
    return BaseErroCore.mensagem_padrao
