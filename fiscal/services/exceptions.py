# fiscal/services/exceptions.py

# Códigos de erro do domínio
ERR_SERIE_NAO_ENCONTRADA = "FISCAL_4200"
ERR_CLIENTE_NAO_ENCONTRADO = "FISCAL_4201"
ERR_VALIDACAO = "FISCAL_4202"
ERR_DOCUMENTO_NAO_ENCONTRADO = "FISCAL_4203"
ERR_CONFLITO_CONCORRENCIA = "FISCAL_4090"
ERR_SERIE_BLOQUEADA = "FISCAL_4091"
ERR_DOCUMENTO_IMUTAVEL = "FISCAL_4092"
ERR_ESTADO_INVALIDO = "FISCAL_4093"
ERR_FALHA_PERSISTENCIA = "FISCAL_5030"


class EmissaoError(Exception):
    """
    Erro genérico do domínio fiscal.
    Base para erros específicos; cada subclasse fixa o seu código.
    """

    code = "FISCAL_4000"

    def __init__(self, mensagem: str, **contexto):
        self.mensagem = mensagem
        self.contexto = contexto
        super().__init__(mensagem)

    def as_dict(self) -> dict:
        return {"code": self.code, "message": self.mensagem}


class SerieNaoEncontrada(EmissaoError):
    """
    Nenhuma série ativa corresponde ao pedido. Fatal, sem nova tentativa.
    """

    code = ERR_SERIE_NAO_ENCONTRADA


class ClienteNaoEncontrado(EmissaoError):
    code = ERR_CLIENTE_NAO_ENCONTRADO


class DocumentoNaoEncontrado(EmissaoError):
    code = ERR_DOCUMENTO_NAO_ENCONTRADO


class ValidacaoFalhou(EmissaoError):
    """
    Conteúdo do documento malformado (linhas, totais, datas, referência de retificação).
    """

    code = ERR_VALIDACAO

    def __init__(self, mensagem: str, erros: dict | None = None, **contexto):
        self.erros = erros or {}
        super().__init__(mensagem, **contexto)

    def as_dict(self) -> dict:
        payload = super().as_dict()
        if self.erros:
            payload["errors"] = self.erros
        return payload


class ConflitoConcorrencia(EmissaoError):
    """
    Outra emissão escreveu na mesma série entre a leitura e a escrita do cursor.
    Transitório: repete-se todo o bloco alocação+hash+persistência.
    """

    code = ERR_CONFLITO_CONCORRENCIA


class FalhaPersistencia(EmissaoError):
    """
    A transação não pôde ser confirmada por razões de infraestrutura.
    """

    code = ERR_FALHA_PERSISTENCIA


class SerieBloqueada(EmissaoError):
    """
    Alteração estrutural (eliminar, renumerar, mudar prefixo/ano/tipo)
    numa série que já tem documentos emitidos.
    """

    code = ERR_SERIE_BLOQUEADA


class DocumentoImutavel(EmissaoError):
    code = ERR_DOCUMENTO_IMUTAVEL


class EstadoDocumentoInvalido(EmissaoError):
    code = ERR_ESTADO_INVALIDO
