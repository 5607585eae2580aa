"""
Parser for the PROJUDI case result page.

Extracts case metadata, parties and movements from the HTML returned by
ProjudiBrowserAdapter.submit_captcha(). Every field has its own extractor
with an ordered list of selectors; a field that cannot be found is left
as None instead of aborting the whole extraction.
"""
import logging
import re
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup, Tag

from projudi_scraper.domain.projudi_entities import (
    Movimentacao,
    ParteExtraida,
    ProcessoExtraido,
)
from projudi_scraper.domain.projudi_errors import (
    CaptchaRejectedError,
    CaseNotFoundError,
    ParseError,
)

logger = logging.getLogger(__name__)

MAX_MOVIMENTACOES = 10
MAX_DESCRICAO = 500

FRASES_CAPTCHA_INVALIDO = (
    "captcha inválido",
    "captcha invalido",
    "código de segurança incorreto",
    "codigo de seguranca incorreto",
)

FRASES_PROCESSO_NAO_ENCONTRADO = (
    "processo não encontrado",
    "processo nao encontrado",
    "nenhum processo encontrado",
)

# field -> (selectors in priority order, label prefix to strip)
CAMPOS: Dict[str, Tuple[Tuple[str, ...], Optional[str]]] = {
    "numero": ((".processo-numero", ".numero-processo", "#numeroProcesso"), None),
    "comarca": ((".comarca", ".processo-comarca"), "Comarca:"),
    "vara": ((".vara", ".processo-vara"), "Vara:"),
    "foro": ((".foro", ".processo-foro"), "Foro:"),
    "status": ((".status", ".processo-status", ".situacao"), "Status:"),
    "data_distribuicao": ((".data-distribuicao", ".distribuicao"), None),
    "data_autuacao": ((".data-autuacao", ".autuacao"), None),
    "valor_causa": ((".valor-causa", ".valorCausa"), "Valor da Causa:"),
    "assunto": ((".assunto", ".processo-assunto"), "Assunto:"),
    "objeto_acao": ((".objeto-acao", ".objetoAcao", ".classe-processual"), None),
    "area": ((".area", ".competencia", ".area-juridica"), "Área:"),
}

SELETORES_PARTES = ".parte, .parte-processual, tr[class*='parte']"
SELETORES_MOVIMENTACOES = (
    ".movimentacao, .processo-movimentacao, tr[class*='movimentacao']"
)

_DATA_PATTERN = re.compile(r"\d{2}/\d{2}/\d{4}")
_ESPACOS = re.compile(r"\s+")
_ESTILO_OCULTO = re.compile(r"display\s*:\s*none|visibility\s*:\s*hidden", re.IGNORECASE)


def _texto_visivel(html: str) -> str:
    """Lowercased text a user would read; scripts and hidden markup dropped."""
    soup = BeautifulSoup(html, "html.parser")
    for oculto in soup.find_all(["script", "style", "noscript", "template"]):
        oculto.extract()
    for oculto in soup.find_all(attrs={"hidden": True}):
        oculto.extract()
    for oculto in soup.find_all("input", attrs={"type": "hidden"}):
        oculto.extract()
    for oculto in soup.find_all(style=_ESTILO_OCULTO):
        oculto.extract()
    return _ESPACOS.sub(" ", soup.get_text(" ")).lower()


def detectar_pagina_de_erro(html: str) -> None:
    """
    Raise if the page is one of the portal's known failure pages.

    Only visible text is matched, so validation messages embedded in
    the page's JavaScript do not count.

    Raises:
        CaptchaRejectedError: Portal rejected the CAPTCHA answer
        CaseNotFoundError: Portal has no case with that number
    """
    texto = _texto_visivel(html)

    if any(frase in texto for frase in FRASES_CAPTCHA_INVALIDO):
        raise CaptchaRejectedError("CAPTCHA incorreto. Tente novamente.")

    if any(frase in texto for frase in FRASES_PROCESSO_NAO_ENCONTRADO):
        raise CaseNotFoundError("Processo não encontrado no PROJUDI")


def extrair_processo(
    html: str,
    max_movimentacoes: int = MAX_MOVIMENTACOES,
) -> ProcessoExtraido:
    """
    Parse the PROJUDI result page.

    Args:
        html: Page content after submitting the CAPTCHA
        max_movimentacoes: Cap on extracted movements

    Returns:
        ProcessoExtraido with whatever fields were found

    Raises:
        ParseError: If HTML is empty
        CaptchaRejectedError: On the invalid-CAPTCHA page
        CaseNotFoundError: On the case-not-found page
    """
    if not html or not html.strip():
        raise ParseError("HTML vazio recebido")

    detectar_pagina_de_erro(html)

    soup = BeautifulSoup(html, "html.parser")

    campos = {
        nome: _extrair_campo(soup, seletores, rotulo)
        for nome, (seletores, rotulo) in CAMPOS.items()
    }
    campos["data_distribuicao"] = _somente_data(campos["data_distribuicao"])
    campos["data_autuacao"] = _somente_data(campos["data_autuacao"])

    encontrados = sum(1 for valor in campos.values() if valor is not None)
    logger.debug("%d/%d campos extraídos", encontrados, len(campos))

    return ProcessoExtraido(
        partes=extrair_partes(soup),
        movimentacoes=extrair_movimentacoes(soup, limite=max_movimentacoes),
        **campos,
    )


def extrair_partes(soup: BeautifulSoup) -> Tuple[ParteExtraida, ...]:
    """Extract party rows; rows without type or name are skipped."""
    partes: List[ParteExtraida] = []

    for linha in soup.select(SELETORES_PARTES):
        tipo = _texto_em(linha, (".tipo-parte",), _celula(0))
        nome = _texto_em(linha, (".nome-parte",), _celula(1))
        documento = _texto_em(linha, (".cpf-parte", ".documento"))

        if not tipo or not nome:
            continue

        partes.append(ParteExtraida(
            tipo=tipo.replace(":", "").strip(),
            nome=nome,
            documento=documento,
        ))

    return tuple(partes)


def extrair_movimentacoes(
    soup: BeautifulSoup,
    limite: int = MAX_MOVIMENTACOES,
) -> Tuple[Movimentacao, ...]:
    """Extract movement rows, newest first as listed, capped at limite."""
    movimentacoes: List[Movimentacao] = []

    for linha in soup.select(SELETORES_MOVIMENTACOES):
        if len(movimentacoes) >= limite:
            break

        data = _texto_em(linha, (".data", ".data-movimentacao"), _celula(0))
        descricao = _texto_em(linha, (".descricao", ".texto-movimentacao"), _celula(-1))

        if not data or not descricao:
            continue

        movimentacoes.append(Movimentacao(
            data=data,
            descricao=descricao[:MAX_DESCRICAO],
        ))

    return tuple(movimentacoes)


def _limpar(texto: Optional[str]) -> Optional[str]:
    """Collapse whitespace; empty -> None."""
    if texto is None:
        return None
    texto = _ESPACOS.sub(" ", texto).strip()
    return texto or None


def _extrair_campo(
    soup: BeautifulSoup,
    seletores: Sequence[str],
    rotulo: Optional[str],
) -> Optional[str]:
    texto = _texto_em(soup, seletores)
    if texto and rotulo and texto.lower().startswith(rotulo.lower()):
        texto = _limpar(texto[len(rotulo):])
    return texto


def _texto_em(
    elemento: Tag,
    seletores: Sequence[str],
    fallback: Optional[Callable[[Tag], Optional[Tag]]] = None,
) -> Optional[str]:
    """First non-empty text among selectors, then the fallback element."""
    for seletor in seletores:
        encontrado = elemento.select_one(seletor)
        if encontrado is not None:
            texto = _limpar(encontrado.get_text(" "))
            if texto:
                return texto

    if fallback is not None:
        encontrado = fallback(elemento)
        if encontrado is not None:
            return _limpar(encontrado.get_text(" "))

    return None


def _celula(indice: int) -> Callable[[Tag], Optional[Tag]]:
    """Fallback picking the n-th <td> of a table row."""
    def escolher(linha: Tag) -> Optional[Tag]:
        celulas = linha.find_all("td")
        if not celulas:
            return None
        try:
            return celulas[indice]
        except IndexError:
            return None
    return escolher


def _somente_data(texto: Optional[str]) -> Optional[str]:
    if not texto:
        return None
    match = _DATA_PATTERN.search(texto)
    return match.group(0) if match else None
