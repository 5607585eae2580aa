"""
Normalizers for PROJUDI free-text values.

Maps portal status, currency, date and party-role strings into the
application's canonical types. All functions are best-effort: unknown
input degrades to a default or None, never to an exception.
"""
import re
import unicodedata
from datetime import date, datetime
from typing import Optional, Tuple

from projudi_scraper.domain.projudi_entities import (
    DadosProcesso,
    ParteProcessual,
    ProcessoExtraido,
)
from projudi_scraper.domain.projudi_value_objects import (
    NumeroProcesso,
    StatusProcesso,
    TipoParte,
)


# Checked in order; the first group with a matching keyword wins.
STATUS_KEYWORDS: Tuple[Tuple[StatusProcesso, Tuple[str, ...]], ...] = (
    (StatusProcesso.SUSPENSO, ("suspenso",)),
    (StatusProcesso.ARQUIVADO, ("arquivado",)),
    (StatusProcesso.CONCLUIDO, ("concluido", "finalizado", "extinto", "baixado")),
    (StatusProcesso.EM_ANDAMENTO, ("andamento", "ativo")),
)

# The portal vocabulary is not exhaustively known: unmatched statuses are
# reported as in progress, never as an error.
STATUS_PADRAO = StatusProcesso.EM_ANDAMENTO

TERMOS_POLO_ATIVO = (
    "AUTOR", "REQUERENTE", "EXEQUENTE", "ATIVO", "RECLAMANTE", "IMPETRANTE",
)
TERMOS_POLO_PASSIVO = (
    "REU", "REQUERIDO", "EXECUTADO", "PASSIVO", "RECLAMADO", "IMPETRADO",
    "COATOR",
)
TERMOS_TERCEIRO = ("TERCEIRO",)
TERMOS_ASSISTENTE = ("ASSISTENTE",)

_DATA_PATTERN = re.compile(r"(\d{2})/(\d{2})/(\d{4})")


def remover_acentos(texto: str) -> str:
    """Strip diacritics: 'Réu' -> 'Reu'."""
    decomposto = unicodedata.normalize("NFKD", texto)
    return "".join(c for c in decomposto if not unicodedata.combining(c))


def mapear_status(status: Optional[str]) -> StatusProcesso:
    """
    Map a portal status string to StatusProcesso.

    Case- and accent-insensitive substring match against STATUS_KEYWORDS.
    Defaults to EM_ANDAMENTO when nothing matches.
    """
    if not status:
        return STATUS_PADRAO

    texto = remover_acentos(status).lower()
    for canonico, palavras in STATUS_KEYWORDS:
        if any(palavra in texto for palavra in palavras):
            return canonico

    return STATUS_PADRAO


def parse_valor(valor: Optional[str]) -> Optional[float]:
    """
    Parse a Brazilian currency string.

    "R$ 1.234,56" -> 1234.56. Returns None when nothing numeric remains.
    """
    if not valor:
        return None

    limpo = re.sub(r"[^\d,.]", "", valor)
    if not re.search(r"\d", limpo):
        return None

    if "," in limpo:
        # pt-BR: '.' groups thousands, ',' is the decimal separator
        limpo = limpo.replace(".", "").replace(",", ".")
    elif limpo.count(".") > 1 or re.search(r"\.\d{3}$", limpo):
        limpo = limpo.replace(".", "")

    try:
        return float(limpo)
    except ValueError:
        return None


def parse_data(texto: Optional[str]) -> Optional[date]:
    """Find a dd/mm/yyyy date in text. None if absent or impossible."""
    if not texto:
        return None

    match = _DATA_PATTERN.search(texto)
    if not match:
        return None

    dia, mes, ano = match.groups()
    try:
        return date(int(ano), int(mes), int(dia))
    except ValueError:
        return None


def mapear_tipo_parte(tipo: Optional[str]) -> TipoParte:
    """
    Map a party label ("Autor", "Réu", "Requerido"...) to TipoParte.

    Unmatched labels default to TERCEIRO_INTERESSADO.
    """
    if not tipo:
        return TipoParte.TERCEIRO_INTERESSADO

    texto = remover_acentos(tipo).upper()

    # passive first: "AUTORIDADE COATORA" must not match AUTOR
    if any(termo in texto for termo in TERMOS_POLO_PASSIVO):
        return TipoParte.REU
    if any(termo in texto for termo in TERMOS_POLO_ATIVO):
        return TipoParte.AUTOR
    if any(termo in texto for termo in TERMOS_TERCEIRO):
        return TipoParte.TERCEIRO_INTERESSADO
    if any(termo in texto for termo in TERMOS_ASSISTENTE):
        return TipoParte.ASSISTENTE

    return TipoParte.TERCEIRO_INTERESSADO


def normalizar_processo(
    extraido: ProcessoExtraido,
    numero_processo: NumeroProcesso,
    consultado_em: Optional[datetime] = None,
) -> DadosProcesso:
    """
    Build the canonical DadosProcesso from raw extracted fields.

    Args:
        extraido: Output of the HTML extractor
        numero_processo: Case number the consultation was made for
        consultado_em: Consultation timestamp (defaults to now)
    """
    partes = tuple(
        ParteProcessual(
            papel=mapear_tipo_parte(parte.tipo),
            tipo_bruto=parte.tipo,
            nome=parte.nome,
            documento=parte.documento,
        )
        for parte in extraido.partes
    )

    return DadosProcesso(
        numero_processo=numero_processo,
        status=mapear_status(extraido.status),
        consultado_em=consultado_em or datetime.now(),
        numero_exibido=extraido.numero,
        comarca=extraido.comarca,
        vara=extraido.vara,
        foro=extraido.foro,
        status_bruto=extraido.status,
        data_distribuicao=parse_data(extraido.data_distribuicao),
        data_autuacao=parse_data(extraido.data_autuacao),
        valor_causa_bruto=extraido.valor_causa,
        valor_causa=parse_valor(extraido.valor_causa),
        assunto=extraido.assunto,
        objeto_acao=extraido.objeto_acao,
        area=extraido.area,
        partes=partes,
        movimentacoes=extraido.movimentacoes,
    )
