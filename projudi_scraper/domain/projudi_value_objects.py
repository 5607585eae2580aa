"""
PROJUDI Domain Value Objects

Value objects for the TJPR PROJUDI public consultation client.
All value objects are immutable (frozen dataclasses) with no identity
beyond their values.

Following DDD patterns with Portuguese terminology.
"""
import re
from dataclasses import dataclass
from enum import Enum

from projudi_scraper.domain.projudi_errors import InvalidCaseNumberError


# CNJ segment sizes: NNNNNNN-DD.AAAA.J.TT.OOOO
_SEGMENTOS_CNJ = (7, 2, 4, 1, 2, 4)
_DIGITOS_CNJ = sum(_SEGMENTOS_CNJ)
_NAO_DIGITO = re.compile(r"[^0-9]")


class StatusProcesso(Enum):
    """
    Canonical case status.

    Portal statuses are free text; see mapear_status for the mapping.
    """
    EM_ANDAMENTO = "EM_ANDAMENTO"
    SUSPENSO = "SUSPENSO"
    ARQUIVADO = "ARQUIVADO"
    CONCLUIDO = "CONCLUIDO"


class TipoParte(Enum):
    """Procedural role of a party."""
    AUTOR = "AUTOR"
    REU = "REU"
    TERCEIRO_INTERESSADO = "TERCEIRO_INTERESSADO"
    ASSISTENTE = "ASSISTENTE"


class TipoPessoa(Enum):
    """Natural person (CPF) or legal entity."""
    FISICA = "FISICA"
    JURIDICA = "JURIDICA"


@dataclass(frozen=True)
class NumeroProcesso:
    """
    CNJ case number value object.

    Format: NNNNNNN-DD.AAAA.J.TT.OOOO (20 digits)

    Always holds the canonical punctuated form. Build it with
    normalizar_numero_processo() or directly from any string containing
    exactly 20 digits.
    """
    valor: str

    def __post_init__(self):
        digitos = _NAO_DIGITO.sub("", self.valor or "")
        if len(digitos) != _DIGITOS_CNJ:
            raise InvalidCaseNumberError(
                "Número de processo inválido. Use o formato CNJ: "
                "NNNNNNN-DD.AAAA.J.TT.OOOO",
                raw_text=self.valor or "",
            )
        # frozen: bypass __setattr__ to store the canonical form
        object.__setattr__(self, "valor", _formatar(digitos))

    @property
    def digitos(self) -> str:
        """Return the 20 bare digits."""
        return _NAO_DIGITO.sub("", self.valor)

    @property
    def sequencial(self) -> str:
        return self.digitos[0:7]

    @property
    def digito_verificador(self) -> str:
        return self.digitos[7:9]

    @property
    def ano(self) -> int:
        """Filing year."""
        return int(self.digitos[9:13])

    @property
    def segmento_justica(self) -> str:
        """Judicial branch (8 = state courts)."""
        return self.digitos[13:14]

    @property
    def tribunal(self) -> str:
        """Court code within the branch (16 = TJPR)."""
        return self.digitos[14:16]

    @property
    def origem(self) -> str:
        """Originating unit code."""
        return self.digitos[16:20]

    def __str__(self) -> str:
        return self.valor


def _formatar(digitos: str) -> str:
    partes = []
    inicio = 0
    for tamanho in _SEGMENTOS_CNJ:
        partes.append(digitos[inicio:inicio + tamanho])
        inicio += tamanho
    sequencial, dv, ano, segmento, tribunal, origem = partes
    return f"{sequencial}-{dv}.{ano}.{segmento}.{tribunal}.{origem}"


def validar_numero_processo(numero: str) -> bool:
    """
    Check whether a string holds a CNJ case number.

    Punctuation is ignored: valid iff exactly 20 digits remain.
    """
    if not numero:
        return False
    return len(_NAO_DIGITO.sub("", numero)) == _DIGITOS_CNJ


def normalizar_numero_processo(numero: str) -> NumeroProcesso:
    """
    Parse a raw case number into its canonical CNJ form.

    Args:
        numero: Case number with or without punctuation

    Returns:
        NumeroProcesso in NNNNNNN-DD.AAAA.J.TT.OOOO form

    Raises:
        InvalidCaseNumberError: If the input does not contain 20 digits
    """
    return NumeroProcesso(valor=numero)
