"""
PROJUDI Domain Entities

Entities for the TJPR PROJUDI consultation client.
Extracted case data is immutable (frozen dataclasses); the session and
quota records are owned and mutated only by their stores.

DadosProcesso is the snapshot handed to callers.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional, Tuple, Dict, Any

from projudi_scraper.domain.projudi_value_objects import (
    NumeroProcesso,
    StatusProcesso,
    TipoParte,
    TipoPessoa,
)


@dataclass(frozen=True)
class SessaoConsulta:
    """
    Ephemeral state bridging the two phases of a consultation.

    Holds the portal cookies captured alongside the CAPTCHA image.
    Single-use: deleted once the CAPTCHA answer is submitted.
    """
    session_id: str
    cookies: Tuple[Dict[str, Any], ...]
    numero_processo: NumeroProcesso
    criada_em: datetime
    user_id: Optional[str] = None


@dataclass
class RegistroCota:
    """Per-user consultation counters."""
    ultima_consulta_em: datetime
    inicio_janela: datetime
    consultas_na_janela: int = 0


@dataclass(frozen=True)
class InfoCota:
    """Read-only view of a user's quota."""
    restantes: int
    segundos_ate_proxima: int
    usadas_hoje: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "restantes": self.restantes,
            "segundos_ate_proxima": self.segundos_ate_proxima,
            "usadas_hoje": self.usadas_hoje,
        }


@dataclass(frozen=True)
class CaptchaCapturado:
    """Output of the first browser phase."""
    cookies: Tuple[Dict[str, Any], ...]
    imagem_png: bytes


@dataclass(frozen=True)
class InicioConsulta:
    """Result of starting a consultation."""
    session_id: str
    captcha_image: str
    numero_processo: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "session_id": self.session_id,
            "captcha_image": self.captcha_image,
            "numero_processo": self.numero_processo,
        }


@dataclass(frozen=True)
class ParteExtraida:
    """Party row as found on the result page."""
    tipo: str
    nome: str
    documento: Optional[str] = None


@dataclass(frozen=True)
class Movimentacao:
    """A docket movement (event) of the case."""
    data: str
    descricao: str

    def to_dict(self) -> Dict[str, str]:
        return {"data": self.data, "descricao": self.descricao}


@dataclass(frozen=True)
class ProcessoExtraido:
    """
    Raw fields extracted from the result page.

    Every field is optional: a missing element yields None rather than
    aborting the extraction.
    """
    numero: Optional[str] = None
    comarca: Optional[str] = None
    vara: Optional[str] = None
    foro: Optional[str] = None
    status: Optional[str] = None
    data_distribuicao: Optional[str] = None
    data_autuacao: Optional[str] = None
    valor_causa: Optional[str] = None
    assunto: Optional[str] = None
    objeto_acao: Optional[str] = None
    area: Optional[str] = None
    partes: Tuple[ParteExtraida, ...] = field(default_factory=tuple)
    movimentacoes: Tuple[Movimentacao, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ParteProcessual:
    """Party with its role mapped to the canonical enumeration."""
    papel: TipoParte
    tipo_bruto: str
    nome: str
    documento: Optional[str] = None

    @property
    def tipo_pessoa(self) -> TipoPessoa:
        """Parties listed with a CPF are natural persons."""
        return TipoPessoa.FISICA if self.documento else TipoPessoa.JURIDICA

    def to_dict(self) -> Dict[str, Any]:
        return {
            "papel": self.papel.value,
            "tipo_bruto": self.tipo_bruto,
            "nome": self.nome,
            "documento": self.documento,
            "tipo_pessoa": self.tipo_pessoa.value,
        }


@dataclass(frozen=True)
class DadosProcesso:
    """
    Normalized case snapshot returned by a successful consultation.

    Built only by normalizar_processo(), so status, value and party
    roles are always in canonical form. Re-created on every consultation.
    """
    numero_processo: NumeroProcesso
    status: StatusProcesso
    consultado_em: datetime
    numero_exibido: Optional[str] = None
    comarca: Optional[str] = None
    vara: Optional[str] = None
    foro: Optional[str] = None
    status_bruto: Optional[str] = None
    data_distribuicao: Optional[date] = None
    data_autuacao: Optional[date] = None
    valor_causa_bruto: Optional[str] = None
    valor_causa: Optional[float] = None
    assunto: Optional[str] = None
    objeto_acao: Optional[str] = None
    area: Optional[str] = None
    partes: Tuple[ParteProcessual, ...] = field(default_factory=tuple)
    movimentacoes: Tuple[Movimentacao, ...] = field(default_factory=tuple)

    @property
    def autores(self) -> Tuple[ParteProcessual, ...]:
        return tuple(p for p in self.partes if p.papel == TipoParte.AUTOR)

    @property
    def reus(self) -> Tuple[ParteProcessual, ...]:
        return tuple(p for p in self.partes if p.papel == TipoParte.REU)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "numero_processo": str(self.numero_processo),
            "numero_exibido": self.numero_exibido,
            "comarca": self.comarca,
            "vara": self.vara,
            "foro": self.foro,
            "status": self.status.value,
            "status_bruto": self.status_bruto,
            "data_distribuicao": (
                self.data_distribuicao.isoformat() if self.data_distribuicao else None
            ),
            "data_autuacao": (
                self.data_autuacao.isoformat() if self.data_autuacao else None
            ),
            "valor_causa": self.valor_causa,
            "valor_causa_bruto": self.valor_causa_bruto,
            "assunto": self.assunto,
            "objeto_acao": self.objeto_acao,
            "area": self.area,
            "partes": [p.to_dict() for p in self.partes],
            "movimentacoes": [m.to_dict() for m in self.movimentacoes],
            "consultado_em": self.consultado_em.isoformat(),
        }
