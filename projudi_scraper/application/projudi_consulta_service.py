"""
PROJUDI Consultation Service

Composes the case-number validator, quota tracker, session store,
browser driver, HTML extractor and normalizers into the two-phase
CAPTCHA protocol:

1. iniciar_consulta: returns a session id and the CAPTCHA image
2. consultar_com_captcha: submits the human answer, returns DadosProcesso

No retries happen here; every error is terminal for the call and the
caller decides whether to start over.
"""
import base64
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from projudi_scraper.domain.projudi_entities import (
    DadosProcesso,
    InfoCota,
    InicioConsulta,
)
from projudi_scraper.domain.projudi_errors import (
    CaptchaRejectedError,
    CaseNotFoundError,
    PortalUnreachableError,
    QuotaExceededError,
    SessionExpiredError,
    TooSoonError,
)
from projudi_scraper.domain.projudi_ports import PortalDriver
from projudi_scraper.domain.projudi_value_objects import normalizar_numero_processo
from projudi_scraper.infrastructure.adapters.projudi_browser_adapter import (
    ProjudiBrowserAdapter,
)
from projudi_scraper.infrastructure.adapters.projudi_normalizers import (
    normalizar_processo,
)
from projudi_scraper.infrastructure.adapters.projudi_processo_parser import (
    MAX_MOVIMENTACOES,
    extrair_processo,
)
from projudi_scraper.infrastructure.cli.projudi_config import ProjudiConfig
from projudi_scraper.infrastructure.logging.projudi_logger import (
    LogContext,
    LogLevel,
    ProjudiLogger,
    create_projudi_logger,
)
from projudi_scraper.infrastructure.projudi_quota_tracker import QuotaTracker
from projudi_scraper.infrastructure.projudi_session_store import SessionStore


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def captcha_data_uri(imagem_png: bytes) -> str:
    """Encode a PNG as a data URI ready for an <img> tag."""
    return "data:image/png;base64," + base64.b64encode(imagem_png).decode("ascii")


class ProjudiConsultaService:
    """
    Two-phase PROJUDI consultation.

    Usage:
        async with ProjudiConsultaService.from_config(ProjudiConfig.from_env()) as service:
            inicio = await service.iniciar_consulta("0002688-54.2024.8.16.0136", "u1")
            # show inicio.captcha_image to the user, collect the answer
            dados = await service.consultar_com_captcha(inicio.session_id, "AB12C", "u1")
    """

    def __init__(
        self,
        driver: PortalDriver,
        quota: Optional[QuotaTracker] = None,
        sessions: Optional[SessionStore] = None,
        logger: Optional[ProjudiLogger] = None,
        clock: Callable[[], datetime] = _utcnow,
        max_movimentacoes: int = MAX_MOVIMENTACOES,
    ):
        self._driver = driver
        self._clock = clock
        self._quota = quota if quota is not None else QuotaTracker(clock=clock)
        self._sessions = sessions if sessions is not None else SessionStore(clock=clock)
        self._logger = logger or ProjudiLogger("consulta")
        self._max_movimentacoes = max_movimentacoes
        self._is_running = False

    @classmethod
    def from_config(
        cls,
        config: ProjudiConfig,
        logger: Optional[ProjudiLogger] = None,
    ) -> 'ProjudiConsultaService':
        """Wire the Playwright driver and stores from configuration."""
        driver = ProjudiBrowserAdapter(
            config=config.browser_config(),
            pool=config.browser_pool(),
        )
        if logger is None:
            logger = create_projudi_logger(
                "consulta",
                json_output=config.log_json,
                level=LogLevel(config.log_level.upper()),
            )
        return cls(
            driver=driver,
            quota=QuotaTracker(config=config.quota_config()),
            sessions=SessionStore(config=config.session_store_config()),
            logger=logger,
            max_movimentacoes=config.max_movimentacoes,
        )

    @property
    def driver(self) -> PortalDriver:
        return self._driver

    @property
    def quota(self) -> QuotaTracker:
        return self._quota

    @property
    def sessions(self) -> SessionStore:
        return self._sessions

    @property
    def is_running(self) -> bool:
        return self._is_running

    async def start(self) -> None:
        """Start the background sweeps of sessions and quota records."""
        await self._sessions.start()
        await self._quota.start()
        self._is_running = True

    async def stop(self) -> None:
        """Stop the background sweeps."""
        await self._sessions.stop()
        await self._quota.stop()
        self._is_running = False

    async def __aenter__(self) -> 'ProjudiConsultaService':
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    async def iniciar_consulta(self, numero_processo: str, user_id: str) -> InicioConsulta:
        """
        Phase 1: open the portal and return the CAPTCHA to solve.

        Args:
            numero_processo: CNJ case number, punctuated or not
            user_id: Caller identity for quota accounting

        Returns:
            InicioConsulta with session id, PNG data URI and canonical number

        Raises:
            InvalidCaseNumberError: Malformed case number (no quota spent)
            TooSoonError: Minimum delay between consultations not elapsed
            QuotaExceededError: Daily limit reached
            PortalUnreachableError: Portal navigation failed or timed out
        """
        numero = normalizar_numero_processo(numero_processo)
        ctx = LogContext(
            correlation_id=uuid.uuid4().hex[:12],
            user_id=user_id,
            component="consulta",
            extra={"numero_processo": str(numero)},
        )

        try:
            self._quota.check_and_record(user_id)
        except (TooSoonError, QuotaExceededError) as exc:
            self._logger.warning(f"Consulta recusada: {exc}", ctx)
            raise

        with self._logger.timed_operation("iniciar_consulta", ctx).expecting(
            PortalUnreachableError,
        ):
            captcha = await self._driver.start_captcha_flow(numero)

        session_id = self._sessions.create(numero, captcha.cookies, user_id=user_id)
        self._logger.info(
            "CAPTCHA capturado",
            ctx,
            captcha_bytes=len(captcha.imagem_png),
        )

        return InicioConsulta(
            session_id=session_id,
            captcha_image=captcha_data_uri(captcha.imagem_png),
            numero_processo=str(numero),
        )

    async def consultar_com_captcha(
        self,
        session_id: str,
        resposta: str,
        user_id: str,
    ) -> DadosProcesso:
        """
        Phase 2: submit the CAPTCHA answer and extract the case data.

        The session is consumed before the portal is contacted, so it
        cannot be reused whatever the outcome.

        Raises:
            SessionExpiredError: Session unknown, consumed or expired
            CaptchaRejectedError: Portal rejected the answer
            CaseNotFoundError: Portal has no such case
            PortalUnreachableError: Portal navigation failed or timed out
        """
        ctx = LogContext(
            correlation_id=uuid.uuid4().hex[:12],
            session_id=session_id[:8],
            user_id=user_id,
            component="consulta",
        )

        try:
            sessao = self._sessions.take(session_id, user_id=user_id)
        except SessionExpiredError as exc:
            self._logger.warning(f"Sessão recusada: {exc}", ctx)
            raise

        if not resposta or not resposta.strip():
            raise CaptchaRejectedError("Informe a resposta do CAPTCHA.")

        ctx = ctx.with_extra(numero_processo=str(sessao.numero_processo))

        with self._logger.timed_operation("consultar_com_captcha", ctx).expecting(
            PortalUnreachableError,
            CaptchaRejectedError,
            CaseNotFoundError,
        ):
            html = await self._driver.submit_captcha(
                sessao.cookies,
                sessao.numero_processo,
                resposta,
            )
            extraido = extrair_processo(html, max_movimentacoes=self._max_movimentacoes)

        dados = normalizar_processo(
            extraido,
            numero_processo=sessao.numero_processo,
            consultado_em=self._clock(),
        )
        self._logger.info(
            "Processo extraído",
            ctx,
            status=dados.status.value,
            partes=len(dados.partes),
            movimentacoes=len(dados.movimentacoes),
        )
        return dados

    def info_limite(self, user_id: str) -> InfoCota:
        """Remaining quota for a user."""
        return self._quota.info(user_id)

    def resetar_limite(self, user_id: str) -> None:
        """Reset a user's quota (privileged; authorization is the caller's)."""
        self._quota.reset(user_id)
        self._logger.info("Limite resetado", LogContext(user_id=user_id, component="consulta"))
