"""
Per-user quota tracker for PROJUDI consultations.

Keeps the portal's informal usage limits: a minimum delay between two
consultations of the same user and a rolling daily quota.
Pure in-memory state; no I/O.
"""
import asyncio
import logging
import math
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from projudi_scraper.domain.projudi_entities import RegistroCota, InfoCota
from projudi_scraper.domain.projudi_errors import TooSoonError, QuotaExceededError

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class QuotaConfig:
    """Quota tracker configuration."""
    min_delay_seconds: float = 3.0
    daily_limit: int = 100
    window: timedelta = timedelta(hours=24)
    stale_after: timedelta = timedelta(days=2)
    purge_interval_seconds: float = 3600.0


class QuotaTracker:
    """
    Rate limiter and daily quota per user.

    check_and_record() runs under a lock and never awaits, so two
    concurrent attempts by the same user cannot both pass the delay check.
    """

    def __init__(
        self,
        config: Optional[QuotaConfig] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._config = config or QuotaConfig()
        self._clock = clock
        self._registros: Dict[str, RegistroCota] = {}
        self._lock = threading.Lock()
        self._purge_task: Optional[asyncio.Task] = None

    @property
    def config(self) -> QuotaConfig:
        return self._config

    def __len__(self) -> int:
        return len(self._registros)

    def check_and_record(self, user_id: str, now: Optional[datetime] = None) -> None:
        """
        Register a consultation attempt for a user.

        Raises:
            TooSoonError: Called again before min_delay_seconds elapsed
            QuotaExceededError: Daily limit reached in the current window
        """
        now = now or self._clock()

        with self._lock:
            registro = self._registros.get(user_id)
            if registro is None:
                registro = RegistroCota(
                    ultima_consulta_em=datetime.min.replace(tzinfo=now.tzinfo),
                    inicio_janela=now,
                )
                self._registros[user_id] = registro

            decorrido = (now - registro.ultima_consulta_em).total_seconds()
            if decorrido < self._config.min_delay_seconds:
                restante = math.ceil(self._config.min_delay_seconds - decorrido)
                raise TooSoonError(
                    f"Aguarde {restante} segundos antes de fazer nova consulta",
                    seconds_remaining=restante,
                )

            if now - registro.inicio_janela > self._config.window:
                registro.inicio_janela = now
                registro.consultas_na_janela = 0

            if registro.consultas_na_janela >= self._config.daily_limit:
                raise QuotaExceededError(
                    "Limite diário de consultas atingido",
                    limit=self._config.daily_limit,
                )

            registro.consultas_na_janela += 1
            registro.ultima_consulta_em = now

        logger.debug(
            "Consulta registrada para %s (%d/%d)",
            user_id,
            registro.consultas_na_janela,
            self._config.daily_limit,
        )

    def info(self, user_id: str, now: Optional[datetime] = None) -> InfoCota:
        """Remaining quota and seconds until the next allowed attempt."""
        now = now or self._clock()
        limite = self._config.daily_limit

        with self._lock:
            registro = self._registros.get(user_id)
            if registro is None:
                return InfoCota(restantes=limite, segundos_ate_proxima=0, usadas_hoje=0)

            usadas = registro.consultas_na_janela
            if now - registro.inicio_janela > self._config.window:
                usadas = 0

            decorrido = (now - registro.ultima_consulta_em).total_seconds()
            espera = max(0, math.ceil(self._config.min_delay_seconds - decorrido))

            if usadas >= limite:
                fim_janela = registro.inicio_janela + self._config.window
                espera = max(espera, math.ceil((fim_janela - now).total_seconds()))

        return InfoCota(
            restantes=max(0, limite - usadas),
            segundos_ate_proxima=espera,
            usadas_hoje=usadas,
        )

    def reset(self, user_id: str) -> None:
        """Forget a user's counters (administrative)."""
        with self._lock:
            self._registros.pop(user_id, None)
        logger.info("Limite de consultas resetado para %s", user_id)

    def purge_stale(self, now: Optional[datetime] = None) -> int:
        """
        Drop records whose window started more than stale_after ago.

        Returns:
            Number of records removed
        """
        now = now or self._clock()
        with self._lock:
            antigos = [
                user_id
                for user_id, registro in self._registros.items()
                if now - registro.inicio_janela > self._config.stale_after
            ]
            for user_id in antigos:
                del self._registros[user_id]
        if antigos:
            logger.debug("%d registros de cota removidos", len(antigos))
        return len(antigos)

    async def start(self) -> None:
        """Start the periodic purge of stale records."""
        if self._purge_task is None:
            self._purge_task = asyncio.create_task(self._purge_loop())

    async def stop(self) -> None:
        """Stop the periodic purge."""
        if self._purge_task is not None:
            self._purge_task.cancel()
            try:
                await self._purge_task
            except asyncio.CancelledError:
                pass
            self._purge_task = None

    async def _purge_loop(self) -> None:
        while True:
            await asyncio.sleep(self._config.purge_interval_seconds)
            self.purge_stale()
