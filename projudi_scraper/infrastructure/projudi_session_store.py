"""
In-memory store for PROJUDI consultation sessions.

A session bridges the two halves of a CAPTCHA consultation: the cookies
captured with the CAPTCHA image must be replayed when the answer is
submitted. Sessions are single-use and expire after a fixed TTL; a
background task sweeps abandoned ones.
"""
import asyncio
import logging
import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, Optional

from projudi_scraper.domain.projudi_entities import SessaoConsulta
from projudi_scraper.domain.projudi_errors import SessionExpiredError, SessionNotFoundError
from projudi_scraper.domain.projudi_value_objects import NumeroProcesso

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SessionStoreConfig:
    """Session store configuration."""
    ttl: timedelta = timedelta(minutes=15)
    sweep_interval_seconds: float = 300.0
    token_bytes: int = 32


class SessionStore:
    """
    Lock-guarded map of session id to SessaoConsulta.

    Usage:
        store = SessionStore()
        await store.start()          # background sweep
        session_id = store.create(numero, cookies, user_id="u1")
        sessao = store.get(session_id, user_id="u1")
        store.consume(session_id)
        await store.stop()
    """

    def __init__(
        self,
        config: Optional[SessionStoreConfig] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._config = config or SessionStoreConfig()
        self._clock = clock
        self._sessions: Dict[str, SessaoConsulta] = {}
        self._lock = threading.Lock()
        self._sweep_task: Optional[asyncio.Task] = None

    @property
    def config(self) -> SessionStoreConfig:
        return self._config

    @property
    def is_sweeping(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    def __len__(self) -> int:
        return len(self._sessions)

    def create(
        self,
        numero_processo: NumeroProcesso,
        cookies: Iterable[Dict[str, Any]],
        user_id: Optional[str] = None,
    ) -> str:
        """
        Store a new session.

        Returns:
            Opaque, URL-safe session id
        """
        session_id = secrets.token_urlsafe(self._config.token_bytes)
        sessao = SessaoConsulta(
            session_id=session_id,
            cookies=tuple(cookies),
            numero_processo=numero_processo,
            criada_em=self._clock(),
            user_id=user_id,
        )
        with self._lock:
            self._sessions[session_id] = sessao
        return session_id

    def get(
        self,
        session_id: str,
        now: Optional[datetime] = None,
        user_id: Optional[str] = None,
    ) -> SessaoConsulta:
        """
        Look up a live session.

        When user_id is given, a session started by another user is
        reported as not found and left untouched.

        Raises:
            SessionNotFoundError: Unknown, consumed or foreign session
            SessionExpiredError: Session older than the TTL (also deleted)
        """
        now = now or self._clock()
        with self._lock:
            return self._lookup(session_id, now, user_id)

    def consume(self, session_id: str) -> None:
        """Delete a session. Idempotent."""
        with self._lock:
            self._sessions.pop(session_id, None)

    def take(
        self,
        session_id: str,
        now: Optional[datetime] = None,
        user_id: Optional[str] = None,
    ) -> SessaoConsulta:
        """
        get() and consume() under a single lock acquisition.

        Of several concurrent callers holding the same id, exactly one
        receives the session; the others see SessionNotFoundError.
        A foreign session is left untouched, as in get().
        """
        with self._lock:
            sessao = self._lookup(session_id, now or self._clock(), user_id)
            del self._sessions[session_id]
        return sessao

    def _lookup(
        self,
        session_id: str,
        now: datetime,
        user_id: Optional[str],
    ) -> SessaoConsulta:
        # caller holds self._lock
        sessao = self._sessions.get(session_id)
        if sessao is None or (user_id is not None and sessao.user_id != user_id):
            raise SessionNotFoundError(
                "Sessão expirada ou inválida. Tente novamente.",
                session_id=session_id,
            )
        if now - sessao.criada_em > self._config.ttl:
            del self._sessions[session_id]
            raise SessionExpiredError(
                "Sessão expirada. Tente novamente.",
                session_id=session_id,
            )
        return sessao

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        """
        Delete every session older than the TTL.

        Returns:
            Number of sessions removed
        """
        now = now or self._clock()
        with self._lock:
            expiradas = [
                session_id
                for session_id, sessao in self._sessions.items()
                if now - sessao.criada_em > self._config.ttl
            ]
            for session_id in expiradas:
                del self._sessions[session_id]
        if expiradas:
            logger.debug("%d sessões expiradas removidas", len(expiradas))
        return len(expiradas)

    async def start(self) -> None:
        """Start the background sweep."""
        if self._sweep_task is None:
            self._sweep_task = asyncio.create_task(self._sweep_loop())

    async def stop(self) -> None:
        """Stop the background sweep."""
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._config.sweep_interval_seconds)
            self.purge_expired()
