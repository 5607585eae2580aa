"""
PROJUDI client configuration and settings.

Centralizes configuration for the consultation client and its CLI,
including default values, paths, and environment variables.
"""
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional, Dict, Any
from pathlib import Path
import os

from projudi_scraper.infrastructure.adapters.projudi_browser_adapter import (
    BrowserConfig,
    BrowserPool,
    PORTAL_URL,
)
from projudi_scraper.infrastructure.projudi_quota_tracker import QuotaConfig
from projudi_scraper.infrastructure.projudi_session_store import SessionStoreConfig


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class ProjudiConfig:
    """Configuration for PROJUDI consultations."""

    # Portal
    portal_url: str = PORTAL_URL

    # Browser settings
    headless: bool = True
    browser_executable_path: Optional[str] = None
    launch_timeout_ms: int = 30000
    navigation_timeout_ms: int = 30000
    captcha_timeout_ms: int = 10000
    operation_timeout_s: float = 60.0

    # Browser pool
    max_browsers: int = 3
    pool_acquire_timeout_s: float = 60.0

    # Rate limiting
    min_delay_seconds: float = 3.0
    daily_limit: int = 100

    # Sessions
    session_ttl_minutes: int = 15
    sweep_interval_seconds: float = 300.0

    # Extraction
    max_movimentacoes: int = 10

    # Output
    output_dir: str = "projudi_data"
    log_dir: str = "projudi_logs"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    @classmethod
    def from_env(cls) -> 'ProjudiConfig':
        """Create config from environment variables."""
        return cls(
            portal_url=os.getenv("PROJUDI_PORTAL_URL", PORTAL_URL),
            headless=_env_bool("PROJUDI_HEADLESS", "true"),
            browser_executable_path=os.getenv("PROJUDI_BROWSER_PATH") or None,
            launch_timeout_ms=int(os.getenv("PROJUDI_LAUNCH_TIMEOUT", "30000")),
            navigation_timeout_ms=int(os.getenv("PROJUDI_NAVIGATION_TIMEOUT", "30000")),
            captcha_timeout_ms=int(os.getenv("PROJUDI_CAPTCHA_TIMEOUT", "10000")),
            operation_timeout_s=float(os.getenv("PROJUDI_OPERATION_TIMEOUT", "60")),
            max_browsers=int(os.getenv("PROJUDI_MAX_BROWSERS", "3")),
            pool_acquire_timeout_s=float(os.getenv("PROJUDI_POOL_ACQUIRE_TIMEOUT", "60")),
            min_delay_seconds=float(os.getenv("PROJUDI_MIN_DELAY", "3.0")),
            daily_limit=int(os.getenv("PROJUDI_DAILY_LIMIT", "100")),
            session_ttl_minutes=int(os.getenv("PROJUDI_SESSION_TTL_MINUTES", "15")),
            sweep_interval_seconds=float(os.getenv("PROJUDI_SWEEP_INTERVAL", "300")),
            max_movimentacoes=int(os.getenv("PROJUDI_MAX_MOVIMENTACOES", "10")),
            output_dir=os.getenv("PROJUDI_OUTPUT_DIR", "projudi_data"),
            log_dir=os.getenv("PROJUDI_LOG_DIR", "projudi_logs"),
            log_level=os.getenv("PROJUDI_LOG_LEVEL", "INFO"),
            log_json=_env_bool("PROJUDI_LOG_JSON", "false"),
        )

    def browser_config(self) -> BrowserConfig:
        return BrowserConfig(
            headless=self.headless,
            portal_url=self.portal_url,
            executable_path=self.browser_executable_path,
            launch_timeout_ms=self.launch_timeout_ms,
            navigation_timeout_ms=self.navigation_timeout_ms,
            captcha_timeout_ms=self.captcha_timeout_ms,
            operation_timeout_s=self.operation_timeout_s,
        )

    def browser_pool(self) -> BrowserPool:
        return BrowserPool(
            max_browsers=self.max_browsers,
            acquire_timeout_s=self.pool_acquire_timeout_s,
        )

    def quota_config(self) -> QuotaConfig:
        return QuotaConfig(
            min_delay_seconds=self.min_delay_seconds,
            daily_limit=self.daily_limit,
        )

    def session_store_config(self) -> SessionStoreConfig:
        return SessionStoreConfig(
            ttl=timedelta(minutes=self.session_ttl_minutes),
            sweep_interval_seconds=self.sweep_interval_seconds,
        )

    def ensure_directories(self) -> None:
        """Create required directories if they don't exist."""
        for dir_path in [self.output_dir, self.log_dir]:
            Path(dir_path).mkdir(parents=True, exist_ok=True)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "portal_url": self.portal_url,
            "headless": self.headless,
            "browser_executable_path": self.browser_executable_path,
            "launch_timeout_ms": self.launch_timeout_ms,
            "navigation_timeout_ms": self.navigation_timeout_ms,
            "captcha_timeout_ms": self.captcha_timeout_ms,
            "operation_timeout_s": self.operation_timeout_s,
            "max_browsers": self.max_browsers,
            "pool_acquire_timeout_s": self.pool_acquire_timeout_s,
            "min_delay_seconds": self.min_delay_seconds,
            "daily_limit": self.daily_limit,
            "session_ttl_minutes": self.session_ttl_minutes,
            "sweep_interval_seconds": self.sweep_interval_seconds,
            "max_movimentacoes": self.max_movimentacoes,
            "output_dir": self.output_dir,
            "log_dir": self.log_dir,
            "log_level": self.log_level,
            "log_json": self.log_json,
        }
