"""
Browser adapter for the PROJUDI public consultation page.

Uses Playwright for headless browser automation. Each operation launches
its own isolated browser and tears it down afterwards, so cookies never
bleed between consultations and no Chromium process outlives a call.
A BrowserPool caps how many browsers run at the same time.
"""
import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from projudi_scraper.domain.projudi_entities import CaptchaCapturado
from projudi_scraper.domain.projudi_errors import (
    BrowserNotAvailableError,
    BrowserPoolTimeoutError,
    PortalUnreachableError,
    ProjudiError,
)
from projudi_scraper.domain.projudi_value_objects import NumeroProcesso

logger = logging.getLogger(__name__)

PORTAL_URL = (
    "https://consulta.tjpr.jus.br/projudi_consulta/processo/"
    "consultaPublica.do?actionType=iniciar"
)

# Minimal-privilege Chromium flags for containerized, GPU-less hosts
LAUNCH_ARGS: Tuple[str, ...] = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--disable-gpu",
    "--disable-software-rasterizer",
    "--disable-dev-tools",
    "--no-zygote",
    "--disable-crash-reporter",
)


@dataclass(frozen=True)
class BrowserConfig:
    """Browser configuration for Playwright."""
    headless: bool = True
    portal_url: str = PORTAL_URL
    executable_path: Optional[str] = None
    launch_timeout_ms: int = 30000
    navigation_timeout_ms: int = 30000
    captcha_timeout_ms: int = 10000
    operation_timeout_s: float = 60.0
    viewport_width: int = 1280
    viewport_height: int = 800
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    locale: str = "pt-BR"
    slow_mo: int = 0  # Milliseconds to slow down operations (for debugging)


class BrowserPool:
    """
    Bounds the number of concurrent browser instances.

    Waiting for a slot is itself bounded by acquire_timeout_s.
    """

    def __init__(self, max_browsers: int = 3, acquire_timeout_s: float = 60.0):
        if max_browsers < 1:
            raise ValueError("max_browsers must be >= 1")
        self._max = max_browsers
        self._acquire_timeout_s = acquire_timeout_s
        self._semaphore = asyncio.Semaphore(max_browsers)
        self._in_use = 0
        self._pending = 0

    @property
    def size(self) -> int:
        return self._max

    @property
    def in_use(self) -> int:
        return self._in_use

    @property
    def available(self) -> int:
        return self._max - self._in_use

    @property
    def pending(self) -> int:
        return self._pending

    @asynccontextmanager
    async def slot(self):
        """
        Hold one browser slot for the duration of the block.

        Raises:
            BrowserPoolTimeoutError: No slot freed up in time
        """
        self._pending += 1
        try:
            await asyncio.wait_for(
                self._semaphore.acquire(),
                timeout=self._acquire_timeout_s,
            )
        except asyncio.TimeoutError:
            raise BrowserPoolTimeoutError(
                "Todos os navegadores estão ocupados. Tente novamente em instantes.",
                timeout_seconds=self._acquire_timeout_s,
            )
        finally:
            self._pending -= 1

        self._in_use += 1
        logger.debug("Navegador adquirido (%d/%d em uso)", self._in_use, self._max)
        try:
            yield
        finally:
            self._in_use -= 1
            self._semaphore.release()
            logger.debug("Navegador liberado (%d/%d em uso)", self._in_use, self._max)

    def stats(self) -> Dict[str, int]:
        return {
            "size": self.size,
            "in_use": self.in_use,
            "available": self.available,
            "pending": self.pending,
        }


def _load_playwright():
    """Import Playwright lazily so a missing install fails with a clear error."""
    try:
        from playwright.async_api import async_playwright
    except ImportError:
        raise BrowserNotAvailableError(
            "Playwright não instalado. Execute: pip install playwright && "
            "playwright install chromium"
        )
    return async_playwright


class ProjudiBrowserAdapter:
    """
    Playwright-based driver for the PROJUDI consultation form.

    Handles:
    - One isolated browser per operation, always torn down
    - CAPTCHA screenshot and cookie capture (phase 1)
    - Cookie replay and form submission (phase 2)
    - Hard wall-clock timeout per operation
    """

    SELECTORS = {
        "captcha_image": "#captchaImg",
        "numero_input": "#numeroProcesso",
        "captcha_input": "#captcha",
        "submit_button": "input[type='submit']",
    }

    def __init__(
        self,
        config: Optional[BrowserConfig] = None,
        pool: Optional[BrowserPool] = None,
    ):
        self._config = config or BrowserConfig()
        self._pool = pool or BrowserPool()

    @property
    def config(self) -> BrowserConfig:
        return self._config

    @property
    def pool(self) -> BrowserPool:
        return self._pool

    async def start_captcha_flow(self, numero: NumeroProcesso) -> CaptchaCapturado:
        """
        Open the consultation page and capture the CAPTCHA.

        Args:
            numero: Case number being consulted (logged only)

        Returns:
            CaptchaCapturado with session cookies and the PNG screenshot

        Raises:
            PortalUnreachableError: Navigation failed or timed out
        """
        logger.info("Capturando CAPTCHA para %s", numero)
        return await self._run("start_captcha_flow", self._capturar_captcha)

    async def submit_captcha(
        self,
        cookies: Tuple[Dict[str, Any], ...],
        numero: NumeroProcesso,
        resposta: str,
    ) -> str:
        """
        Replay the session cookies and submit the consultation form.

        Returns:
            HTML of the page reached after submission

        Raises:
            PortalUnreachableError: Navigation failed or timed out
        """
        logger.info("Enviando CAPTCHA para %s", numero)
        return await self._run(
            "submit_captcha", self._enviar_captcha, cookies, numero, resposta
        )

    async def _run(self, operacao: str, acao, *args):
        async with self._pool.slot():
            start_time = time.time()
            try:
                resultado = await asyncio.wait_for(
                    self._com_navegador(acao, *args),
                    timeout=self._config.operation_timeout_s,
                )
            except ProjudiError:
                raise
            except asyncio.TimeoutError as exc:
                raise PortalUnreachableError(
                    f"Tempo esgotado ao acessar PROJUDI ({operacao})",
                    url=self._config.portal_url,
                ) from exc
            except Exception as exc:
                raise PortalUnreachableError(
                    f"Erro ao acessar PROJUDI: {exc}",
                    url=self._config.portal_url,
                ) from exc

            load_time_ms = int((time.time() - start_time) * 1000)
            logger.info("%s concluído em %dms", operacao, load_time_ms)
            return resultado

    async def _com_navegador(self, acao, *args):
        async with self._browser_context() as context:
            return await acao(context, *args)

    @asynccontextmanager
    async def _browser_context(self):
        """Launch a fresh browser; close everything on exit, even on error."""
        async_playwright = _load_playwright()
        playwright = await async_playwright().start()
        browser = None
        context = None
        try:
            browser = await playwright.chromium.launch(
                headless=self._config.headless,
                executable_path=self._config.executable_path,
                args=list(LAUNCH_ARGS),
                timeout=self._config.launch_timeout_ms,
                slow_mo=self._config.slow_mo,
            )
            context = await browser.new_context(
                viewport={
                    "width": self._config.viewport_width,
                    "height": self._config.viewport_height,
                },
                user_agent=self._config.user_agent,
                locale=self._config.locale,
            )
            context.set_default_timeout(self._config.navigation_timeout_ms)
            yield context
        finally:
            await self._teardown(playwright, browser, context)

    async def _teardown(self, playwright, browser, context) -> None:
        for nome, fechar in (
            ("context", context.close if context else None),
            ("browser", browser.close if browser else None),
            ("playwright", playwright.stop if playwright else None),
        ):
            if fechar is None:
                continue
            try:
                await fechar()
            except Exception as exc:
                logger.warning("Erro ao fechar %s: %s", nome, exc)

    async def _capturar_captcha(self, context) -> CaptchaCapturado:
        page = await context.new_page()
        await page.goto(
            self._config.portal_url,
            wait_until="networkidle",
            timeout=self._config.navigation_timeout_ms,
        )

        captcha = await page.wait_for_selector(
            self.SELECTORS["captcha_image"],
            timeout=self._config.captcha_timeout_ms,
        )
        if captcha is None:
            raise PortalUnreachableError(
                "CAPTCHA não encontrado na página",
                url=self._config.portal_url,
            )

        imagem = await captcha.screenshot(type="png")
        cookies = await context.cookies()

        return CaptchaCapturado(cookies=tuple(cookies), imagem_png=imagem)

    async def _enviar_captcha(
        self,
        context,
        cookies: Tuple[Dict[str, Any], ...],
        numero: NumeroProcesso,
        resposta: str,
    ) -> str:
        if cookies:
            await context.add_cookies(list(cookies))

        page = await context.new_page()
        await page.goto(
            self._config.portal_url,
            wait_until="networkidle",
            timeout=self._config.navigation_timeout_ms,
        )

        await page.wait_for_selector(self.SELECTORS["numero_input"])
        await page.fill(self.SELECTORS["numero_input"], str(numero))

        await page.wait_for_selector(self.SELECTORS["captcha_input"])
        await page.fill(self.SELECTORS["captcha_input"], resposta.strip().upper())

        async with page.expect_navigation(
            wait_until="networkidle",
            timeout=self._config.navigation_timeout_ms,
        ):
            await page.click(self.SELECTORS["submit_button"])

        return await page.content()
