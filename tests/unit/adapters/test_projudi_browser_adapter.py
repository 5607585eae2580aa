"""
Tests for the PROJUDI browser adapter (Playwright).

Playwright is mocked end to end; no browser is launched.
"""
import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

ADAPTER_MODULE = "projudi_scraper.infrastructure.adapters.projudi_browser_adapter"


def _numero():
    from projudi_scraper.domain.projudi_value_objects import NumeroProcesso
    return NumeroProcesso("00026885420248160136")


def _mock_playwright(html="<html>resultado</html>"):
    """Build a mocked async_playwright factory and its page/context/browser."""
    captcha_element = MagicMock()
    captcha_element.screenshot = AsyncMock(return_value=b"\x89PNG-captcha")

    page = MagicMock()
    page.goto = AsyncMock()
    page.wait_for_selector = AsyncMock(return_value=captcha_element)
    page.fill = AsyncMock()
    page.click = AsyncMock()
    page.content = AsyncMock(return_value=html)
    page.expect_navigation = MagicMock()

    context = MagicMock()
    context.new_page = AsyncMock(return_value=page)
    context.cookies = AsyncMock(return_value=[{"name": "JSESSIONID", "value": "abc"}])
    context.add_cookies = AsyncMock()
    context.close = AsyncMock()

    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock()

    playwright = MagicMock()
    playwright.chromium.launch = AsyncMock(return_value=browser)
    playwright.stop = AsyncMock()

    async_playwright = MagicMock()
    async_playwright.return_value.start = AsyncMock(return_value=playwright)

    return async_playwright, playwright, browser, context, page


class TestBrowserConfig:
    """Tests for BrowserConfig dataclass."""

    def test_default_values(self):
        """BrowserConfig defaults match the portal's needs."""
        from projudi_scraper.infrastructure.adapters.projudi_browser_adapter import (
            BrowserConfig, PORTAL_URL,
        )
        config = BrowserConfig()
        assert config.headless is True
        assert config.portal_url == PORTAL_URL
        assert config.navigation_timeout_ms == 30000
        assert config.captcha_timeout_ms == 10000
        assert config.locale == "pt-BR"
        assert "Mozilla" in config.user_agent

    def test_immutability(self):
        """BrowserConfig is frozen dataclass."""
        from projudi_scraper.infrastructure.adapters.projudi_browser_adapter import BrowserConfig
        config = BrowserConfig()
        with pytest.raises(Exception):
            config.headless = False

    def test_portal_url(self):
        """Entry point is the TJPR public consultation page."""
        from projudi_scraper.infrastructure.adapters.projudi_browser_adapter import PORTAL_URL
        assert PORTAL_URL.startswith("https://consulta.tjpr.jus.br/projudi_consulta/")
        assert "actionType=iniciar" in PORTAL_URL


class TestBrowserPool:
    """Tests for BrowserPool."""

    def test_defaults(self):
        """Pool holds 3 browsers by default."""
        from projudi_scraper.infrastructure.adapters.projudi_browser_adapter import BrowserPool
        pool = BrowserPool()
        assert pool.stats() == {"size": 3, "in_use": 0, "available": 3, "pending": 0}

    def test_invalid_size(self):
        """A pool needs at least one browser."""
        from projudi_scraper.infrastructure.adapters.projudi_browser_adapter import BrowserPool
        with pytest.raises(ValueError):
            BrowserPool(max_browsers=0)

    @pytest.mark.asyncio
    async def test_slot_tracks_usage(self):
        """Holding a slot counts as in use until released."""
        from projudi_scraper.infrastructure.adapters.projudi_browser_adapter import BrowserPool
        pool = BrowserPool(max_browsers=2)

        async with pool.slot():
            assert pool.in_use == 1
            assert pool.available == 1

        assert pool.in_use == 0

    @pytest.mark.asyncio
    async def test_slot_released_on_error(self):
        """A failing block still frees its slot."""
        from projudi_scraper.infrastructure.adapters.projudi_browser_adapter import BrowserPool
        pool = BrowserPool(max_browsers=1)

        with pytest.raises(RuntimeError):
            async with pool.slot():
                raise RuntimeError("falhou")

        assert pool.in_use == 0
        async with pool.slot():
            assert pool.in_use == 1

    @pytest.mark.asyncio
    async def test_acquire_timeout(self):
        """Waiting past the acquire timeout raises BrowserPoolTimeoutError."""
        from projudi_scraper.infrastructure.adapters.projudi_browser_adapter import BrowserPool
        from projudi_scraper.domain.projudi_errors import BrowserPoolTimeoutError
        pool = BrowserPool(max_browsers=1, acquire_timeout_s=0.01)

        async with pool.slot():
            with pytest.raises(BrowserPoolTimeoutError) as exc_info:
                async with pool.slot():
                    pass

        assert exc_info.value.timeout_seconds == 0.01
        assert pool.pending == 0

    @pytest.mark.asyncio
    async def test_caps_concurrency(self):
        """No more than max_browsers blocks run at once."""
        from projudi_scraper.infrastructure.adapters.projudi_browser_adapter import BrowserPool
        pool = BrowserPool(max_browsers=2)
        pico = 0

        async def usar():
            nonlocal pico
            async with pool.slot():
                pico = max(pico, pool.in_use)
                await asyncio.sleep(0.01)

        await asyncio.gather(*(usar() for _ in range(5)))

        assert pico == 2


class TestLoadPlaywright:
    """Tests for the lazy Playwright import."""

    def test_missing_playwright_raises(self):
        """A missing install raises BrowserNotAvailableError."""
        from projudi_scraper.infrastructure.adapters.projudi_browser_adapter import _load_playwright
        from projudi_scraper.domain.projudi_errors import BrowserNotAvailableError

        with patch.dict('sys.modules', {'playwright': None, 'playwright.async_api': None}):
            with pytest.raises(BrowserNotAvailableError):
                _load_playwright()


class TestProjudiBrowserAdapterInit:
    """Tests for adapter construction."""

    def test_default_config_and_pool(self):
        """Adapter builds default config and pool."""
        from projudi_scraper.infrastructure.adapters.projudi_browser_adapter import (
            ProjudiBrowserAdapter,
        )
        adapter = ProjudiBrowserAdapter()
        assert adapter.config.headless is True
        assert adapter.pool.size == 3

    def test_satisfies_portal_driver(self):
        """Adapter implements the PortalDriver port."""
        from projudi_scraper.infrastructure.adapters.projudi_browser_adapter import (
            ProjudiBrowserAdapter,
        )
        from projudi_scraper.domain.projudi_ports import PortalDriver
        assert isinstance(ProjudiBrowserAdapter(), PortalDriver)


class TestStartCaptchaFlow:
    """Tests for start_captcha_flow (phase 1)."""

    @pytest.mark.asyncio
    async def test_captures_captcha_and_cookies(self):
        """Returns the PNG screenshot and the context cookies."""
        from projudi_scraper.infrastructure.adapters.projudi_browser_adapter import (
            ProjudiBrowserAdapter, LAUNCH_ARGS, PORTAL_URL,
        )
        async_playwright, playwright, browser, context, page = _mock_playwright()

        with patch(f"{ADAPTER_MODULE}._load_playwright", return_value=async_playwright):
            captcha = await ProjudiBrowserAdapter().start_captcha_flow(_numero())

        assert captcha.imagem_png == b"\x89PNG-captcha"
        assert captcha.cookies == ({"name": "JSESSIONID", "value": "abc"},)

        launch_kwargs = playwright.chromium.launch.call_args.kwargs
        assert launch_kwargs["headless"] is True
        assert launch_kwargs["args"] == list(LAUNCH_ARGS)
        assert "--no-sandbox" in launch_kwargs["args"]

        page.goto.assert_awaited_once()
        assert page.goto.call_args.args[0] == PORTAL_URL
        assert page.goto.call_args.kwargs["wait_until"] == "networkidle"
        assert page.wait_for_selector.call_args.args[0] == "#captchaImg"

    @pytest.mark.asyncio
    async def test_tears_down_browser(self):
        """Context, browser and Playwright are closed after the call."""
        from projudi_scraper.infrastructure.adapters.projudi_browser_adapter import (
            ProjudiBrowserAdapter,
        )
        async_playwright, playwright, browser, context, page = _mock_playwright()

        with patch(f"{ADAPTER_MODULE}._load_playwright", return_value=async_playwright):
            await ProjudiBrowserAdapter().start_captcha_flow(_numero())

        context.close.assert_awaited_once()
        browser.close.assert_awaited_once()
        playwright.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_captcha_element(self):
        """No CAPTCHA element raises PortalUnreachableError and still tears down."""
        from projudi_scraper.infrastructure.adapters.projudi_browser_adapter import (
            ProjudiBrowserAdapter,
        )
        from projudi_scraper.domain.projudi_errors import PortalUnreachableError
        async_playwright, playwright, browser, context, page = _mock_playwright()
        page.wait_for_selector = AsyncMock(return_value=None)

        with patch(f"{ADAPTER_MODULE}._load_playwright", return_value=async_playwright):
            with pytest.raises(PortalUnreachableError) as exc_info:
                await ProjudiBrowserAdapter().start_captcha_flow(_numero())

        assert "CAPTCHA" in str(exc_info.value)
        browser.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_navigation_error_becomes_portal_unreachable(self):
        """Playwright errors surface as PortalUnreachableError."""
        from projudi_scraper.infrastructure.adapters.projudi_browser_adapter import (
            ProjudiBrowserAdapter,
        )
        from projudi_scraper.domain.projudi_errors import PortalUnreachableError
        async_playwright, playwright, browser, context, page = _mock_playwright()
        page.goto = AsyncMock(side_effect=Exception("net::ERR_CONNECTION_REFUSED"))

        with patch(f"{ADAPTER_MODULE}._load_playwright", return_value=async_playwright):
            with pytest.raises(PortalUnreachableError) as exc_info:
                await ProjudiBrowserAdapter().start_captcha_flow(_numero())

        assert "ERR_CONNECTION_REFUSED" in str(exc_info.value)
        playwright.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_operation_timeout(self):
        """An operation past its deadline raises PortalUnreachableError."""
        from projudi_scraper.infrastructure.adapters.projudi_browser_adapter import (
            ProjudiBrowserAdapter, BrowserConfig,
        )
        from projudi_scraper.domain.projudi_errors import PortalUnreachableError
        async_playwright, playwright, browser, context, page = _mock_playwright()

        async def lento(*args, **kwargs):
            await asyncio.sleep(1)

        page.goto = AsyncMock(side_effect=lento)
        adapter = ProjudiBrowserAdapter(config=BrowserConfig(operation_timeout_s=0.01))

        with patch(f"{ADAPTER_MODULE}._load_playwright", return_value=async_playwright):
            with pytest.raises(PortalUnreachableError) as exc_info:
                await adapter.start_captcha_flow(_numero())

        assert "Tempo esgotado" in str(exc_info.value)
        browser.close.assert_awaited_once()
        assert adapter.pool.in_use == 0

    @pytest.mark.asyncio
    async def test_teardown_errors_do_not_mask_result(self):
        """A failing close is logged, not raised."""
        from projudi_scraper.infrastructure.adapters.projudi_browser_adapter import (
            ProjudiBrowserAdapter,
        )
        async_playwright, playwright, browser, context, page = _mock_playwright()
        context.close = AsyncMock(side_effect=Exception("already closed"))

        with patch(f"{ADAPTER_MODULE}._load_playwright", return_value=async_playwright):
            captcha = await ProjudiBrowserAdapter().start_captcha_flow(_numero())

        assert captcha.imagem_png == b"\x89PNG-captcha"
        browser.close.assert_awaited_once()
        playwright.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_browser_not_available_propagates(self):
        """BrowserNotAvailableError is not wrapped."""
        from projudi_scraper.infrastructure.adapters.projudi_browser_adapter import (
            ProjudiBrowserAdapter,
        )
        from projudi_scraper.domain.projudi_errors import BrowserNotAvailableError

        with patch(
            f"{ADAPTER_MODULE}._load_playwright",
            side_effect=BrowserNotAvailableError("Playwright não instalado"),
        ):
            with pytest.raises(BrowserNotAvailableError):
                await ProjudiBrowserAdapter().start_captcha_flow(_numero())


class TestSubmitCaptcha:
    """Tests for submit_captcha (phase 2)."""

    @pytest.mark.asyncio
    async def test_replays_cookies_and_fills_form(self):
        """Cookies are restored and the form is filled and submitted."""
        from projudi_scraper.infrastructure.adapters.projudi_browser_adapter import (
            ProjudiBrowserAdapter,
        )
        async_playwright, playwright, browser, context, page = _mock_playwright(
            html="<html>processo</html>",
        )
        cookies = ({"name": "JSESSIONID", "value": "abc"},)

        with patch(f"{ADAPTER_MODULE}._load_playwright", return_value=async_playwright):
            html = await ProjudiBrowserAdapter().submit_captcha(cookies, _numero(), " ab12c ")

        assert html == "<html>processo</html>"
        context.add_cookies.assert_awaited_once_with(list(cookies))
        page.fill.assert_any_await("#numeroProcesso", "0002688-54.2024.8.16.0136")
        page.fill.assert_any_await("#captcha", "AB12C")
        page.click.assert_awaited_once_with("input[type='submit']")
        page.expect_navigation.assert_called_once()

    @pytest.mark.asyncio
    async def test_without_cookies(self):
        """An empty cookie jar is not replayed."""
        from projudi_scraper.infrastructure.adapters.projudi_browser_adapter import (
            ProjudiBrowserAdapter,
        )
        async_playwright, playwright, browser, context, page = _mock_playwright()

        with patch(f"{ADAPTER_MODULE}._load_playwright", return_value=async_playwright):
            await ProjudiBrowserAdapter().submit_captcha((), _numero(), "AB12C")

        context.add_cookies.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_click_failure_becomes_portal_unreachable(self):
        """A failing submission raises PortalUnreachableError and tears down."""
        from projudi_scraper.infrastructure.adapters.projudi_browser_adapter import (
            ProjudiBrowserAdapter,
        )
        from projudi_scraper.domain.projudi_errors import PortalUnreachableError
        async_playwright, playwright, browser, context, page = _mock_playwright()
        page.click = AsyncMock(side_effect=Exception("Timeout 30000ms exceeded"))

        with patch(f"{ADAPTER_MODULE}._load_playwright", return_value=async_playwright):
            with pytest.raises(PortalUnreachableError):
                await ProjudiBrowserAdapter().submit_captcha((), _numero(), "AB12C")

        context.close.assert_awaited_once()
        browser.close.assert_awaited_once()
