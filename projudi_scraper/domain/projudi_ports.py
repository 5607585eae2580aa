"""
PROJUDI Ports (Interfaces)

The consultation service talks to the portal only through this narrow
driver contract, so it can be exercised with a fake returning canned
HTML or errors. The Playwright implementation lives in
infrastructure/adapters/projudi_browser_adapter.py.
"""
from typing import Protocol, Tuple, Dict, Any, runtime_checkable

from projudi_scraper.domain.projudi_value_objects import NumeroProcesso
from projudi_scraper.domain.projudi_entities import CaptchaCapturado


@runtime_checkable
class PortalDriver(Protocol):
    """Browser automation against the PROJUDI public consultation page."""

    async def start_captcha_flow(self, numero: NumeroProcesso) -> CaptchaCapturado:
        """Open the consultation page and capture the CAPTCHA and cookies."""
        ...

    async def submit_captcha(
        self,
        cookies: Tuple[Dict[str, Any], ...],
        numero: NumeroProcesso,
        resposta: str,
    ) -> str:
        """Submit the case number and CAPTCHA answer; return the result HTML."""
        ...
