"""
PROJUDI error hierarchy.

Distinguishes recoverable from permanent errors. A recoverable error is one
the caller may retry by starting a fresh consultation (new CAPTCHA);
permanent errors will fail the same way again.

Taxonomy:
- input errors (malformed case number), raised before any I/O
- policy errors (rate limit, daily quota), raised before any browser cost
- portal errors (unreachable, CAPTCHA rejected, case not found)
- resource errors (browser not available, browser pool exhausted)
"""
from typing import Optional


class ProjudiError(Exception):
    """Base class for PROJUDI consultation errors."""

    def __init__(self, message: str, recoverable: bool = True):
        super().__init__(message)
        self.recoverable = recoverable


class InvalidCaseNumberError(ProjudiError):
    """Case number does not have the 20 digits of the CNJ format."""

    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(message, recoverable=False)
        self.raw_text = raw_text


class TooSoonError(ProjudiError):
    """User called again before the minimum delay between consultations."""

    def __init__(self, message: str, seconds_remaining: int = 1):
        super().__init__(message, recoverable=True)
        self.seconds_remaining = seconds_remaining


class QuotaExceededError(ProjudiError):
    """User reached the daily consultation limit."""

    def __init__(self, message: str, limit: int = 0):
        super().__init__(message, recoverable=False)
        self.limit = limit


class PortalUnreachableError(ProjudiError):
    """Navigation to the portal failed or timed out."""

    def __init__(self, message: str, url: str = ""):
        super().__init__(message, recoverable=True)
        self.url = url


class BrowserPoolTimeoutError(PortalUnreachableError):
    """No browser slot freed up within the acquire timeout."""

    def __init__(self, message: str, timeout_seconds: float = 60.0):
        super().__init__(message)
        self.timeout_seconds = timeout_seconds


class BrowserNotAvailableError(ProjudiError):
    """Playwright/browser not available."""

    def __init__(self, message: str):
        super().__init__(message, recoverable=False)


class SessionExpiredError(ProjudiError):
    """Consultation session expired; a new CAPTCHA must be requested."""

    def __init__(self, message: str, session_id: Optional[str] = None):
        super().__init__(message, recoverable=True)
        self.session_id = session_id


class SessionNotFoundError(SessionExpiredError):
    """Session id is unknown, already consumed or owned by another user."""
    pass


class CaptchaRejectedError(ProjudiError):
    """Portal rejected the CAPTCHA answer."""

    def __init__(self, message: str):
        super().__init__(message, recoverable=True)


class CaseNotFoundError(ProjudiError):
    """Portal has no case with the requested number."""

    def __init__(self, message: str, numero_processo: str = ""):
        super().__init__(message, recoverable=False)
        self.numero_processo = numero_processo


class ParseError(ProjudiError):
    """Result page could not be parsed."""

    def __init__(self, message: str, html_sample: str = ""):
        super().__init__(message, recoverable=True)
        self.html_sample = html_sample[:500] if html_sample else ""
