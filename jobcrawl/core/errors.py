"""Crawl error taxonomy.

Retryability is carried on the exception so the controller can decide
whether a failed task goes back on the queue.
"""


class CrawlError(Exception):
    """Base error for anything raised by the crawler."""

    retryable: bool = False

    def __init__(self, message: str, *, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class NavigationFailure(CrawlError):
    """A page load failed or timed out. Retried at the queue level."""

    retryable = True


class DiscoveryTimeout(CrawlError):
    """Listing markers never appeared. Ends that listing page's contribution."""


class BrowserUnavailable(CrawlError):
    """The automation runtime is gone (browser closed or crashed). Run-fatal."""


class FatalConfigurationError(CrawlError):
    """Required input is missing or invalid. Aborts before any task runs."""
