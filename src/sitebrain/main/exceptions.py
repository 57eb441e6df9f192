class SitebrainException(Exception):
    pass


class NotFoundException(SitebrainException):
    pass


class NotReadyException(SitebrainException):
    pass


class QueueUnavailableException(SitebrainException):
    """Raised when the queue backend cannot be reached (or is degraded)."""


class CrawlerException(SitebrainException):
    pass


class NoPagesScrapedException(CrawlerException):
    def __init__(self, website_url: str | None = None):
        self.website_url = website_url
        super().__init__("No pages scraped from website")


class EmbeddingException(SitebrainException):
    pass


class BadRequestException(EmbeddingException):
    pass


class InvalidRunTransitionException(SitebrainException):
    pass


class NoEmbeddingsCreatedException(EmbeddingException):
    """No page produced a chunk long enough to embed.

    Retrying yields the same result, so the job fails on the first attempt.
    """

    retryable = False

    def __init__(self, pages: int = 0):
        self.pages = pages
        super().__init__(f"No embeddings created from {pages} scraped pages")
