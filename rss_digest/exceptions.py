class RSSDigestError(Exception):
    """Base class for rss_digest errors."""


class SourceFetchError(RSSDigestError):
    """Raised when a feed cannot be fetched or answers with a non-success status."""


class ParseError(RSSDigestError):
    """Raised when a feed document is malformed and yields no entries."""


class PersistenceError(RSSDigestError):
    """Raised when the article snapshot cannot be read or written."""


class InvalidFilterError(RSSDigestError, ValueError):
    """Raised when a caller asks for a category that is not known."""

    def __init__(self, category: str) -> None:
        super().__init__(f"Unknown category: {category!r}")
        self.category = category
