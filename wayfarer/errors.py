"""
Error taxonomy for the enrichment core.

Provider clients translate transport and parsing problems into these types
at their boundary. Only ConfigError is ever surfaced to an HTTP caller;
the others are recovered locally by falling through to the next stage.
"""

from enum import Enum


class EnrichmentError(Exception):
    """Base class for enrichment failures."""


class NotFound(EnrichmentError):
    """Provider has no record for the requested key."""


class TransportError(EnrichmentError):
    """Network failure, timeout or unexpected HTTP status."""


class Blocked(EnrichmentError):
    """Scraping target rejected the request."""


class Malformed(EnrichmentError):
    """Provider response did not have the expected shape."""


class ConfigError(EnrichmentError):
    """A required credential or setting is missing."""


class ScrapeFailure(str, Enum):
    """Why a scrape produced no flight info."""
    BLOCKED = 'blocked'
    NOT_FOUND = 'not_found'
    MALFORMED = 'malformed'
    NETWORK_ERROR = 'network_error'
