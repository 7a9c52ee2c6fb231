"""Exception types shared across the curation pipeline.

Three families matter to the orchestrator:
- fatal (ConfigError, DatastoreUnavailable): abort the run before any record is processed
- transient (TransientFetchError, RenderingError, OracleError): retried in-process or deferred
- terminal (OracleResponseError): the record is dropped and never retried
"""

from __future__ import annotations


class CurationError(Exception):
    """Base class for pipeline errors."""


class ConfigError(CurationError):
    """Missing or invalid configuration (fatal)."""


class DatastoreUnavailable(CurationError):
    """The datastore could not be reached at startup (fatal)."""


class OracleError(CurationError):
    """An oracle call failed after retries (rate limit, network, provider error)."""


class OracleResponseError(OracleError):
    """The oracle answered, but not with the agreed JSON contract."""


class TransientFetchError(CurationError):
    """Network timeout, connection failure or retryable HTTP status while fetching a page."""


class RenderingError(CurationError):
    """Raised when browser rendering fails."""
