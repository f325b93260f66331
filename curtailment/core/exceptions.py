"""Exception hierarchy for the curtailment ledger.

- CurtailmentError: base for all errors raised by this package
- FetchError: settlement data could not be fetched
    - TransientFetchError: network failure, timeout or 5xx (short backoff)
        - DataParsingError: upstream payload not in the expected shape
    - RateLimitError: upstream rate limit hit, HTTP 429 (long backoff)
- NotFoundError: required reference data (difficulty, asset mapping) missing
- StoreWriteError: a database write failed; never retried automatically
"""


class CurtailmentError(Exception):
    """Base exception for all curtailment ledger errors."""


class FetchError(CurtailmentError):
    """Raised when settlement data cannot be fetched from the upstream API."""


class TransientFetchError(FetchError):
    """Raised on network errors, timeouts and upstream 5xx responses."""


class DataParsingError(TransientFetchError):
    """Raised when response data cannot be parsed into the expected format."""


class RateLimitError(FetchError):
    """Raised when the API returns a 429 rate limit response."""


class NotFoundError(CurtailmentError):
    """Raised when reference data required for a calculation is missing."""


class StoreWriteError(CurtailmentError):
    """Raised when persisting rows fails."""
