"""Core exception hierarchy for SqueezeScan.

Per-symbol errors (``TransientFetchError``, ``ValidationError``,
``AdvisoryError``, ``SubscriptionError``) are caught inside the scan
pipeline and only cost that symbol its place in the cycle.
``PipelineFatalError`` aborts the whole cycle and reaches the caller.
"""


class SqueezeScanError(Exception):
    """Base exception class for all SqueezeScan errors.

    All SqueezeScan-specific exceptions inherit from this class,
    allowing callers to catch all framework errors with a single except clause.
    """


class ConfigError(SqueezeScanError):
    """Configuration-related errors.

    Raised when configuration files are invalid or required settings
    (such as provider credentials) are missing.
    """


class DataError(SqueezeScanError):
    """Data pipeline and processing errors."""


class TransientFetchError(DataError):
    """A provider call for a single symbol failed.

    The symbol is excluded from the current cycle and retried implicitly
    on the next one.

    Attributes:
        symbol: Ticker symbol that failed.
        reason: Description of the failure.
    """

    def __init__(self, symbol: str, reason: str):
        super().__init__(f"[{symbol}] Fetch failed: {reason}")
        self.symbol = symbol
        self.reason = reason


class ValidationError(DataError):
    """Fetched data for a symbol is unusable (missing price, empty history).

    Attributes:
        symbol: Ticker symbol with invalid data.
        reason: Which check failed.
    """

    def __init__(self, symbol: str, reason: str):
        super().__init__(f"[{symbol}] Invalid data: {reason}")
        self.symbol = symbol
        self.reason = reason


class AdvisoryError(SqueezeScanError):
    """Advisory service call failed or returned a malformed response.

    The candidate keeps its rule-based defaults; it is never dropped.

    Attributes:
        symbol: Ticker symbol being enriched.
        reason: Description of the failure.
    """

    def __init__(self, symbol: str, reason: str):
        super().__init__(f"[{symbol}] Advisory failed: {reason}")
        self.symbol = symbol
        self.reason = reason


class SubscriptionError(SqueezeScanError):
    """Live quote stream refused a subscribe request.

    Attributes:
        symbol: Ticker symbol that could not be subscribed.
        reason: Description of the failure.
    """

    def __init__(self, symbol: str, reason: str):
        super().__init__(f"[{symbol}] Subscription failed: {reason}")
        self.symbol = symbol
        self.reason = reason


class PipelineFatalError(SqueezeScanError):
    """A cycle-wide stage failed and the scan cycle was aborted.

    Raised when the universe cannot be fetched or the candidate set cannot
    be persisted. Nothing from the aborted cycle is written.

    Attributes:
        stage: Pipeline stage that failed ("universe", "persist").
        reason: Description of the failure.
    """

    def __init__(self, stage: str, reason: str):
        super().__init__(f"Scan cycle aborted at [{stage}]: {reason}")
        self.stage = stage
        self.reason = reason
