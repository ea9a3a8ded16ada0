"""Error taxonomy -- every failure surfaced to a caller carries a machine-checkable kind.

The HTTP layer and the CLI render these as {"error": message, "kind": kind}.
"""

from __future__ import annotations


class TradingError(Exception):
    """Base class for all structured failures."""

    kind = "trading_error"
    status = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind}


class UnauthorizedError(TradingError):
    """No owner identity, or the supplied one is not recognised."""

    kind = "unauthorized"
    status = 401


class DataUnavailableError(TradingError):
    """The market data gateway returned nothing usable for the request."""

    kind = "data_unavailable"
    status = 404


class NoDataError(DataUnavailableError):
    """A backtest date range produced an empty price series."""


class ProviderError(TradingError):
    """The judgment provider failed: HTTP error, timeout, quota or malformed reply."""

    kind = "provider_error"
    status = 502

    def __init__(self, message: str, stage: str | None = None) -> None:
        super().__init__(message)
        self.stage = stage

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.stage:
            data["stage"] = self.stage
        return data


class ValidationError(TradingError):
    """Malformed ticker or date input."""

    kind = "validation_error"
    status = 400


class LedgerConflictError(TradingError):
    """A position changed between read and write; the caller should retry."""

    kind = "ledger_conflict"
    status = 409
