"""
Error taxonomy for the ledger.

Each error maps to one failure class at the HTTP boundary; the mapping lives
in the API layer so the core stays transport agnostic.
"""

from pydantic import ValidationError as PydanticValidationError


class LedgerError(Exception):
    """Base class for every error raised by the ledger."""


class ValidationError(LedgerError):
    """Missing or invalid input fields, or a malformed tax-year label."""

    @classmethod
    def from_pydantic(cls, error: PydanticValidationError) -> "ValidationError":
        """Flatten pydantic's error list into one readable message."""
        parts = []
        for err in error.errors():
            location = ".".join(str(p) for p in err["loc"])
            parts.append(f"{location}: {err['msg']}" if location else err["msg"])
        return cls("; ".join(parts))


class NotFoundError(LedgerError):
    """The requested trade id does not exist."""

    def __init__(self, trade_id: str) -> None:
        super().__init__(f"Trade {trade_id} not found")
        self.trade_id = trade_id


class ConflictError(LedgerError):
    """A mutation was attempted on a locked trade."""

    def __init__(self, trade_id: str) -> None:
        super().__init__(f"Trade {trade_id} is locked")
        self.trade_id = trade_id


class UpstreamError(LedgerError):
    """The FX provider was unreachable or returned no usable rate."""


class InvariantViolation(LedgerError):
    """
    A programming-contract failure, such as an unvalued trade reaching the
    matching engine. Never shown to users as a validation problem.
    """
