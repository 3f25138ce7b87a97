"""
Domain primitives for ledger values.

These primitives give semantic meaning to the Decimal amounts that flow
through the ledger while staying convertible to plain Decimal for storage
and computation.
"""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from src.ledger.enums import FeeCurrency


class Money(BaseModel):
    """
    An amount in one of the fee currencies.

    ASSET amounts are denominated in units of the traded asset and only gain
    a GBP value once the trade's per-unit price is known.
    """

    amount: Decimal = Field(ge=Decimal("0"), description="Amount charged")
    currency: FeeCurrency = Field(description="Denomination of the amount")

    model_config = ConfigDict(frozen=True)

    def format_display(self, decimals: int = 2) -> str:
        """Format amount for display."""
        return f"{self.amount:,.{decimals}f} {self.currency.value}"

    def __str__(self) -> str:
        """String representation."""
        return self.format_display()


class Sterling(BaseModel):
    """
    A GBP amount, which may be negative (losses).
    """

    value: Decimal = Field(description="Amount in pounds sterling")

    model_config = ConfigDict(frozen=True)

    def is_loss(self) -> bool:
        """Check if the amount is negative."""
        return self.value < 0

    def format_display(self, decimals: int = 2) -> str:
        """Format as pounds, with the sign ahead of the symbol."""
        sign = "-" if self.value < 0 else ""
        return f"{sign}£{abs(self.value):,.{decimals}f}"

    def __str__(self) -> str:
        """String representation."""
        return self.format_display()


class Quantity(BaseModel):
    """
    Represents a quantity of an asset.

    Quantities never go negative.
    """

    value: Decimal = Field(ge=Decimal("0"), description="Quantity of the asset")

    model_config = ConfigDict(frozen=True)

    def format_display(self, decimals: int = 8) -> str:
        """Format quantity for display, dropping trailing zeros."""
        text = f"{self.value:,.{decimals}f}"
        return text.rstrip("0").rstrip(".") if "." in text else text

    def __str__(self) -> str:
        """String representation."""
        return self.format_display()
