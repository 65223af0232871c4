"""
Pydantic Fee Models

Fee modality, the per-call fee configuration and the computed payment amounts.
All monetary values in cents.
"""
from enum import Enum
from pydantic import BaseModel, Field, model_validator


class FeeModality(str, Enum):
    """Which party absorbs the platform fee."""
    COUPLE_PAYS = "couple_pays"
    GUEST_PAYS = "guest_pays"


class FeeConfig(BaseModel):
    """
    Fee settings in force for one charge.

    Built by the caller from the platform fee percentage and the tenant's
    registry config, then snapshotted onto the transaction.
    """
    fee_percentage: float = Field(ge=0, lt=1)
    modality: FeeModality

    model_config = {"frozen": True}


class PaymentAmounts(BaseModel):
    """
    Result of a fee calculation.

    net_amount_couple + platform_amount always equals gross_amount.
    """
    display_price: int = Field(ge=0)
    gross_amount: int = Field(ge=0)
    fee_amount: int = Field(ge=0)
    net_amount_couple: int = Field(ge=0)
    platform_amount: int = Field(ge=0)

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "example": {
                "display_price": 10526,
                "gross_amount": 10526,
                "fee_amount": 526,
                "net_amount_couple": 10000,
                "platform_amount": 526
            }
        }
    }

    @model_validator(mode="after")
    def amounts_balance(self) -> "PaymentAmounts":
        if self.net_amount_couple + self.platform_amount != self.gross_amount:
            raise ValueError(
                f"net ({self.net_amount_couple}) + platform ({self.platform_amount}) "
                f"!= gross ({self.gross_amount})"
            )
        return self
