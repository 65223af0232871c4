"""
Pydantic Transaction Model

Read-side view of one gift purchase attempt, including its fee snapshot.
"""
import json
from datetime import datetime
from typing import Optional, Literal, Dict, Any
from pydantic import BaseModel, Field, field_validator, model_validator

from .fees import FeeModality


TransactionStatus = Literal["pending", "confirmed", "failed"]
PaymentMethod = Literal["credit_card", "pix"]

TERMINAL_STATUSES = frozenset({"confirmed", "failed"})


class Transaction(BaseModel):
    """
    Gift purchase transaction.

    - internal_id is caller facing; gateway_transaction_id is set once the
      gateway answers
    - fee_percentage / fee_modality are copied at creation time
    - status is pending until the gateway webhook (or a synchronous gateway
      failure) settles it
    """
    internal_id: str = Field(pattern="^TXN-[A-Z0-9]{16}$")
    gateway_transaction_id: Optional[str] = None
    tenant_id: str
    gift_item_id: str
    original_unit_price: int = Field(ge=0)
    fee_percentage: float = Field(ge=0, lt=1)
    fee_modality: FeeModality
    fee_amount: int = Field(ge=0)
    gross_amount: int = Field(ge=0)
    net_amount_couple: int = Field(ge=0)
    platform_amount: int = Field(ge=0)
    payment_method: PaymentMethod
    status: TransactionStatus
    error_message: Optional[str] = None
    gateway_response: Optional[Dict[str, Any]] = None
    confirmed_at: Optional[datetime] = None
    created_at: datetime

    model_config = {
        "from_attributes": True,
        "json_schema_extra": {
            "example": {
                "internal_id": "TXN-8F3K2L9QZ0A1B2C3",
                "gateway_transaction_id": "CHAR_5E1A0C7B",
                "tenant_id": "wedding_001",
                "gift_item_id": "gift_001",
                "original_unit_price": 10000,
                "fee_percentage": 0.05,
                "fee_modality": "guest_pays",
                "fee_amount": 526,
                "gross_amount": 10526,
                "net_amount_couple": 10000,
                "platform_amount": 526,
                "payment_method": "pix",
                "status": "pending",
                "error_message": None,
                "gateway_response": None,
                "confirmed_at": None,
                "created_at": "2026-02-05T14:35:00Z"
            }
        }
    }

    @field_validator("gateway_response", mode="before")
    @classmethod
    def decode_gateway_response(cls, v: Any) -> Any:
        """ORM rows store the gateway response as a JSON string."""
        if isinstance(v, str):
            return json.loads(v)
        return v

    @model_validator(mode="after")
    def amounts_balance(self) -> "Transaction":
        if self.net_amount_couple + self.platform_amount != self.gross_amount:
            raise ValueError("net_amount_couple + platform_amount must equal gross_amount")
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
