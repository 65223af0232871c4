"""
Pydantic Purchase Request Models

Validated body of POST /api/events/{tenant_id}/gifts/{gift_id}/purchase.
"""
from typing import Optional, Literal
from pydantic import BaseModel, EmailStr, Field, model_validator


class PayerData(BaseModel):
    """Guest paying for the gift. document is a CPF (11) or CNPJ (14 digits)."""
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    document: str = Field(pattern=r"^\d{11}$|^\d{14}$")
    phone: Optional[str] = Field(default=None, pattern=r"^\d{10,11}$")


class BillingAddress(BaseModel):
    street: Optional[str] = Field(default=None, max_length=255)
    number: Optional[str] = Field(default=None, max_length=20)
    complement: Optional[str] = Field(default=None, max_length=100)
    district: Optional[str] = Field(default=None, max_length=100)
    city: Optional[str] = Field(default=None, max_length=100)
    state: Optional[str] = Field(default=None, min_length=2, max_length=2)
    postal_code: Optional[str] = Field(default=None, pattern=r"^\d{5}-?\d{3}$")


class PurchaseRequest(BaseModel):
    """
    Gift purchase request.

    The idempotency key is generated by the client once per purchase attempt
    and reused on retries of that same attempt.
    """
    payment_method: Literal["credit_card", "pix"]
    idempotency_key: str = Field(min_length=16, max_length=100)
    payer: PayerData
    card_token: Optional[str] = None
    installments: Optional[int] = Field(default=None, ge=1, le=12)
    billing: Optional[BillingAddress] = None

    @model_validator(mode="after")
    def card_token_for_credit_card(self) -> "PurchaseRequest":
        if self.payment_method == "credit_card" and not self.card_token:
            raise ValueError("card_token is required for credit card payments")
        return self

    def billing_data(self) -> dict:
        """Payer and billing fields in the form the gateway client expects."""
        data = self.payer.model_dump(exclude_none=True)
        data["installments"] = self.installments or 1
        if self.billing:
            data["address"] = self.billing.model_dump(exclude_none=True)
        return data
