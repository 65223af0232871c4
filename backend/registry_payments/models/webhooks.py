"""
Pydantic Webhook Models

Shape of the payment gateway notification body:

    {"event_type": "CHARGE.PAID",
     "data": {"id": "CHAR_...", "status": "PAID", "error_message": null, "amount": 10526}}
"""
from typing import Optional
from pydantic import BaseModel, Field


class WebhookChargeData(BaseModel):
    id: str = Field(min_length=1)
    status: str = Field(min_length=1)
    error_message: Optional[str] = None
    amount: Optional[int] = None

    model_config = {"extra": "allow"}


class WebhookPayload(BaseModel):
    event_type: str
    data: WebhookChargeData

    model_config = {"extra": "allow"}
