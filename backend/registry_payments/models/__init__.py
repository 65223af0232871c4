from .fees import FeeModality, FeeConfig, PaymentAmounts
from .transactions import Transaction, TERMINAL_STATUSES
from .webhooks import WebhookPayload, WebhookChargeData
from .purchases import PurchaseRequest, PayerData, BillingAddress

__all__ = [
    "FeeModality",
    "FeeConfig",
    "PaymentAmounts",
    "Transaction",
    "TERMINAL_STATUSES",
    "WebhookPayload",
    "WebhookChargeData",
    "PurchaseRequest",
    "PayerData",
    "BillingAddress",
]
