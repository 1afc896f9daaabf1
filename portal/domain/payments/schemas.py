"""Payment schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from ...shared.money import to_float


class PaymentResponse(BaseModel):
    id: int
    invoiceId: int
    processorPaymentId: str
    amount: float
    method: Optional[str] = None
    status: str
    receiptUrl: Optional[str] = None
    paidById: Optional[int] = None
    createdAt: Optional[datetime] = None

    @classmethod
    def from_model(cls, payment) -> "PaymentResponse":
        return cls(
            id=payment.id,
            invoiceId=payment.invoice_id,
            processorPaymentId=payment.processor_payment_id,
            amount=to_float(payment.amount),
            method=payment.method,
            status=payment.status,
            receiptUrl=payment.receipt_url,
            paidById=payment.paid_by_id,
            createdAt=payment.created_at,
        )


class CheckoutResponse(BaseModel):
    url: str
    sessionId: Optional[str] = None
    amount: float
