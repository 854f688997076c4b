"""
Simulated payment gateway.

No provider is contacted: every charge through a supported method succeeds.
The interface matches what a real Chapa / TeleBirr / CBE Birr / card client
would return so the booking workflow does not change when one is wired in.
"""
import datetime
import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal

from .models import PaymentMethod, PaymentStatus

logger = logging.getLogger("tour_booking")


@dataclass
class ChargeResult:
    transaction_id: str
    status: PaymentStatus
    processed_at: datetime.datetime

    @property
    def succeeded(self) -> bool:
        return self.status == PaymentStatus.COMPLETED


def generate_transaction_id() -> str:
    return f"TXN{uuid.uuid4().hex.upper()}"


def charge(method: PaymentMethod, amount: Decimal, reference: str) -> ChargeResult:
    """
    Charges `amount` with the given method. `reference` identifies the booking
    on the provider side.
    """
    transaction_id = generate_transaction_id()
    logger.info(f"Mock {method.value} charge of {amount} for {reference}: {transaction_id}")
    return ChargeResult(
        transaction_id=transaction_id,
        status=PaymentStatus.COMPLETED,
        processed_at=datetime.datetime.utcnow(),
    )
