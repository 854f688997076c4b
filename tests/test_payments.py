from decimal import Decimal

from tourbooking import payments
from tourbooking.models import PaymentMethod, PaymentStatus


def test_charge_succeeds_for_every_method():
    for method in PaymentMethod:
        result = payments.charge(method, Decimal("20000.00"), reference="booking-1")
        assert result.succeeded
        assert result.status == PaymentStatus.COMPLETED


def test_transaction_ids_are_unique():
    ids = {payments.generate_transaction_id() for _ in range(1000)}

    assert len(ids) == 1000
    assert all(tid.startswith("TXN") and len(tid) == 35 for tid in ids)
