"""
FIFO allocation helpers
"""
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

from sitebooks.services.allocation import allocate_fifo, pool_fifo


def row(id, day, amount, **extra):
    return SimpleNamespace(id=id, date=date(2024, 1, day), amount=Decimal(amount), **extra)


def test_payments_settle_oldest_entries_first():
    entries = [row(2, 5, "500"), row(1, 1, "1000")]
    payments = [row(10, 6, "1200")]

    allocations = [(e.id, p.id, amount) for e, p, amount in allocate_fifo(entries, payments)]
    assert allocations == [(1, 10, Decimal("1000.00")), (2, 10, Decimal("200.00"))]


def test_same_date_is_ordered_by_id():
    entries = [row(4, 1, "300"), row(3, 1, "300")]
    payments = [row(11, 2, "100"), row(10, 2, "400")]

    allocations = [(e.id, p.id, amount) for e, p, amount in allocate_fifo(entries, payments)]
    assert allocations == [
        (3, 10, Decimal("300.00")),
        (4, 10, Decimal("100.00")),
        (4, 11, Decimal("100.00")),
    ]


def test_excess_payment_stays_unallocated():
    allocations = allocate_fifo([row(1, 1, "100")], [row(10, 2, "250")])
    assert sum(amount for _, _, amount in allocations) == Decimal("100.00")
    assert allocate_fifo([], [row(10, 2, "250")]) == []


def test_vendor_pool_tops_up_oldest_purchases():
    purchases = [
        SimpleNamespace(id=1, date=date(2024, 1, 1), total_price=Decimal("50000"),
                        paid_amount=Decimal("20000"), remaining=Decimal("30000")),
        SimpleNamespace(id=2, date=date(2024, 1, 10), total_price=Decimal("25000"),
                        paid_amount=Decimal("0"), remaining=Decimal("25000")),
    ]

    result = pool_fifo(purchases, Decimal("40000"))
    assert result[1] == (Decimal("50000.00"), Decimal("0.00"))
    assert result[2] == (Decimal("10000.00"), Decimal("15000.00"))
