"""
FIFO payment allocation.

Contractors and machines keep explicit allocation rows linking each
payment to the entries it settles. They are never edited in place: any
entry or payment change deletes them and re-derives the whole set from
entries and payments ordered by (date, id).

Vendors keep no allocation rows; `pool_fifo` spreads the vendor payment
pool across purchases for display.
"""
from decimal import Decimal
from typing import Dict, Iterable, List, Tuple
from sqlalchemy import func
from sqlalchemy.orm import Session

from sitebooks.services.helpers import money

ZERO = Decimal("0.00")


def allocate_fifo(entries: Iterable, payments: Iterable) -> List[Tuple[object, object, Decimal]]:
    """
    Greedy FIFO: each payment settles the oldest open entries first.

    Returns (entry, payment, amount) triples. Payment amounts beyond the
    total of all entries stay unallocated.
    """
    entries = sorted(entries, key=lambda e: (e.date, e.id))
    payments = sorted(payments, key=lambda p: (p.date, p.id))

    allocations = []
    index = 0
    open_amount = money(entries[0].amount) if entries else ZERO
    for payment in payments:
        left = money(payment.amount)
        while left > 0 and index < len(entries):
            amount = min(left, open_amount)
            if amount > 0:
                allocations.append((entries[index], payment, amount))
                left -= amount
                open_amount -= amount
            if open_amount <= 0:
                index += 1
                if index < len(entries):
                    open_amount = money(entries[index].amount)
        if index >= len(entries):
            break
    return allocations


def rebuild_allocations(db: Session, allocation_model, owner_field: str, owner_id: int,
                        entry_model, payment_model) -> int:
    """
    Replace all allocation rows for one owner (contractor or machine).

    `owner_field` names the foreign key column shared by the entry,
    payment and allocation models. Returns the number of rows written.
    """
    owner_column = getattr(allocation_model, owner_field)
    entries = db.query(entry_model).filter(getattr(entry_model, owner_field) == owner_id).all()
    payments = db.query(payment_model).filter(getattr(payment_model, owner_field) == owner_id).all()

    db.query(allocation_model).filter(owner_column == owner_id).delete(synchronize_session=False)

    rows = [
        allocation_model(**{
            owner_field: owner_id,
            "entry_id": entry.id,
            "payment_id": payment.id,
            "amount": amount,
        })
        for entry, payment, amount in allocate_fifo(entries, payments)
    ]
    db.add_all(rows)
    db.flush()
    return len(rows)


def allocated_by_entry(db: Session, allocation_model, entry_ids: List[int]) -> Dict[int, Decimal]:
    """Sum of allocated amounts per entry id"""
    if not entry_ids:
        return {}
    rows = db.query(
        allocation_model.entry_id, func.sum(allocation_model.amount)
    ).filter(
        allocation_model.entry_id.in_(entry_ids)
    ).group_by(allocation_model.entry_id).all()
    return {entry_id: money(total) for entry_id, total in rows}


def pool_fifo(purchases: Iterable, pool) -> Dict[int, Tuple[Decimal, Decimal]]:
    """
    Spread a payment pool over purchases, oldest first.

    Each purchase already carries its own paid_amount; the pool tops up
    its remaining. Returns {purchase id: (paid, remaining)}.
    """
    result = {}
    pool = money(pool)
    for purchase in sorted(purchases, key=lambda p: (p.date, p.id)):
        take = min(money(purchase.remaining), pool)
        pool -= take
        paid = money(purchase.paid_amount) + take
        result[purchase.id] = (paid, max(ZERO, money(purchase.total_price) - paid))
    return result
