"""
Aggregation helpers for the values the client displays.

All functions are pure: they read the given transactions and return
integers (cents, counts) or a percentage. Amounts are integer cents, so
sums never need rounding.
"""

from typing import Iterable

from apps.transactions.models import Transaction, TransactionType, TransactionStatus


INCOME_TYPES = (TransactionType.INCOME,)
EXPENSE_TYPES = (
    TransactionType.EXPENSE,
    TransactionType.INSTALLMENT,
    TransactionType.RECURRING,
)


def sum_by_type(transactions: Iterable[Transaction], type: str) -> int:
    """Sum ``amount_in_cents`` of the transactions of one type."""
    return sum(tx.amount_in_cents for tx in transactions if tx.type == type)


def progress(tx: Transaction) -> float:
    """
    Percentage of the purchase reached at this installment.

    ``installment_number / total_installments * 100``; 0 when either is missing.
    """
    if tx.installment_number and tx.total_installments:
        return tx.installment_number / tx.total_installments * 100
    return 0


def total_amount(tx: Transaction) -> int:
    """Whole purchase amount for installments, the amount itself otherwise."""
    if tx.total_installments and tx.amount_in_cents:
        return tx.total_installments * tx.amount_in_cents
    return tx.amount_in_cents


def remaining_installments(tx: Transaction) -> int:
    """Installments left after this one, never below zero."""
    if tx.installment_number and tx.total_installments:
        return max(0, tx.total_installments - tx.installment_number)
    return 0


def summarize(transactions: Iterable[Transaction]) -> dict:
    """
    Totals for a window of transactions, as shown on the planner screen.

    Cancelled transactions are left out of every total.

    Returns:
        dict: income_in_cents, expense_in_cents, balance_in_cents,
        by_type ({type: cents} for every type) and count.
    """
    active = [tx for tx in transactions if tx.status != TransactionStatus.CANCELLED]

    by_type = {type: sum_by_type(active, type) for type in TransactionType.values}
    income = sum(by_type[type] for type in INCOME_TYPES)
    expense = sum(by_type[type] for type in EXPENSE_TYPES)

    return {
        'income_in_cents': income,
        'expense_in_cents': expense,
        'balance_in_cents': income - expense,
        'by_type': by_type,
        'count': len(active),
    }
