from __future__ import annotations

from datetime import date
from typing import Any, Dict, Iterable, List

from erp_obras.domain.models import (
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_PENDING,
    AccountPayable,
    AccountReceivable,
)
from erp_obras.finance.accounts import add_months, parse_iso_date


PERIOD_MONTHS = {"month": 6, "quarter": 4, "year": 2}
PROJECTION_MONTHS = 3


def month_key(value: date) -> str:
    return f"{value.year}-{value.month:02d}"


def _month_start(today: date) -> date:
    return today.replace(day=1)


def monthly_cash_flow(
    payables: Iterable[AccountPayable],
    receivables: Iterable[AccountReceivable],
    period: str,
    today: date,
) -> List[Dict[str, Any]]:
    months = PERIOD_MONTHS.get(str(period or "month"), PERIOD_MONTHS["month"])
    start = _month_start(today)
    data: Dict[str, Dict[str, float]] = {}
    for offset in range(months):
        data[month_key(add_months(start, -offset))] = {"income": 0.0, "expense": 0.0}

    for receivable in receivables:
        paid_on = parse_iso_date(receivable.payment_date)
        if receivable.status != PAYMENT_STATUS_PAID or paid_on is None:
            continue
        bucket = data.get(month_key(paid_on))
        if bucket is not None:
            bucket["income"] += receivable.amount

    for payable in payables:
        paid_on = parse_iso_date(payable.payment_date)
        if payable.status != PAYMENT_STATUS_PAID or paid_on is None:
            continue
        bucket = data.get(month_key(paid_on))
        if bucket is not None:
            bucket["expense"] += payable.amount

    rows = []
    running_balance = 0.0
    for key in sorted(data):
        running_balance += data[key]["income"] - data[key]["expense"]
        rows.append(
            {
                "month": key,
                "income": data[key]["income"],
                "expense": data[key]["expense"],
                "balance": running_balance,
            }
        )
    rows.reverse()
    return rows


def projected_cash_flow(
    payables: Iterable[AccountPayable],
    receivables: Iterable[AccountReceivable],
    today: date,
) -> List[Dict[str, Any]]:
    start = _month_start(today)
    data: Dict[str, Dict[str, float]] = {}
    for offset in range(1, PROJECTION_MONTHS + 1):
        data[month_key(add_months(start, offset))] = {"projected_income": 0.0, "projected_expense": 0.0}

    for receivable in receivables:
        due = parse_iso_date(receivable.due_date)
        if receivable.status != PAYMENT_STATUS_PENDING or due is None:
            continue
        bucket = data.get(month_key(due))
        if bucket is not None:
            bucket["projected_income"] += receivable.amount

    for payable in payables:
        due = parse_iso_date(payable.due_date)
        if payable.status != PAYMENT_STATUS_PENDING or due is None:
            continue
        bucket = data.get(month_key(due))
        if bucket is not None:
            bucket["projected_expense"] += payable.amount

    return [{"month": key, **data[key]} for key in sorted(data)]


def cash_position(payables: Iterable[AccountPayable], receivables: Iterable[AccountReceivable]) -> Dict[str, float]:
    payable_rows = list(payables)
    receivable_rows = list(receivables)
    income = sum(row.amount for row in receivable_rows if row.status == PAYMENT_STATUS_PAID)
    expense = sum(row.amount for row in payable_rows if row.status == PAYMENT_STATUS_PAID)
    pending_income = sum(row.amount for row in receivable_rows if row.status == PAYMENT_STATUS_PENDING)
    pending_expense = sum(row.amount for row in payable_rows if row.status == PAYMENT_STATUS_PENDING)
    current = income - expense
    return {
        "current_balance": current,
        "pending_income": pending_income,
        "pending_expense": pending_expense,
        "projected_balance": current + pending_income - pending_expense,
    }


def expenses_by_category(payables: Iterable[AccountPayable]) -> List[Dict[str, Any]]:
    totals: Dict[str, float] = {}
    for payable in payables:
        if payable.status != PAYMENT_STATUS_PAID:
            continue
        totals[payable.category] = totals.get(payable.category, 0.0) + payable.amount
    rows = [{"name": name, "value": value} for name, value in totals.items()]
    rows.sort(key=lambda row: row["value"], reverse=True)
    return rows
