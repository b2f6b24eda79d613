from __future__ import annotations

import calendar
import math
from dataclasses import replace
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Sequence, TypeVar

from erp_obras.domain.models import (
    PAYMENT_STATUS_CANCELLED,
    PAYMENT_STATUS_OVERDUE,
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_PENDING,
    AccountPayable,
    AccountReceivable,
)


DEFAULT_PAYMENT_METHOD = "PIX"

Account = TypeVar("Account", AccountPayable, AccountReceivable)

SORTABLE_FIELDS = {
    "id": "id",
    "description": "description",
    "amount": "amount",
    "dueDate": "due_date",
    "status": "status",
    "category": "category",
    "paymentDate": "payment_date",
    "createdAt": "created_at",
}


def parse_iso_date(value: str | None) -> date | None:
    raw = str(value or "").strip()[:10]
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        return None


def add_months(value: date, months: int) -> date:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def is_overdue(account: AccountPayable | AccountReceivable, today: date) -> bool:
    if account.status == PAYMENT_STATUS_OVERDUE:
        return True
    if account.status != PAYMENT_STATUS_PENDING:
        return False
    due = parse_iso_date(account.due_date)
    return due is not None and due < today


def effective_status(account: AccountPayable | AccountReceivable, today: date) -> str:
    if is_overdue(account, today):
        return PAYMENT_STATUS_OVERDUE
    return account.status


def account_stats(accounts: Iterable[AccountPayable | AccountReceivable], today: date) -> Dict[str, Any]:
    rows = list(accounts)
    pending = [account for account in rows if account.status == PAYMENT_STATUS_PENDING]
    paid = [account for account in rows if account.status == PAYMENT_STATUS_PAID]
    return {
        "pending": len(pending),
        "paid": len(paid),
        "overdue": sum(1 for account in rows if is_overdue(account, today)),
        "cancelled": sum(1 for account in rows if account.status == PAYMENT_STATUS_CANCELLED),
        "total_pending": sum(account.amount for account in pending),
        "total_paid": sum(account.amount for account in paid),
    }


def mark_paid(account: Account, payment_date: str, payment_method: str | None = None) -> Account:
    return replace(
        account,
        status=PAYMENT_STATUS_PAID,
        payment_date=payment_date,
        payment_method=payment_method or DEFAULT_PAYMENT_METHOD,
    )


def cancel(account: Account) -> Account:
    if account.status == PAYMENT_STATUS_PAID:
        return account
    return replace(account, status=PAYMENT_STATUS_CANCELLED)


def split_installments(
    template: AccountReceivable,
    installments: int,
    id_factory: Callable[[int], str],
) -> List[AccountReceivable]:
    total = max(1, int(installments or 1))
    first_due = parse_iso_date(template.due_date) or date.today()
    amount = template.amount / total
    rows = []
    for index in range(total):
        description = template.description
        if total > 1:
            description = f"{template.description} - Parcela {index + 1}/{total}"
        rows.append(
            replace(
                template,
                id=id_factory(index),
                amount=amount,
                due_date=add_months(first_due, index).isoformat(),
                installment_number=index + 1,
                total_installments=total,
                description=description,
            )
        )
    return rows


def filter_accounts(
    accounts: Iterable[Account],
    today: date,
    status: str | None = None,
    project_id: str | None = None,
    category: str | None = None,
    search: str | None = None,
    names: Dict[str, str] | None = None,
) -> List[Account]:
    """Filter by status/project/category and free text.

    ``names`` maps counterpart and project ids to display names so the search
    matches supplier, client and project names as well as description, id and
    amount.
    """
    lookup = names or {}
    term = (search or "").strip()
    term_lower = term.lower()
    rows = []
    for account in accounts:
        if status and status != "all":
            if status == PAYMENT_STATUS_OVERDUE:
                if not is_overdue(account, today):
                    continue
            elif account.status != status:
                continue
        if project_id and project_id != "all" and account.project_id != project_id:
            continue
        if category and category != "all" and getattr(account, "category", None) != category:
            continue
        if term:
            counterpart = getattr(account, "supplier_id", None) or getattr(account, "client_id", "")
            haystack = (
                account.description.lower(),
                account.id.lower(),
                lookup.get(counterpart, "").lower(),
                lookup.get(account.project_id, "").lower(),
            )
            if not any(term_lower in value for value in haystack) and term not in _amount_text(account.amount):
                continue
        rows.append(account)
    return rows


def _amount_text(amount: float) -> str:
    if float(amount).is_integer():
        return str(int(amount))
    return str(amount)


def sort_accounts(
    accounts: Sequence[Account],
    key: str = "dueDate",
    direction: str = "asc",
    names: Dict[str, str] | None = None,
) -> List[Account]:
    lookup = names or {}
    reverse = str(direction or "asc").lower() == "desc"

    def _value(account):
        if key in {"supplierName", "clientName"}:
            counterpart = getattr(account, "supplier_id", None) or getattr(account, "client_id", "")
            return lookup.get(counterpart, "")
        if key == "projectName":
            return lookup.get(account.project_id, "")
        attribute = SORTABLE_FIELDS.get(key, "due_date")
        value = getattr(account, attribute, None)
        return "" if value is None else value

    return sorted(accounts, key=_value, reverse=reverse)


def paginate(rows: Sequence[Any], page: int = 1, per_page: int = 10) -> Dict[str, Any]:
    size = max(1, int(per_page or 10))
    total = len(rows)
    total_pages = math.ceil(total / size) if total else 0
    current = max(1, int(page or 1))
    start = (current - 1) * size
    return {
        "items": list(rows[start : start + size]),
        "page": current,
        "per_page": size,
        "total": total,
        "total_pages": total_pages,
    }
