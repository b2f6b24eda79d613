from __future__ import annotations

import random
import re
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable

from erp_obras.domain.models import (
    DEFAULT_ITEM_CATEGORY,
    PAYMENT_STATUS_PENDING,
    AccountPayable,
    MaterialItem,
    MaterialOrder,
    OrderQuote,
)


DEFAULT_DUE_DAYS = 30
DEFAULT_PAYABLE_CATEGORY = "Materiais"

ITEM_CATEGORY_TO_PAYABLE: Dict[str, str] = {
    "Estrutural": "Materiais",
    "Básico": "Materiais",
    "Agregados": "Materiais",
    "Fixação": "Materiais",
    "Madeiramento": "Materiais",
    "Acabamento": "Materiais",
}

_BILLING_DAYS_PATTERN = re.compile(r"(\d+)\s*dia", re.IGNORECASE)


def new_payable_id(now: datetime | None = None) -> str:
    moment = now or datetime.now(timezone.utc)
    suffix = "".join(random.choices("abcdefghijklmnopqrstuvwxyz0123456789", k=9))
    return f"AP-{int(moment.timestamp() * 1000)}-{suffix}"


def billing_term_days(terms: str | None) -> int | None:
    match = _BILLING_DAYS_PATTERN.search(terms or "")
    if not match:
        return None
    return int(match.group(1))


def due_date_for_terms(terms: str | None, today: date, default_days: int = DEFAULT_DUE_DAYS) -> date:
    days = billing_term_days(terms)
    if days is None:
        days = default_days
    return today + timedelta(days=days)


def majority_category(items: Iterable[MaterialItem]) -> str:
    counts: Dict[str, int] = {}
    for item in items:
        category = item.category or DEFAULT_ITEM_CATEGORY
        counts[category] = counts.get(category, 0) + 1
    if not counts:
        return DEFAULT_ITEM_CATEGORY
    top = max(counts.values())
    # dict keeps insertion order, so ties resolve to the first category seen
    return next(category for category, count in counts.items() if count == top)


def payable_category(items: Iterable[MaterialItem]) -> str:
    return ITEM_CATEGORY_TO_PAYABLE.get(majority_category(items), DEFAULT_PAYABLE_CATEGORY)


def payable_description(order: MaterialOrder) -> str:
    return f"Pedido {order.id} - {', '.join(item.name for item in order.items)}"


def generate_payable(
    order: MaterialOrder,
    quote: OrderQuote,
    today: date | None = None,
    now: datetime | None = None,
    payable_id: str | None = None,
    default_days: int = DEFAULT_DUE_DAYS,
) -> AccountPayable:
    moment = now or datetime.now(timezone.utc)
    reference_day = today or date.today()
    return AccountPayable(
        id=payable_id or new_payable_id(moment),
        order_id=order.id,
        project_id=order.project_id,
        supplier_id=quote.supplier_id,
        description=payable_description(order),
        amount=float(quote.total_price),
        due_date=due_date_for_terms(quote.billing_terms, reference_day, default_days).isoformat(),
        status=PAYMENT_STATUS_PENDING,
        payment_method=quote.payment_method,
        category=payable_category(order.items),
        billing_terms=quote.billing_terms,
        observations=quote.observations,
        created_at=moment.isoformat().replace("+00:00", "Z"),
        created_by=order.requested_by,
    )
