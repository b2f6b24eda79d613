from __future__ import annotations

import time
import uuid
from dataclasses import replace
from typing import Dict, Iterable, Mapping

from erp_obras.domain.models import (
    ORDER_STATUS_APPROVED,
    ItemQuoteEntry,
    MaterialOrder,
    OrderQuote,
)


DEFAULT_BILLING_TERMS = "Faturamento 28 dias"

_UNSET = object()


def new_quote_id() -> str:
    return f"Q-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


def _price_map(item_prices: Iterable[ItemQuoteEntry] | Mapping[str, float] | None) -> Dict[str, float]:
    if item_prices is None:
        return {}
    if isinstance(item_prices, Mapping):
        return {str(key): float(value or 0) for key, value in item_prices.items()}
    return {entry.item_id: float(entry.unit_price or 0) for entry in item_prices}


def items_subtotal(order: MaterialOrder, item_prices) -> float:
    prices = _price_map(item_prices)
    return sum(prices.get(item.id, 0.0) * item.quantity for item in order.items)


def build_quote(
    order: MaterialOrder,
    supplier_id: str,
    delivery_days: int = 1,
    is_freight_included: bool = True,
    freight_cost: float | None = None,
    billing_terms: str | None = None,
    item_prices=None,
    total_price: float | None = None,
    payment_method: str | None = None,
    observations: str | None = None,
    justification: str | None = None,
    quote_id: str | None = None,
) -> OrderQuote:
    prices = _price_map(item_prices)
    entries = tuple(ItemQuoteEntry(item_id=item.id, unit_price=prices.get(item.id, 0.0)) for item in order.items)
    if total_price is None:
        total_price = items_subtotal(order, prices)
        if not is_freight_included:
            total_price += float(freight_cost or 0)
    return OrderQuote(
        id=quote_id or new_quote_id(),
        supplier_id=supplier_id,
        total_price=max(0.0, float(total_price)),
        delivery_days=int(delivery_days),
        is_selected=False,
        is_freight_included=bool(is_freight_included),
        freight_cost=None if is_freight_included else float(freight_cost or 0),
        billing_terms=(billing_terms or "").strip() or DEFAULT_BILLING_TERMS,
        payment_method=payment_method,
        observations=observations,
        justification=justification,
        item_prices=entries,
    )


def add_quote(order: MaterialOrder, quote: OrderQuote) -> MaterialOrder:
    # circular import: requisition depends on this module for cost helpers
    from erp_obras.procurement.requisition import is_closed, status_for_quote_count

    if is_closed(order):
        return order
    quotes = order.quotes + (replace(quote, is_selected=False),)
    return replace(order, quotes=quotes, status=status_for_quote_count(len(quotes)))


def select_quote(order: MaterialOrder, quote_id: str) -> MaterialOrder:
    if order.status == ORDER_STATUS_APPROVED:
        return order
    if not any(quote.id == quote_id for quote in order.quotes):
        return order
    quotes = tuple(replace(quote, is_selected=quote.id == quote_id) for quote in order.quotes)
    return replace(order, quotes=quotes)


def update_quote_details(
    order: MaterialOrder,
    quote_id: str,
    payment_method=_UNSET,
    observations=_UNSET,
) -> MaterialOrder:
    if order.status == ORDER_STATUS_APPROVED:
        return order
    changes = {}
    if payment_method is not _UNSET:
        changes["payment_method"] = payment_method or None
    if observations is not _UNSET:
        changes["observations"] = observations or None
    if not changes:
        return order
    quotes = tuple(replace(quote, **changes) if quote.id == quote_id else quote for quote in order.quotes)
    return replace(order, quotes=quotes)


def selected_quote(order: MaterialOrder) -> OrderQuote | None:
    return next((quote for quote in order.quotes if quote.is_selected), None)


def cheapest_quote(order: MaterialOrder) -> OrderQuote | None:
    best = None
    for quote in order.quotes:
        if best is None or quote.total_price < best.total_price:
            best = quote
    return best


def compute_total_cost(order: MaterialOrder) -> float:
    quote = selected_quote(order) or cheapest_quote(order)
    if quote is None:
        return 0.0
    return max(0.0, float(quote.total_price))
