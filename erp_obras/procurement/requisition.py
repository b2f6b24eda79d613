from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict

from erp_obras.domain.models import (
    ORDER_STATUS_APPROVED,
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_PENDING_QUOTES,
    ORDER_STATUS_READY_FOR_APPROVAL,
    ORDER_STATUS_REJECTED,
    MaterialOrder,
    OrderQuote,
)
from erp_obras.procurement.quote_ledger import cheapest_quote, select_quote, selected_quote


MIN_QUOTES_FOR_APPROVAL = 3

CLOSED_STATUSES = {ORDER_STATUS_APPROVED, ORDER_STATUS_REJECTED, ORDER_STATUS_DELIVERED}

REASON_ORDER_CLOSED = "order_closed"
REASON_QUOTES_INSUFFICIENT = "quotes_insufficient"
REASON_PAYMENT_METHOD_REQUIRED = "payment_method_required"


@dataclass(frozen=True)
class ApprovalCheck:
    quote_count: int
    has_enough_quotes: bool
    has_selection: bool
    has_payment_method: bool
    can_approve: bool
    reason: str | None = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quote_count": self.quote_count,
            "has_enough_quotes": self.has_enough_quotes,
            "has_selection": self.has_selection,
            "has_payment_method": self.has_payment_method,
            "can_approve": self.can_approve,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class ApprovalOutcome:
    approved: bool
    order: MaterialOrder
    selected_quote: OrderQuote | None = None
    reason: str | None = None


def status_for_quote_count(count: int) -> str:
    if count >= MIN_QUOTES_FOR_APPROVAL:
        return ORDER_STATUS_READY_FOR_APPROVAL
    return ORDER_STATUS_PENDING_QUOTES


def is_closed(order: MaterialOrder) -> bool:
    return order.status in CLOSED_STATUSES


def can_reject(order: MaterialOrder) -> bool:
    return not is_closed(order)


def approval_check(order: MaterialOrder) -> ApprovalCheck:
    quote_count = len(order.quotes)
    chosen = selected_quote(order)
    effective = chosen or cheapest_quote(order)
    has_enough = quote_count >= MIN_QUOTES_FOR_APPROVAL
    has_payment = bool(effective is not None and effective.payment_method)

    reason = None
    if is_closed(order):
        reason = REASON_ORDER_CLOSED
    elif not has_enough:
        reason = REASON_QUOTES_INSUFFICIENT
    elif not has_payment:
        reason = REASON_PAYMENT_METHOD_REQUIRED

    return ApprovalCheck(
        quote_count=quote_count,
        has_enough_quotes=has_enough,
        has_selection=chosen is not None,
        has_payment_method=has_payment,
        can_approve=reason is None,
        reason=reason,
    )


def approve(order: MaterialOrder) -> ApprovalOutcome:
    check = approval_check(order)
    if not check.can_approve:
        return ApprovalOutcome(approved=False, order=order, reason=check.reason)

    candidate = order
    if selected_quote(candidate) is None:
        candidate = select_quote(candidate, cheapest_quote(candidate).id)
    approved_order = replace(candidate, status=ORDER_STATUS_APPROVED)
    return ApprovalOutcome(approved=True, order=approved_order, selected_quote=selected_quote(approved_order))


def reject(order: MaterialOrder) -> MaterialOrder:
    if not can_reject(order):
        return order
    return replace(order, status=ORDER_STATUS_REJECTED)


def mark_delivered(order: MaterialOrder) -> MaterialOrder:
    if order.status != ORDER_STATUS_APPROVED:
        return order
    return replace(order, status=ORDER_STATUS_DELIVERED)
