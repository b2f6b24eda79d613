from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass(frozen=True)
class ServiceOutput:
    payload: Dict[str, Any]
    status_code: int = 200


@dataclass(frozen=True)
class OrderCreateInput:
    project_id: str
    requested_by: str
    items: List[Dict[str, Any]]
    request_date: str | None = None


@dataclass(frozen=True)
class QuoteCreateInput:
    supplier_id: str
    delivery_days: int = 1
    is_freight_included: bool = True
    freight_cost: float | None = None
    billing_terms: str | None = None
    item_prices: Dict[str, float] = field(default_factory=dict)
    total_price: float | None = None
    payment_method: str | None = None
    observations: str | None = None
    justification: str | None = None


@dataclass(frozen=True)
class QuoteDetailsInput:
    quote_id: str
    changes: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PaymentInput:
    payment_date: str
    payment_method: str | None = None


@dataclass(frozen=True)
class PayableCreateInput:
    project_id: str
    supplier_id: str
    description: str
    amount: float
    due_date: str
    category: str = "Outros"
    payment_method: str | None = None
    billing_terms: str | None = None
    observations: str | None = None
    created_by: str = ""


@dataclass(frozen=True)
class ReceivableCreateInput:
    project_id: str
    client_id: str
    description: str
    amount: float
    due_date: str
    total_installments: int = 1
    created_by: str = ""


@dataclass(frozen=True)
class AccountListQuery:
    status: str | None = None
    project_id: str | None = None
    category: str | None = None
    search: str | None = None
    sort_key: str = "dueDate"
    sort_direction: str = "asc"
    page: int = 1
    per_page: int = 10
