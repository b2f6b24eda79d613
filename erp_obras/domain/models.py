from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Tuple


ORDER_STATUS_PENDING_QUOTES = "pending_quotes"
ORDER_STATUS_READY_FOR_APPROVAL = "ready_for_approval"
ORDER_STATUS_APPROVED = "approved"
ORDER_STATUS_REJECTED = "rejected"
ORDER_STATUS_DELIVERED = "delivered"

ORDER_STATUSES = (
    ORDER_STATUS_PENDING_QUOTES,
    ORDER_STATUS_READY_FOR_APPROVAL,
    ORDER_STATUS_APPROVED,
    ORDER_STATUS_REJECTED,
    ORDER_STATUS_DELIVERED,
)

PAYMENT_STATUS_PENDING = "pending"
PAYMENT_STATUS_PAID = "paid"
PAYMENT_STATUS_OVERDUE = "overdue"
PAYMENT_STATUS_CANCELLED = "cancelled"

PAYMENT_STATUSES = (
    PAYMENT_STATUS_PENDING,
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_OVERDUE,
    PAYMENT_STATUS_CANCELLED,
)

PAYMENT_METHODS = ("PIX", "Boleto", "Cartão Crédito", "Cartão Débito")

TRANSACTION_CATEGORIES = (
    "Materiais",
    "Serviços",
    "Administrativo",
    "Mão de Obra",
    "Equipamentos",
    "Outros",
)

PROJECT_STATUSES = ("planning", "in_progress", "completed")

DEFAULT_ITEM_CATEGORY = "Outros"
DEFAULT_ITEM_UNIT = "un"


def _text(value: Any, default: str = "") -> str:
    text = str(value if value is not None else "").strip()
    return text or default


def _optional_text(value: Any) -> str | None:
    text = str(value if value is not None else "").strip()
    return text or None


def _number(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _optional_number(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _drop_none(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in payload.items() if value is not None}


@dataclass(frozen=True)
class MaterialItem:
    id: str
    name: str
    quantity: float
    unit: str = DEFAULT_ITEM_UNIT
    category: str | None = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "id": self.id,
                "name": self.name,
                "quantity": self.quantity,
                "unit": self.unit,
                "category": self.category,
            }
        )

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "MaterialItem":
        return cls(
            id=_text(raw.get("id")),
            name=_text(raw.get("name")),
            quantity=_number(raw.get("quantity"), 1.0),
            unit=_text(raw.get("unit"), DEFAULT_ITEM_UNIT),
            category=_optional_text(raw.get("category")),
        )


@dataclass(frozen=True)
class ItemQuoteEntry:
    item_id: str
    unit_price: float

    def to_dict(self) -> Dict[str, Any]:
        return {"itemId": self.item_id, "unitPrice": self.unit_price}

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "ItemQuoteEntry":
        return cls(item_id=_text(raw.get("itemId")), unit_price=_number(raw.get("unitPrice")))


@dataclass(frozen=True)
class OrderQuote:
    id: str
    supplier_id: str
    total_price: float
    delivery_days: int
    is_selected: bool = False
    is_freight_included: bool = True
    freight_cost: float | None = None
    billing_terms: str | None = None
    payment_method: str | None = None
    observations: str | None = None
    justification: str | None = None
    item_prices: Tuple[ItemQuoteEntry, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "id": self.id,
                "supplierId": self.supplier_id,
                "totalPrice": self.total_price,
                "deliveryDays": self.delivery_days,
                "isSelected": self.is_selected,
                "isFreightIncluded": self.is_freight_included,
                "freightCost": self.freight_cost,
                "billingTerms": self.billing_terms,
                "paymentMethod": self.payment_method,
                "observations": self.observations,
                "justification": self.justification,
                "itemPrices": [entry.to_dict() for entry in self.item_prices],
            }
        )

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "OrderQuote":
        entries = raw.get("itemPrices") if isinstance(raw.get("itemPrices"), list) else []
        return cls(
            id=_text(raw.get("id")),
            supplier_id=_text(raw.get("supplierId")),
            total_price=_number(raw.get("totalPrice")),
            delivery_days=_int(raw.get("deliveryDays")),
            is_selected=bool(raw.get("isSelected", False)),
            is_freight_included=bool(raw.get("isFreightIncluded", True)),
            freight_cost=_optional_number(raw.get("freightCost")),
            billing_terms=_optional_text(raw.get("billingTerms")),
            payment_method=_optional_text(raw.get("paymentMethod")),
            observations=_optional_text(raw.get("observations")),
            justification=_optional_text(raw.get("justification")),
            item_prices=tuple(ItemQuoteEntry.from_dict(entry) for entry in entries if isinstance(entry, dict)),
        )


@dataclass(frozen=True)
class MaterialOrder:
    id: str
    project_id: str
    request_date: str
    requested_by: str
    status: str = ORDER_STATUS_PENDING_QUOTES
    items: Tuple[MaterialItem, ...] = ()
    quotes: Tuple[OrderQuote, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "projectId": self.project_id,
            "requestDate": self.request_date,
            "status": self.status,
            "requestedBy": self.requested_by,
            "items": [item.to_dict() for item in self.items],
            "orderQuotes": [quote.to_dict() for quote in self.quotes],
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "MaterialOrder":
        items = raw.get("items") if isinstance(raw.get("items"), list) else []
        quotes = raw.get("orderQuotes") if isinstance(raw.get("orderQuotes"), list) else []
        status = _text(raw.get("status"), ORDER_STATUS_PENDING_QUOTES)
        if status not in ORDER_STATUSES:
            status = ORDER_STATUS_PENDING_QUOTES
        return cls(
            id=_text(raw.get("id")),
            project_id=_text(raw.get("projectId")),
            request_date=_text(raw.get("requestDate")),
            requested_by=_text(raw.get("requestedBy")),
            status=status,
            items=tuple(MaterialItem.from_dict(item) for item in items if isinstance(item, dict)),
            quotes=tuple(OrderQuote.from_dict(quote) for quote in quotes if isinstance(quote, dict)),
        )


@dataclass(frozen=True)
class AccountPayable:
    id: str
    project_id: str
    supplier_id: str
    description: str
    amount: float
    due_date: str
    category: str = "Materiais"
    status: str = PAYMENT_STATUS_PENDING
    order_id: str | None = None
    payment_method: str | None = None
    payment_date: str | None = None
    billing_terms: str | None = None
    observations: str | None = None
    created_at: str = ""
    created_by: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "id": self.id,
                "orderId": self.order_id,
                "projectId": self.project_id,
                "supplierId": self.supplier_id,
                "description": self.description,
                "amount": self.amount,
                "dueDate": self.due_date,
                "status": self.status,
                "paymentMethod": self.payment_method,
                "paymentDate": self.payment_date,
                "category": self.category,
                "billingTerms": self.billing_terms,
                "observations": self.observations,
                "createdAt": self.created_at,
                "createdBy": self.created_by,
            }
        )

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "AccountPayable":
        category = _text(raw.get("category"), "Materiais")
        if category not in TRANSACTION_CATEGORIES:
            category = "Outros"
        return cls(
            id=_text(raw.get("id")),
            order_id=_optional_text(raw.get("orderId")),
            project_id=_text(raw.get("projectId")),
            supplier_id=_text(raw.get("supplierId")),
            description=_text(raw.get("description")),
            amount=_number(raw.get("amount")),
            due_date=_text(raw.get("dueDate")),
            status=_text(raw.get("status"), PAYMENT_STATUS_PENDING),
            payment_method=_optional_text(raw.get("paymentMethod")),
            payment_date=_optional_text(raw.get("paymentDate")),
            category=category,
            billing_terms=_optional_text(raw.get("billingTerms")),
            observations=_optional_text(raw.get("observations")),
            created_at=_text(raw.get("createdAt")),
            created_by=_text(raw.get("createdBy")),
        )


@dataclass(frozen=True)
class AccountReceivable:
    id: str
    project_id: str
    client_id: str
    description: str
    amount: float
    due_date: str
    status: str = PAYMENT_STATUS_PENDING
    payment_method: str | None = None
    payment_date: str | None = None
    installment_number: int = 1
    total_installments: int = 1
    created_at: str = ""
    created_by: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "id": self.id,
                "projectId": self.project_id,
                "clientId": self.client_id,
                "description": self.description,
                "amount": self.amount,
                "dueDate": self.due_date,
                "status": self.status,
                "paymentMethod": self.payment_method,
                "paymentDate": self.payment_date,
                "installmentNumber": self.installment_number,
                "totalInstallments": self.total_installments,
                "createdAt": self.created_at,
                "createdBy": self.created_by,
            }
        )

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "AccountReceivable":
        return cls(
            id=_text(raw.get("id")),
            project_id=_text(raw.get("projectId")),
            client_id=_text(raw.get("clientId")),
            description=_text(raw.get("description")),
            amount=_number(raw.get("amount")),
            due_date=_text(raw.get("dueDate")),
            status=_text(raw.get("status"), PAYMENT_STATUS_PENDING),
            payment_method=_optional_text(raw.get("paymentMethod")),
            payment_date=_optional_text(raw.get("paymentDate")),
            installment_number=max(1, _int(raw.get("installmentNumber"), 1)),
            total_installments=max(1, _int(raw.get("totalInstallments"), 1)),
            created_at=_text(raw.get("createdAt")),
            created_by=_text(raw.get("createdBy")),
        )


@dataclass(frozen=True)
class Project:
    id: str
    name: str
    client_id: str
    budget: float
    start_date: str
    status: str = "planning"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "clientId": self.client_id,
            "budget": self.budget,
            "startDate": self.start_date,
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Project":
        status = _text(raw.get("status"), "planning")
        if status not in PROJECT_STATUSES:
            status = "planning"
        return cls(
            id=_text(raw.get("id")),
            name=_text(raw.get("name")),
            client_id=_text(raw.get("clientId")),
            budget=_number(raw.get("budget")),
            start_date=_text(raw.get("startDate")),
            status=status,
        )


@dataclass(frozen=True)
class Supplier:
    id: str
    name: str
    category: str = "Geral"
    email: str = ""
    phone: str = ""
    document: str = ""
    contact_person: str | None = None
    website: str | None = None
    rating: float = 5.0

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "id": self.id,
                "name": self.name,
                "category": self.category,
                "email": self.email,
                "phone": self.phone,
                "document": self.document,
                "contactPerson": self.contact_person,
                "website": self.website,
                "rating": self.rating,
            }
        )

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Supplier":
        return cls(
            id=_text(raw.get("id")),
            name=_text(raw.get("name")),
            category=_text(raw.get("category"), "Geral"),
            email=_text(raw.get("email")),
            phone=_text(raw.get("phone")),
            document=_text(raw.get("document")),
            contact_person=_optional_text(raw.get("contactPerson")),
            website=_optional_text(raw.get("website")),
            rating=_number(raw.get("rating"), 5.0),
        )


@dataclass(frozen=True)
class Client:
    id: str
    name: str
    email: str = ""
    phone: str = ""
    document: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "document": self.document,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Client":
        return cls(
            id=_text(raw.get("id")),
            name=_text(raw.get("name")),
            email=_text(raw.get("email")),
            phone=_text(raw.get("phone")),
            document=_text(raw.get("document")),
        )


@dataclass(frozen=True)
class Material:
    id: str
    name: str
    category: str = DEFAULT_ITEM_CATEGORY
    unit: str = DEFAULT_ITEM_UNIT
    description: str | None = None
    min_stock: float | None = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "id": self.id,
                "name": self.name,
                "category": self.category,
                "unit": self.unit,
                "description": self.description,
                "minStock": self.min_stock,
            }
        )

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Material":
        return cls(
            id=_text(raw.get("id")),
            name=_text(raw.get("name")),
            category=_text(raw.get("category"), DEFAULT_ITEM_CATEGORY),
            unit=_text(raw.get("unit"), DEFAULT_ITEM_UNIT),
            description=_optional_text(raw.get("description")),
            min_stock=_optional_number(raw.get("minStock")),
        )


@dataclass(frozen=True)
class MaterialClassification:
    category: str = DEFAULT_ITEM_CATEGORY
    unit: str = DEFAULT_ITEM_UNIT

    def to_dict(self) -> Dict[str, str]:
        return {"category": self.category, "unit": self.unit}


@dataclass(frozen=True)
class StatusEvent:
    entity: str
    entity_id: str
    from_status: str | None
    to_status: str
    reason: str
    payload: Dict[str, Any] = field(default_factory=dict)
