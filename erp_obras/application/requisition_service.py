from __future__ import annotations

import logging
import math
import random
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List

from flask import current_app

from erp_obras.classification import classify_material, order_insights
from erp_obras.core.event_bus import EventBus, OrderApproved, OrderDelivered, OrderRejected
from erp_obras.db import get_db
from erp_obras.domain.contracts import OrderCreateInput, QuoteCreateInput, QuoteDetailsInput, ServiceOutput
from erp_obras.domain.models import (
    ORDER_STATUS_PENDING_QUOTES,
    PAYMENT_METHODS,
    MaterialItem,
    MaterialOrder,
    StatusEvent,
)
from erp_obras.errors import ApprovalBlockedError, ConflictError, NotFoundError, SystemError, ValidationError
from erp_obras.infrastructure.repositories.records import (
    OrderRepository,
    PayableRepository,
    ProjectRepository,
    SupplierRepository,
)
from erp_obras.infrastructure.repositories.status_events import StatusEventRepository
from erp_obras.observability import observe_approval, observe_payable_generated
from erp_obras.procurement import quote_ledger, requisition
from erp_obras.procurement.flow_policy import (
    action_allowed,
    allowed_actions,
    build_process_steps,
    flow_meta,
    primary_action,
)
from erp_obras.procurement.payables import DEFAULT_DUE_DAYS, generate_payable
from erp_obras.ui_strings import approval_reason_message, status_label


STAGE = "requisicao"

LOGGER = logging.getLogger("erp_obras.requisitions")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(moment: datetime) -> str:
    return moment.isoformat().replace("+00:00", "Z")


def forbidden_action(stage: str, status: str | None, action: str):
    raise ConflictError.for_status(
        stage,
        status,
        action,
        allowed_actions(stage, status),
        primary_action(stage, status),
    )


class RequisitionService:
    def __init__(
        self,
        event_bus: EventBus | None = None,
        classify_fn: Callable[[str], Any] | None = None,
        insights_fn: Callable[..., List[str]] | None = None,
    ) -> None:
        self.event_bus = event_bus or EventBus()
        self.classify_fn = classify_fn or classify_material
        self.insights_fn = insights_fn or order_insights
        self.event_bus.subscribe(OrderApproved, self._append_payable_for_approval, propagate=True)

    def create_order(self, db, *, workspace_id: str, create_input: OrderCreateInput) -> ServiceOutput:
        projects = ProjectRepository(workspace_id=workspace_id)
        orders = OrderRepository(workspace_id=workspace_id)
        project_id = (create_input.project_id or "").strip()
        if not projects.get_by_id(db, project_id):
            raise NotFoundError(code="project_not_found", message_key="project_not_found", payload={"project_id": project_id})

        order_id = self._next_order_id(db, orders)
        items = self._build_items(order_id, create_input.items)
        order = MaterialOrder(
            id=order_id,
            project_id=project_id,
            request_date=create_input.request_date or _iso(_utc_now()),
            requested_by=(create_input.requested_by or "").strip() or "Equipe de obra",
            status=ORDER_STATUS_PENDING_QUOTES,
            items=tuple(items),
        )
        orders.save(db, order)
        self._record_status(db, workspace_id, order, None, "order_created")
        LOGGER.info("order_created", extra={"order_id": order.id, "project_id": project_id, "items": len(items)})
        return ServiceOutput(payload={"order": self._detail(db, workspace_id, order)}, status_code=201)

    def list_orders(
        self,
        db,
        *,
        workspace_id: str,
        status: str | None = None,
        project_id: str | None = None,
    ) -> ServiceOutput:
        rows = OrderRepository(workspace_id=workspace_id).list_all(db)
        if status:
            rows = [order for order in rows if order.status == status]
        if project_id:
            rows = [order for order in rows if order.project_id == project_id]
        items = [
            {
                **order.to_dict(),
                "statusLabel": status_label(STAGE, order.status),
                "totalCost": quote_ledger.compute_total_cost(order),
            }
            for order in rows
        ]
        return ServiceOutput(payload={"items": items, "total": len(items)})

    def order_detail(self, db, *, workspace_id: str, order_id: str) -> ServiceOutput:
        order = self._load_order(db, workspace_id, order_id)
        return ServiceOutput(payload={"order": self._detail(db, workspace_id, order)})

    def order_history(self, db, *, workspace_id: str, order_id: str) -> ServiceOutput:
        order = self._load_order(db, workspace_id, order_id)
        history = StatusEventRepository(workspace_id=workspace_id).list_for(db, "order", order.id)
        return ServiceOutput(payload={"order_id": order.id, "history": history})

    def add_quote(self, db, *, workspace_id: str, order_id: str, quote_input: QuoteCreateInput) -> ServiceOutput:
        order = self._load_order(db, workspace_id, order_id)
        if not action_allowed(STAGE, order.status, "add_quote"):
            forbidden_action(STAGE, order.status, "add_quote")

        supplier_id = (quote_input.supplier_id or "").strip()
        if not supplier_id:
            raise ValidationError(code="supplier_id_required", message_key="supplier_id_required")
        if not SupplierRepository(workspace_id=workspace_id).get_by_id(db, supplier_id):
            raise NotFoundError(
                code="supplier_not_found",
                message_key="supplier_not_found",
                payload={"supplier_id": supplier_id},
            )
        if quote_input.delivery_days is None or int(quote_input.delivery_days) < 0:
            raise ValidationError(code="delivery_days_invalid", message_key="delivery_days_invalid")
        amounts = [quote_input.total_price, quote_input.freight_cost, *quote_input.item_prices.values()]
        if any(_bad_amount(value) for value in amounts if value is not None):
            raise ValidationError(code="amount_invalid", message_key="amount_invalid")
        _validate_payment_method(quote_input.payment_method)

        quote = quote_ledger.build_quote(
            order,
            supplier_id,
            delivery_days=int(quote_input.delivery_days),
            is_freight_included=quote_input.is_freight_included,
            freight_cost=quote_input.freight_cost,
            billing_terms=quote_input.billing_terms,
            item_prices=quote_input.item_prices,
            total_price=quote_input.total_price,
            payment_method=quote_input.payment_method,
            observations=quote_input.observations,
            justification=quote_input.justification,
        )
        updated = quote_ledger.add_quote(order, quote)
        OrderRepository(workspace_id=workspace_id).save(db, updated)
        if updated.status != order.status:
            self._record_status(db, workspace_id, updated, order.status, "quote_threshold_reached")
        return ServiceOutput(
            payload={"quote": quote.to_dict(), "order": self._detail(db, workspace_id, updated)},
            status_code=201,
        )

    def select_quote(self, db, *, workspace_id: str, order_id: str, quote_id: str) -> ServiceOutput:
        order = self._load_order(db, workspace_id, order_id)
        if not action_allowed(STAGE, order.status, "select_quote"):
            forbidden_action(STAGE, order.status, "select_quote")
        self._require_quote(order, quote_id)
        updated = quote_ledger.select_quote(order, quote_id)
        OrderRepository(workspace_id=workspace_id).save(db, updated)
        return ServiceOutput(payload={"order": self._detail(db, workspace_id, updated)})

    def update_quote_details(
        self,
        db,
        *,
        workspace_id: str,
        order_id: str,
        details_input: QuoteDetailsInput,
    ) -> ServiceOutput:
        order = self._load_order(db, workspace_id, order_id)
        if not action_allowed(STAGE, order.status, "update_quote_details"):
            forbidden_action(STAGE, order.status, "update_quote_details")
        self._require_quote(order, details_input.quote_id)

        changes = dict(details_input.changes)
        if "payment_method" in changes:
            _validate_payment_method(changes["payment_method"])
        updated = quote_ledger.update_quote_details(order, details_input.quote_id, **changes)
        OrderRepository(workspace_id=workspace_id).save(db, updated)
        return ServiceOutput(payload={"order": self._detail(db, workspace_id, updated)})

    def approve_order(
        self,
        db,
        *,
        workspace_id: str,
        order_id: str,
        payload: Dict[str, Any] | None = None,
        require_confirmation_fn=None,
    ) -> ServiceOutput:
        order = self._load_order(db, workspace_id, order_id)
        if not action_allowed(STAGE, order.status, "approve_order"):
            forbidden_action(STAGE, order.status, "approve_order")

        check = requisition.approval_check(order)
        if not check.can_approve:
            observe_approval("blocked")
            raise ApprovalBlockedError(
                payload={
                    "order_id": order.id,
                    "approval": check.to_dict(),
                    "reason_message": approval_reason_message(check.reason),
                },
            )

        if require_confirmation_fn is not None:
            require_confirmation_fn("approve_order", entity="order", entity_id=order.id, payload=payload)

        outcome = requisition.approve(order)
        OrderRepository(workspace_id=workspace_id).save(db, outcome.order)
        self._record_status(
            db,
            workspace_id,
            outcome.order,
            order.status,
            "order_approved",
            {"quote_id": outcome.selected_quote.id, "supplier_id": outcome.selected_quote.supplier_id},
        )
        observe_approval("approved")
        self.event_bus.publish(OrderApproved(workspace_id=workspace_id, order=outcome.order, quote=outcome.selected_quote))

        generated = PayableRepository(workspace_id=workspace_id).list_by_order(db, outcome.order.id)
        return ServiceOutput(
            payload={
                "order": self._detail(db, workspace_id, outcome.order),
                "selected_quote": outcome.selected_quote.to_dict(),
                "payable": generated[-1].to_dict() if generated else None,
            }
        )

    def reject_order(
        self,
        db,
        *,
        workspace_id: str,
        order_id: str,
        payload: Dict[str, Any] | None = None,
        require_confirmation_fn=None,
    ) -> ServiceOutput:
        order = self._load_order(db, workspace_id, order_id)
        if not action_allowed(STAGE, order.status, "reject_order"):
            forbidden_action(STAGE, order.status, "reject_order")
        if require_confirmation_fn is not None:
            require_confirmation_fn("reject_order", entity="order", entity_id=order.id, payload=payload)

        updated = requisition.reject(order)
        OrderRepository(workspace_id=workspace_id).save(db, updated)
        reason = str((payload or {}).get("reason") or "").strip()
        self._record_status(db, workspace_id, updated, order.status, "order_rejected", {"reason": reason} if reason else None)
        self.event_bus.publish(OrderRejected(workspace_id=workspace_id, order_id=updated.id, from_status=order.status))
        return ServiceOutput(payload={"order": self._detail(db, workspace_id, updated)})

    def mark_delivered(self, db, *, workspace_id: str, order_id: str) -> ServiceOutput:
        order = self._load_order(db, workspace_id, order_id)
        if not action_allowed(STAGE, order.status, "mark_delivered"):
            forbidden_action(STAGE, order.status, "mark_delivered")
        updated = requisition.mark_delivered(order)
        OrderRepository(workspace_id=workspace_id).save(db, updated)
        self._record_status(db, workspace_id, updated, order.status, "order_delivered")
        self.event_bus.publish(OrderDelivered(workspace_id=workspace_id, order_id=updated.id))
        return ServiceOutput(payload={"order": self._detail(db, workspace_id, updated)})

    def project_insights(self, db, *, workspace_id: str, project_id: str) -> ServiceOutput:
        project = ProjectRepository(workspace_id=workspace_id).get_by_id(db, project_id)
        if not project:
            raise NotFoundError(code="project_not_found", message_key="project_not_found", payload={"project_id": project_id})
        orders = OrderRepository(workspace_id=workspace_id).list_by_project(db, project.id)
        return ServiceOutput(payload={"project_id": project.id, "tips": self.insights_fn(orders, project.budget)})

    def _append_payable_for_approval(self, event: OrderApproved) -> None:
        default_days = int(current_app.config.get("DEFAULT_DUE_DAYS", DEFAULT_DUE_DAYS))
        payable = generate_payable(event.order, event.quote, default_days=default_days)
        PayableRepository(workspace_id=event.workspace_id).save(get_db(), payable)
        observe_payable_generated()
        LOGGER.info(
            "payable_generated",
            extra={"order_id": event.order.id, "payable_id": payable.id, "amount": payable.amount},
        )

    def _load_order(self, db, workspace_id: str, order_id: str) -> MaterialOrder:
        order = OrderRepository(workspace_id=workspace_id).get_by_id(db, order_id)
        if not order:
            raise NotFoundError(code="order_not_found", message_key="order_not_found", payload={"order_id": order_id})
        return order

    @staticmethod
    def _require_quote(order: MaterialOrder, quote_id: str) -> None:
        if not any(quote.id == quote_id for quote in order.quotes):
            raise NotFoundError(
                code="quote_not_found",
                message_key="quote_not_found",
                payload={"order_id": order.id, "quote_id": quote_id},
            )

    @staticmethod
    def _next_order_id(db, orders: OrderRepository) -> str:
        for _ in range(50):
            candidate = f"REQ-{random.randint(1000, 9999)}"
            if not orders.get_by_id(db, candidate):
                return candidate
        raise SystemError(code="order_id_exhausted", details="Nenhum numero de pedido livre encontrado.")

    def _build_items(self, order_id: str, raw_items: List[Dict[str, Any]]) -> List[MaterialItem]:
        items: List[MaterialItem] = []
        for raw in raw_items or []:
            if not isinstance(raw, dict):
                continue
            name = str(raw.get("name") or "").strip()
            if not name:
                continue
            try:
                quantity = float(raw.get("quantity"))
            except (TypeError, ValueError) as exc:
                raise ValidationError(
                    code="quantity_invalid",
                    message_key="quantity_invalid",
                    payload={"item": name},
                ) from exc
            if not math.isfinite(quantity) or quantity <= 0:
                raise ValidationError(code="quantity_invalid", message_key="quantity_invalid", payload={"item": name})

            unit = str(raw.get("unit") or "").strip()
            category = str(raw.get("category") or "").strip()
            if not unit or not category:
                suggestion = self.classify_fn(name)
                unit = unit or suggestion.unit
                category = category or suggestion.category
            items.append(
                MaterialItem(
                    id=f"{order_id}-I{len(items) + 1}",
                    name=name,
                    quantity=quantity,
                    unit=unit,
                    category=category,
                )
            )
        if not items:
            raise ValidationError(code="items_required", message_key="items_required")
        return items

    def _detail(self, db, workspace_id: str, order: MaterialOrder) -> Dict[str, Any]:
        suppliers = SupplierRepository(workspace_id=workspace_id)
        names = {}
        for quote in order.quotes:
            if quote.supplier_id not in names:
                supplier = suppliers.get_by_id(db, quote.supplier_id)
                names[quote.supplier_id] = supplier.name if supplier else "N/A"
        return {
            **order.to_dict(),
            "statusLabel": status_label(STAGE, order.status),
            "totalCost": quote_ledger.compute_total_cost(order),
            "approval": requisition.approval_check(order).to_dict(),
            "flow": flow_meta(STAGE, order.status),
            "processSteps": build_process_steps(order.status),
            "supplierNames": names,
        }

    @staticmethod
    def _record_status(
        db,
        workspace_id: str,
        order: MaterialOrder,
        from_status: str | None,
        reason: str,
        payload: Dict[str, Any] | None = None,
    ) -> None:
        StatusEventRepository(workspace_id=workspace_id).append(
            db,
            StatusEvent(
                entity="order",
                entity_id=order.id,
                from_status=from_status,
                to_status=order.status,
                reason=reason,
                payload=payload or {},
            ),
        )


def _validate_payment_method(value: str | None) -> None:
    if value and value not in PAYMENT_METHODS:
        raise ValidationError(
            code="payment_method_invalid",
            message_key="payment_method_invalid",
            payload={"payment_method": value, "allowed": list(PAYMENT_METHODS)},
        )


def _bad_amount(value: Any) -> bool:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return True
    return not math.isfinite(number) or number < 0
