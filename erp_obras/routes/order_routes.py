from __future__ import annotations

from flask import Blueprint, jsonify, request

from erp_obras.application.requisition_service import RequisitionService
from erp_obras.db import get_db
from erp_obras.domain.contracts import OrderCreateInput, QuoteCreateInput, QuoteDetailsInput
from erp_obras.errors import ValidationError
from erp_obras.routes.common import (
    _float_field,
    _json_payload,
    _require_critical_confirmation,
    _respond,
    _workspace,
)
from erp_obras.ui_strings import status_keys_for_group


order_bp = Blueprint("orders", __name__)

ALLOWED_ORDER_STATUSES = set(status_keys_for_group("requisicao"))

_REQUISITION_SERVICE = RequisitionService()


@order_bp.route("/api/orders", methods=["GET", "POST"])
def orders_api():
    db = get_db()
    workspace_id = _workspace()

    if request.method == "GET":
        status = (request.args.get("status") or "").strip() or None
        if status and status not in ALLOWED_ORDER_STATUSES:
            raise ValidationError(
                code="status_invalid",
                message_key="status_invalid",
                payload={"status": status, "allowed": sorted(ALLOWED_ORDER_STATUSES)},
            )
        result = _REQUISITION_SERVICE.list_orders(
            db,
            workspace_id=workspace_id,
            status=status,
            project_id=(request.args.get("project_id") or "").strip() or None,
        )
        return jsonify(result.payload), result.status_code

    payload = _json_payload()
    items = payload.get("items")
    if not isinstance(items, list):
        raise ValidationError(code="items_required", message_key="items_required")
    result = _REQUISITION_SERVICE.create_order(
        db,
        workspace_id=workspace_id,
        create_input=OrderCreateInput(
            project_id=str(payload.get("projectId") or "").strip(),
            requested_by=str(payload.get("requestedBy") or "").strip(),
            items=items,
            request_date=(payload.get("requestDate") or None),
        ),
    )
    db.commit()
    return _respond(result, "order_created")


@order_bp.route("/api/orders/<string:order_id>", methods=["GET"])
def order_detail_api(order_id: str):
    result = _REQUISITION_SERVICE.order_detail(get_db(), workspace_id=_workspace(), order_id=order_id)
    return jsonify(result.payload), result.status_code


@order_bp.route("/api/orders/<string:order_id>/history", methods=["GET"])
def order_history_api(order_id: str):
    result = _REQUISITION_SERVICE.order_history(get_db(), workspace_id=_workspace(), order_id=order_id)
    return jsonify(result.payload), result.status_code


@order_bp.route("/api/orders/<string:order_id>/quotes", methods=["POST"])
def order_quotes_api(order_id: str):
    db = get_db()
    payload = _json_payload()

    raw_prices = payload.get("itemPrices") or {}
    if isinstance(raw_prices, list):
        raw_prices = {entry.get("itemId"): entry.get("unitPrice") for entry in raw_prices if isinstance(entry, dict)}
    if not isinstance(raw_prices, dict):
        raise ValidationError(code="amount_invalid", message_key="amount_invalid", payload={"field": "itemPrices"})
    item_prices = {}
    for item_id, price in raw_prices.items():
        if not item_id or price in (None, ""):
            continue
        item_prices[str(item_id)] = _float_field({"price": price}, "price")

    delivery_days = payload.get("deliveryDays", 1)
    try:
        delivery_days = int(delivery_days)
    except (TypeError, ValueError) as exc:
        raise ValidationError(code="delivery_days_invalid", message_key="delivery_days_invalid") from exc

    is_freight_included = payload.get("isFreightIncluded", True)
    result = _REQUISITION_SERVICE.add_quote(
        db,
        workspace_id=_workspace(),
        order_id=order_id,
        quote_input=QuoteCreateInput(
            supplier_id=str(payload.get("supplierId") or "").strip(),
            delivery_days=delivery_days,
            is_freight_included=bool(is_freight_included) if is_freight_included is not None else True,
            freight_cost=_float_field(payload, "freightCost"),
            billing_terms=(payload.get("billingTerms") or None),
            item_prices=item_prices,
            total_price=_float_field(payload, "totalPrice"),
            payment_method=(payload.get("paymentMethod") or None),
            observations=(payload.get("observations") or None),
            justification=(payload.get("justification") or None),
        ),
    )
    db.commit()
    return _respond(result, "quote_added")


@order_bp.route("/api/orders/<string:order_id>/quotes/<string:quote_id>/select", methods=["POST"])
def order_quote_select_api(order_id: str, quote_id: str):
    db = get_db()
    result = _REQUISITION_SERVICE.select_quote(db, workspace_id=_workspace(), order_id=order_id, quote_id=quote_id)
    db.commit()
    return _respond(result, "quote_selected")


@order_bp.route("/api/orders/<string:order_id>/quotes/<string:quote_id>", methods=["PATCH"])
def order_quote_update_api(order_id: str, quote_id: str):
    db = get_db()
    payload = _json_payload()
    changes = {}
    if "paymentMethod" in payload:
        changes["payment_method"] = payload.get("paymentMethod") or None
    if "observations" in payload:
        changes["observations"] = payload.get("observations") or None
    if not changes:
        raise ValidationError(code="payload_invalid", message_key="payload_invalid")

    result = _REQUISITION_SERVICE.update_quote_details(
        db,
        workspace_id=_workspace(),
        order_id=order_id,
        details_input=QuoteDetailsInput(quote_id=quote_id, changes=changes),
    )
    db.commit()
    return _respond(result, "quote_updated")


@order_bp.route("/api/orders/<string:order_id>/approve", methods=["POST"])
def order_approve_api(order_id: str):
    db = get_db()
    result = _REQUISITION_SERVICE.approve_order(
        db,
        workspace_id=_workspace(),
        order_id=order_id,
        payload=_json_payload(),
        require_confirmation_fn=_require_critical_confirmation,
    )
    db.commit()
    return _respond(result, "order_approved")


@order_bp.route("/api/orders/<string:order_id>/reject", methods=["POST"])
def order_reject_api(order_id: str):
    db = get_db()
    result = _REQUISITION_SERVICE.reject_order(
        db,
        workspace_id=_workspace(),
        order_id=order_id,
        payload=_json_payload(),
        require_confirmation_fn=_require_critical_confirmation,
    )
    db.commit()
    return _respond(result, "order_rejected")


@order_bp.route("/api/orders/<string:order_id>/deliver", methods=["POST"])
def order_deliver_api(order_id: str):
    db = get_db()
    result = _REQUISITION_SERVICE.mark_delivered(db, workspace_id=_workspace(), order_id=order_id)
    db.commit()
    return _respond(result, "order_delivered")


@order_bp.route("/api/projects/<string:project_id>/insights", methods=["GET"])
def project_insights_api(project_id: str):
    result = _REQUISITION_SERVICE.project_insights(get_db(), workspace_id=_workspace(), project_id=project_id)
    return jsonify(result.payload), result.status_code
