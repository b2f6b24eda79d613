from __future__ import annotations

from flask import Blueprint, jsonify, request

from erp_obras.application.finance_service import FinanceService
from erp_obras.db import get_db
from erp_obras.domain.contracts import (
    AccountListQuery,
    PayableCreateInput,
    PaymentInput,
    ReceivableCreateInput,
)
from erp_obras.errors import ValidationError
from erp_obras.routes.common import (
    _int_arg,
    _json_payload,
    _require_critical_confirmation,
    _respond,
    _today,
    _workspace,
)
from erp_obras.ui_strings import status_keys_for_group


finance_bp = Blueprint("finance", __name__)

ALLOWED_ACCOUNT_STATUSES = set(status_keys_for_group("conta_pagar")) | {"all"}

_FINANCE_SERVICE = FinanceService()


def _list_query() -> AccountListQuery:
    status = (request.args.get("status") or "").strip() or None
    if status and status not in ALLOWED_ACCOUNT_STATUSES:
        raise ValidationError(
            code="status_invalid",
            message_key="status_invalid",
            payload={"status": status, "allowed": sorted(ALLOWED_ACCOUNT_STATUSES)},
        )
    direction = (request.args.get("direction") or "asc").strip().lower()
    return AccountListQuery(
        status=status,
        project_id=(request.args.get("project_id") or "").strip() or None,
        category=(request.args.get("category") or "").strip() or None,
        search=(request.args.get("search") or "").strip() or None,
        sort_key=(request.args.get("sort") or "dueDate").strip(),
        sort_direction="desc" if direction == "desc" else "asc",
        page=_int_arg("page", 1),
        per_page=_int_arg("per_page", 10),
    )


def _payment_input(payload: dict) -> PaymentInput:
    return PaymentInput(
        payment_date=str(payload.get("paymentDate") or _today().isoformat()),
        payment_method=(payload.get("paymentMethod") or None),
    )


def _created_by() -> str:
    return (request.headers.get("X-User-Name") or "").strip() or "Financeiro"


@finance_bp.route("/api/finance/payables", methods=["GET", "POST"])
def payables_api():
    db = get_db()
    workspace_id = _workspace()

    if request.method == "GET":
        result = _FINANCE_SERVICE.list_payables(db, workspace_id=workspace_id, query=_list_query(), today=_today())
        return jsonify(result.payload), result.status_code

    payload = _json_payload()
    result = _FINANCE_SERVICE.create_payable(
        db,
        workspace_id=workspace_id,
        create_input=PayableCreateInput(
            project_id=str(payload.get("projectId") or "").strip(),
            supplier_id=str(payload.get("supplierId") or "").strip(),
            description=str(payload.get("description") or ""),
            amount=payload.get("amount"),
            due_date=str(payload.get("dueDate") or ""),
            category=str(payload.get("category") or "Outros"),
            payment_method=(payload.get("paymentMethod") or None),
            billing_terms=(payload.get("billingTerms") or None),
            observations=(payload.get("observations") or None),
            created_by=_created_by(),
        ),
    )
    db.commit()
    return _respond(result, "payable_created")


@finance_bp.route("/api/finance/payables/<string:payable_id>/pay", methods=["POST"])
def payable_pay_api(payable_id: str):
    db = get_db()
    result = _FINANCE_SERVICE.mark_payable_paid(
        db,
        workspace_id=_workspace(),
        payable_id=payable_id,
        payment_input=_payment_input(_json_payload()),
        today=_today(),
    )
    db.commit()
    return _respond(result, "payable_paid")


@finance_bp.route("/api/finance/payables/<string:payable_id>/cancel", methods=["POST"])
def payable_cancel_api(payable_id: str):
    db = get_db()
    result = _FINANCE_SERVICE.cancel_payable(
        db,
        workspace_id=_workspace(),
        payable_id=payable_id,
        today=_today(),
        payload=_json_payload(),
        require_confirmation_fn=_require_critical_confirmation,
    )
    db.commit()
    return _respond(result, "payable_cancelled")


@finance_bp.route("/api/finance/receivables", methods=["GET", "POST"])
def receivables_api():
    db = get_db()
    workspace_id = _workspace()

    if request.method == "GET":
        result = _FINANCE_SERVICE.list_receivables(db, workspace_id=workspace_id, query=_list_query(), today=_today())
        return jsonify(result.payload), result.status_code

    payload = _json_payload()
    result = _FINANCE_SERVICE.create_receivable(
        db,
        workspace_id=workspace_id,
        create_input=ReceivableCreateInput(
            project_id=str(payload.get("projectId") or "").strip(),
            client_id=str(payload.get("clientId") or "").strip(),
            description=str(payload.get("description") or ""),
            amount=payload.get("amount"),
            due_date=str(payload.get("dueDate") or ""),
            total_installments=payload.get("totalInstallments") or 1,
            created_by=_created_by(),
        ),
    )
    db.commit()
    return _respond(result, "receivable_created")


@finance_bp.route("/api/finance/receivables/<string:receivable_id>/receive", methods=["POST"])
def receivable_receive_api(receivable_id: str):
    db = get_db()
    result = _FINANCE_SERVICE.mark_receivable_received(
        db,
        workspace_id=_workspace(),
        receivable_id=receivable_id,
        payment_input=_payment_input(_json_payload()),
        today=_today(),
    )
    db.commit()
    return _respond(result, "receivable_received")


@finance_bp.route("/api/finance/cash-flow", methods=["GET"])
def cash_flow_api():
    period = (request.args.get("period") or "month").strip().lower()
    result = _FINANCE_SERVICE.cash_flow(get_db(), workspace_id=_workspace(), period=period, today=_today())
    return jsonify(result.payload), result.status_code


@finance_bp.route("/api/finance/reports", methods=["GET"])
def reports_api():
    result = _FINANCE_SERVICE.financial_reports(get_db(), workspace_id=_workspace())
    return jsonify(result.payload), result.status_code
