from __future__ import annotations

import logging
import math
import random
import string
import time
from datetime import date, datetime, timezone
from typing import Any, Dict

from erp_obras.domain.contracts import (
    AccountListQuery,
    PayableCreateInput,
    PaymentInput,
    ReceivableCreateInput,
    ServiceOutput,
)
from erp_obras.domain.models import (
    PAYMENT_METHODS,
    PAYMENT_STATUS_PENDING,
    TRANSACTION_CATEGORIES,
    AccountPayable,
    AccountReceivable,
    StatusEvent,
)
from erp_obras.errors import NotFoundError, ValidationError
from erp_obras.finance import accounts, cash_flow, reports
from erp_obras.infrastructure.repositories.records import (
    ClientRepository,
    PayableRepository,
    ProjectRepository,
    ReceivableRepository,
    SupplierRepository,
)
from erp_obras.infrastructure.repositories.status_events import StatusEventRepository
from erp_obras.procurement.flow_policy import action_allowed, flow_meta
from erp_obras.procurement.payables import new_payable_id
from erp_obras.application.requisition_service import forbidden_action
from erp_obras.ui_strings import status_label


PAYABLE_STAGE = "conta_pagar"
RECEIVABLE_STAGE = "conta_receber"

LOGGER = logging.getLogger("erp_obras.finance")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _new_receivable_id(index: int) -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"AR-{int(time.time() * 1000)}-{index}-{suffix}"


def _require_date(value: str | None) -> str:
    parsed = accounts.parse_iso_date(value)
    if parsed is None:
        raise ValidationError(code="date_invalid", message_key="date_invalid", payload={"value": value})
    return parsed.isoformat()


def _require_amount(value: Any) -> float:
    try:
        amount = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(code="amount_invalid", message_key="amount_invalid") from exc
    if not math.isfinite(amount) or amount <= 0:
        raise ValidationError(code="amount_invalid", message_key="amount_invalid")
    return amount


def _require_payment_method(value: str | None, *, required: bool = False) -> str | None:
    method = (value or "").strip() or None
    if method is None:
        if required:
            raise ValidationError(code="payment_method_invalid", message_key="payment_method_invalid")
        return None
    if method not in PAYMENT_METHODS:
        raise ValidationError(
            code="payment_method_invalid",
            message_key="payment_method_invalid",
            payload={"payment_method": method, "allowed": list(PAYMENT_METHODS)},
        )
    return method


class FinanceService:
    def list_payables(self, db, *, workspace_id: str, query: AccountListQuery, today: date) -> ServiceOutput:
        rows = PayableRepository(workspace_id=workspace_id).list_all(db)
        names = self._names(db, workspace_id, include_suppliers=True)
        filtered = accounts.filter_accounts(
            rows,
            today,
            status=query.status,
            project_id=query.project_id,
            category=query.category,
            search=query.search,
            names=names,
        )
        ordered = accounts.sort_accounts(filtered, key=query.sort_key, direction=query.sort_direction, names=names)
        page = accounts.paginate(ordered, page=query.page, per_page=query.per_page)
        page["items"] = [self._payable_view(row, names, today) for row in page["items"]]
        return ServiceOutput(payload={**page, "stats": accounts.account_stats(rows, today)})

    def create_payable(self, db, *, workspace_id: str, create_input: PayableCreateInput) -> ServiceOutput:
        self._require_project(db, workspace_id, create_input.project_id)
        supplier_id = (create_input.supplier_id or "").strip()
        if not SupplierRepository(workspace_id=workspace_id).get_by_id(db, supplier_id):
            raise NotFoundError(code="supplier_not_found", message_key="supplier_not_found", payload={"supplier_id": supplier_id})
        description = (create_input.description or "").strip()
        if not description:
            raise ValidationError(code="description_required", message_key="description_required")
        category = create_input.category or "Outros"
        if category not in TRANSACTION_CATEGORIES:
            raise ValidationError(
                code="validation_error",
                message_key="payload_invalid",
                payload={"field": "category", "allowed": list(TRANSACTION_CATEGORIES)},
            )

        payable = AccountPayable(
            id=new_payable_id(),
            project_id=create_input.project_id,
            supplier_id=supplier_id,
            description=description,
            amount=_require_amount(create_input.amount),
            due_date=_require_date(create_input.due_date),
            category=category,
            status=PAYMENT_STATUS_PENDING,
            payment_method=_require_payment_method(create_input.payment_method),
            billing_terms=create_input.billing_terms,
            observations=create_input.observations,
            created_at=_now_iso(),
            created_by=create_input.created_by,
        )
        PayableRepository(workspace_id=workspace_id).save(db, payable)
        self._record_status(db, workspace_id, "payable", payable.id, None, payable.status, "payable_created")
        return ServiceOutput(payload={"payable": payable.to_dict()}, status_code=201)

    def mark_payable_paid(
        self,
        db,
        *,
        workspace_id: str,
        payable_id: str,
        payment_input: PaymentInput,
        today: date,
    ) -> ServiceOutput:
        repository = PayableRepository(workspace_id=workspace_id)
        payable = repository.get_by_id(db, payable_id)
        if not payable:
            raise NotFoundError(code="payable_not_found", message_key="payable_not_found", payload={"payable_id": payable_id})
        status = accounts.effective_status(payable, today)
        if not action_allowed(PAYABLE_STAGE, status, "mark_paid"):
            forbidden_action(PAYABLE_STAGE, status, "mark_paid")

        updated = accounts.mark_paid(
            payable,
            _require_date(payment_input.payment_date),
            _require_payment_method(payment_input.payment_method),
        )
        repository.save(db, updated)
        self._record_status(db, workspace_id, "payable", payable.id, payable.status, updated.status, "payable_paid")
        LOGGER.info("payable_paid", extra={"payable_id": payable.id, "amount": payable.amount})
        return ServiceOutput(payload={"payable": updated.to_dict()})

    def cancel_payable(
        self,
        db,
        *,
        workspace_id: str,
        payable_id: str,
        today: date,
        payload: Dict[str, Any] | None = None,
        require_confirmation_fn=None,
    ) -> ServiceOutput:
        repository = PayableRepository(workspace_id=workspace_id)
        payable = repository.get_by_id(db, payable_id)
        if not payable:
            raise NotFoundError(code="payable_not_found", message_key="payable_not_found", payload={"payable_id": payable_id})
        status = accounts.effective_status(payable, today)
        if not action_allowed(PAYABLE_STAGE, status, "cancel_payable"):
            forbidden_action(PAYABLE_STAGE, status, "cancel_payable")
        if require_confirmation_fn is not None:
            require_confirmation_fn("cancel_payable", entity="payable", entity_id=payable.id, payload=payload)

        updated = accounts.cancel(payable)
        repository.save(db, updated)
        self._record_status(db, workspace_id, "payable", payable.id, payable.status, updated.status, "payable_cancelled")
        return ServiceOutput(payload={"payable": updated.to_dict()})

    def list_receivables(self, db, *, workspace_id: str, query: AccountListQuery, today: date) -> ServiceOutput:
        rows = ReceivableRepository(workspace_id=workspace_id).list_all(db)
        names = self._names(db, workspace_id, include_clients=True)
        filtered = accounts.filter_accounts(
            rows,
            today,
            status=query.status,
            project_id=query.project_id,
            search=query.search,
            names=names,
        )
        ordered = accounts.sort_accounts(filtered, key=query.sort_key, direction=query.sort_direction, names=names)
        page = accounts.paginate(ordered, page=query.page, per_page=query.per_page)
        page["items"] = [self._receivable_view(row, names, today) for row in page["items"]]
        return ServiceOutput(payload={**page, "stats": accounts.account_stats(rows, today)})

    def create_receivable(self, db, *, workspace_id: str, create_input: ReceivableCreateInput) -> ServiceOutput:
        self._require_project(db, workspace_id, create_input.project_id)
        client_id = (create_input.client_id or "").strip()
        if not ClientRepository(workspace_id=workspace_id).get_by_id(db, client_id):
            raise NotFoundError(code="client_not_found", message_key="client_not_found", payload={"client_id": client_id})
        description = (create_input.description or "").strip()
        if not description:
            raise ValidationError(code="description_required", message_key="description_required")
        try:
            installments = int(create_input.total_installments or 1)
        except (TypeError, ValueError) as exc:
            raise ValidationError(code="installments_invalid", message_key="installments_invalid") from exc
        if installments < 1 or installments > 120:
            raise ValidationError(code="installments_invalid", message_key="installments_invalid")

        template = AccountReceivable(
            id="",
            project_id=create_input.project_id,
            client_id=client_id,
            description=description,
            amount=_require_amount(create_input.amount),
            due_date=_require_date(create_input.due_date),
            status=PAYMENT_STATUS_PENDING,
            created_at=_now_iso(),
            created_by=create_input.created_by,
        )
        rows = accounts.split_installments(template, installments, _new_receivable_id)
        ReceivableRepository(workspace_id=workspace_id).save_many(db, rows)
        for row in rows:
            self._record_status(db, workspace_id, "receivable", row.id, None, row.status, "receivable_created")
        return ServiceOutput(payload={"receivables": [row.to_dict() for row in rows]}, status_code=201)

    def mark_receivable_received(
        self,
        db,
        *,
        workspace_id: str,
        receivable_id: str,
        payment_input: PaymentInput,
        today: date,
    ) -> ServiceOutput:
        repository = ReceivableRepository(workspace_id=workspace_id)
        receivable = repository.get_by_id(db, receivable_id)
        if not receivable:
            raise NotFoundError(
                code="receivable_not_found",
                message_key="receivable_not_found",
                payload={"receivable_id": receivable_id},
            )
        status = accounts.effective_status(receivable, today)
        if not action_allowed(RECEIVABLE_STAGE, status, "mark_received"):
            forbidden_action(RECEIVABLE_STAGE, status, "mark_received")

        updated = accounts.mark_paid(
            receivable,
            _require_date(payment_input.payment_date),
            _require_payment_method(payment_input.payment_method),
        )
        repository.save(db, updated)
        self._record_status(
            db, workspace_id, "receivable", receivable.id, receivable.status, updated.status, "receivable_received"
        )
        return ServiceOutput(payload={"receivable": updated.to_dict()})

    def cash_flow(self, db, *, workspace_id: str, period: str, today: date) -> ServiceOutput:
        if period not in cash_flow.PERIOD_MONTHS:
            raise ValidationError(
                code="validation_error",
                message_key="payload_invalid",
                payload={"field": "period", "allowed": sorted(cash_flow.PERIOD_MONTHS)},
            )
        payables = PayableRepository(workspace_id=workspace_id).list_all(db)
        receivables = ReceivableRepository(workspace_id=workspace_id).list_all(db)
        return ServiceOutput(
            payload={
                "period": period,
                "history": cash_flow.monthly_cash_flow(payables, receivables, period, today),
                "projection": cash_flow.projected_cash_flow(payables, receivables, today),
                "position": cash_flow.cash_position(payables, receivables),
                "expenses_by_category": cash_flow.expenses_by_category(payables),
            }
        )

    def financial_reports(self, db, *, workspace_id: str) -> ServiceOutput:
        payables = PayableRepository(workspace_id=workspace_id).list_all(db)
        receivables = ReceivableRepository(workspace_id=workspace_id).list_all(db)
        projects = ProjectRepository(workspace_id=workspace_id).list_all(db)
        return ServiceOutput(
            payload={
                "income_statement": reports.income_statement(payables, receivables),
                "expenses_by_category": reports.expense_breakdown(payables),
                "revenue_by_project": reports.revenue_by_project(receivables, projects),
                "budget_vs_actual": reports.budget_vs_actual(projects, payables, receivables),
            }
        )

    @staticmethod
    def _require_project(db, workspace_id: str, project_id: str) -> None:
        if not ProjectRepository(workspace_id=workspace_id).get_by_id(db, project_id):
            raise NotFoundError(code="project_not_found", message_key="project_not_found", payload={"project_id": project_id})

    @staticmethod
    def _names(db, workspace_id: str, *, include_suppliers: bool = False, include_clients: bool = False) -> Dict[str, str]:
        names = {project.id: project.name for project in ProjectRepository(workspace_id=workspace_id).list_all(db)}
        if include_suppliers:
            names.update({row.id: row.name for row in SupplierRepository(workspace_id=workspace_id).list_all(db)})
        if include_clients:
            names.update({row.id: row.name for row in ClientRepository(workspace_id=workspace_id).list_all(db)})
        return names

    @staticmethod
    def _payable_view(row: AccountPayable, names: Dict[str, str], today: date) -> Dict[str, Any]:
        status = accounts.effective_status(row, today)
        return {
            **row.to_dict(),
            "effectiveStatus": status,
            "statusLabel": status_label(PAYABLE_STAGE, status),
            "supplierName": names.get(row.supplier_id, "N/A"),
            "projectName": names.get(row.project_id, "N/A"),
            "flow": flow_meta(PAYABLE_STAGE, status),
        }

    @staticmethod
    def _receivable_view(row: AccountReceivable, names: Dict[str, str], today: date) -> Dict[str, Any]:
        status = accounts.effective_status(row, today)
        return {
            **row.to_dict(),
            "effectiveStatus": status,
            "statusLabel": status_label(RECEIVABLE_STAGE, status),
            "clientName": names.get(row.client_id, "N/A"),
            "projectName": names.get(row.project_id, "N/A"),
            "flow": flow_meta(RECEIVABLE_STAGE, status),
        }

    @staticmethod
    def _record_status(
        db,
        workspace_id: str,
        entity: str,
        entity_id: str,
        from_status: str | None,
        to_status: str,
        reason: str,
    ) -> None:
        StatusEventRepository(workspace_id=workspace_id).append(
            db,
            StatusEvent(entity=entity, entity_id=entity_id, from_status=from_status, to_status=to_status, reason=reason),
        )
