from __future__ import annotations

from typing import Any, Dict, Iterable, List

from erp_obras.domain.models import (
    PAYMENT_STATUS_PAID,
    TRANSACTION_CATEGORIES,
    AccountPayable,
    AccountReceivable,
    Project,
)


def income_statement(payables: Iterable[AccountPayable], receivables: Iterable[AccountReceivable]) -> Dict[str, float]:
    revenue = sum(row.amount for row in receivables if row.status == PAYMENT_STATUS_PAID)
    expenses = sum(row.amount for row in payables if row.status == PAYMENT_STATUS_PAID)
    gross_profit = revenue - expenses
    margin = (gross_profit / revenue) * 100 if revenue > 0 else 0.0
    return {
        "revenue": revenue,
        "expenses": expenses,
        "gross_profit": gross_profit,
        "profit_margin": margin,
    }


def expense_breakdown(payables: Iterable[AccountPayable]) -> List[Dict[str, Any]]:
    totals = {category: 0.0 for category in TRANSACTION_CATEGORIES}
    for payable in payables:
        if payable.status == PAYMENT_STATUS_PAID:
            totals[payable.category] = totals.get(payable.category, 0.0) + payable.amount
    rows = [{"name": name, "value": value} for name, value in totals.items() if value > 0]
    rows.sort(key=lambda row: row["value"], reverse=True)
    return rows


def revenue_by_project(receivables: Iterable[AccountReceivable], projects: List[Project]) -> List[Dict[str, Any]]:
    by_id = {project.id: project for project in projects}
    totals: Dict[str, float] = {}
    for receivable in receivables:
        if receivable.status == PAYMENT_STATUS_PAID:
            totals[receivable.project_id] = totals.get(receivable.project_id, 0.0) + receivable.amount

    rows = []
    for project_id, revenue in totals.items():
        project = by_id.get(project_id)
        budget = project.budget if project else 0.0
        rows.append(
            {
                "project_id": project_id,
                "name": project.name if project else "N/A",
                "revenue": revenue,
                "budget": budget,
                "usage": (revenue / budget) * 100 if budget else 0.0,
            }
        )
    rows.sort(key=lambda row: row["revenue"], reverse=True)
    return rows


def budget_vs_actual(
    projects: List[Project],
    payables: Iterable[AccountPayable],
    receivables: Iterable[AccountReceivable],
) -> List[Dict[str, Any]]:
    payable_rows = [row for row in payables if row.status == PAYMENT_STATUS_PAID]
    receivable_rows = [row for row in receivables if row.status == PAYMENT_STATUS_PAID]
    rows = []
    for project in projects:
        actual = sum(row.amount for row in receivable_rows if row.project_id == project.id)
        expenses = sum(row.amount for row in payable_rows if row.project_id == project.id)
        rows.append(
            {
                "project_id": project.id,
                "name": project.name.split(" ")[0].upper() if project.name else project.id,
                "budget": project.budget,
                "actual": actual,
                "expenses": expenses,
                "variance": actual - project.budget,
            }
        )
    return rows
