from __future__ import annotations

from typing import Any, Dict, Iterable, List

from erp_obras.domain.models import (
    ORDER_STATUS_APPROVED,
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_PENDING_QUOTES,
    ORDER_STATUS_READY_FOR_APPROVAL,
    ORDER_STATUS_REJECTED,
    MaterialOrder,
    Project,
)
from erp_obras.procurement.quote_ledger import compute_total_cost


COMMITTED_STATUSES = {ORDER_STATUS_APPROVED, ORDER_STATUS_DELIVERED}
NOT_PENDING_STATUSES = {ORDER_STATUS_APPROVED, ORDER_STATUS_DELIVERED, ORDER_STATUS_REJECTED}


def committed_spend(orders: Iterable[MaterialOrder]) -> float:
    return sum(compute_total_cost(order) for order in orders if order.status in COMMITTED_STATUSES)


def pending_spend(orders: Iterable[MaterialOrder]) -> float:
    return sum(compute_total_cost(order) for order in orders if order.status not in NOT_PENDING_STATUSES)


def budget_usage_percent(spent: float, budget: float) -> float:
    if not budget:
        return 0.0
    return (spent / budget) * 100.0


def company_overview(projects: List[Project], orders: List[MaterialOrder]) -> Dict[str, Any]:
    total_budget = sum(project.budget for project in projects)
    actual_spend = committed_spend(orders)

    per_project = []
    for project in projects:
        project_orders = [order for order in orders if order.project_id == project.id]
        per_project.append(
            {
                "project_id": project.id,
                "name": project.name.split(" ")[0].upper() if project.name else project.id,
                "orcado": project.budget,
                "gasto": committed_spend(project_orders),
            }
        )

    order_stats = [
        {"key": ORDER_STATUS_PENDING_QUOTES, "name": "Pendente", "value": _count(orders, ORDER_STATUS_PENDING_QUOTES)},
        {
            "key": ORDER_STATUS_READY_FOR_APPROVAL,
            "name": "Em Aprovação",
            "value": _count(orders, ORDER_STATUS_READY_FOR_APPROVAL),
        },
        {"key": ORDER_STATUS_APPROVED, "name": "Aprovado", "value": _count(orders, ORDER_STATUS_APPROVED)},
    ]

    return {
        "total_budget": total_budget,
        "actual_spend": actual_spend,
        "budget_usage_percent": round(budget_usage_percent(actual_spend, total_budget), 2),
        "active_projects": sum(1 for project in projects if project.status == "in_progress"),
        "total_orders": len(orders),
        "per_project": per_project,
        "order_stats": order_stats,
    }


def project_rollup(project: Project, orders: Iterable[MaterialOrder]) -> Dict[str, Any]:
    project_orders = [order for order in orders if order.project_id == project.id]
    actual = committed_spend(project_orders)
    pending = pending_spend(project_orders)
    return {
        "project": project.to_dict(),
        "actual_spent": actual,
        "pending_spent": pending,
        "budget_usage_percent": round(budget_usage_percent(actual, project.budget), 2),
        "remaining_budget": project.budget - actual,
        "orders": [
            {**order.to_dict(), "totalCost": compute_total_cost(order)}
            for order in project_orders
        ],
    }


def _count(orders: Iterable[MaterialOrder], status: str) -> int:
    return sum(1 for order in orders if order.status == status)
