from __future__ import annotations

import logging
import math
import re
from dataclasses import replace
from typing import Any, Callable, Dict, List

from erp_obras.classification import classify_material
from erp_obras.domain.contracts import ServiceOutput
from erp_obras.domain.models import (
    PROJECT_STATUSES,
    Material,
    Project,
    Supplier,
)
from erp_obras.errors import NotFoundError, ValidationError
from erp_obras.finance.accounts import paginate, parse_iso_date
from erp_obras.infrastructure.repositories.records import (
    ClientRepository,
    MaterialRepository,
    OrderRepository,
    ProjectRepository,
    SupplierRepository,
)
from erp_obras.procurement.analytics import company_overview, project_rollup
from erp_obras.ui_strings import status_label


LOGGER = logging.getLogger("erp_obras.registry")

SUPPLIER_SORT_FIELDS = {"name", "category", "rating", "id"}

_PROJECT_FIELDS = {
    "name": "name",
    "clientId": "client_id",
    "budget": "budget",
    "startDate": "start_date",
    "status": "status",
}
_MATERIAL_FIELDS = ("name", "category", "unit", "description", "minStock")


def _next_sequential_id(prefix: str, existing: List[str], start: int = 1) -> str:
    pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")
    numbers = [int(match.group(1)) for match in (pattern.match(value) for value in existing) if match]
    return f"{prefix}{max(numbers, default=start - 1) + 1}"


def _required_name(value: Any) -> str:
    name = str(value or "").strip()
    if not name:
        raise ValidationError(code="name_required", message_key="name_required")
    return name


def _non_negative(value: Any, field_name: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(code="amount_invalid", message_key="amount_invalid", payload={"field": field_name}) from exc
    if not math.isfinite(number) or number < 0:
        raise ValidationError(code="amount_invalid", message_key="amount_invalid", payload={"field": field_name})
    return number


class RegistryService:
    def __init__(self, classify_fn: Callable[[str], Any] | None = None) -> None:
        self.classify_fn = classify_fn or classify_material

    # Obras

    def list_projects(self, db, *, workspace_id: str) -> ServiceOutput:
        projects = ProjectRepository(workspace_id=workspace_id).list_all(db)
        orders = OrderRepository(workspace_id=workspace_id).list_all(db)
        clients = {client.id: client.name for client in ClientRepository(workspace_id=workspace_id).list_all(db)}
        items = []
        for project in projects:
            rollup = project_rollup(project, orders)
            items.append(
                {
                    **project.to_dict(),
                    "statusLabel": status_label("obra", project.status),
                    "clientName": clients.get(project.client_id, "N/A"),
                    "actualSpent": rollup["actual_spent"],
                    "budgetUsagePercent": rollup["budget_usage_percent"],
                }
            )
        return ServiceOutput(payload={"items": items, "total": len(items)})

    def project_detail(self, db, *, workspace_id: str, project_id: str) -> ServiceOutput:
        project = self._load_project(db, workspace_id, project_id)
        orders = OrderRepository(workspace_id=workspace_id).list_by_project(db, project.id)
        client = ClientRepository(workspace_id=workspace_id).get_by_id(db, project.client_id)
        rollup = project_rollup(project, orders)
        rollup["client"] = client.to_dict() if client else None
        return ServiceOutput(payload=rollup)

    def create_project(self, db, *, workspace_id: str, payload: Dict[str, Any]) -> ServiceOutput:
        repository = ProjectRepository(workspace_id=workspace_id)
        project_id = _next_sequential_id("P", [row.id for row in repository.list_all(db)])
        project = self._validated_project(
            db,
            workspace_id,
            Project(id=project_id, name="", client_id="", budget=0.0, start_date=""),
            payload,
            require_all=True,
        )
        repository.save(db, project)
        LOGGER.info("project_created", extra={"project_id": project.id})
        return ServiceOutput(payload={"project": project.to_dict()}, status_code=201)

    def update_project(self, db, *, workspace_id: str, project_id: str, payload: Dict[str, Any]) -> ServiceOutput:
        project = self._load_project(db, workspace_id, project_id)
        updated = self._validated_project(db, workspace_id, project, payload, require_all=False)
        ProjectRepository(workspace_id=workspace_id).save(db, updated)
        return ServiceOutput(payload={"project": updated.to_dict()})

    def dashboard(self, db, *, workspace_id: str) -> ServiceOutput:
        projects = ProjectRepository(workspace_id=workspace_id).list_all(db)
        orders = OrderRepository(workspace_id=workspace_id).list_all(db)
        return ServiceOutput(payload=company_overview(projects, orders))

    # Fornecedores

    def list_suppliers(
        self,
        db,
        *,
        workspace_id: str,
        search: str | None = None,
        category: str | None = None,
        sort_key: str = "name",
        sort_direction: str = "asc",
        page: int = 1,
        per_page: int = 25,
    ) -> ServiceOutput:
        rows = SupplierRepository(workspace_id=workspace_id).list_all(db)
        if category and category != "all":
            rows = [row for row in rows if row.category == category]
        term = (search or "").strip().lower()
        if term:
            rows = [
                row
                for row in rows
                if term in row.name.lower()
                or term in row.id.lower()
                or term in row.email.lower()
                or term in row.document.lower()
                or term in (row.contact_person or "").lower()
            ]
        key = sort_key if sort_key in SUPPLIER_SORT_FIELDS else "name"

        def _sort_value(supplier: Supplier):
            value = getattr(supplier, key)
            return value.lower() if isinstance(value, str) else value

        rows = sorted(rows, key=_sort_value, reverse=str(sort_direction).lower() == "desc")
        result = paginate(rows, page=page, per_page=per_page)
        result["items"] = [row.to_dict() for row in result["items"]]
        return ServiceOutput(payload=result)

    def supplier_detail(self, db, *, workspace_id: str, supplier_id: str) -> ServiceOutput:
        return ServiceOutput(payload={"supplier": self._load_supplier(db, workspace_id, supplier_id).to_dict()})

    def create_supplier(self, db, *, workspace_id: str, payload: Dict[str, Any]) -> ServiceOutput:
        repository = SupplierRepository(workspace_id=workspace_id)
        supplier_id = _next_sequential_id("S-", [row.id for row in repository.list_all(db)], start=1000)
        supplier = self._apply_supplier(Supplier(id=supplier_id, name=""), payload)
        repository.save(db, supplier)
        LOGGER.info("supplier_created", extra={"supplier_id": supplier.id})
        return ServiceOutput(payload={"supplier": supplier.to_dict()}, status_code=201)

    def update_supplier(self, db, *, workspace_id: str, supplier_id: str, payload: Dict[str, Any]) -> ServiceOutput:
        supplier = self._load_supplier(db, workspace_id, supplier_id)
        updated = self._apply_supplier(supplier, payload)
        SupplierRepository(workspace_id=workspace_id).save(db, updated)
        return ServiceOutput(payload={"supplier": updated.to_dict()})

    # Materiais

    def list_materials(self, db, *, workspace_id: str, search: str | None = None) -> ServiceOutput:
        rows = MaterialRepository(workspace_id=workspace_id).list_all(db)
        term = (search or "").strip().lower()
        if term:
            rows = [row for row in rows if term in row.name.lower() or term in row.category.lower()]
        return ServiceOutput(payload={"items": [row.to_dict() for row in rows], "total": len(rows)})

    def create_material(self, db, *, workspace_id: str, payload: Dict[str, Any]) -> ServiceOutput:
        repository = MaterialRepository(workspace_id=workspace_id)
        material_id = _next_sequential_id("M-", [row.id for row in repository.list_all(db)])
        material_id = f"M-{int(material_id[2:]):03d}"
        material = self._apply_material(Material(id=material_id, name=""), payload, classify=True)
        repository.save(db, material)
        return ServiceOutput(payload={"material": material.to_dict()}, status_code=201)

    def update_material(self, db, *, workspace_id: str, material_id: str, payload: Dict[str, Any]) -> ServiceOutput:
        repository = MaterialRepository(workspace_id=workspace_id)
        material = repository.get_by_id(db, material_id)
        if not material:
            raise NotFoundError(
                code="material_not_found",
                message_key="material_not_found",
                payload={"material_id": material_id},
            )
        updated = self._apply_material(material, {**material.to_dict(), **payload}, classify=False)
        repository.save(db, updated)
        return ServiceOutput(payload={"material": updated.to_dict()})

    # Clientes

    def list_clients(self, db, *, workspace_id: str) -> ServiceOutput:
        rows = ClientRepository(workspace_id=workspace_id).list_all(db)
        return ServiceOutput(payload={"items": [row.to_dict() for row in rows], "total": len(rows)})

    def client_detail(self, db, *, workspace_id: str, client_id: str) -> ServiceOutput:
        client = ClientRepository(workspace_id=workspace_id).get_by_id(db, client_id)
        if not client:
            raise NotFoundError(code="client_not_found", message_key="client_not_found", payload={"client_id": client_id})
        projects = [
            project.to_dict()
            for project in ProjectRepository(workspace_id=workspace_id).list_all(db)
            if project.client_id == client.id
        ]
        return ServiceOutput(payload={"client": client.to_dict(), "projects": projects})

    def _load_project(self, db, workspace_id: str, project_id: str) -> Project:
        project = ProjectRepository(workspace_id=workspace_id).get_by_id(db, project_id)
        if not project:
            raise NotFoundError(code="project_not_found", message_key="project_not_found", payload={"project_id": project_id})
        return project

    def _load_supplier(self, db, workspace_id: str, supplier_id: str) -> Supplier:
        supplier = SupplierRepository(workspace_id=workspace_id).get_by_id(db, supplier_id)
        if not supplier:
            raise NotFoundError(
                code="supplier_not_found",
                message_key="supplier_not_found",
                payload={"supplier_id": supplier_id},
            )
        return supplier

    def _validated_project(
        self,
        db,
        workspace_id: str,
        project: Project,
        payload: Dict[str, Any],
        *,
        require_all: bool,
    ) -> Project:
        changes = {attribute: payload[key] for key, attribute in _PROJECT_FIELDS.items() if key in payload}
        if require_all or "name" in changes:
            changes["name"] = _required_name(changes.get("name"))
        if require_all or "client_id" in changes:
            client_id = str(changes.get("client_id") or "").strip()
            if not ClientRepository(workspace_id=workspace_id).get_by_id(db, client_id):
                raise NotFoundError(code="client_not_found", message_key="client_not_found", payload={"client_id": client_id})
            changes["client_id"] = client_id
        if require_all or "budget" in changes:
            changes["budget"] = _non_negative(changes.get("budget", 0), "budget")
        if require_all or "start_date" in changes:
            start = parse_iso_date(changes.get("start_date"))
            if start is None:
                raise ValidationError(code="date_invalid", message_key="date_invalid", payload={"field": "start_date"})
            changes["start_date"] = start.isoformat()
        if "status" in changes or require_all:
            status = changes.get("status") or "planning"
            if status not in PROJECT_STATUSES:
                raise ValidationError(
                    code="status_invalid",
                    message_key="status_invalid",
                    payload={"status": status, "allowed": list(PROJECT_STATUSES)},
                )
            changes["status"] = status
        return replace(project, **changes)

    @staticmethod
    def _apply_supplier(supplier: Supplier, payload: Dict[str, Any]) -> Supplier:
        data = {**supplier.to_dict(), **{key: value for key, value in payload.items() if value is not None}}
        data["id"] = supplier.id
        data["name"] = _required_name(data.get("name"))
        rating = _non_negative(data.get("rating", 5.0), "rating")
        if rating > 5:
            raise ValidationError(code="validation_error", message_key="payload_invalid", payload={"field": "rating"})
        data["rating"] = rating
        return Supplier.from_dict(data)

    def _apply_material(self, material: Material, payload: Dict[str, Any], *, classify: bool) -> Material:
        changes = {key: payload[key] for key in _MATERIAL_FIELDS if key in payload}
        name = _required_name(changes.get("name", material.name))
        category = str(changes.get("category") or "").strip()
        unit = str(changes.get("unit") or "").strip()
        if classify and (not category or not unit):
            suggestion = self.classify_fn(name)
            category = category or suggestion.category
            unit = unit or suggestion.unit
        min_stock = changes.get("minStock", material.min_stock)
        return replace(
            material,
            name=name,
            category=category or material.category,
            unit=unit or material.unit,
            description=changes.get("description", material.description),
            min_stock=None if min_stock in (None, "") else _non_negative(min_stock, "min_stock"),
        )
