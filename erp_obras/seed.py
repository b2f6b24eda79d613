from __future__ import annotations

import logging
import random
import re
import unicodedata
from typing import List

from erp_obras.domain.models import (
    ORDER_STATUS_APPROVED,
    ORDER_STATUS_READY_FOR_APPROVAL,
    Client,
    Material,
    MaterialItem,
    MaterialOrder,
    OrderQuote,
    Project,
    Supplier,
)
from erp_obras.infrastructure.repositories.records import (
    ClientRepository,
    MaterialRepository,
    OrderRepository,
    ProjectRepository,
    SupplierRepository,
)
from erp_obras.procurement.quote_ledger import DEFAULT_BILLING_TERMS


LOGGER = logging.getLogger("erp_obras.seed")

DEMO_SUPPLIER_COUNT = 270

_SUPPLIER_CATEGORIES = ["Geral", "Estrutural", "Acabamento", "Elétrica", "Hidráulica", "Serviços"]
_SUPPLIER_NAMES = [
    "Constru", "Metais", "Pedra", "Aço", "Gesso", "Madeiras", "Tintas", "Tubos", "Cabos", "Vidros",
    "Cerâmica", "Mármores", "Eletro", "Soluções", "Parceiros", "Engenharia", "Brasil", "Norte", "Sul", "Master",
]
_SUPPLIER_SUFFIXES = ["Ltda", "S.A.", "e Filhos", "Indústria", "Comércio", "Distribuidora", "Express", "Pro"]

DEMO_CLIENTS = [
    Client(id="1", name="João Silva", email="joao@email.com", phone="11 99999-9999", document="123.456.789-00"),
    Client(id="2", name="Maria Oliveira", email="maria@email.com", phone="11 88888-8888", document="987.654.321-11"),
]

DEMO_MATERIALS = [
    Material(id="M-001", name="Cimento CP-II 50kg", category="Básico", unit="sc", description="Cimento Portland para uso geral"),
    Material(id="M-002", name="Areia Média Lavada", category="Agregados", unit="m3", description="Areia fina para reboco e assentamento"),
    Material(id="M-003", name="Brita 1", category="Agregados", unit="m3", description="Pedra britada para concreto"),
    Material(id="M-004", name="Ferro 10mm CA-50", category="Estrutural", unit="m", description="Barra de aço para reforço estrutural"),
    Material(id="M-005", name="Tijolo Baiano 9 Furos", category="Básico", unit="un", description="Tijolo cerâmico de vedação"),
]

DEMO_PROJECTS = [
    Project(id="P1", name="Residência Granja Viana", client_id="1", budget=150000.0, start_date="2023-10-01", status="in_progress"),
    Project(id="P2", name="Escritório Morumbi", client_id="2", budget=85000.0, start_date="2023-11-15", status="planning"),
]


def _email_domain(name: str) -> str:
    ascii_name = unicodedata.normalize("NFKD", name.lower()).encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-z]", "", ascii_name)


def demo_suppliers(count: int = DEMO_SUPPLIER_COUNT, seed: int = 42) -> List[Supplier]:
    rng = random.Random(seed)
    suppliers = []
    for index in range(count):
        name = f"{rng.choice(_SUPPLIER_NAMES)} {rng.choice(_SUPPLIER_NAMES)} {rng.choice(_SUPPLIER_SUFFIXES)}"
        suppliers.append(
            Supplier(
                id=f"S-{1000 + index}",
                name=name,
                category=rng.choice(_SUPPLIER_CATEGORIES),
                email=f"vendas{index}@{_email_domain(name)}.com.br",
                phone=f"(11) 9{rng.randint(1000, 9998)}-{rng.randint(1000, 9998)}",
                document=(
                    f"{rng.randint(10, 98)}.{rng.randint(100, 998)}.{rng.randint(100, 998)}"
                    f"/0001-{rng.randint(10, 98)}"
                ),
                rating=round(3 + rng.random() * 2, 1),
            )
        )
    return suppliers


def _demo_quotes(order_id: str, suppliers: List[Supplier], rng: random.Random, *, selected: bool) -> tuple:
    return tuple(
        OrderQuote(
            id=f"{order_id}-Q{index + 1}",
            supplier_id=supplier.id,
            total_price=round(2500 + rng.random() * 5000, 2),
            delivery_days=2 + index,
            is_selected=selected and index == 0,
            is_freight_included=True,
            billing_terms=DEFAULT_BILLING_TERMS,
        )
        for index, supplier in enumerate(suppliers[:3])
    )


def demo_orders(suppliers: List[Supplier], seed: int = 7) -> List[MaterialOrder]:
    rng = random.Random(seed)
    return [
        MaterialOrder(
            id="REQ-1001",
            project_id="P1",
            request_date="2024-01-10T10:00:00Z",
            requested_by="Felipe Paiva",
            status=ORDER_STATUS_APPROVED,
            items=(
                MaterialItem(id="i1", name="Prego 18x27", quantity=10, unit="kg", category="Fixação"),
                MaterialItem(id="i2", name="Tábua de Pinus 3m", quantity=20, unit="un", category="Madeiramento"),
                MaterialItem(id="i3", name="Ferro 10mm CA-50", quantity=50, unit="m", category="Estrutural"),
            ),
            quotes=_demo_quotes("REQ-1001", suppliers, rng, selected=True),
        ),
        MaterialOrder(
            id="REQ-1002",
            project_id="P1",
            request_date="2024-01-15T14:30:00Z",
            requested_by="Felipe Paiva",
            status=ORDER_STATUS_READY_FOR_APPROVAL,
            items=(
                MaterialItem(id="i4", name="Cimento CP-II", quantity=100, unit="sc", category="Básico"),
                MaterialItem(id="i5", name="Argamassa AC-III", quantity=40, unit="sc", category="Acabamento"),
                MaterialItem(id="i6", name="Areia Média", quantity=5, unit="m3", category="Agregados"),
            ),
            quotes=_demo_quotes("REQ-1002", suppliers, rng, selected=False),
        ),
    ]


def ensure_workspace(db, workspace_id: str, name: str | None = None) -> None:
    db.execute(
        "INSERT INTO workspaces (id, name) VALUES (?, ?) ON CONFLICT (id) DO NOTHING",
        (workspace_id, name or f"Construtora {workspace_id}"),
    )


def seed_demo_data(db, *, workspace_id: str, force: bool = False) -> bool:
    """Load the demo registry and two sample requisitions into a workspace.

    Returns False without touching anything when the workspace already holds
    projects, unless ``force`` is set. Account ledgers start empty.
    """
    projects = ProjectRepository(workspace_id=workspace_id)
    if projects.count(db) and not force:
        return False

    ensure_workspace(db, workspace_id)
    suppliers = demo_suppliers()
    ClientRepository(workspace_id=workspace_id).save_many(db, DEMO_CLIENTS)
    MaterialRepository(workspace_id=workspace_id).save_many(db, DEMO_MATERIALS)
    projects.save_many(db, DEMO_PROJECTS)
    SupplierRepository(workspace_id=workspace_id).save_many(db, suppliers)
    OrderRepository(workspace_id=workspace_id).save_many(db, demo_orders(suppliers))
    LOGGER.info("demo_data_seeded", extra={"workspace_id": workspace_id, "suppliers": len(suppliers)})
    return True
