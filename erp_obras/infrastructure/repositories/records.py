from __future__ import annotations

import json
from typing import Any, Callable, Dict, Generic, Iterable, List, TypeVar

from erp_obras.domain.models import (
    AccountPayable,
    AccountReceivable,
    Client,
    Material,
    MaterialOrder,
    Project,
    Supplier,
)
from erp_obras.infrastructure.repositories.base import BaseRepository


Record = TypeVar("Record")


class DocumentRepository(BaseRepository, Generic[Record]):
    """Stores one collection of records as JSON documents.

    Documents keep their insertion position so listings come back in the
    order they were first saved, the same way the browser collections did.
    """

    collection: str = ""
    decoder: Callable[[Dict[str, Any]], Record]

    def get_by_id(self, db, record_id: str) -> Record | None:
        row = db.execute(
            """
            SELECT payload
            FROM records
            WHERE workspace_id = ? AND collection = ? AND record_id = ?
            LIMIT 1
            """,
            self.scoped_params((self.collection, str(record_id or ""))),
        ).fetchone()
        if not row:
            return None
        return self._decode(row["payload"])

    def list_all(self, db) -> List[Record]:
        rows = db.execute(
            """
            SELECT payload
            FROM records
            WHERE workspace_id = ? AND collection = ?
            ORDER BY position ASC, record_id ASC
            """,
            self.scoped_params((self.collection,)),
        ).fetchall()
        return [self._decode(row["payload"]) for row in rows]

    def count(self, db) -> int:
        row = db.execute(
            "SELECT COUNT(*) AS total FROM records WHERE workspace_id = ? AND collection = ?",
            self.scoped_params((self.collection,)),
        ).fetchone()
        return int(row["total"] or 0) if row else 0

    def save(self, db, record: Record) -> Record:
        payload = json.dumps(record.to_dict(), ensure_ascii=False, separators=(",", ":"))
        db.execute(
            """
            INSERT INTO records (workspace_id, collection, record_id, position, payload)
            VALUES (
                ?, ?, ?,
                (SELECT COALESCE(MAX(position), 0) + 1 FROM records WHERE workspace_id = ? AND collection = ?),
                ?
            )
            ON CONFLICT (workspace_id, collection, record_id)
            DO UPDATE SET payload = excluded.payload, updated_at = CURRENT_TIMESTAMP
            """,
            (self.workspace_id, self.collection, record.id, self.workspace_id, self.collection, payload),
        )
        return record

    def save_many(self, db, records: Iterable[Record]) -> List[Record]:
        return [self.save(db, record) for record in records]

    def _decode(self, raw_payload: str | bytes) -> Record:
        data = json.loads(raw_payload or "{}")
        return type(self).decoder(data)


class OrderRepository(DocumentRepository[MaterialOrder]):
    collection = "orders"
    decoder = MaterialOrder.from_dict

    def list_by_project(self, db, project_id: str) -> List[MaterialOrder]:
        return [order for order in self.list_all(db) if order.project_id == project_id]


class ProjectRepository(DocumentRepository[Project]):
    collection = "projects"
    decoder = Project.from_dict


class SupplierRepository(DocumentRepository[Supplier]):
    collection = "suppliers"
    decoder = Supplier.from_dict


class ClientRepository(DocumentRepository[Client]):
    collection = "clients"
    decoder = Client.from_dict


class MaterialRepository(DocumentRepository[Material]):
    collection = "materials"
    decoder = Material.from_dict


class PayableRepository(DocumentRepository[AccountPayable]):
    collection = "accounts_payable"
    decoder = AccountPayable.from_dict

    def list_by_order(self, db, order_id: str) -> List[AccountPayable]:
        return [payable for payable in self.list_all(db) if payable.order_id == order_id]


class ReceivableRepository(DocumentRepository[AccountReceivable]):
    collection = "accounts_receivable"
    decoder = AccountReceivable.from_dict
