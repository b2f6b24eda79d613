import unittest
from datetime import date, datetime, timezone
from unittest.mock import patch

from erp_obras.domain.models import MaterialItem, MaterialOrder, OrderQuote
from erp_obras.procurement import payables


def _item(item_id: str, category: str | None) -> MaterialItem:
    return MaterialItem(id=item_id, name=f"Item {item_id}", quantity=1, unit="un", category=category)


class BillingTermsTest(unittest.TestCase):
    def test_days_extracted_from_terms(self) -> None:
        self.assertEqual(payables.billing_term_days("Faturamento 28 dias"), 28)
        self.assertEqual(payables.billing_term_days("45dias"), 45)
        self.assertEqual(payables.billing_term_days("Boleto 30 DIAS"), 30)

    def test_terms_without_days_fall_back_to_default(self) -> None:
        today = date(2024, 1, 10)
        self.assertIsNone(payables.billing_term_days("À vista"))
        self.assertEqual(payables.due_date_for_terms("À vista", today), date(2024, 2, 9))
        self.assertEqual(payables.due_date_for_terms(None, today, default_days=10), date(2024, 1, 20))

    def test_due_date_adds_term_days(self) -> None:
        self.assertEqual(payables.due_date_for_terms("Faturamento 28 dias", date(2024, 1, 10)), date(2024, 2, 7))


class CategoryTest(unittest.TestCase):
    def test_majority_category(self) -> None:
        items = [_item("1", "Estrutural"), _item("2", "Básico"), _item("3", "Estrutural")]
        self.assertEqual(payables.majority_category(items), "Estrutural")
        self.assertEqual(payables.payable_category(items), "Materiais")

    def test_tie_resolves_to_first_category_seen(self) -> None:
        items = [_item("1", "Acabamento"), _item("2", "Fixação"), _item("3", "Fixação"), _item("4", "Acabamento")]
        self.assertEqual(payables.majority_category(items), "Acabamento")

    def test_missing_categories_count_as_outros(self) -> None:
        self.assertEqual(payables.majority_category([_item("1", None), _item("2", None)]), "Outros")
        self.assertEqual(payables.majority_category([]), "Outros")
        self.assertEqual(payables.payable_category([]), "Materiais")


class GeneratePayableTest(unittest.TestCase):
    def test_payable_mirrors_selected_quote(self) -> None:
        order = MaterialOrder(
            id="REQ-1001",
            project_id="P1",
            request_date="2024-01-10T10:00:00Z",
            requested_by="Felipe Paiva",
            items=(
                MaterialItem(id="i1", name="Prego 18x27", quantity=10, unit="kg", category="Fixação"),
                MaterialItem(id="i3", name="Ferro 10mm CA-50", quantity=50, unit="m", category="Estrutural"),
                MaterialItem(id="i9", name="Vergalhão 8mm", quantity=30, unit="m", category="Estrutural"),
            ),
        )
        quote = OrderQuote(
            id="q1",
            supplier_id="S-1001",
            total_price=4800.0,
            delivery_days=3,
            is_selected=True,
            billing_terms="Faturamento 28 dias",
            payment_method="Boleto",
            observations="Entregar pela manha",
        )
        moment = datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)

        payable = payables.generate_payable(order, quote, today=date(2024, 1, 10), now=moment)

        self.assertTrue(payable.id.startswith(f"AP-{int(moment.timestamp() * 1000)}-"))
        self.assertEqual(payable.order_id, "REQ-1001")
        self.assertEqual(payable.supplier_id, "S-1001")
        self.assertEqual(payable.amount, 4800.0)
        self.assertEqual(payable.due_date, "2024-02-07")
        self.assertEqual(payable.status, "pending")
        self.assertEqual(payable.category, "Materiais")
        self.assertEqual(payable.payment_method, "Boleto")
        self.assertEqual(payable.description, "Pedido REQ-1001 - Prego 18x27, Ferro 10mm CA-50, Vergalhão 8mm")
        self.assertEqual(payable.created_by, "Felipe Paiva")
        self.assertEqual(payable.created_at, "2024-01-10T12:00:00Z")

    def test_due_date_counts_from_local_calendar_day(self) -> None:
        class _LocalDate(date):
            @classmethod
            def today(cls):
                return cls(2024, 1, 9)

        order = MaterialOrder(id="REQ-1002", project_id="P1", request_date="2024-01-09", requested_by="Obra")
        quote = OrderQuote(
            id="q1", supplier_id="S-1001", total_price=100.0, delivery_days=2, billing_terms="Faturamento 28 dias"
        )
        # already Jan 10 in UTC, still Jan 9 on the local clock
        moment = datetime(2024, 1, 10, 1, 0, tzinfo=timezone.utc)

        with patch.object(payables, "date", _LocalDate):
            payable = payables.generate_payable(order, quote, now=moment)

        self.assertEqual(payable.due_date, "2024-02-06")


if __name__ == "__main__":
    unittest.main()
