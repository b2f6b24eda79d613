import re
import unittest
from datetime import date, timedelta

from erp_obras.observability import reset_metrics_for_tests
from erp_obras.ui_strings import error_message, success_message
from tests.helpers.temp_db import TempDbSandbox


class OrderFlowRoutesTest(unittest.TestCase):
    def setUp(self) -> None:
        reset_metrics_for_tests()
        self._temp_db = TempDbSandbox(prefix="order_flow")
        self.app = self._temp_db.make_app(SEED_DEMO_DATA=True)
        self.client = self.app.test_client()
        self.headers = {"X-User-Name": "Felipe Paiva"}

    def tearDown(self) -> None:
        self._temp_db.cleanup()

    def _create_order(self) -> dict:
        response = self.client.post(
            "/api/orders",
            headers=self.headers,
            json={
                "projectId": "P1",
                "requestedBy": "Felipe Paiva",
                "items": [
                    {"name": "Cimento CP-II", "quantity": 100},
                    {"name": "Areia Média", "quantity": 5, "unit": "m3", "category": "Agregados"},
                ],
            },
        )
        self.assertEqual(response.status_code, 201, response.get_data(as_text=True))
        return response.get_json()["order"]

    def _add_quote(self, order_id: str, supplier_id: str, total: float, **extra) -> dict:
        response = self.client.post(
            f"/api/orders/{order_id}/quotes",
            headers=self.headers,
            json={"supplierId": supplier_id, "totalPrice": total, "deliveryDays": 3, **extra},
        )
        self.assertEqual(response.status_code, 201, response.get_data(as_text=True))
        return response.get_json()

    def _order_with_three_quotes(self) -> tuple[str, list[dict]]:
        order = self._create_order()
        quotes = [
            self._add_quote(order["id"], "S-1000", 5000)["quote"],
            self._add_quote(order["id"], "S-1001", 4800)["quote"],
            self._add_quote(order["id"], "S-1002", 5200)["quote"],
        ]
        return order["id"], quotes

    def test_create_order_classifies_missing_category(self) -> None:
        order = self._create_order()

        self.assertRegex(order["id"], r"^REQ-\d{4}$")
        self.assertEqual(order["status"], "pending_quotes")
        self.assertEqual((order["items"][0]["category"], order["items"][0]["unit"]), ("Básico", "sc"))
        self.assertEqual((order["items"][1]["category"], order["items"][1]["unit"]), ("Agregados", "m3"))
        self.assertEqual(order["flow"]["primary_action"], "add_quote")
        self.assertEqual(order["totalCost"], 0)

    def test_create_order_validation(self) -> None:
        missing_items = self.client.post("/api/orders", json={"projectId": "P1", "items": []})
        self.assertEqual(missing_items.status_code, 400)
        self.assertEqual(missing_items.get_json()["error"], "items_required")

        bad_quantity = self.client.post(
            "/api/orders",
            json={"projectId": "P1", "items": [{"name": "Brita 1", "quantity": 0}]},
        )
        self.assertEqual(bad_quantity.get_json()["error"], "quantity_invalid")

        unknown_project = self.client.post(
            "/api/orders",
            json={"projectId": "P99", "items": [{"name": "Brita 1", "quantity": 2}]},
        )
        self.assertEqual(unknown_project.status_code, 404)
        self.assertEqual(unknown_project.get_json()["message"], error_message("project_not_found"))

    def test_non_finite_numbers_are_rejected(self) -> None:
        order = self._create_order()
        quotes_url = f"/api/orders/{order['id']}/quotes"
        bodies = [
            (quotes_url, '{"supplierId": "S-1000", "totalPrice": NaN, "deliveryDays": 3}', "amount_invalid"),
            (quotes_url, '{"supplierId": "S-1000", "totalPrice": Infinity, "deliveryDays": 3}', "amount_invalid"),
            (
                quotes_url,
                '{"supplierId": "S-1000", "deliveryDays": 3, "isFreightIncluded": false, "freightCost": -Infinity}',
                "amount_invalid",
            ),
            ("/api/orders", '{"projectId": "P1", "items": [{"name": "Brita 1", "quantity": NaN}]}', "quantity_invalid"),
            ("/api/orders", '{"projectId": "P1", "items": [{"name": "Brita 1", "quantity": Infinity}]}', "quantity_invalid"),
        ]
        for url, body, error in bodies:
            response = self.client.post(url, data=body, content_type="application/json")
            self.assertEqual(response.status_code, 400, body)
            self.assertEqual(response.get_json()["error"], error, body)

        stored = self.client.get(f"/api/orders/{order['id']}").get_json()
        self.assertEqual(stored["order"]["orderQuotes"], [])

    def test_non_finite_confirm_flag_is_not_a_confirmation(self) -> None:
        order_id, quotes = self._order_with_three_quotes()
        self.client.patch(f"/api/orders/{order_id}/quotes/{quotes[1]['id']}", json={"paymentMethod": "PIX"})

        for literal in ("NaN", "Infinity"):
            response = self.client.post(
                f"/api/orders/{order_id}/approve",
                data='{"confirm": %s}' % literal,
                content_type="application/json",
            )
            self.assertEqual(response.status_code, 400, literal)
            self.assertEqual(response.get_json()["error"], "confirmation_required")

    def test_third_quote_moves_order_to_ready_for_approval(self) -> None:
        order = self._create_order()
        self._add_quote(order["id"], "S-1000", 5000)
        second = self._add_quote(order["id"], "S-1001", 4800)
        self.assertEqual(second["order"]["status"], "pending_quotes")

        third = self._add_quote(order["id"], "S-1002", 5200)
        self.assertEqual(third["order"]["status"], "ready_for_approval")
        self.assertEqual(third["order"]["totalCost"], 4800)
        self.assertEqual(third["quote"]["billingTerms"], "Faturamento 28 dias")
        self.assertEqual(len(third["order"]["supplierNames"]), 3)

    def test_quote_total_from_item_prices_and_freight(self) -> None:
        order = self._create_order()
        item_ids = [item["id"] for item in order["items"]]
        payload = self._add_quote(
            order["id"],
            "S-1000",
            None,
            itemPrices=[{"itemId": item_ids[0], "unitPrice": 32.5}, {"itemId": item_ids[1], "unitPrice": 120}],
            isFreightIncluded=False,
            freightCost=150,
        )
        self.assertEqual(payload["quote"]["totalPrice"], 100 * 32.5 + 5 * 120 + 150)

    def test_quote_requires_known_supplier(self) -> None:
        order = self._create_order()
        response = self.client.post(f"/api/orders/{order['id']}/quotes", json={"supplierId": "S-9999", "totalPrice": 1})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()["error"], "supplier_not_found")

        invalid_method = self.client.post(
            f"/api/orders/{order['id']}/quotes",
            json={"supplierId": "S-1000", "totalPrice": 1, "paymentMethod": "Cheque"},
        )
        self.assertEqual(invalid_method.get_json()["error"], "payment_method_invalid")

    def test_approval_blocked_with_fewer_than_three_quotes(self) -> None:
        order = self._create_order()
        self._add_quote(order["id"], "S-1000", 5000, paymentMethod="PIX")

        response = self.client.post(f"/api/orders/{order['id']}/approve", json={"confirm": True})

        self.assertEqual(response.status_code, 409)
        payload = response.get_json()
        self.assertEqual(payload["error"], "order_approval_blocked")
        self.assertEqual(payload["approval"]["reason"], "quotes_insufficient")
        self.assertTrue(payload["request_id"])

    def test_full_approval_generates_payable(self) -> None:
        order_id, quotes = self._order_with_three_quotes()

        no_method = self.client.post(f"/api/orders/{order_id}/approve", json={"confirm": True})
        self.assertEqual(no_method.status_code, 409)
        self.assertEqual(no_method.get_json()["approval"]["reason"], "payment_method_required")

        cheapest_id = quotes[1]["id"]
        patch_res = self.client.patch(
            f"/api/orders/{order_id}/quotes/{cheapest_id}",
            json={"paymentMethod": "Boleto", "observations": "Entregar pela manha"},
        )
        self.assertEqual(patch_res.status_code, 200)

        unconfirmed = self.client.post(f"/api/orders/{order_id}/approve", json={})
        self.assertEqual(unconfirmed.status_code, 400)
        self.assertEqual(unconfirmed.get_json()["error"], "confirmation_required")
        self.assertEqual(unconfirmed.get_json()["confirmation"]["action_key"], "approve_order")

        approved = self.client.post(f"/api/orders/{order_id}/approve", headers=self.headers, json={"confirm": True})
        self.assertEqual(approved.status_code, 200, approved.get_data(as_text=True))
        payload = approved.get_json()
        self.assertEqual(payload["order"]["status"], "approved")
        self.assertEqual(payload["message"], success_message("order_approved"))
        self.assertEqual(payload["selected_quote"]["id"], cheapest_id)
        self.assertEqual(payload["order"]["totalCost"], 4800)

        payable = payload["payable"]
        expected_due = (date.today() + timedelta(days=28)).isoformat()
        self.assertTrue(re.match(r"^AP-\d+-[a-z0-9]{9}$", payable["id"]))
        self.assertEqual(payable["orderId"], order_id)
        self.assertEqual(payable["supplierId"], "S-1001")
        self.assertEqual(payable["amount"], 4800)
        self.assertEqual(payable["dueDate"], expected_due)
        self.assertEqual(payable["status"], "pending")
        self.assertEqual(payable["category"], "Materiais")
        self.assertEqual(payable["paymentMethod"], "Boleto")
        self.assertEqual(payable["observations"], "Entregar pela manha")

        listing = self.client.get("/api/finance/payables").get_json()
        self.assertEqual([row["id"] for row in listing["items"]], [payable["id"]])
        self.assertEqual(listing["items"][0]["supplierName"], payload["order"]["supplierNames"]["S-1001"])

        health = self.client.get("/health").get_json()
        self.assertEqual(health["metrics"]["payables_generated_total"], 1)
        self.assertEqual(health["metrics"]["approvals"].get("approved"), 1)

    def test_closed_order_rejects_further_changes(self) -> None:
        order_id, quotes = self._order_with_three_quotes()
        self.client.patch(f"/api/orders/{order_id}/quotes/{quotes[0]['id']}", json={"paymentMethod": "PIX"})
        self.client.post(f"/api/orders/{order_id}/quotes/{quotes[0]['id']}/select")
        approved = self.client.post(f"/api/orders/{order_id}/approve?confirm=true")
        self.assertEqual(approved.status_code, 200)
        self.assertEqual(approved.get_json()["payable"]["amount"], 5000)

        again = self.client.post(f"/api/orders/{order_id}/approve", json={"confirm": True})
        self.assertEqual(again.status_code, 409)
        self.assertEqual(again.get_json()["error"], "action_not_allowed_for_status")
        self.assertIn("mark_delivered", again.get_json()["allowed_actions"])

        extra_quote = self.client.post(f"/api/orders/{order_id}/quotes", json={"supplierId": "S-1003", "totalPrice": 1})
        self.assertEqual(extra_quote.status_code, 409)

        reselect = self.client.post(f"/api/orders/{order_id}/quotes/{quotes[1]['id']}/select")
        self.assertEqual(reselect.status_code, 409)

        payables = self.client.get("/api/finance/payables").get_json()
        self.assertEqual(payables["total"], 1)

    def test_reject_and_deliver(self) -> None:
        order_id, _quotes = self._order_with_three_quotes()

        unconfirmed = self.client.post(f"/api/orders/{order_id}/reject", json={"reason": "Preco alto"})
        self.assertEqual(unconfirmed.status_code, 400)

        rejected = self.client.post(
            f"/api/orders/{order_id}/reject",
            headers={"X-Confirm": "true"},
            json={"reason": "Preco alto"},
        )
        self.assertEqual(rejected.status_code, 200)
        self.assertEqual(rejected.get_json()["order"]["status"], "rejected")

        deliver = self.client.post(f"/api/orders/{order_id}/deliver")
        self.assertEqual(deliver.status_code, 409)

        history = self.client.get(f"/api/orders/{order_id}/history").get_json()["history"]
        self.assertEqual([row["reason"] for row in history], ["order_created", "quote_threshold_reached", "order_rejected"])
        self.assertEqual(history[-1]["payload"], {"reason": "Preco alto"})

    def test_seeded_order_is_delivered_after_approval(self) -> None:
        response = self.client.post("/api/orders/REQ-1001/deliver")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["order"]["status"], "delivered")
        self.assertEqual(response.get_json()["order"]["flow"]["primary_action"], "view_history")

    def test_seeded_ready_order_needs_payment_method(self) -> None:
        response = self.client.post("/api/orders/REQ-1002/approve", json={"confirm": True})
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.get_json()["approval"]["reason"], "payment_method_required")

    def test_list_orders_filters(self) -> None:
        self._create_order()
        all_orders = self.client.get("/api/orders").get_json()
        self.assertEqual(all_orders["total"], 3)

        approved = self.client.get("/api/orders?status=approved").get_json()
        self.assertEqual([row["id"] for row in approved["items"]], ["REQ-1001"])

        invalid = self.client.get("/api/orders?status=archived")
        self.assertEqual(invalid.status_code, 400)
        self.assertEqual(invalid.get_json()["error"], "status_invalid")

    def test_project_insights_use_fallback_tips(self) -> None:
        response = self.client.get("/api/projects/P1/insights")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.get_json()["tips"]), 3)

        missing = self.client.get("/api/projects/P9/insights")
        self.assertEqual(missing.status_code, 404)


if __name__ == "__main__":
    unittest.main()
