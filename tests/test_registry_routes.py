import unittest

from tests.helpers.temp_db import TempDbSandbox


class RegistryRoutesTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="registry_routes")
        self.app = self._temp_db.make_app(SEED_DEMO_DATA=True)
        self.client = self.app.test_client()

    def tearDown(self) -> None:
        self._temp_db.cleanup()

    def test_dashboard_totals_from_seed(self) -> None:
        payload = self.client.get("/api/dashboard").get_json()

        self.assertEqual(payload["total_budget"], 235000)
        self.assertEqual(payload["active_projects"], 1)
        self.assertEqual(payload["total_orders"], 2)
        self.assertGreater(payload["actual_spend"], 0)
        by_key = {row["key"]: row["value"] for row in payload["order_stats"]}
        self.assertEqual(by_key["approved"], 1)
        self.assertEqual(by_key["ready_for_approval"], 1)

    def test_projects_crud(self) -> None:
        listing = self.client.get("/api/projects").get_json()
        self.assertEqual([row["id"] for row in listing["items"]], ["P1", "P2"])
        self.assertEqual(listing["items"][0]["clientName"], "João Silva")
        self.assertEqual(listing["items"][0]["statusLabel"], "Em andamento")

        created = self.client.post(
            "/api/projects",
            json={"name": "Galpao Cotia", "clientId": "2", "budget": 320000, "startDate": "2024-03-01"},
        )
        self.assertEqual(created.status_code, 201, created.get_data(as_text=True))
        project = created.get_json()["project"]
        self.assertEqual(project["id"], "P3")
        self.assertEqual(project["status"], "planning")

        updated = self.client.patch("/api/projects/P3", json={"status": "in_progress", "budget": 300000})
        self.assertEqual(updated.status_code, 200)
        self.assertEqual(updated.get_json()["project"]["budget"], 300000)
        self.assertEqual(updated.get_json()["project"]["name"], "Galpao Cotia")

        detail = self.client.get("/api/projects/P1").get_json()
        self.assertEqual(detail["client"]["name"], "João Silva")
        self.assertEqual({row["id"] for row in detail["orders"]}, {"REQ-1001", "REQ-1002"})

    def test_project_validation(self) -> None:
        base = {"name": "Obra", "clientId": "1", "budget": 1000, "startDate": "2024-01-01"}
        cases = [
            ({**base, "name": " "}, 400, "name_required"),
            ({**base, "clientId": "77"}, 404, "client_not_found"),
            ({**base, "budget": -5}, 400, "amount_invalid"),
            ({**base, "startDate": "ontem"}, 400, "date_invalid"),
            ({**base, "status": "paused"}, 400, "status_invalid"),
        ]
        for payload, status, error in cases:
            response = self.client.post("/api/projects", json=payload)
            self.assertEqual(response.status_code, status, payload)
            self.assertEqual(response.get_json()["error"], error, payload)

        self.assertEqual(self.client.get("/api/projects/P404").status_code, 404)

    def test_supplier_directory(self) -> None:
        page = self.client.get("/api/suppliers").get_json()
        self.assertEqual(page["total"], 270)
        self.assertEqual(page["total_pages"], 11)
        self.assertEqual(len(page["items"]), 25)
        names = [row["name"].lower() for row in page["items"]]
        self.assertEqual(names, sorted(names))

        by_id = self.client.get("/api/suppliers?search=s-1269").get_json()
        self.assertEqual([row["id"] for row in by_id["items"]], ["S-1269"])

        by_rating = self.client.get("/api/suppliers?sort=rating&direction=desc&per_page=5").get_json()
        ratings = [row["rating"] for row in by_rating["items"]]
        self.assertEqual(ratings, sorted(ratings, reverse=True))

        category = self.client.get("/api/suppliers", query_string={"category": "Elétrica", "per_page": 300}).get_json()
        self.assertTrue(all(row["category"] == "Elétrica" for row in category["items"]))

    def test_supplier_create_and_update(self) -> None:
        created = self.client.post(
            "/api/suppliers",
            json={"name": "Casa do Construtor", "category": "Geral", "email": "contato@casa.com.br", "rating": 4.5},
        )
        self.assertEqual(created.status_code, 201)
        supplier = created.get_json()["supplier"]
        self.assertEqual(supplier["id"], "S-1270")

        updated = self.client.patch(f"/api/suppliers/{supplier['id']}", json={"contactPerson": "Rita", "rating": 5})
        self.assertEqual(updated.status_code, 200)
        self.assertEqual(updated.get_json()["supplier"]["contactPerson"], "Rita")
        self.assertEqual(updated.get_json()["supplier"]["email"], "contato@casa.com.br")

        too_high = self.client.patch(f"/api/suppliers/{supplier['id']}", json={"rating": 7})
        self.assertEqual(too_high.status_code, 400)

        self.assertEqual(self.client.get("/api/suppliers/S-1").status_code, 404)
        self.assertEqual(self.client.post("/api/suppliers", json={"name": ""}).status_code, 400)

    def test_materials_catalog(self) -> None:
        created = self.client.post("/api/materials", json={"name": "Prego 17x21", "minStock": 20})
        self.assertEqual(created.status_code, 201)
        material = created.get_json()["material"]
        self.assertEqual(material["id"], "M-006")
        self.assertEqual((material["category"], material["unit"]), ("Fixação", "kg"))

        updated = self.client.patch("/api/materials/M-006", json={"description": "Caixa 1kg"})
        self.assertEqual(updated.status_code, 200)
        self.assertEqual(updated.get_json()["material"]["category"], "Fixação")
        self.assertEqual(updated.get_json()["material"]["minStock"], 20)

        search = self.client.get("/api/materials?search=agregados").get_json()
        self.assertEqual([row["id"] for row in search["items"]], ["M-002", "M-003"])

        self.assertEqual(self.client.patch("/api/materials/M-999", json={"name": "x"}).status_code, 404)

    def test_classify_endpoint(self) -> None:
        response = self.client.post("/api/materials/classify", json={"name": "Areia grossa"})
        self.assertEqual(response.get_json(), {"category": "Agregados", "unit": "m3"})

        missing = self.client.post("/api/materials/classify", json={})
        self.assertEqual(missing.status_code, 400)

    def test_clients(self) -> None:
        listing = self.client.get("/api/clients").get_json()
        self.assertEqual(listing["total"], 2)

        detail = self.client.get("/api/clients/2").get_json()
        self.assertEqual([row["id"] for row in detail["projects"]], ["P2"])
        self.assertEqual(self.client.get("/api/clients/9").status_code, 404)

    def test_workspace_header_isolates_registry(self) -> None:
        headers = {"X-Workspace-Id": "construtora-b"}
        self.assertEqual(self.client.get("/api/projects", headers=headers).get_json()["total"], 0)

        created = self.client.post(
            "/api/suppliers",
            headers=headers,
            json={"name": "Fornecedor B"},
        )
        self.assertEqual(created.get_json()["supplier"]["id"], "S-1000")
        self.assertEqual(self.client.get("/api/suppliers", headers=headers).get_json()["total"], 1)
        self.assertEqual(self.client.get("/api/suppliers").get_json()["total"], 270)


if __name__ == "__main__":
    unittest.main()
