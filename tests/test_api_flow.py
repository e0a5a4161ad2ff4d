"""
End-to-end API tests over the in-memory backend.

Walks one distributor through template, sales file and agent mapping,
then checks the admin views of the same upload.

Run: pytest tests/test_api_flow.py -v
"""

from io import BytesIO
from openpyxl import load_workbook

from tests.conftest import login
from tests.factories import SalesFileFactory, TemplateFactory, SKUMappingFactory

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def upload(client, url, content, name, headers):
    return client.post(url, files={"file": (name, content, XLSX)}, headers=headers)


def seed_mappings(client, admin_headers):
    content = SKUMappingFactory.file([
        ("MSKU-1", "Classic RT"),
        ("MSKU-1", "AC L.I.T."),
        ("MSKU-2", "Players Mint"),
    ])
    response = upload(client, "/api/sku-mappings/upload", content, "master.xlsx", admin_headers)
    assert response.status_code == 200, response.text
    return response.json()


class TestHealth:

    def test_health_reports_memory_mode(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["backend"]["mode"] == "memory"

    def test_root_lists_endpoints(self, client):
        assert client.get("/").json()["endpoints"]["uploads"] == "/api/uploads"


class TestAuthApi:

    def test_me(self, client, user_headers):
        response = client.get("/api/auth/me", headers=user_headers)

        assert response.status_code == 200
        assert response.json()["username"] == "user"

    def test_missing_token(self, client):
        response = client.get("/api/uploads/state")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTHENTICATION_FAILED"

    def test_bad_credentials(self, client):
        response = client.post("/api/auth/login", json={"username": "admin", "password": "nope"})

        assert response.status_code == 401

    def test_logout_invalidates_token(self, client, user_headers):
        assert client.post("/api/auth/logout", headers=user_headers).status_code == 200

        assert client.get("/api/auth/me", headers=user_headers).status_code == 401


class TestAdminApi:

    def test_users_admin_only(self, client, user_headers):
        response = client.get("/api/users", headers=user_headers)

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "PERMISSION_DENIED"

    def test_create_and_disable_user(self, client, admin_headers):
        created = client.post(
            "/api/users",
            json={"email": "north@dist.example", "password": "secret1"},
            headers=admin_headers,
        )
        assert created.status_code == 201
        user_id = created.json()["id"]

        new_headers = login(client, "north@dist.example", "secret1")
        disabled = client.patch(f"/api/users/{user_id}/status", json={"status": "disabled"}, headers=admin_headers)

        assert disabled.json()["status"] == "disabled"
        assert client.get("/api/auth/me", headers=new_headers).status_code == 401

    def test_admin_cannot_disable_self(self, client, admin_headers):
        response = client.patch(
            "/api/users/demo-admin-id/status", json={"status": "disabled"}, headers=admin_headers
        )

        assert response.status_code == 422

    def test_sku_mapping_crud(self, client, user_headers):
        created = client.post(
            "/api/sku-mappings",
            json={"market_sku": "MSKU-5", "variant_description": "GF Spl Mint"},
            headers=user_headers,
        )
        mapping_id = created.json()["id"]

        updated = client.patch(
            f"/api/sku-mappings/{mapping_id}", json={"variant_description": "Classic Clove"}, headers=user_headers
        )
        deleted = client.delete(f"/api/sku-mappings/{mapping_id}", headers=user_headers)
        missing = client.delete(f"/api/sku-mappings/{mapping_id}", headers=user_headers)

        assert created.status_code == 201
        assert updated.json()["variant_description"] == "Classic Clove"
        assert deleted.status_code == 204
        assert missing.status_code == 404

    def test_bulk_upload_admin_only(self, client, user_headers):
        content = SKUMappingFactory.file([("MSKU-1", "Classic RT")])

        response = upload(client, "/api/sku-mappings/upload", content, "master.xlsx", user_headers)

        assert response.status_code == 403


class TestUploadFlow:
    """Template -> sales file -> agent mapping -> output, over HTTP."""

    def test_full_flow(self, client, admin_headers, user_headers):
        seed_mappings(client, admin_headers)

        # Template
        template = TemplateFactory.create([("Alpha", "Classic RT"), ("Alpha", "AC L.I.T."), ("Beta", "Players Mint")])
        response = upload(client, "/api/uploads/template", template, "Stock Issue.xlsx", user_headers)
        assert response.status_code == 201, response.text
        assert client.get("/api/uploads/state", headers=user_headers).json()["state"] == "AWAITING_SALES_FILE"

        # Sales file
        sales = SalesFileFactory.create([("John", "MSKU-1", 5), ("Mary", "MSKU-2", 2), ("Mary", "MSKU-Z", 1)])
        response = upload(client, "/api/uploads/sales", sales, "march.xlsx", user_headers)
        assert response.status_code == 200, response.text
        body = response.json()
        assert body["agent_names"] == ["John", "Mary"]
        assert body["unmapped_skus"] == ["MSKU-Z"]

        # Incomplete mapping is refused
        response = client.post("/api/uploads/agent-mapping", json={"mappings": {"John": "Alpha"}}, headers=user_headers)
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "INCOMPLETE_MAPPING"

        # Complete mapping returns the CSV
        response = client.post(
            "/api/uploads/agent-mapping",
            json={"mappings": {"John": "Alpha", "Mary": "Beta"}},
            headers=user_headers,
        )
        assert response.status_code == 200, response.text
        assert "Stock%20Issue.csv" in response.headers["content-disposition"]
        assert response.text.splitlines() == [
            "S.No,SURVEYOR,VARIANT DESCRIPTION,QUANTITY (in M),Remarks",
            "1,Alpha,Classic RT,5,note 1",
            "2,Alpha,AC L.I.T.,5,note 2",
            "3,Beta,Players Mint,2,note 3",
        ]
        upload_id = response.headers["x-upload-id"]

        # History and re-download
        history = client.get("/api/uploads/history", headers=user_headers).json()
        assert history["data"][0]["status"] == "completed"
        again = client.get(f"/api/uploads/history/{upload_id}/download", headers=user_headers)
        assert again.content == response.content

        # Admin views
        distributors = client.get("/api/reports/distributors", headers=admin_headers).json()
        assert distributors["data"][0]["upload_count"] == 1
        raw = client.get(f"/api/reports/uploads/{upload_id}/raw-summary", headers=admin_headers)
        rows = list(load_workbook(BytesIO(raw.content)).active.iter_rows(values_only=True))
        assert rows[1:] == [("John", "MSKU-1", 5), ("Mary", "MSKU-2", 2), ("Mary", "MSKU-Z", 1)]

    def test_sales_file_before_template(self, client, user_headers):
        sales = SalesFileFactory.create([("John", "MSKU-1", 5)])

        response = upload(client, "/api/uploads/sales", sales, "march.xlsx", user_headers)

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "TEMPLATE_NOT_FOUND"

    def test_header_not_found_names_missing_columns(self, client, user_headers):
        template = TemplateFactory.create([("Alpha", "Classic RT")])
        upload(client, "/api/uploads/template", template, "t.xlsx", user_headers)

        response = upload(client, "/api/uploads/sales", template, "not-sales.xlsx", user_headers)

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "HEADER_NOT_FOUND"

    def test_other_users_output_is_private(self, client, admin_headers, user_headers):
        seed_mappings(client, admin_headers)
        template = TemplateFactory.create([("Alpha", "Classic RT")])
        upload(client, "/api/uploads/template", template, "t.xlsx", admin_headers)
        upload(client, "/api/uploads/sales", SalesFileFactory.create([("John", "MSKU-1", 1)]), "s.xlsx", admin_headers)
        done = client.post("/api/uploads/agent-mapping", json={"mappings": {"John": "Alpha"}}, headers=admin_headers)

        response = client.get(f"/api/uploads/history/{done.headers['x-upload-id']}/download", headers=user_headers)

        assert response.status_code == 403
