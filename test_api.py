"""
HTTP surface tests with FastAPI's TestClient.

Payloads are camelCase and amounts are strings.
"""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from api.server import create_app
from core.errors import RepositoryError
from core.models.canonical import VatCode
from storage.seed import STANDARD_VAT_CODES
from storage.sqlite_repository import SqliteLedgerRepository

from conftest import corrupt_invoice, make_invoice


@pytest.fixture
def client(settings, repo, stats):
    app = create_app(settings=settings, repository=repo, stats=stats)
    with TestClient(app) as test_client:
        yield test_client


class TestCreateMovement:

    def test_created(self, client, repo):
        repo.save_invoice(make_invoice())
        response = client.post("/invoices/inv-001/create-movement", json={})

        assert response.status_code == 201
        data = response.json()
        assert data["movement"]["amount"] == "1000.00"
        assert data["movement"]["type"] == "income"
        assert data["movement"]["sourceInvoiceId"] == "inv-001"
        assert data["movement"]["vatAmount"] == "180.33"
        assert data["movement"]["isForced"] is False
        assert data["analysis"]["originalAmount"] == "1000.00"
        assert data["analysis"]["classification"]["direction"] == "income"

    def test_empty_body_is_accepted(self, client, repo):
        repo.save_invoice(make_invoice())
        assert client.post("/invoices/inv-001/create-movement").status_code == 201

    def test_conflict_then_force(self, client, repo):
        repo.save_invoice(make_invoice())
        first = client.post("/invoices/inv-001/create-movement", json={}).json()

        conflict = client.post("/invoices/inv-001/create-movement", json={})
        assert conflict.status_code == 409
        assert conflict.json()["existingMovementId"] == first["movement"]["id"]
        assert conflict.json()["error"] == "already_linked"

        forced = client.post(
            "/invoices/inv-001/create-movement",
            json={"forceCreate": True, "coreId": "core-9", "additionalNotes": "duplicato voluto"},
        )
        assert forced.status_code == 201
        assert forced.json()["movement"]["isForced"] is True
        assert forced.json()["movement"]["coreId"] == "core-9"

    def test_policy_skip(self, client, repo):
        repo.save_invoice(make_invoice(invoice_type="TD17"))
        response = client.post("/invoices/inv-001/create-movement", json={})

        assert response.status_code == 200
        data = response.json()
        assert data["skipped"] is True
        assert data["reason"] == "auto-invoice already accounted for"
        assert data["analysis"]["classification"]["shouldSkip"] is True

    def test_validation_error(self, client, repo):
        repo.save_invoice(make_invoice(total="-5.00", invoice_type="TD99"))
        response = client.post("/invoices/inv-001/create-movement", json={})

        assert response.status_code == 400
        fields = {e["field"] for e in response.json()["fieldErrors"]}
        assert fields == {"total_amount", "invoice_type"}

    def test_unknown_invoice(self, client):
        response = client.post("/invoices/missing/create-movement", json={})
        assert response.status_code == 404
        assert response.json()["error"] == "invoice_not_found"

    def test_repository_failure(self, settings, stats):
        class BrokenRepository(SqliteLedgerRepository):
            def get_invoice_by_id(self, invoice_id):
                raise RepositoryError("database is locked")

        repository = BrokenRepository(settings.db_path)
        repository.init_db()
        with TestClient(create_app(settings=settings, repository=repository, stats=stats)) as client:
            response = client.post("/invoices/inv-001/create-movement", json={})
        assert response.status_code == 503
        assert response.json()["error"] == "repository"


class TestBulk:

    def test_mixed_batch_is_200(self, client, repo):
        repo.save_invoice(make_invoice(invoice_id="inv-a"))
        repo.save_invoice(make_invoice(invoice_id="inv-auto", invoice_type="TD17"))

        response = client.post(
            "/invoices/bulk-create-movements",
            json={"invoiceIds": ["inv-a", "inv-auto", "missing"], "options": {"statusId": "status-paid"}},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["summary"] == {"total": 3, "successful": 1, "skipped": 1, "errors": 1}
        assert [r["outcome"] for r in data["results"]] == ["created", "skipped", "error"]
        assert data["results"][1]["skipReason"] == "policy"
        assert data["errors"][0]["invoiceId"] == "missing"
        assert data["errors"][0]["errorKind"] == "invoice_not_found"

    @pytest.mark.parametrize("body", [{}, {"invoiceIds": []}])
    def test_missing_ids_is_400(self, client, body):
        response = client.post("/invoices/bulk-create-movements", json=body)
        assert response.status_code == 400
        assert response.json()["fieldErrors"][0]["field"] == "invoiceIds"

    def test_sync_existing_twice(self, client, repo):
        repo.save_invoice(make_invoice(invoice_id="inv-a"))
        repo.save_invoice(make_invoice(invoice_id="inv-b", direction="incoming"))

        first = client.post("/invoices/sync-existing").json()
        second = client.post("/invoices/sync-existing").json()

        assert first["summary"]["successful"] == 2
        assert second["summary"] == {"total": 2, "successful": 0, "skipped": 2, "errors": 0}
        assert {r["skipReason"] for r in second["results"]} == {"already_linked"}

    def test_sync_existing_with_corrupt_row(self, client, repo):
        repo.save_invoice(make_invoice(invoice_id="inv-a"))
        repo.save_invoice(make_invoice(invoice_id="inv-b"))
        corrupt_invoice(repo, "inv-b", "total_amount", "n/a")

        response = client.post("/invoices/sync-existing")

        assert response.status_code == 200
        data = response.json()
        assert data["summary"] == {"total": 2, "successful": 1, "skipped": 0, "errors": 1}
        assert data["errors"][0]["invoiceId"] == "inv-b"
        assert data["errors"][0]["errorKind"] == "repository"


class TestPreview:

    def test_preview(self, client, repo):
        repo.save_invoice(make_invoice(direction="incoming", invoice_type="TD04", total="200.00"))
        response = client.get("/invoices/inv-001/movement-preview")

        assert response.status_code == 200
        data = response.json()
        assert data["wouldCreate"] is True
        assert data["movement"]["amount"] == "-200.00"
        assert data["validation"]["isValid"] is True
        assert repo.get_movements() == []

    def test_preview_unknown(self, client):
        assert client.get("/invoices/missing/movement-preview").status_code == 404


class TestVat:

    def test_from_imponibile(self, client):
        response = client.post(
            "/vat/calculate",
            json={"amount": "1250.00", "vatCodeId": "iva-22", "calculationType": "from_imponibile"},
        )

        assert response.status_code == 200
        data = response.json()
        assert (data["net"], data["vat"], data["gross"]) == ("1250.00", "275.00", "1525.00")
        assert data["regime"] == "IVA 22%"
        assert data["vatCode"]["id"] == "iva-22"

    def test_from_totale(self, client):
        response = client.post(
            "/vat/calculate",
            json={"amount": "1525.00", "vatCodeId": "iva-22", "calculationType": "from_totale"},
        )
        assert response.json()["net"] == "1250.00"

    def test_natura_code(self, client):
        data = client.post("/vat/calculate", json={"amount": "100", "vatCodeId": "n6-1"}).json()
        assert data["vat"] == "0.00"
        assert data["regime"] == "Inversione contabile (Reverse Charge)"

    def test_unknown_code(self, client):
        response = client.post("/vat/calculate", json={"amount": "100", "vatCodeId": "nope"})
        assert response.status_code == 404
        assert response.json()["error"] == "vat_code_not_found"

    def test_contradictory_code(self, client, repo):
        repo.save_vat_code(VatCode(id="bad", code="BAD", natura="N4", percentage=Decimal("22")))
        response = client.post("/vat/calculate", json={"amount": "100", "vatCodeId": "bad"})
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_vat_code"

    @pytest.mark.parametrize("amount", ["abc", "12,3.4"])
    def test_non_numeric_amount(self, client, amount):
        response = client.post("/vat/calculate", json={"amount": amount, "vatCodeId": "iva-22"})
        assert response.status_code == 422

    def test_bad_calculation_type(self, client):
        response = client.post(
            "/vat/calculate",
            json={"amount": "100", "vatCodeId": "iva-22", "calculationType": "sideways"},
        )
        assert response.status_code == 422

    def test_list_codes(self, client, repo):
        repo.save_vat_code(VatCode(id="old", code="20", percentage=Decimal("20"), is_active=False))

        all_codes = client.get("/vat/codes").json()
        active = client.get("/vat/codes", params={"activeOnly": "true"}).json()
        assert len(all_codes) == len(STANDARD_VAT_CODES) + 1
        assert len(active) == len(STANDARD_VAT_CODES)


class TestOperational:

    def test_metrics(self, client, repo):
        repo.save_invoice(make_invoice())
        client.post("/invoices/inv-001/create-movement", json={})
        client.post("/invoices/inv-001/create-movement", json={})

        outcomes = client.get("/metrics/sync").json()["outcomes"]
        assert outcomes["created"] == 1
        assert outcomes["skipped"] == 1
        assert outcomes["skip_reasons"] == {"already_linked": 1}

    def test_health(self, client):
        data = client.get("/health").json()
        assert data["status"] == "healthy"
        assert data["services"]["storage"] == "up"
