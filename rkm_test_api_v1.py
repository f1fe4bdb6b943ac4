"""
Rokkam Money (RKM) - API Test Suite
Version: 1.0.0

HTTP-level tests for the FastAPI surface.
"""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from rkm_main_api import create_app
from rkm_ledger_service_v1 import LedgerConfig

def make_client(**config) -> TestClient:
    return TestClient(create_app(LedgerConfig(**config)))

def balance_of(client: TestClient, role: str) -> Decimal:
    accounts = client.get("/api/v1/accounts").json()
    return next(Decimal(a["balance"]) for a in accounts if a["role"] == role)

# ============================================
# HEALTH & READ ENDPOINTS
# ============================================

class TestHealth:

    def test_root(self):
        client = make_client()
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["service"] == "Rokkam Money"

    def test_health_reports_integrity(self):
        client = make_client()
        body = client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["total_invoices"] == 1
        assert body["open_invoices"] == 1
        assert Decimal(body["total_balance"]) == Decimal("56000")
        assert body["audit_entries"] == 1
        assert body["audit_integrity"] == True
        assert body["decision_ledger_integrity"] == True

    def test_metrics_exposed(self):
        client = make_client()
        client.post("/api/v1/invoices", json={"amount": 1000, "description": "Resistors"})
        response = client.get("/metrics")

        assert response.status_code == 200
        assert "rkm_invoices_registered_total" in response.text
        assert "rkm_account_balance" in response.text

    def test_actions_do_not_reverify_audit_chain(self, monkeypatch):
        app = create_app(LedgerConfig())
        client = TestClient(app)
        audit_log = app.state.financing_service.store.audit_log
        calls = []
        monkeypatch.setattr(audit_log, "verify_chain_integrity", lambda: calls.append(1) or True)

        client.post("/api/v1/invoices", json={"amount": 1000, "description": "Resistors"})
        client.post("/api/v1/invoices/INV-2024-001/offers", json={"amount": 9800})
        assert calls == []

        client.get("/health")
        assert calls == [1]

class TestReadEndpoints:

    def test_accounts(self):
        client = make_client()
        accounts = client.get("/api/v1/accounts").json()

        assert [a["role"] for a in accounts] == ["Seller", "Investor", "Buyer"]
        assert balance_of(client, "Investor") == Decimal("50000")

    def test_get_invoice(self):
        client = make_client()
        body = client.get("/api/v1/invoices/INV-2024-001").json()

        assert body["status"] == "CREATED"
        assert body["status_label"] == "Pending Financing"
        assert body["due_date"] == "2025-12-01"
        assert body["payable_to"] == "Siva Electronics Ltd."

    def test_get_unknown_invoice(self):
        client = make_client()
        assert client.get("/api/v1/invoices/INV-9999-999").status_code == 404

    def test_unknown_status_filter(self):
        client = make_client()
        assert client.get("/api/v1/invoices", params={"status": "LOST"}).status_code == 400

# ============================================
# ACTION ENDPOINTS
# ============================================

class TestRegisterEndpoint:

    def test_register(self):
        client = make_client()
        response = client.post(
            "/api/v1/invoices",
            json={"amount": 10000, "description": "Q4 Circuit Board Supply"}
        )

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Invoice registered on Digital Ledger"
        assert body["invoice"]["id"] == "INV-2024-002"
        assert body["invoice"]["status"] == "CREATED"

        invoices = client.get("/api/v1/invoices").json()
        assert invoices[0]["id"] == "INV-2024-002"

    @pytest.mark.parametrize("payload", [
        {"amount": 0, "description": "Zero"},
        {"amount": -5, "description": "Negative"},
        {"description": "No amount"},
        {"amount": 100},
        {"amount": 0.001, "description": "Sub-paisa"},
        {"amount": "100.505", "description": "Three decimals"},
    ])
    def test_invalid_payload(self, payload):
        client = make_client()
        assert client.post("/api/v1/invoices", json=payload).status_code == 422

    def test_blank_description(self):
        client = make_client()
        response = client.post("/api/v1/invoices", json={"amount": 100, "description": "   "})

        assert response.status_code == 400
        assert len(client.get("/api/v1/audit-log").json()) == 1

class TestFinancingEndpoints:

    def test_offer_and_accept(self):
        client = make_client()

        offer = client.post("/api/v1/invoices/INV-2024-001/offers", json={"amount": 9800})
        assert offer.status_code == 200
        assert offer.json()["message"] == "Financing offer sent to Seller"
        assert offer.json()["invoice"]["offers"][0]["investor_name"] == "Lakshmi Capital Corp."

        accept = client.post("/api/v1/invoices/INV-2024-001/accept")
        assert accept.status_code == 200
        assert accept.json()["message"] == "₹9800 credited to your account."
        assert accept.json()["invoice"]["status"] == "FINANCED"
        assert accept.json()["invoice"]["payable_to"] == "Lakshmi Capital Corp."

        assert balance_of(client, "Seller") == Decimal("10800")
        assert balance_of(client, "Investor") == Decimal("40200")

    def test_offer_unknown_invoice(self):
        client = make_client()
        response = client.post("/api/v1/invoices/INV-9999-999/offers", json={"amount": 9800})

        assert response.status_code == 404

    def test_accept_without_offer(self):
        client = make_client()
        response = client.post("/api/v1/invoices/INV-2024-001/accept")

        assert response.status_code == 400
        assert balance_of(client, "Seller") == Decimal("1000")

    def test_accept_insufficient_investor_liquidity(self):
        client = make_client(
            enforce_investor_liquidity=True,
            initial_balances={"seller": Decimal("1000"), "investor": Decimal("100"), "buyer": Decimal("5000")}
        )
        client.post("/api/v1/invoices/INV-2024-001/offers", json={"amount": 9800})

        response = client.post("/api/v1/invoices/INV-2024-001/accept")

        assert response.status_code == 409
        assert response.json()["detail"] == "Insufficient investor liquidity"
        assert balance_of(client, "Investor") == Decimal("100")
        assert balance_of(client, "Seller") == Decimal("1000")
        assert client.get("/api/v1/invoices/INV-2024-001").json()["status"] == "OFFER_MADE"

class TestSettlementEndpoint:

    def test_insufficient_funds(self):
        client = make_client()
        response = client.post("/api/v1/invoices/INV-2024-001/settle")

        assert response.status_code == 409
        assert response.json()["detail"] == "Insufficient funds in operating account"
        assert balance_of(client, "Buyer") == Decimal("5000")

    def test_full_lifecycle(self):
        client = make_client()
        invoice_id = client.post(
            "/api/v1/invoices",
            json={"amount": 4000, "description": "Capacitor Reel Restock"}
        ).json()["invoice"]["id"]

        client.post(f"/api/v1/invoices/{invoice_id}/offers", json={"amount": 3900})
        client.post(f"/api/v1/invoices/{invoice_id}/accept")
        settle = client.post(f"/api/v1/invoices/{invoice_id}/settle")

        assert settle.status_code == 200
        assert settle.json()["message"] == "Payment processed successfully"
        assert settle.json()["invoice"]["status"] == "PAID"
        assert balance_of(client, "Buyer") == Decimal("1000")
        assert balance_of(client, "Investor") == Decimal("50100")

        paid = client.get("/api/v1/invoices", params={"status": "PAID"}).json()
        assert [inv["id"] for inv in paid] == [invoice_id]

        open_ids = [inv["id"] for inv in client.get("/api/v1/invoices", params={"open_only": True}).json()]
        assert open_ids == ["INV-2024-001"]

        events = [entry["event"] for entry in client.get("/api/v1/audit-log").json()]
        assert events == [
            "Invoice Settled",
            "Capital Disbursed",
            "Term Sheet Issued",
            "Invoice Registered",
            "System Init",
        ]

    def test_settle_twice(self):
        client = make_client()
        invoice_id = client.post(
            "/api/v1/invoices",
            json={"amount": 1000, "description": "Resistors"}
        ).json()["invoice"]["id"]

        assert client.post(f"/api/v1/invoices/{invoice_id}/settle").status_code == 200
        assert client.post(f"/api/v1/invoices/{invoice_id}/settle").status_code == 400
        assert balance_of(client, "Buyer") == Decimal("4000")

if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
