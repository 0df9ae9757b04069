"""
Tests para el módulo de Clientes

Todos los tests validan que los datos estén scoped por company_id.
"""
from decimal import Decimal
from uuid import uuid4

from app.modules.auth.models import ProfileRole
from app.modules.company.models import Company
from app.modules.customers.models import Customer
from conftest import make_user, auth_headers_for


class TestCustomerCrud:

    def test_create_customer_generates_code(self, client, auth_headers):
        response = client.post("/customers", json={
            "name": "Aga Khan Pharmacy",
            "email": "orders@aga.medplus.app",
            "phone": "+254 712 345 678",
            "credit_limit": "50000"
        }, headers=auth_headers)
        assert response.status_code == 201
        body = response.json()
        assert body["customer_code"] == "CUST0001"
        assert body["is_active"] is True

    def test_duplicate_code_conflicts(self, client, auth_headers, sample_customer):
        response = client.post("/customers", json={
            "name": "Other", "customer_code": sample_customer.customer_code
        }, headers=auth_headers)
        assert response.status_code == 409

    def test_invalid_email_rejected(self, client, auth_headers):
        response = client.post("/customers", json={"name": "Bad", "email": "bad-email"}, headers=auth_headers)
        assert response.status_code == 422

    def test_search_and_supplier_filter(self, client, auth_headers, sample_customer, sample_supplier):
        response = client.get("/customers?search=nairobi", headers=auth_headers)
        assert response.status_code == 200
        assert [c["name"] for c in response.json()["customers"]] == ["Nairobi General Hospital"]

        response = client.get("/customers?suppliers_only=true", headers=auth_headers)
        assert [c["name"] for c in response.json()["customers"]] == ["Lab Supplies Ltd"]

    def test_update_and_soft_delete(self, client, db_session, auth_headers, sample_customer):
        response = client.patch(f"/customers/{sample_customer.id}", json={"city": "Mombasa"}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["city"] == "Mombasa"

        response = client.delete(f"/customers/{sample_customer.id}", headers=auth_headers)
        assert response.status_code == 204

        response = client.get(f"/customers/{sample_customer.id}", headers=auth_headers)
        assert response.status_code == 404
        assert db_session.get(Customer, sample_customer.id) is not None

    def test_user_role_cannot_delete(self, client, db_session, sample_company, sample_customer):
        clerk = make_user(db_session, sample_company, "clerk@medplus.app", role=ProfileRole.USER)
        response = client.delete(f"/customers/{sample_customer.id}", headers=auth_headers_for(clerk, sample_company))
        assert response.status_code == 403

    def test_customers_are_scoped_by_company(self, client, db_session, sample_customer):
        other = Company(name="Other Clinic")
        db_session.add(other)
        db_session.commit()
        outsider = make_user(db_session, other, "outsider@medplus.app")

        response = client.get(f"/customers/{sample_customer.id}", headers=auth_headers_for(outsider, other))
        assert response.status_code == 404

    def test_unknown_customer(self, client, auth_headers):
        response = client.get(f"/customers/{uuid4()}", headers=auth_headers)
        assert response.status_code == 404


class TestCustomerBalance:

    def test_balance_sums_open_invoices(self, client, auth_headers, sample_customer):
        for status in ("sent", "draft"):
            client.post("/invoices", json={
                "customer_id": str(sample_customer.id),
                "status": status,
                "affects_inventory": False,
                "items": [{"description": "Consultation", "quantity": "1", "unit_price": "1000"}]
            }, headers=auth_headers)

        response = client.get(f"/customers/{sample_customer.id}/balance", headers=auth_headers)
        assert response.status_code == 200
        body = response.json()
        assert Decimal(body["total_invoiced"]) == Decimal("1000")
        assert Decimal(body["outstanding_balance"]) == Decimal("1000")
        assert body["open_invoices"] == 1
        assert Decimal(body["available_credit"]) == Decimal("99000")
