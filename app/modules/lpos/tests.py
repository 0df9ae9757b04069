"""
Tests de órdenes de compra (LPO): reglas de validación, flujo de estados
y recepción de inventario.
"""
from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from app.modules.lpos.validation import validate_lpo, validate_lpo_edit
from app.modules.products.models import Product, StockMovement

TODAY = date(2024, 6, 15)


def valid_lpo(**overrides):
    data = {
        "supplier_id": uuid4(),
        "lpo_date": date(2024, 6, 1),
        "items": [{"product_id": uuid4(), "description": "Syringes", "quantity": 10, "unit_price": 25}],
    }
    data.update(overrides)
    return data


class TestLPOValidation:

    def test_valid_lpo(self):
        result = validate_lpo(valid_lpo(), today=TODAY)
        assert result.is_valid is True
        assert result.errors == []

    def test_missing_header_fields(self):
        result = validate_lpo({"items": []}, today=TODAY)
        assert result.is_valid is False
        assert result.errors == ["Supplier is required", "LPO date is required", "At least one item is required"]

    def test_date_bounds(self):
        assert validate_lpo(valid_lpo(lpo_date=date(2019, 12, 31)), today=TODAY).errors == [
            "LPO date cannot be before 2020"
        ]
        assert validate_lpo(valid_lpo(lpo_date="2025-06-16"), today=TODAY).errors == [
            "LPO date cannot be more than one year in the future"
        ]
        assert validate_lpo(valid_lpo(lpo_date="2025-06-15"), today=TODAY).is_valid is True

    def test_datetime_dates_are_accepted(self):
        assert validate_lpo(valid_lpo(lpo_date=datetime(2024, 6, 1, 9, 30)), today=TODAY).is_valid is True
        assert validate_lpo(valid_lpo(lpo_date=datetime(2019, 5, 1, 9, 30)), today=TODAY).errors == [
            "LPO date cannot be before 2020"
        ]

    @pytest.mark.parametrize("item, message", [
        ({"description": "x", "quantity": 1, "unit_price": 1}, "Item 1: Product selection is required"),
        ({"product_id": "p", "description": "  ", "quantity": 1, "unit_price": 1}, "Item 1: Description is required"),
        ({"product_id": "p", "description": "x", "quantity": 0, "unit_price": 1}, "Item 1: Quantity must be greater than 0"),
        ({"product_id": "p", "description": "x", "quantity": 1000000, "unit_price": 1}, "Item 1: Quantity cannot exceed 999,999"),
        ({"product_id": "p", "description": "x", "quantity": 1, "unit_price": -1}, "Item 1: Unit price cannot be negative"),
        ({"product_id": "p", "description": "x", "quantity": 1, "unit_price": 100000000}, "Item 1: Unit price cannot exceed 99,999,999"),
        ({"product_id": "p", "description": "x", "quantity": "ten", "unit_price": 1}, "Item 1: Quantity is invalid"),
        ({"product_id": "p", "description": "x", "quantity": 1, "unit_price": "1,200"}, "Item 1: Unit price is invalid"),
        ({"product_id": "p", "description": "x", "quantity": "NaN", "unit_price": 1}, "Item 1: Quantity is invalid"),
    ])
    def test_item_rules(self, item, message):
        result = validate_lpo(valid_lpo(items=[item]), today=TODAY)
        assert result.errors == [message]

    def test_edit_of_locked_lpo(self):
        result = validate_lpo_edit(valid_lpo(), "received", today=TODAY)
        assert result.errors == ["Cannot edit a received LPO"]
        assert validate_lpo_edit(valid_lpo(), "draft", today=TODAY).is_valid is True


class TestLPOWorkflow:

    def _payload(self, supplier, product, quantity="20"):
        return {
            "supplier_id": str(supplier.id),
            "contact_person": "Stores desk",
            "items": [{
                "product_id": str(product.id),
                "description": "Nitrile Gloves (box)",
                "quantity": quantity,
                "unit_price": "600",
                "tax_rate": "16"
            }]
        }

    def test_create_lpo(self, client, auth_headers, sample_supplier, sample_product):
        response = client.post("/lpos", json=self._payload(sample_supplier, sample_product), headers=auth_headers)
        assert response.status_code == 201
        body = response.json()
        assert body["lpo_number"] == "LPO-000001"
        assert body["status"] == "draft"
        assert Decimal(body["total_amount"]) == Decimal("13920")

    def test_invalid_lpo_reports_all_errors(self, client, auth_headers, sample_supplier):
        response = client.post("/lpos", json={
            "supplier_id": str(sample_supplier.id),
            "items": [{"description": "", "quantity": "0", "unit_price": "-1"}]
        }, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["detail"] == (
            "Item 1: Product selection is required; Item 1: Description is required; "
            "Item 1: Quantity must be greater than 0; Item 1: Unit price cannot be negative"
        )

    def test_customer_is_not_a_supplier(self, client, auth_headers, sample_customer, sample_product):
        response = client.post("/lpos", json=self._payload(sample_customer, sample_product), headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["detail"] == "Supplier not found"

    def test_receive_increments_stock(self, client, db_session, auth_headers, sample_supplier, sample_product):
        lpo = client.post("/lpos", json=self._payload(sample_supplier, sample_product), headers=auth_headers).json()
        client.post(f"/lpos/{lpo['id']}/status", json={"status": "approved"}, headers=auth_headers)

        response = client.post(f"/lpos/{lpo['id']}/receive", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "received"

        db_session.expire_all()
        assert db_session.get(Product, sample_product.id).stock_quantity == Decimal("120")
        movement = db_session.query(StockMovement).one()
        assert movement.reference_type == "LPO"
        assert movement.cost_per_unit == Decimal("600")

        response = client.post(f"/lpos/{lpo['id']}/receive", headers=auth_headers)
        assert response.status_code == 400

    def test_received_lpo_cannot_be_edited(self, client, auth_headers, sample_supplier, sample_product):
        lpo = client.post("/lpos", json=self._payload(sample_supplier, sample_product), headers=auth_headers).json()
        client.post(f"/lpos/{lpo['id']}/receive", headers=auth_headers)

        response = client.put(f"/lpos/{lpo['id']}", json=self._payload(sample_supplier, sample_product, "5"),
                              headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Cannot edit a received LPO"

    def test_invalid_transition(self, client, auth_headers, sample_supplier, sample_product):
        lpo = client.post("/lpos", json=self._payload(sample_supplier, sample_product), headers=auth_headers).json()
        client.post(f"/lpos/{lpo['id']}/status", json={"status": "cancelled"}, headers=auth_headers)

        response = client.post(f"/lpos/{lpo['id']}/status", json={"status": "sent"}, headers=auth_headers)
        assert response.status_code == 400
