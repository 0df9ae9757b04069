"""
Tests de productos y movimientos de inventario.
"""
from decimal import Decimal
from uuid import uuid4

import pytest
from fastapi import HTTPException

from app.modules.products.models import MovementType, ReferenceType, StockMovement
from app.modules.products.service import apply_stock_movement


class TestProducts:

    def test_create_product(self, client, auth_headers):
        response = client.post("/products", json={
            "product_code": "SYR-005",
            "name": "Syringe 5ml",
            "unit_price": "25",
            "cost_price": "12",
            "stock_quantity": "500",
            "minimum_stock_level": "50"
        }, headers=auth_headers)
        assert response.status_code == 201
        body = response.json()
        assert body["product_code"] == "SYR-005"
        assert body["is_low_stock"] is False

    def test_duplicate_code_conflicts(self, client, auth_headers, sample_product):
        response = client.post("/products", json={"product_code": "GLV-001", "name": "Copy"}, headers=auth_headers)
        assert response.status_code == 409

    def test_low_stock_filter(self, client, auth_headers, sample_product):
        client.post("/products", json={
            "product_code": "MSK-001", "name": "Face masks", "stock_quantity": "5", "minimum_stock_level": "20"
        }, headers=auth_headers)

        response = client.get("/products?low_stock_only=true", headers=auth_headers)
        assert response.status_code == 200
        assert [p["product_code"] for p in response.json()["products"]] == ["MSK-001"]

    def test_unknown_product(self, client, auth_headers):
        response = client.get(f"/products/{uuid4()}", headers=auth_headers)
        assert response.status_code == 404


class TestStockMovements:

    def test_adjust_stock_records_adjustment(self, client, db_session, auth_headers, sample_product):
        response = client.post(
            f"/products/{sample_product.id}/adjust-stock",
            json={"new_quantity": "80", "notes": "Annual count"},
            headers=auth_headers
        )
        assert response.status_code == 200
        assert Decimal(response.json()["stock_quantity"]) == Decimal("80")

        movement = db_session.query(StockMovement).filter_by(product_id=sample_product.id).one()
        assert movement.movement_type == "ADJUSTMENT"
        assert movement.quantity == Decimal("-20")

        response = client.get(f"/products/{sample_product.id}/movements", headers=auth_headers)
        assert response.status_code == 200
        assert len(response.json()) == 1

    def test_adjust_to_same_quantity_is_noop(self, client, db_session, auth_headers, sample_product):
        response = client.post(
            f"/products/{sample_product.id}/adjust-stock",
            json={"new_quantity": "100"},
            headers=auth_headers
        )
        assert response.status_code == 200
        assert db_session.query(StockMovement).count() == 0

    def test_out_movement_can_go_negative(self, db_session, sample_company, sample_product):
        apply_stock_movement(
            db_session, sample_company.id, sample_product.id,
            MovementType.OUT, Decimal("150"), ReferenceType.INVOICE
        )
        db_session.commit()
        db_session.refresh(sample_product)
        assert sample_product.stock_quantity == Decimal("-50")

    def test_unknown_product_is_rejected(self, db_session, sample_company):
        with pytest.raises(HTTPException) as exc:
            apply_stock_movement(
                db_session, sample_company.id, uuid4(),
                MovementType.IN, Decimal("1"), ReferenceType.LPO
            )
        assert exc.value.status_code == 400
