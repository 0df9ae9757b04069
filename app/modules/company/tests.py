"""
Tests de empresa y secuencias de numeración.
"""
from app.modules.company.models import DocumentType
from app.modules.company.service import generate_document_number, get_next_document_number
from conftest import make_user, auth_headers_for


class TestDocumentSequences:

    def test_numbers_are_sequential_per_type(self, db_session, sample_company):
        assert generate_document_number(db_session, sample_company.id, DocumentType.INVOICE) == "INV-000001"
        assert generate_document_number(db_session, sample_company.id, DocumentType.INVOICE) == "INV-000002"
        assert generate_document_number(db_session, sample_company.id, DocumentType.LPO) == "LPO-000001"

    def test_peek_does_not_consume(self, db_session, sample_company):
        first = get_next_document_number(db_session, sample_company.id, DocumentType.QUOTATION)
        second = get_next_document_number(db_session, sample_company.id, DocumentType.QUOTATION)
        assert first.next_number == second.next_number == "QT-000001"
        assert generate_document_number(db_session, sample_company.id, DocumentType.QUOTATION) == "QT-000001"


class TestCompanyAPI:

    def test_my_company(self, client, auth_headers, sample_company):
        response = client.get("/companies/me", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["name"] == "MedPlus Test Clinic"

    def test_next_number_endpoint(self, client, auth_headers):
        response = client.get("/companies/me/next-number/credit_note", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["next_number"] == "CN-000001"

    def test_create_company_links_creator(self, client, db_session):
        user = make_user(db_session, None, "founder@medplus.app")
        headers = auth_headers_for(user, None)

        response = client.post("/companies", json={"name": "Mombasa Dental"}, headers=headers)
        assert response.status_code == 201
        assert response.json()["currency"] == "KES"

        response = client.get("/companies/me", headers=headers)
        assert response.json()["name"] == "Mombasa Dental"

    def test_duplicate_company_name(self, client, auth_headers, sample_company):
        response = client.post("/companies", json={"name": sample_company.name}, headers=auth_headers)
        assert response.status_code == 400
