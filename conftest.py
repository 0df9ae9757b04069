"""
Fixtures compartidos por los tests de los módulos.

La base de datos es SQLite en memoria; las tablas se crean y eliminan en
cada test. El envío de correos por Celery se reemplaza por un registro de
llamadas.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "false"

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from app.database.database import Base, SessionLocal, sync_engine, get_db
from app.main import app
from app.modules.auth.models import User, Profile, ProfileRole, ProfileStatus
from app.modules.auth.utils import create_access_token, hash_password
from app.modules.company.models import Company
from app.modules.customers.models import Customer
from app.modules.products.models import Product
from app.modules.email import tasks as email_tasks

TEST_PASSWORD = "Medplus2024"


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=sync_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=sync_engine)


@pytest.fixture
def client(db_session):
    app.dependency_overrides[get_db] = lambda: db_session
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    """Captura las tareas de correo encoladas en lugar de enviarlas."""
    calls = []

    def fake_delay(name):
        def delay(*args, **kwargs):
            calls.append((name, args, kwargs))
        return delay

    monkeypatch.setattr(email_tasks.send_password_reset_email_task, "delay", fake_delay("password_reset"))
    monkeypatch.setattr(email_tasks.send_document_email_task, "delay", fake_delay("document"))
    return calls


@pytest.fixture
def sample_company(db_session):
    company = Company(name="MedPlus Test Clinic", email="billing@medplus.app", currency="KES")
    db_session.add(company)
    db_session.commit()
    db_session.refresh(company)
    return company


def make_user(db_session, company, email, role=ProfileRole.ADMIN, status=ProfileStatus.ACTIVE, full_name=None):
    user = User(email=email, password=hash_password(TEST_PASSWORD), is_active=True)
    db_session.add(user)
    db_session.flush()
    profile = Profile(
        email=email,
        full_name=full_name or email.split("@")[0].title(),
        role=role,
        status=status,
        company_id=company.id if company else None,
        user_id=user.id
    )
    db_session.add(profile)
    db_session.commit()
    db_session.refresh(user)
    return user


def auth_headers_for(user, company):
    token = create_access_token({"sub": str(user.id)})
    headers = {"Authorization": f"Bearer {token}"}
    if company:
        headers["X-Company-ID"] = str(company.id)
    return headers


@pytest.fixture
def sample_user(db_session, sample_company):
    return make_user(db_session, sample_company, "owner@medplus.app", full_name="Clinic Owner")


@pytest.fixture
def auth_headers(sample_user, sample_company):
    return auth_headers_for(sample_user, sample_company)


@pytest.fixture
def sample_customer(db_session, sample_company):
    customer = Customer(
        company_id=sample_company.id,
        customer_code="CUST0001",
        name="Nairobi General Hospital",
        email="accounts@ngh.medplus.app",
        payment_terms_days=30,
        credit_limit=Decimal("100000"),
        is_active=True
    )
    db_session.add(customer)
    db_session.commit()
    db_session.refresh(customer)
    return customer


@pytest.fixture
def sample_supplier(db_session, sample_company):
    supplier = Customer(
        company_id=sample_company.id,
        customer_code="SUP0001",
        name="Lab Supplies Ltd",
        email="sales@labsupplies.medplus.app",
        is_supplier=True,
        is_active=True
    )
    db_session.add(supplier)
    db_session.commit()
    db_session.refresh(supplier)
    return supplier


@pytest.fixture
def sample_product(db_session, sample_company):
    product = Product(
        company_id=sample_company.id,
        product_code="GLV-001",
        name="Nitrile Gloves (box)",
        unit_price=Decimal("850.00"),
        cost_price=Decimal("600.00"),
        stock_quantity=Decimal("100"),
        minimum_stock_level=Decimal("10"),
        is_active=True
    )
    db_session.add(product)
    db_session.commit()
    db_session.refresh(product)
    return product
