"""
Servicios de negocio para clientes y proveedores.
"""
import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import or_, func
from sqlalchemy.orm import Session

from app.common.totals import money
from app.modules.customers.models import Customer
from app.modules.customers.schemas import CustomerCreate, CustomerUpdate, CustomerList, CustomerOut, CustomerBalance

logger = logging.getLogger(__name__)


def get_active_customer(db: Session, company_id: UUID, customer_id: UUID, supplier: bool = False) -> Customer:
    """Cliente (o proveedor) activo de la empresa; 404 si no existe."""
    query = db.query(Customer).filter(
        Customer.id == customer_id,
        Customer.company_id == company_id,
        Customer.deleted_at.is_(None)
    )
    if supplier:
        query = query.filter(Customer.is_supplier == True)
    customer = query.first()

    if not customer or not customer.is_active:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Supplier not found" if supplier else "Customer not found"
        )
    return customer


class CustomerService:
    """Servicio principal para gestión de clientes"""

    def __init__(self, db: Session):
        self.db = db

    def _next_customer_code(self, company_id: UUID) -> str:
        count = self.db.query(func.count(Customer.id)).filter(Customer.company_id == company_id).scalar() or 0
        return f"CUST{count + 1:04d}"

    def create_customer(self, data: CustomerCreate, company_id: UUID) -> Customer:
        code = data.customer_code or self._next_customer_code(company_id)

        existing = self.db.query(Customer).filter(
            Customer.company_id == company_id,
            Customer.customer_code == code
        ).first()
        if existing:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"A customer with code {code} already exists"
            )

        try:
            customer = Customer(
                company_id=company_id,
                customer_code=code,
                **data.model_dump(exclude={"customer_code"})
            )
            self.db.add(customer)
            self.db.commit()
            self.db.refresh(customer)
            return customer
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating customer {data.name}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error creating customer"
            )

    def get_customers(
        self,
        company_id: UUID,
        search: Optional[str] = None,
        suppliers_only: bool = False,
        include_inactive: bool = False,
        limit: int = 100,
        offset: int = 0
    ) -> CustomerList:
        query = self.db.query(Customer).filter(
            Customer.company_id == company_id,
            Customer.deleted_at.is_(None)
        )
        if not include_inactive:
            query = query.filter(Customer.is_active == True)
        if suppliers_only:
            query = query.filter(Customer.is_supplier == True)
        if search:
            term = f"%{search}%"
            query = query.filter(or_(
                Customer.name.ilike(term),
                Customer.email.ilike(term),
                Customer.customer_code.ilike(term),
                Customer.phone.ilike(term)
            ))

        total = query.count()
        customers = query.order_by(Customer.name).offset(offset).limit(limit).all()
        return CustomerList(
            customers=[CustomerOut.model_validate(c) for c in customers],
            total=total,
            limit=limit,
            offset=offset
        )

    def get_customer(self, customer_id: UUID, company_id: UUID) -> Customer:
        customer = self.db.query(Customer).filter(
            Customer.id == customer_id,
            Customer.company_id == company_id,
            Customer.deleted_at.is_(None)
        ).first()
        if not customer:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
        return customer

    def update_customer(self, customer_id: UUID, data: CustomerUpdate, company_id: UUID) -> Customer:
        customer = self.get_customer(customer_id, company_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(customer, field, value)
        self.db.commit()
        self.db.refresh(customer)
        return customer

    def delete_customer(self, customer_id: UUID, company_id: UUID) -> None:
        """Soft delete; los documentos existentes conservan la referencia."""
        customer = self.get_customer(customer_id, company_id)
        customer.soft_delete()
        self.db.commit()
        logger.info(f"Customer {customer.customer_code} deleted")

    def get_customer_balance(self, customer_id: UUID, company_id: UUID) -> CustomerBalance:
        """Saldo del cliente según los saldos almacenados de sus facturas vigentes."""
        from app.modules.invoices.models import Invoice, InvoiceStatus

        customer = self.get_customer(customer_id, company_id)
        invoiced, paid, outstanding, open_count = self.db.query(
            func.coalesce(func.sum(Invoice.total_amount), 0),
            func.coalesce(func.sum(Invoice.paid_amount), 0),
            func.coalesce(func.sum(Invoice.balance_due), 0),
            func.count(Invoice.id)
        ).filter(
            Invoice.customer_id == customer.id,
            Invoice.company_id == company_id,
            Invoice.status.notin_([InvoiceStatus.DRAFT, InvoiceStatus.CANCELLED])
        ).one()

        outstanding = money(outstanding)
        credit_limit = money(customer.credit_limit)
        return CustomerBalance(
            customer_id=customer.id,
            total_invoiced=money(invoiced),
            total_paid=money(paid),
            outstanding_balance=outstanding,
            open_invoices=open_count,
            credit_limit=credit_limit,
            available_credit=max(credit_limit - outstanding, Decimal("0"))
        )
