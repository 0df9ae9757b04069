"""
Router para clientes y proveedores. Todos los endpoints están scoped por company_id.
"""
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from app.database.database import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.auth.schemas import AuthContext
from app.modules.customers.service import CustomerService
from app.modules.customers.schemas import CustomerCreate, CustomerUpdate, CustomerOut, CustomerList, CustomerBalance

router = APIRouter(
    prefix="/customers",
    tags=["Customers"],
    responses={404: {"description": "Not found"}}
)

WRITE_ROLES = ["admin", "accountant", "user"]
READ_ROLES = ["admin", "accountant", "stock_manager", "user"]


@router.post("", response_model=CustomerOut, status_code=status.HTTP_201_CREATED)
async def create_customer(
    data: CustomerCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(WRITE_ROLES))
):
    """
    Crear un cliente. Si no se envía customer_code se genera uno (CUST0001...).
    """
    return CustomerService(db).create_customer(data, auth_context.company_id)


@router.get("", response_model=CustomerList)
async def get_customers(
    search: Optional[str] = Query(None, description="Search by name, email, code or phone"),
    suppliers_only: bool = Query(False),
    include_inactive: bool = Query(False),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(READ_ROLES))
):
    return CustomerService(db).get_customers(
        auth_context.company_id, search, suppliers_only, include_inactive, limit, offset
    )


@router.get("/{customer_id}", response_model=CustomerOut)
async def get_customer(
    customer_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(READ_ROLES))
):
    return CustomerService(db).get_customer(customer_id, auth_context.company_id)


@router.patch("/{customer_id}", response_model=CustomerOut)
async def update_customer(
    customer_id: UUID,
    data: CustomerUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(WRITE_ROLES))
):
    return CustomerService(db).update_customer(customer_id, data, auth_context.company_id)


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_customer(
    customer_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(["admin"]))
):
    CustomerService(db).delete_customer(customer_id, auth_context.company_id)


@router.get("/{customer_id}/balance", response_model=CustomerBalance)
async def get_customer_balance(
    customer_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(READ_ROLES))
):
    """Resumen de facturado, pagado y saldo pendiente del cliente."""
    return CustomerService(db).get_customer_balance(customer_id, auth_context.company_id)
