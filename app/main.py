from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
import logging

# Import database components
from app.database.database import sync_engine, Base

# Import middleware
from app.common.middleware import CompanyContextMiddleware, SecurityHeadersMiddleware
from app.common.errors import BackendError, user_friendly_message

# Import routers
from app.modules.auth.router import auth_router
from app.modules.auth.admin_router import admin_router
from app.modules.company.router import company_router
from app.modules.customers.router import router as customers_router
from app.modules.products.router import product_router
from app.modules.invoices.router import router as invoices_router
from app.modules.payments.router import router as payments_router
from app.modules.credit_notes.router import router as credit_notes_router
from app.modules.quotations.router import router as quotations_router
from app.modules.proformas.router import router as proformas_router
from app.modules.lpos.router import router as lpos_router
from app.modules.reconciliation.router import router as reconciliation_router

# Import models for table creation
import app.modules.auth.models
import app.modules.company.models
import app.modules.audit.models
import app.modules.customers.models
import app.modules.products.models
import app.modules.invoices.models
import app.modules.payments.models
import app.modules.credit_notes.models
import app.modules.quotations.models
import app.modules.proformas.models
import app.modules.lpos.models

from app.core.config import settings

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.ENVIRONMENT == "production" else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# FastAPI app
app = FastAPI(
    title="MedPlus Africa API",
    description="Multi-company sales, billing and inventory API built with FastAPI and PostgreSQL",
    version="1.0.0",
    contact={
        "name": "MedPlus Africa Support",
        "email": "support@medplus.app"
    },
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None
)

# Add middleware (order matters!)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(CompanyContextMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL, "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BackendError)
async def backend_error_handler(request: Request, exc: BackendError):
    logger.error(f"Backend error on {request.url.path} ({exc.kind.value}): {exc.message}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": user_friendly_message(exc), "kind": exc.kind.value}
    )


# Include routers
app.include_router(auth_router, prefix="/auth", tags=["Auth"])
app.include_router(admin_router, prefix="/admin", tags=["Admin"])
app.include_router(company_router, prefix="/companies", tags=["Companies"])
app.include_router(customers_router)
app.include_router(product_router)
app.include_router(invoices_router)
app.include_router(payments_router)
app.include_router(credit_notes_router)
app.include_router(quotations_router)
app.include_router(proformas_router)
app.include_router(lpos_router)
app.include_router(reconciliation_router)

# Create database tables (only for development and tests - use migrations in production)
if settings.ENVIRONMENT in ("development", "test"):
    Base.metadata.create_all(bind=sync_engine)


@app.get("/")
async def read_root():
    return {
        "message": "MedPlus Africa API is running",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy", "environment": settings.ENVIRONMENT}


@app.on_event("startup")
async def startup_event():
    logger.info("MedPlus Africa API starting up...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug mode: {settings.DEBUG}")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("MedPlus Africa API shutting down...")
