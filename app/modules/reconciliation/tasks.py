"""
Tareas periódicas de conciliación de saldos.
"""
import logging
from app.core.celery import celery_app
from app.database.database import SessionLocal
from app.modules.company.models import Company
from app.modules.reconciliation.service import reconcile_all_invoice_balances

logger = logging.getLogger(__name__)


@celery_app.task(bind=True)
def reconcile_all_companies_task(self, fix: bool = True):
    """
    Conciliar las facturas de todas las empresas activas.
    Programada a diario en el beat schedule.
    """
    db = SessionLocal()
    summaries = {}
    try:
        company_ids = [row.id for row in db.query(Company.id).filter(Company.is_active == True).all()]
        for company_id in company_ids:
            summary = reconcile_all_invoice_balances(db, company_id, fix)
            summaries[str(company_id)] = {
                "total": summary.total,
                "mismatched": summary.mismatched,
                "fixed": summary.fixed,
                "errors": len(summary.errors),
            }
        logger.info(f"Nightly reconciliation finished for {len(company_ids)} companies")
        return {"status": "success", "companies": summaries}
    except Exception as exc:
        logger.error(f"Nightly reconciliation failed: {str(exc)}")
        db.rollback()
        raise
    finally:
        db.close()
