from __future__ import annotations

from celery import shared_task

from classstock.api.database.database import SessionLocal
from classstock.trading_engine.services.portfolio import PortfolioService


@shared_task(name="trading_engine.reconcile_accounts")
def run_reconciliation(
    student_id: str | None = None,
    limit: int = 500,
    repair: bool = False,
) -> dict:
    return reconcile_accounts(student_id=student_id, limit=limit, repair=repair)


def reconcile_accounts(
    student_id: str | None = None,
    limit: int = 500,
    repair: bool = False,
) -> dict:
    service = PortfolioService()
    session = SessionLocal()
    try:
        if student_id is not None:
            result = service.reconcile_account(
                session=session,
                student_id=student_id,
                repair=repair,
            )
            session.commit()
            return {
                "student_id": student_id,
                "reconciled": 1,
                "drifted": int(result.cash_drift != 0 or result.holding_drift_count > 0),
                "results": [result.to_dict()],
            }

        results = service.reconcile_all(session=session, limit=limit, repair=repair)
        session.commit()
        return {
            "student_id": None,
            "reconciled": len(results),
            "drifted": sum(
                1 for result in results
                if result.cash_drift != 0 or result.holding_drift_count > 0
            ),
            "results": [result.to_dict() for result in results],
        }
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
