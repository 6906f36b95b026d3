from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from classstock.api.database.database import get_db
from classstock.api.dependencies import get_classroom_service
from classstock.api.routes.errors import admin_error, failure_response
from classstock.models.classroom_schemas import (
    OrderRequest,
    PortfolioResponse,
    TradeFailureResponse,
    TransactionResponse,
)
from classstock.trading_engine.services.actions import TradeKind
from classstock.trading_engine.services.classroom import ClassroomService
from classstock.trading_engine.services.errors import TradeFailure

router = APIRouter(prefix="/api/students", tags=["students"])


@router.post(
    "/{student_id}/orders",
    response_model=TransactionResponse,
    responses={
        400: {"model": TradeFailureResponse},
        404: {"model": TradeFailureResponse},
        409: {"model": TradeFailureResponse},
    },
)
def place_order(
    student_id: str,
    payload: OrderRequest,
    db: Session = Depends(get_db),
    service: ClassroomService = Depends(get_classroom_service),
):
    result = service.place_order(
        db,
        student_id=student_id,
        stock_code=payload.stock_code,
        quantity=payload.quantity,
        kind=TradeKind(payload.kind),
    )
    if isinstance(result, TradeFailure):
        return failure_response(result)
    return TransactionResponse.model_validate(result)


@router.get("/{student_id}/portfolio", response_model=PortfolioResponse)
def get_portfolio(
    student_id: str,
    db: Session = Depends(get_db),
    service: ClassroomService = Depends(get_classroom_service),
):
    try:
        view = service.student_snapshot(db, student_id)
    except LookupError as e:
        raise admin_error(e)
    return PortfolioResponse.from_view(view)


@router.get("/{student_id}/transactions", response_model=list[TransactionResponse])
def get_transactions(
    student_id: str,
    db: Session = Depends(get_db),
    service: ClassroomService = Depends(get_classroom_service),
):
    try:
        service.get_account(db, student_id)
    except LookupError as e:
        raise admin_error(e)
    return [
        TransactionResponse.model_validate(transaction)
        for transaction in service.transaction_history(db, student_id)
    ]
