from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from classstock.api.database.database import get_db
from classstock.api.dependencies import get_classroom_service
from classstock.api.routes.errors import admin_error
from classstock.models.classroom_schemas import (
    AllowedStocksUpdateRequest,
    BonusRequest,
    ClassCreate,
    ClassResponse,
    CommissionUpdateRequest,
    EnrollStudentsRequest,
    EnrollStudentsResponse,
    MessageResponse,
    PortfolioResponse,
    RankingEntry,
    RankingResponse,
    SeedMoneyUpdateRequest,
    StudentResponse,
    TransactionResponse,
)
from classstock.trading_engine.services.classroom import ClassroomService
from classstock.trading_engine.services.ledger import CommissionTerms
from classstock.trading_engine.services.valuation import SortKey

router = APIRouter(prefix="/api/classes", tags=["classes"])


@router.post("/", response_model=ClassResponse)
def create_class(
    payload: ClassCreate,
    db: Session = Depends(get_db),
    service: ClassroomService = Depends(get_classroom_service),
):
    try:
        config = service.create_class(
            session=db,
            name=payload.name,
            activity_start=payload.activity_start,
            activity_end=payload.activity_end,
            seed_money=payload.seed_money,
            allowed_stock_codes=payload.allowed_stock_codes,
            commission=CommissionTerms(
                enabled=payload.commission_enabled,
                rate_percent=payload.commission_rate,
            ),
        )
    except (LookupError, ValueError) as e:
        raise admin_error(e)
    return ClassResponse.from_config(config, student_count=0)


@router.get("/{class_id}", response_model=ClassResponse)
def get_class(
    class_id: str,
    db: Session = Depends(get_db),
    service: ClassroomService = Depends(get_classroom_service),
):
    try:
        config = service.get_class(db, class_id)
    except LookupError as e:
        raise admin_error(e)
    return ClassResponse.from_config(config, student_count=service.student_count(db, class_id))


@router.delete("/{class_id}", response_model=MessageResponse)
def delete_class(
    class_id: str,
    db: Session = Depends(get_db),
    service: ClassroomService = Depends(get_classroom_service),
):
    try:
        removed = service.delete_class(db, class_id)
    except LookupError as e:
        raise admin_error(e)
    return {"message": f"Class {class_id} deleted with {removed} students"}


@router.patch("/{class_id}/stocks", response_model=ClassResponse)
def update_allowed_stocks(
    class_id: str,
    payload: AllowedStocksUpdateRequest,
    db: Session = Depends(get_db),
    service: ClassroomService = Depends(get_classroom_service),
):
    try:
        config = service.update_allowed_stocks(db, class_id, payload.stock_codes)
    except (LookupError, ValueError) as e:
        raise admin_error(e)
    return ClassResponse.from_config(config)


@router.patch("/{class_id}/commission", response_model=ClassResponse)
def update_commission(
    class_id: str,
    payload: CommissionUpdateRequest,
    db: Session = Depends(get_db),
    service: ClassroomService = Depends(get_classroom_service),
):
    try:
        config = service.update_commission(
            db,
            class_id,
            enabled=payload.enabled,
            rate_percent=payload.rate_percent,
        )
    except (LookupError, ValueError) as e:
        raise admin_error(e)
    return ClassResponse.from_config(config)


@router.patch("/{class_id}/seed-money", response_model=ClassResponse)
def update_seed_money(
    class_id: str,
    payload: SeedMoneyUpdateRequest,
    db: Session = Depends(get_db),
    service: ClassroomService = Depends(get_classroom_service),
):
    try:
        config = service.update_seed_money(db, class_id, payload.seed_money)
    except (LookupError, ValueError) as e:
        raise admin_error(e)
    return ClassResponse.from_config(config, student_count=0)


@router.post("/{class_id}/students", response_model=EnrollStudentsResponse)
def enroll_students(
    class_id: str,
    payload: EnrollStudentsRequest,
    db: Session = Depends(get_db),
    service: ClassroomService = Depends(get_classroom_service),
):
    try:
        created, duplicates = service.enroll_students(db, class_id, payload.nicknames)
    except LookupError as e:
        raise admin_error(e)
    return EnrollStudentsResponse(
        created=[StudentResponse.model_validate(account) for account in created],
        duplicate_count=duplicates,
    )


@router.delete("/{class_id}/students/{student_id}", response_model=MessageResponse)
def remove_student(
    class_id: str,
    student_id: str,
    db: Session = Depends(get_db),
    service: ClassroomService = Depends(get_classroom_service),
):
    try:
        account = service.get_account(db, student_id)
        if account.class_id != class_id:
            raise HTTPException(status_code=404, detail="Student not found in this class")
        service.remove_student(db, student_id)
    except LookupError as e:
        raise admin_error(e)
    return {"message": f"Student {student_id} removed"}


@router.post("/{class_id}/bonus", response_model=list[TransactionResponse])
def award_bonus(
    class_id: str,
    payload: BonusRequest,
    db: Session = Depends(get_db),
    service: ClassroomService = Depends(get_classroom_service),
):
    try:
        service.get_class(db, class_id)
        student_ids = payload.student_ids
        if student_ids is None:
            student_ids = [account.student_id for account in service.list_students(db, class_id)]
        transactions = service.award_bonus(
            db,
            student_ids=student_ids,
            amount=payload.amount,
            reason=payload.reason,
            class_id=class_id,
        )
    except (LookupError, ValueError) as e:
        raise admin_error(e)
    return [TransactionResponse.model_validate(transaction) for transaction in transactions]


@router.get("/{class_id}/snapshot", response_model=list[PortfolioResponse])
def get_class_snapshot(
    class_id: str,
    db: Session = Depends(get_db),
    service: ClassroomService = Depends(get_classroom_service),
):
    try:
        views = service.class_snapshot(db, class_id)
    except LookupError as e:
        raise admin_error(e)
    return [PortfolioResponse.from_view(view) for view in views]


@router.get("/{class_id}/ranking", response_model=RankingResponse)
def get_class_ranking(
    class_id: str,
    sort_by: SortKey = SortKey.TOTAL_ASSETS,
    db: Session = Depends(get_db),
    service: ClassroomService = Depends(get_classroom_service),
):
    try:
        views = service.class_ranking(db, class_id, sort_by)
    except LookupError as e:
        raise admin_error(e)
    return RankingResponse(
        class_id=class_id,
        sort_by=sort_by,
        entries=[
            RankingEntry(
                rank=position,
                student_id=view.account.student_id,
                nickname=view.account.nickname,
                total_assets=view.total_assets,
                total_profit=view.total_profit,
                total_profit_rate=view.total_profit_rate,
                investment_profit=view.investment_profit,
                investment_profit_rate=view.investment_profit_rate,
            )
            for position, view in enumerate(views, start=1)
        ],
    )
