from fastapi import HTTPException
from fastapi.responses import JSONResponse

from classstock.trading_engine.services.errors import (
    FailureReason,
    SeedMoneyLockedError,
    TradeFailure,
)

FAILURE_STATUS = {
    FailureReason.INSUFFICIENT_FUNDS: 400,
    FailureReason.INSUFFICIENT_HOLDINGS: 400,
    FailureReason.INVALID_QUANTITY: 400,
    FailureReason.STOCK_NOT_ALLOWED: 400,
    FailureReason.UNKNOWN_STOCK: 404,
    FailureReason.ACCOUNT_NOT_FOUND: 404,
    FailureReason.OUTSIDE_ACTIVITY_WINDOW: 409,
}


def failure_response(failure: TradeFailure) -> JSONResponse:
    return JSONResponse(
        status_code=FAILURE_STATUS.get(failure.reason, 400),
        content=failure.to_dict(),
    )


def admin_error(exc: Exception) -> HTTPException:
    if isinstance(exc, LookupError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, SeedMoneyLockedError):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))
