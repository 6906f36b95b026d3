from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP

# Korea Standard Time has no daylight saving; a fixed offset is exact.
KST = timezone(timedelta(hours=9), name="KST")


def to_kst(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(KST)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_decimal(x) -> Decimal:
    if isinstance(x, Decimal):
        return x
    return Decimal(str(x))


def truncate_money(x) -> Decimal:
    """Drop the fractional part, rounding toward zero."""
    return to_decimal(x).quantize(Decimal("1"), rounding=ROUND_DOWN)


def round_to_hundred(x) -> Decimal:
    return (to_decimal(x) / 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP) * 100

