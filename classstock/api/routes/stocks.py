from fastapi import APIRouter, Depends, HTTPException
from typing import List

from classstock.api.dependencies import get_catalog
from classstock.models.classroom_schemas import StockResponse
from classstock.trading_engine.services.catalog import PriceCatalog

router = APIRouter(prefix="/api/stocks", tags=["stocks"])


@router.get("/", response_model=List[StockResponse])
def get_stocks(catalog: PriceCatalog = Depends(get_catalog)):
    return sorted(catalog.snapshot(), key=lambda stock: stock.code)


@router.get("/{code}", response_model=StockResponse)
def get_stock(code: str, catalog: PriceCatalog = Depends(get_catalog)):
    """
    Returns the current price of a single stock given its code

    Args:
        code (str): the six digit KRX stock code
    """
    stock = catalog.get(code)
    if not stock:
        raise HTTPException(status_code=404, detail="Stock not found")
    return stock
