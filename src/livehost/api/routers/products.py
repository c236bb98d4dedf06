from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from ...core.engine import LiveEngine, get_engine
from ...domain.models import Product, ProductCreate
from ...services.product_metadata import scrape_product

router = APIRouter(prefix="/products", tags=["products"])


@router.get("", response_model=List[Product])
def list_products(engine: LiveEngine = Depends(get_engine)) -> List[Product]:
    return engine.store.list_products()


@router.post("", response_model=Product)
def add_product(payload: ProductCreate, engine: LiveEngine = Depends(get_engine)) -> Product:
    product = scrape_product(payload.id, payload.url)
    return engine.store.add_product(product)
