from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from app.api.deps import get_inventory
from app.exceptions import InventoryValidationError, PersistenceError, ProductNotFound
from app.schemas.product_schema import ProductCreate, ProductUpdate
from app.services.inventory_service import InventoryService

router = APIRouter(tags=["products"])


def _out(p):
    return p.model_dump(mode="json", by_alias=True)


@router.get("", summary="List products")
def list_products(
    q: Optional[str] = Query(None, description="search name or sku"),
    category: Optional[str] = Query(None),
    stock_level: Optional[str] = Query(None, description="out, low or normal"),
    svc: InventoryService = Depends(get_inventory),
):
    try:
        items = svc.list_products(q=q, category=category, stock_level=stock_level)
    except InventoryValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return [_out(p) for p in items]


@router.get("/{product_id}", summary="Get product by id")
def get_product(product_id: str, svc: InventoryService = Depends(get_inventory)):
    try:
        return _out(svc.get_product(product_id))
    except ProductNotFound:
        raise HTTPException(status_code=404, detail="Product not found")


@router.post("", status_code=201, summary="Create product")
def create_product(payload: ProductCreate, svc: InventoryService = Depends(get_inventory)):
    try:
        return _out(svc.create_product(payload))
    except PersistenceError:
        raise HTTPException(status_code=500, detail="Failed to create product")


@router.patch("/{product_id}", summary="Update product fields")
def update_product(
    product_id: str, payload: ProductUpdate, svc: InventoryService = Depends(get_inventory)
):
    try:
        return _out(svc.update_product(product_id, payload))
    except ProductNotFound:
        raise HTTPException(status_code=404, detail="Product not found")
    except PersistenceError:
        raise HTTPException(status_code=500, detail="Failed to update product")


@router.delete("/{product_id}", status_code=204, summary="Delete product")
def delete_product(product_id: str, svc: InventoryService = Depends(get_inventory)):
    try:
        svc.delete_product(product_id)
    except ProductNotFound:
        raise HTTPException(status_code=404, detail="Product not found")
    except PersistenceError:
        raise HTTPException(status_code=500, detail="Failed to delete product")
    return Response(status_code=204)
