"""
Catalog Module - Routes
========================
Browse/search listings, product detail, and listing creation.
"""

from typing import Optional

from fastapi import APIRouter, Request, Depends, Form, File, UploadFile, Query
from sqlalchemy.orm import Session

from config.database import get_db
from common.security import csrf_check
from common.helpers import safe_id
from common.exceptions import NotFoundError
from modules.auth.deps import require_login
from modules.catalog.service import catalog_service, product_to_dict

router = APIRouter(tags=["catalog"])


@router.get("/products")
async def list_products(
    id: Optional[int] = Query(None),
    search: str = Query(""),
    sort: str = Query("newest"),
    db: Session = Depends(get_db),
):
    if id is not None:
        product_id = safe_id(id)
        if not product_id:
            raise NotFoundError("Product not found")
        return product_to_dict(catalog_service.get_product(db, product_id))

    products = catalog_service.search_products(db, search=search, sort=sort)
    return [product_to_dict(p) for p in products]


@router.post("/products")
async def create_product(
    request: Request,
    title: str = Form(""),
    description: str = Form(""),
    price: str = Form(""),
    quantity: str = Form("1"),
    is_unlimited: str = Form(""),
    item_condition: str = Form(""),
    usage_duration: str = Form(""),
    usage_days: str = Form("0"),
    image: Optional[UploadFile] = File(None),
    csrf_token: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    csrf_check(request, csrf_token)
    product = catalog_service.create_product(
        db,
        seller_id=me.id,
        title=title,
        price=price,
        description=description,
        quantity=quantity,
        is_unlimited=is_unlimited,
        item_condition=item_condition,
        usage_duration=usage_duration,
        usage_days=usage_days,
        image=image,
    )
    db.commit()
    return {"success": True, "message": "Product listed", "product_id": product.id}
