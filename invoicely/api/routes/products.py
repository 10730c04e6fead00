"""Products: ownership-scoped CRUD."""
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from invoicely.api.deps import get_current_user_id, get_db
from invoicely.core.audit import AuditLog
from invoicely.schemas.product import ProductCreate, ProductResponse, ProductUpdate
from invoicely.services import product_service

router = APIRouter()


@router.get("", response_model=List[ProductResponse])
def list_products(db: Session = Depends(get_db), user_id: int = Depends(get_current_user_id)):
    return [ProductResponse.model_validate(p) for p in product_service.list_products(db, user_id)]


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
def create_product(data: ProductCreate, db: Session = Depends(get_db), user_id: int = Depends(get_current_user_id)):
    product = product_service.create_product(db, user_id, data)
    AuditLog.log_action("create", "product", product.id, user_id)
    return ProductResponse.model_validate(product)


@router.get("/{product_id}", response_model=ProductResponse)
def get_product(product_id: int, db: Session = Depends(get_db), user_id: int = Depends(get_current_user_id)):
    return ProductResponse.model_validate(product_service.get_product(db, user_id, product_id))


@router.put("/{product_id}", response_model=ProductResponse)
def update_product(
    product_id: int,
    data: ProductUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    product = product_service.update_product(db, user_id, product_id, data)
    AuditLog.log_action("update", "product", product.id, user_id)
    return ProductResponse.model_validate(product)


@router.delete("/{product_id}")
def delete_product(product_id: int, db: Session = Depends(get_db), user_id: int = Depends(get_current_user_id)):
    product_service.delete_product(db, user_id, product_id)
    AuditLog.log_action("delete", "product", product_id, user_id)
    return {"message": "Product deleted successfully", "id": product_id}
