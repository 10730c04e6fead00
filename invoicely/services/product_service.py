"""Product catalogue, always scoped to the owning user."""
from decimal import Decimal
from typing import List

from sqlalchemy.orm import Session

from invoicely.core.exceptions import NotFoundError, ValidationError
from invoicely.models.product import Product
from invoicely.schemas.product import ProductCreate, ProductUpdate


def list_products(db: Session, user_id: int) -> List[Product]:
    return (
        db.query(Product)
        .filter(Product.user_id == user_id)
        .order_by(Product.created_at.desc(), Product.id.desc())
        .all()
    )


def get_product(db: Session, user_id: int, product_id: int) -> Product:
    product = db.query(Product).filter(Product.id == product_id, Product.user_id == user_id).first()
    if not product:
        raise NotFoundError("Product")
    return product


def create_product(db: Session, user_id: int, data: ProductCreate) -> Product:
    if not data.name.strip():
        raise ValidationError("Product name is required")
    if data.price < 0:
        raise ValidationError("Price cannot be negative")
    product = Product(
        user_id=user_id,
        name=data.name.strip(),
        description=data.description,
        price=Decimal(data.price),
        taxable=data.taxable,
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def update_product(db: Session, user_id: int, product_id: int, data: ProductUpdate) -> Product:
    product = get_product(db, user_id, product_id)

    if data.name is not None and not data.name.strip():
        raise ValidationError("Product name is required")
    if data.price is not None and data.price < 0:
        raise ValidationError("Price cannot be negative")

    if data.name is not None:
        product.name = data.name.strip()
    if data.description is not None:
        product.description = data.description
    if data.price is not None:
        product.price = Decimal(data.price)
    if data.taxable is not None:
        product.taxable = data.taxable

    db.commit()
    db.refresh(product)
    return product


def delete_product(db: Session, user_id: int, product_id: int) -> None:
    product = get_product(db, user_id, product_id)
    db.delete(product)
    db.commit()
