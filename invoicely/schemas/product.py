from typing import Optional
from datetime import datetime
from decimal import Decimal

from pydantic import Field

from invoicely.schemas.base import APIModel, Money


class ProductCreate(APIModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=1024)
    price: Decimal = Field(ge=0, decimal_places=2)
    taxable: bool = True


class ProductUpdate(APIModel):
    name: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = Field(default=None, max_length=1024)
    price: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)
    taxable: Optional[bool] = None


class ProductResponse(APIModel):
    id: int
    name: str
    description: Optional[str] = None
    price: Money
    taxable: bool
    created_at: Optional[datetime] = None
