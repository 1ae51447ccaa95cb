"""
Pydantic schemas for product request/response validation
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime


class ProductBase(BaseModel):
    """Base Product schema with common fields"""
    name: str = Field(..., min_length=1, max_length=255, description="Product name")
    description: Optional[str] = Field(None, description="Product description")
    price: float = Field(..., gt=0, description="Product price (must be positive)")
    compare_price: Optional[float] = Field(None, ge=0, description="Compare-at price")
    stock: int = Field(..., ge=0, description="Stock quantity (must be non-negative)")
    sku: Optional[str] = Field(None, max_length=100)
    category: Optional[str] = Field(None, max_length=100, description="Product category")
    image_url: Optional[str] = Field(None, max_length=500, description="Product image URL")


class ProductCreate(ProductBase):
    """Schema for creating a new product"""
    pass


class StockUpdate(BaseModel):
    """Schema for updating product stock"""
    quantity: int = Field(..., description="Quantity to add (positive) or subtract (negative)")


class ProductResponse(ProductBase):
    """Schema for product response"""
    id: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProductListResponse(BaseModel):
    """Schema for list of products response"""
    products: list[ProductResponse]
    total: int
