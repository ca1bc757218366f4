from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

# Request schema for adding an item to the cart
class CartAddItem(BaseModel):
    product_id: int
    qty: int = Field(default=1, gt=0)

# Request schema for updating cart item quantity; 0 removes the line
class CartUpdateItem(BaseModel):
    qty: int = Field(ge=0)

# Response schema for a single cart line item
class CartItemOut(BaseModel):
    id: int
    product_id: int
    name: str
    image_url: Optional[str] = None
    category_name: Optional[str] = None
    qty: int
    unit_price: float
    sale_price: Optional[float] = None
    effective_price: float
    line_total: float
    in_stock: bool
    available_stock: int

# Response schema for the entire cart summary
class CartOut(BaseModel):
    id: int
    user_id: int
    created_at: Optional[datetime] = None
    items: List[CartItemOut]
    total: float
    total_items: int
