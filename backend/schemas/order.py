from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional
from datetime import datetime

from models.order import OrderStatus


# Output schema for an individual order line item
class OrderItemOut(BaseModel):
    id: int
    product_id: int
    product_name: str
    product_image_url: Optional[str] = None
    qty: int
    unit_price: float
    line_total: float


# Customer shown on order payloads
class OrderCustomer(BaseModel):
    id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None


# Checkout payload: where the cart should be shipped
class OrderCreatePayload(BaseModel):
    shipping_address: str = Field(min_length=1, max_length=200)
    shipping_city: str = Field(min_length=1, max_length=100)
    shipping_postal_code: str = Field(min_length=1, max_length=20)
    shipping_country: str = Field(min_length=1, max_length=100)
    phone_number: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=500)


# Output schema representing the full order details
class OrderResponse(BaseModel):
    id: int
    order_number: str
    status: OrderStatus
    total_amount: float
    tax_amount: float
    shipping_amount: float
    grand_total: float
    shipping_address: str
    shipping_city: str
    shipping_postal_code: str
    shipping_country: str
    phone_number: Optional[str] = None
    notes: Optional[str] = None
    placed_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    tracking_number: Optional[str] = None
    customer: OrderCustomer
    items: List[OrderItemOut]

    model_config = ConfigDict(from_attributes=True)


# Admin status update
class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    tracking_number: Optional[str] = None
