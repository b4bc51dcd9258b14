"""
Database Schemas for the Restaurant Ordering & Kitchen App

Each stored Pydantic model maps to a MongoDB collection:
- Category -> category
- MenuItem -> menuitem
- Order -> order
- KitchenLog -> kitchenlog
- CartItem -> embedded in cart (per browser session, table flow only)
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

OrderStatus = Literal['order-received', 'cooking', 'out-for-delivery', 'delivered', 'cancelled']
PaymentStatus = Literal['pending', 'paid', 'failed']
PaymentMethod = Literal['cash', 'card', 'upi', 'online']
OrderType = Literal['dine-in', 'walk-up', 'delivery']
UserType = Literal['authenticated', 'guest']
KitchenAction = Literal['received', 'started-cooking', 'paused', 'completed',
                        'handed-over', 'cancelled', 'payment-updated']
CategoryType = Literal['veg', 'nonveg']
SpiceLevel = Literal['mild', 'medium', 'hot', 'extra-hot']

MAX_EXTRA_IMAGES = 5


class Category(BaseModel):
    name: str = Field(..., min_length=1)
    image_url: str = Field(..., description="Mandatory category image")
    type: CategoryType


class MenuItem(BaseModel):
    """A dish on the menu.
    `category` is the category name, copied from `category_id` on write so
    menu lookups by name need no join.
    """
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    image_url: str = Field(..., description="Main image")
    image_urls: Optional[List[str]] = Field(None, description="Up to 5 additional images")
    price: float = Field(..., ge=0)
    category: Optional[str] = None
    category_id: str
    is_available: bool = True
    preparation_time: Optional[int] = Field(None, ge=0, description="Minutes")
    spice_level: Optional[SpiceLevel] = None
    calories: Optional[int] = Field(None, ge=0)
    serving_size: Optional[str] = None
    packing_cost: Optional[float] = Field(None, ge=0)


class OrderItem(BaseModel):
    menu_id: str
    name: str
    quantity: int = Field(1, ge=1)
    price: float = Field(..., ge=0, description="Unit price at the time of ordering")
    special_request: Optional[str] = None


class OrderDraft(BaseModel):
    """Everything a client supplies to place an order.
    Any `status` sent along is ignored; new orders always start as order-received.
    """
    user_id: Optional[str] = None
    username: str
    user_type: UserType
    phone_number: Optional[str] = None

    apartment: Optional[str] = None
    flat_number: Optional[str] = None
    other_address: Optional[str] = None

    order_type: OrderType
    table_number: Optional[str] = None
    delivery_note: Optional[str] = None

    items: List[OrderItem]
    total_amount: float = Field(..., ge=0)

    payment_status: PaymentStatus = 'pending'
    payment_method: Optional[PaymentMethod] = None

    staff_name: Optional[str] = None


class Order(BaseModel):
    user_id: Optional[str] = None
    username: str
    user_type: UserType
    phone_number: Optional[str] = None
    apartment: Optional[str] = None
    flat_number: Optional[str] = None
    other_address: Optional[str] = None
    order_type: OrderType
    table_number: Optional[str] = None
    delivery_note: Optional[str] = None
    items: List[OrderItem]
    total_amount: float = Field(..., ge=0)
    payment_status: PaymentStatus = 'pending'
    payment_method: Optional[PaymentMethod] = None
    status: OrderStatus = 'order-received'
    created_at: datetime
    updated_at: datetime
    estimated_ready_time: datetime


class KitchenLog(BaseModel):
    order_id: str
    staff_name: str = "System"
    action: KitchenAction
    note: Optional[str] = None
    created_at: datetime


class CartItem(BaseModel):
    menu_id: str
    name: str
    price: float = Field(..., ge=0)
    quantity: int = Field(1, ge=1)
    image_url: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    special_request: Optional[str] = None
