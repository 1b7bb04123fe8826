"""
Database Schemas

MongoDB collection schemas as Pydantic models. Documents are stored with
the camelCase keys the storefront client sends, so every field declares its
wire name as an alias.

Each model maps to a lowercase collection name:
- Product -> "product" collection
- Cart -> "cart" collection
- Order -> "order" collection
"""

from datetime import datetime
from enum import Enum
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field


class Document(BaseModel):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)


class PaymentMethod(str, Enum):
    COD = "COD"
    PAYPAL = "paypal"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"


class OrderStatus(str, Enum):
    PROCESSING = "processing"
    CONFIRMED = "confirmed"


class Product(Document):
    """
    Products collection schema
    Collection name: "product"
    """
    title: str = Field(..., description="Product title")
    description: Optional[str] = Field(None, description="Product description")
    category: Optional[str] = None
    brand: Optional[str] = None
    image: Optional[str] = Field(None, description="Hosted image URL")
    price: float = Field(..., ge=0)
    sale_price: Optional[float] = Field(None, ge=0, alias="salePrice")
    # no floor: captures may push it below zero
    total_stock: int = Field(0, alias="totalStock", description="Units in stock")


class CartLine(Document):
    product_id: str = Field(..., alias="productId")
    quantity: int = Field(..., ge=1)


class Cart(Document):
    """
    Carts collection schema
    Collection name: "cart"
    """
    user_id: str = Field(..., alias="userId")
    items: List[CartLine] = Field(default_factory=list)


class CartItem(Document):
    """A cart line copied into an order."""
    product_id: str = Field(..., alias="productId")
    title: str
    image: Optional[str] = None
    price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=1)


class AddressInfo(Document):
    address_id: Optional[str] = Field(None, alias="addressId")
    address: str
    city: str
    pincode: str
    phone: str
    notes: Optional[str] = None


class Order(Document):
    """
    Orders collection schema
    Collection name: "order"
    """
    user_id: str = Field(..., alias="userId")
    cart_id: Optional[str] = Field(None, alias="cartId")
    cart_items: List[CartItem] = Field(..., alias="cartItems")
    address_info: AddressInfo = Field(..., alias="addressInfo")
    order_status: OrderStatus = Field(OrderStatus.PROCESSING, alias="orderStatus")
    payment_method: PaymentMethod = Field(..., alias="paymentMethod")
    payment_status: PaymentStatus = Field(PaymentStatus.PENDING, alias="paymentStatus")
    total_amount: float = Field(..., ge=0, alias="totalAmount")
    order_date: Optional[datetime] = Field(None, alias="orderDate")
    order_update_date: Optional[datetime] = Field(None, alias="orderUpdateDate")
    payment_id: Optional[str] = Field(None, alias="paymentId")
    payer_id: Optional[str] = Field(None, alias="payerId")
