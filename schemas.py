"""
Database Schemas for the Acoof menswear store

Each Pydantic model represents a collection in MongoDB.
Collection name is the lowercase of the class name by default.

We store:
- User (includes cart, wishlist and the order index for simplicity)
- Product
- Order
- Notification
- GuestCart (carts of visitors who have not logged in yet)
- Payment (Razorpay orders and the checkout that used them)
"""

from pydantic import BaseModel, Field, EmailStr
from typing import List, Optional, Literal, get_args


Category = Literal[
    "Shirts",
    "Tshirts",
    "Oversized T-shirt",
    "Pants",
    "Jeans",
    "Trousers",
    "Shoes",
    "Bags",
    "Belts",
    "Socks",
    "Wallets",
    "Sweater",
    "Sweatshirt",
    "Jackets",
    "Track pants",
]

CATEGORIES: List[str] = list(get_args(Category))

OrderStatus = Literal["Pending", "Shipped", "Delivered", "Cancelled"]

ORDER_STATUSES: List[str] = list(get_args(OrderStatus))

PaymentMethod = Literal["Razorpay", "COD"]

NotificationType = Literal[
    "new_order",
    "order_cancellation",
    "order_return",
    "order_accepted",
    "order_rejected",
]

# Who reads which notification type
ADMIN_NOTIFICATION_TYPES = ["new_order", "order_cancellation", "order_return"]
USER_NOTIFICATION_TYPES = ["order_accepted", "order_rejected"]


class CartItem(BaseModel):
    product_id: str = Field(..., description="Product id as string")
    name: str = Field(..., description="Product name snapshot")
    price: float = Field(..., ge=0, description="Unit price snapshot when added")
    category: Optional[str] = None
    image: Optional[str] = None
    quantity: int = Field(1, ge=1, description="Quantity for the product")
    size: Optional[str] = None
    color: Optional[str] = None


class WishlistItem(BaseModel):
    product_id: str = Field(..., description="Product id as string")
    name: Optional[str] = None
    price: Optional[float] = None
    image: Optional[str] = None


class User(BaseModel):
    """
    Users collection schema
    Collection name: "user"
    """
    name: str = Field(..., description="Full name")
    email: EmailStr = Field(..., description="Email address")

    # Auth fields (stored in DB, but not returned in public responses)
    password_hash: Optional[str] = Field(None, description="Hashed password")

    photo_url: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = Field(None, description="Default shipping address")
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    is_active: bool = Field(True, description="Whether user is active")
    is_admin: bool = Field(False, description="Admin flag")

    # Embedded simple cart, wishlist and order index for fast access
    cart: List[CartItem] = Field(default_factory=list)
    wishlist: List[WishlistItem] = Field(default_factory=list)
    orders: List[str] = Field(default_factory=list, description="Ids of orders placed by the user")


class GuestCart(BaseModel):
    """
    Guest carts collection schema
    Collection name: "guestcart"
    """
    guest_id: str = Field(..., min_length=1, description="Opaque id held by the visitor's browser")
    items: List[CartItem] = Field(default_factory=list)


class Product(BaseModel):
    """
    Products collection schema
    Collection name: "product"
    """
    name: str = Field(..., description="Product name")
    description: str = Field("", description="Product description")
    price: float = Field(..., ge=0, description="Price in INR")
    category: Category
    images: List[str] = Field(default_factory=list, description="Image URLs, first one is the cover")
    is_new: bool = Field(False, description="Shown in the new arrivals rail")
    ai_hint: Optional[str] = Field(None, description="Keywords for generated imagery")
    colors: List[str] = Field(default_factory=list)
    sizes: List[str] = Field(default_factory=list)


class OrderItem(BaseModel):
    product_id: str
    product_name: str
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0)
    size: Optional[str] = None
    color: Optional[str] = None
    image_url: Optional[str] = None


class Order(BaseModel):
    """
    Orders collection schema
    Collection name: "order"
    """
    user_id: str
    user: str = Field(..., description="Customer display name")
    user_email: str
    date: str = Field(..., description="ISO-8601 timestamp of placement")
    total: float = Field(..., ge=0)
    status: OrderStatus = "Pending"
    shipping_address: str
    items: List[OrderItem]
    payment_method: PaymentMethod = "COD"
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    razorpay_signature: Optional[str] = None
    cancellation_reason: Optional[str] = None


class Notification(BaseModel):
    """
    Notifications collection schema
    Collection name: "notification"
    """
    type: NotificationType
    message: str
    timestamp: str
    read: bool = False
    order_id: str
    user_id: str
    user_email: str


class Payment(BaseModel):
    """
    Razorpay orders created for checkout
    Collection name: "payment"
    """
    razorpay_order_id: str
    user_id: str
    amount: int = Field(..., ge=0, description="Amount in paise as accepted by the gateway")
    currency: str = "INR"
    razorpay_payment_id: Optional[str] = Field(None, description="Set once a checkout has used this payment")
    order_id: Optional[str] = None
