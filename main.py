import logging
import os
import re
from datetime import datetime, timedelta, timezone
from typing import Optional, List, Dict, Any

from fastapi import APIRouter, FastAPI, HTTPException, Depends, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel, EmailStr, Field
import jwt
from passlib.context import CryptContext
from bson import ObjectId
from bson.errors import InvalidId

from database import db, create_document, get_documents, utcnow
from schemas import (
    User as UserSchema,
    Product as ProductSchema,
    Order as OrderSchema,
    OrderItem,
    Notification as NotificationSchema,
    Payment as PaymentSchema,
    Category,
    OrderStatus,
    PaymentMethod,
    CATEGORIES,
    ADMIN_NOTIFICATION_TYPES,
    USER_NOTIFICATION_TYPES,
)
import store
from payments import PaymentGatewayError, create_razorpay_order, to_paise, verify_razorpay_payment
from geocoding import GeocodingError, reverse_geocode
from stylist import StylistError, generate_outfit_image, generate_outfit_suggestions

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# ----------------------------------------------------------------------------
# App and Security Setup
# ----------------------------------------------------------------------------

JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
JWT_ALG = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24 * 7  # 7 days

ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@acoof.com")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

app = FastAPI(title="Acoof Store API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def require_db():
    if db is None:
        raise HTTPException(status_code=503, detail="Database is not configured. Set DATABASE_URL on the server.")


# Every store endpoint needs the database; health routes stay on `app`
api = APIRouter(dependencies=[Depends(require_db)])


# ----------------------------------------------------------------------------
# Utilities
# ----------------------------------------------------------------------------

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def create_access_token(subject: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = subject.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALG)


def oid_str(oid) -> str:
    return str(oid) if isinstance(oid, ObjectId) else oid


def to_object_id(value: str, what: str = "Document") -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=404, detail=f"{what} not found")


def doc_to_public(doc: Dict[str, Any]) -> Dict[str, Any]:
    if not doc:
        return doc
    doc = dict(doc)
    if "_id" in doc:
        doc["id"] = oid_str(doc.pop("_id"))
    # hide sensitive fields
    if "password_hash" in doc:
        doc.pop("password_hash", None)
    return doc


def vendor_error(e) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.message)


async def get_current_user(token: str = Depends(oauth2_scheme)) -> Dict[str, Any]:
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid authentication")
    uid = payload.get("sub")
    if not uid or not ObjectId.is_valid(uid):
        raise HTTPException(status_code=401, detail="Invalid token")
    user = db["user"].find_one({"_id": ObjectId(uid)})
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user


async def get_current_admin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if not user.get("is_admin"):
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


def save_cart(user: Dict[str, Any], cart: List[Dict[str, Any]]) -> Dict[str, Any]:
    db["user"].update_one({"_id": user["_id"]}, {"$set": {"cart": cart, "updated_at": utcnow()}})
    return store.cart_summary(cart)


def find_product(product_id: str) -> Dict[str, Any]:
    product = db["product"].find_one({"_id": to_object_id(product_id, "Product")})
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


def merge_guest_cart(user: Dict[str, Any], guest_id: Optional[str]) -> List[Dict[str, Any]]:
    """Fold a guest cart into the user's cart and drop the guest copy."""
    cart = user.get("cart", [])
    if not guest_id:
        return cart
    guest = db["guestcart"].find_one({"guest_id": guest_id})
    if not guest:
        return cart
    guest_items = guest.get("items") or []
    if guest_items:
        cart = store.merge_carts(cart, guest_items)
        save_cart(user, cart)
        logger.info("Merged %d guest cart lines into user %s", len(guest_items), user["_id"])
    db["guestcart"].delete_one({"_id": guest["_id"]})
    return cart


def notify(kind: str, order: Dict[str, Any], reason: Optional[str] = None) -> str:
    order_id = oid_str(order["_id"])
    notification = NotificationSchema(
        type=kind,
        message=store.notification_message(kind, order_id, order["user_email"], order.get("total", 0.0), reason),
        timestamp=utcnow().isoformat(),
        read=False,
        order_id=order_id,
        user_id=order["user_id"],
        user_email=order["user_email"],
    )
    return create_document("notification", notification)


def mark_order_notifications_read(order_id: str, kinds: List[str]):
    db["notification"].update_many(
        {"order_id": order_id, "type": {"$in": kinds}},
        {"$set": {"read": True, "updated_at": utcnow()}},
    )


# ----------------------------------------------------------------------------
# Models (request bodies)
# ----------------------------------------------------------------------------

class RegisterRequest(BaseModel):
    name: str
    email: EmailStr
    password: str = Field(..., min_length=6)
    guest_id: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str
    guest_id: Optional[str] = None


class ProfileUpdateRequest(BaseModel):
    name: Optional[str] = None
    photo_url: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None


class LocationRequest(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    apply: bool = False


class ProductCreateRequest(BaseModel):
    name: str
    description: str = ""
    price: float = Field(..., ge=0)
    category: Category
    images: List[str] = []
    is_new: bool = False
    ai_hint: Optional[str] = None
    colors: List[str] = []
    sizes: List[str] = []


class ProductUpdateRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    category: Optional[Category] = None
    images: Optional[List[str]] = None
    is_new: Optional[bool] = None
    ai_hint: Optional[str] = None
    colors: Optional[List[str]] = None
    sizes: Optional[List[str]] = None


class AddCartRequest(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)
    size: Optional[str] = None
    color: Optional[str] = None


class UpdateCartRequest(BaseModel):
    quantity: int


class MergeCartRequest(BaseModel):
    guest_id: str


class AddWishlistRequest(BaseModel):
    product_id: str


class RazorpayOrderRequest(BaseModel):
    amount: float = Field(..., description="Amount in rupees")
    receipt: Optional[str] = None


class RazorpayVerifyRequest(BaseModel):
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str


class CheckoutRequest(BaseModel):
    shipping_address: Optional[str] = None
    payment_method: PaymentMethod = "COD"
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    razorpay_signature: Optional[str] = None


class CancelOrderRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class RejectOrderRequest(BaseModel):
    reason: Optional[str] = None


class UpdateOrderStatus(BaseModel):
    status: OrderStatus


class SuggestionsRequest(BaseModel):
    browsing_history: str = Field(..., min_length=1)
    photo_data_uri: Optional[str] = None


class TryOnRequest(BaseModel):
    description: str = Field(..., min_length=1)
    photo_data_uri: Optional[str] = None


# ----------------------------------------------------------------------------
# Auth Endpoints
# ----------------------------------------------------------------------------

@api.post("/auth/register", response_model=TokenResponse)
def register(body: RegisterRequest):
    existing = db["user"].find_one({"email": body.email})
    if existing:
        raise HTTPException(status_code=400, detail="Email already registered")
    user = UserSchema(
        name=body.name,
        email=body.email,
        password_hash=hash_password(body.password),
        is_admin=False,
        is_active=True,
    )
    uid = create_document("user", user)
    merge_guest_cart(db["user"].find_one({"_id": ObjectId(uid)}), body.guest_id)
    token = create_access_token({"sub": uid})
    return TokenResponse(access_token=token)


@api.post("/auth/login", response_model=TokenResponse)
def login(body: LoginRequest):
    user = db["user"].find_one({"email": body.email})
    if not user or not user.get("password_hash") or not verify_password(body.password, user["password_hash"]):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    merge_guest_cart(user, body.guest_id)
    token = create_access_token({"sub": str(user["_id"])})
    return TokenResponse(access_token=token)


@api.get("/me")
def me(current=Depends(get_current_user)):
    return doc_to_public(current)


@api.put("/me")
def update_me(body: ProfileUpdateRequest, current=Depends(get_current_user)):
    update = {k: v for k, v in body.model_dump().items() if v is not None}
    update["updated_at"] = utcnow()
    db["user"].update_one({"_id": current["_id"]}, {"$set": update})
    return doc_to_public(db["user"].find_one({"_id": current["_id"]}))


@api.post("/me/location")
def locate_me(body: LocationRequest, current=Depends(get_current_user)):
    try:
        found = reverse_geocode(body.latitude, body.longitude)
    except GeocodingError as e:
        raise vendor_error(e)
    # Blank components keep what the profile already has
    fields = {k: v or current.get(k) for k, v in found.items()}
    if body.apply:
        db["user"].update_one({"_id": current["_id"]}, {"$set": {**fields, "updated_at": utcnow()}})
    return fields


# ----------------------------------------------------------------------------
# Product Endpoints
# ----------------------------------------------------------------------------

@api.get("/products")
def list_products(
    q: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    is_new: Optional[bool] = Query(None),
    sort: Optional[str] = Query(None, description="price_asc|price_desc|newest"),
    page: int = 1,
    limit: int = 12,
):
    query: Dict[str, Any] = {}
    if q:
        pattern = re.escape(q)
        query["$or"] = [
            {"name": {"$regex": pattern, "$options": "i"}},
            {"description": {"$regex": pattern, "$options": "i"}},
        ]
    if category:
        query["category"] = category
    if is_new is not None:
        query["is_new"] = is_new

    total = db["product"].count_documents(query)
    cursor = db["product"].find(query)

    sort_map = {
        "price_asc": ("price", 1),
        "price_desc": ("price", -1),
        "newest": ("created_at", -1),
    }
    if sort and sort in sort_map:
        field, direction = sort_map[sort]
        cursor = cursor.sort(field, direction)

    limit = max(1, limit)
    skip = max(0, (page - 1) * limit)
    cursor = cursor.skip(skip).limit(limit)

    items = [doc_to_public(x) for x in cursor]
    return {"items": items, "total": total, "page": page, "limit": limit, "categories": CATEGORIES}


@api.get("/categories")
def list_categories():
    return CATEGORIES


@api.get("/products/{product_id}")
def get_product(product_id: str):
    return doc_to_public(find_product(product_id))


# ----------------------------------------------------------------------------
# Admin: Product Management
# ----------------------------------------------------------------------------

@api.post("/admin/products", status_code=201)
def admin_create_product(body: ProductCreateRequest, user=Depends(get_current_admin)):
    product = ProductSchema(**body.model_dump())
    pid = create_document("product", product)
    logger.info("Product %s created by %s", pid, user["email"])
    return {"id": pid}


@api.put("/admin/products/{product_id}")
def admin_update_product(product_id: str, body: ProductUpdateRequest, user=Depends(get_current_admin)):
    update = {k: v for k, v in body.model_dump().items() if v is not None}
    update["updated_at"] = utcnow()
    res = db["product"].update_one({"_id": to_object_id(product_id, "Product")}, {"$set": update})
    if res.matched_count == 0:
        raise HTTPException(status_code=404, detail="Product not found")
    return {"updated": True}


@api.delete("/admin/products/{product_id}")
def admin_delete_product(product_id: str, user=Depends(get_current_admin)):
    res = db["product"].delete_one({"_id": to_object_id(product_id, "Product")})
    if res.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Product not found")
    return {"deleted": True}


# ----------------------------------------------------------------------------
# Cart & Wishlist
# ----------------------------------------------------------------------------

@api.get("/me/cart")
def get_cart(current=Depends(get_current_user)):
    return store.cart_summary(current.get("cart", []))


@api.post("/me/cart")
def add_to_cart(body: AddCartRequest, current=Depends(get_current_user)):
    product = find_product(body.product_id)
    line = store.cart_line_from_product(product, body.quantity, body.size, body.color)
    return save_cart(current, store.add_to_cart(current.get("cart", []), line))


@api.put("/me/cart/{product_id}")
def update_cart_quantity(product_id: str, body: UpdateCartRequest, current=Depends(get_current_user)):
    return save_cart(current, store.set_cart_quantity(current.get("cart", []), product_id, body.quantity))


@api.delete("/me/cart/{product_id}")
def remove_from_cart(product_id: str, current=Depends(get_current_user)):
    return save_cart(current, store.remove_from_cart(current.get("cart", []), product_id))


@api.delete("/me/cart")
def clear_cart(current=Depends(get_current_user)):
    return save_cart(current, [])


@api.post("/me/cart/merge")
def merge_cart(body: MergeCartRequest, current=Depends(get_current_user)):
    return store.cart_summary(merge_guest_cart(current, body.guest_id))


def load_guest_cart(guest_id: str) -> List[Dict[str, Any]]:
    doc = db["guestcart"].find_one({"guest_id": guest_id})
    return (doc or {}).get("items", [])


def save_guest_cart(guest_id: str, cart: List[Dict[str, Any]]) -> Dict[str, Any]:
    db["guestcart"].update_one(
        {"guest_id": guest_id},
        {"$set": {"items": cart, "updated_at": utcnow()}, "$setOnInsert": {"created_at": utcnow()}},
        upsert=True,
    )
    return store.cart_summary(cart)


@api.get("/guest/{guest_id}/cart")
def get_guest_cart(guest_id: str):
    return store.cart_summary(load_guest_cart(guest_id))


@api.post("/guest/{guest_id}/cart")
def add_to_guest_cart(guest_id: str, body: AddCartRequest):
    product = find_product(body.product_id)
    line = store.cart_line_from_product(product, body.quantity, body.size, body.color)
    return save_guest_cart(guest_id, store.add_to_cart(load_guest_cart(guest_id), line))


@api.put("/guest/{guest_id}/cart/{product_id}")
def update_guest_cart_quantity(guest_id: str, product_id: str, body: UpdateCartRequest):
    return save_guest_cart(guest_id, store.set_cart_quantity(load_guest_cart(guest_id), product_id, body.quantity))


@api.delete("/guest/{guest_id}/cart/{product_id}")
def remove_from_guest_cart(guest_id: str, product_id: str):
    return save_guest_cart(guest_id, store.remove_from_cart(load_guest_cart(guest_id), product_id))


@api.delete("/guest/{guest_id}/cart")
def clear_guest_cart(guest_id: str):
    db["guestcart"].delete_one({"guest_id": guest_id})
    return store.cart_summary([])


@api.get("/me/wishlist")
def get_wishlist(current=Depends(get_current_user)):
    return current.get("wishlist", [])


@api.post("/me/wishlist")
def add_wishlist(body: AddWishlistRequest, current=Depends(get_current_user)):
    wishlist: List[Dict[str, Any]] = current.get("wishlist", [])
    if not any(w.get("product_id") == body.product_id for w in wishlist):
        product = find_product(body.product_id)
        wishlist.append({
            "product_id": body.product_id,
            "name": product.get("name"),
            "price": product.get("price"),
            "image": (product.get("images") or [None])[0],
        })
    db["user"].update_one({"_id": current["_id"]}, {"$set": {"wishlist": wishlist, "updated_at": utcnow()}})
    return {"ok": True, "wishlist": wishlist}


@api.delete("/me/wishlist/{product_id}")
def remove_wishlist(product_id: str, current=Depends(get_current_user)):
    wishlist: List[Dict[str, Any]] = current.get("wishlist", [])
    wishlist = [w for w in wishlist if w.get("product_id") != product_id]
    db["user"].update_one({"_id": current["_id"]}, {"$set": {"wishlist": wishlist, "updated_at": utcnow()}})
    return {"ok": True, "wishlist": wishlist}


# ----------------------------------------------------------------------------
# Payments (Razorpay)
# ----------------------------------------------------------------------------

@api.post("/payments/razorpay/order")
def razorpay_order(body: RazorpayOrderRequest, current=Depends(get_current_user)):
    try:
        gateway_order = create_razorpay_order(body.amount, body.receipt)
    except PaymentGatewayError as e:
        raise vendor_error(e)
    payment = PaymentSchema(
        razorpay_order_id=gateway_order["id"],
        user_id=str(current["_id"]),
        amount=gateway_order["amount"],
        currency=gateway_order.get("currency") or "INR",
    )
    create_document("payment", payment)
    return gateway_order


@api.post("/payments/razorpay/verify")
def razorpay_verify(body: RazorpayVerifyRequest, current=Depends(get_current_user)):
    try:
        ok = verify_razorpay_payment(body.razorpay_order_id, body.razorpay_payment_id, body.razorpay_signature)
    except PaymentGatewayError as e:
        raise vendor_error(e)
    if not ok:
        raise HTTPException(status_code=400, detail="Payment verification failed. The response from Razorpay could not be trusted.")
    return {"success": True}


# ----------------------------------------------------------------------------
# Orders (Checkout & Tracking)
# ----------------------------------------------------------------------------

def claim_razorpay_payment(body: CheckoutRequest, current: Dict[str, Any], total: float) -> Dict[str, Any]:
    """
    Tie a verified Razorpay payment to this checkout.

    The gateway order must have been created by the same user for exactly the
    order total, and a payment id can back a single order only.
    """
    payment = db["payment"].find_one({"razorpay_order_id": body.razorpay_order_id, "user_id": str(current["_id"])})
    if not payment:
        raise HTTPException(status_code=400, detail="Unknown payment order. Start the payment again.")
    if int(payment.get("amount", -1)) != to_paise(total):
        raise HTTPException(status_code=400, detail="Payment amount does not match the order total.")
    if db["order"].find_one({"razorpay_payment_id": body.razorpay_payment_id}):
        raise HTTPException(status_code=400, detail="This payment has already been used for another order.")
    res = db["payment"].update_one(
        {"_id": payment["_id"], "razorpay_payment_id": None},
        {"$set": {"razorpay_payment_id": body.razorpay_payment_id, "updated_at": utcnow()}},
    )
    if res.matched_count == 0:
        raise HTTPException(status_code=400, detail="This payment has already been used for another order.")
    return payment


@api.post("/orders/checkout", status_code=201)
def checkout(body: CheckoutRequest, current=Depends(get_current_user)):
    cart: List[Dict[str, Any]] = current.get("cart", [])
    if not cart:
        raise HTTPException(status_code=400, detail="Cart is empty")

    shipping_address = body.shipping_address or ", ".join(
        filter(None, [current.get(k) for k in ("address", "city", "state", "pincode")])
    )
    if not shipping_address:
        raise HTTPException(status_code=400, detail="Shipping address is required")

    if body.payment_method == "Razorpay":
        if not (body.razorpay_order_id and body.razorpay_payment_id and body.razorpay_signature):
            raise HTTPException(status_code=400, detail="Razorpay payment details are missing")
        try:
            verified = verify_razorpay_payment(body.razorpay_order_id, body.razorpay_payment_id, body.razorpay_signature)
        except PaymentGatewayError as e:
            raise vendor_error(e)
        if not verified:
            raise HTTPException(status_code=400, detail="Payment verification failed. The order was not placed.")

    # Price items from current product data
    products: Dict[str, Dict[str, Any]] = {}
    for line in cart:
        p = db["product"].find_one({"_id": to_object_id(line["product_id"], "Product")})
        if not p:
            raise HTTPException(status_code=400, detail="Product in cart no longer exists")
        products[line["product_id"]] = p
    items = [OrderItem(**i) for i in store.order_items_from_cart(cart, products)]
    total = store.cart_total(i.model_dump() for i in items)

    payment = None
    if body.payment_method == "Razorpay":
        payment = claim_razorpay_payment(body, current, total)

    order = OrderSchema(
        user_id=str(current["_id"]),
        user=current.get("name") or current["email"],
        user_email=current["email"],
        date=utcnow().isoformat(),
        total=total,
        status="Pending",
        shipping_address=shipping_address,
        items=items,
        payment_method=body.payment_method,
        razorpay_order_id=body.razorpay_order_id,
        razorpay_payment_id=body.razorpay_payment_id,
        razorpay_signature=body.razorpay_signature,
    )
    doc = {**order.model_dump(), "created_at": utcnow(), "updated_at": utcnow()}
    oid = db["order"].insert_one(doc).inserted_id
    order_id = str(oid)

    # Index the order under the user and clear the cart in the same write
    db["user"].update_one(
        {"_id": current["_id"]},
        {"$push": {"orders": order_id}, "$set": {"cart": [], "updated_at": utcnow()}},
    )
    if payment is not None:
        db["payment"].update_one({"_id": payment["_id"]}, {"$set": {"order_id": order_id, "updated_at": utcnow()}})
    notify("new_order", {**doc, "_id": oid})
    logger.info("Order %s placed by %s, total %.2f", order_id, order.user_email, order.total)

    return {"id": order_id, "total": order.total, "status": order.status}


@api.get("/orders")
def list_orders(current=Depends(get_current_user)):
    cursor = db["order"].find({"user_id": str(current["_id"])}, sort=[("created_at", -1)])
    return [doc_to_public(o) for o in cursor]


def find_own_order(order_id: str, current: Dict[str, Any]) -> Dict[str, Any]:
    doc = db["order"].find_one({"_id": to_object_id(order_id, "Order"), "user_id": str(current["_id"])})
    if not doc:
        raise HTTPException(status_code=404, detail="Order not found")
    return doc


@api.get("/orders/{order_id}")
def get_order(order_id: str, current=Depends(get_current_user)):
    order = find_own_order(order_id, current)
    return {**doc_to_public(order), "can_cancel": store.can_cancel_order(order)}


@api.post("/orders/{order_id}/cancel")
def cancel_order(order_id: str, body: CancelOrderRequest, current=Depends(get_current_user)):
    order = find_own_order(order_id, current)
    if not store.can_cancel_order(order):
        raise HTTPException(
            status_code=400,
            detail=f"Only pending or delivered orders can be cancelled or returned within {store.CANCELLATION_WINDOW_DAYS} days of purchase",
        )
    kind = store.cancellation_notification_type(order["status"])
    db["order"].update_one(
        {"_id": order["_id"]},
        {"$set": {"status": "Cancelled", "cancellation_reason": body.reason, "updated_at": utcnow()}},
    )
    notify(kind, order, body.reason)
    logger.info("Order %s cancelled by customer (%s)", order_id, kind)
    return {"id": order_id, "status": "Cancelled", "type": kind}


# ----------------------------------------------------------------------------
# Admin: Orders, Notifications, Dashboard
# ----------------------------------------------------------------------------

def find_order(order_id: str) -> Dict[str, Any]:
    doc = db["order"].find_one({"_id": to_object_id(order_id, "Order")})
    if not doc:
        raise HTTPException(status_code=404, detail="Order not found")
    return doc


@api.get("/admin/orders")
def admin_orders(status: Optional[OrderStatus] = Query(None), user=Depends(get_current_admin)):
    query = {"status": status} if status else {}
    cursor = db["order"].find(query, sort=[("created_at", -1)])
    return [doc_to_public(o) for o in cursor]


@api.patch("/admin/orders/{order_id}/status")
def admin_update_order_status(order_id: str, body: UpdateOrderStatus, user=Depends(get_current_admin)):
    order = find_order(order_id)
    db["order"].update_one({"_id": order["_id"]}, {"$set": {"status": body.status, "updated_at": utcnow()}})
    return {"id": order_id, "status": body.status}


@api.post("/admin/orders/{order_id}/accept")
def admin_accept_order(order_id: str, user=Depends(get_current_admin)):
    order = find_order(order_id)
    if order.get("status") != "Pending":
        raise HTTPException(status_code=400, detail="Only pending orders can be accepted")
    db["order"].update_one({"_id": order["_id"]}, {"$set": {"status": "Shipped", "updated_at": utcnow()}})
    mark_order_notifications_read(order_id, ["new_order"])
    notify("order_accepted", order)
    return {"id": order_id, "status": "Shipped"}


@api.post("/admin/orders/{order_id}/reject")
def admin_reject_order(order_id: str, body: RejectOrderRequest, user=Depends(get_current_admin)):
    order = find_order(order_id)
    if order.get("status") != "Pending":
        raise HTTPException(status_code=400, detail="Only pending orders can be rejected")
    update: Dict[str, Any] = {"status": "Cancelled", "updated_at": utcnow()}
    if body.reason:
        update["cancellation_reason"] = body.reason
    db["order"].update_one({"_id": order["_id"]}, {"$set": update})
    mark_order_notifications_read(order_id, ["new_order"])
    notify("order_rejected", order, body.reason)
    return {"id": order_id, "status": "Cancelled"}


@api.get("/admin/notifications")
def admin_notifications(unread_only: bool = False, user=Depends(get_current_admin)):
    query: Dict[str, Any] = {"type": {"$in": ADMIN_NOTIFICATION_TYPES}}
    if unread_only:
        query["read"] = False
    cursor = db["notification"].find(query, sort=[("timestamp", -1)])
    return [doc_to_public(n) for n in cursor]


@api.post("/admin/notifications/read-all")
def admin_read_all_notifications(user=Depends(get_current_admin)):
    res = db["notification"].update_many(
        {"type": {"$in": ADMIN_NOTIFICATION_TYPES}, "read": False},
        {"$set": {"read": True, "updated_at": utcnow()}},
    )
    return {"updated": res.modified_count}


@api.post("/admin/notifications/{notification_id}/read")
def admin_read_notification(notification_id: str, user=Depends(get_current_admin)):
    res = db["notification"].update_one(
        {"_id": to_object_id(notification_id, "Notification"), "type": {"$in": ADMIN_NOTIFICATION_TYPES}},
        {"$set": {"read": True, "updated_at": utcnow()}},
    )
    if res.matched_count == 0:
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"read": True}


@api.get("/me/notifications")
def my_notifications(current=Depends(get_current_user)):
    cursor = db["notification"].find(
        {"user_id": str(current["_id"]), "type": {"$in": USER_NOTIFICATION_TYPES}},
        sort=[("timestamp", -1)],
    )
    return [doc_to_public(n) for n in cursor]


@api.post("/me/notifications/{notification_id}/read")
def read_my_notification(notification_id: str, current=Depends(get_current_user)):
    res = db["notification"].update_one(
        {
            "_id": to_object_id(notification_id, "Notification"),
            "user_id": str(current["_id"]),
            "type": {"$in": USER_NOTIFICATION_TYPES},
        },
        {"$set": {"read": True, "updated_at": utcnow()}},
    )
    if res.matched_count == 0:
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"read": True}


@api.get("/admin/dashboard")
def admin_dashboard(user=Depends(get_current_admin)):
    orders = get_documents("order")
    products = get_documents("product")
    users_count = db["user"].count_documents({"is_admin": {"$ne": True}})
    return store.dashboard_stats(orders, products, users_count)


@api.get("/admin/users")
def admin_users(user=Depends(get_current_admin)):
    cursor = db["user"].find({}, sort=[("created_at", -1)])
    users = []
    for u in cursor:
        public = doc_to_public(u)
        public.pop("cart", None)
        public.pop("wishlist", None)
        users.append(public)
    return users


# ----------------------------------------------------------------------------
# AI Stylist
# ----------------------------------------------------------------------------

@api.post("/stylist/suggestions")
def stylist_suggestions(body: SuggestionsRequest, current=Depends(get_current_user)):
    try:
        return {"suggestions": generate_outfit_suggestions(body.browsing_history, body.photo_data_uri)}
    except StylistError as e:
        raise vendor_error(e)


@api.post("/stylist/try-on")
def stylist_try_on(body: TryOnRequest, current=Depends(get_current_user)):
    try:
        return {"image_url": generate_outfit_image(body.description, body.photo_data_uri)}
    except StylistError as e:
        raise vendor_error(e)


# ----------------------------------------------------------------------------
# Health and Test
# ----------------------------------------------------------------------------

@app.get("/")
def root():
    return {"message": "Acoof Store API running"}


@app.get("/test")
def test_database():
    if db is None:
        return {"backend": "ok", "db": "not configured"}
    try:
        collections = db.list_collection_names()
        return {"backend": "ok", "db": "ok", "collections": collections}
    except Exception as e:
        logger.error("Database check failed: %s", e)
        return {"backend": "ok", "db": f"error: {e}"}


# ----------------------------------------------------------------------------
# Seed Data (idempotent) and Startup Hook
# ----------------------------------------------------------------------------

PLACEHOLDER_IMAGE = "https://placehold.co/600x800.png"

SAMPLE_PRODUCTS = [
    {
        "name": "Classic White Tee",
        "description": "A timeless staple for any wardrobe, made from 100% premium cotton.",
        "price": 25.0,
        "category": "Tshirts",
        "is_new": True,
        "colors": ["White", "Black", "Gray"],
        "sizes": ["S", "M", "L", "XL", "XXL"],
    },
    {
        "name": "Slim-Fit Denim Jeans",
        "description": "Modern slim-fit jeans in a versatile dark wash.",
        "price": 75.0,
        "category": "Jeans",
        "is_new": True,
        "colors": ["Dark Wash", "Light Wash", "Black"],
        "sizes": ["30", "32", "34", "36"],
    },
    {
        "name": "Leather Derby Shoes",
        "description": "Classic derby shoes crafted from genuine leather, perfect for any occasion.",
        "price": 120.0,
        "category": "Shoes",
        "is_new": True,
        "colors": ["Black", "Brown"],
        "sizes": ["9", "10", "11", "12"],
    },
    {
        "name": "Urban Graphic Hoodie",
        "description": "Comfortable cotton hoodie with a bold back print.",
        "price": 65.0,
        "category": "Sweatshirt",
        "colors": ["Black", "Heather Gray", "Navy"],
        "sizes": ["S", "M", "L", "XL", "XXL"],
    },
    {
        "name": "Cargo Trousers",
        "description": "Utilitarian cargo pants with multiple pockets for functionality.",
        "price": 80.0,
        "category": "Trousers",
        "colors": ["Khaki", "Olive", "Black"],
        "sizes": ["S", "M", "L", "XL", "XXL"],
    },
    {
        "name": "Minimalist Sneakers",
        "description": "Clean and simple sneakers that pair with everything.",
        "price": 90.0,
        "category": "Shoes",
        "colors": ["White", "Black", "Cream"],
        "sizes": ["8", "9", "10", "11", "12", "13"],
    },
    {
        "name": "Linen Button-Up Shirt",
        "description": "A breezy linen shirt, ideal for warmer weather.",
        "price": 55.0,
        "category": "Shirts",
        "colors": ["Beige", "White", "Light Blue"],
        "sizes": ["S", "M", "L", "XL", "XXL"],
    },
    {
        "name": "Canvas Tote Bag",
        "description": "A durable and stylish canvas tote for your daily essentials.",
        "price": 40.0,
        "category": "Bags",
        "is_new": True,
        "colors": ["Natural", "Black"],
        "sizes": ["One Size"],
    },
]


def seed_data() -> int:
    """Create the admin account and the starter catalog if missing; return products added."""
    existing_admin = db["user"].find_one({"email": ADMIN_EMAIL})
    if not existing_admin:
        admin = UserSchema(
            name="Admin",
            email=ADMIN_EMAIL,
            password_hash=hash_password(ADMIN_PASSWORD),
            is_admin=True,
            is_active=True,
        )
        create_document("user", admin)

    added = 0
    if db["product"].count_documents({}) == 0:
        for p in SAMPLE_PRODUCTS:
            prod = ProductSchema(images=[PLACEHOLDER_IMAGE], **p)
            create_document("product", prod)
            added += 1
    return added


@api.post("/admin/seed")
def trigger_seed(user=Depends(get_current_admin)):
    return {"seeded": True, "products_added": seed_data()}


app.include_router(api)


@app.on_event("startup")
def on_startup():
    if db is None:
        return
    try:
        seed_data()
    except Exception:
        logger.exception("Seeding on startup failed")


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
