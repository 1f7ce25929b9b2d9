"""
Storefront rules shared by the API handlers.

Everything here works on plain dicts as they come out of MongoDB and does no
I/O, so the handlers in ``main`` stay thin and the rules can be tested alone.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

CANCELLATION_WINDOW_DAYS = 7

MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


# ----------------------------------------------------------------------------
# Cart
# ----------------------------------------------------------------------------

def cart_line_from_product(product: Dict[str, Any], quantity: int = 1, size: Optional[str] = None, color: Optional[str] = None) -> Dict[str, Any]:
    images = product.get("images") or [None]
    return {
        "product_id": str(product.get("_id", product.get("id"))),
        "name": product.get("name"),
        "price": float(product.get("price", 0)),
        "category": product.get("category"),
        "image": images[0],
        "quantity": max(1, int(quantity)),
        "size": size,
        "color": color,
    }


def add_to_cart(cart: List[Dict[str, Any]], line: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Add a line, bumping the quantity when the product is already in the cart."""
    cart = [dict(item) for item in cart]
    for item in cart:
        if item.get("product_id") == line["product_id"]:
            item["quantity"] = int(item.get("quantity", 1)) + max(1, int(line.get("quantity", 1)))
            if line.get("size"):
                item["size"] = line["size"]
            if line.get("color"):
                item["color"] = line["color"]
            return cart
    cart.append(dict(line))
    return cart


def set_cart_quantity(cart: List[Dict[str, Any]], product_id: str, quantity: int) -> List[Dict[str, Any]]:
    """Set a line's quantity; zero or less drops the line."""
    if quantity <= 0:
        return remove_from_cart(cart, product_id)
    return [
        {**item, "quantity": quantity} if item.get("product_id") == product_id else dict(item)
        for item in cart
    ]


def remove_from_cart(cart: List[Dict[str, Any]], product_id: str) -> List[Dict[str, Any]]:
    return [dict(item) for item in cart if item.get("product_id") != product_id]


def merge_carts(user_cart: List[Dict[str, Any]], guest_cart: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Union a guest cart into a user cart by product id.

    Quantities of lines present in both carts are summed. Lines only in the
    guest cart are appended in their original order.
    """
    merged = [dict(item) for item in user_cart]
    index = {item.get("product_id"): item for item in merged}
    for guest_item in guest_cart:
        pid = guest_item.get("product_id")
        if pid in index:
            index[pid]["quantity"] = int(index[pid].get("quantity", 1)) + int(guest_item.get("quantity", 1))
        else:
            copy = dict(guest_item)
            merged.append(copy)
            index[pid] = copy
    return merged


def cart_count(cart: Iterable[Dict[str, Any]]) -> int:
    return sum(int(item.get("quantity", 0)) for item in cart)


def cart_total(items: Iterable[Dict[str, Any]]) -> float:
    """Sum of price x quantity, rounded to paise."""
    return round(sum(float(item.get("price", 0)) * int(item.get("quantity", 0)) for item in items), 2)


def cart_summary(cart: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"items": cart, "count": cart_count(cart), "total": cart_total(cart)}


# ----------------------------------------------------------------------------
# Orders
# ----------------------------------------------------------------------------

def order_items_from_cart(cart: List[Dict[str, Any]], products: Dict[str, Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Build order lines from cart lines priced with current product data.

    ``products`` maps product id to the product document. Raises KeyError
    with the product id when a cart line points at a product that is gone.
    """
    items = []
    for line in cart:
        pid = line["product_id"]
        product = products[pid]
        images = product.get("images") or [None]
        items.append({
            "product_id": pid,
            "product_name": product.get("name"),
            "quantity": max(1, int(line.get("quantity", 1))),
            "price": float(product.get("price", 0)),
            "size": line.get("size"),
            "color": line.get("color"),
            "image_url": images[0],
        })
    return items


def parse_order_date(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def days_since(value: Any, now: Optional[datetime] = None) -> Optional[int]:
    placed = parse_order_date(value)
    if placed is None:
        return None
    now = now or datetime.now(timezone.utc)
    return (now - placed).days


def can_cancel_order(order: Dict[str, Any], now: Optional[datetime] = None) -> bool:
    """
    A customer may cancel a Pending order or return a Delivered one
    until seven whole days have passed since it was placed.
    """
    if order.get("status") not in ("Pending", "Delivered"):
        return False
    elapsed = days_since(order.get("date"), now)
    if elapsed is None:
        return False
    return elapsed < CANCELLATION_WINDOW_DAYS


def cancellation_notification_type(status: str) -> str:
    return "order_return" if status == "Delivered" else "order_cancellation"


def short_order_ref(order_id: str) -> str:
    return order_id[-6:].upper()


def notification_message(kind: str, order_id: str, user_email: str, total: float = 0.0, reason: Optional[str] = None) -> str:
    ref = short_order_ref(order_id)
    if kind == "new_order":
        return f"New order #{ref} placed by {user_email}. Total: ₹{total:.2f}"
    if kind == "order_cancellation":
        message = f"Order #{ref} was cancelled by {user_email}."
    elif kind == "order_return":
        message = f"A return was requested for order #{ref} by {user_email}."
    elif kind == "order_accepted":
        return f"Your order #{ref} has been accepted and shipped."
    elif kind == "order_rejected":
        message = f"Your order #{ref} was rejected."
    else:
        raise ValueError(f"Unknown notification type: {kind}")
    if reason:
        message += f" Reason: {reason}"
    return message


# ----------------------------------------------------------------------------
# Admin dashboard
# ----------------------------------------------------------------------------

def trailing_months(now: datetime, count: int = 12) -> List[tuple]:
    """(year, month) pairs for the last ``count`` months, oldest first."""
    months = []
    year, month = now.year, now.month
    for _ in range(count):
        months.append((year, month))
        month -= 1
        if month == 0:
            month = 12
            year -= 1
    return list(reversed(months))


def dashboard_stats(orders: List[Dict[str, Any]], products: List[Dict[str, Any]], users_count: int, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    delivered = [o for o in orders if o.get("status") == "Delivered"]

    months = trailing_months(now)
    monthly = {key: 0 for key in months}
    for order in delivered:
        placed = parse_order_date(order.get("date"))
        if placed is None:
            continue
        key = (placed.year, placed.month)
        if key in monthly:
            monthly[key] += 1

    category_of = {str(p.get("_id", p.get("id"))): p.get("category") for p in products}
    by_category: Dict[str, int] = {}
    for order in delivered:
        for item in order.get("items") or []:
            category = category_of.get(item.get("product_id"))
            if category:
                by_category[category] = by_category.get(category, 0) + int(item.get("quantity") or 1)

    return {
        "total_revenue": round(sum(float(o.get("total") or 0) for o in delivered), 2),
        "sales_count": len(delivered),
        "users_count": users_count,
        "products_count": len(products),
        "monthly_sales": [{"name": MONTH_NAMES[m - 1], "sales": monthly[(y, m)]} for y, m in months],
        "category_sales": [
            {"name": name, "sales": sales}
            for name, sales in sorted(by_category.items(), key=lambda kv: kv[1], reverse=True)
        ],
    }
