import math
from typing import Dict, List, Optional

from pymongo.errors import DuplicateKeyError

from .errors import Conflict, NotFound, ValidationError
from .store import OrderStore, UserStore, to_object_id
from .users import isoformat, is_valid_email, normalize_email, serialize_user

ORDER_STATUSES = ("Pending", "Processing", "Shipped", "Delivered", "Cancelled")
INITIAL_STATUS = "Pending"
CONTACT_FIELDS = ("name", "email", "phone", "address")


def parse_price(value, field_name: str) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number")
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a number") from None
    if not math.isfinite(numeric) or numeric < 0:
        raise ValidationError(f"{field_name} must be a non-negative number")
    return round(numeric, 2)


def parse_quantity(value) -> int:
    if isinstance(value, bool):
        raise ValidationError("Cart item qty must be a positive whole number")
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        raise ValidationError("Cart item qty must be a positive whole number") from None
    if not numeric.is_integer() or numeric < 1:
        raise ValidationError("Cart item qty must be a positive whole number")
    return int(numeric)


def normalize_cart_item(payload) -> Dict:
    if not isinstance(payload, dict):
        raise ValidationError("Each cart item must be an object")

    product_id = str(
        payload.get("id") or payload.get("productId") or payload.get("product_id") or ""
    ).strip()
    name = str(payload.get("name") or "").strip()
    if not product_id or not name:
        raise ValidationError("Each cart item needs an id and a name")

    return {
        "id": product_id,
        "name": name,
        "price": parse_price(payload.get("price"), "Cart item price"),
        "qty": parse_quantity(payload.get("qty", payload.get("quantity"))),
    }


def serialize_owner(user_document: Optional[Dict]) -> Optional[Dict]:
    if not user_document:
        return None
    public_owner = serialize_user(user_document)
    return {key: public_owner[key] for key in ("id", "firstName", "lastName", "email")}


def serialize_order(order_document: Optional[Dict]) -> Dict:
    if not order_document:
        return {}
    owner_id = order_document.get("user")
    return {
        "id": str(order_document.get("_id")),
        "user": str(owner_id) if owner_id else None,
        "name": order_document.get("name", ""),
        "email": order_document.get("email", ""),
        "phone": order_document.get("phone", ""),
        "address": order_document.get("address", ""),
        "cart": [
            {
                "id": item.get("id", ""),
                "name": item.get("name", ""),
                "price": item.get("price", 0),
                "qty": item.get("qty", 0),
            }
            for item in order_document.get("cart") or []
        ],
        "total": order_document.get("total", 0),
        "paymentRef": order_document.get("payment_ref", ""),
        "status": order_document.get("status", INITIAL_STATUS),
        "createdAt": isoformat(order_document.get("created_at")),
        "updatedAt": isoformat(order_document.get("updated_at")),
    }


def summarize_order(order_document: Dict) -> Dict:
    return {
        "id": str(order_document.get("_id")),
        "email": order_document.get("email", ""),
        "total": order_document.get("total", 0),
        "status": order_document.get("status", INITIAL_STATUS),
        "createdAt": isoformat(order_document.get("created_at")),
        "items": serialize_order(order_document)["cart"],
    }


class OrderService:
    def __init__(self, orders: OrderStore, users: UserStore, payments, mailer, logger):
        self.orders = orders
        self.users = users
        self.payments = payments
        self.mailer = mailer
        self.logger = logger

    def create(self, owner_id, payload: Dict) -> Dict:
        contact = {
            field: str(payload.get(field) or "").strip() for field in CONTACT_FIELDS
        }
        missing = [field for field, value in contact.items() if not value]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        contact["email"] = normalize_email(contact["email"])
        if not is_valid_email(contact["email"]):
            raise ValidationError("Please provide a valid email address.")

        raw_cart = payload.get("cart")
        if not isinstance(raw_cart, list) or not raw_cart:
            raise ValidationError("Include at least one item in the cart.")
        cart = [normalize_cart_item(entry) for entry in raw_cart]

        if payload.get("total") is None:
            raise ValidationError("Missing required fields: total")
        total = parse_price(payload.get("total"), "Total")

        payment_ref = str(
            payload.get("paymentRef") or payload.get("payment_ref") or ""
        ).strip()
        if not payment_ref:
            raise ValidationError("Payment reference is required")
        if self.orders.find_by_payment_ref(payment_ref):
            raise Conflict("An order with this payment reference already exists.")

        self.payments.verify(payment_ref)

        order_document = {
            "user": to_object_id(owner_id) if owner_id else None,
            **contact,
            "cart": cart,
            "total": total,
            "payment_ref": payment_ref,
            "status": INITIAL_STATUS,
        }
        try:
            order_document = self.orders.insert(order_document)
        except DuplicateKeyError as exc:
            raise Conflict("An order with this payment reference already exists.") from exc

        self.logger.info("Recorded order %s for %s", payment_ref, contact["email"])
        return order_document

    def get(self, order_id) -> Dict:
        order = self.orders.find_by_id(order_id)
        if not order:
            raise NotFound("Order not found")
        return order

    def list_for_user(self, user_id) -> List[Dict]:
        return self.orders.find_for_user(user_id)

    def list_all(self) -> List[Dict]:
        """All orders, newest first, serialized with their owners joined in."""
        orders = self.orders.find()
        owners = self.users.find_many_by_ids(
            order.get("user") for order in orders if order.get("user")
        )
        serialized_orders = []
        for order in orders:
            serialized = serialize_order(order)
            serialized["owner"] = serialize_owner(owners.get(order.get("user")))
            serialized_orders.append(serialized)
        return serialized_orders

    def track(self, payment_ref) -> Dict:
        payment_ref = str(payment_ref or "").strip()
        order = self.orders.find_by_payment_ref(payment_ref) if payment_ref else None
        if not order:
            raise NotFound("Order not found")
        return order

    def lookup_by_email(self, email_value, payment_ref=None) -> List[Dict]:
        email = normalize_email(email_value)
        if not email:
            raise ValidationError("Email required")
        query = {"email": email}
        payment_ref = str(payment_ref or "").strip()
        if payment_ref:
            query["payment_ref"] = payment_ref
        orders = self.orders.find(query)
        if not orders:
            raise NotFound("No orders found")
        return orders

    def track_by_email_and_ref(self, email_value, payment_ref) -> Dict:
        if not normalize_email(email_value) or not str(payment_ref or "").strip():
            raise ValidationError("Email and Payment Reference are required")
        orders = self.lookup_by_email(email_value, payment_ref)
        return orders[0]

    def update_status(self, order_id, status_value) -> Dict:
        status = str(status_value or "").strip()
        if status not in ORDER_STATUSES:
            raise ValidationError(
                f"Status must be one of: {', '.join(ORDER_STATUSES)}"
            )
        order = self.orders.update(order_id, {"status": status})
        if not order:
            raise NotFound("Order not found")

        self.logger.info("Order %s moved to %s", order.get("payment_ref"), status)
        sent, error_details = self.mailer.send_status_update_email(order)
        if not sent:
            self.logger.error(
                "Status email for order %s was not delivered: %s",
                order.get("_id"),
                error_details or "Unknown delivery error",
            )
        return order
