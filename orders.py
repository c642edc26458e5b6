"""
Order workflow: placement with inventory reservation, cancellation with
restoration, admin status changes and order reads.

Stock is only ever changed through single-document conditional updates, so
two checkouts racing for the last unit cannot both win. If a later item of a
multi-item order fails, the reservations already made for that order are
handed back before the error propagates.
"""
import logging
from typing import List, Optional

from pymongo import ReturnDocument

import database
from database import create_document, serialize_doc, to_object_id, utcnow
from errors import InvalidState, NotFound, OutOfStock, ProductNotFound, ValidationError
from schemas import ORDER_STATUSES, Order

logger = logging.getLogger(__name__)

NEWEST_FIRST = [("created_at", -1), ("_id", -1)]


def _orders():
    return database.get_db()["order"]


def _products():
    return database.get_db()["product"]


# ----------------------- Inventory -----------------------
def reserve_stock(product_id, quantity: int) -> Optional[dict]:
    """Atomically take `quantity` units; returns the updated product or None if short."""
    product = _products().find_one_and_update(
        {"_id": product_id, "inventory.in_stock": True, "inventory.quantity": {"$gte": quantity}},
        {"$inc": {"inventory.quantity": -quantity}, "$set": {"updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if product is not None and product["inventory"]["quantity"] == 0:
        _products().update_one(
            {"_id": product_id, "inventory.quantity": 0},
            {"$set": {"inventory.in_stock": False}},
        )
        product["inventory"]["in_stock"] = False
    return product


def release_stock(product_id, quantity: int) -> bool:
    """Give units back and mark the product in stock; False if the product is gone."""
    res = _products().update_one(
        {"_id": product_id},
        {"$inc": {"inventory.quantity": quantity}, "$set": {"inventory.in_stock": True, "updated_at": utcnow()}},
    )
    return res.matched_count > 0


# ----------------------- Placement -----------------------
def place_order(user: dict, items: List[dict], shipping_address: Optional[dict] = None) -> dict:
    """Reserve stock for every line in order, then store a pending order.

    `user` is the authenticated identity ({"id", "email", ...}); `items` are
    {"product_id", "quantity"} lines.
    """
    if not items:
        raise ValidationError("Order must have at least one item")

    reserved = []
    snapshots = []
    total_amount = 0.0
    try:
        for line in items:
            quantity = int(line["quantity"])
            if quantity < 1:
                raise ValidationError("Quantity must be at least 1")
            product_id = to_object_id(line["product_id"])
            product = _products().find_one({"_id": product_id}) if product_id else None
            if not product:
                raise ProductNotFound(f"Product with ID {line['product_id']} not found")
            out_of_stock = f"{product['name']} is out of stock or insufficient quantity"
            inventory = product.get("inventory") or {}
            if not inventory.get("in_stock") or inventory.get("quantity", 0) < quantity:
                raise OutOfStock(out_of_stock)

            product = reserve_stock(product_id, quantity)
            if product is None:
                # someone else took the stock between the read and the update
                raise OutOfStock(out_of_stock)
            reserved.append((product_id, quantity))

            snapshots.append({
                "product_id": str(product_id),
                "name": product["name"],
                "price": product["price"],
                "quantity": quantity,
                "image": product.get("image"),
            })
            total_amount += product["price"] * quantity

        order = Order(
            user_id=user["id"],
            email=user["email"],
            items=snapshots,
            total_amount=total_amount,
            status="pending",
            shipping_address=shipping_address,
        )
        doc = order.model_dump()
        doc["user_id"] = to_object_id(doc["user_id"])
        for item in doc["items"]:
            item["product_id"] = to_object_id(item["product_id"])
        order_id = create_document("order", doc)
    except Exception:
        for product_id, quantity in reversed(reserved):
            release_stock(product_id, quantity)
        if reserved:
            logger.warning("Order placement failed; released %d reservation(s)", len(reserved))
        raise
    logger.info("Order %s placed by user %s for %.2f", order_id, user["id"], total_amount)
    return serialize_doc(_orders().find_one({"_id": to_object_id(order_id)}))


# ----------------------- Cancellation / status -----------------------
def cancel_order(order_id, user_id) -> dict:
    oid = to_object_id(order_id)
    owner = to_object_id(user_id)
    order = _orders().find_one({"_id": oid, "user_id": owner}) if oid and owner else None
    if not order:
        raise NotFound("Order not found")
    if order["status"] != "pending":
        raise InvalidState()

    # flip status first so a concurrent cancel cannot restore stock twice
    res = _orders().update_one(
        {"_id": oid, "status": "pending"},
        {"$set": {"status": "cancelled", "updated_at": utcnow()}},
    )
    if res.modified_count == 0:
        raise InvalidState()

    for item in order["items"]:
        if not release_stock(item["product_id"], item["quantity"]):
            logger.warning("Product %s no longer exists; stock not restored", item["product_id"])
    logger.info("Order %s cancelled by user %s", order_id, user_id)
    return serialize_doc(_orders().find_one({"_id": oid}))


def update_status(order_id, status: str) -> dict:
    """Admin override: any known status is accepted, whatever the current one."""
    if status not in ORDER_STATUSES:
        raise ValidationError(f"Invalid order status '{status}'")
    oid = to_object_id(order_id)
    order = _orders().find_one_and_update(
        {"_id": oid},
        {"$set": {"status": status, "updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    ) if oid else None
    if not order:
        raise NotFound("Order not found")
    logger.info("Order %s status set to %s", order_id, status)
    return serialize_doc(order)


# ----------------------- Reads -----------------------
def _populate(orders: List[dict], with_user: bool = False) -> List[dict]:
    product_ids = {item["product_id"] for o in orders for item in o.get("items", [])}
    products = {p["_id"]: p for p in _products().find({"_id": {"$in": list(product_ids)}})}
    users = {}
    if with_user:
        user_ids = list({o["user_id"] for o in orders})
        users = {
            u["_id"]: {"id": str(u["_id"]), "name": u.get("name"), "email": u.get("email")}
            for u in database.get_db()["user"].find({"_id": {"$in": user_ids}})
        }

    result = []
    for o in orders:
        out = serialize_doc(o)
        for item, raw in zip(out["items"], o["items"]):
            product = products.get(raw["product_id"])
            item["product"] = serialize_doc(product) if product else None
        if with_user:
            out["user"] = users.get(o["user_id"])
        result.append(out)
    return result


def list_user_orders(user_id) -> List[dict]:
    owner = to_object_id(user_id)
    orders = database.get_documents("order", {"user_id": owner}, sort=NEWEST_FIRST)
    return _populate(orders)


def list_all_orders() -> List[dict]:
    return _populate(database.get_documents("order", sort=NEWEST_FIRST), with_user=True)


def get_order(order_id, user: dict) -> dict:
    """Owners and admins can read an order; anyone else gets NotFound."""
    oid = to_object_id(order_id)
    order = _orders().find_one({"_id": oid}) if oid else None
    if not order or (user.get("role") != "admin" and str(order["user_id"]) != user["id"]):
        raise NotFound("Order not found")
    return _populate([order], with_user=True)[0]
