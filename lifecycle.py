"""
Order lifecycle: creating orders, moving them through kitchen and payment
states, and the kitchen log that records who did what.

Status and payment status are independent and unguarded: any value may
follow any other. The only failure is an unknown order id.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Union

from pymongo import DESCENDING

import config
from database import serialize, to_object_id, utcnow
from errors import NotFoundError
from schemas import (
    KitchenAction,
    KitchenLog,
    Order,
    OrderDraft,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)

logger = logging.getLogger(__name__)

ORDERS = "order"
KITCHEN_LOGS = "kitchenlog"
MENU_ITEMS = "menuitem"

DEFAULT_STAFF_NAME = "System"

# out-for-delivery has no action of its own and is logged as "received"
STATUS_LOG_ACTIONS: Dict[str, KitchenAction] = {
    'order-received': 'received',
    'cooking': 'started-cooking',
    'out-for-delivery': 'received',
    'delivered': 'completed',
    'cancelled': 'cancelled',
}


def log_action_for_status(status: OrderStatus) -> KitchenAction:
    return STATUS_LOG_ACTIONS[status]


class OrderLifecycle:
    def __init__(self, db, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock

    # ---------------------- Mutations ----------------------
    def create_order(self, draft: Union[OrderDraft, Dict[str, Any]]) -> Dict[str, Any]:
        if not isinstance(draft, OrderDraft):
            draft = OrderDraft.model_validate(draft)

        items_total = sum(it.price * it.quantity for it in draft.items)
        if abs(items_total - draft.total_amount) > 0.005:
            logger.warning("Order total %.2f does not match item total %.2f for %s",
                           draft.total_amount, items_total, draft.username)

        now = self.clock()
        order = Order(
            **draft.model_dump(exclude={"staff_name"}),
            status='order-received',
            created_at=now,
            updated_at=now,
            estimated_ready_time=now + timedelta(minutes=config.ORDER_READY_MINUTES),
        )
        result = self.db[ORDERS].insert_one(order.model_dump())
        order_id = str(result.inserted_id)

        self._append_log(order_id, draft.staff_name or DEFAULT_STAFF_NAME, 'received', "Order created", now)
        logger.info("Order %s created (%s, %d items, total %.2f)",
                    order_id, draft.order_type, len(draft.items), draft.total_amount)
        return self.get_order(order_id)

    def update_status(self, order_id: str, status: OrderStatus,
                      staff_name: Optional[str] = None, note: Optional[str] = None) -> Dict[str, Any]:
        _id = self._existing_id(order_id)
        now = self.clock()
        self.db[ORDERS].update_one({"_id": _id}, {"$set": {"status": status, "updated_at": now}})
        logger.info("Order %s status -> %s (by %s)", order_id, status, staff_name or "-")

        if staff_name:
            self._append_log_quietly(order_id, staff_name, log_action_for_status(status), note, now)
        return self.get_order(order_id)

    def update_payment(self, order_id: str, payment_status: PaymentStatus,
                       payment_method: Optional[PaymentMethod] = None,
                       staff_name: Optional[str] = None, note: Optional[str] = None) -> Dict[str, Any]:
        _id = self._existing_id(order_id)
        now = self.clock()
        self.db[ORDERS].update_one({"_id": _id}, {"$set": {
            "payment_status": payment_status,
            "payment_method": payment_method,
            "updated_at": now,
        }})
        logger.info("Order %s payment -> %s (%s)", order_id, payment_status, payment_method or "no method")

        if staff_name:
            self._append_log_quietly(order_id, staff_name, 'payment-updated',
                                     note or f"Payment status updated to {payment_status}", now)
        return self.get_order(order_id)

    # ---------------------- Queries ----------------------
    def get_order(self, order_id: str) -> Dict[str, Any]:
        _id = to_object_id(order_id)
        doc = self.db[ORDERS].find_one({"_id": _id}) if _id is not None else None
        if doc is None:
            raise NotFoundError("Order not found")
        return serialize(doc)

    def list_orders(self) -> List[Dict[str, Any]]:
        return self._find({})

    def list_orders_by_status(self, status: OrderStatus) -> List[Dict[str, Any]]:
        return self._find({"status": status})

    def recent_orders(self) -> List[Dict[str, Any]]:
        """Orders from the last 24 hours."""
        since = self.clock() - timedelta(hours=24)
        return self._find({"created_at": {"$gte": since}})

    def todays_orders(self) -> List[Dict[str, Any]]:
        start = self.clock().replace(hour=0, minute=0, second=0, microsecond=0)
        return self._find({"created_at": {"$gte": start}})

    def orders_with_menu_details(self) -> List[Dict[str, Any]]:
        orders = self.list_orders()
        menu_cache: Dict[str, Optional[dict]] = {}
        for order in orders:
            enriched = []
            for item in order.get("items", []):
                menu_id = item.get("menu_id")
                if menu_id not in menu_cache:
                    _id = to_object_id(menu_id)
                    menu_cache[menu_id] = self.db[MENU_ITEMS].find_one({"_id": _id}) if _id is not None else None
                menu = menu_cache[menu_id]
                enriched.append({
                    **item,
                    "menu_details": {
                        "image_url": menu.get("image_url"),
                        "description": menu.get("description"),
                        "category": menu.get("category"),
                    } if menu else None,
                })
            order["items"] = enriched
        return orders

    def kitchen_logs(self, order_id: str) -> List[Dict[str, Any]]:
        cursor = self.db[KITCHEN_LOGS].find({"order_id": order_id}).sort(
            [("created_at", DESCENDING), ("_id", DESCENDING)])
        return [serialize(d) for d in cursor]

    # ---------------------- Helpers ----------------------
    def _find(self, filt: Dict[str, Any]) -> List[Dict[str, Any]]:
        cursor = self.db[ORDERS].find(filt).sort([("created_at", DESCENDING), ("_id", DESCENDING)])
        return [serialize(d) for d in cursor]

    def _existing_id(self, order_id: str):
        _id = to_object_id(order_id)
        if _id is None or self.db[ORDERS].find_one({"_id": _id}, {"_id": 1}) is None:
            raise NotFoundError("Order not found")
        return _id

    def _append_log(self, order_id: str, staff_name: str, action: KitchenAction,
                    note: Optional[str], now: datetime) -> None:
        entry = KitchenLog(order_id=order_id, staff_name=staff_name, action=action, note=note, created_at=now)
        self.db[KITCHEN_LOGS].insert_one(entry.model_dump())

    def _append_log_quietly(self, order_id: str, staff_name: str, action: KitchenAction,
                            note: Optional[str], now: datetime) -> None:
        # the order is already updated at this point; a lost log line must not undo that
        try:
            self._append_log(order_id, staff_name, action, note, now)
        except Exception:
            logger.exception("Could not write kitchen log for order %s (%s)", order_id, action)
